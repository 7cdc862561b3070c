# agents/actions.py
"""
Domain Actions
Async handlers ``(validated_args, caller) -> ActionResult`` for every
action the LINE agent can perform, plus the default registry wiring.

Business-rule rejections (slot taken, not a photographer, ticket not
found) are returned as ``success=False`` results. Store outages surface
as TransportError from the store and are left to the dispatcher.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..algorithms.ranking import rank_gallery, rank_knowledge, rank_tickets
from ..interfaces.school_store import SchoolStore
from ..schemas.agent_schemas import (
    ActionDescriptor,
    ActionResult,
    ArgumentSpec,
    ArgumentType,
    Booking,
    DailySummary,
    PhotoJob,
    RenderHint,
    RepairTicket,
    UserAccount,
    UserRole,
)
from ..utils.thai_dates import add_minutes, combine, day_bounds, get_timezone, now_local
from .catalogue import ROOM_IDS, SIDES, room_name
from .registry import ActionRegistry


GALLERY_LIMIT = 10
TICKET_LIMIT = 20
_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_ticket_id(now: datetime) -> str:
    """REP-<base36 epoch milliseconds>"""
    return f"REP-{_base36(int(now.timestamp() * 1000))}"


def _overlaps(booking: Booking, start: datetime, end: datetime) -> bool:
    return booking.start_time < end and booking.end_time > start


def _matches_keyword(job: PhotoJob, keyword: str) -> bool:
    needle = keyword.lower()
    return any(needle in (field or "").lower() for field in (job.title, job.location, job.description))


class SchoolActions:
    """Handlers bound to one store and one clock"""

    def __init__(self, store: SchoolStore, clock: Callable[[], datetime] = now_local):
        self.store = store
        self.clock = clock
        self.tz = get_timezone()

    def _today(self) -> str:
        return self.clock().astimezone(self.tz).date().isoformat()

    # ============================================
    # Rooms & bookings
    # ============================================

    async def _conflicts(self, room_id: str, date: str, start_time: str, end_time: str) -> List[Booking]:
        day_start, day_end = day_bounds(date, self.tz)
        start = combine(date, start_time, self.tz)
        end = combine(date, end_time, self.tz)
        bookings = await asyncio.to_thread(self.store.bookings_between, day_start, day_end, room_id)
        return [b for b in bookings if _overlaps(b, start, end)]

    async def check_room_schedule(self, args: Dict[str, Any], account: Optional[UserAccount]) -> ActionResult:
        date = args.get("date") or self._today()
        room_id = args.get("room_id")
        day_start, day_end = day_bounds(date, self.tz)
        bookings = await asyncio.to_thread(self.store.bookings_between, day_start, day_end, room_id)
        return ActionResult(
            action="check_room_schedule",
            success=True,
            payload={"date": date, "room_id": room_id, "bookings": bookings},
        )

    async def check_availability(self, args: Dict[str, Any], account: Optional[UserAccount]) -> ActionResult:
        if args["end_time"] <= args["start_time"]:
            return ActionResult(
                action="check_availability",
                success=False,
                reason="เวลาสิ้นสุดต้องหลังเวลาเริ่มค่ะ",
            )
        conflicts = await self._conflicts(args["room_id"], args["date"], args["start_time"], args["end_time"])
        return ActionResult(
            action="check_availability",
            success=True,
            payload={
                "available": not conflicts,
                "room_id": args["room_id"],
                "date": args["date"],
                "start_time": args["start_time"],
                "end_time": args["end_time"],
                "conflicts": conflicts,
            },
        )

    async def book_room(self, args: Dict[str, Any], account: Optional[UserAccount]) -> ActionResult:
        start_time = args["start_time"]
        end_time = args.get("end_time") or add_minutes(start_time, 60)
        if end_time <= start_time:
            return ActionResult(action="book_room", success=False, reason="เวลาสิ้นสุดต้องหลังเวลาเริ่มค่ะ")

        conflicts = await self._conflicts(args["room_id"], args["date"], start_time, end_time)
        if conflicts:
            logger.info(f"Booking conflict for {args['room_id']} on {args['date']} {start_time}-{end_time}")
            return ActionResult(
                action="book_room",
                success=False,
                reason=f"{room_name(args['room_id'])} ไม่ว่างในช่วงเวลาที่ต้องการค่ะ",
                payload={"conflicts": conflicts},
            )

        booking = Booking(
            room_id=args["room_id"],
            room_name=room_name(args["room_id"]),
            title=args.get("title") or f"จองผ่าน LINE โดย {account.display_name}",
            start_time=combine(args["date"], start_time, self.tz),
            end_time=combine(args["date"], end_time, self.tz),
            status="pending",
            requester_name=account.display_name,
            requester_email=account.email,
        )
        booking_id = await asyncio.to_thread(self.store.insert_booking, booking)
        logger.info(f"Booking created: {booking_id} ({booking.room_id})")
        return ActionResult(action="book_room", success=True, payload=booking.model_copy(update={"id": booking_id}))

    async def my_bookings(self, args: Dict[str, Any], account: Optional[UserAccount]) -> ActionResult:
        bookings = await asyncio.to_thread(self.store.bookings_by_email, account.email, 10)
        return ActionResult(action="my_bookings", success=True, payload=bookings)

    # ============================================
    # Photography
    # ============================================

    async def my_photo_jobs(self, args: Dict[str, Any], account: Optional[UserAccount]) -> ActionResult:
        if not account.is_photographer:
            return ActionResult(
                action="my_photo_jobs",
                success=False,
                reason="คุณไม่ใช่ช่างภาพในระบบค่ะ หากต้องการเป็นช่างภาพ กรุณาติดต่อผู้ดูแลระบบนะคะ",
            )
        jobs = await asyncio.to_thread(self.store.photo_jobs_by_assignee, account.uid, 10)
        date = args.get("date")
        if date:
            day_start, day_end = day_bounds(date, self.tz)
            jobs = [j for j in jobs if j.start_time and day_start <= j.start_time < day_end]
        return ActionResult(action="my_photo_jobs", success=True, payload=jobs)

    async def gallery_search(self, args: Dict[str, Any], account: Optional[UserAccount]) -> ActionResult:
        """
        Search completed photo jobs.
        Relaxes step by step: whole keyword, then any single word, then
        the same two passes without the date filter.
        """
        keyword = args["keyword"]
        date = args.get("date")
        jobs = await asyncio.to_thread(self.store.completed_photo_jobs, 50)

        def search(with_date: bool) -> List[PhotoJob]:
            pool = jobs
            if with_date and date:
                day_start, day_end = day_bounds(date, self.tz)
                pool = [j for j in pool if j.start_time and day_start <= j.start_time < day_end]
            found = [j for j in pool if _matches_keyword(j, keyword)]
            if not found:
                words = [w for w in keyword.split() if len(w) > 1]
                if len(words) > 1:
                    found = [j for j in pool if any(_matches_keyword(j, w) for w in words)]
            return found

        found = search(with_date=True)
        if not found and date:
            logger.debug(f"[Gallery Search] nothing on {date}, retrying without date")
            found = search(with_date=False)

        logger.info(f"[Gallery Search] keyword={keyword}, date={date}, found={len(found)}")
        return ActionResult(
            action="gallery_search",
            success=True,
            payload=found,
            render_hint=RenderHint.CARD if len(found) > 1 else RenderHint.TEXT,
        )

    # ============================================
    # Repairs
    # ============================================

    async def create_repair(self, args: Dict[str, Any], account: Optional[UserAccount]) -> ActionResult:
        now = self.clock()
        ticket = RepairTicket(
            ticket_id=generate_ticket_id(now),
            room=args["room"],
            description=args["description"],
            zone=args["side"],
            image_url=args.get("image_url") or "",
            status="pending",
            requester_name=account.display_name,
            requester_email=account.email,
            created_at=now,
        )
        doc_id = await asyncio.to_thread(self.store.insert_repair, ticket)
        logger.info(f"Repair ticket created: {ticket.ticket_id} ({SIDES.get(ticket.zone, ticket.zone)})")
        return ActionResult(action="create_repair", success=True, payload=ticket.model_copy(update={"id": doc_id}))

    async def check_repair(self, args: Dict[str, Any], account: Optional[UserAccount]) -> ActionResult:
        ticket_id = args.get("ticket_id")
        if ticket_id:
            ticket = await asyncio.to_thread(self.store.repair_by_ticket_id, ticket_id)
            if ticket is None:
                return ActionResult(
                    action="check_repair",
                    success=False,
                    reason=f"ไม่พบงานซ่อม Ticket ID: {ticket_id} ค่ะ กรุณาตรวจสอบอีกครั้งนะคะ",
                )
            return ActionResult(action="check_repair", success=True, payload=[ticket])

        tickets = await asyncio.to_thread(self.store.repairs_by_email, account.email, TICKET_LIMIT)
        if not args.get("include_closed"):
            tickets = [t for t in tickets if t.is_active]
        return ActionResult(action="check_repair", success=True, payload=tickets)

    # ============================================
    # Summary & knowledge base
    # ============================================

    async def daily_summary(self, args: Dict[str, Any], account: Optional[UserAccount]) -> ActionResult:
        today = self._today()
        day_start, day_end = day_bounds(today, self.tz)

        lookups = [
            asyncio.to_thread(self.store.repairs_created_between, day_start, day_end),
            asyncio.to_thread(self.store.bookings_between, day_start, day_end),
            asyncio.to_thread(self.store.photo_jobs_between, day_start, day_end),
        ]
        if account and account.is_photographer:
            lookups.append(asyncio.to_thread(self.store.photo_jobs_by_assignee, account.uid, 10))
        if account and account.role == UserRole.USER:
            lookups.append(asyncio.to_thread(self.store.bookings_by_email, account.email, 10))

        results = await asyncio.gather(*lookups)
        repairs, bookings, photo_jobs = results[0], results[1], results[2]
        extras = list(results[3:])

        summary = DailySummary(
            repairs_total=len(repairs),
            repairs_pending=sum(1 for r in repairs if r.status == "pending"),
            repairs_in_progress=sum(1 for r in repairs if r.status == "in_progress"),
            bookings_total=len(bookings),
            bookings_pending=sum(1 for b in bookings if b.status == "pending"),
            bookings_approved=sum(1 for b in bookings if b.status == "approved"),
            photo_jobs_total=len(photo_jobs),
        )

        my_photo_jobs: List[PhotoJob] = []
        my_bookings: List[Booking] = []
        if account and account.is_photographer:
            my_photo_jobs = [j for j in extras.pop(0) if j.start_time and day_start <= j.start_time < day_end]
        if account and account.role == UserRole.USER:
            my_bookings = [b for b in extras.pop(0) if day_start <= b.start_time < day_end]

        return ActionResult(
            action="daily_summary",
            success=True,
            payload={
                "date": today,
                "summary": summary,
                "account": account,
                "my_photo_jobs": my_photo_jobs,
                "my_bookings": my_bookings,
            },
        )

    async def ask_knowledge_base(self, args: Dict[str, Any], account: Optional[UserAccount]) -> ActionResult:
        question = args["question"]
        entries = await asyncio.to_thread(self.store.knowledge_entries)
        relevant = rank_knowledge(entries, question)
        logger.info(f"Knowledge base: {len(relevant)} of {len(entries)} entries match")
        return ActionResult(
            action="ask_knowledge_base",
            success=True,
            payload={"question": question, "entries": relevant},
        )


# ============================================
# Descriptors
# ============================================

def _date(description: str, required: bool = False) -> ArgumentSpec:
    return ArgumentSpec(name="date", type=ArgumentType.DATE, description=description, required=required)


def _room(required: bool) -> ArgumentSpec:
    return ArgumentSpec(
        name="room_id",
        type=ArgumentType.STRING,
        description="รหัสห้องจากรายการห้องประชุม",
        required=required,
        enum=ROOM_IDS,
    )


DESCRIPTORS: List[ActionDescriptor] = [
    ActionDescriptor(
        name="check_room_schedule",
        description="ดูตารางการจองห้องประชุมทั้งวัน (ทุกห้องหรือห้องเดียว)",
        arguments=[_room(required=False), _date("วันที่ต้องการดู ค่าเริ่มต้นคือวันนี้")],
    ),
    ActionDescriptor(
        name="check_availability",
        description="ตรวจว่าห้องว่างในช่วงเวลาที่ระบุหรือไม่",
        arguments=[
            _room(required=True),
            _date("วันที่", required=True),
            ArgumentSpec(name="start_time", type=ArgumentType.TIME, description="เวลาเริ่ม", required=True),
            ArgumentSpec(name="end_time", type=ArgumentType.TIME, description="เวลาสิ้นสุด", required=True),
        ],
    ),
    ActionDescriptor(
        name="book_room",
        description="จองห้องประชุม (สถานะรออนุมัติ)",
        arguments=[
            _room(required=True),
            _date("วันที่จอง", required=True),
            ArgumentSpec(name="start_time", type=ArgumentType.TIME, description="เวลาเริ่ม", required=True),
            ArgumentSpec(name="end_time", type=ArgumentType.TIME, description="เวลาสิ้นสุด ถ้าไม่ระบุคือ 1 ชั่วโมง"),
            ArgumentSpec(name="title", description="หัวข้อการประชุม"),
        ],
    ),
    ActionDescriptor(
        name="my_bookings",
        description="ดูรายการจองห้องของผู้ใช้",
    ),
    ActionDescriptor(
        name="my_photo_jobs",
        description="ดูงานถ่ายภาพที่ได้รับมอบหมาย (เฉพาะช่างภาพ)",
        arguments=[_date("กรองเฉพาะวันที่นี้")],
    ),
    ActionDescriptor(
        name="create_repair",
        description="แจ้งซ่อมอุปกรณ์โสตทัศนูปกรณ์",
        arguments=[
            ArgumentSpec(name="description", description="อาการเสีย", required=True),
            ArgumentSpec(name="room", description="ห้องหรือสถานที่ของอุปกรณ์", required=True),
            ArgumentSpec(
                name="side",
                description="ฝั่งอาคาร",
                required=True,
                enum=list(SIDES),
            ),
            ArgumentSpec(name="image_url", description="ลิงก์รูปภาพ (ถ้ามี)"),
        ],
    ),
    ActionDescriptor(
        name="check_repair",
        description="ตามสถานะงานซ่อมของผู้ใช้ หรือของ Ticket ที่ระบุ",
        arguments=[
            ArgumentSpec(name="ticket_id", description="เลข Ticket เช่น REP-XXXX"),
            ArgumentSpec(name="keyword", description="คำที่เกี่ยวกับงานซ่อม เช่น โปรเจคเตอร์"),
            ArgumentSpec(name="include_closed", type=ArgumentType.BOOLEAN, description="รวมงานที่ปิดแล้ว"),
        ],
    ),
    ActionDescriptor(
        name="gallery_search",
        description="ค้นหาภาพกิจกรรมของโรงเรียน",
        arguments=[
            ArgumentSpec(name="keyword", description="ชื่อกิจกรรม เช่น กีฬาสี", required=True),
            _date("วันที่จัดกิจกรรม"),
        ],
    ),
    ActionDescriptor(
        name="daily_summary",
        description="สรุปงานซ่อม การจองห้อง และงานถ่ายภาพของวันนี้",
    ),
    ActionDescriptor(
        name="ask_knowledge_base",
        description="ตอบคำถามทั่วไปเกี่ยวกับอุปกรณ์และวิธีใช้งานจากฐานความรู้",
        arguments=[ArgumentSpec(name="question", description="คำถามของผู้ใช้", required=True)],
    ),
]


def _rank_gallery(items: List[PhotoJob], args: Dict[str, Any], now: datetime) -> List[PhotoJob]:
    return rank_gallery(items, args.get("keyword", ""), now)[:GALLERY_LIMIT]


def _rank_tickets(items: List[RepairTicket], args: Dict[str, Any], now: datetime) -> List[RepairTicket]:
    return rank_tickets(items, now, args.get("keyword"))


def build_default_registry(store: SchoolStore, clock: Callable[[], datetime] = now_local) -> ActionRegistry:
    """Registry with every school action bound to ``store``"""
    actions = SchoolActions(store, clock)
    descriptors = {d.name: d for d in DESCRIPTORS}
    registry = ActionRegistry()

    registry.register(descriptors["check_room_schedule"], actions.check_room_schedule)
    registry.register(descriptors["check_availability"], actions.check_availability)
    registry.register(descriptors["book_room"], actions.book_room, requires_account=True)
    registry.register(descriptors["my_bookings"], actions.my_bookings, requires_account=True)
    registry.register(descriptors["my_photo_jobs"], actions.my_photo_jobs, requires_account=True)
    registry.register(
        descriptors["create_repair"], actions.create_repair, requires_account=True, confirm_before_run=True
    )
    registry.register(
        descriptors["check_repair"], actions.check_repair, ranker=_rank_tickets, requires_account=True
    )
    registry.register(descriptors["gallery_search"], actions.gallery_search, ranker=_rank_gallery)
    registry.register(descriptors["daily_summary"], actions.daily_summary)
    registry.register(descriptors["ask_knowledge_base"], actions.ask_knowledge_base, phrase_with_model=True)

    logger.info(f"Action registry ready: {len(registry)} actions")
    return registry
