# agents/reply_renderer.py
"""
Reply Renderer
Turns ActionResults (and canned situations) into OutboundReplies:
plain Thai text for most actions, a flex carousel for gallery matches.

Every path yields a non-empty reply.
"""

from typing import Any, Callable, Dict, List, Optional

from ..config import settings
from ..schemas.agent_schemas import (
    ActionInvocation,
    ActionResult,
    Booking,
    CardReply,
    DailySummary,
    KnowledgeEntry,
    OutboundReply,
    PhotoJob,
    RenderHint,
    RepairTicket,
    TextReply,
    UserAccount,
    UserRole,
)
from ..utils.text_helpers import sanitize_arguments, truncate_text
from ..utils.thai_dates import format_iso_date_thai, format_thai_date, format_thai_time
from .catalogue import SIDES, room_name


# ============================================
# Canned texts
# ============================================

GENERIC_APOLOGY = "ขออภัยค่ะ ระบบไม่สามารถประมวลผลข้อความได้ในขณะนี้ กรุณาลองใหม่อีกครั้งนะคะ 🙏"
TRY_AGAIN_LATER = "ขออภัยค่ะ ระบบขัดข้องชั่วคราว กรุณาลองใหม่ภายหลังนะคะ 🙏"
NOT_SURE = (
    "ขออภัยค่ะ ไม่แน่ใจว่าต้องการให้ช่วยเรื่องไหน ลองพิมพ์ใหม่อีกครั้งนะคะ\n\n"
    "ตัวอย่าง:\n"
    "- ห้องลีลาวดีว่างไหมวันนี้\n"
    "- จองห้องจามจุรีพรุ่งนี้บ่ายสอง\n"
    "- แจ้งซ่อมโปรเจคเตอร์\n"
    "- ตามงานซ่อม\n"
    "- หารูปกีฬาสี"
)
CANCELLED = "ยกเลิกรายการเรียบร้อยค่ะ มีอะไรให้ช่วยอีกไหมคะ?"
DONE_FALLBACK = "ดำเนินการเรียบร้อยแล้วค่ะ"
NO_ACTIVE_TICKETS = "ไม่มีงานซ่อมที่ยังดำเนินการอยู่ของคุณค่ะ 😊"
NO_TICKETS = "ไม่พบรายการแจ้งซ่อมของคุณค่ะ"
CONFIRM_REQUEST = 'ยืนยันรายการนี้ไหมคะ? (ตอบ "ยืนยัน" เพื่อบันทึก หรือ "ยกเลิก")'

BOOKING_STATUS = {
    "pending": "🟡 รออนุมัติ",
    "approved": "🟢 อนุมัติแล้ว",
    "rejected": "🔴 ไม่อนุมัติ",
    "cancelled": "⚫ ยกเลิก",
}

REPAIR_STATUS = {
    "pending": "🟡 รอดำเนินการ",
    "in_progress": "🔵 กำลังซ่อม",
    "waiting_parts": "🟠 รออะไหล่",
    "completed": "🟢 เสร็จแล้ว",
    "cancelled": "⚫ ยกเลิก",
}


def registration_instructions(web_app_url: Optional[str] = None) -> str:
    url = web_app_url or settings.WEB_APP_URL
    return (
        "❌ ยังไม่ได้ผูกบัญชีค่ะ\n\n"
        "วิธีผูกบัญชี:\n"
        f"1. เข้าเว็บ {url}\n"
        "2. เข้าสู่ระบบด้วย Google ของโรงเรียน\n"
        "3. ไปที่ Profile → เชื่อมต่อ LINE\n\n"
        "หลังผูกแล้วกลับมาทักใหม่ได้เลยค่ะ 😊"
    )


def binding_status(account: Optional[UserAccount], web_app_url: Optional[str] = None) -> str:
    if account is None:
        return registration_instructions(web_app_url)
    return (
        "✅ คุณผูกบัญชีแล้วค่ะ!\n\n"
        f"👤 ชื่อ: {account.display_name}\n"
        f"📧 อีเมล: {account.email}\n\n"
        "พร้อมใช้งานทุกฟังก์ชันแล้วค่ะ 😊"
    )


# ============================================
# Item formatters
# ============================================

def format_booking(booking: Booking) -> str:
    name = booking.room_name or room_name(booking.room_id)
    lines = [
        f"📅 {format_thai_date(booking.start_time)} | "
        f"{format_thai_time(booking.start_time)}-{format_thai_time(booking.end_time)}",
        f"📍 {name}",
    ]
    if booking.title:
        lines.append(f"📝 {booking.title}")
    lines.append(BOOKING_STATUS.get(booking.status, booking.status))
    return "\n".join(lines)


def format_repair(ticket: RepairTicket) -> str:
    return "\n".join([
        f"🔧 {ticket.ticket_id}",
        f"📍 {ticket.room}",
        f"📝 {truncate_text(ticket.description, 50)}",
        f"📅 {format_thai_date(ticket.created_at)}",
        REPAIR_STATUS.get(ticket.status, ticket.status),
    ])


def format_photo_job(job: PhotoJob) -> str:
    lines = [f"📸 {job.title}"]
    if job.start_time:
        lines.append(f"📅 {format_thai_date(job.start_time)}")
    lines.append(f"📍 {job.location or '-'}")
    if job.drive_link:
        lines.append(f"📁 Drive: {job.drive_link}")
    if job.facebook_post_id:
        lines.append(f"📘 Facebook: https://facebook.com/{job.facebook_post_id}")
    return "\n".join(lines)


def _gallery_bubble(index: int, job: PhotoJob) -> Dict[str, Any]:
    body: List[Dict[str, Any]] = [
        {"type": "text", "text": f"{index}. {truncate_text(job.title, 60)}", "weight": "bold", "wrap": True},
    ]
    if job.start_time:
        body.append({"type": "text", "text": f"📅 {format_thai_date(job.start_time)}", "size": "sm", "color": "#666666"})
    if job.location:
        body.append({"type": "text", "text": f"📍 {job.location}", "size": "sm", "color": "#666666", "wrap": True})

    bubble: Dict[str, Any] = {
        "type": "bubble",
        "body": {"type": "box", "layout": "vertical", "spacing": "sm", "contents": body},
    }
    if job.cover_image_url:
        bubble["hero"] = {
            "type": "image",
            "url": job.cover_image_url,
            "size": "full",
            "aspectRatio": "20:13",
            "aspectMode": "cover",
        }

    buttons = []
    if job.drive_link:
        buttons.append({"type": "button", "style": "primary", "height": "sm",
                        "action": {"type": "uri", "label": "📁 ดูรูปใน Drive", "uri": job.drive_link}})
    if job.facebook_post_id:
        buttons.append({"type": "button", "style": "secondary", "height": "sm",
                        "action": {"type": "uri", "label": "📘 Facebook",
                                   "uri": f"https://facebook.com/{job.facebook_post_id}"}})
    if buttons:
        bubble["footer"] = {"type": "box", "layout": "vertical", "spacing": "sm", "contents": buttons}
    return bubble


# ============================================
# Renderer
# ============================================

class ReplyRenderer:
    """Maps each action's result to a LINE-ready reply"""

    MAX_CAROUSEL = 10

    def __init__(self, web_app_url: Optional[str] = None):
        self.web_app_url = web_app_url or settings.WEB_APP_URL
        self._formatters: Dict[str, Callable[[ActionResult, Dict[str, Any], Optional[str]], OutboundReply]] = {
            "check_room_schedule": self._room_schedule,
            "check_availability": self._availability,
            "book_room": self._booked,
            "my_bookings": self._my_bookings,
            "my_photo_jobs": self._my_photo_jobs,
            "create_repair": self._repair_created,
            "check_repair": self._repairs,
            "gallery_search": self._gallery,
            "daily_summary": self._daily_summary,
            "ask_knowledge_base": self._knowledge,
        }

    @staticmethod
    def text(body: Optional[str]) -> TextReply:
        """Plain-text reply, never empty"""
        body = (body or "").strip()
        return TextReply(body=body or DONE_FALLBACK)

    def registration(self) -> TextReply:
        return self.text(registration_instructions(self.web_app_url))

    def binding_status(self, account: Optional[UserAccount]) -> TextReply:
        return self.text(binding_status(account, self.web_app_url))

    def render(
        self,
        result: ActionResult,
        arguments: Optional[Dict[str, Any]] = None,
        phrased: Optional[str] = None,
    ) -> OutboundReply:
        arguments = arguments or {}
        if not result.success:
            return self._failure(result)

        formatter = self._formatters.get(result.action)
        if formatter is None:
            return self.text(phrased or (str(result.payload) if not result.is_empty else DONE_FALLBACK))
        return formatter(result, arguments, phrased)

    def gallery_detail(self, job: PhotoJob) -> TextReply:
        return self.text(format_photo_job(job))

    def confirmation(self, invocation: ActionInvocation, advice: Optional[str] = None) -> TextReply:
        """Summary of a validated invocation that waits for "ยืนยัน" before it runs"""
        args = invocation.arguments
        if invocation.name == "create_repair":
            lines = [
                "📝 สรุปข้อมูลแจ้งซ่อม",
                f"- อาการ: {args.get('description') or '-'}",
                f"- ห้อง: {args.get('room') or '-'}",
                f"- ฝั่ง: {SIDES.get(args.get('side'), args.get('side') or '-')}",
                f"- รูปภาพ: {'✅ มีรูปภาพ' if args.get('image_url') else '❌ ไม่มีรูปภาพ'}",
            ]
        else:
            lines = [f"📝 สรุปรายการ {invocation.name}"]
            lines += [f"- {key}: {value}" for key, value in sanitize_arguments(args).items()]

        body = "\n".join(lines) + "\n\n" + CONFIRM_REQUEST
        if advice:
            body = f"{advice.strip()}\n\nถ้าลองแล้วยังไม่หาย ส่งเรื่องให้ช่างได้เลยค่ะ\n\n{body}"
        return self.text(body)

    # ---------- failures ----------

    def _failure(self, result: ActionResult) -> TextReply:
        body = result.reason or "ไม่สามารถทำรายการได้ค่ะ"
        conflicts = (result.payload or {}).get("conflicts") if isinstance(result.payload, dict) else None
        if conflicts:
            body += " มีการจองดังนี้:\n\n" + "\n\n".join(format_booking(b) for b in conflicts)
            body += "\n\nลองเลือกเวลาอื่นได้นะคะ"
        return self.text(body)

    # ---------- rooms ----------

    def _room_schedule(self, result, arguments, phrased) -> TextReply:
        payload = result.payload
        date_display = format_iso_date_thai(payload["date"])
        room_id = payload.get("room_id")
        bookings: List[Booking] = payload["bookings"]

        if not bookings:
            if room_id:
                return self.text(f"{room_name(room_id)} ว่างทั้งวันค่ะ ({date_display})")
            return self.text(f"ไม่มีการจองวันที่ {date_display} ค่ะ ทุกห้องว่างนะคะ 😊")

        header = f"📅 ตารางการจอง{room_name(room_id) if room_id else ''} วันที่ {date_display}"
        items = "\n\n".join(format_booking(b) for b in bookings)
        return self.text(f"{header}\n\n{items}\n\nช่วงเวลาอื่นๆ ว่างค่ะ")

    def _availability(self, result, arguments, phrased) -> TextReply:
        p = result.payload
        name = room_name(p["room_id"])
        when = f"{format_iso_date_thai(p['date'])} เวลา {p['start_time']}-{p['end_time']}"
        if p["available"]:
            return self.text(f"✅ {name} ว่างค่ะ\n📅 {when}\n\nต้องการจองเลยไหมคะ? พิมพ์ \"จองเลย\" ได้เลยค่ะ")
        conflicts = "\n\n".join(format_booking(b) for b in p["conflicts"])
        return self.text(f"ขออภัยค่ะ {name} ไม่ว่างในช่วง {when} มีการจองดังนี้:\n\n{conflicts}")

    def _booked(self, result, arguments, phrased) -> TextReply:
        b: Booking = result.payload
        return self.text(
            "✅ จองสำเร็จค่ะ!\n\n"
            f"📅 {format_thai_date(b.start_time)}\n"
            f"🕐 {format_thai_time(b.start_time)} - {format_thai_time(b.end_time)}\n"
            f"📍 {b.room_name or room_name(b.room_id)}\n"
            f"📝 {b.title}\n\n"
            "⏳ สถานะ: รออนุมัติ\n\n"
            "จะได้รับแจ้งเตือนเมื่อมีการอนุมัตินะคะ"
        )

    def _my_bookings(self, result, arguments, phrased) -> TextReply:
        bookings: List[Booking] = result.payload
        if not bookings:
            return self.text("ไม่พบรายการจองของคุณค่ะ")
        items = "\n\n".join(format_booking(b) for b in bookings)
        return self.text(f"📋 รายการจองของคุณ\n\n{items}")

    # ---------- photography ----------

    def _my_photo_jobs(self, result, arguments, phrased) -> TextReply:
        jobs: List[PhotoJob] = result.payload
        if not jobs:
            if arguments.get("date"):
                return self.text("ไม่มีงานถ่ายภาพที่มอบหมายให้คุณในวันนั้นค่ะ 😊")
            return self.text("ไม่พบงานถ่ายภาพที่ได้รับมอบหมายค่ะ")
        items = "\n\n".join(format_photo_job(j) for j in jobs)
        return self.text(f"📸 งานถ่ายภาพของคุณ\n\n{items}")

    def _gallery(self, result, arguments, phrased) -> OutboundReply:
        jobs: List[PhotoJob] = result.payload
        keyword = arguments.get("keyword", "")
        if not jobs:
            return self.text(f"ไม่พบภาพกิจกรรมที่ตรงกับ \"{keyword}\" ค่ะ ลองค้นหาคำอื่นนะคะ")
        if len(jobs) == 1:
            return self.text(f"📸 พบ 1 กิจกรรม\n\n{format_photo_job(jobs[0])}")

        shown = jobs[: self.MAX_CAROUSEL]
        if result.render_hint == RenderHint.CARD:
            return CardReply(
                alt_text=f"📸 พบ {len(jobs)} กิจกรรม \"{keyword}\" พิมพ์หมายเลขเพื่อดูรายละเอียดค่ะ",
                payload={
                    "type": "carousel",
                    "contents": [_gallery_bubble(i, job) for i, job in enumerate(shown, start=1)],
                },
            )

        lines = []
        for i, job in enumerate(shown, start=1):
            date = f" ({format_thai_date(job.start_time, include_year=False)})" if job.start_time else ""
            lines.append(f"{i}. {truncate_text(job.title, 40)}{date}")
        return self.text(
            f"📸 พบ {len(jobs)} กิจกรรม\n\n" + "\n".join(lines) + "\n\nพิมพ์หมายเลขเพื่อดูรายละเอียดและ Link ค่ะ"
        )

    # ---------- repairs ----------

    def _repair_created(self, result, arguments, phrased) -> TextReply:
        t: RepairTicket = result.payload
        side = SIDES.get(t.zone, t.zone)
        lines = [
            "✅ แจ้งซ่อมเรียบร้อยค่ะ\n",
            f"🔧 Ticket: {t.ticket_id}",
            f"📍 {t.room} ({side})",
            f"📝 {t.description}",
        ]
        if t.image_url:
            lines.append("📷 แนบรูปภาพแล้ว")
        lines.append("\n⏳ สถานะ: รอดำเนินการ\n\nช่างจะรีบดำเนินการให้นะคะ")
        return self.text("\n".join(lines))

    def _repairs(self, result, arguments, phrased) -> TextReply:
        tickets: List[RepairTicket] = result.payload
        if not tickets:
            return self.text(NO_TICKETS if arguments.get("include_closed") else NO_ACTIVE_TICKETS)
        if arguments.get("ticket_id") and len(tickets) == 1:
            return self.text(f"📋 สถานะงานซ่อม\n\n{format_repair(tickets[0])}")
        items = "\n\n".join(format_repair(t) for t in tickets)
        return self.text(f"📋 รายการแจ้งซ่อมของคุณ\n\n{items}")

    # ---------- summary & knowledge ----------

    def _daily_summary(self, result, arguments, phrased) -> TextReply:
        p = result.payload
        s: DailySummary = p["summary"]
        account: Optional[UserAccount] = p.get("account")

        if account is None:
            return self.text(
                "📊 สรุปวันนี้\n\n"
                f"🔧 งานซ่อม: {s.repairs_total} รายการ\n"
                f"📅 การจองห้อง: {s.bookings_total} รายการ\n"
                f"📸 งานถ่ายภาพ: {s.photo_jobs_total} งาน\n\n"
                "💡 ผูกบัญชีเพื่อดูงานของคุณโดยเฉพาะค่ะ"
            )

        parts = [
            "📊 สรุปงานวันนี้",
            f"🔧 งานซ่อมวันนี้: {s.repairs_total} รายการ\n"
            f"📅 การจองห้องวันนี้: {s.bookings_total} รายการ\n"
            f"📸 งานถ่ายภาพวันนี้: {s.photo_jobs_total} งาน",
        ]
        if account.role in (UserRole.TECHNICIAN, UserRole.ADMIN):
            parts.append(
                "🔧 งานซ่อม\n"
                f"• รอดำเนินการ: {s.repairs_pending} รายการ\n"
                f"• กำลังซ่อม: {s.repairs_in_progress} รายการ"
            )
        if account.is_photographer:
            jobs = p.get("my_photo_jobs") or []
            body = "\n".join(format_photo_job(j) for j in jobs) if jobs else "• ไม่มีงานวันนี้ค่ะ"
            parts.append(f"📸 งานถ่ายภาพของคุณ\n{body}")
        if account.role in (UserRole.MODERATOR, UserRole.ADMIN):
            parts.append(f"📅 การจองห้องรออนุมัติ\n• รออนุมัติ: {s.bookings_pending} รายการ")
        if account.role == UserRole.USER and p.get("my_bookings"):
            parts.append("📅 การจองห้องของคุณวันนี้\n" + "\n".join(format_booking(b) for b in p["my_bookings"]))

        return self.text("\n\n".join(parts) + "\n\nค่ะ 😊")

    def _knowledge(self, result, arguments, phrased) -> TextReply:
        if phrased:
            return self.text(phrased)
        entries: List[KnowledgeEntry] = result.payload.get("entries") or []
        if not entries:
            return self.text(
                "ยังไม่มีข้อมูลเรื่องนี้ในระบบค่ะ หากอุปกรณ์มีปัญหา พิมพ์ \"แจ้งซ่อม\" ได้เลยนะคะ"
            )
        best = entries[0]
        body = f"💡 {best.question}\n\n{best.answer}"
        if len(entries) > 1:
            body += "\n\nเรื่องที่เกี่ยวข้อง:\n" + "\n".join(f"- {e.question}" for e in entries[1:])
        return self.text(body)
