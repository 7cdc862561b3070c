# interfaces/school_store.py
"""
School Document Store
Data access for bookings, repair tickets, photography jobs, the FAQ
knowledge base and LINE account bindings.

Field names in MongoDB follow the web application's camelCase schema.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional
import uuid

from loguru import logger
from pymongo import DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from ..exceptions import TransportError
from ..schemas.agent_schemas import (
    Booking,
    IdentityBinding,
    KnowledgeEntry,
    PhotoJob,
    RepairTicket,
)


ACTIVE_BOOKING_STATUSES = ("pending", "approved")


class SchoolStore(ABC):
    """Read/write operations the domain actions depend on"""

    # Bookings
    @abstractmethod
    def bookings_between(self, start: datetime, end: datetime, room_id: Optional[str] = None) -> List[Booking]:
        """Pending/approved bookings whose start falls in [start, end)"""

    @abstractmethod
    def insert_booking(self, booking: Booking) -> str:
        ...

    @abstractmethod
    def bookings_by_email(self, email: str, limit: int = 10) -> List[Booking]:
        ...

    # Repairs
    @abstractmethod
    def repairs_by_email(self, email: str, limit: int = 10) -> List[RepairTicket]:
        ...

    @abstractmethod
    def repair_by_ticket_id(self, ticket_id: str) -> Optional[RepairTicket]:
        ...

    @abstractmethod
    def insert_repair(self, ticket: RepairTicket) -> str:
        ...

    @abstractmethod
    def repairs_created_between(self, start: datetime, end: datetime) -> List[RepairTicket]:
        ...

    # Photography jobs
    @abstractmethod
    def completed_photo_jobs(self, limit: int = 50) -> List[PhotoJob]:
        ...

    @abstractmethod
    def photo_jobs_by_assignee(self, uid: str, limit: int = 10) -> List[PhotoJob]:
        ...

    @abstractmethod
    def photo_jobs_between(self, start: datetime, end: datetime) -> List[PhotoJob]:
        ...

    # Knowledge base
    @abstractmethod
    def knowledge_entries(self) -> List[KnowledgeEntry]:
        ...

    # Identity
    @abstractmethod
    def get_line_binding(self, line_user_id: str) -> Optional[IdentityBinding]:
        ...

    @abstractmethod
    def get_user(self, uid: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def find_user_by_line_id(self, line_user_id: str) -> Optional[Dict[str, Any]]:
        ...


class InMemorySchoolStore(SchoolStore):
    """
    Dictionary-backed store for development and tests.
    Users are kept as dicts in the web application's camelCase shape.
    """

    def __init__(self):
        self.bookings: List[Booking] = []
        self.repairs: List[RepairTicket] = []
        self.photo_jobs: List[PhotoJob] = []
        self.knowledge: List[KnowledgeEntry] = []
        self.bindings: Dict[str, IdentityBinding] = {}
        self.users: Dict[str, Dict[str, Any]] = {}

    def bookings_between(self, start, end, room_id=None):
        return sorted(
            (
                b for b in self.bookings
                if start <= b.start_time < end
                and b.status in ACTIVE_BOOKING_STATUSES
                and (room_id is None or b.room_id == room_id)
            ),
            key=lambda b: b.start_time,
        )

    def insert_booking(self, booking):
        booking_id = booking.id or uuid.uuid4().hex[:20]
        self.bookings.append(booking.model_copy(update={"id": booking_id}))
        return booking_id

    def bookings_by_email(self, email, limit=10):
        mine = [b for b in self.bookings if b.requester_email == email]
        return sorted(mine, key=lambda b: b.start_time, reverse=True)[:limit]

    def repairs_by_email(self, email, limit=10):
        mine = [r for r in self.repairs if r.requester_email == email]
        return sorted(mine, key=lambda r: r.created_at, reverse=True)[:limit]

    def repair_by_ticket_id(self, ticket_id):
        for ticket in self.repairs:
            if ticket.ticket_id.lower() == ticket_id.lower():
                return ticket
        return None

    def insert_repair(self, ticket):
        doc_id = ticket.id or uuid.uuid4().hex[:20]
        self.repairs.append(ticket.model_copy(update={"id": doc_id}))
        return doc_id

    def repairs_created_between(self, start, end):
        return [r for r in self.repairs if start <= r.created_at < end]

    def completed_photo_jobs(self, limit=50):
        return [j for j in self.photo_jobs if j.status == "completed"][:limit]

    def photo_jobs_by_assignee(self, uid, limit=10):
        mine = [j for j in self.photo_jobs if uid in j.assignee_ids]
        return sorted(
            mine,
            key=lambda j: j.start_time.timestamp() if j.start_time else float("-inf"),
            reverse=True,
        )[:limit]

    def photo_jobs_between(self, start, end):
        return [j for j in self.photo_jobs if j.start_time and start <= j.start_time < end]

    def knowledge_entries(self):
        return list(self.knowledge)

    def get_line_binding(self, line_user_id):
        return self.bindings.get(line_user_id)

    def get_user(self, uid):
        return self.users.get(uid)

    def find_user_by_line_id(self, line_user_id):
        for uid, user in self.users.items():
            if user.get("lineUserId") == line_user_id:
                return {"uid": uid, **user}
        return None


class MongoSchoolStore(SchoolStore):
    """
    MongoDB-backed store.
    Driver errors surface as TransportError so the dispatcher can tell
    an unreachable store from a business-rule rejection.
    """

    def __init__(self, mongo_uri: str, mongo_db: str, timeout_ms: int = 5000):
        self.mongo_client = MongoClient(
            mongo_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=timeout_ms,
        )
        self.db = self.mongo_client[mongo_db]
        logger.info(f"SchoolStore using MongoDB: {mongo_db}")

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except PyMongoError as e:
            logger.error(f"MongoDB {operation} failed: {e}")
            raise TransportError(f"document store unavailable during {operation}") from e

    # ---------- converters ----------

    @staticmethod
    def _booking(doc: Dict[str, Any]) -> Booking:
        return Booking(
            id=str(doc.get("_id", "")),
            room_id=doc.get("room", ""),
            room_name=doc.get("roomName", ""),
            title=doc.get("title", ""),
            start_time=doc["startTime"],
            end_time=doc["endTime"],
            status=doc.get("status", "pending"),
            requester_name=doc.get("requesterName", ""),
            requester_email=doc.get("requesterEmail", ""),
            source=doc.get("source", "web"),
        )

    @staticmethod
    def _repair(doc: Dict[str, Any]) -> RepairTicket:
        return RepairTicket(
            id=str(doc.get("_id", "")),
            ticket_id=doc.get("ticketId") or str(doc.get("_id", "")),
            room=doc.get("room", ""),
            description=doc.get("description", ""),
            zone=doc.get("zone", ""),
            image_url=doc.get("imageUrl", ""),
            status=doc.get("status", "pending"),
            requester_name=doc.get("requesterName", ""),
            requester_email=doc.get("requesterEmail") or doc.get("email", ""),
            created_at=doc["createdAt"],
            source=doc.get("source", "web"),
        )

    @staticmethod
    def _photo_job(doc: Dict[str, Any]) -> PhotoJob:
        return PhotoJob(
            id=str(doc.get("_id", "")),
            title=doc.get("title", ""),
            location=doc.get("location", ""),
            description=doc.get("description", ""),
            start_time=doc.get("startTime"),
            status=doc.get("status", ""),
            assignee_ids=doc.get("assigneeIds", []),
            drive_link=doc.get("driveLink"),
            facebook_post_id=doc.get("facebookPostId"),
            cover_image_url=doc.get("coverImage"),
        )

    # ---------- bookings ----------

    def bookings_between(self, start, end, room_id=None):
        query: Dict[str, Any] = {
            "startTime": {"$gte": start, "$lt": end},
            "status": {"$in": list(ACTIVE_BOOKING_STATUSES)},
        }
        if room_id:
            query["room"] = room_id
        with self._guard("bookings_between"):
            docs = self.db.bookings.find(query).sort("startTime", 1)
            return [self._booking(d) for d in docs]

    def insert_booking(self, booking):
        doc = {
            "room": booking.room_id,
            "roomName": booking.room_name,
            "startTime": booking.start_time,
            "endTime": booking.end_time,
            "title": booking.title,
            "requesterName": booking.requester_name,
            "requesterEmail": booking.requester_email,
            "department": "",
            "status": booking.status,
            "createdAt": datetime.now(booking.start_time.tzinfo),
            "source": booking.source,
        }
        with self._guard("insert_booking"):
            return str(self.db.bookings.insert_one(doc).inserted_id)

    def bookings_by_email(self, email, limit=10):
        with self._guard("bookings_by_email"):
            docs = (
                self.db.bookings.find({"requesterEmail": email})
                .sort("startTime", DESCENDING)
                .limit(limit)
            )
            return [self._booking(d) for d in docs]

    # ---------- repairs ----------

    def repairs_by_email(self, email, limit=10):
        with self._guard("repairs_by_email"):
            docs = (
                self.db.repairs.find({"$or": [{"requesterEmail": email}, {"email": email}]})
                .sort("createdAt", DESCENDING)
                .limit(limit)
            )
            return [self._repair(d) for d in docs]

    def repair_by_ticket_id(self, ticket_id):
        with self._guard("repair_by_ticket_id"):
            doc = self.db.repairs.find_one({"ticketId": ticket_id.upper()})
            return self._repair(doc) if doc else None

    def insert_repair(self, ticket):
        doc = {
            "ticketId": ticket.ticket_id,
            "room": ticket.room,
            "description": ticket.description,
            "zone": ticket.zone,
            "imageUrl": ticket.image_url,
            "requesterName": ticket.requester_name,
            "requesterEmail": ticket.requester_email,
            "status": ticket.status,
            "createdAt": ticket.created_at,
            "source": ticket.source,
        }
        with self._guard("insert_repair"):
            return str(self.db.repairs.insert_one(doc).inserted_id)

    def repairs_created_between(self, start, end):
        with self._guard("repairs_created_between"):
            docs = self.db.repairs.find({"createdAt": {"$gte": start, "$lt": end}})
            return [self._repair(d) for d in docs]

    # ---------- photography jobs ----------

    def completed_photo_jobs(self, limit=50):
        with self._guard("completed_photo_jobs"):
            docs = (
                self.db.photography_jobs.find({"status": "completed"})
                .sort("startTime", DESCENDING)
                .limit(limit)
            )
            return [self._photo_job(d) for d in docs]

    def photo_jobs_by_assignee(self, uid, limit=10):
        with self._guard("photo_jobs_by_assignee"):
            docs = (
                self.db.photography_jobs.find({"assigneeIds": uid})
                .sort("startTime", DESCENDING)
                .limit(limit)
            )
            return [self._photo_job(d) for d in docs]

    def photo_jobs_between(self, start, end):
        with self._guard("photo_jobs_between"):
            docs = self.db.photography_jobs.find({"startTime": {"$gte": start, "$lt": end}})
            return [self._photo_job(d) for d in docs]

    # ---------- knowledge base ----------

    def knowledge_entries(self):
        with self._guard("knowledge_entries"):
            return [
                KnowledgeEntry(
                    id=str(d.get("_id", "")),
                    question=d.get("question", ""),
                    answer=d.get("answer", ""),
                    category=d.get("category", ""),
                    keywords=d.get("keywords", []),
                )
                for d in self.db.knowledge_base.find({})
            ]

    # ---------- identity ----------

    def get_line_binding(self, line_user_id):
        with self._guard("get_line_binding"):
            doc = self.db.line_bindings.find_one({"_id": line_user_id})
        if not doc or not doc.get("uid"):
            return None
        return IdentityBinding(
            line_user_id=line_user_id,
            uid=doc["uid"],
            email=doc.get("email"),
            created_at=doc.get("createdAt") or datetime.now().astimezone(),
        )

    def get_user(self, uid):
        with self._guard("get_user"):
            return self.db.users.find_one({"_id": uid})

    def find_user_by_line_id(self, line_user_id):
        with self._guard("find_user_by_line_id"):
            doc = self.db.users.find_one({"lineUserId": line_user_id})
        if not doc:
            return None
        return {"uid": str(doc["_id"]), **doc}
