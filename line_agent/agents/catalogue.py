# agents/catalogue.py
"""
School catalogue: bookable rooms and building sides.
Used to tell the model which room names exist and to normalise whatever
it sends back into stable ids.
"""

from typing import Dict, List, Optional

from ..schemas.agent_schemas import Room


ROOMS: List[Room] = [
    Room(room_id="sh_leelawadee", name="ห้องประชุมลีลาวดี", aliases=["ลีลาวดี", "ห้องลีลาวดี", "leelawadee"]),
    Room(room_id="sh_auditorium", name="หอประชุม", aliases=["หอประชุม ม.ปลาย", "อาคารพลศึกษา", "auditorium"]),
    Room(room_id="admin_floor3", name="ห้องประชุมชั้น 3", aliases=["ชั้น 3", "ชั้น3", "ห้องประชุมชั้น3", "อาคารอำนวยการ"]),
    Room(room_id="kings_philosophy", name="ห้องศาสตร์พระราชา", aliases=["ศาสตร์พระราชา"]),
    Room(room_id="language_center", name="ห้องศูนย์ภาษา", aliases=["ศูนย์ภาษา", "language center"]),
    Room(room_id="jh_phaya", name="ห้องพญาสัตบรรณ", aliases=["พญาสัตบรรณ", "สัตบรรณ"]),
    Room(room_id="gymnasium", name="โรงยิม", aliases=["ยิม", "อาคารอเนกประสงค์", "gym"]),
    Room(room_id="jamjuree", name="ห้องจามจุรี", aliases=["จามจุรี"]),
]

ROOM_IDS: List[str] = [room.room_id for room in ROOMS]

SIDES: Dict[str, str] = {
    "junior_high": "ม.ต้น",
    "senior_high": "ม.ปลาย",
}

SIDE_ALIASES: Dict[str, str] = {
    "ม.ต้น": "junior_high",
    "มต้น": "junior_high",
    "มัธยมต้น": "junior_high",
    "junior": "junior_high",
    "ม.ปลาย": "senior_high",
    "มปลาย": "senior_high",
    "มัธยมปลาย": "senior_high",
    "senior": "senior_high",
}


def _squash(text: str) -> str:
    return text.lower().replace(" ", "")


def resolve_room(value: Optional[str], rooms: List[Room] = ROOMS) -> Optional[str]:
    """
    Room id for an id, display name or alias.
    Exact matches win; otherwise the longest name/alias contained in the
    text. Returns None rather than guessing.
    """
    if not value:
        return None
    text = _squash(str(value))

    for room in rooms:
        if text == room.room_id or text == _squash(room.name) or text in (_squash(a) for a in room.aliases):
            return room.room_id

    best = None
    best_length = 0
    for room in rooms:
        for label in [room.name, *room.aliases]:
            squashed = _squash(label)
            if len(squashed) > best_length and squashed in text:
                best, best_length = room.room_id, len(squashed)
    return best


def room_name(room_id: str, rooms: List[Room] = ROOMS) -> str:
    for room in rooms:
        if room.room_id == room_id:
            return room.name
    return room_id


def resolve_side(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    text = str(value).strip().lower()
    if text in SIDES:
        return text
    squashed = text.replace(" ", "")
    for alias, side in SIDE_ALIASES.items():
        if alias.replace(" ", "") in squashed:
            return side
    return None


def describe_rooms(rooms: List[Room] = ROOMS) -> str:
    """Room list for the system instruction"""
    return "\n".join(
        f"- {room.name} ({', '.join(room.aliases)}) -> [{room.room_id}]" for room in rooms
    )
