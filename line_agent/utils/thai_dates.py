# utils/thai_dates.py
"""
Date and time helpers for the school's local timezone (Asia/Bangkok).

Relative expressions ("tomorrow", "พรุ่งนี้", "บ่ายสอง") are resolved
against a caller-supplied ``now`` so extraction stays deterministic in
tests. Buddhist Era years (> 2500) are converted to CE.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from ..config import settings


THAI_MONTHS_FULL = [
    "มกราคม", "กุมภาพันธ์", "มีนาคม", "เมษายน", "พฤษภาคม", "มิถุนายน",
    "กรกฎาคม", "สิงหาคม", "กันยายน", "ตุลาคม", "พฤศจิกายน", "ธันวาคม",
]
THAI_MONTHS_SHORT = [
    "ม.ค.", "ก.พ.", "มี.ค.", "เม.ย.", "พ.ค.", "มิ.ย.",
    "ก.ค.", "ส.ค.", "ก.ย.", "ต.ค.", "พ.ย.", "ธ.ค.",
]

RELATIVE_DAYS = {
    "today": 0, "วันนี้": 0,
    "tomorrow": 1, "พรุ่งนี้": 1,
    "day after tomorrow": 2, "มะรืน": 2, "มะรืนนี้": 2,
    "yesterday": -1, "เมื่อวาน": -1, "เมื่อวานนี้": -1,
}

# Longest words first so "สิบเอ็ด" wins over "สิบ"
THAI_NUMBERS = [
    ("สิบเอ็ด", 11), ("สิบสอง", 12), ("สิบ", 10), ("หนึ่ง", 1), ("สอง", 2),
    ("สาม", 3), ("สี่", 4), ("ห้า", 5), ("หก", 6), ("เจ็ด", 7), ("แปด", 8),
    ("เก้า", 9), ("เอ็ด", 1),
]
_NUMBER_PATTERN = "|".join(word for word, _ in THAI_NUMBERS) + r"|\d{1,2}"

_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_SLASH_DATE = re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})")
_CLOCK = re.compile(r"^(\d{1,2})[:.](\d{2})(?:\s*(?:น\.?|นาฬิกา))?$")
_HOUR_ONLY = re.compile(r"^(\d{1,2})(?:\s*(?:น\.?|นาฬิกา))?$")
_AM_PM = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm)$")


def get_timezone() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def now_local() -> datetime:
    """Current wall-clock time in the configured timezone"""
    return datetime.now(get_timezone())


def _to_ce(year: int) -> int:
    return year - 543 if year > 2500 else year


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(_to_ce(year), month, day)
    except ValueError:
        return None


def resolve_date(value: Optional[str], now: datetime) -> Optional[str]:
    """
    Resolve a free-form date to YYYY-MM-DD.

    Supports relative words (today/พรุ่งนี้/เมื่อวาน), ISO dates,
    "16/12/2568" and "16 ธันวาคม 2568" / "16 ธ.ค." forms.
    Returns None when nothing recognisable is found.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    lowered = text.lower()

    if lowered in RELATIVE_DAYS:
        return (now.date() + timedelta(days=RELATIVE_DAYS[lowered])).isoformat()

    match = _ISO_DATE.match(text)
    if match:
        parsed = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        return parsed.isoformat() if parsed else None

    match = _SLASH_DATE.search(text)
    if match:
        parsed = _safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        return parsed.isoformat() if parsed else None

    for months in (THAI_MONTHS_FULL, THAI_MONTHS_SHORT):
        for index, month_name in enumerate(months):
            if month_name in text:
                day_match = re.search(r"(?<!\d)(\d{1,2})(?!\d)", text)
                year_match = re.search(r"(?<!\d)(\d{4})(?!\d)", text)
                if not day_match:
                    return None
                year = int(year_match.group(1)) if year_match else now.year
                parsed = _safe_date(year, index + 1, int(day_match.group(1)))
                return parsed.isoformat() if parsed else None

    # Relative word embedded in a longer phrase ("พรุ่งนี้บ่ายสอง")
    for word in sorted(RELATIVE_DAYS, key=len, reverse=True):
        if word in lowered:
            return (now.date() + timedelta(days=RELATIVE_DAYS[word])).isoformat()

    return None


def _thai_number(token: str) -> Optional[int]:
    if token.isdigit():
        return int(token)
    for word, number in THAI_NUMBERS:
        if token == word:
            return number
    return None


def _fmt(hour: int, minute: int = 0) -> Optional[str]:
    if 0 <= hour <= 23 and 0 <= minute <= 59:
        return f"{hour:02d}:{minute:02d}"
    return None


def resolve_time(value: Optional[str]) -> Optional[str]:
    """
    Resolve a free-form time of day to HH:MM (24h).

    Understands "14:00", "9.30 น.", "2pm" and colloquial Thai such as
    "บ่ายสอง", "บ่ายโมงครึ่ง", "เก้าโมงเช้า", "สี่โมงเย็น", "สองทุ่ม", "เที่ยง".
    """
    if value is None:
        return None
    text = str(value).strip().lower().replace(" ", "")
    if not text:
        return None

    match = _CLOCK.match(text)
    if match:
        return _fmt(int(match.group(1)), int(match.group(2)))
    match = _HOUR_ONLY.match(text)
    if match:
        return _fmt(int(match.group(1)))
    match = _AM_PM.match(text)
    if match:
        hour = int(match.group(1)) % 12
        if match.group(3) == "pm":
            hour += 12
        return _fmt(hour, int(match.group(2) or 0))

    minute = 30 if "ครึ่ง" in text else 0

    if "เที่ยงคืน" in text:
        return _fmt(0, minute)
    if "เที่ยง" in text:
        return _fmt(12, minute)

    match = re.search(rf"บ่าย({_NUMBER_PATTERN})?(?:โมง)?", text)
    if match:
        number = _thai_number(match.group(1)) if match.group(1) else 1
        if number is None:
            return None
        # "บ่ายสอง" is 14:00, "บ่าย 3 โมง" is 15:00
        return _fmt(12 + number if number < 12 else number, minute)

    match = re.search(rf"({_NUMBER_PATTERN})ทุ่ม", text)
    if match:
        number = _thai_number(match.group(1))
        return _fmt(18 + number, minute) if number is not None else None

    match = re.search(rf"ตี({_NUMBER_PATTERN})", text)
    if match:
        number = _thai_number(match.group(1))
        return _fmt(number, minute) if number is not None else None

    match = re.search(rf"({_NUMBER_PATTERN})โมง(เช้า|เย็น)?", text)
    if match:
        number = _thai_number(match.group(1))
        if number is None:
            return None
        if match.group(2) == "เช้า" and 1 <= number <= 5:
            # "สองโมงเช้า" counts from 06:00
            number += 6
        elif match.group(2) == "เย็น" or (match.group(2) is None and 1 <= number <= 5):
            number += 12
        return _fmt(number, minute)

    return None


def add_minutes(hhmm: str, minutes: int) -> str:
    """Shift an HH:MM string, clamped to 23:59"""
    hour, minute = (int(part) for part in hhmm.split(":"))
    total = min(hour * 60 + minute + minutes, 23 * 60 + 59)
    return f"{total // 60:02d}:{total % 60:02d}"


def combine(day: str, hhmm: str, tz: Optional[ZoneInfo] = None) -> datetime:
    """Aware datetime from YYYY-MM-DD and HH:MM in the local timezone"""
    hour, minute = (int(part) for part in hhmm.split(":"))
    return datetime.combine(date.fromisoformat(day), time(hour, minute), tzinfo=tz or get_timezone())


def day_bounds(day: str, tz: Optional[ZoneInfo] = None) -> Tuple[datetime, datetime]:
    """Start (inclusive) and end (exclusive) of a local day"""
    start = datetime.combine(date.fromisoformat(day), time.min, tzinfo=tz or get_timezone())
    return start, start + timedelta(days=1)


def format_thai_date(value: datetime, include_year: bool = True, short_month: bool = True) -> str:
    """Format a date as "21 ธ.ค. 2568" (Buddhist Era)"""
    if value.tzinfo is not None:
        value = value.astimezone(get_timezone())
    months = THAI_MONTHS_SHORT if short_month else THAI_MONTHS_FULL
    result = f"{value.day} {months[value.month - 1]}"
    if include_year:
        result += f" {value.year + 543}"
    return result


def format_thai_time(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(get_timezone())
    return value.strftime("%H:%M")


def format_iso_date_thai(day: str) -> str:
    """"2025-12-21" -> "21 ธ.ค. 2568"; unparseable input is returned as-is"""
    try:
        return format_thai_date(datetime.combine(date.fromisoformat(day), time.min))
    except ValueError:
        return day
