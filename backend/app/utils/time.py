import re
from datetime import date, timedelta

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
HHMM_RE = re.compile(r"^\d{2}:\d{2}$")

MINUTES_PER_DAY = 24 * 60


def is_iso_date(value: object) -> bool:
    if not isinstance(value, str) or not ISO_DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_hhmm(value: object) -> bool:
    return isinstance(value, str) and bool(HHMM_RE.match(value))


def add_days_iso(iso_date: str, delta_days: int) -> str:
    return (date.fromisoformat(iso_date) + timedelta(days=delta_days)).isoformat()


def shift_minutes(hhmm: str, delta: int) -> str:
    """Shift an HH:MM label by `delta` minutes, wrapping around midnight."""
    hours, minutes = (int(part) for part in hhmm.split(":"))
    total = (hours * 60 + minutes + delta) % MINUTES_PER_DAY
    return f"{total // 60:02d}:{total % 60:02d}"
