from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ..models import DayBand, DayType
from ..utils.time import add_days_iso, is_iso_date, shift_minutes
from .errors import InvalidDate

SLOT_STARTS: tuple[str, ...] = (
    "06:00",
    "08:00",
    "10:00",
    "12:00",
    "14:00",
    "16:00",
    "18:00",
    "20:00",
    "22:00",
    "00:00",
    "02:00",
    "04:00",
)

SLOT_MINUTES = 120
PROBE_MINUTES = 60
NIGHT_ROLLOVER_HOUR = 6
DAY_BAND_START = "08:00"
DAY_BAND_END = "16:00"

# Friday, Saturday, Sunday
WEEKEND_DAYS = frozenset({4, 5, 6})


@dataclass(frozen=True)
class SlotContext:
    start: str
    real_date: str
    day_type: DayType
    day_band: DayBand


def parse_display_date(value: object) -> str:
    if not is_iso_date(value):
        raise InvalidDate(f"invalid date {value!r} (YYYY-MM-DD)")
    return str(value)


def upstream_window(display_date: str) -> tuple[str, str]:
    """Query window wide enough to cover slots attributed to the previous day."""
    return add_days_iso(display_date, -1), add_days_iso(display_date, 1)


def real_date_for_start(display_date: str, start: str) -> str:
    """00:00, 02:00 and 04:00 are shown under `display_date` but belong to the day before."""
    if int(start[:2]) < NIGHT_ROLLOVER_HOUR:
        return add_days_iso(display_date, -1)
    return display_date


def day_type(iso_date: str) -> DayType:
    if date.fromisoformat(iso_date).weekday() in WEEKEND_DAYS:
        return DayType.WEEKEND
    return DayType.WEEKDAY


def day_band(start: str) -> DayBand:
    # Lexicographic on the nominal HH:MM label; service tables are keyed to this boundary.
    if DAY_BAND_START <= start < DAY_BAND_END:
        return DayBand.DAY
    return DayBand.NIGHT


def slot_context(display_date: str, start: str) -> SlotContext:
    real_date = real_date_for_start(display_date, start)
    return SlotContext(
        start=start,
        real_date=real_date,
        day_type=day_type(real_date),
        day_band=day_band(start),
    )


def slot_contexts(display_date: str) -> list[SlotContext]:
    display_date = parse_display_date(display_date)
    return [slot_context(display_date, start) for start in SLOT_STARTS]


def probe_times(
    start: str,
    offset_minutes: int = 0,
    *,
    slot_minutes: int = SLOT_MINUTES,
    probe_minutes: int = PROBE_MINUTES,
) -> list[str]:
    """Upstream hour labels backing one logical slot, shifted by the configured skew."""
    if probe_minutes <= 0 or slot_minutes % probe_minutes:
        raise ValueError("slot_minutes must be a positive multiple of probe_minutes")
    return [
        shift_minutes(start, step * probe_minutes + offset_minutes)
        for step in range(slot_minutes // probe_minutes)
    ]
