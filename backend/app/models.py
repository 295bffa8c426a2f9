from __future__ import annotations

from enum import StrEnum


class RoomType(StrEnum):
    COMFORT = "comfort"
    ELITE = "elite"


class DayType(StrEnum):
    WEEKDAY = "weekday"
    WEEKEND = "weekend"


class DayBand(StrEnum):
    DAY = "day"
    NIGHT = "night"


class Verdict(StrEnum):
    FREE = "free"
    BUSY = "busy"
    MISSING = "missing"


class StatusFilter(StrEnum):
    ALL = "all"
    FREE = "free"
    BUSY = "busy"
