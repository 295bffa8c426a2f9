from typing import Any, Literal, Optional, Union

from pydantic import BaseModel

from .models import Verdict


class UpstreamRange(BaseModel):
    start_date: str
    end_date: str


class EliteCell(BaseModel):
    free: Literal[0, 1]
    price: Optional[Union[int, float]]
    service_id: str
    room_id: str
    total_count: int = 1
    reason: Optional[str]


class ComfortCell(BaseModel):
    free_count: int
    busy_count: int
    missing_count: int
    total_count: int
    min_price: Optional[Union[int, float]]


class GridBase(BaseModel):
    result: bool = True
    club_id: str
    date: str
    slot_minutes: int
    slot_offset_minutes: int
    upstream_range: UpstreamRange


class EliteGrid(GridBase):
    kind: Literal["elite"] = "elite"
    service_name: str = "Элит"
    grid: dict[str, EliteCell]


class ComfortGrid(GridBase):
    kind: Literal["comfort"] = "comfort"
    service_name: str = "Комфорт"
    grid: dict[str, ComfortCell]


class ProbeRead(BaseModel):
    date_time: str
    found: bool
    rental_id: Any = None
    status: Verdict


class RoomStatusRead(BaseModel):
    room_id: str
    room_title: str
    group: Optional[str] = None
    service_id: str
    slot1: ProbeRead
    slot2: Optional[ProbeRead] = None
    probes: list[ProbeRead]
    free: bool
    reason: Optional[str]


class RoomStatusReport(BaseModel):
    club_id: str
    date: str
    time: str
    real_date: str
    slots: list[str]
    comfort: list[RoomStatusRead]
    elite: Optional[RoomStatusRead] = None


class RoomStatusRow(BaseModel):
    room_title: str
    room_id: str
    group: Optional[str] = None
    service_id: str
    slot1_status: Verdict
    slot2_status: Optional[Verdict] = None
    free: bool
    reason: Optional[str]


class RoomStatusTable(BaseModel):
    club_id: str
    date: str
    time: str
    real_date: str
    slots: list[str]
    rows: list[RoomStatusRow]
