from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from ..domain.errors import ConfigError, MissingServiceMapping
from ..models import DayBand, DayType, RoomType

logger = logging.getLogger(__name__)

# day_type -> day_band -> service_id
BandTable = dict[str, dict[str, Optional[str]]]


class Room(BaseModel):
    id: str
    title: str = ""
    type: RoomType
    group: Optional[str] = None

    @field_validator("id", "group", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="after")
    def _comfort_needs_group(self) -> "Room":
        if self.type == RoomType.COMFORT and not self.group:
            raise ValueError(f"comfort room {self.id} has no group")
        return self


class ServiceTable(BaseModel):
    elite: BandTable
    comfort: dict[str, BandTable]

    def resolve(
        self,
        room_type: RoomType,
        group: Optional[str],
        day_type: DayType,
        day_band: DayBand,
    ) -> str:
        if room_type == RoomType.ELITE:
            path: tuple[str, ...] = (RoomType.ELITE.value, day_type.value, day_band.value)
            bands = self.elite.get(day_type.value) or {}
        else:
            path = (RoomType.COMFORT.value, str(group), day_type.value, day_band.value)
            bands = (self.comfort.get(group or "") or {}).get(day_type.value) or {}
        service_id = bands.get(day_band.value)
        if not service_id:
            raise MissingServiceMapping(path)
        return service_id

    def check_complete(self, rooms: list[Room]) -> None:
        """Fail at load time on any leaf a configured room could need."""
        for room in rooms:
            for dt in DayType:
                for band in DayBand:
                    self.resolve(room.type, room.group, dt, band)


class Catalog(BaseModel):
    rooms: list[Room]
    services: ServiceTable

    @property
    def elite_room(self) -> Optional[Room]:
        return next((r for r in self.rooms if r.type == RoomType.ELITE), None)

    @property
    def comfort_rooms(self) -> list[Room]:
        return [r for r in self.rooms if r.type == RoomType.COMFORT]

    def require_elite_room(self) -> Room:
        room = self.elite_room
        if room is None or not room.id:
            raise ConfigError("elite room not found in rooms_services.json")
        return room

    def require_comfort_rooms(self) -> list[Room]:
        rooms = self.comfort_rooms
        if not rooms:
            raise ConfigError("comfort rooms not found in rooms_services.json")
        return rooms

    def resolve_service(self, room: Room, day_type: DayType, day_band: DayBand) -> str:
        return self.services.resolve(room.type, room.group, day_type, day_band)


def parse_catalog(raw: Any) -> Catalog:
    if not isinstance(raw, dict):
        raise ConfigError("rooms_services.json: top level must be an object")
    if not isinstance(raw.get("rooms"), list):
        raise ConfigError("rooms_services.json: missing rooms array")
    services = raw.get("services")
    if not isinstance(services, dict) or not services.get("elite") or not services.get("comfort"):
        raise ConfigError("rooms_services.json: missing services")
    try:
        catalog = Catalog.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"rooms_services.json: {exc.error_count()} invalid field(s): {exc.errors()[0]['msg']}") from exc
    catalog.services.check_complete(catalog.rooms)
    return catalog


def load_catalog(path: str | Path) -> Catalog:
    """Read and validate the room/service configuration. Called once per request."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc.strerror or exc}") from exc
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path} is not valid JSON: {exc.msg}") from exc
    catalog = parse_catalog(raw)
    logger.debug("loaded %d rooms from %s", len(catalog.rooms), path)
    return catalog
