from typing import AsyncIterator, Optional

from fastapi import Depends, HTTPException, Query, status

from .config import Settings, get_settings
from .domain.calendar import parse_display_date
from .domain.errors import InvalidDate
from .infrastructure.catalog import Catalog, load_catalog
from .infrastructure.upstream import UpstreamClient, build_http_client
from .usecases.availability import GridOptions
from .utils.time import is_hhmm


def get_display_date(date: str = Query(..., description="Display date (YYYY-MM-DD)")) -> str:
    # Declared ahead of get_catalog/get_upstream so bad input is a 400 even when config is broken.
    return parse_display_date(date)


def get_slot_time(time: str = Query(..., description="Slot start (HH:MM)")) -> str:
    if not is_hhmm(time):
        raise InvalidDate(f"invalid time {time!r} (HH:MM)")
    return time


async def get_upstream(settings: Settings = Depends(get_settings)) -> AsyncIterator[UpstreamClient]:
    async with build_http_client(settings) as client:
        yield UpstreamClient.from_settings(client, settings)


def get_catalog(settings: Settings = Depends(get_settings)) -> Catalog:
    # Re-read on every request; the file is never cached or mutated in-process.
    return load_catalog(settings.rooms_services_path)


def get_grid_options(settings: Settings = Depends(get_settings)) -> GridOptions:
    return GridOptions(slot_offset_minutes=settings.slot_offset_minutes)


def get_club_id(
    club_id: Optional[str] = Query(default=None),
    settings: Settings = Depends(get_settings),
) -> str:
    resolved = club_id or settings.default_club_id
    if not resolved:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing club_id")
    return resolved
