from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from ..deps import get_catalog, get_club_id, get_display_date, get_grid_options, get_slot_time, get_upstream
from ..infrastructure.catalog import Catalog
from ..infrastructure.upstream import UpstreamClient
from ..models import StatusFilter
from ..schemas import RoomStatusReport, RoomStatusTable
from ..usecases import availability as availability_usecase
from ..usecases.availability import GridOptions

router = APIRouter(prefix="/api", tags=["debug"])


@router.get("/debug_room_status", response_model=RoomStatusReport)
async def debug_room_status(
    date: str = Depends(get_display_date),
    time: str = Depends(get_slot_time),
    status: StatusFilter = Query(default=StatusFilter.ALL),
    club_id: str = Depends(get_club_id),
    catalog: Catalog = Depends(get_catalog),
    upstream: UpstreamClient = Depends(get_upstream),
    options: GridOptions = Depends(get_grid_options),
) -> RoomStatusReport:
    return await availability_usecase.debug_room_status(
        upstream,
        catalog,
        club_id=club_id,
        date=date,
        time=time,
        status_filter=status,
        options=options,
    )


@router.get("/debug_room_status_table", response_model=RoomStatusTable)
async def debug_room_status_table(
    date: str = Depends(get_display_date),
    time: str = Depends(get_slot_time),
    status: StatusFilter = Query(default=StatusFilter.ALL),
    club_id: str = Depends(get_club_id),
    catalog: Catalog = Depends(get_catalog),
    upstream: UpstreamClient = Depends(get_upstream),
    options: GridOptions = Depends(get_grid_options),
) -> RoomStatusTable:
    return await availability_usecase.debug_room_status_table(
        upstream,
        catalog,
        club_id=club_id,
        date=date,
        time=time,
        status_filter=status,
        options=options,
    )


@router.get("/debug_day_table", response_class=PlainTextResponse)
async def debug_day_table(
    date: str = Depends(get_display_date),
    club_id: str = Depends(get_club_id),
    catalog: Catalog = Depends(get_catalog),
    upstream: UpstreamClient = Depends(get_upstream),
    options: GridOptions = Depends(get_grid_options),
) -> str:
    return await availability_usecase.debug_day_table(
        upstream, catalog, club_id=club_id, date=date, options=options
    )


@router.get("/debug_day_table_raw", response_class=PlainTextResponse)
async def debug_day_table_raw(
    date: str = Depends(get_display_date),
    club_id: str = Depends(get_club_id),
    catalog: Catalog = Depends(get_catalog),
    upstream: UpstreamClient = Depends(get_upstream),
    options: GridOptions = Depends(get_grid_options),
) -> str:
    return await availability_usecase.debug_day_table_raw(
        upstream, catalog, club_id=club_id, date=date, options=options
    )
