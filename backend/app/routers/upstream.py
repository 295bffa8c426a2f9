from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_upstream
from ..infrastructure.upstream import UpstreamClient
from ..utils.time import is_iso_date

router = APIRouter(prefix="/api", tags=["upstream"])


def _optional_date(name: str, value: Optional[str]) -> Optional[str]:
    if value and not is_iso_date(value):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {name} (YYYY-MM-DD)")
    return value or None


@router.get("/rental_times")
async def rental_times(
    club_id: Optional[str] = Query(default=None),
    service_id: Optional[str] = Query(default=None),
    room_id: Optional[str] = Query(default=None),
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    upstream: UpstreamClient = Depends(get_upstream),
) -> Any:
    if not club_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing club_id")
    if not service_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing service_id")
    query = {
        "club_id": club_id,
        "service_id": service_id,
        "room_id": room_id,
        "start_date": _optional_date("start_date", start_date),
        "end_date": _optional_date("end_date", end_date),
    }
    return await upstream.get_json(
        upstream.rental_times_path,
        query,
        action="upstream.rental_times",
        service_id=service_id,
        room_id=room_id,
    )


@router.get("/rental_rooms")
async def rental_rooms(
    club_id: Optional[str] = Query(default=None),
    upstream: UpstreamClient = Depends(get_upstream),
) -> Any:
    if not club_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing club_id")
    return await upstream.get_json(
        upstream.rental_rooms_path,
        {"club_id": club_id},
        action="upstream.rental_rooms",
    )
