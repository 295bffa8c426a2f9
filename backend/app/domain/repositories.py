from __future__ import annotations

from typing import Any, Protocol

# (YYYY-MM-DD, HH:MM) -> raw upstream record
OccupancyIndex = dict[tuple[str, str], dict[str, Any]]


class OccupancySource(Protocol):
    async def fetch_index(
        self,
        *,
        club_id: str,
        service_id: str,
        room_id: str,
        start_date: str,
        end_date: str,
    ) -> OccupancyIndex: ...
