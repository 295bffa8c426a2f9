from __future__ import annotations

from typing import Any, Optional


class GridError(Exception):
    """Base class for request-fatal availability errors."""


class InvalidDate(GridError):
    """Malformed date or time in request input."""


class ConfigError(GridError):
    pass


class MissingServiceMapping(GridError):
    def __init__(self, path: tuple[str, ...]) -> None:
        self.path = path
        super().__init__(f"missing service_id for {'/'.join(path)}")


class UpstreamUnavailable(GridError):
    def __init__(
        self,
        message: str,
        *,
        service_id: Optional[str] = None,
        room_id: Optional[str] = None,
        status: Optional[int] = None,
        details: Any = None,
    ) -> None:
        self.service_id = service_id
        self.room_id = room_id
        self.status = status
        self.details = details
        super().__init__(message)
