from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

UpstreamAction = Literal[
    "upstream.rental_times",
    "upstream.rental_rooms",
]
UpstreamOutcome = Literal["ok", "http_error", "rejected", "transport_error", "timeout"]

_event_logger = logging.getLogger("upstream")
_event_logger.setLevel(logging.INFO)
if not _event_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _event_logger.addHandler(handler)
_event_logger.propagate = False


def emit_upstream_event(
    *,
    action: UpstreamAction,
    outcome: UpstreamOutcome,
    path: str,
    club_id: Optional[str] = None,
    service_id: Optional[str] = None,
    room_id: Optional[str] = None,
    status: Optional[int] = None,
    duration_ms: Optional[float] = None,
    records: Optional[int] = None,
    message: Optional[str] = None,
) -> None:
    """Emit one JSON line per upstream call. Logging failures are reported, never raised."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info" if outcome == "ok" else "warning",
        "action": action,
        "outcome": outcome,
        "request_id": get_request_id(),
        "path": path,
        "club_id": club_id,
        "service_id": service_id,
        "room_id": room_id,
        "status": status,
        "duration_ms": round(duration_ms, 1) if duration_ms is not None else None,
        "records": records,
    }
    if message is not None:
        payload["message"] = message

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _event_logger.info(json.dumps(compact_payload, ensure_ascii=False, default=str))
    except Exception:
        logging.getLogger(__name__).exception("failed to emit upstream event")
