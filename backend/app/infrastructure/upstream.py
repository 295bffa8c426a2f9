from __future__ import annotations

import logging
import re
import time
from typing import Any, Iterable, Optional

import httpx

from ..config import Settings
from ..domain.errors import ConfigError, UpstreamUnavailable
from ..domain.repositories import OccupancyIndex
from ..utils.event_log import UpstreamAction, emit_upstream_event

logger = logging.getLogger(__name__)

DATE_TIME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})[ T](\d{2}:\d{2})")


def parse_date_time(record: Any) -> Optional[tuple[str, str]]:
    if not isinstance(record, dict):
        return None
    match = DATE_TIME_RE.match(str(record.get("date_time") or ""))
    if match is None:
        return None
    return match.group(1), match.group(2)


def payload_items(payload: Any) -> list[Any]:
    """Upstream answers either with a bare array or with {"data": [...]}."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    return []


def index_records(items: Iterable[Any]) -> OccupancyIndex:
    index: OccupancyIndex = {}
    dropped = 0
    for item in items:
        key = parse_date_time(item)
        if key is None:
            dropped += 1
            continue
        index[key] = item
    if dropped:
        logger.debug("dropped %d upstream records with unparseable date_time", dropped)
    return index


def _semantic_error(payload: Any) -> Optional[dict[str, Any]]:
    if isinstance(payload, dict) and payload.get("result") is False:
        return {
            "result": False,
            "error": payload.get("error"),
            "error_message": payload.get("error_message") or "Upstream returned result=false",
        }
    return None


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    if not settings.api_base_url:
        raise ConfigError("API_BASE_URL is not configured")
    if not (settings.api_username and settings.api_password and settings.api_key):
        raise ConfigError("API_USERNAME, API_PASSWORD and API_KEY must be configured")
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        auth=httpx.BasicAuth(settings.api_username, settings.api_password),
        headers={"Accept": "application/json", "apikey": settings.api_key},
        timeout=settings.upstream_timeout_seconds,
        verify=not settings.allow_insecure_tls,
    )


class UpstreamClient:
    """Read-only client for the vendor scheduling API. No retries."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        rental_times_path: str = "/hs/api/v3/rental_times",
        rental_rooms_path: str = "/hs/api/v3/rental_rooms",
    ) -> None:
        self._client = client
        self.rental_times_path = rental_times_path
        self.rental_rooms_path = rental_rooms_path

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "UpstreamClient":
        return cls(
            client,
            rental_times_path=settings.rental_times_path,
            rental_rooms_path=settings.rental_rooms_path,
        )

    async def get_json(
        self,
        path: str,
        query: dict[str, Any],
        *,
        action: UpstreamAction = "upstream.rental_times",
        service_id: Optional[str] = None,
        room_id: Optional[str] = None,
    ) -> Any:
        params = {k: str(v) for k, v in query.items() if v is not None and v != ""}
        log_fields: dict[str, Any] = {
            "action": action,
            "path": path,
            "club_id": params.get("club_id"),
            "service_id": service_id,
            "room_id": room_id,
        }
        started = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - started) * 1000

        try:
            resp = await self._client.get(path, params=params)
        except httpx.TimeoutException as exc:
            emit_upstream_event(outcome="timeout", duration_ms=elapsed(), message=str(exc), **log_fields)
            raise UpstreamUnavailable(
                f"Upstream timeout: {exc.__class__.__name__}",
                service_id=service_id,
                room_id=room_id,
            ) from exc
        except httpx.HTTPError as exc:
            emit_upstream_event(outcome="transport_error", duration_ms=elapsed(), message=str(exc), **log_fields)
            raise UpstreamUnavailable(
                f"Upstream request failed: {exc}",
                service_id=service_id,
                room_id=room_id,
            ) from exc

        text = resp.text
        try:
            payload = resp.json() if text else None
        except ValueError:
            payload = None

        if resp.is_error:
            emit_upstream_event(outcome="http_error", status=resp.status_code, duration_ms=elapsed(), **log_fields)
            raise UpstreamUnavailable(
                f"Upstream error {resp.status_code}",
                service_id=service_id,
                room_id=room_id,
                status=resp.status_code,
                details=payload if payload is not None else {"raw": text},
            )

        rejected = _semantic_error(payload)
        if rejected is not None:
            emit_upstream_event(
                outcome="rejected",
                status=resp.status_code,
                duration_ms=elapsed(),
                message=str(rejected["error_message"]),
                **log_fields,
            )
            raise UpstreamUnavailable(
                f"Upstream result=false: {rejected['error_message']}",
                service_id=service_id,
                room_id=room_id,
                status=resp.status_code,
                details=rejected,
            )

        emit_upstream_event(
            outcome="ok",
            status=resp.status_code,
            duration_ms=elapsed(),
            records=len(payload_items(payload)),
            **log_fields,
        )
        return payload

    async def fetch_index(
        self,
        *,
        club_id: str,
        service_id: str,
        room_id: str,
        start_date: str,
        end_date: str,
    ) -> OccupancyIndex:
        payload = await self.get_json(
            self.rental_times_path,
            {
                "club_id": club_id,
                "service_id": service_id,
                "room_id": room_id,
                "start_date": start_date,
                "end_date": end_date,
            },
            action="upstream.rental_times",
            service_id=service_id,
            room_id=room_id,
        )
        return index_records(payload_items(payload))
