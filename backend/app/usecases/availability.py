from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..domain.calendar import (
    PROBE_MINUTES,
    SLOT_MINUTES,
    SLOT_STARTS,
    SlotContext,
    parse_display_date,
    probe_times,
    slot_context,
    slot_contexts,
    upstream_window,
)
from ..domain.errors import InvalidDate
from ..domain.repositories import OccupancyIndex, OccupancySource
from ..domain.services import Evaluation, ProbeInfo, evaluate, pick_price, probe
from ..infrastructure.catalog import Catalog, Room
from ..models import RoomType, StatusFilter, Verdict
from ..schemas import (
    ComfortCell,
    ComfortGrid,
    EliteCell,
    EliteGrid,
    ProbeRead,
    RoomStatusRead,
    RoomStatusReport,
    RoomStatusRow,
    RoomStatusTable,
    UpstreamRange,
)
from ..utils.time import is_hhmm

logger = logging.getLogger(__name__)

# (service_id, room_id)
Pair = tuple[str, str]


@dataclass(frozen=True)
class GridOptions:
    slot_offset_minutes: int = 0
    slot_minutes: int = SLOT_MINUTES
    probe_minutes: int = PROBE_MINUTES

    def probes_for(self, start: str) -> list[str]:
        return probe_times(
            start,
            self.slot_offset_minutes,
            slot_minutes=self.slot_minutes,
            probe_minutes=self.probe_minutes,
        )


@dataclass(frozen=True)
class RoomSlot:
    slot: SlotContext
    room: Room
    service_id: str

    @property
    def pair(self) -> Pair:
        return (self.service_id, self.room.id)


@dataclass(frozen=True)
class RoomSlotResult:
    room_slot: RoomSlot
    probes: list[ProbeInfo]
    evaluation: Evaluation
    price: Optional[float]
    records: list[Optional[dict[str, Any]]] = field(default_factory=list, compare=False)

    @property
    def verdict(self) -> Verdict:
        return self.evaluation.verdict


def plan_room_slots(catalog: Catalog, rooms: Iterable[Room], slots: Iterable[SlotContext]) -> list[RoomSlot]:
    rooms = list(rooms)
    return [
        RoomSlot(slot=slot, room=room, service_id=catalog.resolve_service(room, slot.day_type, slot.day_band))
        for slot in slots
        for room in rooms
    ]


def distinct_pairs(room_slots: Iterable[RoomSlot]) -> list[Pair]:
    return list(dict.fromkeys(rs.pair for rs in room_slots))


async def fetch_indexes(
    source: OccupancySource,
    pairs: Iterable[Pair],
    *,
    club_id: str,
    start_date: str,
    end_date: str,
) -> dict[Pair, OccupancyIndex]:
    """
    One upstream query per distinct pair, run concurrently.
    Each task returns its own (pair, index); results are merged only after every task finished.
    The first failure cancels the rest and propagates.
    """

    async def _fetch(pair: Pair) -> tuple[Pair, OccupancyIndex]:
        service_id, room_id = pair
        index = await source.fetch_index(
            club_id=club_id,
            service_id=service_id,
            room_id=room_id,
            start_date=start_date,
            end_date=end_date,
        )
        return pair, index

    tasks = [asyncio.ensure_future(_fetch(pair)) for pair in dict.fromkeys(pairs)]
    try:
        results = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise
    return dict(results)


def evaluate_room_slot(index: OccupancyIndex, room_slot: RoomSlot, options: GridOptions) -> RoomSlotResult:
    real_date = room_slot.slot.real_date
    times = options.probes_for(room_slot.slot.start)
    records = [index.get((real_date, t)) for t in times]
    probes = [probe(index, real_date, t) for t in times]
    return RoomSlotResult(
        room_slot=room_slot,
        probes=probes,
        evaluation=evaluate(probes),
        price=pick_price(records),
        records=records,
    )


async def _resolve(
    source: OccupancySource,
    catalog: Catalog,
    rooms: list[Room],
    slots: list[SlotContext],
    *,
    club_id: str,
    display_date: str,
    options: GridOptions,
) -> list[RoomSlotResult]:
    room_slots = plan_room_slots(catalog, rooms, slots)
    pairs = distinct_pairs(room_slots)
    start_date, end_date = upstream_window(display_date)
    logger.debug("resolving %d room slots over %d upstream pairs", len(room_slots), len(pairs))
    indexes = await fetch_indexes(source, pairs, club_id=club_id, start_date=start_date, end_date=end_date)
    return [evaluate_room_slot(indexes[rs.pair], rs, options) for rs in room_slots]


def _grid_header(club_id: str, display_date: str, options: GridOptions) -> dict[str, Any]:
    start_date, end_date = upstream_window(display_date)
    return {
        "club_id": club_id,
        "date": display_date,
        "slot_minutes": options.slot_minutes,
        "slot_offset_minutes": options.slot_offset_minutes,
        "upstream_range": UpstreamRange(start_date=start_date, end_date=end_date),
    }


async def get_elite_grid(
    source: OccupancySource,
    catalog: Catalog,
    *,
    club_id: str,
    date: str,
    options: GridOptions,
) -> EliteGrid:
    display_date = parse_display_date(date)
    room = catalog.require_elite_room()
    results = await _resolve(
        source,
        catalog,
        [room],
        slot_contexts(display_date),
        club_id=club_id,
        display_date=display_date,
        options=options,
    )
    grid = {
        r.room_slot.slot.start: EliteCell(
            free=1 if r.verdict == Verdict.FREE else 0,
            price=r.price,
            service_id=r.room_slot.service_id,
            room_id=room.id,
            total_count=1,
            reason=r.evaluation.reason,
        )
        for r in results
    }
    return EliteGrid(grid=grid, **_grid_header(club_id, display_date, options))


def aggregate_pool(results: Iterable[RoomSlotResult], total_count: int) -> ComfortCell:
    """Missing rooms count towards total_count only, never towards free or busy."""
    free_count = busy_count = missing_count = 0
    min_price: Optional[float] = None
    for r in results:
        if r.verdict == Verdict.FREE:
            free_count += 1
            if r.price is not None:
                min_price = r.price if min_price is None else min(min_price, r.price)
        elif r.verdict == Verdict.BUSY:
            busy_count += 1
        else:
            missing_count += 1
    return ComfortCell(
        free_count=free_count,
        busy_count=busy_count,
        missing_count=missing_count,
        total_count=total_count,
        min_price=min_price,
    )


async def get_comfort_grid(
    source: OccupancySource,
    catalog: Catalog,
    *,
    club_id: str,
    date: str,
    options: GridOptions,
) -> ComfortGrid:
    display_date = parse_display_date(date)
    rooms = catalog.require_comfort_rooms()
    results = await _resolve(
        source,
        catalog,
        rooms,
        slot_contexts(display_date),
        club_id=club_id,
        display_date=display_date,
        options=options,
    )
    by_start: dict[str, list[RoomSlotResult]] = {start: [] for start in SLOT_STARTS}
    for r in results:
        by_start[r.room_slot.slot.start].append(r)
    grid = {start: aggregate_pool(items, len(rooms)) for start, items in by_start.items()}
    return ComfortGrid(grid=grid, **_grid_header(club_id, display_date, options))


# Diagnostics


def _keep(verdict: Verdict, status_filter: StatusFilter) -> bool:
    if status_filter == StatusFilter.FREE:
        return verdict == Verdict.FREE
    if status_filter == StatusFilter.BUSY:
        return verdict != Verdict.FREE
    return True


def _probe_read(p: ProbeInfo) -> ProbeRead:
    return ProbeRead(date_time=p.date_time, found=p.found, rental_id=p.rental_id, status=p.status)


def _room_status(r: RoomSlotResult) -> RoomStatusRead:
    probes = [_probe_read(p) for p in r.probes]
    room = r.room_slot.room
    return RoomStatusRead(
        room_id=room.id,
        room_title=room.title,
        group=room.group if room.type == RoomType.COMFORT else None,
        service_id=r.room_slot.service_id,
        slot1=probes[0],
        slot2=probes[1] if len(probes) > 1 else None,
        probes=probes,
        free=r.verdict == Verdict.FREE,
        reason=r.evaluation.reason,
    )


def _single_slot(date: str, time: str) -> tuple[str, SlotContext]:
    display_date = parse_display_date(date)
    if not is_hhmm(time):
        raise InvalidDate(f"invalid time {time!r} (HH:MM)")
    return display_date, slot_context(display_date, time)


async def debug_room_status(
    source: OccupancySource,
    catalog: Catalog,
    *,
    club_id: str,
    date: str,
    time: str,
    status_filter: StatusFilter,
    options: GridOptions,
) -> RoomStatusReport:
    display_date, slot = _single_slot(date, time)
    rooms = list(catalog.comfort_rooms)
    elite = catalog.elite_room
    if elite is not None:
        rooms.append(elite)
    results = await _resolve(
        source, catalog, rooms, [slot], club_id=club_id, display_date=display_date, options=options
    )
    comfort = [
        _room_status(r)
        for r in results
        if r.room_slot.room.type == RoomType.COMFORT and _keep(r.verdict, status_filter)
    ]
    elite_status = next(
        (
            _room_status(r)
            for r in results
            if r.room_slot.room.type == RoomType.ELITE and _keep(r.verdict, status_filter)
        ),
        None,
    )
    return RoomStatusReport(
        club_id=club_id,
        date=display_date,
        time=time,
        real_date=slot.real_date,
        slots=options.probes_for(time),
        comfort=comfort,
        elite=elite_status,
    )


async def debug_room_status_table(
    source: OccupancySource,
    catalog: Catalog,
    *,
    club_id: str,
    date: str,
    time: str,
    status_filter: StatusFilter,
    options: GridOptions,
) -> RoomStatusTable:
    display_date, slot = _single_slot(date, time)
    results = await _resolve(
        source,
        catalog,
        catalog.comfort_rooms,
        [slot],
        club_id=club_id,
        display_date=display_date,
        options=options,
    )
    rows = [
        RoomStatusRow(
            room_title=r.room_slot.room.title,
            room_id=r.room_slot.room.id,
            group=r.room_slot.room.group,
            service_id=r.room_slot.service_id,
            slot1_status=r.probes[0].status,
            slot2_status=r.probes[1].status if len(r.probes) > 1 else None,
            free=r.verdict == Verdict.FREE,
            reason=r.evaluation.reason,
        )
        for r in results
        if _keep(r.verdict, status_filter)
    ]
    return RoomStatusTable(
        club_id=club_id,
        date=display_date,
        time=time,
        real_date=slot.real_date,
        slots=options.probes_for(time),
        rows=rows,
    )


_CELL_LETTER = {Verdict.FREE: "F", Verdict.BUSY: "B", Verdict.MISSING: "M"}


async def _resolve_day(
    source: OccupancySource,
    catalog: Catalog,
    *,
    club_id: str,
    date: str,
    options: GridOptions,
) -> tuple[str, list[Room], list[RoomSlotResult]]:
    display_date = parse_display_date(date)
    rooms = list(catalog.comfort_rooms)
    if catalog.elite_room is not None:
        rooms.append(catalog.elite_room)
    results = await _resolve(
        source,
        catalog,
        rooms,
        slot_contexts(display_date),
        club_id=club_id,
        display_date=display_date,
        options=options,
    )
    return display_date, rooms, results


async def debug_day_table(
    source: OccupancySource,
    catalog: Catalog,
    *,
    club_id: str,
    date: str,
    options: GridOptions,
) -> str:
    """Plain-text rooms x slots matrix of verdict letters."""
    display_date, rooms, results = await _resolve_day(
        source, catalog, club_id=club_id, date=date, options=options
    )
    verdicts = {(r.room_slot.room.id, r.room_slot.slot.start): r.verdict for r in results}

    room_width = max([16, *(len(room.title) for room in rooms)])
    time_width = 5
    header = " | ".join(
        ["ROOM".ljust(room_width), *(start.ljust(time_width) for start in SLOT_STARTS)]
    )
    sep = "-" * len(header)

    lines = [
        f"DATE: {display_date}",
        f"SLOT_OFFSET_MINUTES: {options.slot_offset_minutes}",
        "LEGEND: F=free, B=busy, M=missing",
        sep,
        header,
        sep,
    ]
    for room in rooms:
        cells = [_CELL_LETTER[verdicts[(room.id, start)]].ljust(time_width) for start in SLOT_STARTS]
        lines.append(" | ".join([room.title.ljust(room_width), *cells]))
    lines.append(sep)
    return "\n".join(lines)


async def debug_day_table_raw(
    source: OccupancySource,
    catalog: Catalog,
    *,
    club_id: str,
    date: str,
    options: GridOptions,
) -> str:
    """Plain-text list of probe keys that actually came back from upstream, per room."""
    display_date, rooms, results = await _resolve_day(
        source, catalog, club_id=club_id, date=date, options=options
    )
    lines = [
        f"DATE: {display_date}",
        f"SLOT_OFFSET_MINUTES: {options.slot_offset_minutes}",
        "RAW date_time values from upstream (rental_times)",
        "-" * 60,
    ]
    for room in rooms:
        lines.append(f"ROOM: {room.title} ({room.id})")
        seen = sorted(
            {p.date_time for r in results if r.room_slot.room.id == room.id for p in r.probes if p.found}
        )
        if not seen:
            lines.append("  (no slots returned)")
        lines.extend(f"  - {dt}" for dt in seen)
        lines.append("")
    return "\n".join(lines)
