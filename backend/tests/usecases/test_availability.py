import asyncio
import copy
from typing import Any, Optional

import pytest
from app.domain.calendar import slot_contexts
from app.domain.errors import ConfigError, InvalidDate, MissingServiceMapping, UpstreamUnavailable
from app.domain.repositories import OccupancyIndex
from app.infrastructure.catalog import Catalog, parse_catalog
from app.models import StatusFilter
from app.usecases import availability as uc

OPTIONS = uc.GridOptions()

SERVICES: dict[str, Any] = {
    "elite": {
        "weekday": {"day": "e-wd-d", "night": "e-wd-n"},
        "weekend": {"day": "e-we-d", "night": "e-we-n"},
    },
    "comfort": {
        "std": {
            "weekday": {"day": "c-wd-d", "night": "c-wd-n"},
            "weekend": {"day": "c-we-d", "night": "c-we-n"},
        },
    },
}


def _catalog(*comfort_ids: str, elite: bool = True) -> Catalog:
    rooms: list[dict[str, Any]] = [
        {"id": rid, "title": f"Comfort {rid}", "type": "comfort", "group": "std"} for rid in comfort_ids
    ]
    if elite:
        rooms.append({"id": "elite", "title": "Elite", "type": "elite"})
    return parse_catalog({"rooms": rooms, "services": copy.deepcopy(SERVICES)})


class FakeSource:
    """Serves canned records per (service_id, room_id) and records every call."""

    def __init__(self, records: Optional[dict[tuple[str, str], list[dict[str, Any]]]] = None) -> None:
        self.records = records or {}
        self.calls: list[dict[str, str]] = []
        self.fail_on: Optional[tuple[str, str]] = None

    async def fetch_index(
        self,
        *,
        club_id: str,
        service_id: str,
        room_id: str,
        start_date: str,
        end_date: str,
    ) -> OccupancyIndex:
        self.calls.append(
            {
                "club_id": club_id,
                "service_id": service_id,
                "room_id": room_id,
                "start_date": start_date,
                "end_date": end_date,
            }
        )
        await asyncio.sleep(0)
        if self.fail_on == (service_id, room_id):
            raise UpstreamUnavailable("Upstream error 500", service_id=service_id, room_id=room_id, status=500)
        index: OccupancyIndex = {}
        for record in self.records.get((service_id, room_id), []):
            day, hhmm = record["date_time"].split(" ")
            index[(day, hhmm)] = record
        return index


def _rec(date_time: str, rental_id: Any = None, price: Any = None) -> dict[str, Any]:
    return {"date_time": date_time, "rental_id": rental_id, "price": price}


@pytest.mark.asyncio
async def test_elite_free_slot_takes_first_price() -> None:
    source = FakeSource(
        {
            ("e-wd-d", "elite"): [
                _rec("2025-01-20 14:00", None, 1200),
                _rec("2025-01-20 15:00", None, None),
            ]
        }
    )
    result = await uc.get_elite_grid(source, _catalog("c1"), club_id="club", date="2025-01-20", options=OPTIONS)

    cell = result.grid["14:00"]
    assert cell.free == 1
    assert cell.price == 1200
    assert cell.reason is None
    assert cell.service_id == "e-wd-d"
    assert cell.room_id == "elite"
    assert cell.total_count == 1
    assert result.kind == "elite"
    assert list(result.grid) == list(uc.SLOT_STARTS)


@pytest.mark.asyncio
async def test_elite_busy_second_hour_blocks_slot() -> None:
    source = FakeSource(
        {
            ("e-wd-d", "elite"): [
                _rec("2025-01-20 14:00", None, 1200),
                _rec("2025-01-20 15:00", "abc123", None),
            ]
        }
    )
    result = await uc.get_elite_grid(source, _catalog("c1"), club_id="club", date="2025-01-20", options=OPTIONS)

    cell = result.grid["14:00"]
    assert cell.free == 0
    assert cell.reason == "occupied"


@pytest.mark.asyncio
async def test_elite_missing_slots_are_not_free() -> None:
    result = await uc.get_elite_grid(FakeSource(), _catalog("c1"), club_id="club", date="2025-01-20", options=OPTIONS)
    assert all(cell.free == 0 and cell.reason == "slot_missing" for cell in result.grid.values())


@pytest.mark.asyncio
async def test_elite_issues_one_query_per_distinct_service() -> None:
    # Monday: weekday day/night plus weekend night for the rolled-back 00/02/04 slots.
    source = FakeSource()
    result = await uc.get_elite_grid(source, _catalog(), club_id="club", date="2025-01-20", options=OPTIONS)

    assert sorted(c["service_id"] for c in source.calls) == ["e-wd-d", "e-wd-n", "e-we-n"]
    assert {(c["start_date"], c["end_date"]) for c in source.calls} == {("2025-01-19", "2025-01-21")}
    assert result.grid["02:00"].service_id == "e-we-n"
    assert result.upstream_range.start_date == "2025-01-19"


@pytest.mark.asyncio
async def test_elite_grid_follows_slot_contexts() -> None:
    catalog = _catalog()
    room = catalog.require_elite_room()
    result = await uc.get_elite_grid(FakeSource(), catalog, club_id="club", date="2025-03-02", options=OPTIONS)

    expected = {
        ctx.start: catalog.resolve_service(room, ctx.day_type, ctx.day_band) for ctx in slot_contexts("2025-03-02")
    }
    assert {start: cell.service_id for start, cell in result.grid.items()} == expected


@pytest.mark.asyncio
async def test_offset_shifts_probe_times() -> None:
    source = FakeSource(
        {
            ("e-wd-d", "elite"): [
                _rec("2025-01-20 14:30", None, 900),
                _rec("2025-01-20 15:30", None, None),
            ]
        }
    )
    options = uc.GridOptions(slot_offset_minutes=30)
    result = await uc.get_elite_grid(source, _catalog(), club_id="club", date="2025-01-20", options=options)

    assert result.grid["14:00"].free == 1
    assert result.grid["14:00"].price == 900
    assert result.slot_offset_minutes == 30


@pytest.mark.asyncio
async def test_comfort_pool_excludes_missing_rooms_from_counts() -> None:
    # 02:00 on Monday 2025-01-20 is looked up on Sunday 2025-01-19 (weekend night).
    source = FakeSource(
        {
            ("c-we-n", "c3"): [
                _rec("2025-01-19 02:00", None, 800),
                _rec("2025-01-19 03:00", "", None),
            ]
        }
    )
    result = await uc.get_comfort_grid(
        source, _catalog("c1", "c2", "c3"), club_id="club", date="2025-01-20", options=OPTIONS
    )

    cell = result.grid["02:00"]
    assert cell.free_count == 1
    assert cell.busy_count == 0
    assert cell.missing_count == 2
    assert cell.total_count == 3
    assert cell.min_price == 800


@pytest.mark.asyncio
async def test_comfort_min_price_over_free_rooms_with_known_price() -> None:
    source = FakeSource(
        {
            ("c-wd-d", "c1"): [_rec("2025-01-20 10:00", None, 700), _rec("2025-01-20 11:00")],
            ("c-wd-d", "c2"): [_rec("2025-01-20 10:00", None, None), _rec("2025-01-20 11:00", 0, 650)],
            ("c-wd-d", "c3"): [_rec("2025-01-20 10:00", "r9", 100), _rec("2025-01-20 11:00")],
            ("c-wd-d", "c4"): [_rec("2025-01-20 10:00"), _rec("2025-01-20 11:00")],
        }
    )
    result = await uc.get_comfort_grid(
        source, _catalog("c1", "c2", "c3", "c4"), club_id="club", date="2025-01-20", options=OPTIONS
    )

    cell = result.grid["10:00"]
    assert cell.free_count == 3
    assert cell.busy_count == 1
    assert cell.missing_count == 0
    assert cell.min_price == 650


@pytest.mark.asyncio
async def test_comfort_rooms_sharing_a_pair_share_one_fetch() -> None:
    source = FakeSource(
        {("c-wd-d", "twin"): [_rec("2025-01-20 12:00", None, 500), _rec("2025-01-20 13:00")]}
    )
    catalog = _catalog("twin", "twin", elite=False)
    result = await uc.get_comfort_grid(source, catalog, club_id="club", date="2025-01-20", options=OPTIONS)

    fetched = [(c["service_id"], c["room_id"]) for c in source.calls]
    assert fetched.count(("c-wd-d", "twin")) == 1
    assert len(fetched) == len(set(fetched))
    assert result.grid["12:00"].free_count == 2
    assert result.grid["12:00"].total_count == 2


@pytest.mark.asyncio
async def test_grid_is_deterministic_for_same_snapshot() -> None:
    records = {
        ("c-wd-d", "c1"): [_rec("2025-01-20 08:00", None, 300), _rec("2025-01-20 09:00")],
        ("c-wd-n", "c2"): [_rec("2025-01-20 18:00", "x"), _rec("2025-01-20 19:00")],
    }
    catalog = _catalog("c1", "c2")
    first = await uc.get_comfort_grid(FakeSource(records), catalog, club_id="club", date="2025-01-20", options=OPTIONS)
    second = await uc.get_comfort_grid(FakeSource(records), catalog, club_id="club", date="2025-01-20", options=OPTIONS)
    assert first.model_dump_json() == second.model_dump_json()


@pytest.mark.asyncio
async def test_single_failed_fetch_aborts_the_grid() -> None:
    source = FakeSource()
    source.fail_on = ("c-wd-n", "c2")
    with pytest.raises(UpstreamUnavailable) as excinfo:
        await uc.get_comfort_grid(source, _catalog("c1", "c2"), club_id="club", date="2025-01-20", options=OPTIONS)
    assert (excinfo.value.service_id, excinfo.value.room_id) == ("c-wd-n", "c2")


@pytest.mark.asyncio
async def test_invalid_date_never_reaches_upstream() -> None:
    source = FakeSource()
    with pytest.raises(InvalidDate):
        await uc.get_elite_grid(source, _catalog("c1"), club_id="club", date="2025/01/20", options=OPTIONS)
    assert source.calls == []


@pytest.mark.asyncio
async def test_missing_category_rooms_raise_config_error() -> None:
    with pytest.raises(ConfigError):
        await uc.get_elite_grid(FakeSource(), _catalog("c1", elite=False), club_id="club", date="2025-01-20", options=OPTIONS)
    with pytest.raises(ConfigError):
        await uc.get_comfort_grid(FakeSource(), _catalog(), club_id="club", date="2025-01-20", options=OPTIONS)


def test_resolution_failure_surfaces_missing_mapping() -> None:
    catalog = _catalog("c1")
    catalog.services.comfort["std"]["weekend"].pop("night")
    slots = [uc.slot_context("2025-01-20", "02:00")]
    with pytest.raises(MissingServiceMapping):
        uc.plan_room_slots(catalog, catalog.comfort_rooms, slots)


@pytest.mark.asyncio
async def test_debug_room_status_filters_by_verdict() -> None:
    source = FakeSource(
        {
            ("c-wd-d", "c1"): [_rec("2025-01-20 14:00"), _rec("2025-01-20 15:00")],
            ("c-wd-d", "c2"): [_rec("2025-01-20 14:00", "r1"), _rec("2025-01-20 15:00")],
        }
    )
    report = await uc.debug_room_status(
        source,
        _catalog("c1", "c2"),
        club_id="club",
        date="2025-01-20",
        time="14:00",
        status_filter=StatusFilter.BUSY,
        options=OPTIONS,
    )

    assert report.slots == ["14:00", "15:00"]
    assert report.real_date == "2025-01-20"
    assert [r.room_id for r in report.comfort] == ["c2"]
    assert report.comfort[0].slot1.status == "busy"
    # elite has no records at all, so it is missing and therefore "not free"
    assert report.elite is not None
    assert report.elite.reason == "slot_missing"


@pytest.mark.asyncio
async def test_debug_room_status_rejects_bad_time() -> None:
    with pytest.raises(InvalidDate):
        await uc.debug_room_status(
            FakeSource(),
            _catalog("c1"),
            club_id="club",
            date="2025-01-20",
            time="2pm",
            status_filter=StatusFilter.ALL,
            options=OPTIONS,
        )


@pytest.mark.asyncio
async def test_debug_room_status_table_rows() -> None:
    source = FakeSource({("c-we-n", "c1"): [_rec("2025-01-19 00:00"), _rec("2025-01-19 01:00")]})
    table = await uc.debug_room_status_table(
        source,
        _catalog("c1", "c2"),
        club_id="club",
        date="2025-01-20",
        time="00:00",
        status_filter=StatusFilter.FREE,
        options=OPTIONS,
    )

    assert table.real_date == "2025-01-19"
    assert [(r.room_id, r.slot1_status, r.slot2_status, r.free) for r in table.rows] == [
        ("c1", "free", "free", True)
    ]


@pytest.mark.asyncio
async def test_debug_day_table_renders_letters() -> None:
    source = FakeSource(
        {
            ("c-wd-n", "c1"): [_rec("2025-01-20 06:00"), _rec("2025-01-20 07:00", "r2")],
            ("e-wd-n", "elite"): [_rec("2025-01-20 06:00"), _rec("2025-01-20 07:00")],
        }
    )
    text = await uc.debug_day_table(source, _catalog("c1"), club_id="club", date="2025-01-20", options=OPTIONS)

    lines = text.splitlines()
    assert lines[0] == "DATE: 2025-01-20"
    comfort_row = next(line for line in lines if line.startswith("Comfort c1"))
    elite_row = next(line for line in lines if line.startswith("Elite"))
    assert comfort_row.split(" | ")[1].strip() == "B"
    assert elite_row.split(" | ")[1].strip() == "F"
    assert elite_row.split(" | ")[2].strip() == "M"


@pytest.mark.asyncio
async def test_debug_day_table_raw_lists_found_keys() -> None:
    source = FakeSource({("c-wd-d", "c1"): [_rec("2025-01-20 08:00"), _rec("2025-01-20 09:00")]})
    text = await uc.debug_day_table_raw(source, _catalog("c1"), club_id="club", date="2025-01-20", options=OPTIONS)

    assert "ROOM: Comfort c1 (c1)" in text
    assert "  - 2025-01-20 08:00" in text
    assert "  - 2025-01-20 09:00" in text
    assert "ROOM: Elite (elite)\n  (no slots returned)" in text
