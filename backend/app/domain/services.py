from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from ..models import Verdict
from .repositories import OccupancyIndex


@dataclass(frozen=True)
class ProbeInfo:
    date_time: str
    found: bool
    rental_id: Any
    status: Verdict


@dataclass(frozen=True)
class Evaluation:
    verdict: Verdict
    reason: Optional[str]


def is_free_record(record: Optional[Mapping[str, Any]]) -> bool:
    """A record is free when its rental_id is absent, None, "" or 0."""
    if record is None:
        return False
    rental_id = record.get("rental_id")
    return rental_id is None or rental_id == "" or (rental_id == 0 and not isinstance(rental_id, bool))


def probe(index: OccupancyIndex, real_date: str, time: str) -> ProbeInfo:
    record = index.get((real_date, time))
    date_time = f"{real_date} {time}"
    if record is None:
        return ProbeInfo(date_time=date_time, found=False, rental_id=None, status=Verdict.MISSING)
    return ProbeInfo(
        date_time=date_time,
        found=True,
        rental_id=record.get("rental_id"),
        status=Verdict.FREE if is_free_record(record) else Verdict.BUSY,
    )


def evaluate(probes: Sequence[ProbeInfo]) -> Evaluation:
    """
    Combine the 1-hour probes backing one logical slot.
    Missing wins over busy, busy wins over free; a slot is sellable only if every hour is free.
    """
    if any(p.status == Verdict.MISSING for p in probes):
        return Evaluation(verdict=Verdict.MISSING, reason="slot_missing")
    if any(p.status == Verdict.BUSY for p in probes):
        return Evaluation(verdict=Verdict.BUSY, reason="occupied")
    return Evaluation(verdict=Verdict.FREE, reason=None)


def _numeric_price(record: Optional[Mapping[str, Any]]) -> Optional[float]:
    if record is None:
        return None
    price = record.get("price")
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return None
    return price


def pick_price(records: Sequence[Optional[Mapping[str, Any]]]) -> Optional[float]:
    for record in records:
        price = _numeric_price(record)
        if price is not None:
            return price
    return None
