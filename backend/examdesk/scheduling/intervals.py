"""Occupancy intervals and the overlap predicate shared by every conflict check.

Intervals are half-open: an exam ending at 11:00 and another starting at
11:00 in the same room do not conflict.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, time


@dataclass(frozen=True)
class Occupancy:
    resource_id: int
    exam_date: date
    start_time: time
    end_time: time
    exam_id: int

    def __post_init__(self) -> None:
        if self.end_time <= self.start_time:
            raise ValueError(f"Exam {self.exam_id}: end time must be after start time")


def overlaps(first: Occupancy, second: Occupancy) -> bool:
    return (
        first.resource_id == second.resource_id
        and first.exam_date == second.exam_date
        and first.start_time < second.end_time
        and second.start_time < first.end_time
    )


def _sweep_key(item: Occupancy) -> tuple:
    return (item.exam_date, item.resource_id, item.start_time, item.end_time, item.exam_id)


def overlapping_pairs(occupancies: Iterable[Occupancy]) -> list[tuple[Occupancy, Occupancy]]:
    """Return every overlapping pair, earlier start first.

    Sweep over the intervals in start order keeping the set still open at the
    current start. Every open interval overlaps the current one, so a long exam
    spanning several short ones is paired with each of them.
    """
    pairs: list[tuple[Occupancy, Occupancy]] = []
    open_items: list[Occupancy] = []
    for current in sorted(occupancies, key=_sweep_key):
        open_items = [item for item in open_items if overlaps(item, current)]
        pairs.extend((item, current) for item in open_items)
        open_items.append(current)
    return pairs


def conflicts_with(candidate: Occupancy, occupancies: Iterable[Occupancy]) -> list[Occupancy]:
    hits = [
        item
        for item in occupancies
        if item.exam_id != candidate.exam_id and overlaps(candidate, item)
    ]
    return sorted(hits, key=_sweep_key)


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def gap_minutes(earlier_end: time, later_start: time) -> int:
    return minutes_of_day(later_start) - minutes_of_day(earlier_end)
