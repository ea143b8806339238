from __future__ import annotations

from dataclasses import dataclass

from examdesk.core.config import Settings


@dataclass(frozen=True)
class SchedulePolicy:
    students_per_proctor: int = 30
    overcapacity_tolerance: int = 0
    large_gap_minutes: int = 120
    low_utilization_threshold: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings) -> "SchedulePolicy":
        return cls(
            students_per_proctor=settings.students_per_proctor,
            overcapacity_tolerance=settings.overcapacity_tolerance,
            large_gap_minutes=settings.large_gap_minutes,
            low_utilization_threshold=settings.low_utilization_threshold,
        )
