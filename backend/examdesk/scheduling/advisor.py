from __future__ import annotations

import math
from collections import defaultdict

from examdesk.scheduling.conflicts import exam_ref
from examdesk.scheduling.intervals import gap_minutes
from examdesk.scheduling.policy import SchedulePolicy
from examdesk.scheduling.records import ExamRecord, ScheduleSnapshot
from examdesk.schemas.schedule import ConflictFinding


def _round_one_decimal(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


class OptimizationAdvisor:
    """Non-blocking suggestions: long idle gaps in a day and under-used rooms.

    Room utilization is a coarse estimate. It compares the declared
    ``max_students`` of each exam against room capacity and ignores live
    registration counts, so treat it as a hint rather than a measurement.
    """

    def __init__(self, snapshot: ScheduleSnapshot, policy: SchedulePolicy):
        self.snapshot = snapshot
        self.policy = policy

    def suggest(self) -> list[ConflictFinding]:
        return self.large_gaps() + self.low_utilization()

    def large_gaps(self) -> list[ConflictFinding]:
        by_day: dict = defaultdict(list)
        for exam in self.snapshot.active_exams():
            by_day[exam.exam_date].append(exam)

        findings: list[ConflictFinding] = []
        for exam_date in sorted(by_day):
            day_exams = sorted(by_day[exam_date], key=lambda e: (e.start_time, e.exam_id))
            for current, following in zip(day_exams, day_exams[1:]):
                gap = gap_minutes(current.end_time, following.start_time)
                if gap <= self.policy.large_gap_minutes:
                    continue
                hours = _round_one_decimal(gap / 60)
                findings.append(
                    ConflictFinding(
                        id=f"gap-{exam_date.isoformat()}-{current.exam_id}-{following.exam_id}",
                        type="large_gap",
                        severity="info",
                        title="Large gap between exams",
                        description=(
                            f"{hours}h gap between '{current.title}' and '{following.title}' "
                            f"on {exam_date.isoformat()}"
                        ),
                        exam_ids=[current.exam_id, following.exam_id],
                        exams=[exam_ref(current), exam_ref(following)],
                        details={
                            "date": exam_date.isoformat(),
                            "gap_minutes": gap,
                            "gap_hours": hours,
                        },
                    )
                )
        return findings

    def low_utilization(self) -> list[ConflictFinding]:
        by_room: dict[int, list[ExamRecord]] = defaultdict(list)
        for exam in self.snapshot.active_exams():
            if exam.room is not None:
                by_room[exam.room.room_id].append(exam)

        findings: list[ConflictFinding] = []
        for room_id in sorted(by_room):
            exams = by_room[room_id]
            room = exams[0].room
            declared = sum(exam.max_students for exam in exams)
            if not room.capacity or declared <= 0:
                continue
            utilization = declared / (room.capacity * len(exams))
            if utilization >= self.policy.low_utilization_threshold:
                continue
            percent = math.floor(utilization * 100 + 0.5)
            ordered = sorted(exams, key=lambda e: (e.exam_date, e.start_time, e.exam_id))
            findings.append(
                ConflictFinding(
                    id=f"utilization-{room_id}",
                    type="low_utilization",
                    severity="info",
                    title=f"Low room utilization: {room.name}",
                    description=f"Room {room.name} is only used at about {percent}% of its capacity",
                    exam_ids=[exam.exam_id for exam in ordered],
                    exams=[exam_ref(exam) for exam in ordered],
                    details={
                        "room_id": room_id,
                        "room_name": room.name,
                        "capacity": room.capacity,
                        "exam_count": len(exams),
                        "declared_students": declared,
                        "utilization_rate": percent,
                        "estimate": "declared max_students, not live registrations",
                    },
                )
            )
        return findings
