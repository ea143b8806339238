from __future__ import annotations

import math

from examdesk.scheduling.conflicts import exam_ref
from examdesk.scheduling.policy import SchedulePolicy
from examdesk.scheduling.records import ScheduleSnapshot
from examdesk.schemas.schedule import ConflictFinding


def recommended_proctors(registered: int, students_per_proctor: int) -> int:
    if registered <= 0:
        return 0
    return math.ceil(registered / students_per_proctor)


class CapacityAnalyzer:
    """Flags rooms filled past capacity and exams short of proctors. Report only."""

    def __init__(self, snapshot: ScheduleSnapshot, policy: SchedulePolicy):
        self.snapshot = snapshot
        self.policy = policy

    def analyze(self) -> list[ConflictFinding]:
        proctors = self.snapshot.proctors_by_exam()
        findings: list[ConflictFinding] = []
        exams = sorted(self.snapshot.active_exams(), key=lambda e: (e.exam_date, e.start_time, e.exam_id))
        for exam in exams:
            registered = self.snapshot.registered(exam.exam_id)

            room = exam.room
            if room is not None and registered > room.capacity + self.policy.overcapacity_tolerance:
                overflow = registered - room.capacity
                findings.append(
                    ConflictFinding(
                        id=f"overcapacity-{exam.exam_id}",
                        type="overcapacity",
                        severity="warning",
                        title=f"Room over capacity: {room.name}",
                        description=(
                            f"{exam.title}: {registered} students registered but room {room.name} "
                            f"only holds {room.capacity}"
                        ),
                        exam_ids=[exam.exam_id],
                        exams=[exam_ref(exam)],
                        details={
                            "room_id": room.room_id,
                            "room_name": room.name,
                            "registered": registered,
                            "capacity": room.capacity,
                            "overflow": overflow,
                        },
                    )
                )

            assigned = len(proctors.get(exam.exam_id, []))
            recommended = recommended_proctors(registered, self.policy.students_per_proctor)
            if registered > 0 and assigned < recommended:
                findings.append(
                    ConflictFinding(
                        id=f"understaffed-{exam.exam_id}",
                        type="understaffed",
                        severity="warning",
                        title="Not enough proctors",
                        description=(
                            f"{exam.title}: needs {recommended} proctor(s) for {registered} students "
                            f"(currently {assigned})"
                        ),
                        exam_ids=[exam.exam_id],
                        exams=[exam_ref(exam)],
                        details={
                            "students": registered,
                            "current_proctors": assigned,
                            "recommended_proctors": recommended,
                            "students_per_proctor": self.policy.students_per_proctor,
                        },
                    )
                )
        return findings
