"""Plain snapshot records the scheduling engine works on.

Repositories translate whatever the store holds into these frozen records, so
the analyzers and the assignment validator never touch the ORM.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, time

CANCELLED = "cancelled"
ACTIVE_REGISTRATION_STATUSES = ("pending", "approved")


@dataclass(frozen=True)
class RoomRecord:
    room_id: int
    name: str
    capacity: int
    building: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class ExamRecord:
    exam_id: int
    title: str
    subject_code: str
    exam_date: date
    start_time: time
    end_time: time
    status: str
    max_students: int
    method: str = "essay"
    room: RoomRecord | None = None
    subject_name: str | None = None
    duration_minutes: int | None = None

    @property
    def room_id(self) -> int | None:
        return self.room.room_id if self.room is not None else None

    @property
    def is_active(self) -> bool:
        return self.status != CANCELLED


@dataclass(frozen=True)
class ProctorAssignmentRecord:
    exam_id: int
    proctor_id: int
    role: str = "assistant"
    proctor_name: str = ""
    notes: str | None = None


@dataclass(frozen=True)
class RegistrationRecord:
    exam_id: int
    student_id: int
    status: str = "approved"
    notes: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_REGISTRATION_STATUSES


@dataclass(frozen=True)
class PersonRecord:
    user_id: int
    full_name: str
    email: str
    role: str
    is_active: bool = True


@dataclass(frozen=True)
class ScheduleSnapshot:
    exams: tuple[ExamRecord, ...]
    assignments: tuple[ProctorAssignmentRecord, ...] = ()
    registration_counts: dict[int, int] = field(default_factory=dict)

    def active_exams(self) -> list[ExamRecord]:
        return [exam for exam in self.exams if exam.is_active]

    def registered(self, exam_id: int) -> int:
        return self.registration_counts.get(exam_id, 0)

    def proctors_by_exam(self) -> dict[int, list[ProctorAssignmentRecord]]:
        grouped: dict[int, list[ProctorAssignmentRecord]] = defaultdict(list)
        for assignment in self.assignments:
            grouped[assignment.exam_id].append(assignment)
        return grouped


@dataclass(frozen=True)
class ProctorBooking:
    """An existing proctor assignment together with the exam it occupies."""

    assignment: ProctorAssignmentRecord
    exam: ExamRecord
