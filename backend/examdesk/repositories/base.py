"""Store contracts the scheduling services depend on.

Any backend that satisfies these protocols can drive the services: the
SQLAlchemy store in production and in-memory fakes in tests.
"""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import AbstractContextManager
from datetime import date
from typing import Protocol, runtime_checkable

from examdesk.scheduling.records import (
    ExamRecord,
    PersonRecord,
    ProctorAssignmentRecord,
    ProctorBooking,
    RegistrationRecord,
    RoomRecord,
)


class ExamRepository(Protocol):
    def find_exams_in_range(
        self,
        date_from: date | None,
        date_to: date | None,
        statuses: Iterable[str] | None = None,
        *,
        room_id: int | None = None,
        subject_code: str | None = None,
    ) -> list[ExamRecord]: ...

    def find_exam_by_id(self, exam_id: int, *, for_update: bool = False) -> ExamRecord | None: ...

    def count_active_registrations(self, exam_id: int) -> int: ...

    def count_active_registrations_by_exam(self, exam_ids: Iterable[int]) -> dict[int, int]: ...

    def find_exams_for_proctor(
        self,
        proctor_id: int,
        *,
        date_from: date | None = None,
        date_to: date | None = None,
        status: str | None = None,
    ) -> list[ExamRecord]: ...


class RoomRepository(Protocol):
    def find_room_by_id(self, room_id: int) -> RoomRecord | None: ...


class ProctorAssignmentRepository(Protocol):
    def find_assignments_for_proctor_on_date(self, proctor_id: int, exam_date: date) -> list[ProctorBooking]: ...

    def find_assignments_for_exams(self, exam_ids: Iterable[int]) -> list[ProctorAssignmentRecord]: ...

    def create_assignments(self, assignments: list[ProctorAssignmentRecord]) -> list[ProctorAssignmentRecord]: ...

    def delete_assignment(self, exam_id: int, proctor_id: int) -> bool: ...


class RegistrationRepository(Protocol):
    def find_registrations(
        self,
        exam_id: int,
        statuses: Iterable[str] | None = None,
        student_ids: Iterable[int] | None = None,
    ) -> list[RegistrationRecord]: ...

    def find_registered_student_ids(self, exam_ids: Iterable[int]) -> set[int]: ...

    def create_registrations(self, registrations: list[RegistrationRecord]) -> list[RegistrationRecord]: ...

    def delete_registration(self, exam_id: int, student_id: int) -> bool: ...


class UserRepository(Protocol):
    def find_users(self, user_ids: Iterable[int], role: str, *, for_update: bool = False) -> list[PersonRecord]: ...

    def find_users_by_role(self, role: str, exclude_ids: Iterable[int] = ()) -> list[PersonRecord]: ...


@runtime_checkable
class ScheduleStore(Protocol):
    exams: ExamRepository
    rooms: RoomRepository
    assignments: ProctorAssignmentRepository
    registrations: RegistrationRepository
    users: UserRepository

    def transaction(self) -> AbstractContextManager[None]:
        """All-or-nothing unit of work: commit on success, roll back on any error."""
        ...

    def reading(self) -> AbstractContextManager[None]:
        """Read-only section; store failures surface as TransientStoreError."""
        ...
