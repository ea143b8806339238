"""Validate-then-commit flows for putting students and proctors on an exam.

Both flows share one shape: validate the request, diff it against what the
store already holds, insert only the new rows inside a single transaction and
report the counts. Any rejection rolls the whole batch back.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import logging
from typing import Protocol, TypeVar

from examdesk.core.exceptions import (
    CapacityExceededError,
    ConflictError,
    NotFoundError,
    ProctorConflictError,
    ValidationError,
)
from examdesk.repositories.base import ScheduleStore
from examdesk.scheduling.intervals import Occupancy, conflicts_with
from examdesk.scheduling.records import (
    ACTIVE_REGISTRATION_STATUSES,
    ExamRecord,
    PersonRecord,
    ProctorAssignmentRecord,
    RegistrationRecord,
)
from examdesk.schemas.schedule import AssignmentResult
from examdesk.services.notifications import Notifier, dispatch_notification

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ASSIGNMENT_NOTE = "Assigned by an administrator"


class ProctorRequest(Protocol):
    proctor_id: int
    role: str
    notes: str | None


def normalize_ids(values: Iterable, *, label: str) -> list[int]:
    ids: list[int] = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(f"{label} ids must be positive integers", details={"invalid_id": repr(value)})
        ids.append(value)
    if not ids:
        raise ValidationError(f"At least one {label.lower()} id is required")
    return list(dict.fromkeys(ids))


def partition_existing(items: Sequence[T], existing_ids: set[int], key) -> tuple[list[T], list[T]]:
    already: list[T] = []
    new: list[T] = []
    for item in items:
        (already if key(item) in existing_ids else new).append(item)
    return already, new


class AssignmentService:
    def __init__(self, store: ScheduleStore, notifier: Notifier | None = None) -> None:
        self.store = store
        self.notifier = notifier

    def assign_students(
        self,
        exam_id: int,
        student_ids: Iterable[int],
        *,
        registration_status: str = "approved",
        actor: PersonRecord | None = None,
    ) -> AssignmentResult:
        requested = normalize_ids(student_ids, label="Student")
        if registration_status not in ACTIVE_REGISTRATION_STATUSES:
            raise ValidationError("registration_status must be pending or approved")

        with self.store.transaction():
            exam = self._load_exam(exam_id)
            self._require_people(requested, role="student", label="Student")

            registered = {
                item.student_id
                for item in self.store.registrations.find_registrations(
                    exam_id, ACTIVE_REGISTRATION_STATUSES, requested
                )
            }
            already, new_ids = partition_existing(requested, registered, key=lambda item: item)

            current = self.store.exams.count_active_registrations(exam_id)
            available = max(exam.max_students - current, 0)
            if len(new_ids) > available:
                logger.info(
                    "Rejected %d student(s) for exam %s: only %d seat(s) left",
                    len(new_ids),
                    exam_id,
                    available,
                )
                raise CapacityExceededError(exam_id, requested=len(new_ids), available=available)

            created = self.store.registrations.create_registrations(
                [
                    RegistrationRecord(
                        exam_id=exam_id,
                        student_id=student_id,
                        status=registration_status,
                        notes=DEFAULT_ASSIGNMENT_NOTE,
                    )
                    for student_id in new_ids
                ]
            )

        logger.info(
            "Assigned %d student(s) to exam %s (%d already registered)",
            len(created),
            exam_id,
            len(already),
        )
        result = AssignmentResult(
            exam_id=exam_id,
            created_count=len(created),
            already_assigned_count=len(already),
            total_requested=len(requested),
            message=f"Assigned {len(created)} student(s) to '{exam.title}'",
        )
        self._notify("students_assigned", exam, result, actor)
        return result

    def assign_proctors(
        self,
        exam_id: int,
        proctor_assignments: Iterable[ProctorRequest],
        *,
        actor: PersonRecord | None = None,
    ) -> AssignmentResult:
        requested = self._dedupe_proctors(proctor_assignments)

        with self.store.transaction():
            exam = self._load_exam(exam_id)
            # Lock the proctor rows too: their bookings on other exams sit outside the exam lock.
            people = self._require_people(
                [item.proctor_id for item in requested],
                role="teacher",
                label="Proctor",
                for_update=True,
            )

            conflicts = self._find_proctor_conflicts(exam, requested, people)
            if conflicts:
                logger.info(
                    "Rejected proctor batch for exam %s: %d proctor(s) double-booked",
                    exam_id,
                    len(conflicts),
                )
                raise ProctorConflictError(exam_id, conflicts)

            assigned = {item.proctor_id for item in self.store.assignments.find_assignments_for_exams([exam_id])}
            already, new_items = partition_existing(requested, assigned, key=lambda item: item.proctor_id)

            created = self.store.assignments.create_assignments(
                [
                    ProctorAssignmentRecord(
                        exam_id=exam_id,
                        proctor_id=item.proctor_id,
                        role=item.role or "assistant",
                        proctor_name=people[item.proctor_id].full_name,
                        notes=item.notes or DEFAULT_ASSIGNMENT_NOTE,
                    )
                    for item in new_items
                ]
            )

        logger.info(
            "Assigned %d proctor(s) to exam %s (%d already assigned)",
            len(created),
            exam_id,
            len(already),
        )
        result = AssignmentResult(
            exam_id=exam_id,
            created_count=len(created),
            already_assigned_count=len(already),
            total_requested=len(requested),
            message=f"Assigned {len(created)} proctor(s) to '{exam.title}'",
        )
        self._notify("proctors_assigned", exam, result, actor)
        return result

    def remove_student(self, exam_id: int, student_id: int, *, actor: PersonRecord | None = None) -> None:
        with self.store.transaction():
            exam = self._load_exam(exam_id, allow_cancelled=True)
            if not self.store.registrations.delete_registration(exam_id, student_id):
                raise NotFoundError("Registration", f"{exam_id}/{student_id}")
        dispatch_notification(
            self.notifier,
            "schedule",
            "student_removed",
            {"exam_id": exam_id, "exam_title": exam.title, "student_id": student_id},
            actor,
        )

    def remove_proctor(self, exam_id: int, proctor_id: int, *, actor: PersonRecord | None = None) -> None:
        with self.store.transaction():
            exam = self._load_exam(exam_id, allow_cancelled=True)
            if not self.store.assignments.delete_assignment(exam_id, proctor_id):
                raise NotFoundError("Proctor assignment", f"{exam_id}/{proctor_id}")
        dispatch_notification(
            self.notifier,
            "schedule",
            "proctor_removed",
            {"exam_id": exam_id, "exam_title": exam.title, "proctor_id": proctor_id},
            actor,
        )

    def _load_exam(self, exam_id: int, *, allow_cancelled: bool = False) -> ExamRecord:
        exam = self.store.exams.find_exam_by_id(exam_id, for_update=True)
        if exam is None:
            raise NotFoundError("Exam", exam_id)
        if not exam.is_active and not allow_cancelled:
            raise ConflictError(f"Exam '{exam.title}' is cancelled", details={"exam_id": exam_id}, kind="exam_cancelled")
        return exam

    def _require_people(
        self,
        user_ids: list[int],
        *,
        role: str,
        label: str,
        for_update: bool = False,
    ) -> dict[int, PersonRecord]:
        found = {
            person.user_id: person
            for person in self.store.users.find_users(user_ids, role, for_update=for_update)
        }
        missing = [user_id for user_id in user_ids if user_id not in found]
        if missing:
            raise NotFoundError(label, ", ".join(str(item) for item in missing), details={"missing_ids": missing})
        return found

    @staticmethod
    def _dedupe_proctors(items: Iterable[ProctorRequest]) -> list[ProctorRequest]:
        unique: dict[int, ProctorRequest] = {}
        for item in items:
            normalize_ids([item.proctor_id], label="Proctor")
            unique.setdefault(item.proctor_id, item)
        if not unique:
            raise ValidationError("At least one proctor assignment is required")
        return list(unique.values())

    def _find_proctor_conflicts(
        self,
        exam: ExamRecord,
        requested: list[ProctorRequest],
        people: dict[int, PersonRecord],
    ) -> list[dict]:
        conflicts: list[dict] = []
        for item in requested:
            bookings = self.store.assignments.find_assignments_for_proctor_on_date(item.proctor_id, exam.exam_date)
            booked_exams = {booking.exam.exam_id: booking.exam for booking in bookings if booking.exam.is_active}
            occupied = [
                Occupancy(item.proctor_id, other.exam_date, other.start_time, other.end_time, other.exam_id)
                for other in booked_exams.values()
            ]
            candidate = Occupancy(item.proctor_id, exam.exam_date, exam.start_time, exam.end_time, exam.exam_id)
            hits = conflicts_with(candidate, occupied)
            if not hits:
                continue
            conflicts.append(
                {
                    "proctor_id": item.proctor_id,
                    "proctor_name": people[item.proctor_id].full_name,
                    "conflicting_exams": [
                        {
                            "exam_id": hit.exam_id,
                            "title": booked_exams[hit.exam_id].title,
                            "exam_date": hit.exam_date.isoformat(),
                            "start_time": hit.start_time.strftime("%H:%M"),
                            "end_time": hit.end_time.strftime("%H:%M"),
                        }
                        for hit in hits
                    ],
                }
            )
        return conflicts

    def _notify(self, action: str, exam: ExamRecord, result: AssignmentResult, actor: PersonRecord | None) -> None:
        dispatch_notification(
            self.notifier,
            "schedule",
            action,
            {
                "exam_id": exam.exam_id,
                "exam_title": exam.title,
                "created_count": result.created_count,
                "already_assigned_count": result.already_assigned_count,
                "total_requested": result.total_requested,
            },
            actor,
        )
