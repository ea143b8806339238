from __future__ import annotations

from datetime import date
import logging
import math

from examdesk.core.exceptions import NotFoundError, ValidationError
from examdesk.repositories.base import ScheduleStore
from examdesk.scheduling.advisor import OptimizationAdvisor
from examdesk.scheduling.capacity import CapacityAnalyzer
from examdesk.scheduling.conflicts import ConflictAnalyzer
from examdesk.scheduling.policy import SchedulePolicy
from examdesk.scheduling.records import CANCELLED, ExamRecord, ScheduleSnapshot
from examdesk.schemas.schedule import (
    SEVERITY_ORDER,
    ConflictReport,
    ConflictSummary,
    ExamOccupancy,
    PersonOut,
    ProctorExamOut,
    ScheduleOverview,
    ScheduleStatistics,
    UnassignedOut,
)

logger = logging.getLogger(__name__)

EXAM_STATUSES = ("draft", "published", "in_progress", "completed", "cancelled")
ACTIVE_EXAM_STATUSES = tuple(status for status in EXAM_STATUSES if status != CANCELLED)
OPEN_EXAM_STATUSES = ("published", "in_progress")


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return math.floor(part / whole * 100 + 0.5)


def validate_range(date_from: date | None, date_to: date | None) -> None:
    if date_from is not None and date_to is not None and date_from > date_to:
        raise ValidationError(
            "date_from must not be after date_to",
            details={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
        )


class ScheduleService:
    """Read-only schedule reports built from one snapshot per call."""

    def __init__(self, store: ScheduleStore, policy: SchedulePolicy) -> None:
        self.store = store
        self.policy = policy

    def load_snapshot(
        self,
        date_from: date | None,
        date_to: date | None,
        *,
        statuses: tuple[str, ...] | None = ACTIVE_EXAM_STATUSES,
        room_id: int | None = None,
        subject_code: str | None = None,
    ) -> ScheduleSnapshot:
        validate_range(date_from, date_to)
        with self.store.reading():
            exams = self.store.exams.find_exams_in_range(
                date_from,
                date_to,
                statuses,
                room_id=room_id,
                subject_code=subject_code,
            )
            exam_ids = [exam.exam_id for exam in exams]
            assignments = self.store.assignments.find_assignments_for_exams(exam_ids)
            counts = self.store.exams.count_active_registrations_by_exam(exam_ids)
        return ScheduleSnapshot(exams=tuple(exams), assignments=tuple(assignments), registration_counts=counts)

    def get_schedule_conflicts(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        severity: str = "all",
    ) -> ConflictReport:
        if severity != "all" and severity not in SEVERITY_ORDER:
            raise ValidationError(f"Unknown severity filter '{severity}'")

        snapshot = self.load_snapshot(date_from, date_to)
        conflicts = ConflictAnalyzer(snapshot)
        by_severity = {
            "critical": conflicts.room_conflicts() + conflicts.proctor_conflicts(),
            "warning": CapacityAnalyzer(snapshot, self.policy).analyze(),
            "info": OptimizationAdvisor(snapshot, self.policy).suggest(),
        }

        if severity == "all":
            findings = [finding for level in SEVERITY_ORDER for finding in by_severity[level]]
        else:
            findings = by_severity[severity]

        summary = ConflictSummary(
            total_conflicts=sum(len(items) for items in by_severity.values()),
            critical_count=len(by_severity["critical"]),
            warning_count=len(by_severity["warning"]),
            info_count=len(by_severity["info"]),
            exams_analyzed=len(snapshot.active_exams()),
        )
        logger.debug(
            "Schedule analysis %s..%s: %d critical, %d warning, %d info",
            date_from,
            date_to,
            summary.critical_count,
            summary.warning_count,
            summary.info_count,
        )
        return ConflictReport(
            date_from=date_from,
            date_to=date_to,
            severity=severity,
            findings=findings,
            summary=summary,
        )

    def get_schedule_overview(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        *,
        room_id: int | None = None,
        subject_code: str | None = None,
        include_stats: bool = True,
    ) -> ScheduleOverview:
        if room_id is not None:
            with self.store.reading():
                room = self.store.rooms.find_room_by_id(room_id)
            if room is None:
                raise NotFoundError("Room", room_id)
        snapshot = self.load_snapshot(
            date_from,
            date_to,
            statuses=None,
            room_id=room_id,
            subject_code=subject_code,
        )
        proctors = snapshot.proctors_by_exam()

        rows: list[ExamOccupancy] = []
        for exam in snapshot.exams:
            registered = snapshot.registered(exam.exam_id)
            proctor_count = len(proctors.get(exam.exam_id, []))
            rows.append(
                ExamOccupancy(
                    exam_id=exam.exam_id,
                    title=exam.title,
                    subject_code=exam.subject_code,
                    subject_name=exam.subject_name,
                    exam_date=exam.exam_date,
                    start_time=exam.start_time,
                    end_time=exam.end_time,
                    status=exam.status,
                    method=exam.method,
                    max_students=exam.max_students,
                    room_id=exam.room_id,
                    room_name=exam.room.name if exam.room else None,
                    room_capacity=exam.room.capacity if exam.room else None,
                    registration_count=registered,
                    proctor_count=proctor_count,
                    capacity_percentage=_percent(registered, exam.max_students),
                    is_fully_booked=registered >= exam.max_students,
                    needs_proctors=proctor_count == 0,
                )
            )

        statistics = self._statistics(rows) if include_stats else None
        return ScheduleOverview(count=len(rows), exams=rows, statistics=statistics)

    @staticmethod
    def _statistics(rows: list[ExamOccupancy]) -> ScheduleStatistics:
        total = len(rows)
        with_students = sum(1 for row in rows if row.registration_count > 0)
        with_proctors = sum(1 for row in rows if row.proctor_count > 0)
        return ScheduleStatistics(
            total_exams=total,
            exams_with_students=with_students,
            exams_with_proctors=with_proctors,
            exams_needing_students=total - with_students,
            exams_needing_proctors=total - with_proctors,
            total_students_registered=sum(row.registration_count for row in rows),
            total_proctors_assigned=sum(row.proctor_count for row in rows),
            completion_percentage=_percent(with_students + with_proctors, total * 2),
        )

    def get_unassigned(self, today: date) -> UnassignedOut:
        with self.store.reading():
            open_exams = self.store.exams.find_exams_in_range(today, None, OPEN_EXAM_STATUSES)
            exam_ids = [exam.exam_id for exam in open_exams]
            if exam_ids:
                registered = self.store.registrations.find_registered_student_ids(exam_ids)
                assigned = {item.proctor_id for item in self.store.assignments.find_assignments_for_exams(exam_ids)}
            else:
                registered, assigned = set(), set()
            students = self.store.users.find_users_by_role("student", exclude_ids=registered)
            teachers = self.store.users.find_users_by_role("teacher", exclude_ids=assigned)

        return UnassignedOut(
            unregistered_students=[
                PersonOut(user_id=item.user_id, full_name=item.full_name, email=item.email) for item in students
            ],
            unassigned_proctors=[
                PersonOut(user_id=item.user_id, full_name=item.full_name, email=item.email) for item in teachers
            ],
        )

    def get_proctor_exams(
        self,
        proctor_id: int,
        *,
        today: date,
        status: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[ProctorExamOut]:
        validate_range(date_from, date_to)
        if status is not None and status not in EXAM_STATUSES:
            raise ValidationError(f"Unknown exam status '{status}'")

        with self.store.reading():
            exams = self.store.exams.find_exams_for_proctor(
                proctor_id,
                date_from=date_from,
                date_to=date_to,
                status=status,
            )
            exam_ids = [exam.exam_id for exam in exams]
            assignments = self.store.assignments.find_assignments_for_exams(exam_ids)
            counts = self.store.exams.count_active_registrations_by_exam(exam_ids)

        snapshot = ScheduleSnapshot(exams=tuple(exams), assignments=tuple(assignments), registration_counts=counts)
        proctors = snapshot.proctors_by_exam()
        return [self._proctor_exam(exam, proctor_id, proctors.get(exam.exam_id, []), snapshot, today) for exam in exams]

    @staticmethod
    def _proctor_exam(exam: ExamRecord, proctor_id: int, crew: list, snapshot: ScheduleSnapshot, today: date) -> ProctorExamOut:
        own = next((item for item in crew if item.proctor_id == proctor_id), None)
        main = next((item for item in crew if item.role == "main"), None)
        if exam.exam_date < today:
            calendar_status = "completed"
        elif exam.exam_date == today:
            calendar_status = "today"
        else:
            calendar_status = "upcoming"
        return ProctorExamOut(
            exam_id=exam.exam_id,
            title=exam.title,
            subject_code=exam.subject_code,
            subject_name=exam.subject_name,
            exam_date=exam.exam_date,
            start_time=exam.start_time,
            end_time=exam.end_time,
            duration_minutes=exam.duration_minutes,
            room_name=exam.room.name if exam.room else None,
            room_capacity=exam.room.capacity if exam.room else None,
            registered_students=snapshot.registered(exam.exam_id),
            max_students=exam.max_students,
            proctor_role=own.role if own is not None else "assistant",
            calendar_status=calendar_status,
            main_proctor=main.proctor_name if main is not None else None,
            other_proctors=[item.proctor_name for item in crew if item.proctor_id != proctor_id],
            exam_method=exam.method,
        )
