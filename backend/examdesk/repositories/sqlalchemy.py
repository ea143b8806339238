from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from examdesk.core.exceptions import ConflictError, TransientStoreError
from examdesk.models.exam import Exam, ExamStatus
from examdesk.models.exam_proctor import ExamProctor, ProctorRole
from examdesk.models.registration import ACTIVE_REGISTRATION_STATUSES, Registration, RegistrationStatus
from examdesk.models.room import Room
from examdesk.models.user import User, UserRole
from examdesk.scheduling.records import (
    ExamRecord,
    PersonRecord,
    ProctorAssignmentRecord,
    ProctorBooking,
    RegistrationRecord,
    RoomRecord,
)

logger = logging.getLogger(__name__)


def room_to_record(room: Room) -> RoomRecord:
    return RoomRecord(
        room_id=room.id,
        name=room.name,
        capacity=room.capacity,
        building=room.building,
        is_active=room.is_active,
    )


def exam_to_record(exam: Exam) -> ExamRecord:
    return ExamRecord(
        exam_id=exam.id,
        title=exam.title,
        subject_code=exam.subject_code,
        subject_name=exam.subject.name if exam.subject is not None else None,
        exam_date=exam.exam_date,
        start_time=exam.start_time,
        end_time=exam.end_time,
        status=exam.status.value,
        max_students=exam.max_students,
        method=exam.method.value,
        room=room_to_record(exam.room) if exam.room is not None else None,
        duration_minutes=exam.duration_minutes,
    )


def assignment_to_record(assignment: ExamProctor) -> ProctorAssignmentRecord:
    return ProctorAssignmentRecord(
        exam_id=assignment.exam_id,
        proctor_id=assignment.proctor_id,
        role=assignment.role.value,
        proctor_name=assignment.proctor.full_name if assignment.proctor is not None else "",
        notes=assignment.notes,
    )


def registration_to_record(registration: Registration) -> RegistrationRecord:
    return RegistrationRecord(
        exam_id=registration.exam_id,
        student_id=registration.student_id,
        status=registration.status.value,
        notes=registration.notes,
    )


def user_to_record(user: User) -> PersonRecord:
    return PersonRecord(
        user_id=user.id,
        full_name=user.full_name,
        email=user.email,
        role=user.role.value,
        is_active=user.is_active,
    )


class SqlAlchemyExamRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_exams_in_range(
        self,
        date_from: date | None,
        date_to: date | None,
        statuses: Iterable[str] | None = None,
        *,
        room_id: int | None = None,
        subject_code: str | None = None,
    ) -> list[ExamRecord]:
        stmt = select(Exam).order_by(Exam.exam_date, Exam.start_time, Exam.id)
        if date_from is not None:
            stmt = stmt.where(Exam.exam_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Exam.exam_date <= date_to)
        if statuses is not None:
            stmt = stmt.where(Exam.status.in_([ExamStatus(item) for item in statuses]))
        if room_id is not None:
            stmt = stmt.where(Exam.room_id == room_id)
        if subject_code:
            stmt = stmt.where(Exam.subject_code == subject_code)
        return [exam_to_record(exam) for exam in self.db.execute(stmt).unique().scalars()]

    def find_exam_by_id(self, exam_id: int, *, for_update: bool = False) -> ExamRecord | None:
        stmt = select(Exam).where(Exam.id == exam_id)
        if for_update:
            # Locks only the exam row; the joined room/subject rows stay unlocked.
            stmt = stmt.with_for_update(of=Exam)
        exam = self.db.execute(stmt).unique().scalar_one_or_none()
        return exam_to_record(exam) if exam is not None else None

    def count_active_registrations(self, exam_id: int) -> int:
        return self.count_active_registrations_by_exam([exam_id]).get(exam_id, 0)

    def count_active_registrations_by_exam(self, exam_ids: Iterable[int]) -> dict[int, int]:
        ids = list(exam_ids)
        if not ids:
            return {}
        rows = self.db.execute(
            select(Registration.exam_id, func.count(Registration.id))
            .where(
                Registration.exam_id.in_(ids),
                Registration.status.in_(ACTIVE_REGISTRATION_STATUSES),
            )
            .group_by(Registration.exam_id)
        ).all()
        return {exam_id: count for exam_id, count in rows}

    def find_exams_for_proctor(
        self,
        proctor_id: int,
        *,
        date_from: date | None = None,
        date_to: date | None = None,
        status: str | None = None,
    ) -> list[ExamRecord]:
        stmt = (
            select(Exam)
            .join(ExamProctor, ExamProctor.exam_id == Exam.id)
            .where(ExamProctor.proctor_id == proctor_id)
            .order_by(Exam.exam_date, Exam.start_time, Exam.id)
        )
        if date_from is not None:
            stmt = stmt.where(Exam.exam_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Exam.exam_date <= date_to)
        if status:
            stmt = stmt.where(Exam.status == ExamStatus(status))
        return [exam_to_record(exam) for exam in self.db.execute(stmt).unique().scalars()]


class SqlAlchemyRoomRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_room_by_id(self, room_id: int) -> RoomRecord | None:
        room = self.db.get(Room, room_id)
        return room_to_record(room) if room is not None else None


class SqlAlchemyProctorAssignmentRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_assignments_for_proctor_on_date(self, proctor_id: int, exam_date: date) -> list[ProctorBooking]:
        rows = self.db.execute(
            select(ExamProctor)
            .join(Exam, ExamProctor.exam_id == Exam.id)
            .options(joinedload(ExamProctor.exam))
            .where(ExamProctor.proctor_id == proctor_id, Exam.exam_date == exam_date)
            .order_by(Exam.start_time, Exam.id)
        ).unique().scalars()
        return [ProctorBooking(assignment=assignment_to_record(row), exam=exam_to_record(row.exam)) for row in rows]

    def find_assignments_for_exams(self, exam_ids: Iterable[int]) -> list[ProctorAssignmentRecord]:
        ids = list(exam_ids)
        if not ids:
            return []
        rows = self.db.execute(
            select(ExamProctor)
            .where(ExamProctor.exam_id.in_(ids))
            .order_by(ExamProctor.exam_id, ExamProctor.proctor_id)
        ).unique().scalars()
        return [assignment_to_record(row) for row in rows]

    def create_assignments(self, assignments: list[ProctorAssignmentRecord]) -> list[ProctorAssignmentRecord]:
        rows = [
            ExamProctor(
                exam_id=item.exam_id,
                proctor_id=item.proctor_id,
                role=ProctorRole(item.role),
                notes=item.notes,
            )
            for item in assignments
        ]
        self.db.add_all(rows)
        self.db.flush()
        return [assignment_to_record(row) for row in rows]

    def delete_assignment(self, exam_id: int, proctor_id: int) -> bool:
        row = self.db.execute(
            select(ExamProctor).where(ExamProctor.exam_id == exam_id, ExamProctor.proctor_id == proctor_id)
        ).unique().scalar_one_or_none()
        if row is None:
            return False
        self.db.delete(row)
        self.db.flush()
        return True


class SqlAlchemyRegistrationRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_registrations(
        self,
        exam_id: int,
        statuses: Iterable[str] | None = None,
        student_ids: Iterable[int] | None = None,
    ) -> list[RegistrationRecord]:
        stmt = select(Registration).where(Registration.exam_id == exam_id).order_by(Registration.student_id)
        if statuses is not None:
            stmt = stmt.where(Registration.status.in_([RegistrationStatus(item) for item in statuses]))
        if student_ids is not None:
            stmt = stmt.where(Registration.student_id.in_(list(student_ids)))
        return [registration_to_record(row) for row in self.db.execute(stmt).scalars()]

    def find_registered_student_ids(self, exam_ids: Iterable[int]) -> set[int]:
        ids = list(exam_ids)
        if not ids:
            return set()
        rows = self.db.execute(
            select(Registration.student_id).where(
                Registration.exam_id.in_(ids),
                Registration.status.in_(ACTIVE_REGISTRATION_STATUSES),
            )
        ).scalars()
        return set(rows)

    def create_registrations(self, registrations: list[RegistrationRecord]) -> list[RegistrationRecord]:
        if not registrations:
            return []
        exam_ids = {item.exam_id for item in registrations}
        student_ids = {item.student_id for item in registrations}
        # A withdrawn or rejected row still holds the (exam, student) unique key; revive it.
        existing = {
            (row.exam_id, row.student_id): row
            for row in self.db.execute(
                select(Registration).where(
                    Registration.exam_id.in_(exam_ids),
                    Registration.student_id.in_(student_ids),
                )
            ).scalars()
        }
        rows: list[Registration] = []
        for item in registrations:
            row = existing.get((item.exam_id, item.student_id))
            if row is None:
                row = Registration(exam_id=item.exam_id, student_id=item.student_id)
                self.db.add(row)
            row.status = RegistrationStatus(item.status)
            row.notes = item.notes
            rows.append(row)
        self.db.flush()
        return [registration_to_record(row) for row in rows]

    def delete_registration(self, exam_id: int, student_id: int) -> bool:
        row = self.db.execute(
            select(Registration).where(Registration.exam_id == exam_id, Registration.student_id == student_id)
        ).scalar_one_or_none()
        if row is None:
            return False
        self.db.delete(row)
        self.db.flush()
        return True


class SqlAlchemyUserRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_users(self, user_ids: Iterable[int], role: str, *, for_update: bool = False) -> list[PersonRecord]:
        ids = sorted(set(user_ids))
        if not ids:
            return []
        stmt = (
            select(User)
            .where(
                User.id.in_(ids),
                User.role == UserRole(role),
                User.is_active.is_(True),
            )
            .order_by(User.id)
        )
        if for_update:
            # Ascending id order keeps lock acquisition consistent across requests.
            stmt = stmt.with_for_update()
        return [user_to_record(row) for row in self.db.execute(stmt).scalars()]

    def find_users_by_role(self, role: str, exclude_ids: Iterable[int] = ()) -> list[PersonRecord]:
        stmt = (
            select(User)
            .where(User.role == UserRole(role), User.is_active.is_(True))
            .order_by(User.full_name, User.id)
        )
        excluded = list(exclude_ids)
        if excluded:
            stmt = stmt.where(User.id.not_in(excluded))
        return [user_to_record(row) for row in self.db.execute(stmt).scalars()]


class SqlAlchemyScheduleStore:
    """Bundles the repositories around one request-scoped session."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.exams = SqlAlchemyExamRepository(db)
        self.rooms = SqlAlchemyRoomRepository(db)
        self.assignments = SqlAlchemyProctorAssignmentRepository(db)
        self.registrations = SqlAlchemyRegistrationRepository(db)
        self.users = SqlAlchemyUserRepository(db)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("Schedule write rejected by a database constraint: %s", exc.orig)
            raise ConflictError(
                "The assignment already exists or references a missing record",
                kind="duplicate_assignment",
            ) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Schedule store transaction failed")
            raise TransientStoreError() from exc
        except Exception:
            self.db.rollback()
            raise

    @contextmanager
    def reading(self) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Schedule store read failed")
            raise TransientStoreError() from exc
