"""In-memory stand-ins for the schedule store, plus record builders for tests."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, time

from examdesk.core.exceptions import TransientStoreError
from examdesk.scheduling.records import (
    ACTIVE_REGISTRATION_STATUSES,
    ExamRecord,
    PersonRecord,
    ProctorAssignmentRecord,
    ProctorBooking,
    RegistrationRecord,
    RoomRecord,
)

EXAM_DAY = date(2026, 1, 12)


def t(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def room(room_id: int = 1, capacity: int = 30, name: str | None = None) -> RoomRecord:
    return RoomRecord(room_id=room_id, name=name or f"R{room_id}", capacity=capacity)


def exam(
    exam_id: int,
    start: str = "09:00",
    end: str = "11:00",
    *,
    on: date = EXAM_DAY,
    room: RoomRecord | None = None,
    status: str = "published",
    max_students: int = 30,
    title: str | None = None,
) -> ExamRecord:
    return ExamRecord(
        exam_id=exam_id,
        title=title or f"E{exam_id}",
        subject_code="MATH101",
        exam_date=on,
        start_time=t(start),
        end_time=t(end),
        status=status,
        max_students=max_students,
        room=room,
    )


def person(user_id: int, role: str = "student", name: str | None = None) -> PersonRecord:
    return PersonRecord(
        user_id=user_id,
        full_name=name or f"{role.title()} {user_id}",
        email=f"user{user_id}@example.com",
        role=role,
    )


class InMemoryScheduleStore:
    """Implements every repository protocol over plain lists.

    ``transaction()`` restores the pre-transaction rows on any error, which is
    enough to observe all-or-nothing behaviour from the services.
    """

    def __init__(self) -> None:
        self.exam_rows: dict[int, ExamRecord] = {}
        self.room_rows: dict[int, RoomRecord] = {}
        self.people: dict[int, PersonRecord] = {}
        self.registration_rows: list[RegistrationRecord] = []
        self.assignment_rows: list[ProctorAssignmentRecord] = []
        self.fail_on_commit = False
        self.commits = 0
        self.rollbacks = 0
        self.locked_exam_ids: list[int] = []
        self.locked_user_ids: list[int] = []

        self.exams = self
        self.rooms = self
        self.assignments = self
        self.registrations = self
        self.users = self

    # seeding
    def add_exam(self, record: ExamRecord) -> ExamRecord:
        self.exam_rows[record.exam_id] = record
        if record.room is not None:
            self.room_rows[record.room.room_id] = record.room
        return record

    def add_person(self, record: PersonRecord) -> PersonRecord:
        self.people[record.user_id] = record
        return record

    def register(self, exam_id: int, student_id: int, status: str = "approved") -> None:
        if student_id not in self.people:
            self.add_person(person(student_id, "student"))
        self.registration_rows.append(RegistrationRecord(exam_id=exam_id, student_id=student_id, status=status))

    def assign(self, exam_id: int, proctor_id: int, role: str = "assistant") -> None:
        if proctor_id not in self.people:
            self.add_person(person(proctor_id, "teacher"))
        self.assignment_rows.append(
            ProctorAssignmentRecord(
                exam_id=exam_id,
                proctor_id=proctor_id,
                role=role,
                proctor_name=self.people[proctor_id].full_name,
            )
        )

    # unit of work
    @contextmanager
    def transaction(self):
        saved = (list(self.registration_rows), list(self.assignment_rows))
        try:
            yield
            if self.fail_on_commit:
                raise TransientStoreError()
            self.commits += 1
        except Exception:
            self.registration_rows, self.assignment_rows = saved
            self.rollbacks += 1
            raise

    @contextmanager
    def reading(self):
        yield

    # exams
    def find_exams_in_range(self, date_from, date_to, statuses=None, *, room_id=None, subject_code=None):
        wanted = set(statuses) if statuses is not None else None
        rows = [
            row
            for row in self.exam_rows.values()
            if (date_from is None or row.exam_date >= date_from)
            and (date_to is None or row.exam_date <= date_to)
            and (wanted is None or row.status in wanted)
            and (room_id is None or row.room_id == room_id)
            and (not subject_code or row.subject_code == subject_code)
        ]
        return sorted(rows, key=lambda row: (row.exam_date, row.start_time, row.exam_id))

    def find_exam_by_id(self, exam_id, *, for_update=False):
        if for_update:
            self.locked_exam_ids.append(exam_id)
        return self.exam_rows.get(exam_id)

    def count_active_registrations(self, exam_id):
        return self.count_active_registrations_by_exam([exam_id]).get(exam_id, 0)

    def count_active_registrations_by_exam(self, exam_ids):
        ids = set(exam_ids)
        counts: dict[int, int] = {}
        for row in self.registration_rows:
            if row.exam_id in ids and row.is_active:
                counts[row.exam_id] = counts.get(row.exam_id, 0) + 1
        return counts

    def find_exams_for_proctor(self, proctor_id, *, date_from=None, date_to=None, status=None):
        exam_ids = {row.exam_id for row in self.assignment_rows if row.proctor_id == proctor_id}
        rows = self.find_exams_in_range(date_from, date_to, [status] if status else None)
        return [row for row in rows if row.exam_id in exam_ids]

    # rooms
    def find_room_by_id(self, room_id):
        return self.room_rows.get(room_id)

    # proctor assignments
    def find_assignments_for_proctor_on_date(self, proctor_id, exam_date):
        bookings = [
            ProctorBooking(assignment=row, exam=self.exam_rows[row.exam_id])
            for row in self.assignment_rows
            if row.proctor_id == proctor_id and self.exam_rows[row.exam_id].exam_date == exam_date
        ]
        return sorted(bookings, key=lambda item: (item.exam.start_time, item.exam.exam_id))

    def find_assignments_for_exams(self, exam_ids):
        ids = set(exam_ids)
        rows = [row for row in self.assignment_rows if row.exam_id in ids]
        return sorted(rows, key=lambda row: (row.exam_id, row.proctor_id))

    def create_assignments(self, assignments):
        self.assignment_rows.extend(assignments)
        return list(assignments)

    def delete_assignment(self, exam_id, proctor_id):
        for row in self.assignment_rows:
            if row.exam_id == exam_id and row.proctor_id == proctor_id:
                self.assignment_rows.remove(row)
                return True
        return False

    # registrations
    def find_registrations(self, exam_id, statuses=None, student_ids=None):
        wanted = set(statuses) if statuses is not None else None
        students = set(student_ids) if student_ids is not None else None
        return [
            row
            for row in self.registration_rows
            if row.exam_id == exam_id
            and (wanted is None or row.status in wanted)
            and (students is None or row.student_id in students)
        ]

    def find_registered_student_ids(self, exam_ids):
        ids = set(exam_ids)
        return {
            row.student_id
            for row in self.registration_rows
            if row.exam_id in ids and row.status in ACTIVE_REGISTRATION_STATUSES
        }

    def create_registrations(self, registrations):
        for item in registrations:
            self.registration_rows = [
                row
                for row in self.registration_rows
                if not (row.exam_id == item.exam_id and row.student_id == item.student_id)
            ]
            self.registration_rows.append(item)
        return list(registrations)

    def delete_registration(self, exam_id, student_id):
        before = len(self.registration_rows)
        self.registration_rows = [
            row for row in self.registration_rows if not (row.exam_id == exam_id and row.student_id == student_id)
        ]
        return len(self.registration_rows) != before

    # users
    def find_users(self, user_ids, role, *, for_update=False):
        ids = set(user_ids)
        if for_update:
            self.locked_user_ids.extend(sorted(ids))
        return [row for row in self.people.values() if row.user_id in ids and row.role == role and row.is_active]

    def find_users_by_role(self, role, exclude_ids=()):
        excluded = set(exclude_ids)
        rows = [
            row
            for row in self.people.values()
            if row.role == role and row.is_active and row.user_id not in excluded
        ]
        return sorted(rows, key=lambda row: (row.full_name, row.user_id))


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.events: list[tuple] = []

    def notify(self, resource_type, action, payload, actor):
        if self.fail:
            raise RuntimeError("push channel down")
        self.events.append((resource_type, action, payload, actor))
