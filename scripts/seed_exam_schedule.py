"""Seed demo accounts, rooms and a week of exams, then print bearer tokens.

The schedule contains one deliberate room clash and one over-full room so the
conflict report has something to show.

Run:
  PYTHONPATH=backend python scripts/seed_exam_schedule.py
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable

from sqlalchemy import select

from examdesk.core.security import create_access_token
from examdesk.db.base import Base
from examdesk.db.session import SessionLocal, engine
from examdesk.models import (
    Exam,
    ExamMethod,
    ExamProctor,
    ExamStatus,
    ProctorRole,
    Registration,
    RegistrationStatus,
    Room,
    Subject,
    User,
    UserRole,
)

DEMO_ACCOUNTS = {
    "admin": ("Demo Admin", "admin.demo@examdesk.local", UserRole.admin),
    "teacher_1": ("Demo Teacher One", "teacher1.demo@examdesk.local", UserRole.teacher),
    "teacher_2": ("Demo Teacher Two", "teacher2.demo@examdesk.local", UserRole.teacher),
}
STUDENT_COUNT = 40

ROOMS = [
    ("A101", "Main", 30),
    ("B204", "Science", 20),
    ("Hall", "Main", 120),
]

SUBJECTS = [
    ("MATH101", "Calculus I"),
    ("PHYS110", "Mechanics"),
    ("CHEM120", "General Chemistry"),
]

# (title, subject, day offset, start, end, room, max_students)
EXAMS = [
    ("Calculus Midterm", "MATH101", 0, "09:00", "11:00", "A101", 30),
    ("Mechanics Quiz", "PHYS110", 0, "10:30", "12:00", "A101", 25),
    ("Chemistry Lab Exam", "CHEM120", 0, "15:00", "16:00", "B204", 20),
    ("Calculus Final", "MATH101", 7, "09:00", "12:00", "Hall", 120),
]


def _next_monday(today: date) -> date:
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7)


def _upsert_user(session, name: str, email: str, role: UserRole) -> User:
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None:
        user = User(full_name=name, email=email, role=role)
        session.add(user)
    user.full_name = name
    user.role = role
    user.is_active = True
    return user


def _upsert_room(session, name: str, building: str, capacity: int) -> Room:
    room = session.execute(select(Room).where(Room.name == name)).scalar_one_or_none()
    if room is None:
        room = Room(name=name, building=building, capacity=capacity)
        session.add(room)
    room.capacity = capacity
    return room


def _minutes_between(start: time, end: time) -> int:
    return int((datetime.combine(date.min, end) - datetime.combine(date.min, start)).total_seconds() // 60)


def _seed() -> dict[str, User]:
    Base.metadata.create_all(bind=engine)
    first_day = _next_monday(date.today())

    with SessionLocal() as session:
        users = {key: _upsert_user(session, *item) for key, item in DEMO_ACCOUNTS.items()}
        students = [
            _upsert_user(session, f"Demo Student {index:02d}", f"student{index:02d}.demo@examdesk.local", UserRole.student)
            for index in range(1, STUDENT_COUNT + 1)
        ]
        rooms = {name: _upsert_room(session, name, building, capacity) for name, building, capacity in ROOMS}
        for code, name in SUBJECTS:
            if session.get(Subject, code) is None:
                session.add(Subject(code=code, name=name))
        session.flush()

        exams: list[Exam] = []
        for title, subject_code, offset, start, end, room_name, max_students in EXAMS:
            exam_date = first_day + timedelta(days=offset)
            exam = session.execute(
                select(Exam).where(Exam.title == title, Exam.exam_date == exam_date)
            ).unique().scalar_one_or_none()
            if exam is None:
                start_time, end_time = time.fromisoformat(start), time.fromisoformat(end)
                exam = Exam(
                    title=title,
                    subject_code=subject_code,
                    exam_date=exam_date,
                    start_time=start_time,
                    end_time=end_time,
                    duration_minutes=_minutes_between(start_time, end_time),
                    max_students=max_students,
                    room_id=rooms[room_name].id,
                    method=ExamMethod.essay,
                    status=ExamStatus.published,
                )
                session.add(exam)
            exams.append(exam)
        session.flush()

        # 25 students in a 20-seat lab gives the capacity report an overflow.
        lab_exam = exams[2]
        lab_exam.max_students = 25
        for student in students[:25]:
            exists = session.execute(
                select(Registration).where(Registration.exam_id == lab_exam.id, Registration.student_id == student.id)
            ).scalar_one_or_none()
            if exists is None:
                session.add(Registration(exam_id=lab_exam.id, student_id=student.id, status=RegistrationStatus.approved))

        main_exam = exams[0]
        exists = session.execute(
            select(ExamProctor).where(ExamProctor.exam_id == main_exam.id, ExamProctor.proctor_id == users["teacher_1"].id)
        ).unique().scalar_one_or_none()
        if exists is None:
            session.add(ExamProctor(exam_id=main_exam.id, proctor_id=users["teacher_1"].id, role=ProctorRole.main))

        session.commit()
        for user in users.values():
            session.refresh(user)
        return users


def _print_accounts(items: Iterable[tuple[str, User]]) -> None:
    print("\nDemo accounts ready (tokens are valid for the configured expiry):")
    for label, user in items:
        print(f"  - {label}: {user.email} | role={user.role.value}")
        print(f"    Authorization: Bearer {create_access_token(user.id)}")
    print("\nTry:")
    print("  GET /api/schedule/conflicts as admin  -> one room clash, one over-full room")
    print("  GET /api/schedule/my-proctor-exams as teacher_1")


def main() -> None:
    users = _seed()
    _print_accounts(users.items())


if __name__ == "__main__":
    main()
