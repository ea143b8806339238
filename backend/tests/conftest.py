import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

from datetime import date, time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from examdesk.api.deps import get_db, get_notifier
from examdesk.core.security import create_access_token
from examdesk.db.base import Base
from examdesk.main import app
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
from examdesk.services.notifications import DatabaseNotifier


class Seeder:
    """Writes rows straight through the test session so API tests can start from a known schedule."""

    def __init__(self, db):
        self.db = db

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def user(self, name, role="student", is_active=True):
        email = name.lower().replace(" ", ".") + "@example.com"
        return self._save(User(full_name=name, email=email, role=UserRole(role), is_active=is_active))

    def room(self, name="A101", capacity=30):
        return self._save(Room(name=name, capacity=capacity, building="Main"))

    def subject(self, code="MATH101", name="Calculus I"):
        existing = self.db.get(Subject, code)
        if existing is not None:
            return existing
        return self._save(Subject(code=code, name=name))

    def exam(
        self,
        title,
        start="09:00",
        end="11:00",
        *,
        on=date(2026, 1, 12),
        room=None,
        max_students=30,
        status="published",
        subject_code="MATH101",
    ):
        self.subject(subject_code)
        start_time = time.fromisoformat(start)
        end_time = time.fromisoformat(end)
        duration = (end_time.hour * 60 + end_time.minute) - (start_time.hour * 60 + start_time.minute)
        return self._save(
            Exam(
                title=title,
                subject_code=subject_code,
                exam_date=on,
                start_time=start_time,
                end_time=end_time,
                duration_minutes=duration,
                max_students=max_students,
                room_id=room.id if room is not None else None,
                method=ExamMethod.essay,
                status=ExamStatus(status),
            )
        )

    def register(self, exam, student, status="approved"):
        return self._save(Registration(exam_id=exam.id, student_id=student.id, status=RegistrationStatus(status)))

    def proctor(self, exam, teacher, role="assistant"):
        return self._save(ExamProctor(exam_id=exam.id, proctor_id=teacher.id, role=ProctorRole(role)))


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def seed(db):
    return Seeder(db)


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: DatabaseNotifier(session_factory)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    def build(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return build
