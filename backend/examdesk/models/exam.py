from datetime import date, datetime, time
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    SmallInteger,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from examdesk.db.base import Base
from examdesk.models.room import Room
from examdesk.models.subject import Subject


class ExamStatus(str, Enum):
    draft = "draft"
    published = "published"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class ExamMethod(str, Enum):
    essay = "essay"
    multiple_choices = "multiple_choices"


class Exam(Base):
    __tablename__ = "exams"
    __table_args__ = (CheckConstraint("end_time > start_time", name="ck_exams_time_order"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    subject_code: Mapped[str] = mapped_column(ForeignKey("subjects.code"), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    exam_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    max_students: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=20)
    room_id: Mapped[int | None] = mapped_column(ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True, index=True)
    method: Mapped[ExamMethod] = mapped_column(SAEnum(ExamMethod, name="exam_method"), nullable=False)
    status: Mapped[ExamStatus] = mapped_column(
        SAEnum(ExamStatus, name="exam_status"),
        nullable=False,
        default=ExamStatus.draft,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    room: Mapped[Room | None] = relationship(lazy="joined")
    subject: Mapped[Subject | None] = relationship(lazy="joined")
