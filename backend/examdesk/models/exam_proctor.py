from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from examdesk.db.base import Base
from examdesk.models.exam import Exam
from examdesk.models.user import User


class ProctorRole(str, Enum):
    main = "main"
    assistant = "assistant"


class ExamProctor(Base):
    __tablename__ = "exam_proctors"
    __table_args__ = (UniqueConstraint("exam_id", "proctor_id", name="uq_exam_proctors_exam_proctor"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    exam_id: Mapped[int] = mapped_column(ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    proctor_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role: Mapped[ProctorRole] = mapped_column(
        SAEnum(ProctorRole, name="proctor_role"),
        nullable=False,
        default=ProctorRole.assistant,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    exam: Mapped[Exam] = relationship()
    proctor: Mapped[User] = relationship(lazy="joined")
