from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from examdesk.db.base import Base


class Subject(Base):
    __tablename__ = "subjects"

    code: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
