import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from classgrid.db.base import Base


class SubjectType(str, Enum):
    theory = "Theory"
    lab = "Lab"
    project = "Project"


class Subject(Base):
    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[SubjectType] = mapped_column(
        SAEnum(SubjectType, name="subject_type"), nullable=False, default=SubjectType.theory
    )
    weekly_periods: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    required_equipment: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    requires_lab: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_lab(self) -> bool:
        return self.type == SubjectType.lab

    @property
    def needs_lab_room(self) -> bool:
        return self.type == SubjectType.lab or self.requires_lab

    @property
    def block_size(self) -> int:
        return 2 if self.is_lab else 1
