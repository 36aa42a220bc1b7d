import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from classgrid.db.base import Base


class Day(str, Enum):
    monday = "Monday"
    tuesday = "Tuesday"
    wednesday = "Wednesday"
    thursday = "Thursday"
    friday = "Friday"
    saturday = "Saturday"

    @property
    def index(self) -> int:
        return list(Day).index(self)


class Timetable(Base):
    """One generated version of a section's weekly schedule."""

    __tablename__ = "timetables"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    section_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sections.id", ondelete="CASCADE"), index=True, nullable=False
    )
    version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0")
    previous_version_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("timetables.id", ondelete="SET NULL"), nullable=True
    )
    revision_history: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    generated_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    items: Mapped[list["ScheduleItem"]] = relationship(
        back_populates="timetable",
        cascade="all, delete-orphan",
        order_by=lambda: (ScheduleItem.day_index, ScheduleItem.period),
    )

    __mapper_args__ = {"version_id_col": lock_version}


class ScheduleItem(Base):
    __tablename__ = "schedule_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    timetable_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("timetables.id", ondelete="CASCADE"), index=True, nullable=False
    )
    day: Mapped[Day] = mapped_column(SAEnum(Day, name="schedule_day"), nullable=False)
    # Mirrors ``day`` so rows sort in calendar order rather than alphabetically.
    day_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    period: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    faculty_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    room_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    is_affected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    conflict_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    original_room_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    affected_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    affected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    requires_manual_assignment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    timetable: Mapped[Timetable] = relationship(back_populates="items")

    def mark_affected(self, *, conflict_id: str | None, room_id: str, reason: str, at: datetime) -> None:
        self.is_affected = True
        self.conflict_id = conflict_id
        self.original_room_id = room_id
        self.affected_reason = reason
        self.affected_at = at

    def clear_affected(self) -> None:
        self.is_affected = False
        self.conflict_id = None
        self.original_room_id = None
        self.affected_reason = None
        self.affected_at = None
        self.requires_manual_assignment = False
