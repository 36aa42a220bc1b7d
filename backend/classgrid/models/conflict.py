import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from classgrid.db.base import Base
from classgrid.models.room import RoomStatus
from classgrid.models.timetable import Day


class ConflictStatus(str, Enum):
    active = "active"
    resolved = "resolved"
    dismissed = "dismissed"


class AffectedEntryStatus(str, Enum):
    pending = "pending"
    resolved = "resolved"
    requires_manual = "requires_manual"


class ResolutionMethod(str, Enum):
    auto_regeneration = "auto_regeneration"
    manual_adjustment = "manual_adjustment"
    dismissed = "dismissed"


class Conflict(Base):
    """Opened when a room hosting published classes becomes unavailable."""

    __tablename__ = "conflicts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    room_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    room_code: Mapped[str] = mapped_column(String(50), nullable=False)
    room_name: Mapped[str] = mapped_column(String(100), nullable=False)
    original_status: Mapped[RoomStatus] = mapped_column(SAEnum(RoomStatus, name="room_status"), nullable=False)
    new_status: Mapped[RoomStatus] = mapped_column(SAEnum(RoomStatus, name="room_status"), nullable=False)
    status: Mapped[ConflictStatus] = mapped_column(
        SAEnum(ConflictStatus, name="conflict_status"), nullable=False, default=ConflictStatus.active, index=True
    )
    total_affected: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    auto_resolved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    manually_resolved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unresolved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    resolution_method: Mapped[ResolutionMethod | None] = mapped_column(
        SAEnum(ResolutionMethod, name="resolution_method"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    entries: Mapped[list["AffectedEntry"]] = relationship(
        back_populates="conflict",
        cascade="all, delete-orphan",
        order_by=lambda: AffectedEntry.position,
    )

    __mapper_args__ = {"version_id_col": lock_version}

    @property
    def pending_count(self) -> int:
        return sum(1 for entry in self.entries if entry.status == AffectedEntryStatus.pending)

    @property
    def is_fully_resolved(self) -> bool:
        return all(entry.status == AffectedEntryStatus.resolved for entry in self.entries)

    def refresh_summary(self) -> None:
        self.total_affected = len(self.entries)
        self.auto_resolved = sum(
            1
            for entry in self.entries
            if entry.status == AffectedEntryStatus.resolved
            and entry.resolution_method == ResolutionMethod.auto_regeneration
        )
        self.manually_resolved = sum(
            1
            for entry in self.entries
            if entry.status == AffectedEntryStatus.resolved
            and entry.resolution_method == ResolutionMethod.manual_adjustment
        )
        self.unresolved = sum(1 for entry in self.entries if entry.status != AffectedEntryStatus.resolved)

    def summary(self) -> dict[str, int]:
        return {
            "total_affected": self.total_affected,
            "auto_resolved": self.auto_resolved,
            "manually_resolved": self.manually_resolved,
            "unresolved": self.unresolved,
        }


class AffectedEntry(Base):
    """Snapshot of one schedule item displaced by a conflict.

    Names are copied rather than referenced so the record stays readable after
    the subject, faculty or section is renamed or removed.
    """

    __tablename__ = "conflict_affected_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    conflict_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("conflicts.id", ondelete="CASCADE"), index=True, nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timetable_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    schedule_item_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    subject_name: Mapped[str] = mapped_column(String(200), nullable=False, default="Unknown Subject")
    faculty_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    faculty_name: Mapped[str] = mapped_column(String(200), nullable=False, default="Unknown Faculty")
    section_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    section_name: Mapped[str] = mapped_column(String(100), nullable=False, default="Unknown Section")
    day: Mapped[Day] = mapped_column(SAEnum(Day, name="schedule_day"), nullable=False)
    period: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    status: Mapped[AffectedEntryStatus] = mapped_column(
        SAEnum(AffectedEntryStatus, name="affected_entry_status"),
        nullable=False,
        default=AffectedEntryStatus.pending,
        index=True,
    )
    resolution_method: Mapped[ResolutionMethod | None] = mapped_column(
        SAEnum(ResolutionMethod, name="resolution_method"), nullable=True
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    new_room_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    new_room_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    conflict: Mapped[Conflict] = relationship(back_populates="entries")

    def mark_resolved(
        self, *, room_id: str, room_code: str, actor_id: str, method: ResolutionMethod, at: datetime
    ) -> None:
        self.status = AffectedEntryStatus.resolved
        self.resolution_method = method
        self.resolved_at = at
        self.resolved_by = actor_id
        self.new_room_id = room_id
        self.new_room_code = room_code
