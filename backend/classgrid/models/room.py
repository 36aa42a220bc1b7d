import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from classgrid.db.base import Base


class RoomType(str, Enum):
    classroom = "Classroom"
    lab = "Lab"


class RoomStatus(str, Enum):
    active = "active"
    in_maintenance = "in_maintenance"
    reserved = "reserved"
    closed = "closed"
    offline = "offline"


UNAVAILABLE_ROOM_STATUSES = frozenset(
    {RoomStatus.in_maintenance, RoomStatus.reserved, RoomStatus.closed, RoomStatus.offline}
)


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    building: Mapped[str | None] = mapped_column(String(200), nullable=True)
    floor: Mapped[int | None] = mapped_column(Integer, nullable=True)
    type: Mapped[RoomType] = mapped_column(SAEnum(RoomType, name="room_type"), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    equipment: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[RoomStatus] = mapped_column(
        SAEnum(RoomStatus, name="room_status"), nullable=False, default=RoomStatus.active, index=True
    )
    allow_theory_class: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_lab_class: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_available(self) -> bool:
        return self.status == RoomStatus.active

    def supports(self, *, lab_session: bool) -> bool:
        if lab_session:
            return self.type == RoomType.lab or self.allow_lab_class
        return self.type == RoomType.classroom or (self.type == RoomType.lab and self.allow_theory_class)
