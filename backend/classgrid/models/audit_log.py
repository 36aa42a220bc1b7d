from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Integer, JSON, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from classgrid.core.exceptions import AuditLogImmutableError
from classgrid.db.base import Base

SYSTEM_ACTOR_ID = "system"


class ChangeType(str, Enum):
    auto_regeneration = "auto_regeneration"
    manual_adjustment = "manual_adjustment"
    forced_update = "forced_update"


class AuditLog(Base):
    """Append-only record of a room reassignment."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True
    )
    admin_id: Mapped[str] = mapped_column(String(36), nullable=False, default=SYSTEM_ACTOR_ID, index=True)
    admin_name: Mapped[str] = mapped_column(String(200), nullable=False)
    timetable_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    schedule_item_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    conflict_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    change_type: Mapped[ChangeType] = mapped_column(SAEnum(ChangeType, name="audit_change_type"), nullable=False, index=True)
    old_room_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    old_room_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    old_room_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    new_room_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    new_room_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    new_room_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    validation_warnings_overridden: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # ``metadata`` is reserved on declarative classes.
    details: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target: AuditLog) -> None:
    raise AuditLogImmutableError(target.id)


@event.listens_for(AuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target: AuditLog) -> None:
    raise AuditLogImmutableError(target.id)
