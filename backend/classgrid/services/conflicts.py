from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from classgrid.core.exceptions import ConflictStateError, ResourceNotFoundError
from classgrid.core.security import Actor
from classgrid.db.unit_of_work import commit_or_raise
from classgrid.models.conflict import AffectedEntry, AffectedEntryStatus, Conflict, ConflictStatus, ResolutionMethod
from classgrid.models.room import Room
from classgrid.models.section import Section
from classgrid.models.subject import Subject
from classgrid.models.timetable import ScheduleItem
from classgrid.schemas.conflict import RegenerationStatus, ResolutionSummary

logger = logging.getLogger(__name__)


@dataclass
class EntryContext:
    entry: AffectedEntry
    item: ScheduleItem | None
    section: Section | None
    subject: Subject | None

    @property
    def displacement_error(self) -> str | None:
        """Why the schedule item can no longer be re-homed under this conflict, if it can't."""
        if self.item is None:
            return "Schedule item not found"
        if not self.item.is_affected or self.item.conflict_id != self.entry.conflict_id:
            return "Schedule item is no longer affected by this conflict"
        return None


def get_conflict(db: Session, conflict_id: str) -> Conflict:
    conflict = db.execute(
        select(Conflict).where(Conflict.id == conflict_id).options(selectinload(Conflict.entries))
    ).scalar_one_or_none()
    if conflict is None:
        raise ResourceNotFoundError("Conflict", conflict_id)
    return conflict


def list_conflicts(db: Session, *, status: ConflictStatus | None = None, room_id: str | None = None) -> list[Conflict]:
    query = select(Conflict).options(selectinload(Conflict.entries)).order_by(Conflict.created_at.desc())
    if status is not None:
        query = query.where(Conflict.status == status)
    if room_id:
        query = query.where(Conflict.room_id == room_id)
    return list(db.execute(query).scalars())


def get_entry(conflict: Conflict, entry_id: str) -> AffectedEntry:
    for entry in conflict.entries:
        if entry.id == entry_id:
            return entry
    raise ResourceNotFoundError("Affected entry", entry_id)


def get_room(db: Session, room_id: str) -> Room:
    room = db.get(Room, room_id)
    if room is None:
        raise ResourceNotFoundError("Room", room_id)
    return room


def entry_context(db: Session, entry: AffectedEntry) -> EntryContext:
    item = db.get(ScheduleItem, entry.schedule_item_id)
    section_id = item.timetable.section_id if item is not None else entry.section_id
    subject_id = item.subject_id if item is not None else entry.subject_id
    return EntryContext(
        entry=entry,
        item=item,
        section=db.get(Section, section_id) if section_id else None,
        subject=db.get(Subject, subject_id) if subject_id else None,
    )


def require_active(conflict: Conflict, action: str) -> None:
    if conflict.status != ConflictStatus.active:
        raise ConflictStateError(
            f"Cannot {action}: conflict is {conflict.status.value}",
            details={"conflict_id": conflict.id, "status": conflict.status.value},
        )


def close_if_resolved(conflict: Conflict, *, actor: Actor, method: ResolutionMethod) -> bool:
    """Move an active conflict to resolved once every entry has a new room."""
    conflict.refresh_summary()
    if conflict.status != ConflictStatus.active or not conflict.is_fully_resolved:
        return False
    conflict.status = ConflictStatus.resolved
    conflict.resolved_at = datetime.now(timezone.utc)
    conflict.resolved_by = actor.id
    conflict.resolution_method = method
    return True


def release_items(db: Session, conflict: Conflict) -> int:
    """Clear the affected flags of items still held by ``conflict``; entries keep their status."""
    items = db.execute(
        select(ScheduleItem).where(ScheduleItem.conflict_id == conflict.id, ScheduleItem.is_affected.is_(True))
    ).scalars().all()
    now = datetime.now(timezone.utc)
    for item in items:
        item.clear_affected()
        item.timetable.updated_at = now
    return len(items)


def dismiss_conflict(db: Session, conflict_id: str, *, actor: Actor) -> Conflict:
    conflict = get_conflict(db, conflict_id)
    require_active(conflict, "dismiss conflict")
    conflict.status = ConflictStatus.dismissed
    conflict.resolved_at = datetime.now(timezone.utc)
    conflict.resolved_by = actor.id
    conflict.resolution_method = ResolutionMethod.dismissed
    released = release_items(db, conflict)
    commit_or_raise(db, f"dismiss conflict {conflict.id}")
    db.refresh(conflict)
    logger.info(
        "Conflict %s dismissed by %s with %d unresolved entries; released %d schedule items",
        conflict.id,
        actor.id,
        conflict.unresolved,
        released,
    )
    return conflict


def regeneration_status(db: Session, conflict_id: str) -> RegenerationStatus:
    conflict = get_conflict(db, conflict_id)
    counts = {status: 0 for status in AffectedEntryStatus}
    for entry in conflict.entries:
        counts[entry.status] += 1
    return RegenerationStatus(
        conflict_id=conflict.id,
        status=conflict.status,
        pending=counts[AffectedEntryStatus.pending],
        requires_manual=counts[AffectedEntryStatus.requires_manual],
        resolved=counts[AffectedEntryStatus.resolved],
        resolution_summary=ResolutionSummary(**conflict.summary()),
    )
