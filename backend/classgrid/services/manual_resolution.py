from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from classgrid.core.config import get_settings
from classgrid.core.exceptions import ConflictStateError, InputError, ResourceNotFoundError
from classgrid.core.security import Actor
from classgrid.db.unit_of_work import commit_or_raise
from classgrid.models.audit_log import ChangeType
from classgrid.models.conflict import AffectedEntryStatus, Conflict, ConflictStatus, ResolutionMethod
from classgrid.models.room import Room, RoomStatus
from classgrid.models.section import Section
from classgrid.models.subject import Subject
from classgrid.models.timetable import ScheduleItem
from classgrid.schemas.conflict import (
    ForceUpdateResult,
    ManualAdjustResult,
    ManualAssignmentOutcome,
    ManualAssignmentRequest,
    ResolutionSummary,
    RoomSuggestion,
    SuggestedRoom,
    ValidationResult,
)
from classgrid.services.audit import record_room_change
from classgrid.services.conflicts import (
    EntryContext,
    close_if_resolved,
    entry_context,
    get_conflict,
    get_entry,
    get_room,
    require_active,
)
from classgrid.services.events import RESOLUTION_SUMMARY, ROOM_CHANGED, EventPublisher, event_publisher
from classgrid.services.occupancy import room_is_free, room_utilization_percent
from classgrid.services.room_scorer import match_quality, score_room
from classgrid.services.validation import validate_room_assignment

logger = logging.getLogger(__name__)


def _displaced_context(db: Session, conflict_id: str, entry_id: str) -> tuple[Conflict, EntryContext]:
    conflict = get_conflict(db, conflict_id)
    entry = get_entry(conflict, entry_id)
    context = entry_context(db, entry)
    if context.item is None:
        raise ResourceNotFoundError("Schedule item", entry.schedule_item_id)
    return conflict, context


def validate_assignment(db: Session, conflict_id: str, entry_id: str, new_room_id: str) -> ValidationResult:
    _, context = _displaced_context(db, conflict_id, entry_id)
    room = get_room(db, new_room_id)
    return validate_room_assignment(db, context.item, room, section=context.section, subject=context.subject)


def suggest_rooms(db: Session, conflict_id: str, entry_id: str, limit: int | None = None) -> list[RoomSuggestion]:
    """Ranked alternatives for one displaced class: free rooms first, then by score."""
    conflict, context = _displaced_context(db, conflict_id, entry_id)
    if context.subject is None or context.section is None:
        raise InputError(
            "Cannot suggest rooms without the subject and section of the entry",
            details={"entry_id": entry_id},
        )

    item = context.item
    rooms = db.execute(
        select(Room).where(Room.status == RoomStatus.active, Room.id != conflict.room_id).order_by(Room.code)
    ).scalars().all()

    ranked: list[tuple[tuple, RoomSuggestion]] = []
    for room in rooms:
        utilization = room_utilization_percent(db, room.id)
        result = score_room(room, context.subject, context.section, utilization_percent=utilization)
        if not result.is_valid:
            continue
        available = room_is_free(db, room.id, item.day, item.period, exclude_item_id=item.id)
        suggestion = RoomSuggestion(
            room=SuggestedRoom(
                id=room.id,
                code=room.code,
                name=room.name,
                type=room.type.value,
                capacity=room.capacity,
                equipment=list(room.equipment or []),
                building=room.building,
                floor=room.floor,
            ),
            score=result.score,
            score_breakdown=result.breakdown,
            is_available=available,
            utilization=utilization,
            warnings=result.warnings,
            match_quality=match_quality(result.score),
        )
        ranked.append(((not available, -result.score, room.code), suggestion))

    ranked.sort(key=lambda pair: pair[0])
    limit = limit or get_settings().room_suggestion_limit
    return [suggestion for _, suggestion in ranked[:limit]]


def _move_item(
    db: Session,
    item: ScheduleItem,
    new_room: Room,
    *,
    actor: Actor,
    change_type: ChangeType,
    reason: str,
    conflict: Conflict | None,
    validation: ValidationResult,
):
    old_room_id = item.original_room_id if item.is_affected and item.original_room_id else item.room_id
    old_room = db.get(Room, old_room_id) if old_room_id else None
    now = datetime.now(timezone.utc)

    item.room_id = new_room.id
    if item.is_affected:
        item.clear_affected()
    item.requires_manual_assignment = False
    item.timetable.updated_at = now

    overridden = validation.issue_messages() if change_type == ChangeType.forced_update else []
    record = record_room_change(
        db,
        actor=actor,
        change_type=change_type,
        item=item,
        old_room=old_room,
        new_room=new_room,
        reason=reason,
        conflict_id=conflict.id if conflict else None,
        warnings_overridden=overridden,
    )
    return record, old_room, now


def _publish_room_changed(
    publisher: EventPublisher, item: ScheduleItem, old_room: Room | None, new_room: Room, conflict: Conflict | None
) -> None:
    publisher.publish(
        ROOM_CHANGED,
        {
            "conflict_id": conflict.id if conflict else None,
            "schedule_item_id": item.id,
            "timetable_id": item.timetable_id,
            "day": item.day.value,
            "period": item.period,
            "old_room_code": old_room.code if old_room else None,
            "new_room_code": new_room.code,
            "new_room_name": new_room.name,
        },
    )


def _adjust_one(
    db: Session,
    conflict: Conflict,
    assignment: ManualAssignmentRequest,
    *,
    actor: Actor,
    force: bool,
    publisher: EventPublisher,
) -> ManualAssignmentOutcome:
    try:
        entry = get_entry(conflict, assignment.entry_id)
    except ResourceNotFoundError as exc:
        return ManualAssignmentOutcome(entry_id=assignment.entry_id, success=False, error=exc.message)
    if entry.status == AffectedEntryStatus.resolved:
        return ManualAssignmentOutcome(entry_id=entry.id, success=False, error="Entry is already resolved")

    context = entry_context(db, entry)
    problem = context.displacement_error
    if problem is not None:
        return ManualAssignmentOutcome(entry_id=entry.id, success=False, error=problem)

    new_room = db.get(Room, assignment.new_room_id)
    if new_room is None:
        return ManualAssignmentOutcome(entry_id=entry.id, success=False, error="Room not found")

    validation = validate_room_assignment(
        db, context.item, new_room, section=context.section, subject=context.subject
    )
    if not validation.is_valid and not (force and validation.can_force_update):
        return ManualAssignmentOutcome(
            entry_id=entry.id,
            success=False,
            error="Validation failed" if validation.errors else "Validation warnings require force",
            validation=validation,
        )

    change_type = ChangeType.manual_adjustment if validation.is_valid else ChangeType.forced_update
    _, old_room, now = _move_item(
        db,
        context.item,
        new_room,
        actor=actor,
        change_type=change_type,
        reason="Manual room reassignment to resolve conflict",
        conflict=conflict,
        validation=validation,
    )
    entry.mark_resolved(
        room_id=new_room.id,
        room_code=new_room.code,
        actor_id=actor.id,
        method=ResolutionMethod.manual_adjustment,
        at=now,
    )
    conflict.refresh_summary()
    commit_or_raise(db, f"reassign {entry.subject_name} to room {new_room.code}")
    logger.info(
        "%s moved %s (%s period %d) to %s via %s",
        actor.id,
        entry.subject_name,
        entry.day.value,
        entry.period,
        new_room.code,
        change_type.value,
    )
    _publish_room_changed(publisher, context.item, old_room, new_room, conflict)
    return ManualAssignmentOutcome(
        entry_id=entry.id,
        success=True,
        change_type=change_type.value,
        new_room_code=new_room.code,
        validation=validation,
    )


def manual_adjust(
    db: Session,
    conflict_id: str,
    assignments: list[ManualAssignmentRequest],
    *,
    actor: Actor,
    force: bool = False,
    publisher: EventPublisher = event_publisher,
) -> ManualAdjustResult:
    """Apply admin-chosen rooms to entries of an active conflict.

    Each assignment is validated and committed on its own; a rejected one is
    reported without affecting the others.
    """
    conflict = get_conflict(db, conflict_id)
    require_active(conflict, "apply manual adjustments")

    results = [
        _adjust_one(db, conflict, assignment, actor=actor, force=force, publisher=publisher)
        for assignment in assignments
    ]

    if close_if_resolved(conflict, actor=actor, method=ResolutionMethod.manual_adjustment):
        logger.info("Conflict %s resolved by manual adjustment", conflict.id)
    commit_or_raise(db, f"update conflict {conflict.id}")
    db.refresh(conflict)

    succeeded = sum(1 for outcome in results if outcome.success)
    publisher.publish(
        RESOLUTION_SUMMARY,
        {
            "conflict_id": conflict.id,
            "method": "Manual Adjustment",
            "actor_id": actor.id,
            "room_code": conflict.room_code,
            "total": len(results),
            "resolved": succeeded,
            "failed": len(results) - succeeded,
        },
    )
    return ManualAdjustResult(
        conflict_id=conflict.id,
        conflict_status=conflict.status,
        results=results,
        resolution_summary=ResolutionSummary(**conflict.summary()),
    )


def force_update(
    db: Session,
    schedule_item_id: str,
    new_room_id: str,
    *,
    actor: Actor,
    reason: str,
    publisher: EventPublisher = event_publisher,
) -> ForceUpdateResult:
    """Move a class outside any conflict, overriding the overridable checks."""
    item = db.get(ScheduleItem, schedule_item_id)
    if item is None:
        raise ResourceNotFoundError("Schedule item", schedule_item_id)
    owner = db.get(Conflict, item.conflict_id) if item.is_affected and item.conflict_id else None
    if owner is not None and owner.status == ConflictStatus.active:
        raise ConflictStateError(
            "Schedule item is part of an active conflict; use manual adjustment instead",
            details={"schedule_item_id": item.id, "conflict_id": item.conflict_id},
        )
    new_room = get_room(db, new_room_id)
    if new_room.id == item.room_id:
        raise InputError("Class is already in this room", details={"room_id": new_room.id})

    section = db.get(Section, item.timetable.section_id)
    subject = db.get(Subject, item.subject_id) if item.subject_id else None
    validation = validate_room_assignment(db, item, new_room, section=section, subject=subject)
    if not validation.can_force_update and not validation.is_valid:
        raise ConflictStateError(
            "Room assignment has errors that cannot be overridden",
            details={"errors": [issue.model_dump() for issue in validation.errors]},
        )

    record, old_room, _ = _move_item(
        db,
        item,
        new_room,
        actor=actor,
        change_type=ChangeType.forced_update,
        reason=reason,
        conflict=None,
        validation=validation,
    )
    commit_or_raise(db, f"force room {new_room.code} onto schedule item {item.id}")
    logger.warning(
        "%s forced schedule item %s into room %s overriding %d issue(s)",
        actor.id,
        item.id,
        new_room.code,
        len(record.validation_warnings_overridden),
    )
    _publish_room_changed(publisher, item, old_room, new_room, None)
    return ForceUpdateResult(
        schedule_item_id=item.id,
        old_room_code=old_room.code if old_room else None,
        new_room_code=new_room.code,
        audit_log_id=record.id,
        warnings_overridden=list(record.validation_warnings_overridden),
    )
