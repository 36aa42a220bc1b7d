from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from classgrid.core.security import SYSTEM_ACTOR, Actor
from classgrid.db.unit_of_work import commit_or_raise
from classgrid.models.audit_log import ChangeType
from classgrid.models.conflict import AffectedEntry, AffectedEntryStatus, Conflict, ResolutionMethod
from classgrid.models.room import Room, RoomStatus
from classgrid.models.timetable import ScheduleItem
from classgrid.schemas.conflict import FailedEntry, RegenerationReport, ResolutionSummary, RoomAssignment
from classgrid.services.audit import record_room_change
from classgrid.services.conflicts import EntryContext, close_if_resolved, entry_context, get_conflict, require_active
from classgrid.services.events import RESOLUTION_SUMMARY, ROOM_CHANGED, EventPublisher, event_publisher
from classgrid.services.occupancy import room_is_free, room_utilization_percent
from classgrid.services.room_scorer import RoomScore, pick_best_room

logger = logging.getLogger(__name__)

AUTO_REASON = "Automatic room reassignment due to room status change"


def _block_key(item: ScheduleItem) -> tuple:
    # Periods of one lab block share timetable, day, subject and faculty.
    return item.timetable_id, item.day, item.subject_id, item.faculty_id


class AutoRegenerationEngine:
    """Re-homes the pending entries of a conflict into the best free room.

    Entries are processed one at a time and each reassignment is committed
    before the next entry looks for a room, so later entries see the rooms
    taken by earlier ones. An entry with no valid room is flagged for manual
    assignment; it never aborts the batch.
    """

    def __init__(self, db: Session, publisher: EventPublisher = event_publisher) -> None:
        self.db = db
        self.publisher = publisher

    def resolve(self, conflict_id: str, actor: Actor | None = None) -> RegenerationReport:
        actor = actor or SYSTEM_ACTOR
        started = time.perf_counter()
        conflict = get_conflict(self.db, conflict_id)
        require_active(conflict, "run auto-regeneration")

        excluded = {conflict.room_id}
        old_room = self.db.get(Room, conflict.room_id)
        assignments: list[RoomAssignment] = []
        block_rooms: dict[tuple, dict[int, Room]] = {}
        failed: list[FailedEntry] = []

        for entry in list(conflict.entries):
            if entry.status != AffectedEntryStatus.pending:
                continue

            context = entry_context(self.db, entry)
            problem = context.displacement_error
            if problem is not None:
                logger.warning("Skipping entry %s of conflict %s: %s", entry.id, conflict.id, problem)
                failed.append(self._failed(entry, problem))
                continue

            choice = None
            if context.section is not None and context.subject is not None:
                block = _block_key(context.item)
                placed = block_rooms.get(block, {})
                preferred = placed.get(context.item.period - 1) or placed.get(context.item.period + 1)
                choice = self.find_replacement_room(context, excluded, preferred=preferred)

            if choice is None:
                reason = (
                    "No suitable room available"
                    if context.section is not None and context.subject is not None
                    else "Subject or section not found"
                )
                self._flag_for_manual(conflict, context)
                failed.append(self._failed(entry, reason))
                logger.info("No replacement room for %s (%s period %d)", entry.subject_name, entry.day.value, entry.period)
                continue

            new_room, score = choice
            self._reassign(conflict, context, old_room, new_room, score, actor)
            block_rooms.setdefault(block, {})[context.item.period] = new_room
            assignments.append(
                RoomAssignment(
                    subject=entry.subject_name,
                    section=entry.section_name,
                    day=entry.day,
                    period=entry.period,
                    old_room=conflict.room_code,
                    new_room=new_room.code,
                )
            )

        if close_if_resolved(conflict, actor=actor, method=ResolutionMethod.auto_regeneration):
            logger.info("Conflict %s resolved by auto-regeneration", conflict.id)
        commit_or_raise(self.db, f"update conflict {conflict.id}")
        self.db.refresh(conflict)

        report = self._report(conflict, assignments, failed, started)
        logger.info(
            "Auto-regeneration for conflict %s finished in %dms: %d resolved, %d failed",
            conflict.id,
            report.duration_ms,
            report.resolved,
            report.failed,
        )
        self.publisher.publish(
            RESOLUTION_SUMMARY,
            {
                "conflict_id": conflict.id,
                "method": "Auto-Regeneration",
                "actor_id": actor.id,
                "room_code": conflict.room_code,
                "total": report.total_affected,
                "resolved": report.resolved,
                "failed": report.failed,
                "failed_entries": [entry.model_dump(mode="json") for entry in report.failed_entries],
            },
        )
        return report

    def find_replacement_room(
        self, context: EntryContext, excluded: set[str], preferred: Room | None = None
    ) -> tuple[Room, RoomScore] | None:
        """Best free room for the entry; ``preferred`` wins whenever it is free and valid."""
        item = context.item
        rooms = self.db.execute(
            select(Room).where(Room.status == RoomStatus.active, Room.id.not_in(excluded)).order_by(Room.code)
        ).scalars().all()
        # Re-checked against the database on every entry; earlier entries may have taken a room.
        free = [room for room in rooms if room_is_free(self.db, room.id, item.day, item.period, exclude_item_id=item.id)]
        if preferred is not None and any(room.id == preferred.id for room in free):
            kept = pick_best_room(
                [preferred],
                context.subject,
                context.section,
                utilization=lambda room: room_utilization_percent(self.db, room.id),
            )
            if kept is not None:
                return kept
        return pick_best_room(
            free,
            context.subject,
            context.section,
            utilization=lambda room: room_utilization_percent(self.db, room.id),
        )

    def _reassign(
        self,
        conflict: Conflict,
        context: EntryContext,
        old_room: Room | None,
        new_room: Room,
        score: RoomScore,
        actor: Actor,
    ) -> None:
        now = datetime.now(timezone.utc)
        item = context.item
        entry = context.entry

        item.room_id = new_room.id
        item.clear_affected()
        item.timetable.updated_at = now
        entry.mark_resolved(
            room_id=new_room.id,
            room_code=new_room.code,
            actor_id=actor.id,
            method=ResolutionMethod.auto_regeneration,
            at=now,
        )
        conflict.refresh_summary()
        record_room_change(
            self.db,
            actor=Actor(id=actor.id, name=SYSTEM_ACTOR.name, role=actor.role),
            change_type=ChangeType.auto_regeneration,
            item=item,
            old_room=old_room,
            new_room=new_room,
            reason=AUTO_REASON,
            conflict_id=conflict.id,
            details={
                "original_status": conflict.original_status.value,
                "new_status": conflict.new_status.value,
                "subject_name": entry.subject_name,
                "faculty_name": entry.faculty_name,
                "section_name": entry.section_name,
                "score": score.score,
            },
        )
        commit_or_raise(self.db, f"reassign {entry.subject_name} to room {new_room.code}")

        self.publisher.publish(
            ROOM_CHANGED,
            {
                "conflict_id": conflict.id,
                "schedule_item_id": item.id,
                "section_id": entry.section_id,
                "section_name": entry.section_name,
                "subject_name": entry.subject_name,
                "faculty_id": entry.faculty_id,
                "day": entry.day.value,
                "period": entry.period,
                "old_room_code": conflict.room_code,
                "new_room_code": new_room.code,
                "new_room_name": new_room.name,
            },
        )

    def _flag_for_manual(self, conflict: Conflict, context: EntryContext) -> None:
        context.item.requires_manual_assignment = True
        context.item.timetable.updated_at = datetime.now(timezone.utc)
        context.entry.status = AffectedEntryStatus.requires_manual
        conflict.refresh_summary()
        commit_or_raise(self.db, f"flag entry {context.entry.id} for manual assignment")

    @staticmethod
    def _failed(entry: AffectedEntry, reason: str) -> FailedEntry:
        return FailedEntry(
            entry_id=entry.id,
            subject=entry.subject_name,
            section=entry.section_name,
            faculty=entry.faculty_name,
            day=entry.day,
            period=entry.period,
            time=f"{entry.start_time}-{entry.end_time}",
            reason=reason,
        )

    @staticmethod
    def _report(
        conflict: Conflict,
        assignments: list[RoomAssignment],
        failed: list[FailedEntry],
        started: float,
    ) -> RegenerationReport:
        total = conflict.total_affected
        return RegenerationReport(
            conflict_id=conflict.id,
            room_code=conflict.room_code,
            room_name=conflict.room_name,
            room_status=conflict.new_status,
            conflict_status=conflict.status,
            total_affected=total,
            resolved=len(assignments),
            failed=len(failed),
            success_rate=round(len(assignments) / total * 100, 1) if total else 0.0,
            duration_ms=int((time.perf_counter() - started) * 1000),
            assignments=assignments,
            failed_entries=failed,
            resolution_summary=ResolutionSummary(**conflict.summary()),
        )
