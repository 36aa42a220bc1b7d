from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from classgrid.core.exceptions import ResourceNotFoundError
from classgrid.db.unit_of_work import commit_or_raise
from classgrid.models.conflict import AffectedEntry, AffectedEntryStatus, Conflict, ConflictStatus
from classgrid.models.faculty import Faculty
from classgrid.models.room import UNAVAILABLE_ROOM_STATUSES, Room, RoomStatus
from classgrid.models.section import Section
from classgrid.models.subject import Subject
from classgrid.models.timetable import ScheduleItem, Timetable
from classgrid.schemas.timetable import ScheduledClass, ScheduledClassesReport
from classgrid.services.events import CONFLICT_DETECTED, EventPublisher, event_publisher
from classgrid.services.occupancy import published_items_query

logger = logging.getLogger(__name__)


def _status_label(status: RoomStatus) -> str:
    return status.value.replace("_", " ")


class ConflictDetector:
    """Reacts to room status transitions.

    active -> unavailable opens a conflict for every published class in the
    room. unavailable -> active clears the affected flags on those classes but
    leaves the conflict record, and its resolution history, untouched.
    """

    def __init__(self, db: Session, publisher: EventPublisher = event_publisher) -> None:
        self.db = db
        self.publisher = publisher

    def on_room_status_changed(self, room: Room, previous_status: RoomStatus) -> Conflict | None:
        previous_status = RoomStatus(previous_status)
        if previous_status == room.status:
            logger.debug("Room %s status unchanged (%s); nothing to do", room.code, room.status.value)
            return None

        if room.status in UNAVAILABLE_ROOM_STATUSES:
            return self._open_conflict(room, previous_status)

        if room.status == RoomStatus.active and previous_status in UNAVAILABLE_ROOM_STATUSES:
            cleared = self.clear_affected_flags(room.id)
            logger.info("Room %s is available again; cleared %d affected entries", room.code, cleared)
        return None

    def identify_affected_items(self, room_id: str) -> list[tuple[ScheduleItem, Timetable]]:
        rows = self.db.execute(
            select(ScheduleItem, Timetable)
            .join(Timetable, Timetable.id == ScheduleItem.timetable_id)
            .where(
                Timetable.is_published.is_(True),
                ScheduleItem.room_id == room_id,
                ScheduleItem.is_affected.is_(False),
            )
            .order_by(Timetable.section_id, ScheduleItem.day_index, ScheduleItem.period)
        ).all()
        return [(item, timetable) for item, timetable in rows]

    def _open_conflict(self, room: Room, previous_status: RoomStatus) -> Conflict | None:
        affected = self.identify_affected_items(room.id)
        if not affected:
            logger.info("Room %s is now %s; no published classes affected", room.code, room.status.value)
            return None

        now = datetime.now(timezone.utc)
        reason = f"Room status changed from {_status_label(previous_status)} to {_status_label(room.status)}"
        conflict = Conflict(
            id=str(uuid.uuid4()),
            room_id=room.id,
            room_code=room.code,
            room_name=room.name,
            original_status=previous_status,
            new_status=room.status,
            status=ConflictStatus.active,
        )

        touched: dict[str, Timetable] = {}
        for position, (item, timetable) in enumerate(affected):
            item.mark_affected(conflict_id=conflict.id, room_id=room.id, reason=reason, at=now)
            touched[timetable.id] = timetable
            conflict.entries.append(self._snapshot(position, item, timetable))
        for timetable in touched.values():
            timetable.updated_at = now
        conflict.refresh_summary()

        self.db.add(conflict)
        commit_or_raise(self.db, f"open conflict for room {room.code}")
        self.db.refresh(conflict)

        logger.info(
            "Room %s went %s: conflict %s opened with %d affected entries",
            room.code,
            room.status.value,
            conflict.id,
            len(affected),
        )
        self.publisher.publish(
            CONFLICT_DETECTED,
            {
                "conflict_id": conflict.id,
                "room_id": room.id,
                "room_code": room.code,
                "room_name": room.name,
                "original_status": previous_status.value,
                "new_status": room.status.value,
                "total_affected": conflict.total_affected,
                "sections": sorted({entry.section_name for entry in conflict.entries}),
            },
        )
        return conflict

    def _snapshot(self, position: int, item: ScheduleItem, timetable: Timetable) -> AffectedEntry:
        subject = self.db.get(Subject, item.subject_id) if item.subject_id else None
        faculty = self.db.get(Faculty, item.faculty_id) if item.faculty_id else None
        section = self.db.get(Section, timetable.section_id)
        return AffectedEntry(
            position=position,
            timetable_id=timetable.id,
            schedule_item_id=item.id,
            subject_id=item.subject_id,
            subject_name=subject.name if subject else "Unknown Subject",
            faculty_id=item.faculty_id,
            faculty_name=faculty.name if faculty else "Unknown Faculty",
            section_id=timetable.section_id,
            section_name=section.name if section else "Unknown Section",
            day=item.day,
            period=item.period,
            start_time=item.start_time,
            end_time=item.end_time,
            status=AffectedEntryStatus.pending,
        )

    def clear_affected_flags(self, room_id: str) -> int:
        items = self.db.execute(
            select(ScheduleItem).where(
                ScheduleItem.original_room_id == room_id,
                ScheduleItem.is_affected.is_(True),
            )
        ).scalars().all()
        if not items:
            return 0

        now = datetime.now(timezone.utc)
        for item in items:
            item.clear_affected()
            item.timetable.updated_at = now
        commit_or_raise(self.db, f"clear affected flags for room {room_id}")
        return len(items)

    def scheduled_classes(self, room_id: str) -> ScheduledClassesReport:
        """Published classes held in a room, for impact review before taking it offline."""
        if self.db.get(Room, room_id) is None:
            raise ResourceNotFoundError("Room", room_id)

        items = self.db.execute(
            published_items_query()
            .where(ScheduleItem.room_id == room_id)
            .order_by(ScheduleItem.day_index, ScheduleItem.period)
        ).scalars().all()
        classes: list[ScheduledClass] = []
        for item in items:
            subject = self.db.get(Subject, item.subject_id) if item.subject_id else None
            faculty = self.db.get(Faculty, item.faculty_id) if item.faculty_id else None
            section = self.db.get(Section, item.timetable.section_id)
            classes.append(
                ScheduledClass(
                    schedule_item_id=item.id,
                    timetable_id=item.timetable_id,
                    subject=subject.name if subject else "Unknown",
                    faculty=faculty.name if faculty else "Unknown",
                    section=section.name if section else "Unknown",
                    day=item.day,
                    period=item.period,
                    start_time=item.start_time,
                    end_time=item.end_time,
                )
            )
        return ScheduledClassesReport(
            room_id=room_id,
            has_scheduled_classes=bool(classes),
            count=len(classes),
            classes=classes,
        )
