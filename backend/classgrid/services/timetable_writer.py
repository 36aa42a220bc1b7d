from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from classgrid.core.exceptions import ConflictStateError, ResourceNotFoundError
from classgrid.core.security import Actor
from classgrid.db.unit_of_work import commit_or_raise
from classgrid.models.room import Room, RoomStatus
from classgrid.models.section import Section
from classgrid.models.timetable import ScheduleItem, Timetable
from classgrid.schemas.timetable import TimetableVersionOut
from classgrid.services.events import TIMETABLE_PUBLISHED, EventPublisher, event_publisher
from classgrid.services.grid_placer import GridCell

logger = logging.getLogger(__name__)


def _version_number(timetable: Timetable) -> float:
    try:
        return float(timetable.version)
    except (TypeError, ValueError):
        return 1.0


def latest_timetable(db: Session, section_id: str) -> Timetable | None:
    versions = db.execute(select(Timetable).where(Timetable.section_id == section_id)).scalars().all()
    if not versions:
        return None
    return max(versions, key=_version_number)


def write_timetable(db: Session, section: Section, cells: list[GridCell], *, actor: Actor | None) -> Timetable:
    """Persist a filled grid as a new draft version of the section's timetable."""
    now = datetime.now(timezone.utc)
    previous = latest_timetable(db, section.id)

    timetable = Timetable(
        section_id=section.id,
        version="1.0",
        revision_history=[],
        is_published=False,
        generated_by=actor.id if actor else None,
        generated_at=now,
    )
    if previous is not None:
        timetable.version = f"{_version_number(previous) + 0.1:.1f}"
        timetable.previous_version_id = previous.id
        timetable.revision_history = [
            *(previous.revision_history or []),
            {
                "version": previous.version,
                "generated_at": previous.generated_at.isoformat() if previous.generated_at else None,
                "generated_by": previous.generated_by,
                "changes": f"Auto-generated with {len(cells)} sessions",
            },
        ]

    timetable.items = [
        ScheduleItem(
            day=cell.day,
            day_index=cell.day.index,
            period=cell.period,
            start_time=cell.start_time,
            end_time=cell.end_time,
            subject_id=cell.subject_id,
            faculty_id=cell.faculty_id,
            room_id=cell.room_id,
            note=cell.note,
        )
        for cell in cells
    ]
    db.add(timetable)
    commit_or_raise(db, f"write timetable for section {section.name}")
    db.refresh(timetable)
    logger.info(
        "Wrote timetable version %s for section %s with %d schedule items",
        timetable.version,
        section.name,
        len(cells),
    )
    return timetable


def get_timetable(db: Session, timetable_id: str) -> Timetable:
    timetable = db.execute(
        select(Timetable).where(Timetable.id == timetable_id).options(selectinload(Timetable.items))
    ).scalar_one_or_none()
    if timetable is None:
        raise ResourceNotFoundError("Timetable", timetable_id)
    return timetable


def find_publish_collisions(db: Session, timetable: Timetable) -> list[dict]:
    """Room and faculty double-bookings against other sections' published timetables."""
    live_items = db.execute(
        select(ScheduleItem, Timetable.section_id)
        .join(Timetable, Timetable.id == ScheduleItem.timetable_id)
        .where(Timetable.is_published.is_(True), Timetable.section_id != timetable.section_id)
    ).all()
    rooms: dict[tuple, str] = {}
    faculty: dict[tuple, str] = {}
    for item, section_id in live_items:
        if item.room_id:
            rooms[(item.room_id, item.day, item.period)] = section_id
        if item.faculty_id:
            faculty[(item.faculty_id, item.day, item.period)] = section_id

    collisions: list[dict] = []
    for item in timetable.items:
        slot = {"day": item.day.value, "period": item.period}
        if item.room_id and (item.room_id, item.day, item.period) in rooms:
            collisions.append(
                {"type": "room", "room_id": item.room_id, "section_id": rooms[(item.room_id, item.day, item.period)], **slot}
            )
        if item.faculty_id and (item.faculty_id, item.day, item.period) in faculty:
            collisions.append(
                {
                    "type": "faculty",
                    "faculty_id": item.faculty_id,
                    "section_id": faculty[(item.faculty_id, item.day, item.period)],
                    **slot,
                }
            )
    return collisions


def find_unavailable_rooms(db: Session, timetable: Timetable) -> list[dict]:
    """Items of the timetable whose room is no longer active."""
    room_ids = {item.room_id for item in timetable.items if item.room_id}
    if not room_ids:
        return []
    rooms = {
        room.id: room
        for room in db.execute(select(Room).where(Room.id.in_(room_ids), Room.status != RoomStatus.active)).scalars()
    }
    return [
        {
            "room_id": item.room_id,
            "room_code": rooms[item.room_id].code,
            "status": rooms[item.room_id].status.value,
            "day": item.day.value,
            "period": item.period,
        }
        for item in timetable.items
        if item.room_id in rooms
    ]


def publish_timetable(
    db: Session,
    timetable_id: str,
    *,
    actor: Actor,
    publisher: EventPublisher = event_publisher,
) -> Timetable:
    timetable = get_timetable(db, timetable_id)
    if timetable.is_published:
        return timetable

    collisions = find_publish_collisions(db, timetable)
    if collisions:
        raise ConflictStateError(
            "Timetable collides with published schedules of other sections",
            details={"timetable_id": timetable.id, "collisions": collisions},
        )
    unavailable = find_unavailable_rooms(db, timetable)
    if unavailable:
        raise ConflictStateError(
            "Timetable uses rooms that are not active",
            details={"timetable_id": timetable.id, "rooms": unavailable},
        )

    now = datetime.now(timezone.utc)
    siblings = db.execute(
        select(Timetable).where(
            Timetable.section_id == timetable.section_id,
            Timetable.id != timetable.id,
            Timetable.is_published.is_(True),
        )
    ).scalars().all()
    for sibling in siblings:
        sibling.is_published = False
    timetable.is_published = True
    timetable.published_at = now
    commit_or_raise(db, f"publish timetable {timetable.id}")
    db.refresh(timetable)

    logger.info("Timetable %s (version %s) published by %s", timetable.id, timetable.version, actor.id)
    publisher.publish(
        TIMETABLE_PUBLISHED,
        {
            "timetable_id": timetable.id,
            "section_id": timetable.section_id,
            "version": timetable.version,
            "published_by": actor.id,
            "unpublished_versions": [sibling.id for sibling in siblings],
        },
    )
    return timetable


def timetable_history(db: Session, section_id: str) -> list[TimetableVersionOut]:
    if db.get(Section, section_id) is None:
        raise ResourceNotFoundError("Section", section_id)
    versions = db.execute(
        select(Timetable).where(Timetable.section_id == section_id).options(selectinload(Timetable.items))
    ).scalars().all()
    versions = sorted(versions, key=_version_number, reverse=True)
    return [
        TimetableVersionOut(
            id=timetable.id,
            version=timetable.version,
            is_published=timetable.is_published,
            generated_by=timetable.generated_by,
            generated_at=timetable.generated_at,
            published_at=timetable.published_at,
            item_count=len(timetable.items),
        )
        for timetable in versions
    ]
