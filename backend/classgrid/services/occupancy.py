"""Live room occupancy read from published timetables."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from classgrid.core.config import get_settings
from classgrid.models.timetable import Day, ScheduleItem, Timetable
from classgrid.services.calendar import DAYS


def published_items_query():
    return select(ScheduleItem).join(Timetable, Timetable.id == ScheduleItem.timetable_id).where(
        Timetable.is_published.is_(True)
    )


def find_room_booking(
    db: Session,
    room_id: str,
    day: Day,
    period: int,
    *,
    exclude_item_id: str | None = None,
) -> ScheduleItem | None:
    query = published_items_query().where(
        ScheduleItem.room_id == room_id,
        ScheduleItem.day == day,
        ScheduleItem.period == period,
    )
    if exclude_item_id is not None:
        query = query.where(ScheduleItem.id != exclude_item_id)
    return db.execute(query.limit(1)).scalars().first()


def room_is_free(
    db: Session,
    room_id: str,
    day: Day,
    period: int,
    *,
    exclude_item_id: str | None = None,
) -> bool:
    return find_room_booking(db, room_id, day, period, exclude_item_id=exclude_item_id) is None


def room_utilization_percent(db: Session, room_id: str) -> int:
    used = db.execute(
        select(func.count(ScheduleItem.id))
        .join(Timetable, Timetable.id == ScheduleItem.timetable_id)
        .where(Timetable.is_published.is_(True), ScheduleItem.room_id == room_id)
    ).scalar_one()
    capacity = len(DAYS) * get_settings().utilization_periods_per_day
    return round(used / capacity * 100) if capacity else 0
