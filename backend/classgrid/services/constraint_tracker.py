from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from classgrid.models.timetable import Day, Timetable
from classgrid.services.calendar import DAYS, span_periods

logger = logging.getLogger(__name__)

BusyIndex = dict[str, dict[Day, set[int]]]


def _busy_index() -> BusyIndex:
    return defaultdict(lambda: defaultdict(set))


class GlobalConstraintTracker:
    """Per-run occupancy of faculty, rooms and sections.

    Built from the published timetables at the start of a generation run and
    discarded with it. Never share an instance between runs.
    """

    def __init__(self) -> None:
        self.faculty_busy: BusyIndex = _busy_index()
        self.room_busy: BusyIndex = _busy_index()
        self.section_busy: BusyIndex = _busy_index()

    @classmethod
    def from_published(cls, db: Session, *, exclude_section_ids: Iterable[str] = ()) -> "GlobalConstraintTracker":
        timetables = db.execute(
            select(Timetable).where(Timetable.is_published.is_(True)).options(selectinload(Timetable.items))
        ).scalars().all()
        tracker = cls()
        tracker.seed(timetables, exclude_section_ids=exclude_section_ids)
        return tracker

    def seed(self, timetables: Iterable[Timetable], *, exclude_section_ids: Iterable[str] = ()) -> None:
        excluded = set(exclude_section_ids)
        seeded = 0
        for timetable in timetables:
            if timetable.section_id in excluded:
                continue
            for item in timetable.items:
                if item.faculty_id:
                    self.faculty_busy[item.faculty_id][item.day].add(item.period)
                if item.room_id:
                    self.room_busy[item.room_id][item.day].add(item.period)
                self.section_busy[timetable.section_id][item.day].add(item.period)
                seeded += 1
        logger.debug("Seeded constraint tracker with %d published schedule items", seeded)

    def check(self, faculty_id: str, section_id: str, day: Day, period: int, span: int = 1) -> bool:
        """True when neither the faculty nor the section is busy for the whole block."""
        faculty_day = self.faculty_busy.get(faculty_id, {}).get(day, set())
        section_day = self.section_busy.get(section_id, {}).get(day, set())
        return not any(p in faculty_day or p in section_day for p in span_periods(period, span))

    def room_is_free(self, room_id: str, day: Day, period: int, span: int = 1) -> bool:
        room_day = self.room_busy.get(room_id, {}).get(day, set())
        return not any(p in room_day for p in span_periods(period, span))

    def commit(self, faculty_id: str, room_id: str, section_id: str, day: Day, period: int, span: int = 1) -> None:
        periods = span_periods(period, span)
        self.faculty_busy[faculty_id][day].update(periods)
        self.room_busy[room_id][day].update(periods)
        self.section_busy[section_id][day].update(periods)

    def faculty_day_periods(self, faculty_id: str, day: Day) -> set[int]:
        return set(self.faculty_busy.get(faculty_id, {}).get(day, set()))

    def faculty_weekly_load(self, faculty_id: str) -> int:
        return sum(len(periods) for periods in self.faculty_busy.get(faculty_id, {}).values())

    def room_weekly_load(self, room_id: str) -> int:
        return sum(len(periods) for periods in self.room_busy.get(room_id, {}).values())

    def section_is_free(self, section_id: str, day: Day, period: int) -> bool:
        return period not in self.section_busy.get(section_id, {}).get(day, set())

    def room_utilization_percent(self, room_id: str, periods_per_day: int) -> int:
        capacity = len(DAYS) * periods_per_day
        return round(self.room_weekly_load(room_id) / capacity * 100) if capacity else 0
