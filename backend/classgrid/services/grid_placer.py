from __future__ import annotations

import logging
from dataclasses import dataclass, field

from classgrid.core.config import get_settings
from classgrid.core.exceptions import InputError
from classgrid.models.faculty import Faculty
from classgrid.models.mapping import SubjectFacultyMapping
from classgrid.models.room import Room
from classgrid.models.section import Section
from classgrid.models.subject import Subject
from classgrid.models.timetable import Day
from classgrid.schemas.generator import (
    PlacedSession,
    PlacementSuggestions,
    PlacementSummary,
    RoomOption,
    TimeSlotOption,
    UnplacedMapping,
)
from classgrid.services.calendar import (
    DAYS,
    GRID_CELLS,
    PERIODS_PER_DAY,
    TEACHING_PERIODS,
    PeriodTimes,
    Slot,
    is_teaching_span,
    span_periods,
)
from classgrid.services.catalog import ResourceCatalog, effective_strength
from classgrid.services.constraint_tracker import GlobalConstraintTracker
from classgrid.services.room_scorer import score_room

logger = logging.getLogger(__name__)


@dataclass
class GridCell:
    day: Day
    period: int
    start_time: str
    end_time: str
    subject_id: str
    faculty_id: str
    room_id: str
    note: str = ""


@dataclass
class PlacementResult:
    cells: list[GridCell] = field(default_factory=list)
    conflicts: list[UnplacedMapping] = field(default_factory=list)
    placed_sessions: list[PlacedSession] = field(default_factory=list)
    summary: PlacementSummary | None = None


def longest_consecutive_run(periods: set[int]) -> int:
    longest = current = 0
    previous: int | None = None
    for period in sorted(periods):
        current = current + 1 if previous is not None and period == previous + 1 else 1
        longest = max(longest, current)
        previous = period
    return longest


class GridPlacer:
    """Greedy placement of one section's mappings into the weekly grid.

    Mappings are handled lab-first, then by descending weekly periods. There
    is no backtracking: once a block is placed it stays, and whatever cannot
    be placed afterwards is reported as an unplaced mapping.
    """

    def __init__(
        self,
        catalog: ResourceCatalog,
        tracker: GlobalConstraintTracker,
        period_times: PeriodTimes | None = None,
    ) -> None:
        settings = get_settings()
        self.catalog = catalog
        self.tracker = tracker
        self.period_times = period_times or PeriodTimes()
        self.max_consecutive = settings.max_consecutive_periods
        self.utilization_periods_per_day = settings.utilization_periods_per_day
        self.room_suggestion_limit = settings.room_suggestion_limit
        self.time_slot_suggestion_limit = settings.time_slot_suggestion_limit

    def place_section(self, section: Section, mappings: list[SubjectFacultyMapping]) -> PlacementResult:
        self._validate(section, mappings)

        grid: dict[Slot, GridCell | None] = {
            Slot(day, period): None for day in DAYS for period in range(1, PERIODS_PER_DAY + 1)
        }
        rooms = self.catalog.active_rooms()
        result = PlacementResult()

        for mapping in self._ordered(mappings):
            subject = self.catalog.subjects[mapping.subject_id]
            faculty = self.catalog.faculty[mapping.faculty_id]
            span = subject.block_size
            required = subject.weekly_periods
            placed = 0
            days_used: set[Day] = set()

            for _ in range(0, required, span):
                choice = self._find_slot(section, subject, faculty, span, days_used, grid, rooms)
                if choice is None:
                    # Nothing changed since the failed search, so later blocks would fail too.
                    break
                day, period, room = choice
                self._place(grid, section, subject, faculty, room, day, period, span)
                placed += span
                days_used.add(day)
                result.placed_sessions.append(
                    PlacedSession(
                        day=day,
                        period=period,
                        periods=span,
                        subject=subject.name,
                        faculty=faculty.name,
                        room=room.code,
                    )
                )

            if placed < required:
                logger.info(
                    "Placed %d of %d periods of %s for section %s",
                    placed,
                    required,
                    subject.code,
                    section.name,
                )
                result.conflicts.append(
                    UnplacedMapping(
                        mapping_id=mapping.id,
                        subject_id=subject.id,
                        subject=subject.name,
                        faculty_id=faculty.id,
                        faculty=faculty.name,
                        required=required,
                        placed=placed,
                        reason=self._failure_reason(faculty, span),
                        suggestions=self._suggestions(section, subject, rooms, grid),
                    )
                )

        result.cells = [cell for cell in grid.values() if cell is not None]
        result.summary = PlacementSummary(
            total_subjects=len(mappings),
            total_periods_placed=sum(session.periods for session in result.placed_sessions),
            conflicts_count=len(result.conflicts),
            utilization_rate=round(len(result.cells) / GRID_CELLS * 100, 2),
        )
        return result

    def _validate(self, section: Section, mappings: list[SubjectFacultyMapping]) -> None:
        foreign = [mapping.id for mapping in mappings if mapping.section_id != section.id]
        if foreign:
            raise InputError(
                f"Mappings do not belong to section {section.name}",
                details={"section_id": section.id, "mapping_ids": foreign},
            )
        problems = self.catalog.dangling_references(mappings)
        if problems:
            raise InputError("Mappings reference missing catalog entries", details={"problems": problems})

    def _ordered(self, mappings: list[SubjectFacultyMapping]) -> list[SubjectFacultyMapping]:
        def priority(mapping: SubjectFacultyMapping) -> tuple[int, int]:
            subject = self.catalog.subjects[mapping.subject_id]
            return (0 if subject.is_lab else 1, -subject.weekly_periods)

        return sorted(mappings, key=priority)

    def _balanced_days(self, faculty: Faculty, days_used: set[Day]) -> list[Day]:
        return sorted(
            DAYS,
            key=lambda day: (
                day in days_used,
                len(self.tracker.faculty_day_periods(faculty.id, day)),
                day.index,
            ),
        )

    def _too_fatiguing(self, faculty: Faculty, day: Day, span: int) -> bool:
        periods = self.tracker.faculty_day_periods(faculty.id, day)
        if not periods:
            return False
        return longest_consecutive_run(periods) + span > self.max_consecutive

    def _find_slot(
        self,
        section: Section,
        subject: Subject,
        faculty: Faculty,
        span: int,
        days_used: set[Day],
        grid: dict[Slot, GridCell | None],
        rooms: list[Room],
    ) -> tuple[Day, int, Room] | None:
        if self.tracker.faculty_weekly_load(faculty.id) + span > faculty.max_hours_per_week:
            logger.debug("Faculty %s reached the weekly limit of %d periods", faculty.name, faculty.max_hours_per_week)
            return None

        for day in self._balanced_days(faculty, days_used):
            if not faculty.is_available_on(day.index):
                continue
            if self._too_fatiguing(faculty, day, span):
                continue
            for period in range(1, PERIODS_PER_DAY + 1):
                if not is_teaching_span(period, span):
                    continue
                if any(grid[Slot(day, p)] is not None for p in span_periods(period, span)):
                    continue
                if not self.tracker.check(faculty.id, section.id, day, period, span):
                    continue
                room = self._find_room(rooms, subject, section, day, period, span)
                if room is not None:
                    return day, period, room
        return None

    def _find_room(
        self,
        rooms: list[Room],
        subject: Subject,
        section: Section,
        day: Day,
        period: int,
        span: int,
    ) -> Room | None:
        strength = effective_strength(section)
        preferred = set(section.preferred_buildings or [])
        ranked: list[tuple[tuple, Room]] = []
        for room in rooms:
            if not room.supports(lab_session=subject.needs_lab_room):
                continue
            if not self.tracker.room_is_free(room.id, day, period, span):
                continue
            result = score_room(
                room,
                subject,
                section,
                utilization_percent=self.tracker.room_utilization_percent(room.id, self.utilization_periods_per_day),
                include_building=False,
            )
            if not result.is_valid:
                continue
            key = (
                room.building not in preferred,
                -result.score,
                abs(room.capacity - strength),
                room.capacity,
                room.code,
            )
            ranked.append((key, room))
        if not ranked:
            return None
        ranked.sort(key=lambda entry: entry[0])
        return ranked[0][1]

    def _place(
        self,
        grid: dict[Slot, GridCell | None],
        section: Section,
        subject: Subject,
        faculty: Faculty,
        room: Room,
        day: Day,
        period: int,
        span: int,
    ) -> None:
        start, end = self.period_times.block(period, span)
        note = f"{subject.code} lab block" if span > 1 else subject.code
        for p in span_periods(period, span):
            grid[Slot(day, p)] = GridCell(
                day=day,
                period=p,
                start_time=start,
                end_time=end,
                subject_id=subject.id,
                faculty_id=faculty.id,
                room_id=room.id,
                note=note,
            )
        self.tracker.commit(faculty.id, room.id, section.id, day, period, span)

    def _failure_reason(self, faculty: Faculty, span: int) -> str:
        if self.tracker.faculty_weekly_load(faculty.id) + span > faculty.max_hours_per_week:
            return f"{faculty.name} has reached the weekly limit of {faculty.max_hours_per_week} periods"
        if span > 1:
            return f"No {span} consecutive free periods with a suitable room"
        return "No free period with a suitable room"

    def _suggestions(
        self,
        section: Section,
        subject: Subject,
        rooms: list[Room],
        grid: dict[Slot, GridCell | None],
    ) -> PlacementSuggestions:
        strength = effective_strength(section)
        suitable = [
            room
            for room in rooms
            if room.supports(lab_session=subject.needs_lab_room) and room.capacity >= strength
        ]
        suitable.sort(key=lambda room: (abs(room.capacity - strength), room.code))

        free_slots = [
            TimeSlotOption(day=day, period=period)
            for day in DAYS
            for period in TEACHING_PERIODS
            if grid[Slot(day, period)] is None and self.tracker.section_is_free(section.id, day, period)
        ]
        return PlacementSuggestions(
            alternative_rooms=[
                RoomOption(id=room.id, code=room.code, name=room.name, capacity=room.capacity, building=room.building)
                for room in suitable[: self.room_suggestion_limit]
            ],
            alternative_time_slots=free_slots[: self.time_slot_suggestion_limit],
        )
