from __future__ import annotations

from pydantic import BaseModel, Field

from classgrid.models.timetable import Day
from classgrid.schemas.timetable import TimetableOut


class RoomOption(BaseModel):
    id: str
    code: str
    name: str
    capacity: int
    building: str | None = None


class TimeSlotOption(BaseModel):
    day: Day
    period: int


class PlacementSuggestions(BaseModel):
    alternative_rooms: list[RoomOption] = Field(default_factory=list)
    alternative_time_slots: list[TimeSlotOption] = Field(default_factory=list)


class UnplacedMapping(BaseModel):
    mapping_id: str
    subject_id: str
    subject: str
    faculty_id: str
    faculty: str
    required: int
    placed: int
    reason: str
    suggestions: PlacementSuggestions


class PlacedSession(BaseModel):
    day: Day
    period: int
    periods: int
    subject: str
    faculty: str
    room: str


class PlacementSummary(BaseModel):
    total_subjects: int
    total_periods_placed: int
    conflicts_count: int
    utilization_rate: float


class GenerationResult(BaseModel):
    timetable: TimetableOut
    conflicts: list[UnplacedMapping]
    placed_sessions: list[PlacedSession]
    summary: PlacementSummary


class BulkGenerationSuccess(BaseModel):
    section_id: str
    section_name: str
    timetable_id: str
    version: str
    conflicts: list[UnplacedMapping]
    summary: PlacementSummary


class BulkGenerationFailure(BaseModel):
    section_id: str
    section_name: str
    error: str


class BulkGenerationSummary(BaseModel):
    total_sections: int
    generated: int
    conflicts: int


class BulkGenerationResult(BaseModel):
    success: list[BulkGenerationSuccess]
    failed: list[BulkGenerationFailure]
    summary: BulkGenerationSummary


class DataSufficiencyReport(BaseModel):
    section_id: str
    sufficient: bool
    missing: list[str]
    counts: dict[str, int]
