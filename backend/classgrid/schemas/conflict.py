from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from classgrid.models.conflict import AffectedEntryStatus, ConflictStatus, ResolutionMethod
from classgrid.models.room import RoomStatus
from classgrid.models.timetable import Day


class AffectedEntryOut(BaseModel):
    id: str
    timetable_id: str
    schedule_item_id: str
    subject_id: str | None = None
    subject_name: str
    faculty_id: str | None = None
    faculty_name: str
    section_id: str | None = None
    section_name: str
    day: Day
    period: int
    start_time: str
    end_time: str
    status: AffectedEntryStatus
    resolution_method: ResolutionMethod | None = None
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    new_room_id: str | None = None
    new_room_code: str | None = None

    model_config = {"from_attributes": True}


class ResolutionSummary(BaseModel):
    total_affected: int
    auto_resolved: int
    manually_resolved: int
    unresolved: int


class ConflictOut(BaseModel):
    id: str
    room_id: str
    room_code: str
    room_name: str
    original_status: RoomStatus
    new_status: RoomStatus
    status: ConflictStatus
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    resolution_method: ResolutionMethod | None = None
    created_at: datetime | None = None
    resolution_summary: ResolutionSummary
    entries: list[AffectedEntryOut]

    @classmethod
    def from_conflict(cls, conflict) -> "ConflictOut":
        return cls(
            id=conflict.id,
            room_id=conflict.room_id,
            room_code=conflict.room_code,
            room_name=conflict.room_name,
            original_status=conflict.original_status,
            new_status=conflict.new_status,
            status=conflict.status,
            resolved_at=conflict.resolved_at,
            resolved_by=conflict.resolved_by,
            resolution_method=conflict.resolution_method,
            created_at=conflict.created_at,
            resolution_summary=ResolutionSummary(**conflict.summary()),
            entries=[AffectedEntryOut.model_validate(entry) for entry in conflict.entries],
        )


class RoomAssignment(BaseModel):
    subject: str
    section: str
    day: Day
    period: int
    old_room: str
    new_room: str


class FailedEntry(BaseModel):
    entry_id: str
    subject: str
    section: str
    faculty: str
    day: Day
    period: int
    time: str
    reason: str


class RegenerationReport(BaseModel):
    conflict_id: str
    room_code: str
    room_name: str
    room_status: RoomStatus
    conflict_status: ConflictStatus
    total_affected: int
    resolved: int
    failed: int
    success_rate: float
    duration_ms: int
    assignments: list[RoomAssignment]
    failed_entries: list[FailedEntry]
    resolution_summary: ResolutionSummary


class RegenerationStatus(BaseModel):
    conflict_id: str
    status: ConflictStatus
    pending: int
    requires_manual: int
    resolved: int
    resolution_summary: ResolutionSummary


class ValidationIssue(BaseModel):
    check_name: str
    type: str
    message: str
    severity: Literal["error", "warning"]
    can_override: bool
    data: dict = Field(default_factory=dict)


class ValidationCheck(BaseModel):
    name: str
    passed: bool
    message: str


class ValidationResult(BaseModel):
    is_valid: bool
    can_force_update: bool
    errors: list[ValidationIssue]
    warnings: list[ValidationIssue]
    checks: list[ValidationCheck]

    def issue_messages(self) -> list[str]:
        return [issue.message for issue in (*self.errors, *self.warnings)]


class SuggestedRoom(BaseModel):
    id: str
    code: str
    name: str
    type: str
    capacity: int
    equipment: list[str]
    building: str | None = None
    floor: int | None = None


class RoomSuggestion(BaseModel):
    room: SuggestedRoom
    score: int
    score_breakdown: dict[str, float]
    is_available: bool
    utilization: int
    warnings: list[dict]
    match_quality: str


class ManualAssignmentRequest(BaseModel):
    entry_id: str = Field(min_length=1, max_length=36)
    new_room_id: str = Field(min_length=1, max_length=36)


class ManualAdjustRequest(BaseModel):
    assignments: list[ManualAssignmentRequest] = Field(min_length=1, max_length=500)
    force: bool = False


class ManualAssignmentOutcome(BaseModel):
    entry_id: str
    success: bool
    change_type: str | None = None
    new_room_code: str | None = None
    error: str | None = None
    validation: ValidationResult | None = None


class ManualAdjustResult(BaseModel):
    conflict_id: str
    conflict_status: ConflictStatus
    results: list[ManualAssignmentOutcome]
    resolution_summary: ResolutionSummary


class ValidateAssignmentRequest(BaseModel):
    entry_id: str = Field(min_length=1, max_length=36)
    new_room_id: str = Field(min_length=1, max_length=36)


class ForceUpdateRequest(BaseModel):
    schedule_item_id: str = Field(min_length=1, max_length=36)
    new_room_id: str = Field(min_length=1, max_length=36)
    reason: str = Field(min_length=1, max_length=1000)


class ForceUpdateResult(BaseModel):
    schedule_item_id: str
    old_room_code: str | None = None
    new_room_code: str
    audit_log_id: int
    warnings_overridden: list[str]
