from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from classgrid.models.timetable import Day


class ScheduleItemOut(BaseModel):
    id: str
    day: Day
    period: int
    start_time: str
    end_time: str
    subject_id: str | None = None
    faculty_id: str | None = None
    room_id: str | None = None
    note: str = ""
    is_affected: bool = False
    conflict_id: str | None = None
    original_room_id: str | None = None
    affected_reason: str | None = None
    requires_manual_assignment: bool = False

    model_config = {"from_attributes": True}


class TimetableOut(BaseModel):
    id: str
    section_id: str
    version: str
    previous_version_id: str | None = None
    is_published: bool
    generated_by: str | None = None
    generated_at: datetime | None = None
    published_at: datetime | None = None
    revision_history: list[dict] = []
    items: list[ScheduleItemOut] = []

    model_config = {"from_attributes": True}


class TimetableVersionOut(BaseModel):
    id: str
    version: str
    is_published: bool
    generated_by: str | None = None
    generated_at: datetime | None = None
    published_at: datetime | None = None
    item_count: int


class ScheduledClass(BaseModel):
    schedule_item_id: str
    timetable_id: str
    subject: str
    faculty: str
    section: str
    day: Day
    period: int
    start_time: str
    end_time: str


class ScheduledClassesReport(BaseModel):
    room_id: str
    has_scheduled_classes: bool
    count: int
    classes: list[ScheduledClass]
