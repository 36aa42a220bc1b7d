from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from classgrid.models.audit_log import ChangeType


class AuditLogOut(BaseModel):
    id: int
    created_at: datetime
    admin_id: str
    admin_name: str
    timetable_id: str | None = None
    schedule_item_id: str | None = None
    conflict_id: str | None = None
    change_type: ChangeType
    old_room_id: str | None = None
    old_room_code: str | None = None
    old_room_name: str | None = None
    new_room_id: str | None = None
    new_room_code: str | None = None
    new_room_name: str | None = None
    reason: str
    validation_warnings_overridden: list[str] = Field(default_factory=list)
    details: dict = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class AuditLogFilters(BaseModel):
    start_date: datetime | None = None
    end_date: datetime | None = None
    admin_id: str | None = None
    change_type: ChangeType | None = None
    room_id: str | None = None
    conflict_id: str | None = None


class AuditLogPage(BaseModel):
    logs: list[AuditLogOut]
    total: int
    page: int
    total_pages: int
    has_more: bool


class ChangeTypeCount(BaseModel):
    change_type: ChangeType
    count: int


class AdminChangeCount(BaseModel):
    admin_id: str
    admin_name: str
    count: int


class AuditReport(BaseModel):
    start_date: datetime
    end_date: datetime
    total_changes: int
    changes_by_type: list[ChangeTypeCount]
    changes_by_admin: list[AdminChangeCount]
    force_updates: int
    generated_at: datetime


class AuditPurgeResult(BaseModel):
    deleted: int
    cutoff: datetime
