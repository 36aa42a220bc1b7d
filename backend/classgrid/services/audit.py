from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from classgrid.core.config import get_settings
from classgrid.core.security import Actor
from classgrid.db.unit_of_work import commit_or_raise
from classgrid.models.audit_log import AuditLog, ChangeType
from classgrid.models.room import Room
from classgrid.models.timetable import ScheduleItem
from classgrid.schemas.audit import (
    AdminChangeCount,
    AuditLogFilters,
    AuditLogOut,
    AuditLogPage,
    AuditPurgeResult,
    AuditReport,
    ChangeTypeCount,
)

logger = logging.getLogger(__name__)


def record_room_change(
    db: Session,
    *,
    actor: Actor,
    change_type: ChangeType,
    item: ScheduleItem,
    old_room: Room | None,
    new_room: Room,
    reason: str,
    conflict_id: str | None = None,
    warnings_overridden: list[str] | None = None,
    details: dict | None = None,
) -> AuditLog:
    """Stage an audit row in the caller's unit of work; the caller commits."""
    record = AuditLog(
        admin_id=actor.id,
        admin_name=actor.name,
        timetable_id=item.timetable_id,
        schedule_item_id=item.id,
        conflict_id=conflict_id,
        change_type=change_type,
        old_room_id=old_room.id if old_room else None,
        old_room_code=old_room.code if old_room else None,
        old_room_name=old_room.name if old_room else None,
        new_room_id=new_room.id,
        new_room_code=new_room.code,
        new_room_name=new_room.name,
        reason=reason,
        validation_warnings_overridden=list(warnings_overridden or []),
        details={
            "day": item.day.value,
            "period": item.period,
            "start_time": item.start_time,
            "end_time": item.end_time,
            **(details or {}),
        },
    )
    db.add(record)
    return record


def _filtered(query, filters: AuditLogFilters):
    if filters.start_date is not None:
        query = query.where(AuditLog.created_at >= filters.start_date)
    if filters.end_date is not None:
        query = query.where(AuditLog.created_at <= filters.end_date)
    if filters.admin_id:
        query = query.where(AuditLog.admin_id == filters.admin_id)
    if filters.change_type is not None:
        query = query.where(AuditLog.change_type == filters.change_type)
    if filters.room_id:
        query = query.where(or_(AuditLog.old_room_id == filters.room_id, AuditLog.new_room_id == filters.room_id))
    if filters.conflict_id:
        query = query.where(AuditLog.conflict_id == filters.conflict_id)
    return query


def query_audit_logs(
    db: Session,
    filters: AuditLogFilters | None = None,
    *,
    page: int = 1,
    limit: int | None = None,
) -> AuditLogPage:
    filters = filters or AuditLogFilters()
    page = max(1, page)
    limit = max(1, limit or get_settings().audit_page_size)
    offset = (page - 1) * limit

    total = db.execute(_filtered(select(func.count(AuditLog.id)), filters)).scalar_one()
    logs = db.execute(
        _filtered(select(AuditLog), filters)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return AuditLogPage(
        logs=[AuditLogOut.model_validate(log) for log in logs],
        total=total,
        page=page,
        total_pages=math.ceil(total / limit) if total else 0,
        has_more=offset + len(logs) < total,
    )


def entry_history(db: Session, schedule_item_id: str) -> list[AuditLogOut]:
    """Every room change applied to one schedule item, most recent first."""
    logs = db.execute(
        select(AuditLog)
        .where(AuditLog.schedule_item_id == schedule_item_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    ).scalars().all()
    return [AuditLogOut.model_validate(log) for log in logs]


def generate_audit_report(db: Session, start_date: datetime, end_date: datetime) -> AuditReport:
    window = (AuditLog.created_at >= start_date, AuditLog.created_at <= end_date)

    total = db.execute(select(func.count(AuditLog.id)).where(*window)).scalar_one()
    by_type = db.execute(
        select(AuditLog.change_type, func.count(AuditLog.id).label("count"))
        .where(*window)
        .group_by(AuditLog.change_type)
        .order_by(func.count(AuditLog.id).desc())
    ).all()
    by_admin = db.execute(
        select(AuditLog.admin_id, func.max(AuditLog.admin_name), func.count(AuditLog.id).label("count"))
        .where(*window)
        .group_by(AuditLog.admin_id)
        .order_by(func.count(AuditLog.id).desc())
        .limit(10)
    ).all()
    forced = db.execute(
        select(func.count(AuditLog.id)).where(*window, AuditLog.change_type == ChangeType.forced_update)
    ).scalar_one()

    return AuditReport(
        start_date=start_date,
        end_date=end_date,
        total_changes=total,
        changes_by_type=[ChangeTypeCount(change_type=change_type, count=count) for change_type, count in by_type],
        changes_by_admin=[
            AdminChangeCount(admin_id=admin_id, admin_name=admin_name, count=count)
            for admin_id, admin_name, count in by_admin
        ],
        force_updates=forced,
        generated_at=datetime.now(timezone.utc),
    )


def purge_audit_logs(db: Session, older_than_days: int | None = None) -> AuditPurgeResult:
    """Retention purge; the only path allowed to remove audit rows."""
    days = older_than_days if older_than_days is not None else get_settings().audit_retention_days
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    result = db.execute(
        delete(AuditLog).where(AuditLog.created_at < cutoff).execution_options(synchronize_session=False)
    )
    commit_or_raise(db, "purge audit logs")
    deleted = result.rowcount or 0
    logger.info("Purged %d audit log entries older than %d days", deleted, days)
    return AuditPurgeResult(deleted=deleted, cutoff=cutoff)
