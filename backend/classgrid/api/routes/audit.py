from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from classgrid.api.deps import get_db, require_roles
from classgrid.core.security import Actor
from classgrid.models.audit_log import ChangeType
from classgrid.schemas.audit import AuditLogFilters, AuditLogOut, AuditLogPage, AuditPurgeResult, AuditReport
from classgrid.services.audit import entry_history, generate_audit_report, purge_audit_logs, query_audit_logs

router = APIRouter()


@router.get("/", response_model=AuditLogPage)
def read_audit_logs(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    admin_id: str | None = None,
    change_type: ChangeType | None = None,
    room_id: str | None = None,
    conflict_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=500),
    actor: Actor = Depends(require_roles("admin", "scheduler")),
    db: Session = Depends(get_db),
) -> AuditLogPage:
    filters = AuditLogFilters(
        start_date=start_date,
        end_date=end_date,
        admin_id=admin_id,
        change_type=change_type,
        room_id=room_id,
        conflict_id=conflict_id,
    )
    return query_audit_logs(db, filters, page=page, limit=limit)


@router.get("/report", response_model=AuditReport)
def audit_report(
    start_date: datetime,
    end_date: datetime,
    actor: Actor = Depends(require_roles("admin", "scheduler")),
    db: Session = Depends(get_db),
) -> AuditReport:
    return generate_audit_report(db, start_date, end_date)


@router.get("/entries/{schedule_item_id}", response_model=list[AuditLogOut])
def schedule_item_history(
    schedule_item_id: str,
    actor: Actor = Depends(require_roles("admin", "scheduler")),
    db: Session = Depends(get_db),
) -> list[AuditLogOut]:
    return entry_history(db, schedule_item_id)


@router.delete("/", response_model=AuditPurgeResult)
def purge(
    older_than_days: int | None = Query(default=None, ge=1),
    actor: Actor = Depends(require_roles("admin")),
    db: Session = Depends(get_db),
) -> AuditPurgeResult:
    return purge_audit_logs(db, older_than_days)
