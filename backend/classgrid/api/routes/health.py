from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from classgrid.db.session import engine

router = APIRouter()

REQUIRED_TABLES = {
    "rooms",
    "sections",
    "subjects",
    "faculty",
    "timetables",
    "schedule_items",
    "conflicts",
    "conflict_affected_entries",
    "audit_logs",
}


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/ready")
def health_ready() -> JSONResponse:
    db_ok = True
    db_error: str | None = None
    missing_tables: list[str] = []
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            missing_tables = sorted(REQUIRED_TABLES - set(inspect(connection).get_table_names()))
    except SQLAlchemyError as exc:  # pragma: no cover - environment dependent
        db_ok = False
        db_error = str(exc)

    ready = db_ok and not missing_tables
    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": {"ok": db_ok, "missing_tables": missing_tables, "error": db_error},
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)
