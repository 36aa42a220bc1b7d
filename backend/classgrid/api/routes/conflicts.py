from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from classgrid.api.deps import get_current_actor, get_db, require_roles
from classgrid.core.security import Actor
from classgrid.models.conflict import ConflictStatus
from classgrid.models.room import RoomStatus
from classgrid.schemas.conflict import (
    ConflictOut,
    ForceUpdateRequest,
    ForceUpdateResult,
    ManualAdjustRequest,
    ManualAdjustResult,
    RegenerationReport,
    RegenerationStatus,
    RoomSuggestion,
    ValidateAssignmentRequest,
    ValidationResult,
)
from classgrid.services.conflict_detector import ConflictDetector
from classgrid.services.conflicts import dismiss_conflict, get_conflict, get_room, list_conflicts, regeneration_status
from classgrid.services.manual_resolution import force_update, manual_adjust, suggest_rooms, validate_assignment
from classgrid.services.regeneration import AutoRegenerationEngine

router = APIRouter()


class DetectRequest(BaseModel):
    room_id: str
    previous_status: RoomStatus


@router.get("/", response_model=list[ConflictOut])
def read_conflicts(
    status: ConflictStatus | None = None,
    room_id: str | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> list[ConflictOut]:
    return [ConflictOut.from_conflict(conflict) for conflict in list_conflicts(db, status=status, room_id=room_id)]


@router.post("/detect", response_model=ConflictOut | None)
def detect(
    payload: DetectRequest,
    actor: Actor = Depends(require_roles("admin", "scheduler")),
    db: Session = Depends(get_db),
) -> ConflictOut | None:
    room = get_room(db, payload.room_id)
    conflict = ConflictDetector(db).on_room_status_changed(room, payload.previous_status)
    return ConflictOut.from_conflict(conflict) if conflict else None


@router.post("/force-update", response_model=ForceUpdateResult)
def force_room_update(
    payload: ForceUpdateRequest,
    actor: Actor = Depends(require_roles("admin", "scheduler")),
    db: Session = Depends(get_db),
) -> ForceUpdateResult:
    return force_update(db, payload.schedule_item_id, payload.new_room_id, actor=actor, reason=payload.reason)


@router.get("/{conflict_id}", response_model=ConflictOut)
def read_conflict(
    conflict_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> ConflictOut:
    return ConflictOut.from_conflict(get_conflict(db, conflict_id))


@router.post("/{conflict_id}/dismiss", response_model=ConflictOut)
def dismiss(
    conflict_id: str,
    actor: Actor = Depends(require_roles("admin", "scheduler")),
    db: Session = Depends(get_db),
) -> ConflictOut:
    return ConflictOut.from_conflict(dismiss_conflict(db, conflict_id, actor=actor))


@router.post("/{conflict_id}/auto-regenerate", response_model=RegenerationReport)
def auto_regenerate(
    conflict_id: str,
    actor: Actor = Depends(require_roles("admin", "scheduler")),
    db: Session = Depends(get_db),
) -> RegenerationReport:
    return AutoRegenerationEngine(db).resolve(conflict_id, actor)


@router.get("/{conflict_id}/status", response_model=RegenerationStatus)
def read_regeneration_status(
    conflict_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> RegenerationStatus:
    return regeneration_status(db, conflict_id)


@router.get("/{conflict_id}/entries/{entry_id}/suggestions", response_model=list[RoomSuggestion])
def room_suggestions(
    conflict_id: str,
    entry_id: str,
    limit: int | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> list[RoomSuggestion]:
    return suggest_rooms(db, conflict_id, entry_id, limit)


@router.post("/{conflict_id}/validate", response_model=ValidationResult)
def validate(
    conflict_id: str,
    payload: ValidateAssignmentRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> ValidationResult:
    return validate_assignment(db, conflict_id, payload.entry_id, payload.new_room_id)


@router.post("/{conflict_id}/manual-adjust", response_model=ManualAdjustResult)
def adjust(
    conflict_id: str,
    payload: ManualAdjustRequest,
    actor: Actor = Depends(require_roles("admin", "scheduler")),
    db: Session = Depends(get_db),
) -> ManualAdjustResult:
    return manual_adjust(db, conflict_id, payload.assignments, actor=actor, force=payload.force)
