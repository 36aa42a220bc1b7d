from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from classgrid.api.deps import get_current_actor, get_db, require_roles
from classgrid.core.security import Actor
from classgrid.models.room import Room, RoomStatus
from classgrid.schemas.conflict import ConflictOut
from classgrid.schemas.room import RoomOut, RoomStatusChangeOut, RoomStatusUpdate
from classgrid.schemas.timetable import ScheduledClassesReport
from classgrid.services.conflict_detector import ConflictDetector
from classgrid.services.rooms import change_room_status

router = APIRouter()


@router.get("/", response_model=list[RoomOut])
def list_rooms(
    status: RoomStatus | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> list[RoomOut]:
    query = select(Room).order_by(Room.code)
    if status is not None:
        query = query.where(Room.status == status)
    return list(db.execute(query).scalars())


@router.patch("/{room_id}/status", response_model=RoomStatusChangeOut)
def update_room_status(
    room_id: str,
    payload: RoomStatusUpdate,
    actor: Actor = Depends(require_roles("admin", "scheduler")),
    db: Session = Depends(get_db),
) -> RoomStatusChangeOut:
    change = change_room_status(db, room_id, payload.status, actor=actor)
    return RoomStatusChangeOut(
        room=RoomOut.model_validate(change.room),
        previous_status=change.previous_status,
        conflict=ConflictOut.from_conflict(change.conflict) if change.conflict else None,
    )


@router.get("/{room_id}/scheduled-classes", response_model=ScheduledClassesReport)
def room_scheduled_classes(
    room_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> ScheduledClassesReport:
    return ConflictDetector(db).scheduled_classes(room_id)
