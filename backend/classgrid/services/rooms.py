from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from classgrid.core.exceptions import ResourceNotFoundError
from classgrid.core.security import Actor
from classgrid.db.unit_of_work import commit_or_raise
from classgrid.models.conflict import Conflict
from classgrid.models.room import Room, RoomStatus
from classgrid.services.conflict_detector import ConflictDetector
from classgrid.services.events import EventPublisher, event_publisher

logger = logging.getLogger(__name__)


@dataclass
class RoomStatusChange:
    room: Room
    previous_status: RoomStatus
    conflict: Conflict | None


def change_room_status(
    db: Session,
    room_id: str,
    new_status: RoomStatus,
    *,
    actor: Actor,
    publisher: EventPublisher = event_publisher,
) -> RoomStatusChange:
    """Persist a room status and hand the transition to the conflict detector."""
    room = db.get(Room, room_id)
    if room is None:
        raise ResourceNotFoundError("Room", room_id)

    previous_status = room.status
    if previous_status != new_status:
        room.status = new_status
        commit_or_raise(db, f"update status of room {room.code}")
        db.refresh(room)
        logger.info(
            "Room %s status changed from %s to %s by %s",
            room.code,
            previous_status.value,
            room.status.value,
            actor.id,
        )

    conflict = ConflictDetector(db, publisher).on_room_status_changed(room, previous_status)
    return RoomStatusChange(room=room, previous_status=previous_status, conflict=conflict)
