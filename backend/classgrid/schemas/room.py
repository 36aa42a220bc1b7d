from __future__ import annotations

from pydantic import BaseModel, Field

from classgrid.models.room import RoomStatus, RoomType
from classgrid.schemas.conflict import ConflictOut


class RoomOut(BaseModel):
    id: str
    code: str
    name: str
    building: str | None = None
    floor: int | None = None
    type: RoomType
    capacity: int
    equipment: list[str] = Field(default_factory=list)
    status: RoomStatus
    allow_theory_class: bool = False
    allow_lab_class: bool = False

    model_config = {"from_attributes": True}


class RoomStatusUpdate(BaseModel):
    status: RoomStatus


class RoomStatusChangeOut(BaseModel):
    room: RoomOut
    previous_status: RoomStatus
    conflict: ConflictOut | None = None
