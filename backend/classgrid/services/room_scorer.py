"""Room suitability scoring.

Every rule contributes its own points and all of them are summed, so that
valid candidates can still be ranked against each other:

* type match        up to 50
* capacity fit      up to 30 (under-capacity makes the room invalid)
* equipment         up to 20
* utilization       up to 10, emptier rooms score higher
* building          up to 15, repair path only
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from classgrid.models.room import Room, RoomType
from classgrid.models.section import Section
from classgrid.models.subject import Subject
from classgrid.services.catalog import effective_strength

TYPE_EXACT_POINTS = 50
TYPE_LAB_IN_CLASSROOM_POINTS = 10
TYPE_MISMATCH_POINTS = 25

BUILDING_PREFERRED_POINTS = 15
BUILDING_NOT_PREFERRED_POINTS = 5
BUILDING_NO_PREFERENCE_POINTS = 7


@dataclass
class RoomScore:
    is_valid: bool
    score: int
    breakdown: dict[str, float] = field(default_factory=dict)
    warnings: list[dict] = field(default_factory=list)


def required_room_type(subject: Subject) -> RoomType:
    return RoomType.lab if subject.needs_lab_room else RoomType.classroom


def _type_points(room: Room, subject: Subject, warnings: list[dict]) -> int:
    required = required_room_type(subject)
    if room.type == required:
        return TYPE_EXACT_POINTS
    if required == RoomType.lab:
        warnings.append(
            {
                "type": "type_mismatch",
                "severity": "warning",
                "message": f"Subject requires a {required.value}, but this is a {room.type.value}",
            }
        )
        return TYPE_LAB_IN_CLASSROOM_POINTS
    return TYPE_MISMATCH_POINTS


def _capacity_points(room: Room, strength: int, warnings: list[dict]) -> tuple[int, bool]:
    ratio = room.capacity / strength
    if ratio < 1.0:
        warnings.append(
            {
                "type": "capacity_insufficient",
                "severity": "error",
                "message": f"Room capacity ({room.capacity}) is less than section size ({strength})",
            }
        )
        return 0, False
    if ratio <= 1.2:
        return 30, True
    if ratio <= 1.5:
        return 20, True
    if ratio <= 2.0:
        return 10, True
    warnings.append(
        {
            "type": "capacity_oversized",
            "severity": "info",
            "message": f"Room capacity ({room.capacity}) is significantly larger than section size ({strength})",
        }
    )
    return 5, True


def missing_equipment(room: Room, subject: Subject) -> list[str]:
    available = set(room.equipment or [])
    return [item for item in (subject.required_equipment or []) if item not in available]


def _equipment_points(room: Room, subject: Subject, warnings: list[dict]) -> int:
    if not subject.required_equipment:
        return 10
    missing = missing_equipment(room, subject)
    if not missing:
        return 20
    warnings.append(
        {
            "type": "equipment_missing",
            "severity": "warning",
            "message": f"Missing equipment: {', '.join(missing)}",
            "missing": missing,
        }
    )
    return 5


def _building_points(room: Room, section: Section, warnings: list[dict]) -> int:
    preferred = section.preferred_buildings or []
    if not preferred:
        return BUILDING_NO_PREFERENCE_POINTS
    if room.building in preferred:
        return BUILDING_PREFERRED_POINTS
    warnings.append(
        {
            "type": "building_not_preferred",
            "severity": "info",
            "message": f"Room is in {room.building}, preferred buildings are: {', '.join(preferred)}",
        }
    )
    return BUILDING_NOT_PREFERRED_POINTS


def score_room(
    room: Room,
    subject: Subject,
    section: Section,
    *,
    utilization_percent: float = 0,
    include_building: bool = True,
) -> RoomScore:
    warnings: list[dict] = []
    strength = effective_strength(section)

    capacity, is_valid = _capacity_points(room, strength, warnings)
    breakdown: dict[str, float] = {
        "type_match": _type_points(room, subject, warnings),
        "capacity_match": capacity,
        "equipment_match": _equipment_points(room, subject, warnings),
        "utilization": max(0.0, 10 - utilization_percent / 10),
    }
    if include_building:
        breakdown["building_preference"] = _building_points(room, section, warnings)

    return RoomScore(
        is_valid=is_valid,
        score=round(sum(breakdown.values())),
        breakdown=breakdown,
        warnings=warnings,
    )


def match_quality(score: float) -> str:
    if score >= 100:
        return "Excellent"
    if score >= 80:
        return "Good"
    if score >= 60:
        return "Fair"
    if score >= 40:
        return "Poor"
    return "Not Recommended"


def pick_best_room(
    candidates: Iterable[Room],
    subject: Subject,
    section: Section,
    *,
    utilization: Callable[[Room], float],
    include_building: bool = True,
) -> tuple[Room, RoomScore] | None:
    """Highest-scoring valid room; ties go to the closest capacity, then the room code."""
    strength = effective_strength(section)
    best: tuple[tuple, Room, RoomScore] | None = None
    for room in candidates:
        result = score_room(
            room,
            subject,
            section,
            utilization_percent=utilization(room),
            include_building=include_building,
        )
        if not result.is_valid:
            continue
        key = (-result.score, abs(room.capacity - strength), room.code)
        if best is None or key < best[0]:
            best = (key, room, result)
    if best is None:
        return None
    return best[1], best[2]
