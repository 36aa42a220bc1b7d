from __future__ import annotations

from sqlalchemy.orm import Session

from classgrid.models.faculty import Faculty
from classgrid.models.room import Room, RoomStatus
from classgrid.models.section import Section
from classgrid.models.subject import Subject
from classgrid.models.timetable import ScheduleItem
from classgrid.schemas.conflict import ValidationCheck, ValidationIssue, ValidationResult
from classgrid.services.catalog import effective_strength
from classgrid.services.occupancy import find_room_booking
from classgrid.services.room_scorer import missing_equipment, required_room_type


class _Check:
    def __init__(
        self,
        name: str,
        passed: bool,
        message: str,
        *,
        severity: str = "error",
        issue_type: str = "",
        can_override: bool = False,
        data: dict | None = None,
    ) -> None:
        self.name = name
        self.passed = passed
        self.message = message
        self.severity = severity
        self.issue_type = issue_type
        self.can_override = can_override
        self.data = data or {}


def _room_status(room: Room) -> _Check:
    if room.status != RoomStatus.active:
        return _Check(
            "room_status",
            False,
            f"Room is currently {room.status.value.replace('_', ' ')}",
            issue_type="room_unavailable",
            data={"status": room.status.value},
        )
    return _Check("room_status", True, "Room is available")


def _capacity(room: Room, section: Section | None) -> _Check:
    if section is None:
        return _Check("capacity", False, "Section not found", issue_type="data_not_found")
    strength = effective_strength(section)
    if room.capacity < strength:
        return _Check(
            "capacity",
            False,
            f"Room capacity ({room.capacity}) is less than section size ({strength})",
            issue_type="capacity_insufficient",
            can_override=True,
            data={"room_capacity": room.capacity, "section_strength": strength, "deficit": strength - room.capacity},
        )
    if room.capacity > strength * 2:
        return _Check(
            "capacity",
            True,
            f"Room capacity ({room.capacity}) is significantly larger than section size ({strength})",
        )
    return _Check("capacity", True, "Room capacity is appropriate")


def _equipment(room: Room, subject: Subject | None) -> _Check:
    if subject is None:
        return _Check("equipment", False, "Subject not found", issue_type="data_not_found")
    if not subject.required_equipment:
        return _Check("equipment", True, "No special equipment required")
    missing = missing_equipment(room, subject)
    if missing:
        return _Check(
            "equipment",
            False,
            f"Room is missing required equipment: {', '.join(missing)}",
            severity="warning",
            issue_type="equipment_missing",
            can_override=True,
            data={"required": list(subject.required_equipment), "missing": missing},
        )
    return _Check("equipment", True, "All required equipment available")


def _availability(db: Session, room: Room, item: ScheduleItem) -> _Check:
    booking = find_room_booking(db, room.id, item.day, item.period, exclude_item_id=item.id)
    if booking is not None:
        subject = db.get(Subject, booking.subject_id) if booking.subject_id else None
        faculty = db.get(Faculty, booking.faculty_id) if booking.faculty_id else None
        section = db.get(Section, booking.timetable.section_id)
        return _Check(
            "availability",
            False,
            "Room is already occupied during this time slot",
            issue_type="room_occupied",
            data={
                "conflicting_class": {
                    "subject": subject.name if subject else "Unknown",
                    "faculty": faculty.name if faculty else "Unknown",
                    "section": section.name if section else "Unknown",
                    "day": booking.day.value,
                    "period": booking.period,
                    "time": f"{booking.start_time}-{booking.end_time}",
                }
            },
        )
    return _Check("availability", True, "Time slot is available")


def _room_type(room: Room, subject: Subject | None) -> _Check:
    if subject is None:
        return _Check("room_type", False, "Subject not found", issue_type="data_not_found")
    required = required_room_type(subject)
    if room.type != required:
        return _Check(
            "room_type",
            False,
            f"Selected room is a {room.type.value}, but the subject requires a {required.value}",
            severity="warning",
            issue_type="type_mismatch",
            can_override=True,
            data={"room_type": room.type.value, "required_type": required.value},
        )
    return _Check("room_type", True, "Room type matches requirements")


def validate_room_assignment(
    db: Session,
    item: ScheduleItem,
    room: Room,
    *,
    section: Section | None,
    subject: Subject | None,
) -> ValidationResult:
    """Run every check for moving ``item`` into ``room``.

    Errors block the move; ``can_force_update`` is only true when every
    failing check may be overridden.
    """
    checks = [
        _room_status(room),
        _capacity(room, section),
        _equipment(room, subject),
        _availability(db, room, item),
        _room_type(room, subject),
    ]

    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    overridable = True
    for check in checks:
        if check.passed:
            continue
        issue = ValidationIssue(
            check_name=check.name,
            type=check.issue_type,
            message=check.message,
            severity=check.severity,
            can_override=check.can_override,
            data=check.data,
        )
        if check.severity == "error":
            errors.append(issue)
            overridable = overridable and check.can_override
        else:
            warnings.append(issue)

    return ValidationResult(
        is_valid=not errors and not warnings,
        can_force_update=overridable and bool(errors or warnings),
        errors=errors,
        warnings=warnings,
        checks=[ValidationCheck(name=check.name, passed=check.passed, message=check.message) for check in checks],
    )
