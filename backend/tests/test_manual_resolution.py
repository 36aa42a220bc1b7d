import pytest
from sqlalchemy import select

from classgrid.core.exceptions import ConflictStateError
from classgrid.models.audit_log import AuditLog, ChangeType
from classgrid.models.conflict import AffectedEntryStatus, ConflictStatus, ResolutionMethod
from classgrid.models.room import RoomStatus, RoomType
from classgrid.models.timetable import Day, ScheduleItem
from classgrid.schemas.conflict import ManualAssignmentRequest
from classgrid.services.manual_resolution import force_update, manual_adjust, suggest_rooms, validate_assignment
from classgrid.services.conflicts import dismiss_conflict
from classgrid.services.regeneration import AutoRegenerationEngine
from classgrid.services.rooms import change_room_status


@pytest.fixture()
def displaced(db, factory, admin):
    rooms = {
        "R1": factory.room("R1", capacity=50, building="Main"),
        "BIG": factory.room("BIG", capacity=45, building="Main"),
        "TINY": factory.room("TINY", capacity=20, building="Main"),
        "BUSY": factory.room("BUSY", capacity=44, building="Main"),
        "LAB": factory.room("LAB", capacity=45, type=RoomType.lab, building="Main"),
    }
    subject = factory.subject("MATH", name="Math", equipment=["projector"])
    section = factory.section("S1", strength=40, preferred_buildings=["Main"])
    factory.timetable(section, [(Day.monday, 1, subject, factory.faculty("Dr. Rao"), rooms["R1"])])
    other = factory.section("S2", strength=30)
    factory.timetable(other, [(Day.monday, 1, factory.subject("ENG"), factory.faculty("Dr. Iyer"), rooms["BUSY"])])
    conflict = change_room_status(db, rooms["R1"].id, RoomStatus.in_maintenance, actor=admin).conflict
    return conflict, conflict.entries[0], rooms


def audit_rows(db):
    return db.execute(select(AuditLog).order_by(AuditLog.id)).scalars().all()


def test_validation_reports_overridable_capacity_error(db, displaced):
    conflict, entry, rooms = displaced

    result = validate_assignment(db, conflict.id, entry.id, rooms["TINY"].id)

    assert not result.is_valid
    assert result.can_force_update
    assert [issue.check_name for issue in result.errors] == ["capacity"]
    assert result.errors[0].data["deficit"] == 20
    assert {check.name for check in result.checks} == {"room_status", "capacity", "equipment", "availability", "room_type"}


def test_validation_flags_occupied_slot_with_the_conflicting_class(db, displaced):
    conflict, entry, rooms = displaced

    result = validate_assignment(db, conflict.id, entry.id, rooms["BUSY"].id)

    occupied = [issue for issue in result.errors if issue.check_name == "availability"]
    assert not occupied[0].can_override
    assert not result.can_force_update
    assert occupied[0].data["conflicting_class"]["section"] == "S2"


def test_unavailable_room_cannot_be_forced(db, displaced):
    conflict, entry, rooms = displaced

    result = validate_assignment(db, conflict.id, entry.id, rooms["R1"].id)

    assert not result.can_force_update
    assert result.errors[0].check_name == "room_status"


def test_missing_equipment_and_type_mismatch_are_warnings(db, displaced):
    conflict, entry, rooms = displaced

    result = validate_assignment(db, conflict.id, entry.id, rooms["LAB"].id)

    assert result.errors == []
    assert {issue.check_name for issue in result.warnings} == {"equipment", "room_type"}
    assert not result.is_valid
    assert result.can_force_update


def test_suggestions_rank_free_rooms_first(db, displaced):
    conflict, entry, rooms = displaced

    suggestions = suggest_rooms(db, conflict.id, entry.id, limit=10)

    codes = [suggestion.room.code for suggestion in suggestions]
    assert "R1" not in codes
    assert "TINY" not in codes
    assert codes[-1] == "BUSY"
    assert not suggestions[-1].is_available
    assert all(suggestion.is_available for suggestion in suggestions[:-1])
    assert suggestions[0].room.code == "BIG"
    assert suggestions[0].score_breakdown["building_preference"] == 15
    assert suggestions[0].match_quality == "Excellent"


def test_manual_adjust_resolves_and_closes_the_conflict(db, displaced, admin):
    conflict, entry, rooms = displaced
    rooms["BIG"].equipment = ["projector"]
    db.commit()

    result = manual_adjust(
        db, conflict.id, [ManualAssignmentRequest(entry_id=entry.id, new_room_id=rooms["BIG"].id)], actor=admin
    )

    assert result.results[0].success
    assert result.results[0].change_type == "manual_adjustment"
    assert result.conflict_status == ConflictStatus.resolved
    assert result.resolution_summary.manually_resolved == 1
    assert entry.status == AffectedEntryStatus.resolved
    assert entry.resolution_method == ResolutionMethod.manual_adjustment
    assert conflict.resolution_method == ResolutionMethod.manual_adjustment
    item = db.get(ScheduleItem, entry.schedule_item_id)
    assert item.room_id == rooms["BIG"].id
    assert not item.is_affected

    rows = audit_rows(db)
    assert len(rows) == 1
    assert rows[0].change_type == ChangeType.manual_adjustment
    assert (rows[0].old_room_code, rows[0].new_room_code) == ("R1", "BIG")
    assert rows[0].validation_warnings_overridden == []


def test_invalid_assignment_is_rejected_without_force(db, displaced, admin):
    conflict, entry, rooms = displaced

    result = manual_adjust(
        db, conflict.id, [ManualAssignmentRequest(entry_id=entry.id, new_room_id=rooms["TINY"].id)], actor=admin
    )

    outcome = result.results[0]
    assert not outcome.success
    assert outcome.error == "Validation failed"
    assert outcome.validation.errors[0].check_name == "capacity"
    assert entry.status == AffectedEntryStatus.pending
    assert result.conflict_status == ConflictStatus.active
    assert audit_rows(db) == []


def test_forced_assignment_records_overridden_messages(db, displaced, admin):
    conflict, entry, rooms = displaced

    result = manual_adjust(
        db,
        conflict.id,
        [ManualAssignmentRequest(entry_id=entry.id, new_room_id=rooms["TINY"].id)],
        actor=admin,
        force=True,
    )

    assert result.results[0].success
    assert result.results[0].change_type == "forced_update"
    row = audit_rows(db)[0]
    assert row.change_type == ChangeType.forced_update
    assert "Room capacity (20) is less than section size (40)" in row.validation_warnings_overridden


def test_force_cannot_override_an_unavailable_room(db, displaced, admin):
    conflict, entry, rooms = displaced
    change_room_status(db, rooms["BIG"].id, RoomStatus.reserved, actor=admin)

    result = manual_adjust(
        db,
        conflict.id,
        [ManualAssignmentRequest(entry_id=entry.id, new_room_id=rooms["BIG"].id)],
        actor=admin,
        force=True,
    )

    assert not result.results[0].success
    assert entry.status == AffectedEntryStatus.pending


def test_manual_adjust_picks_up_entries_left_by_auto_regeneration(db, factory, admin):
    r1 = factory.room("R1", capacity=50)
    section = factory.section("S1", strength=40)
    factory.timetable(section, [(Day.monday, 1, factory.subject("MATH"), factory.faculty("Dr. Rao"), r1)])
    conflict = change_room_status(db, r1.id, RoomStatus.closed, actor=admin).conflict
    AutoRegenerationEngine(db).resolve(conflict.id, admin)
    entry = conflict.entries[0]
    assert entry.status == AffectedEntryStatus.requires_manual
    new_room = factory.room("R9", capacity=45)

    result = manual_adjust(
        db, conflict.id, [ManualAssignmentRequest(entry_id=entry.id, new_room_id=new_room.id)], actor=admin
    )

    assert result.results[0].success
    assert result.conflict_status == ConflictStatus.resolved
    assert not db.get(ScheduleItem, entry.schedule_item_id).requires_manual_assignment


def test_unknown_entry_and_room_are_reported_per_assignment(db, displaced, admin):
    conflict, entry, rooms = displaced

    result = manual_adjust(
        db,
        conflict.id,
        [
            ManualAssignmentRequest(entry_id="missing", new_room_id=rooms["BIG"].id),
            ManualAssignmentRequest(entry_id=entry.id, new_room_id="missing"),
        ],
        actor=admin,
    )

    assert [outcome.success for outcome in result.results] == [False, False]
    assert result.results[1].error == "Room not found"


def test_force_update_moves_a_live_class(db, factory, admin):
    r1 = factory.room("R1", capacity=50)
    tiny = factory.room("TINY", capacity=20)
    section = factory.section("S1", strength=40)
    timetable = factory.timetable(section, [(Day.monday, 1, factory.subject("MATH"), factory.faculty("Dr. Rao"), r1)])
    item = timetable.items[0]

    result = force_update(db, item.id, tiny.id, actor=admin, reason="Projector repair in R1")

    assert result.old_room_code == "R1"
    assert result.new_room_code == "TINY"
    assert result.warnings_overridden
    row = db.get(AuditLog, result.audit_log_id)
    assert row.change_type == ChangeType.forced_update
    assert row.reason == "Projector repair in R1"
    assert db.get(ScheduleItem, item.id).room_id == tiny.id


def test_force_update_refuses_affected_items(db, displaced, admin):
    _, entry, rooms = displaced

    with pytest.raises(ConflictStateError):
        force_update(db, entry.schedule_item_id, rooms["BIG"].id, actor=admin, reason="manual")


def items_in(db, room, day, period):
    return db.execute(
        select(ScheduleItem).where(ScheduleItem.room_id == room.id, ScheduleItem.day == day, ScheduleItem.period == period)
    ).scalars().all()


def test_force_cannot_double_book_an_occupied_room(db, displaced, admin):
    conflict, entry, rooms = displaced

    result = manual_adjust(
        db,
        conflict.id,
        [ManualAssignmentRequest(entry_id=entry.id, new_room_id=rooms["BUSY"].id)],
        actor=admin,
        force=True,
    )

    outcome = result.results[0]
    assert not outcome.success
    assert outcome.error == "Validation failed"
    assert entry.status == AffectedEntryStatus.pending
    assert len(items_in(db, rooms["BUSY"], Day.monday, 1)) == 1
    assert audit_rows(db) == []


def test_force_update_refuses_an_occupied_room(db, factory, admin):
    r1, r2 = factory.room("R1", capacity=50), factory.room("R2", capacity=50)
    lecturer = factory.faculty("Dr. Rao")
    moving = factory.timetable(factory.section("S1", strength=40), [(Day.monday, 1, factory.subject("MATH"), lecturer, r1)])
    factory.timetable(factory.section("S2", strength=40), [(Day.monday, 1, factory.subject("ENG"), factory.faculty("Dr. Iyer"), r2)])

    with pytest.raises(ConflictStateError) as exc_info:
        force_update(db, moving.items[0].id, r2.id, actor=admin, reason="swap")

    assert exc_info.value.details["errors"][0]["check_name"] == "availability"
    assert len(items_in(db, r2, Day.monday, 1)) == 1


def test_dismissal_releases_items_for_force_update(db, displaced, admin):
    conflict, entry, rooms = displaced

    dismiss_conflict(db, conflict.id, actor=admin)
    item = db.get(ScheduleItem, entry.schedule_item_id)
    assert not item.is_affected
    assert item.conflict_id is None
    assert item.room_id == rooms["R1"].id
    assert entry.status == AffectedEntryStatus.pending

    result = force_update(db, item.id, rooms["BIG"].id, actor=admin, reason="Moved after dismissal")

    assert result.old_room_code == "R1"
    assert result.new_room_code == "BIG"
    assert db.get(ScheduleItem, item.id).room_id == rooms["BIG"].id


def test_dismissed_items_are_picked_up_by_the_next_status_change(db, displaced, admin):
    conflict, entry, rooms = displaced
    dismiss_conflict(db, conflict.id, actor=admin)

    reopened = change_room_status(db, rooms["R1"].id, RoomStatus.closed, actor=admin).conflict

    assert reopened is not None
    assert reopened.id != conflict.id
    assert [new.schedule_item_id for new in reopened.entries] == [entry.schedule_item_id]
    assert db.get(ScheduleItem, entry.schedule_item_id).conflict_id == reopened.id
