import pytest
from sqlalchemy import select

from classgrid.core.exceptions import ConflictStateError, ResourceNotFoundError
from classgrid.models.audit_log import AuditLog, ChangeType
from classgrid.models.conflict import AffectedEntryStatus, ConflictStatus, ResolutionMethod
from classgrid.models.room import RoomStatus, RoomType
from classgrid.models.subject import SubjectType
from classgrid.models.timetable import Day, ScheduleItem
from classgrid.services.conflicts import dismiss_conflict, entry_context, regeneration_status
from classgrid.services.events import RESOLUTION_SUMMARY, ROOM_CHANGED
from classgrid.services.regeneration import AutoRegenerationEngine
from classgrid.services.rooms import change_room_status


def open_conflict(db, factory, admin, *, replacement_capacity=55, slots=None):
    r1 = factory.room("R1", capacity=50, building="Main")
    r2 = factory.room("R2", capacity=replacement_capacity, building="Main")
    section = factory.section("S1", strength=40)
    subject = factory.subject("MATH", name="Math")
    lecturer = factory.faculty("Dr. Rao")
    factory.timetable(section, [(day, period, subject, lecturer, r1) for day, period in (slots or [(Day.monday, 1)])])
    conflict = change_room_status(db, r1.id, RoomStatus.in_maintenance, actor=admin).conflict
    return conflict, r1, r2


def audit_rows(db):
    return db.execute(select(AuditLog).order_by(AuditLog.id)).scalars().all()


def test_pending_entry_moves_to_the_free_room(db, factory, admin, events):
    conflict, r1, r2 = open_conflict(db, factory, admin)
    events.watch(ROOM_CHANGED, RESOLUTION_SUMMARY)

    report = AutoRegenerationEngine(db, events.publisher).resolve(conflict.id, admin)

    assert report.total_affected == 1
    assert report.resolved == 1
    assert report.failed == 0
    assert report.success_rate == 100.0
    assert report.conflict_status == ConflictStatus.resolved
    assert report.assignments[0].old_room == "R1"
    assert report.assignments[0].new_room == "R2"

    entry = conflict.entries[0]
    assert entry.status == AffectedEntryStatus.resolved
    assert entry.new_room_id == r2.id
    assert entry.resolution_method == ResolutionMethod.auto_regeneration
    assert entry.resolved_by == admin.id

    item = db.get(ScheduleItem, entry.schedule_item_id)
    assert item.room_id == r2.id
    assert not item.is_affected
    assert item.conflict_id is None
    assert item.original_room_id is None

    rows = audit_rows(db)
    assert len(rows) == 1
    assert rows[0].change_type == ChangeType.auto_regeneration
    assert (rows[0].old_room_code, rows[0].new_room_code) == ("R1", "R2")
    assert rows[0].admin_id == admin.id
    assert rows[0].conflict_id == conflict.id
    assert rows[0].schedule_item_id == item.id

    assert conflict.status == ConflictStatus.resolved
    assert conflict.resolution_method == ResolutionMethod.auto_regeneration
    assert conflict.summary()["auto_resolved"] == 1
    assert len(events.named(ROOM_CHANGED)) == 1
    assert events.named(RESOLUTION_SUMMARY)[0]["resolved"] == 1


def test_undersized_replacement_leaves_entry_for_manual_assignment(db, factory, admin):
    conflict, _, _ = open_conflict(db, factory, admin, replacement_capacity=20)

    report = AutoRegenerationEngine(db).resolve(conflict.id, admin)

    assert report.resolved == 0
    assert report.failed == 1
    assert report.failed_entries[0].reason == "No suitable room available"
    assert report.resolution_summary.unresolved == 1
    entry = conflict.entries[0]
    assert entry.status == AffectedEntryStatus.requires_manual
    item = db.get(ScheduleItem, entry.schedule_item_id)
    assert item.requires_manual_assignment
    assert item.is_affected
    assert conflict.status == ConflictStatus.active
    assert audit_rows(db) == []


def test_every_reassignment_writes_exactly_one_audit_row(db, factory, admin):
    conflict, _, _ = open_conflict(
        db, factory, admin, slots=[(Day.monday, 1), (Day.tuesday, 2), (Day.friday, 8)]
    )

    report = AutoRegenerationEngine(db).resolve(conflict.id, admin)

    rows = audit_rows(db)
    assert report.resolved == 3
    assert len(rows) == 3
    assert {row.schedule_item_id for row in rows} == {entry.schedule_item_id for entry in conflict.entries}
    for row, assignment in zip(rows, report.assignments):
        assert row.old_room_code == assignment.old_room
        assert row.new_room_code == assignment.new_room


def test_rooms_taken_earlier_in_the_run_are_not_reused(db, factory, admin):
    r1 = factory.room("R1", capacity=50)
    r2 = factory.room("R2", capacity=50)
    subject = factory.subject("MATH")
    lecturer_a = factory.faculty("Dr. Rao")
    lecturer_b = factory.faculty("Dr. Iyer")
    # Two sections double-booked into R1 at the same slot; only one can land in R2.
    factory.timetable(factory.section("S1", strength=40), [(Day.monday, 1, subject, lecturer_a, r1)])
    factory.timetable(factory.section("S2", strength=40), [(Day.monday, 1, subject, lecturer_b, r1)])
    conflict = change_room_status(db, r1.id, RoomStatus.closed, actor=admin).conflict

    report = AutoRegenerationEngine(db).resolve(conflict.id, admin)

    assert report.resolved == 1
    assert report.failed == 1
    statuses = sorted(entry.status.value for entry in conflict.entries)
    assert statuses == ["requires_manual", "resolved"]
    assert [row.new_room_code for row in audit_rows(db)] == [r2.code]


def test_second_conflict_sees_rooms_used_by_the_first(db, factory, admin):
    r1 = factory.room("R1", capacity=50)
    r2 = factory.room("R2", capacity=50)
    r3 = factory.room("R3", capacity=50)
    subject = factory.subject("MATH")
    factory.timetable(factory.section("S1", strength=40), [(Day.monday, 1, subject, factory.faculty("A"), r1)])
    factory.timetable(factory.section("S2", strength=40), [(Day.monday, 1, subject, factory.faculty("B"), r3)])

    first = change_room_status(db, r1.id, RoomStatus.closed, actor=admin).conflict
    AutoRegenerationEngine(db).resolve(first.id, admin)
    second = change_room_status(db, r3.id, RoomStatus.closed, actor=admin).conflict
    report = AutoRegenerationEngine(db).resolve(second.id, admin)

    assert first.entries[0].new_room_id == r2.id
    assert report.failed == 1
    assert second.entries[0].status == AffectedEntryStatus.requires_manual


def test_entry_no_longer_affected_is_skipped_and_stays_pending(db, factory, admin):
    conflict, r1, _ = open_conflict(db, factory, admin)
    change_room_status(db, r1.id, RoomStatus.active, actor=admin)

    report = AutoRegenerationEngine(db).resolve(conflict.id, admin)

    assert report.resolved == 0
    assert report.failed_entries[0].reason == "Schedule item is no longer affected by this conflict"
    assert conflict.entries[0].status == AffectedEntryStatus.pending
    assert conflict.status == ConflictStatus.active


def test_only_active_conflicts_can_be_regenerated(db, factory, admin):
    conflict, _, _ = open_conflict(db, factory, admin)
    AutoRegenerationEngine(db).resolve(conflict.id, admin)

    with pytest.raises(ConflictStateError):
        AutoRegenerationEngine(db).resolve(conflict.id, admin)


def test_unknown_conflict_is_not_found(db, admin):
    with pytest.raises(ResourceNotFoundError):
        AutoRegenerationEngine(db).resolve("missing", admin)


def test_dismissed_conflict_keeps_its_entries_unresolved(db, factory, admin):
    conflict, _, _ = open_conflict(db, factory, admin)

    dismissed = dismiss_conflict(db, conflict.id, actor=admin)

    assert dismissed.status == ConflictStatus.dismissed
    assert dismissed.resolution_method == ResolutionMethod.dismissed
    assert dismissed.entries[0].status == AffectedEntryStatus.pending
    with pytest.raises(ConflictStateError):
        AutoRegenerationEngine(db).resolve(conflict.id, admin)


def test_regeneration_status_counts_entries(db, factory, admin):
    conflict, _, _ = open_conflict(db, factory, admin, replacement_capacity=20)
    AutoRegenerationEngine(db).resolve(conflict.id, admin)

    status = regeneration_status(db, conflict.id)

    assert (status.pending, status.requires_manual, status.resolved) == (0, 1, 0)
    assert status.status == ConflictStatus.active


def open_lab_conflict(db, factory, admin):
    lab_rooms = {
        code: factory.room(code, capacity=capacity, type=RoomType.lab)
        for code, capacity in (("L1", 50), ("L2", 42), ("L3", 90))
    }
    subject = factory.subject("PHY-LAB", type=SubjectType.lab, weekly_periods=2)
    section = factory.section("S1", strength=40)
    lecturer = factory.faculty("Dr. Rao")
    factory.timetable(section, [(Day.monday, period, subject, lecturer, lab_rooms["L1"]) for period in (1, 2)])
    conflict = change_room_status(db, lab_rooms["L1"].id, RoomStatus.closed, actor=admin).conflict
    return conflict, lab_rooms


def test_both_periods_of_a_lab_block_land_in_one_room(db, factory, admin):
    conflict, lab_rooms = open_lab_conflict(db, factory, admin)

    report = AutoRegenerationEngine(db).resolve(conflict.id, admin)

    assert report.resolved == 2
    assert {entry.new_room_id for entry in conflict.entries} == {lab_rooms["L2"].id}


def test_adjacent_block_room_is_preferred_over_a_better_score(db, factory, admin):
    conflict, lab_rooms = open_lab_conflict(db, factory, admin)
    engine = AutoRegenerationEngine(db)
    second_half = entry_context(db, conflict.entries[1])

    best = engine.find_replacement_room(second_half, {lab_rooms["L1"].id})
    kept = engine.find_replacement_room(second_half, {lab_rooms["L1"].id}, preferred=lab_rooms["L3"])

    assert best[0].code == "L2"
    assert kept[0].code == "L3"


def test_busy_adjacent_room_falls_back_to_the_best_free_room(db, factory, admin):
    conflict, lab_rooms = open_lab_conflict(db, factory, admin)
    other = factory.section("S2", strength=40)
    factory.timetable(other, [(Day.monday, 2, factory.subject("CHEM"), factory.faculty("Dr. Iyer"), lab_rooms["L3"])])
    second_half = entry_context(db, conflict.entries[1])

    choice = AutoRegenerationEngine(db).find_replacement_room(
        second_half, {lab_rooms["L1"].id}, preferred=lab_rooms["L3"]
    )

    assert choice[0].code == "L2"
