"""create scheduling tables

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None

# Enum labels are the Python member names, which is what SQLAlchemy persists.
ENUMS = {
    "room_type": ("classroom", "lab"),
    "room_status": ("active", "in_maintenance", "reserved", "closed", "offline"),
    "subject_type": ("theory", "lab", "project"),
    "schedule_day": ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday"),
    "conflict_status": ("active", "resolved", "dismissed"),
    "affected_entry_status": ("pending", "resolved", "requires_manual"),
    "resolution_method": ("auto_regeneration", "manual_adjustment", "dismissed"),
    "audit_change_type": ("auto_regeneration", "manual_adjustment", "forced_update"),
}


def enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name, labels in ENUMS.items():
        sa.Enum(*labels, name=name).create(bind, checkfirst=True)

    op.create_table(
        "rooms",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("building", sa.String(length=200), nullable=True),
        sa.Column("floor", sa.Integer(), nullable=True),
        sa.Column("type", enum("room_type"), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("equipment", sa.JSON(), nullable=False),
        sa.Column("status", enum("room_status"), nullable=False),
        sa.Column("allow_theory_class", sa.Boolean(), nullable=False),
        sa.Column("allow_lab_class", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_rooms_code", "rooms", ["code"], unique=True)
    op.create_index("ix_rooms_status", "rooms", ["status"])

    op.create_table(
        "subjects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("type", enum("subject_type"), nullable=False),
        sa.Column("weekly_periods", sa.Integer(), nullable=False),
        sa.Column("required_equipment", sa.JSON(), nullable=False),
        sa.Column("requires_lab", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_subjects_code", "subjects", ["code"], unique=True)

    op.create_table(
        "faculty",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("max_hours_per_week", sa.Integer(), nullable=False),
        sa.Column("available_days", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_faculty_email", "faculty", ["email"], unique=True)

    op.create_table(
        "sections",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("department", sa.String(length=200), nullable=True),
        sa.Column("strength", sa.Integer(), nullable=False),
        sa.Column("preferred_buildings", sa.JSON(), nullable=False),
        sa.Column("total_periods_per_week", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_sections_name", "sections", ["name"], unique=True)

    op.create_table(
        "subject_faculty_mappings",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("section_id", sa.String(length=36), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("faculty_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("section_id", "subject_id", name="uq_mapping_section_subject"),
    )
    op.create_index("ix_subject_faculty_mappings_section_id", "subject_faculty_mappings", ["section_id"])
    op.create_index("ix_subject_faculty_mappings_subject_id", "subject_faculty_mappings", ["subject_id"])
    op.create_index("ix_subject_faculty_mappings_faculty_id", "subject_faculty_mappings", ["faculty_id"])

    op.create_table(
        "period_configs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("periods", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_period_configs_is_active", "period_configs", ["is_active"])

    op.create_table(
        "timetables",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("section_id", sa.String(length=36), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version", sa.String(length=20), nullable=False),
        sa.Column(
            "previous_version_id",
            sa.String(length=36),
            sa.ForeignKey("timetables.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("revision_history", sa.JSON(), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("generated_by", sa.String(length=36), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lock_version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_timetables_section_id", "timetables", ["section_id"])
    op.create_index("ix_timetables_is_published", "timetables", ["is_published"])

    op.create_table(
        "schedule_items",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "timetable_id", sa.String(length=36), sa.ForeignKey("timetables.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("day", enum("schedule_day"), nullable=False),
        sa.Column("day_index", sa.Integer(), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("faculty_id", sa.String(length=36), nullable=True),
        sa.Column("room_id", sa.String(length=36), nullable=True),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("is_affected", sa.Boolean(), nullable=False),
        sa.Column("conflict_id", sa.String(length=36), nullable=True),
        sa.Column("original_room_id", sa.String(length=36), nullable=True),
        sa.Column("affected_reason", sa.Text(), nullable=True),
        sa.Column("affected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("requires_manual_assignment", sa.Boolean(), nullable=False),
    )
    for column in ("timetable_id", "subject_id", "faculty_id", "room_id", "is_affected", "conflict_id"):
        op.create_index(f"ix_schedule_items_{column}", "schedule_items", [column])

    op.create_table(
        "conflicts",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("room_id", sa.String(length=36), nullable=False),
        sa.Column("room_code", sa.String(length=50), nullable=False),
        sa.Column("room_name", sa.String(length=100), nullable=False),
        sa.Column("original_status", enum("room_status"), nullable=False),
        sa.Column("new_status", enum("room_status"), nullable=False),
        sa.Column("status", enum("conflict_status"), nullable=False),
        sa.Column("total_affected", sa.Integer(), nullable=False),
        sa.Column("auto_resolved", sa.Integer(), nullable=False),
        sa.Column("manually_resolved", sa.Integer(), nullable=False),
        sa.Column("unresolved", sa.Integer(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.String(length=36), nullable=True),
        sa.Column("resolution_method", enum("resolution_method"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lock_version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_conflicts_room_id", "conflicts", ["room_id"])
    op.create_index("ix_conflicts_status", "conflicts", ["status"])
    op.create_index("ix_conflicts_created_at", "conflicts", ["created_at"])

    op.create_table(
        "conflict_affected_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "conflict_id", sa.String(length=36), sa.ForeignKey("conflicts.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("timetable_id", sa.String(length=36), nullable=False),
        sa.Column("schedule_item_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("subject_name", sa.String(length=200), nullable=False),
        sa.Column("faculty_id", sa.String(length=36), nullable=True),
        sa.Column("faculty_name", sa.String(length=200), nullable=False),
        sa.Column("section_id", sa.String(length=36), nullable=True),
        sa.Column("section_name", sa.String(length=100), nullable=False),
        sa.Column("day", enum("schedule_day"), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("status", enum("affected_entry_status"), nullable=False),
        sa.Column("resolution_method", enum("resolution_method"), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.String(length=36), nullable=True),
        sa.Column("new_room_id", sa.String(length=36), nullable=True),
        sa.Column("new_room_code", sa.String(length=50), nullable=True),
    )
    for column in ("conflict_id", "timetable_id", "schedule_item_id", "status"):
        op.create_index(f"ix_conflict_affected_entries_{column}", "conflict_affected_entries", [column])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("admin_id", sa.String(length=36), nullable=False),
        sa.Column("admin_name", sa.String(length=200), nullable=False),
        sa.Column("timetable_id", sa.String(length=36), nullable=True),
        sa.Column("schedule_item_id", sa.String(length=36), nullable=True),
        sa.Column("conflict_id", sa.String(length=36), nullable=True),
        sa.Column("change_type", enum("audit_change_type"), nullable=False),
        sa.Column("old_room_id", sa.String(length=36), nullable=True),
        sa.Column("old_room_code", sa.String(length=50), nullable=True),
        sa.Column("old_room_name", sa.String(length=100), nullable=True),
        sa.Column("new_room_id", sa.String(length=36), nullable=True),
        sa.Column("new_room_code", sa.String(length=50), nullable=True),
        sa.Column("new_room_name", sa.String(length=100), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("validation_warnings_overridden", sa.JSON(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
    )
    for column in (
        "created_at",
        "admin_id",
        "timetable_id",
        "schedule_item_id",
        "conflict_id",
        "change_type",
        "old_room_id",
        "new_room_id",
    ):
        op.create_index(f"ix_audit_logs_{column}", "audit_logs", [column])


def downgrade() -> None:
    for table in (
        "audit_logs",
        "conflict_affected_entries",
        "conflicts",
        "schedule_items",
        "timetables",
        "period_configs",
        "subject_faculty_mappings",
        "sections",
        "faculty",
        "subjects",
        "rooms",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        sa.Enum(name=name).drop(bind, checkfirst=True)
