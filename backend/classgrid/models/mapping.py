import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from classgrid.db.base import Base


class SubjectFacultyMapping(Base):
    """Declares who teaches which subject to which section."""

    __tablename__ = "subject_faculty_mappings"
    __table_args__ = (UniqueConstraint("section_id", "subject_id", name="uq_mapping_section_subject"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    section_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sections.id", ondelete="CASCADE"), index=True, nullable=False
    )
    # Subject and faculty are deliberately not foreign keys: the catalog is
    # maintained elsewhere and dangling references are reported as input errors.
    subject_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    faculty_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
