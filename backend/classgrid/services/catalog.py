from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from classgrid.core.config import get_settings
from classgrid.models.faculty import Faculty
from classgrid.models.mapping import SubjectFacultyMapping
from classgrid.models.room import Room, RoomStatus
from classgrid.models.section import Section
from classgrid.models.subject import Subject


def effective_strength(section: Section) -> int:
    """Section size used for capacity checks; empty sections fall back to the configured default."""
    return section.strength or get_settings().default_section_strength


@dataclass
class ResourceCatalog:
    """Read-only snapshot of the resources a scheduling run works with."""

    rooms: dict[str, Room] = field(default_factory=dict)
    subjects: dict[str, Subject] = field(default_factory=dict)
    faculty: dict[str, Faculty] = field(default_factory=dict)
    sections: dict[str, Section] = field(default_factory=dict)
    mappings: list[SubjectFacultyMapping] = field(default_factory=list)

    @classmethod
    def load(cls, db: Session) -> "ResourceCatalog":
        return cls(
            rooms={room.id: room for room in db.execute(select(Room).order_by(Room.code)).scalars()},
            subjects={subject.id: subject for subject in db.execute(select(Subject)).scalars()},
            faculty={member.id: member for member in db.execute(select(Faculty)).scalars()},
            sections={section.id: section for section in db.execute(select(Section).order_by(Section.name)).scalars()},
            mappings=list(
                db.execute(select(SubjectFacultyMapping).order_by(SubjectFacultyMapping.created_at)).scalars()
            ),
        )

    def active_rooms(self) -> list[Room]:
        return [room for room in self.rooms.values() if room.status == RoomStatus.active]

    def mappings_for(self, section_id: str) -> list[SubjectFacultyMapping]:
        return [mapping for mapping in self.mappings if mapping.section_id == section_id]

    def dangling_references(self, mappings: list[SubjectFacultyMapping]) -> list[str]:
        problems: list[str] = []
        for mapping in mappings:
            if mapping.subject_id not in self.subjects:
                problems.append(f"Mapping {mapping.id} references missing subject {mapping.subject_id}")
            if mapping.faculty_id not in self.faculty:
                problems.append(f"Mapping {mapping.id} references missing faculty {mapping.faculty_id}")
        return problems
