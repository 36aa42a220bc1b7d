from classgrid.models.audit_log import AuditLog, ChangeType  # noqa: F401
from classgrid.models.conflict import (  # noqa: F401
    AffectedEntry,
    AffectedEntryStatus,
    Conflict,
    ConflictStatus,
    ResolutionMethod,
)
from classgrid.models.faculty import Faculty  # noqa: F401
from classgrid.models.mapping import SubjectFacultyMapping  # noqa: F401
from classgrid.models.period_config import PeriodConfig  # noqa: F401
from classgrid.models.room import Room, RoomStatus, RoomType  # noqa: F401
from classgrid.models.section import Section  # noqa: F401
from classgrid.models.subject import Subject, SubjectType  # noqa: F401
from classgrid.models.timetable import Day, ScheduleItem, Timetable  # noqa: F401
