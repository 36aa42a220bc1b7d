from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from classgrid import models  # noqa: F401
from classgrid.api.deps import get_db
from classgrid.core.security import Actor, create_access_token
from classgrid.db.base import Base
from classgrid.main import app
from classgrid.models.faculty import Faculty
from classgrid.models.mapping import SubjectFacultyMapping
from classgrid.models.room import Room, RoomStatus, RoomType
from classgrid.models.section import Section
from classgrid.models.subject import Subject, SubjectType
from classgrid.models.timetable import Day, ScheduleItem, Timetable
from classgrid.services.calendar import DEFAULT_PERIOD_TIMES
from classgrid.services.events import EventPublisher

ADMIN = Actor(id="admin-1", name="Admin One", role="admin")


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def admin():
    return ADMIN


class EventRecorder:
    def __init__(self) -> None:
        self.publisher = EventPublisher()
        self.events: list[tuple[str, dict]] = []

    def watch(self, *names: str) -> "EventRecorder":
        for name in names:
            self.publisher.subscribe(name, lambda event, payload: self.events.append((event, payload)))
        return self

    def named(self, name: str) -> list[dict]:
        return [payload for event, payload in self.events if event == name]


@pytest.fixture()
def events():
    return EventRecorder()


class Factory:
    """Builds committed catalog rows and published timetables for a test."""

    def __init__(self, db) -> None:
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def room(self, code, *, capacity=60, type=RoomType.classroom, status=RoomStatus.active, building=None, equipment=None, **extra):
        return self._save(
            Room(
                code=code,
                name=extra.pop("name", f"Room {code}"),
                capacity=capacity,
                type=type,
                status=status,
                building=building,
                equipment=list(equipment or []),
                **extra,
            )
        )

    def subject(self, code, *, weekly_periods=3, type=SubjectType.theory, equipment=None, **extra):
        return self._save(
            Subject(
                code=code,
                name=extra.pop("name", f"Subject {code}"),
                type=type,
                weekly_periods=weekly_periods,
                required_equipment=list(equipment or []),
                **extra,
            )
        )

    def faculty(self, name, *, max_hours_per_week=40, available_days=None):
        return self._save(
            Faculty(name=name, max_hours_per_week=max_hours_per_week, available_days=list(available_days or []))
        )

    def section(self, name, *, strength=50, preferred_buildings=None):
        return self._save(Section(name=name, strength=strength, preferred_buildings=list(preferred_buildings or [])))

    def mapping(self, section, subject, faculty):
        return self._save(SubjectFacultyMapping(section_id=section.id, subject_id=subject.id, faculty_id=faculty.id))

    def timetable(self, section, slots, *, published=True):
        """``slots`` is a list of ``(day, period, subject, faculty, room)`` tuples."""
        timetable = Timetable(
            section_id=section.id,
            version="1.0",
            revision_history=[],
            is_published=published,
            published_at=datetime.now(timezone.utc) if published else None,
            generated_by=ADMIN.id,
        )
        timetable.items = [
            ScheduleItem(
                day=day,
                day_index=day.index,
                period=period,
                start_time=DEFAULT_PERIOD_TIMES[period][0],
                end_time=DEFAULT_PERIOD_TIMES[period][1],
                subject_id=subject.id if subject else None,
                faculty_id=faculty.id if faculty else None,
                room_id=room.id if room else None,
            )
            for day, period, subject, faculty, room in slots
        ]
        return self._save(timetable)


@pytest.fixture()
def factory(db):
    return Factory(db)


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def auth_headers(actor: Actor = ADMIN) -> dict[str, str]:
    token = create_access_token(subject=actor.id, name=actor.name, role=actor.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers():
    return auth_headers(ADMIN)


@pytest.fixture()
def viewer_headers():
    return auth_headers(Actor(id="viewer-1", name="Viewer", role="student"))


