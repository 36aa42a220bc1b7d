from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from classgrid.api.deps import get_current_actor, get_db, require_roles
from classgrid.core.security import Actor
from classgrid.schemas.generator import BulkGenerationResult, DataSufficiencyReport, GenerationResult
from classgrid.schemas.timetable import TimetableOut, TimetableVersionOut
from classgrid.services.generation import check_data_sufficiency, generate_all_timetables, generate_section_timetable
from classgrid.services.timetable_writer import get_timetable, publish_timetable, timetable_history

router = APIRouter()


@router.post("/generate", response_model=BulkGenerationResult)
def generate_all(
    actor: Actor = Depends(require_roles("admin", "scheduler")),
    db: Session = Depends(get_db),
) -> BulkGenerationResult:
    return generate_all_timetables(db, actor=actor)


@router.post("/sections/{section_id}/generate", response_model=GenerationResult)
def generate_for_section(
    section_id: str,
    actor: Actor = Depends(require_roles("admin", "scheduler")),
    db: Session = Depends(get_db),
) -> GenerationResult:
    return generate_section_timetable(db, section_id, actor=actor)


@router.get("/sections/{section_id}/sufficiency", response_model=DataSufficiencyReport)
def data_sufficiency(
    section_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> DataSufficiencyReport:
    return check_data_sufficiency(db, section_id)


@router.get("/sections/{section_id}/history", response_model=list[TimetableVersionOut])
def section_history(
    section_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> list[TimetableVersionOut]:
    return timetable_history(db, section_id)


@router.get("/{timetable_id}", response_model=TimetableOut)
def read_timetable(
    timetable_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> TimetableOut:
    return get_timetable(db, timetable_id)


@router.post("/{timetable_id}/publish", response_model=TimetableOut)
def publish(
    timetable_id: str,
    actor: Actor = Depends(require_roles("admin", "scheduler")),
    db: Session = Depends(get_db),
) -> TimetableOut:
    return publish_timetable(db, timetable_id, actor=actor)
