from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from classgrid.core.exceptions import InputError, ResourceNotFoundError
from classgrid.core.security import Actor
from classgrid.models.section import Section
from classgrid.schemas.generator import (
    BulkGenerationFailure,
    BulkGenerationResult,
    BulkGenerationSuccess,
    BulkGenerationSummary,
    DataSufficiencyReport,
    GenerationResult,
)
from classgrid.schemas.timetable import TimetableOut
from classgrid.services.calendar import PeriodTimes, load_period_times
from classgrid.services.catalog import ResourceCatalog
from classgrid.services.constraint_tracker import GlobalConstraintTracker
from classgrid.services.events import TIMETABLE_GENERATED, EventPublisher, event_publisher
from classgrid.services.grid_placer import GridPlacer
from classgrid.services.timetable_writer import write_timetable

logger = logging.getLogger(__name__)


def check_data_sufficiency(db: Session, section_id: str, catalog: ResourceCatalog | None = None) -> DataSufficiencyReport:
    catalog = catalog or ResourceCatalog.load(db)
    mappings = catalog.mappings_for(section_id)
    missing: list[str] = []

    if section_id not in catalog.sections:
        missing.append("Section not found")
    if not mappings:
        missing.append("No subject-faculty mappings for this section")
    if not catalog.subjects:
        missing.append("No subjects in the catalog")
    if not catalog.faculty:
        missing.append("No faculty in the catalog")
    if not catalog.active_rooms():
        missing.append("No active rooms in the catalog")
    missing.extend(catalog.dangling_references(mappings))

    return DataSufficiencyReport(
        section_id=section_id,
        sufficient=not missing,
        missing=missing,
        counts={
            "mappings": len(mappings),
            "subjects": len(catalog.subjects),
            "faculty": len(catalog.faculty),
            "active_rooms": len(catalog.active_rooms()),
        },
    )


def _generate(
    db: Session,
    section: Section,
    *,
    catalog: ResourceCatalog,
    tracker: GlobalConstraintTracker,
    period_times: PeriodTimes,
    actor: Actor | None,
    publisher: EventPublisher,
) -> GenerationResult:
    mappings = catalog.mappings_for(section.id)
    if not mappings:
        raise InputError(
            f"Section {section.name} has no subject-faculty mappings",
            details={"section_id": section.id},
        )

    placement = GridPlacer(catalog, tracker, period_times).place_section(section, mappings)
    timetable = write_timetable(db, section, placement.cells, actor=actor)

    publisher.publish(
        TIMETABLE_GENERATED,
        {
            "timetable_id": timetable.id,
            "section_id": section.id,
            "section_name": section.name,
            "version": timetable.version,
            "conflicts": len(placement.conflicts),
            "generated_by": actor.id if actor else None,
        },
    )
    return GenerationResult(
        timetable=TimetableOut.model_validate(timetable),
        conflicts=placement.conflicts,
        placed_sessions=placement.placed_sessions,
        summary=placement.summary,
    )


def generate_section_timetable(
    db: Session,
    section_id: str,
    *,
    actor: Actor | None = None,
    publisher: EventPublisher = event_publisher,
) -> GenerationResult:
    catalog = ResourceCatalog.load(db)
    section = catalog.sections.get(section_id)
    if section is None:
        raise ResourceNotFoundError("Section", section_id)

    # The section's own live timetable is about to be replaced, so it must not block itself.
    tracker = GlobalConstraintTracker.from_published(db, exclude_section_ids=[section.id])
    result = _generate(
        db,
        section,
        catalog=catalog,
        tracker=tracker,
        period_times=load_period_times(db),
        actor=actor,
        publisher=publisher,
    )
    logger.info(
        "Generated timetable for section %s: %d periods placed, %d unplaced mapping(s)",
        section.name,
        result.summary.total_periods_placed,
        result.summary.conflicts_count,
    )
    return result


def generate_all_timetables(
    db: Session,
    *,
    actor: Actor | None = None,
    publisher: EventPublisher = event_publisher,
) -> BulkGenerationResult:
    """Generate a draft for every section against one shared tracker.

    A section that fails with an input error is reported and skipped; the run
    carries on with the remaining sections.
    """
    catalog = ResourceCatalog.load(db)
    sections = list(catalog.sections.values())
    # Sections that will get a new draft stop blocking themselves; the rest stay live.
    regenerating = [
        section.id
        for section in sections
        if catalog.mappings_for(section.id) and not catalog.dangling_references(catalog.mappings_for(section.id))
    ]
    tracker = GlobalConstraintTracker.from_published(db, exclude_section_ids=regenerating)
    period_times = load_period_times(db)

    success: list[BulkGenerationSuccess] = []
    failed: list[BulkGenerationFailure] = []
    for section in sections:
        try:
            result = _generate(
                db,
                section,
                catalog=catalog,
                tracker=tracker,
                period_times=period_times,
                actor=actor,
                publisher=publisher,
            )
        except InputError as exc:
            logger.warning("Skipping section %s: %s", section.name, exc.message)
            failed.append(BulkGenerationFailure(section_id=section.id, section_name=section.name, error=exc.message))
            continue
        success.append(
            BulkGenerationSuccess(
                section_id=section.id,
                section_name=section.name,
                timetable_id=result.timetable.id,
                version=result.timetable.version,
                conflicts=result.conflicts,
                summary=result.summary,
            )
        )

    summary = BulkGenerationSummary(
        total_sections=len(sections),
        generated=len(success),
        conflicts=sum(len(entry.conflicts) for entry in success),
    )
    logger.info(
        "Bulk generation finished: %d of %d sections generated, %d unplaced mapping(s)",
        summary.generated,
        summary.total_sections,
        summary.conflicts,
    )
    return BulkGenerationResult(success=success, failed=failed, summary=summary)
