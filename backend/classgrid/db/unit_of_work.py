from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from classgrid.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def commit_or_raise(db: Session, action: str) -> None:
    """Commit the pending unit of work, or roll it back and raise ``PersistenceError``."""
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Concurrent modification while trying to %s", action)
        raise PersistenceError(
            f"Could not {action}: the record was modified concurrently",
            details={"action": action, "reason": "stale"},
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database write failed while trying to %s", action)
        raise PersistenceError(f"Could not {action}", details={"action": action}) from exc
