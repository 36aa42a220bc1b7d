from __future__ import annotations

import logging
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from classgrid.models.period_config import PeriodConfig
from classgrid.models.timetable import Day

logger = logging.getLogger(__name__)

DAYS: tuple[Day, ...] = tuple(Day)
PERIODS_PER_DAY = 8
BREAK_PERIOD = 3
LUNCH_PERIOD = 5
RESERVED_PERIODS = frozenset({BREAK_PERIOD, LUNCH_PERIOD})
TEACHING_PERIODS: tuple[int, ...] = tuple(
    period for period in range(1, PERIODS_PER_DAY + 1) if period not in RESERVED_PERIODS
)
GRID_CELLS = len(DAYS) * PERIODS_PER_DAY

DEFAULT_PERIOD_TIMES: dict[int, tuple[str, str]] = {
    1: ("08:00", "08:50"),
    2: ("09:00", "09:50"),
    3: ("10:10", "10:30"),
    4: ("10:30", "11:20"),
    5: ("12:40", "13:40"),
    6: ("13:40", "14:30"),
    7: ("14:30", "15:20"),
    8: ("15:30", "16:20"),
}


class Slot(NamedTuple):
    day: Day
    period: int


def span_periods(period: int, span: int) -> range:
    return range(period, period + span)


def is_teaching_span(period: int, span: int) -> bool:
    """True when every period of the block is a bookable teaching period."""
    return all(1 <= p <= PERIODS_PER_DAY and p not in RESERVED_PERIODS for p in span_periods(period, span))


class PeriodTimes:
    """Clock times for each period of the day."""

    def __init__(self, overrides: dict[int, tuple[str, str]] | None = None) -> None:
        self._times = dict(DEFAULT_PERIOD_TIMES)
        if overrides:
            self._times.update(overrides)

    def start(self, period: int) -> str:
        return self._times[period][0]

    def end(self, period: int) -> str:
        return self._times[period][1]

    def block(self, period: int, span: int) -> tuple[str, str]:
        last = period + span - 1
        end = self._times[last][1] if last in self._times else self.end(period)
        return self.start(period), end


def load_period_times(db: Session) -> PeriodTimes:
    config = db.execute(
        select(PeriodConfig).where(PeriodConfig.is_active.is_(True)).order_by(PeriodConfig.created_at.desc())
    ).scalars().first()
    if config is None or not config.periods:
        return PeriodTimes()

    overrides: dict[int, tuple[str, str]] = {}
    for key, value in config.periods.items():
        try:
            period = int(key)
        except (TypeError, ValueError):
            logger.warning("Ignoring period config entry with non-numeric key %r", key)
            continue
        if not isinstance(value, dict) or "start" not in value or "end" not in value:
            logger.warning("Ignoring malformed period config entry for period %s", period)
            continue
        overrides[period] = (str(value["start"]), str(value["end"]))
    return PeriodTimes(overrides)
