"""
Generated suggestion values.

Grammar value items may declare ``"dynamic": "<name>"`` instead of a fixed
text; the text is then produced at suggestion time from the current UTC time.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from .cache import Clock, utc_now

logger = logging.getLogger(__name__)

Generator = Callable[[datetime], str]

TAF_ISSUE_HOURS = (0, 6, 12, 18)


def round_to_half_hour(now: datetime) -> datetime:
    """Round to the nearest :00 or :30 (minutes 15-44 give :30, 45+ the next hour)."""
    base = now.replace(minute=0, second=0, microsecond=0)
    if now.minute < 15:
        return base
    if now.minute < 45:
        return base + timedelta(minutes=30)
    return base + timedelta(hours=1)


def next_taf_start(now: datetime) -> datetime:
    """Next standard TAF validity start (00, 06, 12 or 18 UTC) after ``now``."""
    base = now.replace(minute=0, second=0, microsecond=0)
    for _ in range(24):
        base += timedelta(hours=1)
        if base.hour in TAF_ISSUE_HOURS:
            return base
    return base


def observation_time(now: datetime) -> str:
    """``DDHHmmZ`` observation time rounded to the half hour."""
    return round_to_half_hour(now).strftime("%d%H%MZ")


def _validity(now: datetime, hours: int) -> str:
    start = next_taf_start(now)
    end = start + timedelta(hours=hours)
    return f"{start:%d%H}/{end:%d%H}"


def validity_long(now: datetime) -> str:
    """24 hour ``DDHH/DDHH`` period from the next TAF start."""
    return _validity(now, 24)


def validity_short(now: datetime) -> str:
    """9 hour ``DDHH/DDHH`` period from the next TAF start."""
    return _validity(now, 9)


def advisory_time(now: datetime) -> str:
    return round_to_half_hour(now).strftime("%Y%m%d/%H%MZ")


def advisory_day_time(now: datetime) -> str:
    return round_to_half_hour(now).strftime("%d/%H%MZ")


DYNAMIC_GENERATORS: dict[str, Generator] = {
    "DDHHmmZ": observation_time,
    "DDHH/DDHH": validity_long,
    "DDHH/DDHH-long": validity_long,
    "DDHH/DDHH-short": validity_short,
    "YYYYMMDD/HHmmZ": advisory_time,
    "DD/HHmmZ": advisory_day_time,
}


class DynamicValues:
    """Produces generated suggestion texts from an injectable clock."""

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or utc_now
        self._generators = dict(DYNAMIC_GENERATORS)

    def register(self, name: str, generator: Generator) -> None:
        self._generators[name] = generator

    def __contains__(self, name: object) -> bool:
        return name in self._generators

    def generate(self, name: str) -> str | None:
        """Generated text for ``name``, or None when no generator is known."""
        generator = self._generators.get(name)
        if generator is None:
            logger.debug("No dynamic value generator named '%s'", name)
            return None
        return generator(self.clock())
