"""
Semantic token validators.

A validator receives a ``ValidatorContext`` and returns None when the token is
valid or an error message when it is not. Validators are registered by name
(referenced from a token definition's ``validator`` field) or by dispatch
pattern (``*.*.*.datetime``). The built-in set covers the date/time groups and
codes shared by the bundled grammars.
"""

from __future__ import annotations

import calendar
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from .dispatch import PatternRegistry
from .ir import ActiveGrammar, TokenDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidatorContext:
    """Everything a validator may inspect about the token being checked."""

    token_value: str
    token_type: str
    full_text: str
    position: int
    grammar_name: str | None = None
    grammar_code: str | None = None
    grammar_standard: str | None = None
    grammar_lang: str | None = None


Validator = Callable[[ValidatorContext], str | None]


class ValidatorRegistry:
    """
    Named and pattern-dispatched validators.

    For a token, the validator named by its definition runs first, then the
    most specific pattern validator for its type. The first error wins. A
    validator that raises is logged and treated as passing.
    """

    def __init__(self, builtins: bool = True):
        self._registry: PatternRegistry[Validator] = PatternRegistry("validator")
        if builtins:
            register_builtin_validators(self)

    def register(self, key: str, validator: Validator) -> Callable[[], None]:
        """Register by name or by ``code.standard.lang.tokenType`` pattern."""
        return self._registry.register(key, validator)

    def unregister(self, key: str) -> bool:
        return self._registry.unregister(key)

    def get(self, key: str) -> Validator | None:
        return self._registry.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._registry

    def validate(
        self,
        token_def: TokenDefinition,
        ctx: ValidatorContext,
        grammar: ActiveGrammar | None,
    ) -> str | None:
        """Run the validators applicable to a token and return the first error."""
        if token_def.validator:
            named = self._registry.get(token_def.validator)
            if named is None:
                logger.debug("Validator '%s' is not registered", token_def.validator)
            else:
                error = self._run(token_def.validator, named, ctx)
                if error:
                    return error

        found = self._registry.lookup(grammar, ctx.token_type)
        if found is not None:
            return self._run(found.key, found.payload, ctx)
        return None

    @staticmethod
    def _run(key: str, validator: Validator, ctx: ValidatorContext) -> str | None:
        try:
            return validator(ctx) or None
        except Exception as e:
            logger.warning("Validator '%s' failed on %r: %s", key, ctx.token_value, e)
            return None


# =============================================================================
# Built-in validators
# =============================================================================

_DDHHMM = re.compile(r"^(\d{2})(\d{2})(\d{2})$")
_VALIDITY = re.compile(r"^(\d{2})(\d{2})/(\d{2})(\d{2})$")
_VA_DATETIME = re.compile(r"^(\d{4})(\d{2})(\d{2})/(\d{2})(\d{2})$")
_VA_DAYTIME = re.compile(r"^(\d{2})/(\d{2})(\d{2})$")
_FLIGHT_LEVEL = re.compile(r"^FL(\d{3})$", re.IGNORECASE)
_ICAO = re.compile(r"^[A-Z]{4}$")


def _strip_z(value: str) -> str:
    return value[:-1] if value[-1:] in ("Z", "z") else value


def validate_ddhhmmz(ctx: ValidatorContext) -> str | None:
    """Observation time ``DDHHmmZ``: day 01-31, hour 00-23, minutes 00-59."""
    match = _DDHHMM.match(_strip_z(ctx.token_value))
    if not match:
        return "Invalid datetime format"

    dd, hh, mm = match.groups()
    day, hour, minute = int(dd), int(hh), int(mm)
    if day < 1 or day > 31:
        return f"Invalid day: {dd} (must be 01-31)"
    if hour > 23:
        return f"Invalid hour: {hh} (must be 00-23)"
    if minute > 59:
        return f"Invalid minutes: {mm} (must be 00-59)"

    now = datetime.now(UTC)
    if day > calendar.monthrange(now.year, now.month)[1]:
        return f"Invalid day: {dd} for current month"
    return None


def _validity_bounds(value: str) -> tuple[int, int, int, int] | str:
    match = _VALIDITY.match(value)
    if not match:
        return "Invalid validity format (expected DDHH/DDHH)"
    start_day, start_hour, end_day, end_hour = match.groups()
    sd, sh, ed, eh = int(start_day), int(start_hour), int(end_day), int(end_hour)
    if sd < 1 or sd > 31:
        return f"Invalid start day: {start_day}"
    if sh > 24:
        return f"Invalid start hour: {start_hour}"
    if ed < 1 or ed > 31:
        return f"Invalid end day: {end_day}"
    if eh > 24:
        return f"Invalid end hour: {end_hour}"
    return sd, sh, ed, eh


def validity_hours(start_day: int, start_hour: int, end_day: int, end_hour: int) -> int:
    """
    Length of a ``DDHH/DDHH`` period in hours.

    An end day before the start day wraps into the next month (counted as a
    31-day month).
    """
    if end_day == start_day:
        return end_hour - start_hour
    if end_day > start_day:
        return (end_day - start_day) * 24 + (end_hour - start_hour)
    return (31 - start_day + end_day) * 24 + (end_hour - start_hour)


def validate_validity(ctx: ValidatorContext) -> str | None:
    """TAF validity period ``DDHH/DDHH`` (hours may be 24)."""
    bounds = _validity_bounds(ctx.token_value)
    return bounds if isinstance(bounds, str) else None


def validate_validity_short(ctx: ValidatorContext) -> str | None:
    """Short TAF validity: at most 12 hours."""
    bounds = _validity_bounds(ctx.token_value)
    if isinstance(bounds, str):
        return bounds
    hours = validity_hours(*bounds)
    if hours <= 0:
        return "End time must be after start time"
    if hours > 12:
        return f"TAF Short validity must be ≤12 hours (got {hours}h)"
    return None


def validate_validity_long(ctx: ValidatorContext) -> str | None:
    """Long TAF validity: more than 12 and at most 30 hours."""
    bounds = _validity_bounds(ctx.token_value)
    if isinstance(bounds, str):
        return bounds
    hours = validity_hours(*bounds)
    if hours <= 0:
        return "End time must be after start time"
    if hours <= 12:
        return f"TAF Long validity must be >12 hours (got {hours}h)"
    if hours > 30:
        return f"TAF Long validity must be ≤30 hours (got {hours}h)"
    return None


def validate_va_datetime(ctx: ValidatorContext) -> str | None:
    """Advisory issue time ``YYYYMMDD/HHmmZ``."""
    match = _VA_DATETIME.match(_strip_z(ctx.token_value))
    if not match:
        return "Invalid datetime format (expected YYYYMMDD/HHmmZ)"

    yyyy, mm, dd, hh, mi = match.groups()
    year, month, day, hour, minute = int(yyyy), int(mm), int(dd), int(hh), int(mi)
    if year < 2000 or year > 2100:
        return f"Invalid year: {yyyy}"
    if month < 1 or month > 12:
        return f"Invalid month: {mm}"
    if day < 1 or day > 31:
        return f"Invalid day: {dd}"
    if hour > 23:
        return f"Invalid hour: {hh}"
    if minute > 59:
        return f"Invalid minutes: {mi}"
    if day > calendar.monthrange(year, month)[1]:
        return f"Invalid date: {yyyy}-{mm}-{dd}"
    return None


def validate_va_daytime(ctx: ValidatorContext) -> str | None:
    """Advisory observation time ``DD/HHmmZ``."""
    match = _VA_DAYTIME.match(_strip_z(ctx.token_value))
    if not match:
        return "Invalid datetime format (expected DD/HHmmZ)"

    dd, hh, mm = match.groups()
    if int(dd) < 1 or int(dd) > 31:
        return f"Invalid day: {dd}"
    if int(hh) > 23:
        return f"Invalid hour: {hh}"
    if int(mm) > 59:
        return f"Invalid minutes: {mm}"
    return None


def validate_flight_level(ctx: ValidatorContext) -> str | None:
    match = _FLIGHT_LEVEL.match(ctx.token_value)
    if not match:
        return "Invalid flight level format"
    level = int(match.group(1))
    if level > 600:
        return f"Flight level {level} seems unusually high"
    return None


def validate_icao(ctx: ValidatorContext) -> str | None:
    if not _ICAO.match(ctx.token_value):
        return "Invalid ICAO code (must be 4 letters)"
    return None


BUILTIN_VALIDATORS: dict[str, Validator] = {
    "DDHHmmZ": validate_ddhhmmz,
    "DDHH/DDHH": validate_validity,
    "DDHH/DDHH-short": validate_validity_short,
    "DDHH/DDHH-long": validate_validity_long,
    "YYYYMMDD/HHmmZ": validate_va_datetime,
    "DD/HHmmZ": validate_va_daytime,
    "FlightLevel": validate_flight_level,
    "ICAO": validate_icao,
}


def register_builtin_validators(registry: ValidatorRegistry) -> None:
    """Register every built-in validator under its name."""
    for name, validator in BUILTIN_VALIDATORS.items():
        registry.register(name, validator)
