"""Tests for the validator registry and the built-in validators."""

from __future__ import annotations

import logging

import pytest

from tacassist.core.ir import ActiveGrammar, TokenDefinition
from tacassist.core.validators import (
    ValidatorContext,
    ValidatorRegistry,
    validate_flight_level,
    validate_icao,
    validate_va_datetime,
    validate_va_daytime,
    validate_validity_long,
    validate_validity_short,
    validity_hours,
)


def _ctx(value: str, token_type: str = "datetime") -> ValidatorContext:
    return ValidatorContext(token_value=value, token_type=token_type, full_text=value, position=0)


class TestRegistry:
    def test_builtins_registered(self) -> None:
        registry = ValidatorRegistry()
        for name in ("DDHHmmZ", "DDHH/DDHH-short", "DDHH/DDHH-long", "ICAO", "FlightLevel"):
            assert name in registry

    def test_without_builtins(self) -> None:
        assert "ICAO" not in ValidatorRegistry(builtins=False)

    def test_named_validator(self) -> None:
        registry = ValidatorRegistry()
        definition = TokenDefinition(validator="DDHHmmZ")
        assert registry.validate(definition, _ctx("320000Z"), None) == "Invalid day: 32 (must be 01-31)"
        assert registry.validate(definition, _ctx("151230Z"), None) is None

    def test_pattern_validator(self) -> None:
        registry = ValidatorRegistry()
        registry.register(
            "*.*.*.datetime",
            lambda ctx: "Invalid day" if ctx.token_value.startswith("32") else None,
        )

        error = registry.validate(TokenDefinition(), _ctx("320000Z"), None)
        assert error == "Invalid day"

    def test_named_error_wins_over_pattern(self) -> None:
        registry = ValidatorRegistry()
        registry.register("*.*.*.datetime", lambda ctx: "from pattern")
        definition = TokenDefinition(validator="DDHHmmZ")
        assert registry.validate(definition, _ctx("320000Z"), None) == "Invalid day: 32 (must be 01-31)"
        assert registry.validate(definition, _ctx("151230Z"), None) == "from pattern"

    def test_pattern_scoped_to_grammar(self) -> None:
        registry = ValidatorRegistry(builtins=False)
        registry.register("ft.*.*.datetime", lambda ctx: "taf only")
        sa = ActiveGrammar(code="sa")
        ft = ActiveGrammar(code="ft")
        assert registry.validate(TokenDefinition(), _ctx("151230Z"), sa) is None
        assert registry.validate(TokenDefinition(), _ctx("151230Z"), ft) == "taf only"

    def test_raising_validator_is_treated_as_valid(self, caplog: pytest.LogCaptureFixture) -> None:
        def broken(ctx: ValidatorContext) -> str | None:
            raise ValueError("boom")

        registry = ValidatorRegistry(builtins=False)
        registry.register("*.*.*.datetime", broken)
        with caplog.at_level(logging.WARNING):
            assert registry.validate(TokenDefinition(), _ctx("151230Z"), None) is None
        assert "boom" in caplog.text

    def test_unknown_named_validator_is_ignored(self) -> None:
        registry = ValidatorRegistry()
        assert registry.validate(TokenDefinition(validator="nope"), _ctx("X"), None) is None

    def test_unregister(self) -> None:
        registry = ValidatorRegistry(builtins=False)
        registry.register("custom", lambda ctx: "bad")
        assert registry.unregister("custom")
        assert registry.get("custom") is None


class TestDateTimeValidators:
    @pytest.mark.parametrize(
        ("value", "message"),
        [
            ("002300Z", "Invalid day: 00 (must be 01-31)"),
            ("152400Z", "Invalid hour: 24 (must be 00-23)"),
            ("151260Z", "Invalid minutes: 60 (must be 00-59)"),
            ("15123Z", "Invalid datetime format"),
        ],
    )
    def test_ddhhmmz_errors(self, value: str, message: str) -> None:
        registry = ValidatorRegistry()
        assert registry.validate(TokenDefinition(validator="DDHHmmZ"), _ctx(value), None) == message

    def test_va_datetime(self) -> None:
        assert validate_va_datetime(_ctx("20260315/1020Z")) is None
        assert validate_va_datetime(_ctx("20260230/1020Z")) == "Invalid date: 2026-02-30"
        assert validate_va_datetime(_ctx("1999")) == "Invalid datetime format (expected YYYYMMDD/HHmmZ)"

    def test_va_daytime(self) -> None:
        assert validate_va_daytime(_ctx("15/1020Z")) is None
        assert validate_va_daytime(_ctx("15/2500Z")) == "Invalid hour: 25"


class TestValidity:
    def test_validity_hours(self) -> None:
        assert validity_hours(15, 6, 15, 12) == 6
        assert validity_hours(15, 12, 16, 18) == 30
        assert validity_hours(31, 18, 1, 0) == 6

    def test_short(self) -> None:
        assert validate_validity_short(_ctx("1506/1512")) is None
        assert validate_validity_short(_ctx("1506/1600")) == "TAF Short validity must be ≤12 hours (got 18h)"
        assert validate_validity_short(_ctx("1512/1506")) == "End time must be after start time"
        assert validate_validity_short(_ctx("1506")) == "Invalid validity format (expected DDHH/DDHH)"

    def test_long(self) -> None:
        assert validate_validity_long(_ctx("1512/1618")) is None
        assert validate_validity_long(_ctx("1506/1512")) == "TAF Long validity must be >12 hours (got 6h)"
        assert validate_validity_long(_ctx("1500/1612")) == "TAF Long validity must be ≤30 hours (got 36h)"

    def test_hour_24_is_accepted(self) -> None:
        assert validate_validity_short(_ctx("1518/1524")) is None


class TestCodes:
    def test_icao(self) -> None:
        assert validate_icao(_ctx("LFPG", "icao")) is None
        assert validate_icao(_ctx("LFP1", "icao")) == "Invalid ICAO code (must be 4 letters)"

    def test_flight_level(self) -> None:
        assert validate_flight_level(_ctx("FL350", "level")) is None
        assert validate_flight_level(_ctx("FL650", "level")) == "Flight level 650 seems unusually high"
