"""Shared pytest fixtures for tacassist tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from tacassist.core.grammar_store import GrammarStore
from tacassist.core.ir import ActiveGrammar, Grammar
from tacassist.core.validators import ValidatorRegistry


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def clock() -> FakeClock:
    """Clock fixed at 2026-03-15 10:20 UTC."""
    return FakeClock(datetime(2026, 3, 15, 10, 20, tzinfo=UTC))


@pytest.fixture
def store() -> GrammarStore:
    """Store over the bundled grammars only."""
    return GrammarStore()


@pytest.fixture
def validators() -> ValidatorRegistry:
    return ValidatorRegistry()


@pytest.fixture
def metar(store: GrammarStore) -> Grammar:
    grammar = store.load("sa")
    assert grammar is not None
    return grammar


@pytest.fixture
def metar_active() -> ActiveGrammar:
    return ActiveGrammar(code="sa", standard="oaci", lang="en", name="METAR")


def keyword_grammar_data() -> dict[str, Any]:
    """
    Small grammar: a keyword followed by one to three numbers.

    KW NUM{1,3}, with an optional END terminal.
    """
    return {
        "name": "Keyword",
        "identifier": "KW",
        "tokens": {
            "kw": {"values": ["KW"], "description": "keyword"},
            "num": {"pattern": "^\\d$", "description": "number"},
            "end": {"values": ["END"], "description": "end marker"},
            "note": {"pattern": "^NOTE$", "description": "free note"},
        },
        "structure": [
            {"id": "kw", "cardinality": [1, 1]},
            {"id": "num", "cardinality": [1, 3]},
            {"id": "end", "cardinality": [0, 1], "terminal": True},
        ],
        "suggestions": {
            "items": {
                "kw": [{"text": "KW"}],
                "num": [{"text": "1"}, {"text": "2"}],
                "end": [{"text": "END"}],
            },
            "after": {
                "start": ["kw"],
                "kw": ["num"],
                "num": ["end", "num"],
                "end": [],
            },
        },
    }


@pytest.fixture
def keyword_grammar() -> Grammar:
    return Grammar.model_validate(keyword_grammar_data())
