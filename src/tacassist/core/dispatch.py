"""
Pattern dispatch over (grammar-code, standard, language, token-type).

Validators and suggestion providers are registered either under a plain name
or under a four-segment pattern such as ``sa.*.*.temperature``. Each segment
is a literal or ``*``. Lookup picks the most specific matching pattern (fewest
wildcards); among equally specific patterns the latest registration wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

from .errors import PreconditionError
from .ir import ActiveGrammar

logger = logging.getLogger(__name__)

T = TypeVar("T")

WILDCARD = "*"
SEGMENT_COUNT = 4


def is_pattern(key: str) -> bool:
    """A registry key with exactly three dots is a pattern, anything else a name."""
    return key.count(".") == SEGMENT_COUNT - 1


def split_pattern(pattern: str) -> tuple[str, str, str, str]:
    """
    Split a pattern into its four segments.

    Raises:
        PreconditionError: If the pattern does not have four non-empty segments
    """
    parts = pattern.split(".")
    if len(parts) != SEGMENT_COUNT or any(not part for part in parts):
        raise PreconditionError(
            f"Invalid dispatch pattern '{pattern}': expected "
            f"'code.standard.lang.tokenType' with '*' wildcards"
        )
    return parts[0], parts[1], parts[2], parts[3]


def match_pattern(
    pattern: str,
    code: str | None,
    standard: str | None,
    lang: str | None,
    token_type: str | None,
) -> bool:
    """
    Test a pattern against concrete values.

    A segment matches when it is ``*`` or equals the value exactly. A None
    value only matches ``*``.
    """
    parts = pattern.split(".")
    if len(parts) != SEGMENT_COUNT:
        return False
    values = (code, standard, lang, token_type)
    for segment, value in zip(parts, values, strict=True):
        if segment == WILDCARD:
            continue
        if value is None or segment != value:
            return False
    return True


def specificity(pattern: str) -> int:
    """Number of literal (non-wildcard) segments."""
    return sum(1 for segment in pattern.split(".") if segment != WILDCARD)


@dataclass
class DispatchMatch(Generic[T]):
    """A registry hit: the key it was registered under and its payload."""

    key: str
    payload: T
    by_pattern: bool


class PatternRegistry(Generic[T]):
    """
    Registry of payloads keyed by name or by four-segment pattern.

    Example:
        registry = PatternRegistry[Validator]("validator")
        unregister = registry.register("*.*.*.datetime", check_datetime)
        registry.lookup(active, "datetime")  # DispatchMatch
        unregister()
    """

    def __init__(self, kind: str):
        self.kind = kind
        self._named: dict[str, T] = {}
        self._patterns: dict[str, tuple[int, T]] = {}
        self._sequence = 0

    def register(self, key: str, payload: T) -> Callable[[], None]:
        """
        Register a payload under a name or a pattern.

        Re-registering a key replaces the previous payload.

        Returns:
            Callable that removes this registration
        """
        if not key:
            raise PreconditionError(f"Cannot register {self.kind} under an empty key")

        if is_pattern(key):
            split_pattern(key)
            self._sequence += 1
            self._patterns[key] = (self._sequence, payload)
            logger.debug("Registered %s pattern '%s'", self.kind, key)
        else:
            if WILDCARD in key or key.count(".") > SEGMENT_COUNT - 1:
                raise PreconditionError(
                    f"Invalid dispatch pattern '{key}': expected four segments"
                )
            self._named[key] = payload
            logger.debug("Registered %s '%s'", self.kind, key)

        def unregister() -> None:
            self.unregister(key, payload)

        return unregister

    def unregister(self, key: str, payload: T | None = None) -> bool:
        """
        Remove a registration.

        When ``payload`` is given the entry is only removed if it still holds
        that payload, so a stale unregister cannot remove a newer registration.
        """
        if is_pattern(key):
            entry = self._patterns.get(key)
            if entry is None or (payload is not None and entry[1] is not payload):
                return False
            del self._patterns[key]
            return True
        current = self._named.get(key)
        if current is None or (payload is not None and current is not payload):
            return False
        del self._named[key]
        return True

    def get(self, name: str) -> T | None:
        """Exact lookup by name or by pattern text."""
        if name in self._named:
            return self._named[name]
        entry = self._patterns.get(name)
        return entry[1] if entry else None

    def lookup(self, grammar: ActiveGrammar | None, token_type: str | None) -> DispatchMatch[T] | None:
        """Most specific pattern registration matching the grammar and token type."""
        code = grammar.code if grammar else None
        standard = grammar.standard if grammar else None
        lang = grammar.lang if grammar else None

        best: tuple[int, int, str, T] | None = None
        for pattern, (sequence, payload) in self._patterns.items():
            if not match_pattern(pattern, code, standard, lang, token_type):
                continue
            rank = (specificity(pattern), sequence)
            if best is None or rank > (best[0], best[1]):
                best = (rank[0], rank[1], pattern, payload)

        if best is None:
            return None
        return DispatchMatch(key=best[2], payload=best[3], by_pattern=True)

    def resolve(
        self,
        grammar: ActiveGrammar | None,
        token_type: str | None,
        name: str | None = None,
        category: str | None = None,
    ) -> DispatchMatch[T] | None:
        """
        Resolve a registration for a token.

        Order: explicit ``name``, then a pattern on the token type, then a
        pattern on the token's category.
        """
        if name is not None and name in self._named:
            return DispatchMatch(key=name, payload=self._named[name], by_pattern=False)
        found = self.lookup(grammar, token_type)
        if found is None and category:
            found = self.lookup(grammar, category)
        return found

    def names(self) -> Iterator[str]:
        yield from self._named

    def patterns(self) -> Iterator[str]:
        yield from self._patterns

    def __contains__(self, key: object) -> bool:
        return key in self._named or key in self._patterns

    def __len__(self) -> int:
        return len(self._named) + len(self._patterns)
