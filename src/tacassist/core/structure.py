"""
Structure tracker: position tracking over a grammar's structural rule tree.

The tracker answers two questions while a message is tokenized left to right:
which token-ids are legal at the current position, and whether a given
token-id advances the position. State lives in flat maps keyed by node path
(the index trail from the root); the grammar tree itself is never touched.

Bookkeeping per path:
- ``counts``: how many times a node was matched. For a OneOf or a Sequence
  this is the number of repetitions entered.
- ``choices``: the alternative chosen by the current repetition of a OneOf.
  Once chosen, only that alternative is considered until a new repetition
  starts.
- ``positions``: the sub-cursor of the current repetition of a Sequence.

Nodes whose minimum is unmet block visibility of the siblings after them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from .ir import StructureNode, StructureOneOf, StructureSequence, StructureToken

logger = logging.getLogger(__name__)

Path = tuple[int, ...]


def is_optional(node: StructureNode) -> bool:
    """
    True when a node can be skipped entirely.

    A node is optional when its minimum is zero, when it is a OneOf with an
    optional alternative, or when it is a Sequence whose children are all
    optional.
    """
    if node.min == 0:
        return True
    if isinstance(node, StructureOneOf):
        return any(is_optional(alt) for alt in node.one_of)
    if isinstance(node, StructureSequence):
        return all(is_optional(child) for child in node.sequence)
    return False


def first_token_ids(node: StructureNode) -> list[str]:
    """Token-ids that can start a fresh match of ``node``, in declaration order."""
    out: list[str] = []
    _collect_first(node, out)
    return out


def _collect_first(node: StructureNode, out: list[str]) -> None:
    if isinstance(node, StructureToken):
        if node.id not in out:
            out.append(node.id)
    elif isinstance(node, StructureOneOf):
        for alt in node.one_of:
            _collect_first(alt, out)
    elif isinstance(node, StructureSequence):
        for child in node.sequence:
            _collect_first(child, out)
            if not is_optional(child):
                break


def structure_token_ids(nodes: Iterable[StructureNode]) -> set[str]:
    """Every token-id referenced anywhere in a structure."""
    found: set[str] = set()
    stack = list(nodes)
    while stack:
        node = stack.pop()
        if isinstance(node, StructureToken):
            found.add(node.id)
        elif isinstance(node, StructureOneOf):
            stack.extend(node.one_of)
        elif isinstance(node, StructureSequence):
            stack.extend(node.sequence)
    return found


class StructureTracker:
    """
    Tracks the legal position inside a structure during one tokenize pass.

    Usage:
        tracker = StructureTracker(grammar.structure)
        tracker.expected_token_ids()  # legal token-ids now
        tracker.try_match("icao")     # advance, True if accepted
    """

    def __init__(self, structure: Sequence[StructureNode]):
        self.structure = list(structure)
        self._first_cache: dict[int, frozenset[str]] = {}
        self.reset()

    def reset(self) -> None:
        """Forget every match; the next token is matched from the start."""
        self._counts: dict[Path, int] = {}
        self._choices: dict[Path, int] = {}
        self._positions: dict[Path, int] = {}
        self._cursor = 0
        self._finished = False

    @property
    def finished(self) -> bool:
        """True once a terminal node was matched."""
        return self._finished

    def match_count(self, path: Path) -> int:
        return self._counts.get(path, 0)

    def choice(self, path: Path) -> int | None:
        return self._choices.get(path)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def expected_token_ids(self) -> list[str]:
        """
        Token-ids acceptable at the current position.

        Ordered by structure position and deduplicated.
        """
        out: list[str] = []
        if not self._finished:
            self._collect_level(self.structure, (), self._cursor, out)
        return out

    def is_complete(self) -> bool:
        """True when no remaining node has an unmet minimum."""
        if self._finished:
            return True
        return all(
            self._is_satisfied(self.structure[i], (i,))
            for i in range(self._cursor, len(self.structure))
        )

    def missing_token_ids(self) -> list[str]:
        """
        Token-ids of the first unmet mandatory node after the cursor.

        Empty when the structure is complete.
        """
        if self._finished:
            return []
        for i in range(self._cursor, len(self.structure)):
            node = self.structure[i]
            path = (i,)
            if self._is_satisfied(node, path):
                continue
            out: list[str] = []
            self._collect(node, path, out)
            return out or first_token_ids(node)
        return []

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def try_match(self, token_id: str) -> bool:
        """
        Advance the position with ``token_id``.

        Returns:
            True if a node in scope accepted the token, False otherwise (the
            state is left unchanged).
        """
        if self._finished:
            return False
        index = self._match_level(self.structure, (), self._cursor, token_id)
        if index is None:
            logger.debug("Token '%s' not accepted at root position %d", token_id, self._cursor)
            return False
        self._cursor = index
        return True

    def _match_level(
        self,
        nodes: Sequence[StructureNode],
        prefix: Path,
        start: int,
        token_id: str,
    ) -> int | None:
        for i in range(start, len(nodes)):
            node = nodes[i]
            path = (*prefix, i)
            if self._match(node, path, token_id):
                return i
            if not self._is_satisfied(node, path):
                return None
        return None

    def _match(self, node: StructureNode, path: Path, token_id: str) -> bool:
        if isinstance(node, StructureToken):
            if node.id != token_id or not self._is_open(node, path):
                return False
            self._counts[path] = self._counts.get(path, 0) + 1
            if node.terminal:
                self._finished = True
            return True

        if isinstance(node, StructureOneOf):
            chosen = self._choices.get(path)
            if chosen is not None:
                if self._match(node.one_of[chosen], (*path, chosen), token_id):
                    return True
            if not self._can_repeat(node, path):
                return False
            for i, alt in enumerate(node.one_of):
                if token_id in self._first(alt):
                    self._clear_below(path)
                    self._choices[path] = i
                    self._counts[path] = self._counts.get(path, 0) + 1
                    return self._match(alt, (*path, i), token_id)
            return False

        if isinstance(node, StructureSequence):
            if self._counts.get(path, 0) > 0:
                position = self._positions.get(path, 0)
                index = self._match_level(node.sequence, path, position, token_id)
                if index is not None:
                    self._positions[path] = index
                    return True
            if not self._can_repeat(node, path) or token_id not in self._first(node):
                return False
            self._clear_below(path)
            self._counts[path] = self._counts.get(path, 0) + 1
            index = self._match_level(node.sequence, path, 0, token_id)
            self._positions[path] = index if index is not None else 0
            return index is not None

        return False

    # ------------------------------------------------------------------
    # State predicates
    # ------------------------------------------------------------------

    def _is_open(self, node: StructureNode, path: Path) -> bool:
        """True when ``node`` can still accept at least one more token."""
        if isinstance(node, StructureToken):
            return node.max is None or self._counts.get(path, 0) < node.max
        if isinstance(node, StructureOneOf):
            chosen = self._choices.get(path)
            if chosen is not None and self._is_open(node.one_of[chosen], (*path, chosen)):
                return True
            return self._can_repeat(node, path)
        if isinstance(node, StructureSequence):
            if self._counts.get(path, 0) > 0:
                position = self._positions.get(path, 0)
                for i in range(position, len(node.sequence)):
                    child_path = (*path, i)
                    if self._is_open(node.sequence[i], child_path):
                        return True
                    if not self._is_satisfied(node.sequence[i], child_path):
                        break
            return self._can_repeat(node, path)
        return False

    def _can_repeat(self, node: StructureNode, path: Path) -> bool:
        """True when a new repetition of a OneOf/Sequence may start."""
        count = self._counts.get(path, 0)
        if node.max is not None and count >= node.max:
            return False
        return count == 0 or self._repetition_satisfied(node, path)

    def _repetition_satisfied(self, node: StructureNode, path: Path) -> bool:
        if isinstance(node, StructureOneOf):
            chosen = self._choices.get(path)
            if chosen is None:
                return True
            return self._is_satisfied(node.one_of[chosen], (*path, chosen))
        if isinstance(node, StructureSequence):
            return all(
                self._is_satisfied(child, (*path, i)) for i, child in enumerate(node.sequence)
            )
        return True

    def _is_satisfied(self, node: StructureNode, path: Path) -> bool:
        """True when the siblings after ``node`` may be matched."""
        count = self._counts.get(path, 0)
        if isinstance(node, StructureToken):
            return count >= node.min
        if count == 0:
            return is_optional(node)
        if not self._repetition_satisfied(node, path):
            return False
        return count >= node.min

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _collect_level(
        self,
        nodes: Sequence[StructureNode],
        prefix: Path,
        start: int,
        out: list[str],
    ) -> None:
        for i in range(start, len(nodes)):
            node = nodes[i]
            path = (*prefix, i)
            self._collect(node, path, out)
            if not self._is_satisfied(node, path):
                return

    def _collect(self, node: StructureNode, path: Path, out: list[str]) -> None:
        if isinstance(node, StructureToken):
            if self._is_open(node, path) and node.id not in out:
                out.append(node.id)
            return

        if isinstance(node, StructureOneOf):
            chosen = self._choices.get(path)
            if chosen is not None:
                self._collect(node.one_of[chosen], (*path, chosen), out)
            if self._can_repeat(node, path):
                for alt in node.one_of:
                    _collect_first(alt, out)
            return

        if isinstance(node, StructureSequence):
            if self._counts.get(path, 0) > 0:
                position = self._positions.get(path, 0)
                self._collect_level(node.sequence, path, position, out)
            if self._can_repeat(node, path):
                _collect_first(node, out)

    def _first(self, node: StructureNode) -> frozenset[str]:
        key = id(node)
        cached = self._first_cache.get(key)
        if cached is None:
            cached = frozenset(first_token_ids(node))
            self._first_cache[key] = cached
        return cached

    def _clear_below(self, path: Path) -> None:
        """Drop the state of every descendant of ``path``."""
        depth = len(path)
        for state in (self._counts, self._choices, self._positions):
            for key in [k for k in state if len(k) > depth and k[:depth] == path]:
                del state[key]
