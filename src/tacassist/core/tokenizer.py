"""
Tokenizer for TAC messages.

Converts raw message text into a list of tokens covering the text exactly:
runs of whitespace become ``whitespace`` tokens, every other segment is typed
with a token-id from the grammar or with ``error``.

Three modes:
- normal: structure-aware, left to right, driven by a StructureTracker
- template: line oriented, for column-aligned advisories (``templateMode``)
- raw: no grammar available, every word is an unknown token
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache

from .ir import (
    ERROR,
    WHITESPACE,
    ActiveGrammar,
    Grammar,
    TemplateField,
    Token,
    TokenDefinition,
)
from .structure import StructureTracker, structure_token_ids
from .validators import ValidatorContext, ValidatorRegistry

logger = logging.getLogger(__name__)

IDENTIFIER_TOKEN = "identifier"

_WHITESPACE_RUN = re.compile(r"\s+")
_REGEX_META = set(".^$*+?{}[]\\|()")


@lru_cache(maxsize=1024)
def compile_token_pattern(pattern: str) -> re.Pattern[str] | None:
    """Compile a grammar pattern, returning None (and logging) when it is invalid."""
    try:
        return re.compile(pattern)
    except re.error as e:
        logger.warning("Invalid token pattern %r: %s", pattern, e)
        return None


def token_matches(word: str, definition: TokenDefinition) -> bool:
    """
    Test a word against a token definition.

    Matching is case-insensitive: the word is upper-cased and must match the
    whole pattern, or equal one of the enumerated values.
    """
    upper = word.upper()
    if definition.values and upper in (value.upper() for value in definition.values):
        return True
    if definition.pattern:
        compiled = compile_token_pattern(definition.pattern)
        if compiled is not None and compiled.fullmatch(upper):
            return True
    return False


def literal_text(pattern: str) -> str | None:
    """
    Return the literal a pattern stands for when it is a pure literal.

    ``^VA ADVISORY$`` gives ``VA ADVISORY``; anything with regex syntax gives
    None.
    """
    body = pattern
    if body.startswith("^"):
        body = body[1:]
    if body.endswith("$") and not body.endswith("\\$"):
        body = body[:-1]
    if not body or any(ch in _REGEX_META for ch in body):
        return None
    return body


def multi_word_literals(grammar: Grammar) -> list[tuple[str, str]]:
    """
    Multi-word literals declared by a grammar, longest first.

    Returns:
        (upper-cased literal, token-id) pairs
    """
    found: dict[str, str] = {}
    for token_id, definition in grammar.tokens.items():
        candidates: list[str] = []
        if definition.pattern:
            literal = literal_text(definition.pattern)
            if literal:
                candidates.append(literal)
        candidates.extend(definition.values or [])
        for candidate in candidates:
            if " " in candidate.strip():
                found.setdefault(candidate.upper(), token_id)
    return sorted(found.items(), key=lambda item: len(item[0]), reverse=True)


def tokenize_raw(text: str) -> list[Token]:
    """Tokenize without a grammar: every word is an unknown token."""
    tokens: list[Token] = []
    pos = 0
    for part in re.split(r"(\s+)", text):
        if not part:
            continue
        end = pos + len(part)
        if part.isspace():
            tokens.append(Token(part, WHITESPACE, pos, end))
        else:
            tokens.append(Token(part, ERROR, pos, end, error=f"Unknown token: {part}"))
        pos = end
    return tokens


def coalesce_whitespace(tokens: list[Token]) -> list[Token]:
    """Merge adjacent whitespace tokens into one."""
    merged: list[Token] = []
    for token in tokens:
        if token.is_whitespace and merged and merged[-1].is_whitespace:
            previous = merged[-1]
            merged[-1] = Token(previous.text + token.text, WHITESPACE, previous.start, token.end)
        else:
            merged.append(token)
    return merged


class Tokenizer:
    """
    Grammar-driven tokenizer.

    A tokenizer is bound to one resolved grammar. Each ``tokenize`` call
    builds a fresh StructureTracker, so calls are independent and repeatable.
    """

    def __init__(
        self,
        grammar: Grammar,
        validators: ValidatorRegistry | None = None,
        active: ActiveGrammar | None = None,
    ):
        """
        Initialize tokenizer.

        Args:
            grammar: Resolved grammar
            validators: Validator registry; None disables semantic validation
            active: Grammar identity passed to validators and dispatch patterns
        """
        self.grammar = grammar
        self.validators = validators
        self.active = active
        self._structure_ids = structure_token_ids(grammar.structure)
        self._literals = multi_word_literals(grammar)
        self._order = {token_id: index for index, token_id in enumerate(grammar.tokens)}
        self.tracker: StructureTracker | None = None

    def tokenize(self, text: str) -> list[Token]:
        """Tokenize a full message."""
        if self.grammar.template_mode and self.grammar.template is not None:
            return self._tokenize_template(text)
        return self._tokenize_normal(text)

    # ------------------------------------------------------------------
    # Normal mode
    # ------------------------------------------------------------------

    def _tokenize_normal(self, text: str) -> list[Token]:
        tracker = StructureTracker(self.grammar.structure)
        self.tracker = tracker
        tokens: list[Token] = []
        pos = 0
        length = len(text)

        while pos < length:
            ws = _WHITESPACE_RUN.match(text, pos)
            if ws:
                tokens.append(Token(ws.group(), WHITESPACE, pos, ws.end()))
                pos = ws.end()
                continue

            expected = tracker.expected_token_ids()
            literal = self._match_literal(text, pos, expected)
            if literal is not None:
                token_id, end = literal
                tokens.append(self._accept(token_id, text, pos, end, tracker, expected))
                pos = end
                continue

            found = _WHITESPACE_RUN.search(text, pos)
            end = found.start() if found else length
            tokens.append(self._classify(text, pos, end, tracker, expected))
            pos = end

        return tokens

    def _match_literal(self, text: str, pos: int, expected: list[str]) -> tuple[str, int] | None:
        if not self._literals:
            return None
        remaining = text[pos:].upper()
        for literal, token_id in self._literals:
            if not remaining.startswith(literal):
                continue
            end = pos + len(literal)
            if end < len(text) and not text[end].isspace():
                continue
            if token_id in expected or token_id not in self._structure_ids:
                return token_id, end
        return None

    def _classify(
        self,
        text: str,
        start: int,
        end: int,
        tracker: StructureTracker,
        expected: list[str],
    ) -> Token:
        word = text[start:end]
        tokens = self.grammar.tokens

        for token_id in sorted(
            (t for t in expected if t in tokens), key=lambda t: self._order[t]
        ):
            if token_matches(word, tokens[token_id]):
                return self._accept(token_id, text, start, end, tracker, expected)

        for token_id, definition in tokens.items():
            if not definition.greedy or not token_matches(word, definition):
                continue
            if token_id in self._structure_ids:
                label = definition.description or token_id
                return Token(
                    word,
                    ERROR,
                    start,
                    end,
                    error=f"Unexpected {label} at this position: {word}",
                )
            return self._accept(token_id, text, start, end, tracker, expected)

        return Token(word, ERROR, start, end, error=f"Unknown token: {word}")

    def _accept(
        self,
        token_id: str,
        text: str,
        start: int,
        end: int,
        tracker: StructureTracker | None,
        expected: list[str],
    ) -> Token:
        """Build a typed token, advancing the tracker when the id is expected."""
        if tracker is not None and token_id in expected:
            tracker.try_match(token_id)
        return self._typed(token_id, text, start, end)

    def _typed(self, token_id: str, text: str, start: int, end: int) -> Token:
        definition = self.grammar.tokens.get(token_id) or TokenDefinition()
        word = text[start:end]
        token = Token(
            word,
            token_id,
            start,
            end,
            category=definition.category,
            description=definition.description,
        )
        if self.validators is not None:
            ctx = ValidatorContext(
                token_value=word,
                token_type=token_id,
                full_text=text,
                position=start,
                grammar_name=self.grammar.name,
                grammar_code=self.active.code if self.active else None,
                grammar_standard=self.active.standard if self.active else None,
                grammar_lang=self.active.lang if self.active else None,
            )
            token.error = self.validators.validate(definition, ctx, self.active)
        return token

    # ------------------------------------------------------------------
    # Template mode
    # ------------------------------------------------------------------

    def _tokenize_template(self, text: str) -> list[Token]:
        self.tracker = None
        template = self.grammar.template
        assert template is not None
        fields = sorted(template.fields, key=lambda f: len(f.label), reverse=True)
        continuation_indent = template.column_width() // 2

        tokens: list[Token] = []
        offset = 0
        current: TemplateField | None = None

        for index, line in enumerate(text.split("\n")):
            if index > 0:
                tokens.append(Token("\n", WHITESPACE, offset - 1, offset))

            stripped = line.lstrip()
            indent = len(line) - len(stripped)
            content = stripped.rstrip()
            content_start = offset + indent
            content_end = content_start + len(content)

            if indent:
                tokens.append(Token(line[:indent], WHITESPACE, offset, content_start))

            if content:
                if index == 0:
                    tokens.extend(self._identifier_line(text, content_start, content_end))
                else:
                    field = self._find_label(content, fields)
                    if field is not None:
                        current = field
                        tokens.extend(self._field_line(text, content_start, content_end, field))
                    elif current is not None and indent >= continuation_indent:
                        tokens.extend(
                            self._template_value(text, content_start, content_end, current)
                        )
                    else:
                        current = None
                        tokens.extend(self._free_words(text, content_start, content_end))

            line_end = offset + len(line)
            if content_end < line_end:
                tokens.append(Token(text[content_end:line_end], WHITESPACE, content_end, line_end))
            offset = line_end + 1

        return coalesce_whitespace(tokens)

    def _identifier_line(self, text: str, start: int, end: int) -> list[Token]:
        content = text[start:end]
        identifier = self.grammar.identifier
        if identifier and content.upper() == identifier.upper():
            definition = self.grammar.tokens.get(IDENTIFIER_TOKEN)
            return [
                Token(
                    content,
                    IDENTIFIER_TOKEN,
                    start,
                    end,
                    category=definition.category if definition else None,
                    description=definition.description if definition else None,
                )
            ]
        return self._free_words(text, start, end)

    @staticmethod
    def _find_label(content: str, fields: list[TemplateField]) -> TemplateField | None:
        upper = content.upper()
        for field in fields:
            if upper.startswith(field.label.upper()):
                return field
        return None

    def _field_line(self, text: str, start: int, end: int, field: TemplateField) -> list[Token]:
        label_end = start + len(field.label)
        definition = self.grammar.tokens.get(field.label_type)
        tokens = [
            Token(
                text[start:label_end],
                field.label_type,
                start,
                label_end,
                category=definition.category if definition else None,
                description=definition.description if definition else None,
            )
        ]
        value_start = label_end
        while value_start < end and text[value_start].isspace():
            value_start += 1
        if value_start > label_end:
            tokens.append(Token(text[label_end:value_start], WHITESPACE, label_end, value_start))
        if value_start < end:
            tokens.extend(self._template_value(text, value_start, end, field))
        return tokens

    def _template_value(self, text: str, start: int, end: int, field: TemplateField) -> list[Token]:
        """Tokenize a field value: as a whole when it matches, else word by word."""
        definition = self.grammar.tokens.get(field.value_type)
        value = text[start:end]
        if definition is not None and token_matches(value, definition):
            return [self._typed(field.value_type, text, start, end)]

        tokens: list[Token] = []
        for word_start, word_end, is_space in _segments(text, start, end):
            if is_space:
                tokens.append(Token(text[word_start:word_end], WHITESPACE, word_start, word_end))
            elif definition is not None and token_matches(text[word_start:word_end], definition):
                tokens.append(self._typed(field.value_type, text, word_start, word_end))
            else:
                tokens.append(self._free_word(text, word_start, word_end))
        return tokens

    def _free_words(self, text: str, start: int, end: int) -> list[Token]:
        tokens: list[Token] = []
        for word_start, word_end, is_space in _segments(text, start, end):
            if is_space:
                tokens.append(Token(text[word_start:word_end], WHITESPACE, word_start, word_end))
            else:
                tokens.append(self._free_word(text, word_start, word_end))
        return tokens

    def _free_word(self, text: str, start: int, end: int) -> Token:
        word = text[start:end]
        for token_id, definition in self.grammar.tokens.items():
            if definition.greedy and token_matches(word, definition):
                return self._typed(token_id, text, start, end)
        return Token(word, ERROR, start, end, error=f"Unknown token: {word}")


def _segments(text: str, start: int, end: int) -> list[tuple[int, int, bool]]:
    """Split ``text[start:end]`` into (start, end, is_whitespace) runs."""
    segments: list[tuple[int, int, bool]] = []
    pos = start
    while pos < end:
        is_space = text[pos].isspace()
        stop = pos
        while stop < end and text[stop].isspace() == is_space:
            stop += 1
        segments.append((pos, stop, is_space))
        pos = stop
    return segments


def tokenize(
    text: str,
    grammar: Grammar | None,
    validators: ValidatorRegistry | None = None,
    active: ActiveGrammar | None = None,
) -> list[Token]:
    """
    Tokenize a message.

    Args:
        text: Message text
        grammar: Resolved grammar, or None for raw tokenization
        validators: Validator registry applied to typed tokens
        active: Grammar identity for validator dispatch

    Returns:
        Tokens covering ``text`` exactly, in order
    """
    if grammar is None:
        return tokenize_raw(text)
    return Tokenizer(grammar, validators, active).tokenize(text)
