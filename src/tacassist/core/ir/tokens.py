"""
Parsed token and validation result types.
"""

from __future__ import annotations

from dataclasses import dataclass, field

WHITESPACE = "whitespace"
ERROR = "error"


@dataclass
class Token:
    """
    A single segment of tokenized message text.

    Attributes:
        text: Exact slice of the message
        type: Token-id, or the sentinel ``error``/``whitespace``
        start: Start offset (inclusive)
        end: End offset (exclusive)
        category: Category label from the token definition
        error: Diagnostic when the token is invalid
        description: Human-readable description of the token type
    """

    text: str
    type: str
    start: int
    end: int
    category: str | None = None
    error: str | None = None
    description: str | None = None

    @property
    def is_whitespace(self) -> bool:
        return self.type == WHITESPACE

    @property
    def is_error(self) -> bool:
        """True for unmatched words and for tokens rejected by a validator."""
        return self.type == ERROR or self.error is not None

    def __repr__(self) -> str:
        suffix = f", error={self.error!r}" if self.error else ""
        return f"Token({self.type}, {self.text!r}, {self.start}:{self.end}{suffix})"


@dataclass
class ValidationIssue:
    """A single problem found in a message."""

    message: str
    position: int
    token: str = ""


@dataclass
class ValidationResult:
    """
    Outcome of validating a message.

    ``errors`` holds token and validator errors; ``incomplete`` holds
    structural incompleteness (missing required elements), which is only
    populated for a final check.
    """

    valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    incomplete: list[ValidationIssue] = field(default_factory=list)
