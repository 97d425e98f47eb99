"""
Error types for TAC grammar loading, tokenization, and suggestion providers.

Data errors derive from ``TacError`` and are recoverable: the engine logs them
and degrades. ``PreconditionError`` signals a caller bug and is kept outside
that hierarchy so it is never swallowed by a ``except TacError`` clause.
"""

from dataclasses import dataclass


class TacError(Exception):
    """Base exception for all tacassist data errors."""

    def __init__(self, message: str, context: "ErrorContext | None" = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class GrammarError(TacError):
    """
    Raised when a grammar document cannot be loaded or resolved.

    Examples:
    - Grammar file not found for any locale in the fallback chain
    - Malformed JSON
    - Document fails schema validation
    - Parent grammar named in ``extends`` is missing
    """

    pass


class ProviderError(TacError):
    """
    Raised when a suggestion provider callback fails.

    Never escapes the suggestion engine; it is converted into a failed
    provider outcome and logged.
    """

    def __init__(self, provider_id: str, message: str):
        self.provider_id = provider_id
        super().__init__(f"Provider '{provider_id}' failed: {message}")


class ConfigError(TacError):
    """
    Raised when ``tacassist.toml`` is malformed.

    Examples:
    - Invalid TOML syntax
    - Wrong value type for a known key
    """

    pass


class PreconditionError(RuntimeError):
    """
    Raised when a caller violates an engine precondition.

    Examples:
    - Registering a dispatch pattern that does not have four segments
    - Opening a suggestion that is not a provider category
    - Tokenizing a session that requires a grammar before one is active
    """

    pass


@dataclass
class ErrorContext:
    """
    Location of an error inside a message or grammar document.

    Attributes:
        source: Grammar name or file the error relates to
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional text of the offending line
    """

    source: str
    line: int
    column: int
    snippet: str | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "sa.oaci.en:1:7" followed by the snippet
        """
        location = f"{self.source}:{self.line}:{self.column}"
        if self.snippet is not None:
            marker = " " * (self.column - 1) + "^^^"
            return f"{location}\n    {self.snippet}\n    {marker}"
        return location


def offset_to_line_column(text: str, offset: int) -> tuple[int, int]:
    """Convert a 0-based character offset into a 1-indexed (line, column) pair."""
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset) + 1
    line_start = text.rfind("\n", 0, offset) + 1
    return line, offset - line_start + 1


def make_grammar_error(
    message: str,
    source: str | None = None,
    text: str | None = None,
    offset: int | None = None,
) -> GrammarError:
    """
    Helper to create a GrammarError with optional context.

    Args:
        message: Error description
        source: Grammar name or file path
        text: Document text the offset refers to
        offset: Character offset of the problem inside ``text``

    Returns:
        GrammarError with context if a location was provided
    """
    if source and text is not None and offset is not None:
        line, column = offset_to_line_column(text, offset)
        lines = text.splitlines()
        snippet = lines[line - 1] if line <= len(lines) else ""
        return GrammarError(message, ErrorContext(source, line, column, snippet))
    return GrammarError(message)
