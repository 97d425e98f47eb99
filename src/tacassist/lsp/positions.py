"""
Offset and line/character conversion for LSP positions.

Kept free of pygls imports so that the conversions can be used (and
tested) without the ``lsp`` extra installed.
"""

from __future__ import annotations


def offset_at(text: str, line: int, character: int) -> int:
    """
    Character offset of a (line, character) position.

    Positions past the end of a line clamp to the line end; lines past the
    end of the text clamp to the text end.
    """
    lines = text.split("\n")
    if line >= len(lines):
        return len(text)
    offset = sum(len(lines[i]) + 1 for i in range(line))
    return offset + min(character, len(lines[line]))


def position_at(text: str, offset: int) -> tuple[int, int]:
    """(line, character) of a character offset."""
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset)
    line_start = text.rfind("\n", 0, offset) + 1
    return line, offset - line_start


def span_to_range(text: str, start: int, end: int) -> tuple[tuple[int, int], tuple[int, int]]:
    """Start and end positions of the ``text[start:end]`` span."""
    return position_at(text, start), position_at(text, end)
