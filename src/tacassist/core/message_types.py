"""
TAC message types and identifier detection.

Maps WMO data designators (TAC codes such as ``SA`` or ``FT``) to message
types, and detects the message type of a text from its leading words.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class MessageType:
    """
    A family of TAC codes sharing one identifier.

    Attributes:
        pattern: Regular expression over TAC codes (``W[SCV]``)
        name: Message type name (``SIGMET``)
        identifier: Text that starts the message (``VA ADVISORY``)
        grammar: Default grammar name
        description: Human-readable description
        second_word_identifier: Identifier follows a FIR code (SIGMET, AIRMET)
    """

    pattern: str
    name: str
    identifier: str
    grammar: str
    description: str
    second_word_identifier: bool = False

    def matches(self, tac_code: str) -> bool:
        return re.fullmatch(self.pattern, tac_code.upper()) is not None

    def default_code(self) -> str:
        """First TAC code the pattern accepts (``W[SCV]`` gives ``WS``)."""
        match = re.fullmatch(r"([^\[]*)\[([^\]]+)\](.*)", self.pattern)
        if match:
            return match.group(1) + match.group(2)[0] + match.group(3)
        return self.pattern


MESSAGE_TYPES: tuple[MessageType, ...] = (
    MessageType("SA", "METAR", "METAR", "sa", "Aerodrome routine meteorological report"),
    MessageType("SP", "SPECI", "SPECI", "sp", "Aerodrome special meteorological report"),
    MessageType("F[TC]", "TAF", "TAF", "ft", "Terminal aerodrome forecast"),
    MessageType(
        "W[SCV]",
        "SIGMET",
        "SIGMET",
        "ws",
        "Significant meteorological information",
        second_word_identifier=True,
    ),
    MessageType(
        "WA",
        "AIRMET",
        "AIRMET",
        "wa",
        "Airmen's meteorological information",
        second_word_identifier=True,
    ),
    MessageType("FV", "VAA", "VA ADVISORY", "fv", "Volcanic ash advisory"),
    MessageType("FK", "TCA", "TC ADVISORY", "fk", "Tropical cyclone advisory"),
    MessageType("FN", "SWXA", "SWX ADVISORY", "fn", "Space weather advisory"),
)

DEFAULT_TAC_CODES: tuple[str, ...] = ("SA", "SP", "FT", "FC", "WS", "WA", "FV", "FK")

MULTI_TOKEN_IDENTIFIERS: dict[str, tuple[str, ...]] = {
    "VA": ("VA ADVISORY",),
    "TC": ("TC ADVISORY",),
    "SWX": ("SWX ADVISORY",),
}

IDENTIFIER_TO_TAC_CODES: dict[str, tuple[str, ...]] = {
    "METAR": ("SA",),
    "SPECI": ("SP",),
    "TAF": ("FT", "FC"),
    "SIGMET": ("WS", "WC", "WV"),
    "AIRMET": ("WA",),
    "VA ADVISORY": ("FV",),
    "TC ADVISORY": ("FK",),
    "SWX ADVISORY": ("FN",),
    "SWXA": ("FN",),
}

_FIR_CODE = re.compile(r"^[A-Z]{4}$")


def find_message_type(tac_code: str) -> MessageType | None:
    """Message type whose pattern accepts ``tac_code``."""
    for message_type in MESSAGE_TYPES:
        if message_type.matches(tac_code):
            return message_type
    return None


def same_message_type(code: str, configured: Sequence[str]) -> bool:
    """
    True when ``code`` or a code of the same message type is configured.

    ``ws`` is accepted when any of WS, WC, WV is configured.
    """
    upper = code.upper()
    if upper in (c.upper() for c in configured):
        return True
    target = find_message_type(upper)
    if target is None:
        return False
    return any(find_message_type(c) == target for c in configured)


def grammar_name_for(tac_code: str) -> str:
    """Grammar file name for a TAC code (``FC`` gives ``fc``)."""
    return tac_code.lower()


def configured_message_types(tac_codes: Sequence[str]) -> list[tuple[str, MessageType]]:
    """
    Message types for the configured TAC codes, deduplicated by name.

    Returns:
        (first configured TAC code, message type) pairs in configuration order
    """
    seen: set[str] = set()
    result: list[tuple[str, MessageType]] = []
    for code in tac_codes:
        message_type = find_message_type(code)
        if message_type is None or message_type.name in seen:
            continue
        seen.add(message_type.name)
        result.append((code.upper(), message_type))
    return result


def detect_identifier(text: str) -> str | None:
    """
    Identifier a message starts with.

    Handles multi-word identifiers (``VA ADVISORY``) and identifiers that
    follow a FIR code (``LFFF SIGMET``). A bare four-letter first word is
    taken to start a SIGMET.
    """
    words = text.upper().split()
    if not words:
        return None
    first = words[0]

    for candidate in MULTI_TOKEN_IDENTIFIERS.get(first, ()):
        parts = candidate.split()
        if words[: len(parts)] == parts:
            return candidate

    if first in IDENTIFIER_TO_TAC_CODES:
        return first

    if _FIR_CODE.match(first):
        if len(words) > 1 and words[1] in IDENTIFIER_TO_TAC_CODES:
            second = words[1]
            message_type = find_message_type(IDENTIFIER_TO_TAC_CODES[second][0])
            if message_type is not None and message_type.second_word_identifier:
                return second
        if len(words) == 1:
            return "SIGMET"
    return None


def detect_tac_codes(text: str, configured: Sequence[str] = DEFAULT_TAC_CODES) -> list[str]:
    """TAC codes the text may be, restricted to the configured codes."""
    identifier = detect_identifier(text)
    if identifier is None:
        return []
    codes = IDENTIFIER_TO_TAC_CODES.get(identifier, ())
    wanted = {c.upper() for c in configured}
    return [code for code in codes if code in wanted]
