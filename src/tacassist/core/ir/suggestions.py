"""
Suggestion types produced by the suggestion engine.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .grammar import EditableRegion


class LoadState(str, Enum):
    """Lifecycle of a provider-backed suggestion."""

    IDLE = "idle"
    LOADING = "loading"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    FAILED = "failed"


class Suggestion(BaseModel):
    """
    A single entry in the suggestion list.

    Categories carry ``children`` (submenu). A suggestion tagged with
    ``provider`` is a placeholder whose real content comes from that
    provider when the category is opened.
    """

    text: str
    description: str = ""
    ref: str | None = None
    is_category: bool = False
    children: list[Suggestion] = Field(default_factory=list)
    editable: list[EditableRegion] = Field(default_factory=list)
    provider: str | None = None
    switch_grammar: str | None = None
    tac_code: str | None = None
    append_to_previous: bool = False
    skip_to_next: bool = False
    new_line_before: bool = False
    auto: bool = False
    placeholder: bool = False
    state: LoadState | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_provider_placeholder(self) -> bool:
        return self.provider is not None and self.placeholder

    @property
    def expired(self) -> bool:
        return self.state == LoadState.TIMED_OUT


Suggestion.model_rebuild()
