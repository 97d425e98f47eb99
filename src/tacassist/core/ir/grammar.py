"""
Grammar document types for tacassist IR.

A grammar is the declarative description of one TAC message type: its token
definitions, the structural rule tree, suggestion declarations and, for
column-aligned advisories, a template. Documents are JSON with camelCase keys;
the models accept both the JSON spelling and the Python field names.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel


class GrammarModel(BaseModel):
    """Base for grammar document models: immutable, camelCase aliases."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class EditableRegion(GrammarModel):
    """
    A sub-range of an inserted suggestion the user is expected to overwrite.

    Examples:
        - "XXXX SIGMET" with EditableRegion(start=0, end=4): the FIR code
        - "Q////" with EditableRegion(start=1, end=5, pattern=r"\\d{4}")
    """

    start: int
    end: int
    pattern: str | None = None
    description: str | None = None

    @field_validator("end")
    @classmethod
    def validate_end(cls, v: int, info: ValidationInfo) -> int:
        start = info.data.get("start", 0)
        if v < start:
            raise ValueError(f"Editable region end {v} is before start {start}")
        return v


class Placeholder(GrammarModel):
    """Default text for a token plus the regions of it that are editable."""

    value: str
    editable: list[EditableRegion] = Field(default_factory=list)


class TokenDefinition(GrammarModel):
    """
    Definition of a single token type.

    A token matches a word either by ``pattern`` (regular expression, matched
    against the whole upper-cased word) or by membership in ``values``.
    ``greedy=False`` excludes the token from the grammar-wide fallback scan
    used when no structurally expected token matches a word.
    """

    pattern: str | None = None
    values: list[str] | None = None
    category: str | None = None
    description: str | None = None
    validator: str | None = None
    append_to_previous: bool = False
    placeholder: Placeholder | None = None
    greedy: bool = True


Cardinality = tuple[int, int | None]


class _StructureBase(GrammarModel):
    id: str
    cardinality: Cardinality = (1, 1)

    @field_validator("cardinality")
    @classmethod
    def validate_cardinality(cls, v: Cardinality) -> Cardinality:
        low, high = v
        if low < 0:
            raise ValueError(f"Cardinality minimum must be >= 0, got {low}")
        if high is not None and (high < 1 or high < low):
            raise ValueError(f"Invalid cardinality [{low}, {high}]")
        return v

    @property
    def min(self) -> int:
        return self.cardinality[0]

    @property
    def max(self) -> int | None:
        return self.cardinality[1]


class StructureToken(_StructureBase):
    """Leaf node referencing a token-id. ``terminal`` ends the message."""

    terminal: bool = False


class StructureOneOf(_StructureBase):
    """Mutually exclusive alternatives; cardinality applies to the chosen branch."""

    one_of: list[StructureNode]


class StructureSequence(_StructureBase):
    """Ordered children; cardinality applies to the whole block."""

    sequence: list[StructureNode]


def _structure_kind(value: Any) -> str:
    if isinstance(value, dict):
        if "oneOf" in value or "one_of" in value:
            return "one_of"
        if "sequence" in value:
            return "sequence"
        return "token"
    if isinstance(value, StructureOneOf):
        return "one_of"
    if isinstance(value, StructureSequence):
        return "sequence"
    return "token"


StructureNode = Annotated[
    Union[
        Annotated[StructureToken, Tag("token")],
        Annotated[StructureOneOf, Tag("one_of")],
        Annotated[StructureSequence, Tag("sequence")],
    ],
    Discriminator(_structure_kind),
]


# =============================================================================
# Suggestion declarations
# =============================================================================


class ValueItem(GrammarModel):
    """
    A literal (or generated) value offered as a suggestion.

    ``dynamic`` names a generator (e.g. ``"DDHHmmZ"``) that produces the text
    at suggestion time; ``provider`` defers to a named provider whose results
    are decorated with ``prefix``/``suffix``.
    """

    type: Literal["value"] = "value"
    text: str = ""
    description: str = ""
    editable: list[EditableRegion] = Field(default_factory=list)
    new_line_before: bool = False
    auto: bool = False
    append_to_previous: bool = False
    dynamic: str | None = None
    provider: str | None = None
    prefix: str = ""
    suffix: str = ""


class SkipItem(GrammarModel):
    """Moves on to the next token without inserting text."""

    type: Literal["skip"]
    text: str = ""
    description: str = ""


class CategoryItem(GrammarModel):
    """A submenu grouping further items."""

    type: Literal["category"]
    text: str
    description: str = ""
    children: list[SuggestionItem] = Field(default_factory=list)


class SwitchGrammarItem(GrammarModel):
    """Selecting this item switches the session to another grammar."""

    type: Literal["switchGrammar"]
    text: str = ""
    description: str = ""
    target: str
    dynamic: str | None = None
    editable: list[EditableRegion] = Field(default_factory=list)


def _item_kind(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("type", "value")
    return getattr(value, "type", "value")


SuggestionItem = Annotated[
    Union[
        Annotated[ValueItem, Tag("value")],
        Annotated[SkipItem, Tag("skip")],
        Annotated[CategoryItem, Tag("category")],
        Annotated[SwitchGrammarItem, Tag("switchGrammar")],
    ],
    Discriminator(_item_kind),
]


class SuggestionDeclarations(GrammarModel):
    """``items``: token-id to offered items; ``after``: token-id to next token-ids."""

    items: dict[str, list[SuggestionItem]] = Field(default_factory=dict)
    after: dict[str, list[str]] = Field(default_factory=dict)


# =============================================================================
# Templates
# =============================================================================


class TemplateField(GrammarModel):
    """One labelled line of a template-mode message (e.g. ``DTG:``)."""

    label: str
    label_type: str
    value_type: str
    required: bool = False
    multiline: bool = False
    placeholder: str | None = None
    suggestions: list[SuggestionItem] = Field(default_factory=list)


class TemplateDefinition(GrammarModel):
    """Ordered template fields plus the label column width."""

    fields: list[TemplateField] = Field(default_factory=list)
    label_column_width: int | None = None

    def column_width(self) -> int:
        """Configured label column width, else longest label plus two."""
        if self.label_column_width is not None:
            return self.label_column_width
        if not self.fields:
            return 0
        return max(len(f.label) for f in self.fields) + 2


# =============================================================================
# Grammar
# =============================================================================


class Grammar(GrammarModel):
    """
    A complete grammar document.

    After inheritance resolution ``extends`` is None and the token map,
    structure and suggestions are self-contained.
    """

    name: str | None = None
    version: str | None = None
    description: str | None = None
    identifier: str | None = None
    extends: str | None = None
    category: str | None = None
    template_mode: bool = False
    template: TemplateDefinition | None = None
    tokens: dict[str, TokenDefinition] = Field(default_factory=dict)
    structure: list[StructureNode] = Field(default_factory=list)
    suggestions: SuggestionDeclarations = Field(default_factory=SuggestionDeclarations)

    def token_ids(self) -> list[str]:
        """Token-ids in declaration order."""
        return list(self.tokens)


class ActiveGrammar(BaseModel):
    """
    Identity of the grammar in use, as seen by dispatch patterns.

    ``code`` is the grammar file name (``sa``, ``ft``, ``ws``...), ``name`` the
    display name from the document.
    """

    code: str
    standard: str = "oaci"
    lang: str = "en"
    name: str | None = None

    model_config = ConfigDict(frozen=True)


StructureOneOf.model_rebuild()
StructureSequence.model_rebuild()
CategoryItem.model_rebuild()
TemplateField.model_rebuild()
SuggestionDeclarations.model_rebuild()
Grammar.model_rebuild()
