"""
tacassist Intermediate Representation (IR) types.

Grammar documents, parsed tokens, validation results and suggestions.
All types are re-exported from this package.
"""

# Grammar documents
from .grammar import (
    ActiveGrammar,
    CategoryItem,
    EditableRegion,
    Grammar,
    Placeholder,
    SkipItem,
    StructureNode,
    StructureOneOf,
    StructureSequence,
    StructureToken,
    SuggestionDeclarations,
    SuggestionItem,
    SwitchGrammarItem,
    TemplateDefinition,
    TemplateField,
    TokenDefinition,
    ValueItem,
)

# Suggestions
from .suggestions import LoadState, Suggestion

# Tokens and validation
from .tokens import (
    ERROR,
    WHITESPACE,
    Token,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Grammar
    "ActiveGrammar",
    "CategoryItem",
    "EditableRegion",
    "Grammar",
    "Placeholder",
    "SkipItem",
    "StructureNode",
    "StructureOneOf",
    "StructureSequence",
    "StructureToken",
    "SuggestionDeclarations",
    "SuggestionItem",
    "SwitchGrammarItem",
    "TemplateDefinition",
    "TemplateField",
    "TokenDefinition",
    "ValueItem",
    # Suggestions
    "LoadState",
    "Suggestion",
    # Tokens
    "ERROR",
    "WHITESPACE",
    "Token",
    "ValidationIssue",
    "ValidationResult",
]
