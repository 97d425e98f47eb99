"""
Grammar inheritance resolution.

A grammar may name a parent in ``extends``. Resolution walks the ancestor
chain and merges each level into its child:

- scalar fields: the child's value wins when the child sets it
- ``tokens``, ``suggestions.items``, ``suggestions.after``: shallow merge by
  key, child entries overwrite
- ``structure`` and ``template``: the child's replaces the parent's wholesale
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .ir import Grammar, SuggestionDeclarations

logger = logging.getLogger(__name__)

GrammarLookup = Callable[[str], Grammar | None]

_SCALAR_FIELDS = (
    "name",
    "version",
    "description",
    "identifier",
    "category",
    "template_mode",
)


def merge_grammars(parent: Grammar, child: Grammar) -> Grammar:
    """
    Merge a resolved parent into a child grammar.

    Args:
        parent: Fully resolved parent grammar
        child: Raw child grammar

    Returns:
        New grammar with ``extends`` cleared
    """
    present = child.model_fields_set

    data: dict[str, object] = {}
    for name in _SCALAR_FIELDS:
        child_value = getattr(child, name)
        if name in present and child_value is not None:
            data[name] = child_value
        else:
            data[name] = getattr(parent, name)

    data["template"] = child.template if "template" in present else parent.template
    data["structure"] = child.structure if "structure" in present else parent.structure
    data["tokens"] = {**parent.tokens, **child.tokens}
    data["suggestions"] = SuggestionDeclarations(
        items={**parent.suggestions.items, **child.suggestions.items},
        after={**parent.suggestions.after, **child.suggestions.after},
    )
    data["extends"] = None

    return Grammar(**data)


def resolve_inheritance(
    raw: Grammar,
    lookup: GrammarLookup,
    name: str | None = None,
    _visiting: frozenset[str] = frozenset(),
) -> Grammar:
    """
    Resolve a grammar against its ancestor chain.

    Failures are non-fatal: a missing parent or an inheritance cycle is
    logged and the grammar is returned unresolved.

    Args:
        raw: Grammar as loaded from its document
        lookup: Returns the raw grammar for a parent name, or None
        name: Name ``raw`` was loaded under (seeds cycle detection)

    Returns:
        Resolved grammar, or ``raw`` when resolution is not possible
    """
    parent_name = raw.extends
    if parent_name is None:
        return raw

    visiting = _visiting | ({name} if name else set())
    if parent_name in visiting:
        chain = " -> ".join([*sorted(visiting), parent_name])
        logger.warning("Grammar inheritance cycle detected (%s), using unresolved grammar", chain)
        return raw

    parent_raw = lookup(parent_name)
    if parent_raw is None:
        logger.warning(
            "Parent grammar '%s' of '%s' not found, using unresolved grammar",
            parent_name,
            name or raw.name or "<anonymous>",
        )
        return raw

    parent = resolve_inheritance(parent_raw, lookup, parent_name, visiting)
    return merge_grammars(parent, raw)
