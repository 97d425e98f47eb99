"""
Grammar loading and caching.

Grammar documents are JSON files named ``{name}.{standard}.{lang}.json``
(``sa.oaci.en.json``). A requested language falls back along its locale
chain (``fr-FR`` then ``fr`` then ``en``) and a requested standard falls back
to ``oaci``. Resolved grammars are cached per (name, standard) and the cache
is dropped when the locale changes.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .errors import GrammarError, make_grammar_error
from .inheritance import resolve_inheritance
from .ir import Grammar

logger = logging.getLogger(__name__)

BUNDLED_GRAMMARS_DIR = Path(__file__).parent.parent / "grammars"
DEFAULT_STANDARD = "oaci"
DEFAULT_LANG = "en"


def locale_chain(lang: str) -> list[str]:
    """
    Languages to try for a locale, most specific first.

    Examples:
        "fr-FR" -> ["fr-FR", "fr", "en"]
        "en"    -> ["en"]
    """
    chain: list[str] = []
    if lang:
        chain.append(lang)
        base = lang.replace("_", "-").split("-")[0]
        if base and base not in chain:
            chain.append(base)
    if DEFAULT_LANG not in chain:
        chain.append(DEFAULT_LANG)
    return chain


def grammar_filename(name: str, standard: str, lang: str) -> str:
    return f"{name}.{standard}.{lang}.json"


@dataclass(frozen=True)
class GrammarFile:
    """A grammar document found on disk."""

    name: str
    standard: str
    lang: str
    path: Path


def parse_grammar(text: str, source: str) -> Grammar:
    """
    Parse a grammar document.

    Raises:
        GrammarError: If the text is not JSON or does not fit the grammar schema
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise make_grammar_error(f"Malformed grammar JSON: {e.msg}", source, text, e.pos) from e
    return validate_grammar(data, source)


def validate_grammar(data: Any, source: str) -> Grammar:
    """Validate decoded grammar data against the schema."""
    if not isinstance(data, dict):
        raise GrammarError(f"Grammar '{source}' must be a JSON object")
    try:
        return Grammar.model_validate(data)
    except ValidationError as e:
        raise GrammarError(f"Invalid grammar '{source}':\n{e}") from e


class GrammarStore:
    """
    Loads, resolves and caches grammars.

    Lookup order for a file is every configured search directory, then the
    bundled grammars. Grammars registered in memory take precedence over
    files.
    """

    def __init__(
        self,
        search_paths: Sequence[Path] = (),
        lang: str = DEFAULT_LANG,
        include_bundled: bool = True,
    ):
        self.search_paths = [Path(p) for p in search_paths]
        if include_bundled:
            self.search_paths.append(BUNDLED_GRAMMARS_DIR)
        self.lang = lang
        self._registered: dict[tuple[str, str], Grammar] = {}
        self._raw: dict[tuple[str, str], Grammar] = {}
        self._resolved: dict[tuple[str, str], Grammar] = {}
        self._langs: dict[tuple[str, str], str] = {}

    def set_locale(self, lang: str) -> None:
        """Switch language; every loaded grammar is dropped."""
        if lang != self.lang:
            self.lang = lang
            self.clear()

    def clear(self) -> None:
        self._raw.clear()
        self._resolved.clear()
        self._langs.clear()

    def register(
        self,
        name: str,
        grammar: Grammar | dict[str, Any],
        standard: str = DEFAULT_STANDARD,
    ) -> Grammar:
        """Register an in-memory grammar (raw, resolved on load)."""
        if not isinstance(grammar, Grammar):
            grammar = validate_grammar(grammar, name)
        self._registered[(name, standard)] = grammar
        self._raw.pop((name, standard), None)
        self._resolved.clear()
        return grammar

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, name: str, standard: str = DEFAULT_STANDARD) -> Grammar | None:
        """
        Load and resolve a grammar.

        Returns:
            The resolved grammar, or None when it cannot be loaded (the
            failure is logged)
        """
        key = (name, standard)
        if key in self._resolved:
            return self._resolved[key]
        try:
            raw = self.load_raw(name, standard)
        except GrammarError as e:
            logger.warning("Cannot load grammar '%s' (%s): %s", name, standard, e)
            return None

        resolved = resolve_inheritance(raw, lambda parent: self._parent(parent, standard), name)
        self._resolved[key] = resolved
        return resolved

    def lang_of(self, name: str, standard: str = DEFAULT_STANDARD) -> str:
        """Language the grammar was actually loaded in (after fallback)."""
        return self._langs.get((name, standard), self.lang)

    def load_raw(self, name: str, standard: str = DEFAULT_STANDARD) -> Grammar:
        """
        Load a grammar document without resolving ``extends``.

        Raises:
            GrammarError: If no file exists in the fallback chain or it is invalid
        """
        key = (name, standard)
        if key in self._raw:
            return self._raw[key]

        for std in dict.fromkeys((standard, DEFAULT_STANDARD)):
            if (name, std) in self._registered:
                grammar = self._registered[(name, std)]
                self._langs[key] = self.lang
                self._raw[key] = grammar
                return grammar

        found = self.find(name, standard)
        if found is None:
            tried = ", ".join(
                grammar_filename(name, std, lang)
                for std in dict.fromkeys((standard, DEFAULT_STANDARD))
                for lang in locale_chain(self.lang)
            )
            raise GrammarError(f"Grammar '{name}' not found (tried {tried})")

        try:
            text = found.path.read_text(encoding="utf-8")
        except OSError as e:
            raise GrammarError(f"Cannot read grammar file {found.path}: {e}") from e

        grammar = parse_grammar(text, found.path.name)
        self._raw[key] = grammar
        self._langs[key] = found.lang
        logger.debug("Loaded grammar %s", found.path)
        return grammar

    def find(self, name: str, standard: str = DEFAULT_STANDARD) -> GrammarFile | None:
        """First grammar file along the standard and locale fallback chains."""
        for std in dict.fromkeys((standard, DEFAULT_STANDARD)):
            for lang in locale_chain(self.lang):
                filename = grammar_filename(name, std, lang)
                for directory in self.search_paths:
                    path = directory / filename
                    if path.is_file():
                        return GrammarFile(name, std, lang, path)
        return None

    def available(self) -> Iterator[GrammarFile]:
        """Every grammar file in the search paths (first occurrence wins)."""
        seen: set[str] = set()
        for directory in self.search_paths:
            if not directory.is_dir():
                continue
            for path in sorted(directory.glob("*.json")):
                parts = path.name[: -len(".json")].split(".")
                if len(parts) != 3 or path.name in seen:
                    continue
                seen.add(path.name)
                yield GrammarFile(parts[0], parts[1], parts[2], path)

    def _parent(self, name: str, standard: str) -> Grammar | None:
        try:
            return self.load_raw(name, standard)
        except GrammarError as e:
            logger.debug("Parent grammar lookup failed: %s", e)
            return None
