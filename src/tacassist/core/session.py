"""
Editing session.

A TacSession is the context object an editor talks to. It owns the grammar
store, the validator and provider registries, the suggestion cache and the
state of the one message being edited: its text, the active grammar and the
tokens of the last tokenize pass.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any

from .cache import Clock, SuggestionCache
from .config import TacConfig
from .dynamic import DynamicValues
from .errors import PreconditionError
from .grammar_store import GrammarStore
from .ir import (
    ActiveGrammar,
    Grammar,
    LoadState,
    Suggestion,
    Token,
    ValidationIssue,
    ValidationResult,
)
from .message_types import detect_tac_codes, grammar_name_for
from .providers import (
    ProviderContext,
    ProviderFunction,
    ProviderOptions,
    ProviderRegistry,
    ProviderRunner,
    StateListener,
)
from .suggestions import SuggestionEngine
from .tokenizer import Tokenizer, tokenize_raw
from .validation import incompleteness, token_errors
from .validators import Validator, ValidatorRegistry

logger = logging.getLogger(__name__)

SuggestionsListener = Callable[[list[Suggestion]], None]

_CURRENT_WORD = re.compile(r"(\S*)$")


class TacSession:
    """
    Single-message editing session.

    Example:
        session = TacSession()
        session.set_text("METAR LFPG 151230Z")
        session.tokens          # typed tokens
        await session.suggestions()
    """

    def __init__(
        self,
        config: TacConfig | None = None,
        store: GrammarStore | None = None,
        validators: ValidatorRegistry | None = None,
        providers: ProviderRegistry | None = None,
        clock: Clock | None = None,
        on_update: SuggestionsListener | None = None,
        on_state: StateListener | None = None,
    ):
        self.config = config or TacConfig()
        self.store = store or GrammarStore(
            self.config.grammars.paths,
            lang=self.config.editor.lang,
            include_bundled=self.config.grammars.include_bundled,
        )
        self.validators = validators or ValidatorRegistry()
        self.providers = providers or ProviderRegistry()
        self.cache = SuggestionCache(clock)
        self.runner = ProviderRunner(
            self.cache,
            grace_ms=self.config.providers.grace_ms,
            on_update=self._apply_late_result,
            on_state=on_state,
        )
        self.engine = SuggestionEngine(
            self.providers,
            self.runner,
            DynamicValues(clock),
            fir_codes=self.config.suggestions.fir_codes,
        )
        self.on_update = on_update

        self.standard = self.config.editor.standard
        self.text = ""
        self.grammar: Grammar | None = None
        self.active: ActiveGrammar | None = None
        self.tokens: list[Token] = []
        self.suggestion_list: list[Suggestion] = []
        self._tokenizer: Tokenizer | None = None

    @property
    def message_types(self) -> list[str]:
        return self.config.editor.message_types

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_validator(self, key: str, validator: Validator) -> Callable[[], None]:
        """Register a validator by name or pattern; returns the unregister callable."""
        unregister = self.validators.register(key, validator)
        if self.grammar is not None:
            self.tokenize()
        return unregister

    def register_provider(
        self,
        key: str,
        provider: ProviderFunction | ProviderOptions,
        **options: Any,
    ) -> Callable[[], None]:
        """Register a provider by id or pattern; returns the unregister callable."""
        if not isinstance(provider, ProviderOptions):
            options.setdefault("timeout", self.config.providers.timeout_ms)
        return self.providers.register(key, provider, **options)

    # ------------------------------------------------------------------
    # Grammar selection
    # ------------------------------------------------------------------

    def set_locale(self, lang: str) -> None:
        """Change language; the active grammar is reloaded in the new language."""
        self.config.editor.lang = lang
        self.store.set_locale(lang)
        self._reload()

    def set_standard(self, standard: str) -> None:
        self.standard = standard
        self._reload()

    def load_grammar(self, name: str) -> bool:
        """
        Make ``name`` the active grammar.

        Returns:
            False when the grammar cannot be loaded; the session then has no
            grammar
        """
        grammar = self.store.load(name, self.standard)
        if grammar is None:
            self.grammar = None
            self.active = None
            self._tokenizer = None
            return False
        self.grammar = grammar
        self.active = ActiveGrammar(
            code=name,
            standard=self.standard,
            lang=self.store.lang_of(name, self.standard),
            name=grammar.name,
        )
        self._tokenizer = Tokenizer(grammar, self.validators, self.active)
        return True

    def switch_grammar(self, target: str) -> bool:
        """Switch to another grammar (``switchGrammar`` suggestions) and retokenize."""
        loaded = self.load_grammar(grammar_name_for(target))
        self.tokenize()
        return loaded

    def detect_message_type(self) -> str | None:
        """
        Select the grammar matching the text's identifier.

        A grammar chosen by a switch (``fc`` for a short TAF) is kept while the
        identifier still allows it.

        Returns:
            Code of the active grammar, or None
        """
        codes = detect_tac_codes(self.text, self.message_types)
        if not codes:
            if self.grammar is not None:
                logger.debug("No message type detected, dropping grammar")
            self.grammar = None
            self.active = None
            self._tokenizer = None
            return None

        names = [grammar_name_for(code) for code in codes]
        if self.active is not None and self.active.code in names and self.grammar is not None:
            return self.active.code
        for name in names:
            if self.load_grammar(name):
                return name
        return None

    def _reload(self) -> None:
        if self.active is not None:
            self.load_grammar(self.active.code)
            self.tokenize()

    # ------------------------------------------------------------------
    # Text processing
    # ------------------------------------------------------------------

    def set_text(self, text: str) -> list[Token]:
        """Replace the message text, detect its type and tokenize it."""
        self.text = text
        self.detect_message_type()
        return self.tokenize()

    def tokenize(self, require_grammar: bool = False) -> list[Token]:
        """
        Tokenize the current text and cache the tokens.

        Raises:
            PreconditionError: If ``require_grammar`` is set and no grammar is active
        """
        if self._tokenizer is None:
            if require_grammar:
                raise PreconditionError("No grammar is active: load or detect one first")
            self.tokens = tokenize_raw(self.text)
        else:
            self.tokens = self._tokenizer.tokenize(self.text)
        return self.tokens

    def validate(self, final: bool = False) -> ValidationResult:
        """Validate the current text from a fresh tokenize pass."""
        tokens = self.tokenize()
        errors = token_errors(tokens)
        incomplete: list[ValidationIssue] = []
        if final and self.grammar is not None and self._tokenizer is not None:
            incomplete = incompleteness(self.text, tokens, self.grammar, self._tokenizer.tracker)
        return ValidationResult(valid=not errors and not incomplete, errors=errors, incomplete=incomplete)

    def token_context(self, cursor: int | None = None) -> tuple[str | None, str]:
        """
        Token type and text that suggestions at ``cursor`` follow.

        Inside a token, suggestions are alternatives to it, so the context is
        the token before it. After a token, the context is that token.
        """
        position = len(self.text) if cursor is None else cursor
        words = [t for t in self.tokens if not t.is_whitespace]
        before: Token | None = None
        for token in words:
            if token.start <= position < token.end:
                break
            if position >= token.end:
                before = token
        if before is None:
            return None, ""
        return before.type, before.text

    def current_word(self, cursor: int | None = None) -> str:
        position = len(self.text) if cursor is None else cursor
        match = _CURRENT_WORD.search(self.text[:position])
        return match.group(1) if match else ""

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    async def suggestions(self, cursor: int | None = None) -> list[Suggestion]:
        """Suggestion list for the cursor position (default: end of text)."""
        token_type, prev_text = self.token_context(cursor)
        self.suggestion_list = await self.engine.suggestions_for(
            self.grammar,
            self.active,
            token_type,
            prev_text,
            self.message_types,
            auto=self.config.suggestions.auto,
        )
        return self.suggestion_list

    async def open_category(
        self, suggestion: Suggestion, cursor: int | None = None
    ) -> list[Suggestion]:
        """
        Resolve a provider-backed suggestion into its entries.

        Raises:
            PreconditionError: If no grammar is active or the suggestion has no provider
        """
        if self.grammar is None:
            raise PreconditionError("No grammar is active")
        position = len(self.text) if cursor is None else cursor
        _, prev_text = self.token_context(position)
        context = ProviderContext(
            token_type=suggestion.ref or "",
            search=self.current_word(position),
            tac=self.text,
            cursor_position=position,
            grammar_name=self.grammar.name,
            grammar_code=self.active.code if self.active else None,
            grammar_standard=self.active.standard if self.active else None,
            grammar_lang=self.active.lang if self.active else None,
            prev_token_text=prev_text,
        )
        children = await self.engine.open_category(self.grammar, self.active, suggestion, context)
        self._replace_provider_entries(suggestion.provider, suggestion.ref, children)
        return children

    def cancel_providers(self, provider_id: str | None = None) -> int:
        """Signal abort to pending provider calls."""
        return self.runner.cancel(provider_id)

    def _apply_late_result(
        self, provider_id: str, token_type: str, suggestions: list[Suggestion]
    ) -> None:
        decorated = [
            s.model_copy(update={"provider": provider_id, "state": LoadState.RESOLVED})
            for s in suggestions
        ]
        if self._replace_provider_entries(provider_id, token_type, decorated) and self.on_update:
            self.on_update(self.suggestion_list)

    def _replace_provider_entries(
        self, provider_id: str | None, token_type: str | None, children: list[Suggestion]
    ) -> bool:
        """Attach resolved entries to the placeholder of (provider, token type) in the current list."""
        if provider_id is None:
            return False
        updated = False
        replaced: list[Suggestion] = []
        for suggestion in self.suggestion_list:
            if (
                suggestion.provider == provider_id
                and suggestion.ref == token_type
                and suggestion.placeholder
            ):
                state = children[0].state if children and children[0].state else LoadState.RESOLVED
                suggestion = suggestion.model_copy(
                    update={"children": children, "is_category": True, "state": state}
                )
                updated = True
            replaced.append(suggestion)
        self.suggestion_list = replaced
        return updated
