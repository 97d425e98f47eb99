"""
Suggestion engine.

Given the type of the token before the cursor, derives the next legal
suggestions from the grammar's declarations:

- without a grammar, the configured message types are offered
- with a grammar, ``suggestions.after[token_type or "start"]`` names the next
  token-ids. A token-id backed by a provider yields a placeholder tagged with
  the provider id (the provider is only called when the placeholder is
  opened); otherwise the token's declared items are expanded
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .dispatch import DispatchMatch, is_pattern
from .dynamic import DynamicValues
from .errors import PreconditionError
from .ir import (
    ActiveGrammar,
    CategoryItem,
    EditableRegion,
    Grammar,
    LoadState,
    SkipItem,
    Suggestion,
    SuggestionItem,
    SwitchGrammarItem,
    TokenDefinition,
    ValueItem,
)
from .message_types import (
    DEFAULT_TAC_CODES,
    configured_message_types,
    same_message_type,
)
from .providers import ProviderContext, ProviderOptions, ProviderRegistry, ProviderRunner

logger = logging.getLogger(__name__)

START = "start"
FIR_PLACEHOLDER = "XXXX"
LOADING_EXPIRED = "Loading expired"


class SuggestionEngine:
    """
    Builds suggestion lists and resolves provider placeholders.

    The engine holds no per-document state: the grammar, its identity and
    the previous token are passed to each call.
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        runner: ProviderRunner,
        dynamic: DynamicValues | None = None,
        fir_codes: Sequence[str] = (),
    ):
        self.providers = providers
        self.runner = runner
        self.dynamic = dynamic or DynamicValues()
        self.fir_codes = list(fir_codes)

    # ------------------------------------------------------------------
    # Suggestion lists
    # ------------------------------------------------------------------

    async def suggestions_for(
        self,
        grammar: Grammar | None,
        active: ActiveGrammar | None,
        token_type: str | None,
        prev_token_text: str = "",
        message_types: Sequence[str] = DEFAULT_TAC_CODES,
        auto: bool | None = None,
    ) -> list[Suggestion]:
        """
        Suggestions for the position after a token of ``token_type``.

        Args:
            grammar: Active resolved grammar, or None before a message type is known
            active: Identity of the active grammar (for provider dispatch)
            token_type: Type of the token before the cursor; None at the start
            prev_token_text: Text of that token
            message_types: Configured TAC codes
            auto: False drops items reserved for automatic stations

        Returns:
            Suggestions in declaration order
        """
        self.runner.invalidate()
        if grammar is None:
            return self.message_type_suggestions(message_types)
        return self.build(grammar, active, token_type, prev_token_text, message_types, auto)

    def build(
        self,
        grammar: Grammar,
        active: ActiveGrammar | None,
        token_type: str | None,
        prev_token_text: str = "",
        message_types: Sequence[str] = DEFAULT_TAC_CODES,
        auto: bool | None = None,
    ) -> list[Suggestion]:
        """Synchronous part of ``suggestions_for``: never calls a provider."""
        next_ids = grammar.suggestions.after.get(token_type or START, [])
        suggestions: list[Suggestion] = []

        if not next_ids and token_type and grammar.template is not None:
            field = next(
                (f for f in grammar.template.fields if f.label_type == token_type), None
            )
            if field is not None:
                definition = grammar.tokens.get(field.value_type)
                suggestions = self._expand(
                    field.value_type, field.suggestions, definition, prev_token_text
                )
                if not suggestions and field.placeholder:
                    suggestions = [
                        Suggestion(
                            text=field.placeholder,
                            description=(definition.description or "") if definition else "",
                            ref=field.value_type,
                        )
                    ]

        for token_id in next_ids:
            definition = grammar.tokens.get(token_id)
            items = grammar.suggestions.items.get(token_id, [])
            match = self._provider_for(active, token_id, definition, items)

            if match is not None:
                suggestions.append(self._placeholder(token_id, match, definition, items))
                if not match.payload.replace:
                    static = [i for i in items if not _is_provider_item(i)]
                    suggestions.extend(self._expand(token_id, static, definition, prev_token_text))
            else:
                suggestions.extend(self._expand(token_id, items, definition, prev_token_text))

        if auto is False:
            suggestions = [s for s in suggestions if not s.auto]
        return self.filter_switch_grammar(suggestions, message_types)

    def message_type_suggestions(self, message_types: Sequence[str]) -> list[Suggestion]:
        """Initial suggestions: one per configured message type."""
        suggestions: list[Suggestion] = []
        for code, message_type in configured_message_types(message_types):
            if message_type.second_word_identifier:
                region = EditableRegion(
                    start=0, end=4, pattern="[A-Z]{4}", description="FIR code"
                )
                firs = self.fir_codes or [FIR_PLACEHOLDER]
                children = [
                    Suggestion(
                        text=f"{fir} {message_type.identifier}",
                        description=message_type.description,
                        tac_code=code,
                        editable=[region] if fir == FIR_PLACEHOLDER else [],
                    )
                    for fir in firs
                ]
                suggestions.append(
                    Suggestion(
                        text=message_type.name,
                        description=message_type.description,
                        tac_code=code,
                        is_category=True,
                        children=children,
                    )
                )
            else:
                suggestions.append(
                    Suggestion(
                        text=message_type.identifier,
                        description=message_type.description,
                        tac_code=code,
                    )
                )
        return suggestions

    @staticmethod
    def filter_switch_grammar(
        suggestions: list[Suggestion], message_types: Sequence[str]
    ) -> list[Suggestion]:
        """Drop switch-grammar suggestions whose target type is not configured."""
        kept: list[Suggestion] = []
        for suggestion in suggestions:
            if suggestion.switch_grammar and not same_message_type(
                suggestion.switch_grammar, message_types
            ):
                continue
            if suggestion.children:
                children = SuggestionEngine.filter_switch_grammar(
                    list(suggestion.children), message_types
                )
                if not children and suggestion.is_category and suggestion.provider is None:
                    continue
                suggestion = suggestion.model_copy(update={"children": children})
            kept.append(suggestion)
        return kept

    # ------------------------------------------------------------------
    # Provider placeholders
    # ------------------------------------------------------------------

    async def open_category(
        self,
        grammar: Grammar,
        active: ActiveGrammar | None,
        suggestion: Suggestion,
        context: ProviderContext,
    ) -> list[Suggestion]:
        """
        Resolve a provider placeholder into its suggestions.

        Falls back to the token's static placeholder when the provider is
        cancelled, fails or has nothing to offer, and to a "Loading expired"
        entry when it does not answer in time.

        Raises:
            PreconditionError: If the suggestion is not backed by a provider
        """
        if suggestion.provider is None or suggestion.ref is None:
            raise PreconditionError(f"Suggestion '{suggestion.text}' is not a provider category")

        options = self.providers.get(suggestion.provider)
        if options is None:
            logger.warning("Provider '%s' is no longer registered", suggestion.provider)
            return self._fallback(grammar, suggestion.ref)

        token_id = suggestion.ref
        match = DispatchMatch(
            key=suggestion.provider, payload=options, by_pattern=is_pattern(suggestion.provider)
        )
        outcome = await self.runner.fetch(match, context)
        items = grammar.suggestions.items.get(token_id, [])

        if outcome.state is LoadState.RESOLVED and outcome.suggestions:
            results = self._decorate(outcome.suggestions, token_id, match.key, items)
            if not options.replace:
                static = [i for i in items if not _is_provider_item(i)]
                definition = grammar.tokens.get(token_id)
                results.extend(self._expand(token_id, static, definition, context.prev_token_text))
            return results

        if outcome.state is LoadState.TIMED_OUT:
            return [
                Suggestion(
                    text=LOADING_EXPIRED,
                    description="The provider did not answer in time",
                    ref=token_id,
                    provider=match.key,
                    placeholder=True,
                    state=LoadState.TIMED_OUT,
                )
            ]

        if outcome.state is LoadState.LOADING:
            return [
                Suggestion(
                    text="Loading...",
                    ref=token_id,
                    provider=match.key,
                    placeholder=True,
                    state=LoadState.LOADING,
                )
            ]

        return self._fallback(grammar, token_id)

    def _provider_for(
        self,
        active: ActiveGrammar | None,
        token_id: str,
        definition: TokenDefinition | None,
        items: Sequence[SuggestionItem],
    ) -> DispatchMatch[ProviderOptions] | None:
        named = next(
            (i.provider for i in items if isinstance(i, ValueItem) and i.provider), None
        )
        category = definition.category if definition else None
        return self.providers.resolve(active, token_id, name=named, category=category)

    @staticmethod
    def _placeholder(
        token_id: str,
        match: DispatchMatch[ProviderOptions],
        definition: TokenDefinition | None,
        items: Sequence[SuggestionItem],
    ) -> Suggestion:
        options = match.payload
        description = definition.description if definition and definition.description else ""
        if options.category:
            return Suggestion(
                text=options.category,
                description=description,
                ref=token_id,
                is_category=True,
                provider=match.key,
                placeholder=True,
                state=LoadState.IDLE,
            )

        text = token_id
        editable: list[EditableRegion] = []
        if definition and definition.placeholder:
            text = definition.placeholder.value
            editable = list(definition.placeholder.editable)
        else:
            item = next((i for i in items if isinstance(i, ValueItem) and i.provider), None)
            if item is not None and item.text:
                text = item.text
                description = item.description or description
        return Suggestion(
            text=text,
            description=description,
            ref=token_id,
            provider=match.key,
            editable=editable,
            placeholder=True,
            state=LoadState.IDLE,
        )

    @staticmethod
    def _decorate(
        suggestions: list[Suggestion],
        token_id: str,
        provider_id: str,
        items: Sequence[SuggestionItem],
    ) -> list[Suggestion]:
        item = next(
            (i for i in items if isinstance(i, ValueItem) and i.provider == provider_id), None
        )
        prefix = item.prefix if item else ""
        suffix = item.suffix if item else ""
        return [
            s.model_copy(
                update={
                    "text": f"{prefix}{s.text}{suffix}",
                    "ref": token_id,
                    "provider": provider_id,
                    "state": LoadState.RESOLVED,
                }
            )
            for s in suggestions
        ]

    def _fallback(self, grammar: Grammar, token_id: str) -> list[Suggestion]:
        definition = grammar.tokens.get(token_id)
        if definition is None or definition.placeholder is None:
            return []
        return [
            Suggestion(
                text=definition.placeholder.value,
                description=definition.description or "",
                ref=token_id,
                editable=list(definition.placeholder.editable),
            )
        ]

    # ------------------------------------------------------------------
    # Static items
    # ------------------------------------------------------------------

    def _expand(
        self,
        token_id: str,
        items: Sequence[SuggestionItem],
        definition: TokenDefinition | None,
        prev_token_text: str,
    ) -> list[Suggestion]:
        if not items and definition is not None:
            return self._from_definition(token_id, definition)

        suggestions: list[Suggestion] = []
        suffixed = _carries_suffix(items, prev_token_text)
        for item in items:
            if isinstance(item, ValueItem):
                suggestion = self._value(token_id, item, suffixed)
                if suggestion is not None:
                    suggestions.append(suggestion)
            elif isinstance(item, SkipItem):
                suggestions.append(
                    Suggestion(
                        text=item.text or "(skip)",
                        description=item.description,
                        ref=token_id,
                        skip_to_next=True,
                    )
                )
            elif isinstance(item, CategoryItem):
                children = self._expand(token_id, item.children, None, prev_token_text)
                if children:
                    suggestions.append(
                        Suggestion(
                            text=item.text,
                            description=item.description,
                            ref=token_id,
                            is_category=True,
                            children=children,
                        )
                    )
            elif isinstance(item, SwitchGrammarItem):
                text = item.text
                if item.dynamic:
                    text = self.dynamic.generate(item.dynamic) or item.text
                suggestions.append(
                    Suggestion(
                        text=text or item.target.upper(),
                        description=item.description,
                        ref=token_id,
                        switch_grammar=item.target,
                        tac_code=item.target.upper(),
                        editable=list(item.editable),
                    )
                )
        return suggestions

    def _value(self, token_id: str, item: ValueItem, suffixed: bool) -> Suggestion | None:
        text = item.text
        if item.dynamic:
            text = self.dynamic.generate(item.dynamic) or item.text
        if not text:
            return None
        if item.append_to_previous and suffixed:
            return None
        return Suggestion(
            text=text,
            description=item.description,
            ref=token_id,
            editable=list(item.editable),
            append_to_previous=item.append_to_previous,
            new_line_before=item.new_line_before,
            auto=item.auto,
        )

    @staticmethod
    def _from_definition(token_id: str, definition: TokenDefinition) -> list[Suggestion]:
        """Suggestions for a token without declared items: its values or placeholder."""
        if definition.values:
            return [
                Suggestion(text=value, description=definition.description or "", ref=token_id)
                for value in definition.values
            ]
        if definition.placeholder:
            return [
                Suggestion(
                    text=definition.placeholder.value,
                    description=definition.description or "",
                    ref=token_id,
                    editable=list(definition.placeholder.editable),
                )
            ]
        return []


def _is_provider_item(item: SuggestionItem) -> bool:
    return isinstance(item, ValueItem) and item.provider is not None


def _carries_suffix(items: Sequence[SuggestionItem], prev_token_text: str) -> bool:
    """Whether the previous token already ends with one of the append-to-previous texts."""
    upper = prev_token_text.upper()
    return any(
        isinstance(i, ValueItem)
        and i.append_to_previous
        and bool(i.text)
        and upper.endswith(i.text.upper())
        for i in items
    )
