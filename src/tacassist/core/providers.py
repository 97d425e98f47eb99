"""
Suggestion providers.

A provider is an externally registered callback that supplies suggestion
values for a token type (sequence numbers, aerodrome lists, FIR codes...).
Providers may be plain functions or coroutines; both are driven through one
asynchronous contract.

Invocation rules:
- results are cached per registration and token type when the registration
  declares a cache policy
- a call races a timeout; after the timeout a short grace window is given
  before the call is reported as timed out. The call keeps running and a
  late result still updates the cache and notifies ``on_update``
- at most one call per (registration, token type) is in flight
- cancellation is cooperative: the context's ``abort`` event is set and the
  provider is expected to notice it
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from .cache import CachePolicy, SuggestionCache, cache_key
from .dispatch import DispatchMatch, PatternRegistry
from .errors import ProviderError
from .ir import ActiveGrammar, LoadState, Suggestion

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 500
DEFAULT_GRACE_MS = 100


@dataclass
class ProviderContext:
    """What a provider is told about the request."""

    token_type: str
    search: str = ""
    tac: str = ""
    cursor_position: int = 0
    grammar_name: str | None = None
    grammar_code: str | None = None
    grammar_standard: str | None = None
    grammar_lang: str | None = None
    prev_token_text: str = ""
    abort: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def cancelled(self) -> bool:
        return self.abort.is_set()


ProviderResult = list[Any] | None
ProviderFunction = Callable[[ProviderContext], ProviderResult | Awaitable[ProviderResult]]
UpdateListener = Callable[[str, str, list[Suggestion]], None]
StateListener = Callable[[str, LoadState], None]


@dataclass
class ProviderOptions:
    """
    A provider registration.

    Attributes:
        provider: Callback, sync or async
        replace: When False, the grammar's own items are offered alongside
        cache: Cache policy; None disables caching
        timeout: Milliseconds before the call is reported as timed out
        category: Label of the submenu the provider's results appear under
        user_interaction: The provider waits on the user (no timeout)
    """

    provider: ProviderFunction
    replace: bool = True
    cache: CachePolicy = None
    timeout: int | None = DEFAULT_TIMEOUT_MS
    category: str | None = None
    user_interaction: bool = False


@dataclass
class ProviderOutcome:
    """Result of one provider request."""

    state: LoadState
    suggestions: list[Suggestion] = field(default_factory=list)
    from_cache: bool = False
    error: str | None = None


def normalize_items(items: ProviderResult, token_type: str, provider_id: str) -> list[Suggestion]:
    """
    Convert provider results into suggestions.

    Items may be Suggestion objects, dicts of Suggestion fields, or plain
    strings. Items that cannot be converted are logged and skipped.
    """
    suggestions: list[Suggestion] = []
    for item in items or []:
        try:
            if isinstance(item, Suggestion):
                suggestion = item
            elif isinstance(item, str):
                suggestion = Suggestion(text=item)
            elif isinstance(item, dict):
                suggestion = Suggestion.model_validate(item)
            else:
                logger.warning("Provider '%s' returned unsupported item %r", provider_id, item)
                continue
        except ValidationError as e:
            logger.warning("Provider '%s' returned invalid item %r: %s", provider_id, item, e)
            continue
        if suggestion.ref is None:
            suggestion = suggestion.model_copy(update={"ref": token_type})
        suggestions.append(suggestion)
    return suggestions


class ProviderRegistry:
    """Providers registered by id or by ``code.standard.lang.tokenType`` pattern."""

    def __init__(self) -> None:
        self._registry: PatternRegistry[ProviderOptions] = PatternRegistry("provider")

    def register(
        self,
        key: str,
        provider: ProviderFunction | ProviderOptions,
        **options: Any,
    ) -> Callable[[], None]:
        """
        Register a provider.

        Args:
            key: Provider id or dispatch pattern
            provider: Callback, or a complete ProviderOptions
            **options: ProviderOptions fields when passing a bare callback

        Returns:
            Callable that removes the registration
        """
        if isinstance(provider, ProviderOptions):
            registration = provider
        else:
            registration = ProviderOptions(provider=provider, **options)
        return self._registry.register(key, registration)

    def unregister(self, key: str) -> bool:
        return self._registry.unregister(key)

    def get(self, key: str) -> ProviderOptions | None:
        return self._registry.get(key)

    def resolve(
        self,
        grammar: ActiveGrammar | None,
        token_type: str,
        name: str | None = None,
        category: str | None = None,
    ) -> DispatchMatch[ProviderOptions] | None:
        """Provider for a token: by id, then by pattern, then by category pattern."""
        return self._registry.resolve(grammar, token_type, name=name, category=category)

    def __contains__(self, key: object) -> bool:
        return key in self._registry

    def __len__(self) -> int:
        return len(self._registry)


@dataclass
class _Flight:
    task: asyncio.Task[ProviderResult]
    context: ProviderContext
    generation: int
    late: bool = False


class ProviderRunner:
    """
    Invokes providers with caching, timeout racing and deduplication.

    ``on_update`` receives (provider id, token type, suggestions) when a call
    that was reported as timed out finishes successfully while its
    suggestion list is still current. ``on_state`` is told about state
    changes of user-interaction providers.
    """

    def __init__(
        self,
        cache: SuggestionCache,
        grace_ms: int = DEFAULT_GRACE_MS,
        on_update: UpdateListener | None = None,
        on_state: StateListener | None = None,
    ):
        self.cache = cache
        self.grace_ms = grace_ms
        self.on_update = on_update
        self.on_state = on_state
        self._flights: dict[tuple[str, str], _Flight] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate(self) -> None:
        """Mark the current suggestion list stale; pending late results are dropped."""
        self._generation += 1

    def is_pending(self, provider_id: str, token_type: str) -> bool:
        flight = self._flights.get((provider_id, token_type))
        return flight is not None and not flight.task.done()

    def cancel(self, provider_id: str | None = None) -> int:
        """
        Signal abort to in-flight calls.

        Args:
            provider_id: Only calls of this registration; None for all

        Returns:
            Number of calls signalled
        """
        count = 0
        for (key, _), flight in self._flights.items():
            if provider_id is None or key == provider_id:
                if not flight.context.abort.is_set():
                    flight.context.abort.set()
                    count += 1
        return count

    async def fetch(
        self,
        match: DispatchMatch[ProviderOptions],
        context: ProviderContext,
    ) -> ProviderOutcome:
        """
        Request suggestions from a resolved provider.

        Never raises for provider failures: they are reported through the
        outcome state.
        """
        options = match.payload
        provider_id = match.key
        token_type = context.token_type
        key = cache_key(match.key, token_type, match.by_pattern)

        if options.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return ProviderOutcome(LoadState.RESOLVED, list(cached), from_cache=True)

        flight_key = (provider_id, token_type)
        if self.is_pending(provider_id, token_type):
            logger.debug("Provider '%s' already loading for '%s'", provider_id, token_type)
            return ProviderOutcome(LoadState.LOADING)
        if context.cancelled:
            return ProviderOutcome(LoadState.CANCELLED)

        self._notify_state(options, provider_id, LoadState.LOADING)
        task = asyncio.ensure_future(self._invoke(provider_id, options, context))
        flight = _Flight(task=task, context=context, generation=self._generation)
        self._flights[flight_key] = flight
        task.add_done_callback(
            lambda t: self._finished(flight_key, flight, options, key)
        )

        timeout = None
        if not options.user_interaction and options.timeout is not None:
            timeout = options.timeout / 1000

        state = await self._race(task, context.abort, timeout)
        if state is LoadState.TIMED_OUT:
            flight.late = True
            logger.warning(
                "Provider '%s' timed out after %sms for '%s'",
                provider_id,
                options.timeout,
                token_type,
            )
            return ProviderOutcome(LoadState.TIMED_OUT)
        if state is LoadState.CANCELLED:
            self._notify_state(options, provider_id, LoadState.CANCELLED)
            return ProviderOutcome(LoadState.CANCELLED)

        try:
            result = task.result()
        except asyncio.CancelledError:
            self._notify_state(options, provider_id, LoadState.CANCELLED)
            return ProviderOutcome(LoadState.CANCELLED)
        except ProviderError as e:
            logger.warning("%s", e)
            self._notify_state(options, provider_id, LoadState.FAILED)
            return ProviderOutcome(LoadState.FAILED, error=str(e))

        if context.cancelled:
            self._notify_state(options, provider_id, LoadState.CANCELLED)
            return ProviderOutcome(LoadState.CANCELLED)

        suggestions = normalize_items(result, token_type, provider_id)
        if options.cache is not None:
            self.cache.set(key, suggestions, options.cache)
        self._notify_state(options, provider_id, LoadState.RESOLVED)
        return ProviderOutcome(LoadState.RESOLVED, suggestions)

    async def _race(
        self,
        task: asyncio.Task[ProviderResult],
        abort: asyncio.Event,
        timeout: float | None,
    ) -> LoadState | None:
        """
        Wait for the task, the abort signal, or the timeout plus grace window.

        Returns:
            None when the task finished, else TIMED_OUT or CANCELLED
        """
        if abort.is_set():
            return LoadState.CANCELLED
        aborted = asyncio.ensure_future(abort.wait())
        try:
            done, _ = await asyncio.wait(
                {task, aborted}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
            if not done and self.grace_ms > 0:
                done, _ = await asyncio.wait(
                    {task, aborted},
                    timeout=self.grace_ms / 1000,
                    return_when=asyncio.FIRST_COMPLETED,
                )
        finally:
            if not aborted.done():
                aborted.cancel()
        if task in done:
            return None
        if aborted in done:
            return LoadState.CANCELLED
        return LoadState.TIMED_OUT

    @staticmethod
    async def _invoke(
        provider_id: str,
        options: ProviderOptions,
        context: ProviderContext,
    ) -> ProviderResult:
        try:
            result = options.provider(context)
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ProviderError(provider_id, str(e)) from e
        return result

    def _finished(
        self,
        flight_key: tuple[str, str],
        flight: _Flight,
        options: ProviderOptions,
        key: str,
    ) -> None:
        """Done-callback: release the in-flight slot and apply late results."""
        if self._flights.get(flight_key) is flight:
            del self._flights[flight_key]

        task = flight.task
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            if flight.late:
                logger.warning("Late %s", error)
                self._notify_state(options, flight_key[0], LoadState.FAILED)
            return
        if not flight.late or flight.context.cancelled:
            return

        suggestions = normalize_items(task.result(), flight_key[1], flight_key[0])
        if options.cache is not None:
            self.cache.set(key, suggestions, options.cache)
        if flight.generation != self._generation:
            logger.debug("Dropping late result of provider '%s': list changed", flight_key[0])
            return
        logger.debug("Late result of provider '%s' applied", flight_key[0])
        if self.on_update is not None:
            self.on_update(flight_key[0], flight_key[1], suggestions)

    def _notify_state(self, options: ProviderOptions, provider_id: str, state: LoadState) -> None:
        if options.user_interaction and self.on_state is not None:
            self.on_state(provider_id, state)
