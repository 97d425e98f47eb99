"""Core tacassist functionality: grammar IR, tokenizer, structure tracker, dispatch, suggestions."""

from . import ir
from .cache import SuggestionCache
from .config import TacConfig, find_config, load_config
from .dispatch import PatternRegistry
from .errors import (
    ConfigError,
    ErrorContext,
    GrammarError,
    PreconditionError,
    ProviderError,
    TacError,
)
from .grammar_store import GrammarStore
from .providers import ProviderContext, ProviderOptions, ProviderRegistry, ProviderRunner
from .session import TacSession
from .structure import StructureTracker
from .suggestions import SuggestionEngine
from .tokenizer import Tokenizer, tokenize
from .validation import validate_message
from .validators import ValidatorContext, ValidatorRegistry

__all__ = [
    "ir",
    "TacError",
    "GrammarError",
    "ProviderError",
    "ConfigError",
    "PreconditionError",
    "ErrorContext",
    "TacConfig",
    "find_config",
    "load_config",
    "GrammarStore",
    "StructureTracker",
    "Tokenizer",
    "tokenize",
    "PatternRegistry",
    "ValidatorRegistry",
    "ValidatorContext",
    "validate_message",
    "SuggestionCache",
    "ProviderRegistry",
    "ProviderOptions",
    "ProviderContext",
    "ProviderRunner",
    "SuggestionEngine",
    "TacSession",
]
