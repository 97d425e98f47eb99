"""
tacassist - grammar-driven assistance for aviation TAC messages.

Tokenizes, validates and completes METAR, SPECI, TAF, SIGMET and advisory
messages from declarative JSON grammars.
"""

from __future__ import annotations

from ._version import get_version
from .core import ir
from .core.errors import (
    ConfigError,
    GrammarError,
    PreconditionError,
    ProviderError,
    TacError,
)
from .core.grammar_store import GrammarStore
from .core.session import TacSession

__version__ = get_version()

__all__ = [
    "__version__",
    "ir",
    "TacError",
    "GrammarError",
    "ProviderError",
    "ConfigError",
    "PreconditionError",
    "GrammarStore",
    "TacSession",
]
