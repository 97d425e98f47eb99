"""
tacassist Language Server Protocol implementation.

Provides editor features for TAC messages:
- Diagnostics (token and validation errors)
- Completion (grammar suggestions)

The server needs the ``lsp`` extra (pygls, lsprotocol); it is imported on
first use so that ``tacassist.lsp.positions`` works without it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tacassist.core.config import TacConfig


def start_server(config: TacConfig | None = None) -> None:
    """Start the language server on stdio."""
    from .server import start_server as _start_server

    _start_server(config)


__all__ = ["start_server"]
