"""
tacassist Language Server implementation using pygls.

One TacSession per open document: every open or change retokenizes the
document and publishes its errors as diagnostics; completion lists the
grammar suggestions at the cursor.
"""

from __future__ import annotations

import logging

from lsprotocol.types import (
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    CompletionItem,
    CompletionItemKind,
    CompletionList,
    CompletionOptions,
    CompletionParams,
    Diagnostic,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    Position,
    PublishDiagnosticsParams,
    Range,
)
from pygls.lsp.server import LanguageServer

from tacassist._version import get_version
from tacassist.core.config import TacConfig
from tacassist.core.errors import PreconditionError
from tacassist.core.ir import Suggestion
from tacassist.core.session import TacSession

from .positions import offset_at, span_to_range

logger = logging.getLogger(__name__)

SOURCE = "tacassist"

server = LanguageServer("tacassist-lsp", f"v{get_version()}")

_config = TacConfig()
_sessions: dict[str, TacSession] = {}


def _session_for(uri: str) -> TacSession:
    session = _sessions.get(uri)
    if session is None:
        session = TacSession(_config)
        _sessions[uri] = session
    return session


def _range(text: str, start: int, end: int) -> Range:
    (start_line, start_char), (end_line, end_char) = span_to_range(text, start, end)
    return Range(
        start=Position(line=start_line, character=start_char),
        end=Position(line=end_line, character=end_char),
    )


def build_diagnostics(session: TacSession) -> list[Diagnostic]:
    """Diagnostics for the session's current text (errors only, no incompleteness)."""
    text = session.text
    diagnostics: list[Diagnostic] = []
    for token in session.tokens:
        if not token.is_error:
            continue
        diagnostics.append(
            Diagnostic(
                range=_range(text, token.start, token.end),
                message=token.error or f"Unknown token: {token.text}",
                severity=DiagnosticSeverity.Error,
                source=SOURCE,
            )
        )
    return diagnostics


def _refresh(ls: LanguageServer, uri: str) -> None:
    document = ls.workspace.get_text_document(uri)
    session = _session_for(uri)
    session.set_text(document.source)
    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=build_diagnostics(session))
    )


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    """Handle document open."""
    logger.info("Opened: %s", params.text_document.uri)
    _refresh(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    """Handle document change."""
    _refresh(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: LanguageServer, params: DidCloseTextDocumentParams) -> None:
    """Handle document close."""
    uri = params.text_document.uri
    session = _sessions.pop(uri, None)
    if session is not None:
        session.cancel_providers()
    ls.text_document_publish_diagnostics(PublishDiagnosticsParams(uri=uri, diagnostics=[]))


def to_completion_items(suggestions: list[Suggestion], parent: str | None = None) -> list[CompletionItem]:
    """Flatten a suggestion list into completion items (category children inline)."""
    items: list[CompletionItem] = []
    for suggestion in suggestions:
        if suggestion.is_category and suggestion.children:
            items.extend(to_completion_items(list(suggestion.children), suggestion.text))
            continue
        if suggestion.skip_to_next or (suggestion.is_category and not suggestion.provider):
            continue
        insert = suggestion.text
        if suggestion.new_line_before:
            insert = "\n" + insert
        items.append(
            CompletionItem(
                label=suggestion.text,
                kind=CompletionItemKind.Keyword if suggestion.switch_grammar else CompletionItemKind.Value,
                detail=f"{parent}: {suggestion.description}" if parent else suggestion.description,
                insert_text=insert,
                filter_text=suggestion.text,
            )
        )
    return items


@server.feature(TEXT_DOCUMENT_COMPLETION, CompletionOptions(trigger_characters=[" "]))
async def completion(ls: LanguageServer, params: CompletionParams) -> CompletionList:
    """Suggestions at the cursor; provider placeholders are resolved in place."""
    document = ls.workspace.get_text_document(params.text_document.uri)
    session = _session_for(params.text_document.uri)
    if session.text != document.source:
        session.set_text(document.source)

    cursor = offset_at(document.source, params.position.line, params.position.character)
    suggestions = await session.suggestions(cursor)

    resolved: list[Suggestion] = []
    for suggestion in suggestions:
        if suggestion.placeholder and suggestion.provider:
            try:
                children = await session.open_category(suggestion, cursor)
            except PreconditionError as e:
                logger.warning("Cannot resolve provider suggestion: %s", e)
                children = []
            resolved.extend(children or [suggestion])
        else:
            resolved.append(suggestion)

    return CompletionList(is_incomplete=False, items=to_completion_items(resolved))


def start_server(config: TacConfig | None = None) -> None:
    """Start the tacassist LSP server."""
    global _config
    logging.basicConfig(level=logging.INFO)
    if config is not None:
        _config = config
    logger.info("Starting tacassist Language Server...")
    server.start_io()


if __name__ == "__main__":
    start_server()
