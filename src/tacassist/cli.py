"""
tacassist command line.

Commands work on a single message given as an argument or read from a file:

    tacassist tokenize "METAR LFPG 151230Z 24010KT 9999 FEW020 15/10 Q1013"
    tacassist validate --final --file advisory.txt
    tacassist suggest "TAF LFPG"
    tacassist grammars
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from tacassist._version import get_version
from tacassist.core.config import TacConfig, find_config, load_config
from tacassist.core.errors import ConfigError
from tacassist.core.grammar_store import GrammarStore
from tacassist.core.ir import Suggestion
from tacassist.core.session import TacSession

app = typer.Typer(
    help="tacassist - grammar-driven TAC message assistant",
    no_args_is_help=True,
)

console = Console()

# Set by the callback
_config_override: Path | None = None


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"tacassist version {get_version()}")
        raise typer.Exit()


@app.callback()
def main_callback(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to tacassist.toml (default: search upwards)"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Enable debug logging")] = False,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show version",
        ),
    ] = None,
) -> None:
    """tacassist CLI main callback for global options."""
    global _config_override
    _config_override = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# =============================================================================
# Helpers
# =============================================================================


def _load_config() -> TacConfig:
    path = _config_override or find_config()
    try:
        return load_config(path)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=1) from e


def _session() -> TacSession:
    return TacSession(_load_config())


def _read_input(text: str | None, file: Path | None) -> str:
    if file is not None:
        try:
            return file.read_text(encoding="utf-8").rstrip("\n")
        except OSError as e:
            console.print(f"[red]Cannot read {file}:[/red] {e}")
            raise typer.Exit(code=1) from e
    if text is None:
        console.print("[red]Provide the message text or --file[/red]")
        raise typer.Exit(code=2)
    return text


def _grammar_line(session: TacSession) -> str:
    if session.active is None:
        return "[yellow]No message type detected: tokenized as raw text[/yellow]"
    return f"Grammar: [bold]{session.active.code}[/bold] ({session.active.name or '-'}, {session.active.lang})"


def _kind(suggestion: Suggestion) -> str:
    if suggestion.placeholder and suggestion.provider:
        return f"provider:{suggestion.provider}"
    if suggestion.switch_grammar:
        return f"switch:{suggestion.switch_grammar}"
    if suggestion.skip_to_next:
        return "skip"
    if suggestion.is_category:
        return "category"
    return "value"


def _add_suggestion_rows(table: Table, suggestions: list[Suggestion], depth: int = 0) -> None:
    for suggestion in suggestions:
        table.add_row("  " * depth + suggestion.text, _kind(suggestion), suggestion.description)
        if suggestion.children:
            _add_suggestion_rows(table, list(suggestion.children), depth + 1)


# =============================================================================
# Commands
# =============================================================================


@app.command()
def tokenize(
    text: Annotated[str | None, typer.Argument(help="Message text")] = None,
    file: Annotated[Path | None, typer.Option("--file", "-f", help="Read the message from a file")] = None,
    show_whitespace: Annotated[
        bool, typer.Option("--whitespace", help="Include whitespace tokens")
    ] = False,
) -> None:
    """Tokenize a message and show the typed tokens."""
    session = _session()
    session.set_text(_read_input(text, file))

    console.print(_grammar_line(session))
    table = Table(show_header=True)
    table.add_column("Span", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Text")
    table.add_column("Error", style="red")
    for token in session.tokens:
        if token.is_whitespace and not show_whitespace:
            continue
        table.add_row(f"{token.start}-{token.end}", token.type, repr(token.text)[1:-1], token.error or "")
    console.print(table)


@app.command()
def validate(
    text: Annotated[str | None, typer.Argument(help="Message text")] = None,
    file: Annotated[Path | None, typer.Option("--file", "-f", help="Read the message from a file")] = None,
    final: Annotated[
        bool, typer.Option("--final", help="Also report missing required elements")
    ] = False,
) -> None:
    """Validate a message; exits with status 1 when it is not valid."""
    session = _session()
    session.set_text(_read_input(text, file))
    result = session.validate(final=final)

    console.print(_grammar_line(session))
    if result.valid:
        console.print("[green]✓ Valid[/green]")
        return

    table = Table(show_header=True)
    table.add_column("Position", justify="right")
    table.add_column("Token", style="cyan")
    table.add_column("Message", style="red")
    for issue in result.errors:
        table.add_row(str(issue.position), issue.token, issue.message)
    for issue in result.incomplete:
        table.add_row(str(issue.position), issue.token, f"[yellow]{issue.message}[/yellow]")
    console.print(table)
    raise typer.Exit(code=1)


@app.command()
def suggest(
    text: Annotated[str, typer.Argument(help="Message text typed so far")] = "",
    cursor: Annotated[
        int | None, typer.Option("--cursor", help="Cursor offset (default: end of text)")
    ] = None,
) -> None:
    """List the suggestions at the cursor."""
    session = _session()
    session.set_text(text)
    suggestions = asyncio.run(session.suggestions(cursor))

    console.print(_grammar_line(session))
    if not suggestions:
        console.print("[dim]No suggestions[/dim]")
        return
    table = Table(show_header=True)
    table.add_column("Suggestion", style="bold")
    table.add_column("Kind", style="cyan")
    table.add_column("Description", style="dim")
    _add_suggestion_rows(table, suggestions)
    console.print(table)


@app.command()
def grammars() -> None:
    """List the grammar files visible with the current configuration."""
    config = _load_config()
    store = GrammarStore(
        config.grammars.paths,
        lang=config.editor.lang,
        include_bundled=config.grammars.include_bundled,
    )
    table = Table(show_header=True)
    table.add_column("Name", style="bold")
    table.add_column("Standard")
    table.add_column("Lang")
    table.add_column("Path", style="dim")
    for found in store.available():
        table.add_row(found.name, found.standard, found.lang, str(found.path))
    console.print(table)


@app.command()
def lsp() -> None:
    """Start the tacassist language server on stdio."""
    try:
        from tacassist.lsp import start_server

        start_server(_load_config())
    except ImportError as e:
        typer.echo(
            f"Error: LSP dependencies not installed: {e}\n"
            "Install with: pip install tacassist[lsp]",
            err=True,
        )
        raise typer.Exit(code=1) from e
    except KeyboardInterrupt:
        typer.echo("\nLSP server stopped.")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
