"""Loading of ``tacassist.toml`` configuration."""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .message_types import DEFAULT_TAC_CODES

CONFIG_FILENAME = "tacassist.toml"


@dataclass
class EditorConfig:
    """Language, regional standard and enabled message types."""

    lang: str = "en"
    standard: str = "oaci"
    message_types: list[str] = field(default_factory=lambda: list(DEFAULT_TAC_CODES))


@dataclass
class GrammarConfig:
    """Where grammar files are looked up before the bundled ones."""

    paths: list[Path] = field(default_factory=list)
    include_bundled: bool = True


@dataclass
class ProviderConfig:
    """Provider timing in milliseconds."""

    timeout_ms: int = 500
    grace_ms: int = 100


@dataclass
class SuggestionConfig:
    """Suggestion list settings."""

    fir_codes: list[str] = field(default_factory=list)
    auto: bool | None = None


@dataclass
class TacConfig:
    editor: EditorConfig = field(default_factory=EditorConfig)
    grammars: GrammarConfig = field(default_factory=GrammarConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    suggestions: SuggestionConfig = field(default_factory=SuggestionConfig)
    path: Path | None = None


def find_config(start: Path | None = None) -> Path | None:
    """Walk up from ``start`` (default: cwd) looking for ``tacassist.toml``."""
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def _expect(value: Any, kind: type | tuple[type, ...], key: str, path: Path) -> Any:
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ConfigError(f"{path}: '{key}' has an invalid value {value!r}")
    return value


def _string_list(value: Any, key: str, path: Path) -> list[str]:
    _expect(value, list, key, path)
    for item in value:
        _expect(item, str, key, path)
    return list(value)


def load_config(path: Path | None) -> TacConfig:
    """
    Load ``tacassist.toml``.

    Args:
        path: Config file; None (or a missing file) gives the defaults

    Raises:
        ConfigError: If the file is not valid TOML or a value has the wrong type
    """
    if path is None or not path.exists():
        return TacConfig()

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{path}: invalid TOML: {e}") from e

    editor_data = data.get("editor", {})
    grammars_data = data.get("grammars", {})
    providers_data = data.get("providers", {})
    suggestions_data = data.get("suggestions", {})

    editor = EditorConfig(
        lang=_expect(editor_data.get("lang", "en"), str, "editor.lang", path),
        standard=_expect(editor_data.get("standard", "oaci"), str, "editor.standard", path),
        message_types=[
            code.upper()
            for code in _string_list(
                editor_data.get("message_types", list(DEFAULT_TAC_CODES)),
                "editor.message_types",
                path,
            )
        ],
    )

    raw_paths = grammars_data.get("path", [])
    if isinstance(raw_paths, str):
        raw_paths = [raw_paths]
    grammars = GrammarConfig(
        paths=[
            (path.parent / p).resolve()
            for p in _string_list(raw_paths, "grammars.path", path)
        ],
        include_bundled=_expect(
            grammars_data.get("include_bundled", True), bool, "grammars.include_bundled", path
        ),
    )

    providers = ProviderConfig(
        timeout_ms=_expect(providers_data.get("timeout_ms", 500), int, "providers.timeout_ms", path),
        grace_ms=_expect(providers_data.get("grace_ms", 100), int, "providers.grace_ms", path),
    )

    auto = suggestions_data.get("auto")
    suggestions = SuggestionConfig(
        fir_codes=[
            code.upper()
            for code in _string_list(
                suggestions_data.get("fir_codes", []), "suggestions.fir_codes", path
            )
        ],
        auto=None if auto is None else _expect(auto, bool, "suggestions.auto", path),
    )

    return TacConfig(
        editor=editor,
        grammars=grammars,
        providers=providers,
        suggestions=suggestions,
        path=path,
    )
