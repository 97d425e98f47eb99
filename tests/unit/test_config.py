"""Tests for tacassist.toml loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from tacassist.core.config import CONFIG_FILENAME, TacConfig, find_config, load_config
from tacassist.core.errors import ConfigError
from tacassist.core.message_types import DEFAULT_TAC_CODES


def _config_file(directory: Path, content: str) -> Path:
    path = directory / CONFIG_FILENAME
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path: Path) -> None:
        config = load_config(None)
        assert config == TacConfig()
        assert load_config(tmp_path / "missing.toml").path is None
        assert config.editor.message_types == list(DEFAULT_TAC_CODES)

    def test_full_file(self, tmp_path: Path) -> None:
        path = _config_file(
            tmp_path,
            """
[editor]
lang = "fr-FR"
standard = "oaci"
message_types = ["sa", "ft"]

[grammars]
path = "grammars"
include_bundled = false

[providers]
timeout_ms = 250
grace_ms = 50

[suggestions]
fir_codes = ["lfff", "lfmm"]
auto = false
""",
        )
        config = load_config(path)

        assert config.editor.lang == "fr-FR"
        assert config.editor.message_types == ["SA", "FT"]
        assert config.grammars.paths == [(tmp_path / "grammars").resolve()]
        assert config.grammars.include_bundled is False
        assert config.providers.timeout_ms == 250
        assert config.providers.grace_ms == 50
        assert config.suggestions.fir_codes == ["LFFF", "LFMM"]
        assert config.suggestions.auto is False
        assert config.path == path

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = _config_file(tmp_path, "[editor\nlang = ")
        with pytest.raises(ConfigError, match="invalid TOML"):
            load_config(path)

    @pytest.mark.parametrize(
        "content",
        [
            '[editor]\nlang = 3\n',
            '[editor]\nmessage_types = "SA"\n',
            '[providers]\ntimeout_ms = true\n',
            '[suggestions]\nauto = "no"\n',
        ],
    )
    def test_wrong_types(self, tmp_path: Path, content: str) -> None:
        with pytest.raises(ConfigError, match="invalid value"):
            load_config(_config_file(tmp_path, content))


class TestFindConfig:
    def test_walks_up(self, tmp_path: Path) -> None:
        path = _config_file(tmp_path, "")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config(nested) == path.resolve()

    def test_start_may_be_a_file(self, tmp_path: Path) -> None:
        path = _config_file(tmp_path, "")
        message = tmp_path / "message.txt"
        message.write_text("METAR", encoding="utf-8")
        assert find_config(message) == path.resolve()
