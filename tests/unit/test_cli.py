"""Tests for CLI commands."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from tacassist.cli import app

METAR = "METAR LFPG 151230Z 24010KT 9999 FEW020 15/10 Q1013"


@pytest.fixture
def cli_runner():
    """Return a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_args(tmp_path: Path) -> list[str]:
    """Point the CLI at a config file that does not exist (defaults)."""
    return ["--config", str(tmp_path / "tacassist.toml")]


def test_version(cli_runner: CliRunner):
    result = cli_runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "tacassist version" in result.stdout


def test_tokenize_metar(cli_runner: CliRunner, config_args: list[str]):
    result = cli_runner.invoke(app, [*config_args, "tokenize", METAR])
    assert result.exit_code == 0
    assert "Grammar: sa" in result.stdout
    assert "icao" in result.stdout
    assert "LFPG" in result.stdout


def test_tokenize_unknown_message(cli_runner: CliRunner, config_args: list[str]):
    result = cli_runner.invoke(app, [*config_args, "tokenize", "HELLO"])
    assert result.exit_code == 0
    assert "No message type detected" in result.stdout
    assert "error" in result.stdout


def test_tokenize_from_file(cli_runner: CliRunner, config_args: list[str], tmp_path: Path):
    message = tmp_path / "metar.txt"
    message.write_text(METAR + "\n", encoding="utf-8")
    result = cli_runner.invoke(app, [*config_args, "tokenize", "--file", str(message)])
    assert result.exit_code == 0
    assert "Q1013" in result.stdout


def test_tokenize_requires_input(cli_runner: CliRunner, config_args: list[str]):
    result = cli_runner.invoke(app, [*config_args, "tokenize"])
    assert result.exit_code == 2


def test_validate_valid(cli_runner: CliRunner, config_args: list[str]):
    result = cli_runner.invoke(app, [*config_args, "validate", METAR])
    assert result.exit_code == 0
    assert "Valid" in result.stdout


def test_validate_errors(cli_runner: CliRunner, config_args: list[str]):
    result = cli_runner.invoke(app, [*config_args, "validate", "METAR LFPG 320000Z"])
    assert result.exit_code == 1
    assert "320000Z" in result.stdout


def test_validate_final_reports_incomplete(cli_runner: CliRunner, config_args: list[str]):
    assert cli_runner.invoke(app, [*config_args, "validate", "METAR LFPG"]).exit_code == 0

    result = cli_runner.invoke(app, [*config_args, "validate", "--final", "METAR LFPG"])
    assert result.exit_code == 1
    assert "Incomplete" in result.stdout


def test_suggest_message_types(cli_runner: CliRunner, config_args: list[str]):
    result = cli_runner.invoke(app, [*config_args, "suggest"])
    assert result.exit_code == 0
    assert "METAR" in result.stdout
    assert "XXXX SIGMET" in result.stdout
    assert "category" in result.stdout


def test_suggest_after_datetime(cli_runner: CliRunner, config_args: list[str]):
    result = cli_runner.invoke(app, [*config_args, "suggest", "METAR LFPG 151230Z "])
    assert result.exit_code == 0
    assert "00000KT" in result.stdout
    assert "NIL" in result.stdout


def test_suggest_end_of_message(cli_runner: CliRunner, config_args: list[str]):
    result = cli_runner.invoke(app, [*config_args, "suggest", "METAR LFPG 151230Z NIL "])
    assert result.exit_code == 0
    assert "No suggestions" in result.stdout


def test_grammars(cli_runner: CliRunner, config_args: list[str]):
    result = cli_runner.invoke(app, [*config_args, "grammars"])
    assert result.exit_code == 0
    assert "oaci" in result.stdout
    assert "report" in result.stdout


def test_config_file_is_applied(cli_runner: CliRunner, tmp_path: Path):
    config = tmp_path / "tacassist.toml"
    config.write_text('[editor]\nmessage_types = ["FT"]\n', encoding="utf-8")
    result = cli_runner.invoke(app, ["--config", str(config), "tokenize", "METAR LFPG"])
    assert result.exit_code == 0
    assert "No message type detected" in result.stdout


def test_invalid_config(cli_runner: CliRunner, tmp_path: Path):
    config = tmp_path / "tacassist.toml"
    config.write_text("[editor\n", encoding="utf-8")
    result = cli_runner.invoke(app, ["--config", str(config), "tokenize", METAR])
    assert result.exit_code == 1
    assert "Configuration error" in result.stdout
