"""Tests covering the command line front-end."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from reverse_prompter import app
from reverse_prompter.ai import prompter as prompter_module
from reverse_prompter.services.settings import Settings, SettingsStore


class _StubAIClient:
    instances: list["_StubAIClient"] = []
    fragments: list[str] = ["Why", "?"]

    def __init__(self, settings: Any) -> None:
        self.settings = settings
        self.messages: list[dict[str, Any]] = []
        self.closed = False
        _StubAIClient.instances.append(self)

    async def stream_text(self, messages: Any, *, model: str | None = None):
        self.messages = [dict(message) for message in messages]
        for fragment in self.fragments:
            yield fragment

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _stub_runtime(monkeypatch: pytest.MonkeyPatch) -> None:
    _StubAIClient.instances = []
    monkeypatch.setattr(prompter_module, "AIClient", _StubAIClient)
    monkeypatch.setattr(app, "configure_logging", lambda debug=False, *, force=False: None)


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "settings.json"


def _args(settings_path: Path, *extra: str) -> list[str]:
    return ["--settings-path", str(settings_path), *extra]


def test_dump_settings_redacts_api_key(settings_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    SettingsStore(settings_path).save(Settings(api_key="sk-secret-value"))

    exit_code = app.main(_args(settings_path, "--dump-settings", "--set", "model=gpt-4o"))

    assert exit_code == app.EXIT_OK
    payload = json.loads(capsys.readouterr().out)
    assert "sk-secret-value" not in json.dumps(payload)
    assert payload["settings"]["api_key"].startswith("sk")
    assert payload["settings"]["model"] == "gpt-4o"
    assert payload["meta"]["path"] == str(settings_path)
    assert payload["meta"]["secret_backend"] == "fernet"
    assert payload["meta"]["cli_overrides"] == ["model"]


def test_coerce_cli_overrides_uses_field_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "prefix=  Q: ",
            "postfix=\\n\\n",
            "include_source_path=yes",
            "request_timeout=5",
            "organization=none",
        ]
    )

    assert overrides == {
        "prefix": "  Q: ",
        "postfix": "\n\n",
        "include_source_path": True,
        "request_timeout": 5.0,
        "organization": None,
    }


def test_only_prefix_and_postfix_unescape_newlines() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "prompt=Read C:\\notes\\today first.",
            "divider_pattern=^\\t+",
            "prefix=\\t> ",
        ]
    )

    assert overrides["prompt"] == "Read C:\\notes\\today first."
    assert overrides["divider_pattern"] == "^\\t+"
    assert overrides["prefix"] == "\t> "


@pytest.mark.parametrize("entry", ["no-equals", "=value", "unknown_field=1", "debug_logging=maybe"])
def test_coerce_cli_overrides_rejects_bad_entries(entry: str) -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides([entry])


def test_invalid_override_exits_with_usage_error(
    settings_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = app.main(_args(settings_path, "--dump-settings", "--set", "bogus=1"))

    assert exit_code == app.EXIT_USAGE
    assert "Unknown setting 'bogus'" in capsys.readouterr().err


def test_malformed_divider_pattern_is_a_configuration_error(
    settings_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = app.main(_args(settings_path, "--dump-settings", "--set", "divider_pattern=(oops"))

    assert exit_code == app.EXIT_USAGE
    assert "Configuration error" in capsys.readouterr().err


def test_file_argument_is_required(settings_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(_args(settings_path)) == app.EXIT_USAGE
    assert "FILE is required" in capsys.readouterr().err


def test_unreadable_file_is_reported(
    settings_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    missing = tmp_path / "missing.md"

    assert app.main(_args(settings_path, str(missing))) == app.EXIT_USAGE
    assert "Cannot open" in capsys.readouterr().err


def test_missing_api_key_leaves_file_untouched(
    settings_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    document = tmp_path / "draft.md"
    document.write_text("A story about a lighthouse.", encoding="utf-8")

    exit_code = app.main(_args(settings_path, str(document), "--in-place"))

    captured = capsys.readouterr()
    assert exit_code == app.EXIT_NOT_GENERATED
    assert "OpenAI API Key is not set" in captured.err
    assert captured.out == ""
    assert document.read_text(encoding="utf-8") == "A story about a lighthouse."
    assert _StubAIClient.instances == []


def test_generated_question_is_written_to_stdout(
    settings_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    document = tmp_path / "draft.md"
    document.write_text("A story about a lighthouse.", encoding="utf-8")

    exit_code = app.main(_args(settings_path, str(document), "--set", "api_key=sk-test"))

    captured = capsys.readouterr()
    assert exit_code == app.EXIT_OK
    assert captured.out == "A story about a lighthouse.\n> AI: Why?\n"
    assert "Requesting reverse prompt..." in captured.err
    assert document.read_text(encoding="utf-8") == "A story about a lighthouse."
    client = _StubAIClient.instances[0]
    assert client.settings.api_key == "sk-test"
    assert client.messages[1]["content"] == "A story about a lighthouse."
    assert client.closed is True


def test_in_place_keeps_line_endings(settings_path: Path, tmp_path: Path) -> None:
    document = tmp_path / "notes.md"
    document.write_bytes(b"# Notes\r\nLine two")

    exit_code = app.main(
        _args(settings_path, str(document), "--in-place", "--set", "api_key=sk-test")
    )

    assert exit_code == app.EXIT_OK
    assert document.read_bytes() == b"# Notes\r\nLine two\r\n> AI: Why?\r\n"


def test_line_option_places_cursor_at_end_of_line(
    settings_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    document = tmp_path / "draft.md"
    document.write_text("first line\nsecond line", encoding="utf-8")

    exit_code = app.main(
        _args(settings_path, str(document), "--line", "1", "--set", "api_key=sk-test")
    )

    assert exit_code == app.EXIT_OK
    assert capsys.readouterr().out == "first line\n> AI: Why?\n\nsecond line"
    assert _StubAIClient.instances[0].messages[1]["content"] == "first line"


def test_selection_option_sends_selected_text(
    settings_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    document = tmp_path / "draft.md"
    document.write_text("alpha beta", encoding="utf-8")

    exit_code = app.main(
        _args(settings_path, str(document), "--selection", "0:5", "--set", "api_key=sk-test")
    )

    assert exit_code == app.EXIT_OK
    assert _StubAIClient.instances[0].messages[1]["content"] == "alpha"
    assert capsys.readouterr().out == "alpha\n> AI: Why?\n beta"


def test_settings_debug_logging_reconfigures_logging(
    monkeypatch: pytest.MonkeyPatch, settings_path: Path
) -> None:
    calls: list[tuple[bool, bool]] = []
    monkeypatch.setattr(
        app, "configure_logging", lambda debug=False, *, force=False: calls.append((debug, force))
    )

    app.main(_args(settings_path, "--set", "debug_logging=true"))

    assert calls == [(False, False), (True, True)]
