"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from reverse_prompter.ai.prompter import RequestConfiguration
from reverse_prompter.services.settings import Settings

from tests.helpers import RecordingNotifier


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "REVERSE_PROMPTER_API_KEY",
        "REVERSE_PROMPTER_MODEL",
        "REVERSE_PROMPTER_BASE_URL",
        "REVERSE_PROMPTER_DIVIDER_PATTERN",
        "REVERSE_PROMPTER_REQUEST_TIMEOUT",
        "REVERSE_PROMPTER_DEBUG_LOGGING",
        "REVERSE_PROMPTER_INCLUDE_SOURCE_PATH",
        "REVERSE_PROMPTER_SETTINGS_PATH",
        "REVERSE_PROMPTER_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("REVERSE_PROMPTER_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="sk-test", prompt="Ask one question.", prefix="> AI: ", postfix="\n")


@pytest.fixture
def config(settings: Settings) -> RequestConfiguration:
    return RequestConfiguration.from_settings(settings)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
