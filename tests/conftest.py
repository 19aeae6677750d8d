from __future__ import annotations

from typing import Iterable, List

import pytest

from interpreter_client.config import Settings
from interpreter_client.console import Console

ENV_KEYS = [
    "PROJECT_ENDPOINT",
    "AGENT_NAME",
    "PROVIDER",
    "COMPLETION",
    "LOG_LEVEL",
    "APPSETTINGS_PATH",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's .env or shell exports out of the tests."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class ScriptedReader:
    """Stands in for input(): returns the scripted lines, then raises EOFError."""

    def __init__(self, lines: Iterable[str]) -> None:
        self.lines: List[str] = list(lines)
        self.prompts = 0

    def __call__(self, _prompt: str = "") -> str:
        self.prompts += 1
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)


def scripted_console(*lines: str) -> Console:
    return Console(reader=ScriptedReader(lines))


def make_settings(**overrides) -> Settings:
    values = {
        "project_endpoint": "https://example.services.ai.azure.com/api/projects/demo",
        "agent_name": "data-analyst",
        "provider_name": "stub",
        "poll_interval": 0.01,
        "progress_interval": 0.01,
        "upload_progress_interval": 0.01,
    }
    values.update(overrides)
    return Settings(**values)
