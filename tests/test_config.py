from __future__ import annotations

import json
from pathlib import Path

import pytest

from interpreter_client import cli
from interpreter_client.config import DEFAULT_MODEL, ConfigError, load_settings


def write_settings(path: Path, document: dict) -> Path:
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def test_load_settings_reads_required_and_optional_keys(tmp_path: Path) -> None:
    path = write_settings(
        tmp_path / "appsettings.json",
        {
            "AzureAI": {"ProjectEndpoint": "https://proj.example/api", "AgentName": "analyst"},
            "Client": {"Completion": "Stream", "PollIntervalSeconds": 1.5, "RequireFile": True},
        },
    )

    settings = load_settings(path)

    assert settings.project_endpoint == "https://proj.example/api"
    assert settings.agent_name == "analyst"
    assert settings.model == DEFAULT_MODEL
    assert settings.completion == "stream"
    assert settings.poll_interval == 1.5
    assert settings.require_file is True
    assert settings.provider_name == "azure"


def test_load_settings_accepts_yaml(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "AzureAI:\n  ProjectEndpoint: https://proj.example/api\n  AgentName: analyst\n  Model: gpt-4.1\n",
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.model == "gpt-4.1"


@pytest.mark.parametrize(
    "azure_section, missing",
    [
        ({"AgentName": "analyst"}, "ProjectEndpoint"),
        ({"ProjectEndpoint": "https://proj.example/api"}, "AgentName"),
        ({"ProjectEndpoint": "  ", "AgentName": "analyst"}, "ProjectEndpoint"),
        ({}, "ProjectEndpoint"),
    ],
)
def test_missing_required_key_raises(tmp_path: Path, azure_section: dict, missing: str) -> None:
    path = write_settings(tmp_path / "appsettings.json", {"AzureAI": azure_section})

    with pytest.raises(ConfigError) as exc:
        load_settings(path)

    assert missing in str(exc.value)


def test_missing_settings_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "nope.json")


def test_non_mapping_document_raises(tmp_path: Path) -> None:
    path = tmp_path / "appsettings.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(path)


def test_unknown_completion_strategy_raises(tmp_path: Path) -> None:
    path = write_settings(
        tmp_path / "appsettings.json",
        {
            "AzureAI": {"ProjectEndpoint": "https://proj.example/api", "AgentName": "analyst"},
            "Client": {"Completion": "telepathy"},
        },
    )

    with pytest.raises(ConfigError):
        load_settings(path)


def test_invalid_interval_raises(tmp_path: Path) -> None:
    path = write_settings(
        tmp_path / "appsettings.json",
        {
            "AzureAI": {"ProjectEndpoint": "https://proj.example/api", "AgentName": "analyst"},
            "Client": {"MaxWaitSeconds": 0},
        },
    )

    with pytest.raises(ConfigError):
        load_settings(path)


def test_environment_overrides_file_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = write_settings(tmp_path / "appsettings.json", {"AzureAI": {"AgentName": "from-file"}})
    monkeypatch.setenv("PROJECT_ENDPOINT", "https://env.example/api")
    monkeypatch.setenv("AGENT_NAME", "from-env")
    monkeypatch.setenv("PROVIDER", "STUB")

    settings = load_settings(path)

    assert settings.project_endpoint == "https://env.example/api"
    assert settings.agent_name == "from-env"
    assert settings.provider_name == "stub"


def test_settings_path_comes_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = write_settings(
        tmp_path / "custom.json",
        {"AzureAI": {"ProjectEndpoint": "https://proj.example/api", "AgentName": "analyst"}},
    )
    monkeypatch.setenv("APPSETTINGS_PATH", str(path))

    assert load_settings().agent_name == "analyst"


def test_startup_fails_before_any_service_is_built(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    write_settings(tmp_path / "appsettings.json", {"AzureAI": {"AgentName": "analyst"}})
    monkeypatch.chdir(tmp_path)
    built = []
    monkeypatch.setattr("interpreter_client.providers.build_service", lambda settings: built.append(settings))

    assert cli.run_interactive() == 2
    assert built == []
    assert "ProjectEndpoint not found in configuration" in capsys.readouterr().out
