import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

# Load .env from current directory so PROJECT_ENDPOINT and friends are set automatically.
load_dotenv()

DEFAULT_SETTINGS_FILE = "appsettings.json"
DEFAULT_MODEL = "gpt-4o"
DEFAULT_INSTRUCTIONS = (
    "You are a helpful data analysis assistant with access to a code interpreter. "
    "When you receive Excel files, analyze them thoroughly and provide insights. "
    "Use the code interpreter to read, process, and visualize data as needed."
)


class ConfigError(RuntimeError):
    """Raised when the settings file is missing, malformed or incomplete."""


class Settings(BaseModel):
    """Runtime configuration loaded from the settings file and environment."""

    project_endpoint: str = Field(min_length=1)
    agent_name: str = Field(min_length=1)
    model: str = DEFAULT_MODEL
    instructions: str = DEFAULT_INSTRUCTIONS

    provider_name: str = "azure"
    completion: str = "poll"
    poll_interval: float = Field(default=0.5, gt=0)
    progress_interval: float = Field(default=0.5, gt=0)
    upload_progress_interval: float = Field(default=0.3, gt=0)
    max_wait: float = Field(default=600.0, gt=0)
    require_file: bool = False
    log_level: str = "WARNING"


def settings_path() -> Path:
    """Location of the settings file: APPSETTINGS_PATH or ./appsettings.json."""
    return Path(os.getenv("APPSETTINGS_PATH") or DEFAULT_SETTINGS_FILE)


def _read_settings_document(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as f:
            # safe_load accepts JSON as well as YAML documents.
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Settings file {path} could not be parsed: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Settings file must deserialize to a mapping")
    return data


def _section(document: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = document.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Settings section '{name}' must be a mapping")
    return section


def _require(value: Optional[Any], key: str) -> str:
    if value is None or not str(value).strip():
        raise ConfigError(f"{key} not found in configuration")
    return str(value).strip()


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Build Settings from the settings file, then apply environment overrides.

    Raises ConfigError before anything touches the network: a missing
    ProjectEndpoint or AgentName is fatal at startup.
    """
    path = path or settings_path()
    document = _read_settings_document(path)
    azure = _section(document, "AzureAI")
    client = _section(document, "Client")

    project_endpoint = _require(
        os.getenv("PROJECT_ENDPOINT") or azure.get("ProjectEndpoint"), "ProjectEndpoint"
    )
    agent_name = _require(os.getenv("AGENT_NAME") or azure.get("AgentName"), "AgentName")

    values: Dict[str, Any] = {
        "project_endpoint": project_endpoint,
        "agent_name": agent_name,
    }
    optional = {
        "model": azure.get("Model"),
        "instructions": azure.get("Instructions"),
        "provider_name": os.getenv("PROVIDER") or client.get("Provider"),
        "completion": os.getenv("COMPLETION") or client.get("Completion"),
        "poll_interval": client.get("PollIntervalSeconds"),
        "progress_interval": client.get("ProgressIntervalSeconds"),
        "upload_progress_interval": client.get("UploadProgressIntervalSeconds"),
        "max_wait": client.get("MaxWaitSeconds"),
        "require_file": client.get("RequireFile"),
        "log_level": os.getenv("LOG_LEVEL") or client.get("LogLevel"),
    }
    values.update({key: value for key, value in optional.items() if value is not None})

    for key in ("provider_name", "completion", "log_level"):
        if key in values:
            values[key] = str(values[key]).strip()
    values["provider_name"] = values.get("provider_name", "azure").lower()
    values["completion"] = values.get("completion", "poll").lower()
    values["log_level"] = values.get("log_level", "WARNING").upper()

    if values["provider_name"] not in {"azure", "stub"}:
        raise ConfigError(f"Unknown provider '{values['provider_name']}' (expected azure or stub)")
    if values["completion"] not in {"poll", "stream"}:
        raise ConfigError(f"Unknown completion strategy '{values['completion']}' (expected poll or stream)")

    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings in {path}: {exc}") from exc
