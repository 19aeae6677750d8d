"""CLI entry point for the code-interpreter-client package."""

from __future__ import annotations

import json
import logging
import platform
import sys
import traceback
from typing import Optional

from .config import DEFAULT_MODEL, ConfigError, settings_path

MIN_PYTHON = (3, 10)

SETTINGS_TEMPLATE = {
    "AzureAI": {
        "ProjectEndpoint": "https://<resource>.services.ai.azure.com/api/projects/<project>",
        "AgentName": "code-interpreter-agent",
        "Model": DEFAULT_MODEL,
    },
    "Client": {
        "Provider": "azure",
        "Completion": "poll",
        "PollIntervalSeconds": 0.5,
        "MaxWaitSeconds": 600,
        "RequireFile": False,
    },
}


def _python_version_str() -> str:
    return ".".join(str(part) for part in sys.version_info[:3])


def _print_help() -> None:
    print("Code Interpreter Client")
    print()
    print("Usage:")
    print("  interpreter-client             Start an interactive session")
    print("  interpreter-client setup       Print a settings file template")
    print("  interpreter-client doctor      Print install/environment diagnostics")
    print()


def _print_setup() -> None:
    print("Code Interpreter Client — Setup")
    print()
    print(f"Create {settings_path()} next to your spreadsheets with:")
    print()
    print(json.dumps(SETTINGS_TEMPLATE, indent=2))
    print()
    print("Environment overrides (also read from .env):")
    print("   PROJECT_ENDPOINT, AGENT_NAME, PROVIDER, COMPLETION, LOG_LEVEL, APPSETTINGS_PATH")
    print()
    print("Sign in once with `az login` (or any other DefaultAzureCredential source).")
    print("Use Provider \"stub\" to try the client without an Azure project.")
    print()


def _print_doctor() -> None:
    from .config import load_settings

    print("Code Interpreter Client Doctor")
    print()
    print(f"Platform: {platform.platform()}")
    print(f"Python:   {_python_version_str()}")
    print(f"Exe:      {sys.executable}")
    path = settings_path()
    print(f"Settings: {path} ({'found' if path.exists() else 'missing'})")
    try:
        settings = load_settings(path)
    except ConfigError as exc:
        print(f"Issue:    {exc}")
    else:
        print(f"Endpoint: {settings.project_endpoint}")
        print(f"Agent:    {settings.agent_name} ({settings.model})")
        print(f"Provider: {settings.provider_name}  |  Completion: {settings.completion}")
    if sys.version_info < MIN_PYTHON:
        print(f"Issue: Python is below required minimum {MIN_PYTHON[0]}.{MIN_PYTHON[1]}.")


def _configure_logging(level: str) -> None:
    # Log lines go to stderr so they never interleave with prompts on stdout.
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def run_interactive() -> int:
    """Run one interactive session; returns the process exit code."""
    from .config import load_settings
    from .console import Console
    from .engine import open_session, run_session
    from .providers import build_service

    console = Console()
    console.say("=== Code Interpreter Client ===")
    console.say()

    try:
        settings = load_settings()
    except ConfigError as exc:
        console.say(f"✗ Configuration error: {exc}")
        console.say("Run `interpreter-client setup` for a settings template.")
        return 2

    _configure_logging(settings.log_level)

    try:
        service = build_service(settings)
        session = open_session(settings, service, console)
        run_session(session)
    except KeyboardInterrupt:
        console.say()
        console.say("Exiting...")
        return 130
    except Exception as exc:
        logging.getLogger("interpreter-client").debug("Session failed", exc_info=True)
        console.say()
        console.say(f"✗ Error: {exc}")
        console.say()
        console.say(f"Details: {''.join(traceback.format_exception(exc))}")
        return 1

    console.say()
    console.say("=== Session Complete ===")
    return 0


def main(argv: Optional[list] = None) -> None:
    """Run an interactive session or handle setup/doctor/help commands."""
    args = sys.argv[1:] if argv is None else argv

    if args:
        subcommand = args[0].strip().lower()
        if subcommand in {"-h", "--help", "help"}:
            _print_help()
            sys.exit(0)
        if subcommand == "setup":
            _print_setup()
            sys.exit(0)
        if subcommand == "doctor":
            _print_doctor()
            sys.exit(0)
        if subcommand != "run":
            print(f"Unknown command: {args[0]}", file=sys.stderr)
            _print_help()
            sys.exit(2)

    sys.exit(run_interactive())


if __name__ == "__main__":
    main()
