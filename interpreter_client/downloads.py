from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .console import Console
from .models import DownloadedArtifact
from .providers import BaseAgentService

logger = logging.getLogger("interpreter-client")

ARTIFACT_PREFIX = "agent_output"
ARTIFACT_SUFFIX = ".png"


def artifact_filename(file_id: str, now: datetime) -> str:
    """agent_output_<YYYYMMDD>_<HHMMSS>_<last 8 chars of id>.png"""
    return f"{ARTIFACT_PREFIX}_{now:%Y%m%d_%H%M%S}_{file_id[-8:]}{ARTIFACT_SUFFIX}"


def download_artifact(
    service: BaseAgentService,
    file_id: str,
    console: Console,
    *,
    directory: Optional[Path] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> DownloadedArtifact:
    """Fetch one generated file and save it; a failure is reported, not raised."""
    directory = Path(directory or Path.cwd())
    console.write(f"Downloading {file_id}")
    try:
        content = service.get_file_content(file_id)
        name = artifact_filename(file_id, clock())
        target = directory / name
        target.write_bytes(content)
    except Exception as exc:
        logger.warning("Download of %s failed: %s", file_id, exc)
        console.say(f" ✗ Failed: {exc}")
        return DownloadedArtifact(file_id=file_id, ok=False, error=str(exc))

    console.say(f" ✓ Saved to: {name}")
    return DownloadedArtifact(file_id=file_id, path=target, ok=True)


def download_all(
    service: BaseAgentService,
    file_ids: Iterable[str],
    console: Console,
    *,
    directory: Optional[Path] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> List[DownloadedArtifact]:
    return [
        download_artifact(service, file_id, console, directory=directory, clock=clock)
        for file_id in file_ids
    ]
