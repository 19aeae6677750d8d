from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

from .console import Console
from .models import UploadedFile
from .progress import run_with_progress
from .providers import BaseAgentService

logger = logging.getLogger("interpreter-client")

SPREADSHEET_SUFFIXES = (".xlsx", ".xls")
SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


class SelectionAborted(RuntimeError):
    """Raised when input ends while a file selection is still required."""


def format_file_size(size: int) -> str:
    """Human readable size with at most two decimals, e.g. 1536 -> '1.5 KB'."""
    value = float(size)
    order = 0
    while value >= 1024 and order < len(SIZE_UNITS) - 1:
        order += 1
        value /= 1024
    number = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{number} {SIZE_UNITS[order]}"


def list_spreadsheets(directory: Optional[Path] = None) -> List[Path]:
    """Spreadsheet files directly under `directory`, in directory enumeration order."""
    directory = Path(directory or Path.cwd())
    found: List[Path] = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if not entry.is_file():
                continue
            if entry.name.lower().endswith(SPREADSHEET_SUFFIXES):
                found.append(directory / entry.name)
    return found


def _parse_index(raw: Optional[str], count: int) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    try:
        index = int(raw.strip())
    except ValueError:
        return None
    if 1 <= index <= count:
        return index
    return None


def select_file(console: Console, files: List[Path], *, require: bool = False) -> Optional[Path]:
    """
    Show the numbered file list and read a 1-based selection.

    With `require` the prompt repeats until a valid index is entered;
    otherwise blank or invalid input means no file.
    """
    console.say("Available Excel files in current directory:")
    console.say("===========================================")
    for number, path in enumerate(files, start=1):
        console.say(f"{number}. {path.name} ({format_file_size(path.stat().st_size)})")
    console.say()

    if require and not files:
        raise SelectionAborted("No Excel files found in the current directory")

    while True:
        if require:
            raw = console.ask("Enter the number of the Excel file to upload: ")
        else:
            raw = console.ask("Enter the number of the Excel file to upload (or press Enter to skip): ")

        index = _parse_index(raw, len(files))
        if index is not None:
            return files[index - 1]
        if not require:
            console.say("No file selected.")
            console.say()
            return None
        if raw is None:
            raise SelectionAborted("Input ended before a file was selected")
        console.say(f"Please enter a number between 1 and {len(files)}.")


def upload_with_progress(
    service: BaseAgentService,
    path: Path,
    console: Console,
    interval: float = 0.3,
) -> UploadedFile:
    """Upload `path` while printing a dot per `interval` until the upload finishes."""
    console.write(f"\nUploading {path.name}")
    file_id = run_with_progress(lambda: service.upload_file(path), lambda: console.write("."), interval)
    size = path.stat().st_size
    console.say(f" ✓ Done ({format_file_size(size)})")
    console.say(f"   File ID: {file_id}")
    console.say()
    logger.info("Uploaded %s as %s", path, file_id)
    return UploadedFile(path=path, file_id=file_id, size_bytes=size)
