from __future__ import annotations

import sys
from typing import Callable, Optional, TextIO


class Console:
    """Prompts and output for the interactive session."""

    def __init__(self, reader: Optional[Callable[[str], str]] = None, stream: Optional[TextIO] = None) -> None:
        # Defaults are resolved per call so redirected stdin/stdout are honoured.
        self._reader = reader
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    def say(self, text: str = "") -> None:
        print(text, file=self.stream, flush=True)

    def write(self, text: str) -> None:
        print(text, end="", file=self.stream, flush=True)

    def ask(self, prompt: str = "") -> Optional[str]:
        """Read one line; None once input is exhausted."""
        if prompt:
            self.write(prompt)
        reader = self._reader or input
        try:
            return reader("")
        except EOFError:
            return None
