"""
Log sink — the run transcript.

One append-only plain-text file shared by every component for the
whole run: logging records, captured command output and streamed pull
progress all land here in chronological order. ANSI color codes are
stripped and URL credentials masked before anything is written.

Writes are serialized with a lock and each call writes whole lines,
so interactive streaming and captured output never interleave
mid-line.
"""

from __future__ import annotations

import re
import sys
import threading
from pathlib import Path

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")
_URL_USERINFO_RE = re.compile(r"(?P<scheme>[a-zA-Z][a-zA-Z0-9+.-]*://)[^/\s@]+@")


def clean_text(text: str) -> str:
    """Strip ANSI escapes and mask credentials embedded in URLs."""
    text = _ANSI_RE.sub("", text)
    return _URL_USERINFO_RE.sub(r"\g<scheme>***@", text)


class LogSink:
    """Append-only transcript file.

    The file (and its parent directory) is created on first write.
    It is never truncated.
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._broken = False

    @property
    def path(self) -> Path:
        return self._path

    def write_line(self, line: str) -> None:
        """Append a single line (a trailing newline is added if missing)."""
        self.write_block(line)

    def write_block(self, text: str) -> None:
        """Append a block of text as one write."""
        if not text:
            return
        text = clean_text(text).replace("\r\n", "\n").replace("\r", "\n")
        if not text.endswith("\n"):
            text += "\n"
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as f:
                    f.write(text)
            except OSError as e:
                # Reported once on stderr; logging here would re-enter the sink.
                if not self._broken:
                    self._broken = True
                    print(f"Cannot write log file {self._path}: {e}", file=sys.stderr)

    def read_text(self) -> str:
        """Whole transcript so far (empty when nothing was written)."""
        if not self._path.is_file():
            return ""
        return self._path.read_text(encoding="utf-8")
