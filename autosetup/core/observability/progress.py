"""
Progress observers — human feedback while an external command runs.

Two implementations of one capability, chosen once at startup:

    SpinnerProgress  — animated single-line status on an interactive terminal
    NullProgress     — renders nothing (pipes, cron, CI logs)

The command runner only ever calls ``begin``/``end``/``echo``. The
spinner is a transient rich ``Live`` display whose refresh thread only
redraws the status line; it never touches the command, the ledger or
the log sink, so it cannot change what the caller gets back.
"""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from datetime import datetime
from typing import TextIO

from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner
from rich.text import Text

SPINNER_NAME = "line"  # - \ | /
SPINNER_INTERVAL = 0.15  # seconds


def _ts() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class ProgressObserver(ABC):
    """Observes one in-flight command at a time."""

    @property
    @abstractmethod
    def interactive(self) -> bool:
        """Whether output is attached to a human-facing terminal."""

    @abstractmethod
    def begin(self, message: str) -> None:
        """A command described by ``message`` has started."""

    @abstractmethod
    def end(self, message: str, ok: bool) -> None:
        """The command has exited; ``ok`` is its success status."""

    @abstractmethod
    def echo(self, line: str) -> None:
        """Show one line of streamed command output."""


class NullProgress(ProgressObserver):
    """No-op observer for non-interactive runs."""

    @property
    def interactive(self) -> bool:
        return False

    def begin(self, message: str) -> None:
        pass

    def end(self, message: str, ok: bool) -> None:
        pass

    def echo(self, line: str) -> None:
        pass


class SpinnerProgress(ProgressObserver):
    """Rotating-marker status line redrawn every ``interval`` seconds."""

    def __init__(self, stream: TextIO | None = None, interval: float = SPINNER_INTERVAL):
        self._console = Console(
            file=stream if stream is not None else sys.stdout,
            highlight=False,
            soft_wrap=True,
        )
        self._interval = interval
        self._live: Live | None = None

    @property
    def interactive(self) -> bool:
        return True

    @property
    def running(self) -> bool:
        return self._live is not None

    def begin(self, message: str) -> None:
        self._halt()
        self._live = Live(
            Spinner(SPINNER_NAME, text=Text(f"[{_ts()}] {message}")),
            console=self._console,
            refresh_per_second=1 / self._interval,
            transient=True,
            redirect_stdout=False,
            redirect_stderr=False,
        )
        self._live.start()

    def end(self, message: str, ok: bool) -> None:
        # The ledger logs the final status line; only clear the spinner.
        self._halt()

    def echo(self, line: str) -> None:
        self._print(line)

    def _halt(self) -> None:
        if self._live is None:
            return
        live, self._live = self._live, None
        try:
            live.stop()
        except (OSError, ValueError):
            pass

    def _print(self, text: str) -> None:
        try:
            self._console.print(Text(text))
        except (OSError, ValueError):
            # Terminal went away (closed pipe); progress is cosmetic.
            pass


def select_progress(stream: TextIO | None = None) -> ProgressObserver:
    """Pick the observer for this process by probing for a terminal."""
    stream = stream if stream is not None else sys.stdout
    try:
        is_tty = stream.isatty()
    except (AttributeError, ValueError):
        is_tty = False
    return SpinnerProgress(stream) if is_tty else NullProgress()
