"""
Command runner — execute external commands and record the outcome.

This is the most fundamental adapter: every package install, git sync,
image pull and systemctl call goes through ``CommandRunner.run``. It:

    - writes ``$ command`` and the combined stdout/stderr to the log sink
    - animates the progress observer while the command is in flight
      (or streams output live when asked and the terminal is interactive)
    - records exactly one outcome in the execution ledger
    - returns a Receipt — never raises for a failing command

Read-only queries (``rpm -q``, ``systemctl show``) use ``probe`` which
records nothing.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import time
from collections.abc import Sequence
from pathlib import Path

from autosetup.core.engine.ledger import ExecutionLedger
from autosetup.core.models.action import Receipt
from autosetup.core.observability.log_sink import LogSink, clean_text
from autosetup.core.observability.progress import NullProgress, ProgressObserver

logger = logging.getLogger(__name__)


def describe_exit(return_code: int) -> str:
    """Human-readable exit status (negative codes are signal deaths)."""
    if return_code < 0:
        try:
            name = signal.Signals(-return_code).name
        except ValueError:
            name = f"signal {-return_code}"
        return f"killed by {name}"
    return f"exit status {return_code}"


def _last_line(text: str) -> str:
    for line in reversed(text.splitlines()):
        if line.strip():
            return line.strip()
    return ""


class CommandRunner:
    """Run commands with output captured to the run transcript.

    Args:
        ledger: Where outcomes are recorded.
        sink: Run transcript receiving command output.
        progress: Observer animated during captured commands.
        dry_run: If True, ``run`` records what it would do and executes nothing.
    """

    name = "shell"

    def __init__(
        self,
        ledger: ExecutionLedger,
        sink: LogSink,
        progress: ProgressObserver | None = None,
        *,
        dry_run: bool = False,
    ):
        self._ledger = ledger
        self._sink = sink
        self._progress = progress if progress is not None else NullProgress()
        self._dry_run = dry_run

    @property
    def ledger(self) -> ExecutionLedger:
        return self._ledger

    @property
    def sink(self) -> LogSink:
        return self._sink

    @property
    def progress(self) -> ProgressObserver:
        return self._progress

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    # ── Recorded execution ──────────────────────────────────────

    def run(
        self,
        description: str,
        command: Sequence[str | Path],
        *,
        cwd: Path | str | None = None,
        stream: bool = False,
        tolerate: bool = False,
        env: dict[str, str] | None = None,
        adapter: str = "shell",
    ) -> Receipt:
        """Execute ``command`` and record its outcome under ``description``.

        Args:
            description: Ledger description of the step.
            command: argv list (no shell interpretation).
            cwd: Working directory.
            stream: Show output live when the terminal is interactive.
            tolerate: Record a failure as a warning instead of a failed step.
            env: Extra environment variables for the child process.
            adapter: Adapter name stamped on the receipt.
        """
        argv = [str(part) for part in command]
        display = clean_text(shlex.join(argv))

        if self._dry_run:
            self._sink.write_line(f"[dry-run] $ {display}")
            self._ledger.record(f"[dry-run] {description}", True)
            return Receipt.skip(
                adapter=adapter,
                operation=description,
                reason=f"[dry-run] {display}",
                metadata={"command": display, "dry_run": True},
            )

        logger.debug("Executing: %s (cwd=%s)", display, cwd)
        self._sink.write_line(f"$ {display}")
        child_env = {**os.environ, **env} if env else None

        start = time.monotonic()
        return_code: int | None = None
        output = ""
        error: str | None = None
        try:
            if stream and self._progress.interactive:
                return_code, output = self._run_streaming(argv, cwd, child_env)
            else:
                return_code, output = self._run_captured(description, argv, cwd, child_env)
        except OSError as e:
            error = f"cannot execute {argv[0]}: {e.strerror or e}"
            self._sink.write_line(error)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = clean_text(output)

        metadata = {"command": display, "return_code": return_code}
        if return_code == 0:
            self._ledger.record(description, True)
            return Receipt.success(
                adapter=adapter,
                operation=description,
                output=output.strip(),
                duration_ms=elapsed_ms,
                return_code=return_code,
                metadata=metadata,
            )

        if error is None:
            assert return_code is not None
            error = describe_exit(return_code)
            tail = _last_line(output)
            detail = f"{error}: {tail}" if tail else error
        else:
            detail = error

        if tolerate:
            self._ledger.warn(description, detail=detail)
            metadata["tolerated"] = True
        else:
            self._ledger.record(description, False, detail=detail)

        return Receipt.failure(
            adapter=adapter,
            operation=description,
            error=detail,
            output=output.strip(),
            duration_ms=elapsed_ms,
            return_code=return_code,
            metadata=metadata,
        )

    def _run_captured(
        self,
        description: str,
        argv: list[str],
        cwd: Path | str | None,
        env: dict[str, str] | None,
    ) -> tuple[int, str]:
        """Run to completion with output buffered, spinner animating meanwhile."""
        ok = False
        self._progress.begin(description)
        try:
            proc = subprocess.Popen(
                argv,
                cwd=cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
            output, _ = proc.communicate()
            ok = proc.returncode == 0
        finally:
            self._progress.end(description, ok)

        output = output or ""
        self._sink.write_block(output)
        return proc.returncode, output

    def _run_streaming(
        self,
        argv: list[str],
        cwd: Path | str | None,
        env: dict[str, str] | None,
    ) -> tuple[int, str]:
        """Run with each output line shown and logged as it arrives."""
        lines: list[str] = []
        with subprocess.Popen(
            argv,
            cwd=cwd,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            bufsize=1,
        ) as proc:
            assert proc.stdout is not None
            for line in proc.stdout:
                self._progress.echo(clean_text(line.rstrip("\n")))
                self._sink.write_line(line)
                lines.append(line)
            proc.wait()
        return proc.returncode, "".join(lines)

    # ── Read-only queries ───────────────────────────────────────

    def probe(
        self,
        command: Sequence[str | Path],
        *,
        cwd: Path | str | None = None,
        adapter: str = "shell",
    ) -> Receipt:
        """Run a read-only query. Executes even in dry-run; records nothing."""
        argv = [str(part) for part in command]
        display = clean_text(shlex.join(argv))
        try:
            result = subprocess.run(
                argv,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            logger.debug("Probe %s could not start: %s", display, e)
            return Receipt.failure(
                adapter=adapter,
                operation=display,
                error=f"cannot execute {argv[0]}: {e.strerror or e}",
            )

        stdout = result.stdout.strip()
        logger.debug("Probe %s → %d %s", display, result.returncode, stdout[:200])
        if result.returncode == 0:
            return Receipt.success(
                adapter=adapter,
                operation=display,
                output=stdout,
                return_code=0,
            )
        return Receipt.failure(
            adapter=adapter,
            operation=display,
            error=result.stderr.strip() or describe_exit(result.returncode),
            output=stdout,
            return_code=result.returncode,
        )
