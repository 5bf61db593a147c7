"""
Audit journal — append-only history of provisioning runs.

Every run appends one entry to an NDJSON (newline-delimited JSON) file
under the state directory: what was run, how it ended and which steps
failed. The transcript says how; the journal says when and whether.

The journal is append-only: entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_FILE = "audit.ndjson"


class AuditEntry(BaseModel):
    """A single audit journal entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    command: str = ""              # apply, host, deploy
    dry_run: bool = False

    # What was touched
    targets: list[str] = Field(default_factory=list)

    # Results
    status: str = ""               # ok, partial, aborted
    exit_code: int = 0
    outcomes_total: int = 0
    warnings: int = 0
    duration_ms: int = 0

    # Failed step descriptions, in order
    failures: list[str] = Field(default_factory=list)

    # Extensible context
    context: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Append-only audit journal writer.

    Each call to write() appends a single JSON line to the journal file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path | None = None, state_dir: Path | None = None):
        if path is not None:
            self._path = Path(path)
        elif state_dir is not None:
            self._path = Path(state_dir) / DEFAULT_AUDIT_FILE
        else:
            raise ValueError("AuditWriter needs a path or a state_dir")

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> bool:
        """Append an entry. Returns False if the journal is not writable."""
        data = entry.model_dump(mode="json")
        line = json.dumps(data, ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)
            return False

        logger.debug("Audit entry written: %s/%s", entry.command, entry.run_id)
        return True

    def read_all(self) -> list[AuditEntry]:
        """All entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit journal: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        return self.read_all()[-n:]
