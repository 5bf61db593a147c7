"""
Outcome model — one line of the execution ledger.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["info", "warning", "error"]


class Outcome(BaseModel):
    """A recorded attempt: what was tried, whether it worked, and when.

    Frozen once created; the ledger only ever appends new outcomes.
    """

    model_config = ConfigDict(frozen=True)

    description: str
    succeeded: bool
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    severity: Severity = "info"
    detail: str = ""

    @property
    def is_warning(self) -> bool:
        return self.severity == "warning"
