"""
Execution ledger — append-only record of a single run.

Every component reports what it attempted here instead of deciding
on its own whether a failure matters. At the end of the run the CLI
looks at exactly one value, the ledger, to choose the exit status.

The ledger is an explicit object handed to each component, never a
module-level list.
"""

from __future__ import annotations

import logging

from autosetup.core.models.outcome import Outcome, Severity

logger = logging.getLogger(__name__)


class ExecutionLedger:
    """Ordered outcomes plus the ordered list of failed steps.

    Insertion order is chronological order. Nothing is ever removed,
    reordered or rewritten.
    """

    def __init__(self) -> None:
        self._outcomes: list[Outcome] = []
        self._failures: list[str] = []

    def record(
        self,
        description: str,
        succeeded: bool,
        *,
        detail: str = "",
        severity: Severity | None = None,
    ) -> Outcome:
        """Append one outcome; failures also go to the failure list."""
        if severity is None:
            severity = "info" if succeeded else "error"
        outcome = Outcome(
            description=description,
            succeeded=succeeded,
            severity=severity,
            detail=detail,
        )
        self._outcomes.append(outcome)

        if not succeeded:
            self._failures.append(description)
            if detail:
                logger.error("✗ %s (%s)", description, detail)
            else:
                logger.error("✗ %s", description)
        elif severity == "warning":
            logger.warning("⚠ %s", description)
        else:
            logger.info("✓ %s", description)
        return outcome

    def warn(self, description: str, *, detail: str = "") -> Outcome:
        """Record a non-fatal warning (succeeded, never a failure)."""
        return self.record(description, True, detail=detail, severity="warning")

    @property
    def outcomes(self) -> tuple[Outcome, ...]:
        return tuple(self._outcomes)

    @property
    def failures(self) -> tuple[str, ...]:
        return tuple(self._failures)

    @property
    def warnings(self) -> tuple[Outcome, ...]:
        return tuple(o for o in self._outcomes if o.is_warning)

    @property
    def has_failures(self) -> bool:
        return bool(self._failures)

    def summary(self) -> list[str]:
        """Ordered failure descriptions."""
        return list(self._failures)

    def __len__(self) -> int:
        return len(self._outcomes)
