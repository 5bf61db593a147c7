"""
Tests for the execution ledger — ordering, failure list, warnings.
"""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from autosetup.core.engine.ledger import ExecutionLedger


class TestRecord:
    def test_success_is_not_a_failure(self):
        ledger = ExecutionLedger()
        outcome = ledger.record("Install package: git", True)
        assert outcome.succeeded
        assert outcome.severity == "info"
        assert ledger.failures == ()
        assert not ledger.has_failures

    def test_failure_enters_failure_list(self):
        ledger = ExecutionLedger()
        outcome = ledger.record("Pull image: x", False, detail="exit status 125")
        assert not outcome.succeeded
        assert outcome.severity == "error"
        assert outcome.detail == "exit status 125"
        assert ledger.failures == ("Pull image: x",)
        assert ledger.has_failures

    def test_order_is_chronological(self):
        ledger = ExecutionLedger()
        ledger.record("a", True)
        ledger.record("b", False)
        ledger.record("c", True)
        ledger.record("d", False)
        assert [o.description for o in ledger.outcomes] == ["a", "b", "c", "d"]
        assert ledger.summary() == ["b", "d"]
        assert len(ledger) == 4

    def test_failures_are_subset_of_outcomes(self):
        ledger = ExecutionLedger()
        for i in range(6):
            ledger.record(f"step {i}", i % 3 != 0)
        failed = [o.description for o in ledger.outcomes if not o.succeeded]
        assert list(ledger.failures) == failed

    def test_snapshots_are_read_only(self):
        ledger = ExecutionLedger()
        ledger.record("a", False)
        snapshot = ledger.outcomes
        ledger.record("b", True)
        assert len(snapshot) == 1
        assert isinstance(ledger.failures, tuple)

    def test_outcome_is_frozen(self):
        ledger = ExecutionLedger()
        outcome = ledger.record("a", True)
        with pytest.raises(ValidationError):
            outcome.succeeded = False


class TestWarnings:
    def test_warning_counts_as_success(self):
        ledger = ExecutionLedger()
        ledger.warn("Unit x.service not found (skip)")
        assert not ledger.has_failures
        assert len(ledger.warnings) == 1
        assert ledger.warnings[0].succeeded
        assert ledger.warnings[0].is_warning

    def test_markers_are_logged(self, caplog):
        ledger = ExecutionLedger()
        with caplog.at_level(logging.INFO, logger="autosetup.core.engine.ledger"):
            ledger.record("ok step", True)
            ledger.warn("soft step")
            ledger.record("bad step", False, detail="boom")
        text = caplog.text
        assert "✓ ok step" in text
        assert "⚠ soft step" in text
        assert "✗ bad step (boom)" in text
