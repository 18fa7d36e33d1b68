"""
Errors raised by the analytics engine.

Validation failures subclass ``ValueError`` so callers that already guard
against bad input keep working. ``MissingReferenceData`` is a warning
category: report builders never raise it, they record the message on the
report and keep going.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class AnalyticsError(ValueError):
    """Base class for engine errors."""


class InvalidPeriod(AnalyticsError):
    """A period name is unknown or a date range is malformed or inverted."""


class InvalidRecord(AnalyticsError):
    """A ledger row is internally inconsistent (e.g. amount_paid > amount)."""

    def __init__(self, message: str, record_id: str | None = None) -> None:
        super().__init__(message)
        self.record_id = record_id


class DuplicatePayrollPeriod(AnalyticsError):
    """Payroll was already run for an employee and pay period."""

    def __init__(self, conflicts: Iterable[tuple[str, Any]]) -> None:
        self.conflicts = list(conflicts)
        described = ", ".join(f"{emp} ({period})" for emp, period in self.conflicts)
        super().__init__(f"Payroll already exists for: {described}")


class MissingReferenceData(UserWarning):
    """A row references master data that does not exist; treated as zero."""
