"""Error taxonomy for report generation.

Validation errors (bad range, nothing selected) are the caller's fault and
are reported as 400s. Unsorted input and store failures are server-side
and surface as a generic report-generation failure.
"""
from __future__ import annotations

from typing import Any


class ReportError(Exception):
    """Base class for all report engine errors."""

    code: str = "REPORT_ERROR"
    status_code: int = 500

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}


class ReportValidationError(ReportError):
    code = "REPORT_VALIDATION_ERROR"
    status_code = 400


class InvalidRangeError(ReportValidationError):
    """The requested period range is empty or malformed."""

    code = "INVALID_RANGE"


class EmptySelectionError(ReportValidationError):
    """No selected entity survived authorization."""

    code = "EMPTY_SELECTION"


class UnsortedInputError(ReportError):
    """Rows reached the aggregator out of order; a fetch-layer bug."""

    code = "UNSORTED_INPUT"


class UpstreamFetchError(ReportError):
    """The series store failed while fetching rows."""

    code = "UPSTREAM_FETCH_FAILED"
