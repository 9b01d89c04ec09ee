"""
Error Taxonomy Tests.
"""

from venue_execution.errors import (
    ERROR_CODES,
    ErrorCategory,
    categorize,
    get_error_info,
    is_resubmittable,
)
from venue_execution.types import FailureReason


class TestErrorTaxonomy:
    """Tests for failure classification."""

    def test_every_reason_is_classified(self):
        assert set(ERROR_CODES) == set(FailureReason)

    def test_categories(self):
        assert categorize(FailureReason.REJECTED) == ErrorCategory.MARKET_OUTCOME
        assert categorize(FailureReason.UNSUPPORTED_ASSET) == ErrorCategory.VALIDATION
        assert categorize(FailureReason.POSITION_NOT_FOUND) == ErrorCategory.LOOKUP
        assert categorize(FailureReason.CONNECTOR_ERROR) == ErrorCategory.CONNECTOR
        assert categorize(None) is None

    def test_only_transient_failures_are_resubmittable(self):
        assert is_resubmittable(FailureReason.TIMEOUT)
        assert is_resubmittable(FailureReason.REJECTED)
        assert not is_resubmittable(FailureReason.LEVERAGE_EXCEEDED)
        assert not is_resubmittable(FailureReason.POSITION_NOT_FOUND)
        assert not is_resubmittable(None)

    def test_info_has_description(self):
        info = get_error_info(FailureReason.VENUE_NOT_FOUND)

        assert info.reason == FailureReason.VENUE_NOT_FOUND
        assert info.description
