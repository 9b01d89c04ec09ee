"""
Venue Execution - Error Taxonomy.

============================================================
PURPOSE
============================================================
Classification of every failure the engine can report.

ERROR CATEGORIES:
1. Validation - unknown venue, unsupported asset or leverage
2. Market outcome - simulated rejects and timeouts
3. Lookup - unknown position id
4. Persistence - store read/write failures (logged only)
5. Connector - live connector failures

NO AUTOMATIC RETRIES:
- The engine never retries. Resubmission is the caller's decision;
  `is_resubmittable` only tells the caller whether it makes sense.

============================================================
"""

from enum import Enum
from typing import Dict, Optional
from dataclasses import dataclass

from .types import FailureReason


# ============================================================
# ERROR CATEGORIES
# ============================================================

class ErrorCategory(Enum):
    """Error category classification."""

    VALIDATION = "VALIDATION"
    """Input rejected before any state change."""

    MARKET_OUTCOME = "MARKET_OUTCOME"
    """Expected simulated outcome (reject, timeout)."""

    LOOKUP = "LOOKUP"
    """Referenced entity does not exist."""

    PERSISTENCE = "PERSISTENCE"
    """Durable store failure."""

    CONNECTOR = "CONNECTOR"
    """Live connector failure."""


# ============================================================
# ERROR CODE INFO
# ============================================================

@dataclass(frozen=True)
class ErrorCodeInfo:
    """Metadata for a failure reason."""

    reason: FailureReason
    category: ErrorCategory
    description: str
    resubmittable: bool = False
    """Whether a caller may reasonably submit the same order again."""


ERROR_CODES: Dict[FailureReason, ErrorCodeInfo] = {
    FailureReason.REJECTED: ErrorCodeInfo(
        FailureReason.REJECTED,
        ErrorCategory.MARKET_OUTCOME,
        "Order rejected by venue (rate limit or network error)",
        resubmittable=True,
    ),
    FailureReason.TIMEOUT: ErrorCodeInfo(
        FailureReason.TIMEOUT,
        ErrorCategory.MARKET_OUTCOME,
        "Order not executed within the latency window",
        resubmittable=True,
    ),
    FailureReason.VENUE_NOT_FOUND: ErrorCodeInfo(
        FailureReason.VENUE_NOT_FOUND,
        ErrorCategory.VALIDATION,
        "No executor registered for venue",
    ),
    FailureReason.UNSUPPORTED_ASSET: ErrorCodeInfo(
        FailureReason.UNSUPPORTED_ASSET,
        ErrorCategory.VALIDATION,
        "Venue does not list the requested asset",
    ),
    FailureReason.LEVERAGE_EXCEEDED: ErrorCodeInfo(
        FailureReason.LEVERAGE_EXCEEDED,
        ErrorCategory.VALIDATION,
        "Requested leverage above venue maximum",
    ),
    FailureReason.POSITION_NOT_FOUND: ErrorCodeInfo(
        FailureReason.POSITION_NOT_FOUND,
        ErrorCategory.LOOKUP,
        "Position id not open on any venue",
    ),
    FailureReason.CONNECTOR_ERROR: ErrorCodeInfo(
        FailureReason.CONNECTOR_ERROR,
        ErrorCategory.CONNECTOR,
        "Live connector raised or returned an unusable response",
        resubmittable=True,
    ),
}


def get_error_info(reason: FailureReason) -> ErrorCodeInfo:
    """Get metadata for a failure reason."""
    return ERROR_CODES[reason]


def categorize(reason: Optional[FailureReason]) -> Optional[ErrorCategory]:
    """Category of a failure reason, None for success."""
    if reason is None:
        return None
    return ERROR_CODES[reason].category


def is_resubmittable(reason: Optional[FailureReason]) -> bool:
    """Whether the caller may resubmit after this failure."""
    if reason is None:
        return False
    return ERROR_CODES[reason].resubmittable
