"""Exception hierarchy for the lending client."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocols.lending_market.solvency import SolvencyCheck


class LendingClientError(Exception):
    """Base class for every error raised by the lending client."""


class DecimalArithmeticError(LendingClientError, ArithmeticError):
    """Invalid decimal operation (e.g. division by a non-positive divisor)."""


# ---------------------------------------------------------------------------
# Market data (recoverable by refresh)
# ---------------------------------------------------------------------------


class MarketDataUnavailable(LendingClientError):
    """Prices or cluster ratios could not be obtained."""


class ClusterStateUnavailable(MarketDataUnavailable):
    """No usable cluster ratio for an asset."""


class PriceUnavailable(MarketDataUnavailable):
    """No usable price for an asset."""


# ---------------------------------------------------------------------------
# User input validation (raised before any ledger interaction)
# ---------------------------------------------------------------------------


class ValidationError(LendingClientError):
    """A staged action is not acceptable as entered."""


class InsufficientBalance(ValidationError):
    """Requested amount exceeds what is available for the action."""


class HealthFactorViolation(ValidationError):
    """Action would push the health factor below the protocol minimum."""

    def __init__(self, message: str, check: SolvencyCheck) -> None:
        super().__init__(message)
        self.check = check


# ---------------------------------------------------------------------------
# Programming / state errors
# ---------------------------------------------------------------------------


class InvalidIntent(LendingClientError):
    """Transaction intent builder was given arguments violating its contract."""


class ActionInProgress(LendingClientError):
    """Another mutating action for the same account is still outstanding."""

    def __init__(self, account: str) -> None:
        super().__init__(
            f"An action for account {account} is already in progress, try again"
        )
        self.account = account


# ---------------------------------------------------------------------------
# External services
# ---------------------------------------------------------------------------


class GatewayError(LendingClientError):
    """Ledger query service failed on every configured endpoint."""


class LedgerSubmissionFailed(LendingClientError):
    """Submission of a transaction intent failed or returned no result."""
