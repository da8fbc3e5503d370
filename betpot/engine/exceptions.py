"""Engine exception hierarchy.

Every error carries a stable code, a human message and machine-readable
context so that financial reconciliation can see which amount mismatched.

Exception Classes:
- EngineError: Base exception (retryable=False)
- StakeError / InvariantViolation / InvalidStake: rejected position locks
- DeadlineViolation: lock after cutoff or settlement, settlement action before cutoff
- SettlementError and subclasses: outcome posting and claim failures
- SelectionError / InsufficientFunds: pot cannot cover a withdrawal (retryable)
- ConcurrencyConflict: optimistic race on fund records (retried locally)
- BonusError / TierNotFound: bonus tier lookup failures
"""

from __future__ import annotations

from typing import Any


class EngineError(Exception):
    """Base exception for settlement engine errors."""

    code = "ENGINE_ERROR"
    retryable = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context,
        }


class StakeError(EngineError):
    """Position lock rejected."""

    code = "STAKE_ERROR"


class InvariantViolation(StakeError):
    """Minted stake quantity does not match the value locked."""

    code = "INVARIANT_VIOLATION"

    def __init__(self, message: str, expected: int, actual: int, **context: Any):
        super().__init__(message, expected=expected, actual=actual, **context)
        self.expected = expected
        self.actual = actual


class InvalidStake(StakeError):
    """Stake amounts or outcome outside the accepted range."""

    code = "INVALID_STAKE"


class DeadlineViolation(EngineError):
    """Operation attempted on the wrong side of the event cutoff."""

    code = "DEADLINE_VIOLATION"


class SettlementError(EngineError):
    """Outcome posting or claim rejected."""

    code = "SETTLEMENT_ERROR"


class DuplicateOutcome(SettlementError):
    code = "DUPLICATE_OUTCOME"


class NoWinners(SettlementError):
    code = "NO_WINNERS"


class TotalsMismatch(SettlementError):
    """Posted totals disagree with the ledger tally."""

    code = "TOTALS_MISMATCH"

    def __init__(self, message: str, expected: int, actual: int, **context: Any):
        super().__init__(message, expected=expected, actual=actual, **context)
        self.expected = expected
        self.actual = actual


class UnauthorizedSettlement(SettlementError):
    code = "UNAUTHORIZED"


class OutcomeNotPosted(SettlementError):
    code = "OUTCOME_NOT_POSTED"


class InvalidClaim(SettlementError):
    code = "INVALID_CLAIM"


class EntitlementExceeded(SettlementError):
    """Pot outflow is larger than the enforced entitlement."""

    code = "ENTITLEMENT_EXCEEDED"


class SelectionError(EngineError):
    code = "SELECTION_ERROR"


class InsufficientFunds(SelectionError):
    """No combination of pot records within the input limit covers the target."""

    code = "SELECTION_INSUFFICIENT"
    retryable = True


class ConcurrencyConflict(EngineError):
    """A fund record or position was consumed by a competing transition."""

    code = "CONCURRENCY_CONFLICT"
    retryable = True


class BonusError(EngineError):
    code = "BONUS_ERROR"


class TierNotFound(BonusError):
    code = "TIER_NOT_FOUND"
