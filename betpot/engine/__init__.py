"""Settlement engine: stake ledger, oracle settlement, payouts, fund selection."""

from .bonus import BonusTable
from .config import EngineConfig
from .engine import SettlementEngine, create_engine
from .exceptions import (
    BonusError,
    ConcurrencyConflict,
    DeadlineViolation,
    DuplicateOutcome,
    EngineError,
    EntitlementExceeded,
    InsufficientFunds,
    InvalidClaim,
    InvalidStake,
    InvariantViolation,
    NoWinners,
    OutcomeNotPosted,
    SelectionError,
    SettlementError,
    StakeError,
    TierNotFound,
    TotalsMismatch,
    UnauthorizedSettlement,
)
from .ledger import Ledger, LedgerState
from .models import (
    BonusTier,
    EventParams,
    FundRecord,
    Outcome,
    OutcomeRecord,
    Position,
    RedemptionResult,
    SelectionResult,
    SweepResult,
    Transition,
    WithdrawalRequest,
)
from .oracle import SettlementAuthority, SettlementCapability
from .payout import compute_payout, max_allowed_outflow, validate_withdrawal
from .selector import select_funds
from .treasury import sweep_pot

__all__ = [
    # Engine
    "SettlementEngine",
    "create_engine",
    "EngineConfig",
    "Ledger",
    "LedgerState",
    "BonusTable",
    "SettlementAuthority",
    "SettlementCapability",
    # Operations
    "compute_payout",
    "max_allowed_outflow",
    "validate_withdrawal",
    "select_funds",
    "sweep_pot",
    # Models
    "BonusTier",
    "EventParams",
    "FundRecord",
    "Outcome",
    "OutcomeRecord",
    "Position",
    "RedemptionResult",
    "SelectionResult",
    "SweepResult",
    "Transition",
    "WithdrawalRequest",
    # Exceptions
    "EngineError",
    "StakeError",
    "InvariantViolation",
    "InvalidStake",
    "DeadlineViolation",
    "SettlementError",
    "DuplicateOutcome",
    "NoWinners",
    "TotalsMismatch",
    "UnauthorizedSettlement",
    "OutcomeNotPosted",
    "InvalidClaim",
    "EntitlementExceeded",
    "SelectionError",
    "InsufficientFunds",
    "ConcurrencyConflict",
    "BonusError",
    "TierNotFound",
]
