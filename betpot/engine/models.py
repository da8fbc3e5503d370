"""Data model for the settlement engine.

Records that live in the ledger (positions, fund records, outcome records,
transitions) are frozen. Spending a fund record removes it from the ledger
and inserts new records instead of mutating in place.
"""

from __future__ import annotations

import hashlib
from enum import IntEnum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

LOVELACE_PER_ADA = 1_000_000
BEAD_SCALE_FACTOR = 1_000_000
MAX_EVENT_NAME_LENGTH = 50
INT64_MAX = 2**63 - 1


class Outcome(IntEnum):
    """Event result. Values match the on-ledger encoding."""

    TIE = 0
    HOME = 1
    AWAY = 2

    @classmethod
    def parse(cls, value: Any) -> Outcome:
        """Accept an Outcome, its integer value, or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls(int(text))
            try:
                return cls[text.upper()]
            except KeyError:
                raise ValueError(f"Unknown outcome: {value!r}") from None
        return cls(value)


# ============================================================================
# Event identity
# ============================================================================


class EventParams(BaseModel):
    """The (event_id, event_name, cutoff_time) triple that parameterizes one pot."""

    model_config = ConfigDict(frozen=True)

    event_id: int = Field(ge=0, le=INT64_MAX)
    event_name: str = Field(min_length=1, max_length=MAX_EVENT_NAME_LENGTH)
    cutoff_time: int = Field(gt=0, le=INT64_MAX, description="Epoch millis")

    @field_validator("event_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Event name cannot be blank")
        return v

    def _derive(self, prefix: str) -> str:
        data = f"{prefix}:{self.event_id}:{self.event_name}:{self.cutoff_time}"
        return hashlib.sha256(data.encode()).hexdigest()[:16]

    @property
    def pot_id(self) -> str:
        return self._derive("pot")

    @property
    def stake_policy_ref(self) -> str:
        return self._derive("stake")

    @property
    def marker_policy_ref(self) -> str:
        return self._derive("marker")

    def stake_token_name(self, outcome: Outcome) -> str:
        return f"{int(outcome)}{self.event_name}"


# ============================================================================
# Ledger records
# ============================================================================


class Position(BaseModel):
    """One locked stake predicting an outcome."""

    model_config = ConfigDict(frozen=True)

    position_id: str
    event_id: int
    pot_id: str
    predicted_outcome: Outcome
    stake_token_name: str
    stake_token_quantity: int = Field(gt=0)
    ada_contributed: int = Field(ge=0)
    bead_burned: int = Field(default=0, ge=0)
    owner_credential: str
    locked_at: int


class OutcomeRecord(BaseModel):
    """Oracle result plus the settlement statistics used for payouts."""

    model_config = ConfigDict(frozen=True)

    event_id: int
    winning_outcome: Outcome
    game_stake_policy_ref: str
    total_pot_ada: int = Field(ge=0)
    total_winning_stake: int = Field(ge=0)

    def to_datum(self) -> dict[str, Any]:
        """External representation attached to the marker fund record."""
        return {
            "eventId": self.event_id,
            "winningOutcome": int(self.winning_outcome),
            "gameStakePolicyRef": self.game_stake_policy_ref,
            "totalPotAda": self.total_pot_ada,
            "totalWinningStake": self.total_winning_stake,
        }

    @classmethod
    def from_datum(cls, data: dict[str, Any]) -> OutcomeRecord:
        return cls(
            event_id=data["eventId"],
            winning_outcome=Outcome(int(data["winningOutcome"])),
            game_stake_policy_ref=data["gameStakePolicyRef"],
            total_pot_ada=data["totalPotAda"],
            total_winning_stake=data["totalWinningStake"],
        )


class FundRecord(BaseModel):
    """An atomic unit of value held by a pot."""

    model_config = ConfigDict(frozen=True)

    fund_id: str
    pot_id: str
    amount: int = Field(ge=0, description="Minor units")
    assets: dict[str, int] = Field(default_factory=dict)
    datum: OutcomeRecord | None = None

    @property
    def is_reserved(self) -> bool:
        """True when the record carries anything besides plain currency.

        A datum alone does not reserve the record; a datum together with
        non-currency assets does, as do non-currency assets on their own.
        """
        return any(quantity != 0 for quantity in self.assets.values())


class PotAccount(BaseModel):
    """Running totals used to reconcile a pot's live value."""

    pot_id: str
    contributed: int = 0
    injected: int = 0
    withdrawn: int = 0
    swept: int = 0

    @property
    def expected_value(self) -> int:
        return self.contributed + self.injected - self.withdrawn - self.swept


TransitionKind = Literal["lock", "post_outcome", "redeem", "sweep"]


class Transition(BaseModel):
    """One atomic, all-or-nothing change to the ledger."""

    model_config = ConfigDict(frozen=True)

    transition_id: str = Field(default_factory=lambda: generate_transition_id())
    kind: TransitionKind
    pot_id: str
    event_id: int
    spends: list[str] = Field(default_factory=list)
    creates: list[FundRecord] = Field(default_factory=list)
    add_positions: list[Position] = Field(default_factory=list)
    burn_positions: list[str] = Field(default_factory=list)
    set_outcome: OutcomeRecord | None = None
    consume_outcome: bool = False
    deposited: int = Field(default=0, ge=0)
    injected: int = Field(default=0, ge=0)
    withdrawn: int = Field(default=0, ge=0)
    swept: int = Field(default=0, ge=0)
    applied_at: int = 0


# ============================================================================
# Operation results
# ============================================================================


SelectionStrategy = Literal["single", "accumulated", "last_resort"]


class SelectionResult(BaseModel):
    """Fund records chosen to back a withdrawal, with efficiency metadata."""

    selected: list[FundRecord]
    target: int
    total_input: int
    change: int
    efficiency: float
    strategy: SelectionStrategy
    dust_change: bool = False
    low_efficiency: bool = False

    @property
    def record_count(self) -> int:
        return len(self.selected)

    @property
    def selected_ids(self) -> list[str]:
        return [record.fund_id for record in self.selected]


class WithdrawalRequest(BaseModel):
    caller_stake: int
    payout_amount: int
    selection: SelectionResult


class RedemptionResult(BaseModel):
    withdrawal: WithdrawalRequest
    positions_burned: list[str]
    change_record_id: str | None = None
    enforced_limit: int
    attempts: int = 1


class SweepResult(BaseModel):
    treasury_target: str
    total_collected: int = 0
    records_collected: int = 0
    markers_burned: int = 0
    remaining_records: int = 0
    remaining_value: int = 0

    @property
    def is_empty(self) -> bool:
        return self.remaining_records == 0 and self.remaining_value == 0


class BonusTier(BaseModel):
    """Contribution (whole currency units) to stake-token and referral bonus."""

    model_config = ConfigDict(frozen=True)

    contribution: int = Field(gt=0)
    stake_bonus: int = Field(ge=0)
    referral_bonus: int = Field(ge=0)

    @property
    def description(self) -> str:
        return (
            f"{self.contribution} ADA → {self.stake_bonus} BEAD "
            f"+ {self.referral_bonus} REF"
        )


# ============================================================================
# ID generation
# ============================================================================


def generate_position_id() -> str:
    """Generate unique position ID with pos_ prefix."""
    return f"pos_{uuid4().hex[:12]}"


def generate_fund_id() -> str:
    """Generate unique fund record ID with fund_ prefix."""
    return f"fund_{uuid4().hex[:12]}"


def generate_transition_id() -> str:
    return f"tx_{uuid4().hex[:12]}"
