"""Append-only fund ledger.

Fund records, positions and outcome records live in an arena indexed by id.
Every change arrives as a Transition that is validated in full before any
mutation, so partial application is never observable. Applied transitions are
appended to a journal; replaying the journal rebuilds an identical state.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from pydantic import BaseModel, Field

from .clock import Clock, now_ms
from .exceptions import ConcurrencyConflict, DeadlineViolation, DuplicateOutcome, InvariantViolation
from .models import FundRecord, OutcomeRecord, PotAccount, Position, Transition

logger = logging.getLogger(__name__)


class LedgerState(BaseModel):
    """Complete ledger state - matches data/ledger.yaml schema."""

    funds: dict[str, FundRecord] = Field(default_factory=dict)
    positions: dict[str, Position] = Field(default_factory=dict)
    outcomes: dict[int, OutcomeRecord] = Field(default_factory=dict)
    accounts: dict[str, PotAccount] = Field(default_factory=dict)
    journal: list[Transition] = Field(default_factory=list)


class Ledger:
    """Thread-safe owner of the ledger state."""

    def __init__(self, state: LedgerState | None = None, clock: Clock = now_ms):
        self._state = state or LedgerState()
        self._lock = threading.RLock()
        self.clock = clock

    @property
    def state(self) -> LedgerState:
        return self._state

    @property
    def journal(self) -> tuple[Transition, ...]:
        with self._lock:
            return tuple(self._state.journal)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self, pot_id: str) -> list[FundRecord]:
        """Consistent copy of the live fund records of one pot."""
        with self._lock:
            return [r for r in self._state.funds.values() if r.pot_id == pot_id]

    def pot_value(self, pot_id: str) -> int:
        return sum(record.amount for record in self.snapshot(pot_id))

    def get_fund(self, fund_id: str) -> FundRecord | None:
        with self._lock:
            return self._state.funds.get(fund_id)

    def get_position(self, position_id: str) -> Position | None:
        with self._lock:
            return self._state.positions.get(position_id)

    def positions_for(self, pot_id: str) -> list[Position]:
        with self._lock:
            return [p for p in self._state.positions.values() if p.pot_id == pot_id]

    def outcome_for(self, event_id: int) -> OutcomeRecord | None:
        with self._lock:
            return self._state.outcomes.get(event_id)

    def marker_for(self, pot_id: str) -> FundRecord | None:
        """The fund record carrying the settlement marker and outcome datum."""
        for record in self.snapshot(pot_id):
            if record.datum is not None and record.is_reserved:
                return record
        return None

    def account(self, pot_id: str) -> PotAccount:
        with self._lock:
            account = self._state.accounts.get(pot_id, PotAccount(pot_id=pot_id))
            return account.model_copy()

    def reconcile(self, pot_id: str) -> dict:
        """Compare the pot's live value with its running account."""
        with self._lock:
            records = self.snapshot(pot_id)
            live_value = sum(record.amount for record in records)
            account = self.account(pot_id)
        return {
            "pot_id": pot_id,
            "records": len(records),
            "live_value": live_value,
            "expected_value": account.expected_value,
            "contributed": account.contributed,
            "injected": account.injected,
            "withdrawn": account.withdrawn,
            "swept": account.swept,
            "balanced": live_value == account.expected_value,
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply(self, tx: Transition) -> Transition:
        """Validate and apply one transition atomically."""
        with self._lock:
            self._check(tx)
            applied = tx if tx.applied_at else tx.model_copy(update={"applied_at": self.clock()})
            self._commit(applied)

        logger.debug(
            f"Applied {applied.kind} {applied.transition_id} on pot {applied.pot_id}: "
            f"-{len(applied.spends)} +{len(applied.creates)} records"
        )
        return applied

    def _check(self, tx: Transition) -> None:
        state = self._state

        if len(set(tx.spends)) != len(tx.spends):
            raise ValueError(f"Transition {tx.transition_id} spends a record twice")

        missing = [fund_id for fund_id in tx.spends if fund_id not in state.funds]
        if missing:
            raise ConcurrencyConflict(
                f"Fund records already spent: {', '.join(missing)}",
                missing=missing,
                transition=tx.kind,
            )

        for fund_id in tx.spends:
            if state.funds[fund_id].pot_id != tx.pot_id:
                raise ValueError(f"Fund record {fund_id} does not belong to pot {tx.pot_id}")

        for record in tx.creates:
            if record.fund_id in state.funds:
                raise ValueError(f"Fund record {record.fund_id} already exists")
            if record.pot_id != tx.pot_id:
                raise ValueError(f"Fund record {record.fund_id} targets another pot")

        burned = [pid for pid in tx.burn_positions if pid not in state.positions]
        if burned:
            raise ConcurrencyConflict(
                f"Positions already redeemed: {', '.join(burned)}",
                missing=burned,
                transition=tx.kind,
            )

        for position in tx.add_positions:
            if position.position_id in state.positions:
                raise ValueError(f"Position {position.position_id} already exists")

        # No new stake once the payout totals are posted
        if tx.add_positions and tx.event_id in state.outcomes:
            raise DeadlineViolation(
                f"Event {tx.event_id} is settled and accepts no new positions",
                event_id=tx.event_id,
                transition=tx.kind,
            )

        if tx.set_outcome is not None and tx.event_id in state.outcomes:
            raise DuplicateOutcome(
                f"Outcome already posted for event {tx.event_id}",
                event_id=tx.event_id,
            )

        if tx.consume_outcome and tx.event_id not in state.outcomes:
            raise ConcurrencyConflict(
                f"Outcome for event {tx.event_id} already consumed",
                event_id=tx.event_id,
                transition=tx.kind,
            )

        value_in = sum(state.funds[fund_id].amount for fund_id in tx.spends)
        value_out = sum(record.amount for record in tx.creates)
        expected_delta = tx.deposited + tx.injected - tx.withdrawn - tx.swept
        if value_out - value_in != expected_delta:
            raise InvariantViolation(
                f"Transition {tx.kind} does not conserve pot value",
                expected=expected_delta,
                actual=value_out - value_in,
                pot_id=tx.pot_id,
            )

    def _commit(self, tx: Transition) -> None:
        state = self._state

        for fund_id in tx.spends:
            del state.funds[fund_id]
        for record in tx.creates:
            state.funds[record.fund_id] = record

        for position_id in tx.burn_positions:
            del state.positions[position_id]
        for position in tx.add_positions:
            state.positions[position.position_id] = position

        if tx.consume_outcome:
            del state.outcomes[tx.event_id]
        if tx.set_outcome is not None:
            state.outcomes[tx.event_id] = tx.set_outcome

        account = state.accounts.setdefault(tx.pot_id, PotAccount(pot_id=tx.pot_id))
        account.contributed += tx.deposited
        account.injected += tx.injected
        account.withdrawn += tx.withdrawn
        account.swept += tx.swept

        state.journal.append(tx)

    @classmethod
    def replay(cls, journal: Iterable[Transition], clock: Clock = now_ms) -> Ledger:
        """Rebuild a ledger by re-applying a journal from an empty state."""
        ledger = cls(clock=clock)
        for tx in journal:
            ledger.apply(tx)
        return ledger
