"""Redemption: winners withdraw their share of a settled pot.

The withdrawal is planned against a snapshot of the pot and applied as one
transition. If a selected record is spent by a competing transition in the
meantime, the ledger rejects the whole transition and the plan is rebuilt
from a fresh snapshot.
"""

from __future__ import annotations

import logging

from .clock import Clock, now_ms
from .config import PayoutConfig, RedemptionConfig, SelectionConfig
from .exceptions import (
    ConcurrencyConflict,
    DeadlineViolation,
    InvalidClaim,
    OutcomeNotPosted,
)
from .ledger import Ledger
from .models import (
    EventParams,
    FundRecord,
    OutcomeRecord,
    Position,
    RedemptionResult,
    Transition,
    WithdrawalRequest,
    generate_fund_id,
)
from .payout import compute_payout, validate_withdrawal
from .selector import select_funds

logger = logging.getLogger(__name__)


class RedemptionService:
    def __init__(
        self,
        ledger: Ledger,
        selection: SelectionConfig | None = None,
        redemption: RedemptionConfig | None = None,
        payout: PayoutConfig | None = None,
        clock: Clock = now_ms,
    ):
        self.ledger = ledger
        self.selection = selection or SelectionConfig()
        self.redemption = redemption or RedemptionConfig()
        self.payout = payout or PayoutConfig()
        self.clock = clock

    def settled_outcome(self, event: EventParams) -> OutcomeRecord:
        """Live outcome record for event, checked against the event's stake policy."""
        outcome = self.ledger.outcome_for(event.event_id)
        if outcome is None:
            raise OutcomeNotPosted(
                f"No outcome posted for event {event.event_id}",
                event_id=event.event_id,
            )
        if outcome.game_stake_policy_ref != event.stake_policy_ref:
            raise InvalidClaim(
                f"Outcome for event {event.event_id} belongs to a different stake policy",
                expected=event.stake_policy_ref,
                actual=outcome.game_stake_policy_ref,
            )
        return outcome

    def quote(self, event: EventParams, caller_stake: int) -> int:
        """Predicted payout for caller_stake, without touching the ledger."""
        return compute_payout(self.settled_outcome(event), caller_stake)

    def winning_positions(
        self,
        event: EventParams,
        outcome: OutcomeRecord,
        owner_credential: str,
        position_ids: list[str] | None = None,
    ) -> list[Position]:
        positions = [
            p
            for p in self.ledger.positions_for(event.pot_id)
            if p.owner_credential == owner_credential
            and p.predicted_outcome == outcome.winning_outcome
        ]

        if position_ids is not None:
            eligible = {p.position_id: p for p in positions}
            unknown = [pid for pid in position_ids if pid not in eligible]
            if unknown:
                raise InvalidClaim(
                    f"Positions are not live winning positions of this owner: {', '.join(unknown)}",
                    position_ids=unknown,
                )
            positions = [eligible[pid] for pid in dict.fromkeys(position_ids)]

        if not positions:
            raise InvalidClaim(
                f"No winning positions for owner on event {event.event_id}",
                event_id=event.event_id,
                winning_outcome=outcome.winning_outcome.name,
            )
        return positions

    def _attempt(
        self,
        event: EventParams,
        owner_credential: str,
        position_ids: list[str] | None,
    ) -> tuple[WithdrawalRequest, list[str], str | None, int]:
        outcome = self.settled_outcome(event)
        positions = self.winning_positions(event, outcome, owner_credential, position_ids)
        caller_stake = sum(p.stake_token_quantity for p in positions)

        payout = compute_payout(outcome, caller_stake)
        if payout <= 0:
            raise InvalidClaim(
                f"Payout for stake {caller_stake} rounds to zero",
                caller_stake=caller_stake,
                total_pot_ada=outcome.total_pot_ada,
                total_winning_stake=outcome.total_winning_stake,
            )

        marker = self.ledger.marker_for(event.pot_id)
        selection = select_funds(
            self.ledger.snapshot(event.pot_id),
            excluded=marker.fund_id if marker else None,
            target=payout,
            min_fund_value=self.selection.min_fund_value,
            max_inputs=self.selection.max_inputs,
            min_efficiency=self.selection.min_efficiency,
        )

        creates: list[FundRecord] = []
        if selection.change > 0:
            creates.append(
                FundRecord(
                    fund_id=generate_fund_id(),
                    pot_id=event.pot_id,
                    amount=selection.change,
                )
            )

        outflow = selection.total_input - selection.change
        limit = validate_withdrawal(
            outcome, caller_stake, outflow, self.payout.enforce_rounding
        )

        burned = [p.position_id for p in positions]
        self.ledger.apply(
            Transition(
                kind="redeem",
                pot_id=event.pot_id,
                event_id=event.event_id,
                spends=selection.selected_ids,
                creates=creates,
                burn_positions=burned,
                withdrawn=payout,
            )
        )

        withdrawal = WithdrawalRequest(
            caller_stake=caller_stake, payout_amount=payout, selection=selection
        )
        change_id = creates[0].fund_id if creates else None
        return withdrawal, burned, change_id, limit

    def redeem(
        self,
        event: EventParams,
        owner_credential: str,
        position_ids: list[str] | None = None,
    ) -> RedemptionResult:
        """Burn the owner's winning positions and pay out their share."""
        now = self.clock()
        if now <= event.cutoff_time:
            raise DeadlineViolation(
                f"Event {event.event_id} cannot be redeemed before {event.cutoff_time}",
                event_id=event.event_id,
                cutoff_time=event.cutoff_time,
                now=now,
            )

        max_attempts = self.redemption.max_conflict_retries + 1
        attempt = 0
        while True:
            attempt += 1
            try:
                withdrawal, burned, change_id, limit = self._attempt(
                    event, owner_credential, position_ids
                )
            except ConcurrencyConflict as e:
                if attempt >= max_attempts:
                    e.context["attempts"] = attempt
                    logger.error(
                        f"Redemption on event {event.event_id} gave up after {attempt} attempts"
                    )
                    raise
                logger.warning(
                    f"Conflict redeeming event {event.event_id} "
                    f"(attempt {attempt}/{max_attempts}): {e.message}"
                )
                continue

            logger.info(
                f"Redeemed {withdrawal.payout_amount} for stake {withdrawal.caller_stake} "
                f"on event {event.event_id} using {withdrawal.selection.record_count} records"
            )
            return RedemptionResult(
                withdrawal=withdrawal,
                positions_burned=burned,
                change_record_id=change_id,
                enforced_limit=limit,
                attempts=attempt,
            )
