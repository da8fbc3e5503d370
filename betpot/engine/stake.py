"""Stake Ledger: validates and records new positions.

Stake tokens are minted 1:1 with the value locked, in minor units:

    stake_token_quantity = ada_contributed + bead_burned * 1_000_000

A position is only recorded when this holds exactly; the pot receives the
ADA contribution in the same transition.
"""

from __future__ import annotations

import logging

from .clock import Clock, now_ms
from .config import StakeConfig
from .exceptions import DeadlineViolation, InvalidStake, InvariantViolation
from .ledger import Ledger
from .models import (
    BEAD_SCALE_FACTOR,
    EventParams,
    FundRecord,
    Outcome,
    Position,
    Transition,
    generate_fund_id,
    generate_position_id,
)

logger = logging.getLogger(__name__)


def expected_stake_quantity(ada_contributed: int, bead_burned: int) -> int:
    """Stake tokens owed for a contribution."""
    return ada_contributed + bead_burned * BEAD_SCALE_FACTOR


def validate_mint(ada_contributed: int, bead_burned: int, minted_quantity: int) -> None:
    """Check the mint-time invariants for one position.

    Raises InvariantViolation when the minted quantity differs from the value
    locked, or when the burned bonus tokens dominate the ADA contribution.
    """
    expected = expected_stake_quantity(ada_contributed, bead_burned)
    if minted_quantity != expected:
        raise InvariantViolation(
            f"Minted stake quantity {minted_quantity} does not match locked value {expected}",
            expected=expected,
            actual=minted_quantity,
            ada_contributed=ada_contributed,
            bead_burned=bead_burned,
        )

    if bead_burned > 0:
        required_ada = 2 * bead_burned * BEAD_SCALE_FACTOR
        if ada_contributed < required_ada:
            raise InvariantViolation(
                f"ADA contribution {ada_contributed} must be at least twice the "
                f"burned bonus value ({required_ada})",
                expected=required_ada,
                actual=ada_contributed,
                bead_burned=bead_burned,
            )


class StakeLedger:
    """Owns position creation for every event on a ledger."""

    def __init__(
        self,
        ledger: Ledger,
        config: StakeConfig | None = None,
        clock: Clock = now_ms,
    ):
        self.ledger = ledger
        self.config = config or StakeConfig()
        self.clock = clock

    def _validate_amounts(self, ada_amount: int, bead_burn_amount: int) -> None:
        if ada_amount < self.config.min_ada_contribution or ada_amount > self.config.max_ada_contribution:
            raise InvalidStake(
                f"ADA contribution must be between {self.config.min_ada_contribution} "
                f"and {self.config.max_ada_contribution}, got {ada_amount}",
                ada_amount=ada_amount,
            )
        if bead_burn_amount < 0 or bead_burn_amount > self.config.max_bead_burn:
            raise InvalidStake(
                f"BEAD burn must be between 0 and {self.config.max_bead_burn}, "
                f"got {bead_burn_amount}",
                bead_burn_amount=bead_burn_amount,
            )

    def lock_position(
        self,
        event: EventParams,
        predicted_outcome: Outcome | int | str,
        ada_amount: int,
        bead_burn_amount: int,
        owner_credential: str,
        minted_quantity: int | None = None,
    ) -> Position:
        """Lock a stake into the event's pot and mint its stake tokens.

        Args:
            event: Event triple identifying the pot
            predicted_outcome: Outcome the participant backs
            ada_amount: ADA contributed, in minor units
            bead_burn_amount: Bonus tokens burned, in whole tokens
            owner_credential: Opaque owner identity
            minted_quantity: Stake quantity proposed by the caller; computed when omitted

        Returns:
            The recorded position
        """
        now = self.clock()
        if now >= event.cutoff_time:
            raise DeadlineViolation(
                f"Event {event.event_id} closed for new positions at {event.cutoff_time}",
                event_id=event.event_id,
                cutoff_time=event.cutoff_time,
                now=now,
            )

        if self.ledger.outcome_for(event.event_id) is not None:
            raise DeadlineViolation(
                f"Event {event.event_id} already has a posted outcome",
                event_id=event.event_id,
                cutoff_time=event.cutoff_time,
                now=now,
            )

        try:
            outcome = Outcome.parse(predicted_outcome)
        except ValueError as e:
            raise InvalidStake(str(e), predicted_outcome=str(predicted_outcome)) from e

        if not owner_credential:
            raise InvalidStake("Owner credential cannot be empty")

        self._validate_amounts(ada_amount, bead_burn_amount)

        if minted_quantity is None:
            minted_quantity = expected_stake_quantity(ada_amount, bead_burn_amount)
        validate_mint(ada_amount, bead_burn_amount, minted_quantity)

        position = Position(
            position_id=generate_position_id(),
            event_id=event.event_id,
            pot_id=event.pot_id,
            predicted_outcome=outcome,
            stake_token_name=event.stake_token_name(outcome),
            stake_token_quantity=minted_quantity,
            ada_contributed=ada_amount,
            bead_burned=bead_burn_amount,
            owner_credential=owner_credential,
            locked_at=now,
        )
        fund = FundRecord(
            fund_id=generate_fund_id(),
            pot_id=event.pot_id,
            amount=ada_amount,
        )

        self.ledger.apply(
            Transition(
                kind="lock",
                pot_id=event.pot_id,
                event_id=event.event_id,
                creates=[fund],
                add_positions=[position],
                deposited=ada_amount,
            )
        )

        logger.info(
            f"Locked {position.position_id} on event {event.event_id}: "
            f"{outcome.name} {minted_quantity} stake ({ada_amount} lovelace + {bead_burn_amount} BEAD)"
        )
        return position

    def tally(self, event: EventParams) -> dict[Outcome, int]:
        """Live stake per outcome for an event."""
        totals = {outcome: 0 for outcome in Outcome}
        for position in self.ledger.positions_for(event.pot_id):
            totals[position.predicted_outcome] += position.stake_token_quantity
        return totals
