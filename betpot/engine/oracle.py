"""Oracle Settlement.

Posting an outcome needs a SettlementCapability: an HMAC-signed grant for a
single event, issued by a SettlementAuthority holding the settlement secret.
The posted OutcomeRecord is attached as datum to a new pot fund record that
also holds the single settlement marker token and the marker liquidity.
"""

from __future__ import annotations

import hashlib
import hmac
import logging

from pydantic import BaseModel, ConfigDict

from .clock import Clock, now_ms
from .config import OracleConfig
from .exceptions import (
    DeadlineViolation,
    DuplicateOutcome,
    SettlementError,
    TotalsMismatch,
    UnauthorizedSettlement,
)
from .ledger import Ledger
from .models import (
    EventParams,
    FundRecord,
    Outcome,
    OutcomeRecord,
    Transition,
    generate_fund_id,
)

logger = logging.getLogger(__name__)


class SettlementCapability(BaseModel):
    """Signed permission to settle or sweep one event."""

    model_config = ConfigDict(frozen=True)

    authority: str
    event_id: int
    signature: str


class SettlementAuthority:
    """Issues and verifies settlement capabilities."""

    def __init__(self, secret: str, name: str = "oracle"):
        if not secret:
            raise ValueError("Settlement secret cannot be empty")
        self._secret = secret.encode()
        self.name = name

    def _sign(self, event_id: int) -> str:
        message = f"{self.name}:{event_id}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def grant(self, event_id: int) -> SettlementCapability:
        return SettlementCapability(
            authority=self.name,
            event_id=event_id,
            signature=self._sign(event_id),
        )

    def verify(self, capability: SettlementCapability | None, event_id: int) -> None:
        """Raise UnauthorizedSettlement unless capability covers event_id."""
        if capability is None:
            raise UnauthorizedSettlement("Settlement capability required", event_id=event_id)

        if capability.event_id != event_id:
            raise UnauthorizedSettlement(
                f"Capability is for event {capability.event_id}, not {event_id}",
                event_id=event_id,
                capability_event_id=capability.event_id,
            )

        valid = capability.authority == self.name and hmac.compare_digest(
            capability.signature, self._sign(event_id)
        )
        if not valid:
            raise UnauthorizedSettlement(
                f"Invalid settlement capability for event {event_id}",
                event_id=event_id,
                authority=capability.authority,
            )


def verify_capability(
    authority: SettlementAuthority | None,
    capability: SettlementCapability | None,
    event_id: int,
) -> None:
    if authority is None:
        raise UnauthorizedSettlement(
            "No settlement authority configured", event_id=event_id
        )
    authority.verify(capability, event_id)


def require_cutoff_passed(event: EventParams, now: int, action: str) -> None:
    """Settlement-triggering actions are only valid strictly after the cutoff."""
    if now <= event.cutoff_time:
        raise DeadlineViolation(
            f"Cannot {action} event {event.event_id} before its cutoff {event.cutoff_time}",
            event_id=event.event_id,
            cutoff_time=event.cutoff_time,
            now=now,
        )


def tally_outcome(ledger: Ledger, event: EventParams, winning_outcome: Outcome) -> tuple[int, int]:
    """Pot value and winning stake for an event as currently recorded.

    Returns:
        (total_pot_ada, total_winning_stake)
    """
    total_pot_ada = ledger.pot_value(event.pot_id)
    total_winning_stake = sum(
        position.stake_token_quantity
        for position in ledger.positions_for(event.pot_id)
        if position.predicted_outcome == winning_outcome
    )
    return total_pot_ada, total_winning_stake


class OracleSettlement:
    def __init__(
        self,
        ledger: Ledger,
        authority: SettlementAuthority | None,
        config: OracleConfig | None = None,
        clock: Clock = now_ms,
    ):
        self.ledger = ledger
        self.authority = authority
        self.config = config or OracleConfig()
        self.clock = clock

    def marker_unit(self, event: EventParams) -> str:
        return f"{event.marker_policy_ref}.{self.config.marker_label}"

    def post_outcome(
        self,
        event: EventParams,
        winning_outcome: Outcome | int | str,
        capability: SettlementCapability | None,
        total_pot_ada: int | None = None,
        total_winning_stake: int | None = None,
    ) -> OutcomeRecord:
        """Record the result of an event and mint its settlement marker.

        Only valid strictly after the event cutoff, once the pot is frozen.
        Totals default to a tally of the ledger at posting time; totals given
        explicitly must equal that tally. A winning stake of zero is accepted
        here; redemption reports NoWinners.
        """
        try:
            outcome = Outcome.parse(winning_outcome)
        except ValueError as e:
            raise SettlementError(
                f"Winning outcome must be one of {[o.name for o in Outcome]}",
                winning_outcome=str(winning_outcome),
            ) from e

        verify_capability(self.authority, capability, event.event_id)
        require_cutoff_passed(event, self.clock(), "post an outcome for")

        if self.ledger.outcome_for(event.event_id) is not None:
            raise DuplicateOutcome(
                f"Outcome already posted for event {event.event_id}",
                event_id=event.event_id,
            )

        tallied_pot, tallied_stake = tally_outcome(self.ledger, event, outcome)
        if total_pot_ada is None:
            total_pot_ada = tallied_pot
        if total_winning_stake is None:
            total_winning_stake = tallied_stake

        if total_pot_ada != tallied_pot:
            raise TotalsMismatch(
                f"Posted pot value {total_pot_ada} does not match ledger tally {tallied_pot}",
                expected=tallied_pot,
                actual=total_pot_ada,
                field="total_pot_ada",
                event_id=event.event_id,
            )
        if total_winning_stake != tallied_stake:
            raise TotalsMismatch(
                f"Posted winning stake {total_winning_stake} does not match "
                f"ledger tally {tallied_stake}",
                expected=tallied_stake,
                actual=total_winning_stake,
                field="total_winning_stake",
                event_id=event.event_id,
            )

        record = OutcomeRecord(
            event_id=event.event_id,
            winning_outcome=outcome,
            game_stake_policy_ref=event.stake_policy_ref,
            total_pot_ada=total_pot_ada,
            total_winning_stake=total_winning_stake,
        )
        marker = FundRecord(
            fund_id=generate_fund_id(),
            pot_id=event.pot_id,
            amount=self.config.marker_liquidity,
            assets={self.marker_unit(event): 1},
            datum=record,
        )

        self.ledger.apply(
            Transition(
                kind="post_outcome",
                pot_id=event.pot_id,
                event_id=event.event_id,
                creates=[marker],
                set_outcome=record,
                injected=self.config.marker_liquidity,
            )
        )

        logger.info(
            f"Posted outcome {outcome.name} for event {event.event_id} "
            f"(pot {total_pot_ada}, winning stake {total_winning_stake})"
        )
        if total_winning_stake == 0:
            logger.warning(f"Event {event.event_id} settled with no winning stake")

        return record
