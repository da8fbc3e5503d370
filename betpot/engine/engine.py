"""Settlement engine facade wiring the components around one ledger."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .bonus import BonusTable
from .clock import Clock, now_ms
from .config import EngineConfig
from .exceptions import UnauthorizedSettlement
from .ledger import Ledger
from .models import BonusTier, EventParams, Outcome, OutcomeRecord, Position, RedemptionResult, SweepResult
from .oracle import OracleSettlement, SettlementAuthority, SettlementCapability
from .payout import max_allowed_outflow
from .redeem import RedemptionService
from .stake import StakeLedger
from .treasury import TreasurySweep

if TYPE_CHECKING:
    from betpot.config import Settings

logger = logging.getLogger(__name__)


class SettlementEngine:
    """Single entry point for locking, settling, redeeming and sweeping pots."""

    def __init__(
        self,
        ledger: Ledger,
        authority: SettlementAuthority | None,
        config: EngineConfig | None = None,
        clock: Clock = now_ms,
    ):
        self.ledger = ledger
        self.authority = authority
        self.config = config or EngineConfig()
        self.clock = clock

        self.stakes = StakeLedger(ledger, self.config.stake, clock)
        self.oracle = OracleSettlement(ledger, authority, self.config.oracle, clock)
        self.redemptions = RedemptionService(
            ledger,
            self.config.selection,
            self.config.redemption,
            self.config.payout,
            clock,
        )
        self.treasury = TreasurySweep(ledger, authority, clock)
        self.bonus = BonusTable(self.config.bonus.tiers)

    def lock_position(
        self,
        event: EventParams,
        predicted_outcome: Outcome | int | str,
        ada_amount: int,
        bead_burn_amount: int,
        owner_credential: str,
        minted_quantity: int | None = None,
    ) -> Position:
        return self.stakes.lock_position(
            event, predicted_outcome, ada_amount, bead_burn_amount, owner_credential, minted_quantity
        )

    def grant(self, event: EventParams) -> SettlementCapability:
        """Capability for event from the configured authority."""
        if self.authority is None:
            raise UnauthorizedSettlement(
                "No settlement authority configured", event_id=event.event_id
            )
        return self.authority.grant(event.event_id)

    def post_outcome(
        self,
        event: EventParams,
        winning_outcome: Outcome | int | str,
        capability: SettlementCapability | None,
        total_pot_ada: int | None = None,
        total_winning_stake: int | None = None,
    ) -> OutcomeRecord:
        return self.oracle.post_outcome(
            event, winning_outcome, capability, total_pot_ada, total_winning_stake
        )

    def quote(self, event: EventParams, caller_stake: int) -> dict[str, int]:
        """Predicted payout alongside the limit the validator would enforce."""
        outcome = self.redemptions.settled_outcome(event)
        payout = self.redemptions.quote(event, caller_stake)
        limit = max_allowed_outflow(outcome, caller_stake, self.config.payout.enforce_rounding)
        return {
            "caller_stake": caller_stake,
            "payout": payout,
            "enforced_limit": limit,
            "tolerance": limit - payout,
        }

    def redeem(
        self,
        event: EventParams,
        owner_credential: str,
        position_ids: list[str] | None = None,
    ) -> RedemptionResult:
        return self.redemptions.redeem(event, owner_credential, position_ids)

    def sweep(
        self,
        event: EventParams,
        treasury_target: str,
        capability: SettlementCapability | None,
    ) -> SweepResult:
        return self.treasury.sweep(event, treasury_target, capability)

    def lookup_bonus(self, contribution: int) -> BonusTier:
        return self.bonus.lookup_tier(contribution)

    def status(self, event: EventParams) -> dict[str, Any]:
        """Pot summary: stake per outcome, outcome record and reconciliation."""
        outcome = self.ledger.outcome_for(event.event_id)
        return {
            "event_id": event.event_id,
            "event_name": event.event_name,
            "cutoff_time": event.cutoff_time,
            "pot_id": event.pot_id,
            "stake_by_outcome": {o.name: v for o, v in self.stakes.tally(event).items()},
            "positions": len(self.ledger.positions_for(event.pot_id)),
            "outcome": outcome.to_datum() if outcome else None,
            "reconciliation": self.ledger.reconcile(event.pot_id),
        }


def create_engine(
    settings: Settings | None = None,
    ledger: Ledger | None = None,
    clock: Clock = now_ms,
) -> SettlementEngine:
    """Build an engine from application settings.

    Without a settlement secret the engine can lock, quote and redeem, but
    posting outcomes and sweeping raise UnauthorizedSettlement.
    """
    if settings is None:
        from betpot.config import get_settings

        settings = get_settings()

    ledger = ledger or Ledger(clock=clock)
    authority = None
    if settings.settlement_secret:
        authority = SettlementAuthority(settings.settlement_secret)
    else:
        logger.warning("SETTLEMENT_SECRET not set - settlement actions disabled")
    return SettlementEngine(ledger, authority, settings.engine_config(), clock)
