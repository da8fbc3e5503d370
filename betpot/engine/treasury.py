"""Treasury Sweep: closes out a settled pot."""

from __future__ import annotations

import logging
from typing import Iterable

from .clock import Clock, now_ms
from .ledger import Ledger
from .models import EventParams, FundRecord, SweepResult, Transition
from .oracle import (
    SettlementAuthority,
    SettlementCapability,
    require_cutoff_passed,
    verify_capability,
)

logger = logging.getLogger(__name__)


def sweep_pot(pot_funds: Iterable[FundRecord], treasury_target: str) -> SweepResult:
    """Plan collecting every record of a pot, marker included.

    Non-currency tokens found on the records are settlement markers and are
    counted as burned.
    """
    records = list(pot_funds)
    return SweepResult(
        treasury_target=treasury_target,
        total_collected=sum(record.amount for record in records),
        records_collected=len(records),
        markers_burned=sum(
            quantity for record in records for quantity in record.assets.values()
        ),
    )


class TreasurySweep:
    def __init__(
        self,
        ledger: Ledger,
        authority: SettlementAuthority | None,
        clock: Clock = now_ms,
    ):
        self.ledger = ledger
        self.authority = authority
        self.clock = clock

    def sweep(
        self,
        event: EventParams,
        treasury_target: str,
        capability: SettlementCapability | None,
    ) -> SweepResult:
        """Transfer the whole pot to treasury_target and clear the outcome.

        Only valid strictly after the event cutoff. Sweeping an empty pot
        returns a zero-value result without touching the ledger.
        """
        verify_capability(self.authority, capability, event.event_id)
        if not treasury_target:
            raise ValueError("Treasury target cannot be empty")
        require_cutoff_passed(event, self.clock(), "sweep")

        records = self.ledger.snapshot(event.pot_id)
        plan = sweep_pot(records, treasury_target)
        has_outcome = self.ledger.outcome_for(event.event_id) is not None

        if plan.records_collected == 0 and not has_outcome:
            logger.info(f"Pot for event {event.event_id} already empty, nothing to sweep")
            return plan

        outcome = self.ledger.outcome_for(event.event_id)
        if outcome is not None:
            unredeemed = sum(
                p.stake_token_quantity
                for p in self.ledger.positions_for(event.pot_id)
                if p.predicted_outcome == outcome.winning_outcome
            )
            if unredeemed:
                logger.warning(
                    f"Sweeping event {event.event_id} with {unredeemed} winning stake unredeemed"
                )

        self.ledger.apply(
            Transition(
                kind="sweep",
                pot_id=event.pot_id,
                event_id=event.event_id,
                spends=[record.fund_id for record in records],
                consume_outcome=has_outcome,
                swept=plan.total_collected,
            )
        )

        remaining = self.ledger.snapshot(event.pot_id)
        result = plan.model_copy(
            update={
                "remaining_records": len(remaining),
                "remaining_value": sum(record.amount for record in remaining),
            }
        )

        logger.info(
            f"Swept {result.total_collected} from {result.records_collected} records "
            f"of event {event.event_id} to {treasury_target} "
            f"({result.markers_burned} marker burned)"
        )
        return result
