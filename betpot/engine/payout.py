"""Payout Calculator.

A winner's share is callerStake * totalPotAda / totalWinningStake, evaluated
as an exact fraction. Both sides of a withdrawal use proportional_share():

- the predicting side (client proposing a withdrawal) rounds down
- the enforcing side (validator checking pot outflow) rounds up

so the two never differ by more than one minor unit and the sum of
predicted payouts never exceeds the pot.
"""

from __future__ import annotations

import math
from fractions import Fraction
from typing import Literal

from .exceptions import EntitlementExceeded, InvalidClaim, NoWinners
from .models import OutcomeRecord

Rounding = Literal["floor", "ceiling"]


def proportional_share(stake: int, pot: int, winning_stake: int, rounding: Rounding) -> int:
    """Exact stake * pot / winning_stake, rounded as requested."""
    if winning_stake <= 0:
        raise NoWinners(
            "No winning stake to divide the pot by",
            total_winning_stake=winning_stake,
        )
    if stake <= 0:
        raise InvalidClaim(f"Caller stake must be positive, got {stake}", caller_stake=stake)
    if stake > winning_stake:
        raise InvalidClaim(
            f"Caller stake {stake} exceeds total winning stake {winning_stake}",
            caller_stake=stake,
            total_winning_stake=winning_stake,
        )
    if pot < 0:
        raise ValueError(f"Pot value cannot be negative, got {pot}")

    share = Fraction(stake * pot, winning_stake)
    if rounding == "floor":
        return math.floor(share)
    if rounding == "ceiling":
        return math.ceil(share)
    raise ValueError(f"Unknown rounding rule: {rounding}")


def compute_payout(outcome: OutcomeRecord, caller_stake: int) -> int:
    """Amount a winner should request (floor)."""
    return proportional_share(
        caller_stake, outcome.total_pot_ada, outcome.total_winning_stake, "floor"
    )


def max_allowed_outflow(
    outcome: OutcomeRecord, caller_stake: int, rounding: Rounding = "ceiling"
) -> int:
    """Largest pot outflow the validator accepts for a claim."""
    return proportional_share(
        caller_stake, outcome.total_pot_ada, outcome.total_winning_stake, rounding
    )


def rounding_tolerance(outcome: OutcomeRecord, caller_stake: int) -> int:
    """Gap between enforced and predicted amounts; always 0 or 1."""
    return max_allowed_outflow(outcome, caller_stake) - compute_payout(outcome, caller_stake)


def validate_withdrawal(
    outcome: OutcomeRecord,
    caller_stake: int,
    outflow: int,
    rounding: Rounding = "ceiling",
) -> int:
    """Reject a withdrawal whose pot outflow exceeds the enforced entitlement.

    Returns the enforced limit.
    """
    limit = max_allowed_outflow(outcome, caller_stake, rounding)
    if outflow > limit:
        raise EntitlementExceeded(
            f"Pot outflow {outflow} exceeds entitlement {limit}",
            expected=limit,
            actual=outflow,
            caller_stake=caller_stake,
            total_pot_ada=outcome.total_pot_ada,
            total_winning_stake=outcome.total_winning_stake,
        )
    if outflow < 0:
        raise ValueError(f"Pot outflow cannot be negative, got {outflow}")
    return limit
