"""Fund Selector.

Greedy largest-first bin covering over a pot's fund records. Optimality is
traded for a bounded number of inputs per withdrawal:

1. drop the excluded record (settlement marker) and any contract-reserved record
2. sort by value, largest first
3. take a single record if it matches the target exactly or leaves usable change
4. otherwise accumulate largest first up to max_inputs, stopping once change is
   zero or at least min_fund_value; accept dust change only as a last resort
"""

from __future__ import annotations

import logging
from typing import Iterable

from .exceptions import InsufficientFunds
from .models import FundRecord, SelectionResult, SelectionStrategy

logger = logging.getLogger(__name__)


def spendable_funds(pot_funds: Iterable[FundRecord], excluded: str | None) -> list[FundRecord]:
    """Plain-currency records available for selection, largest first."""
    available = [
        record
        for record in pot_funds
        if record.fund_id != excluded and not record.is_reserved
    ]
    available.sort(key=lambda r: r.amount, reverse=True)
    return available


def _usable_change(change: int, min_fund_value: int) -> bool:
    return change == 0 or change >= min_fund_value


def _result(
    selected: list[FundRecord],
    target: int,
    strategy: SelectionStrategy,
    min_fund_value: int,
    min_efficiency: float,
) -> SelectionResult:
    total_input = sum(record.amount for record in selected)
    change = total_input - target
    efficiency = target / total_input
    dust_change = not _usable_change(change, min_fund_value)
    low_efficiency = dust_change or efficiency < min_efficiency

    if low_efficiency:
        logger.warning(
            f"Low fund selection efficiency: {efficiency:.2%} "
            f"(threshold {min_efficiency:.0%}, change {change}, strategy {strategy})"
        )

    return SelectionResult(
        selected=selected,
        target=target,
        total_input=total_input,
        change=change,
        efficiency=efficiency,
        strategy=strategy,
        dust_change=dust_change,
        low_efficiency=low_efficiency,
    )


def select_funds(
    pot_funds: Iterable[FundRecord],
    excluded: str | None,
    target: int,
    min_fund_value: int,
    max_inputs: int,
    min_efficiency: float = 0.50,
) -> SelectionResult:
    """Choose pot records that cover target.

    Args:
        pot_funds: Snapshot of the pot's live fund records
        excluded: Fund ID that must never be selected (settlement marker)
        target: Amount to cover, in minor units
        min_fund_value: Smallest change amount that is itself a usable record
        max_inputs: Maximum number of records in one withdrawal
        min_efficiency: target / total_input below which selection is flagged

    Returns:
        SelectionResult with the chosen records and efficiency metadata
    """
    if target <= 0:
        raise ValueError(f"Selection target must be positive, got {target}")
    if max_inputs <= 0:
        raise ValueError(f"max_inputs must be positive, got {max_inputs}")

    available = spendable_funds(pot_funds, excluded)
    total_available = sum(record.amount for record in available)
    logger.debug(
        f"Selecting {target} from {len(available)} records ({total_available} available)"
    )

    for record in available:
        if record.amount >= target and _usable_change(record.amount - target, min_fund_value):
            return _result([record], target, "single", min_fund_value, min_efficiency)

    selected: list[FundRecord] = []
    accumulated = 0
    for index, record in enumerate(available):
        if len(selected) >= max_inputs:
            break

        selected.append(record)
        accumulated += record.amount
        if accumulated < target:
            continue

        if _usable_change(accumulated - target, min_fund_value):
            return _result(list(selected), target, "accumulated", min_fund_value, min_efficiency)

        more_available = index + 1 < len(available)
        if more_available and len(selected) < max_inputs:
            continue

        return _result(list(selected), target, "last_resort", min_fund_value, min_efficiency)

    raise InsufficientFunds(
        f"No combination of up to {max_inputs} records covers {target}",
        target=target,
        available=total_available,
        reachable=accumulated,
        max_inputs=max_inputs,
        records=len(available),
    )
