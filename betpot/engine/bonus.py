"""Bonus tier lookup for token-sale contributions."""

from __future__ import annotations

from typing import Iterable

from .exceptions import TierNotFound
from .models import BonusTier


class BonusTable:
    """Immutable contribution -> bonus table."""

    def __init__(self, tiers: Iterable[BonusTier]):
        ordered = tuple(sorted(tiers, key=lambda t: t.contribution))
        if not ordered:
            raise ValueError("Bonus table needs at least one tier")

        contributions = [tier.contribution for tier in ordered]
        if len(set(contributions)) != len(contributions):
            raise ValueError(f"Duplicate contribution tiers: {contributions}")

        self._tiers = ordered
        self._by_contribution = {tier.contribution: tier for tier in ordered}

    @property
    def tiers(self) -> tuple[BonusTier, ...]:
        return self._tiers

    def closest_tier(self, contribution: int) -> BonusTier:
        # Ties go to the smaller contribution
        return min(self._tiers, key=lambda t: (abs(t.contribution - contribution), t.contribution))

    def lookup_tier(self, contribution: int) -> BonusTier:
        """Exact tier for a contribution in whole currency units."""
        tier = self._by_contribution.get(contribution)
        if tier is None:
            closest = self.closest_tier(contribution)
            raise TierNotFound(
                f"No bonus tier for a contribution of {contribution}; closest is {closest.contribution}",
                contribution=contribution,
                closest=closest.contribution,
                closest_tier=closest.model_dump(),
            )
        return tier
