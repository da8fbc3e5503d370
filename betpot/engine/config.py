from typing import Literal

from pydantic import BaseModel, Field

from .models import LOVELACE_PER_ADA, BonusTier


class StakeConfig(BaseModel):
    """Limits applied when locking a position."""

    min_ada_contribution: int = 10 * LOVELACE_PER_ADA  # 10 ADA
    max_ada_contribution: int = 10_000 * LOVELACE_PER_ADA  # 10,000 ADA
    max_bead_burn: int = 50_000


class SelectionConfig(BaseModel):
    """Fund selection constraints for withdrawals."""

    min_fund_value: int = LOVELACE_PER_ADA  # Minimum 1 ADA per fund record
    max_inputs: int = 50
    min_efficiency: float = 0.50


class RedemptionConfig(BaseModel):
    max_conflict_retries: int = 3


class OracleConfig(BaseModel):
    """Settlement marker parameters."""

    marker_liquidity: int = 2 * LOVELACE_PER_ADA  # Additional liquidity sent with the marker
    marker_label: str = "RESULT"


class PayoutConfig(BaseModel):
    # Pending product-owner confirmation; see DESIGN.md.
    enforce_rounding: Literal["ceiling", "floor"] = "ceiling"


DEFAULT_BONUS_TIERS: tuple[BonusTier, ...] = (
    BonusTier(contribution=200, stake_bonus=1000, referral_bonus=5),
    BonusTier(contribution=400, stake_bonus=2040, referral_bonus=10),
    BonusTier(contribution=600, stake_bonus=3090, referral_bonus=15),
    BonusTier(contribution=800, stake_bonus=4060, referral_bonus=20),
    BonusTier(contribution=1000, stake_bonus=5250, referral_bonus=25),
    BonusTier(contribution=2000, stake_bonus=10500, referral_bonus=50),
)


class BonusConfig(BaseModel):
    tiers: list[BonusTier] = Field(default_factory=lambda: list(DEFAULT_BONUS_TIERS))


class EngineConfig(BaseModel):
    """Configuration for the settlement engine."""

    stake: StakeConfig = Field(default_factory=StakeConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    redemption: RedemptionConfig = Field(default_factory=RedemptionConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    payout: PayoutConfig = Field(default_factory=PayoutConfig)
    bonus: BonusConfig = Field(default_factory=BonusConfig)
