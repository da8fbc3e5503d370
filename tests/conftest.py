"""Shared fixtures for engine tests."""

import pytest

from betpot.config import get_settings
from betpot.engine import EngineConfig, EventParams, Ledger, SettlementAuthority, SettlementEngine
from betpot.engine.config import SelectionConfig, StakeConfig

CUTOFF = 1_700_000_000_000
BEFORE_CUTOFF = CUTOFF - 60_000
AFTER_CUTOFF = CUTOFF + 60_000

SECRET = "test-settlement-secret"


class FakeClock:
    """Settable epoch-millis clock."""

    def __init__(self, now: int = BEFORE_CUTOFF):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def event() -> EventParams:
    return EventParams(event_id=1001, event_name="ARSvCHE", cutoff_time=CUTOFF)


@pytest.fixture
def ledger(clock: FakeClock) -> Ledger:
    return Ledger(clock=clock)


@pytest.fixture
def authority() -> SettlementAuthority:
    return SettlementAuthority(SECRET)


@pytest.fixture
def engine(ledger: Ledger, authority: SettlementAuthority, clock: FakeClock) -> SettlementEngine:
    # Single-unit stakes and records so small scenario amounts stay valid
    config = EngineConfig(
        stake=StakeConfig(min_ada_contribution=1),
        selection=SelectionConfig(min_fund_value=1),
    )
    return SettlementEngine(ledger, authority, config, clock)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
