"""Tests for position locking and the stake mint rules."""

import pytest

from betpot.engine import DeadlineViolation, InvalidStake, InvariantViolation, Outcome, SettlementEngine
from betpot.engine.stake import expected_stake_quantity, validate_mint

from conftest import CUTOFF


def test_expected_quantity_counts_bead_at_scale() -> None:
    assert expected_stake_quantity(5_000_000, 2) == 7_000_000
    assert expected_stake_quantity(10, 0) == 10


def test_lock_records_position_and_pot_funds(engine, event) -> None:
    position = engine.lock_position(event, Outcome.HOME, 5_000_000, 2, "alice")

    assert position.stake_token_quantity == 7_000_000
    assert position.stake_token_name == "1ARSvCHE"
    assert position.predicted_outcome is Outcome.HOME
    assert engine.ledger.get_position(position.position_id) == position

    records = engine.ledger.snapshot(event.pot_id)
    assert [r.amount for r in records] == [5_000_000]
    assert engine.ledger.reconcile(event.pot_id)["balanced"]


def test_lock_accepts_outcome_names_and_values(engine, event) -> None:
    away = engine.lock_position(event, "away", 10, 0, "bob")
    tie = engine.lock_position(event, 0, 10, 0, "carol")

    assert away.predicted_outcome is Outcome.AWAY
    assert tie.stake_token_name == "0ARSvCHE"


def test_minted_quantity_mismatch_is_rejected(engine, event) -> None:
    with pytest.raises(InvariantViolation) as exc_info:
        engine.lock_position(event, Outcome.HOME, 5_000_000, 2, "alice", minted_quantity=6_999_999)

    assert exc_info.value.expected == 7_000_000
    assert exc_info.value.actual == 6_999_999
    assert engine.ledger.journal == ()
    assert engine.ledger.snapshot(event.pot_id) == []


def test_bead_cannot_dominate_contribution() -> None:
    with pytest.raises(InvariantViolation) as exc_info:
        validate_mint(3_000_000, 2, 5_000_000)

    assert exc_info.value.expected == 4_000_000
    assert exc_info.value.actual == 3_000_000

    # Exactly twice the burned value is allowed
    validate_mint(4_000_000, 2, 6_000_000)


def test_lock_at_cutoff_is_rejected(engine, event, clock) -> None:
    clock.now = CUTOFF

    with pytest.raises(DeadlineViolation):
        engine.lock_position(event, Outcome.HOME, 10, 0, "alice")

    assert engine.ledger.positions_for(event.pot_id) == []


def test_unknown_outcome_is_invalid(engine, event) -> None:
    with pytest.raises(InvalidStake):
        engine.lock_position(event, "DRAW", 10, 0, "alice")

    with pytest.raises(InvalidStake):
        engine.lock_position(event, 3, 10, 0, "alice")


def test_default_minimum_is_ten_ada(ledger, clock, event) -> None:
    engine = SettlementEngine(ledger, None, clock=clock)

    with pytest.raises(InvalidStake) as exc_info:
        engine.lock_position(event, Outcome.HOME, 9_999_999, 0, "alice")

    assert exc_info.value.context["ada_amount"] == 9_999_999
    position = engine.lock_position(event, Outcome.HOME, 10_000_000, 0, "alice")
    assert position.ada_contributed == 10_000_000


def test_amount_limits(engine, event) -> None:
    with pytest.raises(InvalidStake):
        engine.lock_position(event, Outcome.HOME, 0, 0, "alice")

    with pytest.raises(InvalidStake):
        engine.lock_position(event, Outcome.HOME, 20_000_000_000, 0, "alice")

    with pytest.raises(InvalidStake):
        engine.lock_position(event, Outcome.HOME, 1_000_000_000, 50_001, "alice")

    with pytest.raises(InvalidStake):
        engine.lock_position(event, Outcome.HOME, 10, 0, "")


def test_tally_sums_stake_per_outcome(engine, event) -> None:
    engine.lock_position(event, Outcome.HOME, 10, 0, "alice")
    engine.lock_position(event, Outcome.AWAY, 15, 0, "bob")
    engine.lock_position(event, Outcome.HOME, 12, 0, "carol")

    assert engine.stakes.tally(event) == {Outcome.TIE: 0, Outcome.HOME: 22, Outcome.AWAY: 15}
