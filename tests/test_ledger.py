"""Tests for the transition ledger: atomicity, conservation and replay."""

import pytest

from betpot.engine import (
    ConcurrencyConflict,
    DeadlineViolation,
    DuplicateOutcome,
    FundRecord,
    InvariantViolation,
    Ledger,
    Outcome,
    Position,
    Transition,
)

from conftest import AFTER_CUTOFF


def _deposit(ledger: Ledger, fund_id: str, amount: int, pot_id: str = "pot") -> None:
    ledger.apply(
        Transition(
            kind="lock",
            pot_id=pot_id,
            event_id=1,
            creates=[FundRecord(fund_id=fund_id, pot_id=pot_id, amount=amount)],
            deposited=amount,
        )
    )


def test_apply_stamps_time_and_journals(ledger, clock) -> None:
    _deposit(ledger, "a", 10)

    assert len(ledger.journal) == 1
    assert ledger.journal[0].applied_at == clock.now
    assert ledger.pot_value("pot") == 10


def test_unbalanced_transition_is_rejected_without_mutation(ledger) -> None:
    _deposit(ledger, "a", 10)

    with pytest.raises(InvariantViolation) as exc_info:
        ledger.apply(
            Transition(
                kind="redeem",
                pot_id="pot",
                event_id=1,
                spends=["a"],
                creates=[FundRecord(fund_id="b", pot_id="pot", amount=6)],
                withdrawn=3,
            )
        )

    assert exc_info.value.expected == -3
    assert exc_info.value.actual == -4
    assert ledger.get_fund("a") is not None
    assert ledger.get_fund("b") is None
    assert len(ledger.journal) == 1


def test_spending_missing_record_is_a_conflict(ledger) -> None:
    with pytest.raises(ConcurrencyConflict) as exc_info:
        ledger.apply(Transition(kind="redeem", pot_id="pot", event_id=1, spends=["ghost"], withdrawn=1))

    assert exc_info.value.retryable
    assert exc_info.value.context["missing"] == ["ghost"]


def test_spending_twice_in_one_transition(ledger) -> None:
    _deposit(ledger, "a", 10)

    with pytest.raises(ValueError):
        ledger.apply(Transition(kind="redeem", pot_id="pot", event_id=1, spends=["a", "a"], withdrawn=20))


def test_records_stay_in_their_pot(ledger) -> None:
    _deposit(ledger, "a", 10, pot_id="pot")

    with pytest.raises(ValueError):
        ledger.apply(Transition(kind="redeem", pot_id="other", event_id=1, spends=["a"], withdrawn=10))


def test_outcome_set_once_per_event(engine, event, clock) -> None:
    engine.lock_position(event, Outcome.HOME, 10, 0, "alice")
    clock.now = AFTER_CUTOFF
    record = engine.post_outcome(event, Outcome.HOME, engine.grant(event))

    with pytest.raises(DuplicateOutcome):
        engine.ledger.apply(
            Transition(
                kind="post_outcome",
                pot_id=event.pot_id,
                event_id=event.event_id,
                set_outcome=record,
            )
        )


def test_settled_event_accepts_no_positions(engine, event, clock) -> None:
    engine.lock_position(event, Outcome.HOME, 10, 0, "alice")
    clock.now = AFTER_CUTOFF
    engine.post_outcome(event, Outcome.HOME, engine.grant(event))
    late = Position(
        position_id="pos_late",
        event_id=event.event_id,
        pot_id=event.pot_id,
        predicted_outcome=Outcome.HOME,
        stake_token_name=event.stake_token_name(Outcome.HOME),
        stake_token_quantity=22,
        ada_contributed=22,
        owner_credential="dave",
        locked_at=clock.now,
    )

    with pytest.raises(DeadlineViolation):
        engine.ledger.apply(
            Transition(
                kind="lock",
                pot_id=event.pot_id,
                event_id=event.event_id,
                creates=[FundRecord(fund_id="fund_late", pot_id=event.pot_id, amount=22)],
                add_positions=[late],
                deposited=22,
            )
        )

    assert engine.ledger.get_position("pos_late") is None
    assert engine.ledger.get_fund("fund_late") is None


def test_replay_rebuilds_identical_state(engine, event, clock) -> None:
    engine.lock_position(event, Outcome.HOME, 10, 0, "alice")
    engine.lock_position(event, Outcome.AWAY, 15, 0, "bob")
    engine.lock_position(event, Outcome.HOME, 12, 0, "carol")
    clock.now = AFTER_CUTOFF
    engine.post_outcome(event, Outcome.HOME, engine.grant(event))
    engine.redeem(event, "alice")

    replayed = Ledger.replay(engine.ledger.journal)

    assert replayed.state.funds == engine.ledger.state.funds
    assert replayed.state.positions == engine.ledger.state.positions
    assert replayed.state.outcomes == engine.ledger.state.outcomes
    assert replayed.state.accounts == engine.ledger.state.accounts
    assert replayed.journal == engine.ledger.journal


def test_reconcile_reports_account(ledger) -> None:
    _deposit(ledger, "a", 10)
    _deposit(ledger, "b", 5)

    recon = ledger.reconcile("pot")

    assert recon["records"] == 2
    assert recon["contributed"] == 15
    assert recon["live_value"] == 15
    assert recon["balanced"]
