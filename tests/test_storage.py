"""Tests for ledger persistence."""

from betpot.engine import Outcome
from betpot.storage import load_ledger, save_ledger, verify_ledger

from conftest import AFTER_CUTOFF


def test_missing_file_gives_empty_ledger(tmp_path) -> None:
    ledger = load_ledger(tmp_path / "ledger.yaml")

    assert ledger.state.funds == {}
    assert ledger.journal == ()


def test_empty_file_gives_empty_ledger(tmp_path) -> None:
    path = tmp_path / "ledger.yaml"
    path.write_text("")

    assert load_ledger(path).state.positions == {}


def test_yaml_round_trip_preserves_state(tmp_path, engine, event, clock) -> None:
    engine.lock_position(event, Outcome.HOME, 10, 0, "alice")
    engine.lock_position(event, Outcome.AWAY, 15, 0, "bob")
    engine.lock_position(event, Outcome.HOME, 12, 0, "carol")
    clock.now = AFTER_CUTOFF
    engine.post_outcome(event, Outcome.HOME, engine.grant(event))
    engine.redeem(event, "alice")

    path = tmp_path / "ledger.yaml"
    save_ledger(engine.ledger, path)
    loaded = load_ledger(path)

    assert loaded.state.model_dump() == engine.ledger.state.model_dump()
    assert loaded.outcome_for(event.event_id).winning_outcome is Outcome.HOME
    assert loaded.marker_for(event.pot_id).datum.total_pot_ada == 37
    assert loaded.reconcile(event.pot_id)["balanced"]
    assert verify_ledger(loaded)


def test_save_leaves_no_temp_files(tmp_path, engine, event) -> None:
    engine.lock_position(event, Outcome.HOME, 10, 0, "alice")

    save_ledger(engine.ledger, tmp_path / "ledger.yaml")
    save_ledger(engine.ledger, tmp_path / "ledger.yaml")

    assert [p.name for p in tmp_path.iterdir()] == ["ledger.yaml"]


def test_verify_detects_tampering(engine, event) -> None:
    engine.lock_position(event, Outcome.HOME, 10, 0, "alice")
    assert verify_ledger(engine.ledger)

    engine.ledger.state.funds.clear()

    assert not verify_ledger(engine.ledger)
