"""Tests for pot fund selection."""

import logging

import pytest

from betpot.engine import FundRecord, InsufficientFunds, Outcome, OutcomeRecord, select_funds


def _funds(*amounts: int) -> list[FundRecord]:
    return [
        FundRecord(fund_id=f"fund_{i}", pot_id="pot", amount=amount)
        for i, amount in enumerate(amounts)
    ]


def _marker(amount: int = 1_000) -> FundRecord:
    return FundRecord(fund_id="marker", pot_id="pot", amount=amount, assets={"ref.RESULT": 1})


def test_single_record_with_usable_change() -> None:
    result = select_funds(_funds(10, 20, 30), None, target=20, min_fund_value=5, max_inputs=5)

    assert result.strategy == "single"
    assert [r.amount for r in result.selected] == [30]
    assert result.change == 10


def test_single_exact_match_when_change_would_be_dust() -> None:
    result = select_funds(_funds(10, 20, 30), None, target=20, min_fund_value=15, max_inputs=5)

    assert [r.amount for r in result.selected] == [20]
    assert result.change == 0
    assert result.efficiency == 1.0


def test_accumulates_past_dust_change() -> None:
    result = select_funds(_funds(8, 7, 6), None, target=14, min_fund_value=2, max_inputs=5)

    assert result.strategy == "accumulated"
    assert result.record_count == 3
    assert result.total_input == 21
    assert result.change == 7
    assert not result.dust_change


def test_last_resort_accepts_dust_change() -> None:
    result = select_funds(_funds(8, 7), None, target=14, min_fund_value=2, max_inputs=5)

    assert result.strategy == "last_resort"
    assert result.change == 1
    assert result.dust_change
    assert result.low_efficiency


def test_last_resort_at_input_limit() -> None:
    result = select_funds(_funds(8, 7, 6), None, target=14, min_fund_value=2, max_inputs=2)

    assert result.strategy == "last_resort"
    assert result.record_count == 2


def test_excluded_and_reserved_records_are_never_selected() -> None:
    pot = _funds(5, 4) + [_marker(1_000)]
    reserved = FundRecord(fund_id="nft", pot_id="pot", amount=900, assets={"other.TOKEN": 3})

    result = select_funds(pot + [reserved], "marker", target=9, min_fund_value=1, max_inputs=5)

    assert "marker" not in result.selected_ids
    assert "nft" not in result.selected_ids
    assert result.total_input == 9


def test_datum_without_assets_stays_spendable() -> None:
    datum = OutcomeRecord(
        event_id=1,
        winning_outcome=Outcome.TIE,
        game_stake_policy_ref="ref",
        total_pot_ada=0,
        total_winning_stake=0,
    )
    record = FundRecord(fund_id="with_datum", pot_id="pot", amount=50, datum=datum)

    result = select_funds([record], None, target=50, min_fund_value=1, max_inputs=1)

    assert result.selected_ids == ["with_datum"]


def test_input_limit_reached_before_target() -> None:
    with pytest.raises(InsufficientFunds) as exc_info:
        select_funds(_funds(5, 5, 5, 5), None, target=18, min_fund_value=1, max_inputs=3)

    error = exc_info.value
    assert error.retryable
    assert error.context["max_inputs"] == 3
    assert error.context["available"] == 20


def test_pot_too_small() -> None:
    with pytest.raises(InsufficientFunds):
        select_funds(_funds(5, 4), None, target=10, min_fund_value=1, max_inputs=10)


def test_non_positive_target() -> None:
    with pytest.raises(ValueError):
        select_funds(_funds(5), None, target=0, min_fund_value=1, max_inputs=10)


def test_low_efficiency_is_flagged_and_logged(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="betpot.engine.selector"):
        result = select_funds(_funds(100), None, target=10, min_fund_value=1, max_inputs=5)

    assert result.efficiency == pytest.approx(0.1)
    assert result.low_efficiency
    assert not result.dust_change
    assert "Low fund selection efficiency" in caplog.text


def test_selection_covers_target() -> None:
    pot = _funds(13, 11, 9, 7, 5, 3, 2, 1)

    for target in range(1, sum(r.amount for r in pot) + 1):
        try:
            result = select_funds(pot, None, target=target, min_fund_value=4, max_inputs=8)
        except InsufficientFunds:
            continue
        assert result.total_input >= target
        assert result.change == 0 or result.change >= 4 or result.strategy == "last_resort"
