"""Tests for settings loading and YAML merge."""

from betpot.config import Settings, get_settings
from betpot.engine import create_engine


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.stake.min_ada_contribution == 10_000_000
    assert settings.selection.min_fund_value == 1_000_000
    assert settings.selection.max_inputs == 50
    assert settings.redemption.max_conflict_retries == 3
    assert settings.oracle.marker_liquidity == 2_000_000
    assert settings.payout.enforce_rounding == "ceiling"
    assert len(settings.bonus.tiers) == 6
    assert settings.data_dir.is_absolute()


def test_yaml_sections_merge_over_defaults(tmp_path) -> None:
    (tmp_path / "config.yaml").write_text(
        "selection:\n"
        "  max_inputs: 7\n"
        "payout:\n"
        "  enforce_rounding: floor\n"
        "bonus:\n"
        "  tiers:\n"
        "    - {contribution: 100, stake_bonus: 500, referral_bonus: 2}\n"
        "treasury_address: addr_test1treasury\n"
    )
    settings = Settings(_env_file=None, data_dir=tmp_path)

    settings.load_yaml_config()

    assert settings.selection.max_inputs == 7
    assert settings.selection.min_fund_value == 1_000_000
    assert settings.payout.enforce_rounding == "floor"
    assert [t.contribution for t in settings.bonus.tiers] == [100]
    assert settings.treasury_address == "addr_test1treasury"


def test_missing_yaml_keeps_defaults(tmp_path) -> None:
    settings = Settings(_env_file=None, data_dir=tmp_path)

    settings.load_yaml_config()

    assert settings.stake.max_bead_burn == 50_000


def test_nested_environment_override(monkeypatch) -> None:
    monkeypatch.setenv("SELECTION__MIN_FUND_VALUE", "5")
    monkeypatch.setenv("SETTLEMENT_SECRET", "env-secret")

    settings = Settings(_env_file=None)

    assert settings.selection.min_fund_value == 5
    assert settings.settlement_secret == "env-secret"


def test_get_settings_is_cached(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("DATA_DIR", str(tmp_path))

    assert get_settings() is get_settings()
    assert get_settings().data_dir == tmp_path.resolve()


def test_engine_built_from_settings(tmp_path) -> None:
    settings = Settings(_env_file=None, data_dir=tmp_path, settlement_secret="s")
    settings.selection.max_inputs = 9

    engine = create_engine(settings)

    assert engine.config.selection.max_inputs == 9
    assert engine.authority is not None


def test_engine_without_secret_has_no_authority(tmp_path) -> None:
    engine = create_engine(Settings(_env_file=None, data_dir=tmp_path, settlement_secret=""))

    assert engine.authority is None
