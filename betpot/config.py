"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from betpot.engine.config import (
    BonusConfig,
    EngineConfig,
    OracleConfig,
    PayoutConfig,
    RedemptionConfig,
    SelectionConfig,
    StakeConfig,
)

logger = logging.getLogger(__name__)

CONFIG_SECTIONS = ["stake", "selection", "redemption", "oracle", "payout", "bonus"]


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")

    # Secrets
    settlement_secret: str = ""
    logfire_token: str = ""

    treasury_address: str = "treasury"

    # Nested configuration sections
    stake: StakeConfig = Field(default_factory=StakeConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    redemption: RedemptionConfig = Field(default_factory=RedemptionConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    payout: PayoutConfig = Field(default_factory=PayoutConfig)
    bonus: BonusConfig = Field(default_factory=BonusConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    @property
    def ledger_path(self) -> Path:
        return self.data_dir / "ledger.yaml"

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            stake=self.stake,
            selection=self.selection,
            redemption=self.redemption,
            oracle=self.oracle,
            payout=self.payout,
            bonus=self.bonus,
        )

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.warning(
                f"Config file not found: {config_path}. "
                "Using defaults. Run 'python -m betpot init' to create it."
            )
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in CONFIG_SECTIONS:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name] or {}

                    section_dict = section.model_dump()
                    section_dict.update(yaml_section)

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            if yaml_config.get("treasury_address"):
                self.treasury_address = yaml_config["treasury_address"]

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
