"""Ledger persistence with atomic writes to data/ledger.yaml."""

import logging
import shutil
import tempfile
from pathlib import Path

import yaml

from betpot.engine.clock import Clock, now_ms
from betpot.engine.ledger import Ledger, LedgerState

logger = logging.getLogger(__name__)


def load_ledger(ledger_path: Path, clock: Clock = now_ms) -> Ledger:
    """Load the ledger from ledger_path, or an empty ledger if absent."""
    if not ledger_path.exists():
        logger.info(f"Ledger file not found: {ledger_path}. Starting with an empty ledger.")
        return Ledger(clock=clock)

    try:
        with open(ledger_path, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)

        if not raw_data:
            logger.warning(f"Empty ledger file: {ledger_path}. Starting with an empty ledger.")
            return Ledger(clock=clock)

        state = LedgerState(**raw_data)
        logger.debug(
            f"Loaded ledger from {ledger_path} "
            f"({len(state.funds)} records, {len(state.journal)} transitions)"
        )
        return Ledger(state, clock=clock)

    except yaml.YAMLError as e:
        logger.error(f"Corrupted YAML in ledger file: {e}")
        raise
    except Exception as e:
        logger.error(f"Failed to load ledger: {e}")
        raise


def save_ledger(ledger: Ledger, ledger_path: Path) -> None:
    """Atomically save the ledger to ledger_path.

    Written to a temp file in the same directory, then renamed over the
    target so a crash mid-write leaves the previous file intact.
    """
    state_dict = ledger.state.model_dump(mode="json")

    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=ledger_path.parent,
            delete=False,
            suffix=".yaml",
            encoding="utf-8",
        ) as temp_file:
            yaml.dump(
                state_dict,
                temp_file,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )
            temp_path = Path(temp_file.name)

        shutil.move(str(temp_path), str(ledger_path))
        logger.debug(f"Saved ledger to {ledger_path}")

    except Exception as e:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        logger.error(f"Failed to save ledger: {e}")
        raise


def verify_ledger(ledger: Ledger) -> bool:
    """Replay the journal and compare the rebuilt state with the stored one."""
    replayed = Ledger.replay(ledger.journal, clock=ledger.clock)
    stored = ledger.state.model_dump(mode="json")
    rebuilt = replayed.state.model_dump(mode="json")

    matches = all(
        stored[key] == rebuilt[key] for key in ("funds", "positions", "outcomes", "accounts")
    )
    if not matches:
        logger.error("Ledger state does not match its journal replay")
    return matches
