"""Betpot CLI entry point."""

import argparse
import json
import logging
import sys
from pathlib import Path

import logfire
from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from betpot import __version__
from betpot.config import get_settings
from betpot.engine import (
    BonusError,
    BonusTable,
    ConcurrencyConflict,
    DeadlineViolation,
    EngineError,
    EventParams,
    SelectionError,
    SettlementError,
    SettlementEngine,
    StakeError,
    create_engine,
)
from betpot.engine.clock import now_ms
from betpot.storage import load_ledger, save_ledger, verify_ledger

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

# Exit codes by error family
EXIT_CODES: list[tuple[type[EngineError], int]] = [
    (StakeError, 2),
    (DeadlineViolation, 3),
    (SettlementError, 4),
    (SelectionError, 5),
    (ConcurrencyConflict, 6),
    (BonusError, 7),
]


def exit_code_for(error: EngineError) -> int:
    for family, code in EXIT_CODES:
        if isinstance(error, family):
            return code
    return 1


def _init_logfire() -> None:
    """Initialize Logfire if available, without failing commands."""
    try:
        from betpot.observability import initialize_logfire

        initialize_logfire(get_settings())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def _event_from_args(args: argparse.Namespace) -> EventParams:
    return EventParams(
        event_id=args.event_id,
        event_name=args.event_name,
        cutoff_time=args.cutoff,
    )


def _build_engine(args: argparse.Namespace) -> SettlementEngine:
    at = getattr(args, "at", None)
    clock = (lambda: at) if at is not None else now_ms
    settings = get_settings()
    return create_engine(settings, load_ledger(settings.ledger_path, clock=clock), clock)


def _run_engine_command(args: argparse.Namespace, name: str, action) -> int:
    """Load the ledger, run one engine action, persist, and map errors to exit codes."""
    _init_logfire()

    try:
        event = _event_from_args(args)
        engine = _build_engine(args)

        with logfire.span(f"betpot.{name}", event_id=event.event_id):
            mutated = action(engine, event)

        if mutated:
            save_ledger(engine.ledger, get_settings().ledger_path)
        return 0

    except EngineError as e:
        logger.error(f"{name} failed: {e.message}")
        print(json.dumps(e.to_dict(), indent=2, default=str))
        return exit_code_for(e)
    except ValidationError as e:
        print("\n❌ Invalid input:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except Exception as e:
        logger.error(f"{name} failed: {e}", exc_info=True)
        print(f"\n❌ {name} failed: {e}\n")
        return 1


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize data directory and configuration file."""
    settings = get_settings()
    data_dir = settings.data_dir

    try:
        data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created data directory: {data_dir}")

        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_template = """# Betpot Configuration
# Operational parameters for the settlement engine.
# The settlement secret belongs in .env (SETTLEMENT_SECRET), not here.

treasury_address: treasury

stake:
  min_ada_contribution: 10000000
  max_ada_contribution: 10000000000
  max_bead_burn: 50000

selection:
  min_fund_value: 1000000
  max_inputs: 50
  min_efficiency: 0.50

redemption:
  max_conflict_retries: 3

oracle:
  marker_liquidity: 2000000
  marker_label: RESULT

payout:
  enforce_rounding: ceiling
"""
            config_path.write_text(config_template)
            logger.info(f"Created config template: {config_path}")
        else:
            logger.info(f"Config file already exists: {config_path}")

        ledger_path = settings.ledger_path
        if not ledger_path.exists():
            save_ledger(load_ledger(ledger_path), ledger_path)
            logger.info(f"Created empty ledger: {ledger_path}")
        else:
            logger.info(f"Ledger file already exists: {ledger_path}")

        print(f"\n✓ Data directory initialized at {data_dir}")
        print("\nNext steps:")
        print("1. Set SETTLEMENT_SECRET in .env")
        print("2. Review and customize data/config.yaml if needed")
        print("3. Run 'python -m betpot config' to verify configuration\n")

        return 0

    except Exception as e:
        logger.error(f"Failed to initialize: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== Betpot Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}")
        print(f"Treasury Address: {settings.treasury_address}\n")

        print("Stake:")
        print(f"  Min ADA Contribution: {settings.stake.min_ada_contribution:,} lovelace")
        print(f"  Max ADA Contribution: {settings.stake.max_ada_contribution:,} lovelace")
        print(f"  Max BEAD Burn: {settings.stake.max_bead_burn:,}\n")

        print("Fund Selection:")
        print(f"  Min Fund Value: {settings.selection.min_fund_value:,} lovelace")
        print(f"  Max Inputs: {settings.selection.max_inputs}")
        print(f"  Min Efficiency: {settings.selection.min_efficiency:.0%}\n")

        print("Redemption:")
        print(f"  Max Conflict Retries: {settings.redemption.max_conflict_retries}\n")

        print("Oracle:")
        print(f"  Marker Liquidity: {settings.oracle.marker_liquidity:,} lovelace")
        print(f"  Marker Label: {settings.oracle.marker_label}\n")

        print("Payout:")
        print(f"  Enforced Rounding: {settings.payout.enforce_rounding}\n")

        print(f"Bonus Tiers: {len(settings.bonus.tiers)}")
        for tier in settings.bonus.tiers:
            print(f"  • {tier.description}")
        print()

        print("Secrets:")
        print(f"  Settlement Secret: {'✓ Set' if settings.settlement_secret else '✗ Not set'}")
        print(f"  Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")

        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        print(f"\n❌ Failed to load configuration: {e}\n")
        return 1


def _print_event_status(engine: SettlementEngine, event: EventParams) -> None:
    status = engine.status(event)
    recon = status["reconciliation"]

    print(f"\n=== Event {status['event_id']} ({status['event_name']}) ===\n")
    print(f"Pot: {status['pot_id']}")
    print(f"Cutoff: {status['cutoff_time']}")
    print(f"Positions: {status['positions']}\n")

    print("Stake by Outcome:")
    for outcome, stake in status["stake_by_outcome"].items():
        print(f"  {outcome}: {stake:,}")
    print()

    outcome = status["outcome"]
    if outcome:
        print(f"Outcome: {outcome['winningOutcome']} "
              f"(pot {outcome['totalPotAda']:,}, winning stake {outcome['totalWinningStake']:,})\n")
    else:
        print("Outcome: (not posted)\n")

    print("Reconciliation:")
    print(f"  Records: {recon['records']}")
    print(f"  Live Value: {recon['live_value']:,}")
    print(f"  Expected Value: {recon['expected_value']:,}")
    print(f"  Balanced: {'✓' if recon['balanced'] else '✗'}\n")


def cmd_status(args: argparse.Namespace) -> int:
    """Display ledger or single-event status."""
    try:
        settings = get_settings()
        ledger_path = settings.ledger_path

        if not ledger_path.exists():
            print(f"\n❌ Ledger file not found: {ledger_path}")
            print("Run 'python -m betpot init' to create it.\n")
            return 1

        if args.event_id is not None:
            engine = _build_engine(args)
            _print_event_status(engine, _event_from_args(args))
            return 0

        ledger = load_ledger(ledger_path)
        state = ledger.state

        print("\n=== Betpot Ledger Status ===\n")
        print(f"Fund Records: {len(state.funds)}")
        print(f"Live Positions: {len(state.positions)}")
        print(f"Posted Outcomes: {len(state.outcomes)}")
        print(f"Journal Entries: {len(state.journal)}\n")

        print(f"Pots: {len(state.accounts)}")
        for pot_id in state.accounts:
            recon = ledger.reconcile(pot_id)
            marker = "✓" if recon["balanced"] else "✗"
            print(f"  {marker} {pot_id}: {recon['live_value']:,} in {recon['records']} records")
        print()

        print(f"Journal Replay: {'✓ Consistent' if verify_ledger(ledger) else '✗ Mismatch'}\n")
        return 0

    except ValidationError as e:
        print("\n❌ Invalid input:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except Exception as e:
        logger.error(f"Failed to read status: {e}")
        print(f"\n❌ Failed to read status: {e}\n")
        return 1


def cmd_lock(args: argparse.Namespace) -> int:
    """Lock a stake into an event pot."""

    def action(engine: SettlementEngine, event: EventParams) -> bool:
        position = engine.lock_position(
            event,
            args.outcome,
            args.ada,
            args.bead,
            args.owner,
            args.minted,
        )
        print(f"\n✓ Position locked: {position.position_id}\n")
        print(f"Outcome: {position.predicted_outcome.name}")
        print(f"Stake Token: {position.stake_token_name} x {position.stake_token_quantity:,}")
        print(f"ADA Contributed: {position.ada_contributed:,}")
        print(f"BEAD Burned: {position.bead_burned:,}\n")
        return True

    return _run_engine_command(args, "lock", action)


def cmd_post_outcome(args: argparse.Namespace) -> int:
    """Post the winning outcome of an event."""

    def action(engine: SettlementEngine, event: EventParams) -> bool:
        record = engine.post_outcome(
            event,
            args.outcome,
            engine.grant(event),
            args.total_pot,
            args.total_winning_stake,
        )
        print(f"\n✓ Outcome posted for event {record.event_id}\n")
        print(json.dumps(record.to_datum(), indent=2))
        print()
        return True

    return _run_engine_command(args, "post-outcome", action)


def cmd_quote(args: argparse.Namespace) -> int:
    """Show the payout a stake would receive."""

    def action(engine: SettlementEngine, event: EventParams) -> bool:
        quote = engine.quote(event, args.stake)
        print(f"\n=== Payout Quote ===\n")
        print(f"Caller Stake: {quote['caller_stake']:,}")
        print(f"Payout: {quote['payout']:,}")
        print(f"Enforced Limit: {quote['enforced_limit']:,}")
        print(f"Rounding Tolerance: {quote['tolerance']}\n")
        return False

    return _run_engine_command(args, "quote", action)


def cmd_redeem(args: argparse.Namespace) -> int:
    """Redeem an owner's winning positions."""

    def action(engine: SettlementEngine, event: EventParams) -> bool:
        result = engine.redeem(event, args.owner, args.position or None)
        selection = result.withdrawal.selection
        print(f"\n✓ Redeemed {result.withdrawal.payout_amount:,}\n")
        print(f"Caller Stake: {result.withdrawal.caller_stake:,}")
        print(f"Positions Burned: {len(result.positions_burned)}")
        print(f"Records Spent: {selection.record_count} ({selection.strategy})")
        print(f"Change: {selection.change:,}")
        print(f"Efficiency: {selection.efficiency:.1%}")
        print(f"Attempts: {result.attempts}\n")
        if selection.low_efficiency:
            print("⚠ Low selection efficiency\n")
        return True

    return _run_engine_command(args, "redeem", action)


def cmd_sweep(args: argparse.Namespace) -> int:
    """Sweep an event pot to the treasury."""

    def action(engine: SettlementEngine, event: EventParams) -> bool:
        target = args.treasury or get_settings().treasury_address
        result = engine.sweep(event, target, engine.grant(event))
        print(f"\n✓ Swept {result.total_collected:,} to {result.treasury_target}\n")
        print(f"Records Collected: {result.records_collected}")
        print(f"Markers Burned: {result.markers_burned}")
        print(f"Pot Empty: {'✓' if result.is_empty else '✗'}\n")
        return result.records_collected > 0

    return _run_engine_command(args, "sweep", action)


def cmd_bonus(args: argparse.Namespace) -> int:
    """Look up the bonus tier for a contribution."""
    try:
        settings = get_settings()
        tier = BonusTable(settings.bonus.tiers).lookup_tier(args.contribution)
        print(f"\n✓ {tier.description}\n")
        return 0

    except EngineError as e:
        print(json.dumps(e.to_dict(), indent=2, default=str))
        return exit_code_for(e)


def _add_event_arguments(parser: argparse.ArgumentParser, required: bool = True) -> None:
    parser.add_argument("--event-id", type=int, required=required, help="Event ID")
    parser.add_argument("--event-name", required=required, help="Event name (max 50 chars)")
    parser.add_argument("--cutoff", type=int, required=required, help="Cutoff time (epoch millis)")


def _add_at_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--at",
        type=int,
        default=None,
        help="Evaluate at this time (epoch millis) instead of now",
    )


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Betpot: parimutuel betting escrow and settlement engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Betpot {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser(
        "init",
        help="Initialize data directory and configuration files",
    )
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_status = subparsers.add_parser(
        "status",
        help="Display ledger status, or one event's pot with --event-id",
    )
    _add_event_arguments(parser_status, required=False)
    parser_status.set_defaults(func=cmd_status)

    parser_lock = subparsers.add_parser(
        "lock",
        help="Lock a stake predicting an outcome",
    )
    _add_event_arguments(parser_lock)
    parser_lock.add_argument("--outcome", required=True, help="TIE, HOME or AWAY (or 0/1/2)")
    parser_lock.add_argument("--ada", type=int, required=True, help="ADA contribution in lovelace")
    parser_lock.add_argument("--bead", type=int, default=0, help="BEAD tokens to burn")
    parser_lock.add_argument("--owner", required=True, help="Owner credential")
    parser_lock.add_argument("--minted", type=int, default=None, help="Proposed stake token quantity")
    _add_at_argument(parser_lock)
    parser_lock.set_defaults(func=cmd_lock)

    parser_post = subparsers.add_parser(
        "post-outcome",
        help="Post the winning outcome of an event",
    )
    _add_event_arguments(parser_post)
    parser_post.add_argument("--outcome", required=True, help="TIE, HOME or AWAY (or 0/1/2)")
    parser_post.add_argument(
        "--total-pot", type=int, default=None, help="Expected pot value, checked against the tally"
    )
    parser_post.add_argument(
        "--total-winning-stake",
        type=int,
        default=None,
        help="Expected winning stake, checked against the tally",
    )
    _add_at_argument(parser_post)
    parser_post.set_defaults(func=cmd_post_outcome)

    parser_quote = subparsers.add_parser(
        "quote",
        help="Show the payout for a stake",
    )
    _add_event_arguments(parser_quote)
    parser_quote.add_argument("--stake", type=int, required=True, help="Caller stake quantity")
    parser_quote.set_defaults(func=cmd_quote)

    parser_redeem = subparsers.add_parser(
        "redeem",
        help="Redeem an owner's winning positions",
    )
    _add_event_arguments(parser_redeem)
    parser_redeem.add_argument("--owner", required=True, help="Owner credential")
    parser_redeem.add_argument(
        "--position", action="append", default=[], help="Restrict to this position ID (repeatable)"
    )
    _add_at_argument(parser_redeem)
    parser_redeem.set_defaults(func=cmd_redeem)

    parser_sweep = subparsers.add_parser(
        "sweep",
        help="Sweep an event pot to the treasury",
    )
    _add_event_arguments(parser_sweep)
    parser_sweep.add_argument("--treasury", default=None, help="Treasury target (defaults to config)")
    _add_at_argument(parser_sweep)
    parser_sweep.set_defaults(func=cmd_sweep)

    parser_bonus = subparsers.add_parser(
        "bonus",
        help="Look up the bonus tier for a contribution",
    )
    parser_bonus.add_argument("contribution", type=int, help="Contribution in whole ADA")
    parser_bonus.set_defaults(func=cmd_bonus)

    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
