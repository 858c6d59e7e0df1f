"""
House Points - Expiry Sweeper Process.

============================================================
RESPONSIBILITY
============================================================
Runs the scheduled expiry sweep against the configured database.

- Loads configuration from environment (.env supported)
- Initializes the database and creates missing tables
- Approves overdue pending events and credits their points
- Runs one pass or loops until interrupted

============================================================
USAGE
============================================================
python app.py                 # Loop every SWEEP_INTERVAL_SECONDS
python app.py --once          # Single sweep pass, then exit
python app.py --interval 60   # Override the sweep interval

============================================================
"""

import argparse
import asyncio
import logging
import sys

from core.clock import get_clock
from core.config import HouseRulesConfig
from core.exceptions import HouseRulesException
from storage.database import init_database
from veto_engine import EventService, ExpirySweeper


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="house-points-sweeper",
        description="Approve overdue house-point events and credit their targets",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sweep pass and exit",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between sweep passes (default: SWEEP_INTERVAL_SECONDS)",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Path to a .env file",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    return parser


def setup_logging(level: str) -> None:
    """Configure root logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_config(args) -> HouseRulesConfig:
    """Environment config with CLI overrides applied."""
    config = HouseRulesConfig.from_env(args.env_file)
    if args.interval is not None:
        config.sweep_interval_seconds = args.interval
    if args.log_level:
        config.log_level = args.log_level
    return config


# ============================================================
# MAIN FUNCTION
# ============================================================

def main() -> int:
    """Main entry point."""
    args = create_parser().parse_args()
    config = build_config(args)

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    try:
        session_factory = init_database(config)
    except HouseRulesException as e:
        logger.error(e.to_log_format())
        return 1

    clock = get_clock()
    service = EventService(session_factory, clock=clock, config=config)
    sweeper = ExpirySweeper(service, session_factory, config=config, clock=clock)

    if args.once:
        report = sweeper.run_once()
        print(f"Approved: {report.resolved_count}  Failed: {report.failed_count}")
        return 1 if report.failed_count else 0

    try:
        logger.info("Starting sweeper loop (press Ctrl+C to stop)...")
        asyncio.run(sweeper.run_forever())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    return 0


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
