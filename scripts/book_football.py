"""Book the football slot for the configured strategy, then exit.

Meant to be started by cron shortly before midnight, when new slots open.
Logs in, retries the preferred slots until one books or the run times out, and
tries once to upgrade to a more preferred slot.

Run with: python scripts/book_football.py
Settings: python scripts/book_football.py settings/other_settings.json
JSON log: python scripts/book_football.py --log-json --log-file footbooker.log

Exit codes:
  0 = booked, or timed out (try again another day)
  1 = login refused, invalid settings, or unexpected error
"""

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv
from pydantic import ValidationError

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.footbooker.config import DEFAULT_SETTINGS_PATH, load_config  # noqa: E402
from src.footbooker.logging import get_logger, setup_logging  # noqa: E402
from src.footbooker.runner import Outcome, run_booking  # noqa: E402

log = get_logger("book_football")


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Book a football slot on the facility reservation site.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "settings",
        nargs="?",
        default=DEFAULT_SETTINGS_PATH,
        help=f"Settings JSON file (default: {DEFAULT_SETTINGS_PATH}).",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs as JSON lines.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also append logs to this file.",
    )
    parser.add_argument(
        "--no-upgrade",
        action="store_true",
        help="Keep the first booking; skip the upgrade pass.",
    )
    return parser.parse_args()


async def main(args: argparse.Namespace) -> int:
    overrides: dict = {}
    if args.log_json:
        overrides["log_json"] = True
    if args.log_file:
        overrides["log_file"] = args.log_file
    if args.no_upgrade:
        overrides["upgrade"] = False

    try:
        config = load_config(args.settings, **overrides)
    except ValidationError as e:
        setup_logging()
        log.error("invalid_settings", path=args.settings, error=str(e))
        return 1

    setup_logging(config.log_json, config.log_level, config.log_file)
    report = await run_booking(config)

    if report.outcome is Outcome.TIMED_OUT:
        # Abandon any request still running in a worker thread
        logging.shutdown()
        os._exit(report.exit_code)

    return report.exit_code


if __name__ == "__main__":
    args = _parse_args()
    try:
        sys.exit(asyncio.run(main(args)))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
