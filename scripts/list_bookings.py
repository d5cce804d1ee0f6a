"""List the bookings currently held by the configured account.

Handy after a run that logged cancel_failed_manual_intervention: both the old
and the new booking show up here until one is cancelled by hand.

Run with: python scripts/list_bookings.py
JSON:     python scripts/list_bookings.py --json

Exit codes:
  0 = success (table or JSON on stdout)
  1 = error (message on stderr)
"""

import argparse
import json
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.footbooker.config import DEFAULT_SETTINGS_PATH, load_config  # noqa: E402
from src.footbooker.logging import setup_logging  # noqa: E402
from src.footbooker.models import Booking  # noqa: E402
from src.footbooker.runner import build_client  # noqa: E402
from src.footbooker.slots import to_local_display  # noqa: E402


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="List bookings held on the facility reservation site.",
    )
    parser.add_argument(
        "settings",
        nargs="?",
        default=DEFAULT_SETTINGS_PATH,
        help=f"Settings JSON file (default: {DEFAULT_SETTINGS_PATH}).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output JSON instead of a table.",
    )
    return parser.parse_args()


def _format_table(bookings: list[Booking]) -> str:
    """Format bookings as a human-readable table.

    Columns: Start | Activity | Description | Guid
    """
    if not bookings:
        return "(no bookings)"

    headers = ["Start", "Activity", "Description", "Guid"]
    rows = [
        [
            to_local_display(b.start_time),
            b.activity_name or "-",
            b.description or "-",
            b.guid,
        ]
        for b in sorted(bookings, key=lambda b: b.start_time)
    ]

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [
        " | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) for row in rows
    ]
    return "\n".join([header_line, separator, *row_lines])


def main(args: argparse.Namespace) -> None:
    config = load_config(args.settings)
    # Diagnostics only; stdout stays clean for the listing
    setup_logging(config.log_json, "WARNING", config.log_file)

    with build_client(config) as client:
        client.authenticate(config.credentials)
        bookings = client.list_my_bookings()

    if args.json:
        print(json.dumps([b.model_dump(mode="json") for b in bookings], indent=2))
    else:
        print(_format_table(bookings))


if __name__ == "__main__":
    args = _parse_args()
    try:
        main(args)
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
