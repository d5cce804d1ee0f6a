"""Write the booking settings template.

An existing settings file is merged into the template, its values winning, so
re-running after an upgrade only adds the new keys.

Run with: python scripts/generate_settings.py
Other:    python scripts/generate_settings.py settings/other_settings.json
"""

import argparse
import os
import sys

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.footbooker.config import DEFAULT_SETTINGS_PATH, generate_settings  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Write the booking settings template.")
    parser.add_argument(
        "settings",
        nargs="?",
        default=DEFAULT_SETTINGS_PATH,
        help=f"Settings JSON file (default: {DEFAULT_SETTINGS_PATH}).",
    )
    return parser.parse_args()


if __name__ == "__main__":
    args = _parse_args()
    try:
        path = generate_settings(args.settings)
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Settings written to {path}")
