# main.py
"""CLI entry point for the FORGE artifact generation system."""

from __future__ import annotations

import argparse
import sys

from orchestration.cli_runner import run


def main() -> None:
    """Parse command-line arguments and run one FORGE request."""
    parser = argparse.ArgumentParser(
        description="Generate or modify React artifacts from a change request."
    )
    parser.add_argument("message", help="What to build or change")
    parser.add_argument(
        "--dir",
        default=None,
        help="Directory holding the existing artifacts (default: ARTIFACT_DIR)",
    )
    parser.add_argument(
        "--out",
        default=None,
        help="Directory to write results to (default: same as --dir)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level for this run (default: FORGE_LOG_LEVEL)",
    )
    args = parser.parse_args()
    sys.exit(run(args.message, args.dir, args.out, args.log_level))


if __name__ == "__main__":
    main()
