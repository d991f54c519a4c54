"""
Entry point for the conjoint pricing CLI.

Usage:
    python main.py analyze survey.xlsx                       # Default study config
    python main.py analyze survey.csv --config path/to.yaml  # Custom config
    python main.py analyze survey.xlsx --output-dir ./out    # Save JSON/CSV report
    python main.py analyze survey.xlsx --workers 4           # Parallel respondents
    python main.py simulate --price-high -1.5 --brand 0.8    # What-if price sweep
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.logging import RichHandler

from tvconjoint.models import AttributeKey

DEFAULT_CONFIG = Path(__file__).parent / "configs" / "tv_study.yaml"


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Conjoint pricing: part-worths, importance, WTP and price optimization",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging verbosity (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ── Subcommand: analyze ─────────────────────────────────────────
    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a survey export (CSV or Excel)",
    )
    analyze_parser.add_argument("survey", type=Path, help="Path to the survey file")
    analyze_parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Path to YAML study config (default: {DEFAULT_CONFIG})",
    )
    analyze_parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory to save the JSON/CSV report (default: do not save)",
    )
    analyze_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker processes for per-respondent analysis (default: run in-process)",
    )

    # ── Subcommand: simulate ────────────────────────────────────────
    simulate_parser = subparsers.add_parser(
        "simulate",
        help="Price sweep for hand-entered part-worths",
    )
    simulate_parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Path to YAML study config (default: {DEFAULT_CONFIG})",
    )
    simulate_parser.add_argument("--intercept", type=float, default=0.0)
    for key in AttributeKey:
        simulate_parser.add_argument(
            f"--{key.value.replace('_', '-')}",
            dest=key.value,
            type=float,
            default=0.0,
            help=f"Part-worth of {key.label} (default: 0)",
        )

    args = parser.parse_args()
    _setup_logging(args.log_level)

    if not args.config.exists():
        print(f"Error: config file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    if args.command == "analyze":
        from cli.analyze import run_analyze
        code = run_analyze(
            args.survey,
            config_path=args.config,
            output_dir=args.output_dir,
            workers=args.workers,
        )
    else:
        from cli.simulate import run_simulate
        code = run_simulate(
            {key: getattr(args, key.value) for key in AttributeKey},
            intercept=args.intercept,
            config_path=args.config,
        )
    sys.exit(code)


if __name__ == "__main__":
    main()
