"""Command-line front end for RaceGuard."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import DEFAULT_MUTEX_TYPES, AnalysisConfig
from .detector import analyze_program
from .errors import RaceGuardError
from .loader import load_program
from .program import FunctionRef, Program
from .report import format_analysis_report, result_to_json

logger = logging.getLogger("raceguard")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="raceguard",
        description="RaceGuard: static data race detector for lowered program IR",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  raceguard prog.json
  raceguard --root main --root 'main$1' prog.json
  raceguard --json results.json --ci-mode prog.json

Exit Codes:
  0: Success
  1: More races than --max-races (CI mode)
  3: Load or analysis error
""",
    )
    parser.add_argument("files", nargs="*", help="Program IR files (JSON) to analyze")
    parser.add_argument("--output", "-o", help="Output file for the report")
    parser.add_argument("--json", help="Output JSON report to file")
    parser.add_argument(
        "--package",
        action="append",
        dest="packages",
        help="Package to analyze (repeatable, default: all packages)",
    )
    parser.add_argument(
        "--entry", default="main", help="Entry point used to derive the root set"
    )
    parser.add_argument(
        "--root",
        action="append",
        dest="roots",
        help="Root function to scan, as 'package.name' or 'name' (repeatable)",
    )
    parser.add_argument(
        "--mutex-type",
        action="append",
        dest="mutex_types",
        help=f"Receiver type treated as a mutex (default: {', '.join(DEFAULT_MUTEX_TYPES)})",
    )
    parser.add_argument(
        "--ci-mode",
        action="store_true",
        help="Run in CI mode with non-zero exit on races",
    )
    parser.add_argument(
        "--max-races",
        type=int,
        default=0,
        help="Maximum allowed races (CI mode)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output and stack traces"
    )
    parser.add_argument(
        "--quiet", "-q", action="store_true", help="Suppress non-essential output"
    )
    parser.add_argument(
        "--version", action="version", version=f"RaceGuard {__version__}"
    )
    return parser


def configure_logging(debug: bool = False, quiet: bool = False) -> None:
    level = logging.INFO
    if debug:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logger.setLevel(level)


def build_config(args: argparse.Namespace, program: Program) -> AnalysisConfig:
    packages = frozenset(args.packages) if args.packages else None

    roots = None
    if args.roots:
        # Bare names resolve against the only package in play, if there is one
        candidates = sorted(packages) if packages else program.packages
        default_package = candidates[0] if len(candidates) == 1 else ""
        roots = tuple(FunctionRef.parse(root, default_package) for root in args.roots)

    options = {"packages": packages, "entry_point": args.entry, "roots": roots}
    if args.mutex_types:
        options["mutex_types"] = frozenset(args.mutex_types)
    return AnalysisConfig(**options)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the RaceGuard analyzer"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.files:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.debug, args.quiet)

    all_results = []
    total_races = 0

    for filepath in args.files:
        path = Path(filepath)
        if not args.quiet:
            print(f"Analyzing {path}...")

        try:
            program = load_program(path)
            result = analyze_program(program, build_config(args, program), str(path))
        except RaceGuardError as e:
            print(f"Error analyzing {path}: {e}", file=sys.stderr)
            if args.debug:
                import traceback

                traceback.print_exc()
            sys.exit(3)

        all_results.append((str(path), result))
        total_races += len(result.races)

        report = format_analysis_report(result, str(path))
        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(report)
            if not args.quiet:
                print(f"Report saved to {args.output}")
        else:
            print(report)

    if args.json:
        json_data = {
            "total_files": len(all_results),
            "total_races": total_races,
            "files": [result_to_json(result, source) for source, result in all_results],
        }
        with open(args.json, "w", encoding="utf-8") as f:
            json.dump(json_data, f, indent=2)
        if not args.quiet:
            print(f"JSON report saved to {args.json}")

    if args.ci_mode:
        if total_races > args.max_races:
            print(
                f"CI FAILURE: {total_races} potential data race(s) found "
                f"(max allowed: {args.max_races})"
            )
            sys.exit(1)
        print("CI PASSED: no data races above threshold")
        sys.exit(0)


if __name__ == "__main__":
    main()
