"""CLI entry point for the claims decisioning pipeline.

Subcommands
-----------
run          Process JSON claim files through the full pipeline.
show-config  Print the effective configuration (defaults < YAML < env < flags).

Examples
--------
  # Single claim
  python -m claims_decisioning.pipeline run --claim-file claims/CLM-1001.json

  # Batch, four claims at a time
  python -m claims_decisioning.pipeline run --claims-dir claims/ --parallel 4

  # Replay deadlines as of a fixed date
  python -m claims_decisioning.pipeline run --claims-dir claims/ --as-of 2024-03-01T00:00:00Z

  # Inspect configuration
  python -m claims_decisioning.pipeline show-config --config claims.yaml
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

import yaml

from claims_decisioning.config import load_config
from claims_decisioning.exceptions import ConfigurationError
from claims_decisioning.logging_config import configure_logging
from claims_decisioning.pipeline.orchestrator import ClaimsOrchestrator
from claims_decisioning.serialization import to_serializable

# ---------------------------------------------------------------------------
# Subcommand: run
# ---------------------------------------------------------------------------


def _parse_as_of(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid ISO timestamp: {value}") from e


def _add_run_parser(subparsers) -> None:
    run_parser = subparsers.add_parser(
        "run",
        help="Process claim files through the full pipeline.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="Run the claims decisioning pipeline on one or more JSON claim files.",
    )
    run_parser.add_argument("--claim-file", type=str, help="Path to a single JSON claim file")
    run_parser.add_argument("--claims-dir", type=str, help="Directory containing JSON claim files")
    run_parser.add_argument("--output-dir", type=str, default="results", help="Output directory")
    run_parser.add_argument("--config", type=str, help="Path to YAML config file")
    run_parser.add_argument("--parallel", type=int, help="Number of claims processed concurrently")
    run_parser.add_argument("--as-of", type=_parse_as_of, help="Evaluation time for deadlines (ISO 8601)")
    run_parser.add_argument("--audit-log", type=str, help="Append audit entries to this JSONL file")
    run_parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level")
    run_parser.add_argument("--no-save", action="store_true", help="Do not write result files")
    run_parser.set_defaults(func=_cmd_run)


def _cmd_run(args: argparse.Namespace) -> int:
    if not args.claim_file and not args.claims_dir:
        print("ERROR: Either --claim-file or --claims-dir must be specified", file=sys.stderr)
        return 2

    override_dict: dict = {"output_dir": args.output_dir, "save_results": not args.no_save}
    if args.parallel:
        override_dict["parallel_workers"] = args.parallel
    if args.log_level:
        override_dict["log_level"] = args.log_level
    if args.audit_log:
        override_dict["audit_log_path"] = args.audit_log

    try:
        config = load_config(yaml_path=args.config, override_dict=override_dict)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    configure_logging(level=config.log_level, json_output=config.log_json, log_file=config.log_file)

    if args.claim_file:
        claim_paths = [Path(args.claim_file)]
    else:
        claim_paths = sorted(Path(args.claims_dir).glob("*.json"))

    if not claim_paths:
        print("No claim files found!", file=sys.stderr)
        return 1

    orchestrator = ClaimsOrchestrator(config)
    results = orchestrator.process_batch(claim_paths, as_of=args.as_of)

    print(f"\n{'CLAIM':<24} {'DECISION':<16} {'CONF':>6}  REASON")
    for r in results:
        d = r.decision
        print(f"{d.claim_id:<24} {d.decision.value:<16} {d.confidence:>6.2f}  {d.reason}")

    failed_count = sum(1 for r in results if r.state.error is not None)
    if failed_count > 0:
        print(f"\nWarning: {failed_count} claims failed to process and were escalated")
        return 1
    return 0


# ---------------------------------------------------------------------------
# Subcommand: show-config
# ---------------------------------------------------------------------------


def _add_show_config_parser(subparsers) -> None:
    show_parser = subparsers.add_parser("show-config", help="Print the effective configuration as YAML.")
    show_parser.add_argument("--config", type=str, help="Path to YAML config file")
    show_parser.set_defaults(func=_cmd_show_config)


def _cmd_show_config(args: argparse.Namespace) -> int:
    try:
        config = load_config(yaml_path=args.config)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    print(yaml.safe_dump(to_serializable(asdict(config)), sort_keys=False), end="")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Claims Decisioning - Seven-Phase Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    subparsers = parser.add_subparsers(dest="subcommand", metavar="SUBCOMMAND")
    subparsers.required = True

    _add_run_parser(subparsers)
    _add_show_config_parser(subparsers)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
