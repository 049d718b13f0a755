"""
`differ` command line.

Commands
--------
differ validate CHANGES [--root DIR] [--quick] [--json]
differ apply    CHANGES [--root DIR] [--force] [--dry-run] [--json]
differ index    FILE [--language ID]
differ stats    [--last-n N] [--root DIR]

Exit codes: 0 success, 1 validation or apply failure, 2 usage error.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime
from typing import Optional

from .api import create_engine, run_changes
from .changes import ChangeDocumentError, check_structure, load_changes
from .config import Config
from .editing.metrics import read_apply_stats
from .editing.validation import ValidationSummary
from .workspace import WorkspacePathError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def setup_logger(log_dir: str = ".differ/logs", level: str = "INFO") -> logging.Logger:
    """Creates a file logger. All verbose output goes here."""
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"differ_{timestamp}.log")

    log = logging.getLogger("differ")
    log.setLevel(getattr(logging, level.upper(), logging.INFO))

    # One log file per process; a repeated call replaces the previous handler.
    for old in [h for h in log.handlers if isinstance(h, logging.FileHandler)]:
        log.removeHandler(old)
        old.close()

    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"
    ))
    log.addHandler(fh)
    return log


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------

def _print_summary(summary: ValidationSummary) -> None:
    status = "OK" if summary.overall_valid else "FAILED"
    print(
        f"Validation {status}: {summary.valid_count}/{summary.total} valid, "
        f"{summary.warning_count} with warnings, "
        f"{len(summary.files)} file(s), {summary.elapsed_ms:.0f} ms"
    )
    for r in summary.results:
        if r.valid and not r.warnings:
            continue
        mark = "!" if r.valid else "x"
        label = f"{r.request.action} {r.request.target}".strip()
        print(f"  [{mark}] #{r.index} {r.request.file}: {label}")
        for issue in r.errors:
            print(f"      error: {issue.message}")
            if issue.suggestion:
                print(f"        -> {issue.suggestion}")
        for issue in r.warnings:
            print(f"      warning: {issue.message}")
    for s in summary.suggestions:
        print(f"  * {s}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _cmd_validate(args: argparse.Namespace) -> int:
    document = load_changes(args.changes)
    structure = check_structure(document.changes)
    engine = create_engine(args.root, config=args.config)
    validator = engine.validator()
    if args.quick:
        summary = validator.quick_validate(document.changes)
    else:
        summary = validator.validate(document.changes)

    if args.json:
        data = summary.as_dict()
        data["structure"] = {"errors": structure.errors, "warnings": structure.warnings}
        print(json.dumps(data, indent=2))
    else:
        for msg in structure.errors:
            print(f"error: {msg}")
        for msg in structure.warnings:
            print(f"warning: {msg}")
        _print_summary(summary)

    return EXIT_OK if summary.overall_valid and structure.is_valid else EXIT_FAILED


def _cmd_apply(args: argparse.Namespace) -> int:
    document = load_changes(args.changes)
    engine = create_engine(args.root, config=args.config)
    outcome = run_changes(
        document,
        force=args.force,
        dry_run=args.dry_run,
        engine=engine,
    )

    if args.json:
        print(json.dumps({
            "success": outcome.success,
            "error": outcome.error,
            "validation": outcome.validation.as_dict() if outcome.validation else None,
            "batch": outcome.batch.as_dict() if outcome.batch else None,
        }, indent=2))
        return EXIT_OK if outcome.success else EXIT_FAILED

    if outcome.validation is not None and (
        outcome.batch is None or not outcome.validation.overall_valid
    ):
        _print_summary(outcome.validation)
    if outcome.batch is not None:
        for result in outcome.batch.results:
            if result.success:
                verb = "would patch" if args.dry_run else "patched"
                print(f"  {verb} {result.file} ({result.edits_applied} edit(s))")
            else:
                err = result.error
                print(f"  failed {result.file}: {err.message if err else 'unknown error'}")
                if err and err.suggestions:
                    print(f"    -> did you mean: {', '.join(err.suggestions)}")
    if outcome.error:
        print(f"error: {outcome.error}", file=sys.stderr)
    return EXIT_OK if outcome.success else EXIT_FAILED


def _cmd_index(args: argparse.Namespace) -> int:
    engine = create_engine(os.path.dirname(os.path.abspath(args.file)), config=args.config)
    try:
        with open(args.file, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as exc:
        print(f"error: cannot read {args.file}: {exc}", file=sys.stderr)
        return EXIT_USAGE

    if args.language:
        index = engine.source_index.build(text, args.language)
    else:
        index = engine.source_index.build_file(args.file, text)
    print(json.dumps(index.as_dict(), indent=2))
    return EXIT_OK if index.parse_ok else EXIT_FAILED


def _cmd_stats(args: argparse.Namespace) -> int:
    stats = read_apply_stats(
        last_n=args.last_n,
        project_root=os.path.abspath(args.root),
        metrics_dir=args.config.METRICS_DIR,
    )
    if stats["total_files"] == 0:
        print("No apply metrics found yet.")
        return EXIT_OK

    print(f"Apply stats (last {args.last_n} files)")
    print(f"  Files patched:   {stats['total_files']}")
    print(f"  Edits applied:   {stats['total_edits']}")
    print(f"  Success rate:    {stats['success_rate']:.0f}%")
    for kind, count in stats["error_kinds"].items():
        print(f"  {kind + ':':<17}{count}")
    for action, count in stats["actions"].items():
        print(f"  {action + ':':<17}{count}")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the `differ` argument parser."""
    parser = argparse.ArgumentParser(
        prog="differ",
        description="Locate and apply named code edits safely",
    )
    parser.add_argument("--config", dest="config_path", default=None,
                        help="Path to .differ.yaml")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Also log to stderr")
    subparsers = parser.add_subparsers(dest="cmd", metavar="COMMAND")
    subparsers.required = True

    # --- validate ---
    validate_p = subparsers.add_parser("validate", help="Check a change document")
    validate_p.add_argument("changes", help="JSON or YAML change document")
    validate_p.add_argument("--root", default=".", help="Project root (default: CWD)")
    validate_p.add_argument("--quick", action="store_true",
                            help="Skip target resolution")
    validate_p.add_argument("--json", action="store_true", help="Print JSON")
    validate_p.set_defaults(func=_cmd_validate)

    # --- apply ---
    apply_p = subparsers.add_parser("apply", help="Validate and apply a change document")
    apply_p.add_argument("changes", help="JSON or YAML change document")
    apply_p.add_argument("--root", default=".", help="Project root (default: CWD)")
    apply_p.add_argument("--force", action="store_true",
                         help="Apply even when validation fails")
    apply_p.add_argument("--dry-run", action="store_true",
                         help="Compute changes without writing files")
    apply_p.add_argument("--json", action="store_true", help="Print JSON")
    apply_p.set_defaults(func=_cmd_apply)

    # --- index ---
    index_p = subparsers.add_parser("index", help="Dump the structural index of a file")
    index_p.add_argument("file", help="Source file to index")
    index_p.add_argument("--language", default=None,
                         help="Language id (default: from the file extension)")
    index_p.set_defaults(func=_cmd_index)

    # --- stats ---
    stats_p = subparsers.add_parser("stats", help="Show apply metrics")
    stats_p.add_argument("--last-n", type=int, default=50,
                         help="Number of recent entries to include (default: 50)")
    stats_p.add_argument("--root", default=".", help="Project root (default: CWD)")
    stats_p.set_defaults(func=_cmd_stats)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the `differ` command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        args.config = Config.load(args.config_path)
    except ValueError as exc:
        print(f"error: invalid configuration: {exc}", file=sys.stderr)
        return EXIT_USAGE

    try:
        setup_logger(args.config.LOG_DIR, args.config.LOG_LEVEL)
    except OSError as exc:
        print(f"warning: cannot open log directory: {exc}", file=sys.stderr)
    if args.verbose and not logging.root.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(levelname)s  %(name)s  %(message)s",
        )

    try:
        return args.func(args)
    except ChangeDocumentError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except WorkspacePathError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
