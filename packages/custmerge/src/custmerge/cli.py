"""CLI tool for customer duplicate detection and merge-rule validation."""

import argparse
import sys

import pandas as pd
import structlog

from custmerge.config import MatchConfig, load_config
from custmerge.errors import ConfigError, EmptyNameError
from custmerge.evaluation import evaluate, load_labeled_pairs
from custmerge.io import (
    groups_frame,
    read_names,
    read_rejections,
    read_rules,
    validation_frame,
    write_groups,
    write_validation,
)
from custmerge.logging import configure_logging
from custmerge.normalize import prepare_name
from custmerge.scanner import MergeScanner, MergeService
from custmerge.store import JsonMergeStore
from custmerge.types import ScanStats
from custmerge.validation import RuleValidator


def _build_config(args: argparse.Namespace) -> MatchConfig:
    """Build a MatchConfig from the --config file and CLI overrides."""
    log = structlog.get_logger()
    config = load_config(args.config)

    threshold = getattr(args, "threshold", None)
    if threshold is not None:
        config.thresholds.min_confidence = threshold
    workers = getattr(args, "workers", None)
    if workers is not None:
        config.blocking.max_workers = workers
    max_pairs = getattr(args, "max_pairs", None)
    if max_pairs is not None:
        config.budget.max_pairs = max_pairs
    max_seconds = getattr(args, "max_seconds", None)
    if max_seconds is not None:
        config.budget.max_seconds = max_seconds
    if getattr(args, "strip_address", False):
        config.normalization.strip_address_noise = True
    if getattr(args, "strip_locations", False):
        config.normalization.strip_locations = True

    config.validate()
    log.info(
        "config_ready",
        config_file=args.config,
        min_confidence=config.thresholds.min_confidence,
        max_workers=config.blocking.max_workers,
    )
    return config


def cmd_scan(args: argparse.Namespace) -> None:
    log = structlog.get_logger()
    config = _build_config(args)

    names = read_names(args.names, name_column=args.column)
    rules = read_rules(args.rules) if args.rules else []
    rejected = read_rejections(args.rejections) if args.rejections else set()
    log.info("files_loaded", names=len(names), rules=len(rules), rejections=len(rejected))

    scanner = MergeScanner(config)
    result = scanner.scan(names, rules, rejected)

    df_out = groups_frame(result.groups)
    if args.show:
        _show_groups(df_out)
    _print_stats(result.stats)
    if result.truncated:
        print("WARNING: scan budget exhausted, results are partial")

    write_groups(result.groups, args.output)
    print(f"\nSaved to: {args.output}")


def cmd_validate(args: argparse.Namespace) -> None:
    config = _build_config(args)

    names = read_names(args.names, name_column=args.column)
    rules = read_rules(args.rules)

    results = RuleValidator(config).validate_rules(rules, names)
    df_out = validation_frame(results)

    if args.show and not df_out.empty:
        print(df_out[["rule_name", "status", "missing", "replacements"]].to_string(index=False))
    _print_validation_summary(df_out)

    write_validation(results, args.output)
    print(f"\nSaved to: {args.output}")


def cmd_evaluate(args: argparse.Namespace) -> None:
    config = _build_config(args)
    pairs = load_labeled_pairs(args.pairs)
    metrics = evaluate(pairs, config)

    print(f"Pairs: {metrics.total_pairs} (threshold {config.thresholds.min_confidence:.2f})")
    print(f"Precision: {metrics.precision:.3f}")
    print(f"Recall:    {metrics.recall:.3f}")
    print(f"F1:        {metrics.f1:.3f}")
    print(f"Accuracy:  {metrics.accuracy:.3f}")
    print(
        f"TP={metrics.true_positives} FP={metrics.false_positives} "
        f"FN={metrics.false_negatives} TN={metrics.true_negatives} errors={metrics.errors}"
    )
    if metrics.fp_reasons:
        print("False positive penalties: " + ", ".join(
            f"{k}={v}" for k, v in sorted(metrics.fp_reasons.items())
        ))

    if args.show_errors:
        wrong = pd.DataFrame([
            {
                "name_1": c.pair.name_1,
                "name_2": c.pair.name_2,
                "expected": c.pair.expected_match,
                "score": round(c.score, 4),
                "adjustments": ", ".join(c.adjustments),
            }
            for c in metrics.cases
            if not c.correct
        ])
        if wrong.empty:
            print("\n=== No misclassified pairs ===")
        else:
            print(f"\n=== Misclassified ({len(wrong)}) ===")
            print(wrong.to_string(index=False))


def cmd_clean(args: argparse.Namespace) -> None:
    """Show the normalized, suffix-stripped and core-brand forms of names."""
    config = _build_config(args)
    names = read_names(args.names, name_column=args.column)

    rows = []
    for name in names:
        try:
            prepared = prepare_name(name, config=config.normalization)
        except EmptyNameError:
            rows.append({"original": name, "normalized": "", "suffix_stripped": "", "core_brand": ""})
            continue
        rows.append({
            "original": name,
            "normalized": prepared.normalized,
            "suffix_stripped": prepared.suffix_stripped,
            "core_brand": prepared.core_brand,
        })
    df = pd.DataFrame(rows, columns=["original", "normalized", "suffix_stripped", "core_brand"])

    if args.filter:
        search = args.filter.lower()
        mask = df.apply(lambda row: any(search in str(val).lower() for val in row), axis=1)
        df = df[mask]
        print(f"=== Names matching '{args.filter}' ({len(df)} results) ===")
        print(df.to_string(index=False) if not df.empty else "  No matches found.")
    elif args.output:
        df.to_excel(args.output, index=False)
        print(f"Cleaned {len(df)} names -> {args.output}")
    else:
        print(df.to_string(index=False))


def cmd_run(args: argparse.Namespace) -> None:
    """Scan one division in a JSON store, publish suggestions, validate its rules."""
    config = _build_config(args)
    store = JsonMergeStore(args.store)
    service = MergeService(store, store, config)

    result = service.scan_division(args.division, persist=not args.dry_run)
    _print_stats(result.stats)

    results = service.validate_division(args.division, persist=not args.dry_run)
    _print_validation_summary(validation_frame(results))
    if args.dry_run:
        print("\nDry run: nothing written")


def _show_groups(df: pd.DataFrame) -> None:
    if df.empty:
        print("\n=== No duplicate groups found ===")
        return
    print(f"\n=== Groups ({len(df)}) ===")
    print(df.to_string(index=False))


def _print_stats(stats: ScanStats) -> None:
    print("\n--- Statistics ---")
    print(f"Names: {stats.name_count}")
    if stats.rejected_names or stats.duplicate_names:
        print(f"Rejected (empty): {stats.rejected_names}, duplicates dropped: {stats.duplicate_names}")
    if stats.blocking_active:
        print(f"Blocking: {stats.block_count} blocks")
    print(f"Comparisons: {stats.comparisons} (cache hits: {stats.cache_hits})")
    if stats.rejected_pairs_skipped:
        print(f"Rejected pairs skipped: {stats.rejected_pairs_skipped}")
    if stats.filtered_existing:
        print(f"Groups already covered by rules: {stats.filtered_existing}")
    if stats.filtered_low_confidence:
        print(f"Groups below threshold dropped: {stats.filtered_low_confidence}")
    print(f"Groups: {stats.groups}")
    print(f"Elapsed: {stats.elapsed_seconds:.2f}s")


def _print_validation_summary(df: pd.DataFrame) -> None:
    counts = df["status"].value_counts() if not df.empty else pd.Series(dtype=int)
    parts = [f"{status}={int(counts.get(status, 0))}" for status in ("VALID", "NEEDS_UPDATE", "ORPHANED")]
    if counts.get("ERROR", 0):
        parts.append(f"ERROR={int(counts['ERROR'])}")
    print(f"\nRules: {', '.join(parts)}")


def _add_global_options(parser: argparse.ArgumentParser, suppress: bool = False) -> None:
    """Options accepted both before and after the subcommand.

    With ``suppress`` the subcommand copy sets no defaults, so a flag given
    before the subcommand is not reset by it.
    """
    def default(value):
        return argparse.SUPPRESS if suppress else value

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=default("INFO"),
        help="Set logging level (default: INFO)",
    )
    parser.add_argument("--json-logs", action="store_true", default=default(False), help="Emit logs as JSON lines")
    parser.add_argument("--config", default=default(None), help="JSON file with config overrides")
    parser.add_argument("--threshold", type=float, default=default(None), help="Minimum confidence (default: 0.65)")
    parser.add_argument(
        "--strip-address", action="store_true", default=default(False), help="Strip PO boxes, shop numbers, phones"
    )
    parser.add_argument(
        "--strip-locations", action="store_true", default=default(False), help="Strip emirate/location words"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Customer duplicate detection CLI")
    _add_global_options(parser)

    # Inherited by all subcommands
    parent_parser = argparse.ArgumentParser(add_help=False)
    _add_global_options(parent_parser, suppress=True)

    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", parents=[parent_parser], help="Find duplicate customer names")
    scan_parser.add_argument("names", help="Names file (CSV, JSONL, XLSX or TXT)")
    scan_parser.add_argument("--column", default="name", help="Name column (default: name)")
    scan_parser.add_argument("--rules", help="Active merge rules JSON (covered names are skipped)")
    scan_parser.add_argument("--rejections", help="Rejected pairs JSON")
    scan_parser.add_argument("--workers", type=int, help="Threads for block scoring")
    scan_parser.add_argument("--max-pairs", type=int, help="Stop after this many comparisons")
    scan_parser.add_argument("--max-seconds", type=float, help="Stop after this many seconds")
    scan_parser.add_argument("--show", action="store_true", help="Display groups on screen")
    scan_parser.add_argument("--output", default="merge_suggestions.xlsx", help="Output file path")
    scan_parser.set_defaults(func=cmd_scan)

    validate_parser = subparsers.add_parser("validate", parents=[parent_parser], help="Validate merge rules")
    validate_parser.add_argument("rules", help="Merge rules JSON")
    validate_parser.add_argument("names", help="Fresh names file (CSV, JSONL, XLSX or TXT)")
    validate_parser.add_argument("--column", default="name", help="Name column (default: name)")
    validate_parser.add_argument("--show", action="store_true", help="Display results on screen")
    validate_parser.add_argument("--output", default="rule_validation.xlsx", help="Output file path")
    validate_parser.set_defaults(func=cmd_validate)

    evaluate_parser = subparsers.add_parser("evaluate", parents=[parent_parser], help="Score labeled pairs")
    evaluate_parser.add_argument("pairs", help="CSV with name_1,name_2,expected_match")
    evaluate_parser.add_argument("--show-errors", action="store_true", help="List misclassified pairs")
    evaluate_parser.set_defaults(func=cmd_evaluate)

    clean_parser = subparsers.add_parser("clean", parents=[parent_parser], help="Show normalized name forms")
    clean_parser.add_argument("names", help="Names file (CSV, JSONL, XLSX or TXT)")
    clean_parser.add_argument("--column", default="name", help="Name column (default: name)")
    clean_parser.add_argument("--output", help="Write the table to this XLSX file")
    clean_parser.add_argument("--filter", "-f", help="Filter and display names matching this string (case-insensitive)")
    clean_parser.set_defaults(func=cmd_clean)

    run_parser = subparsers.add_parser("run", parents=[parent_parser], help="Scan and validate one division")
    run_parser.add_argument("division", help="Division key, e.g. FP-UAE")
    run_parser.add_argument("--store", default="localdata", help="JSON store directory")
    run_parser.add_argument("--workers", type=int, help="Threads for block scoring")
    run_parser.add_argument("--dry-run", action="store_true", help="Compute without writing")
    run_parser.set_defaults(func=cmd_run)

    return parser


def main() -> None:
    args = build_parser().parse_args()
    configure_logging(args.log_level, json_logs=args.json_logs)
    try:
        args.func(args)
    except ConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
