"""Command-line interface for the PR vulnerability review."""

from __future__ import annotations

import argparse
import logging
import os
import pathlib
import sys
from typing import List

from reviewer.core import aggregator, config as review_config, decision, epss, report_reader, reporter
from reviewer.core.errors import ReviewError
from reviewer.runners import snyk


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Review a change's dependency vulnerabilities and accept or reject it")
    parser.add_argument("--path", type=pathlib.Path, default=None, help="Project path to review (defaults to $PR_PATH or .)")
    parser.add_argument("--report", type=pathlib.Path, default=None, help="Snyk JSON report (defaults to <path>/snyk-report.json)")
    parser.add_argument("--config", type=pathlib.Path, default=review_config.DEFAULT_CONFIG_PATH, help="Configuration file (JSON or YAML)")
    parser.add_argument("--mode", type=str.lower, choices=review_config.MODES, default=None, help="Threshold preset (defaults to $REVIEW_MODE)")
    parser.add_argument("--exploit-weight", type=float, default=None, help="Weight of the EPSS feed probability (0-1); the report weight becomes 1 - value")
    parser.add_argument("--save-config", action="store_true", help="Persist the effective configuration back to --config")
    parser.add_argument("--out-dir", type=pathlib.Path, default=None, help="Directory for report files (defaults to --path)")
    parser.add_argument("--json", type=pathlib.Path, default=None, help="Optional JSON summary output path")
    parser.add_argument("--skip-scan", action="store_true", help="Do not invoke snyk code test")
    parser.add_argument("--offline", action="store_true", help="Skip EPSS lookups and classify by CVSS only")
    parser.add_argument("--epss-url", default=epss.EPSS_API_URL, help="EPSS API endpoint")
    parser.add_argument("--timeout", type=float, default=epss.DEFAULT_TIMEOUT, help="Per-request EPSS timeout in seconds")
    parser.add_argument("--fail-on-reject", action="store_true", help="Exit with status 1 when the decision is REJECT")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return _run(args)
    except (ReviewError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


def _run(args: argparse.Namespace) -> int:
    project_path = args.path or pathlib.Path(os.environ.get("PR_PATH") or ".")
    report_path = args.report or project_path / "snyk-report.json"
    output_dir = args.out_dir or project_path

    config = _configure(args)

    if not args.skip_scan:
        print("Running scanner...")
        scan = snyk.run_code_test(str(project_path))
        scan_path = reporter.write_text(output_dir / reporter.SCAN_OUTPUT_NAME, scan.text)
        print(f"Snyk code test output saved to {scan_path}")

    if not report_path.exists():
        raise FileNotFoundError(f"Could not find {report_path.name} in {report_path.parent}")
    raw = report_path.read_bytes()
    parsed = report_reader.read_report(raw, source=str(report_path))

    fetch = epss.offline_fetcher if args.offline else epss.make_fetcher(args.epss_url, args.timeout)
    result = aggregator.aggregate(parsed, fetch=fetch)

    print("Comparing vulnerabilities...")
    review = decision.decide(raw, result, config)
    paths = reporter.write_reports(result, review, output_dir, json_path=args.json)

    outcome = review.decision
    print("")
    print("=== PR Review Summary ===")
    print(aggregator.format_tally(result.tally))
    print(f"Total vulnerabilities: {result.total_count}")
    print(f"PR Decision: {outcome.outcome.value}")
    if outcome.reason:
        print(f"Reason: {outcome.reason}")
    print(f"Average Vulnerability Score: {outcome.average_score:.6f}")
    print(f"EPSS report saved to {paths.log_path}")
    print(f"Plain text comparison table saved to {paths.table_path}")
    print(f"PR report saved to {paths.final_report_path}")
    if paths.json_path:
        print(f"JSON summary saved to {paths.json_path}")

    if args.fail_on_reject and outcome.rejected:
        return 1
    return 0


def _configure(args: argparse.Namespace) -> review_config.ReviewConfig:
    config = review_config.load_config(args.config)
    mode = args.mode or os.environ.get("REVIEW_MODE")
    if mode:
        print(f"Selected review mode: {mode.upper()}")
        config = review_config.apply_mode(config, mode)
    if args.exploit_weight is not None:
        config = review_config.with_exploit_weight(config, args.exploit_weight)
    if args.save_config:
        review_config.save_config(config, args.config)
    return config


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
