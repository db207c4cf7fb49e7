"""Report file writing."""

from __future__ import annotations

import datetime as dt
import json
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, Optional

from reviewer.core.models import AggregateResult, Review

ENRICHMENT_LOG_NAME = "epss-report.txt"
TABLE_NAME = "epss-plain-table.txt"
FINAL_REPORT_NAME = "final-report.txt"
SCAN_OUTPUT_NAME = "snyk-code-report.txt"


@dataclass
class ReportPaths:
    log_path: pathlib.Path
    table_path: pathlib.Path
    final_report_path: pathlib.Path
    json_path: pathlib.Path | None = None


def build_summary(result: AggregateResult, review: Review) -> Dict[str, Any]:
    decision = review.decision
    summary: Dict[str, Any] = {
        "generated_at": dt.datetime.now(dt.timezone.utc).isoformat(),
        "total": result.total_count,
        "decision": decision.outcome.value,
        "reason": decision.reason,
        "average_score": decision.average_score,
        "findings": [finding.to_dict() for finding in result.findings],
        "scores": [
            {
                "identifier": row.identifier,
                "weighted_score": row.weighted_score,
                "feed_probability": row.feed_probability,
                "primary_probability": row.primary_probability,
                "base_score": row.base_score,
            }
            for row in review.rows
        ],
    }
    summary.update(result.tally)
    return summary


def write_reports(
    result: AggregateResult,
    review: Review,
    output_dir: pathlib.Path,
    json_path: Optional[pathlib.Path] = None,
) -> ReportPaths:
    """Write the enrichment log, comparison table and final report, replacing earlier runs."""

    output_dir.mkdir(parents=True, exist_ok=True)
    paths = ReportPaths(
        log_path=output_dir / ENRICHMENT_LOG_NAME,
        table_path=output_dir / TABLE_NAME,
        final_report_path=output_dir / FINAL_REPORT_NAME,
    )
    write_text(paths.log_path, result.log_text)
    write_text(paths.table_path, review.table + "\n")
    write_text(paths.final_report_path, review.report)
    if json_path:
        write_text(json_path, json.dumps(build_summary(result, review), indent=2, sort_keys=True))
        paths.json_path = json_path
    return paths


def write_text(path: pathlib.Path, text: str) -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
