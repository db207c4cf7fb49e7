"""Weighted scoring of findings and the accept/reject gate."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

from reviewer.core.config import ReviewConfig
from reviewer.core.models import AggregateResult, Decision, Metric, Outcome, Review, ScoreRow
from reviewer.core.report_reader import read_report
from reviewer.runners import snyk as snyk_parser

_LOG = logging.getLogger(__name__)

# Checked in this order; the first violated cap decides.
GATED_SEVERITIES = ("high", "medium", "low")

TABLE_HEADERS = (
    "Identifier",
    "Primary Percentile",
    "Feed Percentile",
    "Primary Probability",
    "Feed Probability",
    "Weighted Score",
    "Base Score",
)

METRIC_EXPLANATION = (
    "The weighted score combines the EPSS probability fetched from the exploit feed with the "
    "probability embedded in the scanner report: weighted = exploit weight * feed probability "
    "+ base weight * report probability. Missing values count as zero. The average score is the "
    "mean weighted score over all findings that carry an identifier."
)


class Metrics(NamedTuple):
    probability: float = 0.0
    percentile: float = 0.0
    base_score: Optional[float] = None


def decide(primary_source: Union[bytes, str], result: AggregateResult, config: ReviewConfig) -> Review:
    """Score *result* against the primary report and render the decision.

    The primary report is decoded again from *primary_source*, so a malformed
    report fails here even if it was already aggregated.
    """

    primary = primary_lookup(read_report(primary_source))
    feed = feed_lookup(result)
    rows = build_rows(result, primary, feed, config)
    average = average_score(rows)
    decision = evaluate_rules(result.tally, average, config)
    table = render_table(rows)
    report = render_report(result, decision, config, table)
    _LOG.info("Decision %s (average %.6f)", decision.outcome.value, average)
    return Review(decision=decision, rows=tuple(rows), table=table, report=report)


def primary_lookup(report: Any) -> Dict[str, Metrics]:
    lookup: Dict[str, Metrics] = {}
    for entry in snyk_parser.parse(report):
        probability = entry.epss.probability if entry.epss else 0.0
        percentile = (entry.epss.percentile or 0.0) if entry.epss else 0.0
        for identifier in entry.identifiers:
            lookup.setdefault(identifier, Metrics(probability, percentile, entry.base_score))
    return lookup


def feed_lookup(result: AggregateResult) -> Dict[str, Metrics]:
    lookup: Dict[str, Metrics] = {}
    for finding in result.findings:
        if finding.identifier and finding.classification_metric is Metric.EXPLOIT_FEED:
            lookup[finding.identifier] = Metrics(
                finding.exploit_probability or 0.0,
                finding.exploit_percentile or 0.0,
                finding.base_severity_score,
            )
    return lookup


def build_rows(
    result: AggregateResult,
    primary: Mapping[str, Metrics],
    feed: Mapping[str, Metrics],
    config: ReviewConfig,
) -> List[ScoreRow]:
    rows: List[ScoreRow] = []
    for finding in result.findings:
        if not finding.identifier:
            continue
        own = primary.get(finding.identifier, Metrics())
        fetched = feed.get(finding.identifier, Metrics())
        base_score = own.base_score if own.base_score is not None else finding.base_severity_score
        rows.append(
            ScoreRow(
                identifier=finding.identifier,
                primary_percentile=own.percentile,
                feed_percentile=fetched.percentile,
                primary_probability=own.probability,
                feed_probability=fetched.probability,
                weighted_score=weighted_score(fetched.probability, own.probability, config),
                base_score=base_score,
            )
        )
    return rows


def weighted_score(feed_probability: float, primary_probability: float, config: ReviewConfig) -> float:
    return config.weights.exploit * feed_probability + config.weights.base * primary_probability


def average_score(rows: Sequence[ScoreRow]) -> float:
    if not rows:
        return 0.0
    return sum(row.weighted_score for row in rows) / len(rows)


def evaluate_rules(tally: Mapping[str, int], average: float, config: ReviewConfig) -> Decision:
    caps = config.thresholds.max_count_by_severity
    for level in GATED_SEVERITIES:
        cap = caps.get(level)
        count = tally.get(level, 0)
        if cap is not None and count > cap:
            reason = f"too many {level.upper()} vulnerabilities: {count} (max allowed {cap})"
            return Decision(outcome=Outcome.REJECT, reason=reason, average_score=average)
    return Decision(outcome=Outcome.ACCEPT, reason=None, average_score=average)


def render_table(rows: Iterable[ScoreRow]) -> str:
    cells: List[Tuple[str, ...]] = [TABLE_HEADERS]
    for row in rows:
        cells.append(
            (
                row.identifier,
                f"{row.primary_percentile:.5f}",
                f"{row.feed_percentile:.5f}",
                f"{row.primary_probability:.5f}",
                f"{row.feed_probability:.5f}",
                f"{row.weighted_score:.6f}",
                "-" if row.base_score is None else f"{row.base_score:.1f}",
            )
        )
    widths = [max(len(line[index]) for line in cells) for index in range(len(TABLE_HEADERS))]
    lines = [" | ".join(cell.ljust(width) for cell, width in zip(line, widths)).rstrip() for line in cells]
    return "\n".join(lines)


def render_report(result: AggregateResult, decision: Decision, config: ReviewConfig, table: str) -> str:
    lines = [
        "=== PR Review Report ===",
        "",
        f"Total vulnerabilities: {result.total_count}",
        f"Average vulnerability score: {decision.average_score:.6f}",
        "",
        METRIC_EXPLANATION,
        "",
        f"PR Decision: {decision.outcome.value}",
        f"Reason: {decision.reason or 'N/A'}",
        f"Average threshold: {config.thresholds.average_threshold}",
        "",
        table,
    ]
    return "\n".join(lines) + "\n"
