import json
from typing import Any, Dict, List, Optional

import pytest

from reviewer.core import aggregator, decision
from reviewer.core.config import ReviewConfig, Thresholds, Weights
from reviewer.core.errors import MalformedReportError
from reviewer.core.models import AggregateResult, EpssRecord, Outcome


def _vuln(cve: str, score: float, epss_details: Optional[Dict[str, float]] = None) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "title": f"Issue {cve}",
        "moduleName": "pkg",
        "version": "2.0.0",
        "identifiers": {"CVE": [cve]},
        "cvssSources": [{"baseScore": score}],
        "references": [],
    }
    if epss_details is not None:
        entry["epssDetails"] = epss_details
    return entry


def _encode(report: Dict[str, Any]) -> bytes:
    return json.dumps(report).encode("utf-8")


def _config(caps: Optional[Dict[str, Optional[int]]] = None, exploit: float = 0.7) -> ReviewConfig:
    thresholds = Thresholds(max_count_by_severity=caps or {"critical": None, "high": None, "medium": None, "low": None})
    return ReviewConfig(weights=Weights(exploit=exploit, base=1 - exploit), thresholds=thresholds)


def _result(tally: Dict[str, int]) -> AggregateResult:
    full = {"critical": 0, "high": 0, "medium": 0, "low": 0}
    full.update(tally)
    return AggregateResult(findings=(), tally=full, total_count=sum(full.values()), log_text="")


def test_weighted_score_combines_feed_and_report_probabilities():
    report = {
        "vulnerabilities": [
            _vuln("CVE-1", 9.8, {"probability": 0.2, "percentile": 0.8}),
            _vuln("CVE-2", 5.0),
        ]
    }
    feed = {"CVE-1": EpssRecord(0.6, 0.95)}
    result = aggregator.aggregate(report, fetch=lambda cve: feed.get(cve))
    review = decision.decide(_encode(report), result, _config())

    first, second = review.rows
    assert first.identifier == "CVE-1"
    assert first.feed_probability == 0.6
    assert first.primary_probability == 0.2
    assert first.primary_percentile == 0.8
    assert first.feed_percentile == 0.95
    assert first.weighted_score == pytest.approx(0.7 * 0.6 + 0.3 * 0.2)
    assert first.base_score == 9.8
    # No data from either source counts as zero risk.
    assert second.weighted_score == 0.0
    assert review.decision.average_score == pytest.approx((0.42 + 0.06) / 2)


def test_findings_without_identifier_are_not_scored():
    report = {"vulnerabilities": [{"title": "anon", "cvssSources": [{"baseScore": 9.0}]}]}
    result = aggregator.aggregate(report, fetch=lambda cve: None)
    review = decision.decide(_encode(report), result, _config())
    assert review.rows == ()
    assert review.decision.average_score == 0.0


@pytest.mark.parametrize("exploit", [0.0, 0.25, 0.7, 1.0])
@pytest.mark.parametrize("feed_p, own_p", [(0.0, 0.0), (1.0, 1.0), (0.3, 0.9), (1.0, 0.0)])
def test_weighted_score_stays_in_unit_interval(exploit, feed_p, own_p):
    score = decision.weighted_score(feed_p, own_p, _config(exploit=exploit))
    assert 0.0 <= score <= 1.0 + 1e-12


def test_empty_report_accepts_with_header_only_table():
    report = {"vulnerabilities": []}
    result = aggregator.aggregate(report, fetch=lambda cve: None)
    review = decision.decide(_encode(report), result, ReviewConfig())
    assert review.decision.outcome is Outcome.ACCEPT
    assert review.decision.reason is None
    assert review.decision.average_score == 0
    assert review.table.splitlines() == [" | ".join(decision.TABLE_HEADERS)]


def test_reject_when_high_count_exceeds_cap():
    verdict = decision.evaluate_rules(_result({"high": 3}).tally, 0.0, _config({"high": 2}))
    assert verdict.outcome is Outcome.REJECT
    assert "HIGH" in verdict.reason
    assert "3" in verdict.reason and "2" in verdict.reason
    assert verdict.reason == "too many HIGH vulnerabilities: 3 (max allowed 2)"


def test_first_violated_severity_wins():
    config = _config({"critical": 0, "high": 5, "medium": 1, "low": 0})
    verdict = decision.evaluate_rules(_result({"critical": 4, "high": 1, "medium": 2, "low": 9}).tally, 0.0, config)
    assert verdict.reason == "too many MEDIUM vulnerabilities: 2 (max allowed 1)"


def test_counts_at_cap_and_unbounded_caps_accept():
    config = _config({"critical": None, "high": 2, "medium": None, "low": None})
    verdict = decision.evaluate_rules(_result({"critical": 10, "high": 2, "medium": 50}).tally, 0.4, config)
    assert verdict.outcome is Outcome.ACCEPT
    assert verdict.average_score == 0.4


def test_malformed_primary_report_fails_on_reread():
    result = aggregator.aggregate({"vulnerabilities": []}, fetch=lambda cve: None)
    with pytest.raises(MalformedReportError):
        decision.decide(b"not json at all", result, ReviewConfig())


def test_table_columns_size_to_longest_cell():
    report = {"vulnerabilities": [_vuln("CVE-2024-1234567890123", 7.5), _vuln("CVE-9", 4.0)]}
    result = aggregator.aggregate(report, fetch=lambda cve: None)
    review = decision.decide(_encode(report), result, _config())
    lines: List[str] = review.table.splitlines()
    assert len(lines) == 3
    header, long_row, short_row = lines
    assert header.index("| Primary Percentile") == long_row.index("| 0.00000") == short_row.index("| 0.00000")
    assert long_row.rstrip().endswith("7.5")
    assert "0.000000" in short_row


def test_missing_base_score_renders_placeholder():
    report = {"vulnerabilities": [{"title": "x", "identifiers": {"CVE": ["CVE-77"]}}]}
    result = aggregator.aggregate(report, fetch=lambda cve: EpssRecord(0.2, 0.5))
    review = decision.decide(_encode(report), result, _config())
    assert review.rows[0].base_score is None
    assert review.table.splitlines()[1].endswith("-")


def test_report_text_sections():
    report = {"vulnerabilities": [_vuln("CVE-1", 7.5), _vuln("CVE-2", 8.0), _vuln("CVE-3", 7.1)]}
    result = aggregator.aggregate(report, fetch=lambda cve: None)
    config = _config({"high": 2})
    review = decision.decide(_encode(report), result, config)
    text = review.report
    assert text.startswith("=== PR Review Report ===")
    assert "Total vulnerabilities: 3" in text
    assert "Average vulnerability score: 0.000000" in text
    assert decision.METRIC_EXPLANATION in text
    assert "PR Decision: REJECT" in text
    assert "Reason: too many HIGH vulnerabilities: 3 (max allowed 2)" in text
    assert f"Average threshold: {config.thresholds.average_threshold}" in text
    assert text.rstrip().endswith(review.table.splitlines()[-1])
