"""Deduplicate, enrich and classify findings from a Snyk report."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Set

from reviewer.core.epss import Fetcher, fetch_epss
from reviewer.core.models import AggregateResult, EpssRecord, Finding, Metric, VulnerabilityEntry, empty_tally
from reviewer.core.severity import classify
from reviewer.runners import snyk as snyk_parser

_LOG = logging.getLogger(__name__)

SEPARATOR = "-" * 48


def aggregate(report: Any, fetch: Fetcher = fetch_epss) -> AggregateResult:
    """Aggregate the findings of a parsed Snyk report.

    Entries are walked in report order and expanded to one finding per CVE.
    The first occurrence of a CVE wins; later entries with the same CVE are
    dropped. Entries without a CVE always produce their own finding and are
    never enriched. Lookups go through *fetch* one identifier at a time.
    """

    entries = snyk_parser.parse(report)
    seen: Set[str] = set()
    findings: List[Finding] = []
    tally = empty_tally()
    blocks: List[str] = []

    for entry in entries:
        targets: List[Optional[str]] = list(entry.identifiers) or [None]
        for identifier in targets:
            if identifier:
                if identifier in seen:
                    _LOG.debug("Skipping duplicate %s from %s", identifier, entry.module_name)
                    continue
                seen.add(identifier)
            record = fetch(identifier) if identifier else None
            finding = _build_finding(entry, identifier, record)
            if finding.severity is not None:
                tally[finding.severity.value] += 1
            block = format_finding(finding)
            _LOG.debug("%s", block)
            blocks.append(block)
            findings.append(finding)

    summary = format_tally(tally)
    _LOG.info("%s", summary)
    blocks.append(summary)
    return AggregateResult(
        findings=tuple(findings),
        tally=tally,
        total_count=len(findings),
        log_text="\n".join(blocks) + "\n",
    )


def _build_finding(entry: VulnerabilityEntry, identifier: Optional[str], record: Optional[EpssRecord]) -> Finding:
    probability = record.probability if record else None
    severity, metric = classify(probability, entry.base_score)
    return Finding(
        identifier=identifier,
        package_name=entry.module_name,
        package_version=entry.version,
        title=entry.title,
        base_severity_score=entry.base_score,
        exploit_probability=probability,
        exploit_percentile=record.percentile if record else None,
        severity=severity,
        classification_metric=metric,
        references=entry.references,
    )


def format_finding(finding: Finding) -> str:
    tag = finding.severity.value.upper() if finding.severity else "UNCLASSIFIED"
    lines = [
        f"x [{tag}] {finding.title}",
        f"   Package: {finding.package_name} ({finding.package_version})",
        f"   CVE: {finding.identifier or 'N/A'}",
    ]
    if finding.classification_metric is Metric.EXPLOIT_FEED:
        lines.append(
            f"   EPSS Score: {_number(finding.exploit_probability)} | Percentile: {_number(finding.exploit_percentile)}"
        )
        lines.append(f"   CVSS Score: {_number(finding.base_severity_score)}")
    else:
        severity = finding.severity.value if finding.severity else "N/A"
        lines.append(f"   CVSS Score: {_number(finding.base_severity_score)} -> Severity: {severity}")
    lines.append(f"   Reference: {finding.references[0] if finding.references else 'No reference'}")
    lines.append(f"   {SEPARATOR}")
    return "\n".join(lines)


def format_tally(tally: Dict[str, int]) -> str:
    return "\n".join(
        [
            "Severity counts:",
            f"  Critical: {tally.get('critical', 0)}",
            f"  High:     {tally.get('high', 0)}",
            f"  Medium:   {tally.get('medium', 0)}",
            f"  Low:      {tally.get('low', 0)}",
        ]
    )


def _number(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:g}"
