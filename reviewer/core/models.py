"""Data model shared by the aggregation and decision stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class Severity(str, Enum):
    """Severity levels, most severe first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Metric(str, Enum):
    """Which scoring source produced a finding's severity."""

    EXPLOIT_FEED = "EXPLOIT_FEED"
    BASE_SCORE = "BASE_SCORE"


class Outcome(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"


SEVERITY_LEVELS: Tuple[str, ...] = tuple(level.value for level in Severity)


def empty_tally() -> Dict[str, int]:
    return {level: 0 for level in SEVERITY_LEVELS}


@dataclass(frozen=True)
class EpssRecord:
    """Exploit probability and percentile for a single identifier."""

    probability: float
    percentile: Optional[float] = None


@dataclass(frozen=True)
class VulnerabilityEntry:
    """Validated view of one item from the primary scanner report."""

    title: str
    module_name: str
    version: str
    identifiers: Tuple[str, ...]
    base_score: Optional[float]
    references: Tuple[str, ...] = ()
    epss: Optional[EpssRecord] = None


@dataclass(frozen=True)
class Finding:
    """A single deduplicated vulnerability tied to at most one identifier."""

    identifier: Optional[str]
    package_name: str
    package_version: str
    title: str
    base_severity_score: Optional[float]
    exploit_probability: Optional[float]
    exploit_percentile: Optional[float]
    severity: Optional[Severity]
    classification_metric: Optional[Metric]
    references: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return {
            "identifier": self.identifier,
            "packageName": self.package_name,
            "packageVersion": self.package_version,
            "title": self.title,
            "baseSeverityScore": self.base_severity_score,
            "exploitProbability": self.exploit_probability,
            "exploitPercentile": self.exploit_percentile,
            "severity": self.severity.value if self.severity else None,
            "classificationMetric": self.classification_metric.value if self.classification_metric else None,
            "references": list(self.references),
        }


@dataclass(frozen=True)
class AggregateResult:
    findings: Tuple[Finding, ...]
    tally: Dict[str, int]
    total_count: int
    log_text: str


@dataclass(frozen=True)
class ScoreRow:
    """One row of the primary/feed comparison table."""

    identifier: str
    primary_percentile: float
    feed_percentile: float
    primary_probability: float
    feed_probability: float
    weighted_score: float
    base_score: Optional[float] = None


@dataclass(frozen=True)
class Decision:
    outcome: Outcome
    reason: Optional[str]
    average_score: float

    @property
    def rejected(self) -> bool:
        return self.outcome is Outcome.REJECT


@dataclass(frozen=True)
class Review:
    """Everything produced by one comparison run."""

    decision: Decision
    rows: Tuple[ScoreRow, ...] = field(default_factory=tuple)
    table: str = ""
    report: str = ""
