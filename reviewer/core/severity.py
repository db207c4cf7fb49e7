"""Severity classification from EPSS probability with CVSS fallback."""

from __future__ import annotations

import math
from typing import Any, Optional, Tuple

from reviewer.core.models import Metric, Severity

# (lower bound, severity), checked top-down.
EPSS_BANDS = (
    (0.5, Severity.CRITICAL),
    (0.3, Severity.HIGH),
    (0.1, Severity.MEDIUM),
)
CVSS_BANDS = (
    (9.0, Severity.CRITICAL),
    (7.0, Severity.HIGH),
    (4.0, Severity.MEDIUM),
)


def classify(probability: Any, base_score: Any) -> Tuple[Optional[Severity], Optional[Metric]]:
    """Classify a finding, preferring the exploit probability over the base score.

    Returns ``(None, None)`` only when neither value is a finite number.
    """

    epss = to_float(probability)
    if epss is not None:
        return _band(epss, EPSS_BANDS), Metric.EXPLOIT_FEED
    cvss = to_float(base_score)
    if cvss is not None:
        return _band(cvss, CVSS_BANDS), Metric.BASE_SCORE
    return None, None


def _band(value: float, bands: Tuple[Tuple[float, Severity], ...]) -> Severity:
    for lower, severity in bands:
        if value >= lower:
            return severity
    return Severity.LOW


def to_float(value: Any) -> Optional[float]:
    """Return *value* as a finite float, or None when it is not numeric."""

    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None
