import math

import pytest

from reviewer.core.models import Metric, Severity
from reviewer.core.severity import classify


@pytest.mark.parametrize(
    "probability, expected",
    [
        (0.5, Severity.CRITICAL),
        (0.49, Severity.HIGH),
        (0.3, Severity.HIGH),
        (0.29, Severity.MEDIUM),
        (0.1, Severity.MEDIUM),
        (0.09, Severity.LOW),
        (0.0, Severity.LOW),
    ],
)
def test_epss_boundaries(probability, expected):
    assert classify(probability, 9.8) == (expected, Metric.EXPLOIT_FEED)


@pytest.mark.parametrize(
    "score, expected",
    [
        (9.0, Severity.CRITICAL),
        (8.0, Severity.HIGH),
        (7.0, Severity.HIGH),
        (6.0, Severity.MEDIUM),
        (4.0, Severity.MEDIUM),
        (3.0, Severity.LOW),
        (0.0, Severity.LOW),
    ],
)
def test_cvss_fallback_boundaries(score, expected):
    assert classify(None, score) == (expected, Metric.BASE_SCORE)


def test_numeric_strings_from_the_feed_are_accepted():
    assert classify("0.31", None) == (Severity.HIGH, Metric.EXPLOIT_FEED)


def test_non_finite_probability_falls_back_to_cvss():
    assert classify(math.nan, 9.5) == (Severity.CRITICAL, Metric.BASE_SCORE)
    assert classify("not-a-number", 5.0) == (Severity.MEDIUM, Metric.BASE_SCORE)


def test_unclassifiable_when_both_missing():
    assert classify(None, None) == (None, None)
    assert classify(True, None) == (None, None)
