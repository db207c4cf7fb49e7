"""Core aggregation and decision logic for the PR vulnerability review."""

__all__ = [
    "aggregator",
    "config",
    "decision",
    "epss",
    "errors",
    "models",
    "report_reader",
    "reporter",
    "severity",
]
