"""Review configuration: weights, thresholds and mode presets."""

from __future__ import annotations

import dataclasses
import json
import logging
import math
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import yaml

from reviewer.core.errors import ConfigError
from reviewer.core.models import SEVERITY_LEVELS

_LOG = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = pathlib.Path("config.json")
MODES = ("loose", "strict", "custom")


@dataclass(frozen=True)
class Weights:
    exploit: float = 0.7
    base: float = 0.3

    def __post_init__(self) -> None:
        for name, value in (("exploit", self.exploit), ("base", self.base)):
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"weights.{name} must be between 0 and 1, got {value}")
        if not math.isclose(self.exploit + self.base, 1.0, abs_tol=1e-9):
            raise ConfigError(f"weights must sum to 1, got {self.exploit} + {self.base}")


def _default_caps() -> Dict[str, Optional[int]]:
    return {"critical": 1, "high": 2, "medium": 5, "low": None}


@dataclass(frozen=True)
class Thresholds:
    """Decision thresholds.

    Only ``max_count_by_severity`` drives the decision today; the average and
    critical thresholds are carried for reporting.
    """

    average_threshold: float = 0.055
    critical_threshold: float = 0.3
    base_score_cutoff: float = 7.0
    max_count_by_severity: Mapping[str, Optional[int]] = field(default_factory=_default_caps)


@dataclass(frozen=True)
class ReviewConfig:
    weights: Weights = field(default_factory=Weights)
    thresholds: Thresholds = field(default_factory=Thresholds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights": {"exploit": self.weights.exploit, "base": self.weights.base},
            "thresholds": {
                "averageThreshold": self.thresholds.average_threshold,
                "criticalThreshold": self.thresholds.critical_threshold,
                "baseScoreCutoff": self.thresholds.base_score_cutoff,
                "severityCounts": dict(self.thresholds.max_count_by_severity),
            },
        }


PRESETS: Dict[str, Thresholds] = {
    "strict": Thresholds(
        average_threshold=0.0001,
        critical_threshold=0.0001,
        base_score_cutoff=1.0,
        max_count_by_severity={"critical": 0, "high": 0, "medium": 0, "low": 0},
    ),
    "loose": Thresholds(
        average_threshold=1.0,
        critical_threshold=1.0,
        base_score_cutoff=10.0,
        max_count_by_severity={"critical": 3, "high": 5, "medium": 8, "low": None},
    ),
}


def load_config(path: pathlib.Path = DEFAULT_CONFIG_PATH) -> ReviewConfig:
    """Load the configuration at *path*, falling back to defaults when absent."""

    if not path.exists():
        _LOG.info("No configuration at %s; using defaults", path)
        return ReviewConfig()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Could not parse configuration {path}: {exc}") from exc
    return from_mapping(data)


def save_config(config: ReviewConfig, path: pathlib.Path = DEFAULT_CONFIG_PATH) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".json":
        text = json.dumps(config.to_dict(), indent=2)
    else:
        text = yaml.safe_dump(config.to_dict(), sort_keys=False)
    path.write_text(text, encoding="utf-8")
    _LOG.info("Configuration saved to %s", path)


def from_mapping(data: Any) -> ReviewConfig:
    """Build a configuration from its persisted form.

    Accepts both ``exploit``/``base`` weights and the older ``epss``/``snyk``
    keys, as well as ``avgThreshold`` and ``cvssCutoff`` aliases.
    """

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")
    defaults = ReviewConfig()
    weights_raw = _section(data, "weights")
    thresholds_raw = _section(data, "thresholds")

    exploit = _number(_first(weights_raw, "exploit", "epss"), defaults.weights.exploit, "weights.exploit")
    base_raw = _first(weights_raw, "base", "snyk")
    base = _number(base_raw, 1.0 - exploit, "weights.base")

    caps_raw = thresholds_raw.get("severityCounts")
    if caps_raw is not None and not isinstance(caps_raw, dict):
        raise ConfigError("thresholds.severityCounts must be a mapping")
    caps = dict(defaults.thresholds.max_count_by_severity)
    for level, value in (caps_raw or {}).items():
        if level not in SEVERITY_LEVELS:
            raise ConfigError(f"Unknown severity {level!r} in thresholds.severityCounts")
        caps[level] = _cap(value, level)

    thresholds = Thresholds(
        average_threshold=_number(
            _first(thresholds_raw, "averageThreshold", "avgThreshold"),
            defaults.thresholds.average_threshold,
            "thresholds.averageThreshold",
        ),
        critical_threshold=_number(
            thresholds_raw.get("criticalThreshold"),
            defaults.thresholds.critical_threshold,
            "thresholds.criticalThreshold",
        ),
        base_score_cutoff=_number(
            _first(thresholds_raw, "baseScoreCutoff", "cvssCutoff"),
            defaults.thresholds.base_score_cutoff,
            "thresholds.baseScoreCutoff",
        ),
        max_count_by_severity=caps,
    )
    return ReviewConfig(weights=Weights(exploit=exploit, base=base), thresholds=thresholds)


def apply_mode(config: ReviewConfig, mode: str) -> ReviewConfig:
    """Return *config* with the thresholds of the named preset applied."""

    normalized = mode.strip().lower()
    if normalized not in MODES:
        raise ConfigError(f"Unknown review mode {mode!r}; expected one of {', '.join(MODES)}")
    if normalized == "custom":
        _LOG.info("Custom mode: using thresholds as loaded")
        return config
    _LOG.info("%s mode enabled", normalized.title())
    preset = PRESETS[normalized]
    return dataclasses.replace(
        config,
        thresholds=dataclasses.replace(preset, max_count_by_severity=dict(preset.max_count_by_severity)),
    )


def with_exploit_weight(config: ReviewConfig, exploit_weight: float) -> ReviewConfig:
    return dataclasses.replace(config, weights=Weights(exploit=exploit_weight, base=1.0 - exploit_weight))


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"{key} must be a mapping")
    return section


def _first(section: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if section.get(key) is not None:
            return section[key]
    return None


def _number(value: Any, default: float, name: str) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


def _cap(value: Any, level: str) -> Optional[int]:
    if value is None:
        return None
    number = _number(value, 0.0, f"thresholds.severityCounts.{level}")
    if math.isnan(number) or math.isinf(number):
        return None
    if number < 0 or number != int(number):
        raise ConfigError(f"thresholds.severityCounts.{level} must be a non-negative integer or null")
    return int(number)
