"""Parser and invocation helpers for Snyk reports."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from reviewer.core.errors import SchemaError
from reviewer.core.models import EpssRecord, VulnerabilityEntry
from reviewer.core.severity import to_float

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanOutput:
    """Captured output of a scanner run; a non-zero exit is not an error."""

    stdout: str
    stderr: str
    returncode: Optional[int]

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    @property
    def text(self) -> str:
        return self.stdout or self.stderr


def run_code_test(project_path: str, runner: Optional[Callable[..., Any]] = None) -> ScanOutput:
    """Run ``snyk code test`` against *project_path*, capturing output whatever the exit status."""

    runner = runner or subprocess.run
    try:
        completed = runner(
            ["snyk", "code", "test", str(project_path)],
            check=False,
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        _LOG.warning("Could not run snyk code test: %s", exc)
        return ScanOutput(stdout="", stderr=str(exc), returncode=None)
    if completed.returncode != 0:
        _LOG.info("snyk code test exited with %s", completed.returncode)
    return ScanOutput(stdout=completed.stdout or "", stderr=completed.stderr or "", returncode=completed.returncode)


def parse(report: Any) -> List[VulnerabilityEntry]:
    """Validate a Snyk dependency report and return its entries in order."""

    if not isinstance(report, dict):
        raise SchemaError("Expected the report to be a JSON object")
    vulnerabilities = report.get("vulnerabilities")
    if not isinstance(vulnerabilities, list):
        raise SchemaError("Expected the report to contain a vulnerabilities array")
    return [_parse_entry(raw, f"vulnerabilities[{index}]") for index, raw in enumerate(vulnerabilities)]


def _parse_entry(raw: Any, path: str) -> VulnerabilityEntry:
    if not isinstance(raw, dict):
        raise SchemaError(f"{path} must be an object")
    return VulnerabilityEntry(
        title=_text(raw.get("title")),
        module_name=_text(raw.get("moduleName") or raw.get("packageName")),
        version=_text(raw.get("version")),
        identifiers=tuple(_cve_identifiers(raw.get("identifiers"), f"{path}.identifiers")),
        base_score=_base_score(raw, path),
        references=tuple(_extract_references(raw.get("references"), f"{path}.references")),
        epss=_epss_details(raw.get("epssDetails")),
    )


def _cve_identifiers(identifiers: Any, path: str) -> List[str]:
    if identifiers is None:
        return []
    if not isinstance(identifiers, dict):
        raise SchemaError(f"{path} must be an object")
    cves = identifiers.get("CVE")
    if cves is None:
        return []
    if isinstance(cves, str):
        cves = [cves]
    if not isinstance(cves, list):
        raise SchemaError(f"{path}.CVE must be an array")
    return [str(cve) for cve in cves if cve]


def _base_score(raw: Dict[str, Any], path: str) -> Optional[float]:
    sources = raw.get("cvssSources")
    if sources is not None and not isinstance(sources, list):
        raise SchemaError(f"{path}.cvssSources must be an array")
    if sources:
        first = sources[0]
        if not isinstance(first, dict):
            raise SchemaError(f"{path}.cvssSources[0] must be an object")
        score = to_float(first.get("baseScore"))
        if score is not None:
            return score
    return to_float(raw.get("cvssScore"))


def _extract_references(references: Any, path: str) -> List[str]:
    if references is None:
        return []
    if not isinstance(references, list):
        raise SchemaError(f"{path} must be an array")
    urls: List[str] = []
    for ref in references:
        url = ref.get("url") if isinstance(ref, dict) else ref
        if isinstance(url, str) and url:
            urls.append(url)
    return urls


def _epss_details(details: Any) -> Optional[EpssRecord]:
    if not isinstance(details, dict):
        return None
    probability = to_float(details.get("probability"))
    if probability is None:
        return None
    return EpssRecord(probability=probability, percentile=to_float(details.get("percentile")))


def _text(value: Any) -> str:
    return "" if value is None else str(value)

