"""Exception types raised by the review pipeline."""

from __future__ import annotations

from typing import Optional


class ReviewError(Exception):
    """Base class for review pipeline failures."""


class MalformedReportError(ReviewError, ValueError):
    """Raised when a report cannot be parsed even after tolerant repair."""

    def __init__(
        self,
        message: str,
        preview: str,
        looks_non_json: bool = False,
        has_nul_bytes: bool = False,
        source: Optional[str] = None,
    ) -> None:
        self.parser_message = message
        self.preview = preview
        self.looks_non_json = looks_non_json
        self.has_nul_bytes = has_nul_bytes
        self.source = source
        super().__init__(self._format())

    def _format(self) -> str:
        where = f" in {self.source}" if self.source else ""
        lines = [f"Invalid JSON{where}: {self.parser_message}", f'Content preview: "{self.preview}..."']
        if self.has_nul_bytes:
            lines.append("File contains null bytes, possible binary/encoding issue")
        if self.looks_non_json:
            lines.append("File doesn't start with { or [, might not be JSON")
        return "\n".join(lines)


class SchemaError(ReviewError, ValueError):
    """Raised when a parsed report does not have the expected shape."""


class ConfigError(ReviewError, ValueError):
    """Raised for invalid review configuration values."""


class EnrichmentFetchError(ReviewError):
    """Raised internally when an EPSS lookup fails; never escapes the fetcher."""
