"""Tolerant JSON reader for scanner reports with encoding artifacts."""

from __future__ import annotations

import json
import logging
import pathlib
import re
from typing import Any, Optional, Tuple, Union

from reviewer.core.errors import MalformedReportError

_LOG = logging.getLogger(__name__)

PREVIEW_LIMIT = 200

_UTF16_LE_BOM = b"\xff\xfe"
_UTF16_BE_BOM = b"\xfe\xff"
_UTF8_BOM = b"\xef\xbb\xbf"

TRAILING_COMMA = re.compile(r",(\s*[}\]])")
# C0 and C1 control characters, keeping tab and newline.
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")


def load_report(path: pathlib.Path) -> Any:
    """Read and parse the report stored at *path*."""

    return read_report(path.read_bytes(), source=str(path))


def read_report(raw: Union[bytes, str], source: Optional[str] = None) -> Any:
    text = decode_bytes(raw) if isinstance(raw, (bytes, bytearray)) else raw
    has_nul_bytes = "\x00" in text
    content = clean_text(text)
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        preview = content[:PREVIEW_LIMIT].replace("\n", "\\n")
        _LOG.error("JSON parsing error in %s: %s", source or "<report>", exc.msg)
        raise MalformedReportError(
            str(exc),
            preview=preview,
            looks_non_json=not content.startswith(("{", "[")),
            has_nul_bytes=has_nul_bytes,
            source=source,
        ) from exc


def decode_bytes(raw: bytes) -> str:
    encoding, offset = detect_encoding(raw)
    return bytes(raw[offset:]).decode(encoding, errors="replace")


def detect_encoding(raw: bytes) -> Tuple[str, int]:
    """Return the codec and BOM length for *raw*; UTF-8 when no BOM is present."""

    if raw.startswith(_UTF8_BOM):
        return "utf-8", len(_UTF8_BOM)
    if raw.startswith(_UTF16_LE_BOM):
        return "utf-16-le", len(_UTF16_LE_BOM)
    if raw.startswith(_UTF16_BE_BOM):
        return "utf-16-be", len(_UTF16_BE_BOM)
    return "utf-8", 0


def clean_text(text: str) -> str:
    content = text.lstrip("\ufeff")
    content = content.replace("\r\n", "\n").replace("\r", "\n").strip()
    content = TRAILING_COMMA.sub(r"\1", content)
    return CONTROL_CHARS.sub("", content)
