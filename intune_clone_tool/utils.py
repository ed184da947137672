"""
Shared utility functions for Intune Clone Tool.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


def parse_line_delimited_file(path: str) -> List[str]:
    """
    Parse a file containing one item per line, stripping whitespace and ignoring empty lines.

    Lines starting with '#' are treated as comments.

    Args:
        path: Path to the file to parse

    Returns:
        List of non-empty strings from the file
    """
    tokens: List[str] = []
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        val = line.strip()
        if val and not val.startswith("#"):
            tokens.append(val)
    return tokens


def dedupe_names(names: Iterable[str]) -> List[str]:
    """Drop blank and case-insensitive duplicate names, keeping first occurrence order."""
    result: List[str] = []
    seen = set()
    for name in names:
        cleaned = (name or "").strip()
        if not cleaned or cleaned.casefold() in seen:
            continue
        seen.add(cleaned.casefold())
        result.append(cleaned)
    return result


def timestamp_suffix(now: Optional[datetime] = None) -> str:
    """Local wall-clock timestamp used in generated names, e.g. 20240101-093000."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def clone_description(source_name: str, now: Optional[datetime] = None) -> str:
    return f"Cloned from '{source_name}' on {(now or datetime.now()).strftime('%Y-%m-%d %H:%M:%S')}"


def write_json(path: Path, data: Dict[str, Any], logger: Optional[logging.Logger] = None) -> None:
    log = logger or logging.getLogger(__name__)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    log.info("Wrote JSON output to %s", path)
