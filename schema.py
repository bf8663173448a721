"""
schema.py — Resolves header names to column positions once, up front.

A missing required column is the one error that aborts a run: every index
computed after it would be meaningless. Short rows are a row-level problem
and are skipped and counted instead.
"""

import re
from typing import Any, Mapping, Optional, Sequence

from rapidfuzz import fuzz, process

from models import Diagnostics, Record
from monitoring import get_logger

logger = get_logger("schema")


class SchemaError(ValueError):
    """Raised when required columns are absent from a header row."""

    def __init__(self, missing: Sequence[str], source: str = ""):
        self.missing = list(missing)
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"Required column(s) not found{where}: {', '.join(self.missing)}")


def normalize_header(header: Any) -> str:
    """Lowercase, treat underscores and spaces alike, collapse whitespace."""
    text = str(header if header is not None else "").strip().lower()
    text = text.replace("_", " ")
    return re.sub(r"\s+", " ", text)


def resolve_columns(
    headers: Sequence[Any],
    required: Sequence[str],
    optional: Sequence[str] = (),
    aliases: Optional[Mapping[str, Sequence[str]]] = None,
    fuzzy_threshold: Optional[float] = None,
    source: str = "",
) -> dict[str, int]:
    """
    Map each canonical column name to its index in headers.
    Lookup order: exact header, then aliases (normalized), then — for optional
    columns only — a rapidfuzz match scoring at least fuzzy_threshold.
    """
    aliases = aliases or {}
    header_list = [str(h) if h is not None else "" for h in headers]
    normalized = [normalize_header(h) for h in header_list]

    column_map: dict[str, int] = {}
    missing = []

    for name in required:
        index = _find(name, header_list, normalized, aliases)
        if index is None:
            missing.append(name)
        else:
            column_map[name] = index

    if missing:
        logger.error(f"Missing required column(s){' in ' + source if source else ''}: {', '.join(missing)}")
        raise SchemaError(missing, source)

    for name in optional:
        if name in column_map:
            continue
        index = _find(name, header_list, normalized, aliases)
        if index is None and fuzzy_threshold is not None:
            index = _fuzzy_find(name, normalized, fuzzy_threshold, taken=set(column_map.values()))
        if index is None:
            logger.info(f"Optional column \"{name}\" not found")
        else:
            column_map[name] = index

    return column_map


def _find(name: str, headers: list[str], normalized: list[str], aliases: Mapping[str, Sequence[str]]) -> Optional[int]:
    if name in headers:
        return headers.index(name)
    for candidate in [name, *aliases.get(name, [])]:
        key = normalize_header(candidate)
        if key in normalized:
            return normalized.index(key)
    return None


def _fuzzy_find(name: str, normalized: list[str], threshold: float, taken: set[int]) -> Optional[int]:
    choices = {i: h for i, h in enumerate(normalized) if h and i not in taken}
    if not choices:
        return None
    match = process.extractOne(
        normalize_header(name), choices, scorer=fuzz.token_sort_ratio, score_cutoff=threshold
    )
    if match is None:
        return None
    header, score, index = match
    logger.info(f"Fuzzy-matched column \"{name}\" to header \"{header}\" (score {score:.0f})")
    return index


def build_records(
    headers: Sequence[Any],
    rows: Sequence[Sequence[Any]],
    column_map: Mapping[str, int],
    required: Sequence[str] = (),
    diagnostics: Optional[Diagnostics] = None,
) -> list[Record]:
    """
    Turn positional rows into dicts keyed by canonical column name, in header order.
    Rows too short to hold every required column are skipped.
    """
    needed = max((column_map[name] for name in required if name in column_map), default=-1)
    ordered = sorted(column_map.items(), key=lambda item: item[1])

    records = []
    short = 0
    for row in rows:
        if row is None or len(row) <= needed:
            short += 1
            continue
        records.append({name: (row[index] if index < len(row) else None) for name, index in ordered})

    if short:
        logger.warning(f"Skipped {short} rows too short to hold all required columns")
    if diagnostics is not None:
        diagnostics.short_rows += short

    return records
