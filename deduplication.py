"""
deduplication.py — Collapses records that describe the same candidate/position pairing.

The interview log carries one row per status transition, so a single pairing
can appear several times. Downstream metrics must count each pairing once:
we keep the row with the best status rank, first-seen winning ties.
"""

from typing import Any, Optional, Sequence

from models import Diagnostics, Record
from status_rank import StatusRanker
from monitoring import get_logger

logger = get_logger("deduplication")


def normalize_key_component(value: Any) -> str:
    """Normalize an id cell for key comparison. Integral floats lose their '.0'."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def generate_key(record: Record, key_fields: tuple[str, str]) -> Optional[tuple[str, str]]:
    """Composite identity key, or None if either component is missing/blank."""
    first = normalize_key_component(record.get(key_fields[0]))
    second = normalize_key_component(record.get(key_fields[1]))
    if not first or not second:
        return None
    return first, second


def deduplicate(
    records: Sequence[Record],
    key_fields: tuple[str, str],
    status_field: str,
    ranker: Optional[StatusRanker] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> list[Record]:
    """
    Return one canonical record per composite key.
    Output is ordered by the input position of each winning record.
    """
    ranker = ranker or StatusRanker()
    best: dict[tuple[str, str], tuple[int, int, Record]] = {}
    missing_key = 0

    for index, record in enumerate(records):
        key = generate_key(record, key_fields)
        if key is None:
            missing_key += 1
            continue

        rank = ranker.rank(record.get(status_field))
        current = best.get(key)
        # Strict comparison keeps the first-seen record on ties
        if current is None or rank < current[0]:
            best[key] = (rank, index, record)

    winners = sorted(best.values(), key=lambda entry: entry[1])
    unique = [record for _, _, record in winners]

    kept_with_key = len(records) - missing_key
    collapsed = kept_with_key - len(unique)

    if missing_key:
        logger.warning(
            f"Deduplication skipped {missing_key} rows with a blank "
            f"{key_fields[0]}/{key_fields[1]}"
        )
    if collapsed:
        logger.info(f"Deduplication: {kept_with_key} → {len(unique)} ({collapsed} duplicates collapsed)")

    if diagnostics is not None:
        diagnostics.missing_key += missing_key
        diagnostics.duplicates_collapsed += collapsed

    return unique
