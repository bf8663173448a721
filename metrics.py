"""
metrics.py — Reduces a cohort into adoption counts and rates.

Rates are percentages rounded half-up to one decimal place. Division by zero
yields 0.0, so a MetricSet never carries NaN or infinity.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from models import ClassifyFn, EligibilityLabel, GroupMetrics, MetricSet, Record
from monitoring import get_logger

logger = get_logger("metrics")

UNASSIGNED = "Unassigned"


def round_half_up(value, places: int = 1) -> float:
    """Round half away from zero at a fixed number of decimal places."""
    quantum = Decimal(1).scaleb(-places)
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return float(value.quantize(quantum, rounding=ROUND_HALF_UP))


def rate_pct(numerator: int, denominator: int, places: int = 1) -> float:
    """100 * numerator / denominator, rounded half-up. 0.0 when denominator is 0."""
    if not denominator:
        return 0.0
    return round_half_up(Decimal(numerator) * 100 / Decimal(denominator), places)


def average(values: Iterable[float], places: int = 1) -> Optional[float]:
    """Rounded mean, or None for an empty input."""
    values = list(values)
    if not values:
        return None
    return round_half_up(sum(values) / len(values), places)


def group_key(value, unassigned_label: str = UNASSIGNED) -> str:
    if value is None:
        return unassigned_label
    text = str(value).strip()
    return text or unassigned_label


def sort_groups(groups: list) -> list:
    """Case-insensitive ascending by key. Stable, so input order breaks ties."""
    return sorted(groups, key=lambda g: g.key.casefold())


def aggregate(
    records: Iterable[Record],
    classify_fn: ClassifyFn,
    group_by_field: Optional[str] = None,
    unassigned_label: str = UNASSIGNED,
) -> MetricSet:
    """Classify each record and reduce the results, optionally per group."""
    result = MetricSet(group_by=group_by_field)
    buckets: dict[str, GroupMetrics] = {}

    for record in records:
        label = classify_fn(record)

        bucket = None
        if group_by_field is not None:
            key = group_key(record.get(group_by_field), unassigned_label)
            bucket = buckets.get(key)
            if bucket is None:
                bucket = GroupMetrics(key=key)
                buckets[key] = bucket

        if label is EligibilityLabel.INELIGIBLE:
            result.total_ineligible += 1
            if bucket is not None:
                bucket.ineligible += 1
            continue

        result.total_eligible += 1
        if bucket is not None:
            bucket.eligible += 1
        if label is EligibilityLabel.TAKEN:
            result.total_taken += 1
            if bucket is not None:
                bucket.taken += 1

    result.adoption_rate_pct = rate_pct(result.total_taken, result.total_eligible)

    for bucket in buckets.values():
        bucket.rate_pct = rate_pct(bucket.taken, bucket.eligible)
    result.groups = sort_groups(list(buckets.values()))

    logger.debug(
        f"Aggregated: eligible={result.total_eligible}, taken={result.total_taken}, "
        f"ineligible={result.total_ineligible}, rate={result.adoption_rate_pct}%"
    )
    return result
