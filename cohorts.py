"""
cohorts.py — Selects named subsets of canonical records by date and field predicates.

Cohorts are independent views over the same canonical set; nothing here
assumes two cohorts are disjoint. Records whose date does not normalize are
never placed in a date-bounded cohort, and are counted instead.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Sequence

from dates import normalize_date
from models import Cohort, Diagnostics, Record
from monitoring import get_logger

logger = get_logger("cohorts")

COMPARISONS = ("before", "on_or_after", "after")

STRING_OPS = ("eq", "ne", "in", "not_in", "not_contains")
NUMERIC_OPS = ("ge", "gt", "le", "lt")


@dataclass(frozen=True)
class Predicate:
    """A test on one field. String ops ignore case and surrounding whitespace."""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in STRING_OPS + NUMERIC_OPS:
            raise ValueError(f"Unknown predicate op: {self.op!r}")

    def matches(self, record: Record) -> bool:
        raw = record.get(self.field)
        if self.op in NUMERIC_OPS:
            number = _to_float(raw)
            if number is None:
                return False
            threshold = float(self.value)
            if self.op == "ge":
                return number >= threshold
            if self.op == "gt":
                return number > threshold
            if self.op == "le":
                return number <= threshold
            return number < threshold

        text = _normalize_text(raw)
        if self.op == "eq":
            return text == _normalize_text(self.value)
        if self.op == "ne":
            return text != _normalize_text(self.value)

        options = [_normalize_text(v) for v in _as_list(self.value)]
        if self.op == "in":
            return text in options
        if self.op == "not_in":
            return text not in options
        # not_contains
        return not any(option and option in text for option in options)


@dataclass(frozen=True)
class CohortRule:
    """Date bound plus optional predicates. date_field=None means no date bound."""
    name: str
    date_field: Optional[str] = None
    threshold: Optional[datetime] = None
    comparison: str = "on_or_after"
    predicates: tuple = ()

    def __post_init__(self):
        if self.comparison not in COMPARISONS:
            raise ValueError(f"Unknown comparison: {self.comparison!r}")
        if self.date_field is not None and self.threshold is None:
            raise ValueError(f"Cohort {self.name!r} has a date field but no threshold")

    @classmethod
    def lookback(
        cls,
        name: str,
        date_field: str,
        days: int,
        as_of: datetime,
        predicates: Sequence[Predicate] = (),
    ) -> "CohortRule":
        """Records dated within the last `days` days of as_of."""
        return cls(
            name=name,
            date_field=date_field,
            threshold=as_of - timedelta(days=days),
            comparison="on_or_after",
            predicates=tuple(predicates),
        )

    def date_matches(self, instant: datetime) -> bool:
        threshold = normalize_date(self.threshold)
        if self.comparison == "before":
            return instant < threshold
        if self.comparison == "after":
            return instant > threshold
        return instant >= threshold


def segment(
    records: Iterable[Record],
    rule: CohortRule,
    diagnostics: Optional[Diagnostics] = None,
) -> Cohort:
    """Apply one rule to the canonical records."""
    selected = []
    unparseable = 0
    filtered = 0

    for record in records:
        if rule.date_field is not None:
            instant = normalize_date(record.get(rule.date_field))
            if instant is None:
                unparseable += 1
                continue
            if not rule.date_matches(instant):
                continue
        if not all(p.matches(record) for p in rule.predicates):
            filtered += 1
            continue
        selected.append(record)

    if unparseable:
        logger.warning(f"[{rule.name}] Excluded {unparseable} records with an unparseable {rule.date_field}")
    logger.info(f"[{rule.name}] {len(selected)} records selected ({filtered} excluded by filters)")

    if diagnostics is not None:
        diagnostics.unparseable_date += unparseable
        diagnostics.excluded_by_filter += filtered

    return Cohort(
        name=rule.name,
        records=tuple(selected),
        excluded_unparseable_date=unparseable,
        excluded_by_filter=filtered,
    )


def _normalize_text(value) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _to_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if number != number:  # NaN
        return None
    return number
