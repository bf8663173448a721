"""
eligibility.py — Labels records for the adoption-rate numerator/denominator.

Policy: an AI-interview flag of exactly "Y" means TAKEN. Anything else ("N", blank,
absent, or an unrecognized value) is a missed opportunity, unless the
application was rejected — a rejection without a screen means the recruiter
reviewed the candidate and chose not to screen, so it leaves the denominator.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from models import ClassifyFn, EligibilityLabel, Record


@dataclass
class EligibilityPolicy:
    """
    Vocabulary for the fixed eligibility rule. Taken flags must match exactly
    ("y" and " Y " are not taken); statuses are compared case-insensitively.
    """
    taken_flags: set[str] = field(default_factory=lambda: {"Y"})
    ineligible_statuses: set[str] = field(default_factory=lambda: {"rejected"})

    def is_taken(self, flag) -> bool:
        return isinstance(flag, str) and flag in self.taken_flags

    def is_ineligible_status(self, status) -> bool:
        return _clean(status).lower() in {s.lower() for s in self.ineligible_statuses}


DEFAULT_POLICY = EligibilityPolicy()


def _clean(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def classify(
    record: Record,
    ai_flag_field: str,
    app_status_field: str,
    policy: Optional[EligibilityPolicy] = None,
) -> EligibilityLabel:
    policy = policy or DEFAULT_POLICY
    if policy.is_taken(record.get(ai_flag_field)):
        return EligibilityLabel.TAKEN
    if policy.is_ineligible_status(record.get(app_status_field)):
        return EligibilityLabel.INELIGIBLE
    return EligibilityLabel.ELIGIBLE_NOT_TAKEN


def status_classifier(
    ai_flag_field: str,
    app_status_field: str,
    policy: Optional[EligibilityPolicy] = None,
) -> ClassifyFn:
    """Bind classify() to a pair of fields for use with metrics.aggregate()."""
    def _classify(record: Record) -> EligibilityLabel:
        return classify(record, ai_flag_field, app_status_field, policy)
    return _classify


def stage_classifier(
    ai_flag_field: str,
    stage_field: str,
    eligible_stages: Iterable[str],
    policy: Optional[EligibilityPolicy] = None,
) -> ClassifyFn:
    """
    Coverage rule: only candidates who reached one of the eligible pipeline
    stages count, and of those, a taken flag counts as covered.
    """
    policy = policy or DEFAULT_POLICY
    stages = {s.strip().upper() for s in eligible_stages}

    def _classify(record: Record) -> EligibilityLabel:
        if _clean(record.get(stage_field)).upper() not in stages:
            return EligibilityLabel.INELIGIBLE
        if policy.is_taken(record.get(ai_flag_field)):
            return EligibilityLabel.TAKEN
        return EligibilityLabel.ELIGIBLE_NOT_TAKEN
    return _classify


def missed_opportunity_classifier(ai_flag_field: str, missed_flag: str = "N") -> ClassifyFn:
    """
    Missed-opportunity rule: every record is relevant; an explicit "N" flag is
    reported as TAKEN so the aggregate rate reads as the share of misses.
    """
    missed = missed_flag.strip().upper()

    def _classify(record: Record) -> EligibilityLabel:
        if _clean(record.get(ai_flag_field)).upper() == missed:
            return EligibilityLabel.TAKEN
        return EligibilityLabel.ELIGIBLE_NOT_TAKEN
    return _classify
