"""
alerts.py — Recruiter follow-up checks over the canonical interview log.

Finds completed AI interviews still awaiting the recruiter's decision, counts
pending invites that need a nudge and new high-match applicants, and checks
that synced sheets carry a recent timestamp.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from config import AlertConfig
from business_days import business_days_between
from dates import normalize_date, parse_offset_timestamp
from models import ApplicationFields, FeedbackAlert, FreshnessCheck, InterviewFields, Record
from monitoring import get_logger

logger = get_logger("alerts")


def find_feedback_alerts(
    records: Iterable[Record],
    fields: InterviewFields,
    as_of: datetime,
    settings: Optional[AlertConfig] = None,
) -> list[FeedbackAlert]:
    """
    Completed interviews with an AI recommendation the recruiter has not acted on.
    A record qualifies when the business days since Schedule_start_time fall in
    (min_business_days, stop_business_days].
    """
    settings = settings or AlertConfig()
    as_of = normalize_date(as_of)
    excluded = {name.strip().lower() for name in settings.excluded_candidates}

    alerts = []
    skipped_dates = 0
    skipped_names = 0

    for record in records:
        status = _text(record.get(fields.status))
        feedback = _text(record.get(fields.feedback_status))
        if status != settings.completed_status or feedback != settings.feedback_status:
            continue

        completed_at = normalize_date(record.get(fields.schedule_start))
        if completed_at is None:
            skipped_dates += 1
            continue

        days = business_days_between(completed_at, as_of)
        if days <= settings.min_business_days or days > settings.stop_business_days:
            continue

        candidate = _text(record.get(fields.candidate_name))
        if candidate.lower() in excluded:
            skipped_names += 1
            continue

        alerts.append(FeedbackAlert(
            record=record,
            recruiter_email=_text(record.get(fields.recruiter_email)).lower(),
            candidate_name=candidate,
            completed_at=completed_at,
            business_days=days,
            urgent=days > settings.urgent_business_days,
        ))

    if skipped_dates:
        logger.warning(f"Feedback alerts: skipped {skipped_dates} completed interviews with no valid schedule time")
    if skipped_names:
        logger.info(f"Feedback alerts: {skipped_names} excluded candidates skipped")
    logger.info(
        f"Feedback alerts: {len(alerts)} candidates awaiting review "
        f"({sum(1 for a in alerts if a.urgent)} urgent)"
    )
    return alerts


def group_alerts_by_recruiter(alerts: Iterable[FeedbackAlert]) -> dict[str, list[FeedbackAlert]]:
    """Group by lower-cased recruiter email, oldest first within each group."""
    grouped: dict[str, list[FeedbackAlert]] = {}
    invalid = 0
    for alert in alerts:
        email = alert.recruiter_email
        if not email or "@" not in email:
            invalid += 1
            continue
        grouped.setdefault(email, []).append(alert)

    for email in grouped:
        grouped[email].sort(key=lambda a: a.business_days, reverse=True)

    if invalid:
        logger.warning(f"Skipped {invalid} alerts with an invalid or missing recruiter email")
    return grouped


def count_pending_nudges(
    records: Iterable[Record],
    fields: InterviewFields,
    recruiter_email: str,
    as_of: datetime,
    settings: Optional[AlertConfig] = None,
) -> int:
    """Pending invites for one recruiter sent more than nudge_after_days ago."""
    settings = settings or AlertConfig()
    cutoff = normalize_date(as_of) - timedelta(days=settings.nudge_after_days)
    recruiter_email = recruiter_email.strip().lower()
    pending = settings.pending_status.strip().upper()

    count = 0
    for record in records:
        if _text(record.get(fields.recruiter_email)).lower() != recruiter_email:
            continue
        if _text(record.get(fields.status)).upper() != pending:
            continue
        sent_at = normalize_date(record.get(fields.email_sent_at))
        if sent_at is not None and sent_at < cutoff:
            count += 1

    if count:
        logger.info(f"{count} pending invites need a nudge for {recruiter_email}")
    return count


def count_new_high_match(
    records: Iterable[Record],
    fields: ApplicationFields,
    recruiter_email: str,
    launch_date: datetime,
    match_threshold: float = 4,
    settings: Optional[AlertConfig] = None,
) -> int:
    """Active applicants to open positions, still at the first stage, with a high match score."""
    settings = settings or AlertConfig()
    recruiter_email = recruiter_email.strip().lower()
    launch_date = normalize_date(launch_date)
    new_stage = settings.new_stage.strip().upper()
    active = settings.active_status.strip().lower()
    open_status = settings.open_position_status.strip().lower()

    count = 0
    for record in records:
        if _text(record.get(fields.recruiter_email)).lower() != recruiter_email:
            continue
        stars = _to_float(record.get(fields.match_stars))
        if stars is None or stars < match_threshold:
            continue
        if _text(record.get(fields.last_stage)).upper() != new_stage:
            continue
        if _text(record.get(fields.application_status)).lower() != active:
            continue
        if _text(record.get(fields.position_status)).lower() != open_status:
            continue
        applied = normalize_date(record.get(fields.application_ts))
        if applied is not None and applied >= launch_date:
            count += 1

    logger.debug(f"{count} new high-match candidates for {recruiter_email}")
    return count


def check_timestamp_freshness(
    name: str,
    raw_value,
    as_of: datetime,
    max_age_minutes: float,
) -> FreshnessCheck:
    """
    Parse a sync timestamp like "04 May 2025 11:39 GMT+05:30" and compare its
    age against max_age_minutes. An unparseable value is reported as stale.
    """
    check = FreshnessCheck(name=name, raw_value=raw_value, max_age_minutes=max_age_minutes)

    parsed = None
    if isinstance(raw_value, str):
        parsed = parse_offset_timestamp(raw_value)
    if parsed is None:
        instant = normalize_date(raw_value)
        if instant is not None:
            parsed = (instant, 0)

    if parsed is None:
        check.stale = True
        logger.error(f"[{name}] Could not parse sync timestamp: {raw_value!r}")
        return check

    check.parsed = True
    check.timestamp, check.offset_minutes = parsed
    check.age_minutes = (normalize_date(as_of) - check.timestamp).total_seconds() / 60
    check.stale = check.age_minutes > max_age_minutes

    if check.stale:
        logger.warning(
            f"[{name}] Sync timestamp is {check.age_minutes:.2f} minutes old "
            f"(max {max_age_minutes})"
        )
    else:
        logger.info(f"[{name}] Sync timestamp is fresh ({check.age_minutes:.2f} minutes old)")
    return check


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _to_float(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
