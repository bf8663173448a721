"""
funnel.py — Interview-log funnel: sent → scheduled → completed → feedback.

Runs over deduplicated interview records, so each candidate/position pairing
is counted once at its most advanced status. Every record counts as sent.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from config import FunnelConfig
from dates import format_day, normalize_date
from business_days import days_between
from metrics import average, rate_pct, sort_groups
from models import FunnelBreakdown, FunnelMetrics, InterviewFields, Record
from monitoring import get_logger

logger = get_logger("funnel")

UNKNOWN = "Unknown"


def compute_funnel(
    records: Iterable[Record],
    fields: InterviewFields,
    as_of: datetime,
    settings: Optional[FunnelConfig] = None,
) -> FunnelMetrics:
    """
    Compute funnel totals, rates and breakdowns.
    Only invites sent more than maturity_hours before as_of feed the KPI
    completion rate; fresh invites have not had time to complete.
    """
    settings = settings or FunnelConfig()
    maturity_cutoff = normalize_date(as_of) - timedelta(hours=settings.maturity_hours)
    pending_statuses = set(settings.pending_statuses)

    metrics = FunnelMetrics()
    breakdowns = {
        "job_function": {},
        "country": {},
        "recruiter": {},
    }
    dimension_fields = {
        "job_function": fields.job_function,
        "country": fields.country,
        "recruiter": fields.recruiter_name,
    }
    status_counts: dict[str, int] = {}
    schedule_days: list[float] = []
    match_stars: list[float] = []

    for record in records:
        status = _text(record.get(fields.status)) or UNKNOWN
        feedback = _text(record.get(fields.feedback_status))
        sent_at = normalize_date(record.get(fields.email_sent_at))

        metrics.total_sent += 1
        status_counts[status] = status_counts.get(status, 0) + 1
        if sent_at is not None:
            day = format_day(sent_at)
            metrics.daily_sent_counts[day] = metrics.daily_sent_counts.get(day, 0) + 1

        is_mature = sent_at is not None and sent_at < maturity_cutoff
        if is_mature:
            metrics.mature_sent += 1

        rows = []
        for dimension, field_name in dimension_fields.items():
            key = _text(record.get(field_name)) or UNKNOWN
            bucket = breakdowns[dimension].get(key)
            if bucket is None:
                bucket = FunnelBreakdown(key=key)
                breakdowns[dimension][key] = bucket
            bucket.sent += 1
            bucket.status_counts[status] = bucket.status_counts.get(status, 0) + 1
            rows.append(bucket)

        if status == settings.scheduled_status:
            metrics.total_scheduled += 1
            for bucket in rows:
                bucket.scheduled += 1

        if status in pending_statuses:
            metrics.total_pending += 1
            for bucket in rows:
                bucket.pending += 1

        if status != settings.completed_status:
            continue

        metrics.total_completed += 1
        for bucket in rows:
            bucket.completed += 1
        if is_mature:
            metrics.mature_completed += 1

        # Schedule start time stands in for the completion time
        diff = days_between(sent_at, normalize_date(record.get(fields.schedule_start)))
        if diff is not None:
            schedule_days.append(diff)

        stars = _to_float(record.get(fields.match_stars))
        if stars is not None and stars >= 0:
            match_stars.append(stars)

        if feedback == settings.feedback_submitted_status:
            metrics.total_feedback_submitted += 1
            for bucket in rows:
                bucket.feedback_submitted += 1
        elif feedback == settings.awaiting_feedback_status:
            for bucket in rows:
                bucket.awaiting_feedback += 1

    metrics.completion_rate_pct = rate_pct(metrics.total_completed, metrics.total_sent)
    metrics.kpi_completion_rate_pct = rate_pct(metrics.mature_completed, metrics.mature_sent)
    metrics.sent_to_scheduled_rate_pct = rate_pct(metrics.total_scheduled, metrics.total_sent)
    metrics.scheduled_to_completed_rate_pct = rate_pct(metrics.total_completed, metrics.total_scheduled)
    metrics.completed_to_feedback_rate_pct = rate_pct(metrics.total_feedback_submitted, metrics.total_completed)
    metrics.avg_time_to_schedule_days = average(schedule_days)
    metrics.avg_match_stars = average(match_stars)

    metrics.status_distribution = {
        status: {"count": count, "percentage": rate_pct(count, metrics.total_sent)}
        for status, count in status_counts.items()
    }

    for buckets in breakdowns.values():
        for bucket in buckets.values():
            bucket.scheduled_rate_pct = rate_pct(bucket.scheduled, bucket.sent)
            bucket.completed_pct_of_sent = rate_pct(bucket.completed, bucket.sent)
            bucket.pending_pct_of_sent = rate_pct(bucket.pending, bucket.sent)
            bucket.feedback_rate_pct = rate_pct(bucket.feedback_submitted, bucket.completed)

    metrics.by_job_function = sort_groups(list(breakdowns["job_function"].values()))
    metrics.by_country = sort_groups(list(breakdowns["country"].values()))
    metrics.by_recruiter = sort_groups(list(breakdowns["recruiter"].values()))

    logger.info(
        f"Funnel: sent={metrics.total_sent}, scheduled={metrics.total_scheduled}, "
        f"completed={metrics.total_completed}, KPI completion={metrics.kpi_completion_rate_pct}% "
        f"({metrics.mature_completed}/{metrics.mature_sent} mature)"
    )
    return metrics


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
