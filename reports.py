"""
reports.py — Report recipes: wires exclusions, dedup, cohorts, classifiers
and aggregation into the figures each recruiting report shows.

Each builder takes an explicit ReportConfig and as_of instant, so the same
records can be reported under several configurations in one process.
"""

from datetime import datetime
from typing import Iterable, Optional, Sequence

from cohorts import CohortRule, Predicate, segment
from config import ReportConfig
from dates import normalize_date
from deduplication import deduplicate, normalize_key_component
from eligibility import (
    EligibilityPolicy,
    missed_opportunity_classifier,
    stage_classifier,
    status_classifier,
)
from funnel import compute_funnel
from metrics import UNASSIGNED, aggregate, rate_pct, round_half_up
from models import (
    AdoptionReport,
    ApplicationFields,
    CoverageReport,
    Diagnostics,
    FunnelMetrics,
    InterviewFields,
    MissedOpportunityReport,
    Record,
)
from monitoring import get_logger, log_pipeline_step
from status_rank import StatusRanker

logger = get_logger("reports")

UNKNOWN_RECRUITER = "Unknown Recruiter"


# ============================================================
# Exclusions
# ============================================================

def exclude_positions(
    records: Sequence[Record],
    position_field: str,
    positions: Iterable[str],
    diagnostics: Optional[Diagnostics] = None,
) -> list[Record]:
    """Drop records whose position name exactly matches an excluded one (e.g. test postings)."""
    excluded = {p.strip() for p in positions if p and p.strip()}
    if not excluded:
        return list(records)

    kept = [r for r in records if str(r.get(position_field) or "").strip() not in excluded]
    removed = len(records) - len(kept)
    log_pipeline_step(logger, "Exclude positions", len(records), len(kept))
    if diagnostics is not None:
        diagnostics.excluded_by_filter += removed
    return kept


def exclude_recruiters(
    records: Sequence[Record],
    recruiter_field: str,
    recruiters: Iterable[str],
    diagnostics: Optional[Diagnostics] = None,
) -> list[Record]:
    """Drop records whose recruiter name contains any excluded name, ignoring case."""
    needles = [r.strip().lower() for r in recruiters if r and r.strip()]
    if not needles:
        return list(records)

    kept = []
    for record in records:
        name = str(record.get(recruiter_field) or "").strip().lower()
        if name and any(needle in name for needle in needles):
            continue
        kept.append(record)

    log_pipeline_step(logger, "Exclude recruiters", len(records), len(kept))
    if diagnostics is not None:
        diagnostics.excluded_by_filter += len(records) - len(kept)
    return kept


# ============================================================
# Canonical record sets
# ============================================================

def canonicalize_applications(
    records: Sequence[Record],
    config: ReportConfig,
    diagnostics: Optional[Diagnostics] = None,
) -> list[Record]:
    """Excluded recruiters removed, one record per profile/position."""
    fields = config.application_fields
    records = exclude_recruiters(records, fields.recruiter_name, config.excluded_recruiters, diagnostics)
    return deduplicate(
        records,
        key_fields=(fields.profile_id, fields.position_id),
        status_field=fields.application_status,
        ranker=StatusRanker(config.status_vocabulary),
        diagnostics=diagnostics,
    )


def canonicalize_interviews(
    records: Sequence[Record],
    config: ReportConfig,
    diagnostics: Optional[Diagnostics] = None,
) -> list[Record]:
    """Excluded positions removed, then collapsed to each pairing's most advanced status."""
    fields = config.interview_fields
    records = exclude_positions(records, fields.position_name, config.excluded_positions, diagnostics)
    return deduplicate(
        records,
        key_fields=(fields.profile_id, fields.position_id),
        status_field=fields.status,
        ranker=StatusRanker(config.status_vocabulary),
        diagnostics=diagnostics,
    )


# ============================================================
# Application-sheet reports
# ============================================================

def build_adoption_report(
    records: Sequence[Record],
    config: ReportConfig,
    diagnostics: Optional[Diagnostics] = None,
    has_match_score: Optional[bool] = None,
) -> AdoptionReport:
    """
    Three independently defined cohorts over the same canonical applications:
      - pre-launch, active applications to open positions only
      - post-launch, unfiltered
      - post-launch with a match score at or above the threshold
    """
    fields = config.application_fields
    if has_match_score is None:
        has_match_score = any(fields.match_stars in r for r in records)

    classify = status_classifier(fields.ai_interview, fields.application_status, config.eligibility)

    pre_rule = CohortRule(
        name="pre_launch",
        date_field=fields.application_ts,
        threshold=config.launch_date,
        comparison="before",
        predicates=(
            Predicate(fields.application_status, "eq", "active"),
            Predicate(fields.position_status, "eq", "open"),
        ),
    )
    post_rule = CohortRule(
        name="post_launch",
        date_field=fields.application_ts,
        threshold=config.launch_date,
        comparison="on_or_after",
    )

    # Unparseable dates are counted once, on the unfiltered cohort
    pre = segment(records, pre_rule)
    post = segment(records, post_rule, diagnostics)

    report = AdoptionReport(
        launch_date=config.launch_date,
        has_match_score=has_match_score,
        pre_launch=aggregate(pre, classify, group_by_field=fields.recruiter_name),
        post_launch=aggregate(post, classify, group_by_field=fields.recruiter_name),
    )

    if has_match_score:
        high_rule = CohortRule(
            name="post_launch_high_match",
            date_field=fields.application_ts,
            threshold=config.launch_date,
            comparison="on_or_after",
            predicates=(Predicate(fields.match_stars, "ge", config.match_score_threshold),),
        )
        high = segment(records, high_rule)
        report.post_launch_high_match = aggregate(high, classify, group_by_field=fields.recruiter_name)
    else:
        logger.warning(f"No \"{fields.match_stars}\" column — skipping the match-score cohort")

    logger.info(
        f"Adoption: pre-launch {report.pre_launch.adoption_rate_pct}% "
        f"({report.pre_launch.total_taken}/{report.pre_launch.total_eligible}), "
        f"post-launch {report.post_launch.adoption_rate_pct}% "
        f"({report.post_launch.total_taken}/{report.post_launch.total_eligible})"
    )
    return report


def build_coverage_report(
    records: Sequence[Record],
    config: ReportConfig,
    as_of: datetime,
    interview_records: Optional[Sequence[Record]] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> CoverageReport:
    """AI-screen coverage of candidates who reached an eligible stage, historical and recent."""
    fields = config.application_fields
    cutoff = config.coverage.cutoff_date or config.launch_date
    has_recruiter = (Predicate(fields.recruiter_name, "ne", ""),)
    classify = stage_classifier(
        fields.ai_interview, fields.last_stage, config.coverage.eligible_stages, config.eligibility
    )

    historical_rule = CohortRule(
        name="coverage_historical",
        date_field=fields.application_ts,
        threshold=cutoff,
        comparison="on_or_after",
        predicates=has_recruiter,
    )
    recent_rule = CohortRule.lookback(
        "coverage_recent",
        fields.application_ts,
        config.coverage.recent_days,
        normalize_date(as_of),
        predicates=has_recruiter,
    )

    historical = segment(records, historical_rule, diagnostics)
    recent = segment(records, recent_rule)

    report = CoverageReport(
        cutoff_date=cutoff,
        recent_since=recent_rule.threshold,
        historical=aggregate(historical, classify, group_by_field=fields.recruiter_name),
        recent=aggregate(recent, classify, group_by_field=fields.recruiter_name),
    )

    if interview_records is not None:
        report.time_to_invite_days = build_time_to_invite(
            historical,
            interview_records,
            fields,
            config.interview_fields,
            policy=config.eligibility,
            eligible_stages=config.coverage.eligible_stages,
        )

    logger.info(
        f"Coverage since {cutoff:%Y-%m-%d}: {report.historical.adoption_rate_pct}% "
        f"({report.historical.total_taken}/{report.historical.total_eligible}); "
        f"last {config.coverage.recent_days} days: {report.recent.adoption_rate_pct}%"
    )
    return report


def build_time_to_invite(
    applications: Iterable[Record],
    interview_records: Iterable[Record],
    app_fields: ApplicationFields,
    interview_fields: InterviewFields,
    policy: Optional[EligibilityPolicy] = None,
    eligible_stages: Optional[Iterable[str]] = None,
) -> dict[str, Optional[float]]:
    """
    Average days from application to the first interview email, per recruiter.
    Only screened applications count; a profile's earliest send time is used
    and negative gaps are ignored.
    """
    policy = policy or EligibilityPolicy()
    stages = {s.strip().upper() for s in eligible_stages} if eligible_stages else None

    first_sent: dict[str, datetime] = {}
    for record in interview_records:
        profile = normalize_key_component(record.get(interview_fields.profile_id))
        sent_at = normalize_date(record.get(interview_fields.email_sent_at))
        if not profile or sent_at is None:
            continue
        if profile not in first_sent or sent_at < first_sent[profile]:
            first_sent[profile] = sent_at

    totals: dict[str, list[float]] = {}
    for record in applications:
        recruiter = str(record.get(app_fields.recruiter_name) or "").strip() or UNASSIGNED
        if stages is not None and str(record.get(app_fields.last_stage) or "").strip().upper() not in stages:
            continue
        totals.setdefault(recruiter, [])
        if not policy.is_taken(record.get(app_fields.ai_interview)):
            continue

        applied = normalize_date(record.get(app_fields.application_ts))
        sent_at = first_sent.get(normalize_key_component(record.get(app_fields.profile_id)))
        if applied is None or sent_at is None or sent_at < applied:
            continue
        totals[recruiter].append((sent_at - applied).total_seconds() / 86400)

    averages = {
        recruiter: round_half_up(sum(days) / len(days)) if days else None
        for recruiter, days in totals.items()
    }
    logger.info(f"Time to invite computed for {len(averages)} recruiters ({len(first_sent)} profiles with a send time)")
    return dict(sorted(averages.items(), key=lambda item: item[0].casefold()))


def build_missed_opportunities(
    records: Sequence[Record],
    config: ReportConfig,
    diagnostics: Optional[Diagnostics] = None,
) -> MissedOpportunityReport:
    """Applications after the threshold, past the early stages, that were never AI-screened."""
    fields = config.application_fields
    settings = config.missed_opportunities
    threshold = settings.threshold_date or config.launch_date

    rule = CohortRule(
        name="missed_opportunities",
        date_field=fields.application_ts,
        threshold=threshold,
        comparison="after",
        predicates=(Predicate(fields.last_stage, "not_in", list(settings.excluded_stages)),),
    )
    cohort = segment(records, rule, diagnostics)

    # Missed flags are labelled TAKEN, so "taken" below reads as "missed"
    metrics = aggregate(
        cohort,
        missed_opportunity_classifier(fields.ai_interview, settings.missed_flag),
        group_by_field=fields.recruiter_name,
        unassigned_label=UNKNOWN_RECRUITER,
    )

    report = MissedOpportunityReport(
        threshold_date=threshold,
        total_considered=metrics.total_eligible,
        total_missed=metrics.total_taken,
        missed_pct=rate_pct(metrics.total_taken, metrics.total_eligible),
        by_recruiter={
            g.key: {"total": g.eligible, "missed": g.taken}
            for g in metrics.groups
        },
    )
    logger.info(
        f"Missed opportunities: {report.total_missed} of {report.total_considered} "
        f"applications ({report.missed_pct}%) across {len(report.by_recruiter)} recruiters"
    )
    return report


# ============================================================
# Interview-log reports
# ============================================================

def build_funnel_report(
    canonical_interviews: Sequence[Record],
    config: ReportConfig,
    as_of: datetime,
    diagnostics: Optional[Diagnostics] = None,
) -> FunnelMetrics:
    """Funnel over canonical interviews sent within the lookback window."""
    fields = config.interview_fields
    as_of = normalize_date(as_of)

    rule = CohortRule.lookback("funnel_lookback", fields.email_sent_at, config.lookback_days, as_of)
    cohort = segment(canonical_interviews, rule, diagnostics)

    return compute_funnel(cohort, fields, as_of, config.funnel)
