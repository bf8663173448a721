"""
main.py — Main orchestrator for the AI screening adoption metrics run.
Coordinates sheet reads, reconciliation, metrics, alerts and sync checks.
"""

import time
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional

from config import ReportConfig, SourceConfig, load_config, validate_config
from dates import normalize_date
from models import Diagnostics
from monitoring import (
    setup_logging, get_logger, log_source_success, log_source_failure,
    log_pipeline_step, log_diagnostics, log_run_summary
)
from schema import SchemaError, build_records, resolve_columns
from reports import (
    build_adoption_report, build_coverage_report, build_funnel_report,
    build_missed_opportunities, canonicalize_applications, canonicalize_interviews
)
from alerts import (
    check_timestamp_freshness, count_new_high_match, count_pending_nudges,
    find_feedback_alerts, group_alerts_by_recruiter
)
from sheets import SheetSource

APPLICATION_REQUIRED = (
    "profile_id", "position_id", "recruiter_name", "application_ts",
    "application_status", "ai_interview",
)
INTERVIEW_REQUIRED = (
    "profile_id", "position_id", "status", "email_sent_at",
)


def load_source(
    source: SheetSource,
    name: str,
    source_config: SourceConfig,
    fields,
    required_attrs: tuple[str, ...],
    fuzzy_threshold: Optional[float],
    diagnostics: Diagnostics,
) -> tuple[list[dict], int]:
    """Read one tab and map it to records keyed by canonical column name."""
    all_columns = list(asdict(fields).values())
    required = source_config.required_columns or [getattr(fields, attr) for attr in required_attrs]
    optional = source_config.optional_columns or [c for c in all_columns if c not in required]

    headers, rows = source.fetch(source_config.sheet_id, source_config.worksheet, source_config.header_row)
    column_map = resolve_columns(
        headers,
        required=required,
        optional=optional,
        aliases=source_config.aliases,
        fuzzy_threshold=fuzzy_threshold,
        source=name,
    )
    records = build_records(headers, rows, column_map, required=required, diagnostics=diagnostics)
    return records, len(rows)


def run(config_path=None, as_of: Optional[datetime] = None, source: Optional[SheetSource] = None,
        config: Optional[ReportConfig] = None):
    """Execute the full metrics run."""
    # Setup
    root_logger = setup_logging()
    logger = get_logger("main")

    as_of = normalize_date(as_of) if as_of else datetime.now(timezone.utc)

    logger.info("=" * 60)
    logger.info("SCREENING METRICS — Starting run")
    logger.info(f"As of: {as_of.isoformat()}")
    logger.info("=" * 60)

    config = config or load_config(config_path)

    # Validate configuration
    warnings = validate_config(config)
    for warning in warnings:
        logger.warning(f"Config: {warning}")

    source = source or SheetSource(config.google_service_account_json)

    run_start = time.time()
    errors = []
    app_diagnostics = Diagnostics()
    interview_diagnostics = Diagnostics()

    # ===== 1. READ SOURCES =====
    logger.info("--- Phase 1: Reading sheets ---")
    applications, application_rows = [], 0
    interviews, interview_rows = [], 0

    if config.application.sheet_id:
        try:
            applications, application_rows = load_source(
                source, "applications", config.application, config.application_fields,
                APPLICATION_REQUIRED, config.column_fuzzy_threshold, app_diagnostics,
            )
            log_source_success(logger, "applications", len(applications))
        except SchemaError:
            raise
        except Exception as e:
            errors.append(f"Application sheet: {str(e)}")
            log_source_failure(logger, "applications", e)

    if config.interview_log.sheet_id:
        try:
            interviews, interview_rows = load_source(
                source, "interview_log", config.interview_log, config.interview_fields,
                INTERVIEW_REQUIRED, config.column_fuzzy_threshold, interview_diagnostics,
            )
            log_source_success(logger, "interview_log", len(interviews))
        except SchemaError:
            raise
        except Exception as e:
            errors.append(f"Interview log: {str(e)}")
            log_source_failure(logger, "interview_log", e)

    # ===== 2. RECONCILE =====
    logger.info("--- Phase 2: Exclusions and deduplication ---")
    canonical_apps = canonicalize_applications(applications, config, app_diagnostics)
    log_pipeline_step(logger, "Applications", len(applications), len(canonical_apps))
    canonical_interviews = canonicalize_interviews(interviews, config, interview_diagnostics)
    log_pipeline_step(logger, "Interview log", len(interviews), len(canonical_interviews))

    # ===== 3. ADOPTION METRICS =====
    logger.info("--- Phase 3: Adoption metrics ---")
    adoption = coverage = missed = None
    if canonical_apps:
        try:
            adoption = build_adoption_report(canonical_apps, config, app_diagnostics)
            coverage = build_coverage_report(canonical_apps, config, as_of, interview_records=interviews)
            missed = build_missed_opportunities(canonical_apps, config)
        except Exception as e:
            errors.append(f"Adoption metrics: {str(e)}")
            logger.error(f"Adoption metrics failed: {e}")
    else:
        logger.warning("No application records — skipping adoption metrics")

    # ===== 4. INTERVIEW FUNNEL =====
    logger.info("--- Phase 4: Interview funnel ---")
    funnel = None
    if canonical_interviews:
        try:
            funnel = build_funnel_report(canonical_interviews, config, as_of, interview_diagnostics)
        except Exception as e:
            errors.append(f"Interview funnel: {str(e)}")
            logger.error(f"Interview funnel failed: {e}")
    else:
        logger.warning("No interview log records — skipping funnel metrics")

    # ===== 5. RECRUITER ALERTS =====
    logger.info("--- Phase 5: Recruiter alerts ---")
    alerts_by_recruiter = {}
    recruiter_followups = {}
    try:
        alerts = find_feedback_alerts(canonical_interviews, config.interview_fields, as_of, config.alerts)
        alerts_by_recruiter = group_alerts_by_recruiter(alerts)
        for email in alerts_by_recruiter:
            recruiter_followups[email] = {
                "pending_nudges": count_pending_nudges(
                    canonical_interviews, config.interview_fields, email, as_of, config.alerts
                ),
                "new_high_match": count_new_high_match(
                    applications, config.application_fields, email,
                    config.launch_date, config.match_score_threshold, config.alerts,
                ),
            }
        logger.info(f"Alerts grouped for {len(alerts_by_recruiter)} recruiters")
    except Exception as e:
        errors.append(f"Recruiter alerts: {str(e)}")
        logger.error(f"Recruiter alerts failed: {e}")

    # ===== 6. SYNC FRESHNESS =====
    logger.info("--- Phase 6: Sync freshness checks ---")
    sync_results = []
    for check in config.sync_checks:
        if not check.sheet_id:
            logger.warning(f"[{check.name}] No sheet id configured — skipping sync check")
            continue
        try:
            value = source.read_cell(check.sheet_id, check.worksheet, check.cell)
            sync_results.append(check_timestamp_freshness(check.name, value, as_of, check.max_age_minutes))
        except Exception as e:
            errors.append(f"Sync check {check.name}: {str(e)}")
            log_source_failure(logger, check.name, e)

    stale = [r.name for r in sync_results if r.stale]
    if stale:
        logger.warning(f"Stale data sources: {', '.join(stale)}")

    # ===== 7. LOG RUN SUMMARY =====
    log_diagnostics(logger, "applications", app_diagnostics)
    log_diagnostics(logger, "interview_log", interview_diagnostics)

    run_duration = time.time() - run_start
    alert_count = sum(len(group) for group in alerts_by_recruiter.values())
    log_run_summary(
        logger,
        application_rows=application_rows,
        interview_rows=interview_rows,
        canonical_interviews=len(canonical_interviews),
        adoption_rate_pct=adoption.post_launch.adoption_rate_pct if adoption else None,
        alerts_raised=alert_count,
        errors=errors,
        duration=run_duration,
    )

    logger.info("SCREENING METRICS — Run complete")

    return {
        "as_of": as_of,
        "adoption": adoption,
        "coverage": coverage,
        "missed_opportunities": missed,
        "funnel": funnel,
        "alerts": alerts_by_recruiter,
        "recruiter_followups": recruiter_followups,
        "sync_checks": sync_results,
        "diagnostics": {
            "applications": app_diagnostics.as_dict(),
            "interview_log": interview_diagnostics.as_dict(),
        },
        "errors": errors,
        "duration": run_duration,
    }


if __name__ == "__main__":
    run()
