"""
config.py — Loads report_config.yaml and environment variables.
Provides a typed ReportConfig that is passed explicitly to each run.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from dates import normalize_date
from eligibility import EligibilityPolicy
from models import ApplicationFields, InterviewFields
from status_rank import DEFAULT_STATUS_VOCABULARY

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent

DEFAULT_CONFIG_PATH = PROJECT_ROOT / "report_config.yaml"

# --- Logging ---
LOG_DIR = PROJECT_ROOT / "logs"
LOG_FILE = LOG_DIR / "screening_metrics.log"

SYNC_SOURCES = ("application", "interview_log")


class ConfigError(ValueError):
    """Raised when the configuration file is unreadable or invalid."""


@dataclass
class SourceConfig:
    """Where one tabular source lives and which columns it must provide."""
    sheet_id: str = ""
    worksheet: str = ""
    header_row: int = 1
    required_columns: list[str] = field(default_factory=list)
    optional_columns: list[str] = field(default_factory=list)
    aliases: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class CoverageConfig:
    cutoff_date: Optional[datetime] = None
    recent_days: int = 30
    eligible_stages: list[str] = field(default_factory=list)


@dataclass
class MissedOpportunityConfig:
    threshold_date: Optional[datetime] = None
    excluded_stages: list[str] = field(default_factory=list)
    missed_flag: str = "N"


@dataclass
class FunnelConfig:
    maturity_hours: float = 48
    scheduled_status: str = "SCHEDULED"
    completed_status: str = "COMPLETED"
    pending_statuses: list[str] = field(default_factory=lambda: ["PENDING", "INVITED", "EMAIL SENT"])
    feedback_submitted_status: str = "Submitted"
    awaiting_feedback_status: str = "AI_RECOMMENDED"


@dataclass
class AlertConfig:
    completed_status: str = "COMPLETED"
    feedback_status: str = "AI_RECOMMENDED"
    min_business_days: int = 1
    urgent_business_days: int = 3
    stop_business_days: int = 15
    excluded_candidates: list[str] = field(default_factory=list)
    pending_status: str = "PENDING"
    nudge_after_days: float = 2
    # New high-match count: stage compared upper-cased, statuses lower-cased
    new_stage: str = "NEW"
    active_status: str = "active"
    open_position_status: str = "open"


@dataclass
class SyncCheckConfig:
    name: str
    worksheet: str
    cell: str
    max_age_minutes: float
    sheet_id: str = ""
    # "application" or "interview_log": borrow that source's sheet id
    source: str = ""


@dataclass
class ReportConfig:
    launch_date: datetime
    application: SourceConfig = field(default_factory=SourceConfig)
    interview_log: SourceConfig = field(default_factory=SourceConfig)
    application_fields: ApplicationFields = field(default_factory=ApplicationFields)
    interview_fields: InterviewFields = field(default_factory=InterviewFields)
    match_score_threshold: float = 4
    lookback_days: int = 99999
    excluded_recruiters: list[str] = field(default_factory=list)
    excluded_positions: list[str] = field(default_factory=list)
    status_vocabulary: dict[int, list[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_STATUS_VOCABULARY.items()}
    )
    eligibility: EligibilityPolicy = field(default_factory=EligibilityPolicy)
    coverage: CoverageConfig = field(default_factory=CoverageConfig)
    missed_opportunities: MissedOpportunityConfig = field(default_factory=MissedOpportunityConfig)
    funnel: FunnelConfig = field(default_factory=FunnelConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    sync_checks: list[SyncCheckConfig] = field(default_factory=list)
    column_fuzzy_threshold: Optional[float] = 90
    google_service_account_json: str = ""


def load_config(path: Optional[Path] = None) -> ReportConfig:
    """Read the YAML config and overlay secrets/ids from the environment."""
    path = Path(path) if path else DEFAULT_CONFIG_PATH
    try:
        with open(path, "r") as f:
            prefs = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    config = build_config(prefs)

    config.google_service_account_json = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON", "")
    config.application.sheet_id = os.getenv("APPLICATION_SHEET_ID", config.application.sheet_id)
    config.interview_log.sheet_id = os.getenv("INTERVIEW_LOG_SHEET_ID", config.interview_log.sheet_id)

    for check in config.sync_checks:
        if not check.sheet_id and check.source:
            check.sheet_id = getattr(config, check.source).sheet_id
    return config


def build_config(prefs: dict[str, Any]) -> ReportConfig:
    """Build a ReportConfig from an already-parsed mapping."""
    if "launch_date" not in prefs:
        raise ConfigError("launch_date is required")

    sources = prefs.get("sources", {})
    thresholds = prefs.get("thresholds", {})
    exclusions = prefs.get("exclusions", {})
    columns = prefs.get("columns", {})

    vocabulary = prefs.get("status_vocabulary")
    if vocabulary is not None:
        try:
            vocabulary = {int(rank): list(statuses) for rank, statuses in vocabulary.items()}
        except (TypeError, ValueError) as e:
            raise ConfigError(f"status_vocabulary ranks must be integers: {e}") from e

    eligibility = prefs.get("eligibility", {})
    coverage = prefs.get("coverage", {})
    missed = prefs.get("missed_opportunities", {})

    config = ReportConfig(
        launch_date=_parse_date(prefs["launch_date"], "launch_date"),
        application=_build(SourceConfig, sources.get("application", {}), "sources.application"),
        interview_log=_build(SourceConfig, sources.get("interview_log", {}), "sources.interview_log"),
        application_fields=_build(ApplicationFields, columns.get("application", {}), "columns.application"),
        interview_fields=_build(InterviewFields, columns.get("interview_log", {}), "columns.interview_log"),
        match_score_threshold=thresholds.get("match_score", 4),
        lookback_days=thresholds.get("lookback_days", 99999),
        excluded_recruiters=list(exclusions.get("recruiters", [])),
        excluded_positions=list(exclusions.get("positions", [])),
        eligibility=EligibilityPolicy(
            taken_flags=set(eligibility.get("taken_flags", ["Y"])),
            ineligible_statuses=set(eligibility.get("ineligible_statuses", ["rejected"])),
        ),
        coverage=CoverageConfig(
            cutoff_date=_parse_date(coverage["cutoff_date"], "coverage.cutoff_date") if coverage.get("cutoff_date") else None,
            recent_days=coverage.get("recent_days", 30),
            eligible_stages=list(coverage.get("eligible_stages", [])),
        ),
        missed_opportunities=MissedOpportunityConfig(
            threshold_date=_parse_date(missed["threshold_date"], "missed_opportunities.threshold_date") if missed.get("threshold_date") else None,
            excluded_stages=list(missed.get("excluded_stages", [])),
            missed_flag=missed.get("missed_flag", "N"),
        ),
        funnel=_build(FunnelConfig, prefs.get("funnel", {}), "funnel"),
        alerts=_build(AlertConfig, prefs.get("alerts", {}), "alerts"),
        sync_checks=[_build(SyncCheckConfig, c, "sync_checks") for c in prefs.get("sync_checks", [])],
        column_fuzzy_threshold=prefs.get("column_fuzzy_threshold", 90),
    )
    for check in config.sync_checks:
        if check.source and check.source not in SYNC_SOURCES:
            raise ConfigError(f"sync_checks.source must be one of {SYNC_SOURCES}: {check.source!r}")
    if vocabulary is not None:
        config.status_vocabulary = vocabulary
    return config


def validate_config(config: ReportConfig) -> list[str]:
    """Check that critical configuration is present."""
    warnings = []

    if not config.google_service_account_json:
        warnings.append("GOOGLE_SERVICE_ACCOUNT_JSON is not set — sheets cannot be read")
    if not config.application.sheet_id:
        warnings.append("APPLICATION_SHEET_ID is not set — adoption metrics will be skipped")
    if not config.interview_log.sheet_id:
        warnings.append("INTERVIEW_LOG_SHEET_ID is not set — funnel metrics and alerts will be skipped")
    if config.coverage.cutoff_date is None:
        warnings.append("coverage.cutoff_date is not set — coverage uses the launch date")
    if not config.coverage.eligible_stages:
        warnings.append("coverage.eligible_stages is empty — coverage will report zero eligible")
    if config.alerts.min_business_days > config.alerts.stop_business_days:
        warnings.append("alerts.min_business_days exceeds stop_business_days — no alerts can fire")

    return warnings


def _parse_date(value: Any, key: str) -> datetime:
    parsed = normalize_date(value)
    if parsed is None:
        raise ConfigError(f"{key} is not a valid date: {value!r}")
    return parsed


def _build(cls, values: dict[str, Any], key: str):
    try:
        return cls(**values)
    except TypeError as e:
        raise ConfigError(f"Invalid settings under {key}: {e}") from e
