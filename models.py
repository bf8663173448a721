"""
models.py — Data models for the adoption metrics engine.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterator, Optional

# A raw or canonical record: canonical column name -> cell value
Record = dict[str, Any]


class EligibilityLabel(Enum):
    """Where a record lands in the adoption-rate arithmetic."""
    TAKEN = "taken"
    ELIGIBLE_NOT_TAKEN = "eligible_not_taken"
    INELIGIBLE = "ineligible"


# Maps a record to its label; consumed by metrics.aggregate()
ClassifyFn = Callable[[Record], EligibilityLabel]


@dataclass
class Diagnostics:
    """Row-level problems recovered during a run. Surfaced as counts, never raised."""
    short_rows: int = 0
    missing_key: int = 0
    unparseable_date: int = 0
    excluded_by_filter: int = 0
    duplicates_collapsed: int = 0

    def merge(self, other: "Diagnostics") -> "Diagnostics":
        for name, value in other.as_dict().items():
            setattr(self, name, getattr(self, name) + value)
        return self

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class Cohort:
    """A named, immutable view over canonical records."""
    name: str
    records: tuple = ()
    excluded_unparseable_date: int = 0
    excluded_by_filter: int = 0

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class GroupMetrics:
    """Adoption counts for one bucket of a grouped MetricSet."""
    key: str
    eligible: int = 0
    taken: int = 0
    rate_pct: float = 0.0
    ineligible: int = 0


@dataclass
class MetricSet:
    """Adoption metrics for one cohort, optionally partitioned by a dimension."""
    total_eligible: int = 0
    total_taken: int = 0
    adoption_rate_pct: float = 0.0
    total_ineligible: int = 0
    groups: list[GroupMetrics] = field(default_factory=list)
    group_by: Optional[str] = None

    @property
    def total_not_taken(self) -> int:
        return self.total_eligible - self.total_taken

    def group(self, key: str) -> Optional[GroupMetrics]:
        for g in self.groups:
            if g.key == key:
                return g
        return None

    def to_dict(self) -> dict:
        """Shape consumed by the report-rendering layer."""
        return {
            "totalEligible": self.total_eligible,
            "totalTaken": self.total_taken,
            "adoptionRatePct": self.adoption_rate_pct,
            "groups": [
                {"key": g.key, "eligible": g.eligible, "taken": g.taken, "ratePct": g.rate_pct}
                for g in self.groups
            ],
        }


@dataclass
class FunnelBreakdown:
    """Funnel counts for one job function, country or recruiter."""
    key: str
    sent: int = 0
    scheduled: int = 0
    completed: int = 0
    pending: int = 0
    feedback_submitted: int = 0
    awaiting_feedback: int = 0
    status_counts: dict[str, int] = field(default_factory=dict)
    scheduled_rate_pct: float = 0.0
    completed_pct_of_sent: float = 0.0
    pending_pct_of_sent: float = 0.0
    feedback_rate_pct: float = 0.0


@dataclass
class FunnelMetrics:
    """Interview-log funnel over a set of canonical interview records."""
    total_sent: int = 0
    total_scheduled: int = 0
    total_completed: int = 0
    total_pending: int = 0
    total_feedback_submitted: int = 0
    sent_to_scheduled_rate_pct: float = 0.0
    scheduled_to_completed_rate_pct: float = 0.0
    completed_to_feedback_rate_pct: float = 0.0
    completion_rate_pct: float = 0.0
    mature_sent: int = 0
    mature_completed: int = 0
    kpi_completion_rate_pct: float = 0.0
    avg_time_to_schedule_days: Optional[float] = None
    avg_match_stars: Optional[float] = None
    status_distribution: dict[str, dict] = field(default_factory=dict)
    daily_sent_counts: dict[str, int] = field(default_factory=dict)
    by_job_function: list[FunnelBreakdown] = field(default_factory=list)
    by_country: list[FunnelBreakdown] = field(default_factory=list)
    by_recruiter: list[FunnelBreakdown] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ApplicationFields:
    """Column names of the application sheet."""
    profile_id: str = "Profile_id"
    position_id: str = "Position_id"
    recruiter_name: str = "Recruiter name"
    recruiter_email: str = "Recruiter email"
    application_ts: str = "Application_ts"
    application_status: str = "Application_status"
    position_status: str = "Position_status"
    last_stage: str = "Last_stage"
    ai_interview: str = "Ai_interview"
    match_stars: str = "Match_stars"
    title: str = "Title"
    candidate_name: str = "Name"


@dataclass
class InterviewFields:
    """Column names of the interview-log sheet."""
    profile_id: str = "Profile_id"
    position_id: str = "Position_id"
    position_name: str = "Position_name"
    status: str = "Interview_status"
    feedback_status: str = "Feedback_status"
    email_sent_at: str = "Interview_email_sent_at"
    schedule_start: str = "Schedule_start_time"
    job_function: str = "Job_function"
    country: str = "Location_country"
    recruiter_name: str = "Recruiter_name"
    recruiter_email: str = "Creator_user_id"
    candidate_name: str = "Candidate_name"
    match_stars: str = "Match_stars"


@dataclass
class FeedbackAlert:
    """A completed AI interview still waiting on the recruiter's decision."""
    record: Record
    recruiter_email: str
    candidate_name: str
    completed_at: datetime
    business_days: int
    urgent: bool = False


@dataclass
class FreshnessCheck:
    """Outcome of checking a sync timestamp against its maximum age."""
    name: str
    raw_value: Any
    parsed: bool = False
    timestamp: Optional[datetime] = None
    offset_minutes: Optional[int] = None
    age_minutes: Optional[float] = None
    max_age_minutes: float = 0.0
    stale: bool = False


@dataclass
class AdoptionReport:
    """Pre- vs post-launch adoption, each cohort grouped by recruiter."""
    launch_date: datetime
    has_match_score: bool
    pre_launch: MetricSet
    post_launch: MetricSet
    post_launch_high_match: Optional[MetricSet] = None


@dataclass
class CoverageReport:
    """Share of candidates at eligible pipeline stages who got an AI screen."""
    cutoff_date: datetime
    recent_since: datetime
    historical: MetricSet
    recent: MetricSet
    time_to_invite_days: dict[str, Optional[float]] = field(default_factory=dict)


@dataclass
class MissedOpportunityReport:
    """Applications past the threshold date that skipped the AI screen."""
    threshold_date: datetime
    total_considered: int = 0
    total_missed: int = 0
    missed_pct: float = 0.0
    by_recruiter: dict[str, dict[str, int]] = field(default_factory=dict)
