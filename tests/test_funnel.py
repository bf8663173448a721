#!/usr/bin/env python3
"""
Interview Funnel Test Suite

Tests for compute_funnel over canonical interview-log records:
1. Stage totals and conversion rates
2. Mature-invite KPI completion rate
3. Averages, status distribution and daily counts
4. Breakdowns with "Unknown" buckets
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import FunnelConfig
from funnel import compute_funnel
from models import InterviewFields

AS_OF = datetime(2025, 5, 10, 12, 0, tzinfo=timezone.utc)


def _interview(status, sent, schedule=None, feedback="", job_function=None, country=None, recruiter=None, stars=None):
    return {
        "Interview_status": status,
        "Interview_email_sent_at": sent,
        "Schedule_start_time": schedule,
        "Feedback_status": feedback,
        "Job_function": job_function,
        "Location_country": country,
        "Recruiter_name": recruiter,
        "Match_stars": stars,
    }


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fields():
    return InterviewFields()


@pytest.fixture
def interviews():
    return [
        _interview("COMPLETED", "2025-05-01T00:00:00Z", "2025-05-03T00:00:00Z", "Submitted", "Eng", "US", "Alex", 4),
        _interview("COMPLETED", "2025-05-02T00:00:00Z", "2025-05-03T00:00:00Z", "AI_RECOMMENDED", "Eng", "", "Alex", 5),
        _interview("SCHEDULED", "2025-05-09T00:00:00Z", None, "", "Sales", "IN", "Blake"),
        _interview("PENDING", "2025-05-05T00:00:00Z", None, "", None, None, "Blake"),
        _interview("INVITED", "", None, "", None, None, ""),
    ]


@pytest.fixture
def funnel(interviews, fields):
    return compute_funnel(interviews, fields, AS_OF)


# =============================================================================
# Totals and rates
# =============================================================================


class TestTotals:

    def test_stage_counts(self, funnel):
        assert funnel.total_sent == 5
        assert funnel.total_scheduled == 1
        assert funnel.total_completed == 2
        assert funnel.total_pending == 2
        assert funnel.total_feedback_submitted == 1

    def test_rates(self, funnel):
        assert funnel.sent_to_scheduled_rate_pct == 20.0
        assert funnel.completion_rate_pct == 40.0
        assert funnel.completed_to_feedback_rate_pct == 50.0

    def test_mature_kpi(self, funnel):
        # Invites sent after 2025-05-08 12:00 or without a send date are too fresh to judge
        assert funnel.mature_sent == 3
        assert funnel.mature_completed == 2
        assert funnel.kpi_completion_rate_pct == 66.7

    def test_maturity_window_is_configurable(self, interviews, fields):
        result = compute_funnel(interviews, fields, AS_OF, FunnelConfig(maturity_hours=24 * 30))
        assert result.mature_sent == 0
        assert result.kpi_completion_rate_pct == 0.0

    def test_averages(self, funnel):
        assert funnel.avg_time_to_schedule_days == 1.5
        assert funnel.avg_match_stars == 4.5

    def test_empty(self, fields):
        result = compute_funnel([], fields, AS_OF)
        assert result.total_sent == 0
        assert result.completion_rate_pct == 0.0
        assert result.avg_time_to_schedule_days is None
        assert result.by_recruiter == []


class TestDistribution:

    def test_status_distribution(self, funnel):
        assert funnel.status_distribution["COMPLETED"] == {"count": 2, "percentage": 40.0}
        assert funnel.status_distribution["INVITED"] == {"count": 1, "percentage": 20.0}

    def test_daily_sent_counts(self, funnel):
        assert funnel.daily_sent_counts == {
            "2025-05-01": 1,
            "2025-05-02": 1,
            "2025-05-09": 1,
            "2025-05-05": 1,
        }


# =============================================================================
# Breakdowns
# =============================================================================


class TestBreakdowns:

    def test_job_function(self, funnel):
        assert [b.key for b in funnel.by_job_function] == ["Eng", "Sales", "Unknown"]
        eng = funnel.by_job_function[0]
        assert eng.sent == 2
        assert eng.completed == 2
        assert eng.feedback_submitted == 1
        assert eng.awaiting_feedback == 1
        assert eng.completed_pct_of_sent == 100.0
        assert eng.feedback_rate_pct == 50.0

    def test_country_unknown_bucket(self, funnel):
        assert [b.key for b in funnel.by_country] == ["IN", "Unknown", "US"]
        unknown = funnel.by_country[1]
        assert unknown.sent == 3
        assert unknown.pending == 2

    def test_recruiter(self, funnel):
        assert [(b.key, b.sent) for b in funnel.by_recruiter] == [("Alex", 2), ("Blake", 2), ("Unknown", 1)]
        blake = funnel.by_recruiter[1]
        assert blake.scheduled_rate_pct == 50.0
        assert blake.status_counts == {"SCHEDULED": 1, "PENDING": 1}

    def test_to_dict(self, funnel):
        data = funnel.to_dict()
        assert data["total_sent"] == 5
        assert data["by_recruiter"][0]["key"] == "Alex"
