#!/usr/bin/env python3
"""
Recruiter Alerts Test Suite

Tests for verifying recruiter follow-up checks:
1. Feedback alerts by business-day window
2. Grouping by recruiter email
3. Pending-invite nudges
4. New high-match applicant counts
5. Sync timestamp freshness
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from alerts import (
    check_timestamp_freshness,
    count_new_high_match,
    count_pending_nudges,
    find_feedback_alerts,
    group_alerts_by_recruiter,
)
from config import AlertConfig
from models import ApplicationFields, InterviewFields

# Monday
AS_OF = datetime(2025, 5, 12, 9, 0, tzinfo=timezone.utc)
LAUNCH = datetime(2025, 4, 17, tzinfo=timezone.utc)
ALEX = "alex@example.com"


def _log(name, status, feedback, schedule, recruiter=ALEX, sent=None):
    return {
        "Candidate_name": name,
        "Interview_status": status,
        "Feedback_status": feedback,
        "Schedule_start_time": schedule,
        "Creator_user_id": recruiter,
        "Interview_email_sent_at": sent,
    }


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    return AlertConfig(excluded_candidates=["Jane Doe"])


@pytest.fixture
def log_records():
    return [
        _log("Ana", "COMPLETED", "AI_RECOMMENDED", "2025-05-07T15:00:00Z", recruiter=" Alex@Example.com "),
        _log("Ben", "COMPLETED", "AI_RECOMMENDED", "2025-05-05T15:00:00Z"),
        _log("Cy", "COMPLETED", "AI_RECOMMENDED", "2025-05-09T15:00:00Z"),
        _log("Dee", "COMPLETED", "AI_RECOMMENDED", "2025-04-01T15:00:00Z"),
        _log("Eve", "COMPLETED", "Submitted", "2025-05-05T15:00:00Z"),
        _log("Fay", "SCHEDULED", "AI_RECOMMENDED", "2025-05-05T15:00:00Z"),
        _log("jane doe", "COMPLETED", "AI_RECOMMENDED", "2025-05-05T15:00:00Z"),
        _log("Hal", "COMPLETED", "AI_RECOMMENDED", ""),
        _log("Ivy", "COMPLETED", "AI_RECOMMENDED", "2025-05-06T15:00:00Z", recruiter="no-email"),
    ]


# =============================================================================
# Feedback alerts
# =============================================================================


class TestFeedbackAlerts:

    def test_business_day_window(self, log_records, settings):
        alerts = find_feedback_alerts(log_records, InterviewFields(), AS_OF, settings)
        assert [(a.candidate_name, a.business_days) for a in alerts] == [("Ana", 3), ("Ben", 5), ("Ivy", 4)]

    def test_urgency(self, log_records, settings):
        alerts = {a.candidate_name: a for a in find_feedback_alerts(log_records, InterviewFields(), AS_OF, settings)}
        assert not alerts["Ana"].urgent
        assert alerts["Ben"].urgent
        assert alerts["Ivy"].urgent

    def test_recruiter_email_normalized(self, log_records, settings):
        alerts = find_feedback_alerts(log_records, InterviewFields(), AS_OF, settings)
        assert alerts[0].recruiter_email == ALEX

    def test_excluded_candidate_only_when_listed(self, log_records):
        alerts = find_feedback_alerts(log_records, InterviewFields(), AS_OF, AlertConfig())
        assert "jane doe" in [a.candidate_name for a in alerts]

    def test_stop_threshold_is_inclusive(self, settings):
        # 2025-04-21 (Mon) to 2025-05-12 (Mon) is exactly 15 business days
        records = [_log("Gus", "COMPLETED", "AI_RECOMMENDED", "2025-04-21T10:00:00Z")]
        alerts = find_feedback_alerts(records, InterviewFields(), AS_OF, settings)
        assert [a.business_days for a in alerts] == [15]


class TestGroupAlerts:

    def test_grouped_and_sorted_oldest_first(self, log_records, settings):
        alerts = find_feedback_alerts(log_records, InterviewFields(), AS_OF, settings)
        grouped = group_alerts_by_recruiter(alerts)
        assert list(grouped) == [ALEX]
        assert [a.candidate_name for a in grouped[ALEX]] == ["Ben", "Ana"]

    def test_empty(self):
        assert group_alerts_by_recruiter([]) == {}


# =============================================================================
# Nudges and high-match counts
# =============================================================================


class TestPendingNudges:

    def test_counts_stale_pending_invites(self):
        records = [
            _log("a", "PENDING", "", None, sent="2025-05-09T09:00:00Z"),
            _log("b", "PENDING", "", None, sent="2025-05-11T09:00:00Z"),
            _log("c", "pending", "", None, sent="2025-05-01T09:00:00Z"),
            _log("d", "SCHEDULED", "", None, sent="2025-05-01T09:00:00Z"),
            _log("e", "PENDING", "", None, recruiter="other@example.com", sent="2025-05-01T09:00:00Z"),
            _log("f", "PENDING", "", None, sent=""),
        ]
        assert count_pending_nudges(records, InterviewFields(), "ALEX@example.com", AS_OF) == 2

    def test_nudge_window_is_configurable(self):
        records = [_log("a", "PENDING", "", None, sent="2025-05-09T09:00:00Z")]
        settings = AlertConfig(nudge_after_days=5)
        assert count_pending_nudges(records, InterviewFields(), ALEX, AS_OF, settings) == 0


class TestNewHighMatch:

    @pytest.fixture
    def applications(self):
        def app(stars=4, stage="NEW", status="Active", position="Open", applied="2025-04-20", recruiter=ALEX):
            return {
                "Recruiter email": recruiter,
                "Match_stars": stars,
                "Last_stage": stage,
                "Application_status": status,
                "Position_status": position,
                "Application_ts": applied,
            }
        return [
            app(),
            app(stars="4.5", stage="new", status="active", position="open", applied="2025-04-17"),
            app(stars=3),
            app(stars=""),
            app(stage="ASSESSMENT"),
            app(applied="2025-04-01"),
            app(applied="bad date"),
            app(status="Rejected"),
            app(position="Closed"),
            app(recruiter="other@example.com"),
        ]

    def test_count(self, applications):
        assert count_new_high_match(applications, ApplicationFields(), ALEX, LAUNCH) == 2

    def test_threshold(self, applications):
        assert count_new_high_match(applications, ApplicationFields(), ALEX, LAUNCH, match_threshold=3) == 3

    def test_vocabulary_is_configurable(self):
        settings = AlertConfig(new_stage="Applied", active_status="Open", open_position_status="Live")
        records = [
            {
                "Recruiter email": ALEX,
                "Match_stars": 5,
                "Last_stage": "APPLIED",
                "Application_status": "open",
                "Position_status": "live",
                "Application_ts": "2025-04-20",
            },
            {
                "Recruiter email": ALEX,
                "Match_stars": 5,
                "Last_stage": "NEW",
                "Application_status": "Active",
                "Position_status": "Open",
                "Application_ts": "2025-04-20",
            },
        ]
        assert count_new_high_match(records, ApplicationFields(), ALEX, LAUNCH, settings=settings) == 1


# =============================================================================
# Sync freshness
# =============================================================================


class TestTimestampFreshness:

    def test_fresh(self):
        check = check_timestamp_freshness("log", "12 May 2025 14:00 GMT+05:30", AS_OF, 60)
        assert check.parsed
        assert check.offset_minutes == 330
        assert check.timestamp == datetime(2025, 5, 12, 8, 30, tzinfo=timezone.utc)
        assert check.age_minutes == 30
        assert not check.stale

    def test_stale(self):
        check = check_timestamp_freshness("log", "12 May 2025 14:00 GMT+05:30", AS_OF, 20)
        assert check.stale

    def test_unparseable_is_stale(self):
        check = check_timestamp_freshness("log", "never synced", AS_OF, 60)
        assert not check.parsed
        assert check.stale
        assert check.age_minutes is None

    def test_empty_cell(self):
        check = check_timestamp_freshness("log", None, AS_OF, 60)
        assert not check.parsed
        assert check.stale

    def test_plain_datetime_string(self):
        check = check_timestamp_freshness("log", "2025-05-12T08:00:00Z", AS_OF, 120)
        assert check.parsed
        assert check.offset_minutes == 0
        assert not check.stale
