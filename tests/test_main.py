#!/usr/bin/env python3
"""
Orchestrator Test Suite

Runs main.run end to end against an in-memory sheet source:
1. All phases produce results from two tabs
2. Missing required columns abort the run
3. Source read failures are collected, not raised
4. Sync checks without a sheet id are skipped
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import build_config
from main import run
from schema import SchemaError
from sheets import SheetReadError

# Monday
AS_OF = datetime(2025, 5, 12, 9, 0, tzinfo=timezone.utc)
ALEX = "alex@example.com"

APPLICATION_TABLE = (
    [
        "Profile_id", "Position_id", "Recruiter name", "Recruiter email", "Application_ts",
        "Application_status", "Position_status", "Last_stage", "Ai_interview", "Match_stars",
    ],
    [
        ["p1", "j1", "Alex", ALEX, "2025-04-20", "Active", "Open", "NEW", "Y", "5"],
        ["p2", "j1", "Alex", ALEX, "2025-04-21", "Active", "Open", "NEW", "N", "4"],
        ["p4", "j1", "Alex", ALEX, "2025-04-22", "Rejected", "Open", "NEW", "N", "2"],
    ],
)

INTERVIEW_TABLE = (
    [
        "Profile_id", "Position_id", "Position_name", "Interview_status", "Feedback_status",
        "Interview_email_sent_at", "Schedule_start_time", "Creator_user_id", "Candidate_name",
    ],
    [
        ["p1", "j1", "Engineer", "COMPLETED", "AI_RECOMMENDED", "2025-05-01T00:00:00Z",
         "2025-05-07T15:00:00Z", "Alex@Example.com", "Ana"],
        ["p1", "j1", "Engineer", "PENDING", "", "2025-04-30T00:00:00Z", "", ALEX, "Ana"],
        ["p3", "j2", "Engineer", "PENDING", "", "2025-05-01T00:00:00Z", "", ALEX, "Cy"],
    ],
)


class FakeSource:
    """Stands in for SheetSource, serving tables by sheet id."""

    def __init__(self, tables, cells=None, failing=()):
        self.tables = tables
        self.cells = cells or {}
        self.failing = set(failing)

    def fetch(self, sheet_id, worksheet, header_row=1):
        if sheet_id in self.failing:
            raise SheetReadError(f"Cannot open spreadsheet {sheet_id}")
        headers, rows = self.tables[sheet_id]
        return list(headers), [list(row) for row in rows]

    def read_cell(self, sheet_id, worksheet, cell):
        if sheet_id in self.failing:
            raise SheetReadError(f"Cannot open spreadsheet {sheet_id}")
        return self.cells[(sheet_id, cell)]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config():
    config = build_config({
        "launch_date": "2025-04-17",
        "sync_checks": [
            {"name": "log sync", "worksheet": "Log", "cell": "B1", "max_age_minutes": 240, "sheet_id": "log-sheet"},
        ],
        "column_fuzzy_threshold": None,
    })
    config.google_service_account_json = "key.json"
    config.application.sheet_id = "app-sheet"
    config.interview_log.sheet_id = "log-sheet"
    return config


@pytest.fixture
def source():
    return FakeSource(
        {"app-sheet": APPLICATION_TABLE, "log-sheet": INTERVIEW_TABLE},
        cells={("log-sheet", "B1"): "12 May 2025 14:00 GMT+05:30"},
    )


# =============================================================================
# Full run
# =============================================================================


class TestRun:

    def test_all_phases(self, config, source):
        result = run(as_of=AS_OF, source=source, config=config)

        assert result["errors"] == []
        assert result["as_of"] == AS_OF

        adoption = result["adoption"]
        assert adoption.post_launch.total_eligible == 2
        assert adoption.post_launch.total_taken == 1
        assert adoption.post_launch.total_ineligible == 1
        assert adoption.post_launch.adoption_rate_pct == 50.0

        funnel = result["funnel"]
        assert funnel.total_sent == 2
        assert funnel.total_completed == 1
        assert funnel.total_pending == 1

        assert list(result["alerts"]) == [ALEX]
        assert [a.candidate_name for a in result["alerts"][ALEX]] == ["Ana"]
        assert result["recruiter_followups"] == {ALEX: {"pending_nudges": 1, "new_high_match": 2}}

        [sync] = result["sync_checks"]
        assert sync.name == "log sync"
        assert not sync.stale

    def test_diagnostics(self, config, source):
        result = run(as_of=AS_OF, source=source, config=config)
        assert result["diagnostics"]["interview_log"]["duplicates_collapsed"] == 1
        assert result["diagnostics"]["applications"]["duplicates_collapsed"] == 0

    def test_missing_required_column_aborts(self, config, source):
        headers, rows = APPLICATION_TABLE
        index = headers.index("Ai_interview")
        source.tables["app-sheet"] = (
            [h for i, h in enumerate(headers) if i != index],
            [[v for i, v in enumerate(row) if i != index] for row in rows],
        )
        with pytest.raises(SchemaError) as exc_info:
            run(as_of=AS_OF, source=source, config=config)
        assert "Ai_interview" in exc_info.value.missing

    def test_read_failure_is_collected(self, config, source):
        source.failing.add("log-sheet")
        result = run(as_of=AS_OF, source=source, config=config)
        assert result["adoption"] is not None
        assert result["funnel"] is None
        assert any(e.startswith("Interview log:") for e in result["errors"])
        assert any(e.startswith("Sync check log sync:") for e in result["errors"])

    def test_sync_check_without_sheet_id_skipped(self, config, source):
        config.sync_checks[0].sheet_id = ""
        result = run(as_of=AS_OF, source=source, config=config)
        assert result["sync_checks"] == []
        assert result["errors"] == []

    def test_no_sheets_configured(self, config, source):
        config.application.sheet_id = ""
        config.interview_log.sheet_id = ""
        config.sync_checks = []
        result = run(as_of=AS_OF, source=source, config=config)
        assert result["adoption"] is None
        assert result["funnel"] is None
        assert result["alerts"] == {}
        assert result["errors"] == []
