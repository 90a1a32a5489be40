# FILE: tests/conftest.py
"""
Pytest configuration for the Decision Trail test suite.

Configures:
- pytest-asyncio for async test support
- in-memory collaborators (gateway, store, session provider)
"""
import asyncio
import sys
from pathlib import Path

import pytest

_src = Path(__file__).parent.parent / "src"
if str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from decision_trail.core.sanitizer import sanitize
from decision_trail.integrations.ports import (
    ImpactRecordResult,
    SessionExpiredError,
    UserIdentity,
)

pytest_plugins = ["pytest_asyncio"]

SLACK_TO_TEAMS = {
    "summary": "Migrate internal messaging from Slack to Microsoft Teams",
    "ai_context": "Moving the messaging platform affects integrations, message retention "
                  "and the daily habits of every team.",
    "clarifying_questions": [
        "Will the Slack history be archived?",
        "Who needs to be trained, and by when?"
    ],
    "area_suggestions": {
        "asset_tools": "likely_impacted",
        "information_data": "likely_impacted",
        "access_privileges": "to_review",
        "process_controls": "to_review",
        "risk_impact": "not_sure",
        "policies_docs": "to_review",
        "people_awareness": "likely_impacted"
    },
    "suggested_actions": [
        {"description": "Inventory Slack integrations", "area_key": "asset_tools"},
        {"description": "Plan Teams training", "area_key": "people_awareness"},
        {"description": "Communicate the migration timeline", "area_key": None}
    ]
}

DECISION_TEXT = "We are moving from Slack to Teams next quarter"


def make_analysis(**overrides):
    raw = dict(SLACK_TO_TEAMS)
    raw.update(overrides)
    return sanitize(raw)


class FakeGateway:
    """Returns (or raises) queued outcomes; the last one repeats."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes) or [make_analysis()]
        self.calls = []

    async def analyze(self, text, workspace_id):
        self.calls.append((text, workspace_id))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class GatedGateway(FakeGateway):
    """Like FakeGateway, but every call waits until `release` is set."""

    def __init__(self, *outcomes):
        super().__init__(*outcomes)
        self.release = asyncio.Event()

    async def analyze(self, text, workspace_id):
        self.calls.append((text, workspace_id))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        await self.release.wait()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeStore:
    def __init__(self, result=None, error=None):
        self.result = result or ImpactRecordResult(ok=True, record_id="imp-1")
        self.error = error
        self.records = []

    async def list_workspaces_for_user(self):
        return []

    async def create_impact_record(self, record):
        self.records.append(record)
        if self.error is not None:
            raise self.error
        return self.result


class FakeSession:
    def __init__(self, user=UserIdentity(id="user-1", email="ana@example.com"),
                 token="user-token", expired=False):
        self.user = user
        self.token = token
        self.expired = expired

    async def get_current_user(self):
        return self.user

    async def get_fresh_session_token(self):
        if self.expired:
            raise SessionExpiredError("refresh failed")
        return self.token


@pytest.fixture
def analysis():
    return make_analysis()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def store():
    return FakeStore()
