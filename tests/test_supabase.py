# FILE: tests/test_supabase.py
"""
Tests for the hosted store adapters, against a mocked HTTP transport.
"""

import json

import httpx
import pytest

from decision_trail.core.config import GatewayConfig
from decision_trail.core.models import AREA_KEYS, AreaKey, AreaState, SuggestedAction
from decision_trail.integrations.ports import NewImpactRecord, SessionExpiredError
from decision_trail.integrations.supabase import SupabaseAuthSession, SupabaseError, SupabaseImpactStore

from conftest import FakeSession

CONFIG = GatewayConfig(supabase_url="https://proj.supabase.co", anon_key="anon-key")


def make_record():
    states = {key: AreaState.TO_REVIEW for key in AREA_KEYS}
    states[AreaKey.ASSET_TOOLS] = AreaState.IMPACTED
    return NewImpactRecord(
        workspace_id="ws-1",
        title="Migrate to Teams",
        context="Messaging platform change",
        area_states=states,
        actions=[
            SuggestedAction("Inventory integrations", AreaKey.ASSET_TOOLS),
            SuggestedAction("Communicate the timeline"),
        ],
        generated_by_ai=True,
        description="We are moving from Slack to Teams"
    )


class Backend:
    """Records requests and answers by path."""

    def __init__(self, responses):
        self.responses = responses
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.responses.get(request.url.path, httpx.Response(204))

    def bodies(self, path):
        return [json.loads(r.content) for r in self.requests if r.url.path == path]


def make_store(backend, session=None):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(backend))
    return SupabaseImpactStore(CONFIG, session or FakeSession(), http_client)


class TestAuthSession:
    @pytest.mark.asyncio
    async def test_current_user(self):
        backend = Backend({"/auth/v1/user": httpx.Response(200, json={"id": "u-1", "email": "a@b.c"})})
        session = SupabaseAuthSession(CONFIG, "token-1", httpx.AsyncClient(transport=httpx.MockTransport(backend)))

        user = await session.get_current_user()
        assert user.id == "u-1"
        assert backend.requests[0].headers["authorization"] == "Bearer token-1"
        assert backend.requests[0].headers["apikey"] == "anon-key"

    @pytest.mark.asyncio
    async def test_rejected_token(self):
        backend = Backend({"/auth/v1/user": httpx.Response(401, json={"message": "bad jwt"})})
        session = SupabaseAuthSession(CONFIG, "token-1", httpx.AsyncClient(transport=httpx.MockTransport(backend)))
        assert await session.get_current_user() is None

    @pytest.mark.asyncio
    async def test_malformed_user_body(self):
        backend = Backend({"/auth/v1/user": httpx.Response(200, json=["not", "a", "user"])})
        session = SupabaseAuthSession(CONFIG, "token-1", httpx.AsyncClient(transport=httpx.MockTransport(backend)))
        with pytest.raises(SupabaseError):
            await session.get_current_user()

    @pytest.mark.asyncio
    async def test_missing_token(self):
        session = SupabaseAuthSession(CONFIG, None, httpx.AsyncClient(transport=httpx.MockTransport(Backend({}))))
        assert await session.get_current_user() is None
        with pytest.raises(SessionExpiredError):
            await session.get_fresh_session_token()


class TestImpactStore:
    @pytest.mark.asyncio
    async def test_create_impact_record(self):
        backend = Backend({"/rest/v1/rpc/create_impact": httpx.Response(200, json="imp-42")})
        store = make_store(backend)

        result = await store.create_impact_record(make_record())
        assert result.ok
        assert result.record_id == "imp-42"

        created = backend.bodies("/rest/v1/rpc/create_impact")[0]
        assert created == {
            "ws_id": "ws-1",
            "p_title": "Migrate to Teams",
            "p_description": "We are moving from Slack to Teams",
            "p_ai_context": "Messaging platform change",
            "p_ai_generated": True
        }

        updates = backend.bodies("/rest/v1/rpc/update_area_state")
        assert [u["p_area_key"] for u in updates] == [k.value for k in AREA_KEYS]
        assert updates[0]["p_state"] == "impacted"

        actions = backend.bodies("/rest/v1/impact_action")[0]
        assert actions[1] == {"impact_id": "imp-42", "description": "Communicate the timeline", "area_key": None}
        action_request = [r for r in backend.requests if r.url.path == "/rest/v1/impact_action"][0]
        assert action_request.headers["prefer"] == "return=minimal"

    @pytest.mark.asyncio
    async def test_create_failure_reported_not_raised(self):
        backend = Backend({"/rest/v1/rpc/create_impact": httpx.Response(400, json={"message": "not a member"})})
        store = make_store(backend)

        result = await store.create_impact_record(make_record())
        assert not result.ok
        assert "not a member" in result.error
        assert backend.bodies("/rest/v1/rpc/update_area_state") == []

    @pytest.mark.asyncio
    async def test_expired_session_reported(self):
        store = make_store(Backend({}), session=FakeSession(expired=True))
        result = await store.create_impact_record(make_record())
        assert not result.ok

    @pytest.mark.asyncio
    async def test_list_workspaces(self):
        rows = [{"id": "ws-1", "name": "Acme", "role": "owner", "member_count": 4}]
        backend = Backend({"/rest/v1/rpc/get_user_workspaces": httpx.Response(200, json=rows)})
        store = make_store(backend)

        workspaces = await store.list_workspaces_for_user()
        assert workspaces[0].name == "Acme"
        assert workspaces[0].member_count == 4
        assert backend.requests[0].headers["authorization"] == "Bearer user-token"
