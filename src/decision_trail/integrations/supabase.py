# src/decision_trail/integrations/supabase.py
"""
httpx adapters for the hosted relational store and its auth service.

The store is reached through its RPC surface (/rest/v1/rpc/<name>) with the
anon key as `apikey` and the user's access token as bearer credential.
"""

import logging
from typing import Dict, List, Optional, Any

import httpx

from decision_trail.core.config import GatewayConfig
from decision_trail.core.models import AREA_KEYS
from decision_trail.integrations.ports import (
    ImpactRecordResult,
    NewImpactRecord,
    SessionExpiredError,
    SessionProvider,
    UserIdentity,
    WorkspaceSummary,
)

logger = logging.getLogger(__name__)


class SupabaseError(Exception):
    """Raised when a store call fails."""
    def __init__(self, message, status_code=None):
        self.status_code = status_code
        super().__init__(message)


class SupabaseAuthSession:
    """Session provider backed by a user access token."""

    def __init__(self, config: GatewayConfig, access_token: Optional[str],
                 http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.access_token = access_token
        self.client = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def get_current_user(self) -> Optional[UserIdentity]:
        """Resolve the token to a user, or None when it is missing or rejected.

        Raises SupabaseError when the auth service answers with a malformed body.
        """
        if not self.access_token or not self.config.supabase_url or not self.config.anon_key:
            return None

        response = await self.client.get(
            f"{self.config.supabase_url.rstrip('/')}/auth/v1/user",
            headers={
                "apikey": self.config.anon_key,
                "Authorization": f"Bearer {self.access_token}"
            }
        )
        if response.status_code in (401, 403):
            logger.info("Access token rejected by the auth service")
            return None
        response.raise_for_status()

        try:
            data = response.json()
            return UserIdentity(id=data['id'], email=data.get('email'))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise SupabaseError(f"Malformed auth response: {e!r}", response.status_code) from e

    async def get_fresh_session_token(self) -> str:
        if not self.access_token:
            raise SessionExpiredError("No access token available")
        return self.access_token

    async def close(self):
        await self.client.aclose()


class SupabaseImpactStore:
    """Impact store over the RPC surface of the relational store."""

    def __init__(self, config: GatewayConfig, session: SessionProvider,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.session = session
        self.client = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def _headers(self) -> Dict[str, str]:
        token = await self.session.get_fresh_session_token()
        return {
            "apikey": self.config.anon_key or "",
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json"
        }

    def _url(self, path: str) -> str:
        if not self.config.supabase_url:
            raise SupabaseError("Supabase URL not configured")
        return f"{self.config.supabase_url.rstrip('/')}{path}"

    async def _post(self, path: str, payload: Any, prefer: Optional[str] = None) -> Any:
        headers = await self._headers()
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = await self.client.post(self._url(path), headers=headers, json=payload)
        except httpx.TimeoutException:
            raise SupabaseError(f"Request timeout: {path}")
        except httpx.RequestError as e:
            raise SupabaseError(f"Request failed: {str(e)}")

        if response.status_code >= 400:
            try:
                message = response.json().get('message') or response.text
            except (ValueError, AttributeError):
                message = response.text
            raise SupabaseError(f"{path} failed: {message}", response.status_code)

        if not response.content:
            return None
        return response.json()

    async def rpc(self, name: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._post(f"/rest/v1/rpc/{name}", params or {})

    async def list_workspaces_for_user(self) -> List[WorkspaceSummary]:
        rows = await self.rpc("get_user_workspaces") or []
        return [WorkspaceSummary.from_dict(row) for row in rows]

    async def create_impact_record(self, record: NewImpactRecord) -> ImpactRecordResult:
        """Create the impact, then its area states and actions. Never raises."""
        try:
            impact_id = await self.rpc("create_impact", {
                'ws_id': record.workspace_id,
                'p_title': record.title,
                'p_description': record.description,
                'p_ai_context': record.context or None,
                'p_ai_generated': record.generated_by_ai
            })
            if not impact_id:
                return ImpactRecordResult(ok=False, error="create_impact returned no id")

            for key in AREA_KEYS:
                await self.rpc("update_area_state", {
                    'p_impact_id': impact_id,
                    'p_area_key': key.value,
                    'p_state': record.area_states[key].value
                })

            if record.actions:
                await self._post(
                    "/rest/v1/impact_action",
                    [
                        {
                            'impact_id': impact_id,
                            'description': action.description,
                            'area_key': action.area_key.value if action.area_key else None
                        }
                        for action in record.actions
                    ],
                    prefer="return=minimal"
                )
        except (SupabaseError, SessionExpiredError) as e:
            logger.error(f"Failed to create impact: {e}")
            return ImpactRecordResult(ok=False, error=str(e))

        return ImpactRecordResult(ok=True, record_id=str(impact_id))

    async def close(self):
        await self.client.aclose()
