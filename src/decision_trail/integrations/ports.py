# src/decision_trail/integrations/ports.py
"""
Port definitions for the external collaborators of the New Decision flow.

Interfaces and DTOs only: the session/auth provider, the analysis gateway
and the impact store.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Protocol

from decision_trail.core.models import AIAnalysis, AreaKey, AreaState, SuggestedAction


class SessionExpiredError(Exception):
    """Raised when no fresh session token can be obtained."""
    pass


@dataclass(frozen=True)
class UserIdentity:
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class WorkspaceSummary:
    id: str
    name: str
    role: str = "member"
    member_count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorkspaceSummary':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            role=data.get('role', 'member'),
            member_count=data.get('member_count', 0)
        )


@dataclass
class NewImpactRecord:
    """Everything the store needs to turn a finished draft into a permanent record."""
    workspace_id: str
    title: str
    context: str
    area_states: Dict[AreaKey, AreaState]
    actions: List[SuggestedAction] = field(default_factory=list)
    generated_by_ai: bool = False
    description: Optional[str] = None


@dataclass(frozen=True)
class ImpactRecordResult:
    ok: bool
    record_id: Optional[str] = None
    error: Optional[str] = None


class SessionProvider(Protocol):
    async def get_current_user(self) -> Optional[UserIdentity]:
        ...

    async def get_fresh_session_token(self) -> str:
        ...


class AnalysisGateway(Protocol):
    async def analyze(self, text: str, workspace_id: str) -> AIAnalysis:
        ...


class ImpactStore(Protocol):
    async def list_workspaces_for_user(self) -> List[WorkspaceSummary]:
        ...

    async def create_impact_record(self, record: NewImpactRecord) -> ImpactRecordResult:
        ...
