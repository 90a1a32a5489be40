# src/decision_trail/core/models.py
"""
Data models for the New Decision flow.

All sync - no async needed for data structures. These models represent the
AI analysis contract, the in-progress decision draft and the closed
vocabularies (areas, suggestion levels, answers, lifecycle states).

Designed for JSON serialization with to_dict()/from_dict() methods.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Union
from enum import Enum


MIN_TEXT_CHARS = 10
MAX_TEXT_CHARS = 5000


# ============================================================================
# ENUMS
# ============================================================================

class AreaKey(str, Enum):
    """The seven fixed areas of organizational impact."""
    ASSET_TOOLS = "asset_tools"
    INFORMATION_DATA = "information_data"
    ACCESS_PRIVILEGES = "access_privileges"
    PROCESS_CONTROLS = "process_controls"
    RISK_IMPACT = "risk_impact"
    POLICIES_DOCS = "policies_docs"
    PEOPLE_AWARENESS = "people_awareness"


# Canonical domain order, used everywhere areas are listed
AREA_KEYS = (
    AreaKey.ASSET_TOOLS,
    AreaKey.INFORMATION_DATA,
    AreaKey.ACCESS_PRIVILEGES,
    AreaKey.PROCESS_CONTROLS,
    AreaKey.RISK_IMPACT,
    AreaKey.POLICIES_DOCS,
    AreaKey.PEOPLE_AWARENESS,
)

AREA_LABELS = {
    AreaKey.ASSET_TOOLS: "Assets & Tools",
    AreaKey.INFORMATION_DATA: "Information & Data",
    AreaKey.ACCESS_PRIVILEGES: "Access & Privileges",
    AreaKey.PROCESS_CONTROLS: "Processes & Controls",
    AreaKey.RISK_IMPACT: "Risk & Impact",
    AreaKey.POLICIES_DOCS: "Policies & Documentation",
    AreaKey.PEOPLE_AWARENESS: "People & Awareness",
}

AREA_ICONS = {
    AreaKey.ASSET_TOOLS: "🔧",
    AreaKey.INFORMATION_DATA: "📊",
    AreaKey.ACCESS_PRIVILEGES: "🔐",
    AreaKey.PROCESS_CONTROLS: "⚙️",
    AreaKey.RISK_IMPACT: "⚠️",
    AreaKey.POLICIES_DOCS: "📋",
    AreaKey.PEOPLE_AWARENESS: "👥",
}


class SuggestionLevel(str, Enum):
    """The model's confidence classification for one area."""
    NOT_SURE = "not_sure"
    TO_REVIEW = "to_review"
    LIKELY_IMPACTED = "likely_impacted"


class AreaState(str, Enum):
    """Area state as stored by the persistence collaborator."""
    TO_REVIEW = "to_review"
    IMPACTED = "impacted"
    NOT_IMPACTED = "not_impacted"


class AnswerToken(str, Enum):
    """Quick answers offered for every clarifying question."""
    YES = "yes"
    NO = "no"
    NOT_SURE = "not_sure"


class LifecycleState(str, Enum):
    """Lifecycle of one in-progress decision."""
    INPUT = "input"
    PROCESSING = "processing"
    CHAT = "chat"
    SUMMARY = "summary"
    ERROR = "error"
    CREATING = "creating"


# An answer is either a quick token value or free text typed by the user
AnswerValue = Union[AnswerToken, str]

_KEY_LOOKUP = {key.value: key for key in AREA_KEYS}
_LEVEL_LOOKUP = {level.value: level for level in SuggestionLevel}


def parse_area_key(value: Any) -> Optional[AreaKey]:
    """Return the AreaKey for a raw value, or None if it is not one of the seven."""
    if isinstance(value, AreaKey):
        return value
    if isinstance(value, str):
        return _KEY_LOOKUP.get(value)
    return None


def parse_suggestion_level(value: Any) -> Optional[SuggestionLevel]:
    """Return the SuggestionLevel for a raw value, or None if invalid."""
    if isinstance(value, SuggestionLevel):
        return value
    if isinstance(value, str):
        return _LEVEL_LOOKUP.get(value)
    return None


def normalize_answer(value: Any) -> Optional[str]:
    """
    Normalize a user answer.

    Quick tokens are returned as their wire value, free text is stripped.
    Empty or non-string input yields None.
    """
    if isinstance(value, AnswerToken):
        return value.value
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def validate_free_text(text: Any) -> Optional[str]:
    """
    Check the free-text bounds of a decision description.

    The minimum applies to the stripped text, the maximum to the raw text.
    Returns the stripped text when valid, otherwise None.
    """
    if not isinstance(text, str) or len(text) > MAX_TEXT_CHARS:
        return None
    stripped = text.strip()
    if len(stripped) < MIN_TEXT_CHARS:
        return None
    return stripped


# ============================================================================
# EXCEPTIONS
# ============================================================================

class DecisionFlowError(Exception):
    """Base exception for New Decision flow errors."""
    pass


class InvalidTransitionError(DecisionFlowError):
    """Raised when a trigger is not allowed from the current state."""
    def __init__(self, state: Optional[LifecycleState], trigger: str, reason: str = ""):
        self.state = state
        self.trigger = trigger
        label = state.value if state else "closed"
        message = f"Cannot {trigger} from state '{label}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DraftInvariantError(DecisionFlowError):
    """Raised when a draft violates its structural invariants."""
    pass


# ============================================================================
# AI CONTRACT
# ============================================================================

@dataclass(frozen=True)
class SuggestedAction:
    """A follow-up action suggested by the model. No area key means global."""
    description: str
    area_key: Optional[AreaKey] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire format."""
        return {
            'description': self.description,
            'area_key': self.area_key.value if self.area_key else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SuggestedAction':
        """Create from wire format."""
        return cls(
            description=data.get('description', ''),
            area_key=parse_area_key(data.get('area_key'))
        )


@dataclass
class AIAnalysis:
    """Sanitized result of one language-model call."""
    summary: str
    context: str
    clarifying_questions: List[str]
    area_suggestions: Dict[AreaKey, SuggestionLevel]
    suggested_actions: List[SuggestedAction] = field(default_factory=list)
    generated_by_ai: bool = True

    @classmethod
    def empty(cls) -> 'AIAnalysis':
        """Neutral analysis used when the user continues without AI."""
        return cls(
            summary="",
            context="",
            clarifying_questions=[],
            area_suggestions={key: SuggestionLevel.TO_REVIEW for key in AREA_KEYS},
            suggested_actions=[],
            generated_by_ai=False
        )

    @property
    def question_count(self) -> int:
        return len(self.clarifying_questions)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire format returned by the analysis service."""
        return {
            'summary': self.summary,
            'ai_context': self.context,
            'clarifying_questions': list(self.clarifying_questions),
            'area_suggestions': {
                key.value: self.area_suggestions[key].value for key in AREA_KEYS
            },
            'suggested_actions': [a.to_dict() for a in self.suggested_actions]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], generated_by_ai: bool = True) -> 'AIAnalysis':
        """Create from already-valid wire data. Use sanitize() for untrusted input."""
        return cls(
            summary=data['summary'],
            context=data['ai_context'],
            clarifying_questions=list(data['clarifying_questions']),
            area_suggestions={
                key: SuggestionLevel(data['area_suggestions'][key.value])
                for key in AREA_KEYS
            },
            suggested_actions=[
                SuggestedAction.from_dict(a) for a in data.get('suggested_actions', [])
            ],
            generated_by_ai=generated_by_ai
        )


# ============================================================================
# DRAFT
# ============================================================================

_ANALYSIS_STATES = (LifecycleState.CHAT, LifecycleState.SUMMARY, LifecycleState.CREATING)


@dataclass
class DecisionDraft:
    """An in-progress, unpersisted decision owned by one session."""
    workspace_id: str
    original_text: str = ""
    ai_response: Optional[AIAnalysis] = None
    answers: "OrderedDict[int, str]" = field(default_factory=OrderedDict)
    lifecycle_state: LifecycleState = LifecycleState.INPUT
    generation: int = 0  # bumped on every analysis request

    @property
    def unanswered_indices(self) -> List[int]:
        if self.ai_response is None:
            return []
        return [i for i in range(self.ai_response.question_count) if i not in self.answers]

    @property
    def all_answered(self) -> bool:
        return self.ai_response is not None and not self.unanswered_indices

    def check_invariants(self):
        """Raise DraftInvariantError if the draft is structurally inconsistent."""
        if self.answers and self.lifecycle_state not in _ANALYSIS_STATES:
            raise DraftInvariantError(
                f"Answers present in state '{self.lifecycle_state.value}'"
            )
        if self.lifecycle_state in _ANALYSIS_STATES and self.ai_response is None:
            raise DraftInvariantError(
                f"Analysis missing in state '{self.lifecycle_state.value}'"
            )
        if self.ai_response is not None:
            if set(self.ai_response.area_suggestions) != set(AREA_KEYS):
                raise DraftInvariantError("Area suggestions must cover exactly the 7 areas")
            for index in self.answers:
                if not 0 <= index < self.ai_response.question_count:
                    raise DraftInvariantError(f"Answer for unknown question index {index}")
