# src/decision_trail/core/sanitizer.py
"""
Response sanitizer for the impact-assist analysis.

The model output is untrusted free-form JSON. Everything downstream relies on
sanitize() to turn it into a schema-valid, size-bounded AIAnalysis; it never
fails, it substitutes defaults instead.
"""

import logging
from typing import Any, List

from decision_trail.core.models import (
    AREA_KEYS,
    AIAnalysis,
    SuggestedAction,
    SuggestionLevel,
    parse_area_key,
    parse_suggestion_level,
)

logger = logging.getLogger(__name__)

MAX_SUMMARY_CHARS = 200
MAX_CONTEXT_CHARS = 2000
MAX_QUESTIONS = 4
MAX_ACTIONS = 3
MAX_ACTION_CHARS = 500

FALLBACK_LEVEL = SuggestionLevel.TO_REVIEW


def _text(value: Any, limit: int) -> str:
    if not isinstance(value, str):
        return ""
    return value[:limit]


def _questions(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [q for q in value[:MAX_QUESTIONS] if isinstance(q, str)]


def _actions(value: Any) -> List[SuggestedAction]:
    if not isinstance(value, list):
        return []

    actions = []
    for entry in value[:MAX_ACTIONS]:
        if not isinstance(entry, dict):
            entry = {}
        actions.append(SuggestedAction(
            description=_text(entry.get('description'), MAX_ACTION_CHARS),
            area_key=parse_area_key(entry.get('area_key'))
        ))
    return actions


def sanitize(raw: Any) -> AIAnalysis:
    """Clamp raw model output into the guaranteed AIAnalysis shape."""
    if not isinstance(raw, dict):
        logger.warning(f"Analysis payload is {type(raw).__name__}, expected object")
        raw = {}

    suggestions = raw.get('area_suggestions')
    if not isinstance(suggestions, dict):
        suggestions = {}

    area_suggestions = {}
    for key in AREA_KEYS:
        level = parse_suggestion_level(suggestions.get(key.value))
        if level is None:
            logger.debug(f"Invalid suggestion for {key.value!r}: {suggestions.get(key.value)!r}")
            level = FALLBACK_LEVEL
        area_suggestions[key] = level

    return AIAnalysis(
        summary=_text(raw.get('summary'), MAX_SUMMARY_CHARS),
        context=_text(raw.get('ai_context'), MAX_CONTEXT_CHARS),
        clarifying_questions=_questions(raw.get('clarifying_questions')),
        area_suggestions=area_suggestions,
        suggested_actions=_actions(raw.get('suggested_actions'))
    )

