# src/decision_trail/core/projection.py
"""
Projection of an AIAnalysis into the grouped view shown at the summary stage.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

from decision_trail.core.models import (
    AREA_KEYS,
    AREA_LABELS,
    AIAnalysis,
    AreaKey,
    AreaState,
    SuggestionLevel,
)

GLOBAL_ACTION_LABEL = "Cross-cutting"

_LEVEL_TO_STATE = {
    SuggestionLevel.LIKELY_IMPACTED: AreaState.IMPACTED,
    SuggestionLevel.TO_REVIEW: AreaState.TO_REVIEW,
    SuggestionLevel.NOT_SURE: AreaState.TO_REVIEW,
}


@dataclass(frozen=True)
class ProjectedAction:
    """A suggested action annotated with its resolved area label."""
    description: str
    area_key: Optional[AreaKey]
    label: str

    @property
    def is_global(self) -> bool:
        return self.area_key is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'description': self.description,
            'area_key': self.area_key.value if self.area_key else None,
            'label': self.label,
            'is_global': self.is_global
        }


@dataclass
class AreaProjection:
    """Areas grouped by suggestion level, in canonical order, plus actions."""
    impacted: List[AreaKey] = field(default_factory=list)
    to_review: List[AreaKey] = field(default_factory=list)
    not_sure: List[AreaKey] = field(default_factory=list)  # full inventory only
    actions: List[ProjectedAction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'impacted': [k.value for k in self.impacted],
            'to_review': [k.value for k in self.to_review],
            'not_sure': [k.value for k in self.not_sure],
            'actions': [a.to_dict() for a in self.actions]
        }


def area_label(key: Optional[AreaKey]) -> str:
    if key is None:
        return GLOBAL_ACTION_LABEL
    return AREA_LABELS[key]


def project(analysis: AIAnalysis) -> AreaProjection:
    """Partition the seven areas by level and label the suggested actions."""
    projection = AreaProjection()

    # Iterate the canonical tuple, never the mapping, to keep the domain order
    for key in AREA_KEYS:
        level = analysis.area_suggestions[key]
        if level is SuggestionLevel.LIKELY_IMPACTED:
            projection.impacted.append(key)
        elif level is SuggestionLevel.TO_REVIEW:
            projection.to_review.append(key)
        elif level is SuggestionLevel.NOT_SURE:
            projection.not_sure.append(key)
        else:
            raise ValueError(f"Unhandled suggestion level: {level!r}")

    projection.actions = [
        ProjectedAction(
            description=action.description,
            area_key=action.area_key,
            label=area_label(action.area_key)
        )
        for action in analysis.suggested_actions
    ]
    return projection


def to_area_states(analysis: AIAnalysis) -> Dict[AreaKey, AreaState]:
    """Map suggestion levels onto the states the relational store accepts."""
    return {key: _LEVEL_TO_STATE[analysis.area_suggestions[key]] for key in AREA_KEYS}
