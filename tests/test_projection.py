# FILE: tests/test_projection.py
"""
Tests for the summary projection of an analysis.
"""

from decision_trail.core.models import AREA_KEYS, AIAnalysis, AreaKey, AreaState
from decision_trail.core.projection import (
    GLOBAL_ACTION_LABEL,
    area_label,
    project,
    to_area_states,
)

from conftest import make_analysis


class TestProject:
    def test_groups_in_canonical_order(self):
        projection = project(make_analysis())
        assert projection.impacted == [
            AreaKey.ASSET_TOOLS,
            AreaKey.INFORMATION_DATA,
            AreaKey.PEOPLE_AWARENESS,
        ]
        assert projection.to_review == [
            AreaKey.ACCESS_PRIVILEGES,
            AreaKey.PROCESS_CONTROLS,
            AreaKey.POLICIES_DOCS,
        ]

    def test_not_sure_only_in_inventory(self):
        projection = project(make_analysis())
        assert AreaKey.RISK_IMPACT not in projection.impacted + projection.to_review
        assert projection.not_sure == [AreaKey.RISK_IMPACT]

    def test_order_independent_of_mapping_order(self):
        analysis = make_analysis()
        reversed_levels = dict(reversed(list(analysis.area_suggestions.items())))
        analysis.area_suggestions = reversed_levels
        assert project(analysis).impacted[0] is AreaKey.ASSET_TOOLS

    def test_action_labels(self):
        actions = project(make_analysis()).actions
        assert [a.label for a in actions] == ["Assets & Tools", "People & Awareness", GLOBAL_ACTION_LABEL]
        assert actions[2].is_global
        assert not actions[0].is_global

    def test_empty_analysis(self):
        projection = project(AIAnalysis.empty())
        assert projection.impacted == []
        assert projection.to_review == list(AREA_KEYS)
        assert projection.actions == []


class TestAreaStates:
    def test_levels_map_to_store_states(self):
        states = to_area_states(make_analysis())
        assert states[AreaKey.ASSET_TOOLS] is AreaState.IMPACTED
        assert states[AreaKey.ACCESS_PRIVILEGES] is AreaState.TO_REVIEW
        assert states[AreaKey.RISK_IMPACT] is AreaState.TO_REVIEW
        assert list(states) == list(AREA_KEYS)

    def test_area_label(self):
        assert area_label(None) == GLOBAL_ACTION_LABEL
        assert area_label(AreaKey.RISK_IMPACT) == "Risk & Impact"
