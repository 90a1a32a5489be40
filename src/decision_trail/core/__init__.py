# src/decision_trail/core/__init__.py
"""
Core modules for Decision Trail.
"""

from decision_trail.core.models import AIAnalysis, DecisionDraft, LifecycleState
from decision_trail.core.sanitizer import sanitize
from decision_trail.core.projection import AreaProjection, project
from decision_trail.core.config import AppConfig, RevealTiming, load_config

__all__ = [
    'AIAnalysis',
    'DecisionDraft',
    'LifecycleState',
    'sanitize',
    'AreaProjection',
    'project',
    'AppConfig',
    'RevealTiming',
    'load_config'
]
