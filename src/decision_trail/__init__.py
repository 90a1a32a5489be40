# src/decision_trail/__init__.py
"""
Decision Trail - AI-assisted impact assessment for organizational decisions.
"""

__version__ = "0.1.0"
__author__ = "Decision Trail Team"

from decision_trail.api.client import ImpactAssistClient, AnalysisError
from decision_trail.core.session import DecisionSession
from decision_trail.core.sanitizer import sanitize
from decision_trail.core.projection import project

__all__ = [
    'ImpactAssistClient',
    'AnalysisError',
    'DecisionSession',
    'sanitize',
    'project'
]
