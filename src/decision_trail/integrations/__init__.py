# src/decision_trail/integrations/__init__.py
"""
Collaborator ports and their hosted-backend adapters.
"""

from decision_trail.integrations.ports import (
    AnalysisGateway,
    ImpactStore,
    SessionProvider,
    SessionExpiredError,
)

__all__ = [
    'AnalysisGateway',
    'ImpactStore',
    'SessionProvider',
    'SessionExpiredError'
]
