# src/decision_trail/api/client.py
import logging
from enum import Enum
from typing import Optional, Dict, Any

import httpx

from decision_trail.core.config import GatewayConfig
from decision_trail.core.models import AIAnalysis, MIN_TEXT_CHARS, MAX_TEXT_CHARS, validate_free_text
from decision_trail.core.sanitizer import sanitize
from decision_trail.integrations.ports import SessionProvider, SessionExpiredError

logger = logging.getLogger(__name__)


class ImpactAssistClient:
    """Client for the impact-assist analysis function."""

    def __init__(
            self,
            config: GatewayConfig,
            session: SessionProvider,
            http_client: Optional[httpx.AsyncClient] = None
    ):
        self.config = config
        self.session = session
        self.client = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def analyze(self, text: str, workspace_id: str) -> AIAnalysis:
        """Send free text to the analysis function and return the sanitized result."""
        free_text = validate_free_text(text)
        if free_text is None:
            raise InvalidInputError(
                f"freeText must be between {MIN_TEXT_CHARS} and {MAX_TEXT_CHARS} characters"
            )
        if not isinstance(workspace_id, str) or not workspace_id.strip():
            raise InvalidInputError("workspaceId is required")

        # Verify the user first, then fetch a fresh token
        try:
            user = await self.session.get_current_user()
        except AnalysisError:
            raise
        except Exception as e:
            raise ServiceError(f"Auth service unavailable: {e}", code="AUTH_UNAVAILABLE") from e
        if user is None:
            raise UnauthorizedError("Not authenticated", code="UNAUTHORIZED")
        try:
            token = await self.session.get_fresh_session_token()
        except SessionExpiredError as e:
            raise UnauthorizedError(f"Session expired: {e}", code="SESSION_EXPIRED") from e
        except AnalysisError:
            raise
        except Exception as e:
            raise ServiceError(f"Auth service unavailable: {e}", code="AUTH_UNAVAILABLE") from e

        url = self.config.analysis_url
        if not url:
            raise ConfigError("Supabase URL not configured")
        if not self.config.anon_key:
            raise ConfigError("Supabase anon key not configured")

        # The anon key passes the platform gateway; the user token authenticates the caller
        headers = {
            "Authorization": f"Bearer {self.config.anon_key}",
            "x-user-token": token,
            "Content-Type": "application/json"
        }
        payload = {"freeText": free_text, "workspaceId": workspace_id}

        logger.info(f"Requesting analysis for workspace {workspace_id} ({len(free_text)} chars)")
        try:
            response = await self.client.post(
                url,
                headers=headers,
                json=payload,
                timeout=self.config.timeout_seconds
            )
        except httpx.TimeoutException as e:
            raise ServiceError("Request timeout", code="TIMEOUT") from e
        except httpx.RequestError as e:
            raise ServiceError(f"Request failed: {str(e)}", code="NETWORK_ERROR") from e

        if not response.is_success:
            raise self._error_from_response(response)

        try:
            data = response.json()
        except ValueError as e:
            raise ServiceError(
                "Analysis response is not valid JSON",
                status=response.status_code,
                code="INVALID_RESPONSE"
            ) from e

        analysis = sanitize(data)
        logger.info(
            f"Analysis received: {analysis.question_count} question(s), "
            f"{len(analysis.suggested_actions)} action(s)"
        )
        return analysis

    @staticmethod
    def _error_from_response(response: httpx.Response) -> 'AnalysisError':
        body: Dict[str, Any] = {}
        try:
            parsed = response.json()
            if isinstance(parsed, dict):
                body = parsed
        except ValueError:
            pass

        message = body.get('error') or f"Request failed with status {response.status_code}"
        code = body.get('code')
        code = str(code) if code is not None else None
        logger.warning(f"Analysis failed with status {response.status_code}: {message}")

        if response.status_code == 401:
            return UnauthorizedError(message, status=401, code=code or "UNAUTHORIZED")
        return ServiceError(message, status=response.status_code, code=code)

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


# Error classes
class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    UNAUTHORIZED = "unauthorized"
    SERVICE_ERROR = "service_error"
    CONFIG_ERROR = "config_error"


class AnalysisError(Exception):
    """Base exception for analysis failures."""
    kind = ErrorKind.SERVICE_ERROR

    def __init__(self, message, status=None, code=None):
        self.message = message
        self.status = status
        self.code = code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.SERVICE_ERROR


class InvalidInputError(AnalysisError):
    """Raised when a local precondition is violated. Never sent to the network."""
    kind = ErrorKind.INVALID_INPUT

    def __init__(self, message, code="INVALID_INPUT"):
        super().__init__(message, status=400, code=code)


class UnauthorizedError(AnalysisError):
    """Raised when there is no valid session."""
    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message, status=401, code="UNAUTHORIZED"):
        super().__init__(message, status=status, code=code)


class ServiceError(AnalysisError):
    """Raised for transport failures, timeouts and non-2xx responses."""
    kind = ErrorKind.SERVICE_ERROR


class ConfigError(AnalysisError):
    """Raised when the deployment configuration is incomplete."""
    kind = ErrorKind.CONFIG_ERROR

    def __init__(self, message, code="CONFIG_ERROR"):
        super().__init__(message, status=500, code=code)
