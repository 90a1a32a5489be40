# src/decision_trail/core/config.py
"""
Configuration loading for Decision Trail.

Settings come from config.yaml with .env / environment overrides. They are
resolved once into an AppConfig and injected into the components; nothing
reads the environment mid-call.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_SUPABASE_URL = "DECISION_TRAIL_SUPABASE_URL"
ENV_ANON_KEY = "DECISION_TRAIL_ANON_KEY"
ENV_ACCESS_TOKEN = "DECISION_TRAIL_ACCESS_TOKEN"
ENV_LOG_LEVEL = "DECISION_TRAIL_LOG_LEVEL"

PLACEHOLDER_VALUES = {"", "your_anon_key_here", "your_access_token_here"}

DEFAULT_CONFIG = {
    'gateway': {
        'supabase_url': '${DECISION_TRAIL_SUPABASE_URL}',
        'anon_key': '${DECISION_TRAIL_ANON_KEY}',
        'function_path': '/functions/v1/impact-assist',
        'timeout_seconds': 30.0
    },
    'session': {
        'access_token': '${DECISION_TRAIL_ACCESS_TOKEN}'
    },
    'reveal': {
        'intro_char_interval': 0.015,
        'intro_settle': 0.6,
        'context_char_interval': 0.012,
        'context_settle': 0.8,
        'context_preview_chars': 150,
        'question_char_interval': 0.015,
        'answer_pause': 0.3,
        'thinking_delay': 0.8,
        'final_thinking_delay': 1.0
    },
    'logging': {
        'level': 'WARNING'
    }
}


@dataclass
class GatewayConfig:
    """Connection settings for the analysis endpoint and the relational store."""
    supabase_url: Optional[str] = None
    anon_key: Optional[str] = None
    function_path: str = "/functions/v1/impact-assist"
    timeout_seconds: float = 30.0

    @property
    def analysis_url(self) -> Optional[str]:
        if not self.supabase_url:
            return None
        return f"{self.supabase_url.rstrip('/')}{self.function_path}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GatewayConfig':
        return cls(
            supabase_url=_clean(data.get('supabase_url')),
            anon_key=_clean(data.get('anon_key')),
            function_path=data.get('function_path', '/functions/v1/impact-assist'),
            timeout_seconds=float(data.get('timeout_seconds', 30.0))
        )


@dataclass
class RevealTiming:
    """Pacing of the conversational reveal, in seconds. Zero disables a delay."""
    intro_char_interval: float = 0.015
    intro_settle: float = 0.6
    context_char_interval: float = 0.012
    context_settle: float = 0.8
    context_preview_chars: int = 150
    question_char_interval: float = 0.015
    answer_pause: float = 0.3
    thinking_delay: float = 0.8
    final_thinking_delay: float = 1.0

    @classmethod
    def instant(cls) -> 'RevealTiming':
        """No pacing at all; used by tests and non-interactive output."""
        return cls(
            intro_char_interval=0.0,
            intro_settle=0.0,
            context_char_interval=0.0,
            context_settle=0.0,
            question_char_interval=0.0,
            answer_pause=0.0,
            thinking_delay=0.0,
            final_thinking_delay=0.0
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RevealTiming':
        defaults = cls()
        values = {}
        for name, default in defaults.__dict__.items():
            raw = data.get(name, default)
            values[name] = int(raw) if isinstance(default, int) else float(raw)
        return cls(**values)


@dataclass
class AppConfig:
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    reveal: RevealTiming = field(default_factory=RevealTiming)
    access_token: Optional[str] = None
    log_level: str = "WARNING"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'gateway': dict(self.gateway.__dict__),
            'reveal': dict(self.reveal.__dict__),
            'session': {'access_token': self.access_token},
            'logging': {'level': self.log_level}
        }


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str) or value.strip() in PLACEHOLDER_VALUES:
        return None
    return value.strip()


def _resolve_env(value: Any) -> Any:
    """Resolve '${VAR}' template strings from the environment."""
    if isinstance(value, str) and value.startswith('${') and value.endswith('}'):
        return os.getenv(value[2:-1])
    if isinstance(value, dict):
        return {k: _resolve_env(v) for k, v in value.items()}
    return value


def load_env() -> Optional[Path]:
    """Try to load a .env file from the usual locations. Returns the file used."""
    possible_paths = [
        Path.cwd() / ".env",  # Current directory
        Path(__file__).parent.parent.parent.parent / ".env",  # Project root
        Path.home() / ".decision-trail.env",
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(dotenv_path=env_path)
            logger.info(f"Loaded .env from: {env_path}")
            return env_path

    logger.debug("No .env file found in standard locations")
    return None


def load_raw_config(config_path: str = "config.yaml") -> Dict[str, Any]:
    """Load the YAML configuration, falling back to defaults for missing keys."""
    path = Path(config_path)
    if not path.exists():
        path = Path.cwd() / "config.yaml"

    config = {}
    if path.exists():
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
        logger.info(f"Loaded configuration from: {path}")

    # Ensure required structure
    if not isinstance(config, dict):
        config = {}

    for section, defaults in DEFAULT_CONFIG.items():
        if not isinstance(config.get(section), dict):
            config[section] = {}
        for key, value in defaults.items():
            config[section].setdefault(key, value)

    return config


def load_config(config_path: str = "config.yaml", use_env_file: bool = True) -> AppConfig:
    """Resolve YAML, .env and environment variables into an AppConfig."""
    if use_env_file:
        load_env()

    raw = _resolve_env(load_raw_config(config_path))

    gateway = raw['gateway']
    # Environment variables win over values written in the YAML file
    if os.getenv(ENV_SUPABASE_URL):
        gateway['supabase_url'] = os.getenv(ENV_SUPABASE_URL)
    if os.getenv(ENV_ANON_KEY):
        gateway['anon_key'] = os.getenv(ENV_ANON_KEY)

    access_token = os.getenv(ENV_ACCESS_TOKEN) or raw['session'].get('access_token')
    log_level = os.getenv(ENV_LOG_LEVEL) or raw['logging'].get('level') or "WARNING"

    return AppConfig(
        gateway=GatewayConfig.from_dict(gateway),
        reveal=RevealTiming.from_dict(raw['reveal']),
        access_token=_clean(access_token),
        log_level=str(log_level).upper()
    )


def mask_secret(value: Optional[str]) -> str:
    if not value:
        return "NOT SET"
    if len(value) <= 12:
        return "***"
    return value[:8] + "..." + value[-4:]


def configure_logging(level: str = "WARNING"):
    """Route library logging through rich's handler."""
    from rich.logging import RichHandler

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
        force=True
    )
