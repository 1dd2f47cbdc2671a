from typing import Dict, List, Optional, Tuple, Mapping
import os

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from atlas_assistant.domain.errors import ConfigurationError

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "deepseek/deepseek-r1-0528:free"
API_KEY_PLACEHOLDER = "your-openrouter-api-key-here"

DEFAULT_CORE_ACTIONS: Tuple[str, ...] = (
    "addClientCreditsV2",
    "addMessageV1",
    "addLeadV1",
    "addContactUserV1",
    "updateContactStatusV1",
    "updateContactTypeV1",
    "updateContactTierV1",
    "applyResolutionV1",
)


class Settings(BaseModel):
    """Runtime configuration, read from the environment"""
    openrouter_api_key: Optional[str] = None
    openrouter_base_url: str = DEFAULT_BASE_URL
    openrouter_model: str = DEFAULT_MODEL
    openrouter_temperature: float = 0.7
    openrouter_max_tokens: int = 1000
    openrouter_timeout: float = 60.0
    openrouter_verify_ssl: bool = True
    site_url: str = "http://localhost:3000"
    site_name: str = "Atlas Chatbot"

    host: str = "0.0.0.0"
    port: int = 3000
    atlas_path: str = "atlas.json"
    log_level: str = "INFO"
    log_format: str = "json"

    max_context_actions: int = 60
    query_match_priority: int = 30
    min_context_actions: int = 50
    history_window: int = 10
    continuation_ttl: float = 3600.0
    sweep_interval: float = 300.0
    core_actions: List[str] = Field(default_factory=lambda: list(DEFAULT_CORE_ACTIONS))
    selection_seed: Optional[int] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> "Settings":
        """Build settings from environment variables, loading .env first"""

        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        defaults = cls()
        values: Dict[str, object] = {
            "openrouter_api_key": environ.get("OPENROUTER_API_KEY") or None,
            "openrouter_base_url": environ.get("OPENROUTER_BASE_URL", defaults.openrouter_base_url),
            "openrouter_model": environ.get("OPENROUTER_MODEL", defaults.openrouter_model),
            "openrouter_temperature": _number(environ, "OPENROUTER_TEMPERATURE", defaults.openrouter_temperature, float),
            "openrouter_max_tokens": _number(environ, "OPENROUTER_MAX_TOKENS", defaults.openrouter_max_tokens, int),
            "openrouter_timeout": _number(environ, "OPENROUTER_TIMEOUT", defaults.openrouter_timeout, float),
            "openrouter_verify_ssl": _flag(environ, "OPENROUTER_VERIFY_SSL", defaults.openrouter_verify_ssl),
            "site_url": environ.get("SITE_URL", defaults.site_url),
            "site_name": environ.get("SITE_NAME", defaults.site_name),
            "host": environ.get("HOST", defaults.host),
            "port": _number(environ, "PORT", defaults.port, int),
            "atlas_path": environ.get("ATLAS_PATH", defaults.atlas_path),
            "log_level": environ.get("LOG_LEVEL", defaults.log_level),
            "log_format": environ.get("LOG_FORMAT", defaults.log_format),
            "max_context_actions": _number(environ, "MAX_CONTEXT_ACTIONS", defaults.max_context_actions, int),
            "query_match_priority": _number(environ, "QUERY_MATCH_PRIORITY", defaults.query_match_priority, int),
            "min_context_actions": _number(environ, "MIN_CONTEXT_ACTIONS", defaults.min_context_actions, int),
            "history_window": _number(environ, "HISTORY_WINDOW", defaults.history_window, int),
            "continuation_ttl": _number(environ, "CONTINUATION_TTL", defaults.continuation_ttl, float),
            "sweep_interval": _number(environ, "SWEEP_INTERVAL", defaults.sweep_interval, float),
            "selection_seed": _number(environ, "SELECTION_SEED", None, int),
        }

        core_actions = environ.get("CORE_ACTIONS")
        if core_actions:
            values["core_actions"] = [name.strip() for name in core_actions.split(",") if name.strip()]

        return cls(**values)

    def require_api_key(self) -> str:
        """Return the API key or fail startup"""

        if not self.openrouter_api_key or self.openrouter_api_key == API_KEY_PLACEHOLDER:
            raise ConfigurationError("Please set your OpenRouter API key (OPENROUTER_API_KEY) in the .env file")
        return self.openrouter_api_key


def _number(environ: Mapping[str, str], key: str, default, cast):
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default

    try:
        return cast(raw)
    except ValueError:
        logger.warning("Invalid numeric setting, using default", key=key, value=raw, default=default)
        return default


def _flag(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")
