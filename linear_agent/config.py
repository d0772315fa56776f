"""Environment-driven settings for the Linear agent."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_AGENT_NAME = "OpenCode Agent"
DEFAULT_MODEL = "claude-sonnet-4-5"


def _env_bool(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1")


def _env_int(key: str, default: int) -> int:
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid integer for %s: %r, using %s", key, value, default)
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read once at startup."""

    agent_name: str = DEFAULT_AGENT_NAME
    agent_user_id: str = ""
    linear_api_key: str = ""
    webhook_secret: str = ""
    verify_signatures: bool = True
    sessions_enabled: bool = True
    session_timeout_minutes: int = 30
    session_max_messages: int = 50
    session_cleanup_interval_minutes: int = 5
    anthropic_api_key: str = ""
    model: str = DEFAULT_MODEL
    rate_limit_per_minute: int = 100
    port: int = 3000
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build Settings from the process environment.

    LINEAR_BOT_OAUTH_TOKEN is accepted as a fallback for LINEAR_API_KEY so a bot
    token can be used for posting, which keeps the agent's own comments
    attributable to the agent user.
    """
    return Settings(
        agent_name=os.environ.get("LINEAR_AGENT_NAME") or DEFAULT_AGENT_NAME,
        agent_user_id=os.environ.get("LINEAR_AGENT_USER_ID", ""),
        linear_api_key=(
            os.environ.get("LINEAR_API_KEY") or os.environ.get("LINEAR_BOT_OAUTH_TOKEN", "")
        ),
        webhook_secret=os.environ.get("LINEAR_WEBHOOK_SECRET", ""),
        verify_signatures=_env_bool("ENABLE_SIGNATURE_VERIFICATION", True),
        sessions_enabled=_env_bool("ENABLE_SESSIONS", True),
        session_timeout_minutes=_env_int("SESSION_TIMEOUT_MINUTES", 30),
        session_max_messages=_env_int("SESSION_MAX_MESSAGES", 50),
        session_cleanup_interval_minutes=_env_int("SESSION_CLEANUP_INTERVAL_MINUTES", 5),
        anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
        model=os.environ.get("LINEAR_AGENT_MODEL") or DEFAULT_MODEL,
        rate_limit_per_minute=_env_int("WEBHOOK_RATE_LIMIT_PER_MINUTE", 100),
        port=_env_int("LINEAR_WEBHOOK_PORT", 3000),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )
