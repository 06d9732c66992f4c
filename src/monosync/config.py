"""
Runtime settings, read from environment variables.

Environment variables:
    GH_TOKEN: GitHub token used for all API calls (required)
    REPO_RELATIONSHIPS: Relationship string, see monosync.relationships
    WEBHOOK_SECRET: Secret for verifying webhook signatures
    MONOSYNC_ALLOW_INSECURE: Accept unsigned webhooks ("1"/"true")
    MONOSYNC_HISTORY_WINDOW: Commits searched for partner commits (default 50)
    MONOSYNC_STATUS_THROTTLE: Seconds to coalesce status events (default 10)
    MONOSYNC_CACHE_SIZE: Max cached entries (default 1024)
    MONOSYNC_CACHE_TTL: Cache entry lifetime in seconds (default 3600)
    MONOSYNC_LOG_LEVEL: Logging level (default INFO)
    GITHUB_API_URL: API base URL (default https://api.github.com)
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from monosync.relationships import Relationships

DEFAULT_API_URL = "https://api.github.com"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """monosync runtime settings."""
    github_token: str
    relationships: Relationships
    webhook_secret: Optional[str] = None
    allow_insecure: bool = False
    history_window: int = 50
    status_throttle_seconds: float = 10.0
    cache_size: int = 1024
    cache_ttl_seconds: float = 3600.0
    log_level: str = "INFO"
    api_url: str = DEFAULT_API_URL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Returns:
            Settings instance

        Raises:
            ValueError: If GH_TOKEN is missing or a numeric value is invalid
        """
        env = os.environ if environ is None else environ

        token = env.get("GH_TOKEN", "")
        if not token:
            raise ValueError("Required environment variable GH_TOKEN not set")

        return cls(
            github_token=token,
            relationships=Relationships.parse(env.get("REPO_RELATIONSHIPS")),
            webhook_secret=env.get("WEBHOOK_SECRET") or None,
            allow_insecure=env.get("MONOSYNC_ALLOW_INSECURE", "").lower() in _TRUE_VALUES,
            history_window=int(env.get("MONOSYNC_HISTORY_WINDOW", "50")),
            status_throttle_seconds=float(env.get("MONOSYNC_STATUS_THROTTLE", "10")),
            cache_size=int(env.get("MONOSYNC_CACHE_SIZE", "1024")),
            cache_ttl_seconds=float(env.get("MONOSYNC_CACHE_TTL", "3600")),
            log_level=env.get("MONOSYNC_LOG_LEVEL", "INFO").upper(),
            api_url=env.get("GITHUB_API_URL", DEFAULT_API_URL).rstrip("/"),
        )


def configure_logging(level: str = "INFO") -> None:
    """Set up root logging for the bot process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
