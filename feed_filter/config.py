"""Configuration for feed_filter.

Settings are read from environment variables once and cached. User-level
preferences (retention, last sync time, display options) are not kept here;
they live in the settings table of the database.
"""

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_USER_AGENT = "FeedFilter/1.0 (RSS Feed Reader)"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ServerConfig:
    """Server and pipeline configuration."""

    name: str = "feed_filter"
    log_level: str = "INFO"
    fetch_timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    sync_interval_minutes: int = 30
    is_pro: bool = False


@dataclass(frozen=True)
class Capabilities:
    """Entitlements passed into services that enforce quotas."""

    is_pro: bool = False


def load_config() -> ServerConfig:
    """Build a ServerConfig from FEED_FILTER_* environment variables."""
    return ServerConfig(
        name=os.environ.get("FEED_FILTER_NAME", "feed_filter"),
        log_level=os.environ.get("FEED_FILTER_LOG_LEVEL", "INFO").upper(),
        fetch_timeout=float(os.environ.get("FEED_FILTER_FETCH_TIMEOUT", "10")),
        user_agent=os.environ.get("FEED_FILTER_USER_AGENT", DEFAULT_USER_AGENT),
        sync_interval_minutes=int(os.environ.get("FEED_FILTER_SYNC_INTERVAL_MINUTES", "30")),
        is_pro=_env_bool("FEED_FILTER_PRO"),
    )


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config

    if _config is None:
        _config = load_config()

    return _config


def get_capabilities(config: Optional[ServerConfig] = None) -> Capabilities:
    """Derive capabilities from the configuration."""
    if config is None:
        config = get_config()
    return Capabilities(is_pro=config.is_pro)
