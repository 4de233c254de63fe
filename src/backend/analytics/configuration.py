"""
Runtime configuration for the analytics API.
"""

from __future__ import annotations

import os
from typing import Optional, Tuple

from pydantic import BaseModel

ACTIVITY_KINDS: Tuple[str, ...] = (
    "asset_purchase",
    "chat_message",
    "diary_entry",
    "forum_post",
    "award_earned",
)


class DatabaseConfig(BaseModel):
    url: Optional[str] = None
    echo: bool = False


class ComparisonConfig(BaseModel):
    window_days: int = 30
    """Length of the current and previous windows compared on the dashboard cards"""


class LimitConfig(BaseModel):
    top_default: int = 5
    top_max: int = 20
    recent_default: int = 10
    recent_max: int = 50


class ActivityConfig(BaseModel):
    enabled_kinds: Tuple[str, ...] = ACTIVITY_KINDS
    """Activity kinds merged into the recent-activity feed"""


class AuthConfig(BaseModel):
    admin_token: Optional[str] = None
    """Bearer token required on every analytics call"""
    disabled: bool = False
    """Skip the token check entirely; for local development only"""


class AnalyticsConfig(BaseModel):
    database: DatabaseConfig = DatabaseConfig()
    comparison: ComparisonConfig = ComparisonConfig()
    limits: LimitConfig = LimitConfig()
    activity: ActivityConfig = ActivityConfig()
    auth: AuthConfig = AuthConfig()
    log_level: str = "INFO"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_kinds(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    kinds = tuple(item.strip() for item in raw.split(",") if item.strip() in ACTIVITY_KINDS)
    return kinds or default


def load_analytics_config() -> AnalyticsConfig:
    cfg = AnalyticsConfig()

    cfg.database = DatabaseConfig(
        url=os.getenv("ANALYTICS_DATABASE_URL", cfg.database.url),
        echo=_env_bool("ANALYTICS_DATABASE_ECHO", cfg.database.echo),
    )
    cfg.comparison = ComparisonConfig(
        window_days=_env_int("ANALYTICS_COMPARISON_DAYS", cfg.comparison.window_days),
    )
    cfg.limits = LimitConfig(
        top_default=_env_int("ANALYTICS_TOP_LIMIT_DEFAULT", cfg.limits.top_default),
        top_max=_env_int("ANALYTICS_TOP_LIMIT_MAX", cfg.limits.top_max),
        recent_default=_env_int("ANALYTICS_RECENT_LIMIT_DEFAULT", cfg.limits.recent_default),
        recent_max=_env_int("ANALYTICS_RECENT_LIMIT_MAX", cfg.limits.recent_max),
    )
    cfg.activity = ActivityConfig(
        enabled_kinds=_env_kinds("ANALYTICS_ACTIVITY_KINDS", cfg.activity.enabled_kinds),
    )
    cfg.auth = AuthConfig(
        admin_token=os.getenv("ANALYTICS_ADMIN_TOKEN") or None,
        disabled=_env_bool("ANALYTICS_AUTH_DISABLED", cfg.auth.disabled),
    )
    cfg.log_level = os.getenv("ANALYTICS_LOG_LEVEL", cfg.log_level).upper()

    return cfg
