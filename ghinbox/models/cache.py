"""
Data models for caching system.

Defines cache configuration and the persisted entry shape.
"""

from typing import Any

from pydantic import BaseModel, Field, ConfigDict

# Team classification logic version. Bump to invalidate every cached entry.
TEAM_CACHE_VERSION = 5
TEAM_CACHE_BASE_NAMESPACE = "github_team_cache"


def team_cache_namespace(version: int) -> str:
    """Namespace holding team classifications for a logic version."""
    if version <= 1:
        return TEAM_CACHE_BASE_NAMESPACE
    return f"{TEAM_CACHE_BASE_NAMESPACE}_v{version}"


class CacheConfig(BaseModel):
    """Cache configuration"""

    model_config = ConfigDict(protected_namespaces=())

    storage_dir: str = "./.ghinbox"

    # TTL settings
    ttl_state_seconds: int = Field(120, ge=1)
    ttl_team_hours: int = Field(12, ge=1)
    ttl_user_teams_hours: int = Field(24, ge=1)
    ttl_visited_days: int = Field(7, ge=1)

    team_cache_version: int = Field(TEAM_CACHE_VERSION, ge=1)

    @property
    def ttl_team_seconds(self) -> int:
        return self.ttl_team_hours * 3600

    @property
    def ttl_user_teams_seconds(self) -> int:
        return self.ttl_user_teams_hours * 3600

    @property
    def ttl_visited_seconds(self) -> int:
        return self.ttl_visited_days * 86400


class CacheEntry(BaseModel):
    """A value plus its write timestamp (epoch seconds)."""

    data: Any
    written_at: float

    def is_valid(self, now: float, ttl_seconds: float) -> bool:
        """Valid iff ``now - written_at < ttl``."""
        return now - self.written_at < ttl_seconds
