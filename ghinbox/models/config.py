from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict

from ghinbox.models.cache import CacheConfig
from ghinbox.models.concurrency import ConcurrencyConfig


class GitHubSettings(BaseModel):
    """Remote source connection and paging settings"""

    api_base: str = Field("https://api.github.com", description="REST API base URL")
    token: Optional[str] = Field(
        default=None, description="Bearer token, usually ${GITHUB_TOKEN}"
    )
    participating: bool = Field(
        True, description="Only list events the caller directly participates in"
    )
    include_read: bool = Field(False, description="Also list already-read events")
    page_size: int = Field(50, ge=1, le=50)
    initial_pages: int = Field(1, ge=1, le=10)
    max_pages: int = Field(10, ge=1, le=50)
    max_events: int = Field(500, ge=1, le=2500)
    since_days: int = Field(30, ge=1, le=365)
    timeout_seconds: float = Field(30.0, gt=0, le=300)
    requests_per_minute: int = Field(300, ge=1, le=5000)

    @field_validator("api_base")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("token")
    @classmethod
    def blank_token_is_none(cls, v: Optional[str]) -> Optional[str]:
        # Unsubstituted ${VAR} placeholders count as missing
        if v is None or not v.strip() or v.startswith("${"):
            return None
        return v.strip()


class RefreshSettings(BaseModel):
    """Periodic refresh behaviour"""

    interval_seconds: int = Field(60, ge=5, le=3600)
    unauthorized_grace_seconds: float = Field(2.0, ge=0.0, le=60.0)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = False


class AppConfig(BaseModel):
    """Root configuration model"""

    model_config = ConfigDict(extra="forbid")

    github: GitHubSettings = Field(default_factory=lambda: GitHubSettings())
    cache: CacheConfig = Field(default_factory=lambda: CacheConfig())
    concurrency: ConcurrencyConfig = Field(
        default_factory=lambda: ConcurrencyConfig()
    )
    refresh: RefreshSettings = Field(default_factory=lambda: RefreshSettings())
    logging: LoggingSettings = Field(default_factory=lambda: LoggingSettings())
