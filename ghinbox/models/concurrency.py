"""Concurrency configuration models.

Defines the caps applied to remote enrichment during a refresh cycle.
"""

from pydantic import BaseModel, Field


class ConcurrencyConfig(BaseModel):
    """Bounds on remote calls made while classifying notifications"""

    # Subject liveness lookups (issue/PR state)
    max_concurrent_liveness: int = Field(default=20, ge=1, le=100)

    # Pull request team/draft disambiguation
    max_concurrent_team_resolutions: int = Field(default=10, ge=1, le=50)
    # Resolutions beyond this count are deferred to the next cycle
    max_team_resolutions_per_cycle: int = Field(default=10, ge=1, le=500)
