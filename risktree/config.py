"""
RiskTree Configuration.

Pydantic Settings v2 — loads from .env, environment variables.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from risktree.constants import (
    DEFAULT_ITERATIONS,
    DEFAULT_MAX_PERCENTILE,
    DEFAULT_MIN_PERCENTILE,
    MAX_ITERATIONS,
    MIN_ITERATIONS,
)


class Settings(BaseSettings):
    """Library settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Simulation ───────────────────────────────────────────────────────
    default_iterations: int = Field(
        default=DEFAULT_ITERATIONS,
        ge=MIN_ITERATIONS,
        le=MAX_ITERATIONS,
        alias="RISKTREE_DEFAULT_ITERATIONS",
    )
    default_min_percentile: float = Field(
        default=DEFAULT_MIN_PERCENTILE, ge=0, le=100, alias="RISKTREE_MIN_PERCENTILE",
    )
    default_max_percentile: float = Field(
        default=DEFAULT_MAX_PERCENTILE, ge=0, le=100, alias="RISKTREE_MAX_PERCENTILE",
    )

    # ── Optimizer ────────────────────────────────────────────────────────
    # 2^16 - 1 subsets, each a full model simulation
    optimizer_max_candidates: int = Field(
        default=16, ge=1, le=30, alias="RISKTREE_OPTIMIZER_MAX_CANDIDATES",
    )

    # ── Logging ──────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="RISKTREE_LOG_LEVEL")
    log_format: str = Field(default="console", alias="RISKTREE_LOG_FORMAT")

    @model_validator(mode="after")
    def _check_percentiles(self) -> "Settings":
        if self.default_min_percentile > self.default_max_percentile:
            raise ValueError("default_min_percentile must not exceed default_max_percentile")
        return self


settings = Settings()
