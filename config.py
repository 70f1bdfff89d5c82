"""
Configuration settings for the learner insights service.

Uses Pydantic Settings for environment variable management with .env file support.
Every scoring constant used by the diagnostic, recommendation and analytics
engines lives here so it can be tuned without touching code.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="INSIGHTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Environment
    # ========================================
    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    strict_invariants: bool | None = Field(
        default=None,
        description="Raise on invariant violations (defaults to True outside production)",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///data/learner_insights.db",
        description="SQLAlchemy connection string (sqlite or postgresql)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    # ========================================
    # Profiles
    # ========================================
    default_role: Literal["student", "teacher", "admin"] = Field(
        default="student",
        description="Role assigned to new profiles when no role hint is given",
    )
    seed_demo_profiles: bool = Field(
        default=True,
        description="Seed the demo learner into the profile store on startup",
    )

    # ========================================
    # Diagnostics
    # ========================================
    mastery_decay: float = Field(
        default=0.7,
        gt=0.0,
        le=1.0,
        description="Recency decay per event; the newest event has weight 1",
    )
    gap_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Mastery below this value flags a skill as a gap",
    )
    evidence_saturation: int = Field(
        default=3,
        ge=1,
        description="Observations needed for full confidence in a gap",
    )
    remediation_rules: dict[str, str] = Field(
        default_factory=lambda: {
            "fringe spacing": "Review the fringe spacing formula dx = lambda * L / a and use the measurement table provided.",
        },
        description="Error keyword -> remediation text; the first keyword found in a label wins",
    )
    default_remediation: str = Field(
        default="Read the correction guide to understand where the error comes from.",
        description="Remediation for error labels matching no rule",
    )

    # ========================================
    # Recommendations
    # ========================================
    max_recommendations: int = Field(
        default=10,
        ge=1,
        description="Maximum recommendation list length",
    )
    prerequisite_floor: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Minimum prerequisite mastery before an item is demoted",
    )
    prerequisite_penalty: float = Field(
        default=0.5,
        gt=0.0,
        le=1.0,
        description="Score multiplier for items with unmet prerequisites",
    )
    difficulty_stretch: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="How far above the learner level the ideal difficulty sits",
    )
    difficulty_tolerance: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Distance from the ideal difficulty that carries no penalty",
    )
    difficulty_floor_factor: float = Field(
        default=0.2,
        gt=0.0,
        le=1.0,
        description="Smallest multiplier applied for difficulty mismatch",
    )
    default_learner_level: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Learner level used when readiness is unknown",
    )

    # ========================================
    # Analytics
    # ========================================
    analytics_granularity: Literal["day", "week", "month"] = Field(
        default="day",
        description="Finest bucket granularity for analytics snapshots",
    )
    analytics_source_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Per-source fetch timeout for the analytics fan-out",
    )
    metrics_base_url: str | None = Field(
        default=None,
        description="Base URL of the remote metrics service (None for demo sources)",
    )

    # ========================================
    # Content Catalog
    # ========================================
    catalog_url: str | None = Field(
        default=None,
        description="URL of the content library catalog (None for the demo catalog)",
    )

    @model_validator(mode="after")
    def _resolve_strictness(self) -> Settings:
        if self.strict_invariants is None:
            self.strict_invariants = self.environment != "production"
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
