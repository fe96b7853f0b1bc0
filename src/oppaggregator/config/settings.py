"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. Environment variables (OPPAGG_ prefix)
  2. YAML config file (if specified)
  3. Default values
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

_PLACEHOLDER_MARKERS = ("placeholder", "your_")


def is_placeholder(value: str | None) -> bool:
    """Return True if a credential is missing or still a template placeholder."""
    if not value:
        return True
    lowered = value.lower()
    return any(marker in lowered for marker in _PLACEHOLDER_MARKERS)


class FanOutMode(StrEnum):
    """How the coordinator distributes a search across sources."""

    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"


class EvictionPolicyName(StrEnum):
    """Cache eviction policy selector."""

    LRU = "lru"
    LFU = "lfu"
    TTL = "ttl"
    HYBRID = "hybrid"


class RateLimitConfig(BaseModel):
    """Per-source request budget."""

    requests_per_minute: int = Field(default=60, ge=1, description="Sliding 60 second request budget")
    requests_per_day: int | None = Field(default=None, ge=1, description="Optional sliding 24 hour budget")


class SourceConfig(BaseModel):
    """Configuration for a single opportunity source adapter."""

    name: str = Field(description="Unique source name")
    kind: str = Field(default="google", description="Registered adapter kind used to build this source")
    api_key: str | None = Field(default=None, description="API credential")
    search_engine_id: str | None = Field(default=None, description="Search engine / collection identifier")
    base_url: str | None = Field(default=None, description="Base endpoint URL")
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    timeout: float = Field(default=10.0, gt=0, description="Per-call timeout in seconds")
    max_retries: int = Field(default=3, ge=0, description="Retries for transient failures")
    retry_base_delay: float = Field(default=1.0, ge=0, description="First backoff delay in seconds")
    retry_max_delay: float = Field(default=10.0, ge=0, description="Backoff delay cap in seconds")
    enabled: bool = Field(default=True, description="Whether this source is active")
    priority: int = Field(default=1, description="Higher priority sources are queried first")
    trust_seed: int | None = Field(
        default=None,
        description="Seed for trust-score jitter; None disables jitter",
    )
    extra: dict[str, Any] = Field(default_factory=dict, description="Adapter-specific options")

    @model_validator(mode="after")
    def _check_delays(self) -> SourceConfig:
        if self.retry_max_delay < self.retry_base_delay:
            raise ValueError("retry_max_delay must be >= retry_base_delay")
        return self

    @property
    def has_credentials(self) -> bool:
        return not is_placeholder(self.api_key)


class CoordinatorSettings(BaseModel):
    """Fan-out and merge behaviour."""

    strategy: FanOutMode = Field(default=FanOutMode.PARALLEL, description="parallel or sequential fan-out")
    max_concurrent_sources: int = Field(default=3, ge=1, description="Source cap in parallel mode")
    fallback_on_failure: bool = Field(
        default=True,
        description="Sequential mode: continue past a failed source instead of aborting",
    )
    deduplication_enabled: bool = Field(default=True, description="Drop cross-source duplicates")


class CacheSettings(BaseModel):
    """Result cache configuration."""

    max_entries: int = Field(default=1000, ge=1, description="Entry count that triggers eviction")
    default_ttl_seconds: float = Field(default=3600.0, gt=0, description="Default entry time-to-live")
    max_size_bytes: int = Field(default=100 * 1024 * 1024, ge=1, description="Estimated size ceiling")
    eviction_policy: EvictionPolicyName = Field(default=EvictionPolicyName.HYBRID)
    sweep_interval_seconds: float = Field(default=300.0, gt=0, description="Expired-entry sweep period")
    similarity_threshold: float = Field(default=0.8, ge=0.0, le=1.0, description="Default find_similar cutoff")


class SearchSettings(BaseModel):
    """Search behavior configuration."""

    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=50, ge=1)
    sources: dict[str, SourceConfig] = Field(default_factory=dict, description="Source configurations")

    @field_validator("sources", mode="before")
    @classmethod
    def _fill_source_names(cls, v: Any) -> Any:
        """Allow the mapping key to stand in for a missing ``name``."""
        if isinstance(v, dict):
            filled: dict[str, Any] = {}
            for key, cfg in v.items():
                if isinstance(cfg, dict) and "name" not in cfg:
                    cfg = {**cfg, "name": key}
                filled[key] = cfg
            return filled
        return v


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root application settings.

    Configuration is loaded from environment variables with the OPPAGG_ prefix.
    Nested settings use double underscores: OPPAGG_CACHE__MAX_ENTRIES=500

    Example:
        OPPAGG_COORDINATOR__STRATEGY=sequential
        OPPAGG_SEARCH__SOURCES__GOOGLE__API_KEY=AIza...
        OPPAGG_SEARCH__SOURCES__GOOGLE__SEARCH_ENGINE_ID=0123:abc
    """

    model_config = {
        "env_prefix": "OPPAGG_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    app_name: str = Field(default="oppaggregator", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    coordinator: CoordinatorSettings = Field(default_factory=CoordinatorSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
