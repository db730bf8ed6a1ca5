"""Application configuration."""

import os
from dataclasses import dataclass
from datetime import timedelta

from pydantic_settings import BaseSettings, SettingsConfigDict

from visit_engine.domain.clustering import ClusterPolicy
from visit_engine.domain.food import DEFAULT_FOOD_KEYWORDS, normalize_keywords
from visit_engine.services.retry import RetryPolicy
from visit_engine.services.suggestions import SuggestionPolicy

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


@dataclass(frozen=True)
class EnginePolicy:
    """Resolved thresholds handed to the services."""

    cluster: ClusterPolicy
    suggestion: SuggestionPolicy
    retry: RetryPolicy
    merge_gap: timedelta
    calendar_buffer: timedelta
    batch_size: int
    food_keywords: frozenset[str]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    cluster_time_gap_minutes: int = 120
    cluster_distance_meters: float = 200.0
    suggestion_radius_meters: float = 200.0
    primary_match_meters: float = 100.0
    suggestion_limit: int = 5
    merge_time_gap_hours: float = 12.0
    busy_retry_attempts: int = 5
    busy_retry_base_delay_ms: int = 50
    batch_size: int = 500
    calendar_buffer_minutes: int = 30
    food_keywords: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def policy(self) -> EnginePolicy:
        """Build the immutable policy objects consumed by the services."""
        return EnginePolicy(
            cluster=ClusterPolicy(
                time_gap=timedelta(minutes=self.cluster_time_gap_minutes),
                distance_meters=self.cluster_distance_meters,
            ),
            suggestion=SuggestionPolicy(
                radius_meters=self.suggestion_radius_meters,
                primary_meters=self.primary_match_meters,
                limit=self.suggestion_limit,
            ),
            retry=RetryPolicy(
                attempts=self.busy_retry_attempts,
                base_delay_seconds=self.busy_retry_base_delay_ms / 1000,
            ),
            merge_gap=timedelta(hours=self.merge_time_gap_hours),
            calendar_buffer=timedelta(minutes=self.calendar_buffer_minutes),
            batch_size=self.batch_size,
            food_keywords=parse_food_keywords(self.food_keywords),
        )


def parse_food_keywords(raw: str | None) -> frozenset[str]:
    """Parse comma separated food keywords; blank means the built-in set."""
    if raw is None:
        return DEFAULT_FOOD_KEYWORDS
    keywords = normalize_keywords(raw.split(","))
    return keywords or DEFAULT_FOOD_KEYWORDS
