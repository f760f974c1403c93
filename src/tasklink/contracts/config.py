"""Configuration contracts."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from tasklink.matching.similarity import AUTO_LINK_THRESHOLD, REVIEW_THRESHOLD


class RateLimitConfig(BaseModel):
    max_concurrent: int = Field(default=3, ge=1, le=10)
    start_interval_seconds: float = Field(default=3.0, ge=0.0)
    batch_size: int = Field(default=3, ge=1)
    batch_pause_seconds: float = Field(default=10.0, ge=0.0)

    model_config = {"frozen": True}


class RetryPolicy(BaseModel):
    """Backoff policy for transient remote failures.

    The delay before retry *n* (1-based) is ``base_delay_seconds * multiplier * n``.
    """

    max_retries: int = Field(default=2, ge=0)
    base_delay_seconds: float = Field(default=3.0, ge=0.0)
    multiplier: float = Field(default=1.0, ge=0.0)

    model_config = {"frozen": True}

    def delay_for(self, attempt: int) -> float:
        return self.base_delay_seconds * self.multiplier * attempt


class MatchThresholds(BaseModel):
    auto_link: float = Field(default=AUTO_LINK_THRESHOLD, ge=0.0, le=1.0)
    review: float = Field(default=REVIEW_THRESHOLD, ge=0.0, le=1.0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_order(self) -> MatchThresholds:
        if self.review > self.auto_link:
            raise ValueError("review threshold must not exceed auto_link threshold")
        return self


class RecoveryConfig(BaseModel):
    max_passes: int = Field(default=2, ge=0)
    reindex_wait_seconds: float = Field(default=2.0, ge=0.0)

    model_config = {"frozen": True}


class TaskLinkConfig(BaseModel):
    tracker: str = "linear"
    container_id: str
    team_id: str | None = None
    assignee_id: str | None = None
    api_url: str = "https://api.linear.app/graphql"
    auth: str = "env"
    token_env: str = "LINEAR_API_KEY"
    token: str | None = None
    work_items_path: Path = Path("tasks.json")
    metadata_path: Path = Path(".tasklink/sync-records.json")
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    matching: MatchThresholds = Field(default_factory=MatchThresholds)
    recovery: RecoveryConfig = Field(default_factory=RecoveryConfig)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_auth_token(self) -> TaskLinkConfig:
        token = (self.token or "").strip()
        if self.auth not in {"env", "token"}:
            raise ValueError("auth must be one of: env, token")
        if self.auth == "token" and not token:
            raise ValueError("token auth requires a non-empty token")
        if self.auth != "token" and token:
            raise ValueError("token must be unset when auth is not 'token'")
        return self
