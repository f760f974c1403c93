import pytest
from pydantic import ValidationError

from tasklink.contracts.config import MatchThresholds, RateLimitConfig, RetryPolicy, TaskLinkConfig


def test_defaults_match_remote_rate_limits() -> None:
    config = TaskLinkConfig(container_id="team-1")

    assert config.rate_limit == RateLimitConfig(
        max_concurrent=3, start_interval_seconds=3.0, batch_size=3, batch_pause_seconds=10.0
    )
    assert config.retry.max_retries == 2
    assert config.matching.auto_link == 0.9
    assert config.matching.review == 0.8
    assert config.recovery.max_passes == 2


def test_retry_delay_grows_linearly() -> None:
    policy = RetryPolicy(base_delay_seconds=3.0, multiplier=2.0)

    assert [policy.delay_for(attempt) for attempt in (1, 2, 3)] == [6.0, 12.0, 18.0]


def test_review_threshold_cannot_exceed_auto_link() -> None:
    with pytest.raises(ValidationError, match="review threshold"):
        MatchThresholds(auto_link=0.8, review=0.9)


def test_token_auth_requires_token() -> None:
    with pytest.raises(ValidationError, match="non-empty token"):
        TaskLinkConfig(container_id="team-1", auth="token", token=" ")


def test_token_must_be_unset_for_env_auth() -> None:
    with pytest.raises(ValidationError, match="token must be unset"):
        TaskLinkConfig(container_id="team-1", token="lin_api_123")


def test_unknown_auth_mode_is_rejected() -> None:
    with pytest.raises(ValidationError, match="auth must be one of"):
        TaskLinkConfig(container_id="team-1", auth="gh-cli")


def test_config_is_frozen() -> None:
    config = TaskLinkConfig(container_id="team-1")

    with pytest.raises(ValidationError):
        config.container_id = "team-2"  # type: ignore[misc]
