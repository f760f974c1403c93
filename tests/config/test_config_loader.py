import json
from pathlib import Path

import pytest

from tasklink.config import load_config
from tasklink.contracts.exceptions import ConfigError


def _write_config(tmp_path: Path, payload: object) -> Path:
    path = tmp_path / "tasklink.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_config_resolves_paths_relative_to_config_file(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        {"container_id": "team-1", "work_items_path": "tasks/tasks.json", "metadata_path": "state/links.json"},
    )

    config = load_config(path)

    assert config.tracker == "linear"
    assert config.work_items_path == (tmp_path / "tasks" / "tasks.json").resolve()
    assert config.metadata_path == (tmp_path / "state" / "links.json").resolve()


def test_load_config_keeps_absolute_paths(tmp_path: Path) -> None:
    absolute = tmp_path / "elsewhere" / "tasks.json"
    path = _write_config(tmp_path, {"container_id": "team-1", "work_items_path": str(absolute)})

    assert load_config(path).work_items_path == absolute


def test_load_config_reads_nested_policies(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        {
            "tracker": "memory",
            "container_id": "team-1",
            "rate_limit": {"max_concurrent": 2, "batch_pause_seconds": 5},
            "retry": {"max_retries": 4},
            "matching": {"auto_link": 0.95, "review": 0.8},
        },
    )

    config = load_config(path)

    assert config.rate_limit.max_concurrent == 2
    assert config.rate_limit.batch_pause_seconds == 5.0
    assert config.retry.max_retries == 4
    assert config.matching.auto_link == 0.95


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="failed reading config file"):
        load_config(tmp_path / "absent.json")


def test_load_config_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "tasklink.json"
    path.write_text("{", encoding="utf-8")

    with pytest.raises(ConfigError, match="invalid JSON"):
        load_config(path)


def test_load_config_missing_container(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="invalid config"):
        load_config(_write_config(tmp_path, {"tracker": "memory"}))


def test_load_config_unknown_tracker(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="tracker must be one of"):
        load_config(_write_config(tmp_path, {"tracker": "jira", "container_id": "PROJ"}))


def test_load_config_rejects_non_http_api_url(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="api_url"):
        load_config(_write_config(tmp_path, {"container_id": "team-1", "api_url": "ftp://linear"}))


def test_load_config_rejects_blank_token_env(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="token_env"):
        load_config(_write_config(tmp_path, {"container_id": "team-1", "token_env": "  "}))
