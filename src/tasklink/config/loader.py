"""Config loading and tracker-specific validation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from tasklink.contracts.config import TaskLinkConfig
from tasklink.contracts.exceptions import ConfigError
from tasklink.providers.factory import TRACKERS


def _resolve_path(value: Path, *, base_dir: Path) -> Path:
    if value.is_absolute():
        return value
    return (base_dir / value).resolve()


def _validate_tracker_specific_config(config: TaskLinkConfig) -> None:
    if config.tracker not in TRACKERS:
        raise ConfigError(f"tracker must be one of: {', '.join(sorted(TRACKERS))}")
    if config.tracker != "linear":
        return
    if not config.api_url.startswith(("https://", "http://")):
        raise ConfigError("api_url must be an http(s) URL")
    if config.auth == "env" and not config.token_env.strip():
        raise ConfigError("token_env must name an environment variable when auth is 'env'")


def load_config(path: str | Path) -> TaskLinkConfig:
    config_path = Path(path).expanduser().resolve()
    config_dir = config_path.parent

    try:
        raw_payload: Any = json.loads(config_path.read_text(encoding="utf-8"))
        parsed = TaskLinkConfig.model_validate(raw_payload)
    except OSError as exc:
        raise ConfigError(f"failed reading config file: {config_path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in config file: {config_path}") from exc
    except ValidationError as exc:
        raise ConfigError(f"invalid config: {exc}") from exc

    resolved_config = parsed.model_copy(
        update={
            "work_items_path": _resolve_path(parsed.work_items_path, base_dir=config_dir),
            "metadata_path": _resolve_path(parsed.metadata_path, base_dir=config_dir),
        }
    )
    _validate_tracker_specific_config(resolved_config)
    return resolved_config
