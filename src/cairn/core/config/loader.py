"""
Configuration loading with layered merging.

Implements the configuration precedence chain:
    defaults < project config (.cairn/config.json) < env vars

The store directory is found by walking up from the working directory to
the nearest ``.cairn`` holding a task file or ``config.json``, falling back
to ``<start>/.cairn``. ``CAIRN_DIR`` replaces the search entirely.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .models import StoreConfig

logger = logging.getLogger(__name__)

STORE_DIR_NAME = ".cairn"
CONFIG_FILE_NAME = "config.json"

# env var -> (config key, converter)
ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "CAIRN_LOCK_TIMEOUT_MS": ("lock_timeout_ms", int),
    "CAIRN_LOCK_RETRIES": ("max_retries", int),
    "CAIRN_LOCK_RETRY_DELAY_MS": ("retry_delay_ms", int),
    "CAIRN_COMPACTION_DAYS": ("compaction_days", float),
}


def find_store_dir(start_dir: Path | None = None, file_name: str = "issues.jsonl") -> Path:
    """
    Locate the store directory for *start_dir*.

    Walks up the directory tree looking for a ``.cairn`` directory that holds
    *file_name* or a ``config.json`` (which may name a different task file).

    Args:
        start_dir: Directory to search from (defaults to current directory)
        file_name: Task file name to look for

    Returns:
        Path to the ``.cairn`` directory that was found, or
        ``start_dir/.cairn`` if none exists yet
    """
    start = (start_dir or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        candidate = directory / STORE_DIR_NAME
        if (candidate / file_name).is_file() or (candidate / CONFIG_FILE_NAME).is_file():
            return candidate
    return start / STORE_DIR_NAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`; nested
    dicts are merged rather than replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 2}})
        {'a': 1, 'b': {'x': 10, 'y': 2}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON object from *path*.

    Returns:
        Parsed dict, or None if the file is missing, unreadable or not an object
    """
    if not path.exists():
        return None

    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None

    if isinstance(data, dict):
        return data
    logger.warning("Ignoring config at %s: expected a JSON object", path)
    return None


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        CAIRN_DIR - overrides store_dir
        CAIRN_LOCK_TIMEOUT_MS - overrides lock_timeout_ms
        CAIRN_LOCK_RETRIES - overrides max_retries
        CAIRN_LOCK_RETRY_DELAY_MS - overrides retry_delay_ms
        CAIRN_COMPACTION_DAYS - overrides compaction_days

    Invalid values are logged and ignored.
    """
    result = config_dict.copy()

    if store_dir := os.environ.get("CAIRN_DIR"):
        result["store_dir"] = store_dir

    for env_name, (key, convert) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if not raw:
            continue
        try:
            result[key] = convert(raw)
        except ValueError:
            logger.warning("Invalid %s value '%s', ignoring", env_name, raw)

    return result


def load_config(start_dir: Path | None = None) -> StoreConfig:
    """
    Build the store configuration for *start_dir*.

    Args:
        start_dir: Directory to resolve the store from (defaults to cwd)

    Returns:
        A validated StoreConfig
    """
    # CAIRN_DIR picks the store before its config file is read
    env_dir = os.environ.get("CAIRN_DIR")
    store_dir = Path(env_dir) if env_dir else find_store_dir(start_dir)
    config_dict: dict[str, Any] = {"store_dir": str(store_dir)}

    project_config = load_json_file(store_dir / CONFIG_FILE_NAME)
    if project_config:
        # The config file lives inside the store dir, so it cannot move it
        project_config.pop("store_dir", None)
        config_dict = deep_merge(config_dict, project_config)

    config_dict = apply_env_overrides(config_dict)

    try:
        return StoreConfig.model_validate(config_dict)
    except ValidationError as e:
        logger.warning("Invalid cairn configuration, using defaults: %s", e)
        return StoreConfig(store_dir=Path(config_dict["store_dir"]))
