"""
Configuration models and loading.

Configuration is layered: defaults < project ``.cairn/config.json`` < env vars.
"""

from .loader import (
    CONFIG_FILE_NAME,
    STORE_DIR_NAME,
    apply_env_overrides,
    deep_merge,
    find_store_dir,
    load_config,
    load_json_file,
)
from .models import StoreConfig

__all__ = [
    "CONFIG_FILE_NAME",
    "STORE_DIR_NAME",
    "StoreConfig",
    "apply_env_overrides",
    "deep_merge",
    "find_store_dir",
    "load_config",
    "load_json_file",
]
