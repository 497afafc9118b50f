import os
from functools import lru_cache
from pathlib import Path

import yaml

CONFIG_ENV = "MOLTBOOT_CONFIG"


def get_default_config_path() -> Path:
    return Path(__file__).resolve().parent.parent / "config.yaml"


def override_config_path() -> Path | None:
    """Return the operator override file named by MOLTBOOT_CONFIG, if any."""
    value = os.environ.get(CONFIG_ENV)
    return Path(value).expanduser() if value else None


def _read_yaml(path: Path) -> dict:
    with open(path) as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"Config must be a mapping, got {type(cfg).__name__} in {path}")
    return cfg


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def clear_cache():
    load_config.cache_clear()


@lru_cache(maxsize=1)
def load_config() -> dict:
    """Load packaged defaults merged with the optional operator override."""
    cfg = _read_yaml(get_default_config_path())
    override = override_config_path()
    if override is not None and override.exists():
        cfg = _deep_merge(cfg, _read_yaml(override))
    return cfg
