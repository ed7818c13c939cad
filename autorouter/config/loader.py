"""Keyword configuration loading utilities."""

import json
import threading
from pathlib import Path
from typing import Optional

from loguru import logger

from autorouter.config.models import KeywordConfig
from autorouter.config.normalizer import load_default_raw_config, normalize_config
from autorouter.config.schema import RouterSettings

_cached_config: Optional[KeywordConfig] = None
_cache_lock = threading.Lock()


def get_config_path() -> Path:
    """Get the keyword configuration path (env override, else ~/.autorouter)."""
    settings = RouterSettings()
    if settings.keyword_config is not None:
        return settings.keyword_config.expanduser().resolve()
    return Path.home() / ".autorouter" / "auto_router_keywords.json"


def load_default_config() -> KeywordConfig:
    """Normalize the bundled default document."""
    return normalize_config(load_default_raw_config())


def load_keyword_config(config_path: Path | None = None) -> KeywordConfig:
    """
    Load and normalize a keyword configuration file.

    Any failure (missing file, bad JSON, validation error) falls back to the
    bundled default as a whole; overrides are never merged field by field
    after a failure.

    Args:
        config_path: Optional path to the config file. Uses default if not provided.

    Returns:
        The normalized configuration.
    """
    path = config_path or get_config_path()

    if not path.exists():
        logger.info(f"[AutoRouter] No keyword configuration at {path}, using defaults")
        return load_default_config()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        config = normalize_config(data)
    except (OSError, ValueError) as e:
        logger.bind(path=str(path), error=str(e)).warning(
            f"[AutoRouter] Failed to load keyword configuration from {path}: {e}"
        )
        return load_default_config()

    logger.debug(f"[AutoRouter] Loaded {len(config.keyword_groups)} keyword groups from {path}")
    return config


def get_keyword_config() -> KeywordConfig:
    """Return the process-wide keyword configuration, loading it on first use."""
    global _cached_config
    config = _cached_config
    if config is not None:
        return config

    with _cache_lock:
        if _cached_config is None:
            _cached_config = load_keyword_config()
        return _cached_config


def reset_keyword_config_cache() -> None:
    """Forget the cached configuration so the next call reloads it."""
    global _cached_config
    with _cache_lock:
        _cached_config = None
