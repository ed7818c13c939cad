"""Configuration module for autorouter."""

from autorouter.config.loader import (
    get_config_path,
    get_keyword_config,
    load_keyword_config,
    reset_keyword_config_cache,
)
from autorouter.config.models import KeywordConfig
from autorouter.config.normalizer import dump_config, normalize_config
from autorouter.config.schema import ModelSpec, RouterSettings

__all__ = [
    "KeywordConfig",
    "ModelSpec",
    "RouterSettings",
    "dump_config",
    "get_config_path",
    "get_keyword_config",
    "load_keyword_config",
    "normalize_config",
    "reset_keyword_config_cache",
]
