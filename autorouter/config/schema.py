"""Configuration schema using Pydantic.

Two layers live here:

- the *raw* keyword document as it appears on disk (every field optional so
  an override file may omit whatever it wants to inherit from the default),
- process settings read from the environment.

The raw models only check structure and types. Bounds, fallbacks and regex
compilation happen in :mod:`autorouter.config.normalizer`.
"""

from pathlib import Path
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictFloat, StrictInt
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

# Numbers must be real JSON numbers; strings and booleans are rejected.
Number = Union[StrictInt, StrictFloat]


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RawRegex(Base):
    """A regex entry written as an object: ``{"pattern": "...", "flags": "i"}``."""
    pattern: str
    flags: Optional[str] = None


class RawPattern(Base):
    """One keyword-group pattern. ``type`` picks the variant (default: regex)."""
    type: Optional[str] = None
    weight: Optional[Number] = None
    description: Optional[str] = None

    # regex
    pattern: Optional[Union[str, RawRegex]] = None
    value: Optional[str] = None
    flags: Optional[str] = None

    # language
    codes: Optional[list[str]] = None
    # language match mode (string) or attachment match values (list)
    match: Optional[Union[str, list[Any]]] = None

    # codeblock
    languages: Optional[list[str]] = None
    require_language: Optional[bool] = None

    # attachment
    match_any: Optional[bool] = None


class RawKeywordGroup(Base):
    """Keyword group for one intent."""
    intent: Optional[str] = None
    base_intensity: Optional[Number] = None
    max_boost: Optional[Number] = None
    max_intensity: Optional[Number] = None
    patterns: Optional[list[Union[str, RawPattern]]] = None


class RawIntentSection(Base):
    """Quick / detail / support heuristic section."""
    patterns: Optional[list[Union[str, RawRegex]]] = None
    intensity: Optional[Number] = None
    token_budget_threshold: Optional[Number] = None


class RawKeywordConfig(Base):
    """Root of the keyword configuration document."""
    default_pattern_weight: Optional[Number] = None
    keyword_groups: Optional[list[RawKeywordGroup]] = None
    quick_intent: Optional[RawIntentSection] = None
    detail_intent: Optional[RawIntentSection] = None
    support_intent: Optional[RawIntentSection] = None


class ModelSpec(Base):
    """A named model/preset bundle from the external spec catalog."""
    name: str
    label: Optional[str] = None
    preset: dict[str, Any] = Field(default_factory=dict)


class RouterSettings(BaseSettings):
    """Process settings for the auto-router."""

    # Path of the keyword configuration override (falls back to ~/.autorouter/...)
    keyword_config: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("AUTO_ROUTER_KEYWORD_CONFIG", "AUTOROUTER_KEYWORD_CONFIG"),
    )
    auto_routed_endpoints: list[str] = Field(default_factory=lambda: ["Deepseek", "agents"])
    log_level: str = "WARNING"

    model_config = SettingsConfigDict(env_prefix="AUTOROUTER_", populate_by_name=True)
