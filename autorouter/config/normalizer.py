"""Keyword configuration normalizer.

Turns a raw keyword document into an immutable :class:`KeywordConfig`.

Policy is all-or-nothing: any invalid field raises
:class:`ConfigValidationError` and the caller discards the whole document.
Missing fields inherit from the fallback document (the bundled default),
looked up by intent name for keyword groups and by index for patterns.
"""

from __future__ import annotations

import json
import math
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import ValidationError

from autorouter.config.models import (
    LANGUAGE_MATCH_MODES,
    AttachmentPattern,
    CodeblockPattern,
    IntentSection,
    KeywordConfig,
    KeywordGroup,
    LanguagePattern,
    Pattern,
    RegexPattern,
)
from autorouter.config.schema import (
    RawIntentSection,
    RawKeywordConfig,
    RawKeywordGroup,
    RawPattern,
    RawRegex,
)
from autorouter.errors import ConfigValidationError

DEFAULT_CONFIG_PATH = Path(__file__).with_name("auto_router_keywords.default.json")

DEFAULT_PATTERN_WEIGHT = 0.08
DEFAULT_MAX_BOOST = 0.32
MAX_SAFE_INTEGER = 2**53 - 1
MAX_REGEX_LENGTH = 512

# JS-style flag letters; g, y and u have no meaning for a single re.search.
_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "g": 0,
    "y": 0,
    "u": 0,
}

# A quantified group whose body already repeats, e.g. (a+)+ or (\w*){2,}
_NESTED_QUANTIFIER = re.compile(r"\((?:[^()\\]|\\.)*[+*](?:[^()\\]|\\.)*\)(?:[+*]|\{\d+,\})")

RawConfigInput = Union[RawKeywordConfig, Mapping[str, Any]]


@lru_cache(maxsize=1)
def load_default_raw_config() -> RawKeywordConfig:
    """Parse the bundled default keyword document."""
    data = json.loads(DEFAULT_CONFIG_PATH.read_text(encoding="utf-8"))
    return RawKeywordConfig.model_validate(data)


def ensure_number(
    value: Any,
    fallback: Any,
    *,
    name: str,
    context: str,
    minimum: float = -math.inf,
    maximum: float = math.inf,
) -> float:
    """Return ``value`` (or ``fallback`` when absent) after a bounds check."""
    if value is not None:
        number = _finite_float(value)
        if number is None:
            raise ConfigValidationError(f"{name} for {context} must be a finite number")
        if number < minimum or number > maximum:
            raise ConfigValidationError(f"{name} for {context} must be between {minimum} and {maximum}")
        return number

    number = _finite_float(fallback)
    if number is not None:
        if number < minimum or number > maximum:
            raise ConfigValidationError(f"{name} for {context} fallback is outside bounds")
        return number

    raise ConfigValidationError(f"{name} for {context} must be a finite number")


def _finite_float(value: Any) -> Optional[float]:
    # JSON integers are unbounded; anything past float range is rejected
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _parse_flags(flags: str, context: str) -> int:
    compiled = 0
    for letter in flags:
        if letter not in _REGEX_FLAGS:
            raise ConfigValidationError(f"Unsupported regex flag '{letter}' for {context}")
        compiled |= _REGEX_FLAGS[letter]
    return compiled


def _flags_to_letters(flags: int) -> str:
    return "".join(
        letter for letter in ("i", "m", "s") if _REGEX_FLAGS[letter] and flags & _REGEX_FLAGS[letter]
    )


def compile_regex(entry: Any, context: str, flags: Optional[str] = None) -> re.Pattern:
    """Compile a regex entry (string or ``{pattern, flags}``), case-insensitive by default."""
    if isinstance(entry, re.Pattern):
        return entry

    if isinstance(entry, str):
        source, letters = entry, flags if flags is not None else "i"
    elif isinstance(entry, RawRegex):
        source, letters = entry.pattern, entry.flags if entry.flags is not None else "i"
    elif isinstance(entry, Mapping) and isinstance(entry.get("pattern"), str):
        source = entry["pattern"]
        letters = entry["flags"] if isinstance(entry.get("flags"), str) else "i"
    else:
        raise ConfigValidationError(f"Invalid regex entry for {context}")

    if len(source) > MAX_REGEX_LENGTH:
        raise ConfigValidationError(f"Regex for {context} exceeds {MAX_REGEX_LENGTH} characters")
    if _NESTED_QUANTIFIER.search(source):
        raise ConfigValidationError(f"Regex for {context} nests unbounded quantifiers: {source}")

    try:
        return re.compile(source, _parse_flags(letters, context))
    except re.error as e:
        raise ConfigValidationError(f"Invalid regex for {context}: {e}") from e


def _as_raw_pattern(pattern: Union[str, RawPattern, None]) -> Optional[RawPattern]:
    if isinstance(pattern, str):
        return RawPattern(pattern=pattern)
    return pattern


def _clean_codes(values: Optional[list[str]]) -> tuple[str, ...]:
    cleaned = (value.strip().lower() for value in values or [] if isinstance(value, str))
    return tuple(dict.fromkeys(value for value in cleaned if value))


def _pick_description(raw: RawPattern, fallback: Optional[RawPattern], default: str) -> str:
    for candidate in (raw.description, fallback.description if fallback else None):
        if isinstance(candidate, str) and candidate.strip():
            return candidate
    return default


def _pattern_weight(raw: RawPattern, fallback: Optional[RawPattern], default_weight: float, context: str) -> float:
    fallback_weight = fallback.weight if fallback and fallback.weight is not None else default_weight
    return ensure_number(raw.weight, fallback_weight, name="weight", context=context, minimum=0, maximum=1)


def _normalize_regex(raw: RawPattern, default_weight: float, fallback: Optional[RawPattern], context: str) -> RegexPattern:
    source = raw.pattern if raw.pattern is not None else raw.value
    if source is None:
        raise ConfigValidationError(f"Invalid regex entry for {context}")

    regex = compile_regex(source, context, flags=raw.flags)
    return RegexPattern(
        regex=regex,
        weight=_pattern_weight(raw, fallback, default_weight, context),
        description=_pick_description(raw, fallback, regex.pattern),
    )


def _normalize_language(raw: RawPattern, default_weight: float, fallback: Optional[RawPattern], context: str) -> LanguagePattern:
    codes = _clean_codes(raw.codes if raw.codes is not None else (fallback.codes if fallback else None))
    match = raw.match if raw.match is not None else (fallback.match if fallback else None)

    if match not in LANGUAGE_MATCH_MODES:
        raise ConfigValidationError(f'Unsupported language match type "{match}" for {context}')
    if not codes and not match:
        raise ConfigValidationError(f"Language pattern for {context} must define codes or match type")

    default_description = f"language:{codes[0]}" if codes else f"language:{match or 'signal'}"
    return LanguagePattern(
        codes=codes,
        match=match,
        weight=_pattern_weight(raw, fallback, default_weight, context),
        description=_pick_description(raw, fallback, default_description),
    )


def _normalize_codeblock(raw: RawPattern, default_weight: float, fallback: Optional[RawPattern], context: str) -> CodeblockPattern:
    languages = _clean_codes(raw.languages if raw.languages is not None else (fallback.languages if fallback else None))
    if raw.require_language is not None:
        require_language = raw.require_language
    else:
        require_language = bool(fallback and fallback.require_language)

    return CodeblockPattern(
        languages=languages,
        require_language=require_language,
        weight=_pattern_weight(raw, fallback, default_weight, context),
        description=_pick_description(raw, fallback, "codeblock"),
    )


def _normalize_attachment(raw: RawPattern, default_weight: float, fallback: Optional[RawPattern], context: str) -> AttachmentPattern:
    if isinstance(raw.match, list):
        values = raw.match
    elif fallback and isinstance(fallback.match, list):
        values = fallback.match
    else:
        values = []

    if not values:
        raise ConfigValidationError(f"Attachment pattern for {context} must declare match values")

    cleaned = (str(value).strip().lower() for value in values if value is not None)
    match = tuple(dict.fromkeys(value for value in cleaned if value))
    if not match:
        raise ConfigValidationError(f"Attachment pattern for {context} must include valid match values")

    if raw.match_any is not None:
        match_any = raw.match_any
    elif fallback and fallback.match_any is not None:
        match_any = fallback.match_any
    else:
        match_any = True

    return AttachmentPattern(
        match=match,
        match_any=match_any,
        weight=_pattern_weight(raw, fallback, default_weight, context),
        description=_pick_description(raw, fallback, f"attachment:{match[0]}"),
    )


_PATTERN_NORMALIZERS: dict[str, Callable[..., Pattern]] = {
    "regex": _normalize_regex,
    "language": _normalize_language,
    "codeblock": _normalize_codeblock,
    "attachment": _normalize_attachment,
}


def normalize_pattern(
    pattern: Union[str, RawPattern],
    default_weight: float,
    fallback: Union[str, RawPattern, None],
    context: str,
) -> Pattern:
    """Normalize one keyword-group pattern into its typed variant."""
    raw = _as_raw_pattern(pattern)
    fallback_raw = _as_raw_pattern(fallback)

    pattern_type = raw.type or (fallback_raw.type if fallback_raw else None) or "regex"
    normalizer = _PATTERN_NORMALIZERS.get(pattern_type)
    if normalizer is None:
        raise ConfigValidationError(f'Unsupported pattern type "{pattern_type}" for {context}')
    return normalizer(raw, default_weight, fallback_raw, context)


def _normalize_keyword_groups(
    raw: RawKeywordConfig,
    fallback: RawKeywordConfig,
    default_weight: float,
) -> tuple[KeywordGroup, ...]:
    fallback_groups = fallback.keyword_groups or []
    fallback_by_intent = {group.intent: group for group in fallback_groups if group.intent}

    groups = raw.keyword_groups if raw.keyword_groups is not None else fallback.keyword_groups
    if not groups:
        raise ConfigValidationError("keywordGroups must be a non-empty array")

    normalized: list[KeywordGroup] = []
    seen: set[str] = set()

    for index, group in enumerate(groups):
        raw_intent = group.intent.strip() if group.intent else ""
        fallback_group: Optional[RawKeywordGroup]
        if raw_intent:
            fallback_group = fallback_by_intent.get(raw_intent)
        else:
            fallback_group = fallback_groups[index] if index < len(fallback_groups) else None

        intent = raw_intent or (fallback_group.intent if fallback_group else None)
        if not intent:
            raise ConfigValidationError(f"keywordGroups[{index}] must define an intent")
        if intent in seen:
            raise ConfigValidationError(f"intent {intent} is defined by more than one keyword group")
        seen.add(intent)

        context = f"intent:{intent}"
        base_intensity = ensure_number(
            group.base_intensity,
            fallback_group.base_intensity if fallback_group else None,
            name="baseIntensity", context=context, minimum=0, maximum=1,
        )
        fallback_boost = fallback_group.max_boost if fallback_group and fallback_group.max_boost is not None else DEFAULT_MAX_BOOST
        max_boost = ensure_number(
            group.max_boost, fallback_boost,
            name="maxBoost", context=context, minimum=0, maximum=1,
        )
        fallback_max = fallback_group.max_intensity if fallback_group and fallback_group.max_intensity is not None else 1
        max_intensity = ensure_number(
            group.max_intensity, fallback_max,
            name="maxIntensity", context=context, minimum=base_intensity, maximum=1,
        )

        if group.patterns:
            patterns = group.patterns
        elif fallback_group and fallback_group.patterns:
            patterns = fallback_group.patterns
        else:
            raise ConfigValidationError(f"intent {intent} must define at least one pattern")

        fallback_patterns = fallback_group.patterns or [] if fallback_group else []
        normalized.append(
            KeywordGroup(
                intent=intent,
                base_intensity=base_intensity,
                max_boost=max_boost,
                max_intensity=max_intensity,
                patterns=tuple(
                    normalize_pattern(
                        pattern,
                        default_weight,
                        fallback_patterns[position] if position < len(fallback_patterns) else None,
                        f"{context}:pattern[{position}]",
                    )
                    for position, pattern in enumerate(patterns)
                ),
            )
        )

    return tuple(normalized)


def _normalize_intent_section(
    raw: Optional[RawIntentSection],
    fallback: Optional[RawIntentSection],
    name: str,
) -> IntentSection:
    section = raw if raw is not None else fallback
    if section is None:
        raise ConfigValidationError(f"{name} section is missing")

    patterns = section.patterns if section.patterns is not None else (fallback.patterns if fallback else None)
    if not patterns:
        raise ConfigValidationError(f"{name} must define at least one pattern")

    fallback_threshold = (
        fallback.token_budget_threshold
        if fallback is not None and fallback.token_budget_threshold is not None
        else 0
    )
    return IntentSection(
        patterns=tuple(
            compile_regex(pattern, f"{name}:pattern[{index}]") for index, pattern in enumerate(patterns)
        ),
        intensity=ensure_number(
            section.intensity,
            fallback.intensity if fallback else None,
            name=f"{name}.intensity", context=name, minimum=0, maximum=1,
        ),
        token_budget_threshold=ensure_number(
            section.token_budget_threshold,
            fallback_threshold,
            name=f"{name}.tokenBudgetThreshold", context=name, minimum=0, maximum=MAX_SAFE_INTEGER,
        ),
    )


def _coerce_raw(config: Any, label: str) -> RawKeywordConfig:
    if isinstance(config, RawKeywordConfig):
        return config
    if not isinstance(config, Mapping):
        raise ConfigValidationError(f"{label} must be a JSON object")
    try:
        return RawKeywordConfig.model_validate(dict(config))
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid {label}: {e}") from e


def normalize_config(raw_config: Any, fallback_config: Optional[RawConfigInput] = None) -> KeywordConfig:
    """
    Validate and compile a raw keyword document.

    Args:
        raw_config: Parsed JSON document (dict) or a ``RawKeywordConfig``.
        fallback_config: Document supplying omitted fields. Defaults to the
            bundled default configuration.

    Returns:
        The normalized, immutable configuration.

    Raises:
        ConfigValidationError: On any structural, bounds or regex error.
    """
    raw = _coerce_raw(raw_config, "keyword configuration")
    fallback = (
        load_default_raw_config()
        if fallback_config is None
        else _coerce_raw(fallback_config, "fallback keyword configuration")
    )

    fallback_weight = (
        fallback.default_pattern_weight if fallback.default_pattern_weight is not None else DEFAULT_PATTERN_WEIGHT
    )
    default_weight = ensure_number(
        raw.default_pattern_weight, fallback_weight,
        name="defaultPatternWeight", context="config", minimum=0, maximum=1,
    )

    return KeywordConfig(
        default_pattern_weight=default_weight,
        keyword_groups=_normalize_keyword_groups(raw, fallback, default_weight),
        quick_intent=_normalize_intent_section(raw.quick_intent, fallback.quick_intent, "quickIntent"),
        detail_intent=_normalize_intent_section(raw.detail_intent, fallback.detail_intent, "detailIntent"),
        support_intent=_normalize_intent_section(raw.support_intent, fallback.support_intent, "supportIntent"),
    )


def _dump_pattern(pattern: Pattern) -> dict[str, Any]:
    if isinstance(pattern, RegexPattern):
        return {
            "type": "regex",
            "pattern": pattern.regex.pattern,
            "flags": _flags_to_letters(pattern.regex.flags),
            "weight": pattern.weight,
            "description": pattern.description,
        }
    if isinstance(pattern, LanguagePattern):
        return {
            "type": "language",
            "codes": list(pattern.codes),
            "match": pattern.match,
            "weight": pattern.weight,
            "description": pattern.description,
        }
    if isinstance(pattern, CodeblockPattern):
        return {
            "type": "codeblock",
            "languages": list(pattern.languages),
            "requireLanguage": pattern.require_language,
            "weight": pattern.weight,
            "description": pattern.description,
        }
    return {
        "type": "attachment",
        "match": list(pattern.match),
        "matchAny": pattern.match_any,
        "weight": pattern.weight,
        "description": pattern.description,
    }


def _dump_section(section: IntentSection) -> dict[str, Any]:
    return {
        "patterns": [
            {"pattern": regex.pattern, "flags": _flags_to_letters(regex.flags)} for regex in section.patterns
        ],
        "intensity": section.intensity,
        "tokenBudgetThreshold": section.token_budget_threshold,
    }


def dump_config(config: KeywordConfig) -> dict[str, Any]:
    """Serialize a normalized config back to the raw JSON document shape."""
    return {
        "defaultPatternWeight": config.default_pattern_weight,
        "keywordGroups": [
            {
                "intent": group.intent,
                "baseIntensity": group.base_intensity,
                "maxBoost": group.max_boost,
                "maxIntensity": group.max_intensity,
                "patterns": [_dump_pattern(pattern) for pattern in group.patterns],
            }
            for group in config.keyword_groups
        ],
        "quickIntent": _dump_section(config.quick_intent),
        "detailIntent": _dump_section(config.detail_intent),
        "supportIntent": _dump_section(config.support_intent),
    }
