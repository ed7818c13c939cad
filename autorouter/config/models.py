"""Normalized, immutable keyword configuration.

These are the compiled forms of the raw JSON models in
:mod:`autorouter.config.schema`. Every value here has been bounds-checked and
every regex compiled, so the request path never re-parses configuration.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

LANGUAGE_MATCH_MODES = (None, "nonEnglish", "multiple", "explicitMention", "any")


@dataclass(frozen=True)
class RegexPattern:
    """Match when the regex is found in the lower-cased request text."""

    regex: re.Pattern
    weight: float
    description: str


@dataclass(frozen=True)
class LanguagePattern:
    """Match on detected or mentioned languages.

    ``match`` selects the mode: ``nonEnglish``, ``multiple``,
    ``explicitMention``, or ``None``/``any`` to intersect ``codes`` with
    every language seen in the request.
    """

    codes: tuple[str, ...]
    match: Optional[str]
    weight: float
    description: str


@dataclass(frozen=True)
class CodeblockPattern:
    """Match on fenced or HTML code blocks, optionally by language tag."""

    languages: tuple[str, ...]
    require_language: bool
    weight: float
    description: str


@dataclass(frozen=True)
class AttachmentPattern:
    """Match on attachment descriptors (mime types, kinds, ``ext:``, ``tool:``)."""

    match: tuple[str, ...]
    match_any: bool
    weight: float
    description: str


Pattern = Union[RegexPattern, LanguagePattern, CodeblockPattern, AttachmentPattern]


@dataclass(frozen=True)
class KeywordGroup:
    """A named bundle of weighted patterns associated with one intent."""

    intent: str
    base_intensity: float
    max_boost: float
    max_intensity: float
    patterns: tuple[Pattern, ...]


@dataclass(frozen=True)
class IntentSection:
    """Heuristic section (quick, detail, support): phrases plus a budget threshold."""

    patterns: tuple[re.Pattern, ...]
    intensity: float
    token_budget_threshold: float

    def matches(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)


@dataclass(frozen=True)
class KeywordConfig:
    """Root of the normalized keyword configuration."""

    default_pattern_weight: float
    keyword_groups: tuple[KeywordGroup, ...]
    quick_intent: IntentSection
    detail_intent: IntentSection
    support_intent: IntentSection

    def group_for(self, intent: str) -> Optional[KeywordGroup]:
        """Look up the keyword group for an intent, if one is configured."""
        for group in self.keyword_groups:
            if group.intent == intent:
                return group
        return None
