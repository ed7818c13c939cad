"""Data models for the auto-router."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from autorouter.config.schema import ModelSpec

DEFAULT_INTENT = "general_support"


@dataclass(frozen=True)
class CodeInfo:
    """Code blocks found in the request text."""

    has_code_block: bool = False
    languages: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ClassificationContext:
    """Everything pattern evaluation needs, computed once per request."""

    text: str
    normalized_text: str
    languages: frozenset[str] = frozenset()
    language_mentions: frozenset[str] = frozenset()
    language_count: int = 0
    has_non_english: bool = False
    code_info: CodeInfo = field(default_factory=CodeInfo)
    attachment_descriptors: frozenset[str] = frozenset()


@dataclass(frozen=True)
class PatternMatch:
    """Outcome of evaluating one pattern."""

    matched: bool
    contributions: tuple[str, ...] = ()


NO_MATCH = PatternMatch(matched=False)


@dataclass(frozen=True)
class KeywordSignal:
    """A keyword group that fired, with its clamped intensity."""

    intent: str
    intensity: float
    hits: tuple[str, ...]


@dataclass(frozen=True)
class SearchSignals:
    """Whether the text reads like it needs a web search."""

    should_search: bool = False
    reason: Optional[str] = None  # mixed | explicit | implicit:combo | implicit
    confidence: float = 0.0
    explicit_matches: tuple[str, ...] = ()
    implicit_matches: tuple[str, ...] = ()
    recency_matches: tuple[str, ...] = ()
    topic_matches: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "should_search": self.should_search,
            "reason": self.reason,
            "confidence": self.confidence,
            "explicit_matches": list(self.explicit_matches),
            "implicit_matches": list(self.implicit_matches),
            "recency_matches": list(self.recency_matches),
            "topic_matches": list(self.topic_matches),
        }


@dataclass
class Candidate:
    """Proposed intent for a single request, before the gauge weighs in."""

    intent: str
    intensity: float
    keyword_hits: list[str] = field(default_factory=list)
    reason: list[str] = field(default_factory=list)
    toggles_used: list[str] = field(default_factory=list)
    forced_switch: bool = False
    auto_web_search: bool = False
    search_signals: SearchSignals = field(default_factory=SearchSignals)
    keyword_signals: list[KeywordSignal] = field(default_factory=list)


@dataclass(frozen=True)
class GaugeState:
    """Active intent of one conversation. Timestamps in seconds, 0 = never."""

    intent: str = DEFAULT_INTENT
    intensity: float = 0.35
    last_updated: float = 0.0
    last_switch: float = 0.0


@dataclass(frozen=True)
class GaugeUpdate:
    """New gauge state plus whether the intent changed."""

    state: GaugeState
    switched: bool


@dataclass
class RoutingRequest:
    """
    Inbound request envelope.

    ``body`` is mutated in place when a decision is made. The two
    ``auto_*`` attributes are outputs written by the router.
    """

    body: dict[str, Any]
    specs: list[ModelSpec] = field(default_factory=list)
    user_id: Optional[str] = None
    auto_routed_conversation: Optional[dict[str, Any]] = None
    auto_router_decision: Optional[dict[str, Any]] = None


@dataclass
class RoutingResult:
    """Outcome of a routing decision."""

    parsed_conversation: dict[str, Any]
    intent: str
    spec: str
    gauge: GaugeState
    switched: bool
    candidate: Candidate
    toggles: dict[str, Optional[bool]]

    def to_decision(self) -> dict[str, Any]:
        """Summary attached to the request for downstream consumers."""
        return {
            "intent": self.intent,
            "spec": self.spec,
            "intensity": self.gauge.intensity,
            "reason": list(self.candidate.reason),
        }
