"""
Candidate intent builder.

Combines keyword signals, explicit toggles and the quick/support/detail
heuristics into one :class:`Candidate` per request. The candidate is a
proposal only: the intent gauge decides whether the conversation actually
switches.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from autorouter.config.loader import get_keyword_config
from autorouter.config.models import IntentSection, KeywordConfig
from autorouter.router.evaluator import evaluate_pattern
from autorouter.router.models import (
    DEFAULT_INTENT,
    Candidate,
    ClassificationContext,
    GaugeState,
    KeywordSignal,
)
from autorouter.router.signals import build_classification_context, detect_search_signals
from autorouter.utils.helpers import clamp, dedupe, to_boolean

# Tunable margins
KEYWORD_TIE_MARGIN = 0.05
SUPPORT_OVERRIDE_MARGIN = 0.08
DETAIL_ESCALATION_MARGIN = 0.05

NO_STATE_INTENSITY = 0.4
INTENSITY_FLOOR = 0.35
CARRYOVER_FACTOR = 0.92

STRATEGY_FLOOR = 0.86
RESEARCH_FLOOR = 0.74
AUTO_RESEARCH_CONFIDENCE = 0.76
THINKING_FLOOR = 0.82


def compute_keyword_signals(config: KeywordConfig, context: ClassificationContext) -> list[KeywordSignal]:
    """
    Score every keyword group against the context.

    Matched pattern weights are summed and capped at the group's
    ``max_boost``; the result is added to ``base_intensity`` and clamped to
    ``[base_intensity, max_intensity]``. Only groups with a positive boost
    are returned, strongest first (ties keep config order).
    """
    signals: list[KeywordSignal] = []

    for group in config.keyword_groups:
        boost = 0.0
        hits: list[str] = []

        for pattern in group.patterns:
            result = evaluate_pattern(pattern, context)
            if result.matched:
                boost += pattern.weight
                hits.extend(contribution for contribution in result.contributions if contribution)

        if boost > 0:
            intensity = clamp(
                group.base_intensity + min(boost, group.max_boost),
                group.base_intensity,
                group.max_intensity,
            )
            signals.append(KeywordSignal(intent=group.intent, intensity=intensity, hits=tuple(dedupe(hits))))

    return sorted(signals, key=lambda signal: signal.intensity, reverse=True)


def detect_quick_intent(section: IntentSection, text: str, token_budget: float) -> bool:
    """Small explicit token budget, or quick phrasing ("quick question", "briefly")."""
    threshold = section.token_budget_threshold
    if threshold > 0 and 0 < token_budget <= threshold:
        return True
    return section.matches(text)


def detect_detail_intent(section: IntentSection, text: str, token_budget: float) -> bool:
    """Large token budget, or depth phrasing ("in-depth", "walk me through")."""
    threshold = section.token_budget_threshold
    if threshold > 0 and token_budget >= threshold:
        return True
    return section.matches(text)


def detect_support_intent(section: IntentSection, text: str) -> bool:
    return section.matches(text)


def build_candidate(
    text: str,
    *,
    normalized_text: Optional[str] = None,
    attachments: Any = None,
    toggles: Optional[Mapping[str, Any]] = None,
    token_budget: float = 0,
    previous_state: Optional[GaugeState] = None,
    config: Optional[KeywordConfig] = None,
) -> Candidate:
    """
    Build the candidate intent for one request.

    Args:
        text: Raw request text.
        normalized_text: Lower-cased text (computed when omitted).
        attachments: Attachment descriptors collected from the request.
        toggles: ``thinking`` / ``web_search`` values, loosely typed.
        token_budget: Largest requested token budget (0 when unknown).
        previous_state: Gauge state before this request, if any.
        config: Keyword configuration (process-wide config when omitted).

    Returns:
        The candidate, with search and keyword signals attached.
    """
    config = config if config is not None else get_keyword_config()
    toggles = toggles or {}
    normalized = normalized_text if isinstance(normalized_text, str) else text.lower()

    context = build_classification_context(text, normalized, attachments)
    keyword_signals = compute_keyword_signals(config, context)

    if previous_state is not None:
        candidate = Candidate(
            intent=previous_state.intent or DEFAULT_INTENT,
            intensity=max(previous_state.intensity, INTENSITY_FLOOR),
        )
    else:
        candidate = Candidate(intent=DEFAULT_INTENT, intensity=NO_STATE_INTENSITY)

    if keyword_signals:
        top = keyword_signals[0]
        if top.intensity >= candidate.intensity - KEYWORD_TIE_MARGIN:
            candidate.intent = top.intent
            candidate.intensity = max(candidate.intensity, top.intensity)
            candidate.keyword_hits = list(top.hits)
            candidate.reason.append(f"keywords:{top.intent}")

    search = detect_search_signals(normalized)
    thinking = to_boolean(toggles.get("thinking"))
    explicit_web_search = to_boolean(toggles.get("web_search"))
    web_search = explicit_web_search

    # Search phrasing turns web search on even when the toggle is off.
    if not web_search and search.should_search:
        web_search = True
        candidate.auto_web_search = True

    search_reason = f"signal:web_search:{search.reason or 'implicit'}"

    if web_search and thinking:
        candidate.intent = "strategy"
        candidate.intensity = max(candidate.intensity, STRATEGY_FLOOR, search.confidence)
        candidate.reason.append("toggle:web_search+thinking")
        if not explicit_web_search:
            candidate.reason.append(search_reason)
            candidate.reason.append("toggle:thinking")
        candidate.toggles_used.extend(["thinking", "web_search"])
        candidate.forced_switch = True
    elif web_search:
        candidate.intent = "research"
        if explicit_web_search:
            floor = RESEARCH_FLOOR
        else:
            floor = max(RESEARCH_FLOOR, search.confidence or AUTO_RESEARCH_CONFIDENCE)
        candidate.intensity = max(candidate.intensity, floor)
        candidate.reason.append("toggle:web_search" if explicit_web_search else search_reason)
        candidate.toggles_used.append("web_search")
        candidate.forced_switch = True
    elif thinking:
        candidate.intent = "deep_reasoning"
        candidate.intensity = max(candidate.intensity, THINKING_FLOOR)
        candidate.reason.append("toggle:thinking")
        candidate.toggles_used.append("thinking")
        candidate.forced_switch = True

    candidate.search_signals = search
    thinking_used = "thinking" in candidate.toggles_used

    if not thinking_used and detect_quick_intent(config.quick_intent, normalized, token_budget):
        candidate.intent = "quick"
        candidate.intensity = max(candidate.intensity, config.quick_intent.intensity)
        candidate.reason.append("signal:quick")
        candidate.forced_switch = True

    if (
        not thinking_used
        and candidate.intent != "support"
        and detect_support_intent(config.support_intent, normalized)
    ):
        support_intensity = config.support_intent.intensity
        if support_intensity >= candidate.intensity - SUPPORT_OVERRIDE_MARGIN:
            candidate.intent = "support"
            candidate.intensity = max(candidate.intensity, support_intensity)
            candidate.reason.append("signal:support")

    if (
        not thinking_used
        and candidate.intent != "deep_reasoning"
        and detect_detail_intent(config.detail_intent, normalized, token_budget)
    ):
        depth_intensity = config.detail_intent.intensity
        if depth_intensity > candidate.intensity + DETAIL_ESCALATION_MARGIN:
            candidate.intent = "deep_reasoning"
            candidate.intensity = depth_intensity
            candidate.reason.append("signal:depth")

    if (
        not keyword_signals
        and not candidate.toggles_used
        and previous_state is not None
        and previous_state.intent
        and previous_state.intent != DEFAULT_INTENT
    ):
        candidate.intent = previous_state.intent
        candidate.intensity = max(candidate.intensity, previous_state.intensity * CARRYOVER_FACTOR)
        candidate.reason.append("carryover")

    candidate.intensity = clamp(candidate.intensity)
    candidate.keyword_hits = dedupe(candidate.keyword_hits)
    candidate.toggles_used = dedupe(candidate.toggles_used)
    candidate.reason = dedupe(candidate.reason)
    candidate.keyword_signals = keyword_signals
    return candidate
