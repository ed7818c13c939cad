"""Tests for candidate intent building."""

import pytest

from autorouter.config.normalizer import normalize_config
from autorouter.router.candidate import (
    build_candidate,
    compute_keyword_signals,
    detect_detail_intent,
    detect_quick_intent,
)
from autorouter.router.models import DEFAULT_INTENT, GaugeState
from autorouter.router.signals import build_classification_context


class TestKeywordSignals:
    """Test keyword group scoring."""

    def test_strongest_group_first(self, default_config):
        signals = compute_keyword_signals(default_config, build_classification_context("write some code"))

        assert [signal.intent for signal in signals] == ["coding", "writing"]
        assert signals[0].intensity == pytest.approx(0.7)
        assert signals[1].intensity == pytest.approx(0.65)

    def test_boost_is_capped(self, default_config):
        text = "Debug this python script error:\n```python\nraise ValueError\n```"
        context = build_classification_context(text, attachments=[{"filename": "main.py"}])

        coding = compute_keyword_signals(default_config, context)[0]

        assert coding.intent == "coding"
        assert coding.intensity == pytest.approx(0.92)

    def test_no_hits(self, default_config):
        assert compute_keyword_signals(default_config, build_classification_context("ok thanks")) == []


class TestHeuristicDetectors:
    """Test quick and detail detection by token budget."""

    def test_quick_budget(self, default_config):
        section = default_config.quick_intent

        assert detect_quick_intent(section, "", 600)
        assert not detect_quick_intent(section, "", 601)
        assert not detect_quick_intent(section, "", 0)

    def test_detail_budget(self, default_config):
        section = default_config.detail_intent

        assert detect_detail_intent(section, "", 4000)
        assert not detect_detail_intent(section, "", 3999)


class TestKeywordCandidates:
    """Test candidates driven by keywords alone."""

    def test_writing(self):
        candidate = build_candidate("Write a blog post about spring")

        assert candidate.intent == "writing"
        assert candidate.intensity == pytest.approx(0.75)
        assert candidate.reason == ["keywords:writing"]
        assert candidate.keyword_hits == ["writing verb", "long-form piece"]
        assert not candidate.forced_switch

    def test_coding_with_code_block(self):
        candidate = build_candidate("Fix this bug in my python function:\n```python\nprint(1)\n```")

        assert candidate.intent == "coding"
        assert candidate.intensity == pytest.approx(0.9)
        assert candidate.keyword_hits == ["code vocabulary", "codeblock", "mentions python"]

    def test_attachment_routes_to_coding(self):
        candidate = build_candidate("see attached", attachments=[{"filename": "main.py"}])

        assert candidate.intent == "coding"
        assert candidate.keyword_hits == ["source file:ext:py"]

    def test_no_signal_is_default(self):
        candidate = build_candidate("ok thanks")

        assert candidate.intent == DEFAULT_INTENT
        assert candidate.intensity == pytest.approx(0.4)
        assert candidate.reason == []

    def test_custom_config(self):
        config = normalize_config(
            {"keywordGroups": [{"intent": "greeting", "baseIntensity": 0.5, "maxIntensity": 0.9, "patterns": ["hello"]}]}
        )

        candidate = build_candidate("hello world", config=config)

        assert candidate.intent == "greeting"
        assert candidate.intensity == pytest.approx(0.58)


class TestToggles:
    """Test explicit and automatic toggles."""

    def test_thinking(self):
        candidate = build_candidate("Why is the sky blue?", toggles={"thinking": True})

        assert candidate.intent == "deep_reasoning"
        assert candidate.intensity == pytest.approx(0.82)
        assert candidate.reason == ["toggle:thinking"]
        assert candidate.toggles_used == ["thinking"]
        assert candidate.forced_switch

    def test_explicit_web_search(self):
        candidate = build_candidate("Tell me about solar panels", toggles={"web_search": True})

        assert candidate.intent == "research"
        assert candidate.intensity == pytest.approx(0.74)
        assert candidate.reason == ["toggle:web_search"]
        assert not candidate.auto_web_search

    def test_both_toggles_as_strings(self):
        candidate = build_candidate("Tell me about solar panels", toggles={"thinking": "true", "web_search": "TRUE"})

        assert candidate.intent == "strategy"
        assert candidate.intensity == pytest.approx(0.86)
        assert candidate.reason == ["toggle:web_search+thinking"]
        assert candidate.toggles_used == ["thinking", "web_search"]

    def test_false_strings_are_off(self):
        candidate = build_candidate("ok thanks", toggles={"thinking": "false", "web_search": "False"})

        assert candidate.intent == DEFAULT_INTENT
        assert candidate.toggles_used == []

    def test_auto_web_search(self):
        candidate = build_candidate("please search the web for the latest optimism news.")

        assert candidate.intent == "research"
        assert candidate.intensity == pytest.approx(0.8)
        assert candidate.reason == ["signal:web_search:mixed"]
        assert candidate.auto_web_search
        assert candidate.forced_switch
        assert candidate.search_signals.reason == "mixed"

    def test_auto_web_search_overrides_disabled_toggle(self):
        candidate = build_candidate(
            "please search the web for the latest optimism news.", toggles={"web_search": False}
        )

        assert candidate.intent == "research"
        assert candidate.auto_web_search

    def test_false_string_web_search_is_not_explicit(self):
        """Test that a "false" string toggle leaves the auto-search floor in place."""
        candidate = build_candidate(
            "please search the web for the latest optimism news.", toggles={"web_search": "false"}
        )

        assert candidate.intent == "research"
        assert candidate.intensity == pytest.approx(0.8)
        assert candidate.reason == ["signal:web_search:mixed"]
        assert candidate.auto_web_search

    def test_auto_web_search_with_thinking(self):
        candidate = build_candidate("latest news on fusion", toggles={"thinking": True})

        assert candidate.intent == "strategy"
        assert candidate.intensity == pytest.approx(0.86)
        assert candidate.reason == [
            "toggle:web_search+thinking",
            "signal:web_search:implicit:combo",
            "toggle:thinking",
        ]
        assert candidate.auto_web_search


class TestHeuristics:
    """Test the quick, support and depth heuristics."""

    def test_quick_by_budget(self):
        candidate = build_candidate("What is the capital of France?", token_budget=512)

        assert candidate.intent == "quick"
        assert candidate.intensity == pytest.approx(0.68)
        assert candidate.reason == ["signal:quick"]
        assert candidate.forced_switch

    def test_quick_by_phrase(self):
        assert build_candidate("quick question: what's 2+2?").intent == "quick"

    def test_thinking_suppresses_quick(self):
        candidate = build_candidate("quick question: what's 2+2?", toggles={"thinking": True})

        assert candidate.intent == "deep_reasoning"
        assert "signal:quick" not in candidate.reason

    def test_support(self):
        candidate = build_candidate("I feel lost")

        assert candidate.intent == "support"
        assert candidate.intensity == pytest.approx(0.66)
        assert candidate.reason == ["signal:support"]

    def test_support_does_not_override_strong_keywords(self):
        candidate = build_candidate("I feel stuck, write an essay and a poem")

        assert candidate.intent == "writing"

    def test_depth_phrase(self):
        candidate = build_candidate("Give me an in-depth overview of photosynthesis")

        assert candidate.intent == "deep_reasoning"
        assert candidate.intensity == pytest.approx(0.76)
        assert candidate.reason == ["signal:depth"]

    def test_depth_budget(self):
        assert build_candidate("Explain tides", token_budget=8000).intent == "deep_reasoning"

    def test_depth_needs_a_margin(self):
        assert build_candidate("Write a detailed essay").intent == "writing"


class TestPreviousState:
    """Test how the previous gauge state seeds the candidate."""

    def test_weaker_keywords_keep_previous_intent(self):
        candidate = build_candidate("Write a poem", previous_state=GaugeState(intent="coding", intensity=0.9))

        assert candidate.intent == "coding"
        assert candidate.intensity == pytest.approx(0.9)
        assert candidate.reason == []

    def test_keywords_within_margin_take_over(self):
        candidate = build_candidate("Write a poem", previous_state=GaugeState(intent="coding", intensity=0.78))

        assert candidate.intent == "writing"
        assert candidate.intensity == pytest.approx(0.78)

    def test_carryover(self):
        candidate = build_candidate("ok thanks", previous_state=GaugeState(intent="coding", intensity=0.7))

        assert candidate.intent == "coding"
        assert candidate.intensity == pytest.approx(0.7)
        assert candidate.reason == ["carryover"]

    def test_carryover_uses_intensity_floor(self):
        candidate = build_candidate("ok thanks", previous_state=GaugeState(intent="coding", intensity=0.3))

        assert candidate.intent == "coding"
        assert candidate.intensity == pytest.approx(0.35)

    def test_no_carryover_from_default_intent(self):
        candidate = build_candidate("ok thanks", previous_state=GaugeState())

        assert candidate.intent == DEFAULT_INTENT
        assert candidate.reason == []
