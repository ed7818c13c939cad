"""Tests for signal extractors."""

import pytest

from autorouter.router.signals import (
    build_classification_context,
    collect_all_attachments,
    compute_token_budget,
    detect_code_block_signals,
    detect_language_hints,
    detect_search_signals,
    extract_attachment_descriptors,
)


class TestLanguageHints:
    """Test language detection."""

    def test_spanish_greeting(self):
        hints = detect_language_hints("Hola, ¿cómo estás?")

        assert "es" in hints.languages
        assert "es" in hints.mentions
        assert "en" in hints.languages
        assert hints.has_non_english

    def test_language_name_is_only_a_mention(self):
        """Test that naming a language does not mean the text is written in it."""
        hints = detect_language_hints("Can you translate this paragraph to Spanish?")

        assert "es" in hints.mentions
        assert hints.languages == frozenset({"en"})
        assert not hints.has_non_english

    def test_accented_language_name(self):
        assert "fr" in detect_language_hints("Réponds en français").mentions

    @pytest.mark.parametrize(
        "text, code",
        [
            ("こんにちは", "ja"),
            ("你好", "zh"),
            ("안녕하세요", "ko"),
            ("Привет", "ru"),
            ("مرحبا", "ar"),
            ("שלום", "he"),
            ("Γειά σου", "el"),
            ("नमस्ते", "hi"),
            ("สวัสดี", "th"),
        ],
    )
    def test_scripts(self, text, code):
        hints = detect_language_hints(text)

        assert code in hints.languages
        assert "en" not in hints.languages
        assert hints.has_non_english

    def test_programming_languages(self):
        hints = detect_language_hints("Port this from Python to Rust, or maybe C++")

        assert {"python", "rust", "c++"} <= hints.mentions
        assert hints.languages == frozenset({"en"})

    def test_empty_text(self):
        hints = detect_language_hints("   ")

        assert hints.languages == frozenset()
        assert hints.language_count == 0
        assert not hints.has_non_english

    def test_non_string(self):
        assert detect_language_hints(None).mentions == frozenset()


class TestCodeBlocks:
    """Test code block detection."""

    def test_fenced_with_language(self):
        info = detect_code_block_signals("Look:\n```python\nprint(1)\n```")

        assert info.has_code_block
        assert info.languages == frozenset({"python"})

    def test_fenced_without_language(self):
        info = detect_code_block_signals("```\nSELECT 1;\n```")

        assert info.has_code_block
        assert info.languages == frozenset()

    def test_inline_fence_has_no_language(self):
        info = detect_code_block_signals("```print(1)```")

        assert info.has_code_block
        assert info.languages == frozenset()

    def test_tilde_fence(self):
        info = detect_code_block_signals("~~~JS\nconst a = 1;\n~~~")

        assert info.languages == frozenset({"js"})

    def test_unterminated_fence(self):
        info = detect_code_block_signals("```python\nprint(1)")

        assert not info.has_code_block

    def test_html_code(self):
        info = detect_code_block_signals('<pre><code class="language-rust">fn main() {}</code></pre>')

        assert info.has_code_block
        assert info.languages == frozenset({"rust"})

    def test_multiple_blocks(self):
        text = "```go\nfunc main() {}\n```\nand\n```ts\nlet a = 1\n```"

        assert detect_code_block_signals(text).languages == frozenset({"go", "ts"})


class TestAttachmentDescriptors:
    """Test attachment flattening."""

    def test_flattens_fields(self):
        attachments = [
            {"type": "image/png", "filename": "Photo.PNG"},
            "junk",
            None,
            {"file": {"name": "data.csv", "mimetype": "text/csv"}},
            {"tools": ["web_search", {"type": "Code_Interpreter"}, None]},
            {"tool": "file_search"},
            {"metadata": {"kind": "Spreadsheet"}},
            {"ext": "PDF"},
        ]

        descriptors = extract_attachment_descriptors(attachments)

        assert descriptors == frozenset(
            {
                "image/png",
                "photo.png",
                "ext:png",
                "data.csv",
                "ext:csv",
                "text/csv",
                "tool:web_search",
                "tool:code_interpreter",
                "tool:file_search",
                "spreadsheet",
                "ext:pdf",
            }
        )

    def test_non_list_input(self):
        assert extract_attachment_descriptors({"type": "image/png"}) == frozenset()


class TestSearchSignals:
    """Test web search intent detection."""

    def test_explicit_and_implicit_is_mixed(self):
        signals = detect_search_signals("please search the web for the latest optimism news.")

        assert signals.should_search
        assert signals.reason == "mixed"
        assert signals.confidence == pytest.approx(0.8)
        assert len(signals.explicit_matches) == 1
        assert any(match.startswith("combo:") for match in signals.implicit_matches)

    def test_explicit_confidence_grows_with_matches(self):
        signals = detect_search_signals("do a web search, google this for me")

        assert signals.reason == "explicit"
        assert signals.confidence == pytest.approx(0.84)

    def test_implicit_only(self):
        signals = detect_search_signals("what is the exchange rate between usd and eur")

        assert signals.reason == "implicit"
        assert signals.confidence == pytest.approx(0.75)

    def test_combo_only(self):
        signals = detect_search_signals("what's the forecast for tonight?")

        assert signals.should_search
        assert signals.reason == "implicit:combo"
        assert signals.implicit_matches == ("combo:\\btonight\\b&\\bforecast\\b",)
        assert signals.confidence == pytest.approx(0.75)

    def test_combo_requires_same_sentence(self):
        signals = detect_search_signals("we leave tonight. check the forecast.")

        assert not signals.should_search
        assert signals.recency_matches
        assert signals.topic_matches

    def test_no_signal(self):
        signals = detect_search_signals("tell me a joke about cats")

        assert not signals.should_search
        assert signals.reason is None
        assert signals.confidence == 0.0

    def test_explicit_cap(self):
        text = "web search it: search the web, google this, look it up online, browse the web"

        assert detect_search_signals(text).confidence == pytest.approx(0.9)


class TestRequestHelpers:
    """Test attachment collection, token budgets and context building."""

    def test_collect_prefers_conversation_messages(self):
        body = {
            "files": [{"name": "a.txt"}, None],
            "attachments": [{"name": "b.txt"}],
            "messages": [{"files": [{"name": "body-message.txt"}]}],
        }
        conversation = {
            "files": [{"name": "c.txt"}],
            "messages": [{"attachments": [{"name": "d.txt"}]}, "not a message"],
        }

        names = [item["name"] for item in collect_all_attachments(body, conversation)]

        assert names == ["a.txt", "b.txt", "c.txt", "d.txt"]

    def test_collect_falls_back_to_body_messages(self):
        body = {"messages": [{"files": [{"name": "body-message.txt"}]}]}

        assert collect_all_attachments(body, {}) == [{"name": "body-message.txt"}]

    def test_token_budget_takes_max(self):
        body = {"max_tokens": "512", "maxOutputTokens": 1024, "maxContextTokens": "abc"}

        assert compute_token_budget(body) == 1024.0

    def test_token_budget_missing(self):
        assert compute_token_budget({}) == 0.0

    def test_context_maps_code_languages(self):
        context = build_classification_context("Here:\n```french\nle texte\n```")

        assert "french" in context.language_mentions
        assert "fr" in context.languages
        assert context.has_non_english
        assert context.language_count == 2
        assert context.normalized_text == context.text.lower()

    def test_context_attachments(self):
        context = build_classification_context("see file", attachments=[{"filename": "main.py"}])

        assert "ext:py" in context.attachment_descriptors
