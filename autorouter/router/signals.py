"""
Signal extractors.

Pure functions that turn raw request text and attachments into the
features pattern evaluation works on: detected languages, code blocks,
attachment descriptors and web-search intent.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from autorouter.router.models import ClassificationContext, CodeInfo, SearchSignals
from autorouter.utils.helpers import to_number

LANGUAGE_NAME_TO_CODE: dict[str, str] = {
    "english": "en",
    "spanish": "es",
    "espanol": "es",
    "español": "es",
    "french": "fr",
    "francais": "fr",
    "français": "fr",
    "german": "de",
    "deutsch": "de",
    "chinese": "zh",
    "mandarin": "zh",
    "japanese": "ja",
    "korean": "ko",
    "russian": "ru",
    "arabic": "ar",
    "portuguese": "pt",
    "brazilian": "pt",
    "italian": "it",
    "hindi": "hi",
    "vietnamese": "vi",
    "turkish": "tr",
    "dutch": "nl",
    "polish": "pl",
    "swedish": "sv",
    "norwegian": "no",
    "danish": "da",
    "finnish": "fi",
    "greek": "el",
    "hebrew": "he",
    "thai": "th",
    "indonesian": "id",
    "malay": "ms",
    "ukrainian": "uk",
    "urdu": "ur",
    "bengali": "bn",
    "tamil": "ta",
    "telugu": "te",
    "marathi": "mr",
    "gujarati": "gu",
    "punjabi": "pa",
    "farsi": "fa",
    "persian": "fa",
    "latin": "la",
    "welsh": "cy",
    "catalan": "ca",
    "basque": "eu",
    "swahili": "sw",
    "zulu": "zu",
    "afrikaans": "af",
    "tagalog": "tl",
    "filipino": "fil",
    "czech": "cs",
    "slovak": "sk",
    "slovenian": "sl",
    "croatian": "hr",
    "serbian": "sr",
    "romanian": "ro",
    "bulgarian": "bg",
    "hungarian": "hu",
}

_LANGUAGE_NAME_REGEXES = [
    (code, re.compile(rf"\b{re.escape(name)}\b", re.IGNORECASE))
    for name, code in LANGUAGE_NAME_TO_CODE.items()
]

# Non-Latin scripts imply the text is written in that language.
_SCRIPT_DETECTORS = [
    ("zh", re.compile(r"[\u4e00-\u9fff]")),
    ("ja", re.compile(r"[\u3040-\u30ff\u31f0-\u31ff]")),
    ("ko", re.compile(r"[\uac00-\ud7af]")),
    ("ru", re.compile(r"[\u0400-\u04ff]")),
    ("ar", re.compile(r"[\u0600-\u06ff]")),
    ("he", re.compile(r"[\u0590-\u05ff]")),
    ("el", re.compile(r"[\u0370-\u03ff]")),
    ("hi", re.compile(r"[\u0900-\u097f]")),
    ("th", re.compile(r"[\u0e00-\u0e7f]")),
]

# Greetings and stock phrases for Latin-script languages.
_KEYWORD_DETECTORS = [
    ("es", re.compile(r"(?:\b(?:hola|gracias|por favor|qué)\b|[¡¿])", re.IGNORECASE)),
    ("fr", re.compile(r"\b(?:bonjour|merci|s'il vous plaît|ça)\b", re.IGNORECASE)),
    ("de", re.compile(r"\b(?:hallo|danke|bitte|über)\b", re.IGNORECASE)),
    ("pt", re.compile(r"\b(?:olá|obrigado|por favor)\b", re.IGNORECASE)),
    ("it", re.compile(r"\b(?:ciao|grazie|per favore)\b", re.IGNORECASE)),
    ("vi", re.compile(r"\b(?:xin chào|cảm ơn)\b", re.IGNORECASE)),
    ("tr", re.compile(r"\b(?:merhaba|teşekkür)\b", re.IGNORECASE)),
    ("pl", re.compile(r"\b(?:dzień dobry|dziękuję)\b", re.IGNORECASE)),
]

_PROGRAMMING_LANGUAGES = [
    ("python", re.compile(r"\bpython\b", re.IGNORECASE)),
    ("javascript", re.compile(r"\bjavascript\b", re.IGNORECASE)),
    ("typescript", re.compile(r"\btypescript\b", re.IGNORECASE)),
    ("java", re.compile(r"\bjava\b", re.IGNORECASE)),
    ("c++", re.compile(r"(?<!\w)c\+\+(?!\w)", re.IGNORECASE)),
    ("c#", re.compile(r"(?<!\w)c#(?!\w)", re.IGNORECASE)),
    ("go", re.compile(r"\bgo(?:lang)?\b", re.IGNORECASE)),
    ("rust", re.compile(r"\brust\b", re.IGNORECASE)),
    ("ruby", re.compile(r"\bruby\b", re.IGNORECASE)),
    ("php", re.compile(r"\bphp\b", re.IGNORECASE)),
    ("swift", re.compile(r"\bswift\b", re.IGNORECASE)),
    ("kotlin", re.compile(r"\bkotlin\b", re.IGNORECASE)),
    ("sql", re.compile(r"\bsql\b", re.IGNORECASE)),
]

_ASCII_LETTER = re.compile(r"[a-z]", re.IGNORECASE)

# The tag only counts when it is alone on the opening line.
_FENCE_REGEXES = [
    re.compile(r"```(?:[ \t]*([a-z0-9#+\-_.]+)[ \t]*(?=\r?\n))?.*?```", re.IGNORECASE | re.DOTALL),
    re.compile(r"~~~(?:[ \t]*([a-z0-9#+\-_.]+)[ \t]*(?=\r?\n))?.*?~~~", re.IGNORECASE | re.DOTALL),
]
_HTML_CODE_REGEX = re.compile(r"<code([^>]*)>.*?</code>", re.IGNORECASE | re.DOTALL)
_HTML_LANGUAGE_CLASS = re.compile(r"language-([a-z0-9#+\-_.]+)", re.IGNORECASE)

EXPLICIT_SEARCH_PATTERNS = [
    re.compile(r"\bweb ?search\b", re.IGNORECASE),
    re.compile(r"\bsearch (?:the )?(?:web|internet|online)\b", re.IGNORECASE),
    re.compile(r"\bsearch\b[^\n]{0,80}\b(?:on the (?:web|internet)|online)\b", re.IGNORECASE),
    re.compile(
        r"\blook (?:it )?up\b[^\n]{0,80}\b(?:on(?:line)?|on the (?:web|internet)|on google|on bing|on duckduckgo)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\bfind\b[^\n]{0,80}\b(?:on(?:line)?|on the (?:web|internet))\b", re.IGNORECASE),
    re.compile(r"\benable\b[^\n]{0,80}\bweb search\b", re.IGNORECASE),
    re.compile(r"\buse\b[^\n]{0,80}\bweb search\b", re.IGNORECASE),
    re.compile(r"\bgoogle (?:search|it|this|for)\b", re.IGNORECASE),
    re.compile(r"\bcheck\b[^\n]{0,80}\b(?:on the (?:web|internet)|online)\b", re.IGNORECASE),
    re.compile(r"\bbrows(?:e|ing)\b[^\n]{0,80}\bweb\b", re.IGNORECASE),
]

IMPLICIT_SEARCH_PATTERNS = [
    re.compile(
        r"\b(?:latest|current|today'?s|recent|breaking|up-to-date|up to date|newest)\b[^\n]{0,80}"
        r"\b(?:news|updates?|headlines?|events?)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:news|headlines?|updates?)\b[^\n]{0,80}\b(?:today|this (?:week|month|year)|currently|latest|recent)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:stocks?|share|market|prices?|rates?|trading|bitcoin|crypto)\b[^\n]{0,80}"
        r"\b(?:today|current|latest|now|this (?:week|month|year))\b",
        re.IGNORECASE,
    ),
    re.compile(r"\bexchange rate\b", re.IGNORECASE),
    re.compile(r"\bweather\b[^\n]{0,80}\b(?:today|tomorrow|this (?:week|weekend))\b", re.IGNORECASE),
    re.compile(r"\b(?:score|result|final)\b[^\n]{0,80}\b(?:game|match|team|sport|series)\b", re.IGNORECASE),
    re.compile(r"\bwhat happened\b[^\n]{0,80}\b(?:today|this (?:week|month|year))\b", re.IGNORECASE),
    re.compile(r"\brecent\b[^\n]{0,80}\b(?:studies|study|papers?|research|articles?|reports?)\b", re.IGNORECASE),
    re.compile(r"\btrending\b", re.IGNORECASE),
    re.compile(r"\bwhen\b[^\n]{0,60}\b(?:release date|launch|premiere)\b", re.IGNORECASE),
    re.compile(r"\b(?:today|current)\b[^\n]{0,80}\b(?:gas prices|mortgage rates|interest rates)\b", re.IGNORECASE),
    re.compile(r"\bflight\b[^\n]{0,80}\b(?:status|arrivals?|departures?)\b", re.IGNORECASE),
]

RECENCY_PATTERNS = [
    re.compile(r"\blatest\b", re.IGNORECASE),
    re.compile(r"\bcurrent\b", re.IGNORECASE),
    re.compile(r"\btoday\b", re.IGNORECASE),
    re.compile(r"\btonight\b", re.IGNORECASE),
    re.compile(r"\bthis (?:week|month|year)\b", re.IGNORECASE),
    re.compile(r"\brecent\b", re.IGNORECASE),
    re.compile(r"\bbreaking\b", re.IGNORECASE),
    re.compile(r"\bright now\b", re.IGNORECASE),
    re.compile(r"\bupcoming\b", re.IGNORECASE),
]

SEARCH_TOPIC_PATTERNS = [
    re.compile(r"\bnews\b", re.IGNORECASE),
    re.compile(r"\bupdates?\b", re.IGNORECASE),
    re.compile(r"\bheadlines?\b", re.IGNORECASE),
    re.compile(r"\bevents?\b", re.IGNORECASE),
    re.compile(r"\btrend(?:s|ing)?\b", re.IGNORECASE),
    re.compile(r"\bmarket\b", re.IGNORECASE),
    re.compile(r"\bstocks?\b", re.IGNORECASE),
    re.compile(r"\bprices?\b", re.IGNORECASE),
    re.compile(r"\brates?\b", re.IGNORECASE),
    re.compile(r"\bweather\b", re.IGNORECASE),
    re.compile(r"\bforecast\b", re.IGNORECASE),
    re.compile(r"\bsports?\b", re.IGNORECASE),
    re.compile(r"\bscores?\b", re.IGNORECASE),
    re.compile(r"\brelease date\b", re.IGNORECASE),
    re.compile(r"\blaunch\b", re.IGNORECASE),
    re.compile(r"\bannouncement\b", re.IGNORECASE),
]

_SENTENCE_BREAK = re.compile(r"[.!?\n]+")

_ATTACHMENT_FIELDS = ("type", "mimeType", "mimetype", "mime", "contentType", "category", "kind", "role")
_METADATA_FIELDS = ("type", "mimeType", "mimetype", "category", "kind")
_FILE_FIELDS = ("type", "mimeType", "mimetype", "contentType")
_FILENAME_FIELDS = ("filename", "name", "originalName")
_FILE_EXTENSION = re.compile(r"\.([a-z0-9]+)$", re.IGNORECASE)

TOKEN_BUDGET_FIELDS = ("max_tokens", "maxOutputTokens", "maxContextTokens")


@dataclass(frozen=True)
class LanguageHints:
    """Languages the text is written in, and languages it merely names."""

    languages: frozenset[str]
    mentions: frozenset[str]

    @property
    def language_count(self) -> int:
        return len(self.languages)

    @property
    def has_non_english(self) -> bool:
        return any(code != "en" for code in self.languages)


def detect_language_hints(text: Any) -> LanguageHints:
    """
    Detect languages present in or referenced by the text.

    Script ranges and greeting keywords populate ``languages`` (keyword hits
    are mentions too). Language names such as "Spanish" and programming
    language names only populate ``mentions``.
    """
    if not isinstance(text, str) or not text.strip():
        return LanguageHints(languages=frozenset(), mentions=frozenset())

    languages: set[str] = set()
    mentions: set[str] = set()

    for code, regex in _SCRIPT_DETECTORS:
        if regex.search(text):
            languages.add(code)

    for code, regex in _KEYWORD_DETECTORS:
        if regex.search(text):
            languages.add(code)
            mentions.add(code)

    for code, regex in _LANGUAGE_NAME_REGEXES:
        if regex.search(text):
            mentions.add(code)

    for code, regex in _PROGRAMMING_LANGUAGES:
        if regex.search(text):
            mentions.add(code)

    if _ASCII_LETTER.search(text):
        languages.add("en")

    return LanguageHints(languages=frozenset(languages), mentions=frozenset(mentions))


def detect_code_block_signals(text: Any) -> CodeInfo:
    """Find fenced (``` / ~~~) and HTML ``<code>`` blocks and their language tags."""
    if not isinstance(text, str) or not text:
        return CodeInfo()

    has_code_block = False
    languages: set[str] = set()

    for regex in _FENCE_REGEXES:
        for match in regex.finditer(text):
            has_code_block = True
            if match.group(1):
                languages.add(match.group(1).lower())

    for match in _HTML_CODE_REGEX.finditer(text):
        has_code_block = True
        language = _HTML_LANGUAGE_CLASS.search(match.group(1))
        if language:
            languages.add(language.group(1).lower())

    return CodeInfo(has_code_block=has_code_block, languages=frozenset(languages))


def extract_attachment_descriptors(attachments: Any) -> frozenset[str]:
    """
    Flatten attachment metadata into a lower-cased set of descriptors.

    Includes mime types and kinds, filenames (plus ``ext:<ext>``) and tool
    names (``tool:<name>``). Entries that are not mappings are skipped.
    """
    descriptors: set[str] = set()
    if not isinstance(attachments, (list, tuple)):
        return frozenset()

    def add_value(value: Any) -> None:
        if isinstance(value, str):
            trimmed = value.strip().lower()
            if trimmed:
                descriptors.add(trimmed)

    def add_filename(value: Any) -> None:
        if not isinstance(value, str):
            return
        trimmed = value.strip().lower()
        if not trimmed:
            return
        descriptors.add(trimmed)
        extension = _FILE_EXTENSION.search(trimmed)
        if extension:
            descriptors.add(f"ext:{extension.group(1)}")

    for attachment in attachments:
        if not isinstance(attachment, Mapping):
            continue

        for key in _ATTACHMENT_FIELDS:
            add_value(attachment.get(key))

        metadata = attachment.get("metadata")
        if isinstance(metadata, Mapping):
            for key in _METADATA_FIELDS:
                add_value(metadata.get(key))

        file_info = attachment.get("file")
        if isinstance(file_info, Mapping):
            for key in _FILE_FIELDS:
                add_value(file_info.get(key))
            add_filename(file_info.get("filename"))
            add_filename(file_info.get("name"))

        for key in _FILENAME_FIELDS:
            add_filename(attachment.get(key))

        if isinstance(attachment.get("ext"), str):
            add_value(f"ext:{attachment['ext'].lstrip('.')}")

        tools = attachment.get("tools")
        if isinstance(tools, (list, tuple)):
            for tool in tools:
                if isinstance(tool, str) and tool:
                    add_value(f"tool:{tool}")
                elif isinstance(tool, Mapping) and tool.get("type"):
                    add_value(f"tool:{tool['type']}")

        if isinstance(attachment.get("tool"), str):
            add_value(f"tool:{attachment['tool']}")

    return frozenset(descriptors)


def _collect_matches(patterns: Iterable[re.Pattern], text: str) -> list[str]:
    return [pattern.pattern for pattern in patterns if pattern.search(text)]


def _find_combo(text: str) -> Optional[str]:
    """First recency + topic pair that shares a sentence."""
    for sentence in _SENTENCE_BREAK.split(text):
        recency = _collect_matches(RECENCY_PATTERNS, sentence)
        if not recency:
            continue
        topics = _collect_matches(SEARCH_TOPIC_PATTERNS, sentence)
        if topics:
            return f"combo:{recency[0]}&{topics[0]}"
    return None


def detect_search_signals(text: Any) -> SearchSignals:
    """
    Decide whether the text asks for (or implies) a web search.

    Explicit phrasings ("search the web") score 0.8 plus 0.04 per extra
    match, capped at 0.9. Implicit ones ("latest news", "exchange rate")
    score 0.72 plus 0.03 per match, capped at 0.85.
    """
    if not isinstance(text, str) or not text:
        return SearchSignals()

    explicit = _collect_matches(EXPLICIT_SEARCH_PATTERNS, text)
    implicit = _collect_matches(IMPLICIT_SEARCH_PATTERNS, text)
    recency = _collect_matches(RECENCY_PATTERNS, text)
    topics = _collect_matches(SEARCH_TOPIC_PATTERNS, text)

    combo = _find_combo(text)
    if combo:
        implicit.append(combo)

    has_explicit = bool(explicit)
    has_implicit = bool(implicit)

    confidence = 0.0
    if has_explicit:
        confidence = min(0.9, 0.8 + (len(explicit) - 1) * 0.04)
    elif has_implicit:
        confidence = min(0.85, 0.72 + len(implicit) * 0.03)

    reason = None
    if has_explicit and has_implicit:
        reason = "mixed"
    elif has_explicit:
        reason = "explicit"
    elif has_implicit:
        reason = "implicit:combo" if combo else "implicit"

    return SearchSignals(
        should_search=has_explicit or has_implicit,
        reason=reason,
        confidence=confidence,
        explicit_matches=tuple(explicit),
        implicit_matches=tuple(implicit),
        recency_matches=tuple(recency),
        topic_matches=tuple(topics),
    )


def build_classification_context(
    text: Any,
    normalized_text: Optional[str] = None,
    attachments: Any = None,
) -> ClassificationContext:
    """Run every extractor once and bundle the results for pattern evaluation."""
    text = text if isinstance(text, str) else ""
    if not isinstance(normalized_text, str):
        normalized_text = text.lower()

    hints = detect_language_hints(text)
    code_info = detect_code_block_signals(text)

    languages = set(hints.languages)
    mentions = set(hints.mentions)
    for language in code_info.languages:
        mentions.add(language)
        mapped = LANGUAGE_NAME_TO_CODE.get(language)
        if mapped:
            languages.add(mapped)

    return ClassificationContext(
        text=text,
        normalized_text=normalized_text,
        languages=frozenset(languages),
        language_mentions=frozenset(mentions),
        language_count=len(languages),
        has_non_english=any(code != "en" for code in languages),
        code_info=code_info,
        attachment_descriptors=extract_attachment_descriptors(attachments or []),
    )


def collect_all_attachments(body: Optional[Mapping[str, Any]], conversation: Optional[Mapping[str, Any]]) -> list[Any]:
    """Gather attachments from the body, the parsed conversation and its messages."""
    body = body or {}
    conversation = conversation or {}
    collected: list[Any] = []

    def push_items(items: Any) -> None:
        if isinstance(items, (list, tuple)):
            collected.extend(item for item in items if item is not None)

    push_items(body.get("files"))
    push_items(body.get("attachments"))
    push_items(body.get("artifacts"))
    push_items(conversation.get("files"))
    push_items(conversation.get("attachments"))

    messages = conversation.get("messages")
    if not isinstance(messages, (list, tuple)):
        messages = body.get("messages")
    if isinstance(messages, (list, tuple)):
        for message in messages:
            if isinstance(message, Mapping):
                push_items(message.get("attachments"))
                push_items(message.get("files"))

    return collected


def compute_token_budget(body: Optional[Mapping[str, Any]]) -> float:
    """Largest of the request's token budget fields; invalid values count as 0."""
    body = body or {}
    return max(to_number(body.get(field)) for field in TOKEN_BUDGET_FIELDS)
