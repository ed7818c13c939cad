"""Pattern evaluator: one matcher per pattern variant."""

from __future__ import annotations

from typing import Callable, Optional

from autorouter.config.models import (
    AttachmentPattern,
    CodeblockPattern,
    LanguagePattern,
    Pattern,
    RegexPattern,
)
from autorouter.router.models import NO_MATCH, ClassificationContext, PatternMatch


def format_contribution(description: Optional[str], value: Optional[str]) -> str:
    """Render a hit label for ``value`` from a pattern description.

    ``%s`` is substituted; a description that already names the value is
    kept as is; otherwise the value is appended as ``description:value``.
    """
    if not description:
        return value or ""
    if not value:
        return description
    if "%s" in description:
        return description.replace("%s", value, 1)
    if value in description:
        return description
    return f"{description}:{value}"


def _matches(pattern: Pattern, values: list[str]) -> PatternMatch:
    contributions = tuple(format_contribution(pattern.description, value) for value in values)
    return PatternMatch(matched=bool(contributions), contributions=contributions)


def evaluate_regex(pattern: RegexPattern, context: ClassificationContext) -> PatternMatch:
    if pattern.regex.search(context.normalized_text):
        return PatternMatch(matched=True, contributions=(pattern.description,))
    return NO_MATCH


def evaluate_language(pattern: LanguagePattern, context: ClassificationContext) -> PatternMatch:
    if pattern.match == "nonEnglish":
        if context.has_non_english:
            return PatternMatch(matched=True, contributions=(pattern.description,))
        return NO_MATCH

    if pattern.match == "multiple":
        if context.language_count > 1 or len(context.language_mentions) > 1:
            return PatternMatch(matched=True, contributions=(pattern.description,))
        return NO_MATCH

    if pattern.match == "explicitMention":
        if pattern.codes:
            found = [code for code in pattern.codes if code in context.language_mentions]
        else:
            found = sorted(context.language_mentions)
        return _matches(pattern, found)

    seen = context.languages | context.language_mentions
    return _matches(pattern, [code for code in pattern.codes if code in seen])


def evaluate_codeblock(pattern: CodeblockPattern, context: ClassificationContext) -> PatternMatch:
    if not context.code_info.has_code_block:
        return NO_MATCH

    if not pattern.languages:
        return PatternMatch(matched=True, contributions=(pattern.description,))

    found = [language for language in pattern.languages if language in context.code_info.languages]
    if found:
        return _matches(pattern, found)
    if pattern.require_language:
        return NO_MATCH
    return PatternMatch(matched=True, contributions=(pattern.description,))


def evaluate_attachment(pattern: AttachmentPattern, context: ClassificationContext) -> PatternMatch:
    found = [value for value in pattern.match if value in context.attachment_descriptors]
    if not found:
        return NO_MATCH
    if not pattern.match_any and len(found) < len(pattern.match):
        return NO_MATCH
    return _matches(pattern, found)


_EVALUATORS: dict[type, Callable[..., PatternMatch]] = {
    RegexPattern: evaluate_regex,
    LanguagePattern: evaluate_language,
    CodeblockPattern: evaluate_codeblock,
    AttachmentPattern: evaluate_attachment,
}


def evaluate_pattern(pattern: Pattern, context: ClassificationContext) -> PatternMatch:
    """Evaluate one pattern against the request context. Unknown variants never match."""
    evaluator = _EVALUATORS.get(type(pattern))
    if evaluator is None:
        return NO_MATCH
    return evaluator(pattern, context)
