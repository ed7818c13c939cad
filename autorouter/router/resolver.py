"""
Spec resolver.

Entry point of the auto-router: validates that a request is eligible,
builds the candidate, feeds the gauge, maps the resulting intent to a model
spec and applies that spec's preset to the request body.
"""

from __future__ import annotations

import threading
from typing import Any, Optional

from loguru import logger
from pydantic import ValidationError

from autorouter.config.loader import get_keyword_config
from autorouter.config.models import KeywordConfig
from autorouter.config.schema import ModelSpec, RouterSettings
from autorouter.errors import ConversationParseError
from autorouter.metrics import SPEC_FALLBACKS, RoutingMetrics, get_metrics
from autorouter.router.candidate import build_candidate
from autorouter.router.conversation import ConversationParser, parse_compact_convo
from autorouter.router.gauge import IntentGauge, get_gauge
from autorouter.router.models import DEFAULT_INTENT, RoutingRequest, RoutingResult
from autorouter.router.signals import collect_all_attachments, compute_token_budget
from autorouter.utils.helpers import remove_nullish, to_boolean

INTENT_TO_SPEC: dict[str, str] = {
    DEFAULT_INTENT: "optimism_companion",
    "deep_reasoning": "optimism_reasoner",
    "writing": "optimism_writer",
    "coding": "optimism_builder",
    "analysis": "optimism_analyst",
    "research": "optimism_researcher",
    "summary": "optimism_summarizer",
    "translation": "optimism_translator",
    "planning": "optimism_planner",
    "brainstorming": "optimism_brainstormer",
    "support": "optimism_supporter",
    "strategy": "optimism_strategy",
    "quick": "optimism_quick",
}

DEFAULT_SPEC = INTENT_TO_SPEC[DEFAULT_INTENT]
WEB_SEARCH_TOOL = "web_search"


def apply_preset(body: dict[str, Any], preset: dict[str, Any], spec_name: str) -> None:
    """Copy non-null preset fields onto the body and record the spec name."""
    body.update(remove_nullish({**preset, "spec": spec_name}))


def _coerce_specs(specs: Any) -> list[ModelSpec]:
    """Validate catalog entries, dropping the ones that are not specs."""
    coerced: list[ModelSpec] = []
    for index, spec in enumerate(specs or []):
        if isinstance(spec, ModelSpec):
            coerced.append(spec)
            continue
        try:
            coerced.append(ModelSpec.model_validate(spec))
        except ValidationError as e:
            logger.bind(index=index).warning(
                f"[AutoRouter] Skipping invalid spec entry at index {index}: {e.error_count()} validation error(s)"
            )
    return coerced


class AutoRouter:
    """
    Intent-sensitive auto-router.

    Holds no per-request state; conversation state lives in the gauge.
    """

    def __init__(
        self,
        gauge: Optional[IntentGauge] = None,
        config: Optional[KeywordConfig] = None,
        parser: ConversationParser = parse_compact_convo,
        settings: Optional[RouterSettings] = None,
        metrics: Optional[RoutingMetrics] = None,
    ):
        self.settings = settings or RouterSettings()
        self.auto_routed_endpoints = frozenset(self.settings.auto_routed_endpoints)
        self.gauge = gauge if gauge is not None else get_gauge()
        self.parser = parser
        self.metrics = metrics if metrics is not None else get_metrics()
        self._config = config
        self._reported_missing: set[tuple[str, ...]] = set()

    @property
    def config(self) -> KeywordConfig:
        return self._config if self._config is not None else get_keyword_config()

    def _skip(self, reason: str) -> None:
        self.metrics.record_skip(reason)

    def _check_catalog(self, specs: list[ModelSpec]) -> bool:
        if not specs:
            logger.warning("[AutoRouter] Spec list missing or empty")
            self._skip("no_specs")
            return False

        available = {spec.name for spec in specs if spec.name}
        if DEFAULT_SPEC not in available:
            logger.bind(default_spec=DEFAULT_SPEC, spec_names=sorted(available)).error(
                f"[AutoRouter] Default spec {DEFAULT_SPEC} missing from spec list"
            )
            self._skip("default_spec_missing")
            return False

        missing = tuple(name for name in INTENT_TO_SPEC.values() if name not in available)
        if missing and missing not in self._reported_missing:
            self._reported_missing.add(missing)
            logger.bind(missing_specs=list(missing)).warning(
                f"[AutoRouter] Spec list missing intents: {', '.join(missing)}"
            )
        return True

    def apply(self, request: RoutingRequest, now: Optional[float] = None) -> Optional[RoutingResult]:
        """
        Route one request, mutating ``request.body`` in place.

        Args:
            request: Inbound request envelope.
            now: Timestamp in seconds for the gauge (defaults to wall clock).

        Returns:
            The routing result, or None when the request is not routed.
        """
        specs = _coerce_specs(request.specs)
        if not self._check_catalog(specs):
            return None

        body = request.body
        endpoint = body.get("endpoint")
        if not endpoint or endpoint not in self.auto_routed_endpoints:
            return self._skip("endpoint")

        agent_options = body.get("agentOptions")
        if body.get("agent_id") or (isinstance(agent_options, dict) and agent_options.get("agent")):
            return self._skip("agent")

        try:
            parsed = self.parser(
                endpoint=endpoint,
                endpoint_type=body.get("endpointType") or endpoint,
                conversation=body,
            )
        except ConversationParseError as e:
            logger.warning(f"[AutoRouter] Failed to parse conversation payload: {e}")
            return self._skip("parse_error")

        request.auto_routed_conversation = parsed

        opt_out = body.get("auto_router_opt_out")
        if opt_out is None:
            opt_out = body.get("autoRouterOptOut")
        if to_boolean(opt_out):
            return self._skip("opt_out")

        text = body.get("text").strip() if isinstance(body.get("text"), str) else ""
        if not text:
            return self._skip("empty_text")

        normalized = text.lower()
        attachments = collect_all_attachments(body, parsed)
        token_budget = compute_token_budget(body)

        toggles = {
            "thinking": body.get("thinking") if body.get("thinking") is not None else parsed.get("thinking"),
            "web_search": body.get("web_search") if body.get("web_search") is not None else parsed.get("web_search"),
        }

        user_id = request.user_id or "anonymous"
        conversation_id = body.get("conversationId") or "new"
        gauge_key = f"{user_id}:{conversation_id}"
        previous_state = self.gauge.get_state(gauge_key)

        candidate = build_candidate(
            text,
            normalized_text=normalized,
            attachments=attachments,
            toggles=toggles,
            token_budget=token_budget,
            previous_state=previous_state,
            config=self.config,
        )

        toggles_after = {key: None if value is None else to_boolean(value) for key, value in toggles.items()}
        if candidate.auto_web_search and not toggles_after["web_search"]:
            toggles_after["web_search"] = True

        update = self.gauge.update(gauge_key, candidate, forced=candidate.forced_switch, now=now)
        intent = update.state.intent or DEFAULT_INTENT
        target_name = INTENT_TO_SPEC.get(intent, DEFAULT_SPEC)
        by_name = {spec.name: spec for spec in reversed(specs)}
        target = by_name.get(target_name)

        if target is None:
            logger.bind(requested_spec=target_name, default_spec=DEFAULT_SPEC).warning(
                f"[AutoRouter] Target spec {target_name} unavailable, falling back to {DEFAULT_SPEC}"
            )
            self.metrics.incr(SPEC_FALLBACKS, tags={"spec": target_name})
            target = by_name.get(DEFAULT_SPEC)

        if target is None:
            logger.bind(default_spec=DEFAULT_SPEC).error("[AutoRouter] Default spec missing during fallback")
            return self._skip("default_spec_missing")

        apply_preset(body, target.preset, target.name)

        if toggles_after["web_search"]:
            body["web_search"] = True
            if not isinstance(body.get("ephemeralAgent"), dict):
                body["ephemeralAgent"] = {}
            body["ephemeralAgent"][WEB_SEARCH_TOOL] = True

        sanitized = None
        try:
            sanitized = self.parser(
                endpoint=body.get("endpoint") or endpoint,
                endpoint_type=body.get("endpointType") or endpoint,
                conversation=body,
            )
            request.auto_routed_conversation = sanitized
        except ConversationParseError as e:
            logger.warning(f"[AutoRouter] Failed to sanitize routed conversation: {e}")

        model = body.get("model") or "unknown model"
        logger.bind(
            user_id=user_id,
            conversation_id=conversation_id,
            intent=intent,
            spec=target.name,
            endpoint=body.get("endpoint"),
            model=body.get("model"),
            intensity=round(update.state.intensity, 2),
            switched=update.switched,
            toggles=toggles_after,
            keyword_hits=candidate.keyword_hits,
            token_budget=token_budget,
            reason=candidate.reason,
            auto_web_search=candidate.auto_web_search,
            search_signals=candidate.search_signals.to_dict(),
        ).info(f"[AutoRouter] Routed to {target.name} ({model})")

        self.metrics.record_decision(
            spec=target.name,
            intent=intent,
            intensity=update.state.intensity,
            switched=update.switched,
            auto_web_search=candidate.auto_web_search,
        )

        return RoutingResult(
            parsed_conversation=sanitized if sanitized is not None else parsed,
            intent=intent,
            spec=target.name,
            gauge=update.state,
            switched=update.switched,
            candidate=candidate,
            toggles=toggles_after,
        )


_router: AutoRouter | None = None
_router_lock = threading.Lock()


def get_router() -> AutoRouter:
    """Get the process-wide auto-router."""
    global _router
    if _router is None:
        with _router_lock:
            if _router is None:
                _router = AutoRouter()
    return _router


def auto_route(request: RoutingRequest, router: Optional[AutoRouter] = None) -> Optional[RoutingResult]:
    """
    Middleware wrapper: route the request and attach the decision summary.

    Never raises; an unexpected failure is logged and the request continues
    unrouted.
    """
    router = router or get_router()
    try:
        result = router.apply(request)
    except Exception as e:
        logger.error(f"[AutoRouter] Failed to evaluate routing decision: {e}")
        return None

    if result is not None:
        request.auto_routed_conversation = result.parsed_conversation
        request.auto_router_decision = result.to_decision()
    return result
