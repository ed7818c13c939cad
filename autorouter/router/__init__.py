"""
Auto-router package: picks a model spec per chat request.

Pipeline, leaf to root:
1. Signal extraction (languages, code blocks, attachments, search intent)
2. Pattern evaluation against the keyword configuration
3. Candidate intent from keywords, toggles and heuristics
4. Intent gauge with decay and hysteresis per conversation
5. Spec resolution and preset application
"""

from .candidate import build_candidate, compute_keyword_signals
from .gauge import GaugeConfig, GaugeStore, IntentGauge, ShardedGaugeStore, get_gauge
from .models import Candidate, GaugeState, GaugeUpdate, RoutingRequest, RoutingResult
from .resolver import INTENT_TO_SPEC, AutoRouter, auto_route, get_router

__all__ = [
    "AutoRouter",
    "Candidate",
    "GaugeConfig",
    "GaugeState",
    "GaugeStore",
    "GaugeUpdate",
    "INTENT_TO_SPEC",
    "IntentGauge",
    "RoutingRequest",
    "RoutingResult",
    "ShardedGaugeStore",
    "auto_route",
    "build_candidate",
    "compute_keyword_signals",
    "get_gauge",
    "get_router",
]
