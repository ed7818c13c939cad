"""
Intent gauge.

Tracks the active intent of each conversation with a decaying intensity and
hysteresis, so one borderline message cannot flip the mode back and forth.

State transitions are pure functions of ``(state, candidate, now)``. The
store is only touched through compare-and-set, so concurrent requests for
the same conversation retry instead of overwriting each other, and requests
for different conversations never share a lock.
"""

from __future__ import annotations

import threading
import time
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Callable, Optional

from loguru import logger

from autorouter.router.models import DEFAULT_INTENT, Candidate, GaugeState, GaugeUpdate
from autorouter.utils.helpers import clamp


@dataclass(frozen=True)
class GaugeConfig:
    """Gauge tuning. Times are in seconds."""

    default_intent: str = DEFAULT_INTENT
    default_intensity: float = 0.35
    decay_interval: float = 30.0
    decay_rate: float = 0.18
    switch_margin: float = 0.18
    switch_threshold: float = 0.6
    cooldown: float = 8.0
    reset_epsilon: float = 0.05
    hold_factor: float = 0.75


class GaugeStore(ABC):
    """Keyed storage for gauge states."""

    @abstractmethod
    def get(self, key: str) -> Optional[GaugeState]:
        """Current state for ``key``, or None."""

    @abstractmethod
    def compare_and_set(self, key: str, expected: Optional[GaugeState], new: GaugeState) -> bool:
        """Store ``new`` only if the current state still equals ``expected``."""

    @abstractmethod
    def set(self, key: str, state: GaugeState) -> None:
        """Store ``state`` unconditionally."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Forget ``key``."""

    @abstractmethod
    def clear(self) -> None:
        """Forget every key."""


class ShardedGaugeStore(GaugeStore):
    """In-process store partitioned over lock-striped shards."""

    def __init__(self, shards: int = 16):
        if shards < 1:
            raise ValueError("shards must be at least 1")
        self._shards: list[dict[str, GaugeState]] = [{} for _ in range(shards)]
        self._locks = [threading.Lock() for _ in range(shards)]

    def _index(self, key: str) -> int:
        return zlib.crc32(key.encode("utf-8")) % len(self._shards)

    def get(self, key: str) -> Optional[GaugeState]:
        index = self._index(key)
        with self._locks[index]:
            return self._shards[index].get(key)

    def compare_and_set(self, key: str, expected: Optional[GaugeState], new: GaugeState) -> bool:
        index = self._index(key)
        with self._locks[index]:
            shard = self._shards[index]
            if shard.get(key) != expected:
                return False
            shard[key] = new
            return True

    def set(self, key: str, state: GaugeState) -> None:
        index = self._index(key)
        with self._locks[index]:
            self._shards[index][key] = state

    def delete(self, key: str) -> None:
        index = self._index(key)
        with self._locks[index]:
            self._shards[index].pop(key, None)

    def clear(self) -> None:
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                shard.clear()

    def __len__(self) -> int:
        total = 0
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                total += len(shard)
        return total


class IntentGauge:
    """Decaying, hysteresis-controlled intent state per conversation key."""

    def __init__(
        self,
        store: Optional[GaugeStore] = None,
        config: Optional[GaugeConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store if store is not None else ShardedGaugeStore()
        self.config = config if config is not None else GaugeConfig()
        self._clock = clock

    def default_state(self) -> GaugeState:
        return GaugeState(intent=self.config.default_intent, intensity=self.config.default_intensity)

    def get_state(self, key: str) -> Optional[GaugeState]:
        """Stored state for ``key``; None when the conversation is unknown."""
        if not key:
            return None
        return self.store.get(key)

    def decay(self, state: GaugeState, now: float) -> GaugeState:
        """Apply linear decay since ``last_updated``. First access only stamps the time."""
        if not state.last_updated:
            return replace(state, last_updated=now)

        elapsed = now - state.last_updated
        if elapsed <= 0:
            return state

        steps = elapsed / self.config.decay_interval
        return replace(
            state,
            intensity=clamp(state.intensity - self.config.decay_rate * steps),
            last_updated=now,
        )

    def transition(
        self,
        state: GaugeState,
        intent: str,
        intensity: Optional[float],
        forced: bool,
        now: float,
    ) -> GaugeUpdate:
        """Pure state transition for one candidate."""
        cfg = self.config
        state = self.decay(state, now)
        target = clamp(intensity if intensity is not None else cfg.default_intensity)
        switched = False

        should_switch = (
            forced
            or intent == state.intent
            or target >= state.intensity + cfg.switch_margin
            or (target >= cfg.switch_threshold and now - state.last_switch > cfg.cooldown)
        )

        if should_switch:
            if intent != state.intent:
                state = replace(state, intent=intent, last_switch=now)
                switched = True
            state = replace(state, intensity=target)
        else:
            state = replace(state, intensity=clamp(max(state.intensity, target * cfg.hold_factor)))

        if state.intensity <= cfg.reset_epsilon:
            state = replace(state, intent=cfg.default_intent)

        return GaugeUpdate(state=state, switched=switched)

    def update(
        self,
        key: str,
        candidate: Optional[Candidate],
        forced: bool = False,
        now: Optional[float] = None,
    ) -> GaugeUpdate:
        """
        Feed a candidate into the gauge for ``key``.

        Args:
            key: Conversation key (``"userId:conversationId"``).
            candidate: Candidate intent for this request.
            forced: Switch regardless of margin and cooldown.
            now: Timestamp in seconds (defaults to the gauge clock).

        Returns:
            The new state and whether the intent changed. A missing key or
            candidate yields the default state and writes nothing.
        """
        if not key or candidate is None or not candidate.intent:
            return GaugeUpdate(state=self.default_state(), switched=False)

        now = self._clock() if now is None else now
        attempts = 0
        while True:
            attempts += 1
            current = self.store.get(key)
            result = self.transition(
                current or self.default_state(), candidate.intent, candidate.intensity, forced, now
            )
            if self.store.compare_and_set(key, current, result.state):
                if attempts > 1:
                    logger.debug(f"[AutoRouter] Gauge update for {key} committed after {attempts} attempts")
                return result

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one conversation, or every conversation when ``key`` is None."""
        if key:
            self.store.delete(key)
        else:
            self.store.clear()


_gauge: IntentGauge | None = None
_gauge_lock = threading.Lock()


def get_gauge() -> IntentGauge:
    """Get the process-wide intent gauge."""
    global _gauge
    if _gauge is None:
        with _gauge_lock:
            if _gauge is None:
                _gauge = IntentGauge()
    return _gauge
