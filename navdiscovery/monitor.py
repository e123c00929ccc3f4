"""
Discovery Monitor
=================
Per-run timing and outcome record for each strategy attempt.

Tracks:
- Elapsed time per strategy
- Item count, confidence and failure reason per strategy
- Total run time

The records are attached to the returned ``StrategyResult`` metadata;
nothing is stored beyond the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from .utils import SystemClock

logger = logging.getLogger(__name__)


@dataclass
class StrategyTiming:
    """Timing and outcome of one strategy attempt."""
    strategy: str
    elapsed_ms: float = 0.0
    item_count: int = 0
    confidence: float = 0.0
    reason: Optional[str] = None
    status: str = "ok"   # ok | empty | error | skipped


class DiscoveryMonitor:
    """
    Usage::

        monitor = DiscoveryMonitor()
        monitor.start()
        token = monitor.begin("adaptive")
        ...
        monitor.finish(token, result)
        monitor.attempts        # -> [StrategyTiming, ...]
    """

    def __init__(self, clock=None):
        self._clock = clock or SystemClock()
        self._start_ms: float = 0.0
        self.attempts: List[StrategyTiming] = []

    def start(self) -> None:
        self._start_ms = self._clock.now()
        self.attempts = []

    def begin(self, strategy: str) -> Dict[str, Any]:
        return {"strategy": strategy, "started": self._clock.now()}

    def finish(self, token: Dict[str, Any], result, status: Optional[str] = None) -> StrategyTiming:
        elapsed = self._clock.now() - token["started"]
        timing = StrategyTiming(
            strategy=token["strategy"],
            elapsed_ms=round(elapsed, 1),
            item_count=len(result.items),
            confidence=round(result.confidence, 4),
            reason=result.reason,
            status=status or ("ok" if result.items else "empty"),
        )
        self.attempts.append(timing)
        logger.info(
            f"[{timing.strategy.upper()}] {timing.item_count} items, "
            f"confidence {timing.confidence:.2f}, {timing.elapsed_ms:.0f}ms"
            + (f" ({timing.reason})" if timing.reason else "")
        )
        return timing

    def skip(self, strategy: str, reason: str) -> StrategyTiming:
        timing = StrategyTiming(strategy=strategy, reason=reason, status="skipped")
        self.attempts.append(timing)
        logger.debug(f"[{strategy.upper()}] skipped: {reason}")
        return timing

    @property
    def elapsed_ms(self) -> float:
        return round(self._clock.now() - self._start_ms, 1)

    def as_metadata(self) -> List[Dict[str, Any]]:
        return [asdict(t) for t in self.attempts]
