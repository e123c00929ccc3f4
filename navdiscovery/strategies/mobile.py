"""
Mobile Fallback
===============
Phone-viewport extraction through ``ViewportContextManager.mobile_fallback``.
Sites whose quirk says ``mobile_first`` get this strategy moved to the
front of the order by the orchestrator.
"""

from __future__ import annotations

from ..context import DiscoveryContext
from ..errors import DomScriptError, DomTimeoutError
from ..models import StrategyResult
from ..viewport import STRATEGY_NAME, ViewportContextManager


class MobileFallbackStrategy:

    name = STRATEGY_NAME
    hint_ttl_s = None

    def __init__(self, viewport: ViewportContextManager):
        self.viewport = viewport

    @classmethod
    def from_config(cls, config, toolkit) -> "MobileFallbackStrategy":
        return cls(toolkit.viewport)

    async def discover(self, ctx: DiscoveryContext) -> StrategyResult:
        try:
            return await self.viewport.mobile_fallback(ctx.page, ctx.domain)
        except (DomScriptError, DomTimeoutError) as exc:
            return StrategyResult.empty(self.name, "mobile_fallback_failed", error=str(exc))
