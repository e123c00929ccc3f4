"""
Strategy Orchestrator
=====================
Runs the discovery strategies against one already-navigated page.

Run sequence:
  1. Domain → cached hint (misses and store errors look the same)
  2. Site quirk lookup; ``mobile_first`` moves the mobile fallback to the front
  3. Anti-bot warm-up for watched domains (best effort)
  4. Overlay dismissal and a bounded wait for a navigation-like element
  5. Strategies in ``strategy_order``; the first *sufficient* result
     (confidence and item count both over threshold) ends the run and its
     hint is persisted with the strategy's TTL
  6. Otherwise the highest-confidence result wins (earliest on ties)

The returned result always carries ``metadata['attempts']`` (one record
per strategy tried or skipped), ``metadata['elapsed_ms']`` and
``metadata['cancelled']``.  Only ``BrowserCrashedError`` escapes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from . import dom
from .anti_bot import AntiBotSimulator
from .context import DiscoveryContext, DiscoveryToolkit
from .errors import BrowserCrashedError
from .hint_cache import HintCache
from .models import StrategyResult
from .monitor import DiscoveryMonitor
from .patterns import PatternLibrary
from .run_config import DiscoveryRunConfig
from .site_quirks import NO_QUIRK, SiteQuirk, SiteQuirkTable
from .strategies import STRATEGY_FACTORIES
from .utils import SystemClock, extract_domain

logger = logging.getLogger(__name__)

POPUP_CLOSE_SELECTORS = (
    '#onetrust-accept-btn-handler',
    '[aria-label="Close"]',
    '[aria-label="close"]',
    '[aria-label*="dismiss" i]',
    '.modal-close',
    '.close-modal',
    '.newsletter-close',
    'button[class*="close"]',
    '[data-dismiss="modal"]',
)

NAV_READY_SELECTOR = 'nav, header, [role="navigation"], [class*="nav"], [class*="menu"]'

_DISMISS_POPUPS_JS = dom.DomScript("orchestrator.dismiss_popups", """
    let clicked = 0;
    for (const selector of arg.selectors) {
        for (const el of allMatches(selector)) {
            if (!isVisible(el)) continue;
            try { el.click(); clicked++; } catch (e) {}
            break;
        }
    }
    return clicked;
""")


class StrategyOrchestrator:
    """
    Usage::

        orchestrator = StrategyOrchestrator(DiscoveryRunConfig.from_env())
        result = await orchestrator.discover(page)
        await orchestrator.close()
    """

    def __init__(
        self,
        config: Optional[DiscoveryRunConfig] = None,
        *,
        hint_cache: Optional[HintCache] = None,
        quirks: Optional[SiteQuirkTable] = None,
        patterns: Optional[PatternLibrary] = None,
        anti_bot: Optional[AntiBotSimulator] = None,
        strategies: Optional[Sequence] = None,
        clock=None,
    ):
        self.config = config or DiscoveryRunConfig()
        cfg = self.config
        self.clock = clock or SystemClock()
        self.hint_cache = hint_cache or HintCache.from_url(cfg.redis_url, cfg.hint_key_prefix)
        if quirks is None:
            quirks = SiteQuirkTable.from_json(cfg.site_quirks_path) if cfg.site_quirks_path else SiteQuirkTable()
        self.quirks = quirks
        self.anti_bot = anti_bot or AntiBotSimulator(cfg.anti_bot_watch_list, clock=self.clock)
        self.toolkit = DiscoveryToolkit.from_config(cfg, patterns=patterns, clock=self.clock)
        if strategies is None:
            strategies = [STRATEGY_FACTORIES[name](cfg, self.toolkit) for name in cfg.strategy_order]
        self.strategies: List = list(strategies)

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------
    def ordered_strategies(self, quirk: SiteQuirk) -> List:
        if not quirk.mobile_first:
            return list(self.strategies)
        mobile = [s for s in self.strategies if s.name == "mobile_fallback"]
        return mobile + [s for s in self.strategies if s.name != "mobile_fallback"]

    async def discover(
        self,
        page,
        url: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> StrategyResult:
        """Discover the navigation of *page*.  Never raises for expected failures."""
        cfg = self.config
        url = url or page.url
        domain = extract_domain(url)
        monitor = DiscoveryMonitor(self.clock)
        monitor.start()

        hints = await self.hint_cache.get(domain)
        quirk = self.quirks.for_domain(domain)
        logger.info(
            f"[DISCOVER] {domain}: hint {'found' if hints else 'missing'}"
            + (f", quirk {quirk}" if quirk != NO_QUIRK else "")
        )

        anti_bot_ran = await self.anti_bot.simulate(page, domain)
        await self.prepare_page(page)

        deadline = None
        if cfg.run_timeout_s:
            deadline = self.clock.now() + cfg.run_timeout_s * 1000
        ctx = DiscoveryContext(
            page=page,
            url=url,
            domain=domain,
            hints=hints,
            quirk=quirk,
            clock=self.clock,
            deadline_ms=deadline,
            cancel_event=cancel_event,
        )

        best: Optional[StrategyResult] = None
        winner: Optional[StrategyResult] = None
        cancelled = False
        for strategy in self.ordered_strategies(quirk):
            if ctx.should_stop():
                cancelled = True
                logger.info(f"[DISCOVER] stopping before {strategy.name}: cancelled or out of time")
                break

            skip_reason = getattr(strategy, "skip_reason", None)
            reason = skip_reason(ctx) if skip_reason else None
            if reason:
                monitor.skip(strategy.name, reason)
                continue

            result = await self._run_strategy(strategy, ctx, monitor)
            if result.metadata.get("cancelled"):
                cancelled = True

            if result.is_sufficient(cfg.sufficient_confidence, cfg.min_items):
                logger.info(
                    f"[DISCOVER] ✓ {strategy.name} is sufficient "
                    f"({len(result.items)} items, confidence {result.confidence:.2f})"
                )
                await self._persist_hints(domain, strategy, result)
                winner = result
                break
            if best is None or result.confidence > best.confidence:
                best = result
            if cancelled:
                break

        final = winner or best or StrategyResult.empty("orchestrator", "no_strategy_ran")
        final.metadata.update({
            "domain": domain,
            "attempts": monitor.as_metadata(),
            "elapsed_ms": monitor.elapsed_ms,
            "cancelled": cancelled,
            "hints_used": hints is not None,
            "anti_bot": anti_bot_ran,
        })
        logger.info(
            f"[DISCOVER] {domain}: {final.strategy} → {len(final.items)} items, "
            f"confidence {final.confidence:.2f} in {monitor.elapsed_ms:.0f}ms"
        )
        return final

    async def prepare_page(self, page) -> bool:
        """Close common overlays and wait for a navigation-like element."""
        clicked = await dom.safe_script(page, _DISMISS_POPUPS_JS, {"selectors": list(POPUP_CLOSE_SELECTORS)}, default=0)
        if clicked:
            logger.debug(f"[DISCOVER] dismissed {clicked} overlay(s)")
            await self.clock.sleep(300)
        ready = await dom.wait_for_selector(page, NAV_READY_SELECTOR, self.config.nav_ready_timeout_ms)
        if not ready:
            logger.debug("[DISCOVER] no navigation-like element appeared; continuing anyway")
        return ready

    async def close(self) -> None:
        await self.hint_cache.close()

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------
    async def _run_strategy(self, strategy, ctx: DiscoveryContext, monitor: DiscoveryMonitor) -> StrategyResult:
        token = monitor.begin(strategy.name)
        status = None
        try:
            result = await strategy.discover(ctx)
        except BrowserCrashedError:
            raise
        except Exception as exc:
            logger.warning(f"[{strategy.name.upper()}] raised unexpectedly: {exc}", exc_info=True)
            result = StrategyResult.empty(strategy.name, "strategy_error", error=f"{type(exc).__name__}: {exc}")
            status = "error"
        monitor.finish(token, result, status)
        return result

    async def _persist_hints(self, domain: str, strategy, result: StrategyResult) -> None:
        ttl = getattr(strategy, "hint_ttl_s", None)
        if result.hints is None or not ttl:
            return
        result.metadata["hints_saved"] = await self.hint_cache.set(domain, result.hints, ttl)
