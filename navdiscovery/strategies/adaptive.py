"""
Adaptive Header/Trigger Probing
===============================
Discovery from scratch when no template or mega-menu capture applies.

Per header candidate (best first, up to three):
  1. Toggler discovery (cached toggler patterns resolved first)
  2. Sample the first ``sample_size`` togglers in auto mode
     (hover, then click) to learn how this site opens its panels
  3. If no sample opened anything and enough togglers are plain links,
     treat the header as a simple link bar (``simple`` mode)
  4. Otherwise probe the rest with the learned interaction

The first candidate that yields ``min_items`` items wins; otherwise the
richest candidate's result is returned.  A successful run reports a
hint with the header selector, per-toggler interaction modes and the
site's panel strategy (hover | click | mixed | simple).
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..confidence import ConfidenceScorer, ConfidenceSignals
from ..content_extractor import ContentExtractor
from ..context import DiscoveryContext
from ..header_locator import HeaderLocator
from ..hint_cache import ADAPTIVE_HINT_TTL_S
from ..interaction_probe import InteractionModeTracker, InteractionProbe, ProbeConfig
from ..models import (
    HeaderCandidate,
    Hint,
    InteractionMode,
    ItemType,
    NavigationItem,
    StrategyResult,
    Toggler,
    unique_url_ratio,
)
from ..trigger_discovery import TriggerDiscoverer, patterns_from
from ..utils import SystemClock

logger = logging.getLogger(__name__)

SIMPLE_MODE = "simple"


def _main_item(toggler: Toggler, via: str, mode: Optional[InteractionMode] = None) -> NavigationItem:
    metadata = {"source": toggler.source.value}
    if mode is not None:
        metadata["interaction"] = mode.value
    return NavigationItem(
        name=toggler.text,
        url=toggler.url,
        selector=toggler.selector,
        type=ItemType.MAIN_SECTION,
        hierarchy_level=1,
        discovered_via=via,
        metadata=metadata,
    )


class AdaptiveProbeStrategy:

    name = "adaptive"
    hint_ttl_s = ADAPTIVE_HINT_TTL_S

    def __init__(
        self,
        header_locator: HeaderLocator,
        trigger_discoverer: TriggerDiscoverer,
        extractor: Optional[ContentExtractor] = None,
        scorer: Optional[ConfidenceScorer] = None,
        probe_config: Optional[ProbeConfig] = None,
        *,
        clock=None,
        sample_size: int = 2,
        simple_nav_min_links: int = 3,
        min_items: int = 5,
    ):
        self.header_locator = header_locator
        self.trigger_discoverer = trigger_discoverer
        self.extractor = extractor or ContentExtractor()
        self.scorer = scorer or ConfidenceScorer()
        self.probe_config = probe_config or ProbeConfig()
        self.clock = clock or SystemClock()
        self.sample_size = sample_size
        self.simple_nav_min_links = simple_nav_min_links
        self.min_items = min_items

    @classmethod
    def from_config(cls, config, toolkit) -> "AdaptiveProbeStrategy":
        strategy = cls(
            toolkit.header_locator,
            toolkit.trigger_discoverer,
            toolkit.extractor,
            toolkit.scorer,
            config.to_probe_config(),
            clock=toolkit.clock,
            sample_size=config.max_togglers_to_sample,
            simple_nav_min_links=config.simple_nav_min_links,
            min_items=config.min_items,
        )
        strategy.hint_ttl_s = config.adaptive_hint_ttl_s
        return strategy

    async def discover(self, ctx: DiscoveryContext) -> StrategyResult:
        page = ctx.page
        cached_selector = ctx.hints.header_selector if ctx.hints else None
        headers = await self.header_locator.locate(page, cached_selector)
        if not headers:
            diagnostics = await self.header_locator.diagnose(page)
            logger.info(f"[ADAPTIVE] no header container passed the gate; counts {diagnostics.get('element_counts')}")
            return StrategyResult.empty(self.name, "no_header_containers", diagnostics=diagnostics)

        best: Optional[StrategyResult] = None
        for header in headers:
            if ctx.should_stop():
                break
            result = await self._explore(ctx, header)
            if len(result.items) >= self.min_items:
                return result
            if best is None or len(result.items) > len(best.items):
                best = result
            if result.metadata.get("cancelled"):
                break
        if best is None:
            return StrategyResult.empty(self.name, "no_togglers_found", cancelled=True)
        return best

    async def _explore(self, ctx: DiscoveryContext, header: HeaderCandidate) -> StrategyResult:
        page = ctx.page
        hints = ctx.hints
        togglers = await self.trigger_discoverer.discover(page, header, hints.toggler_patterns if hints else None)
        if not togglers:
            return StrategyResult.empty(self.name, "no_togglers_found", header=header.selector)
        logger.info(f"[ADAPTIVE] {len(togglers)} toggler(s) in {header.selector}")

        probe = InteractionProbe(
            self.extractor, self.probe_config,
            clock=self.clock, quirk=ctx.quirk, discovered_via=self.name,
        )
        tracker = InteractionModeTracker(hints.panel_strategy if hints else None)
        forced = InteractionMode.CLICK if ctx.quirk.prefer_click else None
        items: List[NavigationItem] = []
        modes: Dict[str, InteractionMode] = {}
        probed = 0
        cancelled = False
        panel_strategy: Optional[str] = None

        for index, toggler in enumerate(togglers):
            if ctx.should_stop():
                cancelled = True
                break
            sampling = index < self.sample_size
            if index == self.sample_size and not modes:
                simple = self._simple_items(togglers)
                if simple:
                    items, panel_strategy = simple, SIMPLE_MODE
                    break
            preferred = forced if sampling else (forced or tracker.preferred())
            outcome = await probe.probe(page, toggler, preferred=preferred)
            probed += 1
            tracker.record(outcome.opened_via)
            if outcome.found and outcome.items:
                modes[toggler.text] = outcome.opened_via
                items.append(_main_item(toggler, self.name, outcome.opened_via))
                items.extend(outcome.items)

        if panel_strategy is None and not items and not cancelled:
            simple = self._simple_items(togglers)
            if simple:
                items, panel_strategy = simple, SIMPLE_MODE
        if panel_strategy is None:
            panel_strategy = tracker.site_mode
        metadata = {
            "header": header.selector,
            "header_source": header.source.value,
            "togglers_found": len(togglers),
            "togglers_probed": probed,
            "panels_opened": len(modes),
            "interaction_mode": panel_strategy,
        }
        if cancelled:
            metadata["cancelled"] = True
        if not items:
            return StrategyResult.empty(self.name, "no_panels_revealed", **metadata)

        confidence = self.scorer.score(
            ConfidenceSignals(
                item_count=len(items),
                triggers_probed=probed if panel_strategy != SIMPLE_MODE else 0,
                has_hierarchy=any(i.hierarchy_level > 1 for i in items),
                unique_url_ratio=unique_url_ratio(items),
            ),
            "adaptive",
        )
        logger.info(f"[ADAPTIVE] ✓ {len(items)} item(s) via {panel_strategy} from {header.selector}")
        return StrategyResult(
            strategy=self.name,
            items=items,
            confidence=confidence,
            metadata=metadata,
            hints=Hint(
                header_selector=header.selector,
                toggler_patterns=patterns_from(togglers, modes),
                panel_strategy=panel_strategy,
            ),
        )

    def _simple_items(self, togglers: List[Toggler]) -> List[NavigationItem]:
        """Plain-link header: togglers with URLs become main sections."""
        linked = [t for t in togglers if t.url]
        if len(linked) < self.simple_nav_min_links:
            return []
        logger.info(f"[ADAPTIVE] no panels opened; {len(linked)} plain links → simple mode")
        return [_main_item(t, self.name) for t in linked]
