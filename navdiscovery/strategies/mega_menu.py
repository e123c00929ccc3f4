"""
Mega-Menu Capture
=================
Hover capture of large multi-column panels in a desktop-sized viewport.

Steps:
  1. ``ViewportContextManager.ensure_desktop`` (isolated 1920×1080 context
     when the current page is narrower; closed on every exit path)
  2. Best header candidate → togglers → mega-menu trigger filter
     (3–25 chars, letters/``&``/apostrophes/spaces, no account chrome)
  3. Triggers that worked last time (cached hint) are probed first
  4. ``InteractionProbe`` with the long hover budget and the column-aware
     extractor, up to ``max_menus`` captures
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..confidence import ConfidenceScorer, ConfidenceSignals
from ..content_extractor import ContentExtractor
from ..context import DiscoveryContext
from ..errors import DomScriptError, DomTimeoutError
from ..header_locator import HeaderLocator
from ..hint_cache import MEGA_MENU_HINT_TTL_S
from ..interaction_probe import InteractionModeTracker, InteractionProbe, ProbeConfig
from ..keywords import MEGA_MENU_SKIP_PATTERNS, MEGA_MENU_TRIGGER_TEXT
from ..models import Hint, ItemType, NavigationItem, StrategyResult, Toggler, unique_url_ratio
from ..trigger_discovery import TriggerDiscoverer, patterns_from
from ..utils import SystemClock, clean_text
from ..viewport import ViewportContextManager

logger = logging.getLogger(__name__)


def is_mega_menu_trigger(text: str, min_len: int = 3, max_len: int = 25) -> bool:
    text = clean_text(text)
    if not (min_len <= len(text) <= max_len):
        return False
    if not MEGA_MENU_TRIGGER_TEXT.match(text):
        return False
    return not any(p.search(text) for p in MEGA_MENU_SKIP_PATTERNS)


def order_by_hint(togglers: List[Toggler], successful: List[str]) -> List[Toggler]:
    """Stable reorder: triggers named in *successful* first, in hint order."""
    rank = {t.lower(): i for i, t in enumerate(successful)}
    return sorted(togglers, key=lambda t: rank.get(t.text.lower(), len(rank)))


class MegaMenuStrategy:

    name = "mega_menu"
    hint_ttl_s = MEGA_MENU_HINT_TTL_S

    def __init__(
        self,
        header_locator: HeaderLocator,
        trigger_discoverer: TriggerDiscoverer,
        viewport: ViewportContextManager,
        extractor: Optional[ContentExtractor] = None,
        scorer: Optional[ConfidenceScorer] = None,
        probe_config: Optional[ProbeConfig] = None,
        *,
        clock=None,
        max_menus: int = 10,
    ):
        self.header_locator = header_locator
        self.trigger_discoverer = trigger_discoverer
        self.viewport = viewport
        self.extractor = extractor or ContentExtractor()
        self.scorer = scorer or ConfidenceScorer()
        self.probe_config = probe_config or ProbeConfig(hover_checkpoints_ms=(300, 800, 1500, 2000))
        self.clock = clock or SystemClock()
        self.max_menus = max_menus

    @classmethod
    def from_config(cls, config, toolkit) -> "MegaMenuStrategy":
        strategy = cls(
            toolkit.header_locator,
            toolkit.trigger_discoverer,
            toolkit.viewport,
            toolkit.extractor,
            toolkit.scorer,
            config.to_probe_config(mega_menu=True),
            clock=toolkit.clock,
            max_menus=config.max_mega_menus,
        )
        strategy.hint_ttl_s = config.mega_menu_hint_ttl_s
        return strategy

    async def discover(self, ctx: DiscoveryContext) -> StrategyResult:
        try:
            async with self.viewport.ensure_desktop(ctx.page, ctx.url) as page:
                return await self._capture(ctx.with_page(page), used_desktop=page is not ctx.page)
        except DomTimeoutError as exc:
            logger.warning(f"[MEGA-MENU] desktop context did not load: {exc}")
            return StrategyResult.empty(self.name, "desktop_context_timeout", error=str(exc))
        except DomScriptError as exc:
            logger.warning(f"[MEGA-MENU] desktop context failed: {exc}")
            return StrategyResult.empty(self.name, "desktop_context_failed", error=str(exc))

    async def _capture(self, ctx: DiscoveryContext, used_desktop: bool) -> StrategyResult:
        page = ctx.page
        hints = ctx.hints
        base = {"viewport_size": page.viewport_size, "used_desktop_context": used_desktop}

        headers = await self.header_locator.locate(page, hints.header_selector if hints else None)
        if not headers:
            return StrategyResult.empty(self.name, "no_header_containers", **base)
        header = headers[0]

        cached = hints.toggler_patterns if hints else None
        togglers = [
            t for t in await self.trigger_discoverer.discover(page, header, cached)
            if is_mega_menu_trigger(t.text)
        ]
        if hints and hints.successful_triggers:
            togglers = order_by_hint(togglers, hints.successful_triggers)
        if not togglers:
            return StrategyResult.empty(self.name, "no_mega_menu_triggers", header=header.selector, **base)
        logger.info(f"[MEGA-MENU] {len(togglers)} trigger(s) in {header.selector}")

        probe = InteractionProbe(
            self.extractor, self.probe_config,
            clock=self.clock, quirk=ctx.quirk, mega_menu=True, discovered_via=self.name,
        )
        tracker = InteractionModeTracker()
        items: List[NavigationItem] = []
        captured: List[str] = []
        modes = {}
        attempted = 0
        cancelled = False
        for toggler in togglers[: self.max_menus]:
            if ctx.should_stop():
                cancelled = True
                break
            attempted += 1
            outcome = await probe.probe(page, toggler, preferred=tracker.preferred())
            tracker.record(outcome.opened_via)
            if not (outcome.found and outcome.items):
                continue
            captured.append(toggler.text)
            modes[toggler.text] = outcome.opened_via
            items.append(NavigationItem(
                name=toggler.text,
                url=toggler.url,
                selector=toggler.selector,
                type=ItemType.MAIN_SECTION,
                hierarchy_level=1,
                discovered_via=self.name,
            ))
            items.extend(outcome.items)

        columns = {i.metadata.get("column") for i in items if i.metadata.get("column") is not None}
        metadata = dict(
            base,
            header=header.selector,
            triggers_found=len(togglers),
            menus_captured=len(captured),
            interaction_mode=tracker.site_mode,
        )
        if cancelled:
            metadata["cancelled"] = True
        if not items:
            return StrategyResult.empty(self.name, "no_panels_revealed", **metadata)

        confidence = self.scorer.score(
            ConfidenceSignals(
                item_count=len(items),
                triggers_probed=attempted,
                successes=len(captured),
                has_hierarchy=len(columns) > 1,
                unique_url_ratio=unique_url_ratio(items),
            ),
            "mega_menu",
        )
        return StrategyResult(
            strategy=self.name,
            items=items,
            confidence=confidence,
            metadata=metadata,
            hints=Hint(
                header_selector=header.selector,
                toggler_patterns=patterns_from(togglers, modes),
                panel_strategy="mega_menu",
                successful_triggers=captured,
            ),
        )
