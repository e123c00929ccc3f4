"""
Fallback Link Collection
========================
Last non-interactive resort: every same-site link inside navigation
containers, hidden ones included (mobile menus, off-canvas drawers and
``[hidden]`` blocks are usually rendered server-side and only toggled
by script).  Department-keyword links become main sections; links from
hidden containers carry ``metadata['hidden'] = True``.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from .. import dom
from ..confidence import ConfidenceScorer, ConfidenceSignals
from ..content_extractor import should_skip_link
from ..context import DiscoveryContext
from ..errors import DomScriptError, DomTimeoutError
from ..keywords import DEPARTMENT_KEYWORDS
from ..models import ItemType, NavigationItem, StrategyResult, unique_url_ratio
from ..static_links import collect_links, parse_html
from ..utils import contains_keyword

logger = logging.getLogger(__name__)

FALLBACK_CONTAINERS: Tuple[str, ...] = (
    "nav", "header", "[role='navigation']", "[role='menu']", "[role='menubar']",
    ".navigation", ".main-nav", ".nav", ".navbar", ".menu", "#nav", "#menu",
    ".mobile-menu", "#mobile-nav", ".mobile-nav", ".off-canvas", ".sidebar-menu",
    "[class*='drawer']", "[class*='dropdown']", "[class*='mega']", "[class*='flyout']",
)


class FallbackLinkStrategy:

    name = "fallback_links"
    hint_ttl_s = None

    def __init__(self, scorer: Optional[ConfidenceScorer] = None, max_links: int = 500, include_hidden: bool = True):
        self.scorer = scorer or ConfidenceScorer()
        self.max_links = max_links
        self.include_hidden = include_hidden

    @classmethod
    def from_config(cls, config, toolkit) -> "FallbackLinkStrategy":
        return cls(toolkit.scorer, config.fallback_max_links, config.fallback_include_hidden)

    async def discover(self, ctx: DiscoveryContext) -> StrategyResult:
        try:
            html = await dom.page_html(ctx.page)
        except (DomScriptError, DomTimeoutError) as exc:
            return StrategyResult.empty(self.name, "page_content_unavailable", error=str(exc))

        links = collect_links(
            parse_html(html), ctx.url, FALLBACK_CONTAINERS,
            include_hidden=self.include_hidden, limit=self.max_links,
        )
        items = []
        departments = 0
        for link in links:
            if should_skip_link(link.text, link.url, link.raw_href):
                continue
            is_department = len(link.text) <= 30 and contains_keyword(link.text, DEPARTMENT_KEYWORDS)
            departments += int(is_department)
            metadata = {"hidden": True} if link.hidden else {}
            items.append(NavigationItem(
                name=link.text,
                url=link.url,
                selector=link.selector,
                type=ItemType.MAIN_SECTION if is_department else ItemType.DROPDOWN_ITEM,
                hierarchy_level=1 if is_department else 2,
                discovered_via=self.name,
                metadata=metadata,
            ))

        hidden = sum(1 for i in items if i.metadata.get("hidden"))
        metadata = {"hidden_links": hidden, "departments": departments, "links_scanned": len(links)}
        if not items:
            return StrategyResult.empty(self.name, "no_navigation_links", **metadata)

        confidence = self.scorer.score(
            ConfidenceSignals(
                item_count=len(items),
                unique_url_ratio=unique_url_ratio(items),
                department_count=departments,
                mixed_visibility=0 < hidden < len(items),
            ),
            "fallback",
        )
        logger.info(f"[FALLBACK] {len(items)} link(s), {hidden} hidden, {departments} department(s)")
        return StrategyResult(strategy=self.name, items=items, confidence=confidence, metadata=metadata)
