"""
Sector-Template Link Collection
===============================
Non-interactive: reads the serialized page and keeps visible links that
either sit inside a navigation-like container or whose URL has the shape
of a category page for the configured retail sector.

Classification:
  main_department  department keyword, inside navigation → main_section, level 1
  category         category URL shape                   → subcategory, level 2
  product          product URL shape, inside navigation → dropdown_item, level 2
  navigation       any other navigation link            → dropdown_item, level 2

Departments are listed first; the result is capped at ``max_items``.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .. import dom
from ..confidence import ConfidenceScorer, ConfidenceSignals
from ..content_extractor import should_skip_link
from ..context import DiscoveryContext
from ..errors import DomScriptError, DomTimeoutError
from ..models import ItemType, NavigationItem, StrategyResult, unique_url_ratio
from ..sector_templates import SectorTemplate, get_sector_template
from ..static_links import StaticLink, collect_links, parse_html
from ..utils import contains_keyword

logger = logging.getLogger(__name__)

_LEVELS = {
    "main_department": (ItemType.MAIN_SECTION, 1),
    "category": (ItemType.SUBCATEGORY, 2),
    "product": (ItemType.DROPDOWN_ITEM, 2),
    "navigation": (ItemType.DROPDOWN_ITEM, 2),
}


def classify_link(link: StaticLink, template: SectorTemplate) -> Optional[str]:
    """Link type under *template*, or None when the link is not kept."""
    if link.in_nav and contains_keyword(link.text, template.department_keywords) and len(link.text) <= 30:
        return "main_department"
    if template.is_product_url(link.url):
        return "product" if link.in_nav else None
    if template.is_category_url(link.url):
        return "category"
    return "navigation" if link.in_nav else None


class SectorTemplateStrategy:

    name = "sector_template"
    hint_ttl_s = None

    def __init__(self, sector: str = "clothing", scorer: Optional[ConfidenceScorer] = None, max_items: int = 200):
        self.template = get_sector_template(sector)
        self.scorer = scorer or ConfidenceScorer()
        self.max_items = max_items

    @classmethod
    def from_config(cls, config, toolkit) -> "SectorTemplateStrategy":
        return cls(config.sector, toolkit.scorer, config.sector_max_items)

    async def discover(self, ctx: DiscoveryContext) -> StrategyResult:
        try:
            html = await dom.page_html(ctx.page)
        except (DomScriptError, DomTimeoutError) as exc:
            return StrategyResult.empty(self.name, "page_content_unavailable", error=str(exc))

        soup = parse_html(html)
        links = collect_links(
            soup, ctx.url, self.template.nav_selectors,
            include_hidden=False, include_outside=True, limit=self.max_items * 4,
        )
        departments: List[NavigationItem] = []
        others: List[NavigationItem] = []
        for link in links:
            if should_skip_link(link.text, link.url, link.raw_href):
                continue
            link_type = classify_link(link, self.template)
            if link_type is None:
                continue
            item_type, level = _LEVELS[link_type]
            item = NavigationItem(
                name=link.text,
                url=link.url,
                selector=link.selector,
                type=item_type,
                hierarchy_level=level,
                discovered_via=self.name,
                metadata={"link_type": link_type},
            )
            (departments if link_type == "main_department" else others).append(item)

        items = (departments + others)[: self.max_items]
        metadata = {"sector": self.template.name, "departments": len(departments), "links_scanned": len(links)}
        if not items:
            return StrategyResult.empty(self.name, "no_sector_links", **metadata)

        confidence = self.scorer.score(
            ConfidenceSignals(
                item_count=len(items),
                has_hierarchy=bool(departments) and len(items) > len(departments),
                unique_url_ratio=unique_url_ratio(items),
                department_count=len(departments),
            ),
            "sector",
        )
        logger.info(f"[SECTOR] {self.template.name}: {len(departments)} department(s), {len(items)} item(s)")
        return StrategyResult(strategy=self.name, items=items, confidence=confidence, metadata=metadata)
