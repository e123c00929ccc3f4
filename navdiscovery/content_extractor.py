"""
Content Extraction
==================
Turns a panel that is confirmed open into ``NavigationItem`` objects.

Two paths:
  - **extract_dropdown**   — every visible link inside the open panel(s)
  - **extract_mega_menu**  — same links, keeping column index, group title
                             and a numeric category id when the URL has one

Both drop links whose text or URL matches the skip lists (social, legal,
account chrome) as well as empty texts and bare ``#`` hrefs.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from . import dom
from .keywords import SKIP_LINK_KEYWORDS, SKIP_LINK_PATTERNS
from .models import ItemType, NavigationItem
from .utils import clean_text, contains_keyword

logger = logging.getLogger(__name__)

DROPDOWN_CONTAINER_SELECTORS: Tuple[str, ...] = (
    '.dropdown-content',
    '.dropdown-menu',
    '.submenu',
    '.sub-menu',
    '.mega-menu',
    '.megamenu',
    '.flyout',
    '[class*="dropdown"]',
    '[class*="flyout"]',
    '[class*="mega"]',
    '[role="menu"]',
    '[aria-hidden="false"]',
    '[style*="block"]',
)

MEGA_MENU_COLUMN_SELECTORS: Tuple[str, ...] = (
    '.category-cell.grid-y',
    '.mega-menu-column',
    '.menu-column',
    '[class*="column"]',
)
MEGA_MENU_GROUP_SELECTORS: Tuple[str, ...] = ('.category-group', '.menu-group', '.nav-group')
MEGA_MENU_TITLE_SELECTORS: Tuple[str, ...] = ('h5 span', 'h4', 'h3', '.group-title', '.menu-title')

_CATEGORY_ID_RE = re.compile(r'[?&](?:id|cid|categoryid|cat_id)=(\d+)', re.I)


_PANEL_LINKS_JS = dom.DomScript("extract.panel_links", """
    let panels = [];
    if (arg.panels && arg.panels.length) {
        for (const selector of arg.panels) {
            const el = firstMatch(selector);
            if (el && isVisible(el)) panels.push(el);
        }
    } else {
        for (const selector of arg.containers) {
            for (const el of allMatches(selector)) if (isVisible(el)) panels.push(el);
        }
    }
    panels = panels.filter(p => !panels.some(o => o !== p && o.contains(p)));
    const out = [];
    const seen = new Set();
    for (const panel of panels) {
        const panelSelector = cssPath(panel);
        for (const a of allMatches('a[href]', panel)) {
            if (out.length >= arg.limit) return out;
            if (seen.has(a) || !isVisible(a)) continue;
            seen.add(a);
            out.push({text: textOf(a), href: a.href, rawHref: a.getAttribute('href'),
                      selector: cssPath(a), panel: panelSelector});
        }
    }
    return out;
""")

_MEGA_MENU_JS = dom.DomScript("extract.mega_menu", """
    const pick = (selectors, scope) => {
        for (const s of selectors) {
            const found = allMatches(s, scope).filter(isVisible);
            if (found.length) return found;
        }
        return [];
    };
    const titleOf = (scope) => {
        for (const s of arg.titles) {
            const t = firstMatch(s, scope);
            if (t && textOf(t)) return textOf(t);
        }
        return null;
    };
    const linksOf = (scope) => allMatches('a[href]', scope).filter(isVisible).map(a => ({
        text: textOf(a), href: a.href, rawHref: a.getAttribute('href'), selector: cssPath(a),
    }));
    const columns = [];
    for (const selector of arg.panels) {
        const panel = firstMatch(selector);
        if (!panel || !isVisible(panel)) continue;
        for (const col of pick(arg.columns, panel)) {
            let groups = pick(arg.groups, col);
            if (!groups.length) groups = [col];
            columns.push({groups: groups.map(g => ({title: titleOf(g), links: linksOf(g)}))});
        }
    }
    return {columns: columns};
""")


def parse_category_id(url: Optional[str]) -> Optional[int]:
    """Numeric category id from ``id=`` / ``cid=`` / ``categoryId=`` / ``cat_id=``."""
    if not url:
        return None
    match = _CATEGORY_ID_RE.search(url)
    return int(match.group(1)) if match else None


def should_skip_link(text: str, href: Optional[str], raw_href: Optional[str] = None) -> bool:
    text = clean_text(text)
    raw = (raw_href if raw_href is not None else href or '').strip()
    if not text or not raw or raw == '#' or raw.lower().startswith(('javascript:', 'mailto:', 'tel:')):
        return True
    if contains_keyword(text, SKIP_LINK_KEYWORDS):
        return True
    return any(p.search(href or raw) for p in SKIP_LINK_PATTERNS)


class ContentExtractor:

    def __init__(
        self,
        container_selectors: Sequence[str] = DROPDOWN_CONTAINER_SELECTORS,
        link_limit: int = 300,
    ):
        self.container_selectors = tuple(container_selectors)
        self.link_limit = link_limit

    async def extract_dropdown(
        self,
        page,
        trigger_name: str,
        *,
        panels: Sequence[str] = (),
        discovered_via: str = "",
    ) -> List[NavigationItem]:
        """Links of the open panel(s) as level-2 dropdown items under *trigger_name*.

        *panels* narrows the scan to the panels the probe saw open; when
        empty, every visible dropdown container is scanned.
        """
        arg = {'panels': list(panels), 'containers': list(self.container_selectors), 'limit': self.link_limit}
        links = await dom.safe_script(page, _PANEL_LINKS_JS, arg, default=[]) or []
        items = []
        for link in links:
            if should_skip_link(link.get('text'), link.get('href'), link.get('rawHref')):
                continue
            items.append(NavigationItem(
                name=link['text'],
                url=link.get('href'),
                selector=link.get('selector'),
                type=ItemType.DROPDOWN_ITEM,
                parent=trigger_name,
                hierarchy_level=2,
                discovered_via=discovered_via,
                metadata={'panel': link.get('panel')},
            ))
        logger.debug(f"  [EXTRACT] {trigger_name}: {len(items)} link(s) from {len(links)} candidate(s)")
        return items

    async def extract_mega_menu(
        self,
        page,
        trigger_name: str,
        *,
        panels: Sequence[str] = (),
        discovered_via: str = "",
    ) -> List[NavigationItem]:
        """Column-aware extraction; falls back to a flat scan when no columns exist."""
        arg = {
            'panels': list(panels),
            'columns': list(MEGA_MENU_COLUMN_SELECTORS),
            'groups': list(MEGA_MENU_GROUP_SELECTORS),
            'titles': list(MEGA_MENU_TITLE_SELECTORS),
        }
        data: Dict[str, Any] = {}
        if panels:
            data = await dom.safe_script(page, _MEGA_MENU_JS, arg, default={}) or {}
        columns = data.get('columns') or []
        if not columns:
            return await self.extract_dropdown(
                page, trigger_name, panels=panels, discovered_via=discovered_via
            )

        items: List[NavigationItem] = []
        for col_index, column in enumerate(columns):
            for group_index, group in enumerate(column.get('groups') or []):
                title = clean_text(group.get('title') or '') or None
                for link in group.get('links') or []:
                    if should_skip_link(link.get('text'), link.get('href'), link.get('rawHref')):
                        continue
                    metadata = {'column': col_index, 'group': title, 'group_index': group_index}
                    category_id = parse_category_id(link.get('href'))
                    if category_id is not None:
                        metadata['category_id'] = category_id
                    items.append(NavigationItem(
                        name=link['text'],
                        url=link.get('href'),
                        selector=link.get('selector'),
                        type=ItemType.DROPDOWN_ITEM,
                        parent=trigger_name,
                        hierarchy_level=2,
                        discovered_via=discovered_via,
                        metadata=metadata,
                    ))
        logger.debug(f"  [EXTRACT] {trigger_name}: {len(items)} link(s) in {len(columns)} column(s)")
        return items
