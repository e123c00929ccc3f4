"""
Pattern-Matched Extraction
==========================
Applies a pre-authored ``PatternTemplate`` directly, with no discovery
phase.  Only runs for domains that register a template; the universal
template is kept for explicit use and for ``PatternLibrary.match``.

Choreography per top-level entry:
  1. Reset pointer state (random pointer move, micro-scroll)
  2. Hover (or click) the entry's trigger
  3. Wait the template hover delay (site quirk wins when larger)
  4. Read visible dropdown links, trying the template's dropdown
     selectors in order
  5. Nothing visible → force the dropdown visible (``display:block``,
     then ``display:flex``) and read again.  Document-scoped dropdowns
     are narrowed to the one whose id/aria label names the entry, and
     forced styles are removed before the next entry is hovered

Each entry is bounded by ``item_timeout_ms``.  Afterwards the dropdown
groups are re-attached to the main entry whose label matches; groups
without a matching entry become orphan ``dropdown_category`` sections.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .. import dom
from ..confidence import ConfidenceScorer
from ..content_extractor import should_skip_link
from ..context import DiscoveryContext
from ..errors import DomScriptError, DomTimeoutError
from ..hint_cache import MEGA_MENU_HINT_TTL_S
from ..models import Hint, InteractionMode, ItemType, NavigationItem, StrategyResult
from ..patterns import PatternLibrary, PatternTemplate
from ..utils import SystemClock, clean_text

logger = logging.getLogger(__name__)

HINT_PREFIX = "pattern:"

_MAIN_NAV_JS = dom.DomScript("pattern.main_nav", """
    const out = [];
    const entries = allMatches(arg.container);
    for (let i = 0; i < entries.length && out.length < arg.limit; i++) {
        const entry = entries[i];
        const trigger = firstMatch(arg.trigger, entry) || entry;
        let heading = null;
        for (const selector of arg.dropdowns) {
            const dropdown = firstMatch(selector, entry);
            const h = dropdown && firstMatch('h1, h2, h3, h4, h5, .group-title', dropdown);
            if (h && textOf(h)) { heading = textOf(h); break; }
        }
        out.push({
            index: i,
            text: textOf(trigger).slice(0, 80),
            href: trigger.tagName === 'A' ? (trigger.href || null) : null,
            rawHref: trigger.getAttribute('href'),
            entrySelector: cssPath(entry),
            triggerSelector: cssPath(trigger),
            heading: heading,
        });
    }
    return out;
""")

_DROPDOWN_LINKS_JS = dom.DomScript("pattern.dropdown_links", """
    const root = arg.scope ? firstMatch(arg.scope) : document;
    if (!root) return [];
    for (const selector of arg.dropdowns) {
        const out = [];
        const seen = new Set();
        for (const dropdown of allMatches(selector, root)) {
            if (!isVisible(dropdown)) continue;
            for (const a of allMatches(arg.links, dropdown)) {
                if (out.length >= arg.limit) return out;
                if (seen.has(a) || !isVisible(a)) continue;
                seen.add(a);
                out.push({text: textOf(a), href: a.href || null, rawHref: a.getAttribute('href'), selector: cssPath(a)});
            }
        }
        if (out.length) return out;
    }
    return [];
""")

_FORCE_VISIBLE_JS = dom.DomScript("pattern.force_visible", """
    const root = arg.scope ? firstMatch(arg.scope) : document;
    if (!root) return 0;
    const keyOf = (s) => '-' + (s || '').toLowerCase().replace(/[^a-z0-9]+/g, '-').replace(/^-|-$/g, '') + '-';
    const label = arg.label ? keyOf(arg.label) : null;
    // document-wide dropdowns: only the one named after this entry
    const owned = (el) => !label || [el.id, el.getAttribute('aria-label'), el.getAttribute('aria-labelledby'),
        el.getAttribute('data-nav'), el.getAttribute('data-name')].some(v => v && keyOf(v).includes(label));
    let forced = 0;
    for (const selector of arg.dropdowns) {
        for (const el of allMatches(selector, root)) {
            if (!owned(el)) continue;
            el.style.setProperty('display', arg.display, 'important');
            el.style.setProperty('visibility', 'visible', 'important');
            el.style.setProperty('opacity', '1', 'important');
            el.setAttribute('data-navdiscovery-forced', '1');
            forced++;
        }
        if (forced) break;
    }
    return forced;
""")

_RESTORE_JS = dom.DomScript("pattern.restore", """
    let restored = 0;
    for (const el of allMatches('[data-navdiscovery-forced]')) {
        el.style.removeProperty('display');
        el.style.removeProperty('visibility');
        el.style.removeProperty('opacity');
        el.removeAttribute('data-navdiscovery-forced');
        restored++;
    }
    return restored;
""")

_MICRO_SCROLL_JS = dom.DomScript("pattern.micro_scroll", """
    window.scrollBy(0, arg.dy);
    window.scrollBy(0, -arg.dy);
    return window.scrollY;
""")

_FORCE_DISPLAYS = ("block", "flex")


# ---------------------------------------------------------------------------
# Hierarchy reconstruction
# ---------------------------------------------------------------------------
def reconstruct_hierarchy(
    main_items: Sequence[NavigationItem],
    groups: Sequence[Tuple[str, List[NavigationItem]]],
    discovered_via: str = "pattern_match",
) -> List[NavigationItem]:
    """Re-attach each dropdown group to the main item whose label matches.

    Matching is case-insensitive on cleaned text.  A group without a
    matching main item becomes an orphan ``dropdown_category`` section
    (no URL, level 1) followed by its children.
    """
    by_label: Dict[str, NavigationItem] = {}
    for item in main_items:
        by_label.setdefault(item.name.lower(), item)

    children: Dict[str, List[NavigationItem]] = {}
    orphans: List[Tuple[str, List[NavigationItem]]] = []
    for label, links in groups:
        label = clean_text(label)
        if not label or not links:
            continue
        owner = by_label.get(label.lower())
        if owner is None:
            orphans.append((label, links))
            continue
        bucket = children.setdefault(owner.name.lower(), [])
        for link in links:
            link.parent = owner.name
            link.hierarchy_level = 2
            bucket.append(link)

    result: List[NavigationItem] = []
    for item in main_items:
        result.append(item)
        result.extend(children.pop(item.name.lower(), []))

    for label, links in orphans:
        result.append(NavigationItem(
            name=label,
            type=ItemType.DROPDOWN_CATEGORY,
            hierarchy_level=1,
            discovered_via=discovered_via,
            metadata={"orphan": True},
        ))
        for link in links:
            link.parent = label
            link.hierarchy_level = 2
            result.append(link)
    return result


class PatternMatchStrategy:
    """Template-driven extraction for registered domains."""

    name = "pattern_match"
    hint_ttl_s = MEGA_MENU_HINT_TTL_S

    def __init__(
        self,
        patterns: PatternLibrary,
        scorer: Optional[ConfidenceScorer] = None,
        *,
        clock=None,
        rng: Optional[random.Random] = None,
        container_timeout_ms: int = 10000,
        item_timeout_ms: int = 10000,
        entry_limit: int = 40,
        link_limit: int = 200,
    ):
        self.patterns = patterns
        self.scorer = scorer or ConfidenceScorer()
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self.container_timeout_ms = container_timeout_ms
        self.item_timeout_ms = item_timeout_ms
        self.entry_limit = entry_limit
        self.link_limit = link_limit

    @classmethod
    def from_config(cls, config, toolkit) -> "PatternMatchStrategy":
        strategy = cls(
            toolkit.patterns,
            toolkit.scorer,
            clock=toolkit.clock,
            container_timeout_ms=config.pattern_container_timeout_ms,
            item_timeout_ms=config.pattern_item_timeout_ms,
        )
        strategy.hint_ttl_s = config.mega_menu_hint_ttl_s
        return strategy

    def skip_reason(self, ctx: DiscoveryContext) -> Optional[str]:
        if not self.patterns.has_registered(ctx.url):
            return "no_registered_pattern"
        return None

    def templates_for(self, ctx: DiscoveryContext) -> List[PatternTemplate]:
        """Registered templates, the one named by a cached hint first."""
        templates = self.patterns.registered_for(ctx.url)
        strategy = ctx.hints.panel_strategy if ctx.hints else None
        if strategy and strategy.startswith(HINT_PREFIX):
            preferred = strategy[len(HINT_PREFIX):]
            templates.sort(key=lambda t: t.name != preferred)
        return templates

    async def discover(self, ctx: DiscoveryContext) -> StrategyResult:
        templates = self.templates_for(ctx)
        if not templates:
            return StrategyResult.empty(self.name, "no_registered_pattern")

        last: Optional[StrategyResult] = None
        for template in templates:
            if ctx.should_stop():
                break
            try:
                result = await self._run_template(ctx, template)
            except (DomScriptError, DomTimeoutError) as exc:
                logger.debug(f"[PATTERN] ✗ {template.name} failed: {exc}")
                result = StrategyResult.empty(self.name, "extraction_failed", pattern=template.name, error=str(exc))
            if result.items:
                return result
            last = result
        return last or StrategyResult.empty(self.name, "no_pattern_elements", cancelled=True)

    # -----------------------------------------------------------------------
    # One template
    # -----------------------------------------------------------------------
    async def _run_template(self, ctx: DiscoveryContext, template: PatternTemplate) -> StrategyResult:
        page = ctx.page
        logger.info(f"[PATTERN] trying template '{template.name}' on {ctx.domain}")
        if not await dom.wait_for_selector(page, template.container, self.container_timeout_ms):
            return StrategyResult.empty(self.name, "no_pattern_elements", pattern=template.name)

        arg = {
            "container": template.container,
            "trigger": template.trigger,
            "dropdowns": list(template.dropdowns),
            "limit": self.entry_limit,
        }
        entries = await dom.run_script(page, _MAIN_NAV_JS, arg) or []
        if not entries:
            return StrategyResult.empty(self.name, "no_pattern_elements", pattern=template.name)

        main_items: List[NavigationItem] = []
        groups: List[Tuple[str, List[NavigationItem]]] = []
        forced = 0
        cancelled = False
        for entry in entries:
            if ctx.should_stop():
                cancelled = True
                break
            text = clean_text(entry.get("text") or "")
            label = text or clean_text(entry.get("heading") or "")
            if not label:
                continue
            if text:
                url = None if should_skip_link(text, entry.get("href"), entry.get("rawHref")) else entry.get("href")
                main_items.append(NavigationItem(
                    name=text,
                    url=url,
                    selector=entry.get("triggerSelector"),
                    type=ItemType.MAIN_SECTION,
                    hierarchy_level=1,
                    discovered_via=self.name,
                    metadata={"pattern": template.name},
                ))
            budget_ms = self.item_timeout_ms
            remaining = ctx.remaining_ms()
            if remaining is not None:
                budget_ms = min(budget_ms, remaining)
            try:
                links, was_forced = await asyncio.wait_for(
                    self._extract_entry(ctx, template, entry, label),
                    timeout=budget_ms / 1000,
                )
            except asyncio.TimeoutError:
                logger.debug(f"  ✗ [PATTERN] '{label}' exceeded {budget_ms:.0f}ms")
                links, was_forced = [], False
            forced += int(was_forced)
            groups.append((label, links))

        await dom.safe_script(page, _RESTORE_JS, {})
        items = reconstruct_hierarchy(main_items, groups, discovered_via=self.name)
        metadata: Dict[str, Any] = {
            "pattern": template.name,
            "main_items": len(main_items),
            "forced_visible": forced,
        }
        if cancelled:
            metadata["cancelled"] = True
        if not items:
            return StrategyResult.empty(self.name, "extraction_failed", **metadata)
        return StrategyResult(
            strategy=self.name,
            items=items,
            confidence=self.scorer.pattern_score(len(items)),
            metadata=metadata,
            hints=Hint(panel_strategy=HINT_PREFIX + template.name),
        )

    async def _extract_entry(
        self,
        ctx: DiscoveryContext,
        template: PatternTemplate,
        entry: Dict[str, Any],
        label: str,
    ) -> Tuple[List[NavigationItem], bool]:
        page = ctx.page
        scope = entry.get("entrySelector") if template.dropdown_scope == "container" else None
        await self._reset_pointer(page)

        trigger = entry.get("triggerSelector") or entry.get("entrySelector")
        try:
            if template.interaction is InteractionMode.CLICK or ctx.quirk.prefer_click:
                await dom.click(page, trigger, self.item_timeout_ms)
            else:
                await dom.hover(page, trigger, self.item_timeout_ms)
        except (DomScriptError, DomTimeoutError) as exc:
            logger.debug(f"    interaction failed on '{label}': {exc}")
        await self.clock.sleep(max(template.hover_delay_ms, ctx.quirk.hover_delay_ms or 0))

        arg = {"scope": scope, "dropdowns": list(template.dropdowns), "links": template.links, "limit": self.link_limit}
        raw = await dom.safe_script(page, _DROPDOWN_LINKS_JS, arg, default=[]) or []
        force_arg = {
            "scope": scope,
            "label": None if scope else label,
            "dropdowns": list(template.dropdowns),
        }
        forced = False
        try:
            for display in _FORCE_DISPLAYS:
                if raw:
                    break
                count = await dom.safe_script(page, _FORCE_VISIBLE_JS, dict(force_arg, display=display), default=0)
                if not count:
                    break
                forced = True
                raw = await dom.safe_script(page, _DROPDOWN_LINKS_JS, arg, default=[]) or []
        finally:
            # forced dropdowns must be hidden again before the next entry is read
            if forced:
                await dom.safe_script(page, _RESTORE_JS, {})

        links = [
            NavigationItem(
                name=link["text"],
                url=link.get("href"),
                selector=link.get("selector"),
                type=ItemType.DROPDOWN_ITEM,
                parent=label,
                hierarchy_level=2,
                discovered_via=self.name,
            )
            for link in raw
            if not should_skip_link(link.get("text") or "", link.get("href"), link.get("rawHref"))
        ]
        logger.debug(f"  {'✓' if links else '✗'} [PATTERN] '{label}': {len(links)} link(s){' (forced)' if forced else ''}")

        await self._dismiss(page, template, ctx)
        return links, forced

    async def _reset_pointer(self, page) -> None:
        try:
            await dom.move_mouse(page, self.rng.uniform(5, 60), self.rng.uniform(400, 600))
        except (DomScriptError, DomTimeoutError):
            pass
        await dom.safe_script(page, _MICRO_SCROLL_JS, {"dy": self.rng.randint(1, 5)})

    async def _dismiss(self, page, template: PatternTemplate, ctx: DiscoveryContext) -> None:
        try:
            await dom.move_mouse(page, 10, 10)
        except (DomScriptError, DomTimeoutError):
            pass
        delay = template.dismiss_delay_ms
        if ctx.quirk.dismiss_delay_ms is not None:
            delay = max(delay, ctx.quirk.dismiss_delay_ms)
        if ctx.quirk.needs_mouse_off_between_hovers:
            delay = max(delay, ctx.quirk.mouse_off_delay_ms)
        await self.clock.sleep(delay)
