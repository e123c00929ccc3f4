"""
Viewport Context Manager
========================
Two viewport-dependent paths:

  - **ensure_desktop**   — mega-menus usually collapse into a hamburger below
    ~1200px.  When the current page is narrower, an isolated desktop
    context (1920×1080, desktop user agent) is opened on the same URL for
    the duration of an ``async with`` block and closed on every exit path.
  - **mobile_fallback**  — switch the existing page to a phone viewport, read
    known mobile-nav containers directly and, if that yields too little,
    open the hamburger drawer and read it.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from . import dom
from .confidence import ConfidenceScorer
from .content_extractor import should_skip_link
from .errors import BrowserCrashedError, DomScriptError, DomTimeoutError
from .keywords import DEPARTMENT_KEYWORDS
from .models import ItemType, NavigationItem, StrategyResult, dedupe_items
from .utils import SystemClock, clean_text, extract_domain, matches_keyword, parent_domains

logger = logging.getLogger(__name__)

STRATEGY_NAME = "mobile_fallback"


@dataclass
class ViewportConfig:
    desktop_cutoff_px: int = 1200
    desktop_width: int = 1920
    desktop_height: int = 1080
    desktop_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
    )
    mobile_width: int = 375
    mobile_height: int = 812
    navigation_timeout_ms: int = 20000
    settle_ms: int = 3000
    hamburger_wait_ms: int = 500
    min_items: int = 5


@dataclass(frozen=True)
class MobileNavProfile:
    containers: Tuple[str, ...]
    keywords: Optional[Tuple[str, ...]] = None
    min_len: int = 2
    max_len: int = 40
    max_top: Optional[int] = None
    max_items: int = 40


GENERIC_MOBILE_PROFILE = MobileNavProfile(
    containers=('#mobile-nav', '.mobile-nav', '.mobile-menu', 'nav', '[role="navigation"]', 'header'),
)

MOBILE_NAV_PROFILES: Dict[str, MobileNavProfile] = {
    'macys.com': MobileNavProfile(
        containers=('#mobile-nav', 'nav'),
        keywords=tuple(sorted(DEPARTMENT_KEYWORDS)),
        min_len=3, max_len=30, max_items=15,
    ),
    'homedepot.com': MobileNavProfile(containers=('header', 'nav', '[class*="nav"]'), max_top=200),
    'lowes.com': MobileNavProfile(containers=('header', 'nav', '[class*="nav"]'), max_top=200),
    'amazon.com': MobileNavProfile(containers=('#nav-main', 'header', 'nav'), max_top=300),
    'bestbuy.com': MobileNavProfile(containers=('header', 'nav', '[class*="nav"]'), max_top=300),
}

HAMBURGER_SELECTORS: Tuple[str, ...] = (
    'button[aria-label*="menu" i]',
    '[aria-label*="navigation" i]',
    '.hamburger',
    '.menu-toggle',
    '[class*="hamburger"]',
    '[class*="mobile-menu"]',
)

DRAWER_CONTAINERS: Tuple[str, ...] = (
    '.mobile-menu',
    '#mobile-nav',
    '.mobile-nav',
    '.off-canvas',
    '.sidebar-menu',
    '[class*="drawer"]',
    '[class*="mobile"]',
)

_MOBILE_LINKS_JS = dom.DomScript("viewport.mobile_links", """
    const out = [];
    const seen = new Set();
    for (const selector of arg.containers) {
        for (const container of allMatches(selector)) {
            if (!isVisible(container)) continue;
            for (const a of allMatches('a[href]', container)) {
                if (out.length >= arg.limit) return out;
                if (seen.has(a) || !isVisible(a)) continue;
                seen.add(a);
                const r = a.getBoundingClientRect();
                if (arg.maxTop !== null && r.top > arg.maxTop) continue;
                out.push({text: textOf(a), href: a.href, rawHref: a.getAttribute('href'), selector: cssPath(a)});
            }
        }
    }
    return out;
""")

_HAMBURGER_JS = dom.DomScript("viewport.hamburger", """
    for (const selector of arg.selectors) {
        for (const el of allMatches(selector)) {
            if (isVisible(el)) return cssPath(el);
        }
    }
    return null;
""")


def mobile_profile_for(domain: str) -> MobileNavProfile:
    for candidate in parent_domains(extract_domain(domain)):
        if candidate in MOBILE_NAV_PROFILES:
            return MOBILE_NAV_PROFILES[candidate]
    return GENERIC_MOBILE_PROFILE


class ViewportContextManager:

    def __init__(self, config: Optional[ViewportConfig] = None, *, scorer: Optional[ConfidenceScorer] = None, clock=None):
        self.config = config or ViewportConfig()
        self.scorer = scorer or ConfidenceScorer()
        self.clock = clock or SystemClock()

    # -----------------------------------------------------------------------
    # Desktop context
    # -----------------------------------------------------------------------
    def needs_desktop(self, page) -> bool:
        size = page.viewport_size
        return bool(size) and size.get("width", 0) < self.config.desktop_cutoff_px

    @asynccontextmanager
    async def ensure_desktop(self, page, url: Optional[str] = None) -> AsyncIterator[Any]:
        """Yield a page with a desktop viewport; close any context opened for it.

        Yields *page* itself when it is already wide enough.
        """
        if not self.needs_desktop(page):
            yield page
            return

        browser = page.context.browser
        if browser is None:
            logger.warning("[VIEWPORT] persistent context has no browser handle; staying on the narrow page")
            yield page
            return

        cfg = self.config
        logger.info(
            f"[VIEWPORT] viewport {page.viewport_size.get('width')}px < {cfg.desktop_cutoff_px}px, "
            f"opening {cfg.desktop_width}x{cfg.desktop_height} desktop context"
        )
        context = None
        try:
            context = await browser.new_context(
                viewport={"width": cfg.desktop_width, "height": cfg.desktop_height},
                user_agent=cfg.desktop_user_agent,
                is_mobile=False,
                has_touch=False,
                device_scale_factor=1,
            )
            desktop_page = await context.new_page()
            target = url or page.url
            await dom.guarded(
                f"goto {target}",
                desktop_page.goto(target, wait_until="domcontentloaded", timeout=cfg.navigation_timeout_ms),
                cfg.navigation_timeout_ms,
            )
            await self.clock.sleep(cfg.settle_ms)
            yield desktop_page
        except Exception as exc:
            if dom.is_crash(exc) and not isinstance(exc, BrowserCrashedError):
                raise BrowserCrashedError(str(exc)) from exc
            raise
        finally:
            if context is not None:
                try:
                    await context.close()
                except Exception as exc:
                    logger.debug(f"[VIEWPORT] desktop context close failed: {exc}")

    # -----------------------------------------------------------------------
    # Mobile fallback
    # -----------------------------------------------------------------------
    async def mobile_fallback(self, page, domain: Optional[str] = None) -> StrategyResult:
        """Phone-viewport extraction; the original viewport is restored afterwards."""
        cfg = self.config
        domain = domain or extract_domain(page.url)
        profile = mobile_profile_for(domain)
        original = page.viewport_size
        used_hamburger = False
        try:
            await dom.guarded(
                "set_viewport_size",
                page.set_viewport_size({"width": cfg.mobile_width, "height": cfg.mobile_height}),
            )
            await self.clock.sleep(cfg.hamburger_wait_ms)

            items = await self._read_links(page, profile)
            if len(items) < cfg.min_items:
                hamburger = await dom.safe_script(
                    page, _HAMBURGER_JS, {"selectors": list(HAMBURGER_SELECTORS)}
                )
                if hamburger:
                    try:
                        await dom.click(page, hamburger, 1500)
                        used_hamburger = True
                        await self.clock.sleep(cfg.hamburger_wait_ms)
                        drawer = MobileNavProfile(containers=DRAWER_CONTAINERS, max_items=60)
                        drawer_items = await self._read_links(page, drawer)
                        if len(drawer_items) > len(items):
                            items = drawer_items
                    except (DomScriptError, DomTimeoutError) as exc:
                        logger.debug(f"[MOBILE] hamburger click failed: {exc}")
        except (DomScriptError, DomTimeoutError) as exc:
            logger.debug(f"[MOBILE] mobile fallback aborted: {exc}")
            return StrategyResult.empty(STRATEGY_NAME, "mobile_fallback_failed", error=str(exc))
        finally:
            if original:
                try:
                    await page.set_viewport_size(original)
                except Exception as exc:
                    logger.debug(f"[MOBILE] viewport restore failed: {exc}")

        metadata = {
            "viewport_size": {"width": cfg.mobile_width, "height": cfg.mobile_height},
            "used_hamburger": used_hamburger,
        }
        if len(items) < cfg.min_items:
            return StrategyResult.empty(STRATEGY_NAME, "mobile_fallback_failed", found=len(items), **metadata)
        return StrategyResult(
            strategy=STRATEGY_NAME,
            items=items,
            confidence=self.scorer.mobile_score(len(items), cfg.min_items),
            metadata=metadata,
        )

    async def _read_links(self, page, profile: MobileNavProfile) -> List[NavigationItem]:
        arg = {"containers": list(profile.containers), "maxTop": profile.max_top, "limit": profile.max_items * 4}
        links = await dom.safe_script(page, _MOBILE_LINKS_JS, arg, default=[]) or []
        items: List[NavigationItem] = []
        for link in links:
            text = clean_text(link.get("text") or "")
            if not (profile.min_len <= len(text) <= profile.max_len):
                continue
            if profile.keywords and not matches_keyword(text, profile.keywords):
                continue
            if should_skip_link(text, link.get("href"), link.get("rawHref")):
                continue
            items.append(NavigationItem(
                name=text,
                url=link.get("href"),
                selector=link.get("selector"),
                type=ItemType.MOBILE_NAV,
                hierarchy_level=1,
                discovered_via=STRATEGY_NAME,
            ))
            if len(items) >= profile.max_items:
                break
        return dedupe_items(items)
