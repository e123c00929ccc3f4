"""
Tests for the viewport context manager.

Covers:
  1. ensure_desktop: isolated 1920x1080 context opened only when needed
     and closed on every exit path
  2. mobile_fallback: phone viewport, hamburger drawer, viewport restore
  3. Per-domain mobile profiles
"""

import asyncio

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from fakes import FakeBrowser, FakeClock, FakePage
from navdiscovery.errors import DomTimeoutError
from navdiscovery.models import ItemType
from navdiscovery.viewport import ViewportConfig, ViewportContextManager, mobile_profile_for


def _mobile_links(names):
    return [
        {"text": n, "href": f"https://www.example.com/{n.lower()}", "rawHref": f"/{n.lower()}",
         "selector": f"#mobile-nav a:nth-of-type({i})"}
        for i, n in enumerate(names, 1)
    ]


DEPARTMENTS = ["Women", "Men", "Kids", "Home", "Beauty", "Shoes", "Sale"]


# ====================================================================
# 1. Desktop context
# ====================================================================

class TestEnsureDesktop:
    """Scoped desktop context."""

    def test_wide_page_used_as_is(self):
        browser = FakeBrowser()
        page = FakePage(viewport={"width": 1440, "height": 900}, browser=browser)

        async def run():
            async with ViewportContextManager(clock=FakeClock()).ensure_desktop(page) as target:
                return target

        assert asyncio.run(run()) is page
        assert browser.contexts == []

    def test_narrow_page_gets_desktop_context(self):
        """New 1920x1080 context, same URL, closed after the block."""
        browser = FakeBrowser()
        page = FakePage(url="https://www.example.com/", viewport={"width": 800, "height": 600}, browser=browser)
        clock = FakeClock()

        async def run():
            async with ViewportContextManager(clock=clock).ensure_desktop(page) as target:
                return target, dict(target.viewport_size), browser.closed_contexts

        target, size, closed_inside = asyncio.run(run())
        assert target is not page
        assert size == {"width": 1920, "height": 1080}
        assert target.url == "https://www.example.com/"
        assert closed_inside == 0
        assert browser.closed_contexts == 1
        options = browser.contexts[0].options
        assert options["is_mobile"] is False
        assert "Windows NT" in options["user_agent"]
        assert clock.sleeps == [ViewportConfig().settle_ms]

    def test_context_closed_when_body_raises(self):
        """Context closes when the caller's block raises."""
        browser = FakeBrowser()
        page = FakePage(viewport={"width": 800, "height": 600}, browser=browser)

        async def run():
            async with ViewportContextManager(clock=FakeClock()).ensure_desktop(page):
                raise RuntimeError("strategy blew up")

        with pytest.raises(RuntimeError):
            asyncio.run(run())
        assert browser.closed_contexts == 1

    def test_context_closed_when_navigation_times_out(self):
        """Context closes when navigation times out."""
        def factory():
            p = FakePage()
            p.method_errors["goto"] = PlaywrightTimeout("Timeout 20000ms exceeded")
            return p

        browser = FakeBrowser(page_factory=factory)
        page = FakePage(viewport={"width": 800, "height": 600}, browser=browser)

        async def run():
            async with ViewportContextManager(clock=FakeClock()).ensure_desktop(page):
                pass

        with pytest.raises(DomTimeoutError):
            asyncio.run(run())
        assert browser.closed_contexts == 1

    def test_no_browser_handle(self):
        """Persistent contexts cannot spawn another; stay on the page."""
        page = FakePage(viewport={"width": 800, "height": 600})

        async def run():
            async with ViewportContextManager(clock=FakeClock()).ensure_desktop(page) as target:
                return target

        assert asyncio.run(run()) is page


# ====================================================================
# 2. Mobile fallback
# ====================================================================

class TestMobileFallback:
    """Phone viewport extraction."""

    def test_direct_links(self):
        """Seven department links in the phone viewport; desktop size restored."""
        page = FakePage()
        page.scripts["viewport.mobile_links"] = _mobile_links(DEPARTMENTS)
        result = asyncio.run(ViewportContextManager(clock=FakeClock()).mobile_fallback(page, "example.com"))
        assert result.strategy == "mobile_fallback"
        assert len(result.items) == 7
        assert all(i.type is ItemType.MOBILE_NAV for i in result.items)
        assert result.confidence == pytest.approx(0.8)
        assert result.metadata["viewport_size"] == {"width": 375, "height": 812}
        assert result.metadata["used_hamburger"] is False
        assert page.viewport_history[0] == {"width": 375, "height": 812}
        assert page.viewport_size == {"width": 1366, "height": 768}

    def test_hamburger_drawer(self):
        """Too few direct links, so the hamburger is opened."""
        page = FakePage()
        page.scripts["viewport.mobile_links"] = (
            lambda arg, p: _mobile_links(DEPARTMENTS if p.state.get("drawer") else DEPARTMENTS[:1])
        )
        page.scripts["viewport.hamburger"] = "#burger"
        page.click_effects["#burger"] = lambda p: p.state.update(drawer=True)
        result = asyncio.run(ViewportContextManager(clock=FakeClock()).mobile_fallback(page, "example.com"))
        assert result.metadata["used_hamburger"] is True
        assert len(result.items) == 7

    def test_too_few_links(self):
        page = FakePage()
        page.scripts["viewport.mobile_links"] = _mobile_links(DEPARTMENTS[:2])
        result = asyncio.run(ViewportContextManager(clock=FakeClock()).mobile_fallback(page, "example.com"))
        assert result.items == []
        assert result.reason == "mobile_fallback_failed"
        assert result.metadata["found"] == 2
        assert page.viewport_size == {"width": 1366, "height": 768}

    def test_profile_keyword_filter(self):
        """macys profile keeps department keywords only."""
        page = FakePage(url="https://www.macys.com/")
        page.scripts["viewport.mobile_links"] = _mobile_links(DEPARTMENTS + ["Lookbook", "Stories"])
        result = asyncio.run(ViewportContextManager(clock=FakeClock()).mobile_fallback(page))
        assert "Lookbook" not in [i.name for i in result.items]
        assert len(result.items) == 7


class TestProfiles:

    def test_lookup(self):
        assert mobile_profile_for("m.macys.com").max_items == 15
        assert mobile_profile_for("www.homedepot.com").max_top == 200
        assert mobile_profile_for("example.com").containers[0] == "#mobile-nav"
