"""
Tests for mega-menu capture.

Covers:
  1. Trigger text filter and hint ordering
  2. Wide page captured in place, columns become hierarchy
  3. Narrow page captured through a desktop context that is always closed
  4. Desktop navigation timeout and missing triggers
"""

import asyncio

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from fakes import FakeBrowser, FakeClock, FakePage, menu_page, toggler_facts
from navdiscovery.context import DiscoveryContext
from navdiscovery.header_locator import HeaderLocator
from navdiscovery.models import Hint, Toggler
from navdiscovery.strategies.mega_menu import MegaMenuStrategy, is_mega_menu_trigger, order_by_hint
from navdiscovery.trigger_discovery import TriggerDiscoverer
from navdiscovery.viewport import ViewportContextManager

MENUS = [("Women", 4), ("Men", 4), ("Kids", 4)]


def _strategy(clock):
    return MegaMenuStrategy(
        HeaderLocator(), TriggerDiscoverer(), ViewportContextManager(clock=clock), clock=clock,
    )


def _ctx(page, clock, hints=None):
    return DiscoveryContext(page=page, url=page.url, domain="example.com", hints=hints, clock=clock)


# ====================================================================
# 1. Helpers
# ====================================================================

class TestTriggerFilter:
    """Mega-menu trigger text rules."""

    @pytest.mark.parametrize("text", ["Women", "Home & Kitchen", "Kids' Shoes", "Men"])
    def test_accepts(self, text):
        assert is_mega_menu_trigger(text)

    @pytest.mark.parametrize("text", ["TV", "Top 100", "Sign In", "Gift Cards", "Find Stores", "A" * 26])
    def test_rejects(self, text):
        assert not is_mega_menu_trigger(text)

    def test_order_by_hint(self):
        """Hinted triggers first in hint order, the rest keep theirs."""
        togglers = [Toggler(text=t, selector=t, relative_selector=t) for t in ("Women", "Men", "Kids", "Home")]
        ordered = order_by_hint(togglers, ["Kids", "women"])
        assert [t.text for t in ordered] == ["Kids", "Women", "Men", "Home"]


# ====================================================================
# 2. Wide page
# ====================================================================

class TestWidePage:
    """Capture on a page already at desktop width."""

    def test_columns_captured(self):
        """Two columns per panel count as multi-level structure."""
        clock = FakeClock()
        page = menu_page(MENUS, columns=True)
        result = asyncio.run(_strategy(clock).discover(_ctx(page, clock)))
        assert len(result.items) == 15
        assert result.metadata["used_desktop_context"] is False
        assert result.metadata["viewport_size"] == {"width": 1366, "height": 768}
        assert result.metadata["menus_captured"] == 3
        assert {i.metadata.get("group") for i in result.items[1:5]} == {"Women Featured", "Women More"}
        # 0.3 * 15/50 + 0.6 + 0.1
        assert result.confidence == pytest.approx(0.79)
        assert result.hints.panel_strategy == "mega_menu"
        assert result.hints.successful_triggers == ["Women", "Men", "Kids"]

    def test_hinted_triggers_first(self):
        clock = FakeClock()
        page = menu_page(MENUS)
        asyncio.run(_strategy(clock).discover(_ctx(page, clock, hints=Hint(successful_triggers=["Kids"]))))
        assert page.actions("hover")[0] == "#site-header > nav > ul > li:nth-of-type(3) > a"

    def test_no_qualifying_triggers(self):
        """Digits in trigger text rule it out."""
        clock = FakeClock()
        page = menu_page(MENUS)
        page.scripts["trigger.facts"] = {
            "rootFound": True,
            "cached": [],
            "candidates": [toggler_facts(t, i, hasPopup=True) for i, t in enumerate(["Deals 2024", "Top 100"], 1)],
        }
        result = asyncio.run(_strategy(clock).discover(_ctx(page, clock)))
        assert result.reason == "no_mega_menu_triggers"
        assert result.metadata["header"] == "#site-header"


# ====================================================================
# 3-4. Desktop context
# ====================================================================

class TestDesktopContext:
    """Narrow pages are captured in an isolated 1920x1080 context."""

    def test_narrow_page_uses_isolated_context(self):
        """Result reports the desktop size; context closed; original page untouched."""
        clock = FakeClock()
        browser = FakeBrowser(page_factory=lambda: menu_page(MENUS, columns=True))
        page = FakePage(viewport={"width": 800, "height": 600}, browser=browser)
        result = asyncio.run(_strategy(clock).discover(_ctx(page, clock)))
        assert len(result.items) == 15
        assert result.metadata["used_desktop_context"] is True
        assert result.metadata["viewport_size"] == {"width": 1920, "height": 1080}
        assert browser.closed_contexts == 1
        assert page.log == []

    def test_navigation_timeout(self):
        """Desktop page never loads: empty result, context still closed."""
        clock = FakeClock()

        def factory():
            p = menu_page(MENUS)
            p.method_errors["goto"] = PlaywrightTimeout("Timeout 20000ms exceeded")
            return p

        browser = FakeBrowser(page_factory=factory)
        page = FakePage(viewport={"width": 800, "height": 600}, browser=browser)
        result = asyncio.run(_strategy(clock).discover(_ctx(page, clock)))
        assert result.items == []
        assert result.reason == "desktop_context_timeout"
        assert browser.closed_contexts == 1
