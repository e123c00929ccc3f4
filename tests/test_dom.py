"""
Tests for the DOM request/response contract.

Covers:
  1. Script registry (unique names, reverse lookup)
  2. Driver error mapping onto the engine taxonomy
  3. safe_script / wait_for_selector degrade, crashes still propagate
"""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from fakes import FakePage
from navdiscovery import dom
from navdiscovery.errors import BrowserCrashedError, DomScriptError, DomTimeoutError


class TestRegistry:
    """Named DOM scripts."""

    def test_names_are_unique(self):
        with pytest.raises(ValueError):
            dom.DomScript("header.facts", "return 1;")

    def test_reverse_lookup(self):
        """Fakes resolve the evaluated source back to the script name."""
        scripts = dom.registered_scripts()
        assert {"header.facts", "trigger.facts", "probe.panels", "extract.panel_links"} <= set(scripts)
        for name, script in scripts.items():
            assert dom.script_name(script.source) == name
        assert dom.script_name("() => 1") is None

    def test_source_is_a_single_arg_function(self):
        source = dom.registered_scripts()["probe.panels"].source
        assert source.startswith("(arg) => {")
        assert "const cssPath" in source


class TestErrorMapping:
    """Playwright errors are translated to the engine taxonomy."""

    def test_timeout(self):
        err = dom.translate_error("hover #x", PlaywrightTimeout("Timeout 1500ms exceeded"), 1500)
        assert isinstance(err, DomTimeoutError)
        assert err.timeout_ms == 1500

    def test_crash(self):
        """Closed/crashed targets become BrowserCrashedError."""
        err = dom.translate_error("evaluate", PlaywrightError("Target page, context or browser has been closed"))
        assert isinstance(err, BrowserCrashedError)

    def test_other_errors(self):
        err = dom.translate_error("evaluate", PlaywrightError("SyntaxError: bad selector"))
        assert isinstance(err, DomScriptError)

    def test_run_script_maps_errors(self):
        page = FakePage()
        page.scripts["header.facts"] = PlaywrightError("Execution context was destroyed")
        script = dom.registered_scripts()["header.facts"]
        with pytest.raises(DomScriptError):
            asyncio.run(dom.run_script(page, script, {}))


class TestDegrade:
    """Best-effort helpers return defaults instead of raising."""

    def test_safe_script_returns_default(self):
        page = FakePage()
        page.scripts["probe.panels"] = PlaywrightTimeout("Timeout")
        script = dom.registered_scripts()["probe.panels"]
        assert asyncio.run(dom.safe_script(page, script, {}, default=[])) == []

    def test_safe_script_propagates_crash(self):
        """Crashes are never defaulted away."""
        page = FakePage()
        page.crashed = True
        script = dom.registered_scripts()["probe.panels"]
        with pytest.raises(BrowserCrashedError):
            asyncio.run(dom.safe_script(page, script, {}, default=[]))

    def test_wait_for_selector(self):
        """Timeout means False, not an exception."""
        page = FakePage()
        page.absent_selectors.add("li.missing")
        assert asyncio.run(dom.wait_for_selector(page, "li.present", 100)) is True
        assert asyncio.run(dom.wait_for_selector(page, "li.missing", 100)) is False

    def test_page_html_error(self):
        page = FakePage()
        page.method_errors["content"] = PlaywrightError("Unable to retrieve content")
        with pytest.raises(DomScriptError):
            asyncio.run(dom.page_html(page))
