"""
DOM Request/Response Contract
=============================
Every read of page state is a *named*, serializable script submitted to
the browser driver together with a JSON argument; the page answers with
JSON.  Nothing here relies on closures or element handles living across
calls: elements are addressed by CSS paths that the scripts compute.

Responsibilities:
  1. **DomScript**      — a named script; the name is the contract key
  2. **run_script**     — submit a script and translate driver errors
  3. **safe_script**    — same, but selector/timeout failures become a default
  4. **hover / click / move_mouse / wait_for_selector / page_html**
                        — thin input wrappers with the same error mapping

Driver errors are mapped onto the engine taxonomy:

  ============================  ==========================
  Playwright                    Engine
  ============================  ==========================
  ``TimeoutError``              ``DomTimeoutError``
  target/page/browser closed    ``BrowserCrashedError``
  any other ``Error``           ``DomScriptError``
  ============================  ==========================
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from .errors import BrowserCrashedError, DomScriptError, DomTimeoutError

logger = logging.getLogger(__name__)

_CRASH_MARKERS = (
    'target closed',
    'has been closed',
    'target crashed',
    'page crashed',
    'browser closed',
    'connection closed',
)

# ---------------------------------------------------------------------------
# Helpers prepended to every script body
# ---------------------------------------------------------------------------
_JS_HELPERS = """
    const textOf = (el) => ((el.innerText || el.textContent || '') + '').replace(/\\s+/g, ' ').trim();
    const isVisible = (el) => {
        if (!el || !el.getBoundingClientRect) return false;
        const r = el.getBoundingClientRect();
        if (r.width <= 0 || r.height <= 0) return false;
        const s = window.getComputedStyle(el);
        return s.display !== 'none' && s.visibility !== 'hidden' && s.opacity !== '0';
    };
    const stepOf = (el) => {
        const tag = el.tagName.toLowerCase();
        const parent = el.parentElement;
        if (!parent) return tag;
        const same = Array.from(parent.children).filter(c => c.tagName === el.tagName);
        return same.length > 1 ? `${tag}:nth-of-type(${same.indexOf(el) + 1})` : tag;
    };
    const cssPath = (el) => {
        const parts = [];
        let node = el;
        while (node && node.nodeType === 1 && node !== document.documentElement) {
            if (node.id && document.querySelectorAll('#' + CSS.escape(node.id)).length === 1) {
                parts.unshift('#' + CSS.escape(node.id));
                return parts.join(' > ');
            }
            parts.unshift(stepOf(node));
            node = node.parentElement;
        }
        parts.unshift('html');
        return parts.join(' > ');
    };
    const relPath = (el, root) => {
        const parts = [];
        let node = el;
        while (node && node !== root && node.nodeType === 1) {
            parts.unshift(stepOf(node));
            node = node.parentElement;
        }
        return parts.join(' > ');
    };
    const firstMatch = (selector, scope) => {
        try { return (scope || document).querySelector(selector); } catch (e) { return null; }
    };
    const allMatches = (selector, scope) => {
        try { return Array.from((scope || document).querySelectorAll(selector)); } catch (e) { return []; }
    };
"""

_REGISTRY: Dict[str, "DomScript"] = {}
_BY_SOURCE: Dict[str, str] = {}


class DomScript:
    """A named page-side function ``(arg) => JSON``.

    Names are unique across the package; ``script_name`` maps a source
    back to its name so fakes can answer scripts without running them.
    """

    __slots__ = ('name', 'source')

    def __init__(self, name: str, body: str):
        if name in _REGISTRY:
            raise ValueError(f"duplicate DOM script name: {name}")
        self.name = name
        self.source = "(arg) => {\n" + _JS_HELPERS + body + "\n}"
        _REGISTRY[name] = self
        _BY_SOURCE[self.source] = name

    def __repr__(self) -> str:
        return f"DomScript({self.name!r})"


def script_name(source: str) -> Optional[str]:
    """Reverse lookup: the registered name for a script source."""
    return _BY_SOURCE.get(source)


def registered_scripts() -> Dict[str, DomScript]:
    return dict(_REGISTRY)


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------
def is_crash(exc: BaseException) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _CRASH_MARKERS)


def translate_error(operation: str, exc: Exception, timeout_ms: float = 0) -> Exception:
    """Map a driver exception onto the engine taxonomy."""
    if isinstance(exc, PlaywrightTimeout):
        return DomTimeoutError(operation, timeout_ms)
    if is_crash(exc):
        return BrowserCrashedError(f"{operation}: {exc}")
    return DomScriptError(operation, str(exc))


async def guarded(operation: str, awaitable: Awaitable, timeout_ms: float = 0) -> Any:
    try:
        return await awaitable
    except PlaywrightError as exc:
        raise translate_error(operation, exc, timeout_ms) from exc


# ---------------------------------------------------------------------------
# Script execution
# ---------------------------------------------------------------------------
async def run_script(page, script: DomScript, arg: Any = None) -> Any:
    """Evaluate *script* in *page* with *arg* and return its JSON result."""
    return await guarded(script.name, page.evaluate(script.source, arg))


async def safe_script(page, script: DomScript, arg: Any = None, default: Any = None) -> Any:
    """Like ``run_script`` but selector/timeout failures return *default*.

    ``BrowserCrashedError`` still propagates.
    """
    try:
        return await run_script(page, script, arg)
    except (DomScriptError, DomTimeoutError) as exc:
        logger.debug(f"  ✗ {script.name} failed: {exc}")
        return default


# ---------------------------------------------------------------------------
# Input and wait wrappers
# ---------------------------------------------------------------------------
async def hover(page, selector: str, timeout_ms: float) -> None:
    await guarded(f"hover {selector}", page.locator(selector).first.hover(timeout=timeout_ms), timeout_ms)


async def click(page, selector: str, timeout_ms: float) -> None:
    await guarded(f"click {selector}", page.locator(selector).first.click(timeout=timeout_ms), timeout_ms)


async def move_mouse(page, x: float, y: float, steps: int = 1) -> None:
    await guarded("mouse.move", page.mouse.move(x, y, steps=steps))


async def wait_for_selector(page, selector: str, timeout_ms: float) -> bool:
    """Wait until *selector* is attached.  False on timeout or bad selector."""
    try:
        await guarded(
            f"wait_for_selector {selector}",
            page.wait_for_selector(selector, timeout=timeout_ms, state='attached'),
            timeout_ms,
        )
        return True
    except (DomTimeoutError, DomScriptError):
        return False


async def wait_for_load_state(page, state: str, timeout_ms: float) -> bool:
    try:
        await guarded(f"load_state {state}", page.wait_for_load_state(state, timeout=timeout_ms), timeout_ms)
        return True
    except (DomTimeoutError, DomScriptError):
        return False


async def page_html(page) -> str:
    """Serialized DOM of the page as it is right now."""
    return await guarded("content", page.content())
