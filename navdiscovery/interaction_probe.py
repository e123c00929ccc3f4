"""
Interaction Probe
=================
Hover → click → poll state machine run against one toggler at a time.

States and transitions::

    IDLE ──► HOVERING ──► POLLING_AFTER_HOVER ──► FOUND
      │          │ (hover failed)     │ (no panel)
      │          ▼                    ▼
      └────► CLICKING ◄───────────────┘   (skipped when hover_only)
                 │
                 ▼
         POLLING_AFTER_CLICK ──► FOUND | FAILED

``IDLE`` goes straight to ``CLICKING`` when the caller passes a learned
``preferred=CLICK``.  Polling walks a short list of cumulative
checkpoints (e.g. 120/260/400 ms) and stops at the first checkpoint where
a *newly* visible panel qualifies: visible, larger than the minimum size,
holding at least ``panel_min_links`` links, and not already open before
the probe began.

Every wait goes through an injected clock (``now()`` / ``sleep(ms)``), so
the timing is testable with a fake clock.  Probes are strictly
sequential: the pointer is moved away and a dismiss delay elapses before
the next toggler is touched.

This module does NOT own Playwright lifecycle or page navigation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Sequence, Set, Tuple

from . import dom
from .content_extractor import DROPDOWN_CONTAINER_SELECTORS, ContentExtractor
from .errors import BrowserCrashedError, DomScriptError, DomTimeoutError
from .models import InteractionMode, NavigationItem, Toggler
from .site_quirks import NO_QUIRK, SiteQuirk
from .utils import SystemClock

logger = logging.getLogger(__name__)


class ProbeState(str, Enum):
    IDLE = "idle"
    HOVERING = "hovering"
    POLLING_AFTER_HOVER = "polling_after_hover"
    CLICKING = "clicking"
    POLLING_AFTER_CLICK = "polling_after_click"
    FOUND = "found"
    FAILED = "failed"


_TERMINAL = (ProbeState.FOUND, ProbeState.FAILED)


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------
@dataclass
class ProbeConfig:
    hover_checkpoints_ms: Tuple[int, ...] = (120, 260, 400)
    click_checkpoints_ms: Tuple[int, ...] = (120, 240, 350)
    action_timeout_ms: int = 1500
    dismiss_delay_ms: int = 100
    dismiss_point: Tuple[int, int] = (10, 10)
    panel_min_width: int = 100
    panel_min_height: int = 50
    panel_min_links: int = 3
    panel_selectors: Tuple[str, ...] = DROPDOWN_CONTAINER_SELECTORS

    def with_quirk(self, quirk: SiteQuirk) -> "ProbeConfig":
        """Stretch the hover budget and dismiss delay for sites that need it."""
        cfg = self
        if quirk.hover_delay_ms and quirk.hover_delay_ms > self.hover_checkpoints_ms[-1]:
            cfg = replace(cfg, hover_checkpoints_ms=tuple(self.hover_checkpoints_ms) + (quirk.hover_delay_ms,))
        if quirk.dismiss_delay_ms is not None:
            cfg = replace(cfg, dismiss_delay_ms=quirk.dismiss_delay_ms)
        elif quirk.needs_mouse_off_between_hovers:
            cfg = replace(cfg, dismiss_delay_ms=max(self.dismiss_delay_ms, quirk.mouse_off_delay_ms))
        return cfg


@dataclass
class Panel:
    selector: str
    width: float = 0.0
    height: float = 0.0
    link_count: int = 0


@dataclass
class ProbeOutcome:
    """What one probe did.  An empty ``items`` list is a normal outcome."""
    trigger: str
    state: ProbeState = ProbeState.IDLE
    opened_via: Optional[InteractionMode] = None
    panels: List[str] = field(default_factory=list)
    items: List[NavigationItem] = field(default_factory=list)
    transitions: List[ProbeState] = field(default_factory=list)
    elapsed_ms: float = 0.0
    navigated_away: bool = False

    @property
    def found(self) -> bool:
        return self.state is ProbeState.FOUND


class InteractionModeTracker:
    """Per-run record of which interaction opened panels on this site."""

    def __init__(self, initial: Optional[str] = None):
        self._modes: Set[InteractionMode] = set()
        if initial in ("hover", "click"):
            self._modes.add(InteractionMode(initial))
        elif initial == "mixed":
            self._modes.update((InteractionMode.HOVER, InteractionMode.CLICK))

    def record(self, mode: Optional[InteractionMode]) -> None:
        if mode is not None:
            self._modes.add(mode)

    @property
    def site_mode(self) -> Optional[str]:
        """``hover`` | ``click`` | ``mixed`` | None (nothing learned yet)."""
        if not self._modes:
            return None
        if len(self._modes) > 1:
            return "mixed"
        return next(iter(self._modes)).value

    def preferred(self) -> Optional[InteractionMode]:
        mode = self.site_mode
        if mode == "click":
            return InteractionMode.CLICK
        if mode in ("hover", "mixed"):
            return InteractionMode.HOVER
        return None


_PANEL_FACTS_JS = dom.DomScript("probe.panels", """
    const seen = new Set();
    const out = [];
    for (const selector of arg.selectors) {
        for (const el of allMatches(selector)) {
            if (out.length >= arg.limit) return out;
            if (seen.has(el) || !isVisible(el)) continue;
            seen.add(el);
            const r = el.getBoundingClientRect();
            out.push({selector: cssPath(el), width: r.width, height: r.height,
                      linkCount: allMatches('a[href]', el).filter(isVisible).length});
        }
    }
    return out;
""")


def _strip_fragment(url: Optional[str]) -> str:
    return (url or "").split("#", 1)[0]


class InteractionProbe:
    """
    Usage::

        probe = InteractionProbe(ContentExtractor(), ProbeConfig(), quirk=quirk)
        outcome = await probe.probe(page, toggler, preferred=tracker.preferred())
        tracker.record(outcome.opened_via)
    """

    def __init__(
        self,
        extractor: Optional[ContentExtractor] = None,
        config: Optional[ProbeConfig] = None,
        *,
        clock=None,
        quirk: SiteQuirk = NO_QUIRK,
        mega_menu: bool = False,
        discovered_via: str = "",
    ):
        self.extractor = extractor or ContentExtractor()
        self.quirk = quirk
        self.config = (config or ProbeConfig()).with_quirk(quirk)
        self.clock = clock or SystemClock()
        self.mega_menu = mega_menu
        self.discovered_via = discovered_via

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------
    async def probe(
        self,
        page,
        toggler: Toggler,
        *,
        preferred: Optional[InteractionMode] = None,
        hover_only: bool = False,
    ) -> ProbeOutcome:
        started = self.clock.now()
        outcome = ProbeOutcome(trigger=toggler.text, transitions=[ProbeState.IDLE])
        preferred = toggler.preferred_interaction or preferred

        baseline = {p.selector for p in await self.visible_panels(page)}
        url_before = _strip_fragment(getattr(page, "url", ""))
        state = ProbeState.IDLE
        panels: List[Panel] = []

        while state not in _TERMINAL:
            if state is ProbeState.IDLE:
                if preferred is InteractionMode.CLICK and not hover_only:
                    state = ProbeState.CLICKING
                else:
                    state = ProbeState.HOVERING

            elif state is ProbeState.HOVERING:
                if await self._hover(page, toggler):
                    state = ProbeState.POLLING_AFTER_HOVER
                else:
                    state = ProbeState.FAILED if hover_only else ProbeState.CLICKING

            elif state is ProbeState.POLLING_AFTER_HOVER:
                panels = await self._poll(page, baseline, self.config.hover_checkpoints_ms)
                if panels:
                    outcome.opened_via = InteractionMode.HOVER
                    state = ProbeState.FOUND
                else:
                    state = ProbeState.FAILED if hover_only else ProbeState.CLICKING

            elif state is ProbeState.CLICKING:
                if await self._click(page, toggler):
                    state = ProbeState.POLLING_AFTER_CLICK
                else:
                    state = ProbeState.FAILED

            elif state is ProbeState.POLLING_AFTER_CLICK:
                if url_before and _strip_fragment(getattr(page, "url", "")) != url_before:
                    outcome.navigated_away = True
                    await self._go_back(page)
                    state = ProbeState.FAILED
                    continue
                panels = await self._poll(page, baseline, self.config.click_checkpoints_ms)
                if panels:
                    outcome.opened_via = InteractionMode.CLICK
                    state = ProbeState.FOUND
                else:
                    state = ProbeState.FAILED

            outcome.transitions.append(state)

        outcome.state = state
        if state is ProbeState.FOUND:
            outcome.panels = [p.selector for p in panels]
            extract = self.extractor.extract_mega_menu if self.mega_menu else self.extractor.extract_dropdown
            outcome.items = await extract(
                page, toggler.text, panels=outcome.panels, discovered_via=self.discovered_via
            )

        await self.dismiss(page, close_click_panel=outcome.opened_via is InteractionMode.CLICK)
        outcome.elapsed_ms = self.clock.now() - started
        logger.debug(
            f"  {'✓' if outcome.found else '✗'} [PROBE] '{toggler.text}' "
            f"{' → '.join(s.value for s in outcome.transitions)} "
            f"({len(outcome.items)} items, {outcome.elapsed_ms:.0f}ms)"
        )
        return outcome

    async def visible_panels(self, page) -> List[Panel]:
        arg = {"selectors": list(self.config.panel_selectors), "limit": 80}
        raw = await dom.safe_script(page, _PANEL_FACTS_JS, arg, default=[]) or []
        return [
            Panel(
                selector=p["selector"],
                width=p.get("width") or 0,
                height=p.get("height") or 0,
                link_count=p.get("linkCount") or 0,
            )
            for p in raw
        ]

    def qualifies(self, panel: Panel) -> bool:
        return (
            panel.width > self.config.panel_min_width
            and panel.height > self.config.panel_min_height
            and panel.link_count >= self.config.panel_min_links
        )

    async def dismiss(self, page, close_click_panel: bool = False) -> None:
        """Move the pointer away and let the panel close before the next probe."""
        try:
            if close_click_panel:
                await page.keyboard.press("Escape")
            x, y = self.config.dismiss_point
            await dom.move_mouse(page, x, y)
        except BrowserCrashedError:
            raise
        except Exception as exc:
            if dom.is_crash(exc):
                raise BrowserCrashedError(str(exc)) from exc
            logger.debug(f"  [PROBE] dismiss failed: {exc}")
        await self.clock.sleep(self.config.dismiss_delay_ms)

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------
    async def _poll(self, page, baseline: Set[str], checkpoints: Sequence[int]) -> List[Panel]:
        waited = 0
        for checkpoint in checkpoints:
            await self.clock.sleep(checkpoint - waited)
            waited = checkpoint
            fresh = [
                p for p in await self.visible_panels(page)
                if p.selector not in baseline and self.qualifies(p)
            ]
            if fresh:
                logger.debug(f"    panel after {checkpoint}ms: {fresh[0].selector}")
                return fresh
        return []

    async def _hover(self, page, toggler: Toggler) -> bool:
        if self.quirk.needs_mouse_off_between_hovers:
            try:
                x, y = self.config.dismiss_point
                await dom.move_mouse(page, x, y)
            except (DomScriptError, DomTimeoutError):
                pass
            await self.clock.sleep(self.quirk.mouse_off_delay_ms)
        try:
            await dom.hover(page, toggler.selector, self.config.action_timeout_ms)
            return True
        except (DomScriptError, DomTimeoutError) as exc:
            logger.debug(f"    hover failed on '{toggler.text}': {exc}")
            return False

    async def _click(self, page, toggler: Toggler) -> bool:
        try:
            await dom.click(page, toggler.selector, self.config.action_timeout_ms)
            return True
        except (DomScriptError, DomTimeoutError) as exc:
            logger.debug(f"    click failed on '{toggler.text}': {exc}")
            return False

    async def _go_back(self, page) -> None:
        try:
            await page.go_back(wait_until="domcontentloaded", timeout=self.config.action_timeout_ms * 4)
        except Exception as exc:
            if dom.is_crash(exc):
                raise BrowserCrashedError(str(exc)) from exc
            logger.debug(f"    go_back after accidental navigation failed: {exc}")
