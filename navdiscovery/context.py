"""
Per-run discovery context and the shared components handed to every strategy.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

from .confidence import ConfidenceScorer
from .content_extractor import ContentExtractor
from .header_locator import HeaderLocator
from .models import Hint
from .patterns import PatternLibrary
from .site_quirks import NO_QUIRK, SiteQuirk
from .trigger_discovery import TriggerDiscoverer
from .utils import SystemClock
from .viewport import ViewportContextManager


@dataclass
class DiscoveryContext:
    """Everything a strategy may read about the current run.

    ``page`` is owned by the caller.  ``hints`` is the cached hint for the
    domain, or None.  ``deadline_ms`` is on ``clock``'s timescale.
    """
    page: Any
    url: str
    domain: str
    hints: Optional[Hint] = None
    quirk: SiteQuirk = NO_QUIRK
    clock: Any = field(default_factory=SystemClock)
    deadline_ms: Optional[float] = None
    cancel_event: Optional[asyncio.Event] = None

    def should_stop(self) -> bool:
        """True once the caller cancelled or the run deadline passed."""
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.deadline_ms is not None and self.clock.now() >= self.deadline_ms

    def remaining_ms(self) -> Optional[float]:
        if self.deadline_ms is None:
            return None
        return max(0.0, self.deadline_ms - self.clock.now())

    def with_page(self, page) -> "DiscoveryContext":
        """Same run, different page (desktop context)."""
        return DiscoveryContext(
            page=page,
            url=self.url,
            domain=self.domain,
            hints=self.hints,
            quirk=self.quirk,
            clock=self.clock,
            deadline_ms=self.deadline_ms,
            cancel_event=self.cancel_event,
        )


@dataclass
class DiscoveryToolkit:
    """Run-independent components built once from a ``DiscoveryRunConfig``.

    Strategy factories take ``(config, toolkit)``; tests swap single
    members (usually ``clock``) without rebuilding the rest.
    """
    config: Any
    scorer: ConfidenceScorer
    patterns: PatternLibrary
    header_locator: HeaderLocator
    trigger_discoverer: TriggerDiscoverer
    extractor: ContentExtractor
    viewport: ViewportContextManager
    clock: Any

    @classmethod
    def from_config(cls, config, *, patterns: Optional[PatternLibrary] = None, clock=None) -> "DiscoveryToolkit":
        clock = clock or SystemClock()
        scorer = ConfidenceScorer(config.to_confidence_config())
        if patterns is None:
            patterns = PatternLibrary.from_json(config.patterns_path) if config.patterns_path else PatternLibrary()
        return cls(
            config=config,
            scorer=scorer,
            patterns=patterns,
            header_locator=HeaderLocator(config.to_header_config()),
            trigger_discoverer=TriggerDiscoverer(config.to_trigger_config()),
            extractor=ContentExtractor(),
            viewport=ViewportContextManager(config.to_viewport_config(), scorer=scorer, clock=clock),
            clock=clock,
        )
