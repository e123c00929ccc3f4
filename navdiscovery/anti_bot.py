"""
Anti-Bot Behaviour Simulation
=============================
Human-like pointer and scroll activity for domains that score sessions
for automation before serving their navigation.

``simulate`` is a no-op for domains outside the watch-list.  For listed
domains it runs one bounded sequence:

  1. wait (best effort) for ``domcontentloaded``
  2. random pause, random pointer move
  3. scroll down by a random amount, then back to the top
  4. brief hovers over up to 3 clickable elements near the top
  5. park the pointer over the header area

Nothing here may fail the run: every step is best effort.
"""

from __future__ import annotations

import logging
import random
from typing import Iterable, Optional

from . import dom
from .errors import BrowserCrashedError
from .utils import SystemClock, extract_domain, parent_domains

logger = logging.getLogger(__name__)

_TOP_CLICKABLES_JS = dom.DomScript("anti_bot.top_clickables", """
    const out = [];
    for (const el of allMatches('a[href], button, [role="button"]')) {
        if (out.length >= arg.limit) break;
        if (!isVisible(el)) continue;
        const r = el.getBoundingClientRect();
        if (r.top < 0 || r.top > arg.maxTop) continue;
        out.push({x: r.left + r.width / 2, y: r.top + r.height / 2});
    }
    return out;
""")

_SCROLL_JS = dom.DomScript("anti_bot.scroll", """
    window.scrollBy(0, arg.dy);
    return window.scrollY;
""")

_SCROLL_TOP_JS = dom.DomScript("anti_bot.scroll_top", """
    window.scrollTo(0, 0);
    return 0;
""")


class AntiBotSimulator:

    def __init__(
        self,
        watch_list: Iterable[str] = (),
        *,
        rng: Optional[random.Random] = None,
        clock=None,
        load_timeout_ms: int = 10000,
        max_hovers: int = 3,
        hover_max_top: int = 300,
    ):
        self.watch_list = frozenset(extract_domain(d) for d in watch_list)
        self.rng = rng or random.Random()
        self.clock = clock or SystemClock()
        self.load_timeout_ms = load_timeout_ms
        self.max_hovers = max_hovers
        self.hover_max_top = hover_max_top

    def is_watched(self, domain: str) -> bool:
        return any(d in self.watch_list for d in parent_domains(extract_domain(domain)))

    async def simulate(self, page, domain: str) -> bool:
        """Run the sequence for watched domains.  Returns True if it ran to the end."""
        if not self.is_watched(domain):
            return False
        logger.debug(f"[ANTI-BOT] simulating human activity on {domain}")
        try:
            await dom.wait_for_load_state(page, "domcontentloaded", self.load_timeout_ms)
            await self.clock.sleep(self.rng.uniform(500, 1300))

            viewport = page.viewport_size or {"width": 1280, "height": 800}
            await dom.move_mouse(
                page,
                self.rng.uniform(100, viewport["width"] - 100),
                self.rng.uniform(100, min(600, viewport["height"] - 50)),
                steps=self.rng.randint(5, 15),
            )
            await self.clock.sleep(self.rng.uniform(200, 500))

            await dom.run_script(page, _SCROLL_JS, {"dy": self.rng.randint(200, 600)})
            await self.clock.sleep(self.rng.uniform(400, 900))
            await dom.run_script(page, _SCROLL_TOP_JS)
            await self.clock.sleep(self.rng.uniform(300, 600))

            points = await dom.run_script(
                page, _TOP_CLICKABLES_JS, {"limit": self.max_hovers, "maxTop": self.hover_max_top}
            ) or []
            for point in points[: self.max_hovers]:
                await dom.move_mouse(page, point["x"], point["y"], steps=self.rng.randint(3, 8))
                await self.clock.sleep(self.rng.uniform(150, 400))

            await dom.move_mouse(page, viewport["width"] / 2, self.rng.uniform(40, 120), steps=5)
            return True
        except BrowserCrashedError:
            raise
        except Exception as exc:
            logger.debug(f"[ANTI-BOT] sequence interrupted on {domain}: {exc}")
            return False
