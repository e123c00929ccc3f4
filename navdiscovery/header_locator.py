"""
Header Locator
==============
Finds and ranks the containers most likely to hold a site's primary
navigation.

Responsibilities:
  1. **collect facts** — one DOM round trip returns geometry, link texts and
     styling hints for every element matching the header selector catalogue
  2. **gate_failure**  — the validation gate (all clauses must pass)
  3. **score_header**  — additive ranking score
  4. **locate**        — cached selector short-circuit, else rank candidates
  5. **diagnose**      — explain an empty result (counts + rejected candidates)

The gate and the score are plain Python over the returned facts, so they
are testable without a browser.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from . import dom
from .keywords import UTILITY_KEYWORDS
from .models import Bounds, HeaderCandidate, Source
from .utils import contains_keyword

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Selector catalogue, most specific first
# ---------------------------------------------------------------------------
DEFAULT_HEADER_SELECTORS: Tuple[str, ...] = (
    'header nav',
    'nav[role="navigation"]',
    '[role="navigation"]',
    'nav',
    'header',
    '#header',
    '.header',
    '.site-header',
    '.main-nav',
    '.main-navigation',
    '.primary-nav',
    '.navbar',
    '#mobile-nav',
    '[class*="nav"]',
    '[class*="menu"]',
    '[id*="nav"]',
    'div',
    'section',
)

_NAV_CLASS_HINTS = ('nav', 'header', 'menu')


@dataclass
class HeaderConfig:
    top_cutoff_px: int = 300
    min_width_ratio: float = 0.2
    utility_sample_size: int = 20
    utility_max_ratio: float = 0.8
    max_candidates: int = 3
    selectors: Tuple[str, ...] = DEFAULT_HEADER_SELECTORS
    scan_limit: int = 150


# ---------------------------------------------------------------------------
# DOM scripts
# ---------------------------------------------------------------------------
_HEADER_FACTS_JS = dom.DomScript("header.facts", """
    const factsFor = (el, matchedBy) => {
        const r = el.getBoundingClientRect();
        const s = window.getComputedStyle(el);
        const links = allMatches('a', el);
        return {
            selector: cssPath(el),
            matchedBy: matchedBy,
            tag: el.tagName.toLowerCase(),
            top: r.top,
            width: r.width,
            height: r.height,
            viewportWidth: window.innerWidth,
            interactiveCount: allMatches('a, button', el).length,
            linkTexts: links.slice(0, arg.sample).map(a => textOf(a)),
            position: s.position,
            role: el.getAttribute('role') || '',
            className: ((typeof el.className === 'string') ? el.className : '') + ' ' + (el.id || ''),
        };
    };
    let cached = null;
    if (arg.cached) {
        const el = firstMatch(arg.cached);
        cached = el ? factsFor(el, arg.cached) : null;
    }
    const seen = new Set();
    const candidates = [];
    for (const selector of arg.selectors) {
        for (const el of allMatches(selector)) {
            if (candidates.length >= arg.limit) break;
            if (seen.has(el)) continue;
            seen.add(el);
            const r = el.getBoundingClientRect();
            if (r.width <= 0 || r.height <= 0 || r.top > arg.scanTop) continue;
            if ((selector === 'div' || selector === 'section') && !el.querySelector('a')) continue;
            candidates.push(factsFor(el, selector));
        }
    }
    return {cached: cached, candidates: candidates};
""")

_NAV_COUNTS_JS = dom.DomScript("header.nav_counts", """
    const out = {};
    for (const selector of arg.selectors) out[selector] = allMatches(selector).length;
    return out;
""")

_DIAGNOSTIC_SELECTORS = ('header', 'nav', '[role="navigation"]', '[class*="nav"]', '[class*="menu"]')


# ---------------------------------------------------------------------------
# Gate and score
# ---------------------------------------------------------------------------
def utility_ratio(link_texts: List[str]) -> float:
    texts = [t for t in link_texts if t]
    if not texts:
        return 0.0
    hits = sum(1 for t in texts if contains_keyword(t, UTILITY_KEYWORDS))
    return hits / len(texts)


def gate_failure(facts: Dict[str, Any], config: HeaderConfig) -> Optional[str]:
    """Name of the first failing gate clause, or None when the candidate passes."""
    width = facts.get('width') or 0
    height = facts.get('height') or 0
    if width <= 0 or height <= 0:
        return 'zero_size'
    if (facts.get('top') or 0) > config.top_cutoff_px:
        return 'below_cutoff'
    viewport_width = facts.get('viewportWidth') or 0
    if viewport_width and width < viewport_width * config.min_width_ratio:
        return 'too_narrow'
    if (facts.get('interactiveCount') or 0) < 1:
        return 'no_interactive'
    sample = (facts.get('linkTexts') or [])[: config.utility_sample_size]
    if utility_ratio(sample) > config.utility_max_ratio:
        return 'utility_dominated'
    return None


def score_header(facts: Dict[str, Any]) -> float:
    """Additive ranking score; only the ordering matters."""
    score = 0.0
    top = facts.get('top') or 0
    if top <= 100:
        score += 3
    elif top <= 220:
        score += 2

    viewport_width = facts.get('viewportWidth') or 0
    if viewport_width:
        ratio = (facts.get('width') or 0) / viewport_width
        if ratio >= 0.8:
            score += 2
        elif ratio >= 0.6:
            score += 1

    interactive = facts.get('interactiveCount') or 0
    if interactive >= 8:
        score += 2
    elif interactive >= 5:
        score += 1
    elif interactive >= 2:
        score += 0.5

    if facts.get('position') in ('fixed', 'sticky'):
        score += 1
    if (facts.get('role') or '').lower() == 'navigation':
        score += 1
    hint_text = f"{facts.get('tag', '')} {facts.get('className', '')}".lower()
    if any(h in hint_text for h in _NAV_CLASS_HINTS):
        score += 0.5
    return score


def _candidate(facts: Dict[str, Any], source: Source) -> HeaderCandidate:
    tag = facts.get('tag') or ''
    return HeaderCandidate(
        selector=facts['selector'],
        source=source,
        score=score_header(facts),
        bounds=Bounds(top=facts.get('top') or 0, width=facts.get('width') or 0, height=facts.get('height') or 0),
        matched_by=facts.get('matchedBy'),
        link_count=facts.get('interactiveCount') or 0,
        is_nav_container=tag in ('nav', 'header') or (facts.get('role') or '').lower() == 'navigation',
    )


class HeaderLocator:

    def __init__(self, config: Optional[HeaderConfig] = None):
        self.config = config or HeaderConfig()

    async def _facts(self, page, cached_selector: Optional[str]) -> Dict[str, Any]:
        arg = {
            'cached': cached_selector,
            'selectors': list(self.config.selectors),
            'sample': self.config.utility_sample_size,
            'limit': self.config.scan_limit,
            'scanTop': self.config.top_cutoff_px * 2,
        }
        return await dom.safe_script(page, _HEADER_FACTS_JS, arg, default={}) or {}

    async def locate(self, page, cached_selector: Optional[str] = None) -> List[HeaderCandidate]:
        """Ranked candidates (best first); empty when nothing passes the gate."""
        data = await self._facts(page, cached_selector)

        cached = data.get('cached')
        if cached_selector and cached:
            failure = gate_failure(cached, self.config)
            if failure is None:
                logger.debug(f"[HEADER] ✓ cached selector still valid: {cached_selector}")
                return [_candidate(cached, Source.CACHE)]
            logger.debug(f"[HEADER] ✗ cached selector rejected ({failure}): {cached_selector}")

        passed: List[HeaderCandidate] = []
        for facts in data.get('candidates') or []:
            failure = gate_failure(facts, self.config)
            if failure:
                continue
            passed.append(_candidate(facts, Source.DISCOVERY))

        passed.sort(key=lambda c: c.score, reverse=True)
        ranked = passed[: self.config.max_candidates]
        logger.debug(
            f"[HEADER] {len(passed)} candidate(s) passed the gate; "
            f"top: {[(c.selector, c.score) for c in ranked]}"
        )
        return ranked

    async def diagnose(self, page) -> Dict[str, Any]:
        """Element counts plus the best rejected containers and why they failed."""
        counts = await dom.safe_script(
            page, _NAV_COUNTS_JS, {'selectors': list(_DIAGNOSTIC_SELECTORS)}, default={}
        ) or {}
        data = await self._facts(page, None)
        rejected = []
        for facts in data.get('candidates') or []:
            failure = gate_failure(facts, self.config)
            if failure and facts.get('interactiveCount'):
                rejected.append({
                    'selector': facts.get('selector'),
                    'matched_by': facts.get('matchedBy'),
                    'failed': failure,
                    'score': score_header(facts),
                })
        rejected.sort(key=lambda r: r['score'], reverse=True)
        return {'element_counts': counts, 'suggested_selectors': rejected[:5]}
