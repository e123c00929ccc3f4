"""
Trigger Discovery
=================
Enumerates the top-level interactive elements of a header container and
keeps the ones that look like department/category togglers.

Classification of one candidate (first matching rule wins):

  reject  text empty, < 2 or > 40 chars, or a utility/search word
  accept  text matches the category vocabulary (substring, either direction)
  accept  element carries an affordance (aria-haspopup, aria-expanded,
          dropdown-ish class on itself or its list item)
  accept  inside a confirmed navigation container and 3–30 chars

Cached toggler patterns are resolved first; when they still point at a
live element they take the place of freshly discovered togglers with the
same text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from . import dom
from .keywords import AFFORDANCE_CLASS_HINTS, CATEGORY_KEYWORDS, TRIGGER_REJECT_KEYWORDS
from .models import HeaderCandidate, InteractionMode, Source, Toggler, TogglerPattern
from .utils import clean_text, contains_keyword, matches_keyword

logger = logging.getLogger(__name__)


DEFAULT_TOGGLER_SELECTORS: Tuple[str, ...] = (
    'a[aria-haspopup="true"]',
    'button[aria-haspopup]',
    'a[aria-expanded]',
    'button[aria-expanded]',
    '.dropdown-toggle',
    '.has-dropdown > a',
    '.has-submenu > a',
    '.menu-item-has-children > a',
    'nav > ul > li > a',
    'nav > ul > li > button',
    'nav > div > a',
    '.nav-item > a',
    '.menu-item > a',
    'li > a',
    'li > button',
    'nav a',
)


@dataclass
class TriggerConfig:
    max_togglers: int = 12
    min_text: int = 2
    max_text: int = 40
    nav_text_min: int = 3
    nav_text_max: int = 30
    selectors: Tuple[str, ...] = DEFAULT_TOGGLER_SELECTORS
    scan_limit: int = 120


_TOGGLER_FACTS_JS = dom.DomScript("trigger.facts", """
    const root = firstMatch(arg.header);
    if (!root) return {rootFound: false, cached: [], candidates: []};
    const describe = (el) => {
        const li = el.closest('li');
        const cls = (typeof el.className === 'string') ? el.className : '';
        const liCls = li && typeof li.className === 'string' ? li.className : '';
        const rel = relPath(el, root);
        return {
            text: textOf(el).slice(0, 120),
            href: el.tagName === 'A' ? (el.href || null) : null,
            rawHref: el.getAttribute('href'),
            relativeSelector: rel,
            selector: arg.header + ' > ' + rel,
            hasPopup: el.hasAttribute('aria-haspopup') && el.getAttribute('aria-haspopup') !== 'false',
            ariaExpanded: el.hasAttribute('aria-expanded'),
            className: (cls + ' ' + liCls).toLowerCase(),
            visible: isVisible(el),
        };
    };
    const cached = [];
    for (const pattern of arg.cached) {
        const el = firstMatch(':scope > ' + pattern.selector, root);
        cached.push(el && isVisible(el) ? Object.assign(describe(el), {patternText: pattern.text}) : null);
    }
    const seen = new Set();
    const candidates = [];
    for (const selector of arg.selectors) {
        for (const el of allMatches(selector, root)) {
            if (candidates.length >= arg.limit) break;
            if (seen.has(el)) continue;
            seen.add(el);
            if (!isVisible(el)) continue;
            candidates.push(describe(el));
        }
    }
    return {rootFound: true, cached: cached, candidates: candidates};
""")


def has_affordance(facts: Dict[str, Any]) -> bool:
    if facts.get('hasPopup') or facts.get('ariaExpanded'):
        return True
    class_name = facts.get('className') or ''
    return any(hint in class_name for hint in AFFORDANCE_CLASS_HINTS)


def classify_toggler(
    text: str,
    facts: Dict[str, Any],
    in_nav_container: bool,
    config: Optional[TriggerConfig] = None,
) -> Optional[str]:
    """Return the accepting rule name, or None when the candidate is rejected."""
    config = config or TriggerConfig()
    text = clean_text(text)
    if not text or len(text) < config.min_text or len(text) > config.max_text:
        return None
    if contains_keyword(text, TRIGGER_REJECT_KEYWORDS):
        return None
    if matches_keyword(text, CATEGORY_KEYWORDS):
        return 'category'
    if has_affordance(facts):
        return 'affordance'
    if in_nav_container and config.nav_text_min <= len(text) <= config.nav_text_max:
        return 'nav_text'
    return None


def _href(facts: Dict[str, Any]) -> Optional[str]:
    raw = (facts.get('rawHref') or '').strip()
    if not raw or raw == '#' or raw.lower().startswith('javascript:'):
        return None
    return facts.get('href')


class TriggerDiscoverer:

    def __init__(self, config: Optional[TriggerConfig] = None):
        self.config = config or TriggerConfig()

    async def discover(
        self,
        page,
        header: HeaderCandidate,
        cached_patterns: Optional[List[TogglerPattern]] = None,
    ) -> List[Toggler]:
        cached_patterns = list(cached_patterns or [])
        arg = {
            'header': header.selector,
            'cached': [{'text': p.text, 'selector': p.selector} for p in cached_patterns],
            'selectors': list(self.config.selectors),
            'limit': self.config.scan_limit,
        }
        data = await dom.safe_script(page, _TOGGLER_FACTS_JS, arg, default={}) or {}
        if not data.get('rootFound'):
            logger.debug(f"[TRIGGERS] header root vanished: {header.selector}")
            return []

        togglers: List[Toggler] = []
        seen_texts = set()

        for pattern, facts in zip(cached_patterns, data.get('cached') or []):
            if not facts:
                logger.debug(f"[TRIGGERS] ✗ cached pattern no longer resolves: {pattern.text}")
                continue
            text = clean_text(facts.get('text') or pattern.text)
            key = text.lower()
            if not text or key in seen_texts:
                continue
            seen_texts.add(key)
            togglers.append(Toggler(
                text=text,
                selector=facts['selector'],
                relative_selector=facts['relativeSelector'],
                source=Source.CACHE,
                preferred_interaction=pattern.interaction_mode,
                url=_href(facts),
                has_affordance=has_affordance(facts),
            ))

        for facts in data.get('candidates') or []:
            if len(togglers) >= self.config.max_togglers:
                break
            text = clean_text(facts.get('text') or '')
            rule = classify_toggler(text, facts, header.is_nav_container, self.config)
            if rule is None:
                continue
            key = text.lower()
            if key in seen_texts:
                continue
            seen_texts.add(key)
            togglers.append(Toggler(
                text=text,
                selector=facts['selector'],
                relative_selector=facts['relativeSelector'],
                source=Source.DISCOVERY,
                url=_href(facts),
                has_affordance=has_affordance(facts),
            ))
            logger.debug(f"  ✓ toggler '{text}' ({rule})")

        togglers = togglers[: self.config.max_togglers]
        logger.debug(
            f"[TRIGGERS] {len(togglers)} toggler(s) in {header.selector} "
            f"({sum(1 for t in togglers if t.source is Source.CACHE)} from cache)"
        )
        return togglers


def patterns_from(togglers: List[Toggler], modes: Dict[str, InteractionMode]) -> List[TogglerPattern]:
    """Hint patterns for togglers that opened a panel, keyed by text in *modes*."""
    return [
        TogglerPattern(text=t.text, selector=t.relative_selector, interaction_mode=modes[t.text])
        for t in togglers
        if t.text in modes
    ]
