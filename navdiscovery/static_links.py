"""
Static Link Collection
======================
Reads navigation links out of the serialized page (``page.content()``)
without touching the live DOM.  Used by the sector-template and
fallback-link strategies.

Responsibilities:
  1. **parse_html**   — BeautifulSoup over lxml, with an html.parser retry
                        when lxml produces an empty tree
  2. **is_hidden**    — static visibility: ``hidden`` attribute,
                        ``aria-hidden="true"``, inline ``display:none`` /
                        ``visibility:hidden`` and utility hide classes on the
                        link or any ancestor
  3. **collect_links** — links inside navigation-like containers, each
                        annotated with visibility and container membership
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

import soupsieve
from bs4 import BeautifulSoup
from bs4.element import Tag

from .utils import URLNormalizer, clean_text, extract_domain, parent_domains

logger = logging.getLogger(__name__)

_BS_PARSER = "lxml"

_HIDDEN_STYLE = re.compile(r'display\s*:\s*none|visibility\s*:\s*hidden', re.I)
_HIDDEN_CLASSES = frozenset({'hidden', 'd-none', 'is-hidden', 'visually-hidden', 'sr-only', 'hide'})

_NORMALIZER = URLNormalizer()


@dataclass
class StaticLink:
    text: str
    url: str
    raw_href: str
    selector: str
    hidden: bool = False
    in_nav: bool = False


def parse_html(html: str) -> BeautifulSoup:
    soup = BeautifulSoup(html or "", _BS_PARSER)
    body = soup.find('body')
    body_len = len(body.get_text(strip=True)) if body else 0
    if body_len > 200 and not soup.find_all('a', href=True):
        logger.info(f"[PARSER] lxml produced 0 links from {body_len} chars of body text — retrying with html.parser")
        soup = BeautifulSoup(html, 'html.parser')
    return soup


def _hides(tag: Tag) -> bool:
    if tag.has_attr('hidden'):
        return True
    if (tag.get('aria-hidden') or '').lower() == 'true':
        return True
    if _HIDDEN_STYLE.search(tag.get('style') or ''):
        return True
    classes = tag.get('class') or []
    return any(c.lower() in _HIDDEN_CLASSES for c in classes)


def is_hidden(tag: Tag) -> bool:
    """True when the tag or one of its ancestors is statically hidden."""
    node: Optional[Tag] = tag
    while isinstance(node, Tag) and node.name not in ('html', '[document]'):
        if _hides(node):
            return True
        node = node.parent
    return False


def css_path(tag: Tag) -> str:
    """Positional CSS path, anchored at the nearest id."""
    parts: List[str] = []
    node: Optional[Tag] = tag
    while isinstance(node, Tag) and node.name not in ('html', '[document]'):
        if node.get('id'):
            parts.insert(0, '#' + soupsieve.escape(node['id']))
            return ' > '.join(parts)
        parent = node.parent
        step = node.name
        if isinstance(parent, Tag):
            same = parent.find_all(node.name, recursive=False)
            if len(same) > 1:
                position = next(i for i, s in enumerate(same) if s is node) + 1
                step = f"{node.name}:nth-of-type({position})"
        parts.insert(0, step)
        node = parent
    parts.insert(0, 'html')
    return ' > '.join(parts)


def link_text(a: Tag) -> str:
    text = clean_text(a.get_text(' ', strip=True))
    return text or clean_text(a.get('aria-label') or a.get('title') or '')


def same_site(url: str, domain: str) -> bool:
    host = extract_domain(url)
    return bool(host) and (host == domain or domain in parent_domains(host))


def collect_links(
    soup: BeautifulSoup,
    base_url: str,
    containers: Sequence[str],
    *,
    include_hidden: bool = True,
    include_outside: bool = False,
    limit: int = 500,
) -> List[StaticLink]:
    """Same-site links from *containers* in document order.

    With *include_outside*, links outside every container are returned
    too (``in_nav=False``) so callers can keep them by URL shape.
    """
    domain = extract_domain(base_url)
    nav_links = set()
    for selector in containers:
        for container in soup.select(selector):
            nav_links.update(id(a) for a in container.find_all('a', href=True))

    out: List[StaticLink] = []
    seen = set()
    for a in soup.find_all('a', href=True):
        if len(out) >= limit:
            break
        in_nav = id(a) in nav_links
        if not in_nav and not include_outside:
            continue
        hidden = is_hidden(a)
        if hidden and not include_hidden:
            continue
        raw = (a.get('href') or '').strip()
        url = _NORMALIZER.absolutize(raw, base_url)
        if not url or (domain and not same_site(url, domain)):
            continue
        key = _NORMALIZER.normalize(url) or url
        if key in seen:
            continue
        seen.add(key)
        text = link_text(a)
        if not text:
            continue
        out.append(StaticLink(text=text, url=url, raw_href=raw, selector=css_path(a), hidden=hidden, in_nav=in_nav))
    return out
