"""
Utility Functions
URL normalization, domain and text helpers, and the clock used for
every timed wait in the engine.
"""

import asyncio
import logging
import re
import time
from typing import Iterable, Optional
from urllib.parse import urlparse, urlunparse, urljoin, parse_qs, urlencode

logger = logging.getLogger(__name__)


class URLNormalizer:
    """
    Normalizes navigation URLs so that the same destination reached via
    different links compares equal.
    Removes fragments, tracking params and trailing slashes.
    """

    # Common tracking parameters to remove
    TRACKING_PARAMS = {
        'utm_source', 'utm_medium', 'utm_campaign', 'utm_term', 'utm_content',
        'fbclid', 'gclid', 'mc_cid', 'mc_eid', '_ga', '_gid', 'dclid',
        'lid', 'lpos', 'cm_sp', 'cm_re', 'intcmp', 'icid', 'nav_src',
    }

    # Non-page resources never count as navigation destinations
    SKIP_EXTENSIONS = {
        '.jpg', '.jpeg', '.png', '.gif', '.svg', '.webp', '.ico',
        '.pdf', '.zip', '.mp4', '.css', '.js', '.json', '.xml',
    }

    def __init__(
        self,
        remove_tracking_params: bool = True,
        remove_fragments: bool = True,
        strip_www: bool = True,
    ):
        """
        Args:
            remove_tracking_params: Remove common tracking query parameters
            remove_fragments: Remove URL fragments (#section)
            strip_www: Remove www. prefix from domain
        """
        self.remove_tracking_params = remove_tracking_params
        self.remove_fragments = remove_fragments
        self.strip_www = strip_www

    def absolutize(self, url: str, base_url: Optional[str] = None) -> Optional[str]:
        """Resolve *url* against *base_url* without normalizing it.

        Returns None for non-navigational hrefs (javascript:, mailto:, '#').
        """
        if not url:
            return None
        url = url.strip()
        if not url or url.lower().startswith(('javascript:', 'mailto:', 'tel:', 'data:', '#')):
            return None
        if base_url:
            url = urljoin(base_url, url)
        return url

    def normalize(self, url: str, base_url: Optional[str] = None) -> Optional[str]:
        """
        Normalize a URL for consistent comparison.

        Args:
            url: The URL to normalize
            base_url: Optional base URL for resolving relative URLs

        Returns:
            Normalized URL string or None if not a navigable page URL
        """
        url = self.absolutize(url, base_url)
        if url is None:
            return None

        try:
            parsed = urlparse(url)
        except ValueError:
            return None

        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            return None

        netloc = parsed.netloc.lower()
        if self.strip_www and netloc.startswith('www.'):
            netloc = netloc[4:]

        path = re.sub(r'/+', '/', parsed.path or '/')
        if path != '/' and path.endswith('/'):
            path = path.rstrip('/')

        lower_path = path.lower()
        if any(lower_path.endswith(ext) for ext in self.SKIP_EXTENSIONS):
            return None

        query = parsed.query
        if query and self.remove_tracking_params:
            params = parse_qs(query, keep_blank_values=True)
            filtered = {
                k: v for k, v in sorted(params.items())
                if k.lower() not in self.TRACKING_PARAMS
            }
            query = urlencode(filtered, doseq=True)

        fragment = '' if self.remove_fragments else parsed.fragment

        return urlunparse((parsed.scheme.lower(), netloc, path, parsed.params, query, fragment))


def extract_domain(url: str) -> str:
    """Return the lower-cased hostname of *url* without a ``www.`` prefix.

    Bare domains (``example.com``) are accepted as well as full URLs.
    """
    if not url:
        return ""
    if '//' not in url:
        url = f"https://{url}"
    host = (urlparse(url).hostname or "").lower()
    if host.startswith('www.'):
        host = host[4:]
    return host


def parent_domains(domain: str) -> Iterable[str]:
    """Yield *domain* and each parent domain down to the registrable pair.

    ``shop.example.co`` → ``shop.example.co``, ``example.co``
    """
    parts = domain.split('.')
    for i in range(len(parts) - 1):
        yield '.'.join(parts[i:])


def clean_text(text: str) -> str:
    """Clean and normalize text content."""
    if not text:
        return ""
    return re.sub(r'\s+', ' ', text).strip()


def matches_keyword(text: str, keywords: Iterable[str]) -> bool:
    """Case-insensitive substring match in either direction.

    ``"Women's Shoes"`` matches ``women``; ``"Men"`` matches ``men``.
    """
    lowered = clean_text(text).lower()
    if not lowered:
        return False
    for keyword in keywords:
        if keyword in lowered or lowered in keyword:
            return True
    return False


def contains_keyword(text: str, keywords: Iterable[str]) -> bool:
    """Some keyword occurs in *text* as a whole word or phrase.

    ``"Shopping Bag"`` contains ``bag``; ``"Bags"`` does not.
    """
    lowered = clean_text(text).lower()
    if not lowered:
        return False
    return any(re.search(r'\b' + re.escape(keyword) + r'\b', lowered) for keyword in keywords)


class SystemClock:
    """Monotonic clock plus sleep. Tests swap in a fake with the same shape."""

    def now(self) -> float:
        """Current monotonic time in milliseconds."""
        return time.monotonic() * 1000.0

    async def sleep(self, ms: float) -> None:
        if ms > 0:
            await asyncio.sleep(ms / 1000.0)
