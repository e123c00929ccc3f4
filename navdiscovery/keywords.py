"""
Keyword Catalogue
=================
Text patterns shared by the header gate, trigger classification, link
filtering and item typing.  All entries are lower-case; matching is done
through ``utils.matches_keyword`` / ``utils.contains_keyword``.
"""

import re
from typing import FrozenSet, Tuple

# ---------------------------------------------------------------------------
# Utility links: account / basket / support chrome found in every header
# ---------------------------------------------------------------------------
UTILITY_KEYWORDS: FrozenSet[str] = frozenset([
    'sign in', 'log in', 'login', 'account', 'cart', 'bag', 'basket',
    'checkout', 'help', 'support', 'contact', 'store locator', 'find a store',
    'gift card', 'wishlist', 'wish list', 'track order', 'my orders',
])

# Triggers additionally reject search affordances
TRIGGER_REJECT_KEYWORDS: FrozenSet[str] = UTILITY_KEYWORDS | frozenset(['search'])

# ---------------------------------------------------------------------------
# Department / category vocabulary
# ---------------------------------------------------------------------------
CATEGORY_KEYWORDS: FrozenSet[str] = frozenset([
    'women', 'woman', 'men', 'man', 'kids', 'children', 'baby', 'girls', 'boys',
    'home', 'furniture', 'kitchen', 'bedroom', 'bath', 'shoes', 'clothing',
    'accessories', 'jewelry', 'bags', 'handbags', 'beauty', 'fragrance', 'makeup',
    'skincare', 'electronics', 'toys', 'sports', 'outdoor', 'sale', 'clearance',
    'new arrivals', 'new', 'brands', 'designers', 'collections', 'unisex', 'all',
    'appliances', 'tools', 'garden', 'lighting', 'decor',
])

# Text of a top-level item that names a whole department
DEPARTMENT_KEYWORDS: FrozenSet[str] = frozenset([
    'women', 'men', 'kids', 'baby', 'home', 'beauty', 'shoes', 'jewelry',
    'handbags', 'accessories', 'furniture', 'electronics', 'toys', 'sale',
    'clearance', 'new arrivals', 'brands', 'designers', 'appliances', 'tools',
])

# Class-name fragments that signal a trigger opens something
AFFORDANCE_CLASS_HINTS: Tuple[str, ...] = (
    'dropdown', 'has-sub', 'submenu', 'has-children', 'flyout', 'mega', 'toggle',
)

# ---------------------------------------------------------------------------
# Link filtering inside revealed panels and page-wide link scans
# ---------------------------------------------------------------------------
SKIP_LINK_KEYWORDS: FrozenSet[str] = frozenset([
    'facebook', 'instagram', 'twitter', 'pinterest', 'youtube', 'tiktok',
    'linkedin', 'privacy', 'terms', 'cookie', 'legal', 'accessibility',
    'careers', 'press', 'investor', 'sitemap', 'do not sell',
])

SKIP_LINK_PATTERNS: Tuple[re.Pattern, ...] = tuple(
    re.compile(p, re.I) for p in (
        r'facebook\.com', r'instagram\.com', r'twitter\.com', r'x\.com/',
        r'pinterest\.', r'youtube\.com', r'tiktok\.com', r'linkedin\.com',
        r'/privacy', r'/terms', r'/legal', r'/careers', r'/accessibility',
        r'/account', r'/login', r'/signin', r'/cart', r'/checkout',
        r'/customer-service', r'/help',
    )
)

# Mega-menu triggers never include these
MEGA_MENU_SKIP_PATTERNS: Tuple[re.Pattern, ...] = tuple(
    re.compile(p, re.I) for p in (
        r'sign\s*in', r'log\s*in', r'account', r'cart', r'\bbag\b', r'wish\s*list',
        r'help', r'stores?\b', r'gift\s*cards?', r'track', r'search', r'menu',
        r'close', r'skip', r'registry', r'deals of the day',
    )
)
MEGA_MENU_TRIGGER_TEXT = re.compile(r"^[A-Za-z&' ]+$")
