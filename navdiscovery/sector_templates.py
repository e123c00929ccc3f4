"""
Sector Templates
================
URL shapes and department vocabulary for whole retail sectors.  Used by
the sector-template strategy to pick category links out of a page without
interacting with it.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from .keywords import DEPARTMENT_KEYWORDS


@dataclass(frozen=True)
class SectorTemplate:
    name: str
    category_url_patterns: Tuple[str, ...]
    product_url_patterns: Tuple[str, ...]
    department_keywords: Tuple[str, ...]
    nav_selectors: Tuple[str, ...] = (
        "nav", "header", "[role='navigation']", ".navigation", ".main-nav",
        ".menu", ".nav", ".navbar", "#nav", "#navigation", "#menu",
    )

    def is_category_url(self, url: str) -> bool:
        lowered = (url or "").lower()
        return any(p in lowered for p in self.category_url_patterns)

    def is_product_url(self, url: str) -> bool:
        lowered = (url or "").lower()
        return any(p in lowered for p in self.product_url_patterns)


SECTOR_TEMPLATES: Dict[str, SectorTemplate] = {
    "clothing": SectorTemplate(
        name="clothing",
        category_url_patterns=(
            "/shop/", "/browse/", "/collections/", "/c/", "/cat", "/plp/", ".html",
            "-l", "?cid=", "/categories/", "/category/", "/department/",
            "/men", "/women", "/kids",
        ),
        product_url_patterns=(
            "/browse/product", "/products/", "/product/", "/p/", "/dp/",
            "/shop/product/", "/s/", "/product/prd-", "productpage.", "/item/", "/ip/",
        ),
        department_keywords=tuple(sorted(DEPARTMENT_KEYWORDS)),
    ),
    "hardware": SectorTemplate(
        name="hardware",
        category_url_patterns=("/b/", "/c/", "/pl/", "/category/", "/departments/", "/shop/", "/browse/"),
        product_url_patterns=("/p/", "/pd/", "/product/", "/item/"),
        department_keywords=(
            "appliances", "bath", "building materials", "electrical", "flooring",
            "hardware", "heating", "kitchen", "lighting", "lumber", "outdoor",
            "paint", "plumbing", "storage", "tools",
        ),
    ),
    "electronics": SectorTemplate(
        name="electronics",
        category_url_patterns=("/site/", "/c/", "/category/", "/browse/", "/shop/", "/departments/"),
        product_url_patterns=("/product/", "/p/", "/dp/", "/sku/", "/ip/"),
        department_keywords=(
            "audio", "cameras", "computers", "gaming", "headphones", "laptops",
            "phones", "smart home", "tablets", "tv", "wearables", "appliances",
        ),
    ),
    "grocery": SectorTemplate(
        name="grocery",
        category_url_patterns=("/aisle/", "/browse/", "/c/", "/category/", "/shop/", "/departments/"),
        product_url_patterns=("/product/", "/p/", "/item/", "/ip/"),
        department_keywords=(
            "bakery", "beverages", "dairy", "deli", "frozen", "meat", "pantry",
            "produce", "seafood", "snacks", "household", "baby",
        ),
    ),
}

DEFAULT_SECTOR = "clothing"


def get_sector_template(sector: str) -> SectorTemplate:
    """Template for *sector*; unknown names fall back to clothing."""
    return SECTOR_TEMPLATES.get((sector or "").lower(), SECTOR_TEMPLATES[DEFAULT_SECTOR])
