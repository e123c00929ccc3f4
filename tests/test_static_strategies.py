"""
Tests for the non-interactive strategies and the HTML link collector.

Covers:
  1. Static visibility and CSS paths
  2. collect_links: containers, same-site filter, dedup, outside links
  3. Sector-template classification and ordering
  4. Fallback link collection with hidden containers
"""

import asyncio

from playwright.async_api import Error as PlaywrightError

from fakes import FakePage
from navdiscovery.context import DiscoveryContext
from navdiscovery.models import ItemType
from navdiscovery.sector_templates import get_sector_template
from navdiscovery.static_links import StaticLink, collect_links, css_path, is_hidden, parse_html
from navdiscovery.strategies.fallback_links import FallbackLinkStrategy
from navdiscovery.strategies.sector_template import SectorTemplateStrategy, classify_link

SHOP_HTML = """
<html><body>
  <header id="top">
    <nav class="main-nav">
      <ul>
        <li><a href="/women">Women</a></li>
        <li><a href="/men">Men</a></li>
        <li><a href="/kids">Kids</a></li>
        <li><a href="/gift-guide">Gift Guide</a></li>
        <li><a href="https://www.shop.test/men/">Men again</a></li>
        <li><a href="/privacy">Privacy</a></li>
        <li><a href="https://partner.example.org/deal">Partner deal</a></li>
        <li><a href="/account" aria-label="Account"><svg></svg></a></li>
      </ul>
    </nav>
    <div class="mobile-menu" hidden>
      <a href="/women/dresses">Dresses</a>
      <a href="/women/tops">Tops</a>
    </div>
  </header>
  <main>
    <a href="/c/shoes">Shoes</a>
    <a href="/p/12345">Blue Sneaker</a>
    <a href="/about-us">About</a>
  </main>
</body></html>
"""


def _ctx(page):
    return DiscoveryContext(page=page, url="https://www.shop.test/", domain="shop.test")


# ====================================================================
# 1-2. Link collector
# ====================================================================

class TestStaticLinks:
    """HTML link collection."""

    def test_hidden_through_ancestors(self):
        """The hidden attribute on any ancestor hides the link."""
        soup = parse_html(SHOP_HTML)
        dresses = soup.find("a", string="Dresses")
        women = soup.find("a", string="Women")
        assert is_hidden(dresses)
        assert not is_hidden(women)

    def test_inline_style_and_classes(self):
        soup = parse_html(
            '<div style="display: none"><a href="/a">A</a></div>'
            '<div class="sr-only"><a href="/b">B</a></div><a href="/c">C</a>'
        )
        a, b, c = soup.find_all("a")
        assert is_hidden(a) and is_hidden(b) and not is_hidden(c)

    def test_css_path_anchors_at_id(self):
        soup = parse_html(SHOP_HTML)
        kids = soup.find("a", string="Kids")
        assert css_path(kids) == "#top > nav > ul > li:nth-of-type(3) > a"

    def test_css_path_escapes_ids(self):
        """Ids with CSS-special characters still yield valid selectors."""
        soup = parse_html(
            '<div id="menu:main"><a href="/a">A</a></div>'
            '<div id="nav.top"><a href="/b">B</a></div>'
            '<div id="1col"><a href="/c">C</a></div>'
        )
        a, b, c = soup.find_all("a")
        assert css_path(a) == "#menu\\:main > a"
        assert css_path(b) == "#nav\\.top > a"
        assert css_path(c) == "#\\31 col > a"
        assert soup.select_one(css_path(b)) is b

    def test_collect_nav_links(self):
        """Container links only, same site, deduplicated by normalized URL."""
        links = collect_links(parse_html(SHOP_HTML), "https://www.shop.test/", ("nav", ".mobile-menu"))
        texts = [l.text for l in links]
        assert texts[:4] == ["Women", "Men", "Kids", "Gift Guide"]
        assert "Men again" not in texts
        assert "Partner deal" not in texts
        assert "Account" in texts
        assert "Shoes" not in texts
        dresses = next(l for l in links if l.text == "Dresses")
        assert dresses.hidden and dresses.in_nav
        assert dresses.url == "https://www.shop.test/women/dresses"

    def test_collect_visible_and_outside(self):
        """Visible only, plus category-like links outside containers."""
        links = collect_links(
            parse_html(SHOP_HTML), "https://www.shop.test/", ("nav",),
            include_hidden=False, include_outside=True,
        )
        texts = [l.text for l in links]
        assert "Dresses" not in texts
        assert "Shoes" in texts
        assert next(l for l in links if l.text == "Shoes").in_nav is False

    def test_limit(self):
        links = collect_links(parse_html(SHOP_HTML), "https://www.shop.test/", ("nav",), limit=2)
        assert len(links) == 2


# ====================================================================
# 3. Sector template
# ====================================================================

class TestSectorTemplate:
    """Sector-template classification."""

    def test_classify(self):
        template = get_sector_template("clothing")

        def link(text, url, in_nav):
            return StaticLink(text=text, url=url, raw_href=url, selector="a", in_nav=in_nav)

        assert classify_link(link("Women", "https://s.test/women", True), template) == "main_department"
        assert classify_link(link("Shoes", "https://s.test/c/shoes", False), template) == "category"
        assert classify_link(link("Sneaker", "https://s.test/p/1", False), template) is None
        assert classify_link(link("Sneaker", "https://s.test/p/1", True), template) == "product"
        assert classify_link(link("Gift Guide", "https://s.test/gift-guide", True), template) == "navigation"
        assert classify_link(link("About", "https://s.test/about-us", False), template) is None
        assert classify_link(link("A", "https://s.test/brands/a", True), template) == "navigation"

    def test_unknown_sector_falls_back(self):
        assert get_sector_template("spaceships").name == "clothing"
        assert get_sector_template("Hardware").name == "hardware"

    def test_discover(self):
        """Departments first; products outside navigation and hidden links dropped."""
        page = FakePage(url="https://www.shop.test/", html=SHOP_HTML)
        result = asyncio.run(SectorTemplateStrategy("clothing").discover(_ctx(page)))
        names = [i.name for i in result.items]
        assert names[:3] == ["Women", "Men", "Kids"]
        assert result.items[0].type is ItemType.MAIN_SECTION
        assert "Shoes" in names
        assert "Blue Sneaker" not in names
        assert "Dresses" not in names
        assert "Privacy" not in names
        assert result.metadata["departments"] == 3
        assert 0.1 <= result.confidence <= 0.9

    def test_empty_page(self):
        result = asyncio.run(SectorTemplateStrategy().discover(_ctx(FakePage())))
        assert result.reason == "no_sector_links"

    def test_content_unavailable(self):
        page = FakePage()
        page.method_errors["content"] = PlaywrightError("Unable to retrieve content")
        result = asyncio.run(SectorTemplateStrategy().discover(_ctx(page)))
        assert result.reason == "page_content_unavailable"


# ====================================================================
# 4. Fallback links
# ====================================================================

class TestFallbackLinks:
    """Non-interactive link collection including hidden containers."""

    def test_hidden_links_flagged(self):
        """Mobile-menu links are kept and marked hidden."""
        page = FakePage(url="https://www.shop.test/", html=SHOP_HTML)
        result = asyncio.run(FallbackLinkStrategy().discover(_ctx(page)))
        by_name = {i.name: i for i in result.items}
        assert by_name["Women"].type is ItemType.MAIN_SECTION
        assert by_name["Women"].hierarchy_level == 1
        assert by_name["Gift Guide"].type is ItemType.DROPDOWN_ITEM
        assert by_name["Dresses"].metadata == {"hidden": True}
        assert "hidden" not in by_name["Women"].metadata
        assert "Shoes" not in by_name
        assert result.metadata["hidden_links"] == 2
        assert result.metadata["departments"] == 3

    def test_letter_index_links_are_not_departments(self):
        """Brand A-Z letters and fragments like "Me" are not departments."""
        html = (
            '<html><body><nav>'
            '<a href="/brands/a">A</a><a href="/brands/b">B</a><a href="/brands/e">E</a>'
            '<a href="/women">Women</a><a href="/me">Me</a>'
            '</nav></body></html>'
        )
        page = FakePage(url="https://www.shop.test/", html=html)
        result = asyncio.run(FallbackLinkStrategy().discover(_ctx(page)))
        mains = [i.name for i in result.items if i.type is ItemType.MAIN_SECTION]
        assert mains == ["Women"]
        assert result.metadata["departments"] == 1

    def test_visible_only(self):
        page = FakePage(url="https://www.shop.test/", html=SHOP_HTML)
        result = asyncio.run(FallbackLinkStrategy(include_hidden=False).discover(_ctx(page)))
        assert result.metadata["hidden_links"] == 0

    def test_nothing_found(self):
        result = asyncio.run(FallbackLinkStrategy().discover(_ctx(FakePage())))
        assert result.reason == "no_navigation_links"
        assert result.confidence == 0.0
