"""
Tests for template-driven extraction.

Covers:
  1. Three entries x ten links → hierarchical result above the sufficiency bar
  2. Forced visibility when hovering reveals nothing
  3. Missing containers, unregistered domains, hint-preferred template
  4. Hierarchy reconstruction with orphan groups
"""

import asyncio
import random

from fakes import FakeClock, FakePage, panel_links
from navdiscovery.context import DiscoveryContext
from navdiscovery.models import Hint, ItemType, NavigationItem
from navdiscovery.patterns import PatternLibrary, PatternTemplate
from navdiscovery.site_quirks import SiteQuirk
from navdiscovery.strategies.pattern_match import PatternMatchStrategy, reconstruct_hierarchy

TEMPLATE = PatternTemplate(
    name="test-dropdown",
    container="li.nav-entry",
    trigger="a.nav-link",
    dropdowns=(".dropdown-content",),
    hover_delay_ms=800,
    dismiss_delay_ms=300,
)

SECTIONS = ["Women", "Men", "Kids"]


def _library():
    return PatternLibrary().register(TEMPLATE, domains=["example.com"])


def _entries():
    return [
        {
            "index": i,
            "text": name,
            "href": f"https://www.example.com/{name.lower()}",
            "rawHref": f"/{name.lower()}",
            "entrySelector": f"#nav > li:nth-of-type({i + 1})",
            "triggerSelector": f"#nav > li:nth-of-type({i + 1}) > a",
            "heading": None,
        }
        for i, name in enumerate(SECTIONS)
    ]


def _site(links_per_entry=10, reveal_on_hover=True):
    page = FakePage()
    entries = _entries()
    page.scripts["pattern.main_nav"] = entries
    for entry in entries:
        def opener(p, scope=entry["entrySelector"]):
            p.state["open"] = scope
        if reveal_on_hover:
            page.hover_effects[entry["triggerSelector"]] = opener
    by_scope = {e["entrySelector"]: e["text"] for e in entries}

    def dropdown_links(arg, p):
        scope = arg["scope"]
        visible = p.state.get("open") == scope or scope in p.state.get("forced", ())
        return panel_links(by_scope[scope], links_per_entry) if visible else []

    def force_visible(arg, p):
        p.state.setdefault("forced", set()).add(arg["scope"])
        return 1

    page.scripts["pattern.dropdown_links"] = dropdown_links
    page.scripts["pattern.force_visible"] = force_visible
    page.on_mouse_move.append(lambda p, x, y: p.state.pop("open", None))
    return page


def _ctx(page, hints=None, quirk=None, clock=None):
    kwargs = {"quirk": quirk} if quirk else {}
    return DiscoveryContext(page=page, url=page.url, domain="example.com", hints=hints,
                            clock=clock or FakeClock(), **kwargs)


def _strategy(clock, library=None):
    return PatternMatchStrategy(library or _library(), clock=clock, rng=random.Random(7))


# ====================================================================
# 1. Happy path
# ====================================================================

class TestExtraction:
    """Registered template on a three-entry navigation."""

    def test_three_by_ten(self):
        """3 entries x 10 links → 33 items above the sufficiency bar."""
        clock = FakeClock()
        page = _site()
        result = asyncio.run(_strategy(clock).discover(_ctx(page, clock=clock)))
        assert len(result.items) == 33
        assert result.confidence > 0.7
        assert result.is_sufficient(0.7, 5)
        assert [i.name for i in result.items if i.hierarchy_level == 1] == SECTIONS
        women_children = result.items[1:11]
        assert all(i.parent == "Women" and i.type is ItemType.DROPDOWN_ITEM for i in women_children)
        assert result.items[0].metadata == {"pattern": "test-dropdown"}
        assert result.metadata["forced_visible"] == 0
        assert result.hints == Hint(panel_strategy="pattern:test-dropdown")

    def test_choreography(self):
        """Hover, template delay, dismiss delay per entry; forced styles restored."""
        clock = FakeClock()
        page = _site()
        asyncio.run(_strategy(clock).discover(_ctx(page, clock=clock)))
        assert page.actions("hover") == [e["triggerSelector"] for e in _entries()]
        assert clock.sleeps.count(800) == 3
        assert clock.sleeps.count(300) == 3
        assert page.evaluated[-1] == "pattern.restore"

    def test_quirk_delays_win_when_larger(self):
        clock = FakeClock()
        page = _site()
        quirk = SiteQuirk(hover_delay_ms=2500, dismiss_delay_ms=1000, prefer_click=True)
        asyncio.run(_strategy(clock).discover(_ctx(page, quirk=quirk, clock=clock)))
        assert clock.sleeps.count(2500) == 3
        assert clock.sleeps.count(1000) == 3
        assert page.actions("hover") == []
        assert len(page.actions("click")) == 3


# ====================================================================
# 2. Forced visibility
# ====================================================================

class TestForcedVisibility:
    """Dropdowns that hovering does not reveal."""

    def test_hidden_dropdowns_forced_open(self):
        clock = FakeClock()
        page = _site(reveal_on_hover=False)
        result = asyncio.run(_strategy(clock).discover(_ctx(page, clock=clock)))
        assert len(result.items) == 33
        assert result.metadata["forced_visible"] == 3
        assert "pattern.restore" in page.evaluated

    def test_document_scope_forces_only_the_entry_flyout(self):
        """Flyouts outside the nav list stay attached to their own entry."""
        template = PatternTemplate(
            name="test-flyout",
            container="li.nav-entry",
            trigger="a.nav-link",
            dropdowns=(".flyout-container",),
            dropdown_scope="document",
            hover_delay_ms=800,
            dismiss_delay_ms=300,
        )
        library = PatternLibrary().register(template, domains=["example.com"])
        page = FakePage()
        page.scripts["pattern.main_nav"] = _entries()
        flyouts = {f"flyout-{name.lower()}": name for name in SECTIONS}
        forced = set()
        labels = []

        def force_visible(arg, p):
            labels.append(arg["label"])
            # whole-token match, so "Men" never claims "flyout-women"
            key = f"-{arg['label'].lower()}-"
            hits = {fid for fid in flyouts if key in f"-{fid}-"}
            forced.update(hits)
            return len(hits)

        def dropdown_links(arg, p):
            # page-wide read: every visible flyout answers
            assert arg["scope"] is None
            out = []
            for fid in sorted(forced):
                out.extend(panel_links(flyouts[fid], 10))
            return out

        def restore(arg, p):
            count = len(forced)
            forced.clear()
            return count

        page.scripts["pattern.force_visible"] = force_visible
        page.scripts["pattern.dropdown_links"] = dropdown_links
        page.scripts["pattern.restore"] = restore

        clock = FakeClock()
        result = asyncio.run(_strategy(clock, library).discover(_ctx(page, clock=clock)))
        per_parent = {}
        for item in result.items:
            if item.parent:
                per_parent[item.parent] = per_parent.get(item.parent, 0) + 1
        assert per_parent == {"Women": 10, "Men": 10, "Kids": 10}
        assert labels == SECTIONS
        assert result.metadata["forced_visible"] == 3
        assert not forced

    def test_unnamed_document_flyout_left_alone(self):
        """No flyout names the entry: nothing is forced open."""
        template = PatternTemplate(
            name="test-flyout",
            container="li.nav-entry",
            trigger="a.nav-link",
            dropdowns=(".flyout-container",),
            dropdown_scope="document",
        )
        library = PatternLibrary().register(template, domains=["example.com"])
        page = FakePage()
        page.scripts["pattern.main_nav"] = _entries()[:1]
        page.scripts["pattern.dropdown_links"] = []
        page.scripts["pattern.force_visible"] = 0
        clock = FakeClock()
        result = asyncio.run(_strategy(clock, library).discover(_ctx(page, clock=clock)))
        assert [i.name for i in result.items] == ["Women"]
        assert result.metadata["forced_visible"] == 0


# ====================================================================
# 3. Applicability
# ====================================================================

class TestApplicability:
    """When the strategy applies and what it tries first."""

    def test_unregistered_domain_skipped(self):
        page = FakePage(url="https://www.unknown-shop.test/")
        ctx = DiscoveryContext(page=page, url=page.url, domain="unknown-shop.test")
        assert _strategy(FakeClock()).skip_reason(ctx) == "no_registered_pattern"
        assert _strategy(FakeClock()).skip_reason(_ctx(FakePage())) is None

    def test_missing_container(self):
        """Container never appears."""
        clock = FakeClock()
        page = _site()
        page.absent_selectors.add(TEMPLATE.container)
        result = asyncio.run(_strategy(clock).discover(_ctx(page, clock=clock)))
        assert result.items == []
        assert result.reason == "no_pattern_elements"

    def test_hinted_template_tried_first(self):
        strategy = _strategy(FakeClock(), PatternLibrary())
        page = FakePage(url="https://www.macys.com/")
        ctx = DiscoveryContext(page=page, url=page.url, domain="macys.com",
                               hints=Hint(panel_strategy="pattern:bootstrap-dropdown"))
        assert [t.name for t in strategy.templates_for(ctx)] == ["bootstrap-dropdown", "macys-megamenu"]


# ====================================================================
# 4. Hierarchy reconstruction
# ====================================================================

class TestReconstructHierarchy:

    def test_groups_attach_case_insensitively_and_orphans_follow(self):
        main = [NavigationItem(name="Women"), NavigationItem(name="Men")]
        groups = [
            ("women", [NavigationItem(name="Dresses", url="https://s.test/w/dresses", hierarchy_level=3)]),
            ("Sale", [NavigationItem(name="Last Chance", url="https://s.test/sale/last")]),
            ("Men", []),
        ]
        items = reconstruct_hierarchy(main, groups)
        assert [(i.name, i.parent, i.hierarchy_level) for i in items] == [
            ("Women", None, 1),
            ("Dresses", "Women", 2),
            ("Men", None, 1),
            ("Sale", None, 1),
            ("Last Chance", "Sale", 2),
        ]
        orphan = items[3]
        assert orphan.type is ItemType.DROPDOWN_CATEGORY
        assert orphan.url is None
        assert orphan.metadata == {"orphan": True}
