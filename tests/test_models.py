"""
Tests for the data model and URL/text helpers.

Covers:
  1. URL normalisation and domain helpers
  2. Keyword matching (substring vs whole word)
  3. NavigationItem validation
  4. StrategyResult invariants (dedup by normalized URL, clamped confidence)
  5. Hint serialisation
"""

import pytest

from navdiscovery.models import (
    Hint,
    InteractionMode,
    ItemType,
    NavigationItem,
    StrategyResult,
    TogglerPattern,
    dedupe_items,
    unique_url_ratio,
)
from navdiscovery.utils import (
    URLNormalizer,
    clean_text,
    contains_keyword,
    extract_domain,
    matches_keyword,
    parent_domains,
)


# ====================================================================
# 1. URL helpers
# ====================================================================

class TestURLNormalizer:
    """Canonical URL form used for dedup."""
    """Same destination, same normalized URL."""

    def test_strips_fragment_tracking_and_trailing_slash(self):
        n = URLNormalizer()
        a = n.normalize("https://www.shop.com/women/?utm_source=x#top")
        b = n.normalize("https://shop.com/women")
        assert a == b == "https://shop.com/women"

    def test_keeps_meaningful_query(self):
        """Non-tracking query parameters survive."""
        n = URLNormalizer()
        assert n.normalize("https://shop.com/c?id=12&gclid=abc") == "https://shop.com/c?id=12"

    def test_relative_resolved_against_base(self):
        n = URLNormalizer()
        assert n.normalize("/men", "https://www.shop.com/women/") == "https://shop.com/men"

    def test_non_navigational_hrefs_rejected(self):
        """javascript:, mailto:, tel: and bare fragments."""
        n = URLNormalizer()
        for href in ("javascript:void(0)", "mailto:a@b.c", "#", "", "tel:123"):
            assert n.normalize(href, "https://shop.com/") is None

    def test_resources_rejected(self):
        assert URLNormalizer().normalize("https://shop.com/banner.jpg") is None

    def test_absolutize_does_not_normalize(self):
        n = URLNormalizer()
        assert n.absolutize("/Women/", "https://www.shop.com/") == "https://www.shop.com/Women/"


class TestDomainHelpers:
    """Host handling for cache keys and table lookups."""

    def test_extract_domain_strips_www_and_lowercases(self):
        assert extract_domain("https://WWW.Macys.com/shop") == "macys.com"

    def test_extract_domain_accepts_bare_host(self):
        assert extract_domain("shop.example.com") == "shop.example.com"
        assert extract_domain("") == ""

    def test_parent_domains(self):
        """shop.example.com → example.com fallback chain."""
        assert list(parent_domains("a.shop.example.com")) == [
            "a.shop.example.com", "shop.example.com", "example.com",
        ]

    def test_clean_text(self):
        assert clean_text("  Women\n\t Shoes ") == "Women Shoes"
        assert clean_text(None) == ""


# ====================================================================
# 2. Keyword matching
# ====================================================================

class TestKeywordMatching:
    """Keyword lists used by the classifiers."""

    def test_matches_keyword_is_substring_either_way(self):
        assert matches_keyword("Women's Shoes", ["women"])
        assert matches_keyword("Men", ["men"])
        assert not matches_keyword("Lookbook", ["women", "men"])

    def test_contains_keyword_is_whole_word(self):
        """'men' does not match inside 'women'."""
        """'Bags' is a department, 'Shopping Bag' is basket chrome."""
        assert contains_keyword("Shopping Bag", ["bag"])
        assert not contains_keyword("Bags", ["bag"])

    def test_empty_text_never_matches(self):
        assert not matches_keyword("", ["women"])
        assert not contains_keyword("   ", ["bag"])


# ====================================================================
# 3. NavigationItem
# ====================================================================

class TestNavigationItem:
    """Item construction invariants."""

    def test_name_is_cleaned(self):
        item = NavigationItem(name="  New\nArrivals ")
        assert item.name == "New Arrivals"

    def test_empty_name_rejected(self):
        """Names must be non-empty after cleaning."""
        with pytest.raises(ValueError):
            NavigationItem(name="   ")

    def test_type_coerced_from_string(self):
        item = NavigationItem(name="Dresses", type="dropdown_item", hierarchy_level=2)
        assert item.type is ItemType.DROPDOWN_ITEM
        assert item.to_dict()["type"] == "dropdown_item"


# ====================================================================
# 4. StrategyResult invariants
# ====================================================================

class TestStrategyResult:
    """Result invariants."""

    def test_duplicate_urls_removed_on_construction(self):
        """No two items share a normalized URL."""
        items = [
            NavigationItem(name="Women", url="https://shop.com/women"),
            NavigationItem(name="Women again", url="https://www.shop.com/women/#x"),
            NavigationItem(name="Heading"),
            NavigationItem(name="Heading 2"),
        ]
        result = StrategyResult(strategy="t", items=items, confidence=0.5)
        assert [i.name for i in result.items] == ["Women", "Heading", "Heading 2"]
        assert result.metadata["duplicates_removed"] == 1
        assert result.metadata["item_count"] == 3

    def test_confidence_clamped(self):
        assert StrategyResult(strategy="t", confidence=1.7).confidence == 1.0
        assert StrategyResult(strategy="t", confidence=-0.2).confidence == 0.0

    def test_empty_carries_reason(self):
        result = StrategyResult.empty("adaptive", "no_togglers_found", header="#h")
        assert result.items == []
        assert result.confidence == 0.0
        assert result.reason == "no_togglers_found"
        assert result.metadata["header"] == "#h"

    def test_is_sufficient_needs_both_thresholds(self):
        """Confidence and item count must both clear."""
        items = [NavigationItem(name=f"I{i}", url=f"https://s.com/{i}") for i in range(5)]
        assert StrategyResult(strategy="t", items=items, confidence=0.7).is_sufficient(0.7, 5)
        assert not StrategyResult(strategy="t", items=items[:4], confidence=0.9).is_sufficient(0.7, 5)
        assert not StrategyResult(strategy="t", items=items, confidence=0.69).is_sufficient(0.7, 5)

    def test_unique_url_ratio(self):
        items = [
            NavigationItem(name="a", url="https://s.com/a"),
            NavigationItem(name="b", url="https://s.com/a/"),
            NavigationItem(name="c"),
        ]
        assert unique_url_ratio(items) == 0.5
        assert unique_url_ratio([]) == 1.0
        assert len(dedupe_items(items)) == 2


# ====================================================================
# 5. Hint
# ====================================================================

class TestHint:

    def test_dict_round_trip_keeps_interaction_modes(self):
        """Serialized form round-trips through JSON types."""
        hint = Hint(
            header_selector="#site-header",
            toggler_patterns=[TogglerPattern("Women", "nav > a", InteractionMode.CLICK)],
            panel_strategy="click",
            successful_triggers=["Women"],
        )
        restored = Hint.from_dict(hint.to_dict())
        assert restored == hint

    def test_from_dict_tolerates_missing_fields(self):
        hint = Hint.from_dict({"header_selector": "header"})
        assert hint.toggler_patterns == []
        assert hint.successful_triggers == []
