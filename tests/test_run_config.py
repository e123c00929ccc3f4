"""
Tests for run configuration and the static site tables.

Covers:
  1. DiscoveryRunConfig defaults, validation, env/CLI population, converters
  2. SiteQuirkTable lookup and loading
  3. PatternLibrary registration, lookup and loading
"""

import argparse
import json

import pytest

from navdiscovery.errors import ConfigurationError
from navdiscovery.models import InteractionMode
from navdiscovery.patterns import PatternLibrary, PatternTemplate
from navdiscovery.run_config import DiscoveryRunConfig
from navdiscovery.site_quirks import NO_QUIRK, SiteQuirk, SiteQuirkTable


# ====================================================================
# 1. DiscoveryRunConfig
# ====================================================================

class TestRunConfig:
    """Defaults, validation and loaders."""

    def test_defaults(self):
        cfg = DiscoveryRunConfig()
        assert cfg.sufficient_confidence == 0.7
        assert cfg.min_items == 5
        assert cfg.strategy_order[0] == "pattern_match"
        assert cfg.strategy_order[-1] == "mobile_fallback"
        assert cfg.redis_url is None

    def test_threshold_out_of_range(self):
        with pytest.raises(ConfigurationError):
            DiscoveryRunConfig(sufficient_confidence=1.5)

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ConfigurationError, match="warp_drive"):
            DiscoveryRunConfig(strategy_order=("adaptive", "warp_drive"))

    def test_from_env(self):
        """NAVDISCOVERY_* variables populate the config."""
        env = {
            "NAVDISCOVERY_REDIS_URL": "redis://cache:6379/2",
            "NAVDISCOVERY_MIN_ITEMS": "8",
            "NAVDISCOVERY_SUFFICIENT_CONFIDENCE": "0.6",
            "NAVDISCOVERY_HOVER_CHECKPOINTS_MS": "100,250,500",
            "NAVDISCOVERY_ANTI_BOT_WATCH_LIST": "Example.com, shop.test",
            "NAVDISCOVERY_SECTOR": "",
        }
        cfg = DiscoveryRunConfig.from_env(env)
        assert cfg.redis_url == "redis://cache:6379/2"
        assert cfg.min_items == 8
        assert cfg.sufficient_confidence == 0.6
        assert cfg.hover_checkpoints_ms == (100, 250, 500)
        assert cfg.anti_bot_watch_list == ("example.com", "shop.test")
        assert cfg.sector == "clothing"

    def test_from_env_bad_number(self):
        with pytest.raises(ConfigurationError):
            DiscoveryRunConfig.from_env({"NAVDISCOVERY_MIN_ITEMS": "five"})

    def test_checkpoints_must_increase(self):
        with pytest.raises(ConfigurationError):
            DiscoveryRunConfig.from_env({"NAVDISCOVERY_HOVER_CHECKPOINTS_MS": "300,100"})

    def test_cli_flags_win_over_env(self, monkeypatch):
        """Explicit flags override environment values."""
        monkeypatch.setenv("NAVDISCOVERY_SECTOR", "grocery")
        args = argparse.Namespace(
            redis_url=None, timeout=90, sector="hardware", min_confidence=0.5,
            strategies="adaptive, fallback_links",
        )
        cfg = DiscoveryRunConfig.from_cli_args(args)
        assert cfg.sector == "hardware"
        assert cfg.run_timeout_s == 90.0
        assert cfg.sufficient_confidence == 0.5
        assert cfg.strategy_order == ("adaptive", "fallback_links")

    def test_probe_config_converter(self):
        """mega_menu selects the long hover budget."""
        cfg = DiscoveryRunConfig(panel_min_links=4)
        assert cfg.to_probe_config().hover_checkpoints_ms == (120, 260, 400)
        mega = cfg.to_probe_config(mega_menu=True)
        assert mega.hover_checkpoints_ms == (300, 800, 1500, 2000)
        assert mega.panel_min_links == 4

    def test_viewport_and_header_converters(self):
        cfg = DiscoveryRunConfig(desktop_cutoff_px=1000, header_top_cutoff_px=250)
        assert cfg.to_viewport_config().desktop_cutoff_px == 1000
        assert cfg.to_viewport_config().min_items == 5
        assert cfg.to_header_config().top_cutoff_px == 250

    def test_confidence_overrides(self):
        """Overrides reach ConfidenceConfig by field name."""
        cfg = DiscoveryRunConfig(confidence_overrides={"mobile_success": 0.75})
        assert cfg.to_confidence_config().mobile_success == 0.75
        with pytest.raises(ConfigurationError):
            DiscoveryRunConfig(confidence_overrides={"nonsense": 1}).to_confidence_config()


# ====================================================================
# 2. Site quirks
# ====================================================================

class TestSiteQuirks:
    """Per-domain interaction overrides."""

    def test_builtin_lookup_through_subdomains(self):
        """www. and subdomains resolve to the registered domain."""
        table = SiteQuirkTable()
        quirk = table.for_domain("https://www.glasswingshop.com/collections")
        assert quirk.needs_mouse_off_between_hovers
        assert table.for_domain("shop.macys.com").hover_delay_ms == 3000
        assert "glasswingshop.com" in table

    def test_unknown_domain_gets_default(self):
        assert SiteQuirkTable().for_domain("example.org") is NO_QUIRK

    def test_from_dict_merges_defaults(self):
        table = SiteQuirkTable.from_dict({"www.example.com": {"mobile_first": True}})
        assert table.for_domain("example.com").mobile_first
        assert table.for_domain("macys.com").hover_delay_ms == 3000

    def test_unknown_keys_rejected(self):
        """Typos in a quirk table are configuration errors."""
        with pytest.raises(ConfigurationError):
            SiteQuirkTable.from_dict({"example.com": {"teleport": True}})

    def test_from_json(self, tmp_path):
        """Templates and registrations load from JSON."""
        path = tmp_path / "quirks.json"
        path.write_text(json.dumps({"example.com": {"prefer_click": True}}))
        table = SiteQuirkTable.from_json(str(path), include_defaults=False)
        assert table.for_domain("example.com") == SiteQuirk(prefer_click=True)
        assert len(table) == 1

    def test_from_json_bad_file(self, tmp_path):
        path = tmp_path / "quirks.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigurationError):
            SiteQuirkTable.from_json(str(path))
        with pytest.raises(ConfigurationError):
            SiteQuirkTable.from_json(str(tmp_path / "missing.json"))


# ====================================================================
# 3. Pattern library
# ====================================================================

class TestPatternLibrary:
    """Template catalogue and domain registration."""

    def test_registered_domain(self):
        lib = PatternLibrary()
        names = [t.name for t in lib.registered_for("https://www.macys.com/")]
        assert names == ["macys-megamenu", "bootstrap-dropdown"]
        assert lib.match("https://www.macys.com/").dropdown_scope == "document"

    def test_unregistered_gets_universal(self):
        lib = PatternLibrary()
        assert not lib.has_registered("https://example.org")
        assert lib.match("https://example.org").name == "universal"

    def test_register_returns_new_library(self):
        """Libraries are immutable; register returns a copy."""
        lib = PatternLibrary()
        template = PatternTemplate(name="custom", container="li.x", trigger="a", dropdowns=(".panel",))
        extended = lib.register(template, domains=["shop.example.com"])
        assert extended.registered_for("shop.example.com")[0].name == "custom"
        assert not lib.has_registered("shop.example.com")

    def test_template_validation(self):
        with pytest.raises(ConfigurationError):
            PatternTemplate(name="broken", container="li", trigger="a", dropdowns=())
        with pytest.raises(ConfigurationError):
            PatternTemplate(name="broken", container="li", trigger="a", dropdowns=("ul",), dropdown_scope="window")

    def test_unknown_registration_rejected(self):
        with pytest.raises(ConfigurationError):
            PatternLibrary(domain_map={"example.com": ["missing"]})

    def test_from_json(self, tmp_path):
        path = tmp_path / "patterns.json"
        path.write_text(json.dumps({
            "templates": [{
                "name": "click-tabs", "container": ".tab", "trigger": "button",
                "dropdown": ".tab-panel", "interaction": "click",
            }],
            "domains": {"example.com": ["click-tabs"]},
        }))
        lib = PatternLibrary.from_json(str(path))
        template = lib.match("https://example.com/")
        assert template.name == "click-tabs"
        assert template.dropdowns == (".tab-panel",)
        assert template.interaction is InteractionMode.CLICK
        assert lib.has_registered("macys.com")

    def test_from_dict_bad_interaction(self):
        with pytest.raises(ConfigurationError):
            PatternLibrary.from_dict({"templates": [{
                "name": "x", "container": "li", "trigger": "a", "dropdowns": ["ul"], "interaction": "wave",
            }]})
