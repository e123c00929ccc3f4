"""
Unified Run Configuration
=========================
Single source of truth for ALL discovery defaults and runtime limits.

Every component (header locator, trigger discoverer, interaction probe,
viewport manager, strategies, orchestrator) reads from this object.
Environment variables and CLI flags populate it; component-specific
config classes are built *from* it via converter methods.

The confidence thresholds and bonuses are empirically tuned values, not
derived invariants.  They are kept here as named, overridable fields so
they can be recalibrated against a held-out site corpus.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults: the ONLY place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    # Orchestrator
    "sufficient_confidence": 0.7,
    "min_items": 5,
    "strategy_order": (
        "pattern_match", "mega_menu", "adaptive", "sector_template",
        "fallback_links", "mobile_fallback",
    ),
    "run_timeout_s": None,            # None = no engine-level deadline
    "nav_ready_timeout_ms": 5000,
    # Header gate
    "header_top_cutoff_px": 300,
    "header_min_width_ratio": 0.2,
    "utility_sample_size": 20,
    "utility_max_ratio": 0.8,
    "max_header_candidates": 3,
    # Trigger discovery
    "max_togglers": 12,
    "max_togglers_to_sample": 2,
    "simple_nav_min_links": 3,
    # Interaction probe
    "hover_checkpoints_ms": (120, 260, 400),
    "click_checkpoints_ms": (120, 240, 350),
    "mega_menu_checkpoints_ms": (300, 800, 1500, 2000),
    "action_timeout_ms": 1500,
    "dismiss_delay_ms": 100,
    "panel_min_width": 100,
    "panel_min_height": 50,
    "panel_min_links": 3,
    # Mega-menu capture
    "max_mega_menus": 10,
    # Pattern extraction
    "pattern_container_timeout_ms": 10000,
    "pattern_item_timeout_ms": 10000,
    # Viewport
    "desktop_cutoff_px": 1200,
    "desktop_width": 1920,
    "desktop_height": 1080,
    "desktop_user_agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
    ),
    "mobile_width": 375,
    "mobile_height": 812,
    "navigation_timeout_ms": 20000,
    "settle_ms": 3000,
    "hamburger_wait_ms": 500,
    # Link collection
    "sector": "clothing",
    "sector_max_items": 200,
    "fallback_max_links": 500,
    "fallback_include_hidden": True,
    # Anti-bot
    "anti_bot_watch_list": ("homedepot.com", "walmart.com", "bestbuy.com"),
    # Hint cache
    "redis_url": None,
    "hint_key_prefix": "nav_hints",
    "mega_menu_hint_ttl_s": 7 * 24 * 3600,
    "adaptive_hint_ttl_s": 72 * 3600,
    # Site tables (None = built-in defaults)
    "site_quirks_path": None,
    "patterns_path": None,
}

_ENV_PREFIX = "NAVDISCOVERY_"


def _parse_ms_tuple(raw: str) -> Tuple[int, ...]:
    try:
        values = tuple(int(v) for v in raw.split(",") if v.strip())
    except ValueError as exc:
        raise ConfigurationError(f"expected comma-separated integers, got {raw!r}") from exc
    if not values or list(values) != sorted(values):
        raise ConfigurationError(f"checkpoints must be increasing: {raw!r}")
    return values


@dataclass
class DiscoveryRunConfig:
    """
    Unified configuration consumed by every discovery subsystem.

    Populate via:
      - ``DiscoveryRunConfig()``                 → all defaults
      - ``DiscoveryRunConfig(min_items=8)``      → override one value
      - ``DiscoveryRunConfig.from_env()``        → NAVDISCOVERY_* variables
      - ``DiscoveryRunConfig.from_cli_args(ns)`` → from argparse Namespace
    """

    # ---- Orchestrator ----
    sufficient_confidence: float = _DEFAULTS["sufficient_confidence"]
    min_items: int = _DEFAULTS["min_items"]
    strategy_order: Tuple[str, ...] = _DEFAULTS["strategy_order"]
    run_timeout_s: Optional[float] = _DEFAULTS["run_timeout_s"]
    nav_ready_timeout_ms: int = _DEFAULTS["nav_ready_timeout_ms"]

    # ---- Header gate ----
    header_top_cutoff_px: int = _DEFAULTS["header_top_cutoff_px"]
    header_min_width_ratio: float = _DEFAULTS["header_min_width_ratio"]
    utility_sample_size: int = _DEFAULTS["utility_sample_size"]
    utility_max_ratio: float = _DEFAULTS["utility_max_ratio"]
    max_header_candidates: int = _DEFAULTS["max_header_candidates"]

    # ---- Trigger discovery ----
    max_togglers: int = _DEFAULTS["max_togglers"]
    max_togglers_to_sample: int = _DEFAULTS["max_togglers_to_sample"]
    simple_nav_min_links: int = _DEFAULTS["simple_nav_min_links"]

    # ---- Interaction probe ----
    hover_checkpoints_ms: Tuple[int, ...] = _DEFAULTS["hover_checkpoints_ms"]
    click_checkpoints_ms: Tuple[int, ...] = _DEFAULTS["click_checkpoints_ms"]
    mega_menu_checkpoints_ms: Tuple[int, ...] = _DEFAULTS["mega_menu_checkpoints_ms"]
    action_timeout_ms: int = _DEFAULTS["action_timeout_ms"]
    dismiss_delay_ms: int = _DEFAULTS["dismiss_delay_ms"]
    panel_min_width: int = _DEFAULTS["panel_min_width"]
    panel_min_height: int = _DEFAULTS["panel_min_height"]
    panel_min_links: int = _DEFAULTS["panel_min_links"]

    # ---- Mega-menu / pattern extraction ----
    max_mega_menus: int = _DEFAULTS["max_mega_menus"]
    pattern_container_timeout_ms: int = _DEFAULTS["pattern_container_timeout_ms"]
    pattern_item_timeout_ms: int = _DEFAULTS["pattern_item_timeout_ms"]

    # ---- Viewport ----
    desktop_cutoff_px: int = _DEFAULTS["desktop_cutoff_px"]
    desktop_width: int = _DEFAULTS["desktop_width"]
    desktop_height: int = _DEFAULTS["desktop_height"]
    desktop_user_agent: str = _DEFAULTS["desktop_user_agent"]
    mobile_width: int = _DEFAULTS["mobile_width"]
    mobile_height: int = _DEFAULTS["mobile_height"]
    navigation_timeout_ms: int = _DEFAULTS["navigation_timeout_ms"]
    settle_ms: int = _DEFAULTS["settle_ms"]
    hamburger_wait_ms: int = _DEFAULTS["hamburger_wait_ms"]

    # ---- Link collection ----
    sector: str = _DEFAULTS["sector"]
    sector_max_items: int = _DEFAULTS["sector_max_items"]
    fallback_max_links: int = _DEFAULTS["fallback_max_links"]
    fallback_include_hidden: bool = _DEFAULTS["fallback_include_hidden"]

    # ---- Anti-bot ----
    anti_bot_watch_list: Tuple[str, ...] = _DEFAULTS["anti_bot_watch_list"]

    # ---- Hint cache ----
    redis_url: Optional[str] = _DEFAULTS["redis_url"]
    hint_key_prefix: str = _DEFAULTS["hint_key_prefix"]
    mega_menu_hint_ttl_s: int = _DEFAULTS["mega_menu_hint_ttl_s"]
    adaptive_hint_ttl_s: int = _DEFAULTS["adaptive_hint_ttl_s"]

    # ---- Site tables ----
    site_quirks_path: Optional[str] = _DEFAULTS["site_quirks_path"]
    patterns_path: Optional[str] = _DEFAULTS["patterns_path"]

    # ---- Confidence tuning (field names of ConfidenceConfig) ----
    confidence_overrides: dict = field(default_factory=dict)

    def __post_init__(self):
        if not 0.0 <= self.sufficient_confidence <= 1.0:
            raise ConfigurationError("sufficient_confidence must be within [0, 1]")
        if self.min_items < 0:
            raise ConfigurationError("min_items must be >= 0")
        from .strategies import STRATEGY_FACTORIES
        unknown = [name for name in self.strategy_order if name not in STRATEGY_FACTORIES]
        if unknown:
            raise ConfigurationError(f"unknown strategies in strategy_order: {unknown}")

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_env(cls, environ=None, **overrides) -> "DiscoveryRunConfig":
        """Build config from ``NAVDISCOVERY_*`` environment variables.

        Recognised: REDIS_URL, SUFFICIENT_CONFIDENCE, MIN_ITEMS,
        RUN_TIMEOUT_S, SECTOR, HOVER_CHECKPOINTS_MS, SITE_QUIRKS_PATH,
        PATTERNS_PATH, ANTI_BOT_WATCH_LIST (comma-separated).
        """
        env = os.environ if environ is None else environ

        def _get(name):
            value = env.get(_ENV_PREFIX + name)
            return value if value not in (None, "") else None

        kwargs = {}
        try:
            if _get("REDIS_URL"):
                kwargs["redis_url"] = _get("REDIS_URL")
            if _get("SUFFICIENT_CONFIDENCE"):
                kwargs["sufficient_confidence"] = float(_get("SUFFICIENT_CONFIDENCE"))
            if _get("MIN_ITEMS"):
                kwargs["min_items"] = int(_get("MIN_ITEMS"))
            if _get("RUN_TIMEOUT_S"):
                kwargs["run_timeout_s"] = float(_get("RUN_TIMEOUT_S"))
        except ValueError as exc:
            raise ConfigurationError(f"invalid numeric environment value: {exc}") from exc
        if _get("SECTOR"):
            kwargs["sector"] = _get("SECTOR")
        if _get("HOVER_CHECKPOINTS_MS"):
            kwargs["hover_checkpoints_ms"] = _parse_ms_tuple(_get("HOVER_CHECKPOINTS_MS"))
        if _get("SITE_QUIRKS_PATH"):
            kwargs["site_quirks_path"] = _get("SITE_QUIRKS_PATH")
        if _get("PATTERNS_PATH"):
            kwargs["patterns_path"] = _get("PATTERNS_PATH")
        if _get("ANTI_BOT_WATCH_LIST"):
            kwargs["anti_bot_watch_list"] = tuple(
                d.strip().lower() for d in _get("ANTI_BOT_WATCH_LIST").split(",") if d.strip()
            )
        kwargs.update(overrides)
        return cls(**kwargs)

    @classmethod
    def from_cli_args(cls, args) -> "DiscoveryRunConfig":
        """Build config from an argparse Namespace (``__main__.py``).

        Environment values apply first; explicit flags win.
        """
        overrides = {}
        if getattr(args, "redis_url", None):
            overrides["redis_url"] = args.redis_url
        if getattr(args, "timeout", None):
            overrides["run_timeout_s"] = float(args.timeout)
        if getattr(args, "sector", None):
            overrides["sector"] = args.sector
        if getattr(args, "min_confidence", None) is not None:
            overrides["sufficient_confidence"] = float(args.min_confidence)
        if getattr(args, "strategies", None):
            overrides["strategy_order"] = tuple(s.strip() for s in args.strategies.split(",") if s.strip())
        return cls.from_env(**overrides)

    # -----------------------------------------------------------------------
    # Converters to component-specific config objects
    # -----------------------------------------------------------------------
    def to_header_config(self):
        from .header_locator import HeaderConfig
        return HeaderConfig(
            top_cutoff_px=self.header_top_cutoff_px,
            min_width_ratio=self.header_min_width_ratio,
            utility_sample_size=self.utility_sample_size,
            utility_max_ratio=self.utility_max_ratio,
            max_candidates=self.max_header_candidates,
        )

    def to_trigger_config(self):
        from .trigger_discovery import TriggerConfig
        return TriggerConfig(max_togglers=self.max_togglers)

    def to_probe_config(self, mega_menu: bool = False):
        """Return a ``ProbeConfig``; *mega_menu* selects the longer hover budget."""
        from .interaction_probe import ProbeConfig
        return ProbeConfig(
            hover_checkpoints_ms=tuple(self.mega_menu_checkpoints_ms if mega_menu else self.hover_checkpoints_ms),
            click_checkpoints_ms=tuple(self.click_checkpoints_ms),
            action_timeout_ms=self.action_timeout_ms,
            dismiss_delay_ms=self.dismiss_delay_ms,
            panel_min_width=self.panel_min_width,
            panel_min_height=self.panel_min_height,
            panel_min_links=self.panel_min_links,
        )

    def to_viewport_config(self):
        from .viewport import ViewportConfig
        return ViewportConfig(
            desktop_cutoff_px=self.desktop_cutoff_px,
            desktop_width=self.desktop_width,
            desktop_height=self.desktop_height,
            desktop_user_agent=self.desktop_user_agent,
            mobile_width=self.mobile_width,
            mobile_height=self.mobile_height,
            navigation_timeout_ms=self.navigation_timeout_ms,
            settle_ms=self.settle_ms,
            hamburger_wait_ms=self.hamburger_wait_ms,
            min_items=self.min_items,
        )

    def to_confidence_config(self):
        from .confidence import ConfidenceConfig
        try:
            return ConfidenceConfig(**self.confidence_overrides)
        except TypeError as exc:
            raise ConfigurationError(f"unknown confidence setting: {exc}") from exc

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self, url: str) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 60)
        logger.info("NAVIGATION DISCOVERY RUN CONFIG")
        logger.info("=" * 60)
        logger.info(f"  URL:              {url}")
        logger.info(f"  Strategies:       {', '.join(self.strategy_order)}")
        logger.info(f"  Sufficient:       confidence >= {self.sufficient_confidence}, items >= {self.min_items}")
        logger.info(f"  Header Gate:      top <= {self.header_top_cutoff_px}px, width >= {self.header_min_width_ratio:.0%}")
        logger.info(f"  Togglers:         max {self.max_togglers}, sample {self.max_togglers_to_sample}")
        logger.info(f"  Hover Polling:    {'/'.join(str(c) for c in self.hover_checkpoints_ms)} ms")
        logger.info(f"  Desktop Cutoff:   {self.desktop_cutoff_px}px → {self.desktop_width}x{self.desktop_height}")
        logger.info(f"  Sector:           {self.sector}")
        logger.info(f"  Hint Store:       {'redis' if self.redis_url else 'in-memory'}")
        if self.run_timeout_s:
            logger.info(f"  Run Timeout:      {self.run_timeout_s}s")
        if self.confidence_overrides:
            logger.info(f"  Confidence:       {len(self.confidence_overrides)} override(s)")
        logger.info("=" * 60)
