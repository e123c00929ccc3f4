"""
Discovery strategies.

Every strategy is a plain class with a ``name``, a ``hint_ttl_s`` (None
when it reports no hints) and ``async discover(ctx) -> StrategyResult``.
Strategies that only apply to some sites also offer
``skip_reason(ctx) -> Optional[str]``.  ``STRATEGY_FACTORIES`` maps the
names used in ``DiscoveryRunConfig.strategy_order`` to
``factory(config, toolkit)`` callables.
"""

from typing import Callable, Dict

from .adaptive import AdaptiveProbeStrategy
from .fallback_links import FallbackLinkStrategy
from .mega_menu import MegaMenuStrategy
from .mobile import MobileFallbackStrategy
from .pattern_match import PatternMatchStrategy, reconstruct_hierarchy
from .sector_template import SectorTemplateStrategy

STRATEGY_FACTORIES: Dict[str, Callable] = {
    PatternMatchStrategy.name: PatternMatchStrategy.from_config,
    MegaMenuStrategy.name: MegaMenuStrategy.from_config,
    AdaptiveProbeStrategy.name: AdaptiveProbeStrategy.from_config,
    SectorTemplateStrategy.name: SectorTemplateStrategy.from_config,
    FallbackLinkStrategy.name: FallbackLinkStrategy.from_config,
    MobileFallbackStrategy.name: MobileFallbackStrategy.from_config,
}

__all__ = [
    "STRATEGY_FACTORIES",
    "AdaptiveProbeStrategy",
    "FallbackLinkStrategy",
    "MegaMenuStrategy",
    "MobileFallbackStrategy",
    "PatternMatchStrategy",
    "SectorTemplateStrategy",
    "reconstruct_hierarchy",
]
