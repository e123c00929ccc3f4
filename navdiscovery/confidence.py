"""
Confidence Scoring
==================
Turns a discovered item set plus discovery metadata into a ``[0, 1]``
confidence value.

One additive function, several tuned profiles:

  score = has_items_bonus
        + coverage_weight   * min(items, coverage_saturation) / coverage_saturation
        + trigger_weight    * min(successes / triggers_probed, 1)
        + hierarchy_bonus   (if more than one level was found)
        + department_weight * min(departments, department_saturation) / department_saturation
        + mixed_visibility_bonus (visible and hidden links both present)
        - sparse_penalty    (items below sparse_threshold)
        - duplicate_penalty (unique-URL ratio below duplicate_ratio_threshold)

clamped to the profile's ``[floor, ceiling]`` and then to ``[0, 1]``.
An empty item set always scores 0.  Holding the other signals fixed the
score never decreases as the item count grows.

Every constant is a field of ``ConfidenceConfig`` so it can be overridden
from ``DiscoveryRunConfig.confidence_overrides``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ConfidenceProfile:
    has_items_bonus: float = 0.0
    coverage_weight: float = 0.0
    coverage_saturation: int = 50
    trigger_weight: float = 0.0
    hierarchy_bonus: float = 0.0
    department_weight: float = 0.0
    department_saturation: int = 1
    mixed_visibility_bonus: float = 0.0
    sparse_threshold: int = 0
    sparse_penalty: float = 0.0
    floor: float = 0.0
    ceiling: float = 1.0


@dataclass
class ConfidenceSignals:
    """Inputs to the scorer.

    ``successes`` defaults to the item count, which makes the trigger
    term the *items found / triggers probed* ratio.  Mega-menu capture
    passes the number of menus captured instead.
    """
    item_count: int
    triggers_probed: int = 0
    successes: Optional[int] = None
    has_hierarchy: bool = False
    unique_url_ratio: float = 1.0
    department_count: int = 0
    mixed_visibility: bool = False


@dataclass
class ConfidenceConfig:
    # ---- Shared ----
    duplicate_ratio_threshold: float = 0.8
    duplicate_penalty: float = 0.1

    # ---- Adaptive header/trigger probing ----
    adaptive_has_items: float = 0.3
    adaptive_coverage: float = 0.3
    adaptive_coverage_saturation: int = 8
    adaptive_trigger: float = 0.2
    adaptive_hierarchy: float = 0.2

    # ---- Mega-menu capture ----
    mega_menu_coverage: float = 0.3
    mega_menu_coverage_saturation: int = 50
    mega_menu_success: float = 0.6
    mega_menu_multi_column: float = 0.1

    # ---- Sector template ----
    sector_base: float = 0.4
    sector_coverage: float = 0.2
    sector_coverage_saturation: int = 50
    sector_department: float = 0.3
    sector_department_saturation: int = 6
    sector_hierarchy: float = 0.1
    sector_sparse_threshold: int = 5
    sector_sparse_penalty: float = 0.2
    sector_floor: float = 0.1
    sector_ceiling: float = 0.9

    # ---- Fallback link collection ----
    fallback_base: float = 0.3
    fallback_coverage: float = 0.3
    fallback_coverage_saturation: int = 100
    fallback_department: float = 0.2
    fallback_department_saturation: int = 6
    fallback_mixed_visibility: float = 0.1
    fallback_sparse_threshold: int = 5
    fallback_sparse_penalty: float = 0.1
    fallback_floor: float = 0.1
    fallback_ceiling: float = 0.8

    # ---- Pattern-informed tiers ----
    pattern_high: float = 0.95
    pattern_high_items: int = 50
    pattern_medium: float = 0.8
    pattern_medium_items: int = 10
    pattern_low: float = 0.6

    # ---- Mobile fallback ----
    mobile_success: float = 0.8


class ConfidenceScorer:
    """Deterministic scorer; one instance per run, shared by all strategies."""

    PROFILES = ("adaptive", "mega_menu", "sector", "fallback")

    def __init__(self, config: Optional[ConfidenceConfig] = None):
        self.config = config or ConfidenceConfig()

    def profile(self, name: str) -> ConfidenceProfile:
        c = self.config
        if name == "adaptive":
            return ConfidenceProfile(
                has_items_bonus=c.adaptive_has_items,
                coverage_weight=c.adaptive_coverage,
                coverage_saturation=c.adaptive_coverage_saturation,
                trigger_weight=c.adaptive_trigger,
                hierarchy_bonus=c.adaptive_hierarchy,
            )
        if name == "mega_menu":
            return ConfidenceProfile(
                coverage_weight=c.mega_menu_coverage,
                coverage_saturation=c.mega_menu_coverage_saturation,
                trigger_weight=c.mega_menu_success,
                hierarchy_bonus=c.mega_menu_multi_column,
            )
        if name == "sector":
            return ConfidenceProfile(
                has_items_bonus=c.sector_base,
                coverage_weight=c.sector_coverage,
                coverage_saturation=c.sector_coverage_saturation,
                hierarchy_bonus=c.sector_hierarchy,
                department_weight=c.sector_department,
                department_saturation=c.sector_department_saturation,
                sparse_threshold=c.sector_sparse_threshold,
                sparse_penalty=c.sector_sparse_penalty,
                floor=c.sector_floor,
                ceiling=c.sector_ceiling,
            )
        if name == "fallback":
            return ConfidenceProfile(
                has_items_bonus=c.fallback_base,
                coverage_weight=c.fallback_coverage,
                coverage_saturation=c.fallback_coverage_saturation,
                department_weight=c.fallback_department,
                department_saturation=c.fallback_department_saturation,
                mixed_visibility_bonus=c.fallback_mixed_visibility,
                sparse_threshold=c.fallback_sparse_threshold,
                sparse_penalty=c.fallback_sparse_penalty,
                floor=c.fallback_floor,
                ceiling=c.fallback_ceiling,
            )
        raise KeyError(f"unknown confidence profile: {name}")

    def score(self, signals: ConfidenceSignals, profile: str) -> float:
        p = self.profile(profile)
        n = max(0, signals.item_count)
        if n == 0:
            return 0.0

        total = p.has_items_bonus
        if p.coverage_saturation > 0:
            total += p.coverage_weight * min(n, p.coverage_saturation) / p.coverage_saturation
        if signals.triggers_probed > 0:
            successes = n if signals.successes is None else signals.successes
            total += p.trigger_weight * min(successes / signals.triggers_probed, 1.0)
        if signals.has_hierarchy:
            total += p.hierarchy_bonus
        if p.department_saturation > 0 and signals.department_count > 0:
            total += p.department_weight * min(signals.department_count, p.department_saturation) / p.department_saturation
        if signals.mixed_visibility:
            total += p.mixed_visibility_bonus
        if n < p.sparse_threshold:
            total -= p.sparse_penalty
        if signals.unique_url_ratio < self.config.duplicate_ratio_threshold:
            total -= self.config.duplicate_penalty

        total = max(p.floor, min(p.ceiling, total))
        return max(0.0, min(1.0, total))

    def pattern_score(self, item_count: int) -> float:
        """Tiered confidence for template-driven extraction."""
        c = self.config
        if item_count <= 0:
            return 0.0
        if item_count > c.pattern_high_items:
            return c.pattern_high
        if item_count > c.pattern_medium_items:
            return c.pattern_medium
        return c.pattern_low

    def mobile_score(self, item_count: int, min_items: int) -> float:
        return self.config.mobile_success if item_count >= min_items else 0.0
