"""
Data Model
==========
Value objects passed between discovery components.

Responsibilities:
  1. **NavigationItem**   — one discovered navigation node
  2. **StrategyResult**   — what every strategy returns, including on failure
  3. **HeaderCandidate**  — a ranked guess at the primary navigation container
  4. **Toggler**          — a top-level element suspected of revealing a panel
  5. **Hint**             — per-domain record of selectors that worked before

``StrategyResult`` enforces the result invariants at construction time:
URL-bearing items are deduplicated by normalized URL and confidence is
clamped to ``[0, 1]``.  Nothing downstream has to re-check them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from .utils import URLNormalizer, clean_text

_NORMALIZER = URLNormalizer()


class ItemType(str, Enum):
    MAIN_SECTION = "main_section"
    DROPDOWN_ITEM = "dropdown_item"
    SUBCATEGORY = "subcategory"
    MOBILE_NAV = "mobile_nav"
    DROPDOWN_CATEGORY = "dropdown_category"


class InteractionMode(str, Enum):
    HOVER = "hover"
    CLICK = "click"


class Source(str, Enum):
    CACHE = "cache"
    DISCOVERY = "discovery"


# ---------------------------------------------------------------------------
# Items and results
# ---------------------------------------------------------------------------
@dataclass
class NavigationItem:
    """A single navigation node.  ``name`` is never empty."""
    name: str
    url: Optional[str] = None
    selector: Optional[str] = None
    type: ItemType = ItemType.MAIN_SECTION
    parent: Optional[str] = None
    hierarchy_level: int = 1
    discovered_via: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.name = clean_text(self.name)
        if not self.name:
            raise ValueError("NavigationItem.name must be non-empty")
        self.type = ItemType(self.type)

    @property
    def normalized_url(self) -> Optional[str]:
        if not self.url:
            return None
        return _NORMALIZER.normalize(self.url) or self.url

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


def dedupe_items(items: List[NavigationItem]) -> List[NavigationItem]:
    """Drop later items whose normalized URL was already seen.

    Items without a URL (section headings, group titles) are always kept.
    """
    seen = set()
    unique: List[NavigationItem] = []
    for item in items:
        key = item.normalized_url
        if key is not None:
            if key in seen:
                continue
            seen.add(key)
        unique.append(item)
    return unique


def unique_url_ratio(items: List[NavigationItem]) -> float:
    """Share of URL-bearing items whose normalized URL is unique (1.0 if none)."""
    urls = [i.normalized_url for i in items if i.normalized_url]
    if not urls:
        return 1.0
    return len(set(urls)) / len(urls)


@dataclass
class StrategyResult:
    """
    Outcome of one strategy invocation.

    Build failures through ``StrategyResult.empty(strategy, reason)`` so the
    reason code always lands in ``metadata['reason']``.
    """
    strategy: str
    items: List[NavigationItem] = field(default_factory=list)
    confidence: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)
    hints: Optional["Hint"] = None

    def __post_init__(self):
        raw_count = len(self.items)
        self.items = dedupe_items(self.items)
        if raw_count != len(self.items):
            self.metadata.setdefault("duplicates_removed", raw_count - len(self.items))
        self.confidence = max(0.0, min(1.0, float(self.confidence)))
        self.metadata.setdefault("strategy", self.strategy)
        self.metadata["item_count"] = len(self.items)

    @classmethod
    def empty(cls, strategy: str, reason: str, **metadata) -> "StrategyResult":
        metadata["reason"] = reason
        return cls(strategy=strategy, items=[], confidence=0.0, metadata=metadata)

    @property
    def reason(self) -> Optional[str]:
        return self.metadata.get("reason")

    def is_sufficient(self, min_confidence: float, min_items: int) -> bool:
        return self.confidence >= min_confidence and len(self.items) >= min_items

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "confidence": round(self.confidence, 4),
            "items": [i.to_dict() for i in self.items],
            "metadata": self.metadata,
            "hints": self.hints.to_dict() if self.hints else None,
        }


# ---------------------------------------------------------------------------
# Discovery intermediates
# ---------------------------------------------------------------------------
@dataclass
class Bounds:
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0


@dataclass
class HeaderCandidate:
    """A container hypothesized to hold the primary navigation.

    ``selector`` is a unique CSS path computed in the page and is the
    container reference used by every later DOM script.
    """
    selector: str
    source: Source = Source.DISCOVERY
    score: float = 0.0
    bounds: Bounds = field(default_factory=Bounds)
    matched_by: Optional[str] = None
    link_count: int = 0
    is_nav_container: bool = False


@dataclass
class Toggler:
    text: str
    selector: str                     # absolute path used to hover/click
    relative_selector: str            # path from the header root
    source: Source = Source.DISCOVERY
    preferred_interaction: Optional[InteractionMode] = None
    url: Optional[str] = None
    has_affordance: bool = False


@dataclass
class TogglerPattern:
    text: str
    selector: str
    interaction_mode: Optional[InteractionMode] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "selector": self.selector,
            "interaction_mode": self.interaction_mode.value if self.interaction_mode else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TogglerPattern":
        mode = data.get("interaction_mode")
        return cls(
            text=data["text"],
            selector=data["selector"],
            interaction_mode=InteractionMode(mode) if mode else None,
        )


@dataclass
class Hint:
    """Cached per-domain knowledge.  Serialized as JSON by ``HintCache``."""
    header_selector: Optional[str] = None
    toggler_patterns: List[TogglerPattern] = field(default_factory=list)
    panel_strategy: Optional[str] = None
    successful_triggers: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "header_selector": self.header_selector,
            "toggler_patterns": [p.to_dict() for p in self.toggler_patterns],
            "panel_strategy": self.panel_strategy,
            "successful_triggers": list(self.successful_triggers),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Hint":
        return cls(
            header_selector=data.get("header_selector"),
            toggler_patterns=[TogglerPattern.from_dict(p) for p in data.get("toggler_patterns") or []],
            panel_strategy=data.get("panel_strategy"),
            successful_triggers=list(data.get("successful_triggers") or []),
        )
