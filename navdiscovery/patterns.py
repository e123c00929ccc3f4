"""
Pattern Library
===============
Pre-authored selector sets plus hover/dismiss choreography for navigation
families that are known to work without any discovery phase.

A template is matched to a URL by explicit domain registration; anything
unregistered gets the universal template, which unions the common
container/dropdown selectors of the catalogue.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import ConfigurationError
from .models import InteractionMode
from .utils import extract_domain, parent_domains

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatternTemplate:
    """
    Selector groups for one navigation family.

    ``container``   — one element per top-level navigation entry
    ``trigger``     — element inside a container that is hovered/clicked
    ``dropdowns``   — containers holding the revealed links, tried in order
    ``dropdown_scope`` — ``"container"`` looks inside the entry,
                         ``"document"`` looks page-wide (detached flyouts)
    """
    name: str
    container: str
    trigger: str
    dropdowns: Tuple[str, ...]
    description: str = ""
    links: str = "a[href]"
    interaction: InteractionMode = InteractionMode.HOVER
    dropdown_scope: str = "container"
    hover_delay_ms: int = 1000
    dismiss_delay_ms: int = 300

    def __post_init__(self):
        missing = [k for k in ("name", "container", "trigger") if not getattr(self, k)]
        if missing or not self.dropdowns:
            raise ConfigurationError(
                f"pattern template needs name, container, trigger and dropdowns (missing: {missing or ['dropdowns']})"
            )
        if self.dropdown_scope not in ("container", "document"):
            raise ConfigurationError(f"dropdown_scope must be 'container' or 'document': {self.dropdown_scope}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PatternTemplate":
        data = dict(data)
        dropdowns = data.pop("dropdowns", None) or data.pop("dropdown", None)
        if isinstance(dropdowns, str):
            dropdowns = (dropdowns,)
        try:
            interaction = InteractionMode(data.pop("interaction", InteractionMode.HOVER))
            return cls(dropdowns=tuple(dropdowns or ()), interaction=interaction, **data)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"invalid pattern template {data.get('name')!r}: {exc}") from exc


# ---------------------------------------------------------------------------
# Built-in catalogue, ordered by observed success rate
# ---------------------------------------------------------------------------
BUILTIN_PATTERNS: Tuple[PatternTemplate, ...] = (
    PatternTemplate(
        name="shopify-dropdown",
        description="Shopify-style dropdown navigation",
        container="li.dropdown-toggle",
        trigger="p.dropdown-title",
        dropdowns=(".dropdown-content",),
        hover_delay_ms=800,
    ),
    PatternTemplate(
        name="macys-megamenu",
        description="Mega-menu with flyouts rendered outside the nav list",
        container="li.fob-item",
        trigger="a.menu-link-heavy",
        dropdowns=("#flyout-container", ".flyout-container", "[id*='flyout']", "[class*='flyout']"),
        dropdown_scope="document",
        hover_delay_ms=3000,
        dismiss_delay_ms=500,
    ),
    PatternTemplate(
        name="bootstrap-dropdown",
        description="Standard Bootstrap dropdown navigation",
        container=".dropdown",
        trigger=".dropdown-toggle",
        dropdowns=(".dropdown-menu",),
    ),
    PatternTemplate(
        name="simple-nav-ul",
        description="Plain nav list with nested ul menus",
        container="nav li",
        trigger="a",
        dropdowns=("ul",),
    ),
    PatternTemplate(
        name="amazon-nav",
        description="Amazon-style navigation panels",
        container="#nav-main .nav-item",
        trigger="a",
        dropdowns=(".nav-panel",),
    ),
    PatternTemplate(
        name="material-nav",
        description="Material Design anchored menus",
        container=".mdc-menu-surface--anchor",
        trigger="button",
        dropdowns=(".mdc-menu",),
        interaction=InteractionMode.CLICK,
    ),
    PatternTemplate(
        name="semantic-ui-dropdown",
        description="Semantic UI dropdown navigation",
        container=".ui.dropdown",
        trigger=".text",
        dropdowns=(".menu",),
    ),
    PatternTemplate(
        name="foundation-dropdown",
        description="Zurb Foundation dropdown panes",
        container=".dropdown-pane",
        trigger='[data-toggle="dropdown"]',
        dropdowns=(".dropdown-content",),
        interaction=InteractionMode.CLICK,
    ),
)

UNIVERSAL_PATTERN = PatternTemplate(
    name="universal",
    description="Union of common navigation containers",
    container="nav > ul > li, header nav li, [role='navigation'] > ul > li, .nav-item, .menu-item",
    trigger=":scope > a, :scope > button, :scope > span",
    dropdowns=(
        ".dropdown-menu", ".dropdown-content", ".submenu", ".sub-menu",
        ".mega-menu", "[class*='dropdown']", "ul",
    ),
)

BUILTIN_DOMAIN_MAP: Dict[str, Tuple[str, ...]] = {
    "glasswingshop.com": ("shopify-dropdown",),
    "macys.com": ("macys-megamenu", "bootstrap-dropdown"),
    "amazon.com": ("amazon-nav", "simple-nav-ul"),
    "nordstrom.com": ("bootstrap-dropdown", "simple-nav-ul"),
    "target.com": ("bootstrap-dropdown", "simple-nav-ul"),
    "walmart.com": ("simple-nav-ul", "bootstrap-dropdown"),
    "homedepot.com": ("bootstrap-dropdown", "simple-nav-ul"),
    "lowes.com": ("bootstrap-dropdown", "simple-nav-ul"),
}


class PatternLibrary:
    """Immutable template catalogue with domain registration."""

    def __init__(
        self,
        templates: Iterable[PatternTemplate] = BUILTIN_PATTERNS,
        domain_map: Optional[Mapping[str, Iterable[str]]] = None,
        universal: PatternTemplate = UNIVERSAL_PATTERN,
    ):
        by_name: Dict[str, PatternTemplate] = {}
        for template in templates:
            by_name[template.name] = template
        source_map = BUILTIN_DOMAIN_MAP if domain_map is None else domain_map
        registrations: Dict[str, Tuple[str, ...]] = {}
        for domain, names in source_map.items():
            names = tuple(names)
            missing = [n for n in names if n not in by_name]
            if missing:
                raise ConfigurationError(f"{domain} registers unknown templates: {missing}")
            registrations[extract_domain(domain)] = names
        self._templates = MappingProxyType(by_name)
        self._registrations = MappingProxyType(registrations)
        self.universal = universal

    def register(self, template: PatternTemplate, domains: Iterable[str] = ()) -> "PatternLibrary":
        """Return a new library with *template* added and registered for *domains*."""
        templates = [t for t in self._templates.values() if t.name != template.name] + [template]
        domain_map = {d: list(n) for d, n in self._registrations.items()}
        for domain in domains:
            names = domain_map.setdefault(extract_domain(domain), [])
            if template.name not in names:
                names.insert(0, template.name)
        return PatternLibrary(templates, domain_map, self.universal)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], include_builtins: bool = True) -> "PatternLibrary":
        """Build from ``{"templates": [...], "domains": {domain: [names]}}``."""
        templates: List[PatternTemplate] = list(BUILTIN_PATTERNS) if include_builtins else []
        extra = [PatternTemplate.from_dict(t) for t in data.get("templates", [])]
        names = {t.name for t in extra}
        templates = [t for t in templates if t.name not in names] + extra
        domain_map = dict(BUILTIN_DOMAIN_MAP) if include_builtins else {}
        domain_map.update({d: tuple(n) for d, n in data.get("domains", {}).items()})
        return cls(templates, domain_map)

    @classmethod
    def from_json(cls, path: str, include_builtins: bool = True) -> "PatternLibrary":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"cannot load pattern library from {path}: {exc}") from exc
        return cls.from_dict(data, include_builtins=include_builtins)

    # -----------------------------------------------------------------------
    # Lookup
    # -----------------------------------------------------------------------
    def get(self, name: str) -> Optional[PatternTemplate]:
        return self._templates.get(name)

    def registered_for(self, url: str) -> List[PatternTemplate]:
        """Templates explicitly registered for the URL's domain, in preference order."""
        domain = extract_domain(url)
        for candidate in parent_domains(domain):
            names = self._registrations.get(candidate)
            if names:
                return [self._templates[n] for n in names]
        return []

    def has_registered(self, url: str) -> bool:
        return bool(self.registered_for(url))

    def match(self, url: str) -> PatternTemplate:
        """First registered template for *url*, else the universal template."""
        registered = self.registered_for(url)
        return registered[0] if registered else self.universal

    def __len__(self) -> int:
        return len(self._templates)
