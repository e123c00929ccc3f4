"""
Site Quirks
===========
Static, domain-keyed interaction overrides for sites whose navigation UI
only behaves with a specific choreography (e.g. the pointer must leave
the header between hovers or the next flyout never opens).

The table is immutable once built; it is injected into the orchestrator
and read per run.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigurationError
from .utils import extract_domain, parent_domains

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SiteQuirk:
    needs_mouse_off_between_hovers: bool = False
    mouse_off_delay_ms: int = 500
    hover_delay_ms: Optional[int] = None      # overrides the probe's last hover checkpoint
    dismiss_delay_ms: Optional[int] = None
    mobile_first: bool = False
    prefer_click: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SiteQuirk":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"unknown site quirk keys: {sorted(unknown)}")
        return cls(**data)


NO_QUIRK = SiteQuirk()

DEFAULT_SITE_QUIRKS: Dict[str, SiteQuirk] = {
    'glasswingshop.com': SiteQuirk(needs_mouse_off_between_hovers=True, mouse_off_delay_ms=500),
    'macys.com': SiteQuirk(hover_delay_ms=3000),
    'nordstrom.com': SiteQuirk(hover_delay_ms=2500, dismiss_delay_ms=1000),
    'saks.com': SiteQuirk(hover_delay_ms=2000),
    'saksfifthavenue.com': SiteQuirk(hover_delay_ms=2000),
}


class SiteQuirkTable:
    """Read-only lookup of ``SiteQuirk`` by domain."""

    def __init__(self, quirks: Optional[Mapping[str, SiteQuirk]] = None):
        source = DEFAULT_SITE_QUIRKS if quirks is None else quirks
        self._quirks = MappingProxyType({d.lower(): q for d, q in source.items()})

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]], include_defaults: bool = True) -> "SiteQuirkTable":
        merged = dict(DEFAULT_SITE_QUIRKS) if include_defaults else {}
        for domain, values in data.items():
            merged[extract_domain(domain)] = SiteQuirk.from_dict(dict(values))
        return cls(merged)

    @classmethod
    def from_json(cls, path: str, include_defaults: bool = True) -> "SiteQuirkTable":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"cannot load site quirks from {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"site quirks file must hold an object: {path}")
        return cls.from_dict(data, include_defaults=include_defaults)

    def for_domain(self, url_or_domain: str) -> SiteQuirk:
        """Quirk for the host, falling back through parent domains."""
        domain = extract_domain(url_or_domain)
        for candidate in parent_domains(domain):
            quirk = self._quirks.get(candidate)
            if quirk is not None:
                return quirk
        return NO_QUIRK

    def __contains__(self, domain: str) -> bool:
        return self.for_domain(domain) is not NO_QUIRK

    def __len__(self) -> int:
        return len(self._quirks)
