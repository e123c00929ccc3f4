"""
Navigation Discovery Package
Discovers the category navigation of e-commerce sites by driving a real
browser page through a chain of complementary strategies.

Engine usage (the caller owns the browser and the page):

    from navdiscovery import DiscoveryRunConfig, StrategyOrchestrator

    orchestrator = StrategyOrchestrator(DiscoveryRunConfig.from_env())
    result = await orchestrator.discover(page)

CLI Usage:
    python -m navdiscovery <url> [options]

    Options:
        --headed        Show the browser window
        --mobile        Open the page in a phone-sized viewport
        --sector        Sector template (default: clothing)
        --redis-url     Redis hint store (default: in-memory)
        --timeout       Overall discovery deadline in seconds
        --output-json   Export the result to a JSON file
"""

from .errors import (
    BrowserCrashedError,
    ConfigurationError,
    DomScriptError,
    DomTimeoutError,
    NavigationDiscoveryError,
)
from .models import (
    HeaderCandidate,
    Hint,
    InteractionMode,
    ItemType,
    NavigationItem,
    Source,
    StrategyResult,
    Toggler,
    TogglerPattern,
)
from .run_config import DiscoveryRunConfig
from .confidence import ConfidenceConfig, ConfidenceScorer
from .hint_cache import HintCache, InMemoryKeyValueStore, RedisKeyValueStore
from .site_quirks import SiteQuirk, SiteQuirkTable
from .patterns import PatternLibrary, PatternTemplate
from .orchestrator import StrategyOrchestrator

__version__ = "0.1.0"

__all__ = [
    'StrategyOrchestrator',
    'DiscoveryRunConfig',
    # Data model
    'NavigationItem',
    'StrategyResult',
    'HeaderCandidate',
    'Toggler',
    'TogglerPattern',
    'Hint',
    'ItemType',
    'InteractionMode',
    'Source',
    # Tables and scoring
    'SiteQuirk',
    'SiteQuirkTable',
    'PatternLibrary',
    'PatternTemplate',
    'ConfidenceConfig',
    'ConfidenceScorer',
    # Hint store
    'HintCache',
    'InMemoryKeyValueStore',
    'RedisKeyValueStore',
    # Errors
    'NavigationDiscoveryError',
    'DomScriptError',
    'DomTimeoutError',
    'BrowserCrashedError',
    'ConfigurationError',
]
