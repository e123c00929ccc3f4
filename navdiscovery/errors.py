"""
Error Taxonomy
==============
Exceptions raised inside the discovery engine.

Only ``BrowserCrashedError`` is meant to reach the caller of
``StrategyOrchestrator.discover``; the others are caught by the
strategy that triggered them and turned into an empty
``StrategyResult`` carrying a reason code.
"""


class NavigationDiscoveryError(Exception):
    """Base class for every engine error."""


class DomScriptError(NavigationDiscoveryError):
    """A DOM script or selector threw inside the page."""

    def __init__(self, script_name: str, message: str):
        super().__init__(f"{script_name}: {message}")
        self.script_name = script_name


class DomTimeoutError(NavigationDiscoveryError):
    """A wait, navigation or DOM round trip exceeded its budget."""

    def __init__(self, operation: str, timeout_ms: float = 0):
        super().__init__(f"{operation} timed out after {timeout_ms:.0f}ms")
        self.operation = operation
        self.timeout_ms = timeout_ms


class BrowserCrashedError(NavigationDiscoveryError):
    """The page, context or browser is gone. The caller must recreate it."""


class ConfigurationError(NavigationDiscoveryError):
    """A quirk table, pattern template or run setting is malformed."""
