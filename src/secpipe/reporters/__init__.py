"""Reporter plugins for secpipe output formatting.

Built-in reporters are always available; additional ones are discovered
via Python entry points (secpipe.reporters group).
"""

from __future__ import annotations

from importlib.metadata import entry_points
from typing import Dict, List, Optional, Type

from secpipe.core.logging import get_logger
from secpipe.reporters.base import ReporterPlugin
from secpipe.reporters.html_reporter import HTMLReporter
from secpipe.reporters.json_reporter import JSONReporter
from secpipe.reporters.summary_reporter import SummaryReporter

LOGGER = get_logger(__name__)

REPORTER_ENTRY_POINT_GROUP = "secpipe.reporters"

BUILTIN_REPORTERS: Dict[str, Type[ReporterPlugin]] = {
    "html": HTMLReporter,
    "json": JSONReporter,
    "summary": SummaryReporter,
}


def discover_reporter_plugins() -> Dict[str, Type[ReporterPlugin]]:
    """Built-in reporters plus any installed via entry points."""
    plugins: Dict[str, Type[ReporterPlugin]] = dict(BUILTIN_REPORTERS)
    for ep in entry_points(group=REPORTER_ENTRY_POINT_GROUP):
        if ep.name in plugins:
            continue
        try:
            plugin_class = ep.load()
        except Exception as e:
            LOGGER.warning(f"Failed to load reporter plugin '{ep.name}': {e}")
            continue
        if isinstance(plugin_class, type) and issubclass(plugin_class, ReporterPlugin):
            plugins[ep.name] = plugin_class
        else:
            LOGGER.warning(f"Reporter plugin '{ep.name}' is not a ReporterPlugin")
    return plugins


def get_reporter_plugin(name: str) -> Optional[ReporterPlugin]:
    """Get an instantiated reporter plugin by name."""
    plugin_class = discover_reporter_plugins().get(name)
    if plugin_class is None:
        return None
    return plugin_class()


def list_available_reporters() -> List[str]:
    return sorted(discover_reporter_plugins())


__all__ = [
    "ReporterPlugin",
    "HTMLReporter",
    "JSONReporter",
    "SummaryReporter",
    "discover_reporter_plugins",
    "get_reporter_plugin",
    "list_available_reporters",
]
