"""Event source plugins."""

from __future__ import annotations

from typing import Mapping

from eventnexus.ingestion.plugins.base import (
    PluginConfig,
    SourcePlugin,
    extract_json_ld,
    extract_with_fallback,
)
from eventnexus.ingestion.plugins.eventbrite import EventbritePlugin
from eventnexus.ingestion.plugins.fractional_dubai import FractionalDubaiPlugin
from eventnexus.ingestion.plugins.luma import LumaPlugin
from eventnexus.ingestion.plugins.meetup import MeetupPlugin
from eventnexus.ingestion.plugins.runtime import PluginHealthStatus, PluginRuntime
from eventnexus.ingestion.runtime.http import HttpFetcher
from eventnexus.ingestion.runtime.rate_limiter import RateLimiter

PLUGIN_CLASSES: dict[str, type[SourcePlugin]] = {
    cls.source_key: cls
    for cls in (EventbritePlugin, MeetupPlugin, LumaPlugin, FractionalDubaiPlugin)
}


def build_plugins(
    configs: Mapping[str, PluginConfig] | None = None,
    *,
    limiter: RateLimiter | None = None,
    user_agent: str | None = None,
) -> list[SourcePlugin]:
    """
    Instantiate every known source plugin.

    All plugins share one rate limiter; each gets its own HTTP fetcher.
    Sources missing from ``configs`` use their defaults.

    Raises:
        ValueError: If ``configs`` names an unknown source
    """
    configs = dict(configs or {})
    unknown = set(configs) - set(PLUGIN_CLASSES)
    if unknown:
        raise ValueError(f"Unknown plugin source(s): {', '.join(sorted(unknown))}")

    limiter = limiter or RateLimiter()
    plugins: list[SourcePlugin] = []
    for key, cls in PLUGIN_CLASSES.items():
        config = configs.get(key) or PluginConfig()
        fetcher = HttpFetcher(user_agent=user_agent, default_timeout_s=config.timeout_s)
        plugins.append(cls(config, limiter=limiter, fetcher=fetcher))
    return plugins


__all__ = [
    "PLUGIN_CLASSES",
    "EventbritePlugin",
    "FractionalDubaiPlugin",
    "HttpFetcher",
    "LumaPlugin",
    "MeetupPlugin",
    "PluginConfig",
    "PluginHealthStatus",
    "PluginRuntime",
    "SourcePlugin",
    "build_plugins",
    "extract_json_ld",
    "extract_with_fallback",
]
