"""Plugin configuration loader.

Reads ``plugins.yaml``, fills ``${NAME}`` placeholders from ``Settings``
and turns each source block into a ``PluginConfig``. This is the only place
that touches the environment or the filesystem; the ingestion core receives
ready-made objects.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml

from eventnexus.configs.settings import Settings, get_settings
from eventnexus.ingestion.deduplication import get_deduplicator
from eventnexus.ingestion.orchestrator import EventSink, FilterSource, IngestionOrchestrator
from eventnexus.ingestion.plugins import build_plugins
from eventnexus.ingestion.plugins.base import PluginConfig
from eventnexus.ingestion.registry import PluginRegistry
from eventnexus.ingestion.runtime.rate_limiter import RateLimiter, RateLimitPolicy

_SCALAR_FIELDS = (
    "enabled",
    "timeout_s",
    "max_retries",
    "retry_delay_s",
    "backoff_mode",
    "max_retry_delay_s",
    "max_rate_limit_wait_s",
)
_OPTIONAL_TEXT_FIELDS = ("api_key", "base_url", "timezone")
_KNOWN_FIELDS = frozenset(
    _SCALAR_FIELDS + _OPTIONAL_TEXT_FIELDS + ("definitive_status", "rate_limit", "settings")
)


def substitute_placeholders(content: str, settings: Settings) -> str:
    """Replace ``${NAME}`` with the matching settings value; unset values become empty."""
    for key, value in settings.model_dump().items():
        placeholder = f"${{{key}}}"
        if placeholder not in content:
            continue
        # Handle SecretStr
        if hasattr(value, "get_secret_value"):
            value = value.get_secret_value()
        content = content.replace(placeholder, "" if value is None else str(value))
    return content


def load_plugins_file(path: Path | str | None = None, settings: Settings | None = None) -> dict:
    """Load the YAML plugin configuration with placeholders substituted."""
    settings = settings or get_settings()
    path = Path(path or settings.PLUGINS_CONFIG_PATH)
    if not path.exists():
        raise FileNotFoundError(f"Missing config at {path}")

    with open(path, encoding="utf-8") as f:
        content = substitute_placeholders(f.read(), settings)
    return yaml.safe_load(content) or {}


def plugin_config_from_dict(data: Mapping[str, Any]) -> PluginConfig:
    """
    Build a ``PluginConfig`` from one YAML block.

    Raises:
        ValueError: On unknown keys or invalid values
    """
    unknown = set(data) - _KNOWN_FIELDS
    if unknown:
        raise ValueError(f"Unknown plugin config key(s): {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {k: data[k] for k in _SCALAR_FIELDS if data.get(k) is not None}
    for k in _OPTIONAL_TEXT_FIELDS:
        value = data.get(k)
        kwargs[k] = str(value).strip() or None if value is not None else None

    if data.get("definitive_status") is not None:
        kwargs["definitive_status"] = tuple(int(s) for s in data["definitive_status"])

    rate_limit = data.get("rate_limit")
    if rate_limit:
        kwargs["rate_limit"] = RateLimitPolicy(
            limit=int(rate_limit.get("limit", 60)),
            window_s=float(rate_limit.get("window_s", 3600.0)),
        )

    kwargs["settings"] = dict(data.get("settings") or {})
    return PluginConfig(**kwargs)


def load_plugin_configs(
    path: Path | str | None = None,
    settings: Settings | None = None,
) -> dict[str, PluginConfig]:
    """Per-source ``PluginConfig`` objects, each merged over the ``defaults`` block."""
    raw = load_plugins_file(path, settings)
    defaults = raw.get("defaults") or {}
    configs: dict[str, PluginConfig] = {}
    for source_key, block in (raw.get("plugins") or {}).items():
        merged = {**defaults, **(block or {})}
        configs[source_key] = plugin_config_from_dict(merged)
    return configs


def build_registry(
    path: Path | str | None = None,
    settings: Settings | None = None,
    *,
    limiter: RateLimiter | None = None,
) -> PluginRegistry:
    """Registry holding every source plugin, configured from ``plugins.yaml``."""
    settings = settings or get_settings()
    configs = load_plugin_configs(path, settings)
    return PluginRegistry(build_plugins(configs, limiter=limiter, user_agent=settings.USER_AGENT))


def build_orchestrator(
    settings: Settings | None = None,
    *,
    path: Path | str | None = None,
    sink: EventSink | None = None,
    filter_source: FilterSource | None = None,
) -> IngestionOrchestrator:
    settings = settings or get_settings()
    return IngestionOrchestrator(
        build_registry(path, settings),
        cycle_timeout_s=settings.CYCLE_TIMEOUT_S,
        deduplicator=get_deduplicator(settings.DEDUP_STRATEGY),
        sink=sink,
        filter_source=filter_source,
    )
