#!/usr/bin/env python3
"""Command-line interface for EventNexus ingestion.

Commands:
  - eventnexus ingest   : Run one ingestion cycle and print the result as JSON
  - eventnexus sources  : List configured source plugins
  - eventnexus health   : Check every source plugin

Typical usage:
  eventnexus ingest --sources meetup,luma --city Dubai
  eventnexus ingest --lat 25.2 --lng 55.27 --radius-km 25 --limit 20
  eventnexus ingest --from 2026-03-01 --to 2026-03-31
  eventnexus health --config plugins.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime, time

from pydantic import ValidationError

from eventnexus.configs.loader import build_orchestrator, build_registry
from eventnexus.configs.settings import get_settings
from eventnexus.ingestion.errors import IngestionCycleError
from eventnexus.ingestion.orchestrator import CycleStatus
from eventnexus.ingestion.registry import PluginRegistry
from eventnexus.monitoring.logging import LoggingOptions, setup_logging
from eventnexus.schemas.event import EventFilters, LocationFilter


def _window_start(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid ISO date: {value!r}") from None


def _window_end(value: str) -> datetime:
    bound = _window_start(value)
    # a bare date covers the whole day
    if len(value.strip()) == 10:
        bound = datetime.combine(bound.date(), time.max)
    return bound


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="eventnexus", description="EventNexus ingestion CLI")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    p.add_argument("--config", "-c", default=None, help="Path to plugins YAML (default from settings)")
    p.add_argument("--json-logs", action="store_true", help="Emit JSON logs")
    p.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = p.add_subparsers(dest="cmd")

    # ingest
    pi = sub.add_parser("ingest", help="Run one ingestion cycle")
    pi.add_argument("--sources", default=None, help="Comma-separated source keys to run")
    pi.add_argument("--city", default=None, help="City name filter")
    pi.add_argument("--lat", type=float, default=None, help="Latitude for location filtering")
    pi.add_argument("--lng", type=float, default=None, help="Longitude for location filtering")
    pi.add_argument("--radius-km", type=float, default=50.0, help="Radius for location filtering")
    pi.add_argument("--category", action="append", default=None, help="Category filter (repeatable)")
    pi.add_argument("--query", "-q", default=None, help="Free-text query")
    pi.add_argument("--limit", type=int, default=None, help="Maximum events per source")
    pi.add_argument("--virtual-only", action="store_true", help="Keep only virtual events")
    pi.add_argument(
        "--from", dest="from_date", type=_window_start, default=None, help="Earliest start (ISO date)"
    )
    pi.add_argument(
        "--to", dest="to_date", type=_window_end, default=None, help="Latest start (ISO date, inclusive)"
    )
    pi.add_argument("--timeout", type=float, default=None, help="Override cycle timeout (seconds)")

    # sources
    sub.add_parser("sources", help="List configured source plugins")

    # health
    sub.add_parser("health", help="Run each plugin's health check")

    args = p.parse_args(argv)
    if args.cmd == "ingest" and (args.lat is None) != (args.lng is None):
        p.error("--lat and --lng must be given together")
    return args


def _filters_from_args(args: argparse.Namespace) -> EventFilters:
    location = None
    if args.lat is not None and args.lng is not None:
        location = LocationFilter(lat=args.lat, lng=args.lng, radius_km=args.radius_km)
    return EventFilters(
        city=args.city,
        location=location,
        start_date=args.from_date,
        end_date=args.to_date,
        categories=args.category or [],
        query=args.query,
        virtual_only=args.virtual_only,
        limit=args.limit,
    )


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _sources_table(registry: PluginRegistry) -> None:
    print(f"{'SOURCE':<20} {'ENABLED':<8} {'VERSION':<8} {'BASE URL'}")
    print("-" * 72)
    for plugin in registry.all():
        enabled = "yes" if plugin.enabled else "no"
        print(f"{plugin.source_key:<20} {enabled:<8} {plugin.version:<8} {plugin.base_url}")


async def _health(registry: PluginRegistry) -> dict:
    try:
        return await registry.health_status()
    finally:
        await registry.aclose()


def main(argv: list[str] | None = None) -> int:
    """Run the CLI with the given arguments."""
    try:
        return _main_impl(argv)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (ValueError, ValidationError) as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return 1
    except IngestionCycleError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _main_impl(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if args.version:
        from eventnexus import __version__

        print(f"eventnexus version {__version__}")
        return 0

    if not args.cmd:
        print("Error: Command required. Use --help for usage info.", file=sys.stderr)
        return 1

    settings = get_settings()
    setup_logging(
        LoggingOptions(
            level=args.log_level or settings.LOG_LEVEL,
            json_logs=args.json_logs or settings.JSON_LOGS,
        )
    )

    if args.cmd == "sources":
        _sources_table(build_registry(args.config, settings))
        return 0

    if args.cmd == "health":
        health = asyncio.run(_health(build_registry(args.config, settings)))
        _print_json({key: status.to_dict() for key, status in health.items()})
        return 0 if all(s.healthy for s in health.values()) else 1

    if args.cmd == "ingest":
        orchestrator = build_orchestrator(settings, path=args.config)
        if args.timeout is not None:
            if args.timeout <= 0:
                raise ValueError("--timeout must be positive")
            orchestrator.cycle_timeout_s = args.timeout
        sources = [s.strip() for s in args.sources.split(",") if s.strip()] if args.sources else None
        if sources:
            unknown = [s for s in sources if s not in orchestrator.registry]
            if unknown:
                raise ValueError(f"Unknown source(s): {', '.join(unknown)}")

        result = orchestrator.run_ingestion_cycle(_filters_from_args(args), sources=sources)
        _print_json(result.to_dict())
        return 1 if result.status == CycleStatus.FAILED else 0

    print(f"Unknown command: {args.cmd}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
