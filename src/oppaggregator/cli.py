"""CLI entry point for running aggregated searches from the shell."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from oppaggregator.config.settings import Settings
    from oppaggregator.models.query import SearchParams


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="oppaggregator",
        description="Search scholarships, jobs, grants and more across multiple sources",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"oppaggregator {_get_version()}",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Run one aggregated search and print the result as JSON")
    search.add_argument("query", nargs="?", default=None, help="Free-text query")
    search.add_argument("--type", dest="types", default=None, help="Comma-separated opportunity types")
    search.add_argument("--country", default=None, help="Country filter")
    search.add_argument("--source", dest="sources", default=None, help="Comma-separated source allowlist")
    search.add_argument("--limit", "-n", type=int, default=None, help="Page size")
    search.add_argument("--page", type=int, default=1, help="1-indexed page number")
    search.add_argument(
        "--sort-by",
        choices=["relevance", "deadline", "posted", "compensation"],
        default="relevance",
    )
    search.add_argument("--sort-order", choices=["asc", "desc"], default="desc")

    commands.add_parser("health", help="Print source health and stats as JSON")

    args = parser.parse_args(argv)

    settings = _load_settings(args.config)
    if args.log_level:
        settings.observability.log_level = args.log_level

    from oppaggregator.observability.logging import setup_logging

    setup_logging(settings.observability)

    if args.command == "search":
        output = _search(settings, args)
    else:
        output = asyncio.run(_run_health(settings))

    print(json.dumps(output, indent=2, ensure_ascii=False, default=str))


def _load_settings(config: str | None) -> Settings:
    from oppaggregator.config.settings import Settings

    if config:
        config_path = Path(config)
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}", file=sys.stderr)
            sys.exit(1)
        return Settings.from_yaml(config_path)
    return Settings()


def _search(settings: Settings, args: argparse.Namespace) -> dict[str, Any]:
    from pydantic import ValidationError

    from oppaggregator.core.coordinator import CoordinatorMisuseError
    from oppaggregator.models.query import LocationFilter, SearchParams

    try:
        params = SearchParams.from_page(
            args.page,
            args.limit or settings.search.default_page_size,
            query=args.query,
            types=args.types or [],
            sources=args.sources or [],
            location=LocationFilter(country=args.country) if args.country else None,
            sort_by=args.sort_by,
            sort_order=args.sort_order,
        )
    except ValidationError as e:
        print(f"Error: invalid search parameters:\n{e}", file=sys.stderr)
        sys.exit(2)

    try:
        return asyncio.run(_run_search(settings, params))
    except CoordinatorMisuseError as e:
        print(f"Error: {e}. Configure at least one source under search.sources.", file=sys.stderr)
        sys.exit(1)


async def _run_search(settings: Settings, params: SearchParams) -> dict[str, Any]:
    from oppaggregator.core.engine import OpportunityEngine

    engine = OpportunityEngine(settings)
    await engine.initialize()
    try:
        result = await engine.search(params)
    finally:
        await engine.shutdown()
    return result.model_dump(mode="json")


async def _run_health(settings: Settings) -> dict[str, Any]:
    from oppaggregator.core.engine import OpportunityEngine

    engine = OpportunityEngine(settings)
    await engine.initialize()
    try:
        return {"health": await engine.health(), "stats": engine.stats()}
    finally:
        await engine.shutdown()


def _get_version() -> str:
    """Get the package version."""
    try:
        from oppaggregator import __version__

        return __version__
    except ImportError:
        return "unknown"


if __name__ == "__main__":
    main()
