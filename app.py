#!/usr/bin/env python3
"""
Intel Feed Ingestion - Command-line Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Runs one ingestion pass and prints the report.

- Configuration from the environment (.env is loaded)
- Source selection by catalog mode, source id or feed URL
- Human-readable summary or the full JSON report

============================================================
USAGE
============================================================
python app.py --mode primary
python app.py --source usgs-earthquakes --source noaa-weather-alerts --json
python app.py --feed https://example.com/feed.xml
python app.py --list-sources

============================================================
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from typing import List, Optional

from core.config import IngestionConfig
from core.exceptions import ConfigurationError
from core.logging_config import setup_logging
from data_ingestion import IngestionReport, IngestionService
from data_sources import CatalogMode, build_default_catalog


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="intel-feed-ingestion",
        description="Resilient ingestion of intelligence and news feeds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Catalog Modes:
  primary    - Public sources that need no API key
  secondary  - Sources that need an API key
  social     - Community sources (high volume, lower trust)
  all        - Every enabled source

Examples:
  %(prog)s --mode primary
  %(prog)s --source hackernews-tech --json
  %(prog)s --feed https://example.com/rss.xml --no-cache
        """
    )

    # --------------------------------------------------------
    # Source Selection
    # --------------------------------------------------------
    parser.add_argument(
        "--mode", "-m",
        type=str,
        choices=[m.value for m in CatalogMode],
        default=CatalogMode.ALL.value,
        help="Catalog mode to ingest (default: all)",
    )

    parser.add_argument(
        "--source", "-s",
        action="append",
        default=[],
        metavar="ID",
        help="Ingest a catalog source by id (repeatable, overrides --mode)",
    )

    parser.add_argument(
        "--feed",
        action="append",
        default=[],
        metavar="URL",
        help="Ingest a bare RSS/Atom/HTML feed URL (repeatable)",
    )

    parser.add_argument(
        "--list-sources",
        action="store_true",
        help="List catalog sources and exit",
    )

    # --------------------------------------------------------
    # Execution Options
    # --------------------------------------------------------
    execution_group = parser.add_argument_group("Execution Options")

    execution_group.add_argument(
        "--no-cache",
        action="store_true",
        help="Skip fresh cache entries (stale fallback still applies)",
    )

    execution_group.add_argument(
        "--limit",
        type=int,
        default=20,
        metavar="N",
        help="Items to show in the text summary (default: 20)",
    )

    # --------------------------------------------------------
    # Output Options
    # --------------------------------------------------------
    output_group = parser.add_argument_group("Output Options")

    output_group.add_argument(
        "--json",
        action="store_true",
        help="Print the full report as JSON on stdout",
    )

    output_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (default: LOG_LEVEL or INFO)",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Args:
        args: Parsed arguments

    Returns:
        List of validation errors
    """
    errors = []

    if args.limit < 0:
        errors.append("--limit must not be negative")

    for url in args.feed:
        if not url.startswith(("http://", "https://")):
            errors.append(f"--feed must be an http(s) URL: {url}")

    return errors


# ============================================================
# OUTPUT
# ============================================================

def list_sources() -> None:
    """Print the built-in catalog."""
    catalog = build_default_catalog()
    print(f"\n{'ID':28s} {'MODE':10s} {'TIER':9s} {'ENABLED':8s} NORMALIZER")
    print("=" * 72)
    for endpoint in catalog.get_endpoints(include_disabled=True):
        print(
            f"{endpoint.id:28s} {endpoint.mode.value:10s} {endpoint.refresh_tier.value:9s} "
            f"{str(endpoint.enabled):8s} {endpoint.normalizer_key}"
        )
    print()


def print_summary(report: IngestionReport, limit: int) -> None:
    """Print a human-readable report summary."""
    print()
    print("=" * 60)
    print(f"  Run:      {report.run_id}")
    print(f"  Duration: {report.duration_seconds:.2f}s")
    print(f"  Items:    {len(report.items)}")
    print("=" * 60)

    for diagnostic in report.diagnostics:
        flags = []
        if diagnostic.from_cache:
            flags.append("stale cache" if diagnostic.stale else "cache")
        if diagnostic.strategy:
            flags.append(diagnostic.strategy)
        detail = f" ({', '.join(flags)})" if flags else ""
        reason = f" - {diagnostic.reason}" if diagnostic.reason else ""
        print(
            f"  [{diagnostic.status.value:7s}] {diagnostic.source_id:28s} "
            f"{diagnostic.item_count:4d} items{detail}{reason}"
        )

    if report.items and limit:
        print()
        for item in report.items[:limit]:
            print(
                f"  {item.priority.value:8s} {item.content_tier.value:6s} "
                f"{item.published_at:%Y-%m-%d %H:%M} {item.title[:70]}"
            )
    print()


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(args: argparse.Namespace, config: IngestionConfig) -> int:
    """
    Async main entry point.

    Args:
        args: Parsed arguments
        config: Loaded configuration

    Returns:
        Exit code
    """
    logger = logging.getLogger("ingestion_service")

    try:
        async with IngestionService.from_config(config) as service:
            report = await service.run(
                mode=CatalogMode(args.mode),
                source_ids=args.source or None,
                feed_urls=args.feed or None,
                use_cache=not args.no_cache,
            )
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        print_summary(report, args.limit)

    # Partial failure is normal; only a pass where nothing worked fails
    if report.diagnostics and len(report.failed_sources) == len(report.diagnostics):
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.list_sources:
        list_sources()
        return 0

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    try:
        config = IngestionConfig.from_env()
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    if args.log_level:
        config = dataclasses.replace(config, log_level=args.log_level)

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Config error: {error}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_format)
    return asyncio.run(async_main(args, config))


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
