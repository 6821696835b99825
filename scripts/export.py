"""
CLI script for exporting wiki content families as YAML or JSON.

Fetches one content family (boat tour or Mystery Tour islands, Nook Miles,
dungeons, work suitabilities, item pages or technologies), assembles typed
records and writes them to a file or stdout. Pages are cached on disk between runs.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel

from wikidex import (
    boat_tour,
    dungeons,
    items,
    mystery_tour,
    nook_miles,
    technologies,
    terminal,
    work_suitability,
)
from wikidex.cache import CacheClient
from wikidex.config import get_settings
from wikidex.exceptions import ConfigurationError, WikiDexError
from wikidex.fetch import PageFetcher

FAMILIES = ("boat-tour", "mystery-tour", "nook-miles", "dungeons", "work-suitability", "items", "technologies")


def to_plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    return value


async def export_family(
    family: str,
    fetcher: PageFetcher,
    concurrency: int | None = None,
    slugs: list[str] | None = None,
) -> Any:
    report = terminal.progress_reporter(family)

    if family == "boat-tour":
        return await boat_tour.fetch_boat_tour_index(fetcher)
    if family == "mystery-tour":
        return await mystery_tour.fetch_mystery_tour_index(fetcher)
    if family == "nook-miles":
        return await nook_miles.fetch_nook_miles(fetcher)
    if family == "dungeons":
        return await dungeons.fetch_all_dungeon_details(fetcher, concurrency, report)
    if family == "work-suitability":
        return await work_suitability.fetch_all_work_suitabilities(fetcher, concurrency, report)
    if family == "items":
        return await items.fetch_all_item_details(
            fetcher, slugs or [], concurrency=concurrency, on_progress=report
        )
    if family == "technologies":
        return await technologies.fetch_technologies_with_hover(fetcher, concurrency, report)
    raise ValueError(f"Unknown content family: {family}")


def record_count(result: Any) -> int:
    if isinstance(result, list):
        return len(result)
    for attr in ("islands", "technologies"):
        if hasattr(result, attr):
            return len(getattr(result, attr))
    if hasattr(result, "achievements"):
        return len(result.achievements) + len(result.plus_categories)
    return 0


def render(data: Any, fmt: str) -> str:
    if fmt == "json":
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    return yaml.dump(data, sort_keys=False, allow_unicode=True)


async def run(args: argparse.Namespace, cache: CacheClient) -> Any:
    async with PageFetcher(cache) as fetcher:
        return await export_family(args.family, fetcher, args.concurrency, args.slugs)


def main() -> None:
    parser = argparse.ArgumentParser(description="Export wiki content as typed records")
    parser.add_argument(
        "family",
        nargs="?",
        choices=FAMILIES,
        help="Content family to export",
    )
    parser.add_argument("slugs", nargs="*", help="Item slugs (items family only)")
    parser.add_argument("--concurrency", type=int, default=None, help="Detail fetches in flight")
    parser.add_argument("--format", choices=("yaml", "json"), default="yaml", help="Output format")
    parser.add_argument("--output", type=Path, default=None, help="Output file (default: stdout)")
    parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="Clear cached pages before fetching (alone: clear and exit)",
    )

    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
    )
    cache = CacheClient(settings.cache_dir)

    try:
        if args.clear_cache:
            cache.clear_cache()
            terminal.success("Cache cleared")
            if args.family is None:
                return
        if args.family is None:
            parser.error("a content family is required")
        if args.family == "items" and not args.slugs:
            parser.error("items requires at least one slug")

        if args.output is not None:
            terminal.section_header(f"Exporting {args.family}")
        result = asyncio.run(run(args, cache))
    except ConfigurationError as e:
        terminal.error(str(e))
        sys.exit(2)
    except WikiDexError as e:
        terminal.error_with_context(f"Export failed: {e}", context={"Family": args.family})
        sys.exit(1)
    finally:
        cache.close()

    text = render(to_plain(result), args.format)
    if args.output is None:
        sys.stdout.write(text)
        return
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(text, encoding="utf-8")
    terminal.summary(args.family, record_count(result), str(args.output))


if __name__ == "__main__":
    main()
