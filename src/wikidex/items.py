"""
Generic PalDB item detail pages.

Materials, ingredients, schematics, spheres and the other item families share
one page layout: a header with the inventory icon, a description card with
optional ``item_skill_bar`` effects, and titled cards for stats, production,
drops, treasure boxes, merchants, research and soul upgrades. Every card is
optional.
"""

import logging
import re

from wikidex.batch import ProgressCallback, fetch_all_details, resolve_concurrency
from wikidex.blocks import class_tokens, extract_balanced_blocks, extract_card_by_title, has_class, inner_html
from wikidex.fetch import FetchText
from wikidex.models import ItemDetail, ItemRef, RecipeRow
from wikidex.rows import (
    attr_value,
    dedupe_by,
    extract_first_table,
    filter_out_work,
    parse_dropped_by_table,
    parse_item_links,
    parse_key_value_rows,
    parse_merchant_table,
    parse_possible_drops,
    parse_recipe_table,
    parse_research_table,
    parse_soul_upgrade_rows,
    parse_treasure_box_table,
)
from wikidex.sorter import item_sort_key
from wikidex.text import clean_key, first_match, humanize_slug, one_line, strip_tags
from wikidex.tree import parse_dependency_tree
from wikidex.urls import href_to_slug, normalize_detail_href, paldb_url

log = logging.getLogger(__name__)

_IMG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_SKILL_BAR = has_class("item_skill_bar")


def item_url(slug_or_href: str) -> str:
    return normalize_detail_href(slug_or_href) or paldb_url(f"/en/{slug_or_href}")


def _table(card_html: str | None) -> str | None:
    """The card's ``table mb-0``, or its first table."""
    return extract_first_table(card_html, "mb-0") or extract_first_table(card_html)


# --- Header ---


def parse_item_name(html: str) -> str | None:
    return one_line(first_match(html, r"<h2\b[^>]*>([\s\S]*?)</h2\s*>", re.IGNORECASE)) or one_line(
        first_match(html, r"<title>([^<]+)</title>", re.IGNORECASE)
    )


def parse_item_icon(html: str) -> str | None:
    tags = _IMG_RE.findall(html)
    preferred = next((t for t in tags if "size128" in class_tokens(t)), None) or next(
        (t for t in tags if "InventoryItemIcon" in (attr_value(t, "src") or "")), None
    )
    src = attr_value(preferred, "src") if preferred else None
    return paldb_url(src) if src else None


# --- Description and effects ---


def parse_effects(html: str | None) -> list[str]:
    effects = [one_line(inner_html(b.html)) for b in extract_balanced_blocks(html, "div", _SKILL_BAR)]
    return dedupe_by([e for e in effects if e], lambda e: e)


def strip_effects(html: str | None) -> str:
    src = html or ""
    for block in reversed(extract_balanced_blocks(src, "div", _SKILL_BAR)):
        src = src[: block.start] + " " + src[block.end :]
    return src


def parse_description(html: str) -> tuple[str | None, list[str]]:
    """Description text and the effect lines shown under it."""
    for card_body in extract_balanced_blocks(html, "div", has_class("card-body")):
        inner = inner_html(card_body.html).lstrip()
        if not re.match(r"<div>", inner, re.IGNORECASE):
            continue
        first = extract_balanced_blocks(inner, "div")
        if not first:
            continue
        body = inner_html(first[0].html)
        text = clean_key(strip_tags(strip_effects(body)))
        return text or None, parse_effects(body)
    return None, []


# --- Production ---


def parse_produced_at(card_html: str | None) -> list[ItemRef]:
    grid = extract_balanced_blocks(card_html, "div", has_class("row", "row-cols-1"))
    return parse_item_links(grid[0].html) if grid else []


def parse_recipes(html: str) -> list[RecipeRow]:
    rows: list[RecipeRow] = []
    for title in ("production", "crafting materials"):
        rows.extend(parse_recipe_table(_table(extract_card_by_title(html, title))))
    return filter_out_work(rows)


# --- Page ---


def parse_item_detail(slug: str, html: str | None, category: str = "item") -> ItemDetail:
    src = html or ""
    description, effects = parse_description(src)
    production = extract_card_by_title(src, "production")

    return ItemDetail(
        slug=clean_key(slug),
        category=category,
        name=parse_item_name(src) or humanize_slug(slug),
        icon_url=parse_item_icon(src),
        description=description,
        effects=effects,
        stats=parse_key_value_rows(extract_card_by_title(src, "stats")),
        others=parse_key_value_rows(extract_card_by_title(src, "others")),
        foods=parse_key_value_rows(extract_card_by_title(src, "foods")),
        recipes=parse_recipes(src),
        produced_at=parse_produced_at(production),
        dropped_by=parse_dropped_by_table(_table(extract_card_by_title(src, "dropped by"))),
        possible_drops=parse_possible_drops(src),
        treasure=parse_treasure_box_table(_table(extract_card_by_title(src, "treasure box"))),
        merchants=parse_merchant_table(_table(extract_card_by_title(src, "wandering merchant"))),
        research=parse_research_table(_table(extract_card_by_title(src, "research"))),
        soul_upgrades=parse_soul_upgrade_rows(src),
        tree=parse_dependency_tree(src),
    )


async def fetch_item_detail(fetch_text: FetchText, slug_or_href: str, category: str = "item") -> ItemDetail:
    slug = href_to_slug(slug_or_href) or slug_or_href
    return parse_item_detail(slug, await fetch_text(item_url(slug_or_href)), category)


async def fetch_all_item_details(
    fetch_text: FetchText,
    slugs: list[str],
    category: str = "item",
    concurrency: int | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[ItemDetail]:
    """Fetch a list of item pages; failed pages are logged and left out."""
    limit = resolve_concurrency(concurrency)

    async def fetch_one(slug: str) -> ItemDetail:
        return await fetch_item_detail(fetch_text, slug, category)

    return await fetch_all_details(
        dedupe_by(slugs, lambda s: s),
        fetch_one,
        concurrency=limit,
        on_progress=on_progress,
        sort_key=item_sort_key,
    )
