"""
PalDB technology tree (``/en/Technologies``) and per-technology hover cards.

The tree page groups technologies into one row per unlock level; each entry
is a ``hoverTech`` tile with a category header, a name footer and a
``data-hover`` pointer to its hover card. Costs and descriptions only appear
on the hover cards, which are fetched separately.
"""

import logging
import re
from urllib.parse import quote, unquote

from wikidex.batch import ProgressCallback, fetch_all_details, resolve_concurrency
from wikidex.blocks import class_tokens, extract_balanced_blocks, has_class, inner_html, split_by_marker
from wikidex.exceptions import WikiDexError
from wikidex.fetch import FetchText
from wikidex.models import TechnologyHoverDetails, TechnologyIndex, TechnologyItem, TechnologyPointTotals
from wikidex.rows import attr_value, dedupe_by
from wikidex.sorter import technology_sort_key
from wikidex.text import clean_key, first_match, one_line
from wikidex.urls import paldb_url

log = logging.getLogger(__name__)

TECHNOLOGIES_URL = paldb_url("/en/Technologies")

_LEVEL_ROW_MARKER = re.compile(
    r"""<div\s+class=["']col pt-2 pb-1 border-bottom["'][^>]*>""", re.IGNORECASE
)
_LEVEL_RE = re.compile(r"<div\b[^>]*position:\s*absolute[^>]*>\s*([0-9]{1,4})\s*</div>", re.IGNORECASE)
_BACKGROUND_RE = re.compile(r"background-image:\s*url\(\s*['\"]?([^)'\"]+)", re.IGNORECASE)
_PILL_RE = re.compile(
    r"""<span\b[^>]*class=["']bg-dark[^"']*["'][^>]*>\s*([^<]+?)\s*</span>\s*"""
    r"""<span\b[^>]*class=["']border[^"']*["'][^>]*>\s*([^<]+?)\s*</span>""",
    re.IGNORECASE,
)


def hover_url(slug: str) -> str:
    return paldb_url(f"/en/hover?s={quote(slug, safe='/')}")


def _loose_int(text: str | None) -> int | None:
    digits = re.sub(r"[^0-9]", "", text or "")
    return int(digits) if digits else None


# --- Tree page ---


def parse_point_totals(html: str | None) -> TechnologyPointTotals:
    tech = first_match(
        html, r"(?<!Ancient )Technology\s*Points</span>\s*<span[^>]*>\s*([0-9][0-9,]*)\s*</span>", re.IGNORECASE
    )
    ancient = first_match(
        html, r"Ancient\s*Technology\s*Points</span>\s*<span[^>]*>\s*([0-9][0-9,]*)\s*</span>", re.IGNORECASE
    )
    return TechnologyPointTotals(technology_points=_loose_int(tech), ancient_technology_points=_loose_int(ancient))


def data_hover_to_slug(data_hover: str | None) -> str:
    """``?s=Technology/Workbench`` -> ``Technology/Workbench``."""
    raw = clean_key(data_hover)
    if not raw:
        return "Technology"
    m = re.search(r"[?&]s=([^&#]+)", raw, re.IGNORECASE)
    if m:
        return clean_key(unquote(m.group(1)))
    return clean_key(raw.lstrip("?&"))


def _tile_text(tile_inner: str, token: str) -> str | None:
    blocks = extract_balanced_blocks(tile_inner, "div", has_class(token))
    return one_line(inner_html(blocks[0].html)) if blocks else None


def parse_technology_row(row_html: str) -> list[TechnologyItem]:
    level_raw = first_match(row_html, _LEVEL_RE)
    level = int(level_raw) if level_raw else 0
    if level <= 0:
        return []

    out: list[TechnologyItem] = []
    for tile in extract_balanced_blocks(row_html, "div", has_class("hoverTech")):
        inner = inner_html(tile.html)
        name = _tile_text(inner, "hoverTechFooter")
        if not name:
            log.debug("Skipping technology tile without a name at level %d", level)
            continue
        icon = first_match(attr_value(tile.open_tag, "style"), _BACKGROUND_RE)
        out.append(
            TechnologyItem(
                level=level,
                category=_tile_text(inner, "hoverTechHeader") or "Unknown",
                name=name,
                slug=data_hover_to_slug(attr_value(tile.open_tag, "data-hover")),
                icon_url=paldb_url(icon) if icon else None,
                is_boss="bosstechnology" in class_tokens(tile.open_tag),
            )
        )
    return out


def parse_technologies(html: str | None) -> list[TechnologyItem]:
    items: list[TechnologyItem] = []
    for row in split_by_marker(html, _LEVEL_ROW_MARKER):
        items.extend(parse_technology_row(row))
    items = dedupe_by(items, lambda t: (t.level, t.slug, t.name))
    return sorted(items, key=technology_sort_key)


def parse_technology_index(html: str | None) -> TechnologyIndex:
    return TechnologyIndex(totals=parse_point_totals(html), technologies=parse_technologies(html))


# --- Hover cards ---


def parse_technology_hover(html: str | None) -> TechnologyHoverDetails:
    """Name, category, unlock level, point cost and description from a hover card."""
    src = html or ""
    level = tech_points = ancient_points = None
    for m in _PILL_RE.finditer(src):
        label = clean_key(m.group(1)).lower()
        value = clean_key(m.group(2))
        if label == "technology" and "lv" in value.lower():
            level = _loose_int(value)
        elif label == "technology points":
            tech_points = _loose_int(value)
        elif label == "ancient technology points":
            ancient_points = _loose_int(value)

    description = first_match(
        src, r"""<div\s+class=["']card-body[^"']*["'][^>]*>\s*<div>\s*([\s\S]*?)\s*</div>""", re.IGNORECASE
    )
    return TechnologyHoverDetails(
        name=one_line(first_match(src, r"""class=["']align-self-center["'][^>]*>\s*([^<]+?)\s*</div>""")),
        category=one_line(
            first_match(src, r"""<span[^>]*style=["']color:\s*#959ea9[^"']*["'][^>]*>\s*([^<]+?)\s*</span>""")
        ),
        level=level,
        technology_points=tech_points,
        ancient_technology_points=ancient_points,
        description=one_line(description),
    )


def enrich_with_hover(item: TechnologyItem, details: TechnologyHoverDetails) -> TechnologyItem:
    """Copy of ``item`` with cost and description; tree values stay authoritative."""
    return item.model_copy(
        update={
            "cost_tech_points": details.technology_points,
            "cost_ancient_tech_points": details.ancient_technology_points,
            "description": details.description,
        }
    )


# --- Fetching ---


async def fetch_technology_index(fetch_text: FetchText) -> TechnologyIndex:
    try:
        html = await fetch_text(TECHNOLOGIES_URL)
    except WikiDexError as e:
        log.warning("Technologies page unavailable: %s", e)
        return TechnologyIndex()
    return parse_technology_index(html)


async def fetch_technology_hover(fetch_text: FetchText, slug: str) -> TechnologyHoverDetails:
    key = clean_key(slug)
    if not key:
        return TechnologyHoverDetails()
    return parse_technology_hover(await fetch_text(hover_url(key)))


async def fetch_technologies_with_hover(
    fetch_text: FetchText,
    concurrency: int | None = None,
    on_progress: ProgressCallback | None = None,
) -> TechnologyIndex:
    """
    Fetch the tree and every hover card.

    A technology whose hover card fails keeps its tree entry without cost or
    description.
    """
    limit = resolve_concurrency(concurrency)
    index = await fetch_technology_index(fetch_text)

    async def fetch_one(item: TechnologyItem) -> TechnologyItem:
        return enrich_with_hover(item, await fetch_technology_hover(fetch_text, item.slug))

    technologies = await fetch_all_details(
        index.technologies,
        fetch_one,
        concurrency=limit,
        on_progress=on_progress,
        sort_key=technology_sort_key,
        fallback=lambda item, _error: item,
    )
    return index.model_copy(update={"technologies": technologies})
