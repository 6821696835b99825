"""
PalDB dungeon index and dungeon detail pages.

The index table lists dungeons with their level; each detail page has Stats,
Boss Spawns and Normal Spawns cards plus treasure chest cards. Yakushima has
no regular index row and lives at the odd slug ``___``, so it is appended to
the index when missing and always sorts last.
"""

import logging
import re

from wikidex.batch import ProgressCallback, fetch_all_details, resolve_concurrency
from wikidex.blocks import (
    card_title,
    extract_balanced_blocks,
    extract_card_by_title,
    has_class,
    inner_html,
    split_by_marker,
    split_loose_cells,
    split_loose_rows,
    table_body,
)
from wikidex.exceptions import WikiDexError
from wikidex.fetch import FetchText
from wikidex.models import (
    DropRow,
    DungeonDetail,
    DungeonIndexItem,
    DungeonPal,
    DungeonSpawnRow,
    DungeonWithPals,
    ItemRef,
)
from wikidex.rows import attr_value, dedupe_by, first_img_src, item_quantity_text, parse_key_value_rows
from wikidex.sorter import SPECIAL_DUNGEON_SLUGS, dungeon_sort_key
from wikidex.text import first_match, humanize_slug, normalize_range_text, one_line, slugify
from wikidex.urls import href_to_slug, paldb_url

log = logging.getLogger(__name__)

DUNGEONS_INDEX_URL = paldb_url("/en/Dungeons")
SPECIAL_SLUG = "___"
SPECIAL_NAME = "Yakushima"

_ANCHOR_RE = re.compile(r"<a\b([^>]*)>([\s\S]*?)</a\s*>", re.IGNORECASE)
_TREASURE_CARD_MARKER = re.compile(
    r"""<div\b[^>]*class=["'][^"']*\bcard\b[^"']*\bmb-2\b[^"']*["'][^>]*>""", re.IGNORECASE
)
_TREASURE_ROW_MARKER = re.compile(
    r"""<div\b[^>]*class=["'][^"']*\bd-flex\b[^"']*\bborder\b[^"']*\brounded\b[^"']*["'][^>]*>""",
    re.IGNORECASE,
)
_FLOAT_END_RE = re.compile(
    r"""<span\b[^>]*class=["'][^"']*\bfloat-end\b[^"']*["'][^>]*>([^<]*)""", re.IGNORECASE
)


def dungeon_url(slug: str) -> str:
    return paldb_url(f"/en/{slug}")


def _default_name(slug: str) -> str:
    return SPECIAL_NAME if slug == SPECIAL_SLUG else humanize_slug(slug) or slug


def _dungeon_slug(href: str | None) -> str | None:
    raw = (href or "").strip()
    if raw == SPECIAL_SLUG:
        return SPECIAL_SLUG
    return href_to_slug(raw)


def _first_int(text: str | None) -> int | None:
    raw = first_match(text, r"\d+")
    return int(raw) if raw else None


def normalize_level_text(text: str | None) -> str | None:
    t = one_line(text)
    if not t:
        return None
    if re.search(r"lv\.?", t, re.IGNORECASE):
        return t
    level = _first_int(t)
    return f"Lv. {level}" if level is not None else t


def parse_level_range(text: str | None) -> tuple[int | None, int | None]:
    t = normalize_range_text(text)
    if not t:
        return None, None
    m = re.search(r"(\d+)\s*–\s*(\d+)", t)
    if m:
        return int(m.group(1)), int(m.group(2))
    level = _first_int(t)
    return level, level


# --- Index ---


def parse_dungeon_index(html: str | None) -> list[DungeonIndexItem]:
    src = html or ""
    tables = extract_balanced_blocks(src, "table", lambda tag: attr_value(tag, "id") == "DataTables_Table_0")
    table = tables[0].html if tables else src

    out: list[DungeonIndexItem] = []
    for row in split_loose_rows(table_body(table)):
        cells = split_loose_cells(row)
        anchor = _ANCHOR_RE.search(row)
        href = attr_value(anchor.group(1), "href") if anchor else None
        name = one_line(anchor.group(2)) if anchor else None
        level_cell = one_line(cells[1]) if len(cells) > 1 else None
        if not (name or href or level_cell):
            continue

        slug = _dungeon_slug(href) or SPECIAL_SLUG
        out.append(
            DungeonIndexItem(
                slug=slug,
                name=SPECIAL_NAME if slug == SPECIAL_SLUG else name or _default_name(slug),
                level=_first_int(level_cell),
                level_text=normalize_level_text(level_cell),
                url=dungeon_url(slug),
            )
        )
    return dedupe_by(out, lambda d: d.slug)


def ensure_special_dungeon(index: list[DungeonIndexItem]) -> list[DungeonIndexItem]:
    if any(item.slug.strip() == SPECIAL_SLUG for item in index):
        return list(index)
    special = DungeonIndexItem(slug=SPECIAL_SLUG, name=SPECIAL_NAME, url=dungeon_url(SPECIAL_SLUG))
    return [*index, special]


# --- Detail ---


def parse_spawn_rows(card_html: str | None) -> list[DungeonSpawnRow]:
    out: list[DungeonSpawnRow] = []
    rows = extract_balanced_blocks(card_html, "div", has_class("d-flex", "justify-content-between", "border-bottom"))
    for row in rows:
        sides = extract_balanced_blocks(inner_html(row.html), "div")
        if len(sides) < 2:
            continue
        left = inner_html(sides[0].html)
        right = inner_html(sides[-1].html)

        anchor = _ANCHOR_RE.search(left)
        slug = _dungeon_slug(attr_value(anchor.group(1), "href")) if anchor else None
        name = one_line(anchor.group(2)) if anchor else None
        if not slug and not name:
            log.debug("Skipping spawn row without pal link")
            continue

        range_text = normalize_range_text(one_line(right))
        level_min, level_max = parse_level_range(range_text)
        out.append(
            DungeonSpawnRow(
                slug=slug or "",
                name=name or slug or "",
                icon_url=first_img_src(left),
                is_alpha=bool(re.search(r"\b(?:palAlpha|border-danger)\b", left, re.IGNORECASE)),
                level_range_text=range_text,
                level_min=level_min,
                level_max=level_max,
            )
        )
    return dedupe_by(out, lambda r: (r.slug, r.level_range_text, r.is_alpha))


def _treasure_chunks(html: str) -> list[str]:
    chunks = [c for c in split_by_marker(html, _TREASURE_CARD_MARKER) if _TREASURE_ROW_MARKER.search(c)]
    return chunks or [html]


def parse_treasure_drops(html: str | None) -> list[DropRow]:
    """Treasure chest contents; the drop rate sits in a ``float-end`` span."""
    out: list[DropRow] = []
    for chunk in _treasure_chunks(html or ""):
        for block in split_by_marker(chunk, _TREASURE_ROW_MARKER):
            anchor = next(
                (m for m in _ANCHOR_RE.finditer(block) if "itemname" in (attr_value(m.group(1), "class") or "")),
                None,
            ) or _ANCHOR_RE.search(block)
            slug = _dungeon_slug(attr_value(anchor.group(1), "href")) if anchor else None
            name = one_line(anchor.group(2)) if anchor else None
            if not slug and not name:
                continue

            rate = first_match(block, _FLOAT_END_RE)
            out.append(
                DropRow(
                    item=ItemRef(slug=slug or slugify(name), name=name or slug, icon_url=first_img_src(block)),
                    quantity_text=item_quantity_text(block),
                    probability_text=one_line(rate),
                )
            )
    return dedupe_by(out, lambda r: (r.item.slug, r.quantity_text, r.probability_text))


def parse_dungeon_detail(slug: str, html: str | None) -> DungeonDetail:
    src = html or ""
    level = _first_int(
        first_match(
            src,
            r"""<div\b[^>]*class=["'][^"']*\btext-center\b[^"']*["'][^>]*>\s*Lv\.?\s*([0-9]+)""",
            re.IGNORECASE,
        )
    )
    stats = parse_key_value_rows(extract_card_by_title(src, "stats"), allowed_keys=("Code",))

    return DungeonDetail(
        slug=slug,
        name=SPECIAL_NAME if slug == SPECIAL_SLUG else card_title(src) or _default_name(slug),
        level=level,
        level_text=f"Lv. {level}" if level is not None else None,
        code=stats[0].value_text if stats else None,
        boss_spawns=parse_spawn_rows(extract_card_by_title(src, "boss spawns")),
        normal_spawns=parse_spawn_rows(extract_card_by_title(src, "normal spawns")),
        treasure_drops=parse_treasure_drops(src),
    )


def _merge_pals(pals: list[DungeonPal]) -> list[DungeonPal]:
    merged: dict[tuple[str, str, str], DungeonPal] = {}
    for pal in pals:
        key = (pal.pal_slug or "", pal.level_text or "", pal.source)
        prev = merged.get(key)
        if prev is None:
            merged[key] = pal
            continue
        merged[key] = prev.model_copy(
            update={
                "pal_name": prev.pal_name or pal.pal_name,
                "icon_url": prev.icon_url or pal.icon_url,
                "is_alpha": prev.is_alpha or pal.is_alpha,
            }
        )
    return list(merged.values())


def detail_to_dungeon_with_pals(detail: DungeonDetail) -> DungeonWithPals:
    pals: list[DungeonPal] = []
    for source, spawns in (("boss", detail.boss_spawns), ("normal", detail.normal_spawns)):
        for spawn in spawns:
            if not spawn.slug and not spawn.name:
                continue
            pals.append(
                DungeonPal(
                    pal_slug=spawn.slug or None,
                    pal_name=spawn.name,
                    icon_url=spawn.icon_url,
                    level_text=spawn.level_range_text,
                    is_alpha=spawn.is_alpha,
                    source=source,
                )
            )

    return DungeonWithPals(
        slug=detail.slug,
        name=SPECIAL_NAME if detail.slug in SPECIAL_DUNGEON_SLUGS else detail.name,
        level=detail.level,
        level_text=detail.level_text,
        code=detail.code,
        pals=_merge_pals(pals),
        treasure=detail.treasure_drops,
    )


# --- Fetching ---


async def fetch_dungeon_index(fetch_text: FetchText) -> list[DungeonIndexItem]:
    return parse_dungeon_index(await fetch_text(DUNGEONS_INDEX_URL))


async def fetch_dungeon_detail(fetch_text: FetchText, slug: str) -> DungeonDetail:
    return parse_dungeon_detail(slug, await fetch_text(dungeon_url(slug)))


async def fetch_all_dungeon_details(
    fetch_text: FetchText,
    concurrency: int | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[DungeonWithPals]:
    """
    Fetch the index and every dungeon detail page.

    Raises:
        ConfigurationError: If concurrency is below 1, before any fetch.
    """
    limit = resolve_concurrency(concurrency)
    try:
        index = ensure_special_dungeon(await fetch_dungeon_index(fetch_text))
    except WikiDexError as e:
        log.warning("Dungeon index unavailable: %s", e)
        return []

    async def fetch_one(item: DungeonIndexItem) -> DungeonWithPals:
        return detail_to_dungeon_with_pals(await fetch_dungeon_detail(fetch_text, item.slug))

    return await fetch_all_details(
        index,
        fetch_one,
        concurrency=limit,
        on_progress=on_progress,
        sort_key=dungeon_sort_key,
    )
