"""
Nook Miles achievements and Nook Miles+ daily tasks from Nookipedia.

The page has two H2 buckets. Under "Nook Miles" every achievement is a
nested ``styled color-*`` table whose tier row lists "<task> <N> miles"
cells, optionally followed by a row of tier names. Under "Nook Miles+" each
H3 (Fishing, Bug catching, ...) is followed by a task table. The "Gallery"
heading ends the last bucket.
"""

import logging
import re
from datetime import datetime, timezone

from wikidex.blocks import Block, extract_balanced_blocks, split_loose_cells
from wikidex.exceptions import WikiDexError
from wikidex.fetch import FetchText
from wikidex.media import image_url_from_tag
from wikidex.models import (
    NookMilesAchievement,
    NookMilesData,
    NookMilesPlusCategory,
    NookMilesPlusTask,
    NookMilesTier,
)
from wikidex.rows import attr_value, dedupe_by
from wikidex.sections import attribute_blocks, find_section, slice_sections
from wikidex.text import clean_key, max_number, one_line, slugify, strip_tags
from wikidex.urls import nookipedia_url

log = logging.getLogger(__name__)

NOOK_MILES_URL = nookipedia_url("/wiki/Nook_Miles?action=render")

_ROW_RE = re.compile(r"<tr\b[^>]*>([\s\S]*?)</tr\s*>", re.IGNORECASE)
_TH_RE = re.compile(r"<th\b[^>]*>([\s\S]*?)</th\s*>", re.IGNORECASE)
_IMG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_MILES_RE = re.compile(r"([0-9][0-9,]*)\s*miles\b", re.IGNORECASE)
_COLOR_CLASS_RE = re.compile(r"^color-[a-z0-9_-]+$")
_BADGE_MARKER = "icon_cropped"


def is_styled_table(open_tag: str) -> bool:
    classes = (attr_value(open_tag, "class") or "").lower().split()
    return "styled" in classes and any(_COLOR_CLASS_RE.match(c) for c in classes)


def extract_styled_tables(html: str | None) -> list[Block]:
    return extract_balanced_blocks(html, "table", is_styled_table)


def representative_icon(table_html: str) -> str | None:
    """Prefer the achievement's own icon over the small miles badge."""
    tags = _IMG_RE.findall(table_html)
    if not tags:
        return None
    unbadged = [t for t in tags if _BADGE_MARKER not in t.lower()]
    preferred = next(
        (t for t in unbadged if re.search(r"Nook[\s_]*Miles[\s_]*(?:NH_)?Icon", t, re.IGNORECASE)),
        unbadged[0] if unbadged else tags[0],
    )
    return image_url_from_tag(preferred) or None


def _cell_text(cell_html: str) -> str:
    return clean_key(strip_tags(cell_html))


# --- Achievements ---


def table_title(table_html: str) -> str:
    m = _TH_RE.search(table_html)
    return (one_line(m.group(1)) if m else None) or "Nook Miles"


def table_description(table_html: str) -> str | None:
    """Longest non-label cell of the first row, when it reads like a sentence."""
    m = _ROW_RE.search(table_html)
    if not m:
        return None
    best = ""
    for cell in split_loose_cells(m.group(1)):
        text = _cell_text(cell)
        if text.lower() in {"", "miles", "task", "tier"}:
            continue
        if len(text) > len(best):
            best = text
    return best if len(best) >= 20 else None


def parse_miles_cell(text: str) -> tuple[str, int] | None:
    m = _MILES_RE.search(text)
    if not m:
        return None
    task = clean_key(text[: m.start()])
    if not task:
        return None
    return task, int(m.group(1).replace(",", ""))


def _is_tier_row(row_html: str) -> bool:
    s = row_html.lower()
    return "miles" in s and _BADGE_MARKER in s


def _is_tier_name_row(row_html: str) -> bool:
    return "lightgray" in row_html.lower()


def _tier_names(row_html: str) -> list[list[str] | None]:
    names: list[list[str] | None] = []
    for cell in split_loose_cells(row_html):
        parts = [line for line in strip_tags(cell).split("\n") if line]
        names.append(parts or None)
    return names


def parse_tiers(table_html: str) -> list[NookMilesTier]:
    rows = [m.group(0) for m in _ROW_RE.finditer(table_html)]
    tier_index = next((i for i, row in enumerate(rows) if _is_tier_row(row)), None)
    if tier_index is None:
        return []

    names_by_col: list[list[str] | None] = []
    for row in rows[tier_index + 1 : tier_index + 4]:
        if _is_tier_name_row(row) and not _is_tier_row(row):
            names_by_col = _tier_names(row)
            break

    tiers: list[NookMilesTier] = []
    for col, cell in enumerate(split_loose_cells(rows[tier_index])):
        text = _cell_text(cell)
        lowered = text.lower()
        if not text or lowered == "expand" or "name in other languages" in lowered:
            continue
        parsed = parse_miles_cell(text)
        if parsed is None:
            continue
        names = names_by_col[col] if col < len(names_by_col) else None
        tiers.append(NookMilesTier(task=parsed[0], miles=parsed[1], tier_names=names))

    return dedupe_by(
        tiers,
        lambda t: (t.task.lower(), t.miles, tuple(n.lower() for n in t.tier_names or [])),
    )


def parse_achievements(bucket_html: str | None) -> list[NookMilesAchievement]:
    out: list[NookMilesAchievement] = []
    for i, table in enumerate(extract_styled_tables(bucket_html)):
        tiers = parse_tiers(table.html)
        if not tiers:
            continue
        title = table_title(table.html)
        out.append(
            NookMilesAchievement(
                id=f"nookmiles-{slugify(title)}-{i}",
                title=title,
                description=table_description(table.html),
                icon_url=representative_icon(table.html),
                tiers=tiers,
            )
        )
    return out


# --- Nook Miles+ ---


def parse_plus_tasks(table_html: str) -> list[NookMilesPlusTask]:
    """Rows of ``Icon | Name | Amount | Miles``; miles is the largest number in the last cell."""
    out: list[NookMilesPlusTask] = []
    for m in _ROW_RE.finditer(table_html):
        row = m.group(1)
        if re.search(r"<th\b", row, re.IGNORECASE):
            continue
        cells = split_loose_cells(row)
        if len(cells) < 3:
            continue
        title = _cell_text(cells[1])
        miles = max_number(_cell_text(cells[-1]))
        if not title or miles is None:
            continue
        out.append(NookMilesPlusTask(title=title, miles=miles))
    return dedupe_by(out, lambda t: (t.title.lower(), t.miles))


def parse_plus_categories(bucket_html: str | None) -> list[NookMilesPlusCategory]:
    src = bucket_html or ""
    out: list[NookMilesPlusCategory] = []
    attributed = attribute_blocks(src, extract_styled_tables(src), level=3)
    for i, (heading, table) in enumerate(attributed):
        tasks = parse_plus_tasks(table.html)
        if not tasks:
            continue
        title = heading or "Nook Miles+"
        out.append(
            NookMilesPlusCategory(
                id=f"nookmilesplus-{slugify(title)}-{i}",
                title=title,
                icon_url=representative_icon(table.html),
                tasks=tasks,
            )
        )
    return out


# --- Page ---


def parse_nook_miles(html: str | None, source_url: str = NOOK_MILES_URL) -> NookMilesData:
    src = html or ""
    fetched_at = datetime.now(timezone.utc).isoformat()

    sections = slice_sections(src, level=2, stop_ids=("Gallery",), stop_titles=("Gallery",))
    miles = find_section(sections, "Nook_Miles", "Nook Miles")
    if miles is None:
        log.warning("Nook Miles heading not found")
        return NookMilesData(source_url=source_url, fetched_at=fetched_at)
    plus = find_section(sections, "Nook_Miles.2B", "Nook_Miles+", "Nook Miles+")

    # Buckets span any H2s in between; only Nook Miles+ or the stop heading ends them.
    limit = sections[-1].end_offset
    miles_end = plus.heading_offset if plus and plus.heading_offset > miles.heading_offset else limit
    plus_html = src[plus.heading_offset : limit] if plus is not None else ""

    return NookMilesData(
        achievements=parse_achievements(src[miles.heading_offset : miles_end]),
        plus_categories=parse_plus_categories(plus_html),
        source_url=source_url,
        fetched_at=fetched_at,
    )


async def fetch_nook_miles(fetch_text: FetchText) -> NookMilesData:
    try:
        html = await fetch_text(NOOK_MILES_URL)
    except WikiDexError as e:
        log.warning("Nook Miles page unavailable: %s", e)
        return NookMilesData(source_url=NOOK_MILES_URL, fetched_at=datetime.now(timezone.utc).isoformat())
    return parse_nook_miles(html)
