"""
Boat tour island types from Nookipedia's "Boat tour" page.

The page opens with prose sections (overview, probability, ...) followed by
one section per island type. Island sections are recognized by the CSS grid
infobox they contain; each grid cell holds bold labels with values, and the
section may carry galleries and a fragment probability table.
"""

import logging
import re

from pydantic import BaseModel, Field

from wikidex.blocks import extract_balanced_blocks, split_loose_cells, split_loose_rows, table_body
from wikidex.exceptions import WikiDexError
from wikidex.fetch import FetchText
from wikidex.media import Galleries, image_url_from_tag, resolve_galleries
from wikidex.models import (
    BoatTourCell,
    BoatTourDateRule,
    BoatTourIndex,
    BoatTourIntroSection,
    BoatTourIsland,
    BoatTourIslandId,
    BoatTourSpecialRow,
    BoatTourSpecialTable,
    BoatTourTableRow,
    MediaCandidate,
)
from wikidex.rows import attr_value, dedupe_by
from wikidex.sections import section_html, slice_sections
from wikidex.sorter import island_sort_key
from wikidex.text import clean_key, first_match, one_line, strip_tags
from wikidex.urls import nookipedia_url

log = logging.getLogger(__name__)

BOAT_TOUR_URL = nookipedia_url("/wiki/Boat_tour?action=render")

_TYPES_HEADING_ID = "Types_of_islands"
_PARAGRAPH_RE = re.compile(r"<p\b[^>]*>([\s\S]*?)</p>", re.IGNORECASE)
_GRID_RE = re.compile(r"display:\s*grid", re.IGNORECASE)
_TABLE_CELL_OPEN_RE = re.compile(
    r"""<div\b[^>]*style=["'][^"']*display:\s*table-cell[^"']*["'][^>]*>""", re.IGNORECASE
)
_CELL_LABEL_RE = re.compile(r"<b\b[^>]*>((?:(?!<br\b|<img\b|<b\b)[\s\S])*?)</b>\s*<br\s*/?>", re.IGNORECASE)
_TRAILING_IMGS_RE = re.compile(r"(?:<br\s*/?>\s*)*(?:<img\b[^>]*>\s*)+$", re.IGNORECASE)
_TRAILING_BRS_RE = re.compile(r"(?:<br\s*/?>\s*)+$", re.IGNORECASE)
_IMG_SRC_RE = re.compile(r"""<img\b[^>]*(?:src|data-src)=["']([^"']+)["']""", re.IGNORECASE)

CELL_LABELS = {
    "internal id",
    "date",
    "weather",
    "weather pattern",
    "weather patterns",
    "tree",
    "trees",
    "bush",
    "bushes",
    "rock",
    "rocks",
    "buried item",
    "buried items",
    "ground material",
    "ground materials",
    "diy recipe",
    "diy recipe type",
}

# Labels turned into item tables, matched as substrings
_TABLE_LABEL_MARKERS = ("trees", "bush", "rocks", "buried", "ground", "diy")

RARE_ISLAND_IDS: frozenset[str] = frozenset(
    {"starFragment", "cherryBlossom", "springBamboo", "summerShell", "mushroom", "mapleLeaf", "snowflake"}
)

# (island id, title markers, internal id markers), checked in order
_ISLAND_ID_RULES: list[tuple[BoatTourIslandId, tuple[str, ...], tuple[str, ...]]] = [
    ("produce", ("produce",), ("vegetable",)),
    ("gyroid", ("gyroid",), ("haniwa",)),
    ("vinesMoss", ("vine", "moss"), ("oneroom",)),
    ("normal", ("normal",), ()),
    ("starFragment", ("star",), ("starpiece",)),
    ("cherryBlossom", ("cherry",), ("sakura",)),
    ("springBamboo", ("bamboo",), ("springbamboo",)),
    ("summerShell", ("summer shell",), ("seashell",)),
    ("mushroom", ("mushroom",), ("mushroom",)),
    ("mapleLeaf", ("maple",), ("maple",)),
    ("snowflake", ("snow",), ("snowcrystal",)),
]


class IslandSection(BaseModel):
    """Raw data pulled from one island-type section before normalization."""

    key: str
    title: str
    chance_pct: float | None = None
    internal_id: str | None = None
    cells: list[BoatTourCell] = Field(default_factory=list)
    description: list[str] = Field(default_factory=list)
    galleries: Galleries = Field(default_factory=dict)
    special_tables: list[BoatTourSpecialTable] = Field(default_factory=list)


def paragraph_texts(html: str) -> list[str]:
    return [text for m in _PARAGRAPH_RE.finditer(html) if (text := one_line(m.group(1)))]


# --- Intro ---


def parse_boat_tour_intro(html: str | None) -> list[BoatTourIntroSection]:
    """Prose sections above the "Types of islands" heading, lead text as "Overview"."""
    src = html or ""
    sections = slice_sections(src, level=2, stop_ids=(_TYPES_HEADING_ID,))
    lead_end = sections[0].heading_offset if sections else len(src)
    if not sections:
        stop = re.search(rf"""<h2\b[\s\S]*?id=["']{_TYPES_HEADING_ID}["']""", src, re.IGNORECASE)
        lead_end = stop.start() if stop else len(src)

    out: list[BoatTourIntroSection] = []
    lead = paragraph_texts(src[:lead_end])
    if lead:
        out.append(BoatTourIntroSection(title="Overview", paragraphs=lead))
    for section in sections:
        paragraphs = paragraph_texts(section_html(src, section))
        if paragraphs:
            out.append(BoatTourIntroSection(title=section.title or section.key, paragraphs=paragraphs))
    return out


# --- Island sections ---


def parse_chance(html: str) -> float | None:
    pattern = r"Chance:\s*([0-9]+(?:\.[0-9]+)?)\s*%"
    raw = first_match(html, pattern, re.IGNORECASE) or first_match(
        clean_key(strip_tags(html)), pattern, re.IGNORECASE
    )
    return float(raw) if raw else None


def parse_internal_id(html: str) -> str | None:
    raw = first_match(
        html, r"<b>\s*Internal ID\s*</b>\s*<br\s*/?>\s*<code>([^<]+)</code>", re.IGNORECASE
    ) or first_match(html, r"<code>([^<]+)</code>", re.IGNORECASE)
    return one_line(raw)


def is_known_cell_label(label: str) -> bool:
    return clean_key(label).lower() in CELL_LABELS


def parse_grid_cells(html: str) -> list[BoatTourCell]:
    """
    Read labelled values out of the infobox grid.

    Each ``display: table-cell`` div holds a paragraph of ``<b>Label</b><br>``
    headers; a value runs until the next recognized label. Unrecognized bold
    text stays part of the surrounding value.
    """
    out: list[BoatTourCell] = []
    for opening in _TABLE_CELL_OPEN_RE.finditer(html):
        paragraph = first_match(html[opening.end() : opening.end() + 20000], _PARAGRAPH_RE)
        if not paragraph:
            continue

        labels = [
            m for m in _CELL_LABEL_RE.finditer(paragraph) if is_known_cell_label(one_line(m.group(1)) or "")
        ]
        for i, label_match in enumerate(labels):
            value_end = labels[i + 1].start() if i + 1 < len(labels) else len(paragraph)
            value_html = paragraph[label_match.end() : value_end]
            value_html = _TRAILING_BRS_RE.sub("", _TRAILING_IMGS_RE.sub("", value_html))
            value = strip_tags(value_html)
            if not value:
                continue

            icons = _IMG_SRC_RE.findall(paragraph[: label_match.start()])
            out.append(
                BoatTourCell(
                    label=one_line(label_match.group(1)) or "",
                    value=value,
                    icon_url=nookipedia_url(icons[-1]) if icons else None,
                )
            )
    return dedupe_by(out, lambda c: (c.label, c.value))


def parse_description(html: str) -> list[str]:
    grids = extract_balanced_blocks(html, "div", lambda tag: bool(_GRID_RE.search(attr_value(tag, "style") or "")))
    for block in reversed(grids):
        html = html[: block.start] + html[block.end :]
    return [text for m in _PARAGRAPH_RE.finditer(html) if (text := strip_tags(m.group(1)))]


def _is_gameplay_table(open_tag: str) -> bool:
    classes = (attr_value(open_tag, "class") or "").lower().split()
    return "styled" in classes and "color-gameplay" in classes


def parse_special_tables(html: str) -> list[BoatTourSpecialTable]:
    """Fragment/probability tables; a row without its own probability inherits the previous one."""
    out: list[BoatTourSpecialTable] = []
    for table in extract_balanced_blocks(html, "table", _is_gameplay_table):
        rows: list[BoatTourSpecialRow] = []
        carried: str | None = None
        for row in split_loose_rows(table_body(table.html)):
            if re.search(r"<th\b", row, re.IGNORECASE):
                continue
            cells = split_loose_cells(row)
            if not cells:
                continue
            name = one_line(cells[0])
            if not name:
                continue

            probability = one_line(cells[1]) if len(cells) > 1 else None
            if probability:
                carried = probability
            else:
                probability = carried
            if not probability:
                continue

            img = first_match(cells[0], r"<img\b[^>]*>", re.IGNORECASE)
            icon = image_url_from_tag(img) if img else None
            rows.append(BoatTourSpecialRow(name=name, probability=probability, icon_url=icon or None))
        if rows:
            out.append(BoatTourSpecialTable(label="Fragments", rows=rows))
    return out


def parse_island_type_sections(html: str | None) -> list[IslandSection]:
    src = html or ""
    out: list[IslandSection] = []
    for section in slice_sections(src):
        body = section_html(src, section)
        if not _GRID_RE.search(body):
            continue
        out.append(
            IslandSection(
                key=section.key,
                title=section.title,
                chance_pct=parse_chance(body),
                internal_id=parse_internal_id(body),
                cells=parse_grid_cells(body),
                description=parse_description(body),
                galleries=resolve_galleries(body),
                special_tables=parse_special_tables(body),
            )
        )
    log.debug("Found %d island sections", len(out))
    return out


# --- Normalization ---


def island_id_from_title(title: str, internal_id: str | None) -> BoatTourIslandId:
    t = title.lower()
    code = (internal_id or "").lower()
    for island_id, title_markers, id_markers in _ISLAND_ID_RULES:
        if any(m in t for m in title_markers) or any(m in code for m in id_markers):
            return island_id
    return "unknown"


def _lines(value: str) -> list[str]:
    return [line.strip() for line in value.split("\n") if line.strip()]


def parse_date_rule(value: str) -> BoatTourDateRule:
    lines = _lines(value)
    if any("game time" in line.lower() for line in lines):
        return BoatTourDateRule(kind="gameTime")
    north = first_match(value, r"North:\s*([^\n]+)", re.IGNORECASE)
    south = first_match(value, r"South:\s*([^\n]+)", re.IGNORECASE)
    if north or south:
        return BoatTourDateRule(kind="fixedDate", north=north, south=south)
    joined = " • ".join(lines) or None
    return BoatTourDateRule(kind="fixedDate", north=joined, south=joined)


def build_tables(
    cells: list[BoatTourCell],
) -> tuple[list[BoatTourTableRow], list[str], BoatTourDateRule]:
    tables: list[BoatTourTableRow] = []
    weather: list[str] = []
    date_rule = BoatTourDateRule(kind="gameTime")

    for cell in cells:
        label = cell.label.lower()
        if "weather" in label:
            weather = _lines(cell.value)
            tables.append(BoatTourTableRow(label=cell.label, icon_url=cell.icon_url, items=weather))
        elif label == "date":
            date_rule = parse_date_rule(cell.value)
        elif "internal id" in label:
            continue
        elif any(marker in label for marker in _TABLE_LABEL_MARKERS):
            tables.append(
                BoatTourTableRow(label=cell.label, icon_url=cell.icon_url, items=_lines(cell.value))
            )
    return tables, weather, date_rule


def split_galleries(galleries: Galleries) -> tuple[list[MediaCandidate], list[MediaCandidate]]:
    maps: list[MediaCandidate] = []
    screenshots: list[MediaCandidate] = []
    for caption, candidates in galleries.items():
        cap = caption.lower()
        if "map" in cap:
            maps.extend(candidates)
        elif "screenshot" in cap:
            screenshots.extend(candidates)
    return maps, screenshots


def section_to_island(section: IslandSection) -> BoatTourIsland:
    island_id = island_id_from_title(section.title, section.internal_id)
    category = "rare" if island_id in RARE_ISLAND_IDS or "rare" in section.title.lower() else "normal"
    tables, weather, date_rule = build_tables(section.cells)
    maps, screenshots = split_galleries(section.galleries)

    special_tables = section.special_tables if island_id == "starFragment" else []
    subtitle = f"Internal ID: {section.internal_id}" if section.internal_id else "Boat tour island type"

    return BoatTourIsland(
        id=island_id,
        key=section.key,
        category=category,
        name=section.title,
        subtitle=subtitle,
        chance_pct=section.chance_pct or 0.0,
        internal_id=section.internal_id,
        date_rule=date_rule,
        weather_patterns=weather,
        tables=tables,
        special_tables=special_tables,
        notes=section.description,
        maps=maps,
        screenshots=screenshots,
    )


def parse_boat_tour_index(html: str | None) -> BoatTourIndex:
    islands = [section_to_island(s) for s in parse_island_type_sections(html)]
    islands.sort(key=island_sort_key)
    return BoatTourIndex(intro=parse_boat_tour_intro(html), islands=islands)


async def fetch_boat_tour_index(fetch_text: FetchText) -> BoatTourIndex:
    try:
        html = await fetch_text(BOAT_TOUR_URL)
    except WikiDexError as e:
        log.warning("Boat tour page unavailable: %s", e)
        return BoatTourIndex()
    return parse_boat_tour_index(html)
