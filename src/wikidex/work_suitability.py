"""
Work suitability vocabulary and PalDB work suitability pages.

The twelve suitabilities are a fixed vocabulary with in-game codes and icon
ids, exposed through read-only lookups. Each detail page (``/en/Lumbering``,
``/en/Transporting``, ...) carries a Stats card with per-level scaling, a
Structures card, a pals table whose extra columns vary per page, and a
Research tab.
"""

import logging
import re
from types import MappingProxyType

from wikidex.batch import ProgressCallback, fetch_all_details, resolve_concurrency
from wikidex.blocks import (
    extract_balanced_blocks,
    extract_card_by_title,
    extract_tab_pane,
    has_class,
)
from wikidex.fetch import FetchText
from wikidex.models import (
    ItemRef,
    KeyValueRow,
    WorkExtraCell,
    WorkExtraColumn,
    WorkLevelStat,
    WorkPalRef,
    WorkStructureRef,
    WorkSuitability,
    WorkSuitabilityDetail,
)
from wikidex.rows import attr_value, first_img_src, parse_first_item_link, parse_key_value_rows, parse_research_cards
from wikidex.sorter import sort_level_stats, work_suitability_sort_key
from wikidex.text import clean_key, first_match, last_int, one_line
from wikidex.urls import href_to_slug, paldb_url

log = logging.getLogger(__name__)

DEFAULT_SLUG = "Lumbering"


def work_suitability_icon_url(icon_id: int) -> str:
    return paldb_url(f"/image/Pal/Texture/UI/InGame/T_icon_palwork_{icon_id:02d}.webp")


def _work(slug: str, name: str, code: str, icon_id: int) -> WorkSuitability:
    return WorkSuitability(
        slug=slug, name=name, code=code, icon_id=icon_id, icon_url=work_suitability_icon_url(icon_id)
    )


# Icon id 9 is unused in game.
WORK_SUITABILITIES: tuple[WorkSuitability, ...] = (
    _work("Kindling", "Kindling", "EmitFlame", 0),
    _work("Watering", "Watering", "Watering", 1),
    _work("Planting", "Planting", "Seeding", 2),
    _work("Generating_Electricity", "Generating Electricity", "GenerateElectricity", 3),
    _work("Handiwork", "Handiwork", "Handcraft", 4),
    _work("Gathering", "Gathering", "Collection", 5),
    _work("Lumbering", "Lumbering", "Deforest", 6),
    _work("Mining", "Mining", "Mining", 7),
    _work("Medicine_Production", "Medicine Production", "ProductMedicine", 8),
    _work("Cooling", "Cooling", "Cool", 10),
    _work("Transporting", "Transporting", "Transport", 11),
    _work("Farming", "Farming", "MonsterFarm", 12),
)

_BY_SLUG = MappingProxyType({w.slug.lower(): w for w in WORK_SUITABILITIES})
_BY_CODE = MappingProxyType({w.code: w for w in WORK_SUITABILITIES})


def get_by_slug(slug: str | None) -> WorkSuitability | None:
    if not slug:
        return None
    return _BY_SLUG.get(slug.strip().lower())


def get_by_code(code: str | None) -> WorkSuitability | None:
    if not code:
        return None
    return _BY_CODE.get(code.strip())


def normalize_work_slug(slug_or_url: str | None) -> str:
    """Accept a bare slug, ``/en/<slug>`` path or full URL."""
    s = (slug_or_url or "").strip()
    if not s:
        return DEFAULT_SLUG
    if re.search(r"/en/[^/?#]+", s, re.IGNORECASE):
        return href_to_slug(s) or DEFAULT_SLUG
    return s.lstrip("/")


def work_suitability_url(slug: str) -> str:
    return paldb_url(f"/en/{slug}")


# --- Header and stats ---


def parse_header(html: str) -> tuple[str | None, str | None]:
    icon = None
    for tag in re.findall(r"<img\b[^>]*>", html, re.IGNORECASE):
        if attr_value(tag, "width") == "80":
            icon = first_img_src(tag)
            break
    name = one_line(
        first_match(
            html,
            r"""<h5\b[^>]*class=["']text-center card-title["'][^>]*>([\s\S]*?)</h5>""",
            re.IGNORECASE,
        )
    )
    return name, icon


def parse_power(raw: str | None) -> int | None:
    m = re.match(r"\s*([0-9][0-9,]*)\b", raw or "")
    return int(m.group(1).replace(",", "")) if m else None


def parse_damage_rate(raw: str | None) -> float | None:
    m = re.search(r"DamageRate\s*x\s*([0-9]*\.?[0-9]+)", raw or "", re.IGNORECASE)
    return float(m.group(1)) if m else None


def parse_level_stats(stats: list[KeyValueRow]) -> list[WorkLevelStat]:
    levels: list[WorkLevelStat] = []
    for row in stats:
        m = re.fullmatch(r"Lv\.?\s*([0-9]+)", row.key, re.IGNORECASE)
        if not m:
            continue
        raw = row.value_text or ""
        levels.append(
            WorkLevelStat(
                level=int(m.group(1)),
                power=parse_power(raw),
                damage_rate=parse_damage_rate(raw),
                raw_text=raw,
            )
        )
    return sort_level_stats(levels)


def _stat_value(stats: list[KeyValueRow], key: str) -> str | None:
    return next((row.value_text for row in stats if row.key.casefold() == key.casefold()), None)


# --- Structures ---


def parse_structures(card_html: str | None) -> list[WorkStructureRef]:
    out: list[WorkStructureRef] = []
    for row in extract_balanced_blocks(card_html, "div", has_class("d-flex", "border-bottom")):
        ref = parse_first_item_link(row.html)
        text = one_line(row.html)
        if ref is None and not text:
            continue
        out.append(
            WorkStructureRef(
                slug=ref.slug if ref else None,
                name=ref.name if ref else text,
                icon_url=ref.icon_url if ref else first_img_src(row.html),
                required_level=last_int(text),
            )
        )
    return out


# --- Pals table ---

_HEADER_STREAM_RE = re.compile(r"<th\b[^>]*>([\s\S]*?)(?=<th\b|<tbody\b|<tr\b|$)", re.IGNORECASE)
_CELL_STREAM_RE = re.compile(r"<td\b[^>]*>([\s\S]*?)(?=<td\b|<tr\b|$)", re.IGNORECASE)
_ITEMNAME_ANCHOR_RE = re.compile(
    r"""<a\b[^>]*\bclass=["'][^"']*\bitemname\b[^"']*["'][^>]*>[\s\S]*?</a\s*>""", re.IGNORECASE
)


def normalize_header_key(label: str | None) -> str:
    t = clean_key(one_line(label))
    return re.sub(r"\W+", "_", t).strip("_").lower()


def parse_extra_cell(cell_html: str | None) -> WorkExtraCell | None:
    raw = cell_html or ""
    anchor = _ITEMNAME_ANCHOR_RE.search(raw)
    link: ItemRef | None = parse_first_item_link(anchor.group(0)) if anchor else None
    if link is not None:
        return WorkExtraCell(text=link.name or one_line(raw), link=link)
    text = one_line(raw)
    return WorkExtraCell(text=text) if text else None


def _pals_table(html: str) -> str | None:
    idx = html.find("Pals with this Work Suitability")
    if idx < 0:
        return None
    tables = extract_balanced_blocks(html[idx:], "table")
    if tables:
        return tables[0].html
    # Unclosed table: read to the end of the page.
    m = re.search(r"<table\b[^>]*>([\s\S]*)", html[idx:], re.IGNORECASE)
    return m.group(1) if m else None


def parse_pals_table(html: str | None) -> tuple[list[WorkPalRef], list[WorkExtraColumn]]:
    """
    Read the "Pals with this Work Suitability" table.

    Headers and cells are read as flat streams so rows with missing ``</tr>``
    or ``</td>`` still line up; the first two columns are pal and level, the
    rest become extra columns keyed by their normalized header.
    """
    table = _pals_table(html or "")
    if not table:
        return [], []

    headers = [h for h in (one_line(m) for m in _HEADER_STREAM_RE.findall(table)) if h]
    columns = [
        WorkExtraColumn(key=normalize_header_key(label) or f"extra_{i - 1}", label=label)
        for i, label in enumerate(headers)
        if i >= 2
    ]
    width = max(len(headers), 2)

    cells = _CELL_STREAM_RE.findall(table)
    pals: list[WorkPalRef] = []
    for start in range(0, len(cells) - width + 1, width):
        row = cells[start : start + width]
        anchor = _ITEMNAME_ANCHOR_RE.search(row[0])
        if anchor is None:
            log.debug("Skipping pal row without pal link")
            continue
        ref = parse_first_item_link(anchor.group(0))
        extras = {col.key: parse_extra_cell(row[j + 2]) for j, col in enumerate(columns)}
        pals.append(
            WorkPalRef(
                slug=ref.slug if ref else None,
                name=ref.name if ref else None,
                icon_url=ref.icon_url if ref else None,
                level=last_int(one_line(row[1])),
                nocturnal=bool(re.search(r"nocturnal", row[0], re.IGNORECASE)),
                extras=extras or None,
            )
        )
    return pals, columns


# --- Page ---


def parse_work_suitability_detail(slug_or_url: str, html: str | None) -> WorkSuitabilityDetail:
    slug = normalize_work_slug(slug_or_url)
    src = html or ""
    name, icon = parse_header(src)
    known = get_by_slug(slug)

    stats = parse_key_value_rows(extract_card_by_title(src, "stats"))
    pals, extra_columns = parse_pals_table(src)

    return WorkSuitabilityDetail(
        slug=slug,
        name=name or (known.name if known else None),
        icon_url=icon or (known.icon_url if known else None),
        stats=stats,
        type=_stat_value(stats, "Type"),
        code=_stat_value(stats, "Code"),
        levels=parse_level_stats(stats),
        structures=parse_structures(extract_card_by_title(src, "structures")),
        pals=pals,
        pal_extra_columns=extra_columns,
        research=parse_research_cards(extract_tab_pane(src, "Research")),
    )


async def fetch_work_suitability_detail(fetch_text: FetchText, slug_or_url: str) -> WorkSuitabilityDetail:
    slug = normalize_work_slug(slug_or_url)
    return parse_work_suitability_detail(slug, await fetch_text(work_suitability_url(slug)))


async def fetch_all_work_suitabilities(
    fetch_text: FetchText,
    concurrency: int | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[WorkSuitabilityDetail]:
    limit = resolve_concurrency(concurrency)

    async def fetch_one(work: WorkSuitability) -> WorkSuitabilityDetail:
        return await fetch_work_suitability_detail(fetch_text, work.slug)

    return await fetch_all_details(
        WORK_SUITABILITIES,
        fetch_one,
        concurrency=limit,
        on_progress=on_progress,
        sort_key=work_suitability_sort_key,
    )
