"""
Row and cell extractors for PalDB detail tables and cards.

All extractors take an HTML fragment (a table, a card, or a whole page) and
return typed rows. Rows that do not match are skipped, never raised on, and
every result list is de-duplicated in first-seen order so re-running an
extractor over its own input is stable.
"""

import logging
import re
from collections.abc import Callable, Hashable, Iterable
from typing import TypeVar

from wikidex.blocks import (
    Block,
    extract_balanced_blocks,
    extract_card_by_title,
    has_class,
    inner_html,
    split_by_marker,
    split_loose_cells,
    split_loose_rows,
    table_body,
)
from wikidex.models import (
    DropRow,
    Ingredient,
    ItemRef,
    KeyValueRow,
    MerchantRow,
    RecipeRow,
    ResearchRow,
    SoulUpgradeRow,
    TreasureRow,
)
from wikidex.text import clean_key, first_match, last_int, one_line, slugify
from wikidex.urls import href_to_slug, paldb_url

log = logging.getLogger(__name__)

T = TypeVar("T")

WORK_SLUG = "__work__"
WORK_ICON_MARKER = "T_icon_status_05"

_ANCHOR_RE = re.compile(r"<a\b([^>]*)>([\s\S]*?)</a\s*>", re.IGNORECASE)
_IMG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_QTY_SMALL_RE = re.compile(
    r"""<small\b[^>]*class=["'][^"']*\bitemQuantity\b[^"']*["'][^>]*>([\s\S]*?)</small>""",
    re.IGNORECASE,
)
_ITEMNAME_OPEN_RE = re.compile(
    r"""<a\b[^>]*class=["'][^"']*\bitemname\b[^"']*["'][^>]*>""", re.IGNORECASE
)
_MATERIAL_MARKER_RE = re.compile(
    _ITEMNAME_OPEN_RE.pattern + rf"|<img\b[^>]*{WORK_ICON_MARKER}[^>]*>", re.IGNORECASE
)
_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*%")


def dedupe_by(rows: Iterable[T], key: Callable[[T], Hashable]) -> list[T]:
    """Drop rows whose key was already seen, keeping first-seen order."""
    seen: set[Hashable] = set()
    out: list[T] = []
    for row in rows:
        k = key(row)
        if k in seen:
            continue
        seen.add(k)
        out.append(row)
    return out


# --- Quantities ---


def parse_quantity(text: str | None) -> tuple[int | None, str | None]:
    """
    Parse the first digit run of ``text``; return ``(quantity, raw)``.

    ``raw`` is the whitespace-cleaned input, kept for display even when no
    number is found (ranges like ``1,000–1,500`` yield the lower bound).
    """
    raw = clean_key(text) or None
    if raw is None:
        return None, None
    digits = first_match(raw, r"([0-9][0-9,]*)")
    if digits is None:
        return None, raw
    return int(digits.replace(",", "")), raw


def parse_inline_x_quantity(text: str | None) -> tuple[int | None, str | None]:
    """Recognize ``x3`` / ``x 12`` / ``X4`` markers, normalized to ``xN``."""
    m = re.search(r"\bx\s*([0-9][0-9,]*)\b", clean_key(text), re.IGNORECASE)
    if m is None:
        return None, None
    return int(m.group(1).replace(",", "")), f"x{m.group(1)}"


# --- Attribute and link helpers ---


def attr_value(tag: str | None, name: str) -> str | None:
    pattern = rf"""(?<![\w-]){re.escape(name)}\s*=\s*(?:"([^"]*)"|'([^']*)')"""
    m = re.search(pattern, tag or "", re.IGNORECASE)
    if m is None:
        return None
    value = (m.group(1) if m.group(1) is not None else m.group(2)).strip()
    return value or None


def first_img_src(html: str | None) -> str | None:
    for tag in _IMG_RE.findall(html or ""):
        src = attr_value(tag, "src") or attr_value(tag, "data-src")
        if src:
            return paldb_url(src)
    return None


def _item_ref(href: str, inner: str, context: str = "") -> ItemRef | None:
    slug = href_to_slug(href)
    if not slug:
        return None
    return ItemRef(
        slug=slug,
        name=one_line(inner) or slug,
        icon_url=first_img_src(inner) or first_img_src(context),
    )


def parse_first_item_link(html: str | None) -> ItemRef | None:
    src = html or ""
    for m in _ANCHOR_RE.finditer(src):
        href = attr_value(m.group(1), "href")
        if href:
            return _item_ref(href, m.group(2), src)

    # unclosed anchor
    href = first_match(src, r"""<a\b[^>]*\bhref=["']([^"']+)["']""", re.IGNORECASE)
    return _item_ref(href, src) if href else None


def _item_anchors(html: str) -> list[tuple[re.Match[str], ItemRef]]:
    out: list[tuple[re.Match[str], ItemRef]] = []
    for m in _ANCHOR_RE.finditer(html):
        if "itemname" not in clean_key(attr_value(m.group(1), "class")).split():
            continue
        href = attr_value(m.group(1), "href")
        ref = _item_ref(href, m.group(2)) if href else None
        if ref is not None:
            out.append((m, ref))
    return out


def parse_item_links(html: str | None) -> list[ItemRef]:
    """All ``a.itemname`` links in ``html``, unique by slug."""
    refs = [ref for _, ref in _item_anchors(html or "")]
    return dedupe_by(refs, lambda r: r.slug)


def item_quantity_text(html: str | None) -> str | None:
    return one_line(first_match(html, _QTY_SMALL_RE))


def _loose_text(html: str | None) -> str | None:
    text = clean_key((one_line(html) or "").replace("_", " "))
    return text or None


def extract_first_table(html: str | None, *classes: str) -> str | None:
    predicate = has_class(*classes) if classes else None
    tables = extract_balanced_blocks(html, "table", predicate)
    return tables[0].html if tables else None


def _body_rows(table_html: str | None) -> list[list[str]]:
    return [split_loose_cells(row) for row in split_loose_rows(table_body(table_html))]


# --- Key/value rows ---


def parse_key_value_rows(
    html: str | None, allowed_keys: Iterable[str] | None = None
) -> list[KeyValueRow]:
    """
    Read side-by-side ``d-flex justify-content-between`` pairs.

    When ``allowed_keys`` is given, rows whose label is not in it
    (case-insensitive) are rejected.
    """
    allowed = {k.casefold() for k in allowed_keys} if allowed_keys is not None else None
    out: list[KeyValueRow] = []
    for block in extract_balanced_blocks(html, "div", has_class("d-flex", "justify-content-between")):
        sides = extract_balanced_blocks(inner_html(block.html), "div")
        if len(sides) < 2:
            log.debug("Skipping key/value row with %d sides", len(sides))
            continue
        key_html = inner_html(sides[0].html)
        value_html = inner_html(sides[1].html)

        key_item = parse_first_item_link(key_html)
        key = clean_key(key_item.name if key_item else one_line(key_html))
        if not key:
            continue
        if allowed is not None and key.casefold() not in allowed:
            continue

        out.append(
            KeyValueRow(
                key=key,
                value_text=one_line(value_html),
                key_item=key_item,
                value_item=parse_first_item_link(value_html),
                key_icon_url=key_item.icon_url if key_item else first_img_src(key_html),
            )
        )
    return dedupe_by(out, lambda r: (r.key, r.value_text))


# --- Recipes ---


def _work_ingredient(segment: str) -> Ingredient:
    img = first_match(segment, rf"<img\b[^>]*{WORK_ICON_MARKER}[^>]*>", re.IGNORECASE)
    qty, raw = parse_quantity(item_quantity_text(segment))
    return Ingredient(
        slug=WORK_SLUG,
        name="Work",
        icon_url=first_img_src(img),
        quantity=qty,
        quantity_text=raw,
    )


def parse_materials_cell(cell_html: str | None) -> list[Ingredient]:
    out: list[Ingredient] = []
    for segment in split_by_marker(cell_html, _MATERIAL_MARKER_RE):
        if _ITEMNAME_OPEN_RE.match(segment) is None:
            out.append(_work_ingredient(segment))
            continue
        ref = parse_first_item_link(segment)
        if ref is None:
            log.debug("Skipping material segment without link")
            continue
        qty, raw = parse_quantity(item_quantity_text(segment))
        out.append(Ingredient(**ref.model_dump(), quantity=qty, quantity_text=raw))
    return dedupe_by(out, lambda i: i.slug)


def _single_item(cell_html: str) -> Ingredient | None:
    ref = parse_first_item_link(cell_html)
    if ref is None:
        return None
    qty, raw = parse_quantity(item_quantity_text(cell_html))
    return Ingredient(**ref.model_dump(), quantity=qty, quantity_text=raw)


def _recipe_key(row: RecipeRow) -> Hashable:
    return (
        tuple((m.slug, m.quantity_text) for m in row.materials),
        row.product.slug if row.product else None,
        row.schematic_text,
    )


def parse_recipe_table(table_html: str | None) -> list[RecipeRow]:
    out: list[RecipeRow] = []
    for cells in _body_rows(table_html):
        if len(cells) < 2:
            continue
        out.append(
            RecipeRow(
                materials=parse_materials_cell(cells[0]),
                product=_single_item(cells[1]),
                schematic_text=one_line(cells[2]) if len(cells) > 2 else None,
            )
        )
    return dedupe_by(out, _recipe_key)


def is_work_ingredient(ingredient: ItemRef) -> bool:
    return ingredient.slug == WORK_SLUG or WORK_ICON_MARKER in (ingredient.icon_url or "")


def filter_out_work(rows: Iterable[RecipeRow]) -> list[RecipeRow]:
    """Copy rows without labor entries; drop rows left with nothing to show."""
    out: list[RecipeRow] = []
    for row in rows:
        materials = [m for m in row.materials if not is_work_ingredient(m)]
        if materials or row.product is not None or row.schematic_text:
            out.append(row.model_copy(update={"materials": materials}))
    return out


# --- Drop, treasure and merchant tables ---


def _row_item(cell_html: str) -> ItemRef | None:
    """Linked item, or a text-only item keyed by its slugified name."""
    ref = parse_first_item_link(cell_html)
    if ref is not None:
        return ref
    name = one_line(cell_html)
    if not name:
        return None
    return ItemRef(slug=slugify(name), name=name, icon_url=first_img_src(cell_html))


def _item_key(item: ItemRef | None) -> Hashable:
    return (item.slug, item.name) if item else None


def parse_dropped_by_table(table_html: str | None) -> list[DropRow]:
    out: list[DropRow] = []
    for cells in _body_rows(table_html):
        if len(cells) < 3:
            continue
        item = _row_item(cells[0])
        if item is None:
            log.debug("Skipping dropped-by row without link or name")
            continue
        out.append(
            DropRow(item=item, quantity_text=one_line(cells[1]), probability_text=one_line(cells[2]))
        )
    return dedupe_by(out, lambda r: (_item_key(r.item), r.quantity_text, r.probability_text))


def parse_treasure_box_table(table_html: str | None) -> list[TreasureRow]:
    out: list[TreasureRow] = []
    for cells in _body_rows(table_html):
        if len(cells) < 2:
            continue
        item = _row_item(cells[0])
        if item is None:
            continue
        out.append(
            TreasureRow(
                item=item,
                quantity_text=_loose_text(item_quantity_text(cells[0])),
                source_text=_loose_text(cells[1]),
            )
        )
    return dedupe_by(out, lambda r: (_item_key(r.item), r.quantity_text, r.source_text))


def parse_merchant_table(table_html: str | None) -> list[MerchantRow]:
    out: list[MerchantRow] = []
    for cells in _body_rows(table_html):
        if len(cells) < 2:
            continue
        item = _row_item(cells[0])
        if item is None:
            continue
        out.append(MerchantRow(item=item, source_text=_loose_text(cells[1])))
    return dedupe_by(out, lambda r: (_item_key(r.item), r.source_text))


_DROP_TITLE_MARKER = 'data-i18n="paldex_drop_item_title"'


def parse_possible_drops(html: str | None) -> list[DropRow]:
    """
    Read a pal's "Possible Drops" table.

    The table is segmented at each item link rather than by rows, so it
    survives broken ``<tr>`` markup and rows holding several items; the
    probability is the last percentage inside each segment.
    """
    src = html or ""
    anchor = src.find(_DROP_TITLE_MARKER)
    region = src[anchor:] if anchor >= 0 else extract_card_by_title(src, "possible drops")
    table = extract_first_table(region)
    if table is None:
        return []

    anchors = _item_anchors(table)
    out: list[DropRow] = []
    for i, (m, ref) in enumerate(anchors):
        end = anchors[i + 1][0].start() if i + 1 < len(anchors) else len(table)
        segment = table[m.start() : end]
        probs = _PERCENT_RE.findall(segment)
        out.append(
            DropRow(
                item=ref,
                quantity_text=item_quantity_text(segment),
                probability_text=f"{probs[-1]}%" if probs else None,
            )
        )
    return dedupe_by(
        out, lambda r: (_item_key(r.item), r.quantity_text, r.probability_text, r.item.icon_url)
    )


# --- Research ---


def _research_key(row: ResearchRow) -> Hashable:
    return (
        row.title,
        row.required_level,
        row.effect_text,
        tuple(m.slug for m in row.materials),
        row.product_text,
    )


def parse_research_materials(cell_html: str | None) -> list[Ingredient]:
    """Linked ingredients, each taking the first quantity after its link."""
    src = cell_html or ""
    out: list[Ingredient] = []
    for m, ref in _item_anchors(src):
        qty, raw = parse_quantity(item_quantity_text(src[m.end() :]))
        out.append(Ingredient(**ref.model_dump(), quantity=qty, quantity_text=raw))
    return dedupe_by(out, lambda i: i.slug)


def parse_research_table(table_html: str | None) -> list[ResearchRow]:
    out: list[ResearchRow] = []
    for cells in _body_rows(table_html):
        if len(cells) < 2:
            continue
        materials = parse_research_materials(cells[0])
        product_text = one_line(cells[1])
        if not materials and not product_text:
            continue
        out.append(ResearchRow(materials=materials, product_text=product_text))
    return dedupe_by(out, _research_key)


_RESEARCH_CARD_MARKER = re.compile(
    r"""<div\s+class=["']card[^"']*\bitemPopup\b[^"']*["'][^>]*>""", re.IGNORECASE
)
_LAST_DIV_NUMBER_RE = re.compile(r"<div\b[^>]*>\s*([0-9][0-9,]*)\s*</div>", re.IGNORECASE)


def _required_level(card_html: str) -> int | None:
    for m in re.finditer(r"<span\b[^>]*>([^<]*)</span>", card_html, re.IGNORECASE):
        if "Lv." in m.group(1):
            return last_int(m.group(1))
    return last_int(first_match(card_html, r"Lv\.\s*[0-9]+", re.IGNORECASE))


def _research_ingredients(card_html: str) -> list[Ingredient]:
    recipes = extract_balanced_blocks(card_html, "div", has_class("recipes"))
    if not recipes:
        return []
    marker = re.compile(r"""<div\s+class=["']d-flex[^"']*\bborder-top\b""", re.IGNORECASE)
    out: list[Ingredient] = []
    for row in split_by_marker(recipes[0].html, marker):
        ref = parse_first_item_link(row)
        if ref is None:
            continue
        numbers = _LAST_DIV_NUMBER_RE.findall(row)
        qty, raw = parse_quantity(numbers[-1] if numbers else None)
        out.append(Ingredient(**ref.model_dump(), quantity=qty, quantity_text=raw))
    return dedupe_by(out, lambda i: i.slug)


def _research_card_blocks(pane_html: str) -> list[str]:
    blocks: list[Block] = extract_balanced_blocks(pane_html, "div", has_class("card", "itemPopup"))
    if blocks:
        return [b.html for b in blocks]
    return split_by_marker(pane_html, _RESEARCH_CARD_MARKER)


def parse_research_cards(pane_html: str | None) -> list[ResearchRow]:
    """Research entries laid out as ``card itemPopup`` blocks in a tab pane."""
    out: list[ResearchRow] = []
    for card in _research_card_blocks(pane_html or ""):
        title = one_line(
            first_match(card, r"""<div\s+class=["']align-self-center["'][^>]*>([\s\S]*?)</div>""", re.IGNORECASE)
        )
        effect = one_line(
            first_match(card, r"""<div\s+class=["']card-body[^"']*["'][^>]*>([\s\S]*?)</div>""", re.IGNORECASE)
        )
        materials = _research_ingredients(card)
        if not (title or effect or materials):
            continue
        out.append(
            ResearchRow(
                title=title,
                required_level=_required_level(card),
                effect_text=effect,
                materials=materials,
            )
        )
    return dedupe_by(out, _research_key)


# --- Soul upgrades ---

_SOUL_UPGRADE_TITLES = ("soul upgrade", "pal upgrade", "帕魯強化")


def parse_soul_upgrade_rows(page_html: str | None) -> list[SoulUpgradeRow]:
    card = None
    for title in _SOUL_UPGRADE_TITLES:
        card = extract_card_by_title(page_html, title)
        if card:
            break
    table = extract_first_table(card, "table", "mb-0") or extract_first_table(card)
    if table is None:
        return []

    out: list[SoulUpgradeRow] = []
    for cells in _body_rows(table):
        if len(cells) < 2:
            continue
        material = parse_first_item_link(cells[0])
        qty, qty_text = parse_inline_x_quantity(one_line(cells[0]))
        rank = one_line(cells[1])
        if material is None and rank is None and qty is None:
            continue
        out.append(
            SoulUpgradeRow(material=material, quantity=qty, quantity_text=qty_text, rank_text=rank)
        )
    return dedupe_by(out, lambda r: (_item_key(r.material), r.quantity_text, r.rank_text))
