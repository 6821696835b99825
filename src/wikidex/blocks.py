"""
Tag-depth scanning primitives for tolerant HTML extraction.

Wiki pages are not guaranteed to be well-formed, so instead of a DOM parser
these helpers track open/close depth for a single tag name and split tables
into row and cell fragments that end at the next marker rather than requiring
an explicit closing tag.
"""

import logging
import re
from collections.abc import Callable
from functools import lru_cache
from typing import NamedTuple

from wikidex.text import clean_key, first_match, strip_tags

log = logging.getLogger(__name__)


class Block(NamedTuple):
    start: int
    end: int
    html: str
    open_tag: str


class Card(NamedTuple):
    title: str
    start: int
    end: int
    html: str


@lru_cache(maxsize=32)
def _tag_pattern(tag_name: str) -> re.Pattern[str]:
    return re.compile(rf"<(/?){re.escape(tag_name)}(?=[\s/>])", re.IGNORECASE)


def _match_close(src: str, pattern: re.Pattern[str], start: int) -> int | None:
    depth = 0
    pos = start
    while True:
        m = pattern.search(src, pos)
        if m is None:
            return None
        tag_end = src.find(">", m.end())
        if tag_end < 0:
            return None

        if m.group(1):
            depth -= 1
            if depth == 0:
                return tag_end + 1
        elif src[tag_end - 1] != "/":
            depth += 1
        elif depth == 0:
            # self-closing opener
            return tag_end + 1
        pos = tag_end + 1


def extract_balanced_blocks(
    html: str | None,
    tag_name: str,
    predicate: Callable[[str], bool] | None = None,
) -> list[Block]:
    """
    Find every top-level ``tag_name`` block whose opening tag satisfies ``predicate``.

    Nested same-named tags are kept inside the emitted block. Blocks that never
    close are dropped and scanning resumes right after their opening tag.
    """
    src = html or ""
    pattern = _tag_pattern(tag_name)
    out: list[Block] = []

    pos = 0
    while pos < len(src):
        m = pattern.search(src, pos)
        if m is None:
            break
        open_end = src.find(">", m.start())
        if open_end < 0:
            break
        if m.group(1):
            pos = open_end + 1
            continue

        open_tag = src[m.start() : open_end + 1]
        if predicate is not None and not predicate(open_tag):
            pos = open_end + 1
            continue

        end = _match_close(src, pattern, m.start())
        if end is None:
            log.debug("Dropping unclosed <%s> block at offset %d", tag_name, m.start())
            pos = open_end + 1
            continue

        out.append(Block(m.start(), end, src[m.start() : end], open_tag))
        pos = end

    return out


_CLASS_ATTR_RE = re.compile(r"""\bclass\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.IGNORECASE)


def class_tokens(open_tag: str) -> set[str]:
    m = _CLASS_ATTR_RE.search(open_tag or "")
    if m is None:
        return set()
    return set((m.group(1) or m.group(2) or "").lower().split())


def has_class(*tokens: str) -> Callable[[str], bool]:
    wanted = {t.lower() for t in tokens}

    def predicate(open_tag: str) -> bool:
        return wanted <= class_tokens(open_tag)

    return predicate


def inner_html(block_html: str) -> str:
    """Content between a block's opening tag and its final closing tag."""
    open_end = block_html.find(">")
    close_start = block_html.rfind("</")
    if open_end < 0:
        return ""
    if close_start <= open_end:
        return block_html[open_end + 1 :]
    return block_html[open_end + 1 : close_start]


# --- Loose table splitting ---

_TBODY_RE = re.compile(r"<tbody\b[^>]*>([\s\S]*?)</tbody>", re.IGNORECASE)
_ROW_RE = re.compile(r"<tr\b[^>]*>([\s\S]*?)(?=<tr\b|</tbody\b|</table\b|$)", re.IGNORECASE)
_CELL_RE = re.compile(r"<t([dh])\b[^>]*>([\s\S]*?)(?=<t[dh]\b|</tr\b|$)", re.IGNORECASE)
_CLOSE_CELL_RE = re.compile(r"</t[dh]>\s*$", re.IGNORECASE)


def extract_tbody_inner(table_html: str | None) -> str:
    src = table_html or ""
    if not src:
        return ""

    m = _TBODY_RE.search(src)
    if m:
        return m.group(1)

    start = re.search(r"<tbody\b", src, re.IGNORECASE)
    if start is None:
        return ""
    open_end = src.find(">", start.start())
    if open_end < 0:
        return ""
    rest = src[open_end + 1 :]
    stop = re.search(r"</table\b", rest, re.IGNORECASE)
    return rest[: stop.start()] if stop else rest


def table_body(table_html: str | None) -> str:
    """The tbody content when present, otherwise the whole table markup."""
    return extract_tbody_inner(table_html) or (table_html or "")


def split_loose_rows(body_html: str | None) -> list[str]:
    return [m.group(1) for m in _ROW_RE.finditer(body_html or "")]


def split_loose_cells(row_html: str | None, *, include_headers: bool = False) -> list[str]:
    cells: list[str] = []
    for m in _CELL_RE.finditer(row_html or ""):
        if m.group(1).lower() == "h" and not include_headers:
            continue
        cells.append(_CLOSE_CELL_RE.sub("", m.group(2)))
    return cells


def is_header_row(row_html: str) -> bool:
    return re.search(r"<th\b", row_html, re.IGNORECASE) is not None


def split_by_marker(html: str | None, marker: str | re.Pattern[str]) -> list[str]:
    """Split into fragments that each start at a marker and end at the next one."""
    src = html or ""
    pattern = marker if isinstance(marker, re.Pattern) else re.compile(marker, re.IGNORECASE)
    starts = [m.start() for m in pattern.finditer(src)]
    bounds = starts[1:] + [len(src)]
    return [src[a:b] for a, b in zip(starts, bounds)]


# --- Card containers ---

_CARD_TITLE_RE = re.compile(
    r"""<h5\b[^>]*class=(?:"[^"]*\bcard-title\b[^"]*"|'[^']*\bcard-title\b[^']*')[^>]*>\s*([\s\S]*?)\s*</h5>""",
    re.IGNORECASE,
)


def card_title(card_html: str) -> str:
    return clean_key(strip_tags(first_match(card_html, _CARD_TITLE_RE) or ""))


def find_cards(html: str | None) -> list[Card]:
    """
    Locate card containers and their ``h5.card-title`` titles.

    Nested cards are reported alongside their parents; a card with no title of
    its own is skipped.
    """
    src = html or ""
    cards: list[Card] = []
    pending = extract_balanced_blocks(src, "div", has_class("card"))
    while pending:
        block = pending.pop(0)
        inner = inner_html(block.html)
        offset = block.start + block.html.find(">") + 1
        nested = [
            Block(b.start + offset, b.end + offset, b.html, b.open_tag)
            for b in extract_balanced_blocks(inner, "div", has_class("card"))
        ]
        own = inner
        for b in reversed(nested):
            own = own[: b.start - offset] + own[b.end - offset :]
        title = card_title(own)
        if title:
            cards.append(Card(title, block.start, block.end, block.html))
        pending.extend(nested)
    cards.sort(key=lambda c: c.start)
    return cards


def extract_card_by_title(html: str | None, needle: str) -> str | None:
    want = needle.lower()
    for card in find_cards(html):
        if want in card.title.lower():
            return card.html

    # Unbalanced pages: fall back to marker splitting.
    for chunk in split_by_marker(html, r"<div\b[^>]*class=\"card(?:\s[^\"]*)?\"[^>]*>"):
        title = card_title(chunk).lower()
        if title and want in title:
            return chunk
    return None


def extract_tab_pane(html: str | None, pane_id: str) -> str | None:
    src = html or ""
    start = re.search(
        rf"<div\s+id=\"{re.escape(pane_id)}\"\s+class=\"tab-pane[^\"]*\"[^>]*>", src, re.IGNORECASE
    )
    if start is None:
        return None
    rest = src[start.end() :]
    nxt = re.search(r"<div\s+id=\"[^\"]+\"\s+class=\"tab-pane\b", rest, re.IGNORECASE)
    return rest[: nxt.start()] if nxt else rest
