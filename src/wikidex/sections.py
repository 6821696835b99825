"""
Heading-anchored slicing of wiki pages into sections.

Two modes are supported. Heading mode cuts the page into contiguous ranges,
one per heading anchor at a chosen level, optionally ending at a stop heading
such as "Gallery". Attribution mode leaves the page whole and instead tags
each extracted block with the title of the closest sub-heading above it, for
pages organized as heading + table pairs.
"""

import logging
import re
from collections.abc import Iterable, Sequence
from typing import NamedTuple

from wikidex.blocks import Block, extract_balanced_blocks, has_class
from wikidex.models import Section
from wikidex.text import first_match, one_line

log = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"<h([1-6])\b([^>]*)>([\s\S]*?)</h\1\s*>", re.IGNORECASE)
_HEADLINE_RE = re.compile(
    r"""<span\b([^>]*\bclass=["'][^"']*\bmw-headline\b[^"']*["'][^>]*)>([\s\S]*?)</span>""",
    re.IGNORECASE,
)
_ID_ATTR_RE = re.compile(r"""(?<![\w-])id\s*=\s*["']([^"']+)["']""", re.IGNORECASE)


class Heading(NamedTuple):
    key: str
    title: str
    level: int
    offset: int


def _without_edit_links(inner: str) -> str:
    edits = extract_balanced_blocks(inner, "span", has_class("mw-editsection"))
    for block in reversed(edits):
        inner = inner[: block.start] + inner[block.end :]
    return inner


def parse_headings(html: str | None, level: int | None = None) -> list[Heading]:
    """
    Find heading anchors in document order.

    A heading counts as an anchor when it carries an id, either on a
    ``mw-headline`` span inside it or on the ``<hN>`` element itself.
    """
    src = html or ""
    out: list[Heading] = []
    for m in _HEADING_RE.finditer(src):
        heading_level = int(m.group(1))
        if level is not None and heading_level != level:
            continue

        inner = _without_edit_links(m.group(3))
        headline = _HEADLINE_RE.search(inner)
        if headline:
            key = first_match(headline.group(1), _ID_ATTR_RE)
            title = one_line(headline.group(2))
        else:
            key = None
            title = one_line(inner)
        key = key or first_match(m.group(2), _ID_ATTR_RE)

        if not key or not title:
            log.debug("Skipping heading without id or title at offset %d", m.start())
            continue
        out.append(Heading(key, title, heading_level, m.start()))
    return out


def _is_stop(heading: Heading, stop_ids: set[str], stop_titles: set[str]) -> bool:
    return heading.key in stop_ids or heading.title.lower() in stop_titles


def slice_sections(
    html: str | None,
    level: int | None = None,
    stop_ids: Iterable[str] = (),
    stop_titles: Iterable[str] = (),
) -> list[Section]:
    """
    Split ``html`` into one section per heading anchor at ``level``.

    Each section runs from its heading to the next anchor. The first section
    starts at offset 0 so leading content is not lost, and the last one ends
    at the earliest stop heading (matched by id or case-insensitive title, at
    any level) or at end-of-document.
    """
    src = html or ""
    ids = set(stop_ids)
    titles = {t.lower() for t in stop_titles}

    limit = len(src)
    if ids or titles:
        stops = [h.offset for h in parse_headings(src) if _is_stop(h, ids, titles)]
        if stops:
            limit = min(stops)

    anchors = [h for h in parse_headings(src, level) if h.offset < limit]
    sections: list[Section] = []
    for i, heading in enumerate(anchors):
        end = anchors[i + 1].offset if i + 1 < len(anchors) else limit
        sections.append(
            Section(
                key=heading.key,
                title=heading.title,
                level=heading.level,
                start_offset=0 if i == 0 else heading.offset,
                heading_offset=heading.offset,
                end_offset=end,
            )
        )
    return sections


def section_html(html: str | None, section: Section) -> str:
    """Markup from the section's heading up to its end."""
    return (html or "")[section.heading_offset : section.end_offset]


def find_section(sections: Sequence[Section], *names: str) -> Section | None:
    """First section whose key or title matches one of ``names`` (case-insensitive)."""
    wanted = {n.lower() for n in names}
    for section in sections:
        if section.key.lower() in wanted or section.title.lower() in wanted:
            return section
    return None


def nearest_heading_before(headings: Sequence[Heading], offset: int) -> Heading | None:
    best: Heading | None = None
    for heading in headings:
        if heading.offset >= offset:
            break
        best = heading
    return best


def attribute_blocks(
    html: str | None, blocks: Sequence[Block], level: int
) -> list[tuple[str | None, Block]]:
    """Pair each block with the title of the closest preceding heading at ``level``."""
    headings = parse_headings(html, level)
    out: list[tuple[str | None, Block]] = []
    for block in blocks:
        heading = nearest_heading_before(headings, block.start)
        out.append((heading.title if heading else None, block))
    return out
