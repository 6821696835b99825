"""
Nook Mystery Tour island types from Nookipedia's "Mystery Tour" page.

Prose sections (Characteristics and its subsections) come first. Island types
are H3 sections under two H2 buckets: "Types of mystery islands" for islands
still in rotation and "Previously available mystery islands" for retired
ones. Each island section is a run of paragraphs with bold labels
(Requirements, Trees, Flowers, ...) rather than an infobox grid.
"""

import logging
import re

from wikidex.boat_tour import paragraph_texts, parse_chance
from wikidex.exceptions import WikiDexError
from wikidex.fetch import FetchText
from wikidex.media import image_url_from_tag
from wikidex.models import (
    BoatTourIntroSection,
    BoatTourTableRow,
    MediaCandidate,
    MysteryTourCategory,
    MysteryTourIndex,
    MysteryTourIsland,
)
from wikidex.rows import attr_value, dedupe_by
from wikidex.sections import Heading, parse_headings
from wikidex.sorter import mystery_island_sort_key
from wikidex.text import clean_key, one_line, slugify, strip_tags
from wikidex.urls import nookipedia_url

log = logging.getLogger(__name__)

MYSTERY_TOUR_URL = nookipedia_url("/wiki/Mystery_Tour?action=render")

INTRO_START_ID = "characteristics"
INTRO_STOP_ID = "types_of_mystery_islands"
CURRENT_BUCKET = "types of mystery islands"
PREVIOUS_BUCKET = "previously available mystery islands"

CHARACTERISTIC_LABELS = ("Trees", "Flowers", "Bugs", "Fish", "Rocks", "Limit")

_P_RE = re.compile(r"<p\b[^>]*>[\s\S]*?</p\s*>", re.IGNORECASE)
_IMG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_NOTE_BLOCK_RE = re.compile(r"<(p|li)\b[^>]*>([\s\S]*?)</\1\s*>", re.IGNORECASE)
_REQUIREMENTS_RE = re.compile(r"<b\b[^>]*>\s*Requirements\s*</b>", re.IGNORECASE)
_CHANCE_MARK_RE = re.compile(r"Chance:\s*[0-9]", re.IGNORECASE)
_MYSTERY_ISLAND_RE = re.compile(r"mystery[^a-z0-9]*island", re.IGNORECASE)
_JPEG_RE = re.compile(r"\.jpe?g(?:[?#]|$)", re.IGNORECASE)

# Screenshots are looked for above the chance line, or in this much markup
_SCREENSHOT_WINDOW = 8000


def _last_icon_before(paragraph: str, offset: int) -> str | None:
    imgs = _IMG_RE.findall(paragraph[:offset])
    if not imgs:
        return None
    return image_url_from_tag(imgs[-1]) or None


# --- Intro ---


def parse_mystery_tour_intro(html: str | None) -> list[BoatTourIntroSection]:
    """
    Lead paragraphs as "Overview", then every H2/H3 section from Characteristics
    up to the island types. Pages without a Characteristics heading have no intro.
    """
    src = html or ""
    headings = [h for h in parse_headings(src) if h.level in (2, 3)]
    start = next((i for i, h in enumerate(headings) if h.key.lower() == INTRO_START_ID), None)
    if start is None:
        return []
    stop = next((i for i, h in enumerate(headings) if h.key.lower() == INTRO_STOP_ID), None)
    end_offset = headings[stop].offset if stop is not None else len(src)
    window = headings[start:stop] if stop is not None else headings[start:]

    out: list[BoatTourIntroSection] = []
    lead = paragraph_texts(src[: headings[start].offset])
    if lead:
        out.append(BoatTourIntroSection(title="Overview", paragraphs=lead))
    for i, heading in enumerate(window):
        end = window[i + 1].offset if i + 1 < len(window) else end_offset
        paragraphs = paragraph_texts(src[heading.offset : end])
        if paragraphs:
            out.append(BoatTourIntroSection(title=heading.title or heading.key, paragraphs=paragraphs))
    return out


# --- Island sections ---


def parse_internal_name(html: str) -> str | None:
    m = re.search(r"Internal\s*name[\s\S]*?<code[^>]*>([\s\S]*?)</code>", html, re.IGNORECASE)
    if m and (value := one_line(m.group(1))):
        return value
    m = re.search(r"Internal\s*name[\s\S]*?`([^`]+)`", html, re.IGNORECASE)
    return one_line(m.group(1)) if m else None


def parse_requirements(html: str) -> tuple[list[str], str | None]:
    """Lines under the bold "Requirements" label and the icon just before it."""
    for paragraph in _P_RE.findall(html):
        label = _REQUIREMENTS_RE.search(paragraph)
        if not label:
            continue
        icon = _last_icon_before(paragraph, label.start())
        body = re.search(r"</b>\s*<br\s*/?>\s*([\s\S]*?)</p", paragraph[label.start() :], re.IGNORECASE)
        lines = [line for line in strip_tags(body.group(1) if body else "").split("\n") if line]
        return dedupe_by(lines, lambda line: line.lower()), icon
    return [], None


def parse_labelled_value(html: str, label: str) -> tuple[str, str | None]:
    """Text after ``<b>Label:</b>`` up to the next line break, with the icon before the label."""
    label_re = re.compile(rf"<b\b[^>]*>\s*{re.escape(label)}\s*:?\s*</b>", re.IGNORECASE)
    value_re = re.compile(
        rf"<b\b[^>]*>\s*{re.escape(label)}\s*:?\s*</b>\s*:?\s*([\s\S]*?)(?:<br\s*/?>|</p)", re.IGNORECASE
    )
    for paragraph in _P_RE.findall(html):
        m = label_re.search(paragraph)
        if not m:
            continue
        raw = value_re.search(paragraph[m.start() :])
        value = clean_key(strip_tags(raw.group(1))) if raw else ""
        if value:
            return value, _last_icon_before(paragraph, m.start())
    return "", None


def parse_characteristics(html: str) -> list[BoatTourTableRow]:
    out: list[BoatTourTableRow] = []
    for label in CHARACTERISTIC_LABELS:
        value, icon = parse_labelled_value(html, label)
        if value:
            out.append(BoatTourTableRow(label=label, icon_url=icon, items=[value]))
    return out


def parse_notes(html: str) -> list[str]:
    """Paragraph and list lines after the "Limit" paragraph; repeated lines are collapsed."""
    body = html
    limit = re.search(r"Limit\s*:", body, re.IGNORECASE)
    if limit:
        body = body[limit.start() :]
        close = re.search(r"</p\s*>", body, re.IGNORECASE)
        if close:
            body = body[close.end() :]

    out: list[str] = []
    for m in _NOTE_BLOCK_RE.finditer(body):
        for line in strip_tags(m.group(2)).split("\n"):
            line = clean_key(line)
            if line and (not out or out[-1].lower() != line.lower()):
                out.append(line)
    return out


def parse_screenshots(html: str) -> list[MediaCandidate]:
    """Island photos above the chance line: JPEGs, or images named after a mystery island."""
    cut = _CHANCE_MARK_RE.search(html)
    head = html[: cut.start()] if cut else html[:_SCREENSHOT_WINDOW]

    out: list[MediaCandidate] = []
    for tag in _IMG_RE.findall(head):
        url = image_url_from_tag(tag)
        if not url:
            continue
        alt = one_line(attr_value(tag, "alt")) or ""
        if _JPEG_RE.search(url) or _MYSTERY_ISLAND_RE.search(alt) or _MYSTERY_ISLAND_RE.search(url):
            out.append(MediaCandidate(url=url, caption=alt or None))
    return dedupe_by(out, lambda c: c.url)


def _bucket_sections(src: str, h2s: list[Heading], bucket: Heading) -> list[tuple[Heading, str]]:
    later = [h.offset for h in h2s if h.offset > bucket.offset]
    bucket_end = later[0] if later else len(src)
    h3s = [h for h in parse_headings(src, 3) if bucket.offset < h.offset < bucket_end]
    return [
        (heading, src[heading.offset : h3s[i + 1].offset if i + 1 < len(h3s) else bucket_end])
        for i, heading in enumerate(h3s)
    ]


def section_to_mystery_island(
    heading: Heading, body: str, category: MysteryTourCategory
) -> MysteryTourIsland:
    requirements, requirements_icon = parse_requirements(body)
    return MysteryTourIsland(
        id=f"{category}-{slugify(heading.title)}-{slugify(heading.key or heading.title)}",
        key=heading.key,
        category=category,
        name=heading.title or "Mystery Island",
        chance_pct=parse_chance(body) or 0.0,
        internal_id=parse_internal_name(body),
        requirements=requirements,
        requirements_icon_url=requirements_icon,
        tables=parse_characteristics(body),
        notes=parse_notes(body),
        screenshots=parse_screenshots(body),
    )


def parse_mystery_islands(html: str | None) -> list[MysteryTourIsland]:
    """Every H3 island section in the current and previous buckets, sorted current first."""
    src = html or ""
    h2s = parse_headings(src, 2)
    buckets: list[tuple[Heading, MysteryTourCategory]] = []
    for h2 in h2s:
        title = h2.title.lower()
        if title == CURRENT_BUCKET:
            buckets.append((h2, "current"))
        elif title == PREVIOUS_BUCKET:
            buckets.append((h2, "previous"))
    if not any(category == "current" for _, category in buckets):
        return []

    islands = [
        section_to_mystery_island(heading, body, category)
        for bucket, category in buckets
        for heading, body in _bucket_sections(src, h2s, bucket)
    ]
    islands.sort(key=mystery_island_sort_key)
    log.debug("Found %d mystery islands", len(islands))
    return islands


def parse_mystery_tour_index(html: str | None) -> MysteryTourIndex:
    return MysteryTourIndex(intro=parse_mystery_tour_intro(html), islands=parse_mystery_islands(html))


async def fetch_mystery_tour_index(fetch_text: FetchText) -> MysteryTourIndex:
    try:
        html = await fetch_text(MYSTERY_TOUR_URL)
    except WikiDexError as e:
        log.warning("Mystery Tour page unavailable: %s", e)
        return MysteryTourIndex()
    return parse_mystery_tour_index(html)
