"""
Image discovery and gallery bucketing for wiki sections.

Galleries come from two places on a MediaWiki page: ``ul.gallery`` lists
with a caption, and standalone ``div.thumb`` blocks. Thumbnails carry no
bucket of their own, so they are classified into Maps or Screenshots from
their filename and alt text.
"""

import re
from typing import Literal

from wikidex.blocks import extract_balanced_blocks, has_class
from wikidex.models import MediaCandidate
from wikidex.rows import attr_value
from wikidex.text import one_line
from wikidex.urls import NOOKIPEDIA_BASE_URL, abs_url

MAPS = "Maps"
SCREENSHOTS = "Screenshots"

MediaBucket = Literal["Maps", "Screenshots"]
Galleries = dict[str, list[MediaCandidate]]

_IMG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_GALLERY_CAPTION_RE = re.compile(
    r"""<li\b[^>]*class=["']gallerycaption["'][^>]*>([\s\S]*?)</li>""", re.IGNORECASE
)
_JPEG_RE = re.compile(r"\.jpe?g(?:[?#]|$)", re.IGNORECASE)
_PNG_RE = re.compile(r"\.png(?:[?#]|$)", re.IGNORECASE)
_MAP_ALT_RE = re.compile(r"(?:^|[\s(_-])map(?:\b|[)\s_-])", re.IGNORECASE)
_MAP_URL_RES = (
    re.compile(r"nh_map", re.IGNORECASE),
    re.compile(r"_map\.", re.IGNORECASE),
    re.compile(r"Boat_Tour_Island_.*_Map", re.IGNORECASE),
)


def pick_best_from_srcset(srcset: str | None) -> str:
    """Last (highest resolution) URL of a responsive candidate list."""
    urls = [part.strip().split()[0] for part in (srcset or "").split(",") if part.strip()]
    return urls[-1] if urls else ""


def image_url_from_tag(img_tag: str, origin: str = NOOKIPEDIA_BASE_URL) -> str:
    srcset = attr_value(img_tag, "srcset") or attr_value(img_tag, "data-srcset")
    if srcset:
        return abs_url(pick_best_from_srcset(srcset), origin)
    src = attr_value(img_tag, "src") or attr_value(img_tag, "data-src")
    return abs_url(src, origin) if src else ""


def classify_media(url: str, alt: str | None = None) -> MediaBucket:
    alt = alt or ""
    is_png = bool(_PNG_RE.search(url) or _PNG_RE.search(alt))
    is_jpeg = bool(_JPEG_RE.search(url) or _JPEG_RE.search(alt))

    if (is_png and _MAP_ALT_RE.search(alt)) or any(p.search(url) for p in _MAP_URL_RES):
        return MAPS
    if is_jpeg:
        return SCREENSHOTS
    if "map" in f"{alt} {url}".lower():
        return MAPS
    return SCREENSHOTS


def _unique_urls(urls: list[str]) -> list[str]:
    return list(dict.fromkeys(u.strip() for u in urls if u.strip()))


def parse_list_galleries(html: str | None, origin: str = NOOKIPEDIA_BASE_URL) -> Galleries:
    out: Galleries = {}
    for block in extract_balanced_blocks(html, "ul", has_class("gallery")):
        caption = one_line(_first_caption(block.html)) or "Gallery"
        urls = _unique_urls([image_url_from_tag(tag, origin) for tag in _IMG_RE.findall(block.html)])
        if urls:
            out.setdefault(caption, []).extend(MediaCandidate(url=u, caption=caption) for u in urls)
    return out


def _first_caption(ul_html: str) -> str | None:
    m = _GALLERY_CAPTION_RE.search(ul_html)
    return m.group(1) if m else None


def parse_thumb_galleries(html: str | None, origin: str = NOOKIPEDIA_BASE_URL) -> Galleries:
    buckets: dict[str, list[str]] = {MAPS: [], SCREENSHOTS: []}
    for block in extract_balanced_blocks(html, "div", has_class("thumb")):
        for tag in _IMG_RE.findall(block.html):
            url = image_url_from_tag(tag, origin)
            if url:
                buckets[classify_media(url, attr_value(tag, "alt"))].append(url)

    out: Galleries = {}
    for bucket, urls in buckets.items():
        unique = _unique_urls(urls)
        if unique:
            out[bucket] = [MediaCandidate(url=u) for u in unique]
    return out


def merge_galleries(*groups: Galleries) -> Galleries:
    """Merge galleries in order, dropping repeated (bucket, URL) pairs."""
    out: Galleries = {}
    seen: set[tuple[str, str]] = set()
    for group in groups:
        for name, candidates in group.items():
            bucket = name.strip() or "Gallery"
            for candidate in candidates:
                key = (bucket.lower(), candidate.url)
                if key in seen:
                    continue
                seen.add(key)
                out.setdefault(bucket, []).append(candidate)
    return out


def resolve_galleries(section_html: str | None, origin: str = NOOKIPEDIA_BASE_URL) -> Galleries:
    return merge_galleries(
        parse_list_galleries(section_html, origin),
        parse_thumb_galleries(section_html, origin),
    )
