"""URL normalization and slug derivation for PalDB and Nookipedia links."""

import re
from urllib.parse import unquote

PALDB_BASE_URL = "https://paldb.cc"
PALDB_CDN_URL = "https://cdn.paldb.cc"
NOOKIPEDIA_BASE_URL = "https://nookipedia.com"

_CDN_PREFIXES = ("image/", "cache/", "img/")
_ORIGIN_RE = re.compile(r"^[a-z][a-z0-9+.-]*://[^/]+", re.IGNORECASE)
_LOCALE_RE = re.compile(r"^/?en/", re.IGNORECASE)


def abs_url(path_or_url: str | None, origin: str, cdn_origin: str | None = None) -> str:
    s = (path_or_url or "").strip()
    if not s:
        return ""
    if s.startswith(("http://", "https://")):
        return s
    if s.startswith("//"):
        return f"https:{s}"

    relative = s.lstrip("/")
    if cdn_origin and relative.startswith(_CDN_PREFIXES):
        return f"{cdn_origin}/{relative}"
    return f"{origin}/{relative}"


def paldb_url(path_or_url: str | None) -> str:
    return abs_url(path_or_url, PALDB_BASE_URL, PALDB_CDN_URL)


def nookipedia_url(path_or_url: str | None) -> str:
    return abs_url(path_or_url, NOOKIPEDIA_BASE_URL)


def _strip_query_and_fragment(href: str) -> str:
    return re.split(r"[?#]", href, maxsplit=1)[0]


def _safe_unquote(value: str) -> str:
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value


def href_to_path_key(href: str | None) -> str | None:
    raw = (href or "").strip()
    if not raw:
        return None
    path = _strip_query_and_fragment(_ORIGIN_RE.sub("", raw))
    path = _LOCALE_RE.sub("", path).strip("/")
    return _safe_unquote(path) or None


def href_to_slug(href: str | None) -> str | None:
    key = href_to_path_key(href)
    if not key:
        return None
    segments = [seg for seg in key.split("/") if seg]
    return segments[-1] if segments else None


def normalize_detail_href(slug_or_href: str | None) -> str | None:
    raw = (slug_or_href or "").strip()
    if not raw:
        return None
    if re.match(r"^https?://", raw, re.IGNORECASE):
        return raw
    if raw.startswith("/en/"):
        return paldb_url(raw)
    if not raw.startswith("/"):
        return paldb_url(f"/en/{raw}")
    return paldb_url(f"/en{raw}")
