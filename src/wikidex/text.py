"""
Text normalization for scraped wiki markup.

Every helper here is total: malformed or empty input yields an empty string
(or None for the optional-returning helpers), never an exception.
"""

import re
from html.entities import html5

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[\s\S]*?</\1\s*>", re.IGNORECASE)
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_BLOCK_CLOSE_RE = re.compile(
    r"</(?:p|div|section|article|header|footer|li|ul|ol|h[1-6]|table|tr|td|th|thead|tbody)\s*>",
    re.IGNORECASE,
)
_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")
_DIGITS_RE = re.compile(r"[0-9][0-9,]*")
_ENTITY_RE = re.compile(r"&(#[0-9]+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);")


def _decode_entity(m: re.Match[str]) -> str:
    ref = m.group(1)
    if ref[0] != "#":
        return html5.get(f"{ref};", m.group(0))
    code = int(ref[2:], 16) if ref[1] in "xX" else int(ref[1:])
    if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
        return m.group(0)
    return chr(code)


def decode_entities(text: str | None) -> str:
    """Resolve named and numeric entities; unknown ones are left as written."""
    if not text:
        return ""
    return _ENTITY_RE.sub(_decode_entity, text).replace("\xa0", " ")


def clean_key(text: str | None) -> str:
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip()


def strip_tags(markup: str | None) -> str:
    """
    Convert an HTML fragment to readable plain text.

    Line-breaking tags become newlines before the remaining tags are removed;
    each line is then whitespace-collapsed and empty lines are dropped.
    """
    if not markup:
        return ""
    text = _SCRIPT_STYLE_RE.sub("\n", markup)
    text = _BR_RE.sub("\n", text)
    text = _BLOCK_CLOSE_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    text = decode_entities(text).replace("\r", "")
    lines = (clean_key(line) for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def one_line(markup: str | None) -> str | None:
    text = clean_key(strip_tags(markup))
    return text or None


def first_match(text: str | None, pattern: str | re.Pattern[str], flags: int = 0) -> str | None:
    if not text:
        return None
    compiled = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, flags)
    m = compiled.search(text)
    if not m:
        return None
    value = m.group(1) if compiled.groups and m.group(1) is not None else m.group(0)
    value = value.strip()
    return value or None


def last_int(text: str | None) -> int | None:
    nums = re.findall(r"\d+", text or "")
    return int(nums[-1]) if nums else None


def max_number(text: str | None) -> int | None:
    values = [int(raw.replace(",", "")) for raw in _DIGITS_RE.findall(text or "")]
    return max(values) if values else None


def slugify(text: str | None) -> str:
    t = (text or "").strip().lower()
    if not t:
        return "unknown"
    t = t.replace("&", "and")
    t = re.sub(r"['’]", "", t)
    t = re.sub(r"[^a-z0-9]+", "-", t).strip("-")
    return t or "unknown"


def humanize_slug(slug: str | None) -> str | None:
    name = clean_key(re.sub(r"[/_]+", " ", slug or ""))
    return name or None


def normalize_range_text(text: str | None) -> str | None:
    t = clean_key((text or "").replace("-", "–"))
    return t or None
