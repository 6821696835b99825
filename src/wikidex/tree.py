"""Decode the ingredient dependency tree PalDB embeds in a ``data-treant`` attribute."""

import json
import logging
import math
import re
from typing import Any

from wikidex.exceptions import MalformedInputError
from wikidex.models import TreeNode
from wikidex.text import decode_entities, humanize_slug
from wikidex.urls import href_to_path_key, paldb_url

log = logging.getLogger(__name__)

_TREANT_RES = (
    re.compile(r'\bdata-treant="([\s\S]*?)"', re.IGNORECASE),
    re.compile(r"\bdata-treant='([\s\S]*?)'", re.IGNORECASE),
)


def _find_treant_attr(page_html: str) -> str | None:
    for pattern in _TREANT_RES:
        m = pattern.search(page_html)
        if m:
            return m.group(1)
    return None


def _as_quantity(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        qty = float(value)
    except (TypeError, ValueError):
        return None
    return qty if math.isfinite(qty) else None


def load_treant_payload(raw: str) -> dict[str, Any]:
    """
    Decode an entity-escaped ``data-treant`` value into its root object.

    Raises:
        MalformedInputError: If the value is blank, not JSON, or not an object.
    """
    payload = decode_entities(raw).strip()
    if not payload:
        raise MalformedInputError("empty payload")
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedInputError(f"expected an object, got {type(data).__name__}")
    return data


def _walk(node: Any) -> TreeNode:
    if not isinstance(node, dict):
        return TreeNode()

    link = node.get("link") if isinstance(node.get("link"), dict) else {}
    href = link.get("href") or link.get("url")
    text = node.get("text") if isinstance(node.get("text"), dict) else {}
    image = node.get("image")
    children = node.get("children")

    slug = href_to_path_key(str(href)) if href else None
    return TreeNode(
        slug=slug,
        name=humanize_slug(slug),
        icon_url=paldb_url(str(image)) if image else None,
        quantity=_as_quantity(text.get("name")),
        children=[_walk(child) for child in children] if isinstance(children, list) else [],
    )


def parse_dependency_tree(page_html: str | None) -> TreeNode | None:
    """
    Rebuild the dependency tree from its serialized attribute.

    The payload is generic nested JSON: each node may carry ``link.href`` (or
    ``link.url``), ``image``, ``text.name`` holding its multiplier, and
    ``children``. A missing attribute or undecodable payload yields None.
    """
    raw = _find_treant_attr(page_html or "")
    if raw is None:
        return None
    try:
        return _walk(load_treant_payload(raw))
    except MalformedInputError as e:
        log.debug("Ignoring data-treant attribute: %s", e)
        return None
