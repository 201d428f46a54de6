"""
Result normalizer: turns any provider output into a GenerationResult.

Provider outputs come in several shapes. Each item is classified into a
tagged OutputShape and resolved by a dedicated handler:

- accessor: an SDK file handle whose ``url`` is a method
- location_field: an object or dict with a url/uri/videoUri field
- inline_bytes: base64 image data (Imagen predictions)
- plain: a bare location string
"""

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from core.exceptions import ExtractionError

from .providers.base import GenerationResult, MediaType, payload_excerpt

logger = logging.getLogger(__name__)


class OutputShape(StrEnum):
    ACCESSOR = "accessor"
    LOCATION_FIELD = "location_field"
    INLINE_BYTES = "inline_bytes"
    PLAIN = "plain"


LOCATION_FIELDS = ("url", "uri", "videoUri")
INLINE_FIELDS = ("bytesBase64Encoded", "b64_json")
DEFAULT_INLINE_MIME = "image/png"


def _get(item: Any, key: str) -> Any:
    if isinstance(item, dict):
        return item.get(key)
    return getattr(item, key, None)


def classify_item(item: Any) -> OutputShape:
    """Decide which shape a single output item has."""
    if isinstance(item, str):
        return OutputShape.PLAIN
    if callable(getattr(item, "url", None)):
        return OutputShape.ACCESSOR
    if any(_get(item, key) for key in INLINE_FIELDS):
        return OutputShape.INLINE_BYTES
    if any(_get(item, key) for key in LOCATION_FIELDS):
        return OutputShape.LOCATION_FIELD
    return OutputShape.PLAIN


def _from_accessor(item: Any) -> str:
    value = item.url()
    # Some SDK versions hand back a parsed URL object
    href = getattr(value, "href", None)
    return str(href if href is not None else value)


def _from_location_field(item: Any) -> str:
    for key in LOCATION_FIELDS:
        value = _get(item, key)
        if value:
            return str(value)
    return ""


def _from_inline_bytes(item: Any) -> str:
    data = next(_get(item, key) for key in INLINE_FIELDS if _get(item, key))
    mime_type = _get(item, "mimeType") or DEFAULT_INLINE_MIME
    return f"data:{mime_type};base64,{data}"


def _from_plain(item: Any) -> str:
    if item is None:
        return ""
    return str(item)


_HANDLERS: dict[OutputShape, Callable[[Any], str]] = {
    OutputShape.ACCESSOR: _from_accessor,
    OutputShape.LOCATION_FIELD: _from_location_field,
    OutputShape.INLINE_BYTES: _from_inline_bytes,
    OutputShape.PLAIN: _from_plain,
}


def resolve_item(item: Any) -> str:
    """Resolve one output item to a location string (may be empty)."""
    return _HANDLERS[classify_item(item)](item).strip()


def _items(raw: Any) -> list[Any]:
    if isinstance(raw, dict) and isinstance(raw.get("predictions"), list):
        return raw["predictions"]
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return [raw]


def normalize(raw: Any, kind: MediaType) -> GenerationResult:
    """
    Convert a raw provider response into a GenerationResult.

    Order of items is preserved. If any item resolves to an empty location
    the whole response is rejected; partial batches are never returned.

    Raises:
        ExtractionError: If the response is empty or an item has no location.
    """
    items = _items(raw)
    if not items:
        raise ExtractionError(message="Provider returned no results", excerpt=payload_excerpt(raw))

    urls = []
    for index, item in enumerate(items):
        url = resolve_item(item)
        if not url:
            logger.warning(f"[Normalizer] Item {index} of {len(items)} has no location")
            raise ExtractionError(
                message=f"Result item {index} has no location",
                excerpt=payload_excerpt(item),
            )
        urls.append(url)

    return GenerationResult.from_urls(urls, kind)
