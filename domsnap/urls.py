"""URL resolution and MIME type helpers."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Dict, Optional
from urllib.parse import urljoin, urlsplit

if TYPE_CHECKING:
    from .dom import Document

_ABSOLUTE_URL = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_PROTOCOL_RELATIVE = re.compile(r"^//")
_OTHER_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*:", re.IGNORECASE)
_EXTENSION = re.compile(r"\.([^./]*?)$")

_WOFF = "application/font-woff"
_JPEG = "image/jpeg"

MIME_TYPES: Dict[str, str] = {
    "woff": _WOFF,
    "woff2": _WOFF,
    "ttf": "application/font-truetype",
    "eot": "application/vnd.ms-fontobject",
    "png": "image/png",
    "jpg": _JPEG,
    "jpeg": _JPEG,
    "gif": "image/gif",
    "tiff": "image/tiff",
    "svg": "image/svg+xml",
    "webp": "image/webp",
}


def resolve_url(
    url: str,
    base_url: Optional[str] = None,
    document: Optional["Document"] = None,
) -> str:
    """Resolve ``url`` against ``base_url`` or the document location.

    Absolute URLs and non-hierarchical schemes (``data:``, ``mailto:``,
    ``tel:``) are returned unchanged. Protocol-relative URLs borrow the
    document protocol, defaulting to ``https:``.
    """
    if _ABSOLUTE_URL.match(url):
        return url

    if _PROTOCOL_RELATIVE.match(url):
        protocol = document.protocol if document is not None else ""
        return (protocol or "https:") + url

    if _OTHER_SCHEME.match(url):
        return url

    base = base_url or (document.location if document is not None else "")
    if not base:
        return url
    try:
        return urljoin(base, url)
    except ValueError:
        return url


def is_data_url(url: str) -> bool:
    return url.startswith("data:")


def get_extension(url: str) -> str:
    """Return the file extension of the URL path, without query or fragment."""
    if is_data_url(url):
        return ""
    try:
        path = urlsplit(url).path
    except ValueError:
        path = url.split("?", 1)[0].split("#", 1)[0]
    match = _EXTENSION.search(path)
    return match.group(1) if match else ""


def get_mime_type(url: str) -> str:
    return MIME_TYPES.get(get_extension(url).lower(), "")
