"""Conversion options and their environment-variable defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

if TYPE_CHECKING:
    from .dom import Node

LOGGER = logging.getLogger(__name__)

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass
class ConvertOptions:
    """Options recognised by the snapshot pipeline.

    Attributes:
        filter: Predicate called for every non-root node; returning False
            excludes the node and its subtree from the clone.
        background_color: Background color applied to the cloned root.
        width: Explicit output width in pixels (also applied to the root).
        height: Explicit output height in pixels (also applied to the root).
        style: Literal style overrides applied to the cloned root.
        font_embed_css: Pre-composed font CSS; bypasses font discovery.
        skip_fonts: Skip font embedding entirely.
        preferred_font_format: Keep only this ``format(...)`` alternative in
            font-face ``src`` lists (for example ``"woff2"``).
        include_query_params: Let query strings participate in cache keys.
        cache_bust: Append a timestamp query parameter to every fetch.
        fetch_request_init: Extra keyword arguments for each HTTP request
            (``headers``, ``cookies``, ``timeout`` ...).
        image_placeholder: Inline encoding used for resources that fail to load.
    """

    filter: Optional[Callable[["Node"], bool]] = None
    background_color: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None
    style: Dict[str, str] = field(default_factory=dict)
    font_embed_css: Optional[str] = None
    skip_fonts: bool = False
    preferred_font_format: Optional[str] = None
    include_query_params: bool = False
    cache_bust: bool = False
    fetch_request_init: Dict[str, Any] = field(default_factory=dict)
    image_placeholder: Optional[str] = None


def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip().lower() in _TRUE_VALUES


def load_options_from_env(base: Optional[ConvertOptions] = None) -> ConvertOptions:
    """Overlay ``DOMSNAP_*`` environment variables onto ``base``.

    Supported variables:
        DOMSNAP_SKIP_FONTS: Skip font embedding (``1``/``true``/``yes``).
        DOMSNAP_PREFERRED_FONT_FORMAT: Preferred font format, e.g. ``woff2``.
        DOMSNAP_INCLUDE_QUERY_PARAMS: Query strings participate in cache keys.
        DOMSNAP_CACHE_BUST: Append a timestamp to every fetched URL.
        DOMSNAP_IMAGE_PLACEHOLDER: Data URL used for unavailable resources.
        DOMSNAP_BACKGROUND_COLOR: Background color of the cloned root.
        DOMSNAP_FETCH_TIMEOUT: Per-request timeout in seconds.
    """
    options = base or ConvertOptions()

    skip_fonts = _env_flag("DOMSNAP_SKIP_FONTS")
    if skip_fonts is not None:
        options.skip_fonts = skip_fonts

    include_query_params = _env_flag("DOMSNAP_INCLUDE_QUERY_PARAMS")
    if include_query_params is not None:
        options.include_query_params = include_query_params

    cache_bust = _env_flag("DOMSNAP_CACHE_BUST")
    if cache_bust is not None:
        options.cache_bust = cache_bust

    preferred = os.environ.get("DOMSNAP_PREFERRED_FONT_FORMAT")
    if preferred:
        options.preferred_font_format = preferred.strip()

    placeholder = os.environ.get("DOMSNAP_IMAGE_PLACEHOLDER")
    if placeholder:
        options.image_placeholder = placeholder.strip()

    background = os.environ.get("DOMSNAP_BACKGROUND_COLOR")
    if background:
        options.background_color = background.strip()

    timeout = os.environ.get("DOMSNAP_FETCH_TIMEOUT")
    if timeout:
        try:
            options.fetch_request_init["timeout"] = float(timeout)
        except ValueError:
            LOGGER.warning("Ignoring invalid DOMSNAP_FETCH_TIMEOUT=%r", timeout)

    return options
