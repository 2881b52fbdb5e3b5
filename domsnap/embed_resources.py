"""Rewrite ``url(...)`` references in CSS text into inline data URLs."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, List, Optional

from .urls import get_mime_type, is_data_url, resolve_url

if TYPE_CHECKING:
    from .context import ConversionContext

LOGGER = logging.getLogger(__name__)

URL_REGEX = re.compile(r"url\((['\"]?)([^'\"]+?)\1\)")
URL_WITH_FORMAT_REGEX = re.compile(r"url\([^)]+\)\s*format\(([\"']?)([^\"']+)\1\)")
FONT_SRC_REGEX = re.compile(r"src:\s*(?:url\([^)]+\)\s*format\([^)]+\)[,;]\s*)+")


def _to_regex(url: str) -> "re.Pattern[str]":
    return re.compile(r"(url\(['\"]?)(" + re.escape(url) + r")(['\"]?\))")


def should_embed(css_text: str) -> bool:
    return URL_REGEX.search(css_text) is not None


def parse_urls(css_text: str) -> List[str]:
    """``url(...)`` payloads that still need fetching, in first-seen order."""
    urls: List[str] = []
    for match in URL_REGEX.finditer(css_text):
        url = match.group(2)
        if is_data_url(url) or url in urls:
            continue
        urls.append(url)
    return urls


def filter_preferred_font_format(css_text: str, preferred_font_format: Optional[str]) -> str:
    """Keep only the preferred ``format(...)`` alternative of each ``src:`` list.

    A ``src:`` list without the preferred format is dropped.
    """
    if not preferred_font_format:
        return css_text

    def _pick(match: "re.Match[str]") -> str:
        for candidate in URL_WITH_FORMAT_REGEX.finditer(match.group(0)):
            if candidate.group(2) == preferred_font_format:
                return f"src: {candidate.group(0)};"
        return ""

    return FONT_SRC_REGEX.sub(_pick, css_text)


async def embed(
    css_text: str,
    resource_url: str,
    base_url: Optional[str],
    context: "ConversionContext",
) -> str:
    """Replace every ``url(resource_url)`` in ``css_text`` with its data URL."""
    try:
        resolved_url = resolve_url(resource_url, base_url or context.base_url)
        content_type = get_mime_type(resource_url)
        data_url = await context.resources.to_inline(resolved_url, content_type, context.options)
        return _to_regex(resource_url).sub(
            lambda match: f"{match.group(1)}{data_url}{match.group(3)}", css_text
        )
    except Exception as exc:
        LOGGER.warning("Failed to embed %s: %s", resource_url, exc)
    return css_text


async def embed_resources(
    css_text: str,
    base_url: Optional[str],
    context: "ConversionContext",
) -> str:
    """Inline every resource referenced from ``css_text``.

    Replacements run one after another; each step rewrites the text the
    next one scans.
    """
    if not should_embed(css_text):
        return css_text

    filtered = filter_preferred_font_format(css_text, context.options.preferred_font_format)
    result = filtered
    for url in parse_urls(filtered):
        result = await embed(result, url, base_url, context)
    return result
