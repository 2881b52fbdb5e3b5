"""Self-contained snapshots of styled node trees.

This module provides a clean API for turning a live, styled node tree into
markup that renders on its own: resolved styles are copied onto a clone and
every image, font and imported style sheet is inlined as a ``data:`` URL.
It supports:

- Cloning with canvas, video, iframe, slot and shadow root handling
- Web font discovery through ``@import`` chains and cross-origin sheets
- Image and background inlining with a shared fetch cache
- XHTML and SVG (``foreignObject``) output

Example usage:

    from domsnap import ConvertOptions, convert_async, get_font_embed_css_async, to_svg_async
    from domsnap.loader import load_html_file

    document = load_html_file("page.html")

    # Self-contained clone
    snapshot = await convert_async(document.body)
    print(snapshot.to_markup())

    # SVG data URL, ready for an <img> or a rasterizer
    data_url = await to_svg_async(document.body, ConvertOptions(skip_fonts=True))

    # Font CSS computed once, reused across conversions
    font_css = await get_font_embed_css_async(document.body)
    options = ConvertOptions(font_embed_css=font_css)
"""

from __future__ import annotations

import asyncio
from typing import Optional

from .context import ConversionContext
from .dataurl import ResourceCache, ResourceFetcher, default_resource_cache
from .dom import ComputedStyle, Document, Node, NodeKind, StyleDeclaration, StyleSheet
from .errors import AccessDenied, FetchNotFound, MalformedFragment, NotInDocument, SnapshotError
from .options import ConvertOptions, load_options_from_env
from .pipeline import Snapshot, convert as _convert
from .webfonts import StyleSheetCache, default_style_sheet_cache, get_web_font_css

__all__ = [
    # Tree model
    "Node",
    "NodeKind",
    "Document",
    "StyleSheet",
    "StyleDeclaration",
    "ComputedStyle",
    # Options and state
    "ConvertOptions",
    "ConversionContext",
    "load_options_from_env",
    "ResourceCache",
    "ResourceFetcher",
    "StyleSheetCache",
    # Errors
    "SnapshotError",
    "FetchNotFound",
    "NotInDocument",
    "AccessDenied",
    "MalformedFragment",
    # Conversion
    "Snapshot",
    "convert",
    "convert_async",
    "to_markup_async",
    "to_svg",
    "to_svg_async",
    # Fonts
    "get_font_embed_css",
    "get_font_embed_css_async",
    # Caches
    "clear_caches",
]


async def convert_async(
    node: Node,
    options: Optional[ConvertOptions] = None,
    *,
    context: Optional[ConversionContext] = None,
) -> Snapshot:
    """
    Clone ``node`` into a self-contained snapshot.

    Args:
        node: Root of the subtree to snapshot.
        options: Conversion options; defaults to ``ConvertOptions()``.
        context: Optional context carrying private caches.

    Returns:
        Snapshot with the inlined clone and its width and height.

    Raises:
        NotInDocument: If fonts must be discovered and ``node`` has no
            owning document.
    """
    return await _convert(node, options, context)


def convert(
    node: Node,
    options: Optional[ConvertOptions] = None,
    *,
    context: Optional[ConversionContext] = None,
) -> Snapshot:
    """Synchronous wrapper for convert_async."""
    return asyncio.run(convert_async(node, options, context=context))


async def to_markup_async(
    node: Node,
    options: Optional[ConvertOptions] = None,
    *,
    context: Optional[ConversionContext] = None,
) -> str:
    snapshot = await convert_async(node, options, context=context)
    return snapshot.to_markup()


async def to_svg_async(
    node: Node,
    options: Optional[ConvertOptions] = None,
    *,
    context: Optional[ConversionContext] = None,
) -> str:
    """Snapshot ``node`` as a ``data:image/svg+xml`` URL."""
    snapshot = await convert_async(node, options, context=context)
    return snapshot.to_svg_data_url()


def to_svg(
    node: Node,
    options: Optional[ConvertOptions] = None,
    *,
    context: Optional[ConversionContext] = None,
) -> str:
    """Synchronous wrapper for to_svg_async."""
    return asyncio.run(to_svg_async(node, options, context=context))


async def get_font_embed_css_async(
    node: Node,
    options: Optional[ConvertOptions] = None,
    *,
    context: Optional[ConversionContext] = None,
) -> str:
    """
    Compute the aggregate font CSS of the document owning ``node``.

    The result can be passed back as ``ConvertOptions.font_embed_css`` to
    skip font discovery in later conversions of the same document.
    """
    if context is None:
        context = ConversionContext(options=options or ConvertOptions())
    elif options is not None:
        context.options = options
    if context.base_url is None and node.owner_document is not None:
        context.base_url = node.owner_document.location or None
    async with context.session():
        return await get_web_font_css(node, context)


def get_font_embed_css(
    node: Node,
    options: Optional[ConvertOptions] = None,
    *,
    context: Optional[ConversionContext] = None,
) -> str:
    """Synchronous wrapper for get_font_embed_css_async."""
    return asyncio.run(get_font_embed_css_async(node, options, context=context))


def clear_caches() -> None:
    """Empty the process-wide resource and style sheet caches."""
    default_resource_cache().clear()
    default_style_sheet_cache().clear()
