"""Clone, inline and style a node tree into a self-contained snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .clone import clone_node
from .context import ConversionContext
from .dom import Node
from .errors import SnapshotError
from .images import embed_images
from .options import ConvertOptions
from .serialize import svg_to_data_url, to_markup, to_svg
from .webfonts import embed_web_fonts

LOGGER = logging.getLogger(__name__)


def _px(node: Node, style_property: str) -> float:
    value = node.get_computed_style().get_property_value(style_property)
    try:
        return float(value.replace("px", "")) if value else 0.0
    except ValueError:
        return 0.0


def get_node_width(node: Node) -> float:
    return node.client_width + _px(node, "border-left-width") + _px(node, "border-right-width")


def get_node_height(node: Node) -> float:
    return node.client_height + _px(node, "border-top-width") + _px(node, "border-bottom-width")


def get_image_size(node: Node, options: Optional[ConvertOptions] = None) -> Tuple[float, float]:
    """Explicit size from ``options``, else the border box of ``node``."""
    options = options or ConvertOptions()
    width = options.width or get_node_width(node)
    height = options.height or get_node_height(node)
    return width, height


def _format_px(value: float) -> str:
    return f"{value:g}px"


def apply_style(node: Node, options: ConvertOptions) -> Node:
    style = node.style

    if options.background_color:
        style.set_property("background-color", options.background_color)
    if options.width:
        style.set_property("width", _format_px(options.width))
    if options.height:
        style.set_property("height", _format_px(options.height))

    for name, value in options.style.items():
        style.set_property(name, value)

    return node


@dataclass
class Snapshot:
    """A self-contained clone plus the size it should be rendered at."""

    node: Node
    width: float
    height: float

    def to_markup(self) -> str:
        return to_markup(self.node)

    def to_svg(self) -> str:
        return to_svg(self.node, self.width, self.height)

    def to_svg_data_url(self) -> str:
        return svg_to_data_url(self.to_svg())


async def convert(
    node: Node,
    options: Optional[ConvertOptions] = None,
    context: Optional[ConversionContext] = None,
) -> Snapshot:
    """Run the full pipeline on ``node``.

    ``context`` defaults to one sharing the process-wide caches; when both
    are given, ``options`` replaces the options of ``context``.

    Raises:
        NotInDocument: If fonts must be discovered and ``node`` has no
            owning document.
        SnapshotError: If the root clone comes back empty.
    """
    if context is None:
        context = ConversionContext(options=options or ConvertOptions())
    elif options is not None:
        context.options = options
    options = context.options
    if context.base_url is None and node.owner_document is not None:
        context.base_url = node.owner_document.location or None

    width, height = get_image_size(node, options)
    LOGGER.debug("Converting <%s> at %gx%g", node.tag_name, width, height)

    async with context.session():
        cloned = await clone_node(node, context, is_root=True)
        if cloned is None:
            raise SnapshotError(f"Could not clone <{node.tag_name}>")
        await embed_web_fonts(cloned, node, context)
        await embed_images(cloned, context)
    apply_style(cloned, options)

    return Snapshot(node=cloned, width=width, height=height)
