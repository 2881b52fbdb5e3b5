"""Recursive, order-preserving clone of a styled node tree.

Each node goes through the same steps: filter gate, kind-specific shallow
clone, sequential child recursion, presentation decoration (resolved
style, pseudo content, form state) and resolution of ``<use>`` symbol
references. Sibling clones are produced strictly in source order.
"""

from __future__ import annotations

import logging
import math
import re
from typing import TYPE_CHECKING, Dict, List, Optional

from .dom import EMPTY_DATA_URL, Node, NodeKind
from .errors import AccessDenied
from .pseudos import clone_pseudo_elements
from .urls import get_mime_type, resolve_url

if TYPE_CHECKING:
    from .context import ConversionContext

LOGGER = logging.getLogger(__name__)

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
_SYMBOL_REFERENCE_ATTRIBUTES = ("xlink:href", "href")
_PX_LENGTH = re.compile(r"^\s*(-?\d*\.?\d+)px\s*$")


def create_image(data_url: str) -> Node:
    return Node.element("img", {"src": data_url, "crossorigin": "anonymous", "decoding": "async"})


# ---------------------------------------------------------------------------
# Kind-specific shallow clones
# ---------------------------------------------------------------------------


async def clone_canvas_element(canvas: Node) -> Node:
    data_url = canvas.to_data_url()
    if data_url == EMPTY_DATA_URL:
        return canvas.clone_shallow()
    return create_image(data_url)


async def clone_video_element(video: Node, context: "ConversionContext") -> Node:
    if video.current_src:
        return create_image(video.capture_frame())

    poster = video.get_attribute("poster")
    if not poster:
        return video.clone_shallow()
    poster_url = resolve_url(poster, document=video.owner_document)
    data_url = await context.resources.to_inline(
        poster_url, get_mime_type(poster), context.options
    )
    return create_image(data_url)


async def clone_iframe_element(iframe: Node, context: "ConversionContext") -> Node:
    try:
        document = iframe.content_document
        if document is not None and document.body is not None:
            cloned = await clone_node(document.body, context, is_root=True)
            if cloned is not None:
                return cloned
    except Exception as exc:
        LOGGER.error("Failed to clone iframe %s: %s", iframe.get_attribute("src") or "", exc)

    return iframe.clone_shallow()


async def clone_single_node(node: Node, context: "ConversionContext") -> Node:
    if node.kind is NodeKind.CANVAS:
        return await clone_canvas_element(node)
    if node.kind is NodeKind.MEDIA:
        return await clone_video_element(node, context)
    if node.kind is NodeKind.EMBED:
        return await clone_iframe_element(node, context)
    return node.clone_shallow()


# ---------------------------------------------------------------------------
# Children
# ---------------------------------------------------------------------------


def _source_children(node: Node, cloned: Node) -> List[Node]:
    if node.kind is NodeKind.SLOT and node.assigned_nodes:
        return list(node.assigned_nodes)

    if node.kind is NodeKind.EMBED:
        # An embed substituted by its body clone already carries the body's children.
        if cloned.kind is not NodeKind.EMBED:
            return []
        try:
            document = node.content_document
        except AccessDenied:
            document = None
        if document is not None and document.body is not None:
            return list(document.body.children)

    if node.shadow_root is not None:
        return list(node.shadow_root)
    return list(node.children)


async def clone_children(node: Node, cloned: Node, context: "ConversionContext") -> Node:
    children = _source_children(node, cloned)
    if not children or node.kind is NodeKind.MEDIA:
        return cloned

    for child in children:
        cloned_child = await clone_node(child, context)
        if cloned_child is not None:
            cloned.append_child(cloned_child)

    return cloned


# ---------------------------------------------------------------------------
# Decoration
# ---------------------------------------------------------------------------


def _reduce_font_size(value: str) -> str:
    match = _PX_LENGTH.match(value)
    if match is None:
        return value
    reduced = math.floor(float(match.group(1))) - 0.1
    return f"{round(reduced, 1)}px"


def clone_css_style(native: Node, cloned: Node) -> None:
    target = cloned.style
    source = native.get_computed_style()

    if source.serialized_text:
        target.css_text = source.serialized_text
        target.set_property("transform-origin", source.get_property_value("transform-origin"))
        return

    for name in source:
        value = source.get_property_value(name)
        if name == "font-size":
            value = _reduce_font_size(value)

        if native.kind is NodeKind.EMBED and name == "display" and value == "inline":
            value = "block"

        path_data = cloned.get_attribute("d")
        if name == "d" and path_data:
            value = f'path("{path_data}")'

        target.set_property(name, value, source.get_property_priority(name))


def clone_input_value(native: Node, cloned: Node) -> None:
    if native.value is None:
        return
    if native.tag_name == "textarea":
        cloned.children = []
        cloned.append_child(Node.text_node(native.value))
    elif native.tag_name == "input":
        cloned.set_attribute("value", native.value)


def clone_select_value(native: Node, cloned: Node) -> None:
    if native.tag_name != "select" or native.value is None:
        return
    for option in cloned.find_all("option"):
        if option.get_attribute("value") == native.value:
            option.set_attribute("selected", "")
            return


def decorate(native: Node, cloned: Node) -> Node:
    if not cloned.is_element:
        return cloned
    try:
        clone_css_style(native, cloned)
        clone_pseudo_elements(native, cloned)
        clone_input_value(native, cloned)
        clone_select_value(native, cloned)
    except Exception as exc:
        LOGGER.warning("Failed to decorate <%s> clone: %s", native.tag_name or native.kind.value, exc)
    return cloned


# ---------------------------------------------------------------------------
# Symbol references
# ---------------------------------------------------------------------------


def _symbol_reference(use: Node) -> Optional[str]:
    for attribute in _SYMBOL_REFERENCE_ATTRIBUTES:
        value = use.get_attribute(attribute)
        if value and value.startswith("#") and len(value) > 1:
            return value[1:]
    return None


def _hidden_symbol_container(definitions: List[Node]) -> Node:
    defs = Node.element("defs", children=definitions)
    return Node.element(
        "svg",
        {"xmlns": SVG_NAMESPACE},
        [defs],
        style="position: absolute; width: 0; height: 0; overflow: hidden; display: none;",
    )


async def ensure_svg_symbols(
    cloned: Node, native: Node, context: "ConversionContext"
) -> Node:
    uses = [node for node in cloned.iter_descendants() if node.tag_name == "use"]
    if not uses:
        return cloned

    document = native.owner_document
    processed: Dict[str, Node] = {}
    for use in uses:
        symbol_id = _symbol_reference(use)
        if not symbol_id or symbol_id in processed:
            continue
        if cloned.get_element_by_id(symbol_id) is not None:
            continue
        definition = document.get_element_by_id(symbol_id) if document is not None else None
        if definition is None:
            continue
        definition_clone = await clone_node(definition, context, is_root=True)
        if definition_clone is not None:
            processed[symbol_id] = definition_clone

    if processed:
        cloned.append_child(_hidden_symbol_container(list(processed.values())))
    return cloned


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def clone_node(
    node: Node, context: "ConversionContext", is_root: bool = False
) -> Optional[Node]:
    """Clone ``node`` and its subtree; ``None`` when the filter excludes it."""
    node_filter = context.options.filter
    if not is_root and node_filter is not None and not node_filter(node):
        return None

    cloned = await clone_single_node(node, context)
    cloned = await clone_children(node, cloned, context)
    cloned = decorate(node, cloned)
    return await ensure_svg_symbols(cloned, node, context)
