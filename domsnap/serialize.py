"""Serialize a self-contained clone into XHTML markup or an SVG document."""

from __future__ import annotations

from typing import Dict, List, Mapping
from urllib.parse import quote
from xml.sax.saxutils import escape, quoteattr

from .dom import Node, NodeKind

XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"
SVG_NAMESPACE = "http://www.w3.org/2000/svg"
XLINK_NAMESPACE = "http://www.w3.org/1999/xlink"
XLINK_DECLARATION = "xmlns:xlink"
SVG_DATA_URL_PREFIX = "data:image/svg+xml;charset=utf-8,"

VOID_ELEMENTS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "link", "meta", "param", "source", "track", "wbr",
    }
)

# Characters left unescaped by encodeURIComponent.
_URI_COMPONENT_SAFE = "!~*'()"


def _element_namespace(node: Node, inherited: str, parent_tag: str) -> str:
    declared = node.attributes.get("xmlns")
    if declared:
        return declared
    if node.tag_name == "svg":
        return SVG_NAMESPACE
    if parent_tag == "foreignObject":
        return XHTML_NAMESPACE
    return inherited


def _serialize_attributes(node: Node, declarations: Mapping[str, str]) -> str:
    attributes = dict(node.attributes)
    css_text = node.style.css_text
    if css_text:
        attributes["style"] = css_text
    else:
        attributes.pop("style", None)
    attributes = {**declarations, **attributes}
    return "".join(f" {name}={quoteattr(value)}" for name, value in attributes.items())


def _uses_xlink(node: Node) -> bool:
    return any(name.startswith("xlink:") for name in node.attributes)


def _subtree_uses_xlink(node: Node) -> bool:
    return any(_uses_xlink(descendant) for descendant in node.iter_tree() if descendant.is_element)


def _declarations(node: Node, namespace: str, inherited: str, xlink_declared: bool) -> Dict[str, str]:
    """Namespace declarations ``node`` must carry for the markup to be well-formed.

    The ``xlink`` prefix is declared once, at the element that switches
    namespace (usually ``<svg>``) or else at the first element using it.
    """
    declarations: Dict[str, str] = {}
    if namespace != inherited and "xmlns" not in node.attributes:
        declarations["xmlns"] = namespace
    if xlink_declared or XLINK_DECLARATION in node.attributes:
        return declarations
    if _uses_xlink(node) or (namespace != inherited and _subtree_uses_xlink(node)):
        declarations[XLINK_DECLARATION] = XLINK_NAMESPACE
    return declarations


def _serialize(
    node: Node,
    parts: List[str],
    inherited: str = "",
    parent_tag: str = "",
    xlink_declared: bool = False,
) -> None:
    if node.kind is NodeKind.TEXT:
        parts.append(escape(node.text))
        return
    if not node.is_element:
        return

    tag = node.tag_name or "div"
    namespace = _element_namespace(node, inherited or XHTML_NAMESPACE, parent_tag)
    declarations = _declarations(node, namespace, inherited, xlink_declared)
    parts.append(f"<{tag}{_serialize_attributes(node, declarations)}")
    if not node.children and (tag in VOID_ELEMENTS or namespace == SVG_NAMESPACE):
        parts.append(" />")
        return

    xlink_declared = (
        xlink_declared or XLINK_DECLARATION in declarations or XLINK_DECLARATION in node.attributes
    )
    parts.append(">")
    for child in node.children:
        _serialize(child, parts, namespace, tag, xlink_declared)
    parts.append(f"</{tag}>")


def to_markup(node: Node) -> str:
    """XHTML serialization of ``node``.

    The root declares its namespace, ``<svg>`` subtrees switch to the SVG
    namespace and ``xlink:`` attributes get their prefix declared.
    """
    parts: List[str] = []
    _serialize(node, parts)
    return "".join(parts)


def to_svg(node: Node, width: float, height: float) -> str:
    """Wrap the markup of ``node`` in an SVG ``foreignObject`` of the given size."""
    return (
        f'<svg xmlns="{SVG_NAMESPACE}" width="{_format_length(width)}" '
        f'height="{_format_length(height)}" viewBox="0 0 {_format_length(width)} '
        f'{_format_length(height)}">'
        '<foreignObject width="100%" height="100%" x="0" y="0" '
        'externalResourcesRequired="true">'
        f"{to_markup(node)}"
        "</foreignObject></svg>"
    )


def svg_to_data_url(svg: str) -> str:
    return SVG_DATA_URL_PREFIX + quote(svg, safe=_URI_COMPONENT_SAFE)


def _format_length(value: float) -> str:
    return f"{value:g}"
