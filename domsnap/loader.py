"""Build a :class:`~domsnap.dom.Document` from static HTML.

There is no style engine here: inline ``style`` attributes stand in for the
resolved style of each element, ``<style>`` blocks become readable sheets
and ``<link rel="stylesheet">`` become remote sheets whose rules cannot be
listed, the same way a browser treats a cross-origin sheet.
SVG element and attribute names keep their camelCase spelling.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

from .dom import Document, Node, StyleSheet
from .urls import resolve_url

LOGGER = logging.getLogger(__name__)

PARSER = "html.parser"
SKIPPED_TAGS = frozenset({"script", "noscript", "template"})
_NON_TEXT_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)

# SVG attribute names the HTML parser folds to lowercase.
SVG_ATTRIBUTE_NAMES: Dict[str, str] = {
    name.lower(): name
    for name in (
        "attributeName", "attributeType", "baseFrequency", "baseProfile", "calcMode",
        "clipPathUnits", "diffuseConstant", "edgeMode", "filterUnits", "glyphRef",
        "gradientTransform", "gradientUnits", "kernelMatrix", "kernelUnitLength",
        "keyPoints", "keySplines", "keyTimes", "lengthAdjust", "limitingConeAngle",
        "markerHeight", "markerUnits", "markerWidth", "maskContentUnits", "maskUnits",
        "numOctaves", "pathLength", "patternContentUnits", "patternTransform",
        "patternUnits", "pointsAtX", "pointsAtY", "pointsAtZ", "preserveAlpha",
        "preserveAspectRatio", "primitiveUnits", "refX", "refY", "repeatCount",
        "repeatDur", "requiredExtensions", "requiredFeatures", "specularConstant",
        "specularExponent", "spreadMethod", "startOffset", "stdDeviation",
        "stitchTiles", "surfaceScale", "systemLanguage", "tableValues", "targetX",
        "targetY", "textLength", "viewBox", "viewTarget", "xChannelSelector",
        "yChannelSelector", "zoomAndPan",
    )
}


def _attributes(tag: Tag, in_svg: bool = False) -> Dict[str, str]:
    attributes: Dict[str, str] = {}
    for name, value in tag.attrs.items():
        if in_svg:
            name = SVG_ATTRIBUTE_NAMES.get(name, name)
        attributes[name] = " ".join(value) if isinstance(value, list) else str(value)
    return attributes


def _px_length(value: str) -> float:
    value = value.strip()
    if not value.endswith("px"):
        return 0.0
    try:
        return float(value[:-2])
    except ValueError:
        return 0.0


def _selected_value(tag: Tag) -> Optional[str]:
    options = tag.find_all("option")
    if not options:
        return None
    chosen = next((option for option in options if option.has_attr("selected")), options[0])
    value = chosen.get("value")
    return str(value) if value is not None else chosen.get_text()


def _convert_tag(tag: Tag, base_url: str, in_svg: bool = False) -> Node:
    in_svg = in_svg or tag.name == "svg"
    # foreignObject content is HTML again.
    children_in_svg = in_svg and tag.name != "foreignobject"
    children: List[Node] = []
    for child in tag.children:
        converted = _convert(child, base_url, children_in_svg)
        if converted is not None:
            children.append(converted)

    node = Node.element(tag.name, _attributes(tag, in_svg), children)
    node.client_width = _px_length(node.style.get_property_value("width"))
    node.client_height = _px_length(node.style.get_property_value("height"))

    if tag.name == "input":
        value = tag.get("value")
        node.value = str(value) if value is not None else None
    elif tag.name == "textarea":
        node.value = tag.get_text()
    elif tag.name == "select":
        node.value = _selected_value(tag)
    elif tag.name == "iframe":
        srcdoc = tag.get("srcdoc")
        if srcdoc:
            node.embedded_document = load_html(str(srcdoc), base_url)
        elif tag.get("src"):
            node.cross_origin = True
    return node


def _convert(element, base_url: str, in_svg: bool = False) -> Optional[Node]:
    if isinstance(element, _NON_TEXT_STRINGS):
        return None
    if isinstance(element, NavigableString):
        return Node.text_node(str(element))
    if isinstance(element, Tag) and element.name not in SKIPPED_TAGS:
        return _convert_tag(element, base_url, in_svg)
    return None


def _collect_style_sheets(soup: BeautifulSoup, base_url: str) -> List[StyleSheet]:
    sheets: List[StyleSheet] = []
    for tag in soup.find_all(["style", "link"]):
        if tag.name == "style":
            sheets.append(StyleSheet.from_text(tag.get_text()))
            continue
        rel = tag.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        href = tag.get("href")
        if "stylesheet" in [value.lower() for value in rel] and href:
            sheets.append(StyleSheet(href=resolve_url(str(href), base_url), readable=False))
    return sheets


def load_html(html: str, base_url: str = "") -> Document:
    """Parse ``html`` into a document located at ``base_url``."""
    soup = BeautifulSoup(html, PARSER)
    base_tag = soup.find("base", href=True)
    if base_tag is not None:
        base_url = resolve_url(str(base_tag["href"]), base_url)

    body_tag = soup.body
    if body_tag is not None:
        body = _convert_tag(body_tag, base_url)
    else:
        children = [node for node in (_convert(child, base_url) for child in soup.contents) if node]
        body = Node.element("body", children=children)

    sheets = _collect_style_sheets(soup, base_url)
    LOGGER.debug("Loaded document %s with %d style sheets", base_url or "<inline>", len(sheets))
    return Document(location=base_url, body=body, style_sheets=sheets)


def load_html_file(path: Union[str, Path], base_url: Optional[str] = None) -> Document:
    """Load an HTML file; relative references resolve against the file itself."""
    file_path = Path(path)
    html = file_path.read_text(encoding="utf-8")
    return load_html(html, base_url or file_path.resolve().as_uri())
