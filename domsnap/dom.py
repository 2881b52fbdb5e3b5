"""In-process model of a live, styled node tree.

The snapshot pipeline reads a tree through this model and produces a fresh
tree of the same types. Hosts that sit on top of a real style engine build
:class:`Node` trees directly or subclass :class:`Node` and override the
capability hooks:

- :meth:`Node.get_computed_style` resolves the cascaded style of a node,
  optionally for a pseudo position (``":before"`` / ``":after"``);
- :meth:`Node.to_data_url` snapshots a drawable surface;
- :meth:`Node.capture_frame` snapshots the current frame of a media node;
- :attr:`Node.content_document` exposes the document of an embed and raises
  :class:`~domsnap.errors.AccessDenied` when it is cross-origin.

Without overrides, the resolved style of a node is its inline style, which
is what the static HTML loader relies on.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple
from urllib.parse import urlsplit

from .css_parser import parse_css
from .dataurl import make_data_url
from .errors import AccessDenied, MalformedFragment

EMPTY_DATA_URL = "data:,"

_IMPORTANT = re.compile(r"\s*!\s*important\s*$", re.IGNORECASE)
_IMPORT_HREF = re.compile(
    r"@import\s+(?:url\(\s*(['\"]?)([^'\")]+)\1\s*\)|(['\"])([^'\"]+)\3)",
    re.IGNORECASE,
)
_KEYFRAMES_PRELUDE = re.compile(r"^@[\w-]*keyframes\b", re.IGNORECASE)


class NodeKind(str, Enum):
    """Closed set of node kinds the cloner dispatches on."""

    CONTAINER = "container"
    TEXT = "text"
    CANVAS = "drawable-surface"
    MEDIA = "media"
    EMBED = "cross-document-embed"
    SLOT = "distributed-content-slot"
    GENERIC = "generic"


_KIND_BY_TAG: Dict[str, NodeKind] = {
    "canvas": NodeKind.CANVAS,
    "video": NodeKind.MEDIA,
    "iframe": NodeKind.EMBED,
    "slot": NodeKind.SLOT,
}


# SVG element names are case-sensitive; HTML parsers fold them to lowercase.
SVG_TAG_NAMES: Dict[str, str] = {
    name.lower(): name
    for name in (
        "altGlyph", "altGlyphDef", "altGlyphItem", "animateColor", "animateMotion",
        "animateTransform", "clipPath", "feBlend", "feColorMatrix",
        "feComponentTransfer", "feComposite", "feConvolveMatrix",
        "feDiffuseLighting", "feDisplacementMap", "feDistantLight", "feDropShadow",
        "feFlood", "feFuncA", "feFuncB", "feFuncG", "feFuncR", "feGaussianBlur",
        "feImage", "feMerge", "feMergeNode", "feMorphology", "feOffset",
        "fePointLight", "feSpecularLighting", "feSpotLight", "feTile",
        "feTurbulence", "foreignObject", "glyphRef", "linearGradient",
        "radialGradient", "textPath",
    )
}


def kind_for_tag(tag_name: str) -> NodeKind:
    return _KIND_BY_TAG.get(tag_name.lower(), NodeKind.CONTAINER)


def normalize_tag_name(tag_name: str) -> str:
    """Lowercase ``tag_name`` except for the camelCase SVG element names."""
    lowered = tag_name.lower()
    return SVG_TAG_NAMES.get(lowered, lowered)


# ---------------------------------------------------------------------------
# Style declarations
# ---------------------------------------------------------------------------


def split_declarations(css_text: str) -> List[Tuple[str, str, str]]:
    """Split ``a: b; c: d !important`` into ``(name, value, priority)`` triples.

    Semicolons inside quotes or parentheses (``url(data:...;base64,...)``)
    do not end a declaration.
    """
    declarations: List[Tuple[str, str, str]] = []
    chunks: List[str] = []
    current: List[str] = []
    depth = 0
    quote = ""
    for char in css_text:
        if quote:
            if char == quote:
                quote = ""
        elif char in "'\"":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        elif char == ";" and depth == 0:
            chunks.append("".join(current))
            current = []
            continue
        current.append(char)
    chunks.append("".join(current))

    for chunk in chunks:
        name, sep, value = chunk.partition(":")
        name = name.strip().lower()
        if not sep or not name:
            continue
        priority = ""
        if _IMPORTANT.search(value):
            value = _IMPORTANT.sub("", value)
            priority = "important"
        value = value.strip()
        if value:
            declarations.append((name, value, priority))
    return declarations


class StyleDeclaration:
    """Ordered property map with per-property priority."""

    def __init__(self, css_text: str = ""):
        self._properties: Dict[str, Tuple[str, str]] = {}
        if css_text:
            self.css_text = css_text

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._properties))

    def __len__(self) -> int:
        return len(self._properties)

    def __contains__(self, name: object) -> bool:
        return name in self._properties

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.css_text!r})"

    def get_property_value(self, name: str) -> str:
        return self._properties.get(name.lower(), ("", ""))[0]

    def get_property_priority(self, name: str) -> str:
        return self._properties.get(name.lower(), ("", ""))[1]

    def set_property(self, name: str, value: Optional[str], priority: str = "") -> None:
        name = name.strip().lower()
        value = (value or "").strip()
        if not value:
            self.remove_property(name)
            return
        self._properties[name] = (value, "important" if priority else "")

    def remove_property(self, name: str) -> str:
        previous = self._properties.pop(name.strip().lower(), ("", ""))
        return previous[0]

    def items(self) -> List[Tuple[str, str, str]]:
        return [(name, value, priority) for name, (value, priority) in self._properties.items()]

    @property
    def css_text(self) -> str:
        parts = [
            f"{name}: {value}{' !important' if priority else ''};"
            for name, value, priority in self.items()
        ]
        return " ".join(parts)

    @css_text.setter
    def css_text(self, value: str) -> None:
        self._properties.clear()
        for name, prop_value, priority in split_declarations(value or ""):
            self._properties[name] = (prop_value, priority)


class ComputedStyle(StyleDeclaration):
    """Resolved style of a node.

    ``serialized_text`` holds the host's single-string serialization of the
    resolved style when the host offers one; it is empty otherwise and the
    cloner falls back to copying property by property.
    """

    def __init__(self, css_text: str = "", serialized_text: str = ""):
        super().__init__(css_text)
        self.serialized_text = serialized_text


# ---------------------------------------------------------------------------
# Style sheets
# ---------------------------------------------------------------------------


class RuleType(str, Enum):
    STYLE = "style"
    IMPORT = "import"
    FONT_FACE = "font-face"
    MEDIA = "media"
    KEYFRAMES = "keyframes"
    OTHER = "other"


@dataclass(eq=False)
class CSSRule:
    """One top-level rule of a style sheet."""

    type: RuleType
    css_text: str
    href: Optional[str] = None
    style: StyleDeclaration = field(default_factory=StyleDeclaration)
    parent_style_sheet: Optional["StyleSheet"] = field(default=None, repr=False)

    @classmethod
    def parse(cls, text: str, parent: Optional["StyleSheet"] = None) -> "CSSRule":
        """Parse exactly one rule; raise :class:`MalformedFragment` otherwise."""
        css_text = text.strip()
        if not css_text:
            raise MalformedFragment(text, "empty fragment")

        if css_text.lower().startswith("@import"):
            match = _IMPORT_HREF.match(css_text)
            if not css_text.endswith(";") or match is None:
                raise MalformedFragment(text, "invalid @import")
            href = match.group(2) or match.group(4)
            return cls(RuleType.IMPORT, css_text, href=href.strip(), parent_style_sheet=parent)

        body_start = css_text.find("{")
        if body_start <= 0 or _block_end(css_text, body_start) != len(css_text) - 1:
            raise MalformedFragment(text)

        prelude = css_text[:body_start].strip()
        lowered = prelude.lower()
        style = StyleDeclaration()
        if lowered.startswith("@font-face"):
            rule_type = RuleType.FONT_FACE
            style = StyleDeclaration(css_text[body_start + 1 : -1])
        elif lowered.startswith("@media"):
            rule_type = RuleType.MEDIA
        elif _KEYFRAMES_PRELUDE.match(lowered):
            rule_type = RuleType.KEYFRAMES
        elif lowered.startswith("@"):
            rule_type = RuleType.OTHER
        else:
            rule_type = RuleType.STYLE
            style = StyleDeclaration(css_text[body_start + 1 : -1])
        return cls(rule_type, css_text, style=style, parent_style_sheet=parent)


def _block_end(text: str, start: int) -> int:
    """Index of the brace closing the block opened at ``start``, or -1."""
    depth = 0
    quote = ""
    for index in range(start, len(text)):
        char = text[index]
        if quote:
            if char == quote:
                quote = ""
        elif char in "'\"":
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return -1


class StyleSheet:
    """A style sheet attached to a document.

    ``href`` is ``None`` for inline sheets. Sheets loaded from another origin
    are created with ``readable=False``: their rules cannot be listed and
    reading :attr:`css_rules` raises :class:`AccessDenied`.
    """

    def __init__(
        self,
        href: Optional[str] = None,
        rules: Optional[List[str]] = None,
        *,
        readable: bool = True,
    ):
        self.href = href
        self.readable = readable
        self._rules: List[CSSRule] = [CSSRule.parse(rule, self) for rule in rules or []]

    @classmethod
    def from_text(cls, css_text: str, href: Optional[str] = None) -> "StyleSheet":
        """Build a readable sheet, dropping fragments that are not rules."""
        sheet = cls(href)
        for fragment in parse_css(css_text):
            try:
                sheet.insert_rule(fragment, len(sheet._rules))
            except MalformedFragment:
                continue
        return sheet

    def __repr__(self) -> str:
        return f"StyleSheet(href={self.href!r}, rules={len(self._rules)}, readable={self.readable})"

    @property
    def css_rules(self) -> List[CSSRule]:
        if not self.readable:
            raise AccessDenied(
                f"Cannot access rules of cross-origin style sheet {self.href}",
                url=self.href or "",
            )
        return self._rules

    def insert_rule(self, text: str, index: Optional[int] = None) -> int:
        if not self.readable:
            raise AccessDenied(
                f"Cannot modify cross-origin style sheet {self.href}",
                url=self.href or "",
            )
        rule = CSSRule.parse(text, self)
        position = len(self._rules) if index is None else index
        if position < 0 or position > len(self._rules):
            raise MalformedFragment(text, f"index {position} out of range")
        self._rules.insert(position, rule)
        return position


# ---------------------------------------------------------------------------
# Nodes and documents
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class Node:
    """A node of the visual tree (or of a clone of it)."""

    kind: NodeKind = NodeKind.CONTAINER
    tag_name: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    children: List["Node"] = field(default_factory=list, repr=False)
    text: str = ""
    style: StyleDeclaration = field(default_factory=StyleDeclaration, repr=False)
    computed_style: Optional[ComputedStyle] = field(default=None, repr=False)
    pseudo_styles: Dict[str, ComputedStyle] = field(default_factory=dict, repr=False)
    shadow_root: Optional[List["Node"]] = field(default=None, repr=False)
    assigned_nodes: Optional[List["Node"]] = field(default=None, repr=False)
    embedded_document: Optional["Document"] = field(default=None, repr=False)
    cross_origin: bool = False
    value: Optional[str] = None
    current_src: str = ""
    canvas_data: Optional[bytes] = field(default=None, repr=False)
    frame_data: Optional[bytes] = field(default=None, repr=False)
    client_width: float = 0.0
    client_height: float = 0.0
    owner_document: Optional["Document"] = field(default=None, repr=False)
    parent: Optional["Node"] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.tag_name = normalize_tag_name(self.tag_name)
        for child in self.children:
            child.parent = self

    # -- construction -----------------------------------------------------

    @classmethod
    def element(
        cls,
        tag_name: str,
        attributes: Optional[Dict[str, str]] = None,
        children: Optional[List["Node"]] = None,
        **kwargs,
    ) -> "Node":
        """Create an element whose kind is derived from its tag name."""
        attributes = dict(attributes or {})
        style = kwargs.pop("style", None)
        if style is None:
            style = StyleDeclaration(attributes.pop("style", ""))
        elif isinstance(style, str):
            style = StyleDeclaration(style)
        return cls(
            kind=kwargs.pop("kind", kind_for_tag(tag_name)),
            tag_name=tag_name,
            attributes=attributes,
            children=list(children or []),
            style=style,
            **kwargs,
        )

    @classmethod
    def text_node(cls, text: str) -> "Node":
        return cls(kind=NodeKind.TEXT, text=text)

    def clone_shallow(self) -> "Node":
        """Copy kind, tag, attributes, text and inline style, nothing else."""
        return Node(
            kind=self.kind,
            tag_name=self.tag_name,
            attributes=dict(self.attributes),
            text=self.text,
            style=StyleDeclaration(self.style.css_text),
        )

    # -- structure --------------------------------------------------------

    @property
    def is_element(self) -> bool:
        return self.kind not in (NodeKind.TEXT, NodeKind.GENERIC)

    @property
    def first_child(self) -> Optional["Node"]:
        return self.children[0] if self.children else None

    def append_child(self, child: "Node") -> "Node":
        child.parent = self
        self.children.append(child)
        return child

    def insert_child(self, index: int, child: "Node") -> "Node":
        child.parent = self
        self.children.insert(index, child)
        return child

    def iter_descendants(self) -> Iterator["Node"]:
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    def iter_tree(self) -> Iterator["Node"]:
        yield self
        yield from self.iter_descendants()

    def find_all(self, tag_name: str) -> List["Node"]:
        tag_name = normalize_tag_name(tag_name)
        return [node for node in self.iter_descendants() if node.tag_name == tag_name]

    def get_element_by_id(self, element_id: str) -> Optional["Node"]:
        for node in self.iter_tree():
            if node.is_element and node.attributes.get("id") == element_id:
                return node
        return None

    @property
    def text_content(self) -> str:
        if self.kind is NodeKind.TEXT:
            return self.text
        return "".join(child.text_content for child in self.children)

    # -- attributes -------------------------------------------------------

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def set_attribute(self, name: str, value: str) -> None:
        self.attributes[name] = value

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def remove_attribute(self, name: str) -> None:
        self.attributes.pop(name, None)

    @property
    def class_list(self) -> List[str]:
        return (self.attributes.get("class") or "").split()

    def add_class(self, class_name: str) -> None:
        if not self.is_element:
            raise TypeError(f"{self.kind.value} nodes have no class list")
        names = self.class_list
        if class_name not in names:
            names.append(class_name)
        self.attributes["class"] = " ".join(names)

    # -- capability hooks -------------------------------------------------

    def get_computed_style(self, pseudo: Optional[str] = None) -> ComputedStyle:
        """Resolved style of the node or of one of its pseudo positions."""
        if pseudo:
            key = ":" + pseudo.lstrip(":")
            return self.pseudo_styles.get(key) or ComputedStyle()
        if self.computed_style is not None:
            return self.computed_style
        return ComputedStyle(self.style.css_text)

    def to_data_url(self) -> str:
        """Snapshot of a drawable surface; ``data:,`` when nothing is drawn."""
        if not self.canvas_data:
            return EMPTY_DATA_URL
        return make_data_url(self.canvas_data, "image/png")

    def capture_frame(self) -> str:
        """Still image of the frame a media node currently displays."""
        if not self.frame_data:
            return EMPTY_DATA_URL
        return make_data_url(self.frame_data, "image/png")

    @property
    def content_document(self) -> Optional["Document"]:
        if self.cross_origin:
            src = self.attributes.get("src", "")
            raise AccessDenied(f"Blocked access to cross-origin document {src}", url=src)
        return self.embedded_document


@dataclass(eq=False)
class Document:
    """Owner of a node tree and of the style sheets that apply to it."""

    location: str = ""
    body: Optional[Node] = None
    style_sheets: List[StyleSheet] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.body is not None:
            self.adopt(self.body)

    @property
    def protocol(self) -> str:
        scheme = urlsplit(self.location).scheme if self.location else ""
        return f"{scheme}:" if scheme else ""

    def adopt(self, node: Node) -> Node:
        """Attach ``node`` and everything below it to this document."""
        stack = [node]
        while stack:
            current = stack.pop()
            current.owner_document = self
            stack.extend(current.children)
            if current.shadow_root:
                stack.extend(current.shadow_root)
        return node

    def get_element_by_id(self, element_id: str) -> Optional[Node]:
        if self.body is None:
            return None
        found = self.body.get_element_by_id(element_id)
        if found is not None:
            return found
        for node in self.body.iter_tree():
            for shadow_child in node.shadow_root or []:
                found = shadow_child.get_element_by_id(element_id)
                if found is not None:
                    return found
        return None

    def add_style_sheet(self, sheet: Optional[StyleSheet] = None) -> StyleSheet:
        sheet = sheet if sheet is not None else StyleSheet()
        self.style_sheets.append(sheet)
        return sheet
