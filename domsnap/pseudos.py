"""Replicate generated ``:before`` / ``:after`` content onto a clone."""

from __future__ import annotations

import itertools
import random
import re

from .dom import ComputedStyle, Node

BEFORE = ":before"
AFTER = ":after"

_QUOTES = re.compile(r"['\"]")
_COUNTER = itertools.count(1)
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def unique_class_name() -> str:
    """Short class name, unique within the process (``u`` + 4 random + counter)."""
    suffix = "".join(random.choice(_BASE36) for _ in range(4))
    return f"u{suffix}{next(_COUNTER)}"


def quote_content(value: str) -> str:
    return "'" + _QUOTES.sub("", value) + "'"


def format_css_text(style: ComputedStyle) -> str:
    content = style.get_property_value("content")
    return f"{style.serialized_text} content: {quote_content(content)};"


def format_css_properties(style: ComputedStyle) -> str:
    declarations = []
    for name, value, priority in style.items():
        if name == "content":
            value = quote_content(value)
        declarations.append(f"{name}: {value}{' !important' if priority else ''};")
    return " ".join(declarations)


def get_pseudo_element_style(class_name: str, pseudo: str, style: ComputedStyle) -> str:
    selector = f".{class_name}{pseudo}"
    css_text = format_css_text(style) if style.serialized_text else format_css_properties(style)
    return f"{selector}{{{css_text}}}"


def clone_pseudo_element(native: Node, cloned: Node, pseudo: str) -> None:
    style = native.get_computed_style(pseudo)
    content = style.get_property_value("content")
    if content in ("", "none"):
        return

    if not cloned.is_element:
        return

    class_name = unique_class_name()
    cloned.add_class(class_name)
    style_node = Node.element(
        "style", children=[Node.text_node(get_pseudo_element_style(class_name, pseudo, style))]
    )
    cloned.append_child(style_node)


def clone_pseudo_elements(native: Node, cloned: Node) -> None:
    clone_pseudo_element(native, cloned, BEFORE)
    clone_pseudo_element(native, cloned, AFTER)
