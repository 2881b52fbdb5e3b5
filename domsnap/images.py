"""Second walk over the clone: inline images and background resources."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from .dom import Node
from .embed_resources import embed_resources
from .urls import get_mime_type, is_data_url, resolve_url

if TYPE_CHECKING:
    from .context import ConversionContext

LOGGER = logging.getLogger(__name__)


async def embed_prop(prop_name: str, node: Node, context: "ConversionContext") -> bool:
    """Inline the resources of one style property; True when it had a value."""
    prop_value = node.style.get_property_value(prop_name)
    if not prop_value:
        return False

    css_string = await embed_resources(prop_value, None, context)
    node.style.set_property(prop_name, css_string, node.style.get_property_priority(prop_name))
    return True


async def embed_background(cloned: Node, context: "ConversionContext") -> None:
    if not await embed_prop("background", cloned, context):
        await embed_prop("background-image", cloned, context)
    if not await embed_prop("mask", cloned, context):
        await embed_prop("mask-image", cloned, context)


def _image_reference(node: Node) -> Optional[str]:
    if node.tag_name == "img":
        src = node.get_attribute("src")
    elif node.tag_name == "image":
        src = node.get_attribute("href") or node.get_attribute("xlink:href")
    else:
        return None
    if not src or is_data_url(src):
        return None
    return src


async def embed_image_node(cloned: Node, context: "ConversionContext") -> None:
    url = _image_reference(cloned)
    if url is None:
        return

    resolved_url = resolve_url(url, context.base_url)
    LOGGER.debug("Inlining image %s", resolved_url)
    data_url = await context.resources.to_inline(
        resolved_url, get_mime_type(url), context.options
    )

    if cloned.tag_name == "img":
        if cloned.get_attribute("loading") == "lazy":
            cloned.set_attribute("loading", "eager")
        cloned.set_attribute("srcset", "")
        cloned.set_attribute("src", data_url)
    elif cloned.has_attribute("xlink:href") and not cloned.has_attribute("href"):
        cloned.set_attribute("xlink:href", data_url)
    else:
        cloned.set_attribute("href", data_url)


async def embed_images(cloned: Node, context: "ConversionContext") -> None:
    """Inline every image reference in ``cloned`` and its descendants."""
    if not cloned.is_element:
        return

    await embed_background(cloned, context)
    await embed_image_node(cloned, context)
    if cloned.children:
        await asyncio.gather(*(embed_images(child, context) for child in cloned.children))
