"""Collect web font rules from a document and inline their resources.

Imported style sheets are fetched, their own font references inlined and
their rules spliced into the importing sheet right after the ``@import``,
so the final font-face scan sees every rule the document would apply.
Sheets that cannot be read (cross-origin) are fetched whole by URL and
their rules injected into an inline sheet of the same document.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Set, Tuple

from .css_parser import parse_css
from .dataurl import ResourceFetcher
from .dom import CSSRule, Document, Node, RuleType, StyleSheet
from .embed_resources import embed_resources, should_embed
from .errors import AccessDenied, MalformedFragment, NotInDocument
from .urls import resolve_url

if TYPE_CHECKING:
    from .context import ConversionContext

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CSSFetchResult:
    """Text of a fetched style sheet and the URL it was fetched from."""

    url: str
    css_text: str


class StyleSheetCache:
    """Process-wide cache of fetched style sheet text, keyed by URL."""

    def __init__(self, fetcher: Optional[ResourceFetcher] = None):
        self.fetcher = fetcher or ResourceFetcher()
        self._entries: Dict[str, CSSFetchResult] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def clear(self) -> None:
        self._entries.clear()

    async def fetch_css(
        self, url: str, request_init: Optional[Mapping[str, Any]] = None
    ) -> CSSFetchResult:
        cached = self._entries.get(url)
        if cached is not None:
            return cached

        css_text = await self.fetcher.fetch_text(url, request_init)
        result = CSSFetchResult(url=url, css_text=css_text)
        self._entries[url] = result
        return result


_DEFAULT_CACHE: Optional[StyleSheetCache] = None


def default_style_sheet_cache() -> StyleSheetCache:
    global _DEFAULT_CACHE
    if _DEFAULT_CACHE is None:
        _DEFAULT_CACHE = StyleSheetCache()
    return _DEFAULT_CACHE


async def _load_embedded_fragments(url: str, context: "ConversionContext") -> List[str]:
    """Fetch the sheet at ``url`` and inline the resources of its rules.

    @import fragments are kept as written so the import chain can be
    followed; their targets are resolved when they are inserted.
    """
    data = await context.style_sheets.fetch_css(url, context.options.fetch_request_init)
    fragments: List[str] = []
    for fragment in parse_css(data.css_text):
        if not _is_import(fragment):
            fragment = await embed_resources(fragment, data.url, context)
        fragments.append(fragment)
    return fragments


def _is_import(fragment: str) -> bool:
    return fragment.lstrip().lower().startswith("@import")


def _insert_fragments(
    sheet: StyleSheet, fragments: List[str], position: int, source_url: str
) -> List[CSSRule]:
    """Insert ``fragments`` from ``position`` on; return the new import rules."""
    imports: List[CSSRule] = []
    for fragment in fragments:
        try:
            index = sheet.insert_rule(fragment, position)
        except MalformedFragment as exc:
            LOGGER.warning("Error inserting rule from remote css %s: %s", source_url, exc)
            continue
        position = index + 1
        rule = sheet.css_rules[index]
        if rule.type is RuleType.IMPORT:
            rule.href = resolve_url(rule.href or "", source_url)
            imports.append(rule)
    return imports


async def _load_import(
    rule: CSSRule, base_url: Optional[str], visited: Set[str], context: "ConversionContext"
) -> Tuple[str, List[str]]:
    url = resolve_url(rule.href or "", base_url)
    if url in visited:
        LOGGER.debug("Skipping already expanded import %s", url)
        return url, []
    visited.add(url)
    try:
        fragments = await _load_embedded_fragments(url, context)
    except Exception as exc:
        LOGGER.error("Error loading remote css %s: %s", url, exc)
        return url, []
    return url, fragments


async def _expand_imports(
    sheet: StyleSheet,
    imports: List[CSSRule],
    base_url: Optional[str],
    context: "ConversionContext",
) -> None:
    visited: Set[str] = set()
    pending = imports
    while pending:
        loaded = await asyncio.gather(
            *(_load_import(rule, base_url, visited, context) for rule in pending)
        )
        discovered: List[CSSRule] = []
        for rule, (url, fragments) in zip(pending, loaded):
            position = sheet.css_rules.index(rule) + 1
            discovered.extend(_insert_fragments(sheet, fragments, position, url))
        pending = discovered


def _inline_sheet(document: Document, exclude: StyleSheet) -> StyleSheet:
    for candidate in document.style_sheets:
        if candidate.href is None and candidate.readable and candidate is not exclude:
            return candidate
    return document.add_style_sheet(StyleSheet())


async def _inline_unreadable_sheet(
    sheet: StyleSheet, document: Document, context: "ConversionContext"
) -> None:
    url = resolve_url(sheet.href or "", document=document)
    try:
        fragments = await _load_embedded_fragments(url, context)
    except Exception as exc:
        LOGGER.error("Error loading remote stylesheet %s: %s", url, exc)
        return

    inline = _inline_sheet(document, exclude=sheet)
    imports = _insert_fragments(inline, fragments, len(inline.css_rules), url)
    if imports:
        await _expand_imports(inline, imports, url, context)


async def _resolve_sheet(
    sheet: StyleSheet, document: Document, context: "ConversionContext"
) -> None:
    try:
        rules = list(sheet.css_rules)
    except AccessDenied as exc:
        LOGGER.error("Error inlining remote css file %s: %s", sheet.href, exc)
        if sheet.href is not None:
            await _inline_unreadable_sheet(sheet, document, context)
        return

    imports = [rule for rule in rules if rule.type is RuleType.IMPORT]
    if imports:
        base_url = sheet.href or document.location or None
        await _expand_imports(sheet, imports, base_url, context)


async def get_css_rules(document: Document, context: "ConversionContext") -> List[CSSRule]:
    """Every rule of every readable sheet, after imports are expanded."""
    await asyncio.gather(
        *(_resolve_sheet(sheet, document, context) for sheet in list(document.style_sheets))
    )

    rules: List[CSSRule] = []
    for sheet in document.style_sheets:
        try:
            rules.extend(sheet.css_rules)
        except AccessDenied as exc:
            LOGGER.error("Error while reading CSS rules from %s: %s", sheet.href, exc)
    return rules


def get_web_font_rules(rules: List[CSSRule]) -> List[CSSRule]:
    return [
        rule
        for rule in rules
        if rule.type is RuleType.FONT_FACE and should_embed(rule.style.get_property_value("src"))
    ]


async def parse_web_font_rules(node: Node, context: "ConversionContext") -> List[CSSRule]:
    """Font-face rules reachable from the document owning ``node``.

    Raises:
        NotInDocument: If ``node`` is not attached to a document.
    """
    document = node.owner_document
    if document is None:
        raise NotInDocument()

    rules = await get_css_rules(document, context)
    return get_web_font_rules(rules)


async def get_web_font_css(node: Node, context: "ConversionContext") -> str:
    """One CSS block per embeddable font-face rule, joined by newlines."""
    rules = await parse_web_font_rules(node, context)
    css_texts = await asyncio.gather(
        *(
            embed_resources(
                rule.css_text,
                rule.parent_style_sheet.href if rule.parent_style_sheet else None,
                context,
            )
            for rule in rules
        )
    )
    return "\n".join(css_texts)


async def embed_web_fonts(cloned: Node, source: Node, context: "ConversionContext") -> None:
    """Insert the font CSS as the first child of ``cloned``."""
    options = context.options
    if options.font_embed_css is not None:
        css_text: Optional[str] = options.font_embed_css
    elif options.skip_fonts:
        css_text = None
    else:
        css_text = await get_web_font_css(source, context)

    if css_text:
        style_node = Node.element("style", children=[Node.text_node(css_text)])
        cloned.insert_child(0, style_node)
