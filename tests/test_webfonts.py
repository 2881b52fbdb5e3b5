"""Tests for domsnap.webfonts module."""

from __future__ import annotations

import pytest

from domsnap.dom import Document, Node, NodeKind, RuleType, StyleSheet
from domsnap.errors import NotInDocument
from domsnap.webfonts import (
    embed_web_fonts,
    get_css_rules,
    get_web_font_css,
    parse_web_font_rules,
)

FONT_DATA_URL = "data:application/font-woff;base64,Zm9udA=="


def _document(*sheets: StyleSheet, location: str = "https://example.com/index.html") -> Document:
    body = Node.element("body", children=[Node.element("p", children=[Node.text_node("hi")])])
    return Document(location=location, body=body, style_sheets=list(sheets))


class TestWebFontRules:
    @pytest.mark.asyncio
    async def test_inline_font_face(self, make_context, routes):
        routes["https://example.com/fonts/a.woff"] = (b"font", "font/woff")
        sheet = StyleSheet.from_text(
            "@font-face{font-family:A;src:url(fonts/a.woff)} .p{color:red}"
        )
        document = _document(sheet)
        context = make_context()
        context.base_url = document.location

        css_text = await get_web_font_css(document.body, context)
        assert css_text.startswith("@font-face")
        assert FONT_DATA_URL in css_text
        assert ".p" not in css_text

    @pytest.mark.asyncio
    async def test_font_face_without_url_ignored(self, make_context):
        sheet = StyleSheet.from_text("@font-face{font-family:A;src:local(Arial)}")
        rules = await parse_web_font_rules(_document(sheet).body, make_context())
        assert rules == []

    @pytest.mark.asyncio
    async def test_detached_node_raises(self, make_context):
        with pytest.raises(NotInDocument):
            await parse_web_font_rules(Node.element("div"), make_context())

    @pytest.mark.asyncio
    async def test_multiple_rules_joined_by_newline(self, make_context, routes):
        routes["https://example.com/a.woff"] = (b"font", "")
        routes["https://example.com/b.woff"] = (b"font", "")
        sheet = StyleSheet.from_text(
            "@font-face{font-family:A;src:url(a.woff)}@font-face{font-family:B;src:url(b.woff)}"
        )
        document = _document(sheet)
        context = make_context()
        context.base_url = document.location
        css_text = await get_web_font_css(document.body, context)
        assert len(css_text.split("\n")) == 2


class TestImports:
    @pytest.mark.asyncio
    async def test_import_rules_inserted_after_import(self, make_context, routes, requested):
        routes["https://cdn.example.com/fonts.css"] = (
            '@font-face{font-family:F;src:url(f.woff2) format("woff2")}',
            "text/css",
        )
        routes["https://cdn.example.com/f.woff2"] = (b"font", "font/woff2")
        sheet = StyleSheet.from_text('@import url("https://cdn.example.com/fonts.css");\n.a{color:red}')
        document = _document(sheet)

        rules = await get_css_rules(document, make_context())
        assert [rule.type for rule in rules] == [RuleType.IMPORT, RuleType.FONT_FACE, RuleType.STYLE]
        assert FONT_DATA_URL in rules[1].css_text
        assert requested == ["https://cdn.example.com/fonts.css", "https://cdn.example.com/f.woff2"]

    @pytest.mark.asyncio
    async def test_relative_import_against_document(self, make_context, routes):
        routes["https://example.com/css/fonts.css"] = ("@font-face{font-family:F;src:url(f.woff)}", "")
        routes["https://example.com/css/f.woff"] = (b"font", "")
        sheet = StyleSheet.from_text('@import "css/fonts.css";')
        rules = await parse_web_font_rules(_document(sheet).body, make_context())
        assert len(rules) == 1
        assert FONT_DATA_URL in rules[0].css_text

    @pytest.mark.asyncio
    async def test_nested_imports_and_cycles(self, make_context, routes, requested):
        routes["https://example.com/a.css"] = ('@import url("b.css");\n.a{color:red}', "text/css")
        routes["https://example.com/b.css"] = ('@import url("a.css");\n.b{color:blue}', "text/css")
        sheet = StyleSheet.from_text('@import url("a.css");')
        document = _document(sheet, location="https://example.com/")

        rules = await get_css_rules(document, make_context())
        style_rules = [rule.css_text.strip() for rule in rules if rule.type is RuleType.STYLE]
        assert style_rules == [".b{color:blue}", ".a{color:red}"]
        assert requested.count("https://example.com/a.css") == 1
        assert requested.count("https://example.com/b.css") == 1

    @pytest.mark.asyncio
    async def test_failed_import_is_skipped(self, make_context, caplog):
        sheet = StyleSheet.from_text('@import url("missing.css");\n.a{color:red}')
        document = _document(sheet)
        with caplog.at_level("ERROR", logger="domsnap.webfonts"):
            rules = await get_css_rules(document, make_context())
        assert len(rules) == 2
        assert "missing.css" in caplog.text

    @pytest.mark.asyncio
    async def test_malformed_fragment_is_skipped(self, make_context, routes, caplog):
        routes["https://example.com/fonts.css"] = (
            "@font-face{font-family:F;src:url(data:font/woff;base64,AA==)}\n"
            "@media x{ @supports y{ .a{b:c} } }",
            "text/css",
        )
        sheet = StyleSheet.from_text('@import url("fonts.css");')
        with caplog.at_level("WARNING", logger="domsnap.webfonts"):
            rules = await parse_web_font_rules(_document(sheet).body, make_context())
        assert len(rules) == 1
        assert "Error inserting rule" in caplog.text


class TestUnreadableSheets:
    @pytest.mark.asyncio
    async def test_whole_sheet_fallback(self, make_context, routes):
        routes["https://cdn.example.com/remote.css"] = (
            "@font-face{font-family:R;src:url(r.woff)}",
            "text/css",
        )
        routes["https://cdn.example.com/r.woff"] = (b"font", "")
        remote = StyleSheet(href="https://cdn.example.com/remote.css", readable=False)
        document = _document(remote)

        rules = await parse_web_font_rules(document.body, make_context())
        assert len(document.style_sheets) == 2
        assert document.style_sheets[1].href is None
        assert len(rules) == 1
        assert FONT_DATA_URL in rules[0].css_text

    @pytest.mark.asyncio
    async def test_fallback_reuses_inline_sheet(self, make_context, routes):
        routes["https://cdn.example.com/remote.css"] = (".r{color:red}", "text/css")
        inline = StyleSheet.from_text(".i{color:blue}")
        remote = StyleSheet(href="https://cdn.example.com/remote.css", readable=False)
        document = _document(remote, inline)

        rules = await get_css_rules(document, make_context())
        assert len(document.style_sheets) == 2
        assert [rule.css_text for rule in inline.css_rules] == [".i{color:blue}", ".r{color:red}"]
        assert len(rules) == 2

    @pytest.mark.asyncio
    async def test_unreachable_sheet_logged(self, make_context, caplog):
        remote = StyleSheet(href="https://cdn.example.com/gone.css", readable=False)
        with caplog.at_level("ERROR", logger="domsnap.webfonts"):
            rules = await get_css_rules(_document(remote), make_context())
        assert rules == []
        assert "gone.css" in caplog.text


class TestEmbedWebFonts:
    @pytest.mark.asyncio
    async def test_supplied_css_used_verbatim(self, make_context, requested):
        source = _document(StyleSheet.from_text("@font-face{font-family:A;src:url(a.woff)}")).body
        cloned = Node.element("body", children=[Node.element("p")])
        await embed_web_fonts(cloned, source, make_context(font_embed_css="@font-face{x:y}"))
        style = cloned.first_child
        assert style.tag_name == "style"
        assert style.text_content == "@font-face{x:y}"
        assert requested == []

    @pytest.mark.asyncio
    async def test_skip_fonts(self, make_context):
        source = _document(StyleSheet.from_text("@font-face{font-family:A;src:url(a.woff)}")).body
        cloned = Node.element("body")
        await embed_web_fonts(cloned, source, make_context(skip_fonts=True))
        assert cloned.children == []

    @pytest.mark.asyncio
    async def test_empty_result_inserts_nothing(self, make_context):
        source = _document().body
        cloned = Node.element("body", children=[Node.element("p")])
        await embed_web_fonts(cloned, source, make_context())
        assert [child.tag_name for child in cloned.children] == ["p"]

    @pytest.mark.asyncio
    async def test_computed_css_inserted_first(self, make_context, routes):
        routes["https://example.com/a.woff"] = (b"font", "")
        source = _document(StyleSheet.from_text("@font-face{font-family:A;src:url(a.woff)}")).body
        cloned = Node.element("body", children=[Node.element("p")])
        context = make_context()
        context.base_url = "https://example.com/"
        await embed_web_fonts(cloned, source, context)
        assert cloned.children[0].kind is NodeKind.CONTAINER
        assert cloned.children[0].tag_name == "style"
        assert FONT_DATA_URL in cloned.children[0].text_content
