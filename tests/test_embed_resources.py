"""Tests for domsnap.embed_resources module."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from domsnap.embed_resources import (
    embed,
    embed_resources,
    filter_preferred_font_format,
    parse_urls,
    should_embed,
)

FONT_FACE = (
    '@font-face { font-family: "A"; '
    'src: url(a.woff2) format("woff2"), url(a.ttf) format("truetype"); }'
)


class TestShouldEmbed:
    def test_with_url(self):
        assert should_embed("background: url(a.png)")

    def test_without_url(self):
        assert not should_embed("color: red; font-family: serif")


class TestParseUrls:
    def test_order_quotes_and_duplicates(self):
        css = 'a: url("a.png"); b: url(b.png); c: url(\'a.png\'); d: url(data:image/png;base64,xx)'
        assert parse_urls(css) == ["a.png", "b.png"]

    def test_none(self):
        assert parse_urls("color: red") == []


class TestFilterPreferredFontFormat:
    def test_keeps_preferred_alternative(self):
        result = filter_preferred_font_format(FONT_FACE, "woff2")
        assert 'src: url(a.woff2) format("woff2");' in result
        assert "a.ttf" not in result

    def test_drops_src_without_match(self):
        result = filter_preferred_font_format(FONT_FACE, "woff")
        assert "src:" not in result
        assert 'font-family: "A";' in result

    def test_no_preference_is_noop(self):
        assert filter_preferred_font_format(FONT_FACE, None) == FONT_FACE


class TestEmbedResources:
    @pytest.mark.asyncio
    async def test_text_without_url_unchanged(self, make_context, requested):
        css = "color: red; margin: 0"
        assert await embed_resources(css, "https://example.com/", make_context()) == css
        assert requested == []

    @pytest.mark.asyncio
    async def test_already_inlined_is_noop(self, make_context, requested):
        css = "background: url(data:image/png;base64,UE5H)"
        assert await embed_resources(css, None, make_context()) == css
        assert requested == []

    @pytest.mark.asyncio
    async def test_resolves_against_base(self, make_context, routes):
        routes["https://example.com/css/img/a.png"] = (b"PNG", "image/png")
        result = await embed_resources(
            "background: url(img/a.png)", "https://example.com/css/site.css", make_context()
        )
        assert result == "background: url(data:image/png;base64,UE5H)"

    @pytest.mark.asyncio
    async def test_quotes_preserved_and_every_occurrence_replaced(self, make_context, routes):
        routes["https://example.com/a.png"] = (b"PNG", "image/png")
        css = 'a: url("a.png"); b: url(a.png)'
        result = await embed_resources(css, "https://example.com/", make_context())
        assert result == (
            'a: url("data:image/png;base64,UE5H"); b: url(data:image/png;base64,UE5H)'
        )

    @pytest.mark.asyncio
    async def test_url_metacharacters_are_literal(self, make_context, routes):
        routes["https://example.com/img/a+b.png"] = (b"PNG", "image/png")
        css = "background: url(img/a+b.png); mask: url(img/aab.png)"
        result = await embed_resources(css, "https://example.com/", make_context())
        assert "url(data:image/png;base64,UE5H)" in result
        assert result.count("data:image/png;base64,UE5H") == 1

    @pytest.mark.asyncio
    async def test_uses_context_base_when_none_given(self, make_context, routes):
        routes["https://example.com/a.png"] = (b"PNG", "image/png")
        context = make_context()
        context.base_url = "https://example.com/index.html"
        result = await embed_resources("background: url(a.png)", None, context)
        assert result == "background: url(data:image/png;base64,UE5H)"

    @pytest.mark.asyncio
    async def test_preferred_format_limits_fetches(self, make_context, routes, requested):
        routes["https://example.com/a.woff2"] = (b"font", "font/woff2")
        context = make_context(preferred_font_format="woff2")
        result = await embed_resources(FONT_FACE, "https://example.com/", context)
        assert "data:application/font-woff;base64,Zm9udA==" in result
        assert requested == ["https://example.com/a.woff2"]


class TestEmbed:
    @pytest.mark.asyncio
    async def test_failure_leaves_text_unchanged(self, make_context):
        context = make_context()
        context.resources.to_inline = AsyncMock(side_effect=RuntimeError("boom"))
        css = "background: url(a.png)"
        assert await embed(css, "a.png", "https://example.com/", context) == css
