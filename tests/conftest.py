"""Shared fixtures: an in-memory HTTP origin and isolated conversion contexts."""

from __future__ import annotations

from typing import Dict, List, Tuple, Union

import httpx
import pytest

from domsnap import ConversionContext, ConvertOptions, ResourceFetcher, clear_caches

Route = Tuple[Union[bytes, str], str]


@pytest.fixture(autouse=True)
def _clear_default_caches():
    clear_caches()
    yield
    clear_caches()


@pytest.fixture
def routes() -> Dict[str, Route]:
    """``url -> (body, content type)``; unknown URLs answer 404."""
    return {}


@pytest.fixture
def requested() -> List[str]:
    return []


@pytest.fixture
def fetcher(routes, requested) -> ResourceFetcher:
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        requested.append(url)
        if url not in routes:
            return httpx.Response(404, text="not found")
        body, content_type = routes[url]
        headers = {"Content-Type": content_type} if content_type else {}
        return httpx.Response(200, content=body, headers=headers)

    return ResourceFetcher(transport=httpx.MockTransport(handler))


@pytest.fixture
def make_context(fetcher):
    def _make(**option_kwargs) -> ConversionContext:
        return ConversionContext.create(ConvertOptions(**option_kwargs), fetcher=fetcher)

    return _make
