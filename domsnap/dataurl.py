"""Fetch resources and encode them as inline ``data:`` URLs.

:class:`ResourceCache` memoizes one encoding per normalized URL so the same
image or font referenced from many places costs a single fetch. Failures
never propagate: a broken resource degrades to the configured placeholder.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import re
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, Mapping, Optional, Union
from urllib.parse import unquote, urlsplit

import httpx

from .errors import FetchNotFound
from .urls import get_mime_type

if TYPE_CHECKING:
    from .options import ConvertOptions

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

_QUERY = re.compile(r"\?.*")
_FONT_URL = re.compile(r"\.(?:ttf|otf|eot|woff2?)(?:$|[?#])", re.IGNORECASE)
_DIRECTORY = re.compile(r".*/")


def make_data_url(content: Union[bytes, str], mime_type: str) -> str:
    """Build ``data:<mime>;base64,<content>``.

    ``content`` is either raw bytes or an already base64-encoded string.
    """
    if isinstance(content, bytes):
        content = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type};base64,{content}"


def get_content_from_data_url(data_url: str) -> str:
    return data_url.split(",", 1)[1] if "," in data_url else ""


def get_cache_key(url: str, content_type: Optional[str], include_query_params: bool) -> str:
    """Normalize a resource URL into its cache identity."""
    key = url if include_query_params else _QUERY.sub("", url)

    # Font CDNs vary query strings per request; the file name is the identity.
    if _FONT_URL.search(key):
        key = _DIRECTORY.sub("", key)

    return f"[{content_type}]{key}" if content_type else key


def with_cache_bust(url: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{int(time.time() * 1000)}"


class ResourceFetcher:
    """Byte-fetch primitive backed by ``httpx.AsyncClient``.

    Inside :meth:`session` every fetch goes through one pooled client;
    outside it each fetch opens its own. ``file:`` URLs are read from the
    local filesystem.
    """

    def __init__(
        self,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[Mapping[str, str]] = None,
    ):
        self._transport = transport
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._client: Optional[httpx.AsyncClient] = None
        self._sessions = 0

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self._timeout,
            headers=self._headers,
            follow_redirects=True,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator["ResourceFetcher"]:
        """Share one client across the fetches made inside the block.

        Sessions nest; the client is closed when the outermost one exits.
        """
        if self._client is None:
            self._client = self._build_client()
        self._sessions += 1
        try:
            yield self
        finally:
            self._sessions -= 1
            if self._sessions == 0 and self._client is not None:
                client, self._client = self._client, None
                await client.aclose()

    async def fetch(
        self, url: str, request_init: Optional[Mapping[str, Any]] = None
    ) -> httpx.Response:
        if url.startswith("file:"):
            return self._read_file(url)

        if self._client is not None:
            return await self._get(self._client, url, request_init)
        async with self._build_client() as client:
            return await self._get(client, url, request_init)

    @staticmethod
    async def _get(
        client: httpx.AsyncClient, url: str, request_init: Optional[Mapping[str, Any]]
    ) -> httpx.Response:
        response = await client.get(url, **dict(request_init or {}))
        await response.aread()
        return response

    async def fetch_text(
        self, url: str, request_init: Optional[Mapping[str, Any]] = None
    ) -> str:
        response = await self.fetch(url, request_init)
        if response.status_code == 404:
            raise FetchNotFound(url)
        return response.text

    @staticmethod
    def _read_file(url: str) -> httpx.Response:
        path = Path(unquote(urlsplit(url).path))
        request = httpx.Request("GET", url)
        if not path.is_file():
            return httpx.Response(404, request=request)
        headers = {}
        mime_type = get_mime_type(url) or ("text/css" if path.suffix == ".css" else "")
        if mime_type:
            headers["Content-Type"] = mime_type
        return httpx.Response(200, content=path.read_bytes(), headers=headers, request=request)


class ResourceCache:
    """Process-wide ``url -> data URL`` cache with degrade-not-fail fetching."""

    def __init__(self, fetcher: Optional[ResourceFetcher] = None):
        self.fetcher = fetcher or ResourceFetcher()
        self._entries: Dict[str, str] = {}
        self._pending: Dict[str, "asyncio.Future[str]"] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def clear(self) -> None:
        self._entries.clear()

    async def to_inline(
        self,
        url: str,
        content_type: Optional[str],
        options: "ConvertOptions",
    ) -> str:
        """Return the inline encoding of ``url``, fetching it at most once."""
        key = get_cache_key(url, content_type, options.include_query_params)
        cached = self._entries.get(key)
        if cached is not None:
            return cached

        pending = self._pending.get(key)
        if pending is not None:
            return await pending

        future: "asyncio.Future[str]" = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            data_url = await self._fetch_as_data_url(url, content_type, options)
            self._entries[key] = data_url
            future.set_result(data_url)
        finally:
            del self._pending[key]
            if not future.done():
                future.cancel()
        return data_url

    async def _fetch_as_data_url(
        self,
        url: str,
        content_type: Optional[str],
        options: "ConvertOptions",
    ) -> str:
        resource_url = with_cache_bust(url) if options.cache_bust else url
        try:
            response = await self.fetcher.fetch(resource_url, options.fetch_request_init)
            if response.status_code == 404:
                raise FetchNotFound(resource_url)
            mime_type = content_type or response.headers.get("Content-Type", "")
            return make_data_url(response.content, mime_type)
        except Exception as exc:
            LOGGER.warning("Failed to fetch resource %s: %s", resource_url, exc)
            return options.image_placeholder or ""


_DEFAULT_CACHE: Optional[ResourceCache] = None


def default_resource_cache() -> ResourceCache:
    """The cache shared by conversions that do not bring their own."""
    global _DEFAULT_CACHE
    if _DEFAULT_CACHE is None:
        _DEFAULT_CACHE = ResourceCache()
    return _DEFAULT_CACHE
