"""Per-conversion state threaded through the pipeline."""

from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from .dataurl import ResourceCache, ResourceFetcher, default_resource_cache
from .options import ConvertOptions
from .webfonts import StyleSheetCache, default_style_sheet_cache


@dataclass
class ConversionContext:
    """Options plus the two caches a conversion reads and fills.

    The caches default to the process-wide instances; tests and long-lived
    hosts pass their own to isolate or bound them.
    """

    options: ConvertOptions = field(default_factory=ConvertOptions)
    resources: ResourceCache = field(default_factory=default_resource_cache)
    style_sheets: StyleSheetCache = field(default_factory=default_style_sheet_cache)
    base_url: Optional[str] = None

    @classmethod
    def create(
        cls,
        options: Optional[ConvertOptions] = None,
        *,
        fetcher: Optional[ResourceFetcher] = None,
    ) -> "ConversionContext":
        """Build a context with private caches sharing one fetcher."""
        fetcher = fetcher or ResourceFetcher()
        return cls(
            options=options or ConvertOptions(),
            resources=ResourceCache(fetcher),
            style_sheets=StyleSheetCache(fetcher),
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator["ConversionContext"]:
        """Pool the HTTP connections of both caches for the duration of the block."""
        async with AsyncExitStack() as stack:
            await stack.enter_async_context(self.resources.fetcher.session())
            if self.style_sheets.fetcher is not self.resources.fetcher:
                await stack.enter_async_context(self.style_sheets.fetcher.session())
            yield self
