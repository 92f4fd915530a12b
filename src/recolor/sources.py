"""Ordered collection of stylesheet text from many sources.

Inline sources are available immediately; linked sheets are fetched
concurrently and settle in whatever order the network delivers them. A join
barrier waits for every fetch and hands the caller one list, inline sources
first, then fetched sources in the order they were enumerated.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from types import TracebackType
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from .exceptions import CollectorError
from .logger import get_logger
from .models import StylesheetSource

logger = get_logger()

FetchFunc = Callable[[str], Awaitable[str]]
"""Async fetch capability: URL -> text, empty on failure."""

StylesCallback = Callable[[list[str]], None]

HTTP_SCHEMES = ("http", "https")


class JoinBarrier:
    """Waits for a known number of indexed results, then delivers them in index order.

    The completion callback runs exactly once: when the last result is
    recorded, or from arm() if nothing was ever pending.
    """

    def __init__(self, count: int, on_complete: StylesCallback) -> None:
        if count < 0:
            raise CollectorError(f"Join barrier count must not be negative, got {count}")
        self.count = count
        self._on_complete = on_complete
        self._results: dict[int, str] = {}
        self._fired = False

    @property
    def pending(self) -> int:
        """Results still outstanding."""
        return self.count - len(self._results)

    @property
    def done(self) -> bool:
        """Whether the completion callback has run."""
        return self._fired

    def arm(self) -> None:
        """Fire immediately if there is nothing to wait for."""
        if self.pending == 0 and not self._fired:
            self._finish()

    def record(self, index: int, text: str) -> None:
        """Store the result for one index; fires the callback on the last one.

        Raises:
            CollectorError: If the index is out of range or already recorded
        """
        if not 0 <= index < self.count:
            raise CollectorError(f"Result index {index} outside 0..{self.count - 1}")
        if index in self._results:
            raise CollectorError(f"Result for index {index} recorded twice")
        self._results[index] = text
        if self.pending == 0:
            self._finish()

    def _finish(self) -> None:
        self._fired = True
        self._on_complete([self._results[i] for i in sorted(self._results)])


class SourceCollector:
    """Gathers inline and fetched stylesheet text into one ordered list."""

    def __init__(self, fetch: FetchFunc) -> None:
        self._fetch = fetch

    async def collect(
        self,
        inline: Sequence[str],
        urls: Sequence[str],
        callback: StylesCallback,
    ) -> None:
        """Fetch every URL and deliver all texts to the callback once.

        Args:
            inline: Already-available CSS, in page order
            urls: Linked stylesheets to fetch, in page order
            callback: Receives inline texts followed by fetched texts in URL
                order; a failed fetch contributes an empty string at its slot
        """
        sources = [StylesheetSource(order_index=i, url=url) for i, url in enumerate(urls)]
        head = list(inline)

        def finish(fetched: list[str]) -> None:
            logger.changes(f"Collected {len(head)} inline and {len(fetched)} linked stylesheets")
            callback(head + fetched)

        barrier = JoinBarrier(len(sources), finish)
        barrier.arm()
        if not sources:
            return

        await asyncio.gather(*(self._settle(source, barrier) for source in sources))

    async def _settle(self, source: StylesheetSource, barrier: JoinBarrier) -> None:
        assert source.url is not None
        text = ""
        try:
            text = await self._fetch(source.url)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Failed to fetch {source.url}: {e}")
        finally:
            source.settle(text)
            barrier.record(source.order_index, text)


async def collect_styles(inline: Sequence[str], urls: Sequence[str], fetch: FetchFunc) -> list[str]:
    """Collect stylesheet texts and return them instead of calling back."""
    styles: list[str] = []
    await SourceCollector(fetch).collect(inline, urls, styles.extend)
    return styles


class Fetcher:
    """Fetch capability for linked stylesheets.

    http(s) URLs go through an httpx.AsyncClient; ``file:`` URLs and bare
    paths are read from disk. Failures are logged and yield an empty string,
    never an exception.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> Fetcher:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __call__(self, url: str) -> str:
        return await self.fetch(url)

    async def fetch(self, url: str) -> str:
        """Fetch the text behind a URL, or an empty string on failure."""
        if urlparse(url).scheme in HTTP_SCHEMES:
            return await self._fetch_http(url)
        return self._read_file(url)

    async def _fetch_http(self, url: str) -> str:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)

        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"An error occurred while fetching {url}: {e}")
            return ""

        if not response.is_success:
            logger.warning(f"Failed to fetch {url}. Status: {response.status_code}")
            return ""
        return response.text

    def _read_file(self, url: str) -> str:
        parsed = urlparse(url)
        path = Path(url2pathname(parsed.path)) if parsed.scheme == "file" else Path(url)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return ""
