"""
GET-only fetch capability handed to the capture stage.

A fetcher is scoped to one save: it owns an ``httpx.AsyncClient`` whose
cookie jar carries credentials across the requests of that save, and it is
closed when the capture stage ends.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from tabkeeper.autosave.errors import FetchError
from tabkeeper.logger import get_logger

logger = get_logger(__name__)

DEFAULT_FETCH_TIMEOUT = 30.0


@dataclass
class FetchResponse:
    """Response of a completed request, whatever its status."""

    status: int
    headers: httpx.Headers
    content: bytes

    async def array_buffer(self) -> bytes:
        return self.content


class HttpFetcher:
    """
    Async context manager yielding a callable ``fetch(url) -> FetchResponse``.

    Non-2xx statuses are returned, not raised; only transport failures raise
    ``FetchError``.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        cookies: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.cookies = cookies
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "HttpFetcher":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            cookies=self.cookies,
            follow_redirects=True,
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __call__(self, url: str) -> FetchResponse:
        if self._client is None:
            raise FetchError("Fetcher used outside of its scope")
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Fetch failed for {url}: {e}")
            raise FetchError(f"Failed to fetch {url}: {e}") from e
        return FetchResponse(
            status=response.status_code,
            headers=response.headers,
            content=response.content,
        )
