"""Async HTTP client for a remote embedding API."""

from __future__ import annotations

from types import TracebackType
from typing import Any, Optional

import httpx
import structlog

from event_search.exceptions import EmbeddingConfigurationError, RemoteEmbeddingError
from event_search.models import EMBEDDING_DIMENSION
from event_search.services.rate_limiter import TokenBucket

logger = structlog.get_logger(__name__)

DEFAULT_REMOTE_MODEL = "all-MiniLM-L6-v2"


class RemoteEmbeddingClient:
    """Client for an OpenAI-style ``POST {url}`` embedding endpoint.

    Every call first takes a token from the shared :class:`TokenBucket`.
    Can be used as an async context manager; an injected ``http_client`` is
    left open for its owner to close::

        async with RemoteEmbeddingClient(url, key, TokenBucket(60)) as client:
            vector = await client.embed("jazz night")

    Args:
        api_url:      Endpoint URL.
        api_key:      Bearer token.
        rate_limiter: Token bucket shared by all calls.
        model:        Model name sent in the request body.
        timeout:      Per-request timeout in seconds.
        http_client:  Optional pre-built ``httpx.AsyncClient``.
        dimension:    Expected vector length; ``None`` accepts any length.
    """

    def __init__(
        self,
        api_url: Optional[str],
        api_key: Optional[str],
        rate_limiter: TokenBucket,
        model: str = DEFAULT_REMOTE_MODEL,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        dimension: Optional[int] = EMBEDDING_DIMENSION,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._rate_limiter = rate_limiter
        self._model = model
        self._timeout = httpx.Timeout(timeout, connect=5.0)
        self._client = http_client
        self._owns_client = http_client is None
        self._dimension = dimension

    async def __aenter__(self) -> "RemoteEmbeddingClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    @property
    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def embed(self, text: str) -> list[float]:
        """Fetch the embedding of *text*.

        Raises:
            EmbeddingConfigurationError: If the URL or API key is missing.
            RemoteEmbeddingError:        On a non-200 response, a malformed body
                                         or a vector of the wrong length.
            httpx.HTTPError:             On transport failures.
        """
        if not self._api_url or not self._api_key:
            raise EmbeddingConfigurationError(
                "Remote embedding API URL and key are required."
            )

        await self._rate_limiter.acquire()

        resp = await self._http.post(
            self._api_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={"input": text, "model": self._model},
        )
        if resp.status_code != 200:
            raise RemoteEmbeddingError(
                f"Remote embedding API error: {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            data: Any = resp.json()
            embedding = data["data"][0]["embedding"]
            vector = [float(x) for x in embedding]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise RemoteEmbeddingError(f"Malformed embedding response: {exc}") from exc

        if self._dimension is not None and len(vector) != self._dimension:
            raise RemoteEmbeddingError(
                f"Expected a {self._dimension}-dimension embedding, got {len(vector)}."
            )

        logger.debug("remote_embeddings.received", dimension=len(vector))
        return vector
