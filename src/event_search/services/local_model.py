"""In-process sentence-transformers embedding model, loaded lazily."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

import structlog

from event_search.exceptions import DimensionMismatchError
from event_search.models import EMBEDDING_DIMENSION

logger = structlog.get_logger(__name__)

DEFAULT_LOCAL_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


def _load_sentence_transformer(model_name: str) -> Any:  # noqa: ANN401
    # Imported here so CI runs with embeddings disabled never pull in torch.
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name)


class LocalEmbeddingModel:
    """Lazily-loaded local embedding model.

    The model is loaded at most once per instance. Concurrent first callers
    all await the same in-flight load; a failed load is cleared so a later
    call can retry. Loading and inference run in worker threads so the event
    loop is never blocked.

    Args:
        model_name: sentence-transformers model identifier.
        loader:     Callable ``model_name -> model`` (injectable for tests).
        dimension:  Expected vector length; ``None`` accepts any length.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_LOCAL_MODEL,
        loader: Callable[[str], Any] = _load_sentence_transformer,
        dimension: Optional[int] = EMBEDDING_DIMENSION,
    ) -> None:
        self._model_name = model_name
        self._loader = loader
        self._dimension = dimension
        self._model: Any = None
        self._loading: Optional[asyncio.Future[Any]] = None

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def loaded(self) -> bool:
        return self._model is not None

    async def _load(self) -> Any:  # noqa: ANN401
        logger.info("local_model.loading", model=self._model_name)
        try:
            model = await asyncio.to_thread(self._loader, self._model_name)
        except Exception as exc:
            logger.error("local_model.load_failed", model=self._model_name, error=str(exc))
            self._loading = None
            raise
        self._model = model
        logger.info("local_model.loaded", model=self._model_name)
        return model

    async def get(self) -> Any:  # noqa: ANN401
        """Return the loaded model, loading it on first use."""
        if self._model is not None:
            return self._model
        if self._loading is None:
            self._loading = asyncio.ensure_future(self._load())
        # Shielded so one cancelled caller does not abort the shared load.
        return await asyncio.shield(self._loading)

    async def embed(self, text: str) -> list[float]:
        """Mean-pooled, L2-normalised embedding of *text*.

        Raises:
            DimensionMismatchError: If the model produces a vector of the wrong length.
        """
        model = await self.get()
        vector = await asyncio.to_thread(
            model.encode,
            text,
            normalize_embeddings=True,
            convert_to_numpy=True,
            show_progress_bar=False,
        )
        result = [float(x) for x in vector]
        if self._dimension is not None and len(result) != self._dimension:
            raise DimensionMismatchError(len(result), self._dimension)
        return result
