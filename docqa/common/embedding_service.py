"""
Embedding Service

Turns text into fixed-length vectors. Two backends:
- openai: OpenAI embeddings API (text-embedding-3-small by default)
- femb: on-device fastembed model, no external API calls

"lexical" mode has no embedding service at all; the lexical retriever is used
instead. The backend is chosen once at startup by get_embedding_service().
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from .errors import UpstreamFailure, from_provider_exception

logger = logging.getLogger("docqa.common.embedding_service")

DEFAULT_MODELS = {
    "openai": "text-embedding-3-small",
    "femb": "sentence-transformers/all-MiniLM-L6-v2",
}


class EmbeddingService(ABC):
    """
    Embedding capability used by ingestion and retrieval.

    embed() issues one call for one text; embed_batch() issues one call for
    many texts and preserves input order.
    """

    name: str = "embedding"

    def __init__(self, model: str):
        self.model = model
        self._dimension: Optional[int] = None

    @property
    def is_available(self) -> bool:
        return True

    @property
    def dimension(self) -> Optional[int]:
        """Vector length, known after the first successful call"""
        return self._dimension

    def embed(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: String to embed

        Returns:
            Embedding vector
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        vector = self._embed_one(text)
        self._dimension = len(vector)
        return vector

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts in one call.

        Args:
            texts: List of strings to embed

        Returns:
            List of embedding vectors, same order as texts
        """
        if not texts:
            return []
        vectors = self._embed_many(texts)
        if len(vectors) != len(texts):
            raise UpstreamFailure(
                f"Embedding backend returned {len(vectors)} vectors for {len(texts)} texts",
                provider=self.name,
            )
        if vectors:
            self._dimension = len(vectors[0])
        return vectors

    def _embed_one(self, text: str) -> List[float]:
        return self._embed_many([text])[0]

    @abstractmethod
    def _embed_many(self, texts: List[str]) -> List[List[float]]:
        ...


class OpenAIEmbeddingService(EmbeddingService):
    """Embeddings from the OpenAI API."""

    name = "openai"

    def __init__(self, api_key: str, model: str = DEFAULT_MODELS["openai"], base_url: Optional[str] = None):
        super().__init__(model)
        from openai import OpenAI

        self._client = OpenAI(api_key=api_key, base_url=base_url or None)

    def _embed_one(self, text: str) -> List[float]:
        try:
            response = self._client.embeddings.create(model=self.model, input=text)
        except Exception as e:
            raise from_provider_exception(e, self.name) from e
        return list(response.data[0].embedding)

    def _embed_many(self, texts: List[str]) -> List[List[float]]:
        try:
            response = self._client.embeddings.create(model=self.model, input=texts)
        except Exception as e:
            raise from_provider_exception(e, self.name) from e

        # The API tags each vector with its input position
        items = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in items]


class FastEmbedService(EmbeddingService):
    """On-device embeddings via fastembed."""

    name = "femb"

    def __init__(self, model: str = DEFAULT_MODELS["femb"]):
        super().__init__(model)
        from fastembed import TextEmbedding

        self._model = TextEmbedding(model_name=model)

    def _embed_many(self, texts: List[str]) -> List[List[float]]:
        try:
            embeddings = list(self._model.embed(texts))
        except Exception as e:
            raise UpstreamFailure(str(e), provider=self.name) from e

        return [np.asarray(vector, dtype=float).tolist() for vector in embeddings]


def get_embedding_service(
    mode: str = "openai",
    model: str = "",
    openai_api_key: Optional[str] = None,
    openai_base_url: Optional[str] = None,
) -> Optional[EmbeddingService]:
    """
    Build the embedding service for the configured mode.

    Args:
        mode: Embedding mode (openai, femb, lexical)
        model: Model name; empty selects the mode's default
        openai_api_key: Required for openai mode

    Returns:
        EmbeddingService instance, or None for lexical retrieval
    """
    mode = (mode or "openai").lower()

    if mode in ("lexical", "none"):
        logger.info("Embedding mode '%s': using lexical retrieval", mode)
        return None

    if mode == "openai":
        if not openai_api_key:
            logger.warning("OpenAI API key not provided, falling back to lexical retrieval")
            return None
        service = OpenAIEmbeddingService(
            api_key=openai_api_key,
            model=model or DEFAULT_MODELS["openai"],
            base_url=openai_base_url,
        )
    elif mode == "femb":
        service = FastEmbedService(model=model or DEFAULT_MODELS["femb"])
    else:
        raise ValueError(f"Unsupported embedding mode: {mode}")

    logger.info("Initialized %s embedding service (model=%s)", service.name, service.model)
    return service
