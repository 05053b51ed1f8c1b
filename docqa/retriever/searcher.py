"""
Searcher

Finds the chunks of the active document most relevant to a question.

Two retrievers share one interface and are chosen once at startup:
- Retriever: embeds the question and ranks chunks by cosine similarity
- LexicalRetriever: keyword counting, used when no embedding model is set up
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from ..common.embedding_service import EmbeddingService
from ..common.errors import NotReady
from ..common.retry import EMBEDDING_RETRY_CONFIG, retry_with_backoff
from .vector_index import RetrievalResult, VectorIndex

logger = logging.getLogger("docqa.retriever.searcher")

MIN_KEYWORD_LENGTH = 4  # words of 3 characters or fewer are ignored
FULL_QUERY_BONUS = 10


class BaseRetriever(ABC):
    """Top-K retrieval over the current index generation."""

    name: str = "base"

    def __init__(self, index: VectorIndex):
        self._index = index

    @property
    def index(self) -> VectorIndex:
        return self._index

    def retrieve(self, question: str, top_k: int = 5) -> List[RetrievalResult]:
        """
        Return the top_k most relevant chunks for question.

        Raises:
            NotReady: If no document is indexed
        """
        if self._index.is_empty():
            raise NotReady()
        results = self._retrieve(question, top_k)
        logger.debug(
            "%s retrieval returned %d chunks: %s",
            self.name, len(results), [r.chunk_id for r in results],
        )
        return results

    @abstractmethod
    def _retrieve(self, question: str, top_k: int) -> List[RetrievalResult]:
        ...


class Retriever(BaseRetriever):
    """
    Embedding-based retrieval.

    One embedding call per question, retried on rate limiting, no caching.
    """

    name = "embedding"

    def __init__(
        self,
        embedding_service: EmbeddingService,
        index: VectorIndex,
        retry_config: Optional[dict] = None,
    ):
        """
        Initialize retriever.

        Args:
            embedding_service: For embedding questions
            index: Index holding the document's chunks
            retry_config: Backoff settings for rate-limited embedding calls
        """
        super().__init__(index)
        self._embedding = embedding_service
        self._retry_config = retry_config or EMBEDDING_RETRY_CONFIG

    def _retrieve(self, question: str, top_k: int) -> List[RetrievalResult]:
        query_vector = retry_with_backoff(
            lambda: self._embedding.embed(question),
            config=self._retry_config,
        )
        return self._index.search(query_vector, top_k)


def score_chunk(text: str, query: str, keywords: List[str]) -> int:
    """Keyword occurrence count, plus a bonus when the whole query appears."""
    text = text.lower()
    score = sum(text.count(word) for word in keywords)
    if query and query in text:
        score += FULL_QUERY_BONUS
    return score


def extract_keywords(question: str) -> List[str]:
    return [word for word in question.lower().split() if len(word) >= MIN_KEYWORD_LENGTH]


class LexicalRetriever(BaseRetriever):
    """
    Keyword-count retrieval without embeddings.

    Always returns up to top_k chunks, even when nothing matches, so the
    answer step can still say the document does not contain the answer.
    """

    name = "lexical"

    def _retrieve(self, question: str, top_k: int) -> List[RetrievalResult]:
        if top_k <= 0:
            return []

        query = question.lower().strip()
        keywords = extract_keywords(question)
        chunks = self._index.chunks()

        scores = [score_chunk(chunk.text, query, keywords) for chunk in chunks]
        best = max(scores) if scores else 0

        # sorted() is stable: equal scores keep document order
        ranked = sorted(range(len(chunks)), key=lambda i: scores[i], reverse=True)[:top_k]
        return [
            RetrievalResult(
                chunk=chunks[i],
                similarity=scores[i] / best if best else 0.0,
                lexical_score=scores[i],
            )
            for i in ranked
        ]
