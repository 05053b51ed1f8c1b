"""
Ingestor

Turns one document into a new index generation:
chunk → embed in batches → replace the index contents in one swap.

Ingestion is all-or-nothing. Until every chunk has a vector the previous
generation stays live and keeps answering queries.
"""

import time
import logging
from typing import Callable, Iterable, List, Optional, Sequence

from ..common.config import ChunkingConfig, IngestConfig
from ..common.embedding_service import EmbeddingService
from ..common.errors import DocQAError, ValidationError
from ..common.retry import EMBEDDING_RETRY_CONFIG, retry_with_backoff
from ..common.schemas import Chunk, DocumentSummary
from ..retriever.vector_index import VectorIndex
from .chunker import PageInput, chunk_pages, chunk_text

logger = logging.getLogger("docqa.ingest.ingestor")


class Ingestor:
    """
    Chunks, embeds and indexes a document.

    Embedding calls go out in batches with a pause between batches. A batch
    that fails is retried text by text; a single text that still fails
    aborts the whole ingest.
    """

    def __init__(
        self,
        index: VectorIndex,
        embedding_service: Optional[EmbeddingService] = None,
        chunking: Optional[ChunkingConfig] = None,
        ingest: Optional[IngestConfig] = None,
        retry_config: Optional[dict] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize ingestor.

        Args:
            index: Index that receives the new generation
            embedding_service: Embedder; None builds a lexical-only generation
            chunking: Chunk size and overlap
            ingest: Batch size and delay between batches
            retry_config: Backoff settings for rate-limited embedding calls
            sleep: Sleep function, replaceable in tests
        """
        self._index = index
        self._embedding = embedding_service
        self._chunking = chunking or ChunkingConfig()
        self._ingest = ingest or IngestConfig()
        self._retry_config = retry_config or EMBEDDING_RETRY_CONFIG
        self._sleep = sleep

    def chunk(
        self,
        text: Optional[str] = None,
        pages: Optional[Iterable[PageInput]] = None,
    ) -> List[Chunk]:
        """Chunk raw text or per-page text with the configured sizes."""
        if pages is not None:
            return chunk_pages(pages, self._chunking.chunk_size, self._chunking.overlap)
        return chunk_text(text or "", self._chunking.chunk_size, self._chunking.overlap)

    def embed_chunks(self, chunks: Sequence[Chunk]) -> List[List[float]]:
        """
        Embed chunk texts, preserving order.

        Without an embedding service every chunk gets an empty vector
        (a lexical-only generation).
        """
        if self._embedding is None:
            return [[] for _ in chunks]

        texts = [chunk.text for chunk in chunks]
        batch_size = max(1, self._ingest.batch_size)
        total_batches = (len(texts) + batch_size - 1) // batch_size
        vectors: List[List[float]] = []

        for batch_num, start in enumerate(range(0, len(texts), batch_size), 1):
            if batch_num > 1 and self._ingest.batch_delay > 0:
                self._sleep(self._ingest.batch_delay)

            batch = texts[start:start + batch_size]
            logger.debug("Embedding batch %d/%d (%d texts)", batch_num, total_batches, len(batch))
            vectors.extend(self._embed_batch(batch, batch_num))

        return vectors

    def _embed_batch(self, batch: List[str], batch_num: int) -> List[List[float]]:
        try:
            return retry_with_backoff(
                lambda: self._embedding.embed_batch(batch),
                config=self._retry_config,
                sleep=self._sleep,
            )
        except DocQAError as e:
            logger.warning(
                "Batch %d embedding failed (%s), falling back to one text at a time",
                batch_num, e,
            )

        return [
            retry_with_backoff(
                lambda text=text: self._embedding.embed(text),
                config=self._retry_config,
                sleep=self._sleep,
            )
            for text in batch
        ]

    def ingest(
        self,
        text: Optional[str] = None,
        pages: Optional[Sequence[PageInput]] = None,
        filename: Optional[str] = None,
    ) -> DocumentSummary:
        """
        Replace the indexed document.

        Args:
            text: Whole document text
            pages: Per-page text, page-aware chunking
            filename: Display name reported in the summary

        Returns:
            DocumentSummary of the new generation

        Raises:
            ValidationError: Neither or both of text/pages given, or the
                document has no text
            RateLimited / UpstreamFailure: Embedding failed; index unchanged
        """
        if (text is None) == (pages is None):
            raise ValidationError("Provide exactly one of text or pages")

        pages = list(pages) if pages is not None else None
        chunks = self.chunk(text=text, pages=pages)
        if not chunks:
            raise ValidationError("Document contains no text to index")

        logger.info(
            "Ingesting %s: %d chunks (chunk_size=%d, overlap=%d)",
            filename or "document", len(chunks),
            self._chunking.chunk_size, self._chunking.overlap,
        )

        vectors = self.embed_chunks(chunks)
        persistence_warning = self._index.replace_all(chunks, vectors)

        warnings = []
        if persistence_warning is not None:
            warnings.append(persistence_warning.message)

        return DocumentSummary(
            num_chunks=len(chunks),
            num_pages=len(pages) if pages is not None else None,
            filename=filename,
            generation=self._index.generation.number,
            warnings=warnings,
        )
