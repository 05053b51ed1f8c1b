"""
Vector Index

In-memory cosine-similarity index over the chunks of the active document.

The chunks and their vectors form one IndexGeneration. A new upload builds a
whole new generation and publishes it with a single reference assignment, so
a search always runs against one complete snapshot and readers never lock.
Each published generation is saved to a JSON snapshot so the document
survives a restart.
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from ..common.errors import DimensionMismatch, PersistenceWarning
from ..common.schemas import Chunk

logger = logging.getLogger("docqa.retriever.vector_index")

Vector = Sequence[float]


@dataclass
class RetrievalResult:
    """A chunk returned for a query, with its similarity"""
    chunk: Chunk
    similarity: float  # cosine similarity in [-1, 1]
    lexical_score: Optional[int] = None  # raw keyword score (lexical retrieval only)

    @property
    def chunk_id(self) -> str:
        return self.chunk.id

    def to_dict(self) -> dict:
        data = self.chunk.model_dump()
        data["similarity"] = self.similarity
        if self.lexical_score is not None:
            data["lexical_score"] = self.lexical_score
        return data


@dataclass(frozen=True)
class IndexGeneration:
    """One complete, immutable (chunks, vectors) snapshot"""
    number: int
    chunks: Tuple[Chunk, ...]
    matrix: np.ndarray  # shape (len(chunks), dimension), read-only
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def size(self) -> int:
        return len(self.chunks)

    @property
    def dimension(self) -> int:
        return int(self.matrix.shape[1]) if self.matrix.ndim == 2 else 0


def _empty_generation(number: int = 0) -> IndexGeneration:
    matrix = np.zeros((0, 0), dtype=np.float64)
    matrix.setflags(write=False)
    return IndexGeneration(number=number, chunks=(), matrix=matrix)


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Cosine similarity of two vectors.

    Defined as 0.0 when either vector has zero norm. Clipped to [-1, 1]
    against floating point drift.

    Raises:
        DimensionMismatch: If the vectors differ in length
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise DimensionMismatch(f"Vector dimension mismatch: {va.shape} vs {vb.shape}")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.clip(np.dot(va, vb) / (norm_a * norm_b), -1.0, 1.0))


def _to_matrix(embeddings: Sequence[Vector], count: int) -> np.ndarray:
    if count == 0:
        return np.zeros((0, 0), dtype=np.float64)
    lengths = {len(vector) for vector in embeddings}
    if len(lengths) != 1:
        raise DimensionMismatch(f"Embeddings have mixed dimensions: {sorted(lengths)}")
    return np.asarray(embeddings, dtype=np.float64).reshape(count, lengths.pop())


class VectorIndex:
    """
    Holds the active index generation and answers similarity searches.

    Writers (replace_all, clear, load) are serialised by a lock; search only
    reads the current generation reference.
    """

    def __init__(self, snapshot_path: Optional[Union[str, Path]] = None):
        """
        Initialize an empty index.

        Args:
            snapshot_path: Where to persist generations (None disables persistence)
        """
        self._snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._generation = _empty_generation()
        self._write_lock = threading.Lock()

    @property
    def generation(self) -> IndexGeneration:
        return self._generation

    @property
    def dimension(self) -> int:
        return self._generation.dimension

    @property
    def snapshot_path(self) -> Optional[Path]:
        return self._snapshot_path

    def size(self) -> int:
        return self._generation.size

    def is_empty(self) -> bool:
        return self.size() == 0

    def chunks(self) -> Tuple[Chunk, ...]:
        """Chunks of the current generation, in insertion order"""
        return self._generation.chunks

    def replace_all(
        self,
        chunks: Sequence[Chunk],
        embeddings: Sequence[Vector],
    ) -> Optional[PersistenceWarning]:
        """
        Publish a new generation built from chunks and their embeddings.

        Args:
            chunks: Chunks of the new document
            embeddings: One vector per chunk, same order, same dimension

        Returns:
            PersistenceWarning if the snapshot could not be written, else None.
            The new generation is live either way.

        Raises:
            DimensionMismatch: If counts differ or vectors are ragged
        """
        if len(chunks) != len(embeddings):
            raise DimensionMismatch(
                f"Number of chunks ({len(chunks)}) must match number of embeddings ({len(embeddings)})"
            )

        matrix = _to_matrix(embeddings, len(chunks))
        matrix.setflags(write=False)

        with self._write_lock:
            generation = IndexGeneration(
                number=self._generation.number + 1,
                chunks=tuple(chunks),
                matrix=matrix,
            )
            self._generation = generation
            logger.info(
                "Published index generation %d (%d chunks, dim=%d)",
                generation.number, generation.size, generation.dimension,
            )
            return self._save(generation)

    def clear(self) -> Optional[PersistenceWarning]:
        """Drop the active document and persist the empty generation"""
        with self._write_lock:
            generation = _empty_generation(self._generation.number + 1)
            self._generation = generation
            logger.info("Cleared index (generation %d)", generation.number)
            return self._save(generation)

    def search(self, query_vector: Vector, top_k: int = 5) -> List[RetrievalResult]:
        """
        Rank the current generation's chunks by cosine similarity.

        Args:
            query_vector: Query embedding
            top_k: Maximum number of results

        Returns:
            min(top_k, size) results, most similar first; equal similarities
            keep insertion order. Empty list for an empty index.

        Raises:
            DimensionMismatch: If the query length differs from the stored vectors
        """
        generation = self._generation  # one snapshot for the whole search
        if generation.size == 0 or top_k <= 0:
            return []

        query = np.asarray(query_vector, dtype=np.float64)
        if query.ndim != 1 or query.shape[0] != generation.dimension:
            raise DimensionMismatch(
                f"Query vector has dimension {query.shape[-1] if query.ndim else 0}, "
                f"index has {generation.dimension}"
            )

        similarities = self._similarities(generation.matrix, query)

        # Stable sort on negated scores keeps insertion order among ties
        order = np.argsort(-similarities, kind="stable")[:top_k]
        return [
            RetrievalResult(chunk=generation.chunks[i], similarity=float(similarities[i]))
            for i in order
        ]

    @staticmethod
    def _similarities(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
        """Cosine similarity of every row against query; 0 where a norm is 0"""
        row_norms = np.linalg.norm(matrix, axis=1)
        query_norm = np.linalg.norm(query)
        dots = matrix @ query
        denominators = row_norms * query_norm
        similarities = np.zeros(matrix.shape[0], dtype=np.float64)
        nonzero = denominators > 0
        similarities[nonzero] = dots[nonzero] / denominators[nonzero]
        return np.clip(similarities, -1.0, 1.0)

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def save(self) -> Optional[PersistenceWarning]:
        """Write the current generation to the snapshot file."""
        with self._write_lock:
            return self._save(self._generation)

    def _save(self, generation: IndexGeneration) -> Optional[PersistenceWarning]:
        """Write the snapshot; failures are reported, never raised"""
        if self._snapshot_path is None:
            return None

        data = {
            "documents": [chunk.model_dump() for chunk in generation.chunks],
            "embeddings": generation.matrix.tolist() if generation.size else [],
        }

        tmp_name = None
        try:
            self._snapshot_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self._snapshot_path.parent),
                prefix=self._snapshot_path.name,
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_name, self._snapshot_path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name and os.path.exists(tmp_name):
                os.remove(tmp_name)
            logger.warning(
                "Failed to save index snapshot to %s: %s. "
                "The document stays queryable but will not survive a restart.",
                self._snapshot_path, e,
            )
            return PersistenceWarning(f"Index snapshot not saved: {e}")

        logger.info("Saved index snapshot to %s", self._snapshot_path)
        return None

    def load(self) -> Optional[PersistenceWarning]:
        """
        Restore the generation saved by a previous process.

        A missing snapshot leaves the index empty. An unreadable or
        inconsistent snapshot is reported and also leaves the index empty.
        """
        if self._snapshot_path is None or not self._snapshot_path.exists():
            return None

        try:
            with open(self._snapshot_path, encoding="utf-8") as f:
                data = json.load(f)
            chunks = [Chunk.model_validate(doc) for doc in data.get("documents", [])]
            embeddings = data.get("embeddings", [])
            if len(chunks) != len(embeddings):
                raise DimensionMismatch(
                    f"snapshot has {len(chunks)} documents and {len(embeddings)} embeddings"
                )
            matrix = _to_matrix(embeddings, len(chunks))
        except Exception as e:
            logger.warning("Failed to load index snapshot %s: %s", self._snapshot_path, e)
            return PersistenceWarning(f"Index snapshot not loaded: {e}")

        matrix.setflags(write=False)
        with self._write_lock:
            self._generation = IndexGeneration(
                number=self._generation.number + 1,
                chunks=tuple(chunks),
                matrix=matrix,
            )
        logger.info("Loaded %d chunks from index snapshot %s", len(chunks), self._snapshot_path)
        return None
