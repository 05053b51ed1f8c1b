"""
Document Schemas

Chunks are the unit of indexing and citation. They are created once by the
chunker, persisted in the index snapshot, and never mutated afterwards.
"""

import math
from datetime import datetime, timezone
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters."""
    return math.ceil(len(text) / 4)


def format_chunk_id(n: int) -> str:
    """Chunk ids are 1-based and sequential within one generation."""
    return f"chunk_{n}"


class Chunk(BaseModel):
    """A bounded contiguous slice of document text"""
    model_config = ConfigDict(frozen=True)

    id: str
    text: str = Field(min_length=1)
    page_number: Optional[int] = None
    token_estimate: int = 0
    overlap: int = 0  # Leading characters carried over from the previous chunk

    @classmethod
    def create(cls, n: int, text: str, page_number: Optional[int] = None, overlap: int = 0) -> "Chunk":
        return cls(
            id=format_chunk_id(n),
            text=text,
            page_number=page_number,
            token_estimate=estimate_tokens(text),
            overlap=overlap,
        )

    @property
    def page_label(self) -> Union[int, str]:
        return self.page_number if self.page_number is not None else "N/A"

    def preview(self, max_chars: int = 100) -> str:
        """Truncated chunk text for citation display"""
        if len(self.text) <= max_chars:
            return self.text
        return self.text[:max_chars] + "..."


class Citation(BaseModel):
    """Pointer from an answer marker back to a retrieved chunk"""
    model_config = ConfigDict(frozen=True)

    index: int  # 1-based, matches the [n] marker in the answer
    chunk_id: str
    page_number: Union[int, str]
    preview: str


class DocumentSummary(BaseModel):
    """Result of ingesting one document"""
    num_chunks: int
    num_pages: Optional[int] = None
    filename: Optional[str] = None
    generation: int = 0
    ingested_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    warnings: List[str] = Field(default_factory=list)
