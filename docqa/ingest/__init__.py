"""
docqa Ingest

Chunking and embedding of uploaded documents.
"""

from .chunker import PageText, chunk_pages, chunk_text, normalize_text
from .ingestor import Ingestor

__all__ = [
    "PageText",
    "chunk_pages",
    "chunk_text",
    "normalize_text",
    "Ingestor",
]
