"""
Paragraph-based text chunking.

Chunking is:
- Deterministic: same input and sizes always give the same chunks
- Paragraph-preserving: a paragraph is never split, even when it alone is
  longer than chunk_size (it is emitted whole so sentences stay intact)
- Overlap-aware: each chunk after the first starts with the tail of the
  previous one
- Page-aware on request: chunk_pages() never lets a chunk span two pages
"""

import re
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ..common.errors import ValidationError
from ..common.schemas import Chunk

logger = logging.getLogger("docqa.ingest.chunker")

DEFAULT_CHUNK_SIZE = 1000  # characters
DEFAULT_OVERLAP = 200  # characters carried into the next chunk

PARAGRAPH_SEPARATOR = "\n\n"

_BLANK_LINE_RUN = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class PageText:
    """Raw text of one page, as produced by the text extractor"""
    page_number: int
    text: str


PageInput = Union[PageText, Tuple[int, str], dict]


def split_paragraphs(text: str) -> List[str]:
    """
    Split text on blank-line runs and normalize whitespace.

    Every whitespace run inside a paragraph collapses to a single space;
    empty paragraphs are dropped.
    """
    if not text:
        return []
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs = (" ".join(part.split()) for part in _BLANK_LINE_RUN.split(text))
    return [p for p in paragraphs if p]


def normalize_text(text: str) -> str:
    """Whitespace-normalized text exactly as the chunker sees it"""
    return PARAGRAPH_SEPARATOR.join(split_paragraphs(text))


def _overlap_tail(buffer: str, overlap: int, room: int) -> str:
    """Last characters of a sealed buffer to seed the next one with.

    The tail is shortened to `room` so the seeded buffer still fits in
    chunk_size; leading whitespace is dropped.
    """
    size = min(overlap, room)
    if size <= 0:
        return ""
    return buffer[-size:].lstrip()


def _pack_paragraphs(paragraphs: Sequence[str], chunk_size: int, overlap: int) -> List[Tuple[str, int]]:
    """Accumulate paragraphs into (text, carried_overlap) pieces."""
    pieces: List[Tuple[str, int]] = []
    buffer = ""
    carried = 0

    for paragraph in paragraphs:
        if buffer and len(buffer) + len(PARAGRAPH_SEPARATOR) + len(paragraph) > chunk_size:
            pieces.append((buffer, carried))

            room = chunk_size - len(PARAGRAPH_SEPARATOR) - len(paragraph)
            tail = _overlap_tail(buffer, overlap, room)
            if tail:
                buffer = tail + PARAGRAPH_SEPARATOR + paragraph
                carried = len(tail)
            else:
                buffer = paragraph
                carried = 0
        elif buffer:
            buffer = buffer + PARAGRAPH_SEPARATOR + paragraph
        else:
            buffer = paragraph

    if buffer:
        pieces.append((buffer, carried))

    return pieces


def _validate_sizes(chunk_size: int, overlap: int) -> None:
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ValueError(f"overlap must not be negative, got {overlap}")


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> List[Chunk]:
    """
    Split a document into overlapping, bounded-size chunks.

    Args:
        text: Raw document text
        chunk_size: Maximum chunk length in characters (single oversized
            paragraphs excepted)
        overlap: Characters of the previous chunk repeated at the start of
            the next one

    Returns:
        Chunks with ids chunk_1..chunk_N; empty list for empty text
    """
    _validate_sizes(chunk_size, overlap)

    pieces = _pack_paragraphs(split_paragraphs(text), chunk_size, overlap)
    if not pieces:
        logger.debug("Empty text provided for chunking")
        return []

    return [
        Chunk.create(n, piece, overlap=carried)
        for n, (piece, carried) in enumerate(pieces, 1)
    ]


def _coerce_page_number(value) -> Optional[int]:
    """Page numbers are positive ints; digit strings such as "3" are accepted."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"Page number must be a positive integer, got {value!r}")
    return value


def _page_fields(page: PageInput) -> Tuple[Optional[int], str]:
    if isinstance(page, PageText):
        page_number, text = page.page_number, page.text
    elif isinstance(page, dict):
        page_number, text = page.get("page_number", page.get("pageNumber")), page.get("text", "")
    else:
        try:
            page_number, text = page
        except (TypeError, ValueError):
            raise ValidationError(
                f"Each page must be a (page_number, text) pair or a dict, got {type(page).__name__}"
            ) from None

    if text is not None and not isinstance(text, str):
        raise ValidationError(f"Page text must be a string, got {type(text).__name__}")
    return _coerce_page_number(page_number), text


def chunk_pages(
    pages: Iterable[PageInput],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> List[Chunk]:
    """
    Chunk each page independently and tag chunks with their page number.

    Chunks never span pages; overlap does not carry across a page boundary.
    Pages without text are skipped. Ids run sequentially over the whole
    document.

    Args:
        pages: PageText objects, (page_number, text) pairs or dicts with
            page_number/text keys

    Raises:
        ValidationError: If a page number is not a positive integer or a
            page is malformed
    """
    _validate_sizes(chunk_size, overlap)

    chunks: List[Chunk] = []
    for page in pages:
        page_number, text = _page_fields(page)
        pieces = _pack_paragraphs(split_paragraphs(text or ""), chunk_size, overlap)
        if not pieces:
            logger.debug("Skipping empty page %s", page_number)
            continue
        for piece, carried in pieces:
            chunks.append(Chunk.create(len(chunks) + 1, piece, page_number=page_number, overlap=carried))

    return chunks
