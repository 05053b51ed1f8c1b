"""
Citation parsing for model responses.

The model answers in the layout

    Answer:
    <text with [n] markers>

    Citations:
    - [C1 | Page 3]
    - [C2 | Page 7]

Citation numbers are resolved against the retrieved chunks (1-based, in
retrieval order). A citation keeps the page label the model wrote after
"Page"; bare [Cn] entries and fallback citations use the chunk's own page.
Previews always come from the chunk text.
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple, Union

from ..common.schemas import Citation
from .vector_index import RetrievalResult

logger = logging.getLogger("docqa.retriever.citations")

DEFAULT_PREVIEW_CHARS = 100

_ANSWER_SECTION = re.compile(r"^[ \t]*Answer:\s*([\s\S]*?)(?=Citations:|\Z)", re.IGNORECASE | re.MULTILINE)
_CITATIONS_SECTION = re.compile(r"Citations:([\s\S]*)$", re.IGNORECASE)
_CITATION_ENTRY = re.compile(r"\[C(\d+)(?:\s*\|\s*Page\s*([^\]]*?))?\s*\]", re.IGNORECASE)


def extract_answer(response: str) -> str:
    """Text of the Answer: section, or the response without its citations."""
    match = _ANSWER_SECTION.search(response)
    if match:
        return match.group(1).strip()
    citations = _CITATIONS_SECTION.search(response)
    if citations:
        return response[:citations.start()].strip()
    return response.strip()


def normalize_markers(answer: str) -> str:
    """Rewrite [C2 | Page 3] and [C2] markers inside the answer to [2]."""
    return _CITATION_ENTRY.sub(lambda m: f"[{m.group(1)}]", answer)


def parse_page_label(raw: Optional[str]) -> Optional[Union[int, str]]:
    """Page label as written by the model; numeric labels become ints."""
    if raw is None:
        return None
    label = raw.strip()
    if not label:
        return None
    return int(label) if label.isdigit() else label


def make_citation(
    index: int,
    result: RetrievalResult,
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
    page_label: Optional[Union[int, str]] = None,
) -> Citation:
    chunk = result.chunk
    return Citation(
        index=index,
        chunk_id=chunk.id,
        page_number=page_label if page_label is not None else chunk.page_label,
        preview=chunk.preview(preview_chars),
    )


def fallback_citations(
    results: Sequence[RetrievalResult],
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
) -> List[Citation]:
    """One citation per retrieved chunk, in retrieval order."""
    return [make_citation(i, result, preview_chars) for i, result in enumerate(results, 1)]


def extract_citations(
    response: str,
    results: Sequence[RetrievalResult],
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
) -> List[Citation]:
    """
    Citations listed in the response's Citations: section.

    Numbers outside 1..len(results) are dropped; a number cited twice is
    kept once, at its first position.
    """
    section = _CITATIONS_SECTION.search(response)
    if not section:
        return []

    citations: List[Citation] = []
    seen = set()
    for line in section.group(1).splitlines():
        for match in _CITATION_ENTRY.finditer(line):
            index = int(match.group(1))
            if not 1 <= index <= len(results):
                logger.debug("Ignoring citation C%d (only %d chunks retrieved)", index, len(results))
                continue
            if index in seen:
                continue
            seen.add(index)
            citations.append(
                make_citation(index, results[index - 1], preview_chars, parse_page_label(match.group(2)))
            )
    return citations


def parse_response(
    response: str,
    results: Sequence[RetrievalResult],
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
) -> Tuple[str, List[Citation], bool]:
    """
    Split a model response into answer text and verified citations.

    Args:
        response: Raw model output
        results: The chunks the model was shown, in context order
        preview_chars: Preview length for each citation

    Returns:
        (answer, citations, used_fallback). When no citation could be parsed
        every retrieved chunk is cited instead and used_fallback is True.
    """
    answer = normalize_markers(extract_answer(response or ""))
    citations = extract_citations(response or "", results, preview_chars)

    if citations or not results:
        return answer, citations, False

    logger.info("No citations parsed from model response, citing all %d retrieved chunks", len(results))
    return answer, fallback_citations(results, preview_chars), True
