"""
Synthesizer

LLM-based answer synthesis from retrieved chunks.

Key principle: the answer is grounded in the document only.
- Retrieved chunks are shown to the model as numbered context entries
- The model must cite entries and refuse when the context lacks the answer
- Citations are verified against the chunks actually retrieved
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..common.language import resolve_answer_language
from ..common.llm_client import LLMClient
from ..common.retry import GENERATION_RETRY_CONFIG, retry_with_backoff
from ..common.schemas import (
    Citation,
    NO_CONTEXT_ANSWER,
    render_system_prompt,
    render_user_prompt,
)
from .citations import DEFAULT_PREVIEW_CHARS, parse_response
from .vector_index import RetrievalResult

logger = logging.getLogger("docqa.retriever.synthesizer")


@dataclass
class SynthesizedAnswer:
    """Synthesized answer from LLM"""
    answer: str
    citations: List[Citation]
    warnings: List[str] = field(default_factory=list)  # e.g. "citations inferred"
    language: Optional[str] = None  # None means English


class Synthesizer:
    """
    Composes a cited answer from retrieved chunks with one model call.

    Model errors are not swallowed: RateLimited is retried, anything else
    (including a still rate-limited final attempt) propagates.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        retry_config: Optional[dict] = None,
        preview_chars: int = DEFAULT_PREVIEW_CHARS,
    ):
        """
        Initialize synthesizer.

        Args:
            llm_client: Generator for the configured provider
            retry_config: Backoff settings for rate-limited generation calls
            preview_chars: Length of citation previews
        """
        self._llm = llm_client
        self._retry_config = retry_config or GENERATION_RETRY_CONFIG
        self._preview_chars = preview_chars

    @property
    def has_llm(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def synthesize(
        self,
        question: str,
        results: Sequence[RetrievalResult],
        language: Optional[str] = None,
    ) -> SynthesizedAnswer:
        """
        Answer question from results.

        Args:
            question: The user's question
            results: Retrieved chunks, most relevant first
            language: Answer language; detected from the question when None

        Returns:
            SynthesizedAnswer with at least one citation whenever results
            is non-empty
        """
        if not results:
            return SynthesizedAnswer(
                answer=NO_CONTEXT_ANSWER,
                citations=[],
                warnings=["No relevant chunks retrieved"],
            )

        answer_language = resolve_answer_language(question, language)
        system = render_system_prompt(answer_language)
        prompt = render_user_prompt(question, [r.chunk for r in results])

        logger.debug(
            "Generating answer from %d chunks (language=%s)",
            len(results), answer_language or "English",
        )
        response = retry_with_backoff(
            lambda: self._llm.generate(prompt, system=system),
            config=self._retry_config,
        )

        answer, citations, used_fallback = parse_response(response, results, self._preview_chars)

        warnings = []
        if used_fallback:
            warnings.append("Model did not list citations; citing all retrieved chunks")

        return SynthesizedAnswer(
            answer=answer,
            citations=citations,
            warnings=warnings,
            language=answer_language,
        )
