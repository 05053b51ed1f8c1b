"""
Document QA Pipeline

Wires chunking, embedding, the vector index, retrieval and answer synthesis
into the four operations callers use: ingest, query, status and clear.

Variants (embedding backend, retriever, LLM provider) are selected once in
build_pipeline() from the loaded configuration.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .common.config import DocQAConfig
from .common.embedding_service import EmbeddingService, get_embedding_service
from .common.errors import ValidationError
from .common.llm_client import LLMClient, create_llm_client
from .common.schemas import Citation, DocumentSummary
from .ingest.chunker import PageInput
from .ingest.ingestor import Ingestor
from .retriever.searcher import BaseRetriever, LexicalRetriever, Retriever
from .retriever.synthesizer import Synthesizer
from .retriever.vector_index import VectorIndex

logger = logging.getLogger("docqa.pipeline")


@dataclass
class QueryResult:
    """Answer to one question with its evidence"""
    question: str
    answer: str
    citations: List[Citation]
    retrieved_chunks: List[Dict[str, Any]]  # chunk fields plus similarity
    warnings: List[str] = field(default_factory=list)
    language: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "answer": self.answer,
            "citations": [c.model_dump() for c in self.citations],
            "retrieved_chunks": self.retrieved_chunks,
            "warnings": self.warnings,
            "language": self.language,
        }


class DocumentQAPipeline:
    """
    One active document per process.

    Each ingest replaces the document wholesale. Queries run against the
    index generation current when they start.
    """

    def __init__(
        self,
        index: VectorIndex,
        ingestor: Ingestor,
        retriever: BaseRetriever,
        synthesizer: Synthesizer,
        embedding_service: Optional[EmbeddingService] = None,
        llm_client: Optional[LLMClient] = None,
        default_topk: int = 5,
        startup_warnings: Optional[List[str]] = None,
    ):
        self.index = index
        self.ingestor = ingestor
        self.retriever = retriever
        self.synthesizer = synthesizer
        self.embedding_service = embedding_service
        self.llm_client = llm_client
        self.default_topk = default_topk
        self._summary: Optional[DocumentSummary] = None
        self._startup_warnings = list(startup_warnings or [])

        if not index.is_empty():
            self._summary = self._summary_from_index()

    def _summary_from_index(self) -> DocumentSummary:
        """Summary of a generation restored from the snapshot."""
        pages = {c.page_number for c in self.index.chunks() if c.page_number is not None}
        generation = self.index.generation
        return DocumentSummary(
            num_chunks=generation.size,
            num_pages=len(pages) or None,
            generation=generation.number,
            ingested_at=generation.created_at,
        )

    @property
    def document(self) -> Optional[DocumentSummary]:
        """Summary of the indexed document, None when nothing is indexed"""
        if self.index.is_empty():
            return None
        return self._summary

    def ingest(
        self,
        text: Optional[str] = None,
        pages: Optional[Sequence[PageInput]] = None,
        filename: Optional[str] = None,
    ) -> DocumentSummary:
        """
        Index a new document, replacing the current one.

        Raises:
            ValidationError: No usable text
            RateLimited / UpstreamFailure: Embedding failed; the previous
                document stays indexed
        """
        summary = self.ingestor.ingest(text=text, pages=pages, filename=filename)
        self._summary = summary
        logger.info(
            "Document %s indexed: %d chunks, generation %d",
            filename or "<text>", summary.num_chunks, summary.generation,
        )
        return summary

    def query(
        self,
        question: str,
        top_k: Optional[int] = None,
        language: Optional[str] = None,
    ) -> QueryResult:
        """
        Answer a question about the indexed document.

        Args:
            question: Natural-language question
            top_k: Chunks to retrieve (default from config)
            language: Answer language; detected from the question when None

        Raises:
            ValidationError: Empty question or top_k < 1
            NotReady: No document indexed
        """
        if not question or not question.strip():
            raise ValidationError("Question must not be empty")
        top_k = self.default_topk if top_k is None else top_k
        if top_k < 1:
            raise ValidationError(f"top_k must be at least 1, got {top_k}")

        question = question.strip()
        results = self.retriever.retrieve(question, top_k)
        synthesized = self.synthesizer.synthesize(question, results, language=language)

        return QueryResult(
            question=question,
            answer=synthesized.answer,
            citations=synthesized.citations,
            retrieved_chunks=[r.to_dict() for r in results],
            warnings=synthesized.warnings,
            language=synthesized.language,
        )

    def clear(self) -> List[str]:
        """Drop the indexed document. Returns persistence warnings, if any."""
        warning = self.index.clear()
        self._summary = None
        return [warning.message] if warning is not None else []

    def status(self) -> Dict[str, Any]:
        """Readiness and configuration overview"""
        document = self.document
        llm = self.llm_client
        return {
            "ready": not self.index.is_empty(),
            "retriever": self.retriever.name,
            "embedding": {
                "backend": self.embedding_service.name if self.embedding_service else "lexical",
                "model": self.embedding_service.model if self.embedding_service else None,
                "dimension": self.index.dimension,
            },
            "generator": {
                "provider": llm.provider if llm else None,
                "model": llm.model if llm else None,
                "available": self.synthesizer.has_llm,
            },
            "num_chunks": self.index.size(),
            "generation": self.index.generation.number,
            "document": document.model_dump() if document else None,
            "warnings": list(self._startup_warnings),
        }


def build_pipeline(config: DocQAConfig) -> DocumentQAPipeline:
    """
    Select the embedding, retrieval and generation variants and restore the
    last indexed document from the snapshot.
    """
    retry_config = config.retry_config()

    embedding = get_embedding_service(
        mode=config.embedding.mode,
        model=config.embedding.model,
        openai_api_key=config.llm.openai_api_key,
        openai_base_url=config.llm.openai_base_url,
    )

    index = VectorIndex(snapshot_path=config.storage.snapshot_path)
    load_warning = index.load()

    if embedding is not None:
        retriever: BaseRetriever = Retriever(embedding, index, retry_config=retry_config)
        if not index.is_empty() and index.dimension == 0:
            logger.warning(
                "Snapshot holds a lexical-only index but %s embeddings are configured; "
                "re-ingest the document to enable vector search",
                embedding.name,
            )
    else:
        retriever = LexicalRetriever(index)

    llm_client = create_llm_client(config.llm)
    if not llm_client.is_available:
        logger.warning("No LLM configured for provider '%s'; questions cannot be answered", config.llm.provider)

    pipeline = DocumentQAPipeline(
        index=index,
        ingestor=Ingestor(
            index=index,
            embedding_service=embedding,
            chunking=config.chunking,
            ingest=config.ingest,
            retry_config=retry_config,
        ),
        retriever=retriever,
        synthesizer=Synthesizer(
            llm_client,
            retry_config=retry_config,
            preview_chars=config.retriever.preview_chars,
        ),
        embedding_service=embedding,
        llm_client=llm_client,
        default_topk=config.retriever.topk,
        startup_warnings=[load_warning.message] if load_warning is not None else None,
    )
    return pipeline
