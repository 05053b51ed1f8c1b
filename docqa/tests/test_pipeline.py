"""
Pipeline scenario tests: ingest → query → status → clear, with fakes for the
embedding model and the LLM.
"""

import pytest

from docqa.common.config import DocQAConfig
from docqa.common.errors import NotReady, ValidationError
from docqa.ingest.ingestor import Ingestor
from docqa.pipeline import DocumentQAPipeline, build_pipeline
from docqa.retriever.searcher import LexicalRetriever, Retriever
from docqa.retriever.synthesizer import Synthesizer
from docqa.retriever.vector_index import VectorIndex
from docqa.tests.fakes import NO_WAIT_RETRY, FakeEmbeddingService, FakeLLMClient

ANNUAL_REPORT = [
    (1, "Acme Corp annual report.\n\nThe company opened a new office in Lisbon."),
    (2, "Revenue for the year reached 12 million. Revenue growth was driven by new customers."),
    (3, "Key risk: market volatility.\n\nThe employees count grew to 80."),
]


def make_pipeline(llm=None, embedder=None, snapshot_path=None):
    embedder = embedder if embedder is not None else FakeEmbeddingService()
    llm = llm or FakeLLMClient(["Answer: Revenue was 12 million [1].\n\nCitations:\n- [C1 | Page 2]"])
    index = VectorIndex(snapshot_path=snapshot_path)
    return DocumentQAPipeline(
        index=index,
        ingestor=Ingestor(index, embedder, retry_config=NO_WAIT_RETRY, sleep=lambda s: None),
        retriever=Retriever(embedder, index, retry_config=NO_WAIT_RETRY),
        synthesizer=Synthesizer(llm, retry_config=NO_WAIT_RETRY),
        embedding_service=embedder,
        llm_client=llm,
        default_topk=5,
    )


class TestPipelineScenario:
    def test_query_before_ingest(self):
        with pytest.raises(NotReady):
            make_pipeline().query("What was the revenue?")

    def test_ingest_then_query(self):
        llm = FakeLLMClient(["Answer: Revenue was 12 million [1].\n\nCitations:\n- [C1 | Page 2]"])
        pipeline = make_pipeline(llm=llm)

        summary = pipeline.ingest(pages=ANNUAL_REPORT, filename="report.pdf")
        result = pipeline.query("What was the revenue?", language="en")

        assert summary.num_chunks == 3
        assert summary.num_pages == 3
        assert result.answer == "Revenue was 12 million [1]."
        assert result.retrieved_chunks[0]["page_number"] == 2
        assert result.citations[0].chunk_id == result.retrieved_chunks[0]["id"]
        assert result.citations[0].page_number == 2
        assert "similarity" in result.retrieved_chunks[0]

    def test_top_k_larger_than_document(self):
        pipeline = make_pipeline()
        pipeline.ingest(pages=ANNUAL_REPORT)

        result = pipeline.query("revenue", top_k=5, language="en")

        assert len(result.retrieved_chunks) == 3
        sims = [c["similarity"] for c in result.retrieved_chunks]
        assert sims == sorted(sims, reverse=True)

    def test_citations_whenever_chunks_retrieved(self):
        llm = FakeLLMClient(["I could not format this properly."])
        pipeline = make_pipeline(llm=llm)
        pipeline.ingest(pages=ANNUAL_REPORT)

        result = pipeline.query("What risks are mentioned?", top_k=2, language="en")

        assert len(result.retrieved_chunks) == 2
        assert [c.chunk_id for c in result.citations] == [c["id"] for c in result.retrieved_chunks]

    def test_new_ingest_replaces_document(self):
        pipeline = make_pipeline()
        pipeline.ingest(pages=ANNUAL_REPORT)
        pipeline.ingest(text="A short memo about policy.")

        assert pipeline.index.size() == 1
        assert pipeline.document.num_pages is None
        assert pipeline.document.generation == 2

    @pytest.mark.parametrize("question", ["", "   "])
    def test_empty_question(self, question):
        pipeline = make_pipeline()
        pipeline.ingest(pages=ANNUAL_REPORT)
        with pytest.raises(ValidationError):
            pipeline.query(question)

    def test_invalid_top_k(self):
        pipeline = make_pipeline()
        pipeline.ingest(pages=ANNUAL_REPORT)
        with pytest.raises(ValidationError):
            pipeline.query("revenue", top_k=0)

    def test_clear(self):
        pipeline = make_pipeline()
        pipeline.ingest(pages=ANNUAL_REPORT)

        assert pipeline.clear() == []
        assert pipeline.document is None
        with pytest.raises(NotReady):
            pipeline.query("revenue")

    def test_status(self):
        pipeline = make_pipeline()
        assert pipeline.status()["ready"] is False

        pipeline.ingest(pages=ANNUAL_REPORT, filename="report.pdf")
        status = pipeline.status()

        assert status["ready"] is True
        assert status["num_chunks"] == 3
        assert status["retriever"] == "embedding"
        assert status["embedding"]["backend"] == "fake"
        assert status["embedding"]["dimension"] == len(FakeEmbeddingService.vectorize(""))
        assert status["generator"]["available"] is True
        assert status["document"]["filename"] == "report.pdf"


class TestBuildPipeline:
    @pytest.fixture
    def config(self, tmp_path):
        config = DocQAConfig()
        config.embedding.mode = "lexical"
        config.storage.snapshot_path = str(tmp_path / "vector_store.json")
        return config

    def test_lexical_variant_selected(self, config):
        pipeline = build_pipeline(config)

        assert isinstance(pipeline.retriever, LexicalRetriever)
        assert pipeline.embedding_service is None
        assert pipeline.status()["generator"]["available"] is False

    def test_restart_restores_document(self, config):
        first = build_pipeline(config)
        first.ingest(pages=ANNUAL_REPORT, filename="report.pdf")

        restarted = build_pipeline(config)

        assert restarted.status()["ready"] is True
        assert [c.text for c in restarted.index.chunks()] == [c.text for c in first.index.chunks()]
        assert restarted.document.num_chunks == 3
        assert restarted.document.num_pages == 3
        results = restarted.retriever.retrieve("revenue growth", top_k=1)
        assert results[0].chunk.page_number == 2

    def test_corrupt_snapshot_reported_in_status(self, config, tmp_path):
        (tmp_path / "vector_store.json").write_text("garbage")

        pipeline = build_pipeline(config)

        status = pipeline.status()
        assert status["ready"] is False
        assert status["warnings"] and "not loaded" in status["warnings"][0]
