"""
Tests for the embedding and lexical retrievers.
"""

from unittest.mock import Mock

import pytest

from docqa.common.errors import NotReady, RateLimited, UpstreamFailure
from docqa.retriever.searcher import LexicalRetriever, Retriever, extract_keywords, score_chunk
from docqa.retriever.vector_index import VectorIndex
from docqa.tests.fakes import FakeEmbeddingService, make_chunks


def build_index(embedder, *texts):
    index = VectorIndex()
    chunks = make_chunks(*texts)
    index.replace_all(chunks, [embedder.vectorize(c.text) for c in chunks])
    return index


class TestRetriever:
    def test_not_ready_before_embedding_call(self):
        embedder = Mock()
        retriever = Retriever(embedder, VectorIndex())

        with pytest.raises(NotReady):
            retriever.retrieve("What is the revenue?", top_k=3)
        embedder.embed.assert_not_called()

    def test_three_chunks_top_five(self, fake_embedder, no_wait_retry):
        index = build_index(
            fake_embedder,
            "Revenue grew last year.",
            "The office moved.",
            "Revenue and profit both rose with revenue growth.",
        )
        retriever = Retriever(fake_embedder, index, retry_config=no_wait_retry)

        results = retriever.retrieve("revenue", top_k=5)

        assert len(results) == 3
        assert {r.chunk_id for r in results} == {"chunk_1", "chunk_2", "chunk_3"}
        sims = [r.similarity for r in results]
        assert sims == sorted(sims, reverse=True)
        assert results[-1].chunk_id == "chunk_2"

    def test_one_embedding_call_per_question(self, fake_embedder, no_wait_retry):
        index = build_index(fake_embedder, "Revenue grew.", "Risk increased.")
        retriever = Retriever(fake_embedder, index, retry_config=no_wait_retry)

        retriever.retrieve("risk", top_k=1)
        retriever.retrieve("risk", top_k=1)

        assert fake_embedder.single_calls == ["risk", "risk"]

    def test_rate_limited_embedding_is_retried(self, no_wait_retry):
        index = VectorIndex()
        index.replace_all(make_chunks("alpha"), [[1.0, 0.0]])
        embedder = Mock()
        embedder.embed.side_effect = [RateLimited("slow down"), [1.0, 0.0]]

        results = Retriever(embedder, index, retry_config=no_wait_retry).retrieve("alpha", top_k=1)

        assert results[0].chunk_id == "chunk_1"
        assert embedder.embed.call_count == 2

    def test_upstream_failure_propagates(self, no_wait_retry):
        index = VectorIndex()
        index.replace_all(make_chunks("alpha"), [[1.0, 0.0]])
        embedder = Mock()
        embedder.embed.side_effect = UpstreamFailure("invalid model", provider="openai")

        with pytest.raises(UpstreamFailure, match="invalid model"):
            Retriever(embedder, index, retry_config=no_wait_retry).retrieve("alpha", top_k=1)
        assert embedder.embed.call_count == 1


class TestLexicalRetriever:
    @pytest.fixture
    def index(self):
        index = VectorIndex()
        chunks = make_chunks(
            "The office is in Berlin.",
            "Quarterly revenue was strong; revenue beat the forecast.",
            "Total revenue for the year was 10 million.",
            "Nothing relevant here.",
        )
        index.replace_all(chunks, [[] for _ in chunks])
        return index

    def test_keywords_filter_short_words(self):
        assert extract_keywords("What was the total revenue?") == ["what", "total", "revenue?"]

    def test_score_counts_occurrences(self):
        assert score_chunk("Revenue, revenue and more REVENUE", "revenue", ["revenue"]) == 3 + 10

    def test_ranking(self, index):
        results = LexicalRetriever(index).retrieve("total revenue", top_k=2)

        # chunk_3 contains the full query (+10) on top of both keywords
        assert [r.chunk_id for r in results] == ["chunk_3", "chunk_2"]
        assert results[0].lexical_score == 12
        assert results[1].lexical_score == 2
        assert results[0].similarity == 1.0
        assert results[1].similarity == pytest.approx(2 / 12)

    def test_zero_scores_still_return_top_k(self, index):
        results = LexicalRetriever(index).retrieve("zebra giraffe", top_k=3)

        assert [r.chunk_id for r in results] == ["chunk_1", "chunk_2", "chunk_3"]
        assert all(r.similarity == 0.0 and r.lexical_score == 0 for r in results)

    def test_works_on_embedded_generation(self, fake_embedder):
        index = build_index(fake_embedder, "Profit fell.", "Market risk rose.")
        results = LexicalRetriever(index).retrieve("market risk", top_k=1)
        assert results[0].chunk_id == "chunk_2"

    def test_not_ready(self):
        with pytest.raises(NotReady):
            LexicalRetriever(VectorIndex()).retrieve("anything", top_k=3)
