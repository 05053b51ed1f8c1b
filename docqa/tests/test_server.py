# tests/test_server.py
import asyncio
import threading

import pytest

from fastmcp import Client

from docqa.common.errors import DimensionMismatch, RateLimited, UpstreamFailure
from docqa.ingest.ingestor import Ingestor
from docqa.pipeline import DocumentQAPipeline
from docqa.retriever.searcher import Retriever
from docqa.retriever.synthesizer import Synthesizer
from docqa.retriever.vector_index import VectorIndex
from docqa.server import DocQAServerApp, error_response
from docqa.tests.fakes import NO_WAIT_RETRY, FakeEmbeddingService, FakeLLMClient


def _data(result):
    return getattr(result, "data", None) or getattr(result, "structured", None) \
        or getattr(result, "structured_content", None)


def _make_app(llm=None, embedder=None):
    embedder = embedder or FakeEmbeddingService()
    llm = llm or FakeLLMClient(["Answer: Profit was 2 million [1].\n\nCitations:\n- [C1 | Page 1]"])
    index = VectorIndex()
    pipeline = DocumentQAPipeline(
        index=index,
        ingestor=Ingestor(index, embedder, retry_config=NO_WAIT_RETRY, sleep=lambda s: None),
        retriever=Retriever(embedder, index, retry_config=NO_WAIT_RETRY),
        synthesizer=Synthesizer(llm, retry_config=NO_WAIT_RETRY),
        embedding_service=embedder,
        llm_client=llm,
    )
    return DocQAServerApp(pipeline, mcp_server_name="test-docqa")


@pytest.fixture
def mcp_server():
    """FastMCP instance backed by fake embedding and LLM clients."""
    return _make_app().mcp


@pytest.mark.asyncio
async def test_tools_registered(mcp_server):
    async with Client(mcp_server) as client:
        tools = await client.list_tools()
        names = {t.name for t in tools}
    assert names == {"ingest_document", "ask_question", "document_status", "clear_document"}


@pytest.mark.asyncio
async def test_ask_before_ingest_is_client_error(mcp_server):
    async with Client(mcp_server) as client:
        result = await client.call_tool("ask_question", {"question": "What was the profit?"})
        data = _data(result)

    assert data["ok"] is False
    assert data["error_type"] == "NotReady"
    assert "upload a document" in data["error"]


@pytest.mark.asyncio
async def test_ingest_and_ask(mcp_server):
    async with Client(mcp_server) as client:
        ingest = _data(await client.call_tool("ingest_document", {
            "pages": [
                {"page_number": 1, "text": "Profit reached 2 million."},
                {"page_number": 2, "text": "The office moved to Porto."},
            ],
            "filename": "memo.pdf",
        }))
        answer = _data(await client.call_tool("ask_question", {
            "question": "What was the profit?", "topk": 2, "language": "en",
        }))

    assert ingest["ok"] is True
    assert ingest["results"]["num_chunks"] == 2
    assert ingest["results"]["filename"] == "memo.pdf"

    assert answer["ok"] is True
    results = answer["results"]
    assert results["answer"] == "Profit was 2 million [1]."
    assert results["citations"][0]["page_number"] == 1
    assert results["citations"][0]["preview"] == "Profit reached 2 million."
    assert len(results["retrieved_chunks"]) == 2


@pytest.mark.asyncio
async def test_empty_document_rejected(mcp_server):
    async with Client(mcp_server) as client:
        data = _data(await client.call_tool("ingest_document", {"text": "   "}))

    assert data["ok"] is False
    assert data["error_type"] == "ValidationError"


@pytest.mark.asyncio
async def test_non_numeric_page_number_is_client_error(mcp_server, caplog):
    async with Client(mcp_server) as client:
        data = _data(await client.call_tool("ingest_document", {
            "pages": [{"page_number": "iv", "text": "Preface."}],
        }))

    assert data["ok"] is False
    assert data["error_type"] == "ValidationError"
    assert "'iv'" in data["error"]
    assert "Unexpected error" not in caplog.text


@pytest.mark.asyncio
async def test_status_and_clear(mcp_server):
    async with Client(mcp_server) as client:
        await client.call_tool("ingest_document", {"text": "Profit reached 2 million."})
        before = _data(await client.call_tool("document_status", {}))
        cleared = _data(await client.call_tool("clear_document", {}))
        after = _data(await client.call_tool("document_status", {}))

    assert before["results"]["ready"] is True
    assert cleared["ok"] is True
    assert after["results"]["ready"] is False
    assert after["results"]["document"] is None


@pytest.mark.asyncio
async def test_rate_limited_generation_maps_to_retry_later():
    app = _make_app(llm=FakeLLMClient([RateLimited("429")]))
    async with Client(app.mcp) as client:
        await client.call_tool("ingest_document", {"text": "Profit reached 2 million."})
        data = _data(await client.call_tool("ask_question", {"question": "Profit?", "language": "en"}))

    assert data["ok"] is False
    assert data["error_type"] == "RateLimited"
    assert "try again" in data["error"]


class TestErrorResponse:
    def test_upstream_message_kept(self):
        data = error_response(UpstreamFailure("model not found", provider="openai"))
        assert data["error_type"] == "UpstreamFailure"
        assert "model not found" in data["error"]

    def test_internal_errors_are_generic(self, caplog):
        data = error_response(DimensionMismatch("3 vs 4"))
        assert data["error_type"] == "InternalError"
        assert "3 vs 4" not in data["error"]
        assert "3 vs 4" in caplog.text


class GatedEmbedder(FakeEmbeddingService):
    """Blocks inside embed_batch until released."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def _embed_many(self, texts):
        self.started.set()
        self.release.wait(timeout=5)
        return super()._embed_many(texts)


@pytest.mark.asyncio
async def test_status_served_during_ingest():
    embedder = GatedEmbedder()
    app = _make_app(embedder=embedder)
    async with Client(app.mcp) as client:
        ingest_task = asyncio.create_task(
            client.call_tool("ingest_document", {"text": "Profit reached 2 million."})
        )
        assert await asyncio.to_thread(embedder.started.wait, 5)

        status = _data(await client.call_tool("document_status", {}))
        embedder.release.set()
        ingest = _data(await ingest_task)

    assert status["results"]["ready"] is False
    assert ingest["ok"] is True
    assert ingest["results"]["num_chunks"] == 1
