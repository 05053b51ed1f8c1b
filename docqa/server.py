"""
docqa MCP Server.

Transport: stdio only. Stdout carries the MCP protocol, so logs go to stderr.
Ingest, ask and clear run in a worker thread so the event loop keeps serving
status requests while a document is embedded.

Expected MCP Tool Return Format:
{
    "ok": bool,
    "results": Any,          # Present if ok is True
    "error": str,            # Present if ok is False
    "error_type": str        # Present if ok is False
}
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Annotated, Any, Dict, List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from .common.config import load_config
from .common.errors import (
    DocQAError,
    GeneratorUnavailable,
    RateLimited,
    UpstreamFailure,
)
from .pipeline import DocumentQAPipeline, build_pipeline

logger = logging.getLogger("docqa.server")

RETRY_LATER_MESSAGE = "The model provider is busy. Please try again in a moment."
NOT_CONFIGURED_MESSAGE = (
    "No language model is configured. Set an API key for the configured provider "
    "(e.g. OPENAI_API_KEY) and restart the server."
)
INTERNAL_ERROR_MESSAGE = "Internal error while processing the request."


def error_response(error: Exception) -> Dict[str, Any]:
    """Map a pipeline exception to the tool error format."""
    error_type = type(error).__name__

    if isinstance(error, DocQAError) and error.client_error:
        return {"ok": False, "error": error.message, "error_type": error_type}

    if isinstance(error, RateLimited):
        logger.warning("Request failed after rate-limit retries: %s", error)
        return {"ok": False, "error": RETRY_LATER_MESSAGE, "error_type": error_type}

    if isinstance(error, UpstreamFailure):
        logger.warning("Upstream provider error (%s): %s", error.provider or "unknown", error)
        return {
            "ok": False,
            "error": f"Upstream provider error: {error.message}. Please try again later.",
            "error_type": error_type,
        }

    if isinstance(error, GeneratorUnavailable):
        return {"ok": False, "error": NOT_CONFIGURED_MESSAGE, "error_type": error_type}

    logger.error("Unexpected error: %s", error, exc_info=error)
    return {"ok": False, "error": INTERNAL_ERROR_MESSAGE, "error_type": "InternalError"}


class DocQAServerApp:
    """
    MCP server exposing the document QA pipeline as tools.

    Tools:
    - ingest_document: replace the indexed document
    - ask_question: answer a question with citations
    - document_status: readiness and configuration
    - clear_document: drop the indexed document
    """

    def __init__(self, pipeline: DocumentQAPipeline, mcp_server_name: str = "docqa") -> None:
        """
        Args:
            pipeline: Fully wired pipeline (see build_pipeline)
            mcp_server_name: Advertised MCP server name
        """
        self.pipeline = pipeline
        self.mcp = FastMCP(name=mcp_server_name)

        # ---------- MCP Tools: Ingest Document ---------- #
        @self.mcp.tool(
            name="ingest_document",
            description=(
                "Index a document for question answering, replacing any previously indexed document. "
                "Provide either the full text or a list of pages ({page_number, text}) for page-aware citations."
            ),
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True),
        )
        async def tool_ingest_document(
            text: Annotated[Optional[str], Field(description="full document text")] = None,
            pages: Annotated[Optional[List[Dict[str, Any]]], Field(
                description="per-page text as a list of {page_number, text} objects"
            )] = None,
            filename: Annotated[Optional[str], Field(description="display name of the document")] = None,
        ) -> Dict[str, Any]:
            """
            Chunk, embed and index a document.

            Returns:
                Dict[str, Any]: The document summary (chunk count, pages, warnings).
            """
            try:
                summary = await asyncio.to_thread(
                    self.pipeline.ingest, text=text, pages=pages, filename=filename
                )
            except Exception as e:
                return error_response(e)
            return {"ok": True, "results": summary.model_dump()}

        # ---------- MCP Tools: Ask Question ---------- #
        @self.mcp.tool(
            name="ask_question",
            description=(
                "Answer a question using only the indexed document. "
                "The answer cites document passages with [n] markers; each citation names its page and a preview."
            ),
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False),
        )
        async def tool_ask_question(
            question: Annotated[str, Field(description="natural-language question about the document")],
            topk: Annotated[Optional[int], Field(description="number of passages to retrieve")] = None,
            language: Annotated[Optional[str], Field(
                description="answer language; detected from the question when omitted"
            )] = None,
        ) -> Dict[str, Any]:
            """
            Retrieve relevant passages and synthesize a cited answer.

            Returns:
                Dict[str, Any]: answer, citations and the retrieved chunks with similarities.
            """
            try:
                result = await asyncio.to_thread(
                    self.pipeline.query, question, top_k=topk, language=language
                )
            except Exception as e:
                return error_response(e)
            return {"ok": True, "results": result.to_dict()}

        # ---------- MCP Tools: Document Status ---------- #
        @self.mcp.tool(
            name="document_status",
            description="Report whether a document is indexed and which embedding and LLM backends are active.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False),
        )
        async def tool_document_status() -> Dict[str, Any]:
            return {"ok": True, "results": self.pipeline.status()}

        # ---------- MCP Tools: Clear Document ---------- #
        @self.mcp.tool(
            name="clear_document",
            description="Remove the indexed document.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True),
        )
        async def tool_clear_document() -> Dict[str, Any]:
            try:
                warnings = await asyncio.to_thread(self.pipeline.clear)
            except Exception as e:
                return error_response(e)
            return {"ok": True, "results": {"cleared": True, "warnings": warnings}}

    def run(self) -> None:
        """Runs the MCP server using stdio transport."""
        self.mcp.run(transport="stdio")


def main() -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Run the docqa MCP server (stdio).")
    parser.add_argument(
        "--server-name",
        default=os.getenv("MCP_SERVER_NAME", "docqa"),
        help="Advertised MCP server name.",
    )
    parser.add_argument(
        "--embedding-mode",
        default=None,
        choices=("openai", "femb", "lexical"),
        help="Embedding backend (overrides config and EMBEDDING_MODE).",
    )
    parser.add_argument(
        "--snapshot-path",
        default=None,
        help="Index snapshot file (overrides config and DOCQA_SNAPSHOT_PATH).",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("DOCQA_LOG_LEVEL", "INFO"),
        help="Logging level.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    if args.embedding_mode:
        config.embedding.mode = args.embedding_mode
    if args.snapshot_path:
        config.storage.snapshot_path = os.path.expanduser(args.snapshot_path)

    pipeline = build_pipeline(config)
    app = DocQAServerApp(pipeline, mcp_server_name=args.server_name)

    def _handle_shutdown(signum, frame):
        raise SystemExit(0)
    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is not None:
            signal.signal(sig, _handle_shutdown)

    app.run()


if __name__ == "__main__":
    main()
