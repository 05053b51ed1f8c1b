#!/usr/bin/env python3
"""
Ask Questions About a Text Document

Indexes a plain-text file and answers questions about it from the command
line. Form feed characters (\\f) separate pages, as written by pdftotext.

Usage:
    python scripts/ask_document.py report.txt "What is the revenue?"
    python scripts/ask_document.py report.txt --interactive
    python scripts/ask_document.py --status
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def _print_answer(result) -> None:
    print()
    print(result.answer)
    print()
    print("Citations:")
    for citation in result.citations:
        print(f"  [{citation.index}] Page {citation.page_number} ({citation.chunk_id}): {citation.preview}")
    for warning in result.warnings:
        print(f"[docqa] Note: {warning}")


def main():
    parser = argparse.ArgumentParser(description="Index a text document and ask questions about it")
    parser.add_argument("document", nargs="?", help="Plain-text file to index (pages separated by \\f)")
    parser.add_argument("question", nargs="?", help="Question to ask")
    parser.add_argument("--topk", type=int, default=None, help="Number of passages to retrieve")
    parser.add_argument("--language", type=str, default=None, help="Answer language (default: detect)")
    parser.add_argument("--interactive", action="store_true", help="Keep asking questions until EOF")
    parser.add_argument("--status", action="store_true", help="Print pipeline status and exit")
    args = parser.parse_args()

    from docqa.common.config import load_config
    from docqa.common.errors import DocQAError
    from docqa.pipeline import build_pipeline

    config = load_config()
    print(f"[docqa] Embedding mode: {config.embedding.mode}")
    print(f"[docqa] LLM provider: {config.llm.provider}")
    pipeline = build_pipeline(config)

    if args.status:
        status = pipeline.status()
        print(f"[docqa] Ready: {status['ready']}")
        print(f"[docqa] Chunks: {status['num_chunks']} (generation {status['generation']})")
        print(f"[docqa] Generator available: {status['generator']['available']}")
        return

    if args.document:
        path = Path(args.document)
        if not path.exists():
            print(f"[docqa] ERROR: File not found: {path}")
            sys.exit(1)

        raw = path.read_text(encoding="utf-8", errors="replace")
        try:
            if "\f" in raw:
                pages = [
                    {"page_number": n, "text": page}
                    for n, page in enumerate(raw.split("\f"), 1)
                ]
                summary = pipeline.ingest(pages=pages, filename=path.name)
            else:
                summary = pipeline.ingest(text=raw, filename=path.name)
        except DocQAError as e:
            print(f"[docqa] ERROR: Failed to index {path.name}: {e}")
            sys.exit(1)

        pages_info = f", {summary.num_pages} pages" if summary.num_pages else ""
        print(f"[docqa] Indexed {path.name}: {summary.num_chunks} chunks{pages_info}")
        for warning in summary.warnings:
            print(f"[docqa] WARNING: {warning}")

    questions = [args.question] if args.question else []
    if not questions and not args.interactive:
        return

    def _ask(question: str) -> None:
        try:
            result = pipeline.query(question, top_k=args.topk, language=args.language)
        except DocQAError as e:
            print(f"[docqa] ERROR: {e}")
            return
        _print_answer(result)

    for question in questions:
        _ask(question)

    if args.interactive:
        print("[docqa] Enter questions (Ctrl-D to quit)")
        for line in sys.stdin:
            if line.strip():
                _ask(line.strip())


if __name__ == "__main__":
    main()
