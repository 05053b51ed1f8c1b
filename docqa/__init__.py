"""
docqa

Grounded question answering over a single uploaded document.

Philosophy:
- One active document per process, replaced wholesale on every ingest
- Answers cite the passages they were composed from
- Citation previews always come from the indexed text, never from the model
- The active index generation is swapped atomically; readers never lock

Usage:
    from docqa.common import load_config
    from docqa.pipeline import build_pipeline

    pipeline = build_pipeline(load_config())
    pipeline.ingest(text=document_text)
    result = pipeline.query("What does section 2 require?")
"""

__version__ = "0.1.0"
