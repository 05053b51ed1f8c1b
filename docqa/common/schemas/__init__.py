"""
docqa Schemas

Chunk, Citation and DocumentSummary models plus the answer prompt templates.
"""

from .document import (
    Chunk,
    Citation,
    DocumentSummary,
    estimate_tokens,
    format_chunk_id,
)
from .prompts import (
    REFUSAL_PHRASE,
    NO_CONTEXT_ANSWER,
    render_context,
    render_system_prompt,
    render_user_prompt,
)

__all__ = [
    "Chunk",
    "Citation",
    "DocumentSummary",
    "estimate_tokens",
    "format_chunk_id",
    "REFUSAL_PHRASE",
    "NO_CONTEXT_ANSWER",
    "render_context",
    "render_system_prompt",
    "render_user_prompt",
]
