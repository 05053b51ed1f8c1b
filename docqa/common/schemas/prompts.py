"""
Answer Prompt Templates

The model sees the retrieved chunks as numbered context entries and must
answer in an "Answer: / Citations:" layout that the citation parser reads back.
"""

from typing import Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from .document import Chunk


REFUSAL_PHRASE = "Not found in the uploaded document."

NO_CONTEXT_ANSWER = "No relevant information found in the document."


SYSTEM_PROMPT = """You are a document-grounded assistant.
Answer questions strictly using the provided document context.
If the answer is not found in the context, say exactly:
"{refusal}"

RULES:
- Do NOT use external knowledge
- Do NOT make up information
- Mark every claim with the number of the context entry it comes from, like [1] or [2]
- Every answer MUST include a Citations section
- Each citation must name the context entry and its page: [C<number> | Page <page>]
- {language_instruction}"""


USER_PROMPT = """CONTEXT:
{context}

QUESTION:
{question}

RESPONSE FORMAT:
Answer:
<clear, concise answer with [n] markers>

Citations:
- [C1 | Page X]
- [C2 | Page Y]

Now answer the question above:"""


def format_context_entry(ordinal: int, chunk: "Chunk") -> str:
    """Render one retrieved chunk as '[<ordinal>] <text>'"""
    if chunk.page_number is not None:
        return f"[{ordinal}] (Page {chunk.page_number}) {chunk.text}"
    return f"[{ordinal}] {chunk.text}"


def render_context(chunks: Sequence["Chunk"]) -> str:
    """Number chunks 1..n in retrieval order"""
    return "\n\n".join(
        format_context_entry(i, chunk) for i, chunk in enumerate(chunks, 1)
    )


def language_instruction(language: Optional[str]) -> str:
    if not language or language.lower() in ("en", "english"):
        return "Respond in English."
    return f"Provide your entire response in {language}, including the refusal sentence if needed."


def render_system_prompt(language: Optional[str] = None) -> str:
    return SYSTEM_PROMPT.format(
        refusal=REFUSAL_PHRASE,
        language_instruction=language_instruction(language),
    )


def render_user_prompt(question: str, chunks: Sequence["Chunk"]) -> str:
    return USER_PROMPT.format(context=render_context(chunks), question=question)
