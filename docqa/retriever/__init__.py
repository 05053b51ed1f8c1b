"""
docqa Retriever

Vector index, top-K retrieval and cited answer synthesis.
"""

from .vector_index import IndexGeneration, RetrievalResult, VectorIndex, cosine_similarity
from .searcher import BaseRetriever, LexicalRetriever, Retriever
from .citations import parse_response
from .synthesizer import SynthesizedAnswer, Synthesizer

__all__ = [
    "IndexGeneration",
    "RetrievalResult",
    "VectorIndex",
    "cosine_similarity",
    "BaseRetriever",
    "LexicalRetriever",
    "Retriever",
    "parse_response",
    "SynthesizedAnswer",
    "Synthesizer",
]
