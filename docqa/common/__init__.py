"""
docqa Common Module

Shared infrastructure for ingestion and retrieval.
"""

from .config import DocQAConfig, load_config
from .embedding_service import EmbeddingService, get_embedding_service
from .errors import (
    DocQAError,
    NotReady,
    ValidationError,
    DimensionMismatch,
    RateLimited,
    UpstreamFailure,
    GeneratorUnavailable,
    PersistenceWarning,
)
from .llm_client import LLMClient, create_llm_client

__all__ = [
    "DocQAConfig",
    "load_config",
    "EmbeddingService",
    "get_embedding_service",
    "DocQAError",
    "NotReady",
    "ValidationError",
    "DimensionMismatch",
    "RateLimited",
    "UpstreamFailure",
    "GeneratorUnavailable",
    "PersistenceWarning",
    "LLMClient",
    "create_llm_client",
]
