"""
Configuration Management for docqa

Loads configuration from ~/.docqa/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("docqa.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".docqa"
CONFIG_PATH = CONFIG_DIR / "config.json"
SNAPSHOT_PATH = CONFIG_DIR / "vector_store.json"

EMBEDDING_MODES = ("openai", "femb", "lexical")


@dataclass
class EmbeddingConfig:
    """Embedding model configuration"""
    mode: str = "openai"  # openai, femb (fastembed, on-device), lexical (no embeddings)
    model: str = ""  # empty: the default model of the selected mode


@dataclass
class LLMConfig:
    """Answer generation provider configuration"""
    provider: str = "openai"  # anthropic, openai, google, huggingface
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    openai_base_url: str = ""
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"
    huggingface_api_key: str = ""
    huggingface_model: str = "moonshotai/Kimi-K2-Instruct"
    huggingface_base_url: str = "https://router.huggingface.co/v1"
    temperature: float = 0.3
    max_tokens: int = 1024
    timeout: float = 60.0


@dataclass
class ChunkingConfig:
    """Chunker configuration (sizes in characters)"""
    chunk_size: int = 1000
    overlap: int = 200


@dataclass
class IngestConfig:
    """Embedding batching and rate-limit handling during ingestion"""
    batch_size: int = 20
    batch_delay: float = 0.5  # seconds between batches
    max_retries: int = 3
    initial_backoff: float = 1.0


@dataclass
class RetrieverConfig:
    """Retriever configuration"""
    topk: int = 5
    preview_chars: int = 100


@dataclass
class StorageConfig:
    """Index snapshot location"""
    snapshot_path: str = str(SNAPSHOT_PATH)


@dataclass
class DocQAConfig:
    """Main docqa configuration"""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    def retry_config(self) -> dict:
        """Retry settings in the shape expected by retry_with_backoff."""
        return {
            "max_retries": self.ingest.max_retries,
            "initial_backoff": self.ingest.initial_backoff,
            "backoff_multiplier": 2.0,
            "max_backoff": 30.0,
        }


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        mode=embedding_data.get("mode", "openai"),
        model=embedding_data.get("model", ""),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    defaults = LLMConfig()
    return LLMConfig(
        provider=llm_data.get("provider", defaults.provider),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", defaults.anthropic_model),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", defaults.openai_model),
        openai_base_url=llm_data.get("openai_base_url", ""),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", defaults.google_model),
        huggingface_api_key=llm_data.get("huggingface_api_key", ""),
        huggingface_model=llm_data.get("huggingface_model", defaults.huggingface_model),
        huggingface_base_url=llm_data.get("huggingface_base_url", defaults.huggingface_base_url),
        temperature=llm_data.get("temperature", defaults.temperature),
        max_tokens=llm_data.get("max_tokens", defaults.max_tokens),
        timeout=llm_data.get("timeout", defaults.timeout),
    )


def _parse_chunking_config(data: dict) -> ChunkingConfig:
    """Parse chunking section from config dict"""
    chunking_data = data.get("chunking", {})
    return ChunkingConfig(
        chunk_size=chunking_data.get("chunk_size", 1000),
        overlap=chunking_data.get("overlap", 200),
    )


def _parse_ingest_config(data: dict) -> IngestConfig:
    """Parse ingest section from config dict"""
    ingest_data = data.get("ingest", {})
    return IngestConfig(
        batch_size=ingest_data.get("batch_size", 20),
        batch_delay=ingest_data.get("batch_delay", 0.5),
        max_retries=ingest_data.get("max_retries", 3),
        initial_backoff=ingest_data.get("initial_backoff", 1.0),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict"""
    retriever_data = data.get("retriever", {})
    return RetrieverConfig(
        topk=retriever_data.get("topk", 5),
        preview_chars=retriever_data.get("preview_chars", 100),
    )


def _parse_storage_config(data: dict) -> StorageConfig:
    """Parse storage section from config dict"""
    storage_data = data.get("storage", {})
    return StorageConfig(
        snapshot_path=storage_data.get("snapshot_path", str(SNAPSHOT_PATH)),
    )


def load_config() -> DocQAConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.docqa/config.json)
    3. Default values
    """
    config = DocQAConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.embedding = _parse_embedding_config(data)
            config.llm = _parse_llm_config(data)
            config.chunking = _parse_chunking_config(data)
            config.ingest = _parse_ingest_config(data)
            config.retriever = _parse_retriever_config(data)
            config.storage = _parse_storage_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # Environment variable overrides
    if os.getenv("EMBEDDING_MODE"):
        config.embedding.mode = os.getenv("EMBEDDING_MODE")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")

    if os.getenv("DOCQA_CHUNK_SIZE"):
        config.chunking.chunk_size = int(os.getenv("DOCQA_CHUNK_SIZE"))
    if os.getenv("DOCQA_CHUNK_OVERLAP"):
        config.chunking.overlap = int(os.getenv("DOCQA_CHUNK_OVERLAP"))
    if os.getenv("DOCQA_BATCH_SIZE"):
        config.ingest.batch_size = int(os.getenv("DOCQA_BATCH_SIZE"))
    if os.getenv("DOCQA_TOPK"):
        config.retriever.topk = int(os.getenv("DOCQA_TOPK"))
    if os.getenv("DOCQA_SNAPSHOT_PATH"):
        config.storage.snapshot_path = os.path.expanduser(os.getenv("DOCQA_SNAPSHOT_PATH"))

    # LLM env var overrides
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "OPENAI_BASE_URL": "openai_base_url",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "HUGGING_FACE_API_KEY": "huggingface_api_key",
        "HF_MODEL": "huggingface_model",
        "DOCQA_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)

    return config
