"""Deterministic fakes shared by the docqa tests: a bag-of-words embedder and a scripted LLM."""

import re
from typing import List, Optional

from docqa.common.embedding_service import EmbeddingService
from docqa.common.schemas import Chunk

# Retry settings that never sleep
NO_WAIT_RETRY = {
    "max_retries": 3,
    "initial_backoff": 0.0,
    "backoff_multiplier": 2.0,
    "max_backoff": 0.0,
}

VOCABULARY = [
    "revenue", "profit", "employees", "office", "product",
    "customer", "growth", "risk", "market", "policy",
]


class FakeEmbeddingService(EmbeddingService):
    """Bag-of-words vectors over a fixed vocabulary; records every call."""

    name = "fake"

    def __init__(self):
        super().__init__(model="fake-bow")
        self.single_calls: List[str] = []
        self.batch_calls: List[List[str]] = []

    @staticmethod
    def vectorize(text: str) -> List[float]:
        words = re.findall(r"[a-z]+", text.lower())
        return [float(words.count(term)) for term in VOCABULARY]

    def _embed_one(self, text: str) -> List[float]:
        self.single_calls.append(text)
        return self.vectorize(text)

    def _embed_many(self, texts: List[str]) -> List[List[float]]:
        self.batch_calls.append(list(texts))
        return [self.vectorize(t) for t in texts]


class FakeLLMClient:
    """Stands in for LLMClient. Returns (or raises) scripted responses in order."""

    provider = "fake"
    model = "fake-model"

    def __init__(self, responses=None, available: bool = True):
        self._responses = list(responses or [])
        self._available = available
        self.calls: List[dict] = []

    @property
    def is_available(self) -> bool:
        return self._available

    def generate(self, prompt: str, *, system: Optional[str] = None, **kwargs) -> str:
        self.calls.append({"prompt": prompt, "system": system})
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_chunks(*texts: str, pages=None) -> List[Chunk]:
    pages = pages or [None] * len(texts)
    return [Chunk.create(i, text, page_number=page) for i, (text, page) in enumerate(zip(texts, pages), 1)]

