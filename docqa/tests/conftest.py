import pytest

from docqa.tests.fakes import NO_WAIT_RETRY, FakeEmbeddingService


@pytest.fixture
def fake_embedder():
    return FakeEmbeddingService()


@pytest.fixture
def no_wait_retry():
    return dict(NO_WAIT_RETRY)
