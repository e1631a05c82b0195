"""Shared fakes for the Pinecone index, embeddings and completions."""

from types import SimpleNamespace
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from bible_api.dataset import VerseDataset
from bible_api.main import assemble_services, create_app
from bible_api.models import Verse
from bible_api.search import VerseSearchClient


def make_match(book, chapter, verse, score, text=None, **extra):
    metadata = {"book": book, "chapter": float(chapter), "verse": float(verse)}
    if text is not None:
        metadata["text"] = text
    metadata.update(extra)
    return SimpleNamespace(id=f"{book}-{chapter}-{verse}", score=score, metadata=metadata)


class FakeIndex:
    """Stands in for pinecone.Index"""

    def __init__(self, matches=None, error: Optional[Exception] = None, stats=None):
        self.matches = matches if matches is not None else []
        self.error = error
        self.stats = stats or {
            "total_vector_count": 31102,
            "dimension": 1536,
            "namespaces": {"kjv": SimpleNamespace(vector_count=31102)},
        }
        self.queries: List[dict] = []

    def query(self, **kwargs):
        self.queries.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(matches=list(self.matches[: kwargs["top_k"]]))

    def describe_index_stats(self):
        if self.error is not None:
            raise self.error
        return self.stats


class FakeCompletion:
    """Records prompts; returns canned text or fragments"""

    def __init__(self, text="## Answer\n- **Love** [1]", fragments=("## ", "Answer", " [1]"),
                 error: Optional[Exception] = None, stream_error: Optional[Exception] = None):
        self.text = text
        self.fragments = fragments
        self.error = error
        self.stream_error = stream_error
        self.calls = []
        self.stream_calls = []

    async def complete(self, messages, temperature, max_tokens, fallback="No response generated"):
        self.calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.text or fallback

    async def stream_complete(self, messages, temperature, max_tokens):
        self.stream_calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        for fragment in self.fragments:
            yield fragment
        if self.stream_error is not None:
            raise self.stream_error


@pytest.fixture
def verses():
    return [
        Verse(book="John", chapter=3, verse=16,
              text="For God so loved the world, that he gave his only begotten Son"),
        Verse(book="Romans", chapter=8, verse=28,
              text="And we know that all things work together for good to them that love God"),
        Verse(book="Psalms", chapter=23, verse=1, text="The LORD is my shepherd; I shall not want."),
    ]


@pytest.fixture
def dataset(verses):
    return VerseDataset(verses)


@pytest.fixture
def embedder():
    mock = MagicMock()
    mock.embed = AsyncMock(return_value=[0.0] * 1536)
    return mock


@pytest.fixture
def index():
    return FakeIndex(
        matches=[
            make_match("Romans", 8, 28, 0.7, text="And we know that all things work together for good"),
            make_match("John", 3, 16, 0.9, text="For God so loved the world"),
        ]
    )


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def services(dataset, index, embedder, completion):
    return assemble_services(
        dataset=dataset,
        searcher=VerseSearchClient(index, "bible-verses", "kjv"),
        embedder=embedder,
        completion=completion,
    )


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as test_client:
        yield test_client


def parse_events(body: str) -> List[str]:
    """Split an SSE body into the raw data payloads"""
    events = []
    for block in body.split("\n\n"):
        if not block.strip():
            continue
        assert block.startswith("data: "), block
        events.append(block[len("data: "):])
    return events
