"""Shared pytest fixtures and fakes."""
from typing import Dict, List, Optional, Sequence

import pytest

from campusbot.db import ChunkStore
from campusbot.errors import GenerationError
from campusbot.models import Chunk, ConversationTurn, RetrievedChunk
from campusbot.rag.store_faiss import FAISSVectorStore


class FakeEmbedder:
    """Deterministic embedder: a text maps to the vector of the first keyword it contains."""

    embedding_model = "fake-embedding"

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, dimension: int = 3):
        self.vectors = vectors or {}
        self.dimension = dimension
        self.queries: List[str] = []
        self.documents: List[str] = []
        self.fail_on: Optional[str] = None

    def _vector(self, text: str) -> List[float]:
        lowered = text.lower()
        for keyword, vector in self.vectors.items():
            if keyword in lowered:
                return list(vector)
        return [0.0] * (self.dimension - 1) + [1.0]

    async def embed_query(self, text: str, model: str = None) -> List[float]:
        self.queries.append(text)
        return self._vector(text)

    async def embed_documents(self, texts: List[str], model: str = None) -> List[List[float]]:
        if self.fail_on and any(self.fail_on in t for t in texts):
            raise ValueError("embedding quota exceeded")
        self.documents.extend(texts)
        return [self._vector(t) for t in texts]


class FakeRetriever:
    """Returns canned results and records the calls it received."""

    def __init__(self, results: Sequence[RetrievedChunk] = (), ready: bool = True, error=None):
        self.results = list(results)
        self.ready = ready
        self.error = error
        self.calls = []

    @property
    def is_ready(self) -> bool:
        return self.ready

    async def retrieve(self, question, history=(), k=None):
        self.calls.append({"question": question, "history": tuple(history), "k": k})
        if self.error is not None:
            raise self.error
        return list(self.results)


class FakeGenerator:
    """Echoes the first context line, or fails when told to."""

    def __init__(self, answer: Optional[str] = None, fail: bool = False):
        self.answer = answer
        self.fail = fail
        self.calls = []

    async def generate(self, question: str, context: str) -> str:
        self.calls.append({"question": question, "context": context})
        if self.fail:
            raise GenerationError("Answer generation failed")
        if self.answer is not None:
            return self.answer
        return f"Answer to {question!r} from: {context.splitlines()[0]}"


def make_result(text: str, vector_id: int = 0, distance: float = 0.1,
                source_url: str = "https://mgmits.ac.in/page/", title: str = "page") -> RetrievedChunk:
    return RetrievedChunk(
        chunk=Chunk(text=text, source_url=source_url, title=title),
        vector_id=vector_id,
        distance=distance,
    )


def make_history(*pairs) -> tuple:
    return tuple(ConversationTurn(question=q, answer=a) for q, a in pairs)


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def chunk_store(tmp_path):
    store = ChunkStore(db_path=tmp_path / "chunks.sqlite")
    store.init_database()
    return store


@pytest.fixture
def vector_store(tmp_path, fake_embedder):
    return FAISSVectorStore(embedder=fake_embedder, index_dir=tmp_path / "index")
