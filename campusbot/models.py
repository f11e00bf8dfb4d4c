"""Core data types shared by ingestion, retrieval and the answer pipeline."""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Chunk:
    """A window of normalized page text with its provenance."""

    text: str
    source_url: str
    title: str


@dataclass(frozen=True)
class RetrievedChunk:
    """A chunk returned by similarity search."""

    chunk: Chunk
    vector_id: int
    distance: float

    @property
    def text(self) -> str:
        return self.chunk.text

    @property
    def source_url(self) -> str:
        return self.chunk.source_url

    @property
    def title(self) -> str:
        return self.chunk.title

    @property
    def relevance_score(self) -> float:
        """Map L2 distance onto a 0-1 score (1 = identical)."""
        return math.exp(-self.distance / 2.0)


@dataclass(frozen=True)
class ConversationTurn:
    """One completed question/answer exchange."""

    question: str
    answer: str


@dataclass(frozen=True)
class ConversationState:
    """Chronological, append-only conversation history for one session."""

    history: Tuple[ConversationTurn, ...] = ()

    @property
    def last_answer(self) -> Optional[str]:
        if not self.history:
            return None
        return self.history[-1].answer

    def __len__(self) -> int:
        return len(self.history)


def append_turn(state: ConversationState, question: str, answer: str) -> ConversationState:
    """Return a new state with one turn appended; ``state`` is left untouched."""
    return ConversationState(history=state.history + (ConversationTurn(question, answer),))


class Stage(str, Enum):
    """Pipeline stages a single turn moves through."""

    IDLE = "idle"
    RETRIEVING = "retrieving"
    RERANKING = "reranking"
    ASSEMBLING = "assembling"
    GENERATING = "generating"


@dataclass
class TurnResult:
    """Outcome of one pipeline turn."""

    answer: str
    sources: List[RetrievedChunk] = field(default_factory=list)
    used_fallback: bool = False
    state: Optional[ConversationState] = None
