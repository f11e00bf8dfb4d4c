"""Context assembly for the generation prompt."""
from typing import List, Optional, Sequence
import structlog

from campusbot.models import ConversationTurn, RetrievedChunk

logger = structlog.get_logger()

CHUNK_SEPARATOR = "\n\n"
CONTEXT_MARKER = "\nContext: "


def serialize_history(history: Sequence[ConversationTurn]) -> str:
    """Render turns chronologically as Human/AI line pairs."""
    return "\n".join(f"Human: {turn.question}\nAI: {turn.answer}" for turn in history)


def _render(texts: Sequence[str], history: Sequence[ConversationTurn]) -> str:
    chunk_context = CHUNK_SEPARATOR.join(texts)
    if history:
        return f"{serialize_history(history)}{CONTEXT_MARKER}{chunk_context}"
    return chunk_context


def assemble_context(
    chunks: Sequence[RetrievedChunk],
    history: Sequence[ConversationTurn] = (),
    max_chars: Optional[int] = None,
) -> str:
    """Concatenate chunk texts, preceded by serialized history if any.

    Chunk order is preserved as given. Without ``max_chars`` nothing is
    truncated. With it, the oldest turns are dropped first, then trailing
    chunks, and a lone remaining chunk is cut to fit.
    """
    texts: List[str] = [c.text for c in chunks]
    turns = list(history)
    context = _render(texts, turns)

    if not max_chars or len(context) <= max_chars:
        return context

    original_length = len(context)

    while turns and len(context) > max_chars:
        turns.pop(0)
        context = _render(texts, turns)

    while len(texts) > 1 and len(context) > max_chars:
        texts.pop()
        context = _render(texts, turns)

    context = context[:max_chars]

    logger.warning(
        "context_truncated",
        original_length=original_length,
        final_length=len(context),
        turns_kept=len(turns),
        chunks_kept=len(texts),
    )
    return context
