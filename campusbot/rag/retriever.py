"""Retriever for semantic search over indexed campus pages.

Handles:
- Query expansion from the previous answer
- Query embedding generation
- FAISS vector search
- Chunk hydration from the chunk store
"""
from typing import List, Optional, Sequence
import structlog

from campusbot import config
from campusbot.db import ChunkStore
from campusbot.errors import IndexNotReadyError, RetrievalError
from campusbot.llm_client import GeminiClient
from campusbot.models import ConversationTurn, RetrievedChunk
from campusbot.rag.store_faiss import FAISSVectorStore

logger = structlog.get_logger()


def build_search_query(question: str, history: Sequence[ConversationTurn] = ()) -> str:
    """Return the effective search query for a turn.

    With history, the most recent answer is prepended to the question so
    follow-ups like "what about their email?" find the right pages.
    """
    if history:
        return f"{history[-1].answer} {question}"
    return question


class Retriever:
    """Semantic retriever over the FAISS index and chunk store."""

    def __init__(
        self,
        embedder: GeminiClient,
        vector_store: FAISSVectorStore,
        chunk_store: ChunkStore,
        top_k: int = None,
    ):
        """Initialize the retriever.

        Args:
            embedder: Client used to embed queries
            vector_store: Loaded (or loadable) FAISS store
            chunk_store: Store holding chunk text and provenance
            top_k: Default number of results (default from config)
        """
        self.embedder = embedder
        self.vector_store = vector_store
        self.chunk_store = chunk_store
        self.top_k = top_k or config.RETRIEVAL_TOP_K

        logger.info(
            "retriever_initialized",
            embedding_model=self.embedder.embedding_model,
            top_k=self.top_k,
        )

    @property
    def is_ready(self) -> bool:
        return self.vector_store.is_loaded

    async def load(self) -> None:
        """Load the persisted index.

        Raises:
            IndexNotReadyError: If the index is missing or unusable
        """
        try:
            await self.vector_store.load_index()
        except Exception as e:
            logger.error("index_load_failed", error=str(e), error_type=type(e).__name__)
            raise IndexNotReadyError(f"Vector index could not be loaded: {e}") from e

    async def retrieve(
        self,
        question: str,
        history: Sequence[ConversationTurn] = (),
        k: Optional[int] = None,
    ) -> List[RetrievedChunk]:
        """Retrieve the chunks most similar to a question.

        Args:
            question: User question
            history: Prior turns; the last answer expands the query
            k: Number of results (overrides the default)

        Returns:
            Chunks in similarity order (nearest first); empty when nothing matches

        Raises:
            IndexNotReadyError: If the index has not been loaded
            RetrievalError: If embedding or search fails
        """
        if not question or not question.strip():
            logger.warning("empty_query_provided")
            return []

        if not self.is_ready:
            raise IndexNotReadyError("Vector index is not loaded")

        k = k or self.top_k
        query = build_search_query(question, history)

        logger.info(
            "retrieval_started",
            query_length=len(query),
            expanded=bool(history),
            top_k=k,
        )

        if self.vector_store.vector_count == 0:
            logger.warning("empty_index_no_results")
            return []

        try:
            query_embedding = await self.embedder.embed_query(query)
            vector_ids, distances = await self.vector_store.search(query_embedding, top_k=k)

            if not vector_ids:
                logger.info("no_results_found")
                return []

            chunks = self.chunk_store.get_chunks_by_vector_ids(vector_ids)

        except Exception as e:
            logger.error(
                "retrieval_failed",
                error=str(e),
                error_type=type(e).__name__,
                query_preview=query[:100],
            )
            raise RetrievalError(f"Retrieval failed: {e}") from e

        results = []
        for vector_id, distance in zip(vector_ids, distances):
            chunk = chunks.get(vector_id)
            if chunk is None:
                logger.warning("vector_id_without_chunk", vector_id=vector_id)
                continue
            results.append(RetrievedChunk(chunk=chunk, vector_id=vector_id, distance=distance))

        logger.info(
            "retrieval_completed",
            results_returned=len(results),
            top_distance=results[0].distance if results else None,
        )

        return results
