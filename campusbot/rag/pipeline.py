"""Retrieval-augmented answer pipeline.

One turn moves through explicit stages:

    IDLE -> RETRIEVING -> RERANKING (keyword-triggered) -> ASSEMBLING -> GENERATING -> IDLE

The pipeline keeps no per-turn state on itself, so one instance can serve
concurrent requests. Conversation history is passed in and a new state is
handed back; a failed turn leaves the caller's state as it was.
"""
from typing import Callable, Optional
import structlog

from campusbot import config
from campusbot.db import ChunkStore
from campusbot.errors import RetrievalError
from campusbot.llm_client import GeminiClient
from campusbot.models import ConversationState, Stage, TurnResult, append_turn
from campusbot.rag.context import assemble_context
from campusbot.rag.generator import FALLBACK_MESSAGE, AnswerGenerator
from campusbot.rag.reranker import KeywordReranker
from campusbot.rag.retriever import Retriever
from campusbot.rag.store_faiss import FAISSVectorStore

logger = structlog.get_logger()

StageObserver = Callable[[Stage], None]


class AnswerPipeline:
    """Retrieve, re-rank, assemble and generate for one question at a time."""

    def __init__(
        self,
        retriever: Retriever,
        reranker: KeywordReranker,
        generator: AnswerGenerator,
        max_context_chars: Optional[int] = None,
        fallback_message: str = FALLBACK_MESSAGE,
    ):
        self.retriever = retriever
        self.reranker = reranker
        self.generator = generator
        self.max_context_chars = (
            config.MAX_CONTEXT_CHARS if max_context_chars is None else max_context_chars
        )
        self.fallback_message = fallback_message

    @property
    def is_ready(self) -> bool:
        return self.retriever.is_ready

    async def answer(
        self,
        question: str,
        state: Optional[ConversationState] = None,
        observer: Optional[StageObserver] = None,
        k: Optional[int] = None,
    ) -> TurnResult:
        """Answer one question.

        Args:
            question: User question
            state: Conversation so far; None runs the turn statelessly
            observer: Called with each stage as the turn enters it
            k: Number of chunks to retrieve (default from the retriever)

        Returns:
            TurnResult; in stateful mode ``state`` has the new turn appended.
            Fallback answers are not recorded in the history.

        Raises:
            GenerationError: If the generation service fails
            IndexNotReadyError: If the vector index is not loaded
        """
        def enter(stage: Stage) -> None:
            logger.debug("pipeline_stage", stage=stage.value)
            if observer:
                observer(stage)

        history = state.history if state is not None else ()

        try:
            enter(Stage.RETRIEVING)
            try:
                results = await self.retriever.retrieve(question, history=history, k=k)
            except RetrievalError:
                # Already logged by the retriever; surfaced to the user as "no information"
                results = []

            if not results:
                logger.info("no_relevant_context_found", question_preview=question[:100])
                enter(Stage.IDLE)
                return TurnResult(
                    answer=self.fallback_message,
                    used_fallback=True,
                    state=state,
                )

            if self.reranker.is_triggered(question):
                enter(Stage.RERANKING)
                results = self.reranker.rerank(results, question)

            enter(Stage.ASSEMBLING)
            context = assemble_context(results, history=history, max_chars=self.max_context_chars)

            enter(Stage.GENERATING)
            answer = await self.generator.generate(question, context)

        except Exception:
            enter(Stage.IDLE)
            raise

        new_state = append_turn(state, question, answer) if state is not None else None
        enter(Stage.IDLE)

        logger.info(
            "turn_completed",
            sources=len(results),
            context_length=len(context),
            history_length=len(new_state) if new_state is not None else 0,
        )

        return TurnResult(answer=answer, sources=results, state=new_state)


def build_pipeline(client: Optional[GeminiClient] = None) -> AnswerPipeline:
    """Wire a pipeline from config. The index still has to be loaded."""
    client = client or GeminiClient()
    retriever = Retriever(
        embedder=client,
        vector_store=FAISSVectorStore(embedder=client),
        chunk_store=ChunkStore(),
    )
    return AnswerPipeline(
        retriever=retriever,
        reranker=KeywordReranker(),
        generator=AnswerGenerator(client),
    )
