"""Text chunking with overlap for the ingestion pipeline.

Character-based windows from langchain's recursive splitter, which
prefers paragraph, then line, then word boundaries.
"""
from typing import List
from dataclasses import dataclass
from langchain_text_splitters import RecursiveCharacterTextSplitter
import structlog

from campusbot import config

logger = structlog.get_logger()


@dataclass
class TextChunk:
    """Represents a chunk of text with position information."""

    content: str
    char_start: int
    char_end: int
    chunk_index: int


class TextChunker:
    """Fixed-size overlapping chunker."""

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Size of each chunk in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)
        """
        self.chunk_size = chunk_size or config.CHUNK_SIZE
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"Overlap ({self.chunk_overlap}) must be less than "
                f"chunk size ({self.chunk_size})"
            )

        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            add_start_index=True,
        )

        logger.info(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into overlapping chunks."""
        if not text or not text.strip():
            return []

        documents = self._splitter.create_documents([text])

        chunks = [
            TextChunk(
                content=doc.page_content,
                char_start=doc.metadata["start_index"],
                char_end=doc.metadata["start_index"] + len(doc.page_content),
                chunk_index=i,
            )
            for i, doc in enumerate(documents)
        ]

        logger.debug(
            "text_chunked",
            text_length=len(text),
            chunk_count=len(chunks),
        )

        return chunks
