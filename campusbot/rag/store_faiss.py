"""FAISS vector store for the campus page index.

The index directory holds two files:
- ``vectors.index``: the FAISS IndexFlatL2 (vector id == insertion position)
- ``manifest.json``: which embedding model/dimension built the vectors

Chunk text and provenance live in the chunk store, keyed by vector id.
"""
import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional, Tuple
import numpy as np
import faiss
import structlog

from campusbot import config
from campusbot.llm_client import GeminiClient

logger = structlog.get_logger()

INDEX_FILENAME = "vectors.index"
MANIFEST_FILENAME = "manifest.json"


@dataclass
class IndexManifest:
    """What the vectors on disk were built with."""
    index_name: str
    embedding_model: str
    embedding_dimension: int
    vector_count: int = 0

    @classmethod
    def read(cls, path: Path) -> "IndexManifest":
        try:
            data = json.loads(path.read_text())
            return cls(**data)
        except (OSError, ValueError, TypeError) as e:
            raise RuntimeError(f"Unreadable index manifest {path}: {e}") from e

    def write(self, path: Path) -> None:
        path.write_text(json.dumps(asdict(self), indent=2))


class FAISSVectorStore:
    """Exact L2 search over page-chunk embeddings."""

    def __init__(
        self,
        embedder: GeminiClient,
        index_dir: Path = None,
        embedding_model: str = None,
    ):
        """Args:
            embedder: Client used to probe the embedding dimension
            index_dir: Where the index lives (default: config.INDEX_DIR)
            embedding_model: Model name recorded in the manifest (default from the embedder)
        """
        self.embedder = embedder
        self.index_dir = Path(index_dir or config.INDEX_DIR)
        self.embedding_model = embedding_model or embedder.embedding_model

        self.index_path = self.index_dir / INDEX_FILENAME
        self.manifest_path = self.index_dir / MANIFEST_FILENAME

        self.index: Optional[faiss.Index] = None
        self.manifest: Optional[IndexManifest] = None

    @property
    def is_loaded(self) -> bool:
        return self.index is not None

    @property
    def dimension(self) -> Optional[int]:
        return self.manifest.embedding_dimension if self.manifest else None

    @property
    def vector_count(self) -> int:
        return self.index.ntotal if self.index is not None else 0

    def exists_on_disk(self) -> bool:
        return self.index_path.exists() and self.manifest_path.exists()

    async def get_embedding_dimension(self) -> int:
        """Embed a probe string and report its length.

        Raises:
            RuntimeError: If the embedding service fails
        """
        try:
            probe = await self.embedder.embed_query("test", model=self.embedding_model)
        except Exception as e:
            logger.error("embedding_probe_failed", model=self.embedding_model, error=str(e))
            raise RuntimeError(f"Failed to detect embedding dimension: {e}") from e

        logger.info("embedding_dimension_detected", model=self.embedding_model, dimension=len(probe))
        return len(probe)

    async def init_new_index(self, dimension: Optional[int] = None) -> None:
        """Start an empty in-memory index; nothing is written until save_index()."""
        if dimension is None:
            dimension = await self.get_embedding_dimension()

        self.index = faiss.IndexFlatL2(dimension)
        self.manifest = IndexManifest(
            index_name=config.INDEX_NAME,
            embedding_model=self.embedding_model,
            embedding_dimension=dimension,
        )
        logger.info("faiss_index_initialized", dimension=dimension)

    async def load_index(self, validate_dimension: bool = True) -> None:
        """Load the persisted index.

        Args:
            validate_dimension: Compare the stored dimension with the live model's

        Raises:
            FileNotFoundError: If the index or manifest is missing
            ValueError: If the live model's dimension differs from the stored one
            RuntimeError: If either file cannot be read
        """
        for path in (self.index_path, self.manifest_path):
            if not path.exists():
                raise FileNotFoundError(f"Index file not found: {path}")

        manifest = IndexManifest.read(self.manifest_path)

        if validate_dimension:
            live_dimension = await self.get_embedding_dimension()
            if live_dimension != manifest.embedding_dimension:
                raise ValueError(
                    f"Index was built with {manifest.embedding_model} "
                    f"(dim={manifest.embedding_dimension}) but {self.embedding_model} "
                    f"produces dim={live_dimension}; re-run ingestion with --rebuild"
                )

        try:
            index = faiss.read_index(str(self.index_path))
        except Exception as e:
            raise RuntimeError(f"Failed to read FAISS index: {e}") from e

        self.index, self.manifest = index, manifest
        logger.info(
            "faiss_index_loaded",
            index_name=manifest.index_name,
            dimension=manifest.embedding_dimension,
            vector_count=index.ntotal,
        )

    async def save_index(self) -> None:
        if self.index is None:
            raise RuntimeError("No index to save")

        self.index_dir.mkdir(parents=True, exist_ok=True)
        self.manifest.vector_count = self.index.ntotal

        try:
            faiss.write_index(self.index, str(self.index_path))
            self.manifest.write(self.manifest_path)
        except Exception as e:
            raise RuntimeError(f"Failed to save index: {e}") from e

        logger.info("faiss_index_saved", path=str(self.index_path), vector_count=self.index.ntotal)

    async def add_vectors(self, embeddings: List[List[float]]) -> List[int]:
        """Append vectors and return their ids (positions in the index).

        Raises:
            RuntimeError: If no index is initialized
            ValueError: If a vector has the wrong dimension
        """
        if self.index is None:
            raise RuntimeError("No index initialized")
        if not embeddings:
            return []

        matrix = self._as_matrix(embeddings)
        first_id = self.index.ntotal
        self.index.add(matrix)

        logger.debug("vectors_added", count=len(embeddings), total_vectors=self.index.ntotal)
        return list(range(first_id, first_id + len(embeddings)))

    async def search(
        self, query_embedding: List[float], top_k: int = None
    ) -> Tuple[List[int], List[float]]:
        """Return (vector_ids, distances), nearest first.

        Raises:
            RuntimeError: If no index is loaded
        """
        if self.index is None:
            raise RuntimeError("No index loaded")

        k = min(top_k or config.RETRIEVAL_TOP_K, self.index.ntotal)
        if k == 0:
            return [], []

        distances, ids = self.index.search(self._as_matrix([query_embedding]), k)

        # FAISS pads with -1 when fewer than k vectors qualify
        hits = [(int(i), float(d)) for i, d in zip(ids[0], distances[0]) if i != -1]
        logger.debug("vector_search_completed", top_k=k, hits=len(hits))

        return [i for i, _ in hits], [d for _, d in hits]

    async def init_or_load(self) -> None:
        """Load the index from disk when present, else start an empty one."""
        if self.exists_on_disk():
            await self.load_index()
        else:
            logger.info("no_index_on_disk", index_dir=str(self.index_dir))
            await self.init_new_index()

    async def rebuild_index(self) -> None:
        """Discard the on-disk index and start an empty one."""
        logger.warning("rebuilding_index", index_dir=str(self.index_dir))
        for path in (self.index_path, self.manifest_path):
            path.unlink(missing_ok=True)
        await self.init_new_index()

    def _as_matrix(self, vectors: List[List[float]]) -> np.ndarray:
        matrix = np.asarray(vectors, dtype=np.float32)
        if matrix.ndim != 2 or matrix.shape[1] != self.dimension:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {matrix.shape[-1]}"
            )
        return matrix
