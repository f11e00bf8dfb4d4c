"""Ingest pipeline for indexing campus web pages.

Orchestrates:
- Page discovery (explicit URL list or sitemap)
- Page loading and text extraction
- Text chunking
- Embedding generation
- Vector and chunk storage
"""
import asyncio
from typing import List, Dict, Any, Optional, Callable
import structlog

from campusbot import config
from campusbot.db import ChunkStore
from campusbot.errors import IngestionError
from campusbot.llm_client import GeminiClient
from campusbot.rag.chunker import TextChunker
from campusbot.rag.loader import LoadedPage, SitemapLoader, WebPageLoader
from campusbot.rag.store_faiss import FAISSVectorStore

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int, str], None]


class IngestPipeline:
    """Pipeline for ingesting web pages into the vector index."""

    def __init__(
        self,
        embedder: GeminiClient,
        vector_store: FAISSVectorStore,
        chunk_store: ChunkStore,
        page_loader: WebPageLoader = None,
        chunker: TextChunker = None,
        batch_size: int = None,
        max_concurrency: int = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            embedder: Client used to embed chunk texts
            vector_store: FAISS store receiving the vectors
            chunk_store: SQLite store receiving chunk text and provenance
            page_loader: Page fetcher (default WebPageLoader)
            chunker: Text splitter (default TextChunker from config)
            batch_size: Texts per embedding request (default from config)
            max_concurrency: Pages fetched in parallel (default from config)
        """
        self.embedder = embedder
        self.vector_store = vector_store
        self.chunk_store = chunk_store
        self.page_loader = page_loader or WebPageLoader()
        self.sitemap_loader = SitemapLoader(page_loader=self.page_loader)
        self.chunker = chunker or TextChunker()
        self.batch_size = batch_size or config.EMBED_BATCH_SIZE
        self.max_concurrency = max_concurrency or config.LOADER_MAX_CONCURRENCY

        self.stats = self._empty_stats()

        logger.info(
            "ingest_pipeline_initialized",
            embedding_model=self.embedder.embedding_model,
            chunk_size=self.chunker.chunk_size,
            chunk_overlap=self.chunker.chunk_overlap,
            max_concurrency=self.max_concurrency,
        )

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            "pages_processed": 0,
            "pages_failed": 0,
            "chunks_created": 0,
            "embeddings_generated": 0,
            "failed_urls": [],
        }

    def _record_failure(self, url: str, error: Exception) -> None:
        logger.error(
            "page_ingestion_failed",
            url=url,
            error=str(error),
            error_type=type(error).__name__,
        )
        self.stats["pages_failed"] += 1
        self.stats["failed_urls"].append(url)

    async def generate_embeddings_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed texts in batches of ``batch_size``.

        Raises:
            RuntimeError: If embedding generation fails
        """
        embeddings: List[List[float]] = []

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            try:
                batch_embeddings = await self.embedder.embed_documents(batch)
            except Exception as e:
                raise RuntimeError(f"Failed to generate embeddings: {e}") from e

            embeddings.extend(batch_embeddings)
            self.stats["embeddings_generated"] += len(batch_embeddings)

            logger.debug(
                "embeddings_batch_generated",
                batch_size=len(batch),
                total_so_far=len(embeddings),
            )

        return embeddings

    async def load_pages(
        self, urls: List[str], progress_callback: Optional[ProgressCallback] = None
    ) -> List[LoadedPage]:
        """Fetch pages with bounded concurrency, skipping failures.

        Returns:
            Loaded pages in the order of ``urls``
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)
        done = 0

        async def _load(url: str) -> Optional[LoadedPage]:
            nonlocal done
            async with semaphore:
                try:
                    return await self.page_loader.load(url)
                except Exception as e:
                    self._record_failure(url, e)
                    return None
                finally:
                    done += 1
                    if progress_callback:
                        progress_callback(done, len(urls), url)

        results = await asyncio.gather(*(_load(url) for url in urls))
        return [page for page in results if page is not None]

    async def ingest_page(self, page: LoadedPage) -> int:
        """Chunk, embed and store one page.

        Returns:
            Number of chunks stored
        """
        chunks = self.chunker.chunk_text(page.text)

        if not chunks:
            logger.warning("no_chunks_created", url=page.url)
            return 0

        embeddings = await self.generate_embeddings_batch([c.content for c in chunks])

        # Vectors are only added once every embedding for the page succeeded
        vector_ids = await self.vector_store.add_vectors(embeddings)

        self.chunk_store.insert_chunks([
            {
                "vector_id": vector_id,
                "source_url": page.url,
                "title": page.title,
                "chunk_index": chunk.chunk_index,
                "content": chunk.content,
            }
            for chunk, vector_id in zip(chunks, vector_ids)
        ])

        self.stats["chunks_created"] += len(chunks)
        self.stats["pages_processed"] += 1

        logger.info("page_ingested", url=page.url, title=page.title, chunks_created=len(chunks))
        return len(chunks)

    async def _prepare_stores(self, rebuild: bool) -> None:
        self.chunk_store.init_database()
        if rebuild:
            await self.vector_store.rebuild_index()
            self.chunk_store.clear_all_chunks()
            logger.info("index_and_database_cleared")
        else:
            await self.vector_store.init_or_load()
            # Rows past the saved index belong to a run that never reached save_index()
            orphaned = self.chunk_store.delete_chunks_from(self.vector_store.vector_count)
            if orphaned:
                logger.warning("orphaned_chunks_removed", count=orphaned)

    async def ingest_urls(
        self,
        urls: List[str],
        rebuild: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """Ingest an explicit list of page URLs.

        A page that fails to load, chunk, embed or store is logged and skipped.

        Returns:
            Ingestion statistics

        Raises:
            IngestionError: If no chunks were produced from any URL
        """
        logger.info("starting_ingest", url_count=len(urls), rebuild=rebuild)

        self.stats = self._empty_stats()
        await self._prepare_stores(rebuild)

        pages = await self.load_pages(urls, progress_callback=progress_callback)

        for page in pages:
            try:
                await self.ingest_page(page)
            except Exception as e:
                self._record_failure(page.url, e)

        logger.info("total_chunks_across_sources", chunks=self.stats["chunks_created"])

        if self.stats["chunks_created"] == 0:
            raise IngestionError("No content was loaded from any URL")

        await self.vector_store.save_index()

        self.chunk_store.insert_index_metadata(
            embedding_model=self.embedder.embedding_model,
            embedding_dimension=self.vector_store.dimension,
            chunk_size=self.chunker.chunk_size,
            chunk_overlap=self.chunker.chunk_overlap,
            total_chunks=self.stats["chunks_created"],
            total_pages=self.stats["pages_processed"],
            metadata={
                "pages_failed": self.stats["pages_failed"],
                "failed_urls": self.stats["failed_urls"],
                "embeddings_generated": self.stats["embeddings_generated"],
            },
        )

        logger.info("ingest_completed", stats=self.stats)
        return self.stats

    async def ingest_sitemap(
        self,
        sitemap_url: str,
        rebuild: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """Ingest every page listed in a sitemap.

        Raises:
            IngestionError: If the sitemap lists nothing or no chunks were produced
        """
        try:
            urls = await self.sitemap_loader.discover_urls(sitemap_url)
        except Exception as e:
            logger.error("sitemap_load_failed", url=sitemap_url, error=str(e))
            raise IngestionError(f"Could not read sitemap {sitemap_url}: {e}") from e

        if not urls:
            raise IngestionError(f"Sitemap {sitemap_url} lists no pages")

        return await self.ingest_urls(urls, rebuild=rebuild, progress_callback=progress_callback)
