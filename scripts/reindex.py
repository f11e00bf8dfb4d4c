#!/usr/bin/env python
"""Index campus web pages into the vector index.

Usage:
    python scripts/reindex.py                          # Configured WEBSITE_URLS
    python scripts/reindex.py --sitemap URL            # Every page in a sitemap
    python scripts/reindex.py --url A --url B          # Explicit pages
    python scripts/reindex.py --rebuild                # Clear the index first
"""
import argparse
import asyncio
import sys
from pathlib import Path
from datetime import datetime

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from campusbot import config
from campusbot.db import ChunkStore
from campusbot.errors import IngestionError
from campusbot.llm_client import GeminiClient
from campusbot.logging_setup import configure_logging
from campusbot.rag.ingest import IngestPipeline
from campusbot.rag.store_faiss import FAISSVectorStore
import structlog

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, url: str):
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {url[-30:]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print()

    def finish(self, stats: dict):
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print("  Indexing Complete!")
        print(f"{'=' * 60}\n")
        print(f"  Pages processed:      {stats['pages_processed']}")
        print(f"  Pages failed:         {stats['pages_failed']}")
        print(f"  Chunks created:       {stats['chunks_created']}")
        print(f"  Embeddings generated: {stats['embeddings_generated']}")
        print(f"  Time elapsed:         {elapsed_seconds:.1f}s")

        print(f"\n{'=' * 60}\n")

        if stats["pages_failed"] > 0:
            print(f"Warning: {stats['pages_failed']} page(s) failed to index:")
            for url in stats["failed_urls"]:
                print(f"   - {url}")
            print()

        print(f"Index ready at: {config.INDEX_DIR}\n")


async def main():
    parser = argparse.ArgumentParser(
        description="Index campus web pages for the RAG pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--sitemap",
        default=None,
        help="Sitemap URL to crawl",
    )
    source.add_argument(
        "--url",
        action="append",
        dest="urls",
        help="Page URL to index (repeatable; default: WEBSITE_URLS)",
    )
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Rebuild index from scratch (clears existing data)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show verbose progress output",
    )
    args = parser.parse_args()

    configure_logging("DEBUG" if args.verbose else "WARNING", json_output=False)
    progress = ProgressReporter(verbose=args.verbose)

    print("\nConfiguration:")
    print(f"   Index:            {config.INDEX_NAME} ({config.INDEX_DIR})")
    print(f"   Embedding model:  {config.EMBEDDING_MODEL}")
    print(f"   Chunk size:       {config.CHUNK_SIZE} chars")
    print(f"   Chunk overlap:    {config.CHUNK_OVERLAP} chars")

    client = GeminiClient()
    pipeline = IngestPipeline(
        embedder=client,
        vector_store=FAISSVectorStore(embedder=client),
        chunk_store=ChunkStore(),
    )

    try:
        action = "Rebuilding" if args.rebuild else "Indexing"
        if args.sitemap:
            progress.start(f"{action} sitemap {args.sitemap}")
            stats = await pipeline.ingest_sitemap(
                args.sitemap, rebuild=args.rebuild, progress_callback=progress.update
            )
        else:
            urls = args.urls or config.WEBSITE_URLS
            progress.start(f"{action} {len(urls)} page(s)")
            stats = await pipeline.ingest_urls(
                urls, rebuild=args.rebuild, progress_callback=progress.update
            )

        progress.finish(stats)

    except KeyboardInterrupt:
        print("\n\nIndexing cancelled by user.\n")
        sys.exit(1)

    except IngestionError as e:
        print(f"\nError: {e}\n")
        sys.exit(1)

    except Exception as e:
        print(f"\nError: {e}\n")
        logger.error("reindex_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
