"""SQLite chunk store for CampusBot.

Stores:
- Text chunks with their source URL and page title
- Metadata about ingestion runs
- Mapping between FAISS vector IDs and chunks
"""
import sqlite3
import json
from pathlib import Path
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
import structlog

from campusbot import config
from campusbot.models import Chunk

logger = structlog.get_logger()


class ChunkStore:
    """Chunk text and provenance keyed by FAISS vector ID."""

    def __init__(self, db_path: Path = None):
        self.db_path = Path(db_path or config.DB_PATH)

    def get_connection(self) -> sqlite3.Connection:
        """Get a connection with row_factory set to sqlite3.Row."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_database(self) -> None:
        """Create tables if they don't exist.

        - index_metadata: one row per ingestion run
        - chunks: chunk text, source URL and title per FAISS vector ID
        """
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS index_metadata (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    indexed_at TEXT NOT NULL,
                    embedding_model TEXT NOT NULL,
                    embedding_dimension INTEGER NOT NULL,
                    chunk_size INTEGER NOT NULL,
                    chunk_overlap INTEGER NOT NULL,
                    total_chunks INTEGER NOT NULL,
                    total_pages INTEGER NOT NULL,
                    metadata_json TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS chunks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    vector_id INTEGER NOT NULL UNIQUE,
                    source_url TEXT NOT NULL,
                    title TEXT NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_chunks_source_url
                ON chunks(source_url)
            """)

            conn.commit()
            logger.info("database_initialized", db_path=str(self.db_path))

        except Exception as e:
            conn.rollback()
            logger.error("database_init_failed", error=str(e))
            raise
        finally:
            conn.close()

    def insert_chunks(self, rows: List[Dict[str, Any]]) -> int:
        """Insert chunks in one transaction.

        Each row needs vector_id, source_url, title, chunk_index and content.
        Chunks are write-once: an existing vector_id is never overwritten.

        Returns:
            Number of rows inserted
        """
        if not rows:
            return 0

        now = datetime.now(timezone.utc).isoformat()
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.executemany("""
                INSERT INTO chunks (
                    vector_id, source_url, title, chunk_index, content, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
            """, [
                (
                    row["vector_id"],
                    row["source_url"],
                    row["title"],
                    row["chunk_index"],
                    row["content"],
                    now,
                )
                for row in rows
            ])
            conn.commit()
            return len(rows)

        except Exception as e:
            conn.rollback()
            logger.error("chunk_insert_failed", error=str(e), count=len(rows))
            raise
        finally:
            conn.close()

    def get_chunks_by_vector_ids(self, vector_ids: List[int]) -> Dict[int, Chunk]:
        """Look up chunks by FAISS vector ID.

        Returns:
            Mapping of vector_id to Chunk; unknown IDs are absent
        """
        if not vector_ids:
            return {}

        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            placeholders = ",".join("?" * len(vector_ids))
            cursor.execute(f"""
                SELECT vector_id, source_url, title, content
                FROM chunks
                WHERE vector_id IN ({placeholders})
            """, vector_ids)

            return {
                row["vector_id"]: Chunk(
                    text=row["content"],
                    source_url=row["source_url"],
                    title=row["title"],
                )
                for row in cursor.fetchall()
            }

        except Exception as e:
            logger.error("chunks_retrieval_failed", error=str(e))
            raise
        finally:
            conn.close()

    def insert_index_metadata(
        self,
        embedding_model: str,
        embedding_dimension: int,
        chunk_size: int,
        chunk_overlap: int,
        total_chunks: int,
        total_pages: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Record an ingestion run.

        Returns:
            ID of the inserted metadata row
        """
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO index_metadata (
                    indexed_at, embedding_model, embedding_dimension,
                    chunk_size, chunk_overlap, total_chunks, total_pages,
                    metadata_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                datetime.now(timezone.utc).isoformat(),
                embedding_model,
                embedding_dimension,
                chunk_size,
                chunk_overlap,
                total_chunks,
                total_pages,
                json.dumps(metadata) if metadata else None,
            ))

            conn.commit()
            row_id = cursor.lastrowid
            logger.info("index_metadata_inserted", id=row_id, total_chunks=total_chunks)
            return row_id

        except Exception as e:
            conn.rollback()
            logger.error("index_metadata_insert_failed", error=str(e))
            raise
        finally:
            conn.close()

    def get_latest_index_metadata(self) -> Optional[Dict[str, Any]]:
        """Get the most recent ingestion run, or None if there is none."""
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT * FROM index_metadata
                ORDER BY id DESC
                LIMIT 1
            """)

            row = cursor.fetchone()
            if row is None:
                return None
            metadata = dict(row)
            if metadata["metadata_json"]:
                metadata["metadata"] = json.loads(metadata["metadata_json"])
            return metadata

        except Exception as e:
            logger.error("index_metadata_retrieval_failed", error=str(e))
            raise
        finally:
            conn.close()

    def clear_all_chunks(self) -> int:
        """Delete all chunks. Used when rebuilding the index.

        Returns:
            Number of chunks deleted
        """
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT COUNT(*) FROM chunks")
            count = cursor.fetchone()[0]

            cursor.execute("DELETE FROM chunks")
            conn.commit()

            logger.info("chunks_cleared", count=count)
            return count

        except Exception as e:
            conn.rollback()
            logger.error("chunks_clear_failed", error=str(e))
            raise
        finally:
            conn.close()

    def delete_chunks_from(self, vector_id: int) -> int:
        """Delete chunks whose vector_id is at or beyond ``vector_id``.

        Returns:
            Number of chunks deleted
        """
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM chunks WHERE vector_id >= ?", (vector_id,))
            conn.commit()
            return cursor.rowcount

        except Exception as e:
            conn.rollback()
            logger.error("chunks_delete_failed", error=str(e), from_vector_id=vector_id)
            raise
        finally:
            conn.close()

    def get_chunk_count(self) -> int:
        conn = self.get_connection()
        try:
            return conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
        finally:
            conn.close()
