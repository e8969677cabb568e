"""Chunk persistence using Supabase."""
import logging
from typing import List, Optional
from supabase import create_client, Client
from models.chunk import Chunk
from config import SUPABASE_URL, SUPABASE_KEY

logger = logging.getLogger(__name__)


def row_to_chunk(row: dict) -> Chunk:
    """Build a Chunk from a ``chunks`` table row."""
    return Chunk(
        id=row["id"],
        book_id=row["book_id"],
        chunk_index=row["chunk_index"],
        text=row["text"],
        embedding=tuple(float(v) for v in row["embedding"]),
        embedding_config_id=row["embedding_settings_id"],
        page_number=row.get("page_number")
    )


class ChunkStore:
    """Write-once, read-many storage of chunk sets per (book, embedding configuration)."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table_name: str = "chunks",
        client: Optional[Client] = None
    ):
        """
        Initialize the chunk store with a Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Name of the table holding chunks
            client: Existing Supabase client to share instead of creating one

        Raises:
            ValueError: If Supabase credentials are missing and no client is given
        """
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        self.table_name = table_name
        logger.info(f"Initialized ChunkStore with table: {table_name}")

    def create_chunks(self, chunks: List[Chunk]) -> List[Chunk]:
        """
        Insert a complete chunk set in one batch.

        A single insert statement keeps the write all-or-nothing, so readers
        never see half of a chunk set.

        Args:
            chunks: Embedded chunks in chunk_index order

        Returns:
            The stored chunks with their assigned ids

        Raises:
            ValueError: If chunks list is empty
            RuntimeError: If database operation fails
        """
        if not chunks:
            raise ValueError("Chunks list cannot be empty")

        records = [
            {
                "book_id": chunk.book_id,
                "chunk_index": chunk.chunk_index,
                "text": chunk.text,
                "embedding": list(chunk.embedding),
                "page_number": chunk.page_number,
                "embedding_settings_id": chunk.embedding_config_id
            }
            for chunk in chunks
        ]

        try:
            response = self.client.table(self.table_name).insert(records).execute()
        except Exception as e:
            error_msg = f"Failed to store chunks: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

        stored = sorted((row_to_chunk(row) for row in response.data), key=lambda c: c.chunk_index)
        logger.info(f"Stored {len(stored)} chunks for book {chunks[0].book_id}")
        return stored

    def get_chunks(self, book_id: str, embedding_config_id: str) -> List[Chunk]:
        """
        Fetch the chunk set of one embedding configuration, ordered by chunk_index.

        Raises:
            RuntimeError: If database operation fails
        """
        try:
            response = (
                self.client.table(self.table_name)
                .select("*")
                .eq("book_id", book_id)
                .eq("embedding_settings_id", embedding_config_id)
                .order("chunk_index")
                .execute()
            )
        except Exception as e:
            error_msg = f"Failed to fetch chunks: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

        chunks = [row_to_chunk(row) for row in response.data or []]
        logger.debug(f"Fetched {len(chunks)} chunks for book {book_id}, config {embedding_config_id}")
        return chunks

    def count(self, book_id: str, embedding_config_id: str) -> int:
        """
        Number of stored chunks for one (book, configuration) pair.

        Raises:
            RuntimeError: If database operation fails
        """
        try:
            response = (
                self.client.table(self.table_name)
                .select("id", count="exact")
                .eq("book_id", book_id)
                .eq("embedding_settings_id", embedding_config_id)
                .execute()
            )
            return response.count if response.count is not None else 0
        except Exception as e:
            error_msg = f"Failed to count chunks: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)
