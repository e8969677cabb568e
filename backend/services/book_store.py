"""Books and embedding configurations stored in Supabase."""
import logging
from typing import List, Optional
from supabase import create_client, Client

from config import DEFAULT_BATCH_SIZE, SUPABASE_URL, SUPABASE_KEY
from errors import NotFoundError
from models.document import Book
from models.embedding_config import EmbeddingConfig

logger = logging.getLogger(__name__)


def row_to_config(row: dict) -> EmbeddingConfig:
    """Build an EmbeddingConfig from an ``embedding_settings`` row."""
    return EmbeddingConfig(
        id=row["id"],
        chunk_size=row["chunk_size"],
        overlap=row["overlap"],
        cleaner_strategy=row["cleaner"],
        split_strategy=row["strategy"],
        model=row["model"],
        batch_size=row.get("batch_size") or DEFAULT_BATCH_SIZE,
        name=row.get("name"),
        description=row.get("description")
    )


class BookStore:
    """Read books; create and read immutable embedding configurations."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        client: Optional[Client] = None
    ):
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        logger.info("Initialized BookStore")

    def get_book(self, book_id: str) -> Book:
        """
        Fetch a book by id.

        Raises:
            NotFoundError: If no such book exists
        """
        result = self.client.table("books").select("*").eq("id", book_id).execute()
        if not result.data:
            raise NotFoundError(f"Book {book_id} not found")

        row = result.data[0]
        return Book(id=row["id"], title=row["title"], filename=row["filename"], source=row.get("source"))

    def create_embedding_config(self, config: EmbeddingConfig) -> EmbeddingConfig:
        """
        Store a new configuration; existing rows are never edited.

        Returns:
            The configuration with its assigned id
        """
        record = {
            "chunk_size": config.chunk_size,
            "overlap": config.overlap,
            "cleaner": config.cleaner_strategy.value,
            "strategy": config.split_strategy.value,
            "model": config.model,
            "batch_size": config.batch_size,
            "name": config.name,
            "description": config.description
        }
        try:
            result = self.client.table("embedding_settings").insert(record).execute()
        except Exception as e:
            error_msg = f"Failed to create embedding configuration: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

        created = config.with_id(result.data[0]["id"])
        logger.info(
            f"Created embedding configuration {created.id}: "
            f"{created.split_strategy.value}/{created.cleaner_strategy.value}, "
            f"size={created.chunk_size}, overlap={created.overlap}, model={created.model}"
        )
        return created

    def get_embedding_config(self, config_id: str) -> EmbeddingConfig:
        """
        Fetch a configuration by id.

        Raises:
            NotFoundError: If no such configuration exists
        """
        result = self.client.table("embedding_settings").select("*").eq("id", config_id).execute()
        if not result.data:
            raise NotFoundError(f"Embedding configuration {config_id} not found")
        return row_to_config(result.data[0])

    def list_embedding_configs(self) -> List[EmbeddingConfig]:
        """All configurations, newest first."""
        result = self.client.table("embedding_settings").select("*").order("created_at", desc=True).execute()
        return [row_to_config(row) for row in result.data or []]
