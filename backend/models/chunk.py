"""Chunk data models."""
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Chunk:
    """Represents an embedded document chunk for retrieval."""
    book_id: str
    chunk_index: int  # unique and increasing within (book_id, embedding_config_id)
    text: str
    embedding: Tuple[float, ...]
    embedding_config_id: str
    page_number: Optional[int] = None
    id: Optional[str] = None  # assigned by the store on insert


@dataclass(frozen=True)
class RetrievalResult:
    """Chunk with its cosine similarity to the query."""
    chunk: Chunk
    score: float  # -1.0 to 1.0, higher is more relevant
