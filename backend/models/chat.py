"""Chat audit data models."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class RetrievalType(str, Enum):
    STANDARD = "standard"
    GRAPH = "graph"


@dataclass(frozen=True)
class ChatTurn:
    """One answered question, persisted for audit and strategy comparison."""
    book_id: str
    question: str
    answer: str
    retrieval_type: RetrievalType
    cited_chunk_ids: Tuple[str, ...]
    prompt_used: str
    system_prompt: str
    id: Optional[str] = None
