"""API request/response models."""
from typing import List, Optional
from pydantic import BaseModel, Field

from config import DEFAULT_BATCH_SIZE, DEFAULT_TOP_K, EMBEDDING_MODEL
from models.chat import RetrievalType


class EmbeddingConfigRequest(BaseModel):
    """Payload for creating an embedding configuration."""
    chunk_size: int
    overlap: int
    cleaner_strategy: str = "simple"
    split_strategy: str = "recursive"
    model: str = EMBEDDING_MODEL
    batch_size: int = DEFAULT_BATCH_SIZE
    name: Optional[str] = None
    description: Optional[str] = None


class EmbeddingConfigResponse(EmbeddingConfigRequest):
    id: str


class QueryRequest(BaseModel):
    """Question against one book's chunk set."""
    book_id: str
    embedding_config_id: str
    question: str
    retrieval_type: RetrievalType = RetrievalType.STANDARD
    top_k: int = Field(default=DEFAULT_TOP_K, ge=1, le=50)


class Source(BaseModel):
    """A cited chunk."""
    chunk_id: Optional[str]
    chunk_index: int
    page: Optional[int]
    text: str
    relevance_score: float


class GraphTraceResponse(BaseModel):
    seed_chunk_ids: List[str]
    linked_node_ids: List[str]
    neighbour_node_ids: List[str]
    expanded_chunk_ids: List[str]


class ResponseMetadata(BaseModel):
    """Metadata for an answered query."""
    retrieval_type: RetrievalType
    model_used: str
    prompt_tokens: int
    latency_ms: int
    chunks_retrieved: int
    chat_id: Optional[str] = None


class QueryResponse(BaseModel):
    """Answer with the prompt the model saw and the chunks it cited."""
    answer: str
    system_prompt: str
    prompt: str
    sources: List[Source]
    metadata: ResponseMetadata
    graph_trace: Optional[GraphTraceResponse] = None


class CompareResponse(BaseModel):
    """Standard and graph answers for the same question."""
    standard: QueryResponse
    graph: QueryResponse


class PipelineStateResponse(BaseModel):
    """Progress of an indexing run."""
    book_id: str
    embedding_config_id: str
    step: str
    message: str
    chunks_total: int
    chunks_embedded: int
    error: Optional[str] = None
    failed_step: Optional[str] = None


class ChatTurnResponse(BaseModel):
    """A recorded question with the chunks and prompt behind its answer."""
    id: Optional[str]
    question: str
    answer: str
    retrieval_type: RetrievalType
    cited_chunk_ids: List[str]
    system_prompt: str
    prompt: str
