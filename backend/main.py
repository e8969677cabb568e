"""Main entry point for the Book RAG comparison API."""
import asyncio
import logging
import time
import tiktoken
from typing import Dict, List, Optional, Tuple
from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from supabase import create_client

from config import PORT, LOG_LEVEL, CORS_ORIGINS, SUPABASE_URL, SUPABASE_KEY
from errors import ConfigurationError, NotFoundError, ProviderError
from logger import setup_logging
from models.api import (
    ChatTurnResponse, CompareResponse, EmbeddingConfigRequest, EmbeddingConfigResponse, GraphTraceResponse,
    PipelineStateResponse, QueryRequest, QueryResponse, ResponseMetadata, Source
)
from models.embedding_config import EmbeddingConfig
from services.book_store import BookStore
from services.chat_history import ChatHistory
from services.chunk_store import ChunkStore
from services.document_loader import DocumentLoader
from services.embedding_model import EmbeddingModel
from services.graph_store import KnowledgeGraphStore
from services.llm_client import LLMClient
from services.pipeline_controller import ALREADY_INDEXED_MESSAGE, PipelineController, PipelineState
from services.qa_service import QAService, QAResult, MISSING_INDEX_MESSAGE
from services.retrieval_engine import RetrievalEngine

# Initialize logging
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Book RAG Comparison API",
    description="Index books and compare standard RAG with graph-augmented retrieval",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
embedding_model: EmbeddingModel = None
book_store: BookStore = None
chunk_store: ChunkStore = None
graph_store: KnowledgeGraphStore = None
chat_history: ChatHistory = None
qa_service: QAService = None
document_loader: DocumentLoader = None
tiktoken_encoder = None

# Indexing runs of this process, keyed by (book_id, embedding_config_id)
pipelines: Dict[Tuple[str, str], PipelineController] = {}
_pipeline_tasks: Dict[Tuple[str, str], asyncio.Task] = {}


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global embedding_model, book_store, chunk_store, graph_store
    global chat_history, qa_service, document_loader, tiktoken_encoder

    setup_logging(LOG_LEVEL)
    logger.info("Initializing Book RAG services...")

    try:
        # Initialize tiktoken encoder for prompt token counting
        tiktoken_encoder = tiktoken.get_encoding("o200k_base")
        logger.info("Initialized tiktoken encoder (o200k_base)")

        client = create_client(SUPABASE_URL, SUPABASE_KEY)

        embedding_model = EmbeddingModel()
        book_store = BookStore(client=client)
        chunk_store = ChunkStore(client=client)
        graph_store = KnowledgeGraphStore(client=client)
        chat_history = ChatHistory(client=client)
        document_loader = DocumentLoader()

        qa_service = QAService(
            retrieval_engine=RetrievalEngine(embedding_model),
            llm_client=LLMClient(),
            book_store=book_store,
            chunk_store=chunk_store,
            graph_store=graph_store,
            chat_history=chat_history
        )

        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Book RAG Comparison API"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "book-rag-comparison",
        "version": "1.0.0",
        "indexing_runs": len(pipelines)
    }


# ==================== EMBEDDING CONFIGURATIONS ====================

def _config_response(config: EmbeddingConfig) -> EmbeddingConfigResponse:
    return EmbeddingConfigResponse(
        id=config.id,
        chunk_size=config.chunk_size,
        overlap=config.overlap,
        cleaner_strategy=config.cleaner_strategy.value,
        split_strategy=config.split_strategy.value,
        model=config.model,
        batch_size=config.batch_size,
        name=config.name,
        description=config.description
    )


@app.post("/embedding-configs", response_model=EmbeddingConfigResponse, status_code=201)
async def create_embedding_config(request: EmbeddingConfigRequest) -> EmbeddingConfigResponse:
    """Create an immutable chunking/embedding configuration."""
    try:
        config = EmbeddingConfig(
            chunk_size=request.chunk_size,
            overlap=request.overlap,
            cleaner_strategy=request.cleaner_strategy,
            split_strategy=request.split_strategy,
            model=request.model,
            batch_size=request.batch_size,
            name=request.name,
            description=request.description
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _config_response(book_store.create_embedding_config(config))


@app.get("/embedding-configs", response_model=List[EmbeddingConfigResponse])
async def list_embedding_configs() -> List[EmbeddingConfigResponse]:
    return [_config_response(config) for config in book_store.list_embedding_configs()]


@app.get("/embedding-configs/{config_id}", response_model=EmbeddingConfigResponse)
async def get_embedding_config(config_id: str) -> EmbeddingConfigResponse:
    try:
        return _config_response(book_store.get_embedding_config(config_id))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ==================== INDEXING ====================

def _state_response(state: PipelineState) -> PipelineStateResponse:
    return PipelineStateResponse(
        book_id=state.book_id,
        embedding_config_id=state.embedding_config_id,
        step=state.step.value,
        message=state.message,
        chunks_total=state.chunks_total,
        chunks_embedded=state.chunks_embedded,
        error=state.error,
        failed_step=state.failed_step.value if state.failed_step else None
    )


@app.post("/books/{book_id}/index", response_model=PipelineStateResponse, status_code=202)
async def index_book(
    book_id: str,
    file: UploadFile = File(...),
    embedding_config_id: str = Form(...)
) -> PipelineStateResponse:
    """
    Start indexing an uploaded PDF under one embedding configuration.

    The run continues in the background; poll
    ``GET /books/{book_id}/index/{embedding_config_id}`` for progress.
    """
    try:
        book_store.get_book(book_id)
        config = book_store.get_embedding_config(embedding_config_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    key = (book_id, embedding_config_id)
    existing = pipelines.get(key)
    if existing is not None and existing.state.is_running:
        raise HTTPException(status_code=409, detail=f"Indexing already {existing.state.step.value}")
    if chunk_store.count(book_id, embedding_config_id) > 0:
        raise HTTPException(status_code=409, detail=ALREADY_INDEXED_MESSAGE)

    try:
        document = document_loader.load_bytes(await file.read(), file.filename or "upload.pdf")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    controller = PipelineController(embedding_model, chunk_store, book_id, config)
    pipelines[key] = controller
    task = asyncio.create_task(controller.run(document))
    _pipeline_tasks[key] = task
    task.add_done_callback(lambda _: _pipeline_tasks.pop(key, None))

    return _state_response(controller.state)


@app.get("/books/{book_id}/index/{config_id}", response_model=PipelineStateResponse)
async def index_status(book_id: str, config_id: str) -> PipelineStateResponse:
    """Current state of the latest indexing run for a (book, configuration) pair."""
    controller = pipelines.get((book_id, config_id))
    if controller is None:
        raise HTTPException(status_code=404, detail="No indexing run for this book and configuration")
    return _state_response(controller.state)


@app.get("/books/{book_id}/chunks")
async def list_chunks(book_id: str, embedding_config_id: Optional[str] = Query(default=None)):
    """Stored chunks of one configuration, in chunk order."""
    if not embedding_config_id:
        raise HTTPException(status_code=400, detail="Embedding settings ID is required")

    chunks = chunk_store.get_chunks(book_id, embedding_config_id)
    return [
        {
            "id": chunk.id,
            "chunk_index": chunk.chunk_index,
            "page_number": chunk.page_number,
            "text": chunk.text
        }
        for chunk in chunks
    ]


@app.get("/books/{book_id}/knowledge-graph")
async def knowledge_graph(book_id: str):
    """Nodes and edges of a book."""
    graph = graph_store.get_graph(book_id)
    return {
        "nodes": [
            {"id": n.id, "label": n.label, "type": n.type.value, "description": n.description}
            for n in graph.nodes
        ],
        "edges": [
            {
                "id": e.id,
                "source_node_id": e.source_node_id,
                "target_node_id": e.target_node_id,
                "label": e.label,
                "explanation": e.explanation
            }
            for e in graph.edges
        ]
    }


@app.get("/books/{book_id}/chats", response_model=List[ChatTurnResponse])
async def list_chats(book_id: str, limit: Optional[int] = Query(default=None, ge=1)) -> List[ChatTurnResponse]:
    """Recorded questions of a book, oldest first, with the chunks and prompt behind each answer."""
    try:
        turns = chat_history.list_turns(book_id, limit)
    except Exception as e:
        raise _to_http_exception(e)

    return [
        ChatTurnResponse(
            id=turn.id,
            question=turn.question,
            answer=turn.answer,
            retrieval_type=turn.retrieval_type,
            cited_chunk_ids=list(turn.cited_chunk_ids),
            system_prompt=turn.system_prompt,
            prompt=turn.prompt_used
        )
        for turn in turns
    ]


# ==================== QUERIES ====================

def _query_response(result: QAResult, start_time: float) -> QueryResponse:
    """Format a QAResult, counting prompt tokens with tiktoken."""
    prompt_tokens = len(tiktoken_encoder.encode(result.prompt.system_prompt + result.prompt.user_prompt))
    trace = result.outcome.trace

    return QueryResponse(
        answer=result.answer,
        system_prompt=result.prompt.system_prompt,
        prompt=result.prompt.user_prompt,
        sources=[
            Source(
                chunk_id=r.chunk.id,
                chunk_index=r.chunk.chunk_index,
                page=r.chunk.page_number,
                text=r.chunk.text,
                relevance_score=r.score
            )
            for r in result.outcome.results
        ],
        metadata=ResponseMetadata(
            retrieval_type=result.retrieval_type,
            model_used=result.llm_response.model_used,
            prompt_tokens=prompt_tokens,
            latency_ms=int((time.time() - start_time) * 1000),
            chunks_retrieved=len(result.outcome.results),
            chat_id=result.chat_id
        ),
        graph_trace=GraphTraceResponse(
            seed_chunk_ids=list(trace.seed_chunk_ids),
            linked_node_ids=list(trace.linked_node_ids),
            neighbour_node_ids=list(trace.neighbour_node_ids),
            expanded_chunk_ids=list(trace.expanded_chunk_ids)
        ) if trace else None
    )


def _to_http_exception(e: Exception) -> HTTPException:
    """Map pipeline errors to user-facing HTTP errors."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail={"message": str(e), "hint": MISSING_INDEX_MESSAGE})
    if isinstance(e, ConfigurationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ProviderError):
        logger.error(f"Provider error: {e.message}")
        return HTTPException(status_code=503, detail={"error": e.to_dict()})
    logger.error(f"Unexpected error processing query: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.post("/query", response_model=QueryResponse)
async def query_endpoint(request: QueryRequest) -> QueryResponse:
    """
    Answer a question with the requested retrieval strategy.

    Raises:
        HTTPException: 400 for invalid input, 404 for a missing book or index,
            503 when a provider fails
    """
    start_time = time.time()

    if not request.question or not request.question.strip():
        raise HTTPException(status_code=400, detail="Question field is required and cannot be empty")

    logger.info(f"Processing {request.retrieval_type.value} query: {request.question[:100]}...")

    try:
        result = await qa_service.answer(
            book_id=request.book_id,
            embedding_config_id=request.embedding_config_id,
            question=request.question,
            retrieval_type=request.retrieval_type,
            top_k=request.top_k
        )
    except Exception as e:
        raise _to_http_exception(e)

    response = _query_response(result, start_time)
    logger.info(f"Query processed successfully in {response.metadata.latency_ms}ms")
    return response


@app.post("/query/compare", response_model=CompareResponse)
async def compare_endpoint(request: QueryRequest) -> CompareResponse:
    """Answer a question with both strategies side by side."""
    start_time = time.time()

    if not request.question or not request.question.strip():
        raise HTTPException(status_code=400, detail="Question field is required and cannot be empty")

    try:
        standard, graph = await qa_service.compare(
            book_id=request.book_id,
            embedding_config_id=request.embedding_config_id,
            question=request.question,
            top_k=request.top_k
        )
    except Exception as e:
        raise _to_http_exception(e)

    return CompareResponse(
        standard=_query_response(standard, start_time),
        graph=_query_response(graph, start_time)
    )


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Book RAG Comparison API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
