"""Indexing pipeline state machine: preprocess, chunk, embed, ready."""
import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from errors import EmbeddingProviderError, PipelineStateError
from models.chunk import Chunk
from models.document import Document
from models.embedding_config import EmbeddingConfig
from services.chunk_store import ChunkStore
from services.chunking_engine import ChunkSplitter
from services.embedding_model import EmbeddingModel
from services.text_cleaner import TextCleaner

logger = logging.getLogger(__name__)


class PipelineStep(str, Enum):
    IDLE = "idle"
    PREPROCESSING = "preprocessing"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    READY = "ready"
    ERROR = "error"


_RUNNING = frozenset({PipelineStep.PREPROCESSING, PipelineStep.CHUNKING, PipelineStep.EMBEDDING})

TRANSITIONS: Dict[PipelineStep, FrozenSet[PipelineStep]] = {
    PipelineStep.IDLE: frozenset({PipelineStep.PREPROCESSING}),
    PipelineStep.PREPROCESSING: frozenset({PipelineStep.CHUNKING, PipelineStep.ERROR}),
    PipelineStep.CHUNKING: frozenset({PipelineStep.EMBEDDING, PipelineStep.ERROR}),
    PipelineStep.EMBEDDING: frozenset({PipelineStep.READY, PipelineStep.ERROR}),
    PipelineStep.READY: frozenset({PipelineStep.IDLE}),
    PipelineStep.ERROR: frozenset({PipelineStep.IDLE}),
}


@dataclass(frozen=True)
class PipelineState:
    """Snapshot handed to subscribers on every transition and progress update."""
    book_id: str
    embedding_config_id: str
    step: PipelineStep = PipelineStep.IDLE
    message: str = ""
    chunks_total: int = 0
    chunks_embedded: int = 0
    error: Optional[str] = None
    failed_step: Optional[PipelineStep] = None

    @property
    def is_running(self) -> bool:
        return self.step in _RUNNING


ALREADY_INDEXED_MESSAGE = (
    "This book is already indexed with this embedding configuration; "
    "create a new configuration to index it again"
)

Listener = Callable[[PipelineState], None]


class PipelineController:
    """
    Drives one indexing run for a (book, embedding configuration) pair.

    The state lives here rather than in any caller; UIs and API handlers
    subscribe to snapshots. Chunks are written in a single batch once every
    embedding has succeeded, so an abandoned or failed run leaves nothing
    behind and there is no partial resume: a new run starts from scratch.
    """

    def __init__(
        self,
        embedding_model: EmbeddingModel,
        chunk_store: ChunkStore,
        book_id: str,
        config: EmbeddingConfig,
        cleaner: Optional[TextCleaner] = None,
        splitter: Optional[ChunkSplitter] = None
    ):
        if config.id is None:
            raise ValueError("Embedding configuration must be stored before indexing")

        self.embedding_model = embedding_model
        self.chunk_store = chunk_store
        self.book_id = book_id
        self.config = config
        self.cleaner = cleaner or TextCleaner()
        self.splitter = splitter or ChunkSplitter()
        self._listeners: List[Listener] = []
        self._state = PipelineState(book_id=book_id, embedding_config_id=config.id)
        self._chunks: List[Chunk] = []

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def chunks(self) -> List[Chunk]:
        """Stored chunks of the last successful run; empty until ready."""
        return list(self._chunks) if self._state.step is PipelineStep.READY else []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _publish(self, state: PipelineState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Pipeline listener failed: {e}", exc_info=True)

    def _transition(self, step: PipelineStep, message: str, **changes) -> None:
        current = self._state.step
        if step not in TRANSITIONS[current]:
            raise PipelineStateError(f"Cannot move indexing pipeline from {current.value} to {step.value}")
        logger.info(f"Pipeline {self.book_id}/{self.config.id}: {current.value} -> {step.value} ({message})")
        self._publish(replace(self._state, step=step, message=message, **changes))

    def _fail(self, message: str) -> None:
        failed_step = self._state.step
        self._transition(PipelineStep.ERROR, message, error=message, failed_step=failed_step)

    async def run(self, document: Document) -> PipelineState:
        """
        Index a document under this controller's configuration.

        Returns:
            The terminal state: ``ready`` or ``error`` with the failing step's message

        Raises:
            PipelineStateError: If a run is already in progress or the
                configuration already has a stored chunk set
            asyncio.CancelledError: Re-raised after moving to ``error``
        """
        if self._state.is_running:
            raise PipelineStateError(f"Indexing already in progress ({self._state.step.value})")
        # Chunk sets are write-once per (book, configuration)
        if self.chunk_store.count(self.book_id, self.config.id) > 0:
            raise PipelineStateError(ALREADY_INDEXED_MESSAGE)
        if self._state.step is not PipelineStep.IDLE:
            self._transition(
                PipelineStep.IDLE,
                "Restarting indexing run",
                chunks_total=0,
                chunks_embedded=0,
                error=None,
                failed_step=None
            )
        self._chunks = []

        try:
            self._transition(PipelineStep.PREPROCESSING, f"Cleaning {document.total_pages} pages")
            pages = self._preprocess(document)

            self._transition(PipelineStep.CHUNKING, "Splitting text into chunks")
            pending = self._chunk(pages)
            if not pending:
                raise ValueError("Document produced no chunks; check that the PDF contains extractable text")

            self._transition(
                PipelineStep.EMBEDDING,
                f"Embedding {len(pending)} chunks",
                chunks_total=len(pending),
                chunks_embedded=0
            )
            embedded = await self._embed(pending)
            stored = self.chunk_store.create_chunks(embedded)

            self._chunks = stored
            self._transition(PipelineStep.READY, f"Indexed {len(stored)} chunks")

        except asyncio.CancelledError:
            logger.warning(f"Indexing run for {self.book_id}/{self.config.id} cancelled")
            self._fail("Indexing run cancelled")
            raise
        except Exception as e:
            logger.error(f"Indexing failed during {self._state.step.value}: {e}", exc_info=True)
            self._fail(str(e))

        return self._state

    def _preprocess(self, document: Document) -> List[Tuple[int, str]]:
        return [
            (page.page_number, self.cleaner.clean(page.text, self.config.cleaner_strategy))
            for page in document.pages
        ]

    def _chunk(self, pages: List[Tuple[int, str]]) -> List[Tuple[int, int, str]]:
        """(chunk_index, page_number, text) with one counter across all pages."""
        pending = []
        for page_number, text in pages:
            for piece in self.splitter.split(
                text, self.config.chunk_size, self.config.overlap, self.config.split_strategy
            ):
                pending.append((len(pending), page_number, piece))
        return pending

    async def _embed(self, pending: List[Tuple[int, int, str]]) -> List[Chunk]:
        """
        Embed ``batch_size`` chunks at a time; output stays in chunk_index order.

        Raises:
            EmbeddingProviderError: If the provider fails or returns vectors of mixed dimensions
        """
        chunks: List[Chunk] = []
        batch_size = self.config.batch_size
        expected_dim: Optional[int] = None

        for start in range(0, len(pending), batch_size):
            batch = pending[start:start + batch_size]
            vectors = await self.embedding_model.embed_batch([text for _, _, text in batch], self.config.model)

            for (chunk_index, page_number, text), vector in zip(batch, vectors):
                if expected_dim is None:
                    expected_dim = len(vector)
                elif len(vector) != expected_dim:
                    raise EmbeddingProviderError(
                        code="INVALID_RESPONSE",
                        message=f"Embedding dimension {len(vector)} of chunk {chunk_index} differs from {expected_dim}",
                        details={"model": self.config.model, "chunk_index": chunk_index}
                    )
                chunks.append(Chunk(
                    book_id=self.book_id,
                    chunk_index=chunk_index,
                    text=text,
                    embedding=tuple(vector),
                    embedding_config_id=self.config.id,
                    page_number=page_number
                ))

            self._publish(replace(
                self._state,
                chunks_embedded=len(chunks),
                message=f"Embedded {len(chunks)}/{len(pending)} chunks"
            ))

        return chunks
