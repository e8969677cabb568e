"""Question answering over an indexed book with either retrieval strategy."""
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from config import DEFAULT_TOP_K
from errors import NotFoundError
from models.chat import ChatTurn, RetrievalType
from models.chunk import Chunk
from models.document import Book
from models.embedding_config import EmbeddingConfig
from services.book_store import BookStore
from services.chat_history import ChatHistory
from services.chunk_store import ChunkStore
from services.graph_store import KnowledgeGraphStore
from services.llm_client import LLMClient, LLMResponse
from services.prompt_builder import Prompt, PromptBuilder
from services.retrieval_engine import RetrievalEngine, RetrievalOutcome

logger = logging.getLogger(__name__)

MISSING_INDEX_MESSAGE = "Select a book or reprocess it with this embedding configuration"


@dataclass(frozen=True)
class QAResult:
    """Answer, the ranked chunks it cites and the prompt the model saw."""
    answer: str
    outcome: RetrievalOutcome
    prompt: Prompt
    llm_response: LLMResponse
    chat_id: Optional[str] = None

    @property
    def retrieval_type(self) -> RetrievalType:
        return self.outcome.retrieval_type


class QAService:
    """Loads a chunk snapshot, retrieves, prompts, completes and records the chat."""

    def __init__(
        self,
        retrieval_engine: RetrievalEngine,
        llm_client: LLMClient,
        book_store: BookStore,
        chunk_store: ChunkStore,
        graph_store: KnowledgeGraphStore,
        chat_history: ChatHistory,
        prompt_builder: Optional[PromptBuilder] = None
    ):
        self.retrieval_engine = retrieval_engine
        self.llm_client = llm_client
        self.book_store = book_store
        self.chunk_store = chunk_store
        self.graph_store = graph_store
        self.chat_history = chat_history
        self.prompt_builder = prompt_builder or PromptBuilder()

    def load_snapshot(self, book_id: str, embedding_config_id: str) -> Tuple[Book, EmbeddingConfig, List[Chunk]]:
        """
        Book, configuration and its chunk set.

        Raises:
            NotFoundError: If any of them is missing
        """
        book = self.book_store.get_book(book_id)
        config = self.book_store.get_embedding_config(embedding_config_id)
        chunks = self.chunk_store.get_chunks(book_id, embedding_config_id)
        if not chunks:
            raise NotFoundError(MISSING_INDEX_MESSAGE)
        return book, config, chunks

    async def answer(
        self,
        book_id: str,
        embedding_config_id: str,
        question: str,
        retrieval_type: Union[str, RetrievalType] = RetrievalType.STANDARD,
        top_k: int = DEFAULT_TOP_K
    ) -> QAResult:
        """
        Answer one question with one retrieval strategy.

        Raises:
            NotFoundError: Missing book, configuration or chunk set
            ProviderError: Embedding or completion call failed
        """
        retrieval_type = RetrievalType(retrieval_type)
        book, config, chunks = self.load_snapshot(book_id, embedding_config_id)
        return await self._answer(book, config, chunks, question, retrieval_type, top_k)

    async def compare(
        self,
        book_id: str,
        embedding_config_id: str,
        question: str,
        top_k: int = DEFAULT_TOP_K
    ) -> Tuple[QAResult, QAResult]:
        """Standard and graph answers, computed concurrently over the same chunk snapshot."""
        book, config, chunks = self.load_snapshot(book_id, embedding_config_id)
        standard, graph = await asyncio.gather(
            self._answer(book, config, chunks, question, RetrievalType.STANDARD, top_k),
            self._answer(book, config, chunks, question, RetrievalType.GRAPH, top_k)
        )
        return standard, graph

    async def _answer(
        self,
        book: Book,
        config: EmbeddingConfig,
        chunks: List[Chunk],
        question: str,
        retrieval_type: RetrievalType,
        top_k: int
    ) -> QAResult:
        if retrieval_type is RetrievalType.GRAPH:
            graph = self.graph_store.get_graph(book.id)
            outcome = await self.retrieval_engine.retrieve_graph(
                question, chunks, graph.nodes, graph.edges, top_k=top_k, model=config.model
            )
        else:
            outcome = await self.retrieval_engine.retrieve_standard(
                question, chunks, top_k=top_k, model=config.model
            )

        prompt = self.prompt_builder.build_prompt(question, book.title, outcome.prompt_context, retrieval_type)
        llm_response = await self.llm_client.complete(prompt.system_prompt, prompt.user_prompt)

        turn = ChatTurn(
            book_id=book.id,
            question=question,
            answer=llm_response.text,
            retrieval_type=retrieval_type,
            cited_chunk_ids=tuple(result.chunk.id for result in outcome.results),
            prompt_used=prompt.user_prompt,
            system_prompt=prompt.system_prompt
        )
        try:
            chat_id = self.chat_history.record(turn)
        except RuntimeError as e:
            # The answer is still returned; only its audit record is missing
            logger.error(f"Answer for book {book.id} not recorded: {e}", exc_info=True)
            chat_id = None

        logger.info(
            f"Answered {retrieval_type.value} question for book {book.id} "
            f"with {len(outcome.results)} chunks (chat {chat_id})"
        )
        return QAResult(
            answer=llm_response.text,
            outcome=outcome,
            prompt=prompt,
            llm_response=llm_response,
            chat_id=chat_id
        )
