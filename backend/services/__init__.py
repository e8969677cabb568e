"""Services for the Book RAG comparison backend."""
from .text_cleaner import TextCleaner
from .chunking_engine import ChunkSplitter
from .embedding_model import EmbeddingModel
from .vector_store import VectorIndex, cosine_similarity
from .prompt_builder import PromptBuilder, Prompt
from .retrieval_engine import RetrievalEngine, RetrievalOutcome, GraphTrace
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError
from .document_loader import DocumentLoader
from .chunk_store import ChunkStore
from .book_store import BookStore
from .graph_store import KnowledgeGraphStore
from .chat_history import ChatHistory
from .pipeline_controller import PipelineController, PipelineState, PipelineStep
from .qa_service import QAService, QAResult

__all__ = ['TextCleaner', 'ChunkSplitter', 'EmbeddingModel', 'VectorIndex', 'cosine_similarity', 'PromptBuilder', 'Prompt', 'RetrievalEngine', 'RetrievalOutcome', 'GraphTrace', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'DocumentLoader', 'ChunkStore', 'BookStore', 'KnowledgeGraphStore', 'ChatHistory', 'PipelineController', 'PipelineState', 'PipelineStep', 'QAService', 'QAResult']
