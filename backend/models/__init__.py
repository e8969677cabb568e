"""Data models for the Book RAG comparison backend."""
from .document import Document, Page, Book
from .chunk import Chunk, RetrievalResult
from .embedding_config import EmbeddingConfig, CleanerStrategy, SplitStrategy
from .graph import GraphNode, GraphEdge, KnowledgeGraph, NodeType
from .chat import ChatTurn, RetrievalType

__all__ = [
    "Document",
    "Page",
    "Book",
    "Chunk",
    "RetrievalResult",
    "EmbeddingConfig",
    "CleanerStrategy",
    "SplitStrategy",
    "GraphNode",
    "GraphEdge",
    "KnowledgeGraph",
    "NodeType",
    "ChatTurn",
    "RetrievalType",
]
