"""Knowledge graph data models."""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class NodeType(str, Enum):
    PERSON = "person"
    PLACE = "place"
    OBJECT = "object"
    CONCEPT = "concept"


@dataclass(frozen=True)
class GraphNode:
    """A typed entity mentioned in a book."""
    id: str
    book_id: str
    label: str
    type: NodeType
    description: Optional[str] = None


@dataclass(frozen=True)
class GraphEdge:
    """A labelled relationship between two nodes of the same book."""
    id: str
    source_node_id: str
    target_node_id: str
    label: str
    explanation: Optional[str] = None


@dataclass(frozen=True)
class KnowledgeGraph:
    """Nodes and edges of one book."""
    book_id: str
    nodes: List[GraphNode]
    edges: List[GraphEdge]
