"""Read access to a book's knowledge graph in Supabase."""
import logging
from typing import List, Optional
from supabase import create_client, Client

from config import SUPABASE_URL, SUPABASE_KEY
from models.graph import GraphEdge, GraphNode, KnowledgeGraph, NodeType

logger = logging.getLogger(__name__)


class KnowledgeGraphStore:
    """Typed entity nodes and labelled relationship edges per book."""

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
        logger.info("Initialized KnowledgeGraphStore")

    def get_nodes(self, book_id: str) -> List[GraphNode]:
        """All nodes of a book."""
        try:
            result = self.client.table("nodes").select("*").eq("book_id", book_id).execute()
        except Exception as e:
            error_msg = f"Failed to fetch graph nodes: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

        return [
            GraphNode(
                id=row["id"],
                book_id=row["book_id"],
                label=row["label"],
                type=NodeType(row["type"]),
                description=row.get("description")
            )
            for row in result.data or []
        ]

    def get_edges(self, book_id: str, nodes: Optional[List[GraphNode]] = None) -> List[GraphEdge]:
        """
        Edges whose two endpoints are nodes of the book.

        Edges are stored without a book column, so they are selected through
        their source node and then checked on both ends.
        """
        if nodes is None:
            nodes = self.get_nodes(book_id)
        node_ids = [node.id for node in nodes]
        if not node_ids:
            return []

        try:
            result = self.client.table("edges").select("*").in_("source_node_id", node_ids).execute()
        except Exception as e:
            error_msg = f"Failed to fetch graph edges: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

        known = set(node_ids)
        edges = []
        for row in result.data or []:
            if row["source_node_id"] not in known or row["target_node_id"] not in known:
                logger.warning(f"Skipping edge {row['id']}: endpoint outside book {book_id}")
                continue
            edges.append(GraphEdge(
                id=row["id"],
                source_node_id=row["source_node_id"],
                target_node_id=row["target_node_id"],
                label=row["label"],
                explanation=row.get("explanation")
            ))
        return edges

    def get_graph(self, book_id: str) -> KnowledgeGraph:
        """Nodes and edges of a book in one call."""
        nodes = self.get_nodes(book_id)
        edges = self.get_edges(book_id, nodes)
        logger.debug(f"Loaded graph for book {book_id}: {len(nodes)} nodes, {len(edges)} edges")
        return KnowledgeGraph(book_id=book_id, nodes=nodes, edges=edges)
