"""Retrieval engine: standard vector search and graph-augmented retrieval."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from models.chat import RetrievalType
from models.chunk import Chunk, RetrievalResult
from models.graph import GraphEdge, GraphNode
from services.embedding_model import EmbeddingModel
from services.prompt_builder import build_context
from services.vector_store import VectorIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphTrace:
    """What each graph retrieval phase produced, for inspection."""
    seed_chunk_ids: Tuple[str, ...] = ()
    linked_node_ids: Tuple[str, ...] = ()
    neighbour_node_ids: Tuple[str, ...] = ()
    expanded_chunk_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RetrievalOutcome:
    """Ranked chunks plus the prompt context built from them."""
    retrieval_type: RetrievalType
    results: List[RetrievalResult] = field(default_factory=list)
    prompt_context: str = ""
    trace: Optional[GraphTrace] = None


def _mentions(text: str, label: str) -> bool:
    """Case-insensitive substring entity match."""
    return label.lower() in text.lower()


def link_entities(chunks: Sequence[Chunk], nodes: Sequence[GraphNode]) -> List[GraphNode]:
    """Nodes whose label appears in any of the chunks, in node order."""
    linked = []
    for node in nodes:
        if not node.label.strip():
            continue
        if any(_mentions(chunk.text, node.label) for chunk in chunks):
            linked.append(node)
    return linked


def neighbours(
    linked: Sequence[GraphNode],
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge]
) -> List[GraphNode]:
    """Nodes one edge away from any linked node, following edges in both directions."""
    nodes_by_id: Dict[str, GraphNode] = {node.id: node for node in nodes}
    linked_ids = {node.id for node in linked}
    neighbour_ids: List[str] = []

    for edge in edges:
        for here, there in ((edge.source_node_id, edge.target_node_id),
                            (edge.target_node_id, edge.source_node_id)):
            if here in linked_ids and there in nodes_by_id and there not in neighbour_ids:
                neighbour_ids.append(there)

    return [nodes_by_id[node_id] for node_id in neighbour_ids]


def expand_candidates(
    seed_ids: Sequence[str],
    chunks: Sequence[Chunk],
    neighbour_nodes: Sequence[GraphNode]
) -> Set[str]:
    """Seed ids plus every chunk, anywhere in the set, mentioning a neighbour."""
    expanded: Set[str] = set(seed_ids)
    for node in neighbour_nodes:
        if not node.label.strip():
            continue
        expanded.update(chunk.id for chunk in chunks if _mentions(chunk.text, node.label))
    return expanded


class RetrievalEngine:
    """
    Orchestrate query embedding and chunk ranking for both strategies.

    The engine keeps no per-query state: chunk sets, nodes and edges are passed
    in on every call, so standard and graph retrieval can run concurrently over
    the same chunk snapshot.
    """

    def __init__(self, embedding_model: EmbeddingModel):
        """
        Initialize the retrieval engine.

        Args:
            embedding_model: EmbeddingModel instance for query embedding
        """
        self.embedding_model = embedding_model
        logger.info("Initialized RetrievalEngine")

    async def retrieve_standard(
        self,
        query: str,
        chunks: Sequence[Chunk],
        top_k: int = 5,
        model: Optional[str] = None
    ) -> RetrievalOutcome:
        """
        Plain vector retrieval.

        1. Embed the query with the chunk set's model
        2. Rank every chunk by cosine similarity
        3. Label the top_k texts as prompt context

        Args:
            query: User question
            chunks: Chunk set of one embedding configuration
            top_k: Number of chunks to keep
            model: Embedding model the chunk set was built with

        Returns:
            RetrievalOutcome, empty for an empty query
        """
        if not query or not query.strip():
            logger.warning("Empty query string provided, returning empty results")
            return RetrievalOutcome(retrieval_type=RetrievalType.STANDARD)

        query_vector = await self.embedding_model.embed(query, model)
        results = VectorIndex(chunks).search(query_vector, top_k)

        logger.info(
            f"Standard retrieval: {len(results)} of {len(chunks)} chunks "
            f"(top score: {results[0].score:.3f})" if results else
            f"Standard retrieval: no chunks among {len(chunks)}"
        )
        return RetrievalOutcome(
            retrieval_type=RetrievalType.STANDARD,
            results=results,
            prompt_context=build_context(results)
        )

    async def retrieve_graph(
        self,
        query: str,
        chunks: Sequence[Chunk],
        nodes: Sequence[GraphNode],
        edges: Sequence[GraphEdge],
        top_k: int = 5,
        model: Optional[str] = None
    ) -> RetrievalOutcome:
        """
        Graph-augmented retrieval.

        Phases, always in this order:
        1. Seed: vector search gives the seed set S
        2. Entity linking: nodes whose label occurs in a seed chunk
        3. Expansion: neighbours of linked nodes over incident edges, then
           every chunk mentioning a neighbour joins S' (S' contains S)
        4. Rerank: the same cosine ranking, restricted to S'

        With no linked entities or an empty graph S' equals S and the result
        is the standard result.
        """
        if not query or not query.strip():
            logger.warning("Empty query string provided, returning empty results")
            return RetrievalOutcome(retrieval_type=RetrievalType.GRAPH, trace=GraphTrace())

        query_vector = await self.embedding_model.embed(query, model)
        index = VectorIndex(chunks)

        # Phase 1: seed
        seed = index.search(query_vector, top_k)
        seed_ids = [result.chunk.id for result in seed]

        # Phase 2: entity linking
        linked = link_entities([result.chunk for result in seed], nodes)

        # Phase 3: graph expansion
        neighbour_nodes = neighbours(linked, nodes, edges)
        expanded_ids = expand_candidates(seed_ids, index.chunks, neighbour_nodes)

        # Phase 4: rerank over the expanded pool
        results = index.subset(expanded_ids).search(query_vector, top_k)

        trace = GraphTrace(
            seed_chunk_ids=tuple(seed_ids),
            linked_node_ids=tuple(node.id for node in linked),
            neighbour_node_ids=tuple(node.id for node in neighbour_nodes),
            expanded_chunk_ids=tuple(c.id for c in index.chunks if c.id in expanded_ids)
        )
        logger.info(
            f"Graph retrieval: seed={len(seed_ids)}, linked={len(linked)}, "
            f"neighbours={len(neighbour_nodes)}, expanded={len(expanded_ids)}, returned={len(results)}"
        )
        if not linked:
            logger.debug("No entities linked; graph retrieval fell back to the seed set")

        return RetrievalOutcome(
            retrieval_type=RetrievalType.GRAPH,
            results=results,
            prompt_context=build_context(results),
            trace=trace
        )
