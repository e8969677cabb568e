"""Unit tests for RetrievalEngine."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import AsyncMock, Mock
from models.chat import RetrievalType
from models.chunk import Chunk
from models.graph import GraphEdge, GraphNode, NodeType
from services.embedding_model import EmbeddingModel
from services.retrieval_engine import RetrievalEngine, expand_candidates, link_entities, neighbours


def make_chunk(index, text, embedding):
    return Chunk(
        id=f"c{index}",
        book_id="book-1",
        chunk_index=index,
        text=text,
        embedding=tuple(embedding),
        embedding_config_id="cfg-1",
        page_number=1
    )


def make_node(node_id, label, node_type=NodeType.PERSON):
    return GraphNode(id=node_id, book_id="book-1", label=label, type=node_type)


def make_edge(edge_id, source, target, label="knows"):
    return GraphEdge(id=edge_id, source_node_id=source, target_node_id=target, label=label)


# Query vector is [1, 0]; c0 and c1 sit close to it, c2 and c3 far away.
CHUNKS = [
    make_chunk(0, "Winston walked into Victory Mansions.", [1.0, 0.05]),
    make_chunk(1, "The telescreen never switched off.", [0.9, 0.2]),
    make_chunk(2, "Julia worked in the Fiction Department.", [0.3, 1.0]),
    make_chunk(3, "O'Brien lived in an Inner Party flat.", [0.1, 1.0]),
    make_chunk(4, "Rain fell on the Ministry of Truth.", [0.0, 1.0]),
]
NODES = [
    make_node("n-winston", "Winston"),
    make_node("n-julia", "Julia"),
    make_node("n-obrien", "O'Brien"),
    make_node("n-ministry", "Ministry of Truth", NodeType.PLACE),
]
EDGES = [
    make_edge("e1", "n-winston", "n-julia", "loves"),
    make_edge("e2", "n-obrien", "n-winston", "watches"),
]


@pytest.fixture
def engine():
    embedding_model = Mock(spec=EmbeddingModel)
    embedding_model.embed = AsyncMock(return_value=[1.0, 0.0])
    return RetrievalEngine(embedding_model)


class TestGraphHelpers:
    """Test suite for entity linking and expansion helpers."""

    def test_link_entities_is_case_insensitive(self):
        chunks = [make_chunk(0, "winston SMITH was tired.", [1.0])]

        linked = link_entities(chunks, NODES)

        assert [n.id for n in linked] == ["n-winston"]

    def test_link_entities_skips_blank_labels(self):
        chunks = [make_chunk(0, "Any text at all.", [1.0])]

        assert link_entities(chunks, [make_node("blank", "  ")]) == []

    def test_neighbours_follow_edges_both_ways(self):
        linked = [NODES[0]]

        result = neighbours(linked, NODES, EDGES)

        assert [n.id for n in result] == ["n-julia", "n-obrien"]

    def test_neighbours_ignore_unknown_endpoints(self):
        edges = [make_edge("e9", "n-winston", "n-elsewhere")]

        assert neighbours([NODES[0]], NODES, edges) == []

    def test_expand_candidates_contains_seed(self):
        seed = ["c0", "c1"]

        expanded = expand_candidates(seed, CHUNKS, [NODES[1]])

        assert set(seed) <= expanded
        assert "c2" in expanded


class TestRetrievalEngine:
    """Test suite for RetrievalEngine."""

    @pytest.mark.asyncio
    async def test_standard_retrieval(self, engine):
        """Test standard retrieval ranks by similarity and labels the context."""
        outcome = await engine.retrieve_standard("Who is Winston?", CHUNKS, top_k=2, model="m-1")

        assert outcome.retrieval_type is RetrievalType.STANDARD
        assert [r.chunk.id for r in outcome.results] == ["c0", "c1"]
        assert outcome.prompt_context.startswith("[Chunk 1] Winston walked")
        assert "[Chunk 2] The telescreen" in outcome.prompt_context
        assert outcome.trace is None
        engine.embedding_model.embed.assert_awaited_once_with("Who is Winston?", "m-1")

    @pytest.mark.asyncio
    async def test_empty_query_returns_empty_outcome(self, engine):
        outcome = await engine.retrieve_standard("   ", CHUNKS)

        assert outcome.results == []
        assert outcome.prompt_context == ""
        engine.embedding_model.embed.assert_not_called()

    @pytest.mark.asyncio
    async def test_graph_retrieval_records_every_phase(self, engine):
        """Test seed, link, neighbour and expansion sets in the trace."""
        outcome = await engine.retrieve_graph("Who is Winston?", CHUNKS, NODES, EDGES, top_k=2)

        trace = outcome.trace
        assert outcome.retrieval_type is RetrievalType.GRAPH
        assert trace.seed_chunk_ids == ("c0", "c1")
        assert trace.linked_node_ids == ("n-winston",)
        assert trace.neighbour_node_ids == ("n-julia", "n-obrien")
        assert trace.expanded_chunk_ids == ("c0", "c1", "c2", "c3")
        assert "c4" not in trace.expanded_chunk_ids

    @pytest.mark.asyncio
    async def test_graph_expansion_contains_seed(self, engine):
        outcome = await engine.retrieve_graph("Who is Winston?", CHUNKS, NODES, EDGES, top_k=3)

        assert set(outcome.trace.seed_chunk_ids) <= set(outcome.trace.expanded_chunk_ids)

    @pytest.mark.asyncio
    async def test_graph_results_come_from_expanded_pool(self, engine):
        """Test reranking only considers expanded chunks."""
        outcome = await engine.retrieve_graph("Who is Winston?", CHUNKS, NODES, EDGES, top_k=2)

        assert outcome.trace.seed_chunk_ids == ("c0", "c1")
        assert outcome.trace.expanded_chunk_ids == ("c0", "c1", "c2", "c3")
        result_ids = [r.chunk.id for r in outcome.results]
        assert result_ids == ["c0", "c1"]
        assert set(result_ids) <= set(outcome.trace.expanded_chunk_ids)
        assert "c4" not in result_ids
        scores = [r.score for r in outcome.results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_empty_graph_equals_standard(self, engine):
        """Test graph retrieval over an empty graph returns the standard ranking."""
        standard = await engine.retrieve_standard("Who is Winston?", CHUNKS, top_k=3)
        graph = await engine.retrieve_graph("Who is Winston?", CHUNKS, [], [], top_k=3)

        assert [r.chunk.id for r in graph.results] == [r.chunk.id for r in standard.results]
        assert [r.score for r in graph.results] == pytest.approx([r.score for r in standard.results])
        assert graph.prompt_context == standard.prompt_context
        assert graph.trace.linked_node_ids == ()

    @pytest.mark.asyncio
    async def test_no_linked_entities_equals_standard(self, engine):
        nodes = [make_node("n-goldstein", "Goldstein")]

        standard = await engine.retrieve_standard("Who is Winston?", CHUNKS, top_k=2)
        graph = await engine.retrieve_graph("Who is Winston?", CHUNKS, nodes, [], top_k=2)

        assert [r.chunk.id for r in graph.results] == [r.chunk.id for r in standard.results]

    @pytest.mark.asyncio
    async def test_graph_empty_query(self, engine):
        outcome = await engine.retrieve_graph("", CHUNKS, NODES, EDGES)

        assert outcome.results == []
        assert outcome.trace.seed_chunk_ids == ()
