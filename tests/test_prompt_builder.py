"""Unit tests for prompt assembly."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from errors import ConfigurationError
from models.chat import RetrievalType
from models.chunk import Chunk, RetrievalResult
from services.prompt_builder import INSUFFICIENT_CONTEXT_REPLY, PromptBuilder, build_context


def result(index, text, score):
    chunk = Chunk(
        id=f"c{index}", book_id="b", chunk_index=index, text=text,
        embedding=(1.0,), embedding_config_id="cfg"
    )
    return RetrievalResult(chunk=chunk, score=score)


class TestBuildContext:
    """Test suite for build_context."""

    def test_labels_chunks_in_given_order(self):
        results = [result(7, "Seventh chunk.", 0.9), result(2, "Second chunk.", 0.4)]

        context = build_context(results)

        assert context == "[Chunk 1] Seventh chunk.\n\n[Chunk 2] Second chunk."

    def test_empty_results(self):
        assert build_context([]) == ""


class TestPromptBuilder:
    """Test suite for PromptBuilder."""

    def test_standard_prompt(self):
        prompt = PromptBuilder.build_prompt("Who is Winston?", "1984", "[Chunk 1] Winston Smith...")

        assert '"1984"' in prompt.system_prompt
        assert "graph-enhanced" not in prompt.system_prompt
        assert "ONLY the information from the provided context" in prompt.system_prompt
        assert INSUFFICIENT_CONTEXT_REPLY in prompt.system_prompt
        assert prompt.user_prompt == "Context:\n[Chunk 1] Winston Smith...\n\nQuestion: Who is Winston?"

    def test_graph_prompt_names_retrieval_method(self):
        prompt = PromptBuilder.build_prompt("Q?", "1984", "ctx", RetrievalType.GRAPH)

        assert "using graph-enhanced retrieval" in prompt.system_prompt

    def test_variants_share_answering_rules(self):
        """Test only the retrieval label differs between variants."""
        standard = PromptBuilder.build_prompt("Q?", "Book", "ctx", "standard")
        graph = PromptBuilder.build_prompt("Q?", "Book", "ctx", "graph")

        assert graph.system_prompt.replace(" using graph-enhanced retrieval", "") == standard.system_prompt
        assert graph.user_prompt == standard.user_prompt

    def test_unknown_variant_raises(self):
        with pytest.raises(ConfigurationError, match="Unknown prompt variant"):
            PromptBuilder.build_prompt("Q?", "Book", "ctx", "hybrid")
