"""Prompt assembly for grounded answers."""
from dataclasses import dataclass
from typing import List, Union

from errors import ConfigurationError
from models.chat import RetrievalType
from models.chunk import RetrievalResult

INSUFFICIENT_CONTEXT_REPLY = "I don't have enough information to answer this question."


@dataclass(frozen=True)
class Prompt:
    """Exactly what the completion provider is shown."""
    system_prompt: str
    user_prompt: str


def build_context(results: List[RetrievalResult]) -> str:
    """Label retrieved chunk texts ``[Chunk i]`` in the order given (descending score)."""
    return "\n\n".join(
        f"[Chunk {rank}] {result.chunk.text}"
        for rank, result in enumerate(results, start=1)
    )


class PromptBuilder:
    """Builds the system/user prompt pair sent to the completion provider."""

    @staticmethod
    def build_prompt(
        query: str,
        book_title: str,
        context: str,
        variant: Union[str, RetrievalType] = RetrievalType.STANDARD
    ) -> Prompt:
        """
        Build the prompt for one question.

        The variant only changes how the retrieval method is named in the
        system prompt; the answering rules are identical for both.

        Args:
            query: User question
            book_title: Title of the book being asked about
            context: Labelled chunk texts from the retriever
            variant: 'standard' or 'graph'

        Returns:
            Prompt with system and user parts
        """
        try:
            variant = RetrievalType(variant)
        except ValueError:
            raise ConfigurationError(f"Unknown prompt variant {variant!r}")

        retrieval_label = " using graph-enhanced retrieval" if variant is RetrievalType.GRAPH else ""
        system_prompt = (
            f'You are a helpful assistant answering questions about "{book_title}"{retrieval_label}.\n'
            "Use ONLY the information from the provided context to answer the question.\n"
            f'If you don\'t know the answer based on the provided context, say "{INSUFFICIENT_CONTEXT_REPLY}"\n'
            "Do not use prior knowledge. Provide specific details from the text when possible."
        )
        user_prompt = f"Context:\n{context}\n\nQuestion: {query}"

        return Prompt(system_prompt=system_prompt, user_prompt=user_prompt)
