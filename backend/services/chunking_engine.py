"""Chunk segmentation strategies: fixed word windows and recursive paragraph splitting."""
import logging
import re
from typing import List, Union

from errors import ConfigurationError
from models.embedding_config import SplitStrategy, parse_split_strategy

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
# A sentence runs up to its terminator run; a trailing unterminated fragment also counts.
_SENTENCE = re.compile(r"[^.!?]+(?:[.!?]+|$)|[.!?]+")

PARAGRAPH_SEPARATOR = "\n\n"
SENTENCE_SEPARATOR = " "


class ChunkSplitter:
    """Divides cleaned text into retrievable segments."""

    def split(
        self,
        text: str,
        chunk_size: int,
        overlap: int,
        strategy: Union[str, SplitStrategy]
    ) -> List[str]:
        """
        Split text into chunks in source order.

        Args:
            text: Cleaned text
            chunk_size: Words per window (fixed) or maximum characters per chunk (recursive)
            overlap: Words (fixed) or characters (recursive word fallback) shared by consecutive windows
            strategy: 'fixed' or 'recursive'

        Returns:
            List of chunk strings, never reordered

        Raises:
            ConfigurationError: If the window would not advance or the strategy is unknown
        """
        strategy = parse_split_strategy(strategy)
        if chunk_size <= 0 or overlap < 0 or chunk_size - overlap <= 0:
            raise ConfigurationError(
                f"Invalid window: chunk_size={chunk_size}, overlap={overlap}"
            )

        if not text or not text.strip():
            return []

        if strategy is SplitStrategy.FIXED:
            chunks = self.split_fixed(text, chunk_size, overlap)
        else:
            chunks = self.split_recursive(text, chunk_size, overlap)

        logger.debug(f"Split {len(text)} chars into {len(chunks)} chunks ({strategy.value})")
        return chunks

    @staticmethod
    def split_fixed(text: str, chunk_size: int, overlap: int) -> List[str]:
        """Windows of ``chunk_size`` whitespace tokens advancing by ``chunk_size - overlap``."""
        words = text.split()
        step = chunk_size - overlap
        chunks = []

        for start in range(0, len(words), step):
            chunks.append(" ".join(words[start:start + chunk_size]))
            # This window already reaches the end of the token stream
            if start + chunk_size >= len(words):
                break

        return chunks

    def split_recursive(self, text: str, chunk_size: int, overlap: int) -> List[str]:
        """
        Paragraphs, then sentences, then word windows.

        Paragraphs are packed greedily while the packed text stays within
        ``chunk_size`` characters. A paragraph that is too long on its own is
        split into sentences packed the same way; a sentence that is still too
        long goes through the character-bounded word window splitter.
        """
        paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(text) if p.strip()]
        chunks: List[str] = []
        buffer = ""

        for paragraph in paragraphs:
            if self._fits(buffer, paragraph, PARAGRAPH_SEPARATOR, chunk_size):
                buffer = self._join(buffer, paragraph, PARAGRAPH_SEPARATOR)
                continue

            if buffer:
                chunks.append(buffer)
            buffer = ""

            if len(paragraph) <= chunk_size:
                buffer = paragraph
                continue

            for sentence in self._split_sentences(paragraph):
                if self._fits(buffer, sentence, SENTENCE_SEPARATOR, chunk_size):
                    buffer = self._join(buffer, sentence, SENTENCE_SEPARATOR)
                    continue

                if buffer:
                    chunks.append(buffer)
                buffer = ""

                if len(sentence) > chunk_size:
                    chunks.extend(self._split_words_by_chars(sentence, chunk_size, overlap))
                else:
                    buffer = sentence

        if buffer:
            chunks.append(buffer)

        return chunks

    @staticmethod
    def _fits(buffer: str, piece: str, separator: str, chunk_size: int) -> bool:
        joined_length = len(buffer) + (len(separator) if buffer else 0) + len(piece)
        return joined_length <= chunk_size

    @staticmethod
    def _join(buffer: str, piece: str, separator: str) -> str:
        return f"{buffer}{separator}{piece}" if buffer else piece

    @staticmethod
    def _split_sentences(paragraph: str) -> List[str]:
        sentences = [s.strip() for s in _SENTENCE.findall(paragraph)]
        return [s for s in sentences if s]

    @staticmethod
    def _split_words_by_chars(sentence: str, chunk_size: int, overlap: int) -> List[str]:
        """
        Word windows bounded by ``chunk_size`` characters.

        Trailing words totalling at most ``overlap`` characters are repeated at
        the start of the next window. A single word longer than ``chunk_size``
        becomes its own chunk.
        """
        words = sentence.split()
        chunks = []
        start = 0

        while start < len(words):
            end = start + 1
            length = len(words[start])
            while end < len(words) and length + 1 + len(words[end]) <= chunk_size:
                length += 1 + len(words[end])
                end += 1

            chunks.append(" ".join(words[start:end]))
            if end >= len(words):
                break

            # Step back over overlap words, always advancing at least one word
            next_start = end
            carried = 0
            while next_start - 1 > start and carried + len(words[next_start - 1]) + 1 <= overlap:
                next_start -= 1
                carried += len(words[next_start]) + 1
            start = next_start

        return chunks


def split_text(
    text: str,
    chunk_size: int,
    overlap: int,
    strategy: Union[str, SplitStrategy]
) -> List[str]:
    """Module-level shortcut for ``ChunkSplitter().split``."""
    return ChunkSplitter().split(text, chunk_size, overlap, strategy)
