"""Text cleaning strategies for extracted page text."""
import logging
import re
from typing import Union

from models.embedding_config import CleanerStrategy, parse_cleaner_strategy

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_NON_ASCII = re.compile(r"[^\x00-\x7F]")
_NON_PRINTABLE = re.compile(r"[^\x20-\x7E]")
_LINE_BREAK_HYPHEN = re.compile(r"-\s+")
_MID_WORD_HYPHEN = re.compile(r"(?<=\w)- (?=\w)")
_FUSED_PUNCTUATION = re.compile(r"([.,!?:;])(?=\w)")


class TextCleaner:
    """
    Normalize raw extracted page text.

    Strategies:
      - simple: collapse whitespace runs, trim
      - advanced: also drop form feeds and non-ASCII, join ``word- break`` line-break hyphenation
      - ocr-optimized: printable ASCII only, join ``wo- rd``, space after fused punctuation

    Every strategy is idempotent: cleaning already-cleaned text is a no-op.
    """

    def clean(self, text: str, strategy: Union[str, CleanerStrategy]) -> str:
        strategy = parse_cleaner_strategy(strategy)
        if not text:
            return ""

        if strategy is CleanerStrategy.SIMPLE:
            return self._simple(text)
        if strategy is CleanerStrategy.ADVANCED:
            return self._advanced(text)
        return self._ocr_optimized(text)

    @staticmethod
    def _simple(text: str) -> str:
        return _WHITESPACE.sub(" ", text).strip()

    @staticmethod
    def _advanced(text: str) -> str:
        text = _NON_ASCII.sub(" ", text)
        text = text.replace("\f", " ")
        text = _WHITESPACE.sub(" ", text)
        text = _LINE_BREAK_HYPHEN.sub("", text)
        return text.strip()

    @staticmethod
    def _ocr_optimized(text: str) -> str:
        # Newlines, tabs and form feeds are non-printable here and become spaces
        text = _NON_PRINTABLE.sub(" ", text)
        text = _WHITESPACE.sub(" ", text)
        text = _MID_WORD_HYPHEN.sub("", text)
        text = _FUSED_PUNCTUATION.sub(r"\1 ", text)
        return text.strip()


def clean_text(text: str, strategy: Union[str, CleanerStrategy]) -> str:
    """Module-level shortcut for ``TextCleaner().clean``."""
    return TextCleaner().clean(text, strategy)
