"""Document data models."""
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Page:
    """Represents a single page of extracted text."""
    page_number: int  # 1-indexed
    text: str
    word_count: int


@dataclass(frozen=True)
class Document:
    """Represents an uploaded book as an ordered sequence of page texts."""
    filename: str
    pages: List[Page]

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    @classmethod
    def from_texts(cls, filename: str, texts: List[str]) -> "Document":
        """Build a document from raw page strings, numbering pages from 1."""
        pages = [
            Page(page_number=i + 1, text=text, word_count=len(text.split()))
            for i, text in enumerate(texts)
        ]
        return cls(filename=filename, pages=pages)


@dataclass(frozen=True)
class Book:
    """A stored book record."""
    id: str
    title: str
    filename: str
    source: Optional[str] = None
