"""Document loading service for PDF processing."""
import logging
from pathlib import Path
from typing import Union
import fitz  # PyMuPDF

from models.document import Document, Page

logger = logging.getLogger(__name__)


class DocumentLoader:
    """Extracts page texts from an uploaded PDF."""

    def load_bytes(self, data: bytes, filename: str) -> Document:
        """
        Extract text page-by-page from a PDF byte stream.

        Args:
            data: Raw PDF bytes
            filename: Name of the uploaded file

        Returns:
            Document with one Page per PDF page

        Raises:
            ValueError: If the bytes are empty or not a readable PDF
        """
        if not data:
            raise ValueError("Uploaded document is empty")

        try:
            pdf_document = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            logger.error(f"Failed to open PDF {filename}: {str(e)}")
            raise ValueError(f"Failed to read PDF {filename}: {str(e)}")

        try:
            pages = []
            for page_num in range(len(pdf_document)):
                text = pdf_document[page_num].get_text()
                pages.append(Page(
                    page_number=page_num + 1,  # 1-indexed
                    text=text,
                    word_count=len(text.split())
                ))
        finally:
            pdf_document.close()

        logger.info(f"Loaded {filename}: {len(pages)} pages")
        return Document(filename=filename, pages=pages)

    def load_file(self, path: Union[str, Path]) -> Document:
        """Read a PDF from disk."""
        path = Path(path)
        return self.load_bytes(path.read_bytes(), path.name)
