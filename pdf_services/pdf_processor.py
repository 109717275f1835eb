"""
PDF text extraction
"""
import asyncio
import io
import logging
import re
from typing import List

from pypdf import PdfReader

from services.errors import UnreadableError

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


class PDFProcessor:
    """Handles PDF text extraction."""

    @staticmethod
    def extract_pages(pdf_bytes: bytes) -> List[str]:
        """Extract the text of every page, in page order."""
        try:
            reader = PdfReader(io.BytesIO(pdf_bytes))
            pages = [PDFProcessor._clean_text(page.extract_text() or "") for page in reader.pages]
        except Exception as e:
            logger.warning("Failed to extract text from PDF: %s", e)
            raise UnreadableError() from e
        return pages

    @staticmethod
    def join_pages(pages: List[str]) -> str:
        """Concatenate page texts, each followed by the page boundary marker."""
        return "".join(page + PAGE_SEPARATOR for page in pages)

    async def extract_text(self, pdf_bytes: bytes) -> str:
        """Extract text off the event loop; pypdf parsing is CPU bound."""
        loop = asyncio.get_running_loop()
        pages = await loop.run_in_executor(None, self.extract_pages, pdf_bytes)
        return self.join_pages(pages)

    @staticmethod
    def _clean_text(text: str) -> str:
        """Collapse whitespace inside a page."""
        return re.sub(r"\s+", " ", text).strip()
