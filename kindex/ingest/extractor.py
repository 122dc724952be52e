"""
Content Extraction

Reads text out of local files: plain text and source code directly, PDF via
pypdf, DOCX via python-docx. Anything else yields None.
"""

import os
from typing import Optional

from docx import Document
from pypdf import PdfReader

from kindex.capabilities import ContentExtractor
from kindex.configs import DOCUMENT_EXTENSIONS, TEXT_EXTENSIONS, get_logger
from kindex.filters.base import file_extension

logger = get_logger("ingest.extractor")

SNIFF_BYTES = 8192


def looks_like_text(path: str) -> bool:
    """Heuristic for extension-less files (Makefile, Dockerfile, LICENSE...)."""
    try:
        with open(path, "rb") as f:
            head = f.read(SNIFF_BYTES)
    except OSError:
        return False
    return b"\x00" not in head


def extract_pdf_text(path: str) -> str:
    """Concatenate the text of every PDF page."""
    reader = PdfReader(path)
    pages = []
    for page in reader.pages:
        text = page.extract_text() or ""
        if text.strip():
            pages.append(text)
    return "\n\n".join(pages)


def extract_docx_text(path: str) -> str:
    """Join the non-empty paragraphs of a Word document."""
    document = Document(path)
    return "\n".join(p.text for p in document.paragraphs if p.text)


class LocalFileContentExtractor(ContentExtractor):
    """Text extraction for files on disk."""

    def __init__(
        self,
        text_extensions: Optional[frozenset[str]] = None,
        document_extensions: Optional[frozenset[str]] = None,
    ):
        self.text_extensions = text_extensions if text_extensions is not None else TEXT_EXTENSIONS
        self.document_extensions = document_extensions if document_extensions is not None else DOCUMENT_EXTENSIONS

    def is_supported(self, path: str) -> bool:
        ext = file_extension(os.path.basename(path))
        if not ext:
            return looks_like_text(path)
        return ext in self.text_extensions or ext in self.document_extensions

    def is_line_tracked(self, path: str) -> bool:
        ext = file_extension(os.path.basename(path))
        return ext not in self.document_extensions and self.is_supported(path)

    def extract(self, path: str) -> Optional[str]:
        """
        Extract the text of a file.

        Args:
            path: File path

        Returns:
            Text content, or None if unsupported, unreadable or blank
        """
        if not self.is_supported(path):
            logger.debug(f"Unsupported file type: {path}")
            return None

        ext = file_extension(os.path.basename(path))
        try:
            if ext == "pdf":
                text = extract_pdf_text(path)
            elif ext == "docx":
                text = extract_docx_text(path)
            else:
                with open(path, "r", encoding="utf-8", errors="replace") as f:
                    text = f.read()
        except Exception as e:
            logger.warning(f"Failed to extract content from {path}: {e}")
            return None

        if not text or not text.strip():
            return None
        return text
