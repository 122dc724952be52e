"""
Tests for content extraction, resource processing and source walking.
"""

from pathlib import Path

from docx import Document

from kindex.capabilities import ExtractedUrlContent
from kindex.filters import build_filter_chain
from kindex.ingest import (
    ChunkSizing,
    LocalFileContentExtractor,
    ResourceContentProcessor,
    compute_file_hash,
    compute_text_hash,
    iter_file_list,
    walk_subtree,
)
from kindex.ingest.processor import derive_url_name, metadata_path


class TestLocalFileContentExtractor:
    """Tests for text extraction from local files."""

    def test_plain_text(self, temp_dir):
        path = temp_dir / "notes.md"
        path.write_text("# Notes\n\nSome text")

        assert LocalFileContentExtractor().extract(str(path)) == "# Notes\n\nSome text"

    def test_unsupported_extension(self, temp_dir):
        path = temp_dir / "image.png"
        path.write_bytes(b"\x89PNG\r\n")

        assert LocalFileContentExtractor().extract(str(path)) is None

    def test_blank_file_yields_none(self, temp_dir):
        path = temp_dir / "empty.txt"
        path.write_text("  \n\n ")

        assert LocalFileContentExtractor().extract(str(path)) is None

    def test_extensionless_files_are_sniffed(self, temp_dir):
        makefile = temp_dir / "Makefile"
        makefile.write_text("all:\n\techo hi\n")
        blob = temp_dir / "blob"
        blob.write_bytes(b"abc\x00def")
        extractor = LocalFileContentExtractor()

        assert extractor.extract(str(makefile)).startswith("all:")
        assert extractor.extract(str(blob)) is None

    def test_invalid_utf8_is_replaced(self, temp_dir):
        path = temp_dir / "latin.txt"
        path.write_bytes(b"caf\xe9 au lait")

        text = LocalFileContentExtractor().extract(str(path))

        assert text.startswith("caf")
        assert "au lait" in text

    def test_docx(self, temp_dir):
        path = temp_dir / "design.docx"
        document = Document()
        document.add_paragraph("First paragraph")
        document.add_paragraph("Second paragraph")
        document.save(str(path))
        extractor = LocalFileContentExtractor()

        assert extractor.extract(str(path)) == "First paragraph\nSecond paragraph"
        assert not extractor.is_line_tracked(str(path))

    def test_corrupt_pdf_yields_none(self, temp_dir):
        path = temp_dir / "broken.pdf"
        path.write_bytes(b"this is not a pdf")

        assert LocalFileContentExtractor().extract(str(path)) is None

    def test_vanished_file_yields_none(self, temp_dir):
        """A file deleted after listing is reported as no content, not raised."""
        path = temp_dir / "gone.md"

        assert LocalFileContentExtractor().extract(str(path)) is None

    def test_code_is_line_tracked(self, temp_dir):
        path = temp_dir / "main.py"
        path.write_text("print(1)")

        assert LocalFileContentExtractor().is_line_tracked(str(path))


class TestResourceContentProcessor:
    """Tests for turning resources into chunks with metadata."""

    def test_file_metadata(self, temp_dir):
        path = temp_dir / "app.py"
        path.write_text("import os\n\nprint(os.getcwd())\n")
        processor = ResourceContentProcessor(LocalFileContentExtractor(), ChunkSizing(500, 50))

        chunks = processor.process_file(str(path))

        assert len(chunks) == 1
        meta = chunks[0].metadata
        assert meta["file_path"] == metadata_path(str(path))
        assert meta["file_name"] == "app.py"
        assert meta["extension"] == "py"
        assert meta["language"] == "python"
        assert meta["chunk_index"] == 0
        assert meta["chunk_total"] == 1
        assert (meta["start_line"], meta["end_line"]) == (1, 4)
        assert (chunks[0].start_line, chunks[0].end_line) == (1, 4)

    def test_chunks_are_ordered(self, temp_dir):
        path = temp_dir / "long.txt"
        path.write_text("\n".join(f"sentence number {i}" for i in range(100)))
        processor = ResourceContentProcessor(LocalFileContentExtractor(), ChunkSizing(500, 50))

        chunks = processor.process_file(str(path))

        assert len(chunks) > 1
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert all(c.metadata["chunk_total"] == len(chunks) for c in chunks)
        starts = [c.start_line for c in chunks]
        assert starts == sorted(starts)

    def test_unsupported_file(self, temp_dir):
        path = temp_dir / "a.zip"
        path.write_bytes(b"PK")
        processor = ResourceContentProcessor(LocalFileContentExtractor(), ChunkSizing(500, 50))

        assert processor.process_file(str(path)) is None

    def test_web_content(self):
        processor = ResourceContentProcessor(LocalFileContentExtractor(), ChunkSizing(500, 50))
        content = ExtractedUrlContent(content="Remote page body", content_type="text/html")

        chunks = processor.process_web("https://example.com/docs/guide/", content)

        assert len(chunks) == 1
        meta = chunks[0].metadata
        assert meta["source_type"] == "url"
        assert meta["url"] == "https://example.com/docs/guide/"
        assert meta["file_name"] == "guide"
        assert "start_line" not in meta
        assert chunks[0].start_line is None

    def test_derive_url_name(self):
        assert derive_url_name("https://example.com/a/b", "  Nice Title ") == "Nice Title"
        assert derive_url_name("https://example.com/a/page.html") == "page.html"
        assert derive_url_name("https://example.com") == "example.com"


class TestWalkers:
    """Tests for file lists, subtree walks and fingerprints."""

    def test_file_list_dedupes_and_filters(self, temp_dir, test_config):
        keep = temp_dir / "keep.md"
        keep.write_text("keep")
        image = temp_dir / "pic.png"
        image.write_bytes(b"png")
        chain = build_filter_chain(test_config)

        found = list(iter_file_list([str(keep), str(keep), str(image), str(temp_dir / "missing.md")], chain))

        assert found == [keep]

    def test_walk_subtree_applies_root_rules(self, temp_dir, test_config):
        (temp_dir / ".gitignore").write_text("*.tmp.md\n")
        sub = temp_dir / "new" / "nested"
        sub.mkdir(parents=True)
        (sub / "a.md").write_text("a")
        (sub / "b.tmp.md").write_text("b")
        chain = build_filter_chain(test_config)

        found = list(walk_subtree(str(temp_dir / "new"), str(temp_dir), chain))

        assert found == [Path(sub / "a.md")]

    def test_hashes(self, temp_dir):
        path = temp_dir / "abc.txt"
        path.write_text("abc")

        assert compute_text_hash("abc") == "900150983cd24fb0d6963f7d28e17f72"
        assert compute_file_hash(path) == compute_text_hash("abc")
