"""
Tests for chunk sizing and text splitting.
"""

import pytest
from langchain_text_splitters import Language

from kindex.ingest import ChunkSizing, chunk_text, chunk_text_with_line_numbers, detect_language


class TestChunkSizing:
    """Tests for deriving the window from the model's token limit."""

    @pytest.mark.parametrize(
        "token_limit,expected",
        [
            (2048, (4000, 200)),
            (8192, (4000, 200)),
            (512, (1636, 81)),
            (100, (500, 50)),
        ],
    )
    def test_from_token_limit(self, token_limit, expected):
        sizing = ChunkSizing.from_token_limit(token_limit)

        assert (sizing.chunk_size, sizing.overlap) == expected

    def test_invalid_token_limit_falls_back(self):
        sizing = ChunkSizing.from_token_limit(0)

        assert (sizing.chunk_size, sizing.overlap) == (4000, 200)

    def test_min_above_max_is_clamped(self):
        sizing = ChunkSizing.from_token_limit(2048, min_chars=5000, max_chars=1000)

        assert sizing.chunk_size == 1000
        assert sizing.overlap == 50

    def test_overlap_always_below_size(self):
        sizing = ChunkSizing.from_token_limit(2048, min_chars=10, max_chars=40)

        assert sizing.chunk_size == 40
        assert sizing.overlap < sizing.chunk_size

    def test_from_config(self, test_config):
        test_config["indexing"]["max_chars_per_chunk"] = 1200
        test_config["indexing"]["max_chunk_overlap"] = 30

        sizing = ChunkSizing.from_config(2048, test_config)

        assert (sizing.chunk_size, sizing.overlap) == (1200, 30)


class TestChunkText:
    """Tests for the sliding character window."""

    def test_blank_text_has_no_chunks(self):
        assert chunk_text("", 100, 10) == []
        assert chunk_text("   \n\t", 100, 10) == []

    def test_short_text_is_one_chunk(self):
        assert chunk_text("hello world", 100, 10) == ["hello world"]

    def test_windows_overlap_and_cover_text(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(10000))

        chunks = chunk_text(text, 4000, 200)

        assert [len(c) for c in chunks] == [4000, 4000, 2400]
        assert chunks[0][-200:] == chunks[1][:200]
        assert chunks[0] + chunks[1][200:] + chunks[2][200:] == text

    def test_overlap_not_below_size_still_terminates(self):
        assert chunk_text("abcdefghij", 4, 4) == ["abcd", "efgh", "ij"]

    def test_blank_windows_are_skipped(self):
        text = "a" * 10 + " " * 30 + "b" * 10

        chunks = chunk_text(text, 10, 0)

        assert chunks == ["a" * 10, "b" * 10]


class TestChunkTextWithLineNumbers:
    """Tests for line-aware chunking."""

    def test_line_ranges(self):
        text = "\n".join(f"line {i:02d}" for i in range(1, 11))

        chunks = chunk_text_with_line_numbers(text, 20, 8)

        assert chunks[0] == ("line 01\nline 02", 1, 2)
        assert chunks[1][1:] == (2, 3)
        assert chunks[-1][2] == 10
        assert all(len(body) <= 20 for body, _, _ in chunks)
        assert all(start <= end for _, start, end in chunks)

    def test_long_line_is_split_in_place(self):
        text = "short\n" + "x" * 50 + "\nend"

        chunks = chunk_text_with_line_numbers(text, 20, 5)

        assert [(s, e) for _, s, e in chunks] == [(1, 1), (2, 2), (2, 2), (2, 2), (3, 3)]
        assert chunks[0][0] == "short"
        assert chunks[-1][0] == "end"

    def test_everything_fits(self):
        assert chunk_text_with_line_numbers("a\nb\nc", 100, 10) == [("a\nb\nc", 1, 3)]

    def test_blank_text(self):
        assert chunk_text_with_line_numbers("\n\n", 100, 10) == []


class TestDetectLanguage:
    """Tests for extension-based language detection."""

    def test_known_extensions(self):
        assert detect_language("src/Main.kt") == Language.KOTLIN
        assert detect_language("app.PY") == Language.PYTHON
        assert detect_language("README.md") == Language.MARKDOWN

    def test_unknown_extension(self):
        assert detect_language("Makefile") is None
        assert detect_language("data.csv") is None
