"""Tests for overlapping text chunking."""

import string

import pytest

from digitaldna.normalizer.chunking import chunk_text, reconstruct

TEXT = (string.ascii_letters + string.digits) * 40


class TestChunkText:
    def test_short_text_single_chunk(self):
        assert chunk_text("hello", chunk_size=10, overlap=2) == ["hello"]

    def test_exact_size_single_chunk(self):
        assert chunk_text("a" * 10, chunk_size=10, overlap=2) == ["a" * 10]

    def test_empty_text(self):
        assert chunk_text("", chunk_size=10, overlap=2) == [""]

    def test_cut_points_and_overlap(self):
        chunks = chunk_text("abcdefghijklmnopqrstuvwxy", chunk_size=10, overlap=3)
        assert chunks == ["abcdefghij", "hijklmnopqrst", "rstuvwxy"]

    def test_one_past_the_limit(self):
        chunks = chunk_text("a" * 10 + "b", chunk_size=10, overlap=2)
        assert chunks == ["a" * 10, "aab"]

    @pytest.mark.parametrize(
        "length,size,overlap",
        [(1, 5, 0), (99, 10, 0), (100, 10, 9), (101, 10, 2), (2480, 512, 64), (2480, 2480, 100)],
    )
    def test_reconstruction(self, length, size, overlap):
        text = TEXT[:length]
        chunks = chunk_text(text, chunk_size=size, overlap=overlap)
        assert reconstruct(chunks, overlap) == text
        assert all(len(chunk) <= size + overlap for chunk in chunks)

    @pytest.mark.parametrize("size,overlap", [(10, -1), (10, 10), (10, 11), (0, 0)])
    def test_invalid_parameters(self, size, overlap):
        with pytest.raises(ValueError):
            chunk_text("abc", chunk_size=size, overlap=overlap)


class TestReconstruct:
    def test_empty(self):
        assert reconstruct([], 5) == ""
