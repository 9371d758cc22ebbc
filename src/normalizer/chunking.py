"""Overlapping fixed-size text chunking."""

from __future__ import annotations

DEFAULT_CHUNK_SIZE = 20 * 1024
DEFAULT_OVERLAP = 2 * 1024


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> list[str]:
    """Cut *text* at ``0, C, 2C, ...``; every chunk after the first also
    carries the *overlap* characters before its cut point.

    Text no longer than *chunk_size* comes back as a single chunk.

    Raises:
        ValueError: If ``overlap`` is negative or not smaller than ``chunk_size``.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must satisfy 0 <= overlap < chunk_size")
    if len(text) <= chunk_size:
        return [text]

    chunks: list[str] = []
    for position in range(0, len(text), chunk_size):
        start = position - overlap if position else 0
        chunks.append(text[start : position + chunk_size])
    return chunks


def reconstruct(chunks: list[str], overlap: int = DEFAULT_OVERLAP) -> str:
    """Inverse of ``chunk_text``."""
    if not chunks:
        return ""
    return chunks[0] + "".join(chunk[overlap:] for chunk in chunks[1:])
