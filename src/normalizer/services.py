"""Text normalizer: raw uploads into plain-text, chunked blobs."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field

from digitaldna.normalizer.chunking import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP, chunk_text
from digitaldna.normalizer.pdf import extract_pdf, is_pdf
from digitaldna.router.dispatch import Dispatcher, Target, WorkItem
from digitaldna.storage.base import BlobStore, content_type_for
from digitaldna.storage.keys import (
    Stage,
    belongs_to_source,
    build_key,
    chunk_name,
    parse_key,
    split_name,
)

logger = logging.getLogger(__name__)


@dataclass
class NormalizationResult:
    """What one normalizer run wrote and handed off."""

    source_key: str
    written_keys: list[str] = field(default_factory=list)
    chunked: bool = False
    dispatched: list[str] = field(default_factory=list)


def output_name(file_name: str, pdf: bool) -> str:
    """PDFs are stored as ``.txt``; other names are kept."""
    if not pdf:
        return file_name
    stem, _ = split_name(file_name)
    return f"{stem}.txt"


class TextNormalizer:
    """Extracts, chunks and stores text for one raw object at a time.

    Args:
        store: Blob store holding every stage.
        dispatcher: Where categorization requests go after writing. ``None``
            disables hand-off.
        chunk_size: Maximum characters per chunk.
        overlap: Characters each chunk after the first repeats.
        handoff: Whether to request categorization of the written text.
    """

    def __init__(
        self,
        store: BlobStore,
        *,
        dispatcher: Dispatcher | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
        handoff: bool = True,
    ) -> None:
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError("overlap must satisfy 0 <= overlap < chunk_size")
        self._store = store
        self._dispatcher = dispatcher
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._handoff = handoff and dispatcher is not None

    def extract_text(self, data: bytes, file_name: str, content_type: str | None = None) -> str:
        """Plain text for *data*; PDFs go through the PDF extractor.

        Raises:
            ExtractionError: If a PDF cannot be opened.
        """
        if is_pdf(file_name, content_type):
            return extract_pdf(data).text
        return data.decode("utf-8", errors="replace")

    def normalize_object(
        self,
        user_id: str,
        key: str,
        content_type: str | None = None,
    ) -> NormalizationResult:
        """Normalize one raw object into ``{user}/normalized/``.

        Short text is written under its own name; longer text is written
        only as ``{stem}_chunkNNN{suffix}`` pieces.
        """
        parsed = parse_key(key)
        directory, file_name = posixpath.split(parsed.relative_path)
        pdf = is_pdf(file_name, content_type)

        data = self._store.get(key)
        text = self.extract_text(data, file_name, content_type)
        name = output_name(file_name, pdf)
        chunks = chunk_text(text, self._chunk_size, self._overlap)

        result = NormalizationResult(source_key=key, chunked=len(chunks) > 1)
        if result.chunked:
            names = [chunk_name(name, index) for index in range(len(chunks))]
        else:
            names = [name]
        for piece_name, piece in zip(names, chunks):
            target = build_key(user_id, Stage.NORMALIZED, posixpath.join(directory, piece_name))
            if pdf or result.chunked:
                self._store.put_text(target, piece)
            else:
                # Short text sources are copied byte for byte
                self._store.put(target, data, content_type_for(target))
            result.written_keys.append(target)

        logger.info(
            "Normalized %s into %d object(s) (%d characters)",
            key,
            len(result.written_keys),
            len(text),
        )

        if self._handoff:
            result.dispatched = self.handoff(user_id, posixpath.join(directory, name))
        return result

    def handoff(self, user_id: str, relative_name: str) -> list[str]:
        """Request categorization of every normalized object from one source."""
        if self._dispatcher is None:
            return []
        directory, source_name = posixpath.split(relative_name)
        stem, _ = split_name(source_name)
        prefix = build_key(user_id, Stage.NORMALIZED, posixpath.join(directory, stem))

        dispatched: list[str] = []
        for info in self._store.list(prefix):
            candidate_dir, candidate = posixpath.split(parse_key(info.key).relative_path)
            if candidate_dir != directory or not belongs_to_source(candidate, source_name):
                continue
            try:
                self._dispatcher.submit(
                    Target.CATEGORIZE, WorkItem(user_id=user_id, key=info.key, file_name=candidate)
                )
            except Exception:
                logger.error("Could not hand off %s for categorization", info.key, exc_info=True)
                continue
            dispatched.append(info.key)
        logger.info("Handed off %d object(s) for categorization", len(dispatched))
        return dispatched
