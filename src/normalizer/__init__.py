"""Text normalizer: PDF extraction, chunking and hand-off to the categorizer."""

from digitaldna.normalizer.chunking import chunk_text, reconstruct
from digitaldna.normalizer.pdf import PdfExtraction, extract_pdf
from digitaldna.normalizer.services import NormalizationResult, TextNormalizer

__all__ = [
    "NormalizationResult",
    "PdfExtraction",
    "TextNormalizer",
    "chunk_text",
    "extract_pdf",
    "reconstruct",
]
