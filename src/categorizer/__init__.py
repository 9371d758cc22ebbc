"""Categorizer: AI classification, fact extraction and backlog processing."""

from digitaldna.categorizer.models import (
    CategorizationOutcome,
    CategoryDetail,
    CategoryResult,
    placeholder_result,
)
from digitaldna.categorizer.services import Categorizer

__all__ = [
    "CategorizationOutcome",
    "CategoryDetail",
    "CategoryResult",
    "Categorizer",
    "placeholder_result",
]
