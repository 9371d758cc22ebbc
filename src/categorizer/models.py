"""Categorization result models: pure data, no I/O."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

from digitaldna.profile.models import CAMEL_CONFIG
from digitaldna.shared.llm import ParseStatus

logger = logging.getLogger(__name__)

MIN_RELEVANCE = 0
MAX_RELEVANCE = 10

PLACEHOLDER_CATEGORY = "unknown"


def clamp_relevance(value: Any) -> int:
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        return MIN_RELEVANCE
    return max(MIN_RELEVANCE, min(MAX_RELEVANCE, number))


class CategoryDetail(BaseModel):
    """One category's classification for a single file."""

    model_config = CAMEL_CONFIG

    relevance: int = 0
    summary: str = ""
    data_points: list[str] = Field(default_factory=list)

    @field_validator("relevance", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_relevance(value)

    @field_validator("data_points", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, (str, int, float)):
            value = [value]
        return [str(item) for item in value if item is not None and str(item).strip()]


class CategoryResult(BaseModel):
    """Classification and fact extraction for one source file."""

    model_config = CAMEL_CONFIG

    file_name: str = ""
    file_type: str = "unknown"
    summary: str = ""
    categories: dict[str, CategoryDetail] = Field(default_factory=dict)
    entity_names: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    sensitive_info: bool = False
    extracted_profile: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("extractedProfile", "extracted_profile", "userProfile"),
    )

    @field_validator("categories", mode="before")
    @classmethod
    def _drop_malformed(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            if value is not None:
                logger.warning("Ignoring non-object categories: %r", type(value).__name__)
            return {}
        kept: dict[str, Any] = {}
        for name, detail in value.items():
            if isinstance(detail, (dict, CategoryDetail)):
                kept[str(name)] = detail
            else:
                logger.warning("Dropping malformed category %r", name)
        return kept

    @field_validator("entity_names", "insights", mode="before")
    @classmethod
    def _string_list(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if item is not None and str(item).strip()]

    @field_validator("extracted_profile", mode="before")
    @classmethod
    def _object_or_none(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def placeholder_result(file_name: str) -> CategoryResult:
    """Stand-in result written when the AI call or its parse fails."""
    return CategoryResult(
        file_name=file_name,
        file_type="unknown",
        summary="Failed to analyze file content",
        categories={
            PLACEHOLDER_CATEGORY: CategoryDetail(
                relevance=1,
                summary="Processing error occurred",
                data_points=["Error processing file"],
            )
        },
    )


@dataclass
class CategorizationOutcome:
    """What one categorizer run produced."""

    file_name: str
    result_key: str
    categories: list[str] = field(default_factory=list)
    parse_status: ParseStatus = ParseStatus.OK
    duplicate: bool = False
