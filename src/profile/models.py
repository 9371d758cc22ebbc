"""Master profile models: pure data, no I/O."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from digitaldna.profile.merge import is_empty

# Mapping sections every synthesized profile starts with
MAPPING_SECTIONS = (
    "demographics",
    "financial",
    "professional",
    "social",
    "health",
    "travel",
    "technology",
    "transportation",
)
LIST_SECTIONS = ("interests",)
PROFILE_SECTIONS = MAPPING_SECTIONS + LIST_SECTIONS

CAMEL_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
}


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def default_profile() -> dict[str, Any]:
    """Fragment with every section present and empty."""
    profile: dict[str, Any] = {name: {} for name in MAPPING_SECTIONS}
    for name in LIST_SECTIONS:
        profile[name] = []
    return profile


def normalize_section_name(name: str) -> str:
    """``financialMetrics`` → ``financial``; other names pass through."""
    if name.endswith("Metrics") and len(name) > len("Metrics"):
        return name[: -len("Metrics")]
    return name


class SourceFileRecord(BaseModel):
    """One processed source file as recorded in the master profile."""

    model_config = CAMEL_CONFIG

    file_name: str
    file_type: str = "unknown"
    processed_at: datetime = Field(default_factory=utc_now)
    categories: list[str] = Field(default_factory=list)


class CategoryRollup(BaseModel):
    """Aggregate of one category across every processed file."""

    model_config = CAMEL_CONFIG

    relevance: int = 0
    count: int = 0
    data_points: list[str] = Field(default_factory=list)


class MasterProfile(BaseModel):
    """Single aggregated fact sheet per user."""

    model_config = CAMEL_CONFIG

    last_updated: datetime = Field(default_factory=utc_now)
    file_count: int = 0
    source_files: list[SourceFileRecord] = Field(default_factory=list)
    profile: dict[str, Any] = Field(
        default_factory=default_profile,
        validation_alias=AliasChoices("profile", "userProfile"),
    )
    categories: dict[str, CategoryRollup] = Field(default_factory=dict)
    insights: list[str] = Field(default_factory=list)

    @field_validator("profile", mode="before")
    @classmethod
    def _fill_sections(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return default_profile()
        filled = default_profile()
        for key, section in value.items():
            name = normalize_section_name(key)
            # The plain section name wins over its ``...Metrics`` spelling
            if name != key and not is_empty(value.get(name)):
                continue
            filled[name] = section
        return filled

    def has_source_file(self, file_name: str) -> bool:
        return any(record.file_name == file_name for record in self.source_files)

    def to_document(self) -> dict[str, Any]:
        """JSON-ready dict using the stored (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)

    def render_for_prompt(self) -> str:
        """Compact JSON of what is already known, for prompt context."""
        context = {
            "fileCount": self.file_count,
            "profile": {k: v for k, v in self.profile.items() if not k.startswith("_")},
            "categories": sorted(self.categories),
            "insights": self.insights[-20:],
        }
        return json.dumps(context, indent=2, ensure_ascii=False, default=str)
