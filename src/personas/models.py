"""Persona models: pure data, no I/O."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, RootModel, field_validator

from digitaldna.profile.models import CAMEL_CONFIG, utc_now

MIN_COMPLETENESS = 0
MAX_COMPLETENESS = 100
INITIAL_COMPLETENESS = 10

CUSTOM_PERSONA_NAME = "Custom Profile"

# category -> (display name, trait skeleton)
PERSONA_SKELETONS: dict[str, tuple[str, dict[str, Any]]] = {
    "financial": (
        "Financial Profile",
        {"spendingHabits": "Unknown", "financialServices": [], "subscriptions": []},
    ),
    "social": (
        "Social Profile",
        {"connections": 0, "platforms": [], "engagement": "Unknown"},
    ),
    "professional": (
        "Professional Profile",
        {"skills": [], "experience": [], "education": []},
    ),
    "entertainment": (
        "Entertainment Profile",
        {"preferences": [], "platforms": [], "content": []},
    ),
}


def clamp_completeness(value: Any) -> int:
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        return MIN_COMPLETENESS
    return max(MIN_COMPLETENESS, min(MAX_COMPLETENESS, number))


class Persona(BaseModel):
    """Narrative profile for one category."""

    model_config = CAMEL_CONFIG

    type: str
    name: str = CUSTOM_PERSONA_NAME
    last_updated: datetime = Field(default_factory=utc_now)
    completeness: int = INITIAL_COMPLETENESS
    summary: str = ""
    insights: list[str] = Field(default_factory=list)
    data_points: list[str] = Field(default_factory=list)
    traits: dict[str, Any] = Field(default_factory=dict)
    sources: list[str] = Field(default_factory=list)

    @field_validator("completeness", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_completeness(value)

    @field_validator("insights", "data_points", "sources", mode="before")
    @classmethod
    def _string_list(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(item) for item in value if item is not None and str(item).strip()]


def default_persona(category: str) -> Persona:
    """Initial persona with the category's trait skeleton."""
    name, traits = PERSONA_SKELETONS.get(category, (CUSTOM_PERSONA_NAME, {}))
    return Persona(
        type=category,
        name=name,
        completeness=INITIAL_COMPLETENESS,
        summary=f"Initial {category} persona",
        traits=copy.deepcopy(traits),
    )


class PersonasDocument(RootModel[dict[str, Persona]]):
    """All of a user's personas keyed by category name."""

    root: dict[str, Persona] = Field(default_factory=dict)

    def get(self, category: str) -> Persona | None:
        return self.root.get(category)

    def get_or_default(self, category: str) -> Persona:
        existing = self.root.get(category)
        return existing.model_copy(deep=True) if existing else default_persona(category)

    def set(self, category: str, persona: Persona) -> None:
        self.root[category] = persona

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


@dataclass
class PersonaUpdateOutcome:
    """What one persona-builder run changed."""

    file_name: str
    updated_personas: list[str] = field(default_factory=list)
    fallbacks: list[str] = field(default_factory=list)
