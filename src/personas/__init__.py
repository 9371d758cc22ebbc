"""Persona builder: per-category personas maintained from category results."""

from digitaldna.personas.models import (
    Persona,
    PersonasDocument,
    PersonaUpdateOutcome,
    default_persona,
)
from digitaldna.personas.services import PersonaBuilder, load_personas, save_personas

__all__ = [
    "Persona",
    "PersonaBuilder",
    "PersonaUpdateOutcome",
    "PersonasDocument",
    "default_persona",
    "load_personas",
    "save_personas",
]
