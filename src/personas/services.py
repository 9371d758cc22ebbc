"""Persona builder: per-category persona updates from one category result."""

from __future__ import annotations

import json
import logging
import posixpath

from pydantic import ValidationError

from digitaldna.categorizer.models import CategoryDetail, CategoryResult
from digitaldna.personas.models import (
    Persona,
    PersonasDocument,
    PersonaUpdateOutcome,
    clamp_completeness,
)
from digitaldna.personas.prompts import (
    PERSONA_SYSTEM_PROMPT,
    PERSONA_UPDATE_PROMPT,
    PROFILE_SECTION,
)
from digitaldna.profile.merge import union_strings
from digitaldna.profile.models import MasterProfile, utc_now
from digitaldna.profile.services import try_load_master_profile
from digitaldna.shared.errors import BlobNotFoundError, ConfigurationError, LLMError
from digitaldna.shared.llm import LLMClient, parse_json_response
from digitaldna.storage.base import BlobStore
from digitaldna.storage.keys import Stage, personas_key, resolve_key

logger = logging.getLogger(__name__)

PERSONA_TEMPERATURE = 0.3


def load_personas(store: BlobStore, user_id: str) -> PersonasDocument:
    """Load the personas document; a missing one is empty.

    Other storage errors propagate.
    """
    key = personas_key(user_id)
    try:
        data = store.get_json(key)
    except BlobNotFoundError:
        return PersonasDocument()
    return PersonasDocument.model_validate(data)


def save_personas(store: BlobStore, user_id: str, document: PersonasDocument) -> str:
    key = personas_key(user_id)
    store.put_json(key, document.to_document())
    return key


def fallback_persona(existing: Persona, file_name: str) -> Persona:
    """The existing persona with only its sources and timestamp touched."""
    persona = existing.model_copy(deep=True)
    persona.sources = union_strings(persona.sources, [file_name])
    persona.last_updated = utc_now()
    return persona


def accept_update(existing: Persona, proposed: Persona, category: str, file_name: str) -> Persona:
    """Normalize an AI-proposed persona against the one it replaces."""
    accepted = proposed.model_copy(deep=True)
    accepted.type = category
    accepted.completeness = clamp_completeness(max(existing.completeness, proposed.completeness))
    accepted.sources = union_strings(union_strings(existing.sources, proposed.sources), [file_name])
    accepted.last_updated = utc_now()
    return accepted


class PersonaBuilder:
    """Updates a user's personas from one category result.

    Args:
        store: Blob store holding every stage.
        llm: Completion client; ``None`` means no AI credential is configured.
        max_tokens: Completion token limit.
    """

    def __init__(self, store: BlobStore, llm: LLMClient | None, *, max_tokens: int = 4000) -> None:
        self._store = store
        self._llm = llm
        self._max_tokens = max_tokens

    def _build_prompt(
        self,
        category: str,
        existing: Persona,
        detail: CategoryDetail,
        result: CategoryResult,
        file_name: str,
        master: MasterProfile | None,
    ) -> str:
        profile_section = ""
        if master is not None:
            profile_section = PROFILE_SECTION.format(profile=master.render_for_prompt())
        return PERSONA_UPDATE_PROMPT.format(
            category=category,
            existing_persona=json.dumps(
                existing.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False
            ),
            file_name=file_name,
            file_type=result.file_type,
            file_summary=result.summary,
            relevance=detail.relevance,
            category_summary=detail.summary,
            data_points=json.dumps(detail.data_points, ensure_ascii=False),
            profile_section=profile_section,
            completeness=existing.completeness,
        )

    def update_persona(
        self,
        category: str,
        existing: Persona,
        detail: CategoryDetail,
        result: CategoryResult,
        file_name: str,
        master: MasterProfile | None,
    ) -> tuple[Persona, bool]:
        """Return the new persona and whether the AI update was accepted."""
        if self._llm is None:
            raise ConfigurationError("AI credential is not configured")
        prompt = self._build_prompt(category, existing, detail, result, file_name, master)
        try:
            response = self._llm.complete(
                PERSONA_SYSTEM_PROMPT,
                prompt,
                temperature=PERSONA_TEMPERATURE,
                max_tokens=self._max_tokens,
                json_mode=True,
                label=f"persona:{category}",
            )
        except LLMError as exc:
            logger.warning("AI call failed for %s persona (%s), keeping existing", category, exc.code)
            return fallback_persona(existing, file_name), False

        parsed = parse_json_response(response)
        if not parsed.ok:
            logger.warning("Unparseable AI response for %s persona, keeping existing", category)
            return fallback_persona(existing, file_name), False

        data = dict(parsed.value)
        data["type"] = category
        try:
            proposed = Persona.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "AI persona for %s failed validation (%d errors), keeping existing",
                category,
                exc.error_count(),
            )
            return fallback_persona(existing, file_name), False
        return accept_update(existing, proposed, category, file_name), True

    def build(self, user_id: str, path: str) -> PersonaUpdateOutcome:
        """Update personas from the category result at *path*.

        *path* may be a full key, a stage-relative path or a bare file name
        under ``{user}/categorized/``. A result with no categories writes
        nothing.

        Raises:
            ConfigurationError: If no AI credential is configured.
            StorageError: If the category result or personas document
                cannot be read.
        """
        if self._llm is None:
            raise ConfigurationError("AI credential is not configured")
        key = resolve_key(user_id, path, Stage.CATEGORIZED)
        result = CategoryResult.model_validate(self._store.get_json(key))
        file_name = result.file_name or posixpath.basename(key)
        outcome = PersonaUpdateOutcome(file_name=file_name)

        if not result.categories:
            logger.info("%s has no categories, personas unchanged", key)
            return outcome

        document = load_personas(self._store, user_id)
        master = try_load_master_profile(self._store, user_id)

        for category, detail in result.categories.items():
            existing = document.get_or_default(category)
            persona, accepted = self.update_persona(
                category, existing, detail, result, file_name, master
            )
            document.set(category, persona)
            outcome.updated_personas.append(category)
            if not accepted:
                outcome.fallbacks.append(category)

        save_personas(self._store, user_id, document)
        logger.info(
            "Updated %d persona(s) for %s from %s (%d fallback)",
            len(outcome.updated_personas),
            user_id,
            file_name,
            len(outcome.fallbacks),
        )
        return outcome
