"""Processing endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, Field

from digitaldna.shared.errors import AuthenticationError
from digitaldna.storage.keys import Stage, resolve_key

logger = logging.getLogger(__name__)

router = APIRouter()


class ProcessRequest(BaseModel):
    model_config = {"populate_by_name": True}

    file_path: str = Field(alias="filePath", min_length=1)
    file_name: str = Field(alias="fileName", min_length=1)


class CategorizeResponse(BaseModel):
    message: str
    file: str
    categories: list[str]


class PersonasResponse(BaseModel):
    model_config = {"populate_by_name": True}

    message: str
    file: str
    updated_personas: list[str] = Field(serialization_alias="updatedPersonas")


def principal_email(
    x_authorizer_email: Annotated[str | None, Header()] = None,
) -> str:
    """Email of the caller as passed through by the upstream authorizer."""
    email = (x_authorizer_email or "").strip()
    if not email:
        raise AuthenticationError("User not authenticated. No email found in authorizer context.")
    return email


def get_runtime(request: Request):
    return request.app.state.runtime


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/categorize", response_model=CategorizeResponse)
def categorize(
    body: ProcessRequest,
    email: Annotated[str, Depends(principal_email)],
    runtime=Depends(get_runtime),
) -> CategorizeResponse:
    key = resolve_key(email, body.file_path, Stage.NORMALIZED)
    logger.info("Categorize request for %s", key)
    outcome = runtime.categorizer.categorize_file(email, key, body.file_name)
    return CategorizeResponse(
        message="File categorized successfully",
        file=outcome.file_name,
        categories=outcome.categories,
    )


@router.post("/personas", response_model=PersonasResponse, response_model_by_alias=True)
def personas(
    body: ProcessRequest,
    email: Annotated[str, Depends(principal_email)],
    runtime=Depends(get_runtime),
) -> PersonasResponse:
    key = resolve_key(email, body.file_path, Stage.CATEGORIZED)
    logger.info("Persona request for %s", key)
    outcome = runtime.personas.build(email, key)
    return PersonasResponse(
        message="Personas updated successfully",
        file=outcome.file_name,
        updated_personas=outcome.updated_personas,
    )
