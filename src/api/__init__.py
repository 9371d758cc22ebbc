"""HTTP surface for the processing endpoints."""

from digitaldna.api.app import create_app

__all__ = ["create_app"]
