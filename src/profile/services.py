"""Master profile I/O and the per-file update step."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from digitaldna.profile.merge import DEFAULT_POLICY, MergePolicy, merge, union_strings
from digitaldna.profile.models import (
    CategoryRollup,
    MasterProfile,
    SourceFileRecord,
    normalize_section_name,
    utc_now,
)
from digitaldna.shared.errors import BlobNotFoundError
from digitaldna.storage.base import BlobStore
from digitaldna.storage.keys import master_profile_key

logger = logging.getLogger(__name__)


def load_master_profile(store: BlobStore, user_id: str) -> MasterProfile:
    """Load the user's master profile, synthesizing an empty one if absent.

    Storage errors other than a missing key propagate.
    """
    key = master_profile_key(user_id)
    try:
        data = store.get_json(key)
    except BlobNotFoundError:
        logger.info("No master profile for %s yet, starting fresh", user_id)
        return MasterProfile()
    except ValueError:
        logger.warning("Corrupt master profile at %s, starting fresh", key)
        return MasterProfile()
    try:
        return MasterProfile.model_validate(data)
    except ValidationError:
        logger.warning("Invalid master profile at %s, starting fresh", key)
        return MasterProfile()


def try_load_master_profile(store: BlobStore, user_id: str) -> MasterProfile | None:
    """Best-effort load for read-only context; never raises."""
    try:
        return load_master_profile(store, user_id)
    except Exception:
        logger.warning("Could not load master profile for %s", user_id, exc_info=True)
        return None


def save_master_profile(store: BlobStore, user_id: str, master: MasterProfile) -> str:
    """Overwrite the master profile in one put. Returns the key."""
    key = master_profile_key(user_id)
    store.put_json(key, master.to_document())
    return key


def normalize_fragment(fragment: Mapping[str, Any] | None) -> dict[str, Any]:
    """Rename ``...Metrics`` sections; later duplicates merge into earlier ones."""
    result: dict[str, Any] = {}
    for key, value in (fragment or {}).items():
        name = normalize_section_name(key)
        if name in result:
            result[name] = merge({name: result[name]}, {name: value})[name]
        else:
            result[name] = value
    return result


def apply_file(
    master: MasterProfile,
    *,
    file_name: str,
    file_type: str,
    categories: Mapping[str, Any],
    insights: list[str],
    fragment: Mapping[str, Any] | None,
    policy: MergePolicy = DEFAULT_POLICY,
) -> tuple[MasterProfile, bool]:
    """Fold one file's categorization into *master*.

    ``categories`` maps names to objects with ``relevance`` and
    ``data_points`` attributes. Returns the updated profile and whether the
    file had already been recorded, in which case only insights change.
    """
    updated = master.model_copy(deep=True)
    duplicate = updated.has_source_file(file_name)

    if duplicate:
        logger.info("%s already in master profile, skipping merge", file_name)
    else:
        updated.profile = merge(
            updated.profile, normalize_fragment(fragment), policy, source=file_name
        )
        updated.source_files.append(
            SourceFileRecord(
                file_name=file_name,
                file_type=file_type,
                processed_at=utc_now(),
                categories=list(categories),
            )
        )
        for name, detail in categories.items():
            rollup = updated.categories.get(name) or CategoryRollup()
            rollup.relevance = max(rollup.relevance, int(detail.relevance))
            rollup.count += 1
            rollup.data_points = union_strings(rollup.data_points, detail.data_points)
            updated.categories[name] = rollup

    updated.insights = union_strings(updated.insights, insights)
    updated.file_count = len(updated.source_files)
    updated.last_updated = utc_now()
    return updated, duplicate
