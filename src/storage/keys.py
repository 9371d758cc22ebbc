"""Blob naming scheme.

Every object lives under ``{userId}/{stage}/{relativePath}``. The stage
segment tells the router which processor owns the next step.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import unquote_plus

from digitaldna.shared.errors import InvalidKeyError

MASTER_PROFILE_NAME = "user_master_profile.json"
PERSONAS_NAME = "personas.json"

# Markers the object store leaves behind that never hold user data
_NON_DATA_MARKERS = (".tmp", "_$folder$")

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9._-]")
_CHUNK_SUFFIX_RE = re.compile(r"_chunk\d{3,}$")


class Stage(StrEnum):
    """Storage namespaces a user's data passes through, in order."""

    RAW = "raw"
    NORMALIZED = "normalized"
    CATEGORIZED = "categorized"
    PERSONAS = "personas"


@dataclass(frozen=True)
class ObjectKey:
    """A parsed ``{userId}/{stage}/{relativePath}`` key."""

    user_id: str
    stage: str
    relative_path: str

    @property
    def key(self) -> str:
        return f"{self.user_id}/{self.stage}/{self.relative_path}"

    @property
    def file_name(self) -> str:
        return posixpath.basename(self.relative_path)

    @property
    def known_stage(self) -> Stage | None:
        try:
            return Stage(self.stage)
        except ValueError:
            return None


def build_key(user_id: str, stage: Stage | str, relative_path: str) -> str:
    return f"{user_id}/{stage}/{relative_path.lstrip('/')}"


def parse_key(key: str) -> ObjectKey:
    """Split a key into user, stage and relative path.

    Raises:
        InvalidKeyError: If the key has fewer than three segments.
    """
    parts = key.split("/", 2)
    if len(parts) < 3 or not all(parts):
        raise InvalidKeyError(
            f"Invalid key format: {key!r}. Expected <userId>/<stage>/<path>"
        )
    return ObjectKey(user_id=parts[0], stage=parts[1], relative_path=parts[2])


def decode_event_key(raw_key: str) -> str:
    """Decode a key as delivered in a bucket notification (``+`` means space)."""
    return unquote_plus(raw_key)


def is_data_key(key: str) -> bool:
    """False for temp markers and directory placeholders."""
    if key.endswith("/"):
        return False
    return not any(marker in key for marker in _NON_DATA_MARKERS)


def master_profile_key(user_id: str) -> str:
    return build_key(user_id, Stage.CATEGORIZED, MASTER_PROFILE_NAME)


def is_master_profile_key(key: str) -> bool:
    try:
        parsed = parse_key(key)
    except InvalidKeyError:
        return False
    return parsed.stage == Stage.CATEGORIZED and parsed.relative_path == MASTER_PROFILE_NAME


def personas_key(user_id: str) -> str:
    return build_key(user_id, Stage.PERSONAS, PERSONAS_NAME)


def sanitize_file_name(file_name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9._-]`` with ``_``."""
    return _UNSAFE_CHARS_RE.sub("_", file_name)


def category_result_key(user_id: str, file_name: str) -> str:
    """Where a file's CategoryResult lives; never the MasterProfile key."""
    name = f"{sanitize_file_name(file_name)}.json"
    if name == MASTER_PROFILE_NAME:
        name = f"{sanitize_file_name(file_name)}_result.json"
    return build_key(user_id, Stage.CATEGORIZED, name)


def split_name(file_name: str) -> tuple[str, str]:
    """Return ``(stem, suffix)`` of a file name; suffix includes the dot."""
    stem, suffix = posixpath.splitext(file_name)
    return stem, suffix


def chunk_name(file_name: str, index: int) -> str:
    """``report.txt`` → ``report_chunk000.txt``."""
    stem, suffix = split_name(file_name)
    return f"{stem}_chunk{index:03d}{suffix}"


def belongs_to_source(candidate_name: str, source_name: str) -> bool:
    """True if *candidate_name* is *source_name* itself or one of its chunks."""
    source_stem, _ = split_name(source_name)
    stem, _ = split_name(candidate_name)
    if stem == source_stem:
        return True
    return stem.startswith(source_stem) and bool(
        _CHUNK_SUFFIX_RE.fullmatch(stem[len(source_stem) :])
    )


def resolve_key(user_id: str, path: str, default_stage: Stage) -> str:
    """Turn a user-supplied path into a full key.

    Accepts a full key, a stage-relative path, or a bare file name. Doubled
    prefixes such as ``u/normalized/u/normalized/a.txt`` are collapsed.
    """
    path = path.strip().lstrip("/")
    key = path
    if not any(path.startswith(f"{user_id}/{stage}/") for stage in Stage):
        stage = default_stage
        for candidate in Stage:
            if path.startswith(f"{candidate}/"):
                stage = candidate
                path = path[len(candidate) + 1 :]
                break
        key = build_key(user_id, stage, path)

    for stage in Stage:
        doubled = f"{user_id}/{stage}/{user_id}/{stage}/"
        while doubled in key:
            key = key.replace(doubled, f"{user_id}/{stage}/")
    return key
