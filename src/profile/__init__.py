"""Master profile: models, merge engine and per-file update."""

from digitaldna.profile.merge import (
    DEFAULT_POLICY,
    FINGERPRINT_KEY,
    MergePolicy,
    merge,
    union_keyed,
    union_strings,
)
from digitaldna.profile.models import (
    PROFILE_SECTIONS,
    CategoryRollup,
    MasterProfile,
    SourceFileRecord,
    default_profile,
)
from digitaldna.profile.services import (
    apply_file,
    load_master_profile,
    save_master_profile,
    try_load_master_profile,
)

__all__ = [
    "DEFAULT_POLICY",
    "FINGERPRINT_KEY",
    "PROFILE_SECTIONS",
    "CategoryRollup",
    "MasterProfile",
    "MergePolicy",
    "SourceFileRecord",
    "apply_file",
    "default_profile",
    "load_master_profile",
    "merge",
    "save_master_profile",
    "try_load_master_profile",
    "union_keyed",
    "union_strings",
]
