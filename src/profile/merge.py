"""Deterministic, idempotent merge of profile fragments.

A profile fragment is a JSON-shaped mapping of sections (``financial``,
``travel``, ...) to facts. ``merge`` folds an incoming fragment into the
existing one without mutating either input:

- Scalars directly in the fragment or directly inside a section only fill
  values that are absent or empty.
- Lists are unioned. Strings dedupe case-insensitively and keep the first
  casing seen; objects dedupe by canonical JSON, or by a policy key field
  (``subscriptions`` by ``service``, ``frequentDestinations`` by
  ``location``, summing ``count``).
- Policy accumulators are summed (per key for mappings).
- Policy weighted averages are recomputed from both sides' counts.
- Deeper nested objects merge recursively with incoming scalars winning.

Every applied fragment is fingerprinted, together with its source when one
is given, into ``_appliedFragments`` so re-applying the same fragment from
the same source is a no-op.
"""

from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

FINGERPRINT_KEY = "_appliedFragments"

# Depth of a value's parent mapping at or below which scalars only fill gaps:
# 1 is the fragment itself, 2 is a section.
_FILL_ONLY_DEPTH = 2


@dataclass(frozen=True)
class MergePolicy:
    """Field names with numeric semantics.

    Attributes:
        accumulators: Keys whose values are added together.
        weighted_averages: Key -> path (within the same mapping) of the
            count that weights it.
        keyed_lists: Key of a list of objects -> field identifying an item
            (compared case-insensitively). The first item seen wins.
        keyed_list_counts: Key of a keyed list -> numeric field summed when
            two items share an identity; such lists are sorted by it,
            highest first.
    """

    accumulators: frozenset[str] = frozenset(
        {
            "totalSpent",
            "totalCost",
            "rides",
            "monthlySpending",
            "tripCount",
            "transactionCount",
        }
    )
    weighted_averages: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: {
            "averageCost": ("rides", "total"),
            "averageTransactionAmount": ("transactionCount",),
        }
    )
    keyed_lists: Mapping[str, str] = field(
        default_factory=lambda: {
            "subscriptions": "service",
            "frequentDestinations": "location",
        }
    )
    keyed_list_counts: Mapping[str, str] = field(
        default_factory=lambda: {"frequentDestinations": "count"}
    )


DEFAULT_POLICY = MergePolicy()


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def fingerprint(fragment: Mapping[str, Any], source: str | None = None) -> str:
    """Short SHA-256 of a fragment's canonical JSON, scoped to *source*."""
    payload: Any = fragment if source is None else {"source": source, "fragment": fragment}
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()[:16]


def is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _identity(item: Any) -> str:
    if isinstance(item, str):
        return "s:" + item.strip().casefold()
    return "j:" + canonical_json(item)


def union_strings(existing: Iterable[Any] | None, incoming: Iterable[Any] | None) -> list[Any]:
    """Ordered union; strings compare case-insensitively, first casing wins."""
    result: list[Any] = []
    seen: set[str] = set()
    for item in [*(existing or []), *(incoming or [])]:
        if isinstance(item, str) and not item.strip():
            continue
        ident = _identity(item)
        if ident in seen:
            continue
        seen.add(ident)
        result.append(copy.deepcopy(item))
    return result


def _item_key(item: Any, key_field: str) -> str:
    if isinstance(item, Mapping):
        value = item.get(key_field)
        if isinstance(value, str) and value.strip():
            return "k:" + value.strip().casefold()
    return _identity(item)


def union_keyed(
    existing: Iterable[Any] | None,
    incoming: Iterable[Any] | None,
    key_field: str,
    count_field: str | None = None,
) -> list[Any]:
    """Ordered union of objects identified by *key_field*.

    Without *count_field* the first item seen wins. With it, matching items
    add their counts and the result is sorted by count, highest first.
    """
    result: dict[str, Any] = {}
    for item in [*(existing or []), *(incoming or [])]:
        ident = _item_key(item, key_field)
        if ident not in result:
            result[ident] = copy.deepcopy(item)
            continue
        if count_field is None:
            continue
        kept = result[ident]
        if isinstance(kept, Mapping) and isinstance(item, Mapping):
            kept[count_field] = _accumulate(kept.get(count_field), item.get(count_field))
    items = list(result.values())
    if count_field is not None:
        items.sort(key=lambda item: _count_of(item, count_field), reverse=True)
    return items


def _count_of(item: Any, count_field: str) -> float:
    if isinstance(item, Mapping) and _is_number(item.get(count_field)):
        return item[count_field]
    return 0


def _lookup(mapping: Mapping[str, Any], path: tuple[str, ...]) -> float:
    value: Any = mapping
    for part in path:
        if not isinstance(value, Mapping):
            return 0
        value = value.get(part)
    return value if _is_number(value) else 0


def _accumulate(old: Any, new: Any) -> Any:
    if old is None:
        return copy.deepcopy(new)
    if new is None:
        return copy.deepcopy(old)
    if _is_number(old) and _is_number(new):
        return old + new
    if isinstance(old, Mapping) and isinstance(new, Mapping):
        out = copy.deepcopy(dict(old))
        for key, value in new.items():
            out[key] = _accumulate(old.get(key), value)
        return out
    # Incompatible shapes: keep what we had
    return copy.deepcopy(old)


def _weighted_average(
    old: Any,
    new: Any,
    existing: Mapping[str, Any],
    incoming: Mapping[str, Any],
    count_path: tuple[str, ...],
) -> Any:
    if not _is_number(new):
        return copy.deepcopy(old) if old is not None else copy.deepcopy(new)
    if not _is_number(old):
        return new
    old_count = _lookup(existing, count_path)
    new_count = _lookup(incoming, count_path)
    if new_count == 0:
        return old
    if old_count == 0:
        return new
    return (old * old_count + new * new_count) / (old_count + new_count)


def _merge_value(old: Any, new: Any, depth: int, policy: MergePolicy) -> Any:
    if is_empty(new):
        return copy.deepcopy(old) if old is not None else copy.deepcopy(new)
    if is_empty(old):
        return copy.deepcopy(new)
    if isinstance(old, list) and isinstance(new, list):
        return union_strings(old, new)
    if isinstance(old, Mapping) and isinstance(new, Mapping):
        return _merge_mapping(old, new, depth + 1, policy)
    if depth <= _FILL_ONLY_DEPTH:
        return copy.deepcopy(old)
    return copy.deepcopy(new)


def _merge_mapping(
    existing: Mapping[str, Any],
    incoming: Mapping[str, Any],
    depth: int,
    policy: MergePolicy,
) -> dict[str, Any]:
    out = copy.deepcopy(dict(existing))
    for key, new in incoming.items():
        old = existing.get(key)
        if key in policy.weighted_averages:
            out[key] = _weighted_average(
                old, new, existing, incoming, policy.weighted_averages[key]
            )
        elif key in policy.accumulators:
            out[key] = _accumulate(old, new)
        elif (
            key in policy.keyed_lists
            and isinstance(new, list)
            and (old is None or isinstance(old, list))
        ):
            out[key] = union_keyed(
                old, new, policy.keyed_lists[key], policy.keyed_list_counts.get(key)
            )
        else:
            out[key] = _merge_value(old, new, depth, policy)
    return out


def merge(
    existing: Mapping[str, Any] | None,
    incoming: Mapping[str, Any] | None,
    policy: MergePolicy = DEFAULT_POLICY,
    *,
    source: str | None = None,
) -> dict[str, Any]:
    """Fold *incoming* into *existing* and return a new fragment.

    Neither argument is mutated. ``merge(merge(p, f), f) == merge(p, f)``
    for the same *source*; the same fragment from a different source is
    applied again.
    """
    base = copy.deepcopy(dict(existing or {}))
    fragment = {k: v for k, v in (incoming or {}).items() if k != FINGERPRINT_KEY}
    if not fragment:
        return base

    fp = fingerprint(fragment, source)
    applied = list(base.pop(FINGERPRINT_KEY, []) or [])
    if fp in applied:
        base[FINGERPRINT_KEY] = applied
        return base

    merged = _merge_mapping(base, fragment, 1, policy)
    merged[FINGERPRINT_KEY] = [*applied, fp]
    return merged


def applied_fingerprints(fragment: Mapping[str, Any]) -> list[str]:
    return list(fragment.get(FINGERPRINT_KEY, []) or [])
