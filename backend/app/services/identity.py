"""Resolution of assigned-doctor references to canonical doctor user ids.

``PatientProfile.assigned_doctor_ref`` has historically held one of two
representations: the doctor's ``User.id`` (canonical) or the id of the
doctor's ``DoctorProfile`` row (legacy). The helpers here classify a stored
value against a snapshot of the doctor index without touching the database.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from typing import AbstractSet, Any
from uuid import UUID

_MAX_UNWRAP_DEPTH = 8


def normalize_identifier(value: Any, _depth: int = 0) -> str | None:
    """Return the canonical string form of an opaque identifier, or None.

    Accepts raw strings, UUIDs, integers, ``{"id": ...}`` / ``{"_id": ...}``
    wrappers and objects exposing an ``id`` attribute (ORM rows).
    """
    if value is None or _depth > _MAX_UNWRAP_DEPTH:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        # Whitespace-only is unusable; anything else is kept verbatim so a padded
        # value never compares equal to the id it resembles.
        return value if value.strip() else None
    if isinstance(value, UUID):
        return value.hex
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Mapping):
        for key in ("id", "_id"):
            if key in value:
                return normalize_identifier(value[key], _depth + 1)
        return None
    if hasattr(value, "id"):
        return normalize_identifier(getattr(value, "id"), _depth + 1)
    return None


class ResolutionKind(str, enum.Enum):
    invalid = "invalid"
    ambiguous = "ambiguous"
    already_canonical = "already_canonical"
    legacy = "legacy"
    unmapped = "unmapped"


@dataclass(frozen=True)
class Resolution:
    kind: ResolutionKind
    value: str | None = None
    mapped: str | None = None

    @property
    def is_legacy(self) -> bool:
        return self.kind is ResolutionKind.legacy


def resolve_reference(
    reference: Any,
    doctor_ids: AbstractSet[str],
    profile_to_doctor: Mapping[str, str],
) -> Resolution:
    value = normalize_identifier(reference)
    if value is None:
        return Resolution(ResolutionKind.invalid)

    is_doctor_id = value in doctor_ids
    mapped = profile_to_doctor.get(value)

    if is_doctor_id and mapped is not None:
        # Same value is both a doctor user id and a doctor profile id; refuse to guess.
        return Resolution(ResolutionKind.ambiguous, value=value)
    if is_doctor_id:
        return Resolution(ResolutionKind.already_canonical, value=value)
    if mapped is not None:
        return Resolution(ResolutionKind.legacy, value=value, mapped=mapped)
    return Resolution(ResolutionKind.unmapped, value=value)
