from types import SimpleNamespace
from uuid import UUID

import pytest

from app.services.identity import (
    Resolution,
    ResolutionKind,
    normalize_identifier,
    resolve_reference,
)

DOCTOR_IDS = frozenset({"U1", "U2"})
PROFILE_TO_DOCTOR = {"P1": "U1", "P2": "U2"}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("abc", "abc"),
        ("  abc  ", "  abc  "),
        ("", None),
        ("   ", None),
        (None, None),
        (True, None),
        (42, "42"),
        ({"id": "U1"}, "U1"),
        ({"_id": "P1"}, "P1"),
        ({"_id": " "}, None),
        ({"name": "no id"}, None),
        (SimpleNamespace(id="U9"), "U9"),
        (3.5, None),
    ],
)
def test_normalize_identifier(raw, expected):
    assert normalize_identifier(raw) == expected


def test_normalize_identifier_uuid_uses_hex_form():
    value = UUID("12345678-1234-5678-1234-567812345678")
    assert normalize_identifier(value) == "12345678123456781234567812345678"


def test_normalize_identifier_stops_on_deep_nesting():
    nested = "U1"
    for _ in range(20):
        nested = {"id": nested}
    assert normalize_identifier(nested) is None


def test_resolve_invalid_reference():
    assert resolve_reference("   ", DOCTOR_IDS, PROFILE_TO_DOCTOR) == Resolution(
        ResolutionKind.invalid
    )
    assert resolve_reference(None, DOCTOR_IDS, PROFILE_TO_DOCTOR).kind is ResolutionKind.invalid


def test_resolve_canonical_reference():
    resolution = resolve_reference("U1", DOCTOR_IDS, PROFILE_TO_DOCTOR)
    assert resolution.kind is ResolutionKind.already_canonical
    assert resolution.value == "U1"
    assert resolution.mapped is None
    assert not resolution.is_legacy


def test_resolve_legacy_reference():
    resolution = resolve_reference("P2", DOCTOR_IDS, PROFILE_TO_DOCTOR)
    assert resolution.kind is ResolutionKind.legacy
    assert resolution.value == "P2"
    assert resolution.mapped == "U2"
    assert resolution.is_legacy


def test_resolve_unmapped_reference():
    resolution = resolve_reference("ghost", DOCTOR_IDS, PROFILE_TO_DOCTOR)
    assert resolution.kind is ResolutionKind.unmapped
    assert resolution.value == "ghost"


def test_resolve_collision_is_ambiguous():
    profile_to_doctor = {"U2": "U1"}
    resolution = resolve_reference("U2", DOCTOR_IDS, profile_to_doctor)
    assert resolution.kind is ResolutionKind.ambiguous
    assert resolution.value == "U2"
    assert resolution.mapped is None


def test_resolve_accepts_wrapped_reference():
    resolution = resolve_reference({"id": "P1"}, DOCTOR_IDS, PROFILE_TO_DOCTOR)
    assert resolution.kind is ResolutionKind.legacy
    assert resolution.mapped == "U1"


def test_padded_reference_is_not_treated_as_canonical():
    resolution = resolve_reference(" U1", DOCTOR_IDS, PROFILE_TO_DOCTOR)
    assert resolution.kind is ResolutionKind.unmapped
    assert resolution.value == " U1"
