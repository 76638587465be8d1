from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.user import Role, User
from app.services.identity import (
    Resolution,
    ResolutionKind,
    normalize_identifier,
    resolve_reference,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DoctorIndex:
    doctor_ids: frozenset[str]
    profile_to_doctor: Mapping[str, str]
    doctors_scanned: int

    def resolve(self, reference: Any) -> Resolution:
        return resolve_reference(reference, self.doctor_ids, self.profile_to_doctor)

    def canonical(self, reference: Any) -> str | None:
        """Doctor user id behind ``reference`` in either stored form, else None."""
        resolution = self.resolve(reference)
        if resolution.kind is ResolutionKind.already_canonical:
            return resolution.value
        if resolution.kind is ResolutionKind.legacy:
            return resolution.mapped
        return None


def index_doctor_rows(rows) -> DoctorIndex:
    doctor_ids: set[str] = set()
    profile_to_doctor: dict[str, str] = {}
    scanned = 0
    for row in rows:
        scanned += 1
        user_id = normalize_identifier(row.id)
        if user_id is None:
            logger.warning(
                "Doctor user skipped: id not usable",
                extra={"login_id": getattr(row, "login_id", None)},
            )
            continue
        doctor_ids.add(user_id)
        profile_id = normalize_identifier(row.profile_ref)
        if profile_id is not None:
            profile_to_doctor[profile_id] = user_id
    return DoctorIndex(
        doctor_ids=frozenset(doctor_ids),
        profile_to_doctor=MappingProxyType(profile_to_doctor),
        doctors_scanned=scanned,
    )


def build_doctor_index(db: Session) -> DoctorIndex:
    rows = db.execute(
        select(User.id, User.profile_ref, User.login_id).where(User.role == Role.doctor)
    )
    index = index_doctor_rows(rows)
    logger.info(
        "Doctor index built",
        extra={
            "doctors_scanned": index.doctors_scanned,
            "doctor_ids": len(index.doctor_ids),
            "legacy_profile_ids": len(index.profile_to_doctor),
        },
    )
    return index
