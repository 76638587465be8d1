"""Admin-side account management for doctors and patients.

Service functions raise :class:`AdminServiceError` subclasses for anything the
caller should see as a 4xx; routers translate them to ``HTTPException``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.audit_log import AuditAction
from app.models.doctor_profile import DoctorProfile
from app.models.patient_profile import AccountStatus, PatientProfile
from app.models.user import Role, User
from app.services.audit import log_event
from app.services.doctor_index import DoctorIndex, build_doctor_index
from app.services.identity import normalize_identifier
from app.services.users import (
    create_user,
    get_user_by_id,
    get_user_by_id_or_login,
    get_user_by_login_id,
    set_password,
)

logger = logging.getLogger(__name__)

BATCH_OPERATIONS = ("activate", "deactivate", "reset_password")


class AdminServiceError(Exception):
    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(AdminServiceError):
    status_code = 404


class InvalidRoleError(AdminServiceError):
    status_code = 400


class InvalidTargetError(AdminServiceError):
    status_code = 400


class ConflictError(AdminServiceError):
    status_code = 409


@dataclass
class Page:
    items: list[Any]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "pages": self.pages,
            "has_next": self.page * self.limit < self.total,
            "has_prev": self.page > 1,
        }


@dataclass(frozen=True)
class ReassignmentResult:
    patient_login_id: str
    previous: str | None
    new: str


@dataclass
class BatchResult:
    operation: str
    results: list[dict[str, Any]] = field(default_factory=list)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r["success"])

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r["success"])

    def as_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "total": len(self.results),
            "successful": self.successful,
            "failed": self.failed,
            "results": self.results,
        }


def _normalize_paging(page: int | None, limit: int | None, default_limit: int = 20) -> tuple[int, int]:
    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else default_limit
    return page, limit


def _require_unique_login(db: Session, login_id: str) -> None:
    if get_user_by_login_id(db, login_id):
        raise ConflictError("A user with this login ID already exists")


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def get_active_doctor(db: Session, reference: str) -> User:
    doctor = get_user_by_id_or_login(db, reference)
    if not doctor or doctor.role != Role.doctor or not doctor.is_active:
        raise InvalidTargetError("Invalid or inactive doctor")
    return doctor


def _get_user_with_role(db: Session, reference: str, role: Role, label: str) -> User:
    user = get_user_by_id_or_login(db, reference)
    if not user:
        raise NotFoundError(f"{label} not found")
    if user.role != role:
        raise InvalidRoleError(f"User is not a {label.lower()}")
    return user


def get_profile(db: Session, user: User):
    model = {Role.doctor: DoctorProfile, Role.patient: PatientProfile}.get(user.role)
    if model is None:
        return None
    return db.get(model, user.profile_ref)


# Doctors


def register_doctor(
    db: Session,
    *,
    login_id: str,
    password: str,
    name: str,
    department: str | None = None,
    contact_number: str | None = None,
    profile_picture_url: str | None = None,
) -> tuple[User, DoctorProfile]:
    _require_unique_login(db, login_id)
    profile = DoctorProfile(
        name=name,
        department=department or "Cardiology",
        contact_number=contact_number,
        profile_picture_url=profile_picture_url,
    )
    db.add(profile)
    db.flush()
    user = create_user(
        db,
        login_id=login_id,
        password=password,
        role=Role.doctor,
        profile_ref=profile.id,
    )
    db.commit()
    db.refresh(user)
    db.refresh(profile)
    logger.info("Doctor registered", extra={"user_id": user.id, "login_id": user.login_id})
    return user, profile


def list_doctors(
    db: Session,
    *,
    department: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> Page:
    page, limit = _normalize_paging(page, limit)
    filters = [User.role == Role.doctor]
    if is_active is not None:
        filters.append(User.is_active == is_active)
    if department:
        filters.append(DoctorProfile.department == department)
    if search:
        pattern = f"%{search.lower()}%"
        filters.append(
            or_(func.lower(DoctorProfile.name).like(pattern), func.lower(User.login_id).like(pattern))
        )

    base = select(User, DoctorProfile).outerjoin(DoctorProfile, DoctorProfile.id == User.profile_ref)
    total = db.scalar(
        select(func.count())
        .select_from(User)
        .outerjoin(DoctorProfile, DoctorProfile.id == User.profile_ref)
        .where(*filters)
    )
    rows = db.execute(
        base.where(*filters)
        .order_by(User.created_at.desc(), User.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return Page(items=[tuple(row) for row in rows], total=int(total or 0), page=page, limit=limit)


def update_doctor(
    db: Session,
    reference: str,
    *,
    name: str | None = None,
    department: str | None = None,
    contact_number: str | None = None,
    profile_picture_url: str | None = None,
    is_active: bool | None = None,
    password: str | None = None,
) -> tuple[User, DoctorProfile | None]:
    user = _get_user_with_role(db, reference, Role.doctor, "Doctor")
    profile = get_profile(db, user)
    if profile is not None:
        if name:
            profile.name = name
        if department:
            profile.department = department
        if contact_number is not None:
            profile.contact_number = contact_number
        if profile_picture_url is not None:
            profile.profile_picture_url = profile_picture_url
        db.add(profile)
    if is_active is not None:
        user.is_active = is_active
    if password:
        set_password(db, user=user, new_password=password)
    user.updated_at = datetime.now(timezone.utc)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user, profile


def deactivate_doctor(db: Session, reference: str) -> User:
    user = _get_user_with_role(db, reference, Role.doctor, "Doctor")
    user.is_active = False
    user.updated_at = datetime.now(timezone.utc)
    db.add(user)
    db.commit()
    return user


# Patients


def onboard_patient(
    db: Session,
    *,
    login_id: str,
    password: str,
    assigned_doctor_id: str,
    demographics: dict,
    medical_config: dict,
) -> tuple[User, PatientProfile]:
    _require_unique_login(db, login_id)
    doctor = get_active_doctor(db, assigned_doctor_id)
    profile = PatientProfile(
        assigned_doctor_ref=doctor.id,
        demographics=_jsonable(demographics),
        medical_config=_jsonable(medical_config),
        account_status=AccountStatus.active,
    )
    db.add(profile)
    db.flush()
    user = create_user(
        db,
        login_id=login_id,
        password=password,
        role=Role.patient,
        profile_ref=profile.id,
    )
    db.commit()
    db.refresh(user)
    db.refresh(profile)
    logger.info(
        "Patient onboarded",
        extra={"user_id": user.id, "assigned_doctor_ref": profile.assigned_doctor_ref},
    )
    return user, profile


def doctor_reference_values(db: Session, reference: str) -> list[str]:
    """Every stored form that may point at the doctor behind ``reference``."""
    normalized = normalize_identifier(reference)
    if normalized is None:
        return []
    values = [normalized]
    doctor = get_user_by_id_or_login(db, normalized)
    if doctor is not None and doctor.role == Role.doctor:
        values = [doctor.id, doctor.profile_ref]
    return values


def list_patients(
    db: Session,
    *,
    assigned_doctor_id: str | None = None,
    account_status: str | None = None,
    search: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> Page:
    page, limit = _normalize_paging(page, limit)
    filters = [User.role == Role.patient]
    if assigned_doctor_id:
        filters.append(
            PatientProfile.assigned_doctor_ref.in_(doctor_reference_values(db, assigned_doctor_id))
        )
    if account_status:
        filters.append(PatientProfile.account_status == AccountStatus(account_status))

    stmt = (
        select(User, PatientProfile)
        .join(PatientProfile, PatientProfile.id == User.profile_ref)
        .where(*filters)
        .order_by(User.created_at.desc(), User.id)
    )
    if not search:
        total = db.scalar(
            select(func.count())
            .select_from(User)
            .join(PatientProfile, PatientProfile.id == User.profile_ref)
            .where(*filters)
        )
        rows = db.execute(stmt.offset((page - 1) * limit).limit(limit)).all()
        return Page(items=[tuple(row) for row in rows], total=int(total or 0), page=page, limit=limit)

    # Name lives inside the demographics JSON document, so match in Python.
    needle = search.lower()
    matched = [
        tuple(row)
        for row in db.execute(stmt).all()
        if needle in row[0].login_id.lower()
        or needle in str((row[1].demographics or {}).get("name") or "").lower()
    ]
    start = (page - 1) * limit
    return Page(items=matched[start : start + limit], total=len(matched), page=page, limit=limit)


def update_patient(
    db: Session,
    reference: str,
    *,
    demographics: dict | None = None,
    medical_config: dict | None = None,
    account_status: str | None = None,
    assigned_doctor_id: str | None = None,
    is_active: bool | None = None,
    password: str | None = None,
) -> tuple[User, PatientProfile | None]:
    user = _get_user_with_role(db, reference, Role.patient, "Patient")
    doctor = get_active_doctor(db, assigned_doctor_id) if assigned_doctor_id else None
    profile = get_profile(db, user)
    if profile is not None:
        if demographics:
            profile.demographics = _jsonable(demographics)
        if medical_config:
            profile.medical_config = _jsonable(medical_config)
        if account_status:
            profile.account_status = AccountStatus(account_status)
        if doctor is not None:
            profile.assigned_doctor_ref = doctor.id
        db.add(profile)
    if is_active is not None:
        user.is_active = is_active
    if password:
        set_password(db, user=user, new_password=password)
    user.updated_at = datetime.now(timezone.utc)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user, profile


def deactivate_patient(db: Session, reference: str) -> User:
    user = _get_user_with_role(db, reference, Role.patient, "Patient")
    user.is_active = False
    user.updated_at = datetime.now(timezone.utc)
    db.add(user)
    profile = get_profile(db, user)
    if profile is not None:
        profile.account_status = AccountStatus.discharged
        db.add(profile)
    db.commit()
    return user


def reassign_patient(
    db: Session,
    patient_login_id: str,
    new_doctor_ref: str,
    *,
    actor: User | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> ReassignmentResult:
    """Point a patient at a new doctor user id, returning the value it replaced.

    The previous value is reported exactly as stored, whichever representation
    it holds. The write is last-writer-wins and commits together with its
    PATIENT_REASSIGN audit row.
    """
    patient = get_user_by_login_id(db, patient_login_id)
    if not patient:
        raise NotFoundError("Patient not found")
    if patient.role != Role.patient:
        raise InvalidRoleError("User is not a patient")
    doctor = get_active_doctor(db, new_doctor_ref)

    profile = db.get(PatientProfile, patient.profile_ref)
    if profile is None:
        raise NotFoundError("Patient profile not found")

    previous = profile.assigned_doctor_ref
    profile.assigned_doctor_ref = doctor.id
    db.add(profile)
    log_event(
        db,
        actor=actor,
        action=AuditAction.patient_reassign,
        entity_type="patient",
        entity_id=patient.login_id,
        before={"assigned_doctor_ref": previous},
        after={"assigned_doctor_ref": doctor.id},
        request_id=request_id,
        ip_address=ip_address,
    )
    db.commit()
    logger.info(
        "Patient reassigned",
        extra={
            "patient_login_id": patient.login_id,
            "previous_doctor_ref": previous,
            "new_doctor_ref": doctor.id,
        },
    )
    return ReassignmentResult(patient_login_id=patient.login_id, previous=previous, new=doctor.id)


# Legacy read path


def list_all_patients(db: Session) -> tuple[list[tuple[User, PatientProfile | None]], DoctorIndex]:
    """Every patient, newest first, with a doctor index to read either stored form."""
    rows = db.execute(
        select(User, PatientProfile)
        .outerjoin(PatientProfile, PatientProfile.id == User.profile_ref)
        .where(User.role == Role.patient)
        .order_by(User.created_at.desc(), User.id)
    ).all()
    return [tuple(row) for row in rows], build_doctor_index(db)


def get_patient_by_login(db: Session, login_id: str) -> tuple[User, PatientProfile | None, str | None]:
    user = get_user_by_login_id(db, login_id)
    if not user or user.role != Role.patient:
        raise NotFoundError("Patient not found")
    profile = get_profile(db, user)
    doctor_id = None
    if profile is not None and profile.assigned_doctor_ref is not None:
        doctor_id = build_doctor_index(db).canonical(profile.assigned_doctor_ref)
    return user, profile, doctor_id


def get_doctor(db: Session, user_id: str) -> tuple[User, DoctorProfile | None]:
    user = get_user_by_id(db, user_id)
    if not user or user.role != Role.doctor:
        raise NotFoundError("Doctor not found")
    return user, get_profile(db, user)


# Bulk account operations


def reset_user_password(
    db: Session, target_user_id: str, new_password: str | None, default_password: str
) -> User:
    user = get_user_by_id(db, target_user_id)
    if not user:
        raise NotFoundError("Target user not found")
    set_password(db, user=user, new_password=new_password or default_password)
    db.commit()
    return user


def perform_batch_operation(
    db: Session, operation: str, user_ids: list[str], default_password: str
) -> BatchResult:
    if operation not in BATCH_OPERATIONS:
        raise AdminServiceError(f"Invalid operation: {operation}")
    batch = BatchResult(operation=operation)
    for user_id in user_ids:
        user = get_user_by_id(db, user_id)
        if not user:
            batch.results.append({"user_id": user_id, "success": False, "message": "User not found"})
            continue
        try:
            if operation == "activate":
                user.is_active = True
                message = "User activated"
            elif operation == "deactivate":
                user.is_active = False
                message = "User deactivated"
            else:
                set_password(db, user=user, new_password=default_password)
                message = "Password reset to default"
            user.updated_at = datetime.now(timezone.utc)
            db.add(user)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Batch %s failed for user %s: %s", operation, user_id, exc)
            batch.results.append({"user_id": user_id, "success": False, "message": str(exc)})
            continue
        batch.results.append({"user_id": user_id, "success": True, "message": message})
    return batch
