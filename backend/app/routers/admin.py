from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.settings import settings
from app.db.session import get_db
from app.deps import require_admin
from app.models.audit_log import AuditAction, AuditLog
from app.models.user import User
from app.schemas.admin import (
    BatchOperationRequest,
    BatchOperationResponse,
    DoctorCreate,
    DoctorList,
    DoctorOut,
    DoctorProfileOut,
    DoctorUpdate,
    LegacyDoctorResponse,
    LegacyPatientList,
    LegacyPatientOut,
    LegacyPatientResponse,
    MessageResponse,
    PasswordResetRequest,
    PasswordResetResponse,
    PatientCreate,
    PatientList,
    PatientOut,
    PatientProfileOut,
    PatientUpdate,
    ReassignRequest,
    ReassignResponse,
    SystemHealth,
)
from app.schemas.audit_log import AuditLogOut, AuditLogPage
from app.schemas.system_config import SystemConfigOut, SystemConfigUpdate
from app.services import admin as admin_service
from app.services.admin import AdminServiceError, Page
from app.services.audit import log_event
from app.services.system_config import config_as_dict, get_system_config, update_system_config

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


def _http_error(exc: AdminServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


def _request_meta(request: Request) -> dict:
    return {
        "request_id": request.headers.get("x-request-id"),
        "ip_address": request.client.host if request.client else None,
    }


def _doctor_out(user: User, profile) -> DoctorOut:
    return DoctorOut(
        id=user.id,
        login_id=user.login_id,
        role=user.role,
        is_active=user.is_active,
        created_at=user.created_at,
        profile=DoctorProfileOut.model_validate(profile) if profile is not None else None,
    )


def _patient_out(user: User, profile) -> PatientOut:
    return PatientOut(
        id=user.id,
        login_id=user.login_id,
        role=user.role,
        is_active=user.is_active,
        created_at=user.created_at,
        profile=PatientProfileOut.model_validate(profile) if profile is not None else None,
    )


# Doctor management


@router.post("/doctors", response_model=DoctorOut, status_code=status.HTTP_201_CREATED)
def create_doctor(
    payload: DoctorCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        user, profile = admin_service.register_doctor(db, **payload.model_dump())
    except AdminServiceError as exc:
        raise _http_error(exc)
    log_event(
        db,
        actor=admin,
        action=AuditAction.user_create,
        entity_type="user",
        entity_id=user.id,
        after={"login_id": user.login_id, "role": user.role.value},
        **_request_meta(request),
    )
    db.commit()
    return _doctor_out(user, profile)


@router.get("/doctors", response_model=DoctorList)
def list_doctors(
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
    department: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    search: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
):
    result: Page = admin_service.list_doctors(
        db, department=department, is_active=is_active, search=search, page=page, limit=limit
    )
    return DoctorList(
        doctors=[_doctor_out(user, profile) for user, profile in result.items],
        pagination=result.pagination(),
    )


@router.put("/doctors/{doctor_id}", response_model=DoctorOut)
def update_doctor(
    doctor_id: str,
    payload: DoctorUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        user, profile = admin_service.update_doctor(db, doctor_id, **payload.model_dump())
    except AdminServiceError as exc:
        raise _http_error(exc)
    log_event(
        db,
        actor=admin,
        action=AuditAction.user_update,
        entity_type="user",
        entity_id=user.id,
        after=payload.model_dump(exclude_none=True, exclude={"password"}),
        **_request_meta(request),
    )
    db.commit()
    return _doctor_out(user, profile)


@router.delete("/doctors/{doctor_id}", response_model=MessageResponse)
def deactivate_doctor(
    doctor_id: str,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        user = admin_service.deactivate_doctor(db, doctor_id)
    except AdminServiceError as exc:
        raise _http_error(exc)
    log_event(
        db,
        actor=admin,
        action=AuditAction.user_deactivate,
        entity_type="user",
        entity_id=user.id,
        after={"is_active": False},
        **_request_meta(request),
    )
    db.commit()
    return MessageResponse(message="Doctor deactivated successfully")


# Patient management


@router.post("/patients", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        user, profile = admin_service.onboard_patient(
            db,
            login_id=payload.login_id,
            password=payload.password,
            assigned_doctor_id=payload.assigned_doctor_id,
            demographics=payload.demographics.model_dump(),
            medical_config=payload.medical_config.model_dump(),
        )
    except AdminServiceError as exc:
        raise _http_error(exc)
    log_event(
        db,
        actor=admin,
        action=AuditAction.user_create,
        entity_type="user",
        entity_id=user.id,
        after={
            "login_id": user.login_id,
            "role": user.role.value,
            "assigned_doctor_ref": profile.assigned_doctor_ref,
        },
        **_request_meta(request),
    )
    db.commit()
    return _patient_out(user, profile)


@router.get("/patients", response_model=PatientList)
def list_patients(
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
    assigned_doctor_id: str | None = Query(default=None),
    account_status: str | None = Query(default=None),
    search: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
):
    try:
        result: Page = admin_service.list_patients(
            db,
            assigned_doctor_id=assigned_doctor_id,
            account_status=account_status,
            search=search,
            page=page,
            limit=limit,
        )
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid account_status")
    return PatientList(
        patients=[_patient_out(user, profile) for user, profile in result.items],
        pagination=result.pagination(),
    )


@router.put("/patients/{patient_id}", response_model=PatientOut)
def update_patient(
    patient_id: str,
    payload: PatientUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        user, profile = admin_service.update_patient(
            db,
            patient_id,
            demographics=payload.demographics.model_dump() if payload.demographics else None,
            medical_config=payload.medical_config.model_dump() if payload.medical_config else None,
            account_status=payload.account_status.value if payload.account_status else None,
            assigned_doctor_id=payload.assigned_doctor_id,
            is_active=payload.is_active,
            password=payload.password,
        )
    except AdminServiceError as exc:
        raise _http_error(exc)
    log_event(
        db,
        actor=admin,
        action=AuditAction.user_update,
        entity_type="user",
        entity_id=user.id,
        after=payload.model_dump(mode="json", exclude_none=True, exclude={"password"}),
        **_request_meta(request),
    )
    db.commit()
    return _patient_out(user, profile)


@router.delete("/patients/{patient_id}", response_model=MessageResponse)
def deactivate_patient(
    patient_id: str,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        user = admin_service.deactivate_patient(db, patient_id)
    except AdminServiceError as exc:
        raise _http_error(exc)
    log_event(
        db,
        actor=admin,
        action=AuditAction.patient_discharge,
        entity_type="user",
        entity_id=user.id,
        after={"is_active": False, "account_status": "Discharged"},
        **_request_meta(request),
    )
    db.commit()
    return MessageResponse(message="Patient deactivated successfully")


@router.put("/reassign/{login_id}", response_model=ReassignResponse)
def reassign_patient(
    login_id: str,
    payload: ReassignRequest,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        result = admin_service.reassign_patient(
            db, login_id, payload.new_doctor_id, actor=admin, **_request_meta(request)
        )
    except AdminServiceError as exc:
        raise _http_error(exc)
    return ReassignResponse(
        message="Patient reassigned successfully",
        previous_doctor_id=result.previous,
        new_doctor_id=result.new,
    )


# Legacy read path


def _legacy_patient_out(user: User, profile, assigned_doctor_id: str | None) -> LegacyPatientOut:
    return LegacyPatientOut(
        **_patient_out(user, profile).model_dump(),
        assigned_doctor_id=assigned_doctor_id,
    )


@router.get("/legacy/patients", response_model=LegacyPatientList)
def list_all_patients(
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    rows, index = admin_service.list_all_patients(db)
    return LegacyPatientList(
        patients=[
            _legacy_patient_out(
                user,
                profile,
                index.canonical(profile.assigned_doctor_ref) if profile is not None else None,
            )
            for user, profile in rows
        ]
    )


@router.get("/legacy/patient/{login_id}", response_model=LegacyPatientResponse)
def get_patient_by_login(
    login_id: str,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    try:
        user, profile, doctor_id = admin_service.get_patient_by_login(db, login_id)
    except AdminServiceError as exc:
        raise _http_error(exc)
    return LegacyPatientResponse(patient=_legacy_patient_out(user, profile, doctor_id))


@router.get("/legacy/doctor/{doctor_id}", response_model=LegacyDoctorResponse)
def get_doctor(
    doctor_id: str,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    try:
        user, profile = admin_service.get_doctor(db, doctor_id)
    except AdminServiceError as exc:
        raise _http_error(exc)
    return LegacyDoctorResponse(doctor=_doctor_out(user, profile))


# Audit logs


@router.get("/audit-logs", response_model=AuditLogPage)
def list_audit_logs(
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
    user_id: str | None = Query(default=None),
    action: str | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    success: bool | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
):
    filters = []
    if user_id:
        filters.append(AuditLog.actor_user_id == user_id)
    if action:
        filters.append(AuditLog.action == action)
    if success is not None:
        filters.append(AuditLog.success == success)
    if start_date:
        filters.append(AuditLog.created_at >= start_date)
    if end_date:
        filters.append(AuditLog.created_at <= end_date)

    total = db.scalar(select(func.count()).select_from(AuditLog).where(*filters)) or 0
    stmt = (
        select(AuditLog)
        .where(*filters)
        .order_by(AuditLog.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    logs = list(db.scalars(stmt).unique())
    return AuditLogPage(
        logs=[AuditLogOut.model_validate(entry) for entry in logs],
        pagination=Page(items=logs, total=int(total), page=page, limit=limit).pagination(),
    )


# System config


@router.get("/config", response_model=SystemConfigOut)
def read_system_config(
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return config_as_dict(get_system_config(db))


@router.put("/config", response_model=SystemConfigOut)
def write_system_config(
    payload: SystemConfigUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    before, config = update_system_config(db, payload.model_dump(exclude_none=True))
    after = config_as_dict(config)
    log_event(
        db,
        actor=admin,
        action=AuditAction.config_update,
        entity_type="system_config",
        entity_id=config.id,
        before=before,
        after=after,
        **_request_meta(request),
    )
    db.commit()
    return after


# Batch operations and password reset


@router.post("/users/batch", response_model=BatchOperationResponse)
def batch_operation(
    payload: BatchOperationRequest,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        batch = admin_service.perform_batch_operation(
            db, payload.operation, payload.user_ids, settings.default_reset_password
        )
    except AdminServiceError as exc:
        raise _http_error(exc)
    log_event(
        db,
        actor=admin,
        action=AuditAction.batch_operation,
        entity_type="user",
        entity_id=payload.operation,
        success=batch.failed == 0,
        after={"user_ids": payload.user_ids, "successful": batch.successful, "failed": batch.failed},
        **_request_meta(request),
    )
    db.commit()
    return batch.as_dict()


@router.post("/users/reset-password", response_model=PasswordResetResponse)
def reset_user_password(
    payload: PasswordResetRequest,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        user = admin_service.reset_user_password(
            db, payload.target_user_id, payload.new_password, settings.default_reset_password
        )
    except AdminServiceError as exc:
        raise _http_error(exc)
    log_event(
        db,
        actor=admin,
        action=AuditAction.password_reset,
        entity_type="user",
        entity_id=user.id,
        after={"status": "issued", "login_id": user.login_id},
        **_request_meta(request),
    )
    db.commit()
    return PasswordResetResponse(
        message="Password reset successfully", user_id=user.id, login_id=user.login_id
    )


# System health


@router.get("/system/health", response_model=SystemHealth)
def system_health(
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    bind = db.get_bind()
    try:
        db.execute(text("SELECT 1"))
        state = "connected"
    except SQLAlchemyError as exc:
        logger.warning("Database health check failed: %s", exc)
        state = "disconnected"
    return SystemHealth(
        status="ok" if state == "connected" else "degraded",
        database={"state": state, "dialect": bind.dialect.name, "name": bind.url.database},
        timestamp=datetime.now(timezone.utc),
    )
