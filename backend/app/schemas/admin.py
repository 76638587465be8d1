from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.patient_profile import AccountStatus
from app.models.user import Role


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int
    has_next: bool
    has_prev: bool


class DoctorProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    department: str
    contact_number: Optional[str] = None
    profile_picture_url: Optional[str] = None


class DoctorOut(BaseModel):
    id: str
    login_id: str
    role: Role
    is_active: bool
    created_at: datetime
    profile: Optional[DoctorProfileOut] = None


class DoctorCreate(BaseModel):
    login_id: str = Field(min_length=1)
    password: str = Field(min_length=8, max_length=72)
    name: str = Field(min_length=1)
    department: Optional[str] = None
    contact_number: Optional[str] = None
    profile_picture_url: Optional[str] = None


class DoctorUpdate(BaseModel):
    name: Optional[str] = None
    department: Optional[str] = None
    contact_number: Optional[str] = None
    profile_picture_url: Optional[str] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(default=None, min_length=8, max_length=72)


class DoctorList(BaseModel):
    doctors: list[DoctorOut]
    pagination: Pagination


class NextOfKin(BaseModel):
    name: str
    relation: str
    phone: str


class Demographics(BaseModel):
    name: str
    age: int = Field(ge=0)
    gender: Literal["Male", "Female", "Other"]
    phone: Optional[str] = None
    next_of_kin: Optional[NextOfKin] = None


class TargetInr(BaseModel):
    min: float
    max: float


class MedicalConfig(BaseModel):
    diagnosis: Optional[str] = None
    therapy_drug: str
    therapy_start_date: Optional[date] = None
    target_inr: Optional[TargetInr] = None


class PatientProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    assigned_doctor_ref: Optional[str] = None
    demographics: dict
    medical_config: dict
    account_status: AccountStatus


class PatientOut(BaseModel):
    id: str
    login_id: str
    role: Role
    is_active: bool
    created_at: datetime
    profile: Optional[PatientProfileOut] = None


class PatientCreate(BaseModel):
    login_id: str = Field(min_length=1)
    password: str = Field(min_length=8, max_length=72)
    assigned_doctor_id: str = Field(min_length=1)
    demographics: Demographics
    medical_config: MedicalConfig


class PatientUpdate(BaseModel):
    demographics: Optional[Demographics] = None
    medical_config: Optional[MedicalConfig] = None
    assigned_doctor_id: Optional[str] = None
    account_status: Optional[AccountStatus] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(default=None, min_length=8, max_length=72)


class LegacyPatientOut(PatientOut):
    # Doctor user id resolved from either stored form of assigned_doctor_ref.
    assigned_doctor_id: Optional[str] = None


class LegacyPatientList(BaseModel):
    patients: list[LegacyPatientOut]


class LegacyPatientResponse(BaseModel):
    patient: LegacyPatientOut


class LegacyDoctorResponse(BaseModel):
    doctor: DoctorOut


class PatientList(BaseModel):
    patients: list[PatientOut]
    pagination: Pagination


class ReassignRequest(BaseModel):
    new_doctor_id: str = Field(min_length=1)


class ReassignResponse(BaseModel):
    message: str
    previous_doctor_id: Optional[str] = None
    new_doctor_id: str


class MessageResponse(BaseModel):
    message: str


class BatchOperationRequest(BaseModel):
    operation: Literal["activate", "deactivate", "reset_password"]
    user_ids: list[str] = Field(min_length=1)


class BatchOperationItem(BaseModel):
    user_id: str
    success: bool
    message: str


class BatchOperationResponse(BaseModel):
    operation: str
    total: int
    successful: int
    failed: int
    results: list[BatchOperationItem]


class PasswordResetRequest(BaseModel):
    target_user_id: str = Field(min_length=1)
    new_password: Optional[str] = Field(default=None, min_length=8, max_length=72)


class PasswordResetResponse(BaseModel):
    message: str
    user_id: str
    login_id: str


class SystemHealth(BaseModel):
    status: str
    database: dict
    timestamp: datetime
