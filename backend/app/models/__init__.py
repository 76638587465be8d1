from app.models.base import Base
from app.models.user import Role, User
from app.models.admin_profile import AdminProfile
from app.models.doctor_profile import DoctorProfile
from app.models.patient_profile import AccountStatus, PatientProfile
from app.models.audit_log import AuditAction, AuditLog
from app.models.system_config import DEFAULT_FEATURE_FLAGS, SystemConfig

__all__ = [
    "Base",
    "Role",
    "User",
    "AdminProfile",
    "DoctorProfile",
    "PatientProfile",
    "AccountStatus",
    "AuditAction",
    "AuditLog",
    "SystemConfig",
    "DEFAULT_FEATURE_FLAGS",
]
