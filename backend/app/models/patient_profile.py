from __future__ import annotations

import enum

from sqlalchemy import JSON, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, IdMixin, TimestampMixin


class AccountStatus(str, enum.Enum):
    active = "Active"
    discharged = "Discharged"


class PatientProfile(Base, IdMixin, TimestampMixin):
    __tablename__ = "patient_profiles"

    # Holds a doctor User.id. Rows written before the identity migration may
    # still hold the doctor's DoctorProfile.id, so there is no foreign key.
    assigned_doctor_ref: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    demographics: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    medical_config: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    account_status: Mapped[AccountStatus] = mapped_column(
        Enum(
            AccountStatus,
            name="account_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        default=AccountStatus.active,
        nullable=False,
    )
