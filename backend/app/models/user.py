from __future__ import annotations

import enum

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, IdMixin, TimestampMixin


class Role(str, enum.Enum):
    admin = "ADMIN"
    doctor = "DOCTOR"
    patient = "PATIENT"


class User(Base, IdMixin, TimestampMixin):
    __tablename__ = "users"

    login_id: Mapped[str] = mapped_column(String(120), unique=True, index=True, nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="role_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    profile_ref: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
