from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, IdMixin, TimestampMixin


class DoctorProfile(Base, IdMixin, TimestampMixin):
    __tablename__ = "doctor_profiles"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    department: Mapped[str] = mapped_column(String(120), default="Cardiology", nullable=False)
    contact_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    profile_picture_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
