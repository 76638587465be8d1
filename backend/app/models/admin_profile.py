from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, IdMixin, TimestampMixin


class AdminProfile(Base, IdMixin, TimestampMixin):
    __tablename__ = "admin_profiles"

    name: Mapped[str] = mapped_column(String(200), default="Admin", nullable=False)
