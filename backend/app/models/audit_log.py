from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, JSON, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, IdMixin


class AuditAction(str, enum.Enum):
    login = "LOGIN"
    login_failed = "LOGIN_FAILED"
    user_create = "USER_CREATE"
    user_update = "USER_UPDATE"
    user_deactivate = "USER_DEACTIVATE"
    user_activate = "USER_ACTIVATE"
    password_reset = "PASSWORD_RESET"
    patient_reassign = "PATIENT_REASSIGN"
    patient_discharge = "PATIENT_DISCHARGE"
    config_update = "CONFIG_UPDATE"
    batch_operation = "BATCH_OPERATION"


class AuditLog(Base, IdMixin):
    __tablename__ = "audit_logs"

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    actor_user_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id"), nullable=True, index=True
    )
    actor_login_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    request_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    before_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    after_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    actor = relationship("User", lazy="joined")
