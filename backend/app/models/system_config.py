from __future__ import annotations

from sqlalchemy import JSON, Boolean, Float, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, IdMixin, TimestampMixin

DEFAULT_FEATURE_FLAGS: dict[str, bool] = {
    "registration_enabled": True,
    "maintenance_mode": False,
    "beta_features": False,
}


class SystemConfig(Base, IdMixin, TimestampMixin):
    __tablename__ = "system_configs"

    inr_critical_low: Mapped[float] = mapped_column(Float, default=1.5, nullable=False)
    inr_critical_high: Mapped[float] = mapped_column(Float, default=4.5, nullable=False)
    session_timeout_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    rate_limit_max_requests: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    rate_limit_window_minutes: Mapped[int] = mapped_column(Integer, default=15, nullable=False)
    feature_flags: Mapped[dict] = mapped_column(
        JSON, default=lambda: dict(DEFAULT_FEATURE_FLAGS), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
