from typing import Optional

from pydantic import BaseModel, Field


class InrThresholds(BaseModel):
    critical_low: float
    critical_high: float


class RateLimit(BaseModel):
    max_requests: int
    window_minutes: int


class SystemConfigOut(BaseModel):
    inr_thresholds: InrThresholds
    session_timeout_minutes: int
    rate_limit: RateLimit
    feature_flags: dict[str, bool]
    is_active: bool


class InrThresholdsUpdate(BaseModel):
    critical_low: Optional[float] = Field(default=None, gt=0)
    critical_high: Optional[float] = Field(default=None, gt=0)


class RateLimitUpdate(BaseModel):
    max_requests: Optional[int] = Field(default=None, ge=1)
    window_minutes: Optional[int] = Field(default=None, ge=1)


class SystemConfigUpdate(BaseModel):
    inr_thresholds: Optional[InrThresholdsUpdate] = None
    session_timeout_minutes: Optional[int] = Field(default=None, ge=1)
    rate_limit: Optional[RateLimitUpdate] = None
    feature_flags: Optional[dict[str, bool]] = None
