from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.system_config import DEFAULT_FEATURE_FLAGS, SystemConfig

# Nested request keys -> flat column names.
_NESTED_FIELDS: dict[str, dict[str, str]] = {
    "inr_thresholds": {
        "critical_low": "inr_critical_low",
        "critical_high": "inr_critical_high",
    },
    "rate_limit": {
        "max_requests": "rate_limit_max_requests",
        "window_minutes": "rate_limit_window_minutes",
    },
}


def config_as_dict(config: SystemConfig) -> dict[str, Any]:
    return {
        "inr_thresholds": {
            "critical_low": config.inr_critical_low,
            "critical_high": config.inr_critical_high,
        },
        "session_timeout_minutes": config.session_timeout_minutes,
        "rate_limit": {
            "max_requests": config.rate_limit_max_requests,
            "window_minutes": config.rate_limit_window_minutes,
        },
        "feature_flags": dict(config.feature_flags or {}),
        "is_active": config.is_active,
    }


def _active_config(db: Session) -> SystemConfig | None:
    return db.scalar(
        select(SystemConfig).where(SystemConfig.is_active.is_(True)).order_by(SystemConfig.created_at)
    )


def get_system_config(db: Session) -> SystemConfig:
    config = _active_config(db)
    if config is None:
        config = SystemConfig(is_active=True, feature_flags=dict(DEFAULT_FEATURE_FLAGS))
        db.add(config)
        db.commit()
        db.refresh(config)
    return config


def apply_config_updates(config: SystemConfig, updates: dict[str, Any]) -> SystemConfig:
    """Merge ``updates`` into ``config``; keys that are absent or None are kept."""
    for group, fields in _NESTED_FIELDS.items():
        nested = updates.get(group) or {}
        for key, column in fields.items():
            if nested.get(key) is not None:
                setattr(config, column, nested[key])

    if updates.get("session_timeout_minutes") is not None:
        config.session_timeout_minutes = updates["session_timeout_minutes"]

    flags = updates.get("feature_flags")
    if flags:
        merged = dict(config.feature_flags or {})
        merged.update({key: bool(value) for key, value in flags.items()})
        config.feature_flags = merged
    return config


def update_system_config(db: Session, updates: dict[str, Any]) -> tuple[dict[str, Any], SystemConfig]:
    config = get_system_config(db)
    before = config_as_dict(config)
    apply_config_updates(config, updates)
    db.add(config)
    db.commit()
    db.refresh(config)
    return before, config
