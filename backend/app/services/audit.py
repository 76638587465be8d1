from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from app.models.audit_log import AuditAction, AuditLog
from app.models.user import User

logger = logging.getLogger(__name__)

_SECRET_KEYS = frozenset({"password", "new_password", "hashed_password"})


def scrub(data: Any) -> Any:
    """Drop credential fields from an audit payload, at any depth."""
    if isinstance(data, dict):
        return {key: scrub(value) for key, value in data.items() if key not in _SECRET_KEYS}
    if isinstance(data, list):
        return [scrub(value) for value in data]
    return data


def log_event(
    db: Session,
    *,
    actor: User | None,
    action: AuditAction | str,
    entity_type: str,
    entity_id: str,
    success: bool = True,
    before: dict | None = None,
    after: dict | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> AuditLog:
    """Stage an audit row on ``db``; the caller owns the commit."""
    action_value = action.value if isinstance(action, AuditAction) else action
    entry = AuditLog(
        actor_user_id=actor.id if actor else None,
        actor_login_id=actor.login_id if actor else None,
        action=action_value,
        entity_type=entity_type,
        entity_id=str(entity_id),
        success=success,
        request_id=request_id,
        ip_address=ip_address,
        before_json=scrub(before),
        after_json=scrub(after),
    )
    db.add(entry)
    logger.info(
        "Audit %s %s/%s",
        action_value,
        entity_type,
        entity_id,
        extra={"actor_user_id": entry.actor_user_id, "success": success, "request_id": request_id},
    )
    return entry
