from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.security import create_access_token
from app.core.settings import settings
from app.db.session import get_db
from app.models.audit_log import AuditAction
from app.schemas.auth import LoginRequest, Token
from app.services.audit import log_event
from app.services.users import authenticate, get_user_by_login_id

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=Token)
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    ip_address = request.client.host if request.client else None
    user = get_user_by_login_id(db, payload.login_id)
    if user and not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    if not authenticate(db, payload.login_id, payload.password):
        log_event(
            db,
            actor=user,
            action=AuditAction.login_failed,
            entity_type="auth",
            entity_id=payload.login_id,
            success=False,
            ip_address=ip_address,
        )
        db.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = create_access_token(
        subject=user.id,
        secret=settings.secret_key,
        alg=settings.jwt_alg,
        expires_minutes=settings.access_token_expire_minutes,
        extra={"role": user.role.value, "login_id": user.login_id},
    )
    log_event(
        db,
        actor=user,
        action=AuditAction.login,
        entity_type="auth",
        entity_id=user.id,
        ip_address=ip_address,
    )
    db.commit()
    return Token(access_token=token)
