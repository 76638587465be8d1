from __future__ import annotations

from datetime import datetime, timezone
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.security import hash_password, verify_password
from app.models.admin_profile import AdminProfile
from app.models.user import Role, User
from app.services.identity import normalize_identifier


def get_user_by_login_id(db: Session, login_id: str) -> User | None:
    return db.scalar(select(User).where(User.login_id == login_id.strip()))


def get_user_by_id(db: Session, user_id) -> User | None:
    normalized = normalize_identifier(user_id)
    if normalized is None:
        return None
    return db.scalar(select(User).where(User.id == normalized))


def get_user_by_id_or_login(db: Session, reference: str) -> User | None:
    return get_user_by_id(db, reference) or get_user_by_login_id(db, reference)


def authenticate(db: Session, login_id: str, password: str) -> User | None:
    user = get_user_by_login_id(db, login_id)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def create_user(
    db: Session,
    *,
    login_id: str,
    password: str,
    role: Role,
    profile_ref: str,
    is_active: bool = True,
) -> User:
    now = datetime.now(timezone.utc)
    user = User(
        login_id=login_id.strip(),
        role=role,
        profile_ref=profile_ref,
        is_active=is_active,
        hashed_password=hash_password(password),
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.flush()
    return user


def user_count(db: Session, role: Role | None = None) -> int:
    stmt = select(func.count(User.id))
    if role is not None:
        stmt = stmt.where(User.role == role)
    return int(db.scalar(stmt) or 0)


def ensure_admin_user(db: Session, *, login_id: str, password: str) -> tuple[User, bool]:
    existing = get_user_by_login_id(db, login_id)
    if existing:
        return existing, False
    profile = AdminProfile(name="Admin")
    db.add(profile)
    db.flush()
    user = create_user(
        db,
        login_id=login_id,
        password=password,
        role=Role.admin,
        profile_ref=profile.id,
    )
    db.commit()
    db.refresh(user)
    return user, True


def seed_initial_admin(db: Session, *, login_id: str, password: str) -> bool:
    if user_count(db, Role.admin) > 0:
        return False
    _, created = ensure_admin_user(db, login_id=login_id, password=password)
    return created


def set_password(db: Session, *, user: User, new_password: str) -> User:
    user.hashed_password = hash_password(new_password)
    user.updated_at = datetime.now(timezone.utc)
    db.add(user)
    return user
