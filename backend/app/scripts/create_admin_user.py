from __future__ import annotations

import argparse
import logging
import sys

from app.core.security import generate_temporary_password
from app.core.settings import settings
from app.db.session import build_engine, build_session_factory
from app.models import Base
from app.services.users import ensure_admin_user

logger = logging.getLogger("vitalink.create_admin_user")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create the initial VitaLink admin account.")
    parser.add_argument("--login-id", default=None, help="Admin login id (default: ADMIN_LOGIN_ID).")
    parser.add_argument(
        "--password",
        default=None,
        help="Initial password (default: a generated temporary password).",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level.upper())
    login_id = (args.login_id or settings.admin_login_id).strip()
    password = (args.password or "").strip() or generate_temporary_password()

    engine = build_engine(settings.database_url)
    session = build_session_factory(engine)()
    try:
        Base.metadata.create_all(bind=engine)
        user, created = ensure_admin_user(session, login_id=login_id, password=password)
    except Exception as exc:
        session.rollback()
        logger.error("Admin user creation failed: %s", exc)
        print(f"Error creating admin user: {exc}", file=sys.stderr)
        return 1
    finally:
        session.close()
        engine.dispose()

    if not created:
        print(f'Admin user "{login_id}" already exists. Skipping creation.')
        return 0
    print("Admin user created successfully:")
    print(f"  Login ID: {login_id}")
    print(f"  Initial Password: {password}")
    print(f"  User ID: {user.id}")
    print(f"  Profile ID: {user.profile_ref}")
    print("")
    print("IMPORTANT: Change this password after first login!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
