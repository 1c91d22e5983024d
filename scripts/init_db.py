import os
import sys
from datetime import datetime
from pathlib import Path

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.skinserver.models import User
from app.skinserver.options import seed_defaults
from app.skinserver.db import script_session


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed default options and the super admin in an idempotent way.
    Does NOT overwrite existing option values or an existing admin's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    admin_nickname = (os.environ.get("ADMIN_NICKNAME") or "admin").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///skinserver.db").strip()

    with script_session(db_url) as s:
        added = seed_defaults(s)
        print(f"Options seeded: {added} new", flush=True)

        admin = s.query(User).filter(User.email == admin_email).one_or_none()
        if admin is None:
            admin = User(
                email=admin_email,
                nickname=admin_nickname,
                score=0,
                ip="127.0.0.1",
                permission=User.SUPER_ADMIN,
                register_at=datetime.utcnow(),
            )
            admin.change_password(admin_password)
            s.add(admin)
            print(f"Super admin created: {admin_email}", flush=True)
        elif admin.permission < User.SUPER_ADMIN:
            admin.permission = User.SUPER_ADMIN
            print(f"Promoted existing user to super admin: {admin_email}", flush=True)


def main() -> None:
    seed_only()


if __name__ == "__main__":
    main()
