"""
Release step: bring the schema to the latest Alembic revision, then seed
default options and the super admin.

Usage:
  python scripts/release.py              # upgrade to head
  python scripts/release.py <revision>   # upgrade to a specific revision
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from alembic import command
from alembic.config import Config


def release_database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL must be set for a release.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to release a production deploy onto sqlite.")
    return db_url


def alembic_config(db_url: str) -> Config:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def run_release(revision: str = "head") -> None:
    db_url = release_database_url()
    print(f"Upgrading database to {revision}...", flush=True)
    command.upgrade(alembic_config(db_url), revision)

    from scripts import init_db

    init_db.seed_only(database_url=db_url)
    print("Release complete.", flush=True)


def main() -> None:
    run_release(sys.argv[1] if len(sys.argv) > 1 else "head")


if __name__ == "__main__":
    main()
