"""
Create tables (development) and seed a demo user.

Usage:
  python scripts/init_db.py [--create-tables] [--no-seed]

Production schema changes go through `alembic upgrade head` (scripts/release.py);
--create-tables is for local SQLite databases.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.blog.models import Base, User  # noqa: E402
from scripts._db_utils import create_script_engine, resolve_db_url, script_session  # noqa: E402


def create_tables(*, database_url: str | None = None) -> None:
    engine = create_script_engine(resolve_db_url(database_url))
    try:
        Base.metadata.create_all(bind=engine)
    finally:
        engine.dispose()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the demo user in an idempotent way.
    Does NOT overwrite an existing user's password.
    """
    username = (os.environ.get("DEMO_USERNAME") or "demo").strip()
    email = (os.environ.get("DEMO_EMAIL") or "demo@example.com").strip().lower()
    password = os.environ.get("DEMO_PASSWORD") or "change-me"

    with script_session(resolve_db_url(database_url)) as s:
        existing = s.query(User).filter(User.email == email).one_or_none()
        if existing:
            print(f"Demo user {email} already exists (id={existing.id}); leaving it alone.", flush=True)
            return
        s.add(User(username=username, email=email, password_hash=generate_password_hash(password)))
        print(f"Created demo user {email}.", flush=True)


def main() -> None:
    parser = argparse.ArgumentParser(description="Initialise the blog database.")
    parser.add_argument("--database-url", default=None)
    parser.add_argument("--create-tables", action="store_true", help="Base.metadata.create_all (dev only)")
    parser.add_argument("--no-seed", action="store_true", help="Skip the demo user")
    args = parser.parse_args()

    if args.create_tables:
        create_tables(database_url=args.database_url)
        print("Tables created.", flush=True)
    if not args.no_seed:
        seed_only(database_url=args.database_url)


if __name__ == "__main__":
    main()
