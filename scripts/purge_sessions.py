"""
Delete expired login sessions from the `sessions` table.

Usage (cron):
  python scripts/purge_sessions.py
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.blog.sessions import purge_expired_sessions  # noqa: E402
from scripts._db_utils import resolve_db_url, script_session  # noqa: E402


def main() -> None:
    with script_session(resolve_db_url()) as s:
        removed = purge_expired_sessions(s)
    print(f"Purged {removed} expired session(s).", flush=True)


if __name__ == "__main__":
    main()
