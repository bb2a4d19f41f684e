"""
Development helper: create registry tables straight from the ORM metadata.

Production databases go through Alembic (scripts/release.py) instead.

Usage:
  python scripts/init_db.py
"""

import sys
from pathlib import Path

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import inspect  # noqa: E402

from app.dvr.models import Base  # noqa: E402
from scripts._db_utils import create_script_engine, resolve_db_url  # noqa: E402


def create_schema(*, database_url: str | None = None) -> list[str]:
    """
    Create any missing tables (idempotent). Returns the table names present afterwards.
    """
    db_url = resolve_db_url(database_url)
    engine = create_script_engine(db_url)
    try:
        Base.metadata.create_all(bind=engine)
        return sorted(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def main() -> None:
    tables = create_schema(database_url=None)
    print("Initialized database (create_all).")
    print(f"Tables: {', '.join(tables)}")


if __name__ == "__main__":
    main()
