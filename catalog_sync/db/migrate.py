"""Database migration helpers."""

from __future__ import annotations

import sys

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from catalog_sync.db.schema import metadata
from catalog_sync.db.session import create_engine_from_env


def run_migrations(engine: Engine) -> None:
    """Create any missing catalog tables."""
    metadata.create_all(engine)


def main() -> None:
    engine = create_engine_from_env()
    try:
        run_migrations(engine)
    except SQLAlchemyError as exc:
        print(f"Migration failed: {exc}", file=sys.stderr)
        sys.exit(2)
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
