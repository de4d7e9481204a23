"""Database engine helpers."""

from __future__ import annotations

import os
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url

DEFAULT_DATABASE_URL = "postgresql://user:pass@db:5432/catalog"


def create_engine_from_env(url: str | None = None) -> Engine:
    """Create an engine from ``url`` or the DATABASE_URL environment variable.

    Upserts run on executor threads, so SQLite connections may not be pinned
    to the thread that opened them.
    """
    database_url = make_url(url or os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL))
    options: dict[str, Any] = {"pool_pre_ping": True, "future": True}
    if database_url.get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
    return create_engine(database_url, **options)
