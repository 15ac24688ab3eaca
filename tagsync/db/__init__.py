"""Database package: SQLModel models, engine, and catalog CRUD helpers.

Key modules:
    - base: ModelBase class for all table models
    - session: Engine construction for the SQLite catalog file
    - models: The `submission` table and replace_all/list_all/update_tags
    - migrations: Alembic migration utilities for automatic schema management
"""

from .base import ModelBase
from .session import create_db_engine, database_url, dispose_engine
from .models import (
    SubmissionRecord,
    get_submission,
    list_all,
    replace_all,
    update_tags,
)
from .migrations import get_current_revision, run_migrations

__all__ = [
    "ModelBase",
    "SubmissionRecord",
    "create_db_engine",
    "database_url",
    "dispose_engine",
    "get_current_revision",
    "get_submission",
    "list_all",
    "replace_all",
    "run_migrations",
    "update_tags",
]
