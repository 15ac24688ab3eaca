"""Alembic migration utilities for automatic schema management.

`run_migrations()` is called before any catalog access so the schema is
always current. The Alembic environment lives next to this module in
`revisions/`, and is configured programmatically (no alembic.ini).
"""

from pathlib import Path

from loguru import logger
from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy.engine import Engine

from tagsync.errors import StorageError

SCRIPT_LOCATION = Path(__file__).resolve().parent / "revisions"


def get_alembic_config(engine: Engine) -> Config:
    """Create an Alembic Config pointing at the packaged revisions.

    Returns:
        Config: Config with script_location and sqlalchemy.url set.
    """
    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(SCRIPT_LOCATION))
    alembic_cfg.set_main_option(
        "sqlalchemy.url", engine.url.render_as_string(hide_password=False)
    )
    return alembic_cfg


def run_migrations(engine: Engine) -> None:
    """Run all pending Alembic migrations against `engine`.

    It's safe to call this multiple times - if no migrations are pending,
    nothing will happen.

    Raises:
        StorageError: If migration fails for any reason
    """
    try:
        logger.debug("Running Alembic migrations...")
        alembic_cfg = get_alembic_config(engine)
        with engine.begin() as connection:
            alembic_cfg.attributes["connection"] = connection
            command.upgrade(alembic_cfg, "head")
        logger.debug("Alembic migrations completed successfully.")
    except Exception as e:
        logger.error(f"Failed to run Alembic migrations: {e}")
        raise StorageError(f"Failed to migrate catalog database: {e}") from e


def get_current_revision(engine: Engine) -> str:
    """Get the current database schema revision.

    Returns:
        str: The current revision id, or "base" if no migrations have been applied
    """
    with engine.connect() as connection:
        context = MigrationContext.configure(connection)
        current = context.get_current_revision()
        return current if current else "base"


__all__ = ["run_migrations", "get_current_revision", "get_alembic_config"]
