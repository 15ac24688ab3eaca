"""Database engine construction.

The catalog lives in a single SQLite file chosen per invocation, so the
engine is built on demand instead of at import time.
"""

from pathlib import Path

from loguru import logger
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlmodel import create_engine


def database_url(path: Path | str) -> str:
    return f"sqlite:///{Path(path).expanduser().as_posix()}"


def create_db_engine(path: Path | str, *, echo: bool = False) -> Engine:
    """Create an engine for the SQLite catalog at `path`.

    - check_same_thread=False: sessions may be opened from worker threads
    - NullPool: connections are closed when sessions end (important for SQLite)

    Parameters:
        path: Location of the database file; created on first connect.
        echo: Log emitted SQL (debugging only).

    Returns:
        Engine: A new SQLAlchemy engine.
    """
    url = database_url(path)
    logger.debug(f"DATABASE_URL: {url}")
    Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        url,
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
        echo=echo,
    )


def dispose_engine(engine: Engine) -> None:
    """Dispose an engine to close any pooled connections."""
    try:
        engine.dispose()
        logger.debug("SQLAlchemy engine disposed.")
    except Exception as e:
        logger.warning(f"Engine dispose error: {e}")


__all__ = ["database_url", "create_db_engine", "dispose_engine"]
