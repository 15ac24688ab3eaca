"""Base SQLModel class and metadata for all database models.

This module provides the base class that all SQLModel table models should inherit from.
It uses a private registry to avoid global state issues during testing.

The metadata from this base class is used by Alembic for migrations.
"""

from sqlmodel import SQLModel
from sqlalchemy.orm import registry as sa_registry

# Use a private registry/base to avoid SQLModel's global default registry
# being reused across test re-imports (which causes SAWarnings about
# duplicate class names).
_registry = sa_registry()


class ModelBase(SQLModel, registry=_registry):  # type: ignore[call-arg]
    """Base class for all database table models."""

    pass


__all__ = ["ModelBase"]
