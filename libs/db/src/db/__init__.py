"""db: shared database library (SQLAlchemy).

Public exports
--------------
- ``Base`` and ``metadata`` for schema creation and Alembic autogenerate
- ORM models in ``db.models.reference`` (re-exported for convenience)
- Engine/session helpers in ``db.client``
"""

from __future__ import annotations

from .models.reference import Base, Category, Org

metadata = Base.metadata

__all__ = [
    "Base",
    "Category",
    "metadata",
    "Org",
]
