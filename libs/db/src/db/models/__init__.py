"""Shared SQLAlchemy models registry for the workspace database.

Includes the organization model read by ``categorizer.config`` and the
category table seeded from the categorizer taxonomy.
"""

from .reference import Base, Category, Org

__all__ = [
    "Base",
    "Category",
    "Org",
]
