from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression as sa_expr


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: orgs
# ---------------------------


class Org(Base):
    __tablename__ = "orgs"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # Free-form; the categorizer maps unsupported values to its defaults.
    industry: Mapped[str | None] = mapped_column(String, nullable=True)

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"Org(id={self.id!r}, industry={self.industry!r})"


# ---------------------------
# Reference: categories
# ---------------------------


class Category(Base):
    """Global chart of accounts; seeded from ``categorizer.taxonomy``.

    Ids are the stable UUID-shaped strings the categorizer emits, so rows are
    never renumbered between environments.
    """

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    slug: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    parent_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("categories.id"), nullable=True, index=True
    )
    is_pnl: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=sa_expr.true())
    include_in_prompt: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.true()
    )

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"Category(slug={self.slug!r}, type={self.type!r})"
