# ruff: noqa: I001
"""
Alembic environment for the `db` library.

URL precedence: `-x database_url=...` on the command line, then
`DATABASE_URL` (a workspace `.env` is loaded first), then `sqlalchemy.url`
from the INI file. SQLite targets run in batch mode so ALTERs work there too.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from dotenv import find_dotenv, load_dotenv

from db import metadata


def _resolve_database_url() -> str:
    x_args = context.get_x_argument(as_dictionary=True)
    url = (
        x_args.get("database_url")
        or os.getenv("DATABASE_URL")
        or context.config.get_main_option("sqlalchemy.url")
    )
    if not url:
        raise RuntimeError(
            "No database URL. Pass -x database_url=..., set DATABASE_URL, or set "
            "'sqlalchemy.url' in alembic.ini."
        )
    return url


def run_migrations_offline(url: str) -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=url,
        target_metadata=metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online(url: str) -> None:
    section = dict(context.config.get_section(context.config.config_ini_section) or {})
    section["sqlalchemy.url"] = url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


def main() -> None:
    cfg = context.config
    if cfg.config_file_name is not None:
        # Keep loggers created before Alembic started (e.g. the categorizer's).
        fileConfig(cfg.config_file_name, disable_existing_loggers=False)

    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    url = _resolve_database_url()
    if context.is_offline_mode():
        run_migrations_offline(url)
    else:
        run_migrations_online(url)


main()
