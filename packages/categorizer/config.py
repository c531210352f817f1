"""Per-organization categorization settings and process-level limits.

Configuration problems are never fatal: an unsupported industry, a missing
organization row or a database error all degrade to the ecommerce defaults
and are logged.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .logging_setup import get_logger
from .models import CategorizationConfig
from .taxonomy import SUPPORTED_INDUSTRIES

DEFAULT_INDUSTRY = "ecommerce"

INDUSTRY_CONFIGS: Mapping[str, CategorizationConfig] = MappingProxyType(
    {
        "ecommerce": CategorizationConfig(
            industry="ecommerce",
            auto_apply_threshold=0.95,
            hybrid_threshold=0.95,
            use_guardrails=True,
        ),
    }
)

_ORG_CONCURRENCY_ENV = "CATEGORIZER_ORG_CONCURRENCY"
_GLOBAL_CONCURRENCY_ENV = "CATEGORIZER_GLOBAL_CONCURRENCY"
_DEFAULT_ORG_CONCURRENCY = 2
_DEFAULT_GLOBAL_CONCURRENCY = 5

_logger = get_logger("categorizer.config")


def normalize_industry(industry: object) -> str:
    """Return ``industry`` when supported, else the default industry."""

    if isinstance(industry, str):
        key = industry.strip().lower()
        if key in SUPPORTED_INDUSTRIES and key in INDUSTRY_CONFIGS:
            return key
    return DEFAULT_INDUSTRY


def get_categorization_config(industry: object = DEFAULT_INDUSTRY) -> CategorizationConfig:
    """Return the config for ``industry``; unsupported values get ecommerce defaults."""

    resolved = normalize_industry(industry)
    if resolved != industry:
        _logger.debug("config:industry_fallback requested=%r resolved=%s", industry, resolved)
    return INDUSTRY_CONFIGS[resolved]


def get_industry_for_org(session: Session, org_id: str) -> str:
    """Look up the organization's industry; never raises.

    A missing row, an unsupported industry or a database error all yield
    ``"ecommerce"``.
    """

    from db.models import Org

    try:
        org = session.get(Org, org_id)
    except SQLAlchemyError as e:
        _logger.warning(
            "config:org_lookup_failed org_id=%s error=%s", org_id, e.__class__.__name__
        )
        return DEFAULT_INDUSTRY
    if org is None:
        _logger.info("config:org_not_found org_id=%s default=%s", org_id, DEFAULT_INDUSTRY)
        return DEFAULT_INDUSTRY
    resolved = normalize_industry(org.industry)
    if resolved != org.industry:
        _logger.info(
            "config:unsupported_industry org_id=%s industry=%r default=%s",
            org_id,
            org.industry,
            resolved,
        )
    return resolved


def load_org_config(org_id: str, *, database_url: str | None = None) -> CategorizationConfig:
    """Resolve the organization's config through the database.

    Without a database URL (argument or ``DATABASE_URL``) the defaults are
    returned directly.
    """

    url = database_url or os.getenv("DATABASE_URL")
    if not url:
        _logger.debug("config:no_database org_id=%s", org_id)
        return get_categorization_config(DEFAULT_INDUSTRY)

    from db.client import session_scope

    try:
        with session_scope(database_url=url) as session:
            industry = get_industry_for_org(session, org_id)
    except SQLAlchemyError as e:
        _logger.warning(
            "config:database_unavailable org_id=%s error=%s", org_id, e.__class__.__name__
        )
        industry = DEFAULT_INDUSTRY
    return get_categorization_config(industry)


@dataclass(frozen=True, slots=True)
class ConcurrencyLimits:
    per_org: int
    global_: int


def _env_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        val = int(raw)
    except ValueError:
        _logger.warning("config:bad_int_env name=%s value=%r default=%d", name, raw, default)
        return default
    if val < 1:
        _logger.warning("config:bad_int_env name=%s value=%r default=%d", name, raw, default)
        return default
    return val


def get_concurrency_limits() -> ConcurrencyLimits:
    """Read the per-organization and global fan-out caps from the environment."""

    return ConcurrencyLimits(
        per_org=_env_positive_int(_ORG_CONCURRENCY_ENV, _DEFAULT_ORG_CONCURRENCY),
        global_=_env_positive_int(_GLOBAL_CONCURRENCY_ENV, _DEFAULT_GLOBAL_CONCURRENCY),
    )


__all__ = [
    "DEFAULT_INDUSTRY",
    "INDUSTRY_CONFIGS",
    "ConcurrencyLimits",
    "get_categorization_config",
    "get_concurrency_limits",
    "get_industry_for_org",
    "load_org_config",
    "normalize_industry",
]
