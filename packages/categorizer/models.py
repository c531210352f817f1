"""Data models and type aliases for ``categorizer``.

Value objects (taxonomy nodes, configuration, results, stage outcomes) are
frozen dataclasses. Inputs that cross a trust boundary (the normalized
transaction handed over by the sync layer and the JSON verdict returned by the
language model) are Pydantic models so malformed data fails fast with a
``ValidationError`` instead of being silently defaulted.
"""

from __future__ import annotations

import datetime as dt
import math
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------

type CategoryType = Literal["revenue", "cogs", "opex", "liability", "clearing"]

CATEGORY_TYPES: tuple[CategoryType, ...] = ("revenue", "cogs", "opex", "liability", "clearing")


@dataclass(frozen=True, slots=True)
class CategoryNode:
    """A single taxonomy entry.

    Attributes
    ----------
    id:
        Stable opaque identifier (UUID-shaped, shared with the database seed).
    slug:
        Machine-readable name, unique across the taxonomy.
    name:
        Display label.
    type:
        Accounting bucket. ``liability`` and ``clearing`` never count toward
        profit & loss and are never offered to the model.
    parent_id:
        Id of the tier-1 parent, or ``None`` for tier-1 nodes.
    is_pnl:
        Whether the category contributes to income-statement totals.
    include_in_prompt:
        Whether the category is a candidate label for the model.
    """

    id: str
    slug: str
    name: str
    type: CategoryType
    parent_id: str | None
    is_pnl: bool
    include_in_prompt: bool

    @property
    def is_contra_revenue(self) -> bool:
        return self.type == "revenue" and self.slug.endswith("_contra")

    @property
    def is_tier1(self) -> bool:
        return self.parent_id is None


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

_CENTS_RE = re.compile(r"^-?[0-9]+$")


class NormalizedTransaction(BaseModel):
    """The unit of work for categorization.

    Field names are snake_case; the upstream camelCase names
    (``amountCents``, ``merchantName``, ``orgId``...) are accepted as aliases.
    ``amount_cents`` is an integer-valued string in minor units: negative is
    money out, positive is money in. ``raw`` is carried for audit only.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=False,
    )

    id: str
    org_id: str
    date: dt.date
    amount_cents: str
    currency: str = "USD"
    description: str
    merchant_name: str | None = None
    mcc: str | None = None
    category_id: str | None = None
    confidence: float | None = None
    reviewed: bool = False
    source: str = "plaid"
    raw: dict[str, Any] = Field(default_factory=dict)

    @field_validator("amount_cents", mode="before")
    @classmethod
    def _amount_is_integer_string(cls, v: Any) -> str:
        # bool is an int subclass; a True amount is a caller bug.
        if isinstance(v, bool):
            raise ValueError("amount_cents must be an integer-valued string")
        if isinstance(v, int):
            return str(v)
        if not isinstance(v, str):
            raise ValueError("amount_cents must be an integer-valued string, not a float")
        s = v.strip()
        if not _CENTS_RE.match(s):
            raise ValueError(f"amount_cents is not an integer-valued string: {v!r}")
        return s

    @field_validator("merchant_name", "mcc", "category_id")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v if v.strip() else None

    @field_validator("confidence")
    @classmethod
    def _confidence_in_unit_interval(cls, v: float | None) -> float | None:
        if v is None:
            return None
        if math.isnan(v) or not 0.0 <= v <= 1.0:
            raise ValueError("confidence must be within [0,1]")
        return v

    @property
    def amount(self) -> int:
        """Signed amount in minor units."""
        return int(self.amount_cents)

    @property
    def is_outflow(self) -> bool:
        return self.amount < 0


# ---------------------------------------------------------------------------
# Configuration and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategorizationConfig:
    """Per-organization categorization settings.

    ``hybrid_threshold`` is the pass-1 confidence at or above which the model
    is not consulted; ``auto_apply_threshold`` is the final confidence at or
    above which a result may be applied without human review.
    """

    industry: str
    auto_apply_threshold: float
    hybrid_threshold: float
    use_guardrails: bool


type ResultSource = Literal["pass1", "llm", "fallback"]


@dataclass(frozen=True, slots=True)
class CategorizationResult:
    """Pipeline output for one transaction. Not persisted verbatim."""

    category_id: str
    category_slug: str
    confidence: float
    guardrails_applied: tuple[str, ...] = ()
    violations: tuple[str, ...] = ()
    source: ResultSource = "pass1"
    rationale: tuple[str, ...] = ()
    needs_review: bool = True

    @property
    def auto_apply(self) -> bool:
        return not self.needs_review

    def as_json_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["guardrails_applied"] = list(self.guardrails_applied)
        out["violations"] = list(self.violations)
        out["rationale"] = list(self.rationale)
        return out


# ---------------------------------------------------------------------------
# Stage outcomes (tagged results)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Matched:
    """A stage produced a category proposal."""

    category_slug: str
    confidence: float
    source: Literal["pass1", "llm"]
    rationale: tuple[str, ...] = field(default=())


@dataclass(frozen=True, slots=True)
class NoMatch:
    """Pass 1 found no rule for the transaction."""


@dataclass(frozen=True, slots=True)
class ProviderFailed:
    """Pass 2 could not produce a usable verdict."""

    reason: str
    kind: str


type Pass1Outcome = Matched | NoMatch
type Pass2Outcome = Matched | ProviderFailed


# ---------------------------------------------------------------------------
# Model verdict
# ---------------------------------------------------------------------------


class LlmVerdict(BaseModel):
    """Typed, validated model of the language model's JSON answer.

    The allow-list of slugs is supplied through ``ValidationInfo.context``
    by :func:`categorizer.categorization.parse_llm_verdict`; unknown slugs are
    rejected rather than coerced.
    """

    model_config = ConfigDict(strict=True, extra="forbid")

    category_slug: str
    confidence: float
    rationale: str

    @field_validator("category_slug")
    @classmethod
    def _slug_in_allowlist(cls, v: str, info: ValidationInfo) -> str:
        allowed = info.context.get("allowed_slugs") if info.context else None
        if allowed is not None and v not in allowed:
            raise ValueError(f"category_slug not in allow-list: {v!r}")
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence_is_number(cls, v: Any) -> float:
        # strict mode would reject a JSON integer such as ``1``; accept ints
        # but never bools or numeric strings.
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("confidence must be a number")
        fv = float(v)
        if math.isnan(fv) or not 0.0 <= fv <= 1.0:
            raise ValueError("confidence must be within [0,1]")
        return fv

    @field_validator("rationale")
    @classmethod
    def _rationale_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("rationale must be non-empty")
        return v
