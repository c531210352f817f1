"""Public interface for the ``categorizer`` package.

This module exposes the package's entry points and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .config import get_categorization_config, get_industry_for_org, load_org_config
from .errors import ProviderError
from .guardrails import apply_guardrails, get_category_id_with_guardrails
from .llm import LLMScorer, RetryingScorer, pass2_categorize, score_with_llm
from .models import (
    CategorizationConfig,
    CategorizationResult,
    CategoryNode,
    LlmVerdict,
    Matched,
    NoMatch,
    NormalizedTransaction,
    ProviderFailed,
)
from .pass1 import normalize_vendor, pass1_categorize
from .pipeline import categorize
from .prompting import build_categorization_prompt

__all__ = [
    # Entry points
    "categorize",
    "pass1_categorize",
    "pass2_categorize",
    "score_with_llm",
    "get_category_id_with_guardrails",
    "apply_guardrails",
    "build_categorization_prompt",
    "normalize_vendor",
    "get_categorization_config",
    "get_industry_for_org",
    "load_org_config",
    # Scorers / errors
    "LLMScorer",
    "RetryingScorer",
    "ProviderError",
    # Models / types
    "CategoryNode",
    "NormalizedTransaction",
    "CategorizationConfig",
    "CategorizationResult",
    "LlmVerdict",
    "Matched",
    "NoMatch",
    "ProviderFailed",
]
