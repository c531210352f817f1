# ruff: noqa: I001
"""CLI for the ``categorizer`` package.

This module exposes callable command handlers (``cmd_categorize``,
``cmd_taxonomy``, ``cmd_prompt``) and a Typer-based console interface.
Environment variables (notably ``OPENAI_API_KEY`` and ``DATABASE_URL``) are
loaded from a local ``.env`` using ``python-dotenv`` before any command runs.
Business logic lives in :mod:`categorizer.pipeline` and related modules.
"""

from __future__ import annotations

import dataclasses
import json
import os
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Annotated, TextIO

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from typer.models import ArgumentInfo

from .logging_setup import configure_logging, get_logger
from .models import CategorizationConfig, CategoryNode, NormalizedTransaction

_logger = get_logger("categorizer.cli")


# ---- Small module-level helpers used by CLI commands -------------------------


def _read_transactions(
    path: Path, err: TextIO
) -> Iterator[tuple[int, NormalizedTransaction | None]]:
    """Yield ``(line_no, tx)`` for each non-blank line; ``tx`` is None when invalid.

    Invalid lines are reported to ``err`` with their 1-based line number.
    """

    with path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                payload = json.loads(line)
                yield line_no, NormalizedTransaction.model_validate(payload)
            except json.JSONDecodeError as e:
                print(f"Error: line {line_no}: invalid JSON: {e.msg}", file=err)
                yield line_no, None
            except ValidationError as e:
                fields = ", ".join(".".join(str(p) for p in d["loc"]) for d in e.errors())
                print(f"Error: line {line_no}: invalid transaction ({fields})", file=err)
                yield line_no, None


def _build_scorer(no_llm: bool):
    """Return a retrying LLM scorer, or None when the model is disabled."""

    if no_llm:
        return None
    if not os.getenv("OPENAI_API_KEY"):
        _logger.warning("cli:llm_disabled reason=OPENAI_API_KEY not set")
        return None
    from .llm import LLMScorer, RetryingScorer

    return RetryingScorer(LLMScorer())


def _resolve_configs(
    txs: list[NormalizedTransaction],
    *,
    org_id: str | None,
    industry: str | None,
    database_url: str | None,
    no_guardrails: bool,
) -> dict[str, CategorizationConfig]:
    """Resolve one config per organization id appearing in ``txs``."""

    from .config import get_categorization_config, load_org_config

    configs: dict[str, CategorizationConfig] = {}
    for tx in txs:
        if tx.org_id in configs:
            continue
        if industry is not None:
            cfg = get_categorization_config(industry)
        else:
            cfg = load_org_config(org_id or tx.org_id, database_url=database_url)
        if no_guardrails:
            cfg = dataclasses.replace(cfg, use_guardrails=False)
        configs[tx.org_id] = cfg
    return configs


# ---- Command handlers --------------------------------------------------------


def cmd_categorize(
    input_path: str,
    *,
    org_id: str | None = None,
    industry: str | None = None,
    database_url: str | None = None,
    no_llm: bool = False,
    no_guardrails: bool = False,
) -> int:
    """Categorize a JSON-lines file and print one JSON result per line.

    Returns a process exit code: 0 when every line was categorized, 1 when any
    line was invalid or failed (valid lines are still processed).
    """

    from .config import get_concurrency_limits
    from .fanout import bounded_map
    from .pipeline import categorize

    path = Path(input_path)
    try:
        rows = list(_read_transactions(path, sys.stderr))
    except FileNotFoundError:
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return 1
    except PermissionError:
        print(f"Error: Permission denied: {input_path}", file=sys.stderr)
        return 1

    exit_code = 0 if all(tx is not None for _, tx in rows) else 1
    valid = [(line_no, tx) for line_no, tx in rows if tx is not None]
    txs = [tx for _, tx in valid]

    configs = _resolve_configs(
        txs,
        org_id=org_id,
        industry=industry,
        database_url=database_url,
        no_guardrails=no_guardrails,
    )
    scorer = _build_scorer(no_llm)
    limits = get_concurrency_limits()

    results = bounded_map(
        txs,
        lambda tx: categorize(tx, configs[tx.org_id], scorer=scorer),
        concurrency=limits.global_,
        key=lambda tx: tx.org_id,
        per_key_concurrency=limits.per_org,
        return_exceptions=True,
    )

    for (line_no, tx), res in zip(valid, results, strict=True):
        if isinstance(res, Exception):
            print(f"Error: line {line_no}: categorization failed: {res}", file=sys.stderr)
            exit_code = 1
            continue
        typer.echo(json.dumps({"id": tx.id, **res.as_json_dict()}, ensure_ascii=False))

    _logger.info(
        "cli:categorize_done lines=%d valid=%d exit_code=%d", len(rows), len(valid), exit_code
    )
    return exit_code


def _tree_lines(nodes: tuple[CategoryNode, ...], parent_id: str | None, depth: int) -> list[str]:
    lines: list[str] = []
    for n in nodes:
        if n.parent_id != parent_id:
            continue
        flags = f"type={n.type} pnl={'yes' if n.is_pnl else 'no'}"
        flags += f" prompt={'yes' if n.include_in_prompt else 'no'}"
        lines.append(f"{'  ' * depth}{n.slug}  {n.name}  [{flags}]")
        lines.extend(_tree_lines(nodes, n.id, depth + 1))
    return lines


def cmd_taxonomy() -> int:
    from .taxonomy import get_active_taxonomy

    for line in _tree_lines(get_active_taxonomy(), None, 0):
        typer.echo(line)
    return 0


def cmd_prompt(input_path: str, *, prior: str | None = None) -> int:
    """Print the pass-2 prompt for each transaction (debugging aid)."""

    from .prompting import build_categorization_prompt

    try:
        rows = list(_read_transactions(Path(input_path), sys.stderr))
    except FileNotFoundError:
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return 1
    except PermissionError:
        print(f"Error: Permission denied: {input_path}", file=sys.stderr)
        return 1

    exit_code = 0
    first = True
    for _line_no, tx in rows:
        if tx is None:
            exit_code = 1
            continue
        if not first:
            typer.echo("---")
        first = False
        typer.echo(build_categorization_prompt(tx, prior))
    return exit_code


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Categorize e-commerce transactions with deterministic rules, an optional "
        "OpenAI pass and accounting guardrails. Loads .env before running."
    ),
)

# Module-level argument object to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects this when used as a default value below.
INPUT_JSONL_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Path to a JSON-lines file with one normalized transaction per line",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)


@app.command("categorize")
def categorize_cmd(
    input_jsonl: Annotated[Path, INPUT_JSONL_ARGUMENT],
    *,
    org_id: str | None = typer.Option(
        None, help="Resolve configuration for this organization instead of each row's orgId."
    ),
    industry: str | None = typer.Option(
        None, help="Use this industry's defaults and skip the database lookup."
    ),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    no_llm: bool = typer.Option(False, "--no-llm", help="Never consult the language model."),
    no_guardrails: bool = typer.Option(
        False, "--no-guardrails", help="Skip the guardrail engine."
    ),
) -> None:
    """Categorize transactions and print one JSON result per line, in input order."""

    code = cmd_categorize(
        str(input_jsonl),
        org_id=org_id,
        industry=industry,
        database_url=database_url,
        no_llm=no_llm,
        no_guardrails=no_guardrails,
    )
    if code:
        raise typer.Exit(code)


@app.command("taxonomy")
def taxonomy_cmd() -> None:
    """Print the category tree with P&L and prompt flags."""

    cmd_taxonomy()


@app.command("prompt")
def prompt_cmd(
    input_jsonl: Annotated[Path, INPUT_JSONL_ARGUMENT],
    *,
    prior: str | None = typer.Option(None, help="Prior category name to include as a hint."),
) -> None:
    """Print the model prompt built for each transaction."""

    code = cmd_prompt(str(input_jsonl), prior=prior)
    if code:
        raise typer.Exit(code)


@app.callback()
def _root() -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m categorizer.cli`
    app()
