"""Order-preserving thread-pool map with a global and a per-key cap.

Batch callers use this to fan out single-transaction ``categorize`` calls
while bounding how many run at once overall and per organization. Work is
dispatched from a window: an item is only submitted when both a global slot
and a slot for its key are free, so no worker thread ever sits blocked on a
busy key.

- ``return_exceptions=False`` (default): the first failure is raised and any
  not-yet-started work is cancelled.
- ``return_exceptions=True``: a failing item's exception object takes its
  place in the output, so one failure never blocks the batch.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Hashable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")

_NO_KEY = object()


def bounded_map(
    items: Iterable[InT],
    fn: Callable[[InT], OutT],
    *,
    concurrency: int,
    key: Callable[[InT], Hashable] | None = None,
    per_key_concurrency: int | None = None,
    return_exceptions: bool = False,
) -> list[OutT | Exception]:
    """Map ``items`` through ``fn`` concurrently, preserving input order.

    ``key`` groups items (e.g. by organization id); at most
    ``per_key_concurrency`` items of one group run at once. Without ``key``
    only the global ``concurrency`` cap applies.
    """

    if not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")
    if per_key_concurrency is not None and (
        not isinstance(per_key_concurrency, int) or per_key_concurrency < 1
    ):
        raise ValueError("per_key_concurrency must be a positive integer")

    # Keys are needed up front to schedule fairly.
    pending: list[tuple[int, InT, Hashable]] = [
        (i, item, key(item) if key is not None else _NO_KEY) for i, item in enumerate(items)
    ]
    n_total = len(pending)
    results: list[OutT | Exception | None] = [None] * n_total
    if n_total == 0:
        return []

    key_cap = per_key_concurrency if (key is not None and per_key_concurrency) else None
    running: Counter[Hashable] = Counter()
    future_meta: dict[Future[OutT], tuple[int, Hashable]] = {}

    def _next_eligible() -> tuple[int, InT, Hashable] | None:
        for pos, entry in enumerate(pending):
            if key_cap is None or running[entry[2]] < key_cap:
                return pending.pop(pos)
        return None

    with ThreadPoolExecutor(max_workers=min(concurrency, n_total)) as pool:
        active: set[Future[OutT]] = set()

        def _fill() -> None:
            while len(active) < concurrency:
                entry = _next_eligible()
                if entry is None:
                    return
                idx, item, k = entry
                fut = pool.submit(fn, item)
                future_meta[fut] = (idx, k)
                running[k] += 1
                active.add(fut)

        _fill()
        while active:
            done, active = wait(active, return_when=FIRST_COMPLETED)
            for fut in done:
                idx, k = future_meta.pop(fut)
                running[k] -= 1
                try:
                    results[idx] = fut.result()
                except Exception as e:  # noqa: BLE001
                    if not return_exceptions:
                        pending.clear()
                        pool.shutdown(wait=False, cancel_futures=True)
                        raise
                    results[idx] = e
            _fill()

    return results  # type: ignore[return-value]


__all__ = ["bounded_map"]
