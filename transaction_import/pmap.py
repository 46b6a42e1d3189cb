"""Bounded, order-preserving concurrent map over a thread pool.

``p_map(items, fn, concurrency=n)`` keeps at most ``n`` calls in flight,
pulls from ``items`` lazily as slots free up, and returns results in input
order. The first exception raised by ``fn`` cancels work that has not started
yet and is re-raised to the caller.

Row validation and duplicate lookups are I/O-light or I/O-bound per item, so a
thread pool is enough; there is no process-pool variant.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TypeVar

from .logging_setup import get_logger

InT = TypeVar("InT")
OutT = TypeVar("OutT")

DEFAULT_CONCURRENCY: int = 4
MAX_CONCURRENCY: int = 32
_WORKERS_ENV = "TXN_IMPORT_MAX_WORKERS"

_logger = get_logger("transaction_import.pmap")


def resolve_concurrency(value: int | str | None = None) -> int:
    """Return a worker count in ``[1, MAX_CONCURRENCY]``.

    ``None`` reads ``TXN_IMPORT_MAX_WORKERS``; unset or unparseable values fall
    back to ``DEFAULT_CONCURRENCY``.
    """

    if value is None:
        value = os.getenv(_WORKERS_ENV)
    if value is None or (isinstance(value, str) and not value.strip()):
        return DEFAULT_CONCURRENCY
    try:
        n = int(value)
    except (TypeError, ValueError):
        _logger.warning("pmap:bad_concurrency value=%r", value)
        return DEFAULT_CONCURRENCY
    return max(1, min(n, MAX_CONCURRENCY))


def p_map(
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT],
    *,
    concurrency: int,
) -> list[OutT]:
    """Map ``iterable`` through ``mapper`` with at most ``concurrency`` in flight."""

    if not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    it = enumerate(iterable)
    results: dict[int, OutT] = {}
    pending: dict[Future[OutT], int] = {}

    def _fill(pool: ThreadPoolExecutor, slots: int) -> None:
        for _ in range(slots):
            try:
                idx, item = next(it)
            except StopIteration:
                return
            pending[pool.submit(mapper, item)] = idx

    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        _fill(pool, concurrency)
        while pending:
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for fut in done:
                idx = pending.pop(fut)
                try:
                    results[idx] = fut.result()
                except Exception:
                    pool.shutdown(wait=False, cancel_futures=True)
                    raise
            _fill(pool, len(done))

    return [results[i] for i in range(len(results))]


__all__ = ["DEFAULT_CONCURRENCY", "MAX_CONCURRENCY", "resolve_concurrency", "p_map"]
