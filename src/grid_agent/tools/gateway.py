"""Deadline enforcement for adapter calls."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from typing import TypeVar

from grid_agent.tools.results import AdapterFailure, AdapterResult

T = TypeVar("T")
logger = logging.getLogger(__name__)


def call_with_timeout(
    fn: Callable[[], AdapterResult[T]],
    *,
    timeout_s: float,
    label: str,
) -> AdapterResult[T]:
    """Run one adapter call and turn a missed deadline into an AdapterFailure.

    Exceptions raised by ``fn`` are not adapter failures (adapters report those
    as AdapterFailure values), so they propagate to the caller unchanged.
    """
    started_at = time.perf_counter()
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"adapter-{label}")
    future = pool.submit(fn)
    try:
        return future.result(timeout=timeout_s)
    except TimeoutError:
        logger.warning(
            "adapter_call event=timeout adapter=%s timeout_s=%.2f duration_ms=%s",
            label,
            timeout_s,
            _duration_ms(started_at),
        )
        return AdapterFailure(reason=f"{label} timed out after {timeout_s:.2f}s")
    finally:
        # A timed-out call keeps running in its worker; do not block on it.
        pool.shutdown(wait=False)


def _duration_ms(started_at: float) -> float:
    return round((time.perf_counter() - started_at) * 1000.0, 2)
