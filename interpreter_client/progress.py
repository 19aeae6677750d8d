from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Optional, TypeVar

T = TypeVar("T")


def run_with_progress(
    work: Callable[[], T],
    tick: Callable[[], None],
    interval: float,
    *,
    on_interrupt: Optional[Callable[[], None]] = None,
) -> T:
    """
    Run `work` on a background worker, calling `tick` every `interval` seconds
    until it finishes.

    The completion check happens before each tick, so no tick is emitted
    once the work is done. Exceptions raised by `work` are re-raised here.
    If the foreground is interrupted (Ctrl+C, or an error from `tick`) while
    the work is still running, `on_interrupt` is called and the exception
    propagates at once; the worker is not waited for.
    """
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="interpreter-client")
    future = pool.submit(work)
    try:
        while not future.done():
            tick()
            wait([future], timeout=interval)
        return future.result()
    except BaseException:
        if not future.done() and on_interrupt is not None:
            on_interrupt()
        raise
    finally:
        pool.shutdown(wait=False)
