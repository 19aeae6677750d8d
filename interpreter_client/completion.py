"""
Strategies for waiting on a run.

`PollingCompletion` starts a run and re-reads its status at a fixed interval
while the console shows progress dots. `StreamingCompletion` consumes the
service's event stream on a reader thread and echoes text as it arrives; the
deadline covers the whole stream, including a stream that never sends
anything. Both give up after the configured maximum wait with
`OperationTimedOut`, and both cancel the run when interrupted with Ctrl+C.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Tuple

from .config import Settings
from .console import Console
from .models import RunRecord, RunUpdate, StreamEvent, TextDelta
from .progress import run_with_progress
from .providers import BaseAgentService

logger = logging.getLogger("interpreter-client")


class OperationTimedOut(RuntimeError):
    """Raised when a run does not reach a terminal status within the maximum wait."""

    def __init__(self, run_id: Optional[str], waited: float):
        self.run_id = run_id
        self.waited = waited
        super().__init__(f"Run {run_id or '<unknown>'} did not finish within {waited:.1f}s")


class RunInterrupted(RuntimeError):
    """Raised inside the polling worker once the foreground asked it to stop."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Stopped waiting for run {run_id}")


@dataclass(frozen=True)
class PollPolicy:
    interval: float = 0.5
    max_wait: float = 600.0


def _cancel_quietly(service: BaseAgentService, run: RunRecord) -> None:
    try:
        service.cancel_run(run.thread_id, run.id)
    except Exception as exc:
        logger.warning("cancel_run failed for run_id=%s: %s", run.id, exc)


def wait_for_run(
    service: BaseAgentService,
    run: RunRecord,
    policy: PollPolicy,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    stop: Optional[threading.Event] = None,
) -> RunRecord:
    """
    Re-fetch `run` every `policy.interval` seconds until it leaves the active set.

    No further fetch is made once a terminal status has been seen. When
    `policy.max_wait` runs out the run is cancelled and OperationTimedOut raised.
    When `stop` is set the run is cancelled and RunInterrupted raised.
    """
    started = clock()
    while run.status.is_active:
        if stop is not None and stop.is_set():
            logger.info("Stopped polling run %s; cancelling", run.id)
            _cancel_quietly(service, run)
            raise RunInterrupted(run.id)
        waited = clock() - started
        if waited >= policy.max_wait:
            logger.warning("Run %s still %s after %.1fs; cancelling", run.id, run.status.value, waited)
            _cancel_quietly(service, run)
            raise OperationTimedOut(run.id, waited)
        sleep(policy.interval)
        if stop is not None and stop.is_set():
            continue
        run = service.get_run(run.thread_id, run.id)
        logger.debug("Run %s status %s", run.id, run.status.value)
    return run


class CompletionStrategy:
    """Start a run on a thread and block until it reaches a terminal status."""

    # Whether agent text is already on the console once `execute` returns.
    echoes_text = False

    def execute(self, service: BaseAgentService, thread_id: str, agent_id: str, console: Console) -> RunRecord:  # pragma: no cover - interface only
        raise NotImplementedError


class PollingCompletion(CompletionStrategy):
    def __init__(
        self,
        policy: PollPolicy,
        progress_interval: float = 0.5,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.policy = policy
        self.progress_interval = progress_interval
        self._clock = clock
        self._sleep = sleep

    def execute(self, service: BaseAgentService, thread_id: str, agent_id: str, console: Console) -> RunRecord:
        stop = threading.Event()

        def work() -> RunRecord:
            run = service.create_run(thread_id, agent_id)
            logger.info("Started run %s on thread %s", run.id, thread_id)
            return wait_for_run(service, run, self.policy, clock=self._clock, sleep=self._sleep, stop=stop)

        try:
            return run_with_progress(
                work,
                lambda: console.write("."),
                self.progress_interval,
                on_interrupt=stop.set,
            )
        finally:
            console.say()


# Reader-thread messages: ("event", StreamEvent), ("error", exception), ("end", None).
_StreamItem = Tuple[str, Any]


def _offer(items: "queue.Queue[_StreamItem]", item: _StreamItem, done: threading.Event) -> bool:
    while not done.is_set():
        try:
            items.put(item, timeout=0.1)
            return True
        except queue.Full:
            continue
    return False


def _pump(events: Iterable[StreamEvent], items: "queue.Queue[_StreamItem]", done: threading.Event) -> None:
    """Move events onto `items` until the stream ends or the consumer sets `done`."""
    try:
        for event in events:
            if not _offer(items, ("event", event), done):
                break
        else:
            _offer(items, ("end", None), done)
    except Exception as exc:
        _offer(items, ("error", exc), done)
    finally:
        close = getattr(events, "close", None)
        if close is not None:
            close()


class StreamingCompletion(CompletionStrategy):
    echoes_text = True

    def __init__(self, max_wait: float = 600.0, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_wait = max_wait
        self._clock = clock

    def execute(self, service: BaseAgentService, thread_id: str, agent_id: str, console: Console) -> RunRecord:
        started = self._clock()
        run: Optional[RunRecord] = None
        fragments: List[str] = []

        items: "queue.Queue[_StreamItem]" = queue.Queue(maxsize=256)
        done = threading.Event()
        reader = threading.Thread(
            target=_pump,
            args=(service.stream_run(thread_id, agent_id), items, done),
            name="interpreter-client-stream",
            daemon=True,
        )
        reader.start()

        try:
            while True:
                waited = self._clock() - started
                if waited >= self.max_wait:
                    if run is not None and run.status.is_active:
                        _cancel_quietly(service, run)
                    raise OperationTimedOut(run.id if run else None, waited)
                try:
                    kind, payload = items.get(timeout=self.max_wait - waited)
                except queue.Empty:
                    continue

                if kind == "end":
                    break
                if kind == "error":
                    raise payload

                if isinstance(payload, TextDelta):
                    if not fragments:
                        console.write("Agent: ")
                    fragments.append(payload.text)
                    console.write(payload.text)
                elif isinstance(payload, RunUpdate):
                    run = payload.run
                    logger.debug("Run %s status %s", run.id, run.status.value)
        except KeyboardInterrupt:
            if run is not None and run.status.is_active:
                _cancel_quietly(service, run)
            raise
        finally:
            done.set()

        if fragments:
            console.say()
        if run is None:
            raise RuntimeError("Stream ended without reporting a run")
        logger.info("Streamed run %s finished with status %s", run.id, run.status.value)
        return run


def build_completion(settings: Settings) -> CompletionStrategy:
    """Pick the completion strategy named by the settings."""
    if settings.completion == "stream":
        return StreamingCompletion(max_wait=settings.max_wait)
    policy = PollPolicy(interval=settings.poll_interval, max_wait=settings.max_wait)
    return PollingCompletion(policy, progress_interval=settings.progress_interval)
