# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Background dispatch of collector sends.

``dispatch`` hands a send to a background executor and returns immediately;
it never blocks the response path and never raises.

Architecture:
  Request → Agent.capture (build payload) → dispatch() → Response
                                              ↓ (background)
                                     CollectorTransport.send
"""

import asyncio
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from typing import Optional, Protocol

import structlog

from .transport import AsyncCollectorTransport, SendOptions, SyncCollectorTransport

logger = structlog.get_logger(__name__)


class Dispatcher(Protocol):
    """Protocol for background dispatchers."""

    def dispatch(self, options: SendOptions) -> None: ...


def has_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class AsyncioDispatcher:
    """Schedules sends as tasks on the running event loop."""

    def __init__(self, transport: Optional[AsyncCollectorTransport] = None):
        self.transport = transport or AsyncCollectorTransport()
        # Strong references so pending tasks are not garbage collected
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, options: SendOptions) -> None:
        try:
            loop = asyncio.get_running_loop()
            task = loop.create_task(self.transport.send(options))
        except Exception as e:
            if options.debug:
                logger.warning("treblle_dispatch_failed", error=str(e))
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for in-flight sends (tests and shutdown)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


class ThreadPoolDispatcher:
    """Runs blocking sends on a small thread pool."""

    def __init__(
        self,
        transport: Optional[SyncCollectorTransport] = None,
        max_workers: int = 2,
    ):
        self.transport = transport or SyncCollectorTransport()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="treblle")
        self._futures: set[Future] = set()
        self._lock = threading.Lock()

    @property
    def pending(self) -> int:
        return len(self._futures)

    def dispatch(self, options: SendOptions) -> None:
        try:
            future = self._executor.submit(self.transport.send, options)
        except RuntimeError as e:
            # Executor already shut down
            if options.debug:
                logger.warning("treblle_dispatch_failed", error=str(e))
            return
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    def drain(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            futures = list(self._futures)
        if futures:
            wait_futures(futures, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def create_dispatcher() -> Dispatcher:
    """Pick the dispatcher matching the current runtime."""
    if has_running_loop():
        return AsyncioDispatcher()
    return ThreadPoolDispatcher()
