# Copyright (c) 2025-present Polymath Robotics, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
from __future__ import annotations

import asyncio
import logging
import queue
from concurrent.futures import Future
from threading import Lock
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DispatcherShutdownError(RuntimeError):
    """Work was submitted to, or still queued on, a shut down dispatcher."""

    def __init__(self) -> None:
        super().__init__("Permission dispatcher is shut down.")


class SerialDispatcher:
    """Thread-safe dispatcher that runs work on whichever context calls ``drain``.

    ``submit`` may be called from any thread. Work is queued and executed in
    submission order by ``drain``; ``wakeup`` (if given) is called after each
    submission so the owning context knows there is something to drain.
    """

    def __init__(self, *, wakeup: Callable[[], None] | None = None) -> None:
        self._queue: queue.SimpleQueue[tuple[Callable[[], Any], Future[Any]]] = (
            queue.SimpleQueue()
        )
        self._shutdown = False
        self._lock = Lock()
        self._wakeup = wakeup

    def submit(self, fn: Callable[[], T]) -> Future[T]:
        future: Future[T] = Future()

        with self._lock:
            if self._shutdown:
                future.set_exception(DispatcherShutdownError())
                return future
            self._queue.put((fn, future))
        self._trigger()
        return future

    def submit_noresult(self, fn: Callable[[], None]) -> None:
        future = self.submit(fn)

        def _log_if_failed(done: Future[object]) -> None:
            try:
                done.result()
            except DispatcherShutdownError:
                # Late timers and platform callbacks racing shutdown.
                logger.debug("Dropped permission dispatcher task after shutdown")
            except Exception:
                logger.error("Permission dispatcher task failed", exc_info=True)

        future.add_done_callback(_log_if_failed)  # type: ignore[arg-type]

    def shutdown(self) -> None:
        with self._lock:
            self._shutdown = True
        while True:
            try:
                _, future = self._queue.get_nowait()
            except queue.Empty:
                return
            if not future.done():
                future.set_exception(DispatcherShutdownError())

    def drain(self) -> int:
        """Run all queued work; returns the number of callables executed."""
        ran = 0
        while True:
            try:
                fn, future = self._queue.get_nowait()
            except queue.Empty:
                return ran

            if not future.set_running_or_notify_cancel():
                continue

            ran += 1
            try:
                result = fn()
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)

    def _trigger(self) -> None:
        if self._wakeup is None:
            return
        try:
            self._wakeup()
        except Exception:
            logger.debug("Failed waking permission dispatcher", exc_info=True)


class AsyncioLoopDispatcher(SerialDispatcher):
    """SerialDispatcher drained on an asyncio event loop.

    Submissions from any thread schedule a drain with ``call_soon_threadsafe``,
    which wakes the loop immediately instead of polling.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        super().__init__(wakeup=self._schedule_drain)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def _schedule_drain(self) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self.drain)


__all__ = ["AsyncioLoopDispatcher", "DispatcherShutdownError", "SerialDispatcher"]
