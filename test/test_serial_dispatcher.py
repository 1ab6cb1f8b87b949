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
import threading

import pytest

from permission_kit.execution import serial_dispatcher as serial_dispatcher_module
from permission_kit.execution.serial_dispatcher import (
    AsyncioLoopDispatcher,
    DispatcherShutdownError,
    SerialDispatcher,
)


class DummyWakeup:
    def __init__(self) -> None:
        self.calls = 0
        self.raise_on_call = False

    def __call__(self) -> None:
        self.calls += 1
        if self.raise_on_call:
            raise RuntimeError("wakeup failed")


def test_submit_and_drain_runs_work() -> None:
    wakeup = DummyWakeup()
    dispatcher = SerialDispatcher(wakeup=wakeup)

    future = dispatcher.submit(lambda: "ok")

    assert wakeup.calls == 1
    assert future.done() is False

    assert dispatcher.drain() == 1
    assert future.result() == "ok"


def test_drain_runs_work_in_submission_order() -> None:
    dispatcher = SerialDispatcher()
    order: list[int] = []

    for index in range(3):
        dispatcher.submit_noresult(lambda index=index: order.append(index))

    assert dispatcher.drain() == 3
    assert order == [0, 1, 2]
    assert dispatcher.drain() == 0


def test_drain_skips_cancelled_work() -> None:
    dispatcher = SerialDispatcher()
    ran: list[str] = []

    cancelled = dispatcher.submit(lambda: ran.append("cancelled"))
    cancelled.cancel()
    dispatcher.submit(lambda: ran.append("kept"))

    assert dispatcher.drain() == 1
    assert ran == ["kept"]


def test_submit_noresult_logs_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    dispatcher = SerialDispatcher()
    error_calls: list[tuple[str, object]] = []

    def _boom() -> None:
        raise RuntimeError("boom")

    def _record_error(message: str, *args: object, **kwargs: object) -> None:
        error_calls.append((message, kwargs.get("exc_info")))

    monkeypatch.setattr(serial_dispatcher_module.logger, "error", _record_error)

    dispatcher.submit_noresult(_boom)
    dispatcher.drain()

    assert error_calls == [("Permission dispatcher task failed", True)]


def test_shutdown_marks_pending_and_future_submissions_as_failed() -> None:
    dispatcher = SerialDispatcher()

    pending = dispatcher.submit(lambda: "never-runs")
    dispatcher.shutdown()

    with pytest.raises(RuntimeError, match="Permission dispatcher is shut down"):
        pending.result()

    after_shutdown = dispatcher.submit(lambda: "also-never-runs")
    with pytest.raises(RuntimeError, match="Permission dispatcher is shut down"):
        after_shutdown.result()


def test_submit_handles_wakeup_failures() -> None:
    wakeup = DummyWakeup()
    wakeup.raise_on_call = True
    dispatcher = SerialDispatcher(wakeup=wakeup)

    future = dispatcher.submit(lambda: "ok")

    # Work is still queued and runnable even if the wakeup failed.
    dispatcher.drain()
    assert future.result() == "ok"


def test_submissions_from_other_threads_run_on_draining_thread() -> None:
    dispatcher = SerialDispatcher()
    ran_on: list[threading.Thread] = []

    worker = threading.Thread(
        target=dispatcher.submit_noresult,
        args=(lambda: ran_on.append(threading.current_thread()),),
    )
    worker.start()
    worker.join(timeout=5)

    dispatcher.drain()

    assert ran_on == [threading.current_thread()]


@pytest.mark.asyncio
async def test_asyncio_loop_dispatcher_drains_on_the_loop() -> None:
    loop = asyncio.get_running_loop()
    dispatcher = AsyncioLoopDispatcher(loop)
    result: list[object] = []

    def _submit_from_thread() -> None:
        future = dispatcher.submit(lambda: threading.current_thread())
        result.append(future)

    worker = threading.Thread(target=_submit_from_thread)
    worker.start()
    worker.join(timeout=5)

    ran_on = await asyncio.wait_for(asyncio.wrap_future(result[0]), timeout=5)  # type: ignore[arg-type]

    assert ran_on is threading.current_thread()
    assert dispatcher.loop is loop


def test_work_dropped_by_shutdown_is_logged_at_debug(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    dispatcher = SerialDispatcher()
    error_calls: list[str] = []
    debug_calls: list[str] = []

    monkeypatch.setattr(
        serial_dispatcher_module.logger,
        "error",
        lambda message, *args, **kwargs: error_calls.append(message),
    )
    monkeypatch.setattr(
        serial_dispatcher_module.logger,
        "debug",
        lambda message, *args, **kwargs: debug_calls.append(message),
    )

    dispatcher.submit_noresult(lambda: None)
    dispatcher.shutdown()
    dispatcher.submit_noresult(lambda: None)

    assert error_calls == []
    assert debug_calls == [
        "Dropped permission dispatcher task after shutdown",
        "Dropped permission dispatcher task after shutdown",
    ]
    with pytest.raises(DispatcherShutdownError):
        dispatcher.submit(lambda: None).result()
