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
"""Await a permission batch from asyncio code.

The coordinator lives on its dispatcher context and reports settlement through
a plain callback. This helper:
- starts the batch on the dispatcher context
- awaits settlement on the current asyncio loop
- ends the session on the dispatcher context if the awaiting task is cancelled

No timeout is applied here. Callers that want one wrap the call in
``asyncio.wait_for``; the resulting cancellation abandons the session.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Hashable, Iterable
from concurrent.futures import Future

from permission_kit.batch.coordinator import BatchCoordinator, BatchSession
from permission_kit.core.dispatcher import WorkDispatcher
from permission_kit.core.items import PermissionRequestItem
from permission_kit.core.status import AuthorizationStatus

StatusMap = dict[Hashable, AuthorizationStatus]


def _set_outcome_once(result_future: asyncio.Future[StatusMap], outcome: StatusMap) -> None:
    """Resolve a result future once, ignoring any duplicate completions."""

    if result_future.done():
        return
    result_future.set_result(outcome)


async def request_batch(
    coordinator: BatchCoordinator,
    dispatcher: WorkDispatcher,
    items: Iterable[PermissionRequestItem],
    *,
    on_started: Callable[[BatchSession], None] | None = None,
) -> StatusMap:
    """Run one batch to settlement and return its final status map.

    ``on_started`` runs on the dispatcher context right after the batch
    begins, which is where presentation binds its request triggers.
    """

    loop = asyncio.get_running_loop()
    result_future: asyncio.Future[StatusMap] = loop.create_future()
    batch_items = tuple(items)

    def start() -> BatchSession:
        holder: list[BatchSession] = []
        settled_during_begin = False

        def on_settled() -> None:
            nonlocal settled_during_begin
            if not holder:
                # Precheck settled inside begin_batch; report after it returns.
                settled_during_begin = True
                return
            statuses = coordinator.current_statuses(holder[0])
            # Settlement happens on the dispatcher context.
            loop.call_soon_threadsafe(_set_outcome_once, result_future, statuses)

        session = coordinator.begin_batch(batch_items, on_settled)
        holder.append(session)
        if settled_during_begin:
            statuses = coordinator.current_statuses(session)
            loop.call_soon_threadsafe(_set_outcome_once, result_future, statuses)
        elif on_started is not None:
            on_started(session)
        return session

    start_raw_future: Future[BatchSession] = dispatcher.submit(start)
    start_future: asyncio.Future[BatchSession] = asyncio.wrap_future(start_raw_future)

    def end_when_started(done: Future[BatchSession]) -> None:
        if done.cancelled() or done.exception() is not None:
            return
        session = done.result()
        dispatcher.submit_noresult(lambda: coordinator.end_session(session))

    try:
        # Keep the start future alive on cancel so a late start can still be ended.
        await asyncio.shield(start_future)
        return await result_future
    except asyncio.CancelledError:
        result_future.cancel()
        start_raw_future.add_done_callback(end_when_started)
        raise


__all__ = ["StatusMap", "request_batch"]
