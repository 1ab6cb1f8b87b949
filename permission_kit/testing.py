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
"""Test doubles for hosts and adapters.

``FakePlatform`` stands in for an OS authorization API: tests decide when the
"user" answers a prompt and what the answer is. The dispatcher and scheduler
doubles make the coordinator's threading deterministic.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Mapping
from concurrent.futures import Future
from typing import Any

from permission_kit.core.handler import PlatformPermissionHandler
from permission_kit.core.native_status import IDENTITY_TABLE, StatusTable
from permission_kit.core.status import AuthorizationStatus
from permission_kit.core.telemetry import TelemetryEvent


class FakePlatform:
    """Scriptable ``PlatformAuthorization``."""

    def __init__(self, native: object = AuthorizationStatus.NOT_DETERMINED) -> None:
        self.native = native
        self.read_calls = 0
        self.request_calls = 0
        self.fail_reads = False
        self.fail_requests = False
        self._pending: list[Callable[[], None]] = []
        self._completed: list[Callable[[], None]] = []

    @property
    def pending_requests(self) -> int:
        return len(self._pending)

    def read_status(self) -> object:
        self.read_calls += 1
        if self.fail_reads:
            raise RuntimeError("native status unavailable")
        return self.native

    def request(self, on_complete: Callable[[], None]) -> None:
        self.request_calls += 1
        if self.fail_requests:
            raise RuntimeError("authorization request failed")
        self._pending.append(on_complete)

    def respond(self, native: object) -> None:
        """The user answers every open prompt with ``native``."""
        self.native = native
        pending = list(self._pending)
        self._pending.clear()
        self._completed.extend(pending)
        for on_complete in pending:
            on_complete()

    def redeliver(self) -> None:
        """Fire already-delivered completions again, as a misbehaving OS might."""
        for on_complete in list(self._completed):
            on_complete()


class WatchingFakePlatform(FakePlatform):
    """FakePlatform that also pushes changes through a delegate-style watch."""

    def __init__(self, native: object = AuthorizationStatus.NOT_DETERMINED) -> None:
        super().__init__(native)
        self.watch_installs = 0
        self.watch_stops = 0
        self._watchers: list[Callable[[object], None]] = []

    def watch(self, listener: Callable[[object], None]) -> Callable[[], None]:
        self.watch_installs += 1
        self._watchers.append(listener)

        def stop() -> None:
            self.watch_stops += 1
            if listener in self._watchers:
                self._watchers.remove(listener)

        return stop

    def change(self, native: object) -> None:
        """Platform-side change delivered without a pending request."""
        self.native = native
        for listener in list(self._watchers):
            listener(native)


class FakeHandlerFactory:
    """HandlerFactory building ``PlatformPermissionHandler``s over FakePlatforms.

    ``initial`` maps kind -> starting native value. Kinds missing from it start
    as ``notDetermined``.
    """

    def __init__(
        self,
        initial: Mapping[Hashable, object] | None = None,
        *,
        status_table: StatusTable = IDENTITY_TABLE,
        platform_type: type[FakePlatform] = FakePlatform,
    ) -> None:
        self._initial = dict(initial or {})
        self._status_table = status_table
        self._platform_type = platform_type
        self.platforms: dict[Hashable, FakePlatform] = {}
        self.build_calls: list[Hashable] = []

    def __call__(self, kind: Hashable) -> PlatformPermissionHandler:
        self.build_calls.append(kind)
        platform = self._platform_type(
            self._initial.get(kind, AuthorizationStatus.NOT_DETERMINED)
        )
        self.platforms[kind] = platform
        return PlatformPermissionHandler(
            kind, platform, status_table=self._status_table
        )

    def factories(self, *kinds: Hashable) -> dict[Hashable, FakeHandlerFactory]:
        return {kind: self for kind in kinds}


class ImmediateDispatcher:
    """WorkDispatcher that runs work inline on the calling thread."""

    def submit(self, fn: Callable[[], Any]) -> Future[Any]:
        future: Future[Any] = Future()
        try:
            future.set_result(fn())
        except Exception as exc:
            future.set_exception(exc)
        return future

    def submit_noresult(self, fn: Callable[[], None]) -> None:
        fn()


class ManualDispatcher:
    """WorkDispatcher whose queue only runs when the test says so."""

    def __init__(self) -> None:
        self._submitted: list[tuple[Callable[[], Any], Future[Any]]] = []

    @property
    def pending(self) -> int:
        return len(self._submitted)

    def submit(self, fn: Callable[[], Any]) -> Future[Any]:
        future: Future[Any] = Future()
        self._submitted.append((fn, future))
        return future

    def submit_noresult(self, fn: Callable[[], None]) -> None:
        self.submit(fn)

    def run_all(self) -> None:
        while self._submitted:
            fn, future = self._submitted.pop(0)
            if future.cancelled():
                continue
            try:
                future.set_result(fn())
            except Exception as exc:
                future.set_exception(exc)


class ManualScheduler:
    """DelayScheduler that records timers until ``fire_all`` is called."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self._callbacks: list[Callable[[], None]] = []

    @property
    def pending(self) -> int:
        return len(self._callbacks)

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> None:
        self.delays.append(delay_s)
        self._callbacks.append(fn)

    def fire_all(self) -> None:
        callbacks = list(self._callbacks)
        self._callbacks.clear()
        for fn in callbacks:
            fn()


class RecordingTelemetry:
    def __init__(self) -> None:
        self.events: list[TelemetryEvent] = []

    def emit(self, event: TelemetryEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: str) -> list[TelemetryEvent]:
        return [event for event in self.events if event.kind == kind]


__all__ = [
    "FakeHandlerFactory",
    "FakePlatform",
    "ImmediateDispatcher",
    "ManualDispatcher",
    "ManualScheduler",
    "RecordingTelemetry",
    "WatchingFakePlatform",
]
