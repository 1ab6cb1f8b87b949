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
"""Permission handler contract and the generic platform-backed handler.

A handler owns exactly one permission kind. It caches the last status it read
from the platform, asks the platform to prompt the user, and publishes status
changes to subscribers. Handlers never raise across this contract: native
read failures become ``notDetermined`` and request failures become ``denied``
so that a batch waiting on them can still converge.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable
from threading import Lock
from typing import Protocol

from permission_kit.core.native_status import (
    StatusTable,
    status_table_for,
    translate_native_status,
)
from permission_kit.core.status import AuthorizationStatus

logger = logging.getLogger(__name__)

ResolutionCallback = Callable[[AuthorizationStatus], None]
StatusListener = Callable[[Hashable, AuthorizationStatus], None]
Unsubscribe = Callable[[], None]


class PermissionHandler(Protocol):
    @property
    def kind(self) -> Hashable: ...

    def status(self) -> AuthorizationStatus: ...

    def request_access(self, on_resolved: ResolutionCallback) -> None: ...

    def subscribe(self, listener: StatusListener) -> Unsubscribe: ...

    def close(self) -> None: ...


class PlatformAuthorization(Protocol):
    """The thin OS-facing adapter for one kind.

    ``request`` shows the system prompt and calls ``on_complete`` (from any
    thread) once the platform has an answer. Adapters whose platform pushes
    changes through a delegate may also expose
    ``watch(listener) -> stop`` where ``listener`` receives native codes.
    """

    def read_status(self) -> object: ...

    def request(self, on_complete: Callable[[], None]) -> None: ...


class PlatformPermissionHandler:
    """PermissionHandler backed by a ``PlatformAuthorization`` adapter."""

    def __init__(
        self,
        kind: Hashable,
        platform: PlatformAuthorization,
        *,
        status_table: StatusTable | None = None,
    ) -> None:
        self._kind = kind
        self._platform = platform
        self._status_table = (
            status_table if status_table is not None else status_table_for(kind)
        )
        self._lock = Lock()
        self._status = AuthorizationStatus.NOT_DETERMINED
        self._listeners: list[StatusListener] = []
        self._closed = False
        self._stop_watching = self._install_watch()
        self.refresh()

    @property
    def kind(self) -> Hashable:
        return self._kind

    def status(self) -> AuthorizationStatus:
        return self._status

    def refresh(self) -> AuthorizationStatus:
        try:
            native = self._platform.read_status()
        except Exception as exc:
            logger.warning(
                "Failed reading native status for kind=%s: %s",
                self._kind,
                exc,
                exc_info=True,
            )
            status = AuthorizationStatus.NOT_DETERMINED
        else:
            status = translate_native_status(self._status_table, native)
        return self._apply(status)

    def request_access(self, on_resolved: ResolutionCallback) -> None:
        current = self._status
        if current.is_terminal:
            on_resolved(current)
            return

        resolved = False
        resolved_lock = Lock()

        def resolve_once(status: AuthorizationStatus) -> None:
            nonlocal resolved
            with resolved_lock:
                if resolved:
                    logger.debug(
                        "Ignoring repeated platform completion for kind=%s",
                        self._kind,
                    )
                    return
                resolved = True
            on_resolved(status)

        def on_complete() -> None:
            resolve_once(self.refresh())

        try:
            self._platform.request(on_complete)
        except Exception as exc:
            logger.warning(
                "Permission request failed for kind=%s; treating as denied: %s",
                self._kind,
                exc,
                exc_info=True,
            )
            resolve_once(self._apply(AuthorizationStatus.DENIED))

    def subscribe(self, listener: StatusListener) -> Unsubscribe:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                try:
                    self._listeners.remove(listener)
                except ValueError:
                    pass

        return unsubscribe

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._listeners.clear()
            stop = self._stop_watching
            self._stop_watching = None
        if stop is None:
            return
        try:
            stop()
        except Exception:
            logger.debug(
                "Failed stopping platform watch for kind=%s", self._kind, exc_info=True
            )

    def _install_watch(self) -> Unsubscribe | None:
        watch = getattr(self._platform, "watch", None)
        if not callable(watch):
            return None

        def on_native_change(native: object) -> None:
            self._apply(translate_native_status(self._status_table, native))

        try:
            return watch(on_native_change)
        except Exception:
            logger.warning(
                "Failed installing platform watch for kind=%s",
                self._kind,
                exc_info=True,
            )
            return None

    def _apply(self, status: AuthorizationStatus) -> AuthorizationStatus:
        with self._lock:
            previous = self._status
            if previous.is_terminal and not status.is_terminal:
                # A decision is never undone within a request cycle.
                return previous
            if previous is status:
                return previous
            self._status = status
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(self._kind, status)
            except Exception:
                logger.warning(
                    "Status listener failed for kind=%s", self._kind, exc_info=True
                )
        return status


__all__ = [
    "PermissionHandler",
    "PlatformAuthorization",
    "PlatformPermissionHandler",
    "ResolutionCallback",
    "StatusListener",
    "Unsubscribe",
]
