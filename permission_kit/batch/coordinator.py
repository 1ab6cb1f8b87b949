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
"""Batch permission coordinator.

One ``BatchSession`` tracks a caller-defined set of permission kinds. The
session settles exactly once: the first time a full rescan of its items finds
no ``notDetermined`` status. Rescans are triggered by the precheck in
``begin_batch`` and, after a debounce delay, by every resolution event a
handler delivers. A rescan is idempotent, so duplicate or late resolution
events are harmless.

Threading: every public method must be called on the dispatcher context.
Handler callbacks may arrive on any thread and are resubmitted onto that
context before they touch session state.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Hashable, Iterable

from permission_kit.batch.registry import HandlerRegistry
from permission_kit.core.dispatcher import DebouncePolicy, DelayScheduler, WorkDispatcher
from permission_kit.core.handler import PermissionHandler, Unsubscribe
from permission_kit.core.items import PermissionRequestItem
from permission_kit.core.status import AuthorizationStatus, is_settled
from permission_kit.core.telemetry import (
    AdapterFailureTelemetryEvent,
    BatchSettledTelemetryEvent,
    BatchStartedTelemetryEvent,
    HandlerResolvedTelemetryEvent,
    NullTelemetry,
    Telemetry,
    UnsupportedKindTelemetryEvent,
)
from permission_kit.execution.schedulers import ThreadingTimerScheduler

logger = logging.getLogger(__name__)

SettledCallback = Callable[[], None]


class BatchSession:
    """State of one in-flight batch request."""

    def __init__(
        self,
        session_id: str,
        items: tuple[PermissionRequestItem, ...],
        on_settled: SettledCallback,
        started_at: float,
    ) -> None:
        self.session_id = session_id
        self.items = items
        self.started_at = started_at
        self._on_settled: SettledCallback | None = on_settled
        self._kinds = tuple(dict.fromkeys(item.kind for item in items))
        self._handlers: dict[Hashable, PermissionHandler] = {}
        # Statuses pinned by the coordinator itself (unsupported or broken adapters).
        self._pinned: dict[Hashable, AuthorizationStatus] = {}
        self._unsubscribes: list[Unsubscribe] = []
        self._settled = False
        self._ended = False
        self._prompted = False

    @property
    def kinds(self) -> tuple[Hashable, ...]:
        return self._kinds

    @property
    def is_settled(self) -> bool:
        return self._settled

    @property
    def is_active(self) -> bool:
        return not (self._settled or self._ended)

    @property
    def unsupported_kinds(self) -> frozenset[Hashable]:
        return frozenset(
            kind for kind in self._kinds if kind not in self._handlers
        )

    @property
    def prompted(self) -> bool:
        return self._prompted

    def handler(self, kind: Hashable) -> PermissionHandler | None:
        return self._handlers.get(kind)

    def pinned_status(self, kind: Hashable) -> AuthorizationStatus | None:
        return self._pinned.get(kind)

    def bind_handler(self, kind: Hashable, handler: PermissionHandler) -> None:
        self._handlers[kind] = handler

    def pin(self, kind: Hashable, status: AuthorizationStatus) -> None:
        self._pinned[kind] = status

    def mark_prompted(self) -> None:
        self._prompted = True

    def add_unsubscribe(self, unsubscribe: Unsubscribe) -> None:
        self._unsubscribes.append(unsubscribe)

    def take_unsubscribes(self) -> list[Unsubscribe]:
        unsubscribes = list(self._unsubscribes)
        self._unsubscribes.clear()
        return unsubscribes

    def mark_settled(self) -> SettledCallback | None:
        """Flip an active session to settled; returns the callback only once."""
        if not self.is_active:
            return None
        self._settled = True
        callback = self._on_settled
        self._on_settled = None
        return callback

    def mark_ended(self) -> bool:
        """Returns False if the session was already ended."""
        if self._ended:
            return False
        self._ended = True
        self._on_settled = None
        return True

    def item_for(self, kind: Hashable) -> PermissionRequestItem | None:
        for item in self.items:
            if item.kind == kind:
                return item
        return None

    def __repr__(self) -> str:
        state = "settled" if self._settled else "ended" if self._ended else "active"
        return f"BatchSession(id={self.session_id}, kinds={list(self._kinds)}, {state})"


class BatchCoordinator:
    def __init__(
        self,
        registry: HandlerRegistry,
        *,
        dispatcher: WorkDispatcher,
        scheduler: DelayScheduler | None = None,
        debounce: DebouncePolicy | None = None,
        telemetry: Telemetry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self._debounce = debounce if debounce is not None else DebouncePolicy()
        self._scheduler = scheduler if scheduler is not None else ThreadingTimerScheduler()
        self._telemetry = telemetry if telemetry is not None else NullTelemetry()
        self._clock = clock
        self._sessions: dict[str, BatchSession] = {}

    @property
    def debounce(self) -> DebouncePolicy:
        return self._debounce

    def begin_batch(
        self, items: Iterable[PermissionRequestItem], on_settled: SettledCallback
    ) -> BatchSession:
        session = BatchSession(
            session_id=uuid.uuid4().hex,
            items=tuple(items),
            on_settled=on_settled,
            started_at=self._clock(),
        )
        self._registry.ensure_registered(session.kinds)

        for kind in session.kinds:
            handler = self._registry.get(kind)
            if handler is None:
                logger.warning(
                    "Permission kind=%s has no handler; counting it as denied "
                    "for session=%s",
                    kind,
                    session.session_id,
                )
                session.pin(kind, AuthorizationStatus.DENIED)
                self._telemetry.emit(
                    UnsupportedKindTelemetryEvent(
                        session_id=session.session_id, permission=kind
                    )
                )
                continue
            session.bind_handler(kind, handler)
            self._subscribe(session, kind, handler)

        statuses = self.current_statuses(session)
        undetermined = sum(1 for status in statuses.values() if not status.is_terminal)
        self._telemetry.emit(
            BatchStartedTelemetryEvent(
                session_id=session.session_id,
                item_count=len(session.kinds),
                undetermined_count=undetermined,
            )
        )
        logger.info(
            "Started permission batch session=%s kinds=%s undetermined=%s",
            session.session_id,
            list(session.kinds),
            undetermined,
        )

        self._sessions[session.session_id] = session
        if is_settled(statuses.values()):
            self._settle(session, statuses)
        return session

    def current_statuses(
        self, session: BatchSession
    ) -> dict[Hashable, AuthorizationStatus]:
        return {kind: self._read_status(session, kind) for kind in session.kinds}

    def handler_for(self, kind: Hashable) -> PermissionHandler | None:
        return self._registry.get(kind)

    def active_sessions(self) -> tuple[BatchSession, ...]:
        return tuple(self._sessions.values())

    def request_access(self, session: BatchSession, kind: Hashable) -> bool:
        """Trigger ``kind``'s prompt on behalf of presentation.

        Returns False when the kind is not part of an active session or has
        no handler.
        """
        if not session.is_active:
            logger.debug(
                "Ignoring request for kind=%s on inactive session=%s",
                kind,
                session.session_id,
            )
            return False
        handler = session.handler(kind)
        if handler is None:
            return False

        session.mark_prompted()

        def on_resolved(status: AuthorizationStatus) -> None:
            # May run on a platform thread.
            self._dispatcher.submit_noresult(
                lambda: self._on_resolution(session, kind, status)
            )

        try:
            handler.request_access(on_resolved)
        except Exception as exc:
            self._pin_failure(session, kind, "request_access", exc)
            self._on_resolution(session, kind, AuthorizationStatus.DENIED)
        return True

    def notify_status_changed(self, session: BatchSession, kind: Hashable) -> None:
        """Relay a status change observed outside the handler stream."""
        if kind not in session.kinds:
            return
        self._on_resolution(session, kind, self._read_status(session, kind))

    def end_session(self, session: BatchSession) -> None:
        """Release a session without settling it (presentation dismissed)."""
        if not session.mark_ended():
            return
        if not session.is_settled:
            logger.info(
                "Ending unsettled permission batch session=%s", session.session_id
            )
        self._release(session)

    def _subscribe(
        self, session: BatchSession, kind: Hashable, handler: PermissionHandler
    ) -> None:
        def on_status(changed_kind: Hashable, status: AuthorizationStatus) -> None:
            if not status.is_terminal:
                return
            self._dispatcher.submit_noresult(
                lambda: self._on_resolution(session, changed_kind, status)
            )

        try:
            session.add_unsubscribe(handler.subscribe(on_status))
        except Exception as exc:
            # Resolution callbacks from request_access still drive this kind.
            logger.warning(
                "Failed subscribing to status stream for kind=%s: %s",
                kind,
                exc,
                exc_info=True,
            )

    def _read_status(self, session: BatchSession, kind: Hashable) -> AuthorizationStatus:
        pinned = session.pinned_status(kind)
        if pinned is not None:
            return pinned
        handler = session.handler(kind)
        if handler is None:
            return AuthorizationStatus.DENIED
        try:
            return AuthorizationStatus(handler.status())
        except Exception as exc:
            self._pin_failure(session, kind, "status", exc)
            return AuthorizationStatus.DENIED

    def _pin_failure(
        self, session: BatchSession, kind: Hashable, operation: str, exc: Exception
    ) -> None:
        logger.warning(
            "Permission handler %s failed for kind=%s; counting it as denied: %s",
            operation,
            kind,
            exc,
            exc_info=True,
        )
        session.pin(kind, AuthorizationStatus.DENIED)
        self._telemetry.emit(
            AdapterFailureTelemetryEvent(
                session_id=session.session_id,
                permission=kind,
                operation=operation,
                reason=type(exc).__name__,
            )
        )

    def _on_resolution(
        self, session: BatchSession, kind: Hashable, status: AuthorizationStatus
    ) -> None:
        if not session.is_active:
            logger.debug(
                "Ignoring late resolution kind=%s status=%s for session=%s",
                kind,
                status.value,
                session.session_id,
            )
            return

        logger.debug(
            "Resolution kind=%s status=%s session=%s",
            kind,
            status.value,
            session.session_id,
        )
        self._telemetry.emit(
            HandlerResolvedTelemetryEvent(
                session_id=session.session_id, permission=kind, status=status
            )
        )
        self._schedule_settle_check(session)

    def _schedule_settle_check(self, session: BatchSession) -> None:
        if self._debounce.is_immediate:
            self._check_settled(session)
            return

        def on_timer() -> None:
            self._dispatcher.submit_noresult(lambda: self._check_settled(session))

        logger.debug(
            "Scheduling settle check for session=%s in %.3fs",
            session.session_id,
            self._debounce.delay_s,
        )
        try:
            self._scheduler.call_later(self._debounce.delay_s, on_timer)
        except Exception:
            logger.warning(
                "Failed scheduling settle check for session=%s; checking now",
                session.session_id,
                exc_info=True,
            )
            self._check_settled(session)

    def _check_settled(self, session: BatchSession) -> None:
        if not session.is_active:
            return
        statuses = self.current_statuses(session)
        if is_settled(statuses.values()):
            self._settle(session, statuses)

    def _settle(
        self, session: BatchSession, statuses: dict[Hashable, AuthorizationStatus]
    ) -> None:
        if session.is_settled:
            return
        callback = session.mark_settled()
        self._release(session)

        elapsed_ms = int((self._clock() - session.started_at) * 1000)
        logger.info(
            "Permission batch settled session=%s statuses=%s elapsed_ms=%s",
            session.session_id,
            {str(getattr(k, "value", k)): v.value for k, v in statuses.items()},
            elapsed_ms,
        )
        self._telemetry.emit(
            BatchSettledTelemetryEvent(
                session_id=session.session_id,
                statuses=dict(statuses),
                elapsed_ms=elapsed_ms,
                prompted=session.prompted,
            )
        )

        if callback is None:
            return
        try:
            callback()
        except Exception:
            logger.warning(
                "Batch settled callback failed for session=%s",
                session.session_id,
                exc_info=True,
            )

    def _release(self, session: BatchSession) -> None:
        for unsubscribe in session.take_unsubscribes():
            try:
                unsubscribe()
            except Exception:
                logger.debug(
                    "Failed releasing status subscription for session=%s",
                    session.session_id,
                    exc_info=True,
                )
        self._sessions.pop(session.session_id, None)


__all__ = ["BatchCoordinator", "BatchSession", "SettledCallback"]
