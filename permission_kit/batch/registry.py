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

import logging
from collections.abc import Callable, Hashable, Iterable, Mapping

from permission_kit.core.extensions import require_methods
from permission_kit.core.handler import PermissionHandler

logger = logging.getLogger(__name__)

HandlerFactory = Callable[[Hashable], PermissionHandler]

_REQUIRED_HANDLER_METHODS: tuple[str, ...] = (
    "status",
    "request_access",
    "subscribe",
    "close",
)


class HandlerRegistry:
    """Registry of permission handlers keyed by permission kind.

    Public role: own handler lookup/create/reuse/close. Handlers are only built
    for kinds a batch actually asks for, because several of them install
    long-lived platform observers that must exist at most once per process.
    Not thread-safe; use it from the coordinator's dispatcher context.
    """

    def __init__(self, factories: Mapping[Hashable, HandlerFactory] | None = None) -> None:
        self._factories: dict[Hashable, HandlerFactory] = dict(factories or {})
        self._handlers: dict[Hashable, PermissionHandler] = {}

    def register_factory(self, kind: Hashable, factory: HandlerFactory) -> None:
        if kind in self._factories:
            logger.info("Replacing handler factory for kind=%s", kind)
        self._factories[kind] = factory

    def supported_kinds(self) -> frozenset[Hashable]:
        return frozenset(self._factories) | frozenset(self._handlers)

    def register_handler(self, handler: PermissionHandler) -> bool:
        """Adopt an already-built handler. Returns False if the kind is taken."""
        kind = handler.kind
        if kind in self._handlers:
            return False
        self._handlers[kind] = handler
        logger.info("Registered permission handler for kind=%s", kind)
        return True

    def ensure_registered(self, kinds: Iterable[Hashable]) -> None:
        for kind in kinds:
            if kind in self._handlers:
                continue

            factory = self._factories.get(kind)
            if factory is None:
                logger.warning("No handler factory for permission kind=%s", kind)
                continue

            try:
                handler = factory(kind)
                require_methods(
                    handler, _REQUIRED_HANDLER_METHODS, role="Permission handler"
                )
            except Exception as exc:
                logger.warning(
                    "Failed creating permission handler for kind=%s: %s",
                    kind,
                    exc,
                    exc_info=True,
                )
                continue

            if handler.kind != kind:
                logger.warning(
                    "Handler factory for kind=%s built a handler for kind=%s",
                    kind,
                    handler.kind,
                )
            self._handlers[kind] = handler
            logger.info("Registered permission handler for kind=%s", kind)

    def get(self, kind: Hashable) -> PermissionHandler | None:
        return self._handlers.get(kind)

    def is_registered(self, kind: Hashable) -> bool:
        return kind in self._handlers

    def registered_kinds(self) -> frozenset[Hashable]:
        return frozenset(self._handlers)

    def unregister(self, kind: Hashable) -> bool:
        handler = self._handlers.pop(kind, None)
        if handler is None:
            return False
        self._close_handler(kind, handler)
        logger.info("Unregistered permission handler for kind=%s", kind)
        return True

    def shutdown(self) -> None:
        handlers = list(self._handlers.items())
        self._handlers.clear()
        for kind, handler in handlers:
            self._close_handler(kind, handler)

    def _close_handler(self, kind: Hashable, handler: PermissionHandler) -> None:
        try:
            handler.close()
        except Exception as exc:
            logger.warning(
                "Failed closing permission handler for kind=%s: %s",
                kind,
                exc,
                exc_info=True,
            )


__all__ = ["HandlerFactory", "HandlerRegistry"]
