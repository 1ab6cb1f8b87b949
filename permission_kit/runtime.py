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
from collections.abc import Callable, Hashable, Iterable, Mapping
from typing import Any, cast

from permission_kit.batch.awaitable import StatusMap, request_batch
from permission_kit.batch.coordinator import BatchCoordinator, BatchSession
from permission_kit.batch.registry import HandlerFactory, HandlerRegistry
from permission_kit.config import RuntimeConfig
from permission_kit.core.dispatcher import DelayScheduler
from permission_kit.core.extensions import load_factory, require_methods
from permission_kit.core.items import PermissionRequestItem
from permission_kit.core.telemetry import NullTelemetry, Telemetry
from permission_kit.execution.schedulers import (
    AsyncioLoopScheduler,
    ThreadingTimerScheduler,
)
from permission_kit.execution.serial_dispatcher import (
    AsyncioLoopDispatcher,
    SerialDispatcher,
)

logger = logging.getLogger(__name__)

_REQUIRED_TELEMETRY_METHODS: tuple[str, ...] = ("emit",)


class PermissionRuntime:
    """Owns one registry/coordinator pair and the context they run on.

    With ``loop`` the coordinator runs on that asyncio loop. Without it the
    host drives ``dispatcher.drain()`` from its own main thread.
    """

    def __init__(
        self,
        config: RuntimeConfig | None = None,
        *,
        factories: Mapping[Hashable, HandlerFactory] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        scheduler: DelayScheduler | None = None,
        telemetry: Telemetry | None = None,
    ) -> None:
        self._config = config if config is not None else RuntimeConfig()
        self._shutting_down = False

        if loop is not None:
            self._dispatcher: SerialDispatcher = AsyncioLoopDispatcher(loop)
            default_scheduler: DelayScheduler = AsyncioLoopScheduler(loop)
        else:
            self._dispatcher = SerialDispatcher()
            default_scheduler = ThreadingTimerScheduler()

        self._registry = HandlerRegistry(self._build_factories(factories))
        self._coordinator = BatchCoordinator(
            self._registry,
            dispatcher=self._dispatcher,
            scheduler=scheduler if scheduler is not None else default_scheduler,
            debounce=self._config.debounce,
            telemetry=telemetry if telemetry is not None else self._build_telemetry(),
        )

    @property
    def config(self) -> RuntimeConfig:
        return self._config

    @property
    def dispatcher(self) -> SerialDispatcher:
        return self._dispatcher

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    @property
    def coordinator(self) -> BatchCoordinator:
        return self._coordinator

    async def request(
        self,
        items: Iterable[PermissionRequestItem],
        *,
        on_started: Callable[[BatchSession], None] | None = None,
    ) -> StatusMap:
        if self._shutting_down:
            raise RuntimeError("Permission runtime is shut down.")
        return await request_batch(
            self._coordinator, self._dispatcher, items, on_started=on_started
        )

    def shutdown(self) -> None:
        """Abandon active sessions, close handlers and stop the dispatcher.

        Call from the dispatcher context.
        """
        if self._shutting_down:
            return
        self._shutting_down = True
        for session in self._coordinator.active_sessions():
            self._coordinator.end_session(session)
        self._registry.shutdown()
        self._dispatcher.shutdown()

    def _build_factories(
        self, factories: Mapping[Hashable, HandlerFactory] | None
    ) -> dict[Hashable, HandlerFactory]:
        merged: dict[Hashable, HandlerFactory] = dict(factories or {})
        for kind, path in self._config.handler_factories.items():
            if kind in merged:
                logger.info(
                    "Configured handler factory %s overrides in-code factory for kind=%s",
                    path,
                    kind.value,
                )
            merged[kind] = cast(HandlerFactory, load_factory(path))
            logger.info("Loaded handler factory for kind=%s: %s", kind.value, path)
        return merged

    def _build_telemetry(self) -> Telemetry:
        factory_path = self._config.telemetry_factory
        if not factory_path:
            return NullTelemetry()
        factory: Any = load_factory(factory_path)
        created = factory(config=self._config)
        require_methods(created, _REQUIRED_TELEMETRY_METHODS, role="Telemetry")
        logger.info("Loaded custom telemetry: %s", factory_path)
        return cast(Telemetry, created)


__all__ = ["PermissionRuntime"]
