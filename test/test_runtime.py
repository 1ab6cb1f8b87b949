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
import sys
import types

import pytest

from permission_kit.batch.coordinator import BatchSession
from permission_kit.config import RuntimeConfig
from permission_kit.core.items import PermissionRequestItem
from permission_kit.core.status import AuthorizationStatus, PermissionKind
from permission_kit.execution import serial_dispatcher as serial_dispatcher_module
from permission_kit.execution.serial_dispatcher import AsyncioLoopDispatcher
from permission_kit.runtime import PermissionRuntime
from permission_kit.testing import (
    FakeHandlerFactory,
    ManualScheduler,
    RecordingTelemetry,
    WatchingFakePlatform,
)

CAMERA = PermissionKind.CAMERA
LOCATION = PermissionKind.LOCATION


@pytest.fixture
def adapters_module(monkeypatch: pytest.MonkeyPatch) -> types.ModuleType:
    module = types.ModuleType("fake_permission_adapters")
    module.camera_factory = FakeHandlerFactory({CAMERA: AuthorizationStatus.GRANTED})  # type: ignore[attr-defined]
    module.telemetry = RecordingTelemetry()  # type: ignore[attr-defined]
    module.telemetry_configs = []  # type: ignore[attr-defined]

    def build_telemetry(*, config: RuntimeConfig) -> RecordingTelemetry:
        module.telemetry_configs.append(config)  # type: ignore[attr-defined]
        return module.telemetry  # type: ignore[attr-defined,no-any-return]

    def build_broken_telemetry(*, config: RuntimeConfig) -> object:
        del config
        return object()

    module.build_telemetry = build_telemetry  # type: ignore[attr-defined]
    module.build_broken_telemetry = build_broken_telemetry  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "fake_permission_adapters", module)
    return module


def test_configured_factories_and_telemetry_are_loaded(
    adapters_module: types.ModuleType,
) -> None:
    config = RuntimeConfig(
        debounce_ms=0,
        handler_factories={CAMERA: "fake_permission_adapters:camera_factory"},
        telemetry_factory="fake_permission_adapters:build_telemetry",
    )
    runtime = PermissionRuntime(config, scheduler=ManualScheduler())
    settled: list[str] = []

    session = runtime.coordinator.begin_batch(
        [PermissionRequestItem(CAMERA)], lambda: settled.append("done")
    )

    assert settled == ["done"]
    assert runtime.coordinator.current_statuses(session) == {
        CAMERA: AuthorizationStatus.GRANTED
    }
    assert adapters_module.camera_factory.build_calls == [CAMERA]
    assert adapters_module.telemetry_configs == [config]
    assert len(adapters_module.telemetry.of_kind("batch_settled")) == 1


def test_configured_factory_overrides_in_code_factory(
    adapters_module: types.ModuleType,
) -> None:
    in_code = FakeHandlerFactory()
    config = RuntimeConfig(
        handler_factories={CAMERA: "fake_permission_adapters:camera_factory"}
    )

    runtime = PermissionRuntime(config, factories=in_code.factories(CAMERA, LOCATION))
    runtime.registry.ensure_registered([CAMERA, LOCATION])

    assert adapters_module.camera_factory.build_calls == [CAMERA]
    assert in_code.build_calls == [LOCATION]


def test_telemetry_factory_must_build_an_emitter(
    adapters_module: types.ModuleType,
) -> None:
    del adapters_module
    config = RuntimeConfig(
        telemetry_factory="fake_permission_adapters:build_broken_telemetry"
    )

    with pytest.raises(TypeError, match="missing required methods: emit"):
        PermissionRuntime(config)


def test_unknown_factory_path_fails_fast() -> None:
    config = RuntimeConfig(handler_factories={CAMERA: "fake_permission_adapters_missing:build"})

    with pytest.raises(ImportError):
        PermissionRuntime(config)


def test_shutdown_ends_sessions_and_closes_handlers() -> None:
    factory = FakeHandlerFactory(platform_type=WatchingFakePlatform)
    runtime = PermissionRuntime(
        factories=factory.factories(LOCATION), scheduler=ManualScheduler()
    )
    settled: list[str] = []
    session = runtime.coordinator.begin_batch(
        [PermissionRequestItem(LOCATION)], lambda: settled.append("done")
    )

    runtime.shutdown()
    runtime.shutdown()

    platform = factory.platforms[LOCATION]
    assert isinstance(platform, WatchingFakePlatform)
    assert session.is_active is False
    assert settled == []
    assert runtime.coordinator.active_sessions() == ()
    assert platform.watch_stops == 1
    with pytest.raises(RuntimeError, match="Permission dispatcher is shut down"):
        runtime.dispatcher.submit(lambda: None).result()


@pytest.mark.asyncio
async def test_request_round_trip_on_asyncio_loop() -> None:
    loop = asyncio.get_running_loop()
    factory = FakeHandlerFactory()
    runtime = PermissionRuntime(
        RuntimeConfig(debounce_ms=10),
        factories=factory.factories(CAMERA, LOCATION),
        loop=loop,
    )

    def on_started(session: BatchSession) -> None:
        for kind in session.kinds:
            runtime.coordinator.request_access(session, kind)
        loop.call_soon(factory.platforms[CAMERA].respond, AuthorizationStatus.GRANTED)
        loop.call_soon(factory.platforms[LOCATION].respond, AuthorizationStatus.LIMITED)

    result = await asyncio.wait_for(
        runtime.request(
            [PermissionRequestItem(CAMERA), PermissionRequestItem(LOCATION)],
            on_started=on_started,
        ),
        timeout=5,
    )

    assert isinstance(runtime.dispatcher, AsyncioLoopDispatcher)
    assert result == {
        CAMERA: AuthorizationStatus.GRANTED,
        LOCATION: AuthorizationStatus.LIMITED,
    }

    runtime.shutdown()
    with pytest.raises(RuntimeError, match="Permission runtime is shut down"):
        await runtime.request([PermissionRequestItem(CAMERA)])


def test_settle_timer_firing_after_shutdown_is_not_an_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    factory = FakeHandlerFactory()
    scheduler = ManualScheduler()
    runtime = PermissionRuntime(factories=factory.factories(CAMERA), scheduler=scheduler)
    error_calls: list[str] = []
    monkeypatch.setattr(
        serial_dispatcher_module.logger,
        "error",
        lambda message, *args, **kwargs: error_calls.append(message),
    )

    session = runtime.coordinator.begin_batch([PermissionRequestItem(CAMERA)], lambda: None)
    runtime.coordinator.request_access(session, CAMERA)
    factory.platforms[CAMERA].respond(AuthorizationStatus.GRANTED)
    runtime.dispatcher.drain()
    assert scheduler.pending > 0

    runtime.shutdown()
    scheduler.fire_all()

    assert error_calls == []
    assert session.is_settled is False
