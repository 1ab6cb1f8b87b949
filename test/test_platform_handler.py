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

from collections.abc import Hashable

from permission_kit.core.handler import PlatformPermissionHandler
from permission_kit.core.native_status import IDENTITY_TABLE
from permission_kit.core.status import AuthorizationStatus, PermissionKind
from permission_kit.testing import FakePlatform, WatchingFakePlatform

GRANTED = AuthorizationStatus.GRANTED
DENIED = AuthorizationStatus.DENIED
NOT_DETERMINED = AuthorizationStatus.NOT_DETERMINED


def _handler(
    platform: FakePlatform, kind: Hashable = PermissionKind.CAMERA
) -> PlatformPermissionHandler:
    return PlatformPermissionHandler(kind, platform, status_table=IDENTITY_TABLE)


def test_handler_reads_platform_status_on_construction() -> None:
    platform = FakePlatform(GRANTED)
    handler = _handler(platform)

    assert platform.read_calls == 1
    assert handler.status() is GRANTED
    assert handler.kind is PermissionKind.CAMERA


def test_handler_uses_native_table_for_its_kind_by_default() -> None:
    platform = FakePlatform("authorizedWhenInUse")
    handler = PlatformPermissionHandler(PermissionKind.LOCATION, platform)

    assert handler.status() is GRANTED


def test_native_read_failure_degrades_to_not_determined() -> None:
    platform = FakePlatform(GRANTED)
    platform.fail_reads = True

    handler = _handler(platform)

    assert handler.status() is NOT_DETERMINED


def test_request_prompts_and_resolves_after_platform_answer() -> None:
    platform = FakePlatform()
    handler = _handler(platform)
    resolved: list[AuthorizationStatus] = []

    handler.request_access(resolved.append)

    assert platform.request_calls == 1
    assert resolved == []

    platform.respond(DENIED)

    assert resolved == [DENIED]
    assert handler.status() is DENIED


def test_request_on_terminal_status_resolves_immediately_without_prompt() -> None:
    platform = FakePlatform(GRANTED)
    handler = _handler(platform)
    resolved: list[AuthorizationStatus] = []

    handler.request_access(resolved.append)

    assert resolved == [GRANTED]
    assert platform.request_calls == 0


def test_request_failure_resolves_as_denied() -> None:
    platform = FakePlatform()
    platform.fail_requests = True
    handler = _handler(platform)
    resolved: list[AuthorizationStatus] = []

    handler.request_access(resolved.append)

    assert resolved == [DENIED]
    assert handler.status() is DENIED


def test_duplicate_platform_completion_resolves_once() -> None:
    platform = FakePlatform()
    handler = _handler(platform)
    resolved: list[AuthorizationStatus] = []

    handler.request_access(resolved.append)
    platform.respond(GRANTED)
    platform.redeliver()

    assert resolved == [GRANTED]


def test_terminal_status_never_reverts_to_not_determined() -> None:
    platform = FakePlatform()
    handler = _handler(platform)
    handler.request_access(lambda status: None)
    platform.respond(GRANTED)

    platform.fail_reads = True
    assert handler.refresh() is GRANTED

    platform.fail_reads = False
    platform.native = NOT_DETERMINED
    assert handler.refresh() is GRANTED


def test_subscribers_receive_changes_until_unsubscribed() -> None:
    platform = FakePlatform()
    handler = _handler(platform)
    seen: list[tuple[Hashable, AuthorizationStatus]] = []

    unsubscribe = handler.subscribe(lambda kind, status: seen.append((kind, status)))
    handler.request_access(lambda status: None)
    platform.respond(GRANTED)
    unsubscribe()
    unsubscribe()
    platform.native = DENIED
    handler.refresh()

    assert seen == [(PermissionKind.CAMERA, GRANTED)]


def test_failing_subscriber_does_not_break_other_subscribers() -> None:
    platform = FakePlatform()
    handler = _handler(platform)
    seen: list[AuthorizationStatus] = []

    def _boom(kind: Hashable, status: AuthorizationStatus) -> None:
        raise RuntimeError("boom")

    handler.subscribe(_boom)
    handler.subscribe(lambda kind, status: seen.append(status))
    platform.native = DENIED
    handler.refresh()

    assert seen == [DENIED]


def test_watch_is_installed_once_and_stopped_on_close() -> None:
    platform = WatchingFakePlatform()
    handler = _handler(platform, PermissionKind.LOCATION)
    seen: list[AuthorizationStatus] = []
    handler.subscribe(lambda kind, status: seen.append(status))

    platform.change(GRANTED)
    handler.close()
    handler.close()

    assert platform.watch_installs == 1
    assert platform.watch_stops == 1
    assert seen == [GRANTED]
    assert handler.status() is GRANTED
