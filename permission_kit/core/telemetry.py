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
from dataclasses import dataclass, field
from typing import Literal, Protocol

from permission_kit.core.status import AuthorizationStatus


@dataclass(frozen=True)
class BatchStartedTelemetryEvent:
    kind: Literal["batch_started"] = field(default="batch_started", init=False)
    session_id: str
    item_count: int
    undetermined_count: int


@dataclass(frozen=True)
class BatchSettledTelemetryEvent:
    kind: Literal["batch_settled"] = field(default="batch_settled", init=False)
    session_id: str
    statuses: dict[Hashable, AuthorizationStatus]
    elapsed_ms: int
    prompted: bool


@dataclass(frozen=True)
class HandlerResolvedTelemetryEvent:
    kind: Literal["handler_resolved"] = field(default="handler_resolved", init=False)
    session_id: str
    permission: Hashable
    status: AuthorizationStatus


@dataclass(frozen=True)
class UnsupportedKindTelemetryEvent:
    kind: Literal["unsupported_kind"] = field(default="unsupported_kind", init=False)
    session_id: str
    permission: Hashable


@dataclass(frozen=True)
class AdapterFailureTelemetryEvent:
    kind: Literal["adapter_failure"] = field(default="adapter_failure", init=False)
    session_id: str
    permission: Hashable
    operation: str
    reason: str  # stable for logs/metrics; not a user-facing contract


TelemetryEvent = (
    BatchStartedTelemetryEvent
    | BatchSettledTelemetryEvent
    | HandlerResolvedTelemetryEvent
    | UnsupportedKindTelemetryEvent
    | AdapterFailureTelemetryEvent
)


class Telemetry(Protocol):
    def emit(self, event: TelemetryEvent) -> None: ...


class NullTelemetry:
    def emit(self, event: TelemetryEvent) -> None:
        del event
        return None


__all__ = [
    "AdapterFailureTelemetryEvent",
    "BatchSettledTelemetryEvent",
    "BatchStartedTelemetryEvent",
    "HandlerResolvedTelemetryEvent",
    "NullTelemetry",
    "Telemetry",
    "TelemetryEvent",
    "UnsupportedKindTelemetryEvent",
]
