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

from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Protocol, TypeVar

T = TypeVar("T")

DEFAULT_SETTLE_DELAY_MS = 200


class WorkDispatcher(Protocol):
    """Submit synchronous callables onto the coordinator's execution context.

    Platform callbacks arrive on arbitrary threads; everything that touches
    registry or session state is funnelled through one dispatcher so those
    structures are only ever mutated from a single context.
    """

    def submit(self, fn: Callable[[], T]) -> Future[T]: ...
    def submit_noresult(self, fn: Callable[[], None]) -> None: ...


class DelayScheduler(Protocol):
    """Run ``fn`` once after ``delay_s`` seconds, on any thread."""

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> None: ...


@dataclass(frozen=True)
class DebouncePolicy:
    """Delay between a resolution event and the aggregate settled check.

    A status read immediately after the platform reports a decision can race
    the platform's own bookkeeping, so the coordinator waits briefly and then
    rescans every item in the batch.
    """

    delay_ms: int = DEFAULT_SETTLE_DELAY_MS

    def __post_init__(self) -> None:
        if self.delay_ms < 0:
            raise ValueError("Debounce delay must be >= 0 ms.")

    @classmethod
    def immediate(cls) -> DebouncePolicy:
        return cls(delay_ms=0)

    @property
    def delay_s(self) -> float:
        return self.delay_ms / 1000.0

    @property
    def is_immediate(self) -> bool:
        return self.delay_ms == 0


__all__ = [
    "DEFAULT_SETTLE_DELAY_MS",
    "DebouncePolicy",
    "DelayScheduler",
    "WorkDispatcher",
]
