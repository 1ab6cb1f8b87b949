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
import threading
from typing import Callable


class ThreadingTimerScheduler:
    """DelayScheduler backed by daemon ``threading.Timer`` threads."""

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> None:
        timer = threading.Timer(max(delay_s, 0.0), fn)
        timer.daemon = True
        timer.start()


class AsyncioLoopScheduler:
    """DelayScheduler that runs callbacks on an asyncio loop's timer heap."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> None:
        delay = max(delay_s, 0.0)
        self._loop.call_soon_threadsafe(self._loop.call_later, delay, fn)


__all__ = ["AsyncioLoopScheduler", "ThreadingTimerScheduler"]
