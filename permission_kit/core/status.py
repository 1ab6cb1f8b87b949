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

from collections.abc import Iterable
from enum import Enum


class AuthorizationStatus(str, Enum):
    """Platform-independent authorization state shared by every permission kind."""

    GRANTED = "granted"
    DENIED = "denied"
    LIMITED = "limited"
    NOT_DETERMINED = "notDetermined"

    @property
    def is_terminal(self) -> bool:
        return self is not AuthorizationStatus.NOT_DETERMINED


class PermissionKind(str, Enum):
    CAMERA = "camera"
    PHOTOS = "photos"
    MICROPHONE = "microphone"
    SPEECH = "speech"
    CONTACTS = "contacts"
    NOTIFICATION = "notification"
    LOCATION = "location"
    CALENDAR = "calendar"
    TRACKING = "tracking"
    REMINDER = "reminder"
    BLUETOOTH = "bluetooth"
    MUSIC = "music"
    SIRI = "siri"
    HEALTH = "health"
    MOTION = "motion"

    @classmethod
    def parse(cls, value: str | None) -> PermissionKind | None:
        token = (value or "").strip()
        if not token:
            return None
        try:
            return cls(token)
        except ValueError:
            return None

    @property
    def supports_limited(self) -> bool:
        return self in _LIMITED_CAPABLE_KINDS


_LIMITED_CAPABLE_KINDS = frozenset({PermissionKind.PHOTOS, PermissionKind.CONTACTS})


def is_settled(statuses: Iterable[AuthorizationStatus]) -> bool:
    """Completion rule: no status is still ``notDetermined``. Empty is settled."""
    return all(status.is_terminal for status in statuses)


__all__ = [
    "AuthorizationStatus",
    "PermissionKind",
    "is_settled",
]
