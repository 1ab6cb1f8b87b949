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
from dataclasses import dataclass

from permission_kit.core.status import PermissionKind

# Card defaults shown when the caller does not supply its own strings.
DEFAULT_DISPLAY_TEXT: dict[PermissionKind, tuple[str, str]] = {
    PermissionKind.CAMERA: ("Camera", "Allow to access your camera"),
    PermissionKind.PHOTOS: ("Photo Library", "Allow to access your photos"),
    PermissionKind.MICROPHONE: ("Microphone", "Allow to access your microphone"),
    PermissionKind.SPEECH: ("Speech", "Allow to access your speech"),
    PermissionKind.CONTACTS: ("Contacts", "Allow to access your contacts"),
    PermissionKind.NOTIFICATION: ("Notification", "Allow to access your notifications"),
    PermissionKind.LOCATION: ("Location", "Allow to access your location"),
    PermissionKind.CALENDAR: ("Calendar", "Allow to access your calendar"),
    PermissionKind.TRACKING: ("Tracking", "Allow to tracking your app"),
    PermissionKind.REMINDER: ("Reminder", "Allow to access your Reminder"),
    PermissionKind.BLUETOOTH: ("Bluetooth", "Allow to access your Bluetooth"),
    PermissionKind.MUSIC: ("Apple Music", "Allow to access your Apple Music"),
    PermissionKind.SIRI: ("Siri", "Allow to access Siri"),
    PermissionKind.HEALTH: ("Health Data", "Allow access to your health data"),
    PermissionKind.MOTION: (
        "Motion & Fitness",
        "Allow to access your motion and fitness data",
    ),
}


@dataclass(frozen=True)
class PermissionRequestItem:
    """One entry of a batch request.

    ``label`` and ``description`` are passed through to presentation untouched;
    the coordinator only looks at ``kind``.
    """

    kind: Hashable
    label: str | None = None
    description: str | None = None

    def display_title(self) -> str:
        if self.label:
            return self.label
        default = DEFAULT_DISPLAY_TEXT.get(self.kind)  # type: ignore[call-overload]
        return default[0] if default else str(getattr(self.kind, "value", self.kind))

    def display_description(self) -> str:
        if self.description:
            return self.description
        default = DEFAULT_DISPLAY_TEXT.get(self.kind)  # type: ignore[call-overload]
        return default[1] if default else ""


__all__ = ["DEFAULT_DISPLAY_TEXT", "PermissionRequestItem"]
