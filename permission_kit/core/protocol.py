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
"""Wire models for batch requests arriving from a host channel.

The core only consumes ``PermissionRequestItem`` values; these models are the
optional parsing layer that turns a channel payload into them.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from permission_kit.core.items import PermissionRequestItem
from permission_kit.core.status import PermissionKind

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_TITLE = "Permission Request"
DEFAULT_DISPLAY_HEADER_DESCRIPTION = (
    "To provide key features and a seamless experience, "
    "we require access to certain permissions."
)
DEFAULT_DISPLAY_BOTTOM_DESCRIPTION = (
    "Permissions can be managed later in Settings if you change your mind."
)


class DisplayType(str, Enum):
    """How presentation shows the batch; opaque to the coordinator."""

    ALERT = "alert"
    MODAL = "modal"


class PermissionPayloadBase(BaseModel):
    # Ignore unknown fields so newer hosts still parse on older builds.
    model_config = ConfigDict(
        extra="ignore", str_strip_whitespace=True, populate_by_name=True
    )


class PermissionItemPayload(PermissionPayloadBase):
    """One entry of the ``permissions`` array."""

    type: PermissionKind
    name: str | None = None
    description: str | None = None

    def to_item(self) -> PermissionRequestItem:
        return PermissionRequestItem(
            kind=self.type, label=self.name or None, description=self.description or None
        )


class PermissionKitConfigPayload(PermissionPayloadBase):
    """Payload of the ``init`` channel call."""

    permissions: list[dict[str, Any]]
    display_type: DisplayType = Field(default=DisplayType.ALERT, alias="displayType")
    display_title: str = Field(default=DEFAULT_DISPLAY_TITLE, alias="displayTitle")
    display_header_description: str = Field(
        default=DEFAULT_DISPLAY_HEADER_DESCRIPTION, alias="displayHeaderDescription"
    )
    display_bottom_description: str = Field(
        default=DEFAULT_DISPLAY_BOTTOM_DESCRIPTION, alias="displayBottomDescription"
    )


def parse_permission_items(
    entries: list[dict[str, Any]],
) -> list[PermissionRequestItem]:
    """Parse permission entries, dropping ones whose ``type`` is missing or unknown."""
    items: list[PermissionRequestItem] = []
    for index, entry in enumerate(entries):
        try:
            payload = PermissionItemPayload.model_validate(entry)
        except ValidationError as exc:
            logger.warning(
                "Dropping invalid permission entry at index=%s: %s",
                index,
                exc.errors(include_url=False),
            )
            continue
        items.append(payload.to_item())
    return items


def parse_config_payload(
    payload: dict[str, Any],
) -> tuple[PermissionKitConfigPayload, list[PermissionRequestItem]]:
    """Validate an ``init`` payload and return it with its parsed items.

    Raises ``pydantic.ValidationError`` when the envelope itself is malformed.
    """
    config = PermissionKitConfigPayload.model_validate(payload)
    return config, parse_permission_items(config.permissions)


__all__ = [
    "DEFAULT_DISPLAY_BOTTOM_DESCRIPTION",
    "DEFAULT_DISPLAY_HEADER_DESCRIPTION",
    "DEFAULT_DISPLAY_TITLE",
    "DisplayType",
    "PermissionItemPayload",
    "PermissionKitConfigPayload",
    "PermissionPayloadBase",
    "parse_config_payload",
    "parse_permission_items",
]
