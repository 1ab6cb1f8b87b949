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
"""Native authorization codes per permission kind.

Every adapter translates a platform enum into ``AuthorizationStatus``. The
translations differ only in which native case names exist, so they live here
as data instead of one switch statement per adapter class. Codes are the
platform enum case names (``authorizedWhenInUse``, ``sharingDenied`` ...).
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from types import MappingProxyType

from permission_kit.core.status import AuthorizationStatus, PermissionKind

StatusTable = Mapping[Hashable, AuthorizationStatus]

_G = AuthorizationStatus.GRANTED
_D = AuthorizationStatus.DENIED
_L = AuthorizationStatus.LIMITED
_N = AuthorizationStatus.NOT_DETERMINED

# authorized / denied / restricted / notDetermined
_STANDARD: dict[Hashable, AuthorizationStatus] = {
    "authorized": _G,
    "denied": _D,
    "restricted": _D,
    "notDetermined": _N,
}


def _table(**extra: AuthorizationStatus) -> StatusTable:
    merged = dict(_STANDARD)
    merged.update(extra)
    return MappingProxyType(merged)


NATIVE_STATUS_TABLES: Mapping[PermissionKind, StatusTable] = MappingProxyType(
    {
        PermissionKind.CAMERA: _table(),
        PermissionKind.MICROPHONE: _table(),
        PermissionKind.PHOTOS: _table(limited=_L),
        PermissionKind.CONTACTS: _table(limited=_L),
        PermissionKind.SPEECH: _table(),
        PermissionKind.NOTIFICATION: _table(provisional=_G, ephemeral=_G),
        PermissionKind.LOCATION: _table(authorizedAlways=_G, authorizedWhenInUse=_G),
        # writeOnly grants no read access.
        PermissionKind.CALENDAR: _table(fullAccess=_G, writeOnly=_D),
        PermissionKind.REMINDER: _table(fullAccess=_G, writeOnly=_D),
        PermissionKind.TRACKING: _table(),
        PermissionKind.BLUETOOTH: _table(allowedAlways=_G),
        PermissionKind.MUSIC: _table(),
        PermissionKind.SIRI: _table(),
        PermissionKind.HEALTH: MappingProxyType(
            {"sharingAuthorized": _G, "sharingDenied": _D, "notDetermined": _N}
        ),
        PermissionKind.MOTION: _table(),
    }
)

IDENTITY_TABLE: StatusTable = MappingProxyType(
    {status: status for status in AuthorizationStatus}
)


def translate_native_status(table: StatusTable, native: object) -> AuthorizationStatus:
    """Translate a native code; unknown codes are treated as undecided."""
    try:
        return table.get(native, _N)  # type: ignore[arg-type]
    except TypeError:
        # unhashable native value
        return _N


def status_table_for(kind: Hashable) -> StatusTable:
    table = NATIVE_STATUS_TABLES.get(kind)  # type: ignore[call-overload]
    return table if table is not None else IDENTITY_TABLE


__all__ = [
    "IDENTITY_TABLE",
    "NATIVE_STATUS_TABLES",
    "StatusTable",
    "status_table_for",
    "translate_native_status",
]
