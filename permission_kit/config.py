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

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from permission_kit.core.dispatcher import DEFAULT_SETTLE_DELAY_MS, DebouncePolicy
from permission_kit.core.status import PermissionKind

logger = logging.getLogger(__name__)

CONFIG_SECTION = "permission_kit"


@dataclass(frozen=True)
class RuntimeConfig:
    debounce_ms: int = DEFAULT_SETTLE_DELAY_MS
    # kind -> "module:attr" path of a HandlerFactory
    handler_factories: Mapping[PermissionKind, str] = field(default_factory=dict)
    telemetry_factory: str | None = None

    @property
    def debounce(self) -> DebouncePolicy:
        return DebouncePolicy(delay_ms=self.debounce_ms)


class _RuntimeConfigModel(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    debounce_ms: int = Field(default=DEFAULT_SETTLE_DELAY_MS, ge=0)
    handler_factories: dict[str, str] = Field(default_factory=dict)
    telemetry_factory: str | None = None


def load_runtime_config(data: Mapping[str, Any] | None) -> RuntimeConfig:
    """Build a RuntimeConfig from a plain mapping.

    Accepts either the settings themselves or a mapping with a
    ``permission_kit`` section. Raises ``pydantic.ValidationError`` for
    malformed values such as a negative debounce.
    """
    raw: Mapping[str, Any] = data or {}
    section = raw.get(CONFIG_SECTION)
    if isinstance(section, Mapping):
        raw = section

    model = _RuntimeConfigModel.model_validate(dict(raw))

    factories: dict[PermissionKind, str] = {}
    for name, path in model.handler_factories.items():
        kind = PermissionKind.parse(name)
        if kind is None:
            logger.warning("Ignoring handler factory for unknown permission kind '%s'", name)
            continue
        if not path:
            logger.warning("Ignoring empty handler factory path for kind=%s", kind.value)
            continue
        factories[kind] = path

    return RuntimeConfig(
        debounce_ms=model.debounce_ms,
        handler_factories=factories,
        telemetry_factory=model.telemetry_factory or None,
    )


def load_runtime_config_file(path: str | Path) -> RuntimeConfig:
    """Load a RuntimeConfig from a YAML file; a missing file yields defaults."""
    config_path = Path(path)
    if not config_path.exists():
        logger.info("Permission config %s not found; using defaults", config_path)
        return RuntimeConfig()

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is not None and not isinstance(data, Mapping):
        raise ValueError(
            f"Permission config {config_path} must contain a mapping; "
            f"got {type(data).__name__}"
        )
    return load_runtime_config(data)


__all__ = [
    "CONFIG_SECTION",
    "RuntimeConfig",
    "load_runtime_config",
    "load_runtime_config_file",
]
