# /*
# Copyright 2026 The turtles-e2e Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */


"""Run settings, e2e config file loading, and the interval profile registry."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from turtles_e2e.constants import ARTIFACTS_FOLDER_VAR, DEFAULT_INTERVALS_SPEC
from turtles_e2e.errors import ConfigError
from turtles_e2e.utils import parse_bool, parse_duration

_MISSING = object()


# ============================================================================
# Run settings
# ============================================================================

class RunSettings(BaseSettings):
    """Process-level settings, auto-loaded from E2E_* env vars.

    Attributes:
        config_path: Path to the e2e configuration file.
        artifacts_folder: Override for the ARTIFACTS_FOLDER config variable.
        skip_cleanup: Override for the SKIP_RESOURCE_CLEANUP config variable.
        log_level: Logging level name for the CLI.
    """

    model_config = SettingsConfigDict(env_prefix="E2E_", extra="ignore")

    config_path: Path | None = None
    artifacts_folder: Path | None = None
    skip_cleanup: bool | None = None
    log_level: str = Field(default="INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR)$")


# ============================================================================
# Interval profiles
# ============================================================================

@dataclass(frozen=True)
class IntervalProfile:
    """A named (timeout, poll period) pair governing one readiness wait.

    Attributes:
        name: Profile name, e.g. ``wait-rancher``.
        timeout: Total time budget in seconds.
        poll_period: Seconds between probe invocations.
    """

    name: str
    timeout: float
    poll_period: float


class IntervalRegistry:
    """Immutable lookup of interval profiles keyed by ``<spec>/<name>``."""

    def __init__(self, profiles: Mapping[str, IntervalProfile]) -> None:
        self._profiles = MappingProxyType(dict(profiles))

    @classmethod
    def from_raw(cls, raw: Mapping[str, list[str]]) -> IntervalRegistry:
        """Build a registry from raw ``{"spec/name": [timeout, poll]}`` entries.

        Raises:
            ConfigError: If a key or value is malformed.
        """
        profiles: dict[str, IntervalProfile] = {}
        for key, value in raw.items():
            if "/" not in key:
                raise ConfigError(f"interval key {key!r} must look like '<spec>/<name>'")
            if len(value) != 2:
                raise ConfigError(f"interval {key!r} must be a [timeout, poll-period] pair")
            timeout, poll_period = (parse_duration(v) for v in value)
            if poll_period <= 0 or timeout < poll_period:
                raise ConfigError(f"interval {key!r} needs 0 < poll-period <= timeout")
            profiles[key] = IntervalProfile(key.split("/", 1)[1], timeout, poll_period)
        return cls(profiles)

    def resolve(self, name: str, spec: str = DEFAULT_INTERVALS_SPEC) -> IntervalProfile:
        """Return the profile for *name*, preferring the spec-specific entry.

        Raises:
            ConfigError: If neither ``<spec>/<name>`` nor ``default/<name>`` exists.
        """
        for key in (f"{spec}/{name}", f"{DEFAULT_INTERVALS_SPEC}/{name}"):
            if key in self._profiles:
                return self._profiles[key]
        raise ConfigError(f"no interval profile named {name!r} (spec {spec!r})")

    def __contains__(self, name: str) -> bool:
        return any(key.split("/", 1)[1] == name for key in self._profiles)


# ============================================================================
# E2E config file
# ============================================================================

class E2EConfigFile(BaseModel):
    """Schema of the YAML e2e configuration file."""

    name: str = "turtles-e2e"
    variables: dict[str, str] = Field(default_factory=dict)
    intervals: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("variables", mode="before")
    @classmethod
    def _stringify_variables(cls, value):
        if value is None:
            return {}
        return {str(k): "" if v is None else str(v) for k, v in dict(value).items()}


class E2EConfig:
    """Validated e2e configuration: flat variables plus interval profiles.

    Variables are resolved from the process environment first, then from the
    file, and are read-only once loaded.
    """

    def __init__(self, name: str, variables: Mapping[str, str], intervals: IntervalRegistry) -> None:
        self.name = name
        self.variables = MappingProxyType(dict(variables))
        self.intervals = intervals

    def get_variable(self, name: str, default=_MISSING) -> str:
        """Return a variable's value.

        Raises:
            ConfigError: If the variable is unset and no default is given.
        """
        if name in os.environ:
            return os.environ[name]
        if name in self.variables:
            return self.variables[name]
        if default is not _MISSING:
            return default
        raise ConfigError(f"configuration variable {name!r} is not set")

    def get_bool(self, name: str, default: bool | None = None) -> bool:
        """Return a boolean variable.

        Raises:
            ConfigError: If the value is missing (without default) or not a boolean.
        """
        raw = self.get_variable(name, None if default is not None else _MISSING)
        if raw is None:
            return default
        return parse_bool(name, raw)

    def get_intervals(self, name: str, spec: str = DEFAULT_INTERVALS_SPEC) -> IntervalProfile:
        return self.intervals.resolve(name, spec)

    def with_variables(self, **overrides: str) -> E2EConfig:
        """Return a copy with *overrides* layered over the file's variables."""
        return E2EConfig(self.name, {**self.variables, **overrides}, self.intervals)

    @property
    def artifacts_folder(self) -> Path:
        return Path(self.get_variable(ARTIFACTS_FOLDER_VAR))


def load_e2e_config(path: Path) -> E2EConfig:
    """Load and validate the e2e configuration file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"e2e config {str(path)!r} should be an existing file")
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        parsed = E2EConfigFile.model_validate(raw)
    except (OSError, yaml.YAMLError, ValidationError) as err:
        raise ConfigError(f"invalid e2e config {str(path)!r}: {err}") from err
    return E2EConfig(parsed.name, parsed.variables, IntervalRegistry.from_raw(parsed.intervals))
