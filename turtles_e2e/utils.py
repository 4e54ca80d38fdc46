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


"""Utility functions for durations, booleans, templates, and command checks."""

from __future__ import annotations

import re
from collections.abc import Mapping

import sh

from turtles_e2e.errors import ConfigError

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}
_ENVSUBST = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::?=([^}]*))?\}")
_TRUE_VALUES = {"true", "1", "yes", "y", "on"}
_FALSE_VALUES = {"false", "0", "no", "n", "off"}


def parse_duration(value: str) -> float:
    """Parse a Go-style duration (``15m``, ``1h30m``, ``500ms``) into seconds.

    Args:
        value: Duration string.

    Returns:
        Duration in seconds.

    Raises:
        ConfigError: If the string is not a valid duration.
    """
    text = str(value).strip()
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if not text or pos != len(text):
        raise ConfigError(f"invalid duration {value!r}")
    return total


def parse_bool(name: str, value: str) -> bool:
    """Parse a boolean config variable.

    Args:
        name: Variable name, used in the error message.
        value: Raw string value.

    Raises:
        ConfigError: If the value is not a recognised boolean.
    """
    lowered = str(value).strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"can't parse {name} {value!r} as a boolean")


def render_template(template: str, variables: Mapping[str, str]) -> str:
    """Substitute ``${VAR}`` and ``${VAR:=default}`` references.

    Args:
        template: Manifest text with envsubst-style references.
        variables: Values to substitute.

    Returns:
        Rendered manifest text.

    Raises:
        ConfigError: If a reference has neither a value nor a default.
    """
    missing: list[str] = []

    def _substitute(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        if name in variables:
            return str(variables[name])
        if default is not None:
            return default
        missing.append(name)
        return match.group(0)

    rendered = _ENVSUBST.sub(_substitute, template)
    if missing:
        raise ConfigError(f"template references undefined variables: {', '.join(sorted(set(missing)))}")
    return rendered


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        ConfigError: If the command is not found.
    """
    if not sh.which(cmd):
        raise ConfigError(f"Required command '{cmd}' not found. Please install it first.")
