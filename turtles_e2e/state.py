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


"""Shared environment state populated by the setup stages."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from turtles_e2e.errors import StateError


@dataclass
class EnvironmentState:
    """Write-once record of everything the setup stages provisioned.

    Every field starts unset (None) and may be published exactly once by the
    stage that owns it. Later stages read it through ``require``.

    Attributes:
        bootstrap_cluster: Handle to the management cluster.
        ingress_type: Ingress flavour deployed for the platform.
        host_name: Externally reachable Rancher host name.
        rancher_namespace: Namespace Rancher was installed into.
        rancher_password: Bootstrap admin password.
        turtles_namespace: Namespace of the lifecycle controller.
        gitea_namespace: Namespace of the git server.
        git_address: Base URL of the git server.
        git_auth_secret_name: Secret holding git credentials for Fleet.
    """

    bootstrap_cluster: Any = None
    ingress_type: Any = None
    host_name: str | None = None
    rancher_namespace: str | None = None
    rancher_password: str | None = None
    turtles_namespace: str | None = None
    gitea_namespace: str | None = None
    git_address: str | None = None
    git_auth_secret_name: str | None = None
    owners: dict[str, str] = field(default_factory=dict, repr=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if name != "owners" and self.__dict__.get(name) is not None:
            raise StateError(f"environment field {name!r} is already set")
        object.__setattr__(self, name, value)

    def publish(self, stage: str, **values: Any) -> None:
        """Publish stage outputs.

        Raises:
            StateError: If a field is unknown or was already published.
        """
        known = {f.name for f in fields(self)} - {"owners"}
        for name, value in values.items():
            if name not in known:
                raise StateError(f"unknown environment field {name!r}")
            if value is None:
                raise StateError(f"stage {stage!r} published an empty {name!r}")
            if getattr(self, name) is not None:
                raise StateError(
                    f"stage {stage!r} cannot rewrite {name!r} owned by {self.owners.get(name, '?')!r}"
                )
        for name, value in values.items():
            setattr(self, name, value)
            self.owners[name] = stage

    def require(self, name: str) -> Any:
        """Return a published field.

        Raises:
            StateError: If the field has not been published yet.
        """
        value = getattr(self, name)
        if value is None:
            raise StateError(f"environment field {name!r} has not been published")
        return value

    def published(self) -> set[str]:
        return set(self.owners)

    def published_by(self, stage: str) -> bool:
        return stage in self.owners.values()
