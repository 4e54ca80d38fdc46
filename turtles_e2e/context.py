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


"""Per-run context handed to stages, hooks, and cleanup steps."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from turtles_e2e.config import E2EConfig, IntervalProfile
from turtles_e2e.constants import DEFAULT_INTERVALS_SPEC
from turtles_e2e.kube import Kube
from turtles_e2e.state import EnvironmentState


@dataclass
class StageContext:
    """Read-only configuration plus the shared environment state.

    Attributes:
        config: Loaded e2e configuration.
        env: Environment state accumulated by the setup stages.
        kube_factory: Builds an installer bound to a kubeconfig path.
    """

    config: E2EConfig
    env: EnvironmentState = field(default_factory=EnvironmentState)
    kube_factory: Callable[[Path | None], Kube] = Kube

    def kube(self) -> Kube:
        """Installer bound to the bootstrap cluster, or the ambient kubeconfig before it exists."""
        cluster = self.env.bootstrap_cluster
        return self.kube_factory(cluster.kubeconfig_path if cluster else None)

    def intervals(self, name: str) -> IntervalProfile:
        """Resolve a wait profile, preferring entries keyed by the bootstrap cluster name."""
        cluster = self.env.bootstrap_cluster
        spec = cluster.name if cluster else DEFAULT_INTERVALS_SPEC
        return self.config.get_intervals(name, spec)
