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


"""Scenario suites: parameter sets run against one provisioned environment."""

from __future__ import annotations

from dataclasses import dataclass

from turtles_e2e.constants import DATA_DIR, WAIT_CONTROLLERS, WAIT_RANCHER
from turtles_e2e.errors import ConfigError
from turtles_e2e.scenario import ScenarioInput
from turtles_e2e.state import EnvironmentState

CLUSTER_TEMPLATES_DIR = DATA_DIR / "cluster-templates"


@dataclass(frozen=True)
class ScenarioSpec:
    """Environment-independent part of a scenario; completed once setup has run."""

    name: str
    description: str
    template: str
    cluster_name: str
    control_plane_machine_count: int = 1
    worker_machine_count: int = 1
    label_namespace: bool = True
    test_cluster_reimport: bool = True
    skip_deletion_test: bool = False
    create_wait_name: str = WAIT_RANCHER
    delete_wait_name: str = WAIT_CONTROLLERS

    def bind(self, env: EnvironmentState, skip_cleanup: bool) -> ScenarioInput:
        return ScenarioInput(
            name=self.name,
            cluster_template=CLUSTER_TEMPLATES_DIR / self.template,
            cluster_name=self.cluster_name,
            git_address=env.require("git_address"),
            git_auth_secret_name=env.require("git_auth_secret_name"),
            control_plane_machine_count=self.control_plane_machine_count,
            worker_machine_count=self.worker_machine_count,
            label_namespace=self.label_namespace,
            test_cluster_reimport=self.test_cluster_reimport,
            skip_cleanup=skip_cleanup,
            skip_deletion_test=self.skip_deletion_test,
            create_wait_name=self.create_wait_name,
            delete_wait_name=self.delete_wait_name,
        )


IMPORT_GITOPS_SUITE: tuple[ScenarioSpec, ...] = (
    ScenarioSpec(
        name="docker-kubeadm",
        description="[Docker] [Kubeadm] Create and delete CAPI cluster with namespace auto-import",
        template="docker-kubeadm.yaml",
        cluster_name="clusterv3-docker-kubeadm",
    ),
    ScenarioSpec(
        name="docker-rke2",
        description="[Docker] [RKE2] Create and delete CAPI cluster with namespace auto-import",
        template="docker-rke2.yaml",
        cluster_name="clusterv3-docker-rke2",
    ),
)


def select_scenarios(names: list[str] | None, suite: tuple[ScenarioSpec, ...] = IMPORT_GITOPS_SUITE) -> list[ScenarioSpec]:
    """Filter *suite* by name, preserving suite order.

    Raises:
        ConfigError: If a requested name is not in the suite.
    """
    if not names:
        return list(suite)
    known = {spec.name for spec in suite}
    unknown = sorted(set(names) - known)
    if unknown:
        raise ConfigError(f"unknown scenario(s): {', '.join(unknown)}; known: {', '.join(sorted(known))}")
    return [spec for spec in suite if spec.name in names]
