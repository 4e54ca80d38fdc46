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


"""Create, import, re-import, and delete a workload cluster through GitOps."""

from __future__ import annotations

import enum
import os
import tempfile
from collections import ChainMap
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

import sh
import yaml
from rich.panel import Panel

from turtles_e2e import console, logger
from turtles_e2e.config import IntervalProfile
from turtles_e2e.constants import (
    GITEA_USER_NAME_VAR,
    GITEA_USER_PWD_VAR,
    LABEL_AUTO_IMPORT,
    LABEL_CAPI_CLUSTER_OWNER,
    LABEL_CAPI_CLUSTER_OWNER_NS,
    NS_FLEET_LOCAL,
    SCENARIO_CREATE_WAIT,
    SCENARIO_DELETE_WAIT,
)
from turtles_e2e.context import StageContext
from turtles_e2e.errors import ProbeError, ScenarioError
from turtles_e2e.probes import resource_absent, selector_absent
from turtles_e2e.state import EnvironmentState
from turtles_e2e.utils import render_template
from turtles_e2e.waiter import wait_until_ready

CAPI_CLUSTER_KIND = "clusters.cluster.x-k8s.io"
MGMT_CLUSTER_KIND = "clusters.management.cattle.io"
GITREPO_KIND = "gitrepos.fleet.cattle.io"
GIT_BRANCH = "main"
GIT_CLUSTERS_PATH = "clusters"


class ScenarioState(str, enum.Enum):
    CREATED = "Created"
    IMPORTING = "Importing"
    IMPORTED = "Imported"
    REIMPORTING = "Reimporting"
    REIMPORTED = "Reimported"
    DELETING = "Deleting"
    DELETED = "Deleted"


@dataclass(frozen=True)
class ScenarioInput:
    """Parameters of one GitOps import scenario.

    Attributes:
        name: Scenario identifier used for selection and reporting.
        cluster_template: Path to the envsubst-style cluster template.
        cluster_name: Workload cluster name; reused across re-import.
        git_address: Base URL of the git server.
        git_auth_secret_name: Secret Fleet uses to authenticate to git.
        control_plane_machine_count: Control-plane machines to request.
        worker_machine_count: Worker machines to request.
        label_namespace: Label the namespace (instead of the cluster) for auto-import.
        test_cluster_reimport: Delete the registration and verify import repeats.
        skip_cleanup: Leave the scenario's resources in place afterwards.
        skip_deletion_test: Do not delete the cluster as part of the scenario.
        create_wait_name: Wait profile for import.
        delete_wait_name: Wait profile for deletion.
        namespace: Namespace for the cluster objects; derived from the name if unset.
    """

    name: str
    cluster_template: Path
    cluster_name: str
    git_address: str
    git_auth_secret_name: str
    control_plane_machine_count: int = 1
    worker_machine_count: int = 1
    label_namespace: bool = True
    test_cluster_reimport: bool = False
    skip_cleanup: bool = False
    skip_deletion_test: bool = False
    create_wait_name: str = SCENARIO_CREATE_WAIT
    delete_wait_name: str = SCENARIO_DELETE_WAIT
    namespace: str | None = None

    @property
    def cluster_namespace(self) -> str:
        return self.namespace or f"{self.cluster_name}-ns"


@dataclass
class ScenarioResult:
    name: str
    states: list[ScenarioState] = field(default_factory=list)

    @property
    def final_state(self) -> ScenarioState | None:
        return self.states[-1] if self.states else None


# ============================================================================
# GitOps backend
# ============================================================================

class GitOpsBackend:
    """Cluster operations the scenario drives; the default talks to Fleet and Gitea.

    Mutations are plain calls. Methods ending in a question (``cluster_imported``,
    ``registration_absent``, ``cluster_deleted``) are side-effect-free probes.
    """

    def __init__(self, ctx: StageContext) -> None:
        self.ctx = ctx
        self.kube = ctx.kube()

    def render_manifest(self, scenario: ScenarioInput) -> str:
        """Render the cluster template; the process environment overrides config file variables."""
        cluster_values = {
            "CLUSTER_NAME": scenario.cluster_name,
            "NAMESPACE": scenario.cluster_namespace,
            "CONTROL_PLANE_MACHINE_COUNT": str(scenario.control_plane_machine_count),
            "WORKER_MACHINE_COUNT": str(scenario.worker_machine_count),
        }
        variables = ChainMap(cluster_values, os.environ, self.ctx.config.variables)
        rendered = render_template(scenario.cluster_template.read_text(), variables)
        if scenario.label_namespace:
            return rendered
        docs = [doc for doc in yaml.safe_load_all(rendered) if doc]
        for doc in docs:
            if doc.get("kind") == "Cluster":
                doc.setdefault("metadata", {}).setdefault("labels", {})[LABEL_AUTO_IMPORT] = "true"
        return yaml.safe_dump_all(docs, sort_keys=False)

    def prepare_namespace(self, scenario: ScenarioInput) -> None:
        labels = {LABEL_AUTO_IMPORT: "true"} if scenario.label_namespace else None
        self.kube.ensure_namespace(scenario.cluster_namespace, labels)

    def _repo_url(self, scenario: ScenarioInput, with_credentials: bool) -> str:
        user = self.ctx.config.get_variable(GITEA_USER_NAME_VAR)
        parts = urlsplit(scenario.git_address)
        netloc = parts.netloc
        if with_credentials:
            netloc = f"{user}:{self.ctx.config.get_variable(GITEA_USER_PWD_VAR)}@{netloc}"
        return urlunsplit((parts.scheme, netloc, f"/{user}/{scenario.cluster_name}.git", "", ""))

    def publish_manifest(self, scenario: ScenarioInput, manifest: str) -> None:
        """Push the manifest to a per-cluster repository and point a Fleet GitRepo at it."""
        self._push_repository(scenario, manifest)
        self.kube.apply_objects({
            "apiVersion": "fleet.cattle.io/v1alpha1",
            "kind": "GitRepo",
            "metadata": {"name": scenario.cluster_name, "namespace": NS_FLEET_LOCAL},
            "spec": {
                "repo": self._repo_url(scenario, with_credentials=False),
                "branch": GIT_BRANCH,
                "paths": [GIT_CLUSTERS_PATH],
                "clientSecretName": scenario.git_auth_secret_name,
                "targetNamespace": scenario.cluster_namespace,
            },
        })

    def _push_repository(self, scenario: ScenarioInput, manifest: str) -> None:
        with tempfile.TemporaryDirectory(prefix="turtles-e2e-") as tmp:
            workdir = Path(tmp)
            git = sh.git.bake(_cwd=str(workdir))
            git("init", "-b", GIT_BRANCH)
            (workdir / GIT_CLUSTERS_PATH).mkdir()
            (workdir / GIT_CLUSTERS_PATH / f"{scenario.cluster_name}.yaml").write_text(manifest)
            git("add", ".")
            git("-c", "user.name=turtles-e2e", "-c", "user.email=turtles-e2e@example.com",
                "commit", "--allow-empty", "-m", f"Add cluster {scenario.cluster_name}")
            git("push", "--force", self._repo_url(scenario, with_credentials=True), GIT_BRANCH)

    def _owner_selector(self, scenario: ScenarioInput) -> str:
        return (f"{LABEL_CAPI_CLUSTER_OWNER}={scenario.cluster_name},"
                f"{LABEL_CAPI_CLUSTER_OWNER_NS}={scenario.cluster_namespace}")

    def cluster_imported(self, scenario: ScenarioInput) -> bool:
        try:
            capi = self.kube.get(CAPI_CLUSTER_KIND, scenario.cluster_name, namespace=scenario.cluster_namespace)
            if capi and capi.get("status", {}).get("phase") == "Failed":
                raise ProbeError(f"cluster {scenario.cluster_name} provisioning failed")
            registrations = self.kube.list_items(MGMT_CLUSTER_KIND, selector=self._owner_selector(scenario))
        except sh.ErrorReturnCode as err:
            logger.debug("Import probe for %s failed transiently: %s", scenario.cluster_name, err)
            return False
        for registration in registrations:
            for cond in registration.get("status", {}).get("conditions", []) or []:
                if cond.get("type") == "Ready" and cond.get("status") == "True":
                    return True
        return False

    def delete_registration(self, scenario: ScenarioInput) -> None:
        for registration in self.kube.list_items(MGMT_CLUSTER_KIND, selector=self._owner_selector(scenario)):
            self.kube.delete(MGMT_CLUSTER_KIND, registration["metadata"]["name"])

    def registration_absent(self, scenario: ScenarioInput) -> bool:
        return selector_absent(self.kube, MGMT_CLUSTER_KIND, self._owner_selector(scenario))()

    def withdraw_manifest(self, scenario: ScenarioInput) -> None:
        self.kube.delete(GITREPO_KIND, scenario.cluster_name, namespace=NS_FLEET_LOCAL)
        self.kube.delete(CAPI_CLUSTER_KIND, scenario.cluster_name, namespace=scenario.cluster_namespace)

    def cluster_deleted(self, scenario: ScenarioInput) -> bool:
        capi_gone = resource_absent(self.kube, CAPI_CLUSTER_KIND, scenario.cluster_name, scenario.cluster_namespace)
        return capi_gone() and self.registration_absent(scenario)

    def cleanup(self, scenario: ScenarioInput) -> None:
        self.kube.delete(GITREPO_KIND, scenario.cluster_name, namespace=NS_FLEET_LOCAL)
        self.kube.delete("namespace", scenario.cluster_namespace)


# ============================================================================
# Runner
# ============================================================================

class ScenarioRunner:
    """Drives one scenario through its state machine.

    Args:
        backend: Cluster operations and probes.
        intervals: Resolves a wait profile name.
    """

    def __init__(self, backend: GitOpsBackend, intervals: Callable[[str], IntervalProfile]) -> None:
        self.backend = backend
        self.intervals = intervals

    def run(self, scenario: ScenarioInput, env: EnvironmentState) -> ScenarioResult:
        """Run the scenario against a ready environment.

        Raises:
            ScenarioError: If any transition fails; carries the last reached state.
        """
        console.print(Panel.fit(f"Scenario {scenario.name}: {scenario.cluster_name}", style="bold blue"))
        result = ScenarioResult(scenario.name)
        state = ScenarioState.CREATED

        def _enter(new_state: ScenarioState) -> None:
            nonlocal state
            state = new_state
            result.states.append(new_state)
            console.print(f"[yellow]\u2139\ufe0f  {scenario.name}: {new_state.value}[/yellow]")

        backend = self.backend

        def _wait_imported(description: str) -> None:
            wait_until_ready(lambda: backend.cluster_imported(scenario), create_profile, description)

        try:
            _enter(ScenarioState.CREATED)
            create_profile = self.intervals(scenario.create_wait_name)
            env.require("turtles_namespace")
            manifest = backend.render_manifest(scenario)
            backend.prepare_namespace(scenario)
            backend.publish_manifest(scenario, manifest)

            _enter(ScenarioState.IMPORTING)
            _wait_imported(f"import of cluster {scenario.cluster_name}")
            _enter(ScenarioState.IMPORTED)

            if scenario.test_cluster_reimport:
                _enter(ScenarioState.REIMPORTING)
                backend.withdraw_manifest(scenario)
                backend.delete_registration(scenario)
                wait_until_ready(
                    lambda: backend.cluster_deleted(scenario), create_profile,
                    f"removal of cluster {scenario.cluster_name} before re-import")
                backend.publish_manifest(scenario, manifest)
                _wait_imported(f"re-import of cluster {scenario.cluster_name}")
                _enter(ScenarioState.REIMPORTED)

            if not scenario.skip_deletion_test:
                _enter(ScenarioState.DELETING)
                backend.withdraw_manifest(scenario)
                wait_until_ready(
                    lambda: backend.cluster_deleted(scenario), self.intervals(scenario.delete_wait_name),
                    f"deletion of cluster {scenario.cluster_name}")
                _enter(ScenarioState.DELETED)
        except Exception as err:
            console.print(f"[red]\u274c {scenario.name} failed in state {state.value}: {err}[/red]")
            raise ScenarioError(scenario.name, state, err, result.states) from err
        finally:
            if not scenario.skip_cleanup:
                self._cleanup(scenario)

        console.print(f"[green]\u2705 Scenario {scenario.name} passed[/green]")
        return result

    def _cleanup(self, scenario: ScenarioInput) -> None:
        try:
            self.backend.cleanup(scenario)
        except Exception as err:
            logger.warning("Scenario %s cleanup failed: %s", scenario.name, err)
