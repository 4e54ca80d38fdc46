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


"""Bootstrap cluster providers, the bootstrap stage, and its disposal."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import sh
from rich.panel import Panel

from turtles_e2e import console, logger
from turtles_e2e.constants import (
    BOOTSTRAP_CLUSTER_NAME_VAR,
    DEFAULT_BOOTSTRAP_CLUSTER_NAME,
    DEFAULT_KIND_IMAGE,
    KUBECONFIG_FILE_NAME,
    KUBERNETES_MANAGEMENT_VERSION_VAR,
    USE_EXISTING_CLUSTER_VAR,
    WAIT_CONTROLLERS,
    dep_value,
)
from turtles_e2e.context import StageContext
from turtles_e2e.probes import nodes_ready
from turtles_e2e.utils import require_command
from turtles_e2e.waiter import wait_until_ready


# ============================================================================
# Cluster providers
# ============================================================================

class ClusterProvider(ABC):
    """Creates and disposes of a bootstrap cluster."""

    name = "base"

    @abstractmethod
    def create(self, cluster_name: str, kubernetes_version: str, kubeconfig_path: Path) -> None:
        """Create the cluster and write its kubeconfig to *kubeconfig_path*."""

    @abstractmethod
    def dispose(self, cluster_name: str, kubeconfig_path: Path) -> None:
        """Delete the cluster."""


class KindClusterProvider(ClusterProvider):
    """Local kind cluster; the default provider."""

    name = "kind"

    def create(self, cluster_name: str, kubernetes_version: str, kubeconfig_path: Path) -> None:
        require_command("kind")
        sh.kind(
            "create", "cluster",
            "--name", cluster_name,
            "--image", f"{DEFAULT_KIND_IMAGE}:{kubernetes_version}",
            "--kubeconfig", str(kubeconfig_path),
            "--wait", "5m",
        )

    def dispose(self, cluster_name: str, kubeconfig_path: Path) -> None:
        sh.kind("delete", "cluster", "--name", cluster_name, "--kubeconfig", str(kubeconfig_path))


class EKSClusterProvider(ClusterProvider):
    """Managed EKS cluster created through eksctl."""

    name = "eks"

    def __init__(self, region: str | None = None, nodes: int = 2) -> None:
        self.region = region or os.environ.get("AWS_REGION", "eu-west-2")
        self.nodes = nodes

    def create(self, cluster_name: str, kubernetes_version: str, kubeconfig_path: Path) -> None:
        require_command("eksctl")
        sh.eksctl(
            "create", "cluster",
            "--name", cluster_name,
            "--region", self.region,
            "--version", kubernetes_version.lstrip("v").rsplit(".", 1)[0],
            "--nodes", str(self.nodes),
            "--kubeconfig", str(kubeconfig_path),
        )

    def dispose(self, cluster_name: str, kubeconfig_path: Path) -> None:
        sh.eksctl("delete", "cluster", "--name", cluster_name, "--region", self.region, "--wait")


# ============================================================================
# Bootstrap stage
# ============================================================================

@dataclass(frozen=True)
class BootstrapCluster:
    """Handle to the management cluster published by the bootstrap stage.

    Attributes:
        name: Cluster name, also used as the interval spec key.
        kubeconfig_path: Kubeconfig used by every later stage.
        provider: Provider that created it, or None for an existing cluster.
    """

    name: str
    kubeconfig_path: Path
    provider: ClusterProvider | None = None

    @property
    def is_existing(self) -> bool:
        return self.provider is None


@dataclass(frozen=True)
class BootstrapClusterRequest:
    cluster_name: str
    kubernetes_version: str
    kubeconfig_path: Path
    use_existing_cluster: bool
    provider: ClusterProvider


def build_bootstrap_request(ctx: StageContext, custom_provider: ClusterProvider | None = None) -> BootstrapClusterRequest:
    """Build the bootstrap request from config and the pre-setup hook output."""
    config = ctx.config
    use_existing = config.get_bool(USE_EXISTING_CLUSTER_VAR, default=False)
    if use_existing:
        kubeconfig = Path(os.environ.get("KUBECONFIG", Path.home() / ".kube" / "config"))
    else:
        kubeconfig = config.artifacts_folder / KUBECONFIG_FILE_NAME
    return BootstrapClusterRequest(
        cluster_name=config.get_variable(BOOTSTRAP_CLUSTER_NAME_VAR, DEFAULT_BOOTSTRAP_CLUSTER_NAME),
        kubernetes_version=config.get_variable(
            KUBERNETES_MANAGEMENT_VERSION_VAR, dep_value("kind", "node_version")),
        kubeconfig_path=kubeconfig,
        use_existing_cluster=use_existing,
        provider=custom_provider or KindClusterProvider(),
    )


def setup_bootstrap_cluster(ctx: StageContext, request: BootstrapClusterRequest) -> BootstrapCluster:
    """Create (or adopt) the bootstrap cluster and wait for its nodes.

    Args:
        ctx: Stage context; ``bootstrap_cluster`` is published into its env.
        request: Resolved bootstrap request.

    Returns:
        The published cluster handle.
    """
    console.print(Panel.fit("Setting up bootstrap cluster", style="bold blue"))
    if request.use_existing_cluster:
        console.print(f"[yellow]\u2139\ufe0f  Using existing cluster from {request.kubeconfig_path}[/yellow]")
        cluster = BootstrapCluster(request.cluster_name, request.kubeconfig_path)
    else:
        console.print(
            f"[yellow]\u2139\ufe0f  Creating {request.provider.name} cluster '{request.cluster_name}' "
            f"({request.kubernetes_version})...[/yellow]"
        )
        request.kubeconfig_path.parent.mkdir(parents=True, exist_ok=True)
        request.provider.create(request.cluster_name, request.kubernetes_version, request.kubeconfig_path)
        cluster = BootstrapCluster(request.cluster_name, request.kubeconfig_path, request.provider)

    # Published before the wait so cleanup disposes of a cluster whose nodes never came up.
    ctx.env.publish("bootstrap", bootstrap_cluster=cluster)
    wait_until_ready(nodes_ready(ctx.kube()), ctx.intervals(WAIT_CONTROLLERS), "bootstrap cluster nodes")
    console.print(f"[green]\u2705 Bootstrap cluster '{cluster.name}' is ready[/green]")
    return cluster


def dispose_bootstrap_cluster(ctx: StageContext) -> None:
    """Dump cluster state to the artifacts folder and delete a created cluster."""
    cluster: BootstrapCluster = ctx.env.require("bootstrap_cluster")
    dump_dir = ctx.config.artifacts_folder / "clusters" / cluster.name
    try:
        ctx.kube().dump_cluster_info(dump_dir)
        console.print(f"[green]  \u2713 Dumped cluster state to {dump_dir}[/green]")
    except (sh.ErrorReturnCode, OSError) as err:
        logger.warning("Failed to dump cluster state for %s: %s", cluster.name, err)

    if cluster.is_existing:
        console.print(f"[yellow]\u2139\ufe0f  Keeping existing cluster '{cluster.name}'[/yellow]")
        return
    console.print(f"[yellow]\u2139\ufe0f  Deleting {cluster.provider.name} cluster '{cluster.name}'...[/yellow]")
    cluster.provider.dispose(cluster.name, cluster.kubeconfig_path)
    console.print(f"[green]\u2705 Cluster '{cluster.name}' deleted[/green]")
