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


"""Hook strategies that adapt stage requests to the management cluster environment.

Hooks only parameterize requests: they never reorder or skip stages.
"""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field

import sh

from turtles_e2e import logger
from turtles_e2e.cluster import ClusterProvider, EKSClusterProvider
from turtles_e2e.components import GiteaRequest, IngressType, RancherRequest, ServiceType
from turtles_e2e.constants import (
    LABEL_CONTROL_PLANE,
    MANAGEMENT_CLUSTER_ENVIRONMENT_VAR,
    NS_NGINX_INGRESS,
    RANCHER_HOSTNAME_VAR,
    SERVICE_NGINX,
    WAIT_RANCHER,
)
from turtles_e2e.context import StageContext
from turtles_e2e.errors import ConfigError
from turtles_e2e.waiter import wait_until_ready


class ManagementClusterEnvironment(str, enum.Enum):
    KIND = "kind"
    ISOLATED_KIND = "isolated-kind"
    EKS = "eks"


@dataclass(frozen=True)
class PreSetupResult:
    """Output of the pre-cluster-setup hook.

    Attributes:
        custom_cluster_provider: Provider to use instead of kind, or None.
        ingress_type: Ingress flavour to deploy, or None for the default.
    """

    custom_cluster_provider: ClusterProvider | None = None
    ingress_type: IngressType | None = None


@dataclass(frozen=True)
class HookResult:
    """Overrides the Rancher stage must prefer over its defaults when present.

    Attributes:
        host_name: Externally reachable Rancher host name.
        extra_values: Additional Rancher chart values.
    """

    host_name: str | None = None
    extra_values: dict[str, str] = field(default_factory=dict)


# ============================================================================
# Strategy interfaces (defaults are no-ops)
# ============================================================================

class ClusterProviderStrategy:
    """Chooses the cluster provider and adapts cluster-dependent requests."""

    def pre_cluster_setup(self, ctx: StageContext) -> PreSetupResult:
        return PreSetupResult()

    def pre_gitea_install(self, ctx: StageContext, request: GiteaRequest) -> GiteaRequest:
        return request


class IngressStrategy:
    """Resolves the ingress flavour and the Rancher host name."""

    def ingress_type(self, ctx: StageContext) -> IngressType | None:
        return None

    def pre_rancher_install(self, ctx: StageContext, request: RancherRequest) -> HookResult:
        return HookResult()


@dataclass(frozen=True)
class Hooks:
    cluster_provider: ClusterProviderStrategy = field(default_factory=ClusterProviderStrategy)
    ingress: IngressStrategy = field(default_factory=IngressStrategy)

    def pre_cluster_setup(self, ctx: StageContext) -> PreSetupResult:
        result = self.cluster_provider.pre_cluster_setup(ctx)
        ingress_type = self.ingress.ingress_type(ctx)
        if ingress_type is not None:
            result = dataclasses.replace(result, ingress_type=ingress_type)
        return result

    def pre_rancher_install(self, ctx: StageContext, request: RancherRequest) -> RancherRequest:
        result = self.ingress.pre_rancher_install(ctx, request)
        return dataclasses.replace(
            request,
            hostname=result.host_name or request.hostname,
            additional_values={**request.additional_values, **result.extra_values},
        )

    def pre_gitea_install(self, ctx: StageContext, request: GiteaRequest) -> GiteaRequest:
        return self.cluster_provider.pre_gitea_install(ctx, request)


# ============================================================================
# Built-in strategies
# ============================================================================

class KindProviderStrategy(ClusterProviderStrategy):
    def pre_gitea_install(self, ctx: StageContext, request: GiteaRequest) -> GiteaRequest:
        return dataclasses.replace(request, service_type=ServiceType.NODE_PORT)


class EKSProviderStrategy(ClusterProviderStrategy):
    def pre_cluster_setup(self, ctx: StageContext) -> PreSetupResult:
        return PreSetupResult(custom_cluster_provider=EKSClusterProvider())

    def pre_gitea_install(self, ctx: StageContext, request: GiteaRequest) -> GiteaRequest:
        return dataclasses.replace(request, service_type=ServiceType.LOAD_BALANCER)


class NgrokIngressStrategy(IngressStrategy):
    """Public kind setup: ngrok tunnels to a host name given in config."""

    def ingress_type(self, ctx: StageContext) -> IngressType | None:
        return IngressType.NGROK

    def pre_rancher_install(self, ctx: StageContext, request: RancherRequest) -> HookResult:
        return HookResult(host_name=ctx.config.get_variable(RANCHER_HOSTNAME_VAR))


class IsolatedIngressStrategy(IngressStrategy):
    """Isolated kind setup: the control-plane node IP behind sslip.io."""

    def ingress_type(self, ctx: StageContext) -> IngressType | None:
        return IngressType.CUSTOM

    def pre_rancher_install(self, ctx: StageContext, request: RancherRequest) -> HookResult:
        kube = ctx.kube()
        for node in kube.list_items("nodes", selector=LABEL_CONTROL_PLANE):
            for address in node.get("status", {}).get("addresses", []):
                if address.get("type") == "InternalIP":
                    host = f"{address['address']}.sslip.io"
                    logger.info("Resolved isolated Rancher host name %s", host)
                    return HookResult(host_name=host, extra_values={"ingress.tls.source": "secret"})
        raise ConfigError("no control-plane node with an InternalIP found for the Rancher host name")


class EKSIngressStrategy(IngressStrategy):
    """EKS setup: the nginx ingress load balancer host name."""

    def ingress_type(self, ctx: StageContext) -> IngressType | None:
        return IngressType.EKS_NGINX

    def pre_rancher_install(self, ctx: StageContext, request: RancherRequest) -> HookResult:
        kube = ctx.kube()
        hosts: list[str] = []

        def _hostname_assigned() -> bool:
            try:
                service = kube.get("service", SERVICE_NGINX, namespace=NS_NGINX_INGRESS) or {}
            except sh.ErrorReturnCode:
                return False
            ingress = service.get("status", {}).get("loadBalancer", {}).get("ingress") or []
            if ingress and ingress[0].get("hostname"):
                hosts.append(ingress[0]["hostname"])
                return True
            return False

        wait_until_ready(_hostname_assigned, ctx.intervals(WAIT_RANCHER), "ingress load balancer host name")
        return HookResult(host_name=hosts[-1])


def hooks_for_environment(environment: ManagementClusterEnvironment | str | None) -> Hooks:
    """Built-in hooks for a management cluster environment; None yields no-op hooks.

    Raises:
        ConfigError: If the environment name is unknown.
    """
    if environment is None or environment == "":
        return Hooks()
    try:
        environment = ManagementClusterEnvironment(environment)
    except ValueError as err:
        raise ConfigError(f"unknown {MANAGEMENT_CLUSTER_ENVIRONMENT_VAR} {environment!r}") from err
    if environment == ManagementClusterEnvironment.EKS:
        return Hooks(EKSProviderStrategy(), EKSIngressStrategy())
    if environment == ManagementClusterEnvironment.ISOLATED_KIND:
        return Hooks(KindProviderStrategy(), IsolatedIngressStrategy())
    return Hooks(KindProviderStrategy(), NgrokIngressStrategy())


def hooks_from_config(ctx: StageContext) -> Hooks:
    return hooks_for_environment(ctx.config.get_variable(MANAGEMENT_CLUSTER_ENVIRONMENT_VAR, None))
