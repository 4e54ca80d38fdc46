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

"""Tests for hook strategies."""

import pytest

from conftest import ready_node
from turtles_e2e.cluster import EKSClusterProvider
from turtles_e2e.components import GiteaRequest, IngressType, RancherRequest, ServiceType
from turtles_e2e.errors import ConfigError
from turtles_e2e.hooks import (
    ClusterProviderStrategy,
    EKSIngressStrategy,
    EKSProviderStrategy,
    HookResult,
    Hooks,
    IngressStrategy,
    IsolatedIngressStrategy,
    KindProviderStrategy,
    NgrokIngressStrategy,
    hooks_for_environment,
    hooks_from_config,
)


def test_default_hooks_are_no_ops(ctx):
    hooks = Hooks()
    rancher = RancherRequest(password="pw", hostname="rancher.example.com", additional_values={"a": "1"})
    gitea = GiteaRequest(username="gitea", password="pw")

    pre_setup = hooks.pre_cluster_setup(ctx)

    assert pre_setup.custom_cluster_provider is None
    assert pre_setup.ingress_type is None
    assert hooks.pre_rancher_install(ctx, rancher) == rancher
    assert hooks.pre_gitea_install(ctx, gitea) is gitea


@pytest.mark.parametrize(
    "environment, provider, ingress",
    [
        ("kind", KindProviderStrategy, NgrokIngressStrategy),
        ("isolated-kind", KindProviderStrategy, IsolatedIngressStrategy),
        ("eks", EKSProviderStrategy, EKSIngressStrategy),
    ],
)
def test_hooks_for_environment(environment, provider, ingress):
    hooks = hooks_for_environment(environment)

    assert isinstance(hooks.cluster_provider, provider)
    assert isinstance(hooks.ingress, ingress)


def test_hooks_for_unknown_environment():
    with pytest.raises(ConfigError, match="gke"):
        hooks_for_environment("gke")


def test_hooks_from_config_without_environment(ctx, monkeypatch):
    monkeypatch.delenv("MANAGEMENT_CLUSTER_ENVIRONMENT", raising=False)

    hooks = hooks_from_config(ctx)

    assert type(hooks.cluster_provider) is ClusterProviderStrategy
    assert type(hooks.ingress) is IngressStrategy


def test_hook_host_name_wins_over_configured_one(ctx):
    class FixedHost(IngressStrategy):
        def pre_rancher_install(self, ctx, request):
            return HookResult(host_name="10.0.0.1.sslip.io", extra_values={"ingress.tls.source": "secret"})

    request = RancherRequest(password="pw", hostname="configured.example.com", additional_values={"a": "1"})

    updated = Hooks(ingress=FixedHost()).pre_rancher_install(ctx, request)

    assert updated.hostname == "10.0.0.1.sslip.io"
    assert updated.additional_values == {"a": "1", "ingress.tls.source": "secret"}
    assert request.hostname == "configured.example.com"


def test_pre_cluster_setup_merges_provider_and_ingress(ctx):
    hooks = Hooks(EKSProviderStrategy(), EKSIngressStrategy())

    result = hooks.pre_cluster_setup(ctx)

    assert isinstance(result.custom_cluster_provider, EKSClusterProvider)
    assert result.ingress_type == IngressType.EKS_NGINX


def test_provider_strategies_pick_gitea_service_type(ctx):
    request = GiteaRequest(username="gitea", password="pw", service_type=ServiceType.CLUSTER_IP)

    assert KindProviderStrategy().pre_gitea_install(ctx, request).service_type == ServiceType.NODE_PORT
    assert EKSProviderStrategy().pre_gitea_install(ctx, request).service_type == ServiceType.LOAD_BALANCER


def test_isolated_ingress_uses_control_plane_ip(ctx, kube):
    kube.list_items.return_value = [ready_node("172.18.0.3")]

    result = IsolatedIngressStrategy().pre_rancher_install(ctx, RancherRequest(password="pw"))

    assert result.host_name == "172.18.0.3.sslip.io"
    assert result.extra_values == {"ingress.tls.source": "secret"}


def test_isolated_ingress_without_nodes(ctx):
    with pytest.raises(ConfigError, match="InternalIP"):
        IsolatedIngressStrategy().pre_rancher_install(ctx, RancherRequest(password="pw"))


def test_eks_ingress_waits_for_load_balancer_host(ctx, kube):
    pending = {"status": {"loadBalancer": {}}}
    assigned = {"status": {"loadBalancer": {"ingress": [{"hostname": "abc.elb.amazonaws.com"}]}}}
    kube.get.side_effect = [pending, None, assigned]

    result = EKSIngressStrategy().pre_rancher_install(ctx, RancherRequest(password="pw"))

    assert result.host_name == "abc.elb.amazonaws.com"
    assert kube.get.call_count == 3
