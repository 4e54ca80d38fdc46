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

"""Tests for readiness probes."""

import sh
import pytest

from conftest import available_deployment, ready_node
from turtles_e2e.errors import ProbeError
from turtles_e2e.probes import (
    all_deployments_available,
    deployment_available,
    deployment_is_available,
    nodes_ready,
    resource_absent,
    selector_absent,
)


def _kubectl_failure() -> sh.ErrorReturnCode:
    return sh.ErrorReturnCode_1("kubectl get", b"", b"connection refused")


def test_deployment_is_available():
    assert deployment_is_available(available_deployment("rancher"))
    assert not deployment_is_available({"metadata": {"name": "rancher"}, "status": {}})


def test_deployment_past_progress_deadline_is_fatal():
    deployment = {
        "metadata": {"name": "rancher"},
        "status": {"conditions": [
            {"type": "Progressing", "status": "False", "reason": "ProgressDeadlineExceeded", "message": "timed out"},
        ]},
    }

    with pytest.raises(ProbeError, match="rancher rollout failed"):
        deployment_is_available(deployment)


def test_deployment_available_probe(kube):
    probe = deployment_available(kube, "rancher", "cattle-system")

    assert probe() is False
    kube.get.return_value = available_deployment("rancher")
    assert probe() is True
    kube.get.assert_called_with("deployment", "rancher", namespace="cattle-system")


def test_command_failures_are_transient(kube):
    kube.get.side_effect = _kubectl_failure()
    kube.list_items.side_effect = _kubectl_failure()

    assert deployment_available(kube, "rancher", "cattle-system")() is False
    assert all_deployments_available(kube, "cert-manager")() is False
    assert nodes_ready(kube)() is False


def test_all_deployments_available_needs_at_least_one(kube):
    probe = all_deployments_available(kube, "cert-manager")

    assert probe() is False
    kube.list_items.return_value = [available_deployment("a"), {"metadata": {"name": "b"}}]
    assert probe() is False
    kube.list_items.return_value = [available_deployment("a"), available_deployment("b")]
    assert probe() is True


def test_nodes_ready(kube):
    kube.list_items.return_value = [ready_node(), {"status": {"conditions": []}}]
    assert nodes_ready(kube)() is False
    kube.list_items.return_value = [ready_node()]
    assert nodes_ready(kube)() is True


def test_absence_probes(kube):
    assert resource_absent(kube, "deployment", "gitea", "default")() is True
    kube.list_items.return_value = [{"metadata": {"name": "c-abc"}}]
    assert selector_absent(kube, "clusters.management.cattle.io", "owner=c1")() is False
