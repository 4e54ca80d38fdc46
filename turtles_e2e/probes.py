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


"""Side-effect-free readiness probes built on the installer collaborator.

Every factory returns a zero-argument callable for ``wait_until_ready``:
False while the condition does not hold yet, True once it does, and
``ProbeError`` when the remote state shows a fault polling will not fix.
"""

from __future__ import annotations

from collections.abc import Callable

import sh

from turtles_e2e import logger
from turtles_e2e.errors import ProbeError
from turtles_e2e.kube import Kube

_FATAL_DEPLOYMENT_REASONS = {"ProgressDeadlineExceeded"}


def _condition(obj: dict, cond_type: str) -> dict | None:
    for cond in obj.get("status", {}).get("conditions", []) or []:
        if cond.get("type") == cond_type:
            return cond
    return None


def _transient(description: str, err: sh.ErrorReturnCode) -> bool:
    logger.debug("Probe for %s failed transiently: %s", description, str(err.stderr).strip())
    return False


def deployment_is_available(deployment: dict) -> bool:
    """Check a Deployment object for Available=True.

    Raises:
        ProbeError: If the rollout has exceeded its progress deadline.
    """
    progressing = _condition(deployment, "Progressing")
    if progressing and progressing.get("reason") in _FATAL_DEPLOYMENT_REASONS:
        name = deployment.get("metadata", {}).get("name", "?")
        raise ProbeError(f"deployment {name} rollout failed: {progressing.get('message', '')}")
    available = _condition(deployment, "Available")
    return bool(available and available.get("status") == "True")


def deployment_available(kube: Kube, name: str, namespace: str) -> Callable[[], bool]:
    def _probe() -> bool:
        try:
            deployment = kube.get("deployment", name, namespace=namespace)
        except sh.ErrorReturnCode as err:
            return _transient(f"deployment {namespace}/{name}", err)
        return deployment is not None and deployment_is_available(deployment)
    return _probe


def all_deployments_available(kube: Kube, namespace: str) -> Callable[[], bool]:
    def _probe() -> bool:
        try:
            items = kube.list_items("deployments", namespace=namespace)
        except sh.ErrorReturnCode as err:
            return _transient(f"deployments in {namespace}", err)
        return bool(items) and all(deployment_is_available(d) for d in items)
    return _probe


def nodes_ready(kube: Kube) -> Callable[[], bool]:
    def _probe() -> bool:
        try:
            items = kube.list_items("nodes")
        except sh.ErrorReturnCode as err:
            return _transient("nodes", err)
        return bool(items) and all(
            (_condition(node, "Ready") or {}).get("status") == "True" for node in items
        )
    return _probe


def resource_absent(kube: Kube, kind: str, name: str, namespace: str | None = None) -> Callable[[], bool]:
    def _probe() -> bool:
        try:
            return kube.get(kind, name, namespace=namespace) is None
        except sh.ErrorReturnCode as err:
            return _transient(f"{kind} {name}", err)
    return _probe


def selector_absent(kube: Kube, kind: str, selector: str, namespace: str | None = None) -> Callable[[], bool]:
    def _probe() -> bool:
        try:
            return not kube.list_items(kind, namespace=namespace, selector=selector)
        except sh.ErrorReturnCode as err:
            return _transient(f"{kind} -l {selector}", err)
    return _probe
