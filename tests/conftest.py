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

"""Shared fixtures: tiny interval profiles, a mocked installer, and a stage context."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from turtles_e2e.config import E2EConfig, IntervalRegistry
from turtles_e2e.context import StageContext
from turtles_e2e.kube import Kube

WAIT_NAMES = (
    "wait-rancher",
    "wait-controllers",
    "wait-gitea",
    "wait-gitea-service",
    "wait-gitea-uninstall",
)

BASE_VARIABLES = {
    "ARTIFACTS_FOLDER": "_artifacts",
    "RANCHER_PASSWORD": "rancheradmin",
    "GITEA_USER_NAME": "gitea",
    "GITEA_USER_PWD": "password",
}


def pytest_configure(config):
    """Keep debug output from the waiter out of test runs."""
    logging.basicConfig(level=logging.WARNING, force=True)


def make_config(variables: dict | None = None, intervals: dict | None = None, name: str = "test") -> E2EConfig:
    raw_intervals = {f"default/{wait}": ["60ms", "5ms"] for wait in WAIT_NAMES}
    raw_intervals.update(intervals or {})
    return E2EConfig(name, {**BASE_VARIABLES, **(variables or {})}, IntervalRegistry.from_raw(raw_intervals))


@pytest.fixture
def kube() -> MagicMock:
    mock = MagicMock(spec=Kube)
    mock.list_items.return_value = []
    mock.get.return_value = None
    mock.helm_uninstall.return_value = True
    return mock


@pytest.fixture
def config(tmp_path) -> E2EConfig:
    return make_config({"ARTIFACTS_FOLDER": str(tmp_path / "artifacts")})


@pytest.fixture
def ctx(config, kube) -> StageContext:
    return StageContext(config=config, kube_factory=lambda _kubeconfig: kube)


def available_deployment(name: str) -> dict:
    return {
        "metadata": {"name": name},
        "status": {"conditions": [{"type": "Available", "status": "True"}]},
    }


def ready_node(ip: str = "172.18.0.2") -> dict:
    return {
        "metadata": {"name": "node"},
        "status": {
            "conditions": [{"type": "Ready", "status": "True"}],
            "addresses": [{"type": "InternalIP", "address": ip}],
        },
    }
