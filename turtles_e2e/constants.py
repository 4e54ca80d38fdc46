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


"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

# -- Resolved paths --
PACKAGE_DIR = Path(__file__).resolve().parent
DATA_DIR = PACKAGE_DIR / "data"


def load_dependencies() -> dict:
    """Load default chart repositories and versions from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = PACKAGE_DIR / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Config variable names --
ARTIFACTS_FOLDER_VAR = "ARTIFACTS_FOLDER"
USE_EXISTING_CLUSTER_VAR = "USE_EXISTING_CLUSTER"
BOOTSTRAP_CLUSTER_NAME_VAR = "BOOTSTRAP_CLUSTER_NAME"
SKIP_RESOURCE_CLEANUP_VAR = "SKIP_RESOURCE_CLEANUP"
MANAGEMENT_CLUSTER_ENVIRONMENT_VAR = "MANAGEMENT_CLUSTER_ENVIRONMENT"
KUBERNETES_MANAGEMENT_VERSION_VAR = "KUBERNETES_MANAGEMENT_VERSION"
HELM_EXTRA_VALUES_FOLDER_VAR = "HELM_EXTRA_VALUES_FOLDER"

RANCHER_VERSION_VAR = "RANCHER_VERSION"
RANCHER_HOSTNAME_VAR = "RANCHER_HOSTNAME"
RANCHER_PASSWORD_VAR = "RANCHER_PASSWORD"
RANCHER_REPO_NAME_VAR = "RANCHER_REPO_NAME"
RANCHER_URL_VAR = "RANCHER_URL"
RANCHER_PATH_VAR = "RANCHER_PATH"

CERT_MANAGER_REPO_NAME_VAR = "CERT_MANAGER_REPO_NAME"
CERT_MANAGER_URL_VAR = "CERT_MANAGER_URL"
CERT_MANAGER_PATH_VAR = "CERT_MANAGER_PATH"

TURTLES_VERSION_VAR = "TURTLES_VERSION"
TURTLES_REPO_NAME_VAR = "TURTLES_REPO_NAME"
TURTLES_URL_VAR = "TURTLES_URL"
TURTLES_PATH_VAR = "TURTLES_PATH"

NGROK_API_KEY_VAR = "NGROK_API_KEY"
NGROK_AUTHTOKEN_VAR = "NGROK_AUTHTOKEN"
NGROK_REPO_NAME_VAR = "NGROK_REPO_NAME"
NGROK_URL_VAR = "NGROK_URL"
NGROK_PATH_VAR = "NGROK_PATH"

GITEA_REPO_NAME_VAR = "GITEA_REPO_NAME"
GITEA_REPO_URL_VAR = "GITEA_REPO_URL"
GITEA_CHART_NAME_VAR = "GITEA_CHART_NAME"
GITEA_CHART_VERSION_VAR = "GITEA_CHART_VERSION"
GITEA_USER_NAME_VAR = "GITEA_USER_NAME"
GITEA_USER_PWD_VAR = "GITEA_USER_PWD"

# -- Wait profiles --
WAIT_RANCHER = "wait-rancher"
WAIT_CONTROLLERS = "wait-controllers"
WAIT_GITEA = "wait-gitea"
WAIT_GITEA_SERVICE = "wait-gitea-service"
WAIT_GITEA_UNINSTALL = "wait-gitea-uninstall"
DEFAULT_INTERVALS_SPEC = "default"

# -- Namespaces --
NS_RANCHER = "cattle-system"
NS_TURTLES = "rancher-turtles-system"
NS_CERT_MANAGER = "cert-manager"
NS_NGINX_INGRESS = "ingress-nginx"
NS_NGROK = "ngrok"
NS_GITEA = "default"
NS_FLEET_LOCAL = "fleet-local"

# -- Helm releases --
HELM_RELEASE_RANCHER = "rancher"
HELM_RELEASE_CERT_MANAGER = "cert-manager"
HELM_RELEASE_TURTLES = "rancher-turtles"
HELM_RELEASE_GITEA = "gitea"
HELM_RELEASE_NGROK = "ngrok"
HELM_RELEASE_NGINX = "ingress-nginx"

# -- Deployments waited on --
DEPLOYMENT_RANCHER = "rancher"
DEPLOYMENT_RANCHER_WEBHOOK = "rancher-webhook"
DEPLOYMENT_NGINX = "ingress-nginx-controller"
DEPLOYMENT_CUSTOM_INGRESS = "ingress-nginx-controller"
DEPLOYMENT_GITEA = "gitea"
SERVICE_GITEA_HTTP = "gitea-http"
SERVICE_NGINX = "ingress-nginx-controller"
NGINX_INGRESS_MANIFEST_URL = (
    "https://raw.githubusercontent.com/kubernetes/ingress-nginx/controller-v1.12.0/deploy/static/provider/kind/deploy.yaml"
)

# -- Labels --
LABEL_AUTO_IMPORT = "cluster-api.cattle.io/rancher-auto-import"
LABEL_CAPI_CLUSTER_OWNER = "cluster-api.cattle.io/capi-cluster-owner"
LABEL_CAPI_CLUSTER_OWNER_NS = "cluster-api.cattle.io/capi-cluster-owner-ns"
LABEL_CONTROL_PLANE = "node-role.kubernetes.io/control-plane"

# -- Gitea / Fleet --
AUTH_SECRET_NAME = "basic-auth-secret"
GITEA_HTTP_PORT = 3000

# -- Bootstrap cluster defaults --
DEFAULT_BOOTSTRAP_CLUSTER_NAME = "turtles-e2e"
DEFAULT_KIND_IMAGE = "kindest/node"
KUBECONFIG_FILE_NAME = "bootstrap-kubeconfig"

# -- Helm override keys --
HELM_KEY_FLEET_ADDON = "rancherTurtles.features.addon-provider-fleet.enabled"
HELM_KEY_GITEA_ADMIN_USER = "gitea.admin.username"
HELM_KEY_GITEA_ADMIN_PASSWORD = "gitea.admin.password"
HELM_KEY_GITEA_SERVICE_TYPE = "service.http.type"

# -- Scenario defaults --
SCENARIO_CREATE_WAIT = WAIT_RANCHER
SCENARIO_DELETE_WAIT = WAIT_CONTROLLERS

# -- Prerequisites --
REQUIRED_COMMANDS = ("kubectl", "helm", "git")
REQUIRED_WAIT_PROFILES = (WAIT_CONTROLLERS, WAIT_RANCHER, WAIT_GITEA, WAIT_GITEA_SERVICE, WAIT_GITEA_UNINSTALL)
