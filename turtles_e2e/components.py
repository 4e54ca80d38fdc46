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


"""Ingress, Rancher, Rancher Turtles, and Gitea installation stages."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path

import sh
import yaml
from rich.panel import Panel

from turtles_e2e import console, logger
from turtles_e2e.constants import (
    AUTH_SECRET_NAME,
    CERT_MANAGER_PATH_VAR,
    CERT_MANAGER_REPO_NAME_VAR,
    CERT_MANAGER_URL_VAR,
    DATA_DIR,
    DEPLOYMENT_CUSTOM_INGRESS,
    DEPLOYMENT_GITEA,
    DEPLOYMENT_NGINX,
    DEPLOYMENT_RANCHER,
    DEPLOYMENT_RANCHER_WEBHOOK,
    GITEA_CHART_NAME_VAR,
    GITEA_CHART_VERSION_VAR,
    GITEA_HTTP_PORT,
    GITEA_REPO_NAME_VAR,
    GITEA_REPO_URL_VAR,
    GITEA_USER_NAME_VAR,
    GITEA_USER_PWD_VAR,
    HELM_EXTRA_VALUES_FOLDER_VAR,
    HELM_KEY_FLEET_ADDON,
    HELM_KEY_GITEA_ADMIN_PASSWORD,
    HELM_KEY_GITEA_ADMIN_USER,
    HELM_KEY_GITEA_SERVICE_TYPE,
    HELM_RELEASE_CERT_MANAGER,
    HELM_RELEASE_GITEA,
    HELM_RELEASE_NGINX,
    HELM_RELEASE_NGROK,
    HELM_RELEASE_RANCHER,
    HELM_RELEASE_TURTLES,
    NGINX_INGRESS_MANIFEST_URL,
    NGROK_API_KEY_VAR,
    NGROK_AUTHTOKEN_VAR,
    NGROK_PATH_VAR,
    NGROK_REPO_NAME_VAR,
    NGROK_URL_VAR,
    NS_CERT_MANAGER,
    NS_FLEET_LOCAL,
    NS_GITEA,
    NS_NGINX_INGRESS,
    NS_NGROK,
    NS_RANCHER,
    NS_TURTLES,
    RANCHER_HOSTNAME_VAR,
    RANCHER_PASSWORD_VAR,
    RANCHER_PATH_VAR,
    RANCHER_REPO_NAME_VAR,
    RANCHER_URL_VAR,
    RANCHER_VERSION_VAR,
    SERVICE_GITEA_HTTP,
    TURTLES_PATH_VAR,
    TURTLES_REPO_NAME_VAR,
    TURTLES_URL_VAR,
    TURTLES_VERSION_VAR,
    WAIT_CONTROLLERS,
    WAIT_GITEA,
    WAIT_GITEA_SERVICE,
    WAIT_GITEA_UNINSTALL,
    WAIT_RANCHER,
    dep_value,
)
from turtles_e2e.context import StageContext
from turtles_e2e.errors import ConfigError
from turtles_e2e.kube import Kube
from turtles_e2e.probes import all_deployments_available, deployment_available, resource_absent
from turtles_e2e.utils import render_template
from turtles_e2e.waiter import wait_until_ready


class IngressType(str, enum.Enum):
    NGROK = "ngrok"
    EKS_NGINX = "eks-nginx"
    CUSTOM = "custom"


class ServiceType(str, enum.Enum):
    NODE_PORT = "NodePort"
    LOAD_BALANCER = "LoadBalancer"
    CLUSTER_IP = "ClusterIP"


def _extra_values(ctx: StageContext, file_name: str) -> Path | None:
    folder = ctx.config.get_variable(HELM_EXTRA_VALUES_FOLDER_VAR, None)
    return Path(folder) / file_name if folder else None


def _chart_source(ctx: StageContext, dep_key: str, repo_var: str, url_var: str, path_var: str) -> tuple[str, str, str]:
    """Resolve (repo name, repo URL, chart path) from config, falling back to dependencies.yaml."""
    get = ctx.config.get_variable
    return (
        get(repo_var, dep_value(dep_key, "repo_name")),
        get(url_var, dep_value(dep_key, "url")),
        get(path_var, dep_value(dep_key, "chart")),
    )


# ============================================================================
# Ingress
# ============================================================================

@dataclass(frozen=True)
class IngressRequest:
    """Options for deploying the ingress layer used by Rancher.

    Attributes:
        ingress_type: Which ingress flavour to deploy.
        extra_values_path: Optional helm values file for chart-based ingresses.
        chart_repo_name: Helm repo name for the chart.
        chart_repo_url: Helm repo URL for the chart.
        chart_path: Chart reference (``<repo>/<chart>``).
        ngrok_api_key: ngrok API key, required for ngrok.
        ngrok_auth_token: ngrok auth token, required for ngrok.
        custom_manifest: Manifest path or URL applied for the custom ingress.
    """

    ingress_type: IngressType
    extra_values_path: Path | None = None
    chart_repo_name: str = ""
    chart_repo_url: str = ""
    chart_path: str = ""
    ngrok_api_key: str = ""
    ngrok_auth_token: str = ""
    custom_manifest: str = NGINX_INGRESS_MANIFEST_URL


def build_ingress_request(ctx: StageContext, ingress_type: IngressType | None) -> IngressRequest:
    """Build the ingress request; defaults to the custom nginx ingress.

    Raises:
        ConfigError: If ngrok is selected without its credentials.
    """
    ingress_type = ingress_type or IngressType.CUSTOM
    extra_values = _extra_values(ctx, "deploy-rancher-ingress.yaml")
    if ingress_type == IngressType.NGROK:
        repo_name, repo_url, chart = _chart_source(ctx, "ngrok", NGROK_REPO_NAME_VAR, NGROK_URL_VAR, NGROK_PATH_VAR)
        return IngressRequest(
            ingress_type=ingress_type,
            extra_values_path=extra_values,
            chart_repo_name=repo_name,
            chart_repo_url=repo_url,
            chart_path=chart,
            ngrok_api_key=ctx.config.get_variable(NGROK_API_KEY_VAR),
            ngrok_auth_token=ctx.config.get_variable(NGROK_AUTHTOKEN_VAR),
        )
    if ingress_type == IngressType.EKS_NGINX:
        return IngressRequest(
            ingress_type=ingress_type,
            extra_values_path=extra_values,
            chart_repo_name=dep_value("ingress_nginx", "repo_name"),
            chart_repo_url=dep_value("ingress_nginx", "url"),
            chart_path=dep_value("ingress_nginx", "chart"),
        )
    return IngressRequest(ingress_type=ingress_type)


def deploy_ingress(ctx: StageContext, request: IngressRequest) -> None:
    """Deploy the ingress controller and wait for it to be available."""
    console.print(Panel.fit(f"Deploying {request.ingress_type.value} ingress", style="bold blue"))
    kube = ctx.kube()
    profile = ctx.intervals(WAIT_RANCHER)
    values_files = [request.extra_values_path] if request.extra_values_path else []

    if request.ingress_type == IngressType.NGROK:
        if not (request.ngrok_api_key and request.ngrok_auth_token):
            raise ConfigError("ngrok ingress requires NGROK_API_KEY and NGROK_AUTHTOKEN")
        kube.helm_repo_add(request.chart_repo_name, request.chart_repo_url)
        kube.helm_install(
            HELM_RELEASE_NGROK, request.chart_path,
            namespace=NS_NGROK,
            values_files=values_files,
            set_values={
                "credentials.apiKey": request.ngrok_api_key,
                "credentials.authtoken": request.ngrok_auth_token,
            },
        )
        wait_until_ready(all_deployments_available(kube, NS_NGROK), profile, "ngrok ingress controller")
        kube.patch(
            "ingressclass", "ngrok",
            {"metadata": {"annotations": {"ingressclass.kubernetes.io/is-default-class": "true"}}},
        )
    elif request.ingress_type == IngressType.EKS_NGINX:
        kube.helm_repo_add(request.chart_repo_name, request.chart_repo_url)
        kube.helm_install(HELM_RELEASE_NGINX, request.chart_path, namespace=NS_NGINX_INGRESS, values_files=values_files)
        wait_until_ready(deployment_available(kube, DEPLOYMENT_NGINX, NS_NGINX_INGRESS), profile, "nginx ingress")
    else:
        kube.kubectl("apply", "-f", request.custom_manifest)
        wait_until_ready(
            deployment_available(kube, DEPLOYMENT_CUSTOM_INGRESS, NS_NGINX_INGRESS), profile, "custom ingress")

    ctx.env.publish("ingress", ingress_type=request.ingress_type)
    console.print("[green]\u2705 Ingress deployed[/green]")


# ============================================================================
# Rancher
# ============================================================================

@dataclass(frozen=True)
class RancherRequest:
    """Options for installing cert-manager and Rancher.

    Attributes:
        hostname: Rancher host name; hooks may supply it.
        password: Bootstrap admin password.
        version: Rancher chart version, or empty for latest.
        namespace: Target namespace.
        chart_repo_name: Helm repo name for the Rancher chart.
        chart_repo_url: Helm repo URL for the Rancher chart.
        chart_path: Chart reference.
        install_cert_manager: Whether to install cert-manager first.
        cert_manager_repo_name: Helm repo name for cert-manager.
        cert_manager_repo_url: Helm repo URL for cert-manager.
        cert_manager_chart: cert-manager chart reference.
        cert_manager_version: cert-manager chart version.
        extra_values_path: Optional helm values file.
        additional_values: Extra ``--set`` values; hooks may add to them.
        patches: Manifests rendered with the host name and applied after install.
    """

    password: str
    version: str = ""
    hostname: str | None = None
    namespace: str = NS_RANCHER
    chart_repo_name: str = ""
    chart_repo_url: str = ""
    chart_path: str = ""
    install_cert_manager: bool = True
    cert_manager_repo_name: str = ""
    cert_manager_repo_url: str = ""
    cert_manager_chart: str = ""
    cert_manager_version: str = ""
    extra_values_path: Path | None = None
    additional_values: dict[str, str] = field(default_factory=dict)
    patches: tuple[Path, ...] = (DATA_DIR / "rancher" / "setting-patch.yaml",)


def build_rancher_request(ctx: StageContext) -> RancherRequest:
    get = ctx.config.get_variable
    repo_name, repo_url, chart = _chart_source(ctx, "rancher", RANCHER_REPO_NAME_VAR, RANCHER_URL_VAR, RANCHER_PATH_VAR)
    cm_name, cm_url, cm_chart = _chart_source(
        ctx, "cert_manager", CERT_MANAGER_REPO_NAME_VAR, CERT_MANAGER_URL_VAR, CERT_MANAGER_PATH_VAR)
    return RancherRequest(
        password=get(RANCHER_PASSWORD_VAR),
        version=get(RANCHER_VERSION_VAR, ""),
        hostname=get(RANCHER_HOSTNAME_VAR, None),
        chart_repo_name=repo_name,
        chart_repo_url=repo_url,
        chart_path=chart,
        cert_manager_repo_name=cm_name,
        cert_manager_repo_url=cm_url,
        cert_manager_chart=cm_chart,
        cert_manager_version=dep_value("cert_manager", "version", default=""),
        extra_values_path=_extra_values(ctx, "deploy-rancher.yaml"),
    )


def _install_cert_manager(ctx: StageContext, kube: Kube, request: RancherRequest) -> None:
    console.print("[yellow]\u2139\ufe0f  Installing cert-manager...[/yellow]")
    kube.helm_repo_add(request.cert_manager_repo_name, request.cert_manager_repo_url)
    kube.helm_install(
        HELM_RELEASE_CERT_MANAGER, request.cert_manager_chart,
        namespace=NS_CERT_MANAGER,
        version=request.cert_manager_version,
        set_values={"crds.enabled": "true"},
    )
    wait_until_ready(all_deployments_available(kube, NS_CERT_MANAGER), ctx.intervals(WAIT_CONTROLLERS), "cert-manager")


def deploy_rancher(ctx: StageContext, request: RancherRequest) -> None:
    """Install Rancher (and cert-manager) and wait for it and its webhook.

    Raises:
        ConfigError: If no host name was configured or resolved by a hook.
    """
    console.print(Panel.fit("Deploying Rancher", style="bold blue"))
    if not request.hostname:
        raise ConfigError(f"Rancher host name is not set; configure {RANCHER_HOSTNAME_VAR} or an ingress hook")
    kube = ctx.kube()
    if request.install_cert_manager:
        _install_cert_manager(ctx, kube, request)

    console.print(f"[yellow]Version: {request.version or 'latest'}, host: {request.hostname}[/yellow]")
    kube.helm_repo_add(request.chart_repo_name, request.chart_repo_url)
    kube.helm_install(
        HELM_RELEASE_RANCHER, request.chart_path,
        namespace=request.namespace,
        version=request.version,
        values_files=[request.extra_values_path] if request.extra_values_path else [],
        set_values={
            "hostname": request.hostname,
            "bootstrapPassword": request.password,
            "replicas": "1",
            **request.additional_values,
        },
    )
    wait_until_ready(
        deployment_available(kube, DEPLOYMENT_RANCHER, request.namespace), ctx.intervals(WAIT_RANCHER), "Rancher")
    for patch in request.patches:
        kube.apply(render_template(patch.read_text(), {RANCHER_HOSTNAME_VAR: request.hostname}))
    wait_until_ready(
        deployment_available(kube, DEPLOYMENT_RANCHER_WEBHOOK, request.namespace),
        ctx.intervals(WAIT_CONTROLLERS), "Rancher webhook")

    ctx.env.publish(
        "rancher",
        host_name=request.hostname,
        rancher_namespace=request.namespace,
        rancher_password=request.password,
    )
    console.print(f"[green]\u2705 Rancher is available at https://{request.hostname}[/green]")


# ============================================================================
# Rancher Turtles
# ============================================================================

@dataclass(frozen=True)
class TurtlesRequest:
    """Options for installing the Rancher Turtles controller.

    Attributes:
        namespace: Target namespace.
        version: Chart version, or empty for latest.
        chart_repo_name: Helm repo name.
        chart_repo_url: Helm repo URL.
        chart_path: Chart reference.
        additional_values: Extra ``--set`` values.
        providers_manifest: CAPIProvider manifest applied once the controller is up.
    """

    namespace: str = NS_TURTLES
    version: str = ""
    chart_repo_name: str = ""
    chart_repo_url: str = ""
    chart_path: str = ""
    additional_values: dict[str, str] = field(default_factory=lambda: {HELM_KEY_FLEET_ADDON: "true"})
    providers_manifest: Path = DATA_DIR / "capi-providers.yaml"


def build_turtles_request(ctx: StageContext) -> TurtlesRequest:
    repo_name, repo_url, chart = _chart_source(ctx, "turtles", TURTLES_REPO_NAME_VAR, TURTLES_URL_VAR, TURTLES_PATH_VAR)
    return TurtlesRequest(
        version=ctx.config.get_variable(TURTLES_VERSION_VAR, ""),
        chart_repo_name=repo_name,
        chart_repo_url=repo_url,
        chart_path=chart,
    )


def _provider_namespaces(manifest: str) -> list[str]:
    namespaces: list[str] = []
    for doc in yaml.safe_load_all(manifest):
        if doc and doc.get("kind") == "CAPIProvider":
            ns = doc.get("metadata", {}).get("namespace")
            if ns and ns not in namespaces:
                namespaces.append(ns)
    return namespaces


def deploy_turtles(ctx: StageContext, request: TurtlesRequest) -> None:
    """Install Rancher Turtles, apply CAPI providers, and wait for all controllers."""
    console.print(Panel.fit("Deploying Rancher Turtles", style="bold blue"))
    ctx.env.require("rancher_namespace")
    kube = ctx.kube()
    profile = ctx.intervals(WAIT_CONTROLLERS)

    kube.helm_repo_add(request.chart_repo_name, request.chart_repo_url)
    kube.helm_install(
        HELM_RELEASE_TURTLES, request.chart_path,
        namespace=request.namespace,
        version=request.version,
        set_values=request.additional_values,
    )
    wait_until_ready(all_deployments_available(kube, request.namespace), profile, "Rancher Turtles")

    manifest = request.providers_manifest.read_text()
    namespaces = _provider_namespaces(manifest)
    for ns in namespaces:
        kube.ensure_namespace(ns)
    kube.apply(manifest)
    for ns in namespaces:
        wait_until_ready(all_deployments_available(kube, ns), profile, f"CAPI providers in {ns}")

    ctx.env.publish("turtles", turtles_namespace=request.namespace)
    console.print("[green]\u2705 Rancher Turtles deployed[/green]")


# ============================================================================
# Gitea
# ============================================================================

@dataclass(frozen=True)
class GiteaRequest:
    """Options for deploying the Gitea git server.

    Attributes:
        username: Admin user name.
        password: Admin password.
        namespace: Target namespace.
        chart_repo_name: Helm repo name.
        chart_repo_url: Helm repo URL.
        chart_name: Chart name inside the repo.
        chart_version: Chart version.
        values_file: Base values file.
        values: Extra ``--set`` values.
        service_type: How the HTTP service is exposed; hooks may change it.
        auth_secret_name: Basic-auth secret created for Fleet.
    """

    username: str
    password: str
    namespace: str = NS_GITEA
    chart_repo_name: str = ""
    chart_repo_url: str = ""
    chart_name: str = ""
    chart_version: str = ""
    values_file: Path = DATA_DIR / "gitea" / "values.yaml"
    values: dict[str, str] = field(default_factory=dict)
    service_type: ServiceType = ServiceType.NODE_PORT
    auth_secret_name: str = AUTH_SECRET_NAME


def build_gitea_request(ctx: StageContext) -> GiteaRequest:
    get = ctx.config.get_variable
    return GiteaRequest(
        username=get(GITEA_USER_NAME_VAR),
        password=get(GITEA_USER_PWD_VAR),
        chart_repo_name=get(GITEA_REPO_NAME_VAR, dep_value("gitea", "repo_name")),
        chart_repo_url=get(GITEA_REPO_URL_VAR, dep_value("gitea", "url")),
        chart_name=get(GITEA_CHART_NAME_VAR, dep_value("gitea", "chart")),
        chart_version=get(GITEA_CHART_VERSION_VAR, dep_value("gitea", "version")),
    )


def _node_internal_ip(kube: Kube) -> str | None:
    for node in kube.list_items("nodes"):
        for address in node.get("status", {}).get("addresses", []):
            if address.get("type") == "InternalIP":
                return address.get("address")
    return None


def resolve_gitea_address(kube: Kube, request: GiteaRequest) -> str | None:
    """Return the externally reachable Gitea URL, or None while it is not assigned yet."""
    try:
        service = kube.get("service", SERVICE_GITEA_HTTP, namespace=request.namespace)
    except sh.ErrorReturnCode as err:
        logger.debug("Gitea service lookup failed: %s", err)
        return None
    if not service:
        return None
    ports = service.get("spec", {}).get("ports", [])
    if request.service_type == ServiceType.LOAD_BALANCER:
        ingress = service.get("status", {}).get("loadBalancer", {}).get("ingress") or []
        if not ingress:
            return None
        host = ingress[0].get("hostname") or ingress[0].get("ip")
        return f"http://{host}:{GITEA_HTTP_PORT}" if host else None
    if request.service_type == ServiceType.NODE_PORT:
        node_port = next((p.get("nodePort") for p in ports if p.get("nodePort")), None)
        ip = _node_internal_ip(kube)
        return f"http://{ip}:{node_port}" if node_port and ip else None
    return f"http://{SERVICE_GITEA_HTTP}.{request.namespace}.svc:{GITEA_HTTP_PORT}"


def deploy_gitea(ctx: StageContext, request: GiteaRequest) -> str:
    """Deploy Gitea, wait for its rollout and address, and create the Fleet auth secret.

    Returns:
        The git server base URL.
    """
    console.print(Panel.fit("Deploying Gitea", style="bold blue"))
    kube = ctx.kube()
    kube.helm_repo_add(request.chart_repo_name, request.chart_repo_url)
    kube.helm_install(
        HELM_RELEASE_GITEA, f"{request.chart_repo_name}/{request.chart_name}",
        namespace=request.namespace,
        version=request.chart_version,
        values_files=[request.values_file],
        set_values={
            HELM_KEY_GITEA_ADMIN_USER: request.username,
            HELM_KEY_GITEA_ADMIN_PASSWORD: request.password,
            HELM_KEY_GITEA_SERVICE_TYPE: request.service_type.value,
            **request.values,
        },
    )
    wait_until_ready(
        deployment_available(kube, DEPLOYMENT_GITEA, request.namespace), ctx.intervals(WAIT_GITEA), "Gitea rollout")

    resolved: list[str] = []

    def _address_assigned() -> bool:
        address = resolve_gitea_address(kube, request)
        if address:
            resolved.append(address)
        return bool(address)

    wait_until_ready(_address_assigned, ctx.intervals(WAIT_GITEA_SERVICE), "Gitea service address")
    git_address = resolved[-1]

    kube.ensure_namespace(NS_FLEET_LOCAL)
    kube.apply_secret(
        request.auth_secret_name, NS_FLEET_LOCAL,
        {"username": request.username, "password": request.password},
        "kubernetes.io/basic-auth",
    )
    ctx.env.publish(
        "gitea",
        gitea_namespace=request.namespace,
        git_address=git_address,
        git_auth_secret_name=request.auth_secret_name,
    )
    console.print(f"[green]\u2705 Gitea is available at {git_address}[/green]")
    return git_address


@dataclass(frozen=True)
class GiteaUninstallRequest:
    namespace: str = NS_GITEA
    release: str = HELM_RELEASE_GITEA


def uninstall_gitea(ctx: StageContext, request: GiteaUninstallRequest) -> None:
    """Uninstall Gitea and wait until its deployment is gone."""
    console.print(Panel.fit("Uninstalling Gitea", style="bold blue"))
    kube = ctx.kube()
    if not kube.helm_uninstall(request.release, request.namespace):
        console.print("[yellow]   No existing Gitea release found[/yellow]")
        return
    wait_until_ready(
        resource_absent(kube, "deployment", DEPLOYMENT_GITEA, request.namespace),
        ctx.intervals(WAIT_GITEA_UNINSTALL), "Gitea removal")
    console.print("[green]\u2705 Gitea uninstalled[/green]")
