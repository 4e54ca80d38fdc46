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


"""Installer collaborator: thin helm/kubectl wrappers bound to one kubeconfig."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path

import sh
import yaml

from turtles_e2e import logger

_NOT_FOUND_MARKERS = ("NotFound", "not found")


class Kube:
    """Runs helm and kubectl against the cluster described by *kubeconfig*.

    Every method is a plain command invocation; readiness is never checked
    here. Callers pair mutations with probes through the readiness waiter.
    """

    def __init__(self, kubeconfig: Path | None = None) -> None:
        self.kubeconfig = Path(kubeconfig) if kubeconfig else None

    def _kube_args(self) -> list[str]:
        return ["--kubeconfig", str(self.kubeconfig)] if self.kubeconfig else []

    def kubectl(self, *args: str, stdin: str | None = None) -> str:
        kwargs = {"_in": stdin} if stdin is not None else {}
        return str(sh.kubectl(*self._kube_args(), *args, **kwargs))

    def helm(self, *args: str) -> str:
        return str(sh.helm(*self._kube_args(), *args))

    # ------------------------------------------------------------------
    # Helm
    # ------------------------------------------------------------------

    def helm_repo_add(self, name: str, url: str) -> None:
        sh.helm("repo", "add", name, url, "--force-update")
        sh.helm("repo", "update", name)

    def helm_install(
        self,
        release: str,
        chart: str,
        *,
        namespace: str,
        version: str | None = None,
        values_files: Iterable[Path] = (),
        set_values: Mapping[str, str] | None = None,
    ) -> None:
        """Install or upgrade a release, creating its namespace."""
        args = ["upgrade", "--install", release, chart, "--namespace", namespace, "--create-namespace"]
        if version:
            args += ["--version", version]
        for values_file in values_files:
            if Path(values_file).exists():
                args += ["-f", str(values_file)]
            else:
                logger.warning("Helm values file %s does not exist, skipping", values_file)
        for key, value in (set_values or {}).items():
            args += ["--set", f"{key}={value}"]
        self.helm(*args)

    def helm_uninstall(self, release: str, namespace: str) -> bool:
        """Uninstall a release. Returns False if it was not installed."""
        try:
            self.helm("uninstall", release, "--namespace", namespace)
        except sh.ErrorReturnCode_1 as err:
            if any(marker in str(err.stderr) for marker in _NOT_FOUND_MARKERS):
                return False
            raise
        return True

    # ------------------------------------------------------------------
    # kubectl
    # ------------------------------------------------------------------

    def apply(self, manifest: str) -> None:
        self.kubectl("apply", "-f", "-", stdin=manifest)

    def apply_objects(self, *objects: dict) -> None:
        self.apply(yaml.safe_dump_all(objects, sort_keys=False))

    def patch(self, kind: str, name: str, patch: Mapping, *, namespace: str | None = None) -> None:
        args = ["patch", kind, name, "--type", "merge", "-p", json.dumps(patch)]
        if namespace:
            args += ["-n", namespace]
        self.kubectl(*args)

    def delete(self, kind: str, name: str, *, namespace: str | None = None) -> None:
        args = ["delete", kind, name, "--ignore-not-found", "--wait=false"]
        if namespace:
            args += ["-n", namespace]
        self.kubectl(*args)

    def get(
        self,
        kind: str,
        name: str | None = None,
        *,
        namespace: str | None = None,
        selector: str | None = None,
    ) -> dict | None:
        """Return the object (or list) as a dict, or None if it does not exist."""
        args = ["get", kind]
        if name:
            args.append(name)
        if namespace:
            args += ["-n", namespace]
        if selector:
            args += ["-l", selector]
        args += ["-o", "json"]
        try:
            return json.loads(self.kubectl(*args))
        except sh.ErrorReturnCode as err:
            if any(marker in str(err.stderr) for marker in _NOT_FOUND_MARKERS):
                return None
            raise

    def list_items(self, kind: str, *, namespace: str | None = None, selector: str | None = None) -> list[dict]:
        result = self.get(kind, namespace=namespace, selector=selector)
        return (result or {}).get("items", [])

    def ensure_namespace(self, name: str, labels: Mapping[str, str] | None = None) -> None:
        metadata: dict = {"name": name}
        if labels:
            metadata["labels"] = dict(labels)
        self.apply_objects({"apiVersion": "v1", "kind": "Namespace", "metadata": metadata})

    def apply_secret(self, name: str, namespace: str, string_data: Mapping[str, str], secret_type: str) -> None:
        self.apply_objects({
            "apiVersion": "v1",
            "kind": "Secret",
            "type": secret_type,
            "metadata": {"name": name, "namespace": namespace},
            "stringData": dict(string_data),
        })

    def dump_cluster_info(self, output_dir: Path) -> None:
        output_dir.mkdir(parents=True, exist_ok=True)
        self.kubectl("cluster-info", "dump", "--all-namespaces", "--output-directory", str(output_dir))
