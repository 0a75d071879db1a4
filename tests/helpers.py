# /*
# Copyright 2026 The Grove Authors.
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

"""Fakes for the engine, cluster, Kubernetes API and helm."""

from __future__ import annotations

import copy
from typing import Any

from kubernetes import client

from localdeploy.charts import ChartMetadata, ChartRelease, ChartRequest
from localdeploy.errors import ChartDeployFailed, ReleaseNotFound


def running_container(host_port: str = "8000", host_ip: str = "0.0.0.0", status: str = "running") -> dict[str, Any]:
    return {
        "State": {"Status": status},
        "HostConfig": {
            "PortBindings": {
                "6443/tcp": [{"HostIp": "127.0.0.1", "HostPort": "40123"}],
                "80/tcp": [{"HostIp": host_ip, "HostPort": host_port}],
            },
        },
    }


class FakeEngine:
    def __init__(self, container: dict[str, Any] | None = None, version_error: Exception | None = None) -> None:
        self.container = container if container is not None else running_container()
        self.version_error = version_error
        self.inspected: list[str] = []
        self.closed = False

    def version(self) -> dict[str, Any]:
        if self.version_error is not None:
            raise self.version_error
        return {"Version": "27.1.1", "Arch": "arm64", "Platform": {"Name": "Docker Desktop 4.33.0"}}

    def info(self) -> dict[str, Any]:
        return {"NCPU": 8, "MemTotal": 8_221_675_520}

    def inspect_container(self, name: str) -> dict[str, Any]:
        self.inspected.append(name)
        return self.container

    def close(self) -> None:
        self.closed = True


class FakeCluster:
    def __init__(self, exists: bool = False) -> None:
        self._exists = exists
        self.created: list[tuple[int, tuple]] = []
        self.deleted = 0
        self.delete_error: Exception | None = None

    def exists(self) -> bool:
        return self._exists

    def create(self, port: int, extra_mounts=()) -> None:
        self.created.append((port, tuple(extra_mounts)))
        self._exists = True

    def delete(self) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted += 1
        self._exists = False


class FakeKube:
    """In-memory ClusterApi.

    Deleted namespaces linger for ``namespace_linger`` existence checks
    before they disappear; a negative value keeps them forever.
    """

    def __init__(self) -> None:
        self.ingresses: dict[tuple[str, str], client.V1Ingress] = {}
        self.secrets: dict[tuple[str, str], client.V1Secret] = {}
        self.services: dict[tuple[str, str], client.V1Service] = {}
        self.namespaces: set[str] = set()
        self.namespace_linger = 0
        self._terminating: dict[str, int] = {}
        self.calls: list[str] = []
        self.deleted_secret_collections: list[tuple[str, str, str]] = []
        self.pods: list[client.V1Pod] = []
        self.pod_log_text: dict[str, str] = {}

    def server_version(self) -> str:
        return "v1.29.8"

    def ingress_get(self, namespace, name):
        self.calls.append("ingress_get")
        found = self.ingresses.get((namespace, name))
        return copy.deepcopy(found)

    def ingress_create(self, namespace, ingress):
        self.calls.append("ingress_create")
        key = (namespace, ingress.metadata.name)
        assert key not in self.ingresses
        ingress.metadata.resource_version = "1"
        self.ingresses[key] = ingress

    def ingress_replace(self, namespace, ingress):
        self.calls.append("ingress_replace")
        key = (namespace, ingress.metadata.name)
        assert key in self.ingresses
        ingress.metadata.resource_version = str(int(ingress.metadata.resource_version or "0") + 1)
        self.ingresses[key] = ingress

    def namespace_exists(self, name):
        if name in self._terminating:
            if self._terminating[name] == 0:
                del self._terminating[name]
                self.namespaces.discard(name)
                return False
            self._terminating[name] -= 1
            return True
        return name in self.namespaces

    def namespace_ensure(self, name):
        self.calls.append("namespace_ensure")
        self.namespaces.add(name)

    def namespace_delete(self, name):
        self.calls.append("namespace_delete")
        if name in self.namespaces and name not in self._terminating:
            self._terminating[name] = self.namespace_linger if self.namespace_linger >= 0 else 10**9

    def secret_create_or_replace(self, namespace, secret):
        self.calls.append("secret_create_or_replace")
        self.secrets[(namespace, secret.metadata.name)] = secret

    def secret_delete_collection(self, namespace, label_selector, secret_type):
        self.deleted_secret_collections.append((namespace, label_selector, secret_type))

    def service_get(self, namespace, name):
        try:
            return self.services[(namespace, name)]
        except KeyError:
            raise client.ApiException(status=404, reason="Not Found") from None

    def pod_list(self, namespace):
        return [p for p in self.pods if p.metadata.namespace == namespace]

    def pod_logs(self, namespace, name):
        try:
            return self.pod_log_text[name]
        except KeyError:
            raise client.ApiException(status=400, reason="container not found") from None


class FakeChartClient:
    """In-memory ChartClient.

    ``install_errors`` maps a release name to a list of errors raised by
    successive install attempts before one succeeds.
    """

    def __init__(self) -> None:
        self.repos: dict[str, str] = {}
        self.charts: dict[str, ChartMetadata] = {}
        self.releases: dict[tuple[str, str], ChartRelease] = {}
        self.install_errors: dict[str, list[Exception]] = {}
        self.installs: list[ChartRequest] = []
        self.uninstalled: list[str] = []
        self.release_lookup_error: Exception | None = None

    def add_or_update_repo(self, name, url):
        self.repos[name] = url

    def get_chart(self, chart, version):
        return self.charts.get(chart) or ChartMetadata(name=chart, version=version or "1.0.0", app_version="1.0.0")

    def install_or_upgrade(self, request, timeout):
        self.installs.append(request)
        pending = self.install_errors.get(request.release_name)
        if pending:
            raise pending.pop(0)
        chart = self.get_chart(request.chart_name, request.chart_version)
        key = (request.release_name, request.namespace)
        previous = self.releases.get(key)
        release = ChartRelease(
            name=request.release_name,
            namespace=request.namespace,
            revision=previous.revision + 1 if previous else 1,
            status="deployed",
            chart_version=chart.version,
            app_version=chart.app_version,
        )
        self.releases[key] = release
        return release

    def get_release(self, name, namespace):
        if self.release_lookup_error is not None:
            raise self.release_lookup_error
        try:
            return self.releases[(name, namespace)]
        except KeyError:
            raise ReleaseNotFound(f"release {name} not found") from None

    def uninstall(self, name, namespace):
        if (name, namespace) not in self.releases:
            raise ChartDeployFailed(f"unable to uninstall release {name}: release: not found")
        self.uninstalled.append(name)
        del self.releases[(name, namespace)]


def pod(name: str, phase: str, namespace: str = "airbyte-localdeploy") -> client.V1Pod:
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace),
        status=client.V1PodStatus(phase=phase),
    )
