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

"""Kubernetes API access for the installer."""

from __future__ import annotations

from typing import Protocol

from kubernetes import client, config
from kubernetes.client import ApiException

from localdeploy import logger
from localdeploy.config import Provider
from localdeploy.constants import KUBE_REQUEST_TIMEOUT_SECONDS
from localdeploy.errors import KubernetesUnreachable


class ClusterApi(Protocol):
    """Kubernetes operations the install and uninstall workflows need.

    Getters return None when the object does not exist; every other API
    failure propagates as ``ApiException``.
    """

    def server_version(self) -> str: ...

    def ingress_get(self, namespace: str, name: str) -> client.V1Ingress | None: ...

    def ingress_create(self, namespace: str, ingress: client.V1Ingress) -> None: ...

    def ingress_replace(self, namespace: str, ingress: client.V1Ingress) -> None: ...

    def namespace_exists(self, name: str) -> bool: ...

    def namespace_ensure(self, name: str) -> None: ...

    def namespace_delete(self, name: str) -> None: ...

    def secret_create_or_replace(self, namespace: str, secret: client.V1Secret) -> None: ...

    def secret_delete_collection(self, namespace: str, label_selector: str, secret_type: str) -> None: ...

    def service_get(self, namespace: str, name: str) -> client.V1Service: ...

    def pod_list(self, namespace: str) -> list[client.V1Pod]: ...

    def pod_logs(self, namespace: str, name: str) -> str: ...


def is_not_found(err: ApiException) -> bool:
    return err.status == 404


class KubeClient:
    """Thin wrapper around the Kubernetes Python client, bound to one provider context."""

    def __init__(self, provider: Provider, request_timeout: float = KUBE_REQUEST_TIMEOUT_SECONDS) -> None:
        self._provider = provider
        self._timeout = request_timeout
        self._api_client: client.ApiClient | None = None
        self._core_v1: client.CoreV1Api | None = None
        self._networking_v1: client.NetworkingV1Api | None = None

    def _load_config(self) -> client.ApiClient:
        if self._api_client is not None:
            return self._api_client
        cfg = client.Configuration()
        try:
            config.load_kube_config(
                config_file=str(self._provider.kubeconfig),
                context=self._provider.context,
                client_configuration=cfg,
            )
        except (config.ConfigException, OSError) as e:
            raise KubernetesUnreachable(
                f"unable to load kubeconfig {self._provider.kubeconfig} (context {self._provider.context}): {e}"
            ) from e
        cfg.retries = 1
        self._api_client = client.ApiClient(configuration=cfg)
        return self._api_client

    @property
    def core_v1(self) -> client.CoreV1Api:
        if self._core_v1 is None:
            self._core_v1 = client.CoreV1Api(api_client=self._load_config())
        return self._core_v1

    @property
    def networking_v1(self) -> client.NetworkingV1Api:
        if self._networking_v1 is None:
            self._networking_v1 = client.NetworkingV1Api(api_client=self._load_config())
        return self._networking_v1

    # -- Cluster --

    def server_version(self) -> str:
        version = client.VersionApi(api_client=self._load_config()).get_code(_request_timeout=self._timeout)
        return version.git_version

    # -- Ingress --

    def ingress_get(self, namespace: str, name: str) -> client.V1Ingress | None:
        try:
            return self.networking_v1.read_namespaced_ingress(name, namespace, _request_timeout=self._timeout)
        except ApiException as e:
            if is_not_found(e):
                return None
            raise

    def ingress_create(self, namespace: str, ingress: client.V1Ingress) -> None:
        self.networking_v1.create_namespaced_ingress(namespace, ingress, _request_timeout=self._timeout)

    def ingress_replace(self, namespace: str, ingress: client.V1Ingress) -> None:
        self.networking_v1.replace_namespaced_ingress(
            ingress.metadata.name, namespace, ingress, _request_timeout=self._timeout
        )

    # -- Namespace --

    def namespace_exists(self, name: str) -> bool:
        try:
            self.core_v1.read_namespace(name, _request_timeout=self._timeout)
        except ApiException as e:
            if is_not_found(e):
                return False
            raise
        return True

    def namespace_ensure(self, name: str) -> None:
        body = client.V1Namespace(metadata=client.V1ObjectMeta(name=name))
        try:
            self.core_v1.create_namespace(body, _request_timeout=self._timeout)
        except ApiException as e:
            if e.status != 409:
                raise
            logger.debug("namespace %s already exists", name)

    def namespace_delete(self, name: str) -> None:
        try:
            self.core_v1.delete_namespace(name, _request_timeout=self._timeout)
        except ApiException as e:
            if not is_not_found(e):
                raise
            logger.debug("namespace %s already absent", name)

    # -- Secret --

    def secret_create_or_replace(self, namespace: str, secret: client.V1Secret) -> None:
        name = secret.metadata.name
        try:
            self.core_v1.create_namespaced_secret(namespace, secret, _request_timeout=self._timeout)
            return
        except ApiException as e:
            if e.status != 409:
                raise
        logger.debug("secret %s/%s exists, replacing", namespace, name)
        self.core_v1.replace_namespaced_secret(name, namespace, secret, _request_timeout=self._timeout)

    def secret_delete_collection(self, namespace: str, label_selector: str, secret_type: str) -> None:
        self.core_v1.delete_collection_namespaced_secret(
            namespace,
            label_selector=label_selector,
            field_selector=f"type={secret_type}",
            _request_timeout=self._timeout,
        )

    # -- Service --

    def service_get(self, namespace: str, name: str) -> client.V1Service:
        return self.core_v1.read_namespaced_service(name, namespace, _request_timeout=self._timeout)

    # -- Pod --

    def pod_list(self, namespace: str) -> list[client.V1Pod]:
        return self.core_v1.list_namespaced_pod(namespace, _request_timeout=self._timeout).items

    def pod_logs(self, namespace: str, name: str) -> str:
        return self.core_v1.read_namespaced_pod_log(name, namespace, _request_timeout=self._timeout)
