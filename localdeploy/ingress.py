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

"""Ingress rules routing host traffic to the application's web front-end."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from typing import Iterable

from kubernetes import client

from localdeploy import console
from localdeploy.constants import (
    APP_WEBAPP_PORT_NAME,
    APP_WEBAPP_SERVICE,
    BASIC_AUTH_REALM,
    BASIC_AUTH_SECRET,
    DEFAULT_INGRESS_HOSTS,
    INGRESS_CLASS,
    INGRESS_NAME,
)
from localdeploy.errors import InvalidHost, KubernetesUnreachable
from localdeploy.kube import ClusterApi

# RFC 1123 subdomain, as enforced by the ingress API.
_DNS_NAME = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")


def validate_host(host: str) -> str:
    """Return *host* if it is usable as an ingress rule host.

    Raises:
        InvalidHost: For IP addresses, ports, URLs, uppercase or otherwise invalid names.
    """
    try:
        ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        raise InvalidHost(host, is_ip=True)
    if len(host) > 253 or not _DNS_NAME.match(host):
        raise InvalidHost(host)
    return host


@dataclass(frozen=True)
class IngressRule:
    host: str
    service: str = APP_WEBAPP_SERVICE
    port_name: str = APP_WEBAPP_PORT_NAME
    path: str = "/"


@dataclass(frozen=True)
class IngressRuleSet:
    """Host rules for the application ingress.

    Built fresh on every install; the resulting resource replaces whatever
    was there before.
    """

    rules: tuple[IngressRule, ...]

    @classmethod
    def for_hosts(cls, hosts: Iterable[str] = ()) -> IngressRuleSet:
        """Build a rule set for the caller's *hosts* plus the always-present local hosts.

        Raises:
            InvalidHost: If any caller host is not a valid DNS name.
        """
        ordered: list[str] = []
        for host in hosts:
            if validate_host(host) not in ordered:
                ordered.append(host)
        for host in DEFAULT_INGRESS_HOSTS:
            if host not in ordered:
                ordered.append(host)
        return cls(rules=tuple(IngressRule(host=h) for h in ordered))

    @property
    def hosts(self) -> list[str]:
        return [rule.host for rule in self.rules]

    def to_ingress(self, namespace: str) -> client.V1Ingress:
        return client.V1Ingress(
            api_version="networking.k8s.io/v1",
            kind="Ingress",
            metadata=client.V1ObjectMeta(
                name=INGRESS_NAME,
                namespace=namespace,
                annotations={
                    "nginx.ingress.kubernetes.io/auth-type": "basic",
                    "nginx.ingress.kubernetes.io/auth-secret": BASIC_AUTH_SECRET,
                    "nginx.ingress.kubernetes.io/auth-realm": BASIC_AUTH_REALM,
                },
            ),
            spec=client.V1IngressSpec(
                ingress_class_name=INGRESS_CLASS,
                rules=[_rule(rule) for rule in self.rules],
            ),
        )


def _rule(rule: IngressRule) -> client.V1IngressRule:
    return client.V1IngressRule(
        host=rule.host,
        http=client.V1HTTPIngressRuleValue(
            paths=[
                client.V1HTTPIngressPath(
                    path=rule.path,
                    path_type="Prefix",
                    backend=client.V1IngressBackend(
                        service=client.V1IngressServiceBackend(
                            name=rule.service,
                            port=client.V1ServiceBackendPort(name=rule.port_name),
                        ),
                    ),
                ),
            ],
        ),
    )


class IngressManager:
    """Creates or replaces the application ingress."""

    def __init__(self, kube: ClusterApi) -> None:
        self._kube = kube

    def ensure_ingress(self, namespace: str, rule_set: IngressRuleSet) -> None:
        """Create the ingress, or fully replace it if it already exists.

        Raises:
            KubernetesUnreachable: If the API call failed.
        """
        desired = rule_set.to_ingress(namespace)
        try:
            existing = self._kube.ingress_get(namespace, INGRESS_NAME)
            if existing is None:
                self._kube.ingress_create(namespace, desired)
                action = "created"
            else:
                desired.metadata.resource_version = existing.metadata.resource_version
                self._kube.ingress_replace(namespace, desired)
                action = "updated"
        except Exception as e:
            raise KubernetesUnreachable(f"unable to configure ingress {INGRESS_NAME}: {e}") from e
        console.print(f"[green]\u2705 Ingress {action} for hosts: {', '.join(rule_set.hosts)}[/green]")
