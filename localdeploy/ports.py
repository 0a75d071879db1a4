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

"""Recover the ingress host port of an existing cluster from its node container."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import docker

from localdeploy import logger
from localdeploy.constants import KIND_CONTROL_PLANE_SUFFIX, WILDCARD_HOST_IP
from localdeploy.engine import EngineClient
from localdeploy.errors import ContainerNotRunning, InspectFailed, InvalidPort, PortNotFound


@dataclass(frozen=True)
class PortBinding:
    """One host port binding read from container inspection."""

    container_port: str
    host_ip: str
    host_port: str


def port_bindings(inspect: dict[str, Any]) -> list[PortBinding]:
    """Flatten ``HostConfig.PortBindings`` of a docker inspect document."""
    raw = ((inspect.get("HostConfig") or {}).get("PortBindings")) or {}
    return [
        PortBinding(container_port=container_port, host_ip=b.get("HostIp", ""), host_port=b.get("HostPort", ""))
        for container_port, bindings in raw.items()
        for b in bindings or []
    ]


class PortResolver:
    """Reads the wildcard host port published by a cluster's control-plane container."""

    def __init__(self, engine: EngineClient) -> None:
        self._engine = engine

    def resolve_bound_port(self, cluster_name: str) -> int:
        """Return the host port bound on all interfaces for *cluster_name*.

        Args:
            cluster_name: Cluster whose ``<name>-control-plane`` container is inspected.

        Returns:
            The first host port bound to 0.0.0.0.

        Raises:
            ContainerNotRunning: If the container is absent or not running.
            InspectFailed: If the inspection itself failed.
            InvalidPort: If a wildcard binding carries a non-numeric port.
            PortNotFound: If no wildcard binding exists.
        """
        container = f"{cluster_name}{KIND_CONTROL_PLANE_SUFFIX}"
        try:
            inspect = self._engine.inspect_container(container)
        except docker.errors.NotFound as e:
            raise ContainerNotRunning(container, "unknown") from e
        except Exception as e:
            raise InspectFailed(f"unable to inspect container '{container}': {e}") from e

        status = (inspect.get("State") or {}).get("Status") or "unknown"
        if status != "running":
            raise ContainerNotRunning(container, status)

        for binding in port_bindings(inspect):
            if binding.host_ip != WILDCARD_HOST_IP:
                continue
            # Decimal digits only: no sign, whitespace or underscores.
            if not (binding.host_port.isascii() and binding.host_port.isdigit()):
                raise InvalidPort(binding.host_port)
            port = int(binding.host_port)
            logger.debug("container %s binds %s to host port %d", container, binding.container_port, port)
            return port

        raise PortNotFound(f"no wildcard host port found on container '{container}'")
