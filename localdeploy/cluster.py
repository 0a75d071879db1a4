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

"""kind cluster lifecycle."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, Sequence

import sh
import yaml
from rich.panel import Panel

from localdeploy import console, logger
from localdeploy.config import Mount, Provider
from localdeploy.constants import (
    KIND_DATA_MOUNT_PATH,
    KIND_INGRESS_CONTAINER_PORT,
    KIND_NODE_IMAGE,
    KIND_WAIT,
)
from localdeploy.errors import ClusterOperationFailed
from localdeploy.utils import command_error_text, require_command


class ClusterGateway(Protocol):
    """Lifecycle operations on the local cluster."""

    def exists(self) -> bool: ...

    def create(self, port: int, extra_mounts: Sequence[Mount] = ()) -> None: ...

    def delete(self) -> None: ...


def build_kind_config(port: int, data_dir: Path | None, extra_mounts: Sequence[Mount] = ()) -> dict[str, Any]:
    """Render the kind cluster configuration for a single control-plane node.

    Args:
        port: Host port mapped onto the node's ingress port.
        data_dir: Host directory backing the local-path provisioner, if any.
        extra_mounts: Additional host directories to mount into the node.

    Returns:
        kind ``Cluster`` configuration as a dictionary.
    """
    mounts = []
    if data_dir is not None:
        mounts.append({"hostPath": str(data_dir), "containerPath": KIND_DATA_MOUNT_PATH})
    mounts.extend({"hostPath": str(m.host_path), "containerPath": m.container_path} for m in extra_mounts)

    node: dict[str, Any] = {
        "role": "control-plane",
        "kubeadmConfigPatches": [
            yaml.safe_dump({
                "kind": "InitConfiguration",
                "nodeRegistration": {"kubeletExtraArgs": {"node-labels": "ingress-ready=true"}},
            }),
        ],
        "extraPortMappings": [{"containerPort": KIND_INGRESS_CONTAINER_PORT, "hostPort": port}],
    }
    if mounts:
        node["extraMounts"] = mounts

    return {
        "kind": "Cluster",
        "apiVersion": "kind.x-k8s.io/v1alpha4",
        "nodes": [node],
    }


class KindCluster:
    """ClusterGateway implementation driving the kind CLI."""

    def __init__(self, provider: Provider, data_dir: Path | None = None) -> None:
        self._provider = provider
        self._data_dir = data_dir

    @property
    def name(self) -> str:
        return self._provider.cluster_name

    def exists(self) -> bool:
        require_command("kind")
        try:
            output = str(sh.kind("get", "clusters"))
        except sh.ErrorReturnCode as e:
            raise ClusterOperationFailed(f"unable to list kind clusters: {command_error_text(e)}") from e
        return self.name in output.split()

    def create(self, port: int, extra_mounts: Sequence[Mount] = ()) -> None:
        """Create the cluster with *port* mapped to the ingress controller.

        Raises:
            ClusterOperationFailed: If kind fails to create the cluster.
        """
        require_command("kind")
        console.print(Panel.fit(f"Creating kind cluster '{self.name}'", style="bold blue"))
        self._provider.kubeconfig.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        if self._data_dir is not None:
            self._data_dir.mkdir(parents=True, exist_ok=True)

        cluster_config = yaml.safe_dump(build_kind_config(port, self._data_dir, extra_mounts))
        logger.debug("kind config:\n%s", cluster_config)
        try:
            sh.kind(
                "create", "cluster",
                "--name", self.name,
                "--image", KIND_NODE_IMAGE,
                "--kubeconfig", str(self._provider.kubeconfig),
                "--wait", KIND_WAIT,
                "--config", "-",
                _in=cluster_config,
            )
        except sh.ErrorReturnCode as e:
            raise ClusterOperationFailed(f"unable to create kind cluster: {command_error_text(e)}") from e
        console.print(f"[green]\u2705 Cluster '{self.name}' created[/green]")

    def delete(self) -> None:
        """Delete the cluster.

        Raises:
            ClusterOperationFailed: If kind fails to delete the cluster.
        """
        require_command("kind")
        console.print(f"[yellow]\u2139\ufe0f  Deleting kind cluster '{self.name}'...[/yellow]")
        try:
            sh.kind("delete", "cluster", "--name", self.name, "--kubeconfig", str(self._provider.kubeconfig))
        except sh.ErrorReturnCode as e:
            raise ClusterOperationFailed(f"unable to delete kind cluster: {command_error_text(e)}") from e
        console.print(f"[green]\u2705 Cluster '{self.name}' deleted[/green]")
