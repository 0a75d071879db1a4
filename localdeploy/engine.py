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

"""Docker engine access with per-platform host discovery."""

from __future__ import annotations

import os
import platform
from pathlib import Path
from typing import Any, Protocol

import docker

from localdeploy import logger
from localdeploy.constants import (
    DOCKER_CLIENT_TIMEOUT_SECONDS,
    DOCKER_DARWIN_HOSTS,
    DOCKER_WINDOWS_HOST,
)
from localdeploy.errors import EngineUnreachable


class EngineClient(Protocol):
    """Subset of the container engine API the installer relies on."""

    def version(self) -> dict[str, Any]: ...

    def info(self) -> dict[str, Any]: ...

    def inspect_container(self, name: str) -> dict[str, Any]: ...

    def close(self) -> None: ...


def candidate_hosts(system: str | None = None, home: Path | None = None) -> list[str | None]:
    """Return Docker hosts to try in order; None means the environment default.

    Args:
        system: Platform name as reported by platform.system().
        home: User home directory used for the Docker Desktop socket.

    Returns:
        Ordered list of base URLs.
    """
    if os.environ.get("DOCKER_HOST"):
        return [None]
    system = system or platform.system()
    home = home or Path.home()
    if system == "Darwin":
        # Docker Desktop may only expose the per-user socket.
        return [host.format(home=home) for host in DOCKER_DARWIN_HOSTS]
    if system == "Windows":
        return [DOCKER_WINDOWS_HOST]
    return [None]


class DockerEngine:
    """EngineClient backed by the docker SDK."""

    def __init__(self, client: docker.DockerClient) -> None:
        self._client = client

    @classmethod
    def connect(cls, hosts: list[str | None] | None = None) -> DockerEngine:
        """Create a client against the first host that answers a ping.

        Raises:
            EngineUnreachable: If no candidate host responds.
        """
        last_error: Exception | None = None
        for host in hosts if hosts is not None else candidate_hosts():
            try:
                if host is None:
                    client = docker.from_env(timeout=DOCKER_CLIENT_TIMEOUT_SECONDS)
                else:
                    client = docker.DockerClient(base_url=host, timeout=DOCKER_CLIENT_TIMEOUT_SECONDS)
                client.ping()
            except docker.errors.DockerException as e:
                logger.debug("docker host %s unavailable: %s", host or "<env>", e)
                last_error = e
                continue
            logger.debug("connected to docker host %s", host or "<env>")
            return cls(client)
        raise EngineUnreachable(f"could not create docker client: {last_error}") from last_error

    def version(self) -> dict[str, Any]:
        return self._client.version()

    def info(self) -> dict[str, Any]:
        return self._client.info()

    def inspect_container(self, name: str) -> dict[str, Any]:
        return self._client.api.inspect_container(name)

    def close(self) -> None:
        self._client.close()
