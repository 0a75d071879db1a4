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

"""Pre-flight checks: container engine reachability and host port availability."""

from __future__ import annotations

import errno
import socket
from dataclasses import dataclass
from typing import Callable

import httpx

from localdeploy import console, logger
from localdeploy.constants import (
    PORT_CHECK_TIMEOUT_SECONDS,
    PRIVILEGED_PORT_LIMIT,
    TOOL_MARKER,
)
from localdeploy.engine import DockerEngine, EngineClient
from localdeploy.errors import EngineUnreachable, LocalDeployError, PortUnavailable
from localdeploy.telemetry import TelemetrySink

# Windows reports an occupied port with its own socket error code.
WSAEADDRINUSE = 10048


@dataclass(frozen=True)
class EngineInfo:
    """Container engine diagnostics gathered during pre-flight."""

    version: str
    arch: str
    platform: str
    ncpu: int | None = None
    mem_total: int | None = None


def is_addr_in_use(err: OSError) -> bool:
    """Return True if *err* is the platform's "address already in use" error."""
    return err.errno == errno.EADDRINUSE or getattr(err, "winerror", None) == WSAEADDRINUSE


def marker_challenge(response: httpx.Response, marker: str = TOOL_MARKER) -> bool:
    """Return True if *response* is a basic-auth challenge issued by our own ingress."""
    return response.status_code == 401 and marker in response.headers.get("WWW-Authenticate", "")


class PreflightChecker:
    """Validates the workstation before any cluster work starts.

    The engine client is created on first use and cached on the instance, so
    repeated checks within one run share a single connection.
    """

    def __init__(
        self,
        telemetry: TelemetrySink,
        engine_factory: Callable[[], EngineClient] = DockerEngine.connect,
        http_timeout: float = PORT_CHECK_TIMEOUT_SECONDS,
    ) -> None:
        self._telemetry = telemetry
        self._engine_factory = engine_factory
        self._engine: EngineClient | None = None
        self._http_timeout = http_timeout

    @property
    def engine(self) -> EngineClient:
        """The cached engine client, connecting on first access.

        Raises:
            EngineUnreachable: If no client could be created.
        """
        if self._engine is None:
            try:
                self._engine = self._engine_factory()
            except LocalDeployError:
                raise
            except Exception as e:
                raise EngineUnreachable(f"could not create docker client: {e}") from e
        return self._engine

    def close(self) -> None:
        """Close the cached engine client, if one was created."""
        if self._engine is not None:
            self._engine.close()
            self._engine = None

    def check_container_engine(self) -> EngineInfo:
        """Verify the container engine is reachable and record its diagnostics.

        Returns:
            Version, architecture and platform, plus CPU and memory when available.

        Raises:
            EngineUnreachable: If the engine cannot be contacted or queried.
        """
        console.print("[yellow]\u2139\ufe0f  Checking for a running Docker engine...[/yellow]")
        engine = self.engine
        try:
            version = engine.version()
        except Exception as e:
            console.print("[red]\u274c Could not communicate with the Docker engine[/red]")
            raise EngineUnreachable(f"error communicating with docker: {e}") from e

        info = EngineInfo(
            version=version.get("Version", ""),
            arch=version.get("Arch", ""),
            platform=(version.get("Platform") or {}).get("Name", ""),
        )
        try:
            details = engine.info()
            info = EngineInfo(
                version=info.version,
                arch=info.arch,
                platform=info.platform,
                ncpu=details.get("NCPU"),
                mem_total=details.get("MemTotal"),
            )
        except Exception as e:
            logger.debug("docker info unavailable: %s", e)

        self._telemetry.attr("docker_version", info.version)
        self._telemetry.attr("docker_arch", info.arch)
        self._telemetry.attr("docker_platform", info.platform)
        if info.ncpu is not None:
            self._telemetry.attr("docker_ncpu", str(info.ncpu))
        if info.mem_total is not None:
            self._telemetry.attr("docker_memtotal", str(info.mem_total))

        console.print(f"[green]\u2705 Docker found; version: {info.version}[/green]")
        return info

    def check_port_available(self, port: int) -> None:
        """Verify *port* can be used by the ingress controller.

        A port already owned by a previous installation of this tool counts as
        available, since the install will reuse it.

        Args:
            port: Host TCP port to check.

        Raises:
            PortUnavailable: If another process holds the port, or the check
                itself failed.
        """
        if port < PRIVILEGED_PORT_LIMIT:
            console.print(
                f"[yellow]\u26a0\ufe0f  Port {port} is a privileged port; "
                "availability is not checked and binding may require elevated privileges[/yellow]"
            )
            return

        console.print(f"[yellow]\u2139\ufe0f  Checking availability of port {port}...[/yellow]")
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind(("localhost", port))
        except OSError as e:
            if not is_addr_in_use(e):
                raise PortUnavailable(port, f"unable to determine if port is available: {e}") from e
            if self._owned_by_previous_install(port):
                console.print(
                    f"[green]\u2705 Port {port} appears to be serving a previous installation[/green]"
                )
                return
            raise PortUnavailable(port, "port is already in use") from e
        finally:
            sock.close()
        console.print(f"[green]\u2705 Port {port} is available[/green]")

    def _owned_by_previous_install(self, port: int) -> bool:
        try:
            response = httpx.get(f"http://localhost:{port}", timeout=self._http_timeout)
        except httpx.HTTPError as e:
            logger.debug("check of port %d failed: %s", port, e)
            return False
        return marker_challenge(response)
