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

"""Settings, provider definitions and per-run option objects."""

from __future__ import annotations

import tempfile
from dataclasses import dataclass, replace
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from localdeploy.constants import (
    CHART_WAIT_SECONDS,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_PASSWORD,
    DEFAULT_PORT,
    DEFAULT_REGISTRY_SERVER,
    DEFAULT_USERNAME,
    LIVENESS_TICK_SECONDS,
    LIVENESS_TIMEOUT_SECONDS,
    NAMESPACE_DELETE_SECONDS,
    NAMESPACE_POLL_SECONDS,
    PORT_CHECK_TIMEOUT_SECONDS,
)
from localdeploy.errors import InvalidMount

# -- Resolved paths --
HOME_DIR = Path.home() / ".localdeploy"
KUBECONFIG_FILE = "localdeploy.kubeconfig"
DATA_DIR_NAME = "data"


# ============================================================================
# Settings
# ============================================================================

class InstallSettings(BaseSettings):
    """Install defaults, auto-loaded from LOCALDEPLOY_* env vars.

    Attributes:
        port: Host port the ingress controller is exposed on.
        username: Basic-auth username.
        password: Basic-auth password.
        chart_version: Application chart version, or "latest" for the newest.
        hosts: Extra hostnames the ingress should answer on.
        no_browser: Skip opening a browser once the application is ready.
        values_file: Optional helm values file for the application chart.
        secret_files: Kubernetes Secret manifests applied to the application namespace.
        docker_server: Registry server for the image pull secret.
        docker_username: Registry username; with a password, enables the pull secret.
        docker_password: Registry password.
        docker_email: Registry email.
        volumes: Extra node mounts in HOST_PATH:CONTAINER_PATH form.
        home_dir: Directory holding the kubeconfig and persisted data.
    """

    model_config = SettingsConfigDict(env_prefix="LOCALDEPLOY_", extra="ignore")

    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    username: str = Field(default=DEFAULT_USERNAME, min_length=1)
    password: str = Field(default=DEFAULT_PASSWORD, min_length=1)
    chart_version: str = "latest"
    hosts: list[str] = Field(default_factory=list)
    no_browser: bool = False
    values_file: Path | None = None
    secret_files: list[Path] = Field(default_factory=list)
    docker_server: str = DEFAULT_REGISTRY_SERVER
    docker_username: str = ""
    docker_password: str = ""
    docker_email: str = ""
    volumes: list[str] = Field(default_factory=list)
    home_dir: Path = HOME_DIR


class TimeoutSettings(BaseSettings):
    """Wait bounds in seconds, auto-loaded from LOCALDEPLOY_TIMEOUT_* env vars.

    Attributes:
        chart_wait: helm --wait timeout for each chart.
        namespace_delete: Deadline for a deleted namespace to disappear.
        namespace_poll: Interval between namespace existence checks.
        liveness: Deadline for the application URL to answer.
        liveness_tick: Interval between liveness requests.
        port_check: HTTP timeout when checking an occupied port.
    """

    model_config = SettingsConfigDict(env_prefix="LOCALDEPLOY_TIMEOUT_", extra="ignore")

    chart_wait: float = Field(default=CHART_WAIT_SECONDS, gt=0)
    namespace_delete: float = Field(default=NAMESPACE_DELETE_SECONDS, gt=0)
    namespace_poll: float = Field(default=NAMESPACE_POLL_SECONDS, gt=0)
    liveness: float = Field(default=LIVENESS_TIMEOUT_SECONDS, gt=0)
    liveness_tick: float = Field(default=LIVENESS_TICK_SECONDS, gt=0)
    port_check: float = Field(default=PORT_CHECK_TIMEOUT_SECONDS, gt=0)


# ============================================================================
# Providers
# ============================================================================

@dataclass(frozen=True)
class Provider:
    """Cluster backend the installer targets.

    Attributes:
        name: Provider identifier, recorded in telemetry.
        cluster_name: Name of the cluster this provider manages.
        context: kubeconfig context for the cluster.
        kubeconfig: Path of the kubeconfig file the cluster is exported to.
        helm_nginx_values: Backend-specific --set overrides for the ingress controller.
        requires_stable_port: True when the host port is fixed at cluster creation.
    """

    name: str
    cluster_name: str
    context: str
    kubeconfig: Path
    helm_nginx_values: tuple[str, ...] = ()
    requires_stable_port: bool = False


DEFAULT_PROVIDER = Provider(
    name="kind",
    cluster_name=DEFAULT_CLUSTER_NAME,
    context=f"kind-{DEFAULT_CLUSTER_NAME}",
    kubeconfig=HOME_DIR / KUBECONFIG_FILE,
    helm_nginx_values=(
        "controller.hostPort.enabled=true",
        "controller.service.httpsPort.enable=false",
        "controller.service.type=NodePort",
    ),
    requires_stable_port=True,
)

TEST_PROVIDER = Provider(
    name="test",
    cluster_name=f"test-{DEFAULT_CLUSTER_NAME}",
    context=f"test-{DEFAULT_CLUSTER_NAME}",
    kubeconfig=Path(tempfile.gettempdir()) / "localdeploy" / KUBECONFIG_FILE,
)


def provider_for_home(home_dir: Path, base: Provider = DEFAULT_PROVIDER) -> Provider:
    """Return *base* with its kubeconfig relocated under *home_dir*."""
    return replace(base, kubeconfig=home_dir / KUBECONFIG_FILE)


# ============================================================================
# Run options
# ============================================================================

@dataclass(frozen=True)
class Credentials:
    """Basic-auth credentials for the ingress."""

    username: str = DEFAULT_USERNAME
    password: str = DEFAULT_PASSWORD


@dataclass(frozen=True)
class RegistryAuth:
    """Container registry credentials stored as the application's image pull secret."""

    server: str
    username: str
    password: str
    email: str = ""


@dataclass(frozen=True)
class Mount:
    """Host directory mounted into the cluster node container."""

    host_path: Path
    container_path: str


def parse_mount(spec: str) -> Mount:
    """Parse a ``HOST_PATH:CONTAINER_PATH`` mount spec.

    Raises:
        InvalidMount: If *spec* does not have exactly two non-empty parts.
    """
    parts = spec.split(":")
    if len(parts) != 2 or not all(parts):
        raise InvalidMount(spec)
    return Mount(host_path=Path(parts[0]), container_path=parts[1])


@dataclass(frozen=True)
class InstallOptions:
    """Options for a single install run.

    Attributes:
        port: Requested ingress host port.
        chart_version: Application chart version, None for the newest.
        hosts: Extra ingress hostnames supplied by the caller.
        values_yaml: Optional values file content for the application chart.
        registry_auth: Registry credentials for the image pull secret, if any.
        secret_files: Secret manifests applied before the application chart.
        extra_mounts: Additional host directories mounted into the node.
        data_dir: Host directory backing persistent volumes.
        no_browser: Skip launching a browser once ready.
    """

    port: int = DEFAULT_PORT
    chart_version: str | None = None
    hosts: tuple[str, ...] = ()
    values_yaml: str = ""
    registry_auth: RegistryAuth | None = None
    secret_files: tuple[Path, ...] = ()
    extra_mounts: tuple[Mount, ...] = ()
    data_dir: Path | None = None
    no_browser: bool = False

    @classmethod
    def from_settings(cls, settings: InstallSettings) -> InstallOptions:
        values_yaml = ""
        if settings.values_file is not None:
            values_yaml = settings.values_file.read_text()
        chart_version = None if settings.chart_version in ("", "latest") else settings.chart_version
        registry_auth = None
        if settings.docker_username and settings.docker_password:
            registry_auth = RegistryAuth(
                server=settings.docker_server,
                username=settings.docker_username,
                password=settings.docker_password,
                email=settings.docker_email,
            )
        return cls(
            port=settings.port,
            chart_version=chart_version,
            hosts=tuple(settings.hosts),
            values_yaml=values_yaml,
            registry_auth=registry_auth,
            secret_files=tuple(settings.secret_files),
            extra_mounts=tuple(parse_mount(spec) for spec in settings.volumes),
            data_dir=settings.home_dir / DATA_DIR_NAME,
            no_browser=settings.no_browser,
        )


@dataclass(frozen=True)
class UninstallOptions:
    """Options for a single uninstall run.

    Attributes:
        persisted: Also remove the persisted data directory.
        data_dir: Host directory backing persistent volumes.
    """

    persisted: bool = False
    data_dir: Path | None = None

