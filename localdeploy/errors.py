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

"""Error taxonomy.

Every error raised by the install and uninstall workflows derives from
:class:`LocalDeployError`. Each class carries a ``help`` remediation hint that
the CLI prints after the low-level message.
"""

from __future__ import annotations

_RERUN_HINT = (
    'If this error persists, you may need to run the "localdeploy uninstall" command before\n'
    'running "localdeploy install" again.\n'
    "Your data will persist between the uninstall and install commands."
)

_PORT_HINT = (
    "This could be an indication that the ingress port is already in use by a different application.\n"
    "The ingress port can be changed by passing the flag --port."
)

_HOST_HINT = (
    "By default, localdeploy will allow access from any hostname or IP, "
    "so you might not need the --host flag."
)


class LocalDeployError(Exception):
    """Base class for all localdeploy errors.

    Attributes:
        help: User-facing remediation hint, separate from the message.
    """

    help = ""

    def __init__(self, message: str, help: str | None = None) -> None:
        super().__init__(message)
        if help is not None:
            self.help = help


# ============================================================================
# Pre-flight
# ============================================================================

class EngineUnreachable(LocalDeployError):
    help = (
        "An error occurred while communicating with the Docker daemon.\n"
        "Ensure that Docker is running and is accessible. You may need to upgrade to a newer version of Docker.\n"
        "For additional help please visit https://docs.docker.com/get-docker/"
    )


class PortUnavailable(LocalDeployError):
    help = "An error occurred while verifying if the requested port is available.\n" + _PORT_HINT

    def __init__(self, port: int, reason: str) -> None:
        super().__init__(f"port {port} is not available: {reason}")
        self.port = port


class KubernetesUnreachable(LocalDeployError):
    help = "An error occurred while communicating with the Kubernetes cluster.\n" + _RERUN_HINT


# ============================================================================
# Port resolution
# ============================================================================

class ContainerNotRunning(LocalDeployError):
    help = "The cluster container is not running. Start Docker and the cluster container, or reinstall."

    def __init__(self, name: str, status: str) -> None:
        super().__init__(f"container '{name}' is not running (status: {status})")
        self.name = name
        self.status = status


class InspectFailed(LocalDeployError):
    help = "Unable to inspect the cluster container. Ensure that Docker is running and is accessible."


class InvalidPort(LocalDeployError):
    def __init__(self, port: str) -> None:
        super().__init__(f"unable to convert host port '{port}' to a number")
        self.port = port


class PortNotFound(LocalDeployError):
    help = "The cluster container exposes no wildcard host port.\n" + _RERUN_HINT


# ============================================================================
# Cluster and charts
# ============================================================================

class ClusterNotFound(LocalDeployError):
    help = (
        "No cluster was found. If this is unexpected,\n"
        'you may need to run the "localdeploy install" command again.'
    )


class ClusterOperationFailed(LocalDeployError):
    help = _RERUN_HINT


class ChartDeployFailed(LocalDeployError):
    help = "An error occurred while deploying a helm chart.\n" + _RERUN_HINT


class ReleaseNotFound(LocalDeployError):
    """Raised by chart clients when a release does not exist."""


class HelmStuck(LocalDeployError):
    help = "An error occurred while attempting to run a helm install or upgrade.\n" + _RERUN_HINT

    def __init__(self, release: str) -> None:
        super().__init__(
            f"another helm operation (install/upgrade/rollback) is in progress for release '{release}'"
        )
        self.release = release


class IngressPortConflict(LocalDeployError):
    help = "An error occurred while configuring ingress.\n" + _PORT_HINT


class BootloaderFailed(ChartDeployFailed):
    help = (
        "The bootloader failed its initialization checks or migrations.\n"
        "Try running again with --verbose to see the full bootloader logs."
    )


# ============================================================================
# Credentials and ingress
# ============================================================================

class CredentialError(LocalDeployError):
    help = "Unable to store credentials in the cluster.\n" + _RERUN_HINT


class SecretFileInvalid(CredentialError):
    help = "Secret files must contain a single Kubernetes Secret manifest with a metadata.name."

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"unable to load secret file '{path}': {reason}")
        self.path = path


class InvalidMount(LocalDeployError):
    help = "Volume mounts must be in the format <HOST_PATH>:<CONTAINER_PATH>."

    def __init__(self, spec: str) -> None:
        super().__init__(f"invalid volume mount '{spec}'")
        self.spec = spec


class InvalidHost(LocalDeployError):
    help = (
        'The --host flag expects a lowercase domain name, e.g. "example.com".\n'
        "IP addresses won't work. Ports won't work (e.g. example:8000). "
        "URLs won't work (e.g. http://example.com).\n\n" + _HOST_HINT
    )

    def __init__(self, host: str, is_ip: bool = False) -> None:
        if is_ip:
            super().__init__(
                f"invalid host '{host}' - can't use an IP address",
                help=(
                    "Looks like you provided an IP address to the --host flag.\n"
                    "This won't work, because Kubernetes ingress rules require a lowercase domain name.\n\n"
                    + _HOST_HINT
                ),
            )
        else:
            super().__init__(f"invalid host '{host}'")
        self.host = host
        self.is_ip = is_ip


# ============================================================================
# Waits
# ============================================================================

class NamespaceDeleteTimeout(LocalDeployError):
    help = "The namespace is still terminating. Check for stuck finalizers with 'kubectl get ns -o yaml'."

    def __init__(self, namespace: str, seconds: float) -> None:
        super().__init__(f"namespace '{namespace}' was not deleted within {seconds:g}s")
        self.namespace = namespace


class LivenessTimeout(LocalDeployError):
    help = "The application did not become reachable in time. It may still be starting; try the URL again shortly."

    def __init__(self, url: str, seconds: float) -> None:
        super().__init__(f"{url} did not become ready within {seconds:g}s")
        self.url = url
