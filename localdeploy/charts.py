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

"""Helm chart deployment: repo refresh, idempotent install-or-upgrade and removal."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any, Protocol

import sh
import yaml
from rich.panel import Panel
from tenacity import RetryError, Retrying, retry_if_exception, stop_after_attempt

from localdeploy import console, logger
from localdeploy.config import Provider
from localdeploy.constants import (
    CHART_WAIT_SECONDS,
    ERR_TEXT_HELM_STUCK,
    ERR_TEXT_INGRESS_TIMEOUTS,
    ERR_TEXT_RELEASE_NOT_FOUND,
    HELM_COMMAND_GRACE_SECONDS,
    HELM_RELEASE_SECRET_SELECTOR,
    HELM_RELEASE_SECRET_TYPE,
    HELM_STATUS_DEPLOYED,
    HELM_STUCK_MAX_ATTEMPTS,
    NGINX_CONTAINER_HTTP_PORT,
    NGINX_CONTAINER_HTTPS_PORT,
    NGINX_HEALTHZ_PORT,
)
from localdeploy.errors import ChartDeployFailed, HelmStuck, IngressPortConflict, ReleaseNotFound
from localdeploy.kube import ClusterApi
from localdeploy.telemetry import TelemetrySink
from localdeploy.utils import command_error_text, require_command


# ============================================================================
# Data model
# ============================================================================

@dataclass(frozen=True)
class ChartMetadata:
    name: str
    version: str
    app_version: str


@dataclass(frozen=True)
class ChartRelease:
    """State of an installed helm release."""

    name: str
    namespace: str
    revision: int
    status: str
    chart_version: str
    app_version: str


@dataclass(frozen=True)
class ChartRequest:
    """A chart to deploy.

    Attributes:
        name: Short component name, used in telemetry keys.
        repo_name: helm repository alias.
        repo_url: helm repository URL.
        chart_name: Chart reference, ``<repo>/<chart>``.
        release_name: Release to install or upgrade.
        namespace: Target namespace, created if missing.
        chart_version: Chart version, None for the newest.
        values: Ordered ``key=value`` overrides.
        values_yaml: Values file content, applied before ``values``.
        uninstall_first: Remove an outdated or failed release before installing.
        controller_service: Service to inspect when a timeout hints at a port conflict.
    """

    name: str
    repo_name: str
    repo_url: str
    chart_name: str
    release_name: str
    namespace: str
    chart_version: str | None = None
    values: tuple[str, ...] = ()
    values_yaml: str = ""
    uninstall_first: bool = False
    controller_service: str | None = None


class ChartAction(enum.Enum):
    NONE = "none"
    INSTALL = "install"
    UNINSTALL = "uninstall"


class ChartClient(Protocol):
    """helm operations used by the deployer."""

    def add_or_update_repo(self, name: str, url: str) -> None: ...

    def get_chart(self, chart: str, version: str | None) -> ChartMetadata: ...

    def install_or_upgrade(self, request: ChartRequest, timeout: float) -> ChartRelease: ...

    def get_release(self, name: str, namespace: str) -> ChartRelease: ...

    def uninstall(self, name: str, namespace: str) -> None: ...


# ============================================================================
# Error classification
# ============================================================================

def is_ingress_timeout(message: str) -> bool:
    """Return True if *message* looks like the timeout helm reports when the ingress port is taken."""
    return any(text in message for text in ERR_TEXT_INGRESS_TIMEOUTS)


def is_helm_stuck(err: BaseException) -> bool:
    return isinstance(err, ChartDeployFailed) and ERR_TEXT_HELM_STUCK in str(err)


# ============================================================================
# Values
# ============================================================================

def build_nginx_values(port: int) -> str:
    """Render ingress-nginx values exposing the controller on *port*.

    The controller listens on unprivileged container ports so it also runs
    under rootless container engines.
    """
    health_check = {
        "httpGet": {"path": "/healthz", "port": NGINX_HEALTHZ_PORT, "scheme": "HTTP"},
        "initialDelaySeconds": 30,
        "periodSeconds": 10,
        "timeoutSeconds": 5,
        "failureThreshold": 10,
    }
    values = {
        "controller": {
            "hostPort": {
                "enabled": True,
                "ports": {"http": NGINX_CONTAINER_HTTP_PORT, "https": NGINX_CONTAINER_HTTPS_PORT},
            },
            "service": {
                "type": "NodePort",
                "ports": {"http": port},
                "httpsPort": {"enable": False},
            },
            "config": {
                "proxy-body-size": "10m",
                "proxy-read-timeout": "600",
                "proxy-send-timeout": "600",
                "http-port": NGINX_CONTAINER_HTTP_PORT,
                "https-port": NGINX_CONTAINER_HTTPS_PORT,
            },
            "containerSecurityContext": {
                "allowPrivilegeEscalation": False,
                "runAsNonRoot": True,
                "runAsUser": 101,
                "capabilities": {"drop": ["ALL"], "add": ["NET_BIND_SERVICE"]},
            },
            "containerPort": {
                "http": NGINX_CONTAINER_HTTP_PORT,
                "https": NGINX_CONTAINER_HTTPS_PORT,
                "healthz": NGINX_HEALTHZ_PORT,
            },
            "livenessProbe": health_check,
            "readinessProbe": dict(health_check),
        },
    }
    return yaml.safe_dump(values, sort_keys=False)


# ============================================================================
# helm CLI client
# ============================================================================

def _release_from_json(doc: dict[str, Any]) -> ChartRelease:
    metadata = (doc.get("chart") or {}).get("metadata") or {}
    return ChartRelease(
        name=doc.get("name", ""),
        namespace=doc.get("namespace", ""),
        revision=int(doc.get("version", 0)),
        status=(doc.get("info") or {}).get("status", ""),
        chart_version=metadata.get("version", ""),
        app_version=metadata.get("appVersion", ""),
    )


class HelmCli:
    """ChartClient driving the helm binary against the provider's kubeconfig."""

    def __init__(self, provider: Provider) -> None:
        self._provider = provider

    def _helm(self, *args: str, **kwargs: Any) -> str:
        require_command("helm")
        return str(sh.helm(
            *args,
            "--kubeconfig", str(self._provider.kubeconfig),
            "--kube-context", self._provider.context,
            **kwargs,
        ))

    def add_or_update_repo(self, name: str, url: str) -> None:
        try:
            self._helm("repo", "add", name, url, "--force-update")
            self._helm("repo", "update", name)
        except sh.ErrorReturnCode as e:
            raise ChartDeployFailed(f"unable to add {name} chart repo: {command_error_text(e)}") from e

    def get_chart(self, chart: str, version: str | None) -> ChartMetadata:
        args = ["show", "chart", chart]
        if version:
            args += ["--version", version]
        try:
            doc = yaml.safe_load(self._helm(*args)) or {}
        except sh.ErrorReturnCode as e:
            raise ChartDeployFailed(f"unable to fetch helm chart {chart!r}: {command_error_text(e)}") from e
        return ChartMetadata(
            name=doc.get("name", chart),
            version=str(doc.get("version", "")),
            app_version=str(doc.get("appVersion", "")),
        )

    def install_or_upgrade(self, request: ChartRequest, timeout: float) -> ChartRelease:
        args = [
            "upgrade", "--install", request.release_name, request.chart_name,
            "--namespace", request.namespace,
            "--create-namespace",
            "--wait",
            "--timeout", f"{int(timeout)}s",
            "--output", "json",
        ]
        if request.chart_version:
            args += ["--version", request.chart_version]
        kwargs: dict[str, Any] = {"_timeout": timeout + HELM_COMMAND_GRACE_SECONDS}
        if request.values_yaml:
            args += ["--values", "-"]
            kwargs["_in"] = request.values_yaml
        for value in request.values:
            args += ["--set", value]
        try:
            output = self._helm(*args, **kwargs)
        except sh.ErrorReturnCode as e:
            raise ChartDeployFailed(
                f"unable to install {request.chart_name} chart: {command_error_text(e)}"
            ) from e
        except sh.TimeoutException as e:
            raise ChartDeployFailed(
                f"unable to install {request.chart_name} chart: context deadline exceeded"
            ) from e
        return _release_from_json(json.loads(output))

    def get_release(self, name: str, namespace: str) -> ChartRelease:
        try:
            output = self._helm("status", name, "--namespace", namespace, "--output", "json")
        except sh.ErrorReturnCode as e:
            text = command_error_text(e)
            if ERR_TEXT_RELEASE_NOT_FOUND in text:
                raise ReleaseNotFound(f"release {name} not found in namespace {namespace}") from e
            raise ChartDeployFailed(f"unable to get release {name}: {text}") from e
        return _release_from_json(json.loads(output))

    def uninstall(self, name: str, namespace: str) -> None:
        try:
            self._helm("uninstall", name, "--namespace", namespace, "--wait")
        except sh.ErrorReturnCode as e:
            raise ChartDeployFailed(f"unable to uninstall release {name}: {command_error_text(e)}") from e


# ============================================================================
# Deployer
# ============================================================================

class ChartDeployer:
    """Installs, upgrades and removes helm releases idempotently."""

    def __init__(
        self,
        chart_client: ChartClient,
        kube: ClusterApi,
        telemetry: TelemetrySink,
        chart_timeout: float = CHART_WAIT_SECONDS,
    ) -> None:
        self._client = chart_client
        self._kube = kube
        self._telemetry = telemetry
        self._timeout = chart_timeout

    def deploy(self, request: ChartRequest) -> ChartRelease:
        """Install or upgrade the chart described by *request*.

        Args:
            request: Chart coordinates, target release and values.

        Returns:
            The resulting release.

        Raises:
            ChartDeployFailed: If the repo, chart fetch or install fails.
            HelmStuck: If a pending helm operation blocked every attempt.
            IngressPortConflict: If a controller install timed out and its
                service never received an address.
        """
        console.print(Panel.fit(f"Installing {request.chart_name}", style="bold blue"))
        self._client.add_or_update_repo(request.repo_name, request.repo_url)

        chart = self._client.get_chart(request.chart_name, request.chart_version)
        self._telemetry.attr(f"helm_{request.name}_chart_version", chart.version)

        if request.uninstall_first:
            action, existing = self.chart_action(chart, request.release_name, request.namespace)
            if action is ChartAction.NONE and existing is not None:
                console.print(
                    f"[green]\u2705 Found matching existing release {existing.name} "
                    f"(version {existing.chart_version}, app version {existing.app_version})[/green]"
                )
                return existing
            if action is ChartAction.UNINSTALL:
                logger.debug("uninstalling release %s before install", request.release_name)
                self._client.uninstall(request.release_name, request.namespace)

        try:
            release = self._install_with_recovery(request, chart)
        except ChartDeployFailed as e:
            if request.controller_service and is_ingress_timeout(str(e)):
                self._raise_if_port_conflict(request, e)
            raise

        self._telemetry.attr(f"helm_{request.name}_release_version", str(release.revision))
        console.print(
            f"[green]\u2705 Installed {request.chart_name}: release {release.name} in {release.namespace}, "
            f"version {release.chart_version}, app version {release.app_version}, "
            f"revision {release.revision}[/green]"
        )
        return release

    def chart_action(
        self, chart: ChartMetadata, release_name: str, namespace: str
    ) -> tuple[ChartAction, ChartRelease | None]:
        """Decide whether an existing release can be kept, must be replaced, or is absent."""
        try:
            existing = self._client.get_release(release_name, namespace)
        except ReleaseNotFound:
            logger.debug("release %s not found", release_name)
            return ChartAction.INSTALL, None
        except ChartDeployFailed as e:
            logger.debug("unable to fetch release %s: %s", release_name, e)
            return ChartAction.UNINSTALL, None

        if existing.status != HELM_STATUS_DEPLOYED:
            logger.debug("release %s has status %s", release_name, existing.status)
            return ChartAction.UNINSTALL, existing
        if existing.chart_version != chart.version:
            logger.debug("chart version %s does not match release %s", chart.version, existing.chart_version)
            return ChartAction.UNINSTALL, existing
        if existing.app_version != chart.app_version:
            logger.debug("app version %s does not match release %s", chart.app_version, existing.app_version)
            return ChartAction.UNINSTALL, existing
        return ChartAction.NONE, existing

    def remove(self, release_name: str, namespace: str) -> bool:
        """Uninstall *release_name*; a missing release is not an error.

        Returns:
            True if a release was uninstalled, False if none existed.

        Raises:
            ChartDeployFailed: If the release lookup or uninstall failed.
        """
        try:
            self._client.get_release(release_name, namespace)
        except ReleaseNotFound:
            console.print(f"[yellow]\u2139\ufe0f  Release {release_name} not found, nothing to uninstall[/yellow]")
            return False
        self._client.uninstall(release_name, namespace)
        console.print(f"[green]\u2705 Uninstalled release {release_name}[/green]")
        return True

    def _install_with_recovery(self, request: ChartRequest, chart: ChartMetadata) -> ChartRelease:
        retrying = Retrying(
            stop=stop_after_attempt(HELM_STUCK_MAX_ATTEMPTS),
            retry=retry_if_exception(is_helm_stuck),
        )
        try:
            for attempt in retrying:
                with attempt:
                    console.print(
                        f"[yellow]\u2139\ufe0f  Installing {request.chart_name} (version {chart.version}), "
                        "this may take several minutes...[/yellow]"
                    )
                    try:
                        return self._client.install_or_upgrade(request, self._timeout)
                    except ChartDeployFailed as e:
                        if is_helm_stuck(e):
                            self._clear_release_secrets(request)
                        raise
        except RetryError as e:
            raise HelmStuck(request.release_name) from e.last_attempt.exception()
        raise HelmStuck(request.release_name)

    def _clear_release_secrets(self, request: ChartRequest) -> None:
        selector = f"{HELM_RELEASE_SECRET_SELECTOR},name={request.release_name}"
        try:
            self._kube.secret_delete_collection(request.namespace, selector, HELM_RELEASE_SECRET_TYPE)
        except Exception as e:
            logger.debug("unable to delete %s secrets: %s", HELM_RELEASE_SECRET_TYPE, e)

    def _raise_if_port_conflict(self, request: ChartRequest, err: ChartDeployFailed) -> None:
        console.print(
            f"[yellow]\u26a0\ufe0f  Encountered an error while installing {request.chart_name}. "
            "This could be an indication that the ingress port is not available.[/yellow]"
        )
        try:
            service = self._kube.service_get(request.namespace, request.controller_service)
        except Exception as e:
            logger.debug("unable to read service %s: %s", request.controller_service, e)
            return
        load_balancer = service.status.load_balancer if service.status else None
        if not (load_balancer and load_balancer.ingress):
            raise IngressPortConflict(f"could not install {request.chart_name} chart: {err}") from err
