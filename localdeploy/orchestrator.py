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

"""Install, uninstall and status workflows.

The orchestrator owns no global state: the provider, telemetry sink and
every gateway are passed in, so one process can drive several independent
runs and tests can substitute fakes for the engine, cluster and helm.
"""

from __future__ import annotations

import enum
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from rich.panel import Panel

from localdeploy import console, logger
from localdeploy.charts import (
    ChartClient,
    ChartDeployer,
    ChartRelease,
    ChartRequest,
    HelmCli,
    build_nginx_values,
)
from localdeploy.cluster import ClusterGateway, KindCluster
from localdeploy.config import Credentials, InstallOptions, Provider, TimeoutSettings, UninstallOptions
from localdeploy.constants import (
    APP_CHART_NAME,
    APP_CHART_REPO_NAME,
    APP_CHART_REPO_URL,
    APP_NAMESPACE,
    APP_PULL_SECRET_VALUE,
    APP_RELEASE,
    NGINX_CHART_NAME,
    NGINX_CONTROLLER_SERVICE,
    NGINX_NAMESPACE,
    NGINX_RELEASE,
    NGINX_REPO_NAME,
    NGINX_REPO_URL,
)
from localdeploy.credentials import CredentialManager
from localdeploy.diagnostics import diagnose_chart_failure
from localdeploy.errors import (
    ChartDeployFailed,
    ClusterNotFound,
    ClusterOperationFailed,
    KubernetesUnreachable,
    LocalDeployError,
    ReleaseNotFound,
)
from localdeploy.ingress import IngressManager, IngressRuleSet
from localdeploy.kube import ClusterApi, KubeClient
from localdeploy.liveness import LivenessGate
from localdeploy.ports import PortResolver
from localdeploy.preflight import PreflightChecker
from localdeploy.sweep import UninstallSweep
from localdeploy.telemetry import TelemetrySink


# ============================================================================
# Outcomes
# ============================================================================

class InstallState(enum.Enum):
    PREFLIGHT_PENDING = "preflight-pending"
    CLUSTER_PENDING = "cluster-pending"
    CHARTS_DEPLOYING = "charts-deploying"
    CREDENTIALS_PENDING = "credentials-pending"
    INGRESS_PENDING = "ingress-pending"
    LIVENESS_PENDING = "liveness-pending"
    DONE = "done"
    FAILED = "failed"


class StepStatus(enum.Enum):
    OK = "ok"
    WARN = "warn"
    FAIL = "fail"


@dataclass(frozen=True)
class StepOutcome:
    step: str
    status: StepStatus
    message: str


@dataclass
class InstallOutcome:
    """Result of an install run.

    Attributes:
        state: Last state reached; DONE or FAILED once the run is over.
        steps: Per-phase results in execution order.
        port: Host port the application is served on.
        url: Local URL of the application, once known.
        error: The error that moved the run to FAILED, if any.
    """

    state: InstallState = InstallState.PREFLIGHT_PENDING
    steps: list[StepOutcome] = field(default_factory=list)
    port: int | None = None
    url: str | None = None
    error: LocalDeployError | None = None

    @property
    def ok(self) -> bool:
        return self.state is InstallState.DONE


@dataclass
class UninstallOutcome:
    steps: list[StepOutcome] = field(default_factory=list)
    error: LocalDeployError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def warnings(self) -> list[str]:
        return [s.message for s in self.steps if s.status is StepStatus.WARN]


@dataclass(frozen=True)
class StatusReport:
    releases: dict[str, ChartRelease | None]
    url: str


# ============================================================================
# Orchestrator
# ============================================================================

class Orchestrator:
    """Sequences pre-flight, cluster, charts, credentials, ingress and liveness."""

    def __init__(
        self,
        provider: Provider,
        telemetry: TelemetrySink,
        preflight: PreflightChecker,
        cluster: ClusterGateway,
        kube: ClusterApi,
        chart_client: ChartClient,
        liveness: LivenessGate,
        timeouts: TimeoutSettings | None = None,
    ) -> None:
        timeouts = timeouts or TimeoutSettings()
        self._provider = provider
        self._telemetry = telemetry
        self._preflight = preflight
        self._cluster = cluster
        self._kube = kube
        self._charts = chart_client
        self._liveness = liveness
        self._deployer = ChartDeployer(chart_client, kube, telemetry, chart_timeout=timeouts.chart_wait)
        self._credentials = CredentialManager(kube)
        self._ingress = IngressManager(kube)
        self._sweep = UninstallSweep(
            self._deployer, kube,
            namespace_timeout=timeouts.namespace_delete,
            poll_interval=timeouts.namespace_poll,
        )

    @classmethod
    def for_provider(
        cls,
        provider: Provider,
        telemetry: TelemetrySink,
        timeouts: TimeoutSettings | None = None,
        data_dir: Path | None = None,
    ) -> Orchestrator:
        """Wire an orchestrator to the real Docker engine, kind, helm and Kubernetes API."""
        timeouts = timeouts or TimeoutSettings()
        return cls(
            provider=provider,
            telemetry=telemetry,
            preflight=PreflightChecker(telemetry, http_timeout=timeouts.port_check),
            cluster=KindCluster(provider, data_dir=data_dir),
            kube=KubeClient(provider),
            chart_client=HelmCli(provider),
            liveness=LivenessGate(timeout=timeouts.liveness, tick=timeouts.liveness_tick),
            timeouts=timeouts,
        )

    # -- Install --

    def install(self, credentials: Credentials, options: InstallOptions) -> InstallOutcome:
        """Provision the cluster and application.

        The run stops at the first failing phase and leaves whatever was
        already created in place; re-running install picks up from there.

        Args:
            credentials: Basic-auth username and password for the ingress.
            options: Port, chart version, hosts and other per-run options.

        Returns:
            The outcome; ``outcome.error`` holds the failure when ``state`` is FAILED.
        """
        outcome = InstallOutcome(port=options.port)
        self._telemetry.attr("provider", self._provider.name)
        try:
            self._run_install(credentials, options, outcome)
        except LocalDeployError as e:
            outcome.steps.append(StepOutcome(outcome.state.value, StepStatus.FAIL, str(e)))
            outcome.error = e
            outcome.state = InstallState.FAILED
            logger.debug("install failed", exc_info=True)
        finally:
            self._preflight.close()
        return outcome

    def _run_install(self, credentials: Credentials, options: InstallOptions, outcome: InstallOutcome) -> None:
        port = options.port

        console.print(Panel.fit("Pre-flight checks", style="bold blue"))
        rule_set = IngressRuleSet.for_hosts(options.hosts)
        self._preflight.check_container_engine()
        cluster_exists = self._cluster_exists()
        if not cluster_exists:
            self._preflight.check_port_available(port)
        self._ok(outcome, "engine and port checks passed")

        outcome.state = InstallState.CLUSTER_PENDING
        if cluster_exists:
            port = self._reuse_cluster(port)
            outcome.port = port
            self._ok(outcome, f"using existing cluster {self._provider.cluster_name}")
        else:
            self._create_cluster(port, options)
            self._ok(outcome, f"created cluster {self._provider.cluster_name}")
        self._record_kubernetes_version()

        outcome.state = InstallState.CHARTS_DEPLOYING
        app_values = self._apply_app_secrets(options)
        try:
            self._deployer.deploy(ChartRequest(
                name="airbyte",
                repo_name=APP_CHART_REPO_NAME,
                repo_url=APP_CHART_REPO_URL,
                chart_name=APP_CHART_NAME,
                release_name=APP_RELEASE,
                namespace=APP_NAMESPACE,
                chart_version=options.chart_version,
                values=app_values,
                values_yaml=options.values_yaml,
            ))
        except ChartDeployFailed as e:
            diagnosed = diagnose_chart_failure(self._kube, APP_NAMESPACE, e)
            if diagnosed is e:
                raise
            raise diagnosed from e
        self._deployer.deploy(ChartRequest(
            name="nginx",
            repo_name=NGINX_REPO_NAME,
            repo_url=NGINX_REPO_URL,
            chart_name=NGINX_CHART_NAME,
            release_name=NGINX_RELEASE,
            namespace=NGINX_NAMESPACE,
            values=self._provider.helm_nginx_values,
            values_yaml=build_nginx_values(port),
            uninstall_first=True,
            controller_service=NGINX_CONTROLLER_SERVICE,
        ))
        self._ok(outcome, "charts deployed")

        outcome.state = InstallState.CREDENTIALS_PENDING
        self._credentials.ensure_basic_auth(APP_NAMESPACE, credentials.username, credentials.password)
        self._ok(outcome, "basic auth configured")

        outcome.state = InstallState.INGRESS_PENDING
        self._ingress.ensure_ingress(APP_NAMESPACE, rule_set)
        self._ok(outcome, f"ingress configured for {', '.join(rule_set.hosts)}")

        outcome.state = InstallState.LIVENESS_PENDING
        url = f"http://localhost:{port}"
        outcome.url = url
        if options.no_browser:
            self._liveness.wait_ready(url)
            console.print(f"[green]\u2705 Launching web-browser disabled. The application is accessible at {url}[/green]")
            self._ok(outcome, f"ready at {url}")
        elif self._liveness.wait_ready_then_launch(url):
            self._ok(outcome, f"ready at {url}, browser launched")
        else:
            outcome.steps.append(StepOutcome(outcome.state.value, StepStatus.WARN, f"ready at {url}, browser not launched"))

        outcome.state = InstallState.DONE

    def _ok(self, outcome: InstallOutcome, message: str) -> None:
        outcome.steps.append(StepOutcome(outcome.state.value, StepStatus.OK, message))

    def _cluster_exists(self) -> bool:
        try:
            return self._cluster.exists()
        except LocalDeployError:
            raise
        except Exception as e:
            raise ClusterOperationFailed(f"unable to determine if the cluster exists: {e}") from e

    def _create_cluster(self, port: int, options: InstallOptions) -> None:
        try:
            self._cluster.create(port, options.extra_mounts)
        except LocalDeployError:
            raise
        except Exception as e:
            raise ClusterOperationFailed(f"unable to create cluster: {e}") from e

    def _reuse_cluster(self, requested: int) -> int:
        console.print(f"[yellow]\u2139\ufe0f  Cluster '{self._provider.cluster_name}' already exists[/yellow]")
        if not self._provider.requires_stable_port:
            return requested
        bound = PortResolver(self._preflight.engine).resolve_bound_port(self._provider.cluster_name)
        if bound != requested:
            console.print(
                f"[yellow]\u2139\ufe0f  The existing cluster was found to be using port {bound}, which will be used "
                f"instead of the requested port {requested}. Ports cannot be changed without "
                "uninstalling first.[/yellow]"
            )
        return bound

    def _apply_app_secrets(self, options: InstallOptions) -> tuple[str, ...]:
        """Write the registry and user-supplied secrets the application chart consumes.

        Returns:
            Extra --set values for the application chart.
        """
        if options.registry_auth is None and not options.secret_files:
            return ()
        try:
            self._kube.namespace_ensure(APP_NAMESPACE)
        except Exception as e:
            raise KubernetesUnreachable(f"unable to create namespace {APP_NAMESPACE}: {e}") from e

        values: tuple[str, ...] = ()
        if options.registry_auth is not None:
            self._credentials.ensure_registry_secret(APP_NAMESPACE, options.registry_auth)
            values = (APP_PULL_SECRET_VALUE,)
        for path in options.secret_files:
            self._credentials.apply_secret_file(APP_NAMESPACE, path)
        return values

    def _record_kubernetes_version(self) -> None:
        try:
            version = self._kube.server_version()
        except LocalDeployError:
            raise
        except Exception as e:
            raise KubernetesUnreachable(f"unable to fetch kubernetes server version: {e}") from e
        self._telemetry.attr("k8s_version", version)

    # -- Uninstall --

    def uninstall(self, options: UninstallOptions) -> UninstallOutcome:
        """Remove the releases, the application namespace and the cluster.

        Only a failure to reach the engine or to delete the cluster fails
        the run; earlier failures are reported as warnings.
        """
        outcome = UninstallOutcome()
        self._telemetry.attr("provider", self._provider.name)
        try:
            self._preflight.check_container_engine()
            if not self._cluster_exists():
                console.print(
                    f"[yellow]\u26a0\ufe0f  Cluster '{self._provider.cluster_name}' does not exist, nothing to uninstall[/yellow]"
                )
                outcome.steps.append(StepOutcome("cluster", StepStatus.OK, "cluster not found, nothing to uninstall"))
                return outcome

            for warning in self._sweep.run([(APP_RELEASE, APP_NAMESPACE), (NGINX_RELEASE, NGINX_NAMESPACE)], APP_NAMESPACE):
                console.print(f"[yellow]\u26a0\ufe0f  {warning}; will still attempt to uninstall the cluster[/yellow]")
                outcome.steps.append(StepOutcome("sweep", StepStatus.WARN, warning))

            try:
                self._cluster.delete()
            except LocalDeployError:
                raise
            except Exception as e:
                raise ClusterOperationFailed(f"unable to delete cluster: {e}") from e
            outcome.steps.append(StepOutcome("cluster", StepStatus.OK, f"deleted cluster {self._provider.cluster_name}"))
        except LocalDeployError as e:
            outcome.steps.append(StepOutcome("uninstall", StepStatus.FAIL, str(e)))
            outcome.error = e
            return outcome
        finally:
            self._preflight.close()

        if options.persisted and options.data_dir is not None:
            self._remove_persisted(options, outcome)
        return outcome

    def _remove_persisted(self, options: UninstallOptions, outcome: UninstallOutcome) -> None:
        try:
            shutil.rmtree(options.data_dir)
        except FileNotFoundError:
            logger.debug("persisted data %s already removed", options.data_dir)
        except OSError as e:
            console.print(f"[yellow]\u26a0\ufe0f  Unable to remove persisted data {options.data_dir}: {e}[/yellow]")
            outcome.steps.append(StepOutcome("persisted", StepStatus.WARN, f"unable to remove persisted data: {e}"))
            return
        console.print(f"[green]\u2705 Removed persisted data {options.data_dir}[/green]")
        outcome.steps.append(StepOutcome("persisted", StepStatus.OK, "removed persisted data"))

    # -- Status --

    def status(self) -> StatusReport:
        """Report both releases and the access URL.

        Raises:
            EngineUnreachable: If the container engine is not reachable.
            ClusterNotFound: If the cluster does not exist.
        """
        try:
            return self._status()
        finally:
            self._preflight.close()

    def _status(self) -> StatusReport:
        self._preflight.check_container_engine()
        if not self._cluster_exists():
            raise ClusterNotFound(f"cluster '{self._provider.cluster_name}' not found")

        releases: dict[str, ChartRelease | None] = {}
        for release, namespace in ((APP_RELEASE, APP_NAMESPACE), (NGINX_RELEASE, NGINX_NAMESPACE)):
            try:
                rel = self._charts.get_release(release, namespace)
            except ReleaseNotFound:
                console.print(f"[yellow]\u26a0\ufe0f  Release {release} not found[/yellow]")
                releases[release] = None
                continue
            releases[release] = rel
            console.print(
                f"[green]Found release {rel.name}[/green]\n"
                f"  Status: {rel.status}\n"
                f"  Chart Version: {rel.chart_version}\n"
                f"  App Version: {rel.app_version}"
            )

        port = PortResolver(self._preflight.engine).resolve_bound_port(self._provider.cluster_name)
        url = f"http://localhost:{port}"
        console.print(f"[green]\u2705 The application should be accessible via {url}[/green]")
        return StatusReport(releases=releases, url=url)
