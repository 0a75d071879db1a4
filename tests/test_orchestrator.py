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

"""End-to-end install, uninstall and status runs against fakes."""

from __future__ import annotations

import socket
from dataclasses import replace
from unittest.mock import MagicMock, patch

import httpx
import pytest

from helpers import FakeCluster, FakeEngine, pod, running_container
from localdeploy.charts import ChartRelease
from localdeploy.config import (
    TEST_PROVIDER,
    Credentials,
    InstallOptions,
    RegistryAuth,
    TimeoutSettings,
    UninstallOptions,
)
from localdeploy.errors import (
    BootloaderFailed,
    ChartDeployFailed,
    ClusterNotFound,
    ClusterOperationFailed,
    EngineUnreachable,
    InvalidHost,
    SecretFileInvalid,
)
from localdeploy.liveness import LivenessGate
from localdeploy.orchestrator import InstallState, Orchestrator, StepStatus
from localdeploy.preflight import PreflightChecker

APP_NS = "airbyte-localdeploy"
STABLE_PROVIDER = replace(TEST_PROVIDER, requires_stable_port=True)


def free_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("localhost", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture(autouse=True)
def app_responds():
    """The application URL answers 200 on the first request."""
    with patch("localdeploy.liveness.httpx.Client") as mock_client_cls:
        mock_client_cls.return_value.__enter__.return_value.send.return_value = httpx.Response(200)
        yield


@pytest.fixture
def launcher():
    return MagicMock()


@pytest.fixture
def build(charts, kube, telemetry, launcher):
    """Build an orchestrator around fakes; keyword arguments override the defaults."""

    def _build(cluster=None, engine=None, provider=TEST_PROVIDER):
        engine = engine or FakeEngine()
        return Orchestrator(
            provider=provider,
            telemetry=telemetry,
            preflight=PreflightChecker(telemetry, engine_factory=lambda: engine),
            cluster=cluster or FakeCluster(),
            kube=kube,
            chart_client=charts,
            liveness=LivenessGate(timeout=5, tick=0.01, launcher=launcher),
            timeouts=TimeoutSettings(namespace_delete=1, namespace_poll=0.01),
        )

    return _build


class TestInstall:
    def test_fresh_install(self, build, charts, kube, telemetry, launcher):
        port = free_port()
        cluster = FakeCluster()

        outcome = build(cluster=cluster).install(Credentials("admin", "secret"), InstallOptions(port=port))

        assert outcome.state is InstallState.DONE, outcome.error
        assert outcome.url == f"http://localhost:{port}"
        assert cluster.created == [(port, ())]
        assert [r.release_name for r in charts.installs] == ["airbyte-localdeploy", "ingress-nginx"]
        assert kube.secrets[(APP_NS, "basic-auth")].string_data["auth"].startswith("admin:")
        assert (APP_NS, "ingress-localdeploy") in kube.ingresses
        launcher.assert_called_once_with(f"http://localhost:{port}")
        assert telemetry.attrs["provider"] == "test"
        assert telemetry.attrs["k8s_version"] == "v1.29.8"
        assert all(step.status is StepStatus.OK for step in outcome.steps)

    def test_nginx_values_use_final_port(self, build, charts):
        port = free_port()
        build().install(Credentials(), InstallOptions(port=port))

        nginx = charts.installs[1]
        assert f"http: {port}" in nginx.values_yaml
        assert nginx.uninstall_first
        assert nginx.controller_service == "ingress-nginx-controller"

    def test_existing_cluster_keeps_bound_port(self, build, charts, launcher):
        cluster = FakeCluster(exists=True)
        engine = FakeEngine(running_container(host_port="9100"))
        orchestrator = build(cluster=cluster, engine=engine, provider=STABLE_PROVIDER)

        with patch.object(PreflightChecker, "check_port_available") as port_check:
            outcome = orchestrator.install(Credentials(), InstallOptions(port=8000))

        assert outcome.ok
        assert outcome.port == 9100
        assert cluster.created == []
        port_check.assert_not_called()
        assert "http: 9100" in charts.installs[1].values_yaml
        launcher.assert_called_once_with("http://localhost:9100")

    def test_reinstall_is_idempotent(self, build, charts, kube):
        port = free_port()
        cluster = FakeCluster()
        build(cluster=cluster).install(Credentials("a", "p1"), InstallOptions(port=port))

        outcome = build(cluster=cluster).install(Credentials("a", "p2"), InstallOptions(port=port))

        assert outcome.ok
        assert len(cluster.created) == 1
        assert charts.releases[("airbyte-localdeploy", APP_NS)].revision == 2
        assert kube.calls.count("ingress_replace") == 1

    def test_first_error_aborts(self, build, charts, kube, launcher):
        charts.install_errors["airbyte-localdeploy"] = [ChartDeployFailed("unable to install: timed out")]

        outcome = build().install(Credentials(), InstallOptions(port=free_port()))

        assert outcome.state is InstallState.FAILED
        assert isinstance(outcome.error, ChartDeployFailed)
        assert outcome.steps[-1].status is StepStatus.FAIL
        assert outcome.steps[-1].step == InstallState.CHARTS_DEPLOYING.value
        assert [r.release_name for r in charts.installs] == ["airbyte-localdeploy"]
        assert kube.secrets == {}
        launcher.assert_not_called()

    def test_app_secrets_precede_app_chart(self, build, charts, kube, tmp_path):
        secret_file = tmp_path / "oauth.yaml"
        secret_file.write_text("kind: Secret\nmetadata:\n  name: oauth\nstringData:\n  id: abc\n")
        options = InstallOptions(
            port=free_port(),
            registry_auth=RegistryAuth("https://index.docker.io/v1/", "me", "s3cret"),
            secret_files=(secret_file,),
        )

        outcome = build().install(Credentials(), options)

        assert outcome.ok, outcome.error
        assert kube.calls.index("namespace_ensure") < kube.calls.index("secret_create_or_replace")
        assert (APP_NS, "docker-auth") in kube.secrets
        assert (APP_NS, "oauth") in kube.secrets
        assert charts.installs[0].values == ("global.imagePullSecrets[0].name=docker-auth",)

    def test_no_app_secrets_by_default(self, build, charts, kube):
        build().install(Credentials(), InstallOptions(port=free_port()))

        assert "namespace_ensure" not in kube.calls
        assert charts.installs[0].values == ()

    def test_invalid_secret_file_aborts_before_charts(self, build, charts, tmp_path):
        secret_file = tmp_path / "bad.yaml"
        secret_file.write_text("kind: ConfigMap\n")

        outcome = build().install(Credentials(), InstallOptions(port=free_port(), secret_files=(secret_file,)))

        assert isinstance(outcome.error, SecretFileInvalid)
        assert charts.installs == []

    def test_bootloader_failure_is_diagnosed(self, build, charts, kube):
        chart_error = ChartDeployFailed("unable to install airbyte/airbyte chart: context deadline exceeded")
        charts.install_errors["airbyte-localdeploy"] = [chart_error]
        kube.pods = [pod("airbyte-localdeploy-airbyte-bootloader", "Failed")]

        outcome = build().install(Credentials(), InstallOptions(port=free_port()))

        assert isinstance(outcome.error, BootloaderFailed)
        assert outcome.error.__cause__ is chart_error
        assert outcome.steps[-1].step == InstallState.CHARTS_DEPLOYING.value

    def test_engine_closed_after_install(self, build):
        engine = FakeEngine()
        build(engine=engine).install(Credentials(), InstallOptions(port=free_port()))
        assert engine.closed

    def test_invalid_host_fails_before_cluster_work(self, build):
        cluster = FakeCluster()
        outcome = build(cluster=cluster).install(Credentials(), InstallOptions(port=free_port(), hosts=("10.0.0.1",)))

        assert isinstance(outcome.error, InvalidHost)
        assert cluster.created == []

    def test_engine_unreachable(self, build):
        cluster = FakeCluster()
        engine = FakeEngine(version_error=ConnectionError("refused"))

        outcome = build(cluster=cluster, engine=engine).install(Credentials(), InstallOptions(port=free_port()))

        assert isinstance(outcome.error, EngineUnreachable)
        assert outcome.steps[-1].step == InstallState.PREFLIGHT_PENDING.value
        assert cluster.created == []

    def test_cluster_failure_is_wrapped(self, build):
        cluster = FakeCluster()
        cluster.create = MagicMock(side_effect=RuntimeError("kind exploded"))

        outcome = build(cluster=cluster).install(Credentials(), InstallOptions(port=free_port()))

        assert isinstance(outcome.error, ClusterOperationFailed)
        assert isinstance(outcome.error.__cause__, RuntimeError)

    def test_no_browser(self, build, launcher):
        outcome = build().install(Credentials(), InstallOptions(port=free_port(), no_browser=True))

        assert outcome.ok
        launcher.assert_not_called()

    def test_launch_failure_is_warning(self, build, launcher):
        launcher.side_effect = RuntimeError("no display")

        outcome = build().install(Credentials(), InstallOptions(port=free_port()))

        assert outcome.ok
        assert outcome.steps[-1].status is StepStatus.WARN


class TestUninstall:
    def _installed(self, charts, kube):
        for name, ns in (("airbyte-localdeploy", APP_NS), ("ingress-nginx", "ingress-nginx")):
            charts.releases[(name, ns)] = ChartRelease(name, ns, 1, "deployed", "1.0.0", "1.0.0")
        kube.namespaces.add(APP_NS)

    def test_full_uninstall(self, build, charts, kube):
        self._installed(charts, kube)
        kube.namespace_linger = 2
        cluster = FakeCluster(exists=True)

        outcome = build(cluster=cluster).uninstall(UninstallOptions())

        assert outcome.ok
        assert outcome.warnings == []
        assert charts.uninstalled == ["airbyte-localdeploy", "ingress-nginx"]
        assert APP_NS not in kube.namespaces
        assert cluster.deleted == 1

    def test_missing_cluster_is_noop(self, build, charts):
        cluster = FakeCluster(exists=False)

        outcome = build(cluster=cluster).uninstall(UninstallOptions())

        assert outcome.ok
        assert cluster.deleted == 0
        assert charts.uninstalled == []

    def test_sweep_failures_are_warnings(self, build, charts, kube):
        self._installed(charts, kube)
        kube.namespace_linger = -1
        charts.release_lookup_error = ChartDeployFailed("unable to get release: connection refused")
        cluster = FakeCluster(exists=True)

        outcome = build(cluster=cluster).uninstall(UninstallOptions())

        assert outcome.ok
        assert len(outcome.warnings) == 3
        assert cluster.deleted == 1

    def test_unexpected_sweep_error_still_deletes_cluster(self, build, charts, kube):
        self._installed(charts, kube)
        charts.release_lookup_error = RuntimeError("helm output was not JSON")
        cluster = FakeCluster(exists=True)

        outcome = build(cluster=cluster).uninstall(UninstallOptions())

        assert outcome.ok
        assert len(outcome.warnings) == 2
        assert cluster.deleted == 1

    def test_engine_closed_after_uninstall(self, build):
        engine = FakeEngine()
        build(cluster=FakeCluster(exists=True), engine=engine).uninstall(UninstallOptions())
        assert engine.closed

    def test_cluster_delete_failure_is_fatal(self, build, charts, kube):
        cluster = FakeCluster(exists=True)
        cluster.delete_error = ClusterOperationFailed("unable to delete kind cluster")

        outcome = build(cluster=cluster).uninstall(UninstallOptions())

        assert isinstance(outcome.error, ClusterOperationFailed)

    def test_persisted_data_removed(self, build, tmp_path):
        data_dir = tmp_path / "data"
        (data_dir / "pvc").mkdir(parents=True)

        outcome = build(cluster=FakeCluster(exists=True)).uninstall(UninstallOptions(persisted=True, data_dir=data_dir))

        assert outcome.ok
        assert not data_dir.exists()

    def test_persisted_data_kept_by_default(self, build, tmp_path):
        data_dir = tmp_path / "data"
        data_dir.mkdir()

        build(cluster=FakeCluster(exists=True)).uninstall(UninstallOptions(data_dir=data_dir))

        assert data_dir.exists()


class TestStatus:
    def test_reports_releases_and_url(self, build, charts):
        charts.releases[("airbyte-localdeploy", APP_NS)] = ChartRelease(
            "airbyte-localdeploy", APP_NS, 4, "deployed", "1.5.1", "1.5.1",
        )
        engine = FakeEngine(running_container(host_port="8000"))

        report = build(cluster=FakeCluster(exists=True), engine=engine).status()

        assert report.releases["airbyte-localdeploy"].revision == 4
        assert report.releases["ingress-nginx"] is None
        assert report.url == "http://localhost:8000"
        assert engine.closed

    def test_missing_cluster(self, build):
        with pytest.raises(ClusterNotFound):
            build(cluster=FakeCluster(exists=False)).status()
