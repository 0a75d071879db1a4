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

"""Tests for settings, providers and option objects."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from localdeploy.config import (
    DEFAULT_PROVIDER,
    InstallOptions,
    InstallSettings,
    Mount,
    TimeoutSettings,
    parse_mount,
    provider_for_home,
)
from localdeploy.errors import InvalidHost, InvalidMount, LocalDeployError, NamespaceDeleteTimeout


class TestInstallSettings:
    def test_defaults(self, monkeypatch):
        for var in ("LOCALDEPLOY_PORT", "LOCALDEPLOY_USERNAME", "LOCALDEPLOY_PASSWORD"):
            monkeypatch.delenv(var, raising=False)
        settings = InstallSettings()

        assert settings.port == 8000
        assert settings.username == "airbyte"
        assert settings.chart_version == "latest"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("LOCALDEPLOY_PORT", "9000")
        monkeypatch.setenv("LOCALDEPLOY_NO_BROWSER", "true")

        settings = InstallSettings()

        assert settings.port == 9000
        assert settings.no_browser is True

    def test_rejects_out_of_range_port(self):
        with pytest.raises(ValidationError):
            InstallSettings(port=70000)

    def test_timeouts_from_env(self, monkeypatch):
        monkeypatch.setenv("LOCALDEPLOY_TIMEOUT_LIVENESS", "30")
        assert TimeoutSettings().liveness == 30


class TestInstallOptions:
    def test_from_settings(self, tmp_path):
        values = tmp_path / "values.yaml"
        values.write_text("global:\n  edition: community\n")
        settings = InstallSettings(
            port=8100, chart_version="1.5.1", hosts=["airbyte.example.com"], values_file=values, home_dir=tmp_path,
        )

        options = InstallOptions.from_settings(settings)

        assert options.port == 8100
        assert options.chart_version == "1.5.1"
        assert options.hosts == ("airbyte.example.com",)
        assert "edition: community" in options.values_yaml
        assert options.data_dir == tmp_path / "data"

    @pytest.mark.parametrize("version", ["latest", ""])
    def test_latest_means_newest(self, version, tmp_path):
        options = InstallOptions.from_settings(InstallSettings(chart_version=version, home_dir=tmp_path))
        assert options.chart_version is None

    def test_registry_auth_needs_username_and_password(self, tmp_path):
        assert InstallOptions.from_settings(InstallSettings(docker_username="me", home_dir=tmp_path)).registry_auth is None

        options = InstallOptions.from_settings(InstallSettings(
            docker_username="me", docker_password="s3cret", docker_email="me@example.com", home_dir=tmp_path,
        ))

        assert options.registry_auth.server == "https://index.docker.io/v1/"
        assert options.registry_auth.username == "me"
        assert options.registry_auth.email == "me@example.com"

    def test_secret_files_and_volumes(self, tmp_path):
        settings = InstallSettings(
            secret_files=[tmp_path / "oauth.yaml"], volumes=["/srv/cache:/cache"], home_dir=tmp_path,
        )

        options = InstallOptions.from_settings(settings)

        assert options.secret_files == (tmp_path / "oauth.yaml",)
        assert options.extra_mounts == (Mount(Path("/srv/cache"), "/cache"),)

    def test_invalid_volume(self, tmp_path):
        with pytest.raises(InvalidMount, match="invalid volume mount 'bad'"):
            InstallOptions.from_settings(InstallSettings(volumes=["bad"], home_dir=tmp_path))


class TestParseMount:
    def test_valid(self):
        assert parse_mount("/srv/data:/data") == Mount(Path("/srv/data"), "/data")

    @pytest.mark.parametrize("spec", ["a", "a:b:c", ":b", "a:", ""])
    def test_invalid(self, spec):
        with pytest.raises(InvalidMount) as exc_info:
            parse_mount(spec)
        assert exc_info.value.spec == spec
        assert "HOST_PATH" in exc_info.value.help


class TestProviders:
    def test_kind_provider_needs_stable_port(self):
        assert DEFAULT_PROVIDER.requires_stable_port
        assert DEFAULT_PROVIDER.context == f"kind-{DEFAULT_PROVIDER.cluster_name}"
        assert "controller.service.type=NodePort" in DEFAULT_PROVIDER.helm_nginx_values

    def test_provider_for_home(self):
        provider = provider_for_home(Path("/tmp/ld"))

        assert provider.kubeconfig == Path("/tmp/ld/localdeploy.kubeconfig")
        assert provider.cluster_name == DEFAULT_PROVIDER.cluster_name


class TestErrors:
    def test_help_is_separate_from_message(self):
        err = NamespaceDeleteTimeout("airbyte-localdeploy", 300)

        assert str(err) == "namespace 'airbyte-localdeploy' was not deleted within 300s"
        assert "finalizers" in err.help

    def test_help_override(self):
        err = LocalDeployError("boom", help="try again")
        assert err.help == "try again"
        assert LocalDeployError("boom").help == ""

    def test_host_help_depends_on_kind(self):
        assert InvalidHost("10.0.0.1", is_ip=True).help != InvalidHost("bad host").help
