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

"""install command."""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError

from localdeploy import console
from localdeploy.commands import fail
from localdeploy.config import (
    Credentials,
    InstallOptions,
    InstallSettings,
    TimeoutSettings,
    provider_for_home,
)
from localdeploy.errors import LocalDeployError
from localdeploy.orchestrator import Orchestrator
from localdeploy.telemetry import LoggingTelemetry


def install(
    port: int | None = typer.Option(None, "--port", help="Host port the application is served on"),
    host: list[str] | None = typer.Option(None, "--host", help="Extra hostname for the ingress (repeatable)"),
    chart_version: str | None = typer.Option(None, "--chart-version", help="Application chart version"),
    values: Path | None = typer.Option(None, "--values", exists=True, dir_okay=False, help="Helm values file"),
    secret: list[Path] | None = typer.Option(
        None, "--secret", exists=True, dir_okay=False, help="Kubernetes Secret manifest to apply (repeatable)"
    ),
    volume: list[str] | None = typer.Option(None, "--volume", help="Extra node mount HOST_PATH:CONTAINER_PATH (repeatable)"),
    docker_server: str | None = typer.Option(None, "--docker-server", help="Registry server for the image pull secret"),
    docker_username: str | None = typer.Option(None, "--docker-username", help="Registry username"),
    docker_password: str | None = typer.Option(None, "--docker-password", help="Registry password"),
    docker_email: str | None = typer.Option(None, "--docker-email", help="Registry email"),
    username: str | None = typer.Option(None, "--username", help="Basic-auth username"),
    password: str | None = typer.Option(None, "--password", help="Basic-auth password"),
    no_browser: bool = typer.Option(False, "--no-browser", help="Do not open a browser once ready"),
) -> None:
    """Install the application into a local kind cluster."""
    overrides = {
        "port": port,
        "hosts": host or None,
        "chart_version": chart_version,
        "values_file": values,
        "secret_files": secret or None,
        "volumes": volume or None,
        "docker_server": docker_server,
        "docker_username": docker_username,
        "docker_password": docker_password,
        "docker_email": docker_email,
        "username": username,
        "password": password,
        "no_browser": no_browser or None,
    }
    try:
        settings = InstallSettings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        console.print(f"[red]\u274c Invalid install settings:\n{e}[/red]")
        raise typer.Exit(code=1)

    try:
        options = InstallOptions.from_settings(settings)
    except LocalDeployError as e:
        raise fail(e) from e
    orchestrator = Orchestrator.for_provider(
        provider_for_home(settings.home_dir),
        LoggingTelemetry(),
        timeouts=TimeoutSettings(),
        data_dir=options.data_dir,
    )
    outcome = orchestrator.install(Credentials(settings.username, settings.password), options)
    if outcome.error is not None:
        raise fail(outcome.error)
    console.print(f"[green]\u2705 Installation complete, the application is available at {outcome.url}[/green]")
