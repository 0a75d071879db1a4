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

"""uninstall command."""

from __future__ import annotations

import typer

from localdeploy import console
from localdeploy.commands import fail
from localdeploy.config import DATA_DIR_NAME, InstallSettings, TimeoutSettings, UninstallOptions, provider_for_home
from localdeploy.orchestrator import Orchestrator
from localdeploy.telemetry import LoggingTelemetry


def uninstall(
    persisted: bool = typer.Option(False, "--persisted", help="Also remove persisted data"),
) -> None:
    """Uninstall the application and delete the local cluster."""
    settings = InstallSettings()
    options = UninstallOptions(persisted=persisted, data_dir=settings.home_dir / DATA_DIR_NAME)
    orchestrator = Orchestrator.for_provider(
        provider_for_home(settings.home_dir),
        LoggingTelemetry(),
        timeouts=TimeoutSettings(),
        data_dir=options.data_dir,
    )
    outcome = orchestrator.uninstall(options)
    if outcome.error is not None:
        raise fail(outcome.error)
    if outcome.warnings:
        console.print(f"[yellow]\u26a0\ufe0f  Uninstall completed with {len(outcome.warnings)} warning(s)[/yellow]")
    else:
        console.print("[green]\u2705 Uninstall complete[/green]")
