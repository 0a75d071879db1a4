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

"""status command."""

from __future__ import annotations

from localdeploy.commands import fail
from localdeploy.config import InstallSettings, provider_for_home
from localdeploy.errors import LocalDeployError
from localdeploy.orchestrator import Orchestrator
from localdeploy.telemetry import LoggingTelemetry


def status() -> None:
    """Show the state of the installed releases and the access URL."""
    settings = InstallSettings()
    orchestrator = Orchestrator.for_provider(provider_for_home(settings.home_dir), LoggingTelemetry())
    try:
        orchestrator.status()
    except LocalDeployError as e:
        raise fail(e) from e
