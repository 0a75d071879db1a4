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

"""CLI commands (install, uninstall, status)."""

from __future__ import annotations

import typer

from localdeploy import console
from localdeploy.errors import LocalDeployError


def fail(err: LocalDeployError) -> typer.Exit:
    """Print *err* and its remediation hint; return the exit to raise."""
    console.print(f"[red]\u274c {err}[/red]")
    if err.help:
        console.print(f"[yellow]{err.help}[/yellow]")
    return typer.Exit(code=1)
