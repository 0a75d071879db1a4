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

"""
cli.py - Local single-node installer for a packaged web application.

Commands:
    install    Create the local cluster (if needed) and install the application
    uninstall  Remove the application and delete the local cluster
    status     Show release status and the access URL

Examples:
    # Install on the default port 8000
    localdeploy install

    # Install on another port, answering on an extra hostname
    localdeploy install --port 9000 --host example.local

    # Remove everything, including persisted data
    localdeploy uninstall --persisted

Settings can also be supplied through LOCALDEPLOY_* environment variables,
e.g. LOCALDEPLOY_USERNAME and LOCALDEPLOY_PASSWORD.
"""

from __future__ import annotations

import logging
import sys

import typer

from localdeploy import console
from localdeploy.commands import install_cmd, status_cmd, uninstall_cmd

app = typer.Typer(
    help="Local single-node installer for a packaged web application.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.command("install")(install_cmd.install)
app.command("uninstall")(uninstall_cmd.uninstall)
app.command("status")(status_cmd.status)


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
