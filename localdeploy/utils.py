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

"""Helpers shared by the CLI-driven gateways."""

from __future__ import annotations

import sh

from localdeploy.errors import LocalDeployError


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        LocalDeployError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise LocalDeployError(
            f"required command '{cmd}' not found",
            help=f"Install '{cmd}' and make sure it is on your PATH, then run the command again.",
        ) from err


def command_error_text(err: sh.ErrorReturnCode) -> str:
    """Return the decoded stderr (or stdout when stderr is empty) of a failed command."""
    text = (err.stderr or b"").decode(errors="replace").strip()
    if not text:
        text = (err.stdout or b"").decode(errors="replace").strip()
    return text or str(err)
