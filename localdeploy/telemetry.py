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

"""Telemetry sink contract and the local implementation."""

from __future__ import annotations

from typing import Protocol

from localdeploy import logger


class TelemetrySink(Protocol):
    """Receives key/value attributes describing the environment and run."""

    def attr(self, key: str, value: str) -> None: ...


class LoggingTelemetry:
    """Collects attributes in memory and mirrors them to the debug log.

    Transport to a remote collector is out of scope; the collected
    attributes are available on ``attrs`` for the caller to ship.
    """

    def __init__(self) -> None:
        self.attrs: dict[str, str] = {}

    def attr(self, key: str, value: str) -> None:
        self.attrs[key] = str(value)
        logger.debug("telemetry %s=%s", key, value)
