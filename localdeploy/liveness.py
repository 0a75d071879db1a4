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

"""Wait for the application URL to answer, then open it in a browser."""

from __future__ import annotations

import queue
import threading
import webbrowser
from typing import Callable

import httpx

from localdeploy import console, logger
from localdeploy.constants import LIVENESS_TICK_SECONDS, LIVENESS_TIMEOUT_SECONDS
from localdeploy.errors import LivenessTimeout, LocalDeployError
from localdeploy.preflight import marker_challenge

Launcher = Callable[[str], object]


class LivenessGate:
    """Races a background poller against a deadline before launching a browser.

    The poller requests the URL once per tick and posts the first conclusive
    result to a one-slot queue. The caller waits on that queue; whichever
    way the wait ends, the poller is told to stop.
    """

    def __init__(
        self,
        timeout: float = LIVENESS_TIMEOUT_SECONDS,
        tick: float = LIVENESS_TICK_SECONDS,
        launcher: Launcher = webbrowser.open,
    ) -> None:
        self._timeout = timeout
        self._tick = tick
        self._launcher = launcher

    def wait_ready(self, url: str) -> None:
        """Block until *url* answers with 200 or our own basic-auth challenge.

        Raises:
            LivenessTimeout: If no ready response arrived before the deadline.
            LocalDeployError: If the request could not be issued at all.
        """
        console.print(f"[yellow]\u2139\ufe0f  Waiting for {url} to become ready...[/yellow]")
        signal: queue.Queue[Exception | None] = queue.Queue(maxsize=1)
        stop = threading.Event()
        poller = threading.Thread(target=self._poll, args=(url, signal, stop), name="liveness", daemon=True)
        poller.start()
        try:
            result = signal.get(timeout=self._timeout)
        except queue.Empty:
            raise LivenessTimeout(url, self._timeout) from None
        finally:
            stop.set()
        if result is not None:
            raise LocalDeployError(f"liveness check of {url} failed: {result}") from result
        console.print(f"[green]\u2705 {url} is ready[/green]")

    def wait_ready_then_launch(self, url: str, launcher: Launcher | None = None) -> bool:
        """Wait for *url* to become ready, then open it.

        A failure to launch the browser is reported but does not fail the caller.

        Args:
            url: Address to check and open.
            launcher: Overrides the launcher given at construction.

        Returns:
            True if the browser was launched.

        Raises:
            LivenessTimeout: If the URL never became ready.
        """
        self.wait_ready(url)
        launch = launcher or self._launcher
        try:
            launch(url)
        except Exception as e:
            console.print(f"[yellow]\u26a0\ufe0f  Failed to launch web-browser ({e}). Please open {url} manually.[/yellow]")
            return False
        console.print(f"[green]\u2705 Launched web-browser at {url}[/green]")
        return True

    def _poll(self, url: str, signal: queue.Queue, stop: threading.Event) -> None:
        try:
            request = httpx.Request("GET", url)
        except (httpx.InvalidURL, ValueError) as e:
            signal.put_nowait(e)
            return
        with httpx.Client(timeout=self._tick) as http:
            # wait() doubles as the ticker and returns early once stopped.
            while not stop.wait(self._tick):
                try:
                    response = http.send(request)
                except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
                    # Permanent: this URL can never be sent.
                    signal.put_nowait(e)
                    return
                except httpx.HTTPError as e:
                    logger.debug("liveness check of %s failed: %s", url, e)
                    continue
                if response.status_code == 200 or marker_challenge(response):
                    signal.put_nowait(None)
                    return
                logger.debug("liveness check of %s returned %d", url, response.status_code)
