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

"""Best-effort removal of releases and the application namespace before cluster deletion."""

from __future__ import annotations

from typing import Sequence

from rich.panel import Panel
from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, wait_fixed

from localdeploy import console, logger
from localdeploy.charts import ChartDeployer
from localdeploy.constants import NAMESPACE_DELETE_SECONDS, NAMESPACE_POLL_SECONDS
from localdeploy.errors import LocalDeployError, NamespaceDeleteTimeout
from localdeploy.kube import ClusterApi


class UninstallSweep:
    """Removes releases, then deletes a namespace and waits for it to disappear."""

    def __init__(
        self,
        deployer: ChartDeployer,
        kube: ClusterApi,
        namespace_timeout: float = NAMESPACE_DELETE_SECONDS,
        poll_interval: float = NAMESPACE_POLL_SECONDS,
    ) -> None:
        self._deployer = deployer
        self._kube = kube
        self._timeout = namespace_timeout
        self._interval = poll_interval

    def run(self, releases: Sequence[tuple[str, str]], namespace: str) -> list[str]:
        """Remove *releases* and delete *namespace*, collecting failures instead of raising.

        Args:
            releases: ``(release, namespace)`` pairs, removed in order.
            namespace: Namespace deleted once the releases are gone.

        Returns:
            One message per failed step; empty when everything succeeded.
        """
        console.print(Panel.fit("Removing releases", style="bold blue"))
        warnings: list[str] = []
        for release, release_ns in releases:
            try:
                self._deployer.remove(release, release_ns)
            except Exception as e:
                logger.debug("unable to remove release %s", release, exc_info=True)
                warnings.append(f"unable to uninstall release {release}: {e}")

        try:
            self.delete_namespace(namespace)
        except LocalDeployError as e:
            warnings.append(str(e))
        except Exception as e:
            warnings.append(f"unable to delete namespace {namespace}: {e}")
        return warnings

    def delete_namespace(self, namespace: str) -> None:
        """Delete *namespace* and block until the API no longer reports it.

        Raises:
            NamespaceDeleteTimeout: If the namespace still exists at the deadline.
        """
        console.print(f"[yellow]\u2139\ufe0f  Deleting namespace {namespace}...[/yellow]")
        self._kube.namespace_delete(namespace)
        self.wait_namespace_deleted(namespace)
        console.print(f"[green]\u2705 Namespace {namespace} deleted[/green]")

    def wait_namespace_deleted(self, namespace: str) -> None:
        retrying = Retrying(
            stop=stop_after_delay(self._timeout),
            wait=wait_fixed(self._interval),
            retry=retry_if_result(lambda exists: exists),
        )
        try:
            retrying(self._namespace_exists, namespace)
        except RetryError as e:
            raise NamespaceDeleteTimeout(namespace, self._timeout) from e

    def _namespace_exists(self, namespace: str) -> bool:
        exists = self._kube.namespace_exists(namespace)
        logger.debug("namespace %s exists: %s", namespace, exists)
        return exists
