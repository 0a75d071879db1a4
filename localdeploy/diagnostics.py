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

"""Post-mortem of a failed application chart install."""

from __future__ import annotations

from localdeploy import logger
from localdeploy.constants import APP_BOOTLOADER_POD, APP_POD_PREFIX
from localdeploy.errors import BootloaderFailed, ChartDeployFailed
from localdeploy.kube import ClusterApi

POD_FAILED = "Failed"


def diagnose_chart_failure(kube: ClusterApi, namespace: str, err: ChartDeployFailed) -> ChartDeployFailed:
    """Inspect the application pods after *err* and return the error to report.

    When the bootloader is the only failed pod, the install failed on its
    initialization checks or migrations and ``BootloaderFailed`` is returned.
    Application pod logs are written to the debug log. Any failure while
    diagnosing leaves *err* unchanged.

    Args:
        kube: Cluster API for the application namespace.
        namespace: Namespace the application chart was installed into.
        err: The chart install error.

    Returns:
        Either *err* or a new ``BootloaderFailed``.
    """
    try:
        pods = kube.pod_list(namespace)
    except Exception as e:
        logger.debug("unable to list pods in %s: %s", namespace, e)
        return err

    failed = [p.metadata.name for p in pods if p.status and p.status.phase == POD_FAILED]
    if not failed:
        return err

    for pod in pods:
        name = pod.metadata.name
        # Job pods are not part of the platform release.
        if not name.startswith(APP_POD_PREFIX):
            continue
        if pod.status is not None:
            logger.debug("looking at %s: %s (%s)", name, pod.status.phase, pod.status.reason)
        try:
            logs = kube.pod_logs(namespace, name)
        except Exception as e:
            logger.debug("failed to get logs of pod %s: %s", name, e)
            continue
        logger.debug("logs of pod %s:\n%s", name, logs)

    if failed == [APP_BOOTLOADER_POD]:
        return BootloaderFailed(f"bootloader failed: {err}")
    return err
