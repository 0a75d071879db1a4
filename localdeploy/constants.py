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

"""Release names, chart coordinates, timeouts and other fixed values."""

from __future__ import annotations

# -- Tool identity --
# Appears in the basic-auth realm so the checks can recognise our own ingress.
TOOL_MARKER = "localdeploy"

# -- Application chart --
APP_CHART_REPO_NAME = "airbyte"
APP_CHART_REPO_URL = "https://airbytehq.github.io/helm-charts"
APP_CHART_NAME = "airbyte/airbyte"
APP_RELEASE = "airbyte-localdeploy"
APP_NAMESPACE = "airbyte-localdeploy"
APP_WEBAPP_SERVICE = f"{APP_RELEASE}-airbyte-webapp-svc"
APP_WEBAPP_PORT_NAME = "http"

# -- Ingress controller chart --
NGINX_REPO_NAME = "nginx"
NGINX_REPO_URL = "https://kubernetes.github.io/ingress-nginx"
NGINX_CHART_NAME = "nginx/ingress-nginx"
NGINX_RELEASE = "ingress-nginx"
NGINX_NAMESPACE = "ingress-nginx"
NGINX_CONTROLLER_SERVICE = "ingress-nginx-controller"
NGINX_CONTAINER_HTTP_PORT = 8080
NGINX_CONTAINER_HTTPS_PORT = 8443
NGINX_HEALTHZ_PORT = 10254

# -- Ingress and credentials --
INGRESS_NAME = "ingress-localdeploy"
INGRESS_CLASS = "nginx"
BASIC_AUTH_SECRET = "basic-auth"
BASIC_AUTH_KEY = "auth"
BASIC_AUTH_REALM = f"Authentication Required - Airbyte ({TOOL_MARKER})"
DEFAULT_INGRESS_HOSTS = ("localhost", "host.docker.internal")

# -- Registry auth and chart diagnostics --
REGISTRY_AUTH_SECRET = "docker-auth"
REGISTRY_AUTH_KEY = ".dockerconfigjson"
REGISTRY_AUTH_SECRET_TYPE = "kubernetes.io/dockerconfigjson"
DEFAULT_REGISTRY_SERVER = "https://index.docker.io/v1/"
APP_PULL_SECRET_VALUE = f"global.imagePullSecrets[0].name={REGISTRY_AUTH_SECRET}"
APP_POD_PREFIX = "airbyte"
APP_BOOTLOADER_POD = f"{APP_RELEASE}-airbyte-bootloader"

# -- Install defaults --
DEFAULT_PORT = 8000
DEFAULT_USERNAME = "airbyte"
DEFAULT_PASSWORD = "password"
PRIVILEGED_PORT_LIMIT = 1024

# -- Cluster --
DEFAULT_CLUSTER_NAME = "airbyte-local"
KIND_NODE_IMAGE = "kindest/node:v1.29.8"
KIND_WAIT = "5m"
KIND_CONTROL_PLANE_SUFFIX = "-control-plane"
KIND_INGRESS_CONTAINER_PORT = 80
KIND_DATA_MOUNT_PATH = "/var/local-path-provider"
WILDCARD_HOST_IP = "0.0.0.0"

# -- Docker hosts --
DOCKER_DARWIN_HOSTS = ("unix:///var/run/docker.sock", "unix://{home}/.docker/run/docker.sock")
DOCKER_WINDOWS_HOST = "npipe:////./pipe/docker_engine"
DOCKER_CLIENT_TIMEOUT_SECONDS = 30

# -- Helm --
HELM_RELEASE_SECRET_TYPE = "helm.sh/release.v1"
HELM_RELEASE_SECRET_SELECTOR = "owner=helm"
HELM_STATUS_DEPLOYED = "deployed"
HELM_STUCK_MAX_ATTEMPTS = 3
HELM_COMMAND_GRACE_SECONDS = 60

# -- Timeouts (seconds) --
CHART_WAIT_SECONDS = 600
NAMESPACE_DELETE_SECONDS = 300
NAMESPACE_POLL_SECONDS = 1
LIVENESS_TIMEOUT_SECONDS = 10
LIVENESS_TICK_SECONDS = 1
PORT_CHECK_TIMEOUT_SECONDS = 3
KUBE_REQUEST_TIMEOUT_SECONDS = 30

# -- Error text sniffed from helm and client-go --
ERR_TEXT_RATE_LIMITER = "client rate limiter Wait returned an error"
ERR_TEXT_INGRESS_TIMEOUTS = (
    ERR_TEXT_RATE_LIMITER,
    "context deadline exceeded",
    "timed out waiting for the condition",
)
ERR_TEXT_HELM_STUCK = "another operation (install/upgrade/rollback) is in progress"
ERR_TEXT_RELEASE_NOT_FOUND = "release: not found"
