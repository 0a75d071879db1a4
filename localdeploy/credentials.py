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

"""Install-time credentials stored as Kubernetes secrets."""

from __future__ import annotations

import base64
import json
from pathlib import Path

import bcrypt
import yaml
from kubernetes import client

from localdeploy import console
from localdeploy.config import RegistryAuth
from localdeploy.constants import (
    BASIC_AUTH_KEY,
    BASIC_AUTH_SECRET,
    REGISTRY_AUTH_KEY,
    REGISTRY_AUTH_SECRET,
    REGISTRY_AUTH_SECRET_TYPE,
)
from localdeploy.errors import CredentialError, SecretFileInvalid
from localdeploy.kube import ClusterApi


def hash_password(password: str) -> str:
    """bcrypt *password* with the default cost.

    Raises:
        CredentialError: If bcrypt rejects the password.
    """
    try:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()
    except ValueError as e:
        raise CredentialError(f"unable to hash password: {e}") from e


class CredentialManager:
    """Writes the secrets the application and its ingress depend on."""

    def __init__(self, kube: ClusterApi) -> None:
        self._kube = kube

    def ensure_basic_auth(self, namespace: str, user: str, password: str) -> None:
        """Create or fully replace the basic-auth secret for *user*.

        Args:
            namespace: Namespace the ingress lives in.
            user: Username.
            password: Plain-text password, stored only as a bcrypt hash.

        Raises:
            CredentialError: If hashing or the API call failed.
        """
        secret = client.V1Secret(
            api_version="v1",
            kind="Secret",
            metadata=client.V1ObjectMeta(name=BASIC_AUTH_SECRET, namespace=namespace),
            string_data={BASIC_AUTH_KEY: f"{user}:{hash_password(password)}"},
        )
        try:
            self._kube.secret_create_or_replace(namespace, secret)
        except Exception as e:
            raise CredentialError(f"unable to create or update secret {BASIC_AUTH_SECRET}: {e}") from e
        console.print(f"[green]\u2705 Basic auth configured for user '{user}'[/green]")

    def ensure_registry_secret(self, namespace: str, auth: RegistryAuth) -> None:
        """Create or replace the image pull secret for *auth*.

        The secret holds a ``.dockerconfigjson`` document with a single
        ``auths`` entry for the registry server.

        Raises:
            CredentialError: If the API call failed.
        """
        token = base64.b64encode(f"{auth.username}:{auth.password}".encode()).decode()
        config = {
            "auths": {
                auth.server: {
                    "username": auth.username,
                    "password": auth.password,
                    "email": auth.email,
                    "auth": token,
                },
            },
        }
        secret = client.V1Secret(
            api_version="v1",
            kind="Secret",
            type=REGISTRY_AUTH_SECRET_TYPE,
            metadata=client.V1ObjectMeta(name=REGISTRY_AUTH_SECRET, namespace=namespace),
            string_data={REGISTRY_AUTH_KEY: json.dumps(config)},
        )
        try:
            self._kube.secret_create_or_replace(namespace, secret)
        except Exception as e:
            raise CredentialError(f"unable to create or update secret {REGISTRY_AUTH_SECRET}: {e}") from e
        console.print(f"[green]\u2705 Registry auth secret created for {auth.server}[/green]")

    def apply_secret_file(self, namespace: str, path: Path) -> None:
        """Create or replace the Secret manifest in *path* inside *namespace*.

        Any namespace in the manifest is overridden.

        Raises:
            SecretFileInvalid: If the file cannot be read or is not a named Secret.
            CredentialError: If the API call failed.
        """
        try:
            doc = yaml.safe_load(path.read_text())
        except (OSError, yaml.YAMLError) as e:
            raise SecretFileInvalid(str(path), str(e)) from e
        if not isinstance(doc, dict) or doc.get("kind", "Secret") != "Secret":
            raise SecretFileInvalid(str(path), "not a Secret manifest")
        meta = doc.get("metadata") or {}
        if not meta.get("name"):
            raise SecretFileInvalid(str(path), "metadata.name is required")

        secret = client.V1Secret(
            api_version="v1",
            kind="Secret",
            type=doc.get("type"),
            metadata=client.V1ObjectMeta(
                name=meta["name"],
                namespace=namespace,
                labels=meta.get("labels"),
                annotations=meta.get("annotations"),
            ),
            data=doc.get("data"),
            string_data=doc.get("stringData"),
        )
        try:
            self._kube.secret_create_or_replace(namespace, secret)
        except Exception as e:
            raise CredentialError(f"unable to create secret from file '{path}': {e}") from e
        console.print(f"[green]\u2705 Secret from '{path}' created or updated[/green]")
