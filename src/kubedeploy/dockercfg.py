import base64
import json
import re
import secrets
import string
import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from kubedeploy.constants import (
    DOCKER_HUB_REGISTRY_URL,
    DOCKERCFG_SECRET_KEY,
    DOCKERCFG_SECRET_TYPE,
    KUBERNETES_NAME_LENGTH_LIMIT,
    KUBERNETES_NAME_PATTERN,
    KUBERNETES_SECRET_NAME_PREFIX,
    URI_SCHEME_PREFIX,
)
from kubedeploy.manifest import Manifest


@dataclass(frozen=True)
class ResolvedDockerRegistryEndpoint:
    """
    A Docker registry along with the credentials to authenticate with it.
    """

    url: str

    token: str
    """ The base64 encoded `username:password`. """

    email: str | None = None

    def __repr__(self) -> str:
        return f"ResolvedDockerRegistryEndpoint(url={self.url!r}, email={self.email!r})"

    @staticmethod
    def from_login(
        url: str, username: str, password: str, email: str | None = None
    ) -> "ResolvedDockerRegistryEndpoint":
        token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
        return ResolvedDockerRegistryEndpoint(normalize_registry_url(url), token, email)


def normalize_registry_url(url: str) -> str:
    """
    Return the Docker Hub URL for a blank *url*, and prepend `http://` to URLs that have no scheme.
    """

    url = url.strip()
    if not url:
        return DOCKER_HUB_REGISTRY_URL
    if not URI_SCHEME_PREFIX.match(url):
        return "http://" + url
    return url


class DockerConfigBuilder:
    """
    Builds the Docker configuration that authenticates with private registries.
    """

    def __init__(self, endpoints: Sequence[ResolvedDockerRegistryEndpoint]) -> None:
        self.endpoints = list(endpoints)

    def build_auths(self) -> dict[str, Any]:
        return {endpoint.url: {"email": endpoint.email, "auth": endpoint.token} for endpoint in self.endpoints}

    def build_dockercfg_string(self) -> str:
        return json.dumps(self.build_auths(), separators=(",", ":"))

    def build_dockercfg_base64(self) -> str:
        return base64.b64encode(self.build_dockercfg_string().encode("utf-8")).decode("ascii")

    def build_secret(self, namespace: str, name: str) -> Manifest:
        """
        Build a `kubernetes.io/dockercfg` Secret that can be referenced in `imagePullSecrets`.
        """

        return Manifest(
            {
                "apiVersion": "v1",
                "kind": "Secret",
                "metadata": {"name": name, "namespace": namespace},
                "type": DOCKERCFG_SECRET_TYPE,
                "data": {DOCKERCFG_SECRET_KEY: self.build_dockercfg_base64()},
            }
        )


def random_string(length: int, force_lowercase: bool = False) -> str:
    if force_lowercase:
        alphabet = string.ascii_lowercase + string.digits
    else:
        alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def prepare_secret_name(name_cfg: str | None, default_name: str | None, env: Mapping[str, str]) -> str:
    """
    Determine the name of the registry credentials Secret.

    If *name_cfg* is set, variables in it are expanded from *env* and the result must be a valid Kubernetes object
    name. Otherwise a name is derived from *default_name* (or a random UUID if that is blank as well) by sanitizing
    it, adding the `acs-plugin-` prefix and a random suffix.

    Raises:
        ValueError: If the configured name is not a valid Kubernetes object name.
    """

    name = string.Template(name_cfg or "").safe_substitute(env).strip()
    if len(name) > KUBERNETES_NAME_LENGTH_LIMIT:
        raise ValueError(f"Secret name '{name}' is longer than {KUBERNETES_NAME_LENGTH_LIMIT} characters")
    if name:
        if not KUBERNETES_NAME_PATTERN.match(name):
            raise ValueError(
                f"Secret name '{name}' is not valid, it must consist of lower case alphanumeric characters, '-' or '.' "
                "and start and end with an alphanumeric character"
            )
        return name

    name = (default_name or "").strip() or str(uuid.uuid4())
    name = KUBERNETES_SECRET_NAME_PREFIX + re.sub(r"[^0-9a-zA-Z]", "-", name).lower()
    name = name[:KUBERNETES_NAME_LENGTH_LIMIT]

    suffix_length = min(8, KUBERNETES_NAME_LENGTH_LIMIT - len(name))
    name += random_string(suffix_length, force_lowercase=True)
    if name.endswith("-"):
        name = name[:-1] + "a"
    return name
