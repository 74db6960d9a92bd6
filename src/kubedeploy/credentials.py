from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
import subprocess
import shlex
from typing import Any, TypeVar
from urllib.parse import urlparse

import yaml
from databind.core import Union
from kubernetes.client.api_client import ApiClient
from kubernetes.config.kube_config import new_client_from_config_dict
from loguru import logger

from kubedeploy.dockercfg import ResolvedDockerRegistryEndpoint

C = TypeVar("C")


@Union(style=Union.FLAT, discriminator_key="type")
@dataclass
class Credential(ABC):
    """
    A credential that is referenced by its ID in the deployment configuration.
    """

    def init(self, config_file: Path) -> None:
        """
        Called after loading the credential from a configuration file, to allow resolving relative paths.
        """


class KubeconfigSource(ABC):
    """
    A credential that can produce a Kubeconfig to connect to a cluster.
    """

    context: str | None

    @abstractmethod
    def load_kubeconfig(self) -> dict[str, Any]: ...

    def build_client(self) -> ApiClient:
        return new_client_from_config_dict(self.load_kubeconfig(), context=self.context, persist_config=False)


@Union.register(Credential, name="kubeconfig")
@dataclass(kw_only=True)
class KubeconfigFileCredential(Credential, KubeconfigSource):
    """
    A Kubeconfig file on the local filesystem.
    """

    path: Path
    """ Path to the Kubeconfig file. Relative to the credentials configuration file. """

    context: str | None = None
    """ The context to use. If not specified, the current context of the Kubeconfig is used. """

    def init(self, config_file: Path) -> None:
        self.path = config_file.parent / self.path

    def load_kubeconfig(self) -> dict[str, Any]:
        if not self.path.is_file():
            raise FileNotFoundError(f"Kubeconfig file '{self.path}' does not exist")
        logger.debug("Loading Kubeconfig from '{}'", self.path)
        return _as_kubeconfig(yaml.safe_load(self.path.read_text()), str(self.path))


@Union.register(Credential, name="kubeconfig-content")
@dataclass(kw_only=True)
class KubeconfigContentCredential(Credential, KubeconfigSource):
    """
    A Kubeconfig that is stored inline in the credentials configuration.
    """

    content: str
    context: str | None = None

    def load_kubeconfig(self) -> dict[str, Any]:
        return _as_kubeconfig(yaml.safe_load(self.content), "inline content")


@Union.register(Credential, name="ssh")
@dataclass(kw_only=True)
class SshCredential(Credential, KubeconfigSource):
    """
    Fetches the Kubeconfig from a remote host, usually the cluster's master node, over SSH.
    """

    user: str
    """ The username to connect to the remote host with. """

    host: str
    """ The remote host to connect to. """

    path: str = "~/.kube/config"
    """ The path of the Kubeconfig on the remote host. """

    port: int | None = None

    identity_file: Path | None = None
    """ An SSH private key file to use for authentication. Relative to the credentials configuration file. """

    context: str | None = None

    def init(self, config_file: Path) -> None:
        if self.identity_file is not None:
            self.identity_file = config_file.parent / self.identity_file

    def ssh_command(self) -> list[str]:
        command = ["ssh", "-o", "BatchMode=yes"]
        if self.port is not None:
            command.extend(["-p", str(self.port)])
        if self.identity_file is not None:
            command.extend(["-i", str(self.identity_file)])
        command.extend([f"{self.user}@{self.host}", "cat", self.path])
        return command

    def load_kubeconfig(self) -> dict[str, Any]:
        command = self.ssh_command()
        logger.info("Fetching Kubeconfig via SSH ({}@{}:{})", self.user, self.host, self.path)
        logger.debug("$ {}", " ".join(map(shlex.quote, command)))
        content = subprocess.check_output(command, text=True)
        return _as_kubeconfig(yaml.safe_load(content), f"{self.user}@{self.host}:{self.path}")


@Union.register(Credential, name="text")
@dataclass(kw_only=True)
class TextCredential(Credential, KubeconfigSource):
    """
    The server URL and certificates of a cluster, from which a Kubeconfig is assembled.
    """

    server_url: str
    """ The URL of the Kubernetes API server. Must be an HTTPS URL. """

    certificate_authority_data: str
    """ Base64 encoded certificate of the cluster's certificate authority. """

    client_certificate_data: str
    """ Base64 encoded client certificate. """

    client_key_data: str
    """ Base64 encoded client key. """

    context: str | None = None

    def load_kubeconfig(self) -> dict[str, Any]:
        if urlparse(self.server_url).scheme != "https":
            raise ValueError(f"Kubernetes API server URL must use https, got '{self.server_url}'")
        return {
            "apiVersion": "v1",
            "kind": "Config",
            "clusters": [
                {
                    "name": "cluster",
                    "cluster": {
                        "server": self.server_url,
                        "certificate-authority-data": self.certificate_authority_data.strip(),
                    },
                }
            ],
            "users": [
                {
                    "name": "user",
                    "user": {
                        "client-certificate-data": self.client_certificate_data.strip(),
                        "client-key-data": self.client_key_data.strip(),
                    },
                }
            ],
            "contexts": [{"name": "context", "context": {"cluster": "cluster", "user": "user"}}],
            "current-context": "context",
        }


@Union.register(Credential, name="registry")
@dataclass(kw_only=True)
class RegistryCredential(Credential):
    """
    Username and password to authenticate with a Docker registry or Helm chart repository.
    """

    username: str
    password: str = field(repr=False)
    email: str | None = None

    def resolve(self, url: str) -> ResolvedDockerRegistryEndpoint:
        return ResolvedDockerRegistryEndpoint.from_login(url, self.username, self.password, self.email)


def _as_kubeconfig(data: Any, source: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"Kubeconfig from {source} is not a YAML object")
    return data


@dataclass
class CredentialsConfig:
    """
    The store of credentials that the deployment configuration refers to by their ID.
    """

    FILENAME = "kubedeploy-credentials.yaml"

    file: Path | None
    credentials: dict[str, Credential] = field(default_factory=dict)

    def get(self, credentials_id: str, type_: type[C]) -> C:
        """
        Return the credential with the given ID.

        Raises:
            KeyError: If there is no credential with that ID.
            ValueError: If the credential is not of the given type.
        """

        if credentials_id not in self.credentials:
            raise KeyError(f"Credentials '{credentials_id}' not found")
        credential = self.credentials[credentials_id]
        if not isinstance(credential, type_):
            raise ValueError(
                f"Credentials '{credentials_id}' are of type {type(credential).__name__}, expected {type_.__name__}"
            )
        return credential

    @staticmethod
    def load(file: Path | None = None, /) -> "CredentialsConfig":
        """
        Load the credentials from the given file or the `kubedeploy-credentials.yaml` in the current directory or any
        of its parents. If there is no such file, the store is empty.
        """

        from databind.json import load as deser

        from kubedeploy.config import find_config_file

        if file is None:
            file = find_config_file(CredentialsConfig.FILENAME, required=False)
        if file is None:
            return CredentialsConfig(None)

        logger.debug("Loading credentials from '{}'", file)
        credentials = deser(yaml.safe_load(file.read_text()) or {}, dict[str, Credential], filename=str(file))
        for credential in credentials.values():
            credential.init(file)
        return CredentialsConfig(file, credentials)
