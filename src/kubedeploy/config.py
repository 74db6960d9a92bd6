from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal, overload

from loguru import logger

from kubedeploy.constants import DEFAULT_KUBERNETES_NAMESPACE, HELM_DEFAULT_TIMEOUT_SECONDS


@overload
def find_config_file(filename: str, cwd: Path | None = None, required: Literal[False] = False) -> Path | None: ...


@overload
def find_config_file(filename: str, cwd: Path | None = None, required: Literal[True] = True) -> Path: ...


def find_config_file(filename: str, cwd: Path | None = None, required: bool = True) -> Path | None:
    """
    Find a file with the given *filename* in the given *cwd* or any of its parent directories.
    """

    if cwd is None:
        cwd = Path.cwd()

    for directory in [cwd] + list(cwd.parents):
        file = directory / filename
        if file.exists():
            return file

    if required:
        raise FileNotFoundError(f"Could not find '{filename}' in '{cwd}' or any of its parent directories.")

    return None


# Enum members are deserialized by name, so the member names are the spelling used in `kubedeploy.yaml`.


class DeployType(str, Enum):
    kubernetes = "kubernetes"
    """ Apply the manifests matched by `configs` to the cluster. """

    helm = "helm"
    """ Install, upgrade or roll back a Helm release. """


class HelmCommandType(str, Enum):
    install = "install"
    rollback = "rollback"


class HelmChartType(str, Enum):
    uri = "uri"
    """ The chart is a directory in the workspace. """

    repository = "repository"
    """ The chart is fetched from one of the configured chart repositories. """


@dataclass
class DockerRegistry:
    """
    A private Docker registry whose credentials are made available to the cluster as an image pull Secret.
    """

    url: str = ""
    """ The registry URL. Docker Hub if empty, `http://` is assumed if the URL has no scheme. """

    credentials_id: str = ""


@dataclass
class HelmRepository:
    name: str
    url: str
    credentials_id: str | None = None


@dataclass
class HelmSettings:
    command_type: HelmCommandType = HelmCommandType.install

    chart_type: HelmChartType = HelmChartType.uri

    chart_location: str = ""
    """ Path of the chart directory relative to the workspace, if the chart type is `uri`. """

    chart_name: str = ""
    chart_version: str = ""

    release_name: str = ""

    namespace: str = DEFAULT_KUBERNETES_NAMESPACE
    """ The namespace to install the release into. """

    timeout: int = HELM_DEFAULT_TIMEOUT_SECONDS
    """ Seconds to wait for Kubernetes operations of Helm. """

    wait: bool = False
    """ Wait until all resources of the release are ready. """

    set_values: str = ""
    """ Comma-separated `key=value` pairs that override values of the chart. """

    repositories: list[HelmRepository] = field(default_factory=list)

    rollback_name: str = ""
    """ The release to roll back, if the command type is `rollback`. """

    revision_number: int = 0
    """ The revision to roll back to. Zero rolls back to the previous revision. """


@dataclass
class DeploySettings:
    """
    Describes one deployment.
    """

    deploy_type: DeployType = DeployType.kubernetes

    kubeconfig_id: str = ""
    """ ID of the credentials that are used to connect to the cluster. """

    configs: str = ""
    """ Comma-separated glob patterns of manifest files, relative to the workspace. """

    secret_namespace: str = DEFAULT_KUBERNETES_NAMESPACE
    """ The namespace to create the Docker registry credentials Secret in. """

    secret_name: str = ""
    """
    The name of the Docker registry credentials Secret. May reference environment variables. If empty, a name is
    derived from the job name. The name is exported to the job as `KUBERNETES_SECRET_NAME`.
    """

    docker_credentials: list[DockerRegistry] = field(default_factory=list)

    delete: bool = False
    """ Delete the resources described by the manifests instead of applying them. """

    pretty: bool = False
    """ Ask the API server to pretty-print its responses. """

    helm: HelmSettings = field(default_factory=HelmSettings)


@dataclass
class DeployConfig:
    """
    Wrapper for the `kubedeploy.yaml` configuration file.
    """

    FILENAME = "kubedeploy.yaml"

    file: Path | None
    settings: DeploySettings

    @staticmethod
    def load(file: Path | None = None, /) -> "DeployConfig":
        """
        Load the deployment settings from the given file or the `kubedeploy.yaml` in the current directory or any of
        its parents.
        """

        from databind.json import load as deser
        from yaml import safe_load

        if file is None:
            file = find_config_file(DeployConfig.FILENAME)

        logger.debug("Loading deployment configuration from '{}'", file)
        settings = deser(safe_load(file.read_text()) or {}, DeploySettings, filename=str(file))
        return DeployConfig(file, settings)
