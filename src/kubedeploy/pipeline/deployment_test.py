from pathlib import Path
from textwrap import dedent
from unittest.mock import MagicMock

import pytest
from kubernetes.client.api_client import ApiClient

from kubedeploy.config import DeploySettings, DockerRegistry
from kubedeploy.conftest import FakeCluster
from kubedeploy.constants import KUBERNETES_SECRET_NAME_PROP
from kubedeploy.context import DeploymentContext
from kubedeploy.credentials import CredentialsConfig, KubeconfigContentCredential, RegistryCredential
from kubedeploy.errors import DeploymentError
from kubedeploy.job import JobContext
from kubedeploy.pipeline import CommandGraph, CommandService, DeploymentState
from kubedeploy.pipeline.deployment import DeploymentCommand, get_master_host


@pytest.fixture
def job(tmp_path: Path) -> JobContext:
    (tmp_path / "k8s").mkdir()
    (tmp_path / "k8s" / "app.yaml").write_text(
        dedent(
            """
            apiVersion: v1
            kind: ConfigMap
            metadata: {name: settings, namespace: apps}
            data: {key: value}
            ---
            apiVersion: v1
            kind: Namespace
            metadata: {name: apps}
            """
        )
    )
    return JobContext(tmp_path, display_name="web-deploy", env={})


@pytest.fixture
def credentials() -> CredentialsConfig:
    return CredentialsConfig(
        None,
        {
            "cluster": KubeconfigContentCredential(content="{}"),
            "registry": RegistryCredential(username="bot", password="hunter2"),
        },
    )


def new_context(settings: DeploySettings, credentials: CredentialsConfig, client: ApiClient) -> DeploymentContext:
    return DeploymentContext(settings, credentials, client_factory=lambda source: client)


def run(context: DeploymentContext, job: JobContext) -> bool:
    context.configure(job, CommandService(CommandGraph().add(DeploymentCommand())))
    return context.execute_commands()


def test__DeploymentCommand__applies_manifests(
    cluster: FakeCluster, client: ApiClient, job: JobContext, credentials: CredentialsConfig
) -> None:
    context = new_context(DeploySettings(kubeconfig_id="cluster", configs="k8s/*.yaml"), credentials, client)

    assert run(context, job) is True
    assert context.state == DeploymentState.SUCCESS
    assert cluster.get("v1", "namespace", None, "apps") is not None
    assert cluster.get("v1", "config_map", "apps", "settings") is not None
    assert KUBERNETES_SECRET_NAME_PROP not in job.env


def test__DeploymentCommand__delete_mode(
    cluster: FakeCluster, client: ApiClient, job: JobContext, credentials: CredentialsConfig
) -> None:
    cluster.put("v1", "config_map", "apps", {"metadata": {"name": "settings"}})
    settings = DeploySettings(kubeconfig_id="cluster", configs="k8s/*.yaml", delete=True)

    assert run(new_context(settings, credentials, client), job) is True
    assert cluster.get("v1", "config_map", "apps", "settings") is None
    assert ("delete", "namespace", None, "apps") in cluster.calls


def test__DeploymentCommand__creates_registry_secret_and_exports_its_name(
    cluster: FakeCluster, client: ApiClient, job: JobContext, credentials: CredentialsConfig
) -> None:
    settings = DeploySettings(
        kubeconfig_id="cluster",
        configs="k8s/*.yaml",
        secret_namespace="apps",
        secret_name="${TEAM}-pull",
        docker_credentials=[
            DockerRegistry(url="registry.example.com", credentials_id="registry"),
            DockerRegistry(url="ignored.example.com"),
        ],
    )
    job.env["TEAM"] = "web"

    assert run(new_context(settings, credentials, client), job) is True

    assert job.env[KUBERNETES_SECRET_NAME_PROP] == "web-pull"
    secret = cluster.get("v1", "secret", "apps", "web-pull")
    assert secret is not None
    assert secret["type"] == "kubernetes.io/dockercfg"


def test__DeploymentCommand__derives_secret_name_from_job(
    cluster: FakeCluster, client: ApiClient, job: JobContext, credentials: CredentialsConfig
) -> None:
    settings = DeploySettings(
        kubeconfig_id="cluster",
        configs="k8s/*.yaml",
        docker_credentials=[DockerRegistry(url="", credentials_id="registry")],
    )

    assert run(new_context(settings, credentials, client), job) is True
    assert job.env[KUBERNETES_SECRET_NAME_PROP].startswith("acs-plugin-web-deploy")


def test__DeploymentCommand__fails_when_no_files_match(
    cluster: FakeCluster, client: ApiClient, job: JobContext, credentials: CredentialsConfig
) -> None:
    context = new_context(DeploySettings(kubeconfig_id="cluster", configs="deploy/*.yaml"), credentials, client)

    assert run(context, job) is False
    assert context.state == DeploymentState.HAS_ERROR
    assert context.last_error is not None and "No configuration found" in context.last_error
    assert cluster.calls == []


@pytest.mark.parametrize(
    "settings",
    [
        DeploySettings(kubeconfig_id="cluster", configs=""),
        DeploySettings(kubeconfig_id="cluster", configs="k8s/*.yaml", secret_namespace=" "),
        DeploySettings(kubeconfig_id="unknown", configs="k8s/*.yaml"),
        DeploySettings(kubeconfig_id="registry", configs="k8s/*.yaml"),
    ],
)
def test__DeploymentCommand__invalid_settings_are_errors(
    cluster: FakeCluster, client: ApiClient, job: JobContext, credentials: CredentialsConfig, settings: DeploySettings
) -> None:
    context = new_context(settings, credentials, client)
    assert run(context, job) is False
    assert context.has_error
    assert cluster.calls == []


def test__DeploymentCommand__remote_errors_are_reported(
    cluster: FakeCluster, client: ApiClient, job: JobContext, credentials: CredentialsConfig
) -> None:
    cluster.fail("create", "config_map", "settings", status=422, reason="Unprocessable Entity")
    context = new_context(DeploySettings(kubeconfig_id="cluster", configs="k8s/*.yaml"), credentials, client)

    with pytest.raises(DeploymentError) as excinfo:
        context.perform(job)

    assert "422" in str(excinfo.value)
    assert context.last_error == str(excinfo.value)
    assert cluster.get("v1", "namespace", None, "apps") is not None


def test__DeploymentCommand__interrupt_is_reraised(job: JobContext, credentials: CredentialsConfig) -> None:
    def interrupt(source: object) -> ApiClient:
        raise KeyboardInterrupt

    context = DeploymentContext(
        DeploySettings(kubeconfig_id="cluster", configs="k8s/*.yaml"), credentials, client_factory=interrupt
    )

    with pytest.raises(KeyboardInterrupt):
        run(context, job)
    assert context.state == DeploymentState.HAS_ERROR


def test__get_master_host() -> None:
    client = MagicMock()
    client.configuration.host = "https://cluster.example.com:6443"
    assert get_master_host(client) == "https://cluster.example.com:6443"
    assert get_master_host(MagicMock(configuration=None)) == "Unknown"
