from typing import Callable

from kubernetes.client.api_client import ApiClient
from loguru import logger

from kubedeploy.config import DeploySettings, DeployType, HelmCommandType
from kubedeploy.credentials import CredentialsConfig, KubeconfigSource, RegistryCredential
from kubedeploy.dockercfg import ResolvedDockerRegistryEndpoint, normalize_registry_url
from kubedeploy.errors import DeploymentError
from kubedeploy.job import JobContext
from kubedeploy.managers import ResourceUpdateMonitor
from kubedeploy.pipeline import BaseCommandContext, CommandGraph, CommandService
from kubedeploy.pipeline.deployment import DeploymentCommand
from kubedeploy.pipeline.helm import HelmDeploymentCommand, HelmRollbackCommand
from kubedeploy.reconcile import ReconciliationDriver
from kubedeploy.tools.helm import Helm, HelmRepositoryAuth


class DeploymentContext(BaseCommandContext):
    """
    The state of one deployment run: its settings, the credentials to resolve and the job it runs in. A context
    drives exactly one run; create a new one for every run.

    Args:
        settings: The deployment settings.
        credentials: The store that the credential IDs in *settings* are resolved from.
        client_factory: Builds the Kubernetes client from the resolved Kubeconfig source. Defaults to
                        #KubeconfigSource.build_client().
        monitor: Notified for every resource that was created or updated.
    """

    def __init__(
        self,
        settings: DeploySettings,
        credentials: CredentialsConfig,
        *,
        client_factory: Callable[[KubeconfigSource], ApiClient] | None = None,
        monitor: ResourceUpdateMonitor | None = None,
    ) -> None:
        super().__init__()
        self.settings = settings
        self.credentials = credentials
        self.client_factory = client_factory or (lambda source: source.build_client())
        self.monitor = monitor

    @property
    def delete_mode(self) -> bool:
        return self.settings.delete

    def require_job(self) -> JobContext:
        if self.job is None:
            raise RuntimeError(f"{type(self).__name__} is not configured")
        return self.job

    # Credentials

    def kubeconfig_source(self) -> KubeconfigSource:
        if not self.settings.kubeconfig_id.strip():
            raise ValueError("Kubeconfig id is empty, please check your configuration")
        return self.credentials.get(self.settings.kubeconfig_id, KubeconfigSource)  # type: ignore[type-abstract]

    def build_client(self) -> ApiClient:
        return self.client_factory(self.kubeconfig_source())

    def build_driver(self, client: ApiClient) -> ReconciliationDriver:
        return ReconciliationDriver(
            client, monitor=self.monitor, pretty=self.settings.pretty, delete_mode=self.settings.delete
        )

    def build_helm(self) -> Helm:
        source = self.kubeconfig_source()
        helm = Helm(kube_context=source.context)
        helm.set_kubeconfig(source.load_kubeconfig())
        return helm

    def resolve_endpoints(self) -> list[ResolvedDockerRegistryEndpoint]:
        """
        Resolve the credentials of the configured Docker registries. Registries without credentials are ignored.
        """

        endpoints = []
        for registry in self.settings.docker_credentials:
            if not registry.credentials_id.strip():
                logger.debug("Ignoring Docker registry '{}' without credentials", registry.url)
                continue
            credential = self.credentials.get(registry.credentials_id, RegistryCredential)
            endpoints.append(credential.resolve(normalize_registry_url(registry.url)))
        return endpoints

    def resolve_helm_repositories(self) -> list[HelmRepositoryAuth]:
        repositories = []
        for repository in self.settings.helm.repositories:
            auth = HelmRepositoryAuth(repository.url)
            if repository.credentials_id:
                credential = self.credentials.get(repository.credentials_id, RegistryCredential)
                auth.username, auth.password = credential.username, credential.password
            repositories.append(auth)
        return repositories

    # Pipeline

    def build_graph(self) -> CommandGraph:
        """
        Build the command graph for the configured deploy type.
        """

        graph = CommandGraph()
        match self.settings.deploy_type:
            case DeployType.kubernetes:
                graph.add(DeploymentCommand())
            case DeployType.helm:
                match self.settings.helm.command_type:
                    case HelmCommandType.install:
                        graph.add(HelmDeploymentCommand())
                    case HelmCommandType.rollback:
                        graph.add(HelmRollbackCommand())
                    case _:
                        raise ValueError(f"Unsupported Helm command type: {self.settings.helm.command_type}")
            case _:
                raise ValueError(f"Unsupported deploy type: {self.settings.deploy_type}")
        return graph

    def configure(self, job: JobContext, service: CommandService | None = None) -> None:
        super().configure(job, service or CommandService(self.build_graph()))

    def perform(self, job: JobContext) -> None:
        """
        Run the deployment as part of *job*.

        Raises:
            DeploymentError: If the deployment failed. The message is the last error that was logged.
        """

        self.configure(job)
        logger.info("Starting {} deployment for '{}'", self.settings.deploy_type.value, job.display_name)
        if not self.execute_commands() or self.has_error:
            raise DeploymentError(self.last_error or "Deployment failed")
        logger.info("Deployment for '{}' finished", job.display_name)
