from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from kubernetes.client.api_client import ApiClient
from loguru import logger

from kubedeploy.dockercfg import DockerConfigBuilder, ResolvedDockerRegistryEndpoint
from kubedeploy.kinds import ResourceKind
from kubedeploy.managers import ResourceManager, ResourceUpdateMonitor
from kubedeploy.manifest import Manifest, ManifestDocument, ManifestResource, decode_manifests
from kubedeploy.registry import ResourceKindRegistry


@dataclass
class ReconciliationResult:
    """
    Summarizes what happened to the resources of one or more #ReconciliationDriver.apply() calls.
    """

    applied: list[Manifest] = field(default_factory=list)
    """ The resources that were created or updated, as returned by the API server. """

    deleted: list[ManifestResource] = field(default_factory=list)
    """ The resources that were deleted. """

    skipped: list[ManifestResource] = field(default_factory=list)
    """ The resources that were skipped because their kind is not supported. """

    def extend(self, other: "ReconciliationResult") -> None:
        self.applied.extend(other.applied)
        self.deleted.extend(other.deleted)
        self.skipped.extend(other.skipped)


class ManagerPool:
    """
    Caches #ResourceManager instances for the duration of one batch. Use it as a context manager, the cache is
    cleared when the batch ends.
    """

    def __init__(self, client: ApiClient, pretty: bool, monitor: ResourceUpdateMonitor) -> None:
        self.client = client
        self.pretty = pretty
        self.monitor = monitor
        self._managers: dict[type[ResourceManager], ResourceManager] = {}

    def __enter__(self) -> "ManagerPool":
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        self.clear()

    def __len__(self) -> int:
        return len(self._managers)

    def get(self, manager_type: type[ResourceManager]) -> ResourceManager:
        if manager_type not in self._managers:
            logger.trace("Creating {} for the current batch", manager_type.__name__)
            self._managers[manager_type] = manager_type(self.client, pretty=self.pretty, monitor=self.monitor)
        return self._managers[manager_type]

    def clear(self) -> None:
        self._managers.clear()


def order_namespaces_first(resources: Sequence[ManifestResource]) -> list[ManifestResource]:
    """
    Move all Namespace resources to the front, keeping the relative order of both the Namespaces and the other
    resources.
    """

    namespaces = [r for r in resources if r.resource_kind == ResourceKind.NAMESPACE]
    others = [r for r in resources if r.resource_kind != ResourceKind.NAMESPACE]
    return namespaces + others


class ReconciliationDriver:
    """
    Applies (or deletes) batches of manifests on a cluster.

    Every document is decoded and its Namespaces are processed before any other resource. Each resource is then
    dispatched to the updater registered for its kind; resources of unsupported kinds are skipped with a warning. The
    first error aborts the batch, resources that were applied before the error are not rolled back.
    """

    def __init__(
        self,
        client: ApiClient,
        *,
        registry: ResourceKindRegistry | None = None,
        monitor: ResourceUpdateMonitor | None = None,
        pretty: bool = True,
        delete_mode: bool = False,
    ) -> None:
        self.client = client
        self.registry = registry or ResourceKindRegistry.default()
        self.monitor = monitor or ResourceUpdateMonitor.NOOP
        self.pretty = pretty
        self.delete_mode = delete_mode

    def apply(self, documents: Iterable[ManifestDocument]) -> ReconciliationResult:
        result = ReconciliationResult()
        with ManagerPool(self.client, self.pretty, self.monitor) as pool:
            for document in documents:
                logger.info("{} manifests from '{}'", "Deleting" if self.delete_mode else "Applying", document.source)
                resources = decode_manifests(document.content, document.source)
                result.extend(self._reconcile(pool, resources, self.delete_mode))
        return result

    def apply_resources(self, resources: Sequence[ManifestResource]) -> ReconciliationResult:
        """
        Like #apply(), but for resources that are already decoded.
        """

        with ManagerPool(self.client, self.pretty, self.monitor) as pool:
            return self._reconcile(pool, resources, self.delete_mode)

    def create_or_replace_secrets(
        self, namespace: str, name: str, endpoints: Sequence[ResolvedDockerRegistryEndpoint]
    ) -> Manifest:
        """
        Create or replace a `kubernetes.io/dockercfg` Secret with the credentials of the given registry endpoints.
        The Secret is always created, regardless of the delete mode.
        """

        secret = ManifestResource(DockerConfigBuilder(endpoints).build_secret(namespace, name))
        logger.info("Creating registry credentials Secret {}/{} for {} registries", namespace, name, len(endpoints))
        with ManagerPool(self.client, self.pretty, self.monitor) as pool:
            result = self._reconcile(pool, [secret], delete_mode=False)
        return result.applied[0]

    def _reconcile(
        self, pool: ManagerPool, resources: Sequence[ManifestResource], delete_mode: bool
    ) -> ReconciliationResult:
        result = ReconciliationResult()
        for resource in order_namespaces_first(resources):
            handler = self.registry.lookup(resource.resource_kind)
            if handler is None or resource.resource_kind is None:
                logger.warning("Skipped {}, the kind is not supported", resource.describe())
                result.skipped.append(resource)
                continue

            updater = handler.updater(pool.get(handler.manager), handler, resource.resource_kind, resource)
            if delete_mode:
                if updater.delete():
                    result.deleted.append(resource)
            else:
                result.applied.append(updater.create_or_apply())
        return result
