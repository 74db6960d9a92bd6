from typing import TYPE_CHECKING, Any, Callable, ClassVar, NoReturn

from kubernetes import client as k8s
from kubernetes.client.api_client import ApiClient
from kubernetes.client.exceptions import ApiException
from loguru import logger

from kubedeploy.errors import RemoteApiError
from kubedeploy.kinds import ResourceKind
from kubedeploy.manifest import Manifest

if TYPE_CHECKING:
    from kubedeploy.registry import KindHandler


class ResourceUpdateMonitor:
    """
    Observer that is notified after a resource was successfully created or updated. The default implementation does
    nothing.
    """

    NOOP: ClassVar["ResourceUpdateMonitor"]

    def on_update(self, kind: ResourceKind, original: Manifest | None, updated: Manifest) -> None:
        """
        Args:
            kind: The kind of the resource that was mutated.
            original: The state of the resource before the update, or `None` if the resource was created.
            updated: The state of the resource as returned by the API server.
        """


ResourceUpdateMonitor.NOOP = ResourceUpdateMonitor()


class ResourceManager:
    """
    Owns the typed Kubernetes API for one API group and version, and implements the API calls for every resource kind
    in that group on behalf of the updaters.

    Subclasses declare their group with class keyword arguments:

        class CoreV1ResourceManager(ResourceManager, group_version="v1", api=k8s.CoreV1Api): ...
    """

    group_version: ClassVar[str]
    api_type: ClassVar[Callable[[ApiClient], Any]]

    def __init_subclass__(cls, group_version: str | None = None, api: Any = None, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if group_version is not None:
            cls.group_version = group_version
        if api is not None:
            cls.api_type = api

    def __init__(self, client: ApiClient, pretty: bool = True, monitor: ResourceUpdateMonitor | None = None) -> None:
        self.client = client
        self.api = self.api_type(client)
        self.pretty = pretty
        self.monitor = monitor or ResourceUpdateMonitor.NOOP

    def __repr__(self) -> str:
        return f"{type(self).__name__}(group_version={self.group_version!r})"

    # API calls

    def _method(self, verb: str, handler: "KindHandler") -> Callable[..., Any]:
        if handler.namespaced:
            return getattr(self.api, f"{verb}_namespaced_{handler.resource}")  # type: ignore[no-any-return]
        return getattr(self.api, f"{verb}_{handler.resource}")  # type: ignore[no-any-return]

    def _pretty(self) -> str:
        return "true" if self.pretty else "false"

    def read(self, handler: "KindHandler", name: str, namespace: str | None) -> Manifest:
        method = self._method("read", handler)
        if handler.namespaced:
            return self.to_manifest(method(name, namespace, pretty=self._pretty()))
        return self.to_manifest(method(name, pretty=self._pretty()))

    def create(self, handler: "KindHandler", namespace: str | None, body: Manifest) -> Manifest:
        method = self._method("create", handler)
        if handler.namespaced:
            return self.to_manifest(method(namespace, body, pretty=self._pretty()))
        return self.to_manifest(method(body, pretty=self._pretty()))

    def replace(self, handler: "KindHandler", name: str, namespace: str | None, body: Manifest) -> Manifest:
        method = self._method("replace", handler)
        if handler.namespaced:
            return self.to_manifest(method(name, namespace, body, pretty=self._pretty()))
        return self.to_manifest(method(name, body, pretty=self._pretty()))

    def patch(self, handler: "KindHandler", name: str, namespace: str | None, body: Manifest) -> Manifest:
        method = self._method("patch", handler)
        if handler.namespaced:
            return self.to_manifest(method(name, namespace, body, pretty=self._pretty()))
        return self.to_manifest(method(name, body, pretty=self._pretty()))

    def delete(self, handler: "KindHandler", name: str, namespace: str | None) -> None:
        method = self._method("delete", handler)
        if handler.namespaced:
            method(name, namespace, pretty=self._pretty(), propagation_policy="Background")
        else:
            method(name, pretty=self._pretty(), propagation_policy="Background")

    def to_manifest(self, obj: Any) -> Manifest:
        """
        Convert an object returned by the Kubernetes client into a plain manifest dictionary.
        """

        return Manifest(self.client.sanitize_for_serialization(obj))

    # Error handling

    def handle_api_exception(
        self, exc: ApiException, kind: ResourceKind, name: str, namespace: str | None
    ) -> NoReturn:
        """
        Convert any error response into a #RemoteApiError.
        """

        logger.debug("Kubernetes API responded with status {} for {} '{}': {}", exc.status, kind.kind, name, exc.body)
        raise RemoteApiError(exc.status, exc.reason, exc.body, kind.kind, name, namespace) from exc

    def handle_api_exception_except_not_found(
        self, exc: ApiException, kind: ResourceKind, name: str, namespace: str | None
    ) -> None:
        """
        Like #handle_api_exception(), but returns `None` if the response is a not-found.
        """

        if exc.status == 404:
            return None
        self.handle_api_exception(exc, kind, name, namespace)


class CoreV1ResourceManager(ResourceManager, group_version="v1", api=k8s.CoreV1Api):
    pass


class AppsV1ResourceManager(ResourceManager, group_version="apps/v1", api=k8s.AppsV1Api):
    pass


class BatchV1ResourceManager(ResourceManager, group_version="batch/v1", api=k8s.BatchV1Api):
    pass


class AutoscalingV1ResourceManager(ResourceManager, group_version="autoscaling/v1", api=k8s.AutoscalingV1Api):
    pass


class AutoscalingV2ResourceManager(ResourceManager, group_version="autoscaling/v2", api=k8s.AutoscalingV2Api):
    pass


class NetworkingV1ResourceManager(ResourceManager, group_version="networking.k8s.io/v1", api=k8s.NetworkingV1Api):
    pass


class RbacAuthorizationV1ResourceManager(
    ResourceManager, group_version="rbac.authorization.k8s.io/v1", api=k8s.RbacAuthorizationV1Api
):
    pass


class PolicyV1ResourceManager(ResourceManager, group_version="policy/v1", api=k8s.PolicyV1Api):
    pass


class StorageV1ResourceManager(ResourceManager, group_version="storage.k8s.io/v1", api=k8s.StorageV1Api):
    pass


class SchedulingV1ResourceManager(ResourceManager, group_version="scheduling.k8s.io/v1", api=k8s.SchedulingV1Api):
    pass


class ApiextensionsV1ResourceManager(
    ResourceManager, group_version="apiextensions.k8s.io/v1", api=k8s.ApiextensionsV1Api
):
    pass


class AdmissionregistrationV1ResourceManager(
    ResourceManager, group_version="admissionregistration.k8s.io/v1", api=k8s.AdmissionregistrationV1Api
):
    pass


class CoordinationV1ResourceManager(
    ResourceManager, group_version="coordination.k8s.io/v1", api=k8s.CoordinationV1Api
):
    pass


class DiscoveryV1ResourceManager(ResourceManager, group_version="discovery.k8s.io/v1", api=k8s.DiscoveryV1Api):
    pass


class NodeV1ResourceManager(ResourceManager, group_version="node.k8s.io/v1", api=k8s.NodeV1Api):
    pass
