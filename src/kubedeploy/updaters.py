from copy import deepcopy
from typing import TYPE_CHECKING, Any

import yaml
from kubernetes.client.exceptions import ApiException
from loguru import logger

from kubedeploy.constants import DEFAULT_KUBERNETES_NAMESPACE
from kubedeploy.errors import ResourceInputError
from kubedeploy.kinds import ResourceKind, UpdateMode
from kubedeploy.managers import ResourceManager
from kubedeploy.manifest import Manifest, ManifestResource

if TYPE_CHECKING:
    from kubedeploy.registry import KindHandler


class ResourceUpdater:
    """
    Brings a single resource on the cluster to the state described by its manifest. An updater is created for one
    resource, used once and then discarded.
    """

    def __init__(
        self,
        manager: ResourceManager,
        handler: "KindHandler",
        kind: ResourceKind,
        resource: ManifestResource,
    ) -> None:
        name = (resource.name or "").strip()
        if not name:
            raise ResourceInputError(f"{kind.kind} resource does not have a name")

        self.manager = manager
        self.handler = handler
        self.kind = kind
        self.name = name
        self.namespace: str | None = None
        self.body = Manifest(deepcopy(resource.manifest))

        metadata = self.body.setdefault("metadata", {})
        metadata["name"] = name
        if handler.namespaced:
            self.namespace = (resource.namespace or "").strip() or DEFAULT_KUBERNETES_NAMESPACE
            metadata["namespace"] = self.namespace

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.describe()})"

    def describe(self) -> str:
        if self.namespace:
            return f"{self.kind.kind} {self.namespace}/{self.name}"
        return f"{self.kind.kind} {self.name}"

    # Protocol

    def get_current(self) -> Manifest | None:
        """
        Read the resource from the cluster. Returns `None` if it does not exist.
        """

        try:
            return self.manager.read(self.handler, self.name, self.namespace)
        except ApiException as exc:
            return self.manager.handle_api_exception_except_not_found(exc, self.kind, self.name, self.namespace)

    def create(self) -> Manifest:
        try:
            return self.manager.create(self.handler, self.namespace, self.body)
        except ApiException as exc:
            self.manager.handle_api_exception(exc, self.kind, self.name, self.namespace)

    def apply(self, current: Manifest) -> Manifest:
        """
        Update the existing resource *current* to match the manifest.
        """

        body = self.prepare_update(current)
        try:
            if self.handler.update_mode == UpdateMode.PATCH:
                return self.manager.patch(self.handler, self.name, self.namespace, body)
            return self.manager.replace(self.handler, self.name, self.namespace, body)
        except ApiException as exc:
            self.manager.handle_api_exception(exc, self.kind, self.name, self.namespace)

    def prepare_update(self, current: Manifest) -> Manifest:
        """
        Return the body to send to the API server to update *current*. For replace updates, the `resourceVersion`
        of the live object is carried forward unless the manifest declares one.
        """

        body = Manifest(deepcopy(self.body))
        if self.handler.update_mode == UpdateMode.REPLACE:
            metadata = body.setdefault("metadata", {})
            resource_version = (current.get("metadata") or {}).get("resourceVersion")
            if not metadata.get("resourceVersion") and resource_version:
                metadata["resourceVersion"] = resource_version
        return body

    def create_or_apply(self) -> Manifest:
        """
        Create the resource if it does not exist, otherwise update it. Returns the resource as returned by the API.
        """

        current = self.get_current()
        if current is None:
            self.log_creating()
            updated = self.create()
        else:
            self.log_applying()
            updated = self.apply(current)
        self.notify_update(current, updated)
        return updated

    def delete(self) -> bool:
        """
        Delete the resource. Returns `False` if the resource did not exist.
        """

        self.log_deleting()
        try:
            self.manager.delete(self.handler, self.name, self.namespace)
        except ApiException as exc:
            self.manager.handle_api_exception_except_not_found(exc, self.kind, self.name, self.namespace)
            logger.info("{} does not exist, nothing to delete", self.describe())
            return False
        return True

    def notify_update(self, original: Manifest | None, updated: Manifest) -> None:
        self.manager.monitor.on_update(self.kind, original, updated)

    # Logging

    def log_creating(self) -> None:
        logger.info("Creating {}", self.describe())
        self.log_body()

    def log_applying(self) -> None:
        logger.info("Applying {}", self.describe())
        self.log_body()

    def log_deleting(self) -> None:
        logger.info("Deleting {}", self.describe())

    def log_body(self) -> None:
        logger.trace("{}:\n{}", self.describe(), yaml.safe_dump(self.body))


class ServiceUpdater(ResourceUpdater):
    """
    The API server deallocates the node port of a Service port that does not declare one when the Service is
    replaced, which breaks external load balancers pointing at it. This updater copies the allocated node ports of
    the live Service onto the matching ports of the manifest before replacing it.
    """

    def prepare_update(self, current: Manifest) -> Manifest:
        body = super().prepare_update(current)
        current_spec = current.get("spec") or {}
        spec = body.setdefault("spec", {})

        node_ports: dict[Any, Any] = {}
        for port in current_spec.get("ports") or []:
            if port.get("nodePort"):
                node_ports[port.get("port")] = port["nodePort"]

        for port in spec.get("ports") or []:
            if not port.get("nodePort") and port.get("port") in node_ports:
                logger.debug(
                    "Keeping node port {} for port {} of {}", node_ports[port["port"]], port["port"], self.describe()
                )
                port["nodePort"] = node_ports[port["port"]]

        # The cluster IP is immutable, so the replace would be rejected if we left it empty.
        if not spec.get("clusterIP") and current_spec.get("clusterIP"):
            spec["clusterIP"] = current_spec["clusterIP"]
        if not spec.get("clusterIPs") and current_spec.get("clusterIPs"):
            spec["clusterIPs"] = current_spec["clusterIPs"]

        return body


class SecretUpdater(ResourceUpdater):
    """
    Never logs the content of the Secret.
    """

    def log_body(self) -> None:
        pass
