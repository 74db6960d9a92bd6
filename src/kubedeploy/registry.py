from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Mapping

from kubedeploy.kinds import ResourceKind, UpdateMode
from kubedeploy.managers import (
    AdmissionregistrationV1ResourceManager,
    ApiextensionsV1ResourceManager,
    AppsV1ResourceManager,
    AutoscalingV1ResourceManager,
    AutoscalingV2ResourceManager,
    BatchV1ResourceManager,
    CoordinationV1ResourceManager,
    CoreV1ResourceManager,
    DiscoveryV1ResourceManager,
    NetworkingV1ResourceManager,
    NodeV1ResourceManager,
    PolicyV1ResourceManager,
    RbacAuthorizationV1ResourceManager,
    ResourceManager,
    SchedulingV1ResourceManager,
    StorageV1ResourceManager,
)
from kubedeploy.updaters import ResourceUpdater, SecretUpdater, ServiceUpdater


@dataclass(frozen=True)
class KindHandler:
    """
    Describes how a resource kind is deployed.
    """

    manager: type[ResourceManager]
    """ The manager that owns the API of the kind's group and version. """

    updater: type[ResourceUpdater]

    resource: str
    """ The snake-case resource name used in the API method names, e.g. `stateful_set`. """

    namespaced: bool = True

    update_mode: UpdateMode = UpdateMode.REPLACE


class ResourceKindRegistry:
    """
    An immutable mapping of resource kinds to their #KindHandler. Use #default() for the table of all supported
    kinds.
    """

    def __init__(self, handlers: Mapping[ResourceKind, KindHandler]) -> None:
        self._handlers = MappingProxyType(dict(handlers))

    def __contains__(self, kind: object) -> bool:
        return kind in self._handlers

    def __iter__(self) -> Iterator[ResourceKind]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    @property
    def handlers(self) -> Mapping[ResourceKind, KindHandler]:
        return self._handlers

    def lookup(self, kind: ResourceKind | None) -> KindHandler | None:
        if kind is None:
            return None
        return self._handlers.get(kind)

    @staticmethod
    def default() -> "ResourceKindRegistry":
        """
        Create the registry with a handler for every #ResourceKind.
        """

        K = ResourceKind
        core = CoreV1ResourceManager
        apps = AppsV1ResourceManager
        batch = BatchV1ResourceManager
        networking = NetworkingV1ResourceManager
        rbac = RbacAuthorizationV1ResourceManager
        storage = StorageV1ResourceManager
        admission = AdmissionregistrationV1ResourceManager
        default, patch = ResourceUpdater, UpdateMode.PATCH

        return ResourceKindRegistry(
            {
                K.NAMESPACE: KindHandler(core, default, "namespace", namespaced=False),
                K.POD: KindHandler(core, default, "pod"),
                K.SERVICE: KindHandler(core, ServiceUpdater, "service"),
                K.REPLICATION_CONTROLLER: KindHandler(core, default, "replication_controller"),
                K.CONFIG_MAP: KindHandler(core, default, "config_map"),
                K.SECRET: KindHandler(core, SecretUpdater, "secret"),
                K.SERVICE_ACCOUNT: KindHandler(core, default, "service_account", update_mode=patch),
                K.PERSISTENT_VOLUME_CLAIM: KindHandler(
                    core, default, "persistent_volume_claim", update_mode=patch
                ),
                K.PERSISTENT_VOLUME: KindHandler(
                    core, default, "persistent_volume", namespaced=False, update_mode=patch
                ),
                K.ENDPOINTS: KindHandler(core, default, "endpoints"),
                K.LIMIT_RANGE: KindHandler(core, default, "limit_range"),
                K.RESOURCE_QUOTA: KindHandler(core, default, "resource_quota"),
                K.POD_TEMPLATE: KindHandler(core, default, "pod_template"),
                K.DEPLOYMENT: KindHandler(apps, default, "deployment"),
                K.DAEMON_SET: KindHandler(apps, default, "daemon_set"),
                K.REPLICA_SET: KindHandler(apps, default, "replica_set"),
                K.STATEFUL_SET: KindHandler(apps, default, "stateful_set"),
                K.CONTROLLER_REVISION: KindHandler(apps, default, "controller_revision"),
                K.JOB: KindHandler(batch, default, "job", update_mode=patch),
                K.CRON_JOB: KindHandler(batch, default, "cron_job"),
                K.HORIZONTAL_POD_AUTOSCALER_V1: KindHandler(
                    AutoscalingV1ResourceManager, default, "horizontal_pod_autoscaler"
                ),
                K.HORIZONTAL_POD_AUTOSCALER_V2: KindHandler(
                    AutoscalingV2ResourceManager, default, "horizontal_pod_autoscaler"
                ),
                K.INGRESS: KindHandler(networking, default, "ingress"),
                K.NETWORK_POLICY: KindHandler(networking, default, "network_policy"),
                K.INGRESS_CLASS: KindHandler(networking, default, "ingress_class", namespaced=False),
                K.ROLE: KindHandler(rbac, default, "role"),
                K.ROLE_BINDING: KindHandler(rbac, default, "role_binding"),
                K.CLUSTER_ROLE: KindHandler(rbac, default, "cluster_role", namespaced=False),
                K.CLUSTER_ROLE_BINDING: KindHandler(rbac, default, "cluster_role_binding", namespaced=False),
                K.POD_DISRUPTION_BUDGET: KindHandler(PolicyV1ResourceManager, default, "pod_disruption_budget"),
                K.STORAGE_CLASS: KindHandler(storage, default, "storage_class", namespaced=False),
                K.CSI_DRIVER: KindHandler(storage, default, "csi_driver", namespaced=False),
                K.VOLUME_ATTACHMENT: KindHandler(storage, default, "volume_attachment", namespaced=False),
                K.PRIORITY_CLASS: KindHandler(SchedulingV1ResourceManager, default, "priority_class", namespaced=False),
                K.CUSTOM_RESOURCE_DEFINITION: KindHandler(
                    ApiextensionsV1ResourceManager, default, "custom_resource_definition", namespaced=False
                ),
                K.VALIDATING_WEBHOOK_CONFIGURATION: KindHandler(
                    admission, default, "validating_webhook_configuration", namespaced=False
                ),
                K.MUTATING_WEBHOOK_CONFIGURATION: KindHandler(
                    admission, default, "mutating_webhook_configuration", namespaced=False
                ),
                K.LEASE: KindHandler(CoordinationV1ResourceManager, default, "lease"),
                K.ENDPOINT_SLICE: KindHandler(DiscoveryV1ResourceManager, default, "endpoint_slice"),
                K.RUNTIME_CLASS: KindHandler(NodeV1ResourceManager, default, "runtime_class", namespaced=False),
            }
        )
