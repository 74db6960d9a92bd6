from enum import Enum


class ResourceKind(str, Enum):
    """
    The closed set of resource kinds that can be deployed. Each member's value is the `apiVersion` and `kind` of the
    resource joined with a slash.
    """

    # core/v1
    NAMESPACE = "v1/Namespace"
    POD = "v1/Pod"
    SERVICE = "v1/Service"
    REPLICATION_CONTROLLER = "v1/ReplicationController"
    CONFIG_MAP = "v1/ConfigMap"
    SECRET = "v1/Secret"
    SERVICE_ACCOUNT = "v1/ServiceAccount"
    PERSISTENT_VOLUME_CLAIM = "v1/PersistentVolumeClaim"
    PERSISTENT_VOLUME = "v1/PersistentVolume"
    ENDPOINTS = "v1/Endpoints"
    LIMIT_RANGE = "v1/LimitRange"
    RESOURCE_QUOTA = "v1/ResourceQuota"
    POD_TEMPLATE = "v1/PodTemplate"

    # apps/v1
    DEPLOYMENT = "apps/v1/Deployment"
    DAEMON_SET = "apps/v1/DaemonSet"
    REPLICA_SET = "apps/v1/ReplicaSet"
    STATEFUL_SET = "apps/v1/StatefulSet"
    CONTROLLER_REVISION = "apps/v1/ControllerRevision"

    # batch/v1
    JOB = "batch/v1/Job"
    CRON_JOB = "batch/v1/CronJob"

    # autoscaling
    HORIZONTAL_POD_AUTOSCALER_V1 = "autoscaling/v1/HorizontalPodAutoscaler"
    HORIZONTAL_POD_AUTOSCALER_V2 = "autoscaling/v2/HorizontalPodAutoscaler"

    # networking.k8s.io/v1
    INGRESS = "networking.k8s.io/v1/Ingress"
    NETWORK_POLICY = "networking.k8s.io/v1/NetworkPolicy"
    INGRESS_CLASS = "networking.k8s.io/v1/IngressClass"

    # rbac.authorization.k8s.io/v1
    ROLE = "rbac.authorization.k8s.io/v1/Role"
    ROLE_BINDING = "rbac.authorization.k8s.io/v1/RoleBinding"
    CLUSTER_ROLE = "rbac.authorization.k8s.io/v1/ClusterRole"
    CLUSTER_ROLE_BINDING = "rbac.authorization.k8s.io/v1/ClusterRoleBinding"

    # policy/v1
    POD_DISRUPTION_BUDGET = "policy/v1/PodDisruptionBudget"

    # storage.k8s.io/v1
    STORAGE_CLASS = "storage.k8s.io/v1/StorageClass"
    CSI_DRIVER = "storage.k8s.io/v1/CSIDriver"
    VOLUME_ATTACHMENT = "storage.k8s.io/v1/VolumeAttachment"

    # scheduling.k8s.io/v1
    PRIORITY_CLASS = "scheduling.k8s.io/v1/PriorityClass"

    # apiextensions.k8s.io/v1
    CUSTOM_RESOURCE_DEFINITION = "apiextensions.k8s.io/v1/CustomResourceDefinition"

    # admissionregistration.k8s.io/v1
    VALIDATING_WEBHOOK_CONFIGURATION = "admissionregistration.k8s.io/v1/ValidatingWebhookConfiguration"
    MUTATING_WEBHOOK_CONFIGURATION = "admissionregistration.k8s.io/v1/MutatingWebhookConfiguration"

    # coordination.k8s.io/v1
    LEASE = "coordination.k8s.io/v1/Lease"

    # discovery.k8s.io/v1
    ENDPOINT_SLICE = "discovery.k8s.io/v1/EndpointSlice"

    # node.k8s.io/v1
    RUNTIME_CLASS = "node.k8s.io/v1/RuntimeClass"

    @property
    def api_version(self) -> str:
        return self.value.rpartition("/")[0]

    @property
    def kind(self) -> str:
        return self.value.rpartition("/")[2]

    @staticmethod
    def of(api_version: str, kind: str) -> "ResourceKind | None":
        """
        Return the member for the given `apiVersion` and `kind`, or `None` if the kind is not supported.
        """

        try:
            return ResourceKind(f"{api_version}/{kind}")
        except ValueError:
            return None


class UpdateMode(str, Enum):
    """
    How an existing resource is brought to the state of its manifest.
    """

    REPLACE = "replace"
    """ Send the full manifest with a PUT, carrying the live `resourceVersion` forward. """

    PATCH = "patch"
    """ Send the manifest as a strategic merge patch. """
