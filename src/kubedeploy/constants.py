import re

DEFAULT_KUBERNETES_NAMESPACE = "default"
""" The namespace that namespaced resources are placed in when their manifest does not name one. """

KUBERNETES_NAME_LENGTH_LIMIT = 253
""" The maximum length of a DNS subdomain name, which is the limit for most Kubernetes object names. """

KUBERNETES_NAME_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
""" Names that Kubernetes accepts for objects such as Secrets. """

KUBERNETES_SECRET_NAME_PREFIX = "acs-plugin-"
KUBERNETES_SECRET_NAME_PROP = "KUBERNETES_SECRET_NAME"

DOCKERCFG_SECRET_TYPE = "kubernetes.io/dockercfg"
DOCKERCFG_SECRET_KEY = ".dockercfg"
DOCKER_HUB_REGISTRY_URL = "https://index.docker.io/v1/"

URI_SCHEME_PREFIX = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)

HELM_DEFAULT_TIMEOUT_SECONDS = 300
