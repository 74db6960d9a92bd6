from dataclasses import dataclass
from typing import Any


class ResourceInputError(ValueError):
    """
    Raised when a manifest cannot be turned into something the cluster would accept, for example because it is not
    an object, misses its `apiVersion`/`kind` or does not resolve to a non-blank name.
    """


@dataclass
class ManifestDecodeError(ValueError):
    """
    Raised when a manifest document is not valid YAML.
    """

    source: str
    message: str

    def __str__(self) -> str:
        return f"Failed to decode manifests from '{self.source}': {self.message}"


@dataclass
class RemoteApiError(Exception):
    """
    Raised for any response of the Kubernetes API that is not a success, except for a not-found response on the read
    and delete paths. These errors are never retried.
    """

    status: int | None
    reason: str | None
    body: Any
    kind: str
    name: str
    namespace: str | None = None

    def __str__(self) -> str:
        target = f"{self.kind} '{self.name}'"
        if self.namespace:
            target += f" in namespace '{self.namespace}'"
        message = f"Kubernetes API request for {target} failed with status {self.status}"
        if self.reason:
            message += f" ({self.reason})"
        if self.body:
            message += f": {self.body}"
        return message


class DeploymentError(Exception):
    """
    Raised by the top-level entrypoint when a deployment pipeline ends in an error. The message is the last error
    that was logged by the pipeline.
    """
