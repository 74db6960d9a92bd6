from copy import deepcopy
from functools import partial
from typing import Any, Callable, Iterator

import pytest
from kubernetes.client.api_client import ApiClient
from kubernetes.client.exceptions import ApiException
from loguru import logger

from kubedeploy.managers import ResourceManager

VERBS = {"read", "create", "replace", "patch", "delete"}


def _merge(target: dict[str, Any], patch: dict[str, Any]) -> None:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = deepcopy(value)


class FakeCluster:
    """
    Stores resources in memory, keyed by API group/version, resource name, namespace and name. The fake APIs handed
    to the resource managers record every call in #calls.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str | None, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str | None, str]] = []
        self.failures: dict[tuple[str, str, str], ApiException] = {}
        self._version = 0

    def fail(self, verb: str, resource: str, name: str, status: int, reason: str = "Error") -> None:
        self.failures[(verb, resource, name)] = ApiException(status=status, reason=reason)

    def put(self, group_version: str, resource: str, namespace: str | None, manifest: dict[str, Any]) -> None:
        manifest = deepcopy(manifest)
        manifest.setdefault("metadata", {})["resourceVersion"] = self._next_version()
        self.objects[(group_version, resource, namespace, manifest["metadata"]["name"])] = manifest

    def get(self, group_version: str, resource: str, namespace: str | None, name: str) -> dict[str, Any] | None:
        return self.objects.get((group_version, resource, namespace, name))

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def call(
        self, group_version: str, verb: str, resource: str, namespaced: bool, args: tuple[Any, ...]
    ) -> dict[str, Any] | None:
        if verb == "create":
            namespace, body = (args[0], args[1]) if namespaced else (None, args[0])
            name = body["metadata"]["name"]
        elif verb in ("replace", "patch"):
            name, namespace, body = (args[0], args[1], args[2]) if namespaced else (args[0], None, args[1])
        else:
            name, namespace, body = args[0], args[1] if namespaced else None, None

        self.calls.append((verb, resource, namespace, name))
        if (verb, resource, name) in self.failures:
            raise self.failures[(verb, resource, name)]

        key = (group_version, resource, namespace, name)
        current = self.objects.get(key)
        if verb == "create":
            if current is not None:
                raise ApiException(status=409, reason="Conflict")
            self.put(group_version, resource, namespace, body)
            return deepcopy(self.objects[key])
        if current is None:
            raise ApiException(status=404, reason="Not Found")
        if verb == "read":
            return deepcopy(current)
        if verb == "replace":
            expected = body.get("metadata", {}).get("resourceVersion")
            if expected != current["metadata"]["resourceVersion"]:
                raise ApiException(status=409, reason="Conflict")
            self.put(group_version, resource, namespace, body)
            return deepcopy(self.objects[key])
        if verb == "patch":
            merged = deepcopy(current)
            _merge(merged, body)
            self.put(group_version, resource, namespace, merged)
            return deepcopy(self.objects[key])
        del self.objects[key]
        return None


class FakeApi:
    """
    Implements the `{verb}_namespaced_{resource}` and `{verb}_{resource}` methods of a typed Kubernetes API.
    """

    def __init__(self, cluster: FakeCluster, group_version: str, client: ApiClient) -> None:
        self.cluster = cluster
        self.group_version = group_version
        self.client = client

    def __getattr__(self, attr: str) -> Callable[..., Any]:
        verb, _, rest = attr.partition("_")
        if verb not in VERBS or not rest:
            raise AttributeError(attr)
        namespaced = rest.startswith("namespaced_")
        resource = rest.removeprefix("namespaced_")

        def method(*args: Any, **kwargs: Any) -> Any:
            return self.cluster.call(self.group_version, verb, resource, namespaced, args)

        return method


@pytest.fixture
def cluster(monkeypatch: pytest.MonkeyPatch) -> FakeCluster:
    """
    Replaces the API of every resource manager with a #FakeApi backed by the same #FakeCluster.
    """

    cluster = FakeCluster()
    for manager_type in ResourceManager.__subclasses__():
        monkeypatch.setattr(manager_type, "api_type", partial(FakeApi, cluster, manager_type.group_version))
    return cluster


@pytest.fixture
def client() -> ApiClient:
    return ApiClient()


@pytest.fixture
def log_messages() -> Iterator[list[str]]:
    """
    Captures the messages logged at any level.
    """

    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(str(message)), level="TRACE", format="{message}")
    yield messages
    logger.remove(handler_id)
