import pytest

from kubedeploy.kinds import ResourceKind, UpdateMode
from kubedeploy.managers import ResourceManager
from kubedeploy.registry import ResourceKindRegistry
from kubedeploy.updaters import SecretUpdater, ServiceUpdater


def test__ResourceKindRegistry__default__has_handler_for_every_kind() -> None:
    registry = ResourceKindRegistry.default()

    # Make sure we don't end up testing nothing after a refactor.
    assert len(ResourceKind) == 40

    for kind in ResourceKind:
        assert kind in registry, kind


@pytest.mark.parametrize("kind", list(ResourceKind))
def test__ResourceKindRegistry__default__handlers_match_the_kubernetes_api(kind: ResourceKind) -> None:
    """
    Ensures that the API of the manager that a kind is dispatched to has all the methods the updaters call.
    """

    handler = ResourceKindRegistry.default().lookup(kind)
    assert handler is not None
    assert handler.manager.group_version == kind.api_version

    infix = "namespaced_" if handler.namespaced else ""
    for verb in ("read", "create", "replace", "patch", "delete"):
        method = f"{verb}_{infix}{handler.resource}"
        assert hasattr(handler.manager.api_type, method), f"{handler.manager.api_type.__name__} has no {method}"


def test__ResourceKindRegistry__lookup__returns_none_for_unknown_kinds() -> None:
    registry = ResourceKindRegistry.default()
    assert registry.lookup(None) is None
    assert registry.lookup(ResourceKind.of("example.com/v1", "Widget")) is None


def test__ResourceKindRegistry__is_read_only() -> None:
    registry = ResourceKindRegistry.default()
    with pytest.raises(TypeError):
        registry.handlers[ResourceKind.POD] = registry.handlers[ResourceKind.SERVICE]  # type: ignore[index]


def test__ResourceKindRegistry__default__kind_specific_handlers() -> None:
    registry = ResourceKindRegistry.default()

    assert registry.handlers[ResourceKind.SERVICE].updater is ServiceUpdater
    assert registry.handlers[ResourceKind.SECRET].updater is SecretUpdater
    assert not registry.handlers[ResourceKind.NAMESPACE].namespaced

    patched = {kind for kind, handler in registry.handlers.items() if handler.update_mode == UpdateMode.PATCH}
    assert patched == {
        ResourceKind.JOB,
        ResourceKind.PERSISTENT_VOLUME_CLAIM,
        ResourceKind.PERSISTENT_VOLUME,
        ResourceKind.SERVICE_ACCOUNT,
    }


def test__ResourceKind__of() -> None:
    assert ResourceKind.of("apps/v1", "Deployment") is ResourceKind.DEPLOYMENT
    assert ResourceKind.DEPLOYMENT.api_version == "apps/v1"
    assert ResourceKind.DEPLOYMENT.kind == "Deployment"
    assert ResourceKind.NAMESPACE.api_version == "v1"
    assert ResourceKind.of("extensions/v1beta1", "Deployment") is None


def test__ResourceManager__subclasses_declare_their_api() -> None:
    for manager_type in ResourceManager.__subclasses__():
        assert manager_type.group_version
        assert manager_type.api_type is not None
