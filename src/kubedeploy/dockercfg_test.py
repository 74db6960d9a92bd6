import base64
import json

import pytest

from kubedeploy.constants import KUBERNETES_NAME_LENGTH_LIMIT, KUBERNETES_NAME_PATTERN, KUBERNETES_SECRET_NAME_PREFIX
from kubedeploy.dockercfg import (
    DockerConfigBuilder,
    ResolvedDockerRegistryEndpoint,
    normalize_registry_url,
    prepare_secret_name,
    random_string,
)


@pytest.fixture
def endpoints() -> list[ResolvedDockerRegistryEndpoint]:
    return [
        ResolvedDockerRegistryEndpoint.from_login("registry.example.com", "user", "secret", "ops@example.com"),
        ResolvedDockerRegistryEndpoint.from_login("https://ghcr.io", "bot", "token"),
    ]


def test__ResolvedDockerRegistryEndpoint__from_login(endpoints: list[ResolvedDockerRegistryEndpoint]) -> None:
    assert endpoints[0].url == "http://registry.example.com"
    assert base64.b64decode(endpoints[0].token) == b"user:secret"
    assert "secret" not in repr(endpoints[0])


def test__normalize_registry_url() -> None:
    assert normalize_registry_url("") == "https://index.docker.io/v1/"
    assert normalize_registry_url("localhost:5000") == "http://localhost:5000"
    assert normalize_registry_url("HTTPS://example.com") == "HTTPS://example.com"


def test__DockerConfigBuilder__build_dockercfg(endpoints: list[ResolvedDockerRegistryEndpoint]) -> None:
    builder = DockerConfigBuilder(endpoints)

    auths = json.loads(base64.b64decode(builder.build_dockercfg_base64()))

    assert auths == {
        "http://registry.example.com": {"email": "ops@example.com", "auth": endpoints[0].token},
        "https://ghcr.io": {"email": None, "auth": endpoints[1].token},
    }


def test__DockerConfigBuilder__build_secret(endpoints: list[ResolvedDockerRegistryEndpoint]) -> None:
    secret = DockerConfigBuilder(endpoints).build_secret("apps", "registry")
    assert secret["metadata"] == {"name": "registry", "namespace": "apps"}
    assert secret["type"] == "kubernetes.io/dockercfg"
    assert list(secret["data"]) == [".dockercfg"]


def test__prepare_secret_name__uses_configured_name_with_variables() -> None:
    assert prepare_secret_name(" ${PREFIX}-pull ", "ignored", {"PREFIX": "team"}) == "team-pull"
    assert prepare_secret_name("$PREFIX.registry", "", {"PREFIX": "team"}) == "team.registry"


@pytest.mark.parametrize("name", ["Upper", "trailing-", "under_score", "a" * (KUBERNETES_NAME_LENGTH_LIMIT + 1)])
def test__prepare_secret_name__rejects_invalid_configured_names(name: str) -> None:
    with pytest.raises(ValueError):
        prepare_secret_name(name, "default", {})


def test__prepare_secret_name__derives_name_from_default() -> None:
    name = prepare_secret_name("", "My Job/main", {})

    assert name.startswith(KUBERNETES_SECRET_NAME_PREFIX + "my-job-main")
    assert len(name) == len(KUBERNETES_SECRET_NAME_PREFIX + "my-job-main") + 8
    assert KUBERNETES_NAME_PATTERN.match(name)


@pytest.mark.parametrize("default", ["", None, "   "])
def test__prepare_secret_name__with_blank_config_and_default(default: str | None) -> None:
    for _ in range(20):
        name = prepare_secret_name(None, default, {})
        assert name.strip()
        assert name.startswith(KUBERNETES_SECRET_NAME_PREFIX)
        assert KUBERNETES_NAME_PATTERN.match(name), name
        assert len(name) <= KUBERNETES_NAME_LENGTH_LIMIT


def test__prepare_secret_name__truncates_long_defaults() -> None:
    name = prepare_secret_name("", "x" * 400, {})
    assert len(name) == KUBERNETES_NAME_LENGTH_LIMIT
    assert KUBERNETES_NAME_PATTERN.match(name)


def test__prepare_secret_name__replaces_trailing_dash() -> None:
    # The default leaves no room for a random suffix, so the trailing dash must be replaced.
    default = "x" * (KUBERNETES_NAME_LENGTH_LIMIT - len(KUBERNETES_SECRET_NAME_PREFIX) - 1) + "-"
    name = prepare_secret_name("", default, {})
    assert len(name) == KUBERNETES_NAME_LENGTH_LIMIT
    assert name.endswith("xa")


def test__random_string() -> None:
    assert random_string(0) == ""
    value = random_string(64, force_lowercase=True)
    assert len(value) == 64 and value == value.lower()
