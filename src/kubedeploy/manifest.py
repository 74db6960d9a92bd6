from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NewType

import yaml
from loguru import logger

from kubedeploy.errors import ManifestDecodeError, ResourceInputError
from kubedeploy.kinds import ResourceKind

Manifest = NewType("Manifest", dict[str, Any])
""" Represents a Kubernetes manifest. """


@dataclass
class ManifestDocument:
    """
    The raw text of a manifest file, along with where it was loaded from.
    """

    source: str
    """ A human readable name for where the content was loaded from, usually a file path. """

    content: str


class ManifestResource:
    """
    Wraps a single decoded manifest and provides access to the metadata that is needed to deploy it.
    """

    def __init__(self, manifest: dict[str, Any]) -> None:
        if not isinstance(manifest, dict):
            raise ResourceInputError(f"Expected a manifest object, got {type(manifest).__name__}")
        if not manifest.get("apiVersion") or not manifest.get("kind"):
            raise ResourceInputError("Manifest is missing `apiVersion` or `kind`")
        metadata = manifest.get("metadata")
        if metadata is not None and not isinstance(metadata, dict):
            raise ResourceInputError(f"Manifest `metadata` must be an object, got {type(metadata).__name__}")
        self.manifest = Manifest(deepcopy(manifest))

    def __repr__(self) -> str:
        return f"ManifestResource({self.describe()})"

    @property
    def api_version(self) -> str:
        return str(self.manifest["apiVersion"])

    @property
    def kind(self) -> str:
        return str(self.manifest["kind"])

    @property
    def metadata(self) -> dict[str, Any]:
        return self.manifest.get("metadata") or {}

    @property
    def name(self) -> str | None:
        name = self.metadata.get("name")
        return str(name) if name is not None else None

    @property
    def namespace(self) -> str | None:
        namespace = self.metadata.get("namespace")
        return str(namespace) if namespace is not None else None

    @property
    def resource_kind(self) -> ResourceKind | None:
        return ResourceKind.of(self.api_version, self.kind)

    def describe(self) -> str:
        result = f"{self.api_version}/{self.kind}"
        if self.namespace:
            result += f" {self.namespace}/{self.name}"
        else:
            result += f" {self.name}"
        return result


def decode_manifests(content: str, source: str) -> list[ManifestResource]:
    """
    Decode all YAML documents in *content* into resources. Empty documents are skipped and a `List` is flattened
    into its items.

    Raises:
        ManifestDecodeError: If the content is not valid YAML.
        ResourceInputError: If a document is not a manifest object.
    """

    try:
        documents = [doc for doc in yaml.safe_load_all(content) if doc is not None]
    except yaml.YAMLError as exc:
        raise ManifestDecodeError(source, str(exc)) from exc

    result: list[ManifestResource] = []
    for document in documents:
        if isinstance(document, dict) and document.get("kind") == "List" and "items" in document:
            logger.trace("Flattening List with {} item(s) from '{}'", len(document["items"] or []), source)
            result.extend(ManifestResource(item) for item in document["items"] or [])
        else:
            result.append(ManifestResource(document))
    return result


def find_manifest_files(workspace: Path, patterns: str) -> list[Path]:
    """
    Find the files in *workspace* that match any of the comma-separated glob *patterns*. The result is sorted and
    contains every file only once.
    """

    files: set[Path] = set()
    for pattern in patterns.split(","):
        pattern = pattern.strip()
        if not pattern:
            continue
        files.update(path for path in workspace.glob(pattern) if path.is_file())
    return sorted(files)


def load_documents(workspace: Path, patterns: str) -> list[ManifestDocument]:
    """
    Read the manifest files matched by *patterns* (see #find_manifest_files()).
    """

    documents = []
    for file in find_manifest_files(workspace, patterns):
        logger.trace("Reading manifests from '{}'", file)
        documents.append(ManifestDocument(str(file.relative_to(workspace)), file.read_text()))
    return documents
