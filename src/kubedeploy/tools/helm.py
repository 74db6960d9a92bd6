from dataclasses import dataclass
import json
import os
from pathlib import Path
import shlex
import subprocess
from tempfile import TemporaryDirectory
from typing import Any, Sequence

import yaml
from loguru import logger


@dataclass
class HelmError(Exception):
    statuscode: int
    stderr: str | None = None

    def __str__(self) -> str:
        message = f"Helm command failed with status code {self.statuscode}"
        if self.stderr:
            message += f": {self.stderr.strip()}"
        return message


@dataclass
class HelmRepositoryAuth:
    url: str
    username: str | None = None
    password: str | None = None

    def args(self) -> list[str]:
        result = ["--repo", self.url]
        if self.username:
            result.extend(["--username", self.username])
        if self.password:
            result.extend(["--password", self.password])
        return result


class Helm:
    """
    Wrapper for interfacing with the `helm` command-line tool.
    """

    def __init__(self, kube_context: str | None = None) -> None:
        self.env: dict[str, str] = {}
        self.kube_context = kube_context
        self.tempdir: TemporaryDirectory | None = None

    def __del__(self) -> None:
        if hasattr(self, "tempdir") and self.tempdir is not None:
            logger.warning("Helm object was not cleaned up properly")
            self.tempdir.cleanup()

    def __enter__(self) -> "Helm":
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self.tempdir is not None:
            self.tempdir.cleanup()
            self.tempdir = None

    def set_kubeconfig(self, kubeconfig: dict[str, Any] | str | Path) -> None:
        """
        Set the kubeconfig to use for `helm` commands.
        """

        if isinstance(kubeconfig, Path):
            self.env["KUBECONFIG"] = str(kubeconfig)
            return

        if self.tempdir is None:
            self.tempdir = TemporaryDirectory()
        kubeconfig_path = Path(self.tempdir.name) / "kubeconfig"
        with open(kubeconfig_path, "w") as f:
            if isinstance(kubeconfig, str):
                f.write(kubeconfig)
            else:
                yaml.safe_dump(kubeconfig, f)
        kubeconfig_path.chmod(0o600)
        self.env["KUBECONFIG"] = str(kubeconfig_path)

    def run(self, args: Sequence[str], redact: Sequence[str] = ()) -> str:
        """
        Run `helm` with the given arguments and return its output.
        """

        command = ["helm", *args]
        if self.kube_context:
            command.extend(["--kube-context", self.kube_context])

        printable = ["***" if arg in redact else arg for arg in command]
        logger.debug("Running Helm: $ {}", " ".join(map(shlex.quote, printable)))
        status = subprocess.run(command, env={**os.environ, **self.env}, text=True, capture_output=True)
        if status.returncode:
            raise HelmError(status.returncode, status.stderr)
        return status.stdout

    def list_releases(self, name: str, statuses: Sequence[str] = ("deployed", "failed")) -> list[dict[str, Any]]:
        """
        List the releases with the given name across all namespaces that are in one of the given *statuses*.
        """

        args = ["list", "--all-namespaces", "--filter", f"^{name}$", "--output", "json"]
        args.extend(f"--{status}" for status in statuses)
        return json.loads(self.run(args) or "[]")  # type: ignore[no-any-return]

    def show_chart(self, chart: str, version: str | None = None, repo: HelmRepositoryAuth | None = None) -> str:
        args = ["show", "chart", chart]
        if version:
            args.extend(["--version", version])
        if repo:
            args.extend(repo.args())
        return self.run(args, redact=[repo.password] if repo and repo.password else [])

    def install(
        self,
        release: str,
        chart: str,
        namespace: str,
        *,
        upgrade: bool = False,
        version: str | None = None,
        repo: HelmRepositoryAuth | None = None,
        timeout: int = 300,
        wait: bool = False,
        set_values: str | None = None,
    ) -> str:
        """
        Install the chart as a new release, or upgrade an existing release if *upgrade* is set. Upgrades are forced,
        which replaces resources that cannot be updated in place.
        """

        args = ["upgrade" if upgrade else "install", release, chart, "--namespace", namespace]
        args.extend(["--timeout", f"{timeout}s"])
        if upgrade:
            args.append("--force")
        if wait:
            args.append("--wait")
        if version:
            args.extend(["--version", version])
        if repo:
            args.extend(repo.args())
        if set_values:
            args.extend(["--set", set_values])
        return self.run(args, redact=[repo.password] if repo and repo.password else [])

    def rollback(self, release: str, revision: int, namespace: str, *, timeout: int = 300, wait: bool = False) -> str:
        args = ["rollback", release]
        if revision > 0:
            args.append(str(revision))
        args.extend(["--namespace", namespace, "--timeout", f"{timeout}s"])
        if wait:
            args.append("--wait")
        return self.run(args)
