from pathlib import Path

import pytest
from typer.testing import CliRunner

from kubedeploy.commands import app


def test__secret_name__prints_derived_name() -> None:
    result = CliRunner().invoke(app, ["secret-name", "", "My Job"])
    assert result.exit_code == 0
    assert result.stdout.strip().startswith("acs-plugin-my-job")


def test__secret_name__rejects_invalid_name() -> None:
    result = CliRunner().invoke(app, ["secret-name", "Not_Valid"])
    assert result.exit_code == 1


def test__deploy__failed_deployment_exits_with_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "kubedeploy.yaml").write_text("configs: '*.yaml'\n")
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(app, ["deploy"])

    assert result.exit_code == 1
    assert result.exception is None or isinstance(result.exception, SystemExit)
