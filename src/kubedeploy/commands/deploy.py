from pathlib import Path

from loguru import logger
from typer import Argument, Exit, Option

from kubedeploy.config import DeployConfig
from kubedeploy.context import DeploymentContext
from kubedeploy.credentials import CredentialsConfig
from kubedeploy.dockercfg import prepare_secret_name
from kubedeploy.errors import DeploymentError
from kubedeploy.job import JobContext

from . import app


@app.command()
def deploy(
    config: Path | None = Option(
        None, "--config", "-c", help="The deployment configuration. Defaults to the nearest `kubedeploy.yaml`."
    ),
    credentials: Path | None = Option(
        None, help="The credentials store. Defaults to the nearest `kubedeploy-credentials.yaml`."
    ),
    workspace: Path | None = Option(
        None, help="The directory that manifest patterns are relative to. Defaults to the directory of the config."
    ),
    name: str | None = Option(None, "--name", envvar="JOB_NAME", help="The name of the job that deploys."),
    delete: bool = Option(False, help="Delete the resources described by the manifests instead of applying them."),
) -> None:
    """
    Run the deployment described by the configuration file.
    """

    deploy_config = DeployConfig.load(config)
    if delete:
        deploy_config.settings.delete = True

    if workspace is None:
        workspace = deploy_config.file.parent if deploy_config.file else Path.cwd()
    job = JobContext(workspace.absolute(), display_name=name or workspace.absolute().name)

    context = DeploymentContext(deploy_config.settings, CredentialsConfig.load(credentials))
    try:
        context.perform(job)
    except DeploymentError as exc:
        logger.error("Deployment failed: {}", exc)
        raise Exit(1)


@app.command()
def secret_name(
    name: str = Argument("", help="The configured name, may reference environment variables."),
    default: str = Argument("", help="The name to derive a Secret name from if *name* is empty."),
) -> None:
    """
    Print the name that would be used for the Docker registry credentials Secret.
    """

    import os

    try:
        print(prepare_secret_name(name, default, os.environ))
    except ValueError as exc:
        logger.error("{}", exc)
        raise Exit(1)
