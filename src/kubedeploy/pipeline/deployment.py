from typing import TYPE_CHECKING

from kubernetes.client.api_client import ApiClient

from kubedeploy.constants import KUBERNETES_SECRET_NAME_PROP
from kubedeploy.dockercfg import prepare_secret_name
from kubedeploy.manifest import find_manifest_files, load_documents
from kubedeploy.pipeline import Command, DeploymentState

if TYPE_CHECKING:
    from kubedeploy.context import DeploymentContext


def get_master_host(client: ApiClient) -> str:
    """
    Return the URL of the API server that *client* connects to, or `Unknown`.
    """

    configuration = getattr(client, "configuration", None)
    host = getattr(configuration, "host", None)
    if isinstance(host, str) and host:
        return host
    return "Unknown"


class DeploymentCommand(Command["DeploymentContext"]):
    """
    Applies the manifests of the deployment to the cluster, or deletes them in delete mode. If Docker registries
    are configured, their credentials are stored in a Secret first and the Secret's name is exported to the job as
    `KUBERNETES_SECRET_NAME`.
    """

    def execute(self, context: "DeploymentContext") -> None:
        try:
            job = context.require_job()
            settings = context.settings
            if not settings.secret_namespace.strip():
                raise ValueError("Namespace must not be empty")
            if not settings.configs.strip():
                raise ValueError("Configuration file patterns must not be empty")

            client = context.build_client()
            context.log_status(f"Kubernetes master: {get_master_host(client)}")

            files = find_manifest_files(job.workspace, settings.configs)
            if not files:
                context.log_error(f"No configuration found matching '{settings.configs}' in '{job.workspace}'")
                return

            driver = context.build_driver(client)

            endpoints = context.resolve_endpoints()
            if endpoints:
                secret_name = prepare_secret_name(settings.secret_name, job.display_name, job.env)
                driver.create_or_replace_secrets(settings.secret_namespace.strip(), secret_name, endpoints)
                job.env[KUBERNETES_SECRET_NAME_PROP] = secret_name
                context.log_status(f"Exported {KUBERNETES_SECRET_NAME_PROP}={secret_name}")

            result = driver.apply(load_documents(job.workspace, settings.configs))
            if context.delete_mode:
                context.log_status(f"Deleted {len(result.deleted)} resource(s), skipped {len(result.skipped)}")
            else:
                context.log_status(f"Applied {len(result.applied)} resource(s), skipped {len(result.skipped)}")
            context.state = DeploymentState.SUCCESS
        except KeyboardInterrupt as exc:
            context.log_error(exc, "Deployment interrupted: ")
            raise
        except Exception as exc:
            context.log_error(exc)
