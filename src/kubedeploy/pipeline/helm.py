from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from kubedeploy.config import HelmChartType, HelmSettings
from kubedeploy.pipeline import Command, DeploymentState
from kubedeploy.tools.helm import Helm, HelmError, HelmRepositoryAuth

if TYPE_CHECKING:
    from kubedeploy.context import DeploymentContext


class HelmDeploymentCommand(Command["DeploymentContext"]):
    """
    Installs a Helm chart as a release, or upgrades the release if it already exists.
    """

    def execute(self, context: "DeploymentContext") -> None:
        try:
            helm_settings = context.settings.helm
            if not context.settings.kubeconfig_id.strip():
                raise ValueError("Kubeconfig id is empty, please check your configuration")
            if not helm_settings.release_name.strip():
                raise ValueError("Helm release name is empty, please check your configuration")

            with context.build_helm() as helm:
                chart, repo = self.resolve_chart(context, helm)
                upgrade = self.release_exists(helm, helm_settings)
                context.log_status(
                    f"{'Upgrading' if upgrade else 'Installing'} Helm release '{helm_settings.release_name}' "
                    f"in namespace '{helm_settings.namespace}'"
                )
                helm.install(
                    helm_settings.release_name,
                    chart,
                    helm_settings.namespace,
                    upgrade=upgrade,
                    version=(helm_settings.chart_version or None) if repo else None,
                    repo=repo,
                    timeout=helm_settings.timeout,
                    wait=helm_settings.wait,
                    set_values=helm_settings.set_values or None,
                )
            context.state = DeploymentState.SUCCESS
        except KeyboardInterrupt as exc:
            context.log_error(exc, "Helm deployment interrupted: ")
            raise
        except Exception as exc:
            context.log_error(exc)

    def resolve_chart(self, context: "DeploymentContext", helm: Helm) -> tuple[str, HelmRepositoryAuth | None]:
        """
        Return the chart reference to pass to Helm, and the repository to install it from if any.
        """

        helm_settings = context.settings.helm
        match helm_settings.chart_type:
            case HelmChartType.uri:
                chart_path = context.require_job().workspace / helm_settings.chart_location
                if not Path(chart_path).exists():
                    raise FileNotFoundError(f"Cannot find Helm chart at '{chart_path}'")
                context.log_status(f"Load chart from '{chart_path}'")
                return str(chart_path), None

            case HelmChartType.repository:
                name, version = helm_settings.chart_name, helm_settings.chart_version
                for repository in context.resolve_helm_repositories():
                    try:
                        helm.show_chart(name, version or None, repository)
                    except HelmError as exc:
                        logger.warning("Failed to resolve chart {}:{} from {}: {}", name, version, repository.url, exc)
                        continue
                    context.log_status(f"Resolved chart {name}:{version or 'latest'} from {repository.url}")
                    return name, repository
                raise ValueError(f"Failed to resolve chart {name}:{version}, please check your configuration")

            case _:
                raise ValueError(f"Unsupported chart type: {helm_settings.chart_type}")

    def release_exists(self, helm: Helm, helm_settings: HelmSettings) -> bool:
        """
        Check if a deployed or failed release with the configured name exists.

        Raises:
            ValueError: If the release exists in another namespace.
        """

        releases = helm.list_releases(helm_settings.release_name)
        for release in releases:
            if release.get("namespace") != helm_settings.namespace:
                raise ValueError(f"Release name has been used in namespace {release.get('namespace')}")
        return len(releases) > 0


class HelmRollbackCommand(Command["DeploymentContext"]):
    """
    Rolls a Helm release back to a previous revision.
    """

    def execute(self, context: "DeploymentContext") -> None:
        try:
            helm_settings = context.settings.helm
            if not helm_settings.rollback_name.strip():
                raise ValueError("Helm rollback release name is empty, please check your configuration")

            with context.build_helm() as helm:
                context.log_status(
                    f"Rolling back Helm release '{helm_settings.rollback_name}' to revision "
                    f"{helm_settings.revision_number or 'previous'}"
                )
                helm.rollback(
                    helm_settings.rollback_name,
                    helm_settings.revision_number,
                    helm_settings.namespace,
                    timeout=helm_settings.timeout,
                    wait=helm_settings.wait,
                )
            context.state = DeploymentState.SUCCESS
        except KeyboardInterrupt as exc:
            context.log_error(exc, "Helm rollback interrupted: ")
            raise
        except Exception as exc:
            context.log_error(exc)
