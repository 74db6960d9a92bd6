import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class JobContext:
    """
    The build job that a deployment runs as part of.
    """

    workspace: Path
    """ The directory that manifest file patterns and chart locations are relative to. """

    display_name: str = "kubedeploy"
    """ A name for the job that is used to derive default resource names. """

    env: dict[str, str] = field(default_factory=lambda: dict(os.environ))
    """ The job's environment. Commands may add variables to it for later steps of the job. """
