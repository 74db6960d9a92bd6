"""
Kubedeploy applies Kubernetes manifests and Helm releases to a cluster as one step of a larger build pipeline.
"""

__version__ = "0.1.0"
