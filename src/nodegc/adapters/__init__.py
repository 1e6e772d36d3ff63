"""Adapter implementations for external services."""

from nodegc.adapters.aws_adapter import AWSAdapter
from nodegc.adapters.k8s_adapter import KubernetesAdapter

__all__ = [
    "AWSAdapter",
    "KubernetesAdapter",
]
