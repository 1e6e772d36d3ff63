"""Interface definitions for the collector's external collaborators."""

from nodegc.interfaces.cloud_provider import CloudProvider
from nodegc.interfaces.cloud_types import CloudInstance, InstanceState, InstanceTagFilter
from nodegc.interfaces.kubernetes_provider import (
    KubernetesProvider,
    MachineRecord,
    NodeRecord,
)

__all__ = [
    "CloudProvider",
    "CloudInstance",
    "InstanceState",
    "InstanceTagFilter",
    "KubernetesProvider",
    "MachineRecord",
    "NodeRecord",
]
