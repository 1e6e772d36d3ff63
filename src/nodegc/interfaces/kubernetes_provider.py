"""Kubernetes provider interface for cluster operations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class MachineRecord:
    """Normalized Machine information."""

    name: str
    provider_id: str | None = None
    linked_provider_id: str | None = None


@dataclass
class NodeRecord:
    """Normalized node information."""

    name: str
    provider_id: str | None = None


class KubernetesProvider(ABC):
    """Abstract interface for Kubernetes operations.

    This interface provides cluster-agnostic access to Kubernetes resources,
    hiding implementation details of the kubernetes Python client.

    All methods return normalized data structures (dataclasses) rather than
    native K8s API objects to maintain clean black box boundaries.
    """

    @abstractmethod
    async def list_machines(self) -> list[MachineRecord]:
        """Get all Machines in the cluster.

        Returns:
            List of normalized machine information

        Raises:
            KubernetesProviderError: If machines cannot be retrieved
        """

    @abstractmethod
    async def list_nodes(self) -> list[NodeRecord]:
        """Get all nodes in the cluster.

        Returns:
            List of normalized node information

        Raises:
            KubernetesProviderError: If nodes cannot be retrieved
        """

    @abstractmethod
    async def delete_node(self, name: str) -> None:
        """Delete a node.

        Args:
            name: Node name

        Raises:
            NodeNotFoundError: If the node is already gone
            KubernetesProviderError: If deletion fails
        """
