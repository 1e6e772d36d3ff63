"""Kubernetes adapter implementing KubernetesProvider interface."""

import asyncio
from typing import Any

from nodegc.clients.kubernetes_client import KubernetesClient
from nodegc.core.exceptions import KubernetesNotFoundError
from nodegc.interfaces.exceptions import KubernetesProviderError, NodeNotFoundError
from nodegc.interfaces.kubernetes_provider import KubernetesProvider, MachineRecord, NodeRecord
from nodegc.utils.logging import get_logger

logger = get_logger(__name__)


class KubernetesAdapter(KubernetesProvider):
    """Adapter wrapping KubernetesClient to implement KubernetesProvider interface.

    This adapter normalizes Kubernetes API responses into clean dataclasses,
    hiding kubernetes Python client implementation details.
    """

    def __init__(
        self,
        kubeconfig_path: str | None = None,
        context: str | None = None,
        linked_annotation_key: str = "karpenter.sh/linked",
        client: KubernetesClient | None = None,
    ):
        """Initialize Kubernetes adapter.

        Args:
            kubeconfig_path: Path to kubeconfig file (optional)
            context: Kubernetes context to use (optional)
            linked_annotation_key: Machine annotation naming the instance it is claiming
            client: Preconfigured KubernetesClient (optional)
        """
        self.linked_annotation_key = linked_annotation_key
        try:
            self.client = client or KubernetesClient(
                kubeconfig_path=kubeconfig_path, context=context
            )
            logger.debug("k8s_adapter_initialized", context=context)
        except Exception as e:
            raise KubernetesProviderError(f"Failed to initialize K8s adapter: {e}") from e

    async def list_machines(self) -> list[MachineRecord]:
        """Get all Machines in the cluster.

        Returns:
            List of normalized machine information

        Raises:
            KubernetesProviderError: If machines cannot be retrieved
        """
        try:
            machines = await asyncio.to_thread(self.client.list_machines)
        except Exception as e:
            logger.error("list_machines_failed", error=str(e))
            raise KubernetesProviderError(f"Failed to list machines: {e}") from e

        return [self._normalize_machine(m) for m in machines]

    async def list_nodes(self) -> list[NodeRecord]:
        """Get all nodes in the cluster.

        Returns:
            List of normalized node information

        Raises:
            KubernetesProviderError: If nodes cannot be retrieved
        """
        try:
            nodes = await asyncio.to_thread(self.client.list_nodes)
        except Exception as e:
            logger.error("list_nodes_failed", error=str(e))
            raise KubernetesProviderError(f"Failed to list nodes: {e}") from e

        return [
            NodeRecord(
                name=node.metadata.name,
                provider_id=(node.spec.provider_id if node.spec else None) or None,
            )
            for node in nodes
        ]

    async def delete_node(self, name: str) -> None:
        """Delete a node.

        Args:
            name: Node name

        Raises:
            NodeNotFoundError: If the node is already gone
            KubernetesProviderError: If deletion fails
        """
        try:
            await asyncio.to_thread(self.client.delete_node, name)
        except KubernetesNotFoundError as e:
            raise NodeNotFoundError(str(e)) from e
        except Exception as e:
            logger.error("delete_node_failed", name=name, error=str(e))
            raise KubernetesProviderError(f"Failed to delete node {name}: {e}") from e

    def _normalize_machine(self, machine: dict[str, Any]) -> MachineRecord:
        metadata = machine.get("metadata") or {}
        annotations = metadata.get("annotations") or {}
        status = machine.get("status") or {}
        return MachineRecord(
            name=metadata.get("name", ""),
            provider_id=status.get("providerID") or None,
            linked_provider_id=annotations.get(self.linked_annotation_key) or None,
        )
