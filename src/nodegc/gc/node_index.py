"""Provider ID lookup and deletion of cluster Nodes."""

from collections.abc import Iterable

from nodegc.interfaces.exceptions import NodeNotFoundError
from nodegc.interfaces.kubernetes_provider import KubernetesProvider, NodeRecord
from nodegc.utils.logging import get_logger

logger = get_logger(__name__)


class NodeIndex:
    """Nodes keyed by provider ID, listed once per pass.

    Node names are not derivable from provider IDs, so a pass lists nodes once
    and every deletion resolves its node from this snapshot instead of listing
    again.
    """

    def __init__(
        self,
        provider: KubernetesProvider,
        nodes: Iterable[NodeRecord],
        list_error: str | None = None,
    ):
        self.provider = provider
        self.list_error = list_error
        self._by_provider_id: dict[str, str] = {
            node.provider_id: node.name for node in nodes if node.provider_id
        }

    @classmethod
    async def load(cls, provider: KubernetesProvider) -> "NodeIndex":
        """List nodes through ``provider`` and index them.

        Raises:
            KubernetesProviderError: If nodes cannot be listed
        """
        return cls(provider, await provider.list_nodes())

    @classmethod
    def unavailable(cls, provider: KubernetesProvider, error: str) -> "NodeIndex":
        """Empty index for a pass whose node listing failed."""
        return cls(provider, [], list_error=error)

    def lookup(self, provider_id: str) -> str | None:
        """Name of the node with this provider ID, if one was listed."""
        return self._by_provider_id.get(provider_id)

    def __len__(self) -> int:
        return len(self._by_provider_id)

    async def delete(self, provider_id: str) -> bool:
        """Delete the node carrying ``provider_id``.

        A node that is absent from the snapshot or already deleted counts as
        deleted.

        Returns:
            True if a delete call was issued and succeeded, False if there was
            no node to delete

        Raises:
            KubernetesProviderError: If deletion fails for another reason
        """
        name = self.lookup(provider_id)
        if name is None:
            return False

        try:
            await self.provider.delete_node(name)
        except NodeNotFoundError:
            logger.debug("node_already_deleted", node=name, provider_id=provider_id)
            return False

        logger.info("stale_node_deleted", node=name, provider_id=provider_id)
        return True
