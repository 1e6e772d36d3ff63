"""Cloud provider interface for instance inventory operations."""

from abc import ABC, abstractmethod

from nodegc.interfaces.cloud_types import CloudInstance, InstanceTagFilter


class CloudProvider(ABC):
    """Abstract interface for cloud provider operations.

    This interface abstracts the two cloud operations the collector needs:
    - Enumerating instances launched for the cluster
    - Terminating an instance

    Implementation Note:
    Concrete implementations should hide provider-specific details
    (boto3 exceptions, response formats, etc.) behind this clean interface.
    """

    @abstractmethod
    async def list_owned_instances(self, tag_filter: InstanceTagFilter) -> list[CloudInstance]:
        """List non-terminal instances owned by the cluster.

        Only instances matching every marker in ``tag_filter`` are returned.

        Args:
            tag_filter: Ownership tags to filter on

        Returns:
            List of normalized instances

        Raises:
            CloudProviderError: If listing fails
        """

    @abstractmethod
    async def delete_instance(self, instance_id: str) -> None:
        """Terminate an instance.

        Args:
            instance_id: Provider-assigned instance ID

        Raises:
            InstanceNotFoundError: If the instance is already gone
            CloudProviderError: If termination fails
        """
