"""AWS adapter implementing CloudProvider interface."""

import asyncio
from datetime import datetime, timezone
from typing import Any

from nodegc.clients.aws_client import AWSClient
from nodegc.core.exceptions import InstanceNotFoundError as ClientInstanceNotFoundError
from nodegc.interfaces.cloud_provider import CloudProvider
from nodegc.interfaces.cloud_types import CloudInstance, InstanceState, InstanceTagFilter
from nodegc.interfaces.exceptions import CloudProviderError, InstanceNotFoundError
from nodegc.utils.logging import get_logger

logger = get_logger(__name__)

NON_TERMINAL_STATES = [
    InstanceState.PENDING.value,
    InstanceState.RUNNING.value,
    InstanceState.STOPPING.value,
    InstanceState.STOPPED.value,
]


def provider_id_for(zone: str, instance_id: str) -> str:
    """Build the node provider ID for an EC2 instance."""
    return f"aws:///{zone}/{instance_id}"


def build_filters(tag_filter: InstanceTagFilter) -> list[dict[str, Any]]:
    """Translate an ownership filter into EC2 ``DescribeInstances`` filters."""
    return [
        {"Name": "tag-key", "Values": [tag_filter.cluster_tag_key]},
        {"Name": "tag-key", "Values": [tag_filter.provisioner_tag_key]},
        {"Name": f"tag:{tag_filter.managed_by_tag_key}", "Values": [tag_filter.managed_by]},
        {"Name": "instance-state-name", "Values": NON_TERMINAL_STATES},
    ]


class AWSAdapter(CloudProvider):
    """Adapter wrapping AWSClient to implement CloudProvider interface.

    This adapter hides AWS-specific implementation details (boto3, ClientError)
    behind the clean CloudProvider interface. Blocking boto3 calls run in worker
    threads so concurrent deletions overlap.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        profile: str | None = None,
        client: AWSClient | None = None,
    ):
        """Initialize AWS adapter.

        Args:
            region: AWS region
            profile: AWS profile name (optional)
            client: Preconfigured AWSClient (optional, overrides region/profile)
        """
        self.client = client or AWSClient(region=region, profile=profile)
        logger.debug("aws_adapter_initialized", region=self.client.region)

    async def list_owned_instances(self, tag_filter: InstanceTagFilter) -> list[CloudInstance]:
        """List non-terminal instances owned by the cluster.

        Args:
            tag_filter: Ownership tags to filter on

        Returns:
            List of normalized instances

        Raises:
            CloudProviderError: If listing fails
        """
        try:
            raw_instances = await asyncio.to_thread(
                self.client.describe_instances, build_filters(tag_filter)
            )
        except Exception as e:
            logger.error("list_owned_instances_failed", error=str(e))
            raise CloudProviderError(f"Failed to list instances: {e}") from e

        instances = []
        for raw in raw_instances:
            instance = self._normalize(raw)
            if instance is None:
                continue
            # Filters are applied server-side; re-check so a loose filter can
            # never widen the set of deletion candidates
            if not tag_filter.matches(instance.tags) or instance.state.is_terminal:
                logger.debug("instance_out_of_scope", instance_id=instance.instance_id)
                continue
            instances.append(instance)

        logger.info("owned_instances_listed", count=len(instances))
        return instances

    async def delete_instance(self, instance_id: str) -> None:
        """Terminate an instance.

        Args:
            instance_id: EC2 instance ID

        Raises:
            InstanceNotFoundError: If the instance is already gone
            CloudProviderError: If termination fails
        """
        try:
            await asyncio.to_thread(self.client.terminate_instance, instance_id)
        except ClientInstanceNotFoundError as e:
            raise InstanceNotFoundError(str(e)) from e
        except Exception as e:
            logger.error("delete_instance_failed", instance_id=instance_id, error=str(e))
            raise CloudProviderError(f"Failed to delete instance {instance_id}: {e}") from e

    @staticmethod
    def _normalize(raw: dict[str, Any]) -> CloudInstance | None:
        """Convert a raw EC2 instance into a CloudInstance.

        Returns None for records missing the fields needed to identify them.
        """
        instance_id = raw.get("InstanceId")
        zone = raw.get("Placement", {}).get("AvailabilityZone")
        launch_time = raw.get("LaunchTime")
        if not instance_id or not zone or launch_time is None:
            logger.warning("instance_record_incomplete", instance_id=instance_id)
            return None

        if isinstance(launch_time, str):
            launch_time = datetime.fromisoformat(launch_time.replace("Z", "+00:00"))
        if launch_time.tzinfo is None:
            launch_time = launch_time.replace(tzinfo=timezone.utc)

        try:
            state = InstanceState(raw.get("State", {}).get("Name", ""))
        except ValueError:
            logger.warning(
                "instance_state_unknown", instance_id=instance_id, state=raw.get("State")
            )
            return None

        return CloudInstance(
            instance_id=instance_id,
            provider_id=provider_id_for(zone, instance_id),
            launch_time=launch_time,
            state=state,
            tags={t["Key"]: t.get("Value", "") for t in raw.get("Tags", [])},
            zone=zone,
            instance_type=raw.get("InstanceType"),
        )
