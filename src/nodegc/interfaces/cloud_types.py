"""Data types for CloudProvider interface."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class InstanceState(str, Enum):
    """Instance lifecycle state."""

    PENDING = "pending"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"
    STOPPING = "stopping"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        """Whether the instance is on its way out or already gone."""
        return self in (InstanceState.SHUTTING_DOWN, InstanceState.TERMINATED)


@dataclass
class InstanceTagFilter:
    """Tags an instance must carry to be owned by this collector.

    Attributes:
        cluster_name: Cluster name, matched via ``kubernetes.io/cluster/<name>``
        managed_by: Value of the managed-by tag written at launch
        managed_by_tag_key: Key of the managed-by tag
        provisioner_tag_key: Key of the provisioner tag (any value)
    """

    cluster_name: str
    managed_by: str
    managed_by_tag_key: str = "karpenter.sh/managed-by"
    provisioner_tag_key: str = "karpenter.sh/provisioner-name"

    @property
    def cluster_tag_key(self) -> str:
        return f"kubernetes.io/cluster/{self.cluster_name}"

    def matches(self, tags: dict[str, str]) -> bool:
        """Check a tag mapping against every ownership marker."""
        return (
            self.cluster_tag_key in tags
            and self.provisioner_tag_key in tags
            and tags.get(self.managed_by_tag_key) == self.managed_by
        )


@dataclass
class CloudInstance:
    """Normalized cloud instance."""

    instance_id: str
    provider_id: str
    launch_time: datetime
    state: InstanceState
    tags: dict[str, str] = field(default_factory=dict)
    zone: str | None = None
    instance_type: str | None = None
