"""Configuration management for nodegc."""

from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from nodegc.core.exceptions import ConfigurationError
from nodegc.interfaces.cloud_types import InstanceTagFilter


class ClusterConfig(BaseModel):
    """Cluster identity and the tags that mark an instance as ours."""

    name: str
    managed_by: str | None = None  # defaults to the cluster name
    managed_by_tag_key: str = "karpenter.sh/managed-by"
    provisioner_tag_key: str = "karpenter.sh/provisioner-name"

    def tag_filter(self) -> InstanceTagFilter:
        """Build the ownership filter used when listing instances."""
        return InstanceTagFilter(
            cluster_name=self.name,
            managed_by=self.managed_by or self.name,
            managed_by_tag_key=self.managed_by_tag_key,
            provisioner_tag_key=self.provisioner_tag_key,
        )


class AWSConfig(BaseModel):
    """AWS configuration."""

    region: str = "us-east-1"
    profile: str | None = None


class MachineResourceConfig(BaseModel):
    """Location of the Machine custom resource."""

    group: str = "karpenter.sh"
    version: str = "v1alpha5"
    plural: str = "machines"
    linked_annotation_key: str = "karpenter.sh/linked"


class KubernetesConfig(BaseModel):
    """Kubernetes configuration."""

    kubeconfig_path: str | None = None
    context: str | None = None
    machines: MachineResourceConfig = Field(default_factory=MachineResourceConfig)


class GarbageCollectionConfig(BaseModel):
    """Garbage collection tuning."""

    resolution_window_seconds: float = Field(default=60.0, ge=0)
    link_cache_ttl_seconds: float = Field(default=600.0, gt=0)
    link_cache_sweep_interval_seconds: float = Field(default=10.0, gt=0)
    max_concurrent_deletions: int = Field(default=100, ge=1)
    pass_interval_seconds: float = Field(default=120.0, gt=0)
    pass_timeout_seconds: float | None = Field(default=None, gt=0)

    @property
    def resolution_window(self) -> timedelta:
        return timedelta(seconds=self.resolution_window_seconds)

    @model_validator(mode="after")
    def _sweep_shorter_than_ttl(self) -> "GarbageCollectionConfig":
        if self.link_cache_sweep_interval_seconds > self.link_cache_ttl_seconds:
            raise ValueError("link_cache_sweep_interval_seconds must not exceed the cache TTL")
        return self


class RateLimitsConfig(BaseModel):
    """Rate limiting configuration (requests per minute)."""

    aws_api: int = Field(default=600, ge=1)
    kubernetes_api: int = Field(default=1200, ge=1)
    max_wait_seconds: float = 120.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"
    output: str = "stdout"


class NodeGCConfig(BaseModel):
    """Main nodegc configuration."""

    cluster: ClusterConfig
    aws: AWSConfig = Field(default_factory=AWSConfig)
    kubernetes: KubernetesConfig = Field(default_factory=KubernetesConfig)
    garbage_collection: GarbageCollectionConfig = Field(default_factory=GarbageCollectionConfig)
    rate_limits: RateLimitsConfig = Field(default_factory=RateLimitsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: str | Path) -> "NodeGCConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to configuration file

        Returns:
            NodeGCConfig instance

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        config_path = Path(path).expanduser()

        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f)
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration must be a mapping: {config_path}")

        try:
            return cls(**data)
        except Exception as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump()
